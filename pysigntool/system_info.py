import os
import platform


def get_os() -> str:
    uname_str = platform.system()
    if 'MINGW' in uname_str:
        return 'windows'
    elif 'MSYS' in uname_str:
        return 'windows'
    elif 'CYGWIN' in uname_str:
        return 'windows'
    elif uname_str == 'Windows':
        return 'windows'
    elif uname_str == 'Linux':
        return 'linux'
    elif uname_str == 'Darwin':
        return 'macosx'
    elif uname_str == 'FreeBSD':
        return 'freebsd'
    else:
        return 'unknown'


def get_arch_name() -> str:
    return platform.machine()


def platform_description() -> str:
    return '%s(%s), Python %s' % (get_os(), get_arch_name(), platform.python_version())


def tool_directory(tool_path: str) -> str:
    directory = os.path.dirname(tool_path)
    if not directory:
        return ''
    return os.path.abspath(directory)


def ensure_on_search_path(directory: str, env=None) -> bool:
    """
    Append directory to PATH unless it is already listed.
    Returns True when PATH was changed.
    """
    if env is None:
        env = os.environ
    if not directory:
        return False

    current = env.get('PATH', '')
    entries = [os.path.normcase(os.path.normpath(x)) for x in current.split(os.pathsep) if x]
    if os.path.normcase(os.path.normpath(directory)) in entries:
        return False

    env['PATH'] = current + os.pathsep + directory if current else directory
    return True
