from pysigntool import config, discovery

HELP_TOKENS = ['-help', '--help', '-h', '/?', 'help']

USAGE = '''USAGE:
  bulksign -dr <directory>           # Recursive directory scan (default)
  bulksign -d <directory>            # Non-recursive directory scan
  bulksign -exe <file.exe>           # Sign single EXE file
  bulksign -dll <file.dll>           # Sign single DLL file
  bulksign -file <path>              # Sign any single file
  bulksign <directory> <filename>    # Smart search and sign
  bulksign -remove <file>            # Remove signature from single file
  bulksign -remove-dr <directory>    # Remove signatures recursively
  bulksign -remove-d <directory>     # Remove signatures non-recursively

OPTIONAL FILE TYPE FILTERS (can combine multiple):
  -types exe                         # Only .exe files
  -types dll                         # Only .dll files
  -types exe,dll                     # Both .exe and .dll files
  -types exe,dll,msi,sys,ocx,cab,cat # Multiple types

EXAMPLES:
  bulksign -dr "C:\\MyProject"
  bulksign -d "C:\\MyProject\\bin" -types exe,dll
  bulksign -exe "C:\\MyApp.exe"
  bulksign "C:\\Build" MPTSCore
  bulksign -remove-dr "C:\\SignedBinaries"'''


class UsageError(Exception):
    def __init__(self, value):
        self.value_ = value

    def __str__(self):
        return self.value_


class RunRequest(object):
    def __init__(self):
        self.path = None
        self.recursive = True
        self.extensions = []
        self.is_single_file = False
        self.remove_signature = False

    def add_extension(self, token: str):
        ext = config.normalize_extension(token)
        if ext not in self.extensions:
            self.extensions.append(ext)

    def mode_name(self) -> str:
        if self.is_single_file:
            return 'Single File'
        return 'Recursive Directory' if self.recursive else 'Non-Recursive Directory'

    def __repr__(self):
        return 'RunRequest(path=%r, recursive=%r, extensions=%r, single=%r, remove=%r)' % (
            self.path, self.recursive, self.extensions, self.is_single_file, self.remove_signature)


def is_help_request(args: list) -> bool:
    return len(args) == 0 or args[0].lower() in HELP_TOKENS


def _value_after(args: list, i: int, flag: str) -> str:
    if i + 1 >= len(args):
        raise UsageError('%s requires a value' % flag)
    return args[i + 1]


def _require_extension(path: str, flag: str, extension: str):
    if not path.lower().endswith(extension):
        raise UsageError('%s flag requires a file ending with %s' % (flag, extension))


# flag: (is_single_file, recursive, remove_signature); None keeps the current value
PATH_FLAGS = {
    '-dr': (False, True, None),
    '-d': (False, False, None),
    '-file': (True, None, None),
    '-exe': (True, None, None),
    '-dll': (True, None, None),
    '-remove': (True, None, True),
    '-remove-dr': (False, True, True),
    '-remove-d': (False, False, True),
}


def parse_arguments(args: list, chooser=discovery.prompt_selection) -> RunRequest:
    """
    Parse the command line into a RunRequest, raising UsageError on bad input.
    A trailing positional after a directory runs a smart search through chooser.
    """
    request = RunRequest()
    i = 0
    while i < len(args):
        arg = args[i].lower()
        if arg in PATH_FLAGS:
            request.path = _value_after(args, i, arg)
            single, recursive, remove = PATH_FLAGS[arg]
            request.is_single_file = single
            if recursive is not None:
                request.recursive = recursive
            if remove is not None:
                request.remove_signature = remove
            if arg in ('-exe', '-dll'):
                _require_extension(request.path, arg, '.' + arg[1:])
            i += 2
            continue

        if arg == '-types':
            for token in _value_after(args, i, arg).split(','):
                if token.strip():
                    request.add_extension(token)
            i += 2
            continue

        if not request.path:
            request.path = args[i]
            request.recursive = True
            request.is_single_file = False
        elif i == len(args) - 1 and not request.is_single_file:
            result = discovery.smart_find(request.path, args[i])
            found = discovery.resolve_search(result, chooser)
            if not found:
                raise UsageError("could not resolve '%s' under %s" % (args[i], request.path))
            request.path = found
            request.is_single_file = True
        i += 1

    if not request.path:
        raise UsageError('no target path given')
    if not request.extensions and not request.is_single_file:
        for ext in config.DEFAULT_EXTENSIONS:
            request.add_extension(ext)
    return request
