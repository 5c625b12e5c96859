#!/usr/bin/env python3

'''
Signs (or unsigns) every matching binary under a directory with signtool,
falling back across timestamp servers and retrying failures once.
'''

import logging
import sys

from pysigntool import cert_store, cli, config, controller, invoker, policy, scheduler, state, system_info


def print_banner(sign_config: config.SignConfig):
    print('==================================================')
    print('    %s' % config.TOOL_NAME)
    print('==================================================')
    print('Thumbprint: %s' % sign_config.thumbprint())
    print('SignTool: %s' % sign_config.signtool_path())
    print('Platform: %s' % system_info.platform_description())
    print()


def build_controller(sign_config: config.SignConfig) -> controller.ModeController:
    tool = invoker.ToolInvoker(sign_config.signtool_path(), sign_config.timeout(), sign_config.verify_timeout())
    signing_policy = policy.SigningPolicy(tool, sign_config.servers(), sign_config.thumbprint(), sign_config.digest())
    run_state = state.RunState(state.SigningLog(sign_config.log_file()))
    batch = scheduler.BatchScheduler(signing_policy, run_state, tool, sign_config.max_workers())
    return controller.ModeController(sign_config, batch, signing_policy, run_state)


def main(argv=None) -> int:
    if argv is None:
        argv = sys.argv[1:]
    try:
        sign_config = config.SignConfig.from_env()
    except config.ConfigError as ex:
        print('ERROR: %s' % ex)
        return 0
    logging.basicConfig(level=sign_config.log_level(), format='%(levelname)s %(name)s: %(message)s')

    print_banner(sign_config)
    if cli.is_help_request(argv):
        print(cli.USAGE)
        return 0

    store = cert_store.get_certificate_store(system_info.get_os(), sign_config.cert_dir())
    if not store.contains(sign_config.thumbprint()):
        print('WARNING: Signing certificate not found. Skipping code signing.')
        return 0

    tool_dir = system_info.tool_directory(sign_config.signtool_path())
    if system_info.ensure_on_search_path(tool_dir):
        print('Added to PATH: %s' % tool_dir)
    print()

    try:
        request = cli.parse_arguments(argv)
    except cli.UsageError as ex:
        print('ERROR: Invalid arguments provided. %s' % ex)
        print()
        print(cli.USAGE)
        return 0

    build_controller(sign_config).run(request)
    return 0


if __name__ == '__main__':
    sys.exit(main())
