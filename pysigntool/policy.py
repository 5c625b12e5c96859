import logging
from pysigntool import config, invoker

logger = logging.getLogger(__name__)


class JobOutcome:
    SUCCESS = 'success'
    FAIL = 'fail'
    SKIP = 'skip'


class PolicyResult:
    def __init__(self, signed: bool, server=None, last_error='', attempts=0):
        self.signed_ = signed
        self.server_ = server
        self.last_error_ = last_error
        self.attempts_ = attempts

    def signed(self) -> bool:
        return self.signed_

    def server(self):
        return self.server_

    def last_error(self) -> str:
        return self.last_error_

    def attempts(self) -> int:
        return self.attempts_


class SigningPolicy(object):
    def __init__(self, tool: invoker.ToolInvoker, servers: list, thumbprint: str, digest=config.DEFAULT_DIGEST):
        self.tool_ = tool
        self.servers_ = servers
        self.thumbprint_ = thumbprint
        self.digest_ = digest

    def servers(self) -> list:
        return self.servers_

    def tool(self) -> invoker.ToolInvoker:
        return self.tool_

    def _sign_arguments(self, server: config.TimestampServer, path: str) -> list:
        return invoker.sign_arguments(server.url(), self.thumbprint_, path, self.digest_)

    def sign(self, path: str) -> PolicyResult:
        """
        Try every timestamp server in order, stop at the first one that signs.
        """
        last_error = 'Unknown error'
        attempts = 0
        for server in self.servers_:
            attempts += 1
            print('  Attempting signature with: %s' % server.name())
            try:
                result = self.tool_.run(self._sign_arguments(server, path))
            except Exception as ex:
                logger.warning('exception signing %s with %s', path, server.name(), exc_info=True)
                print('  EXCEPTION with %s: %s' % (server.name(), ex))
                last_error = str(ex)
                continue

            if result.succeeded():
                print('  SUCCESS: Signed with %s' % server.name())
                return PolicyResult(True, server, attempts=attempts)

            print('  Failed with %s' % server.name())
            last_error = 'Failed with %s' % server.name()

        return PolicyResult(False, last_error=last_error, attempts=attempts)

    def preflight(self, path: str) -> bool:
        # surfaces interactive credential prompts once, before the bulk pass
        if not self.servers_:
            return False

        server = self.servers_[0]
        print('  Attempting Standard approach...')
        try:
            ok = self.tool_.run(self._sign_arguments(server, path), quiet=True).succeeded()
        except Exception:
            logger.warning('exception during preflight signing of %s', path, exc_info=True)
            ok = False

        if ok:
            print('  SUCCESS: Standard approach worked')
        else:
            print('  WARNING: Password prompt may appear for each file')
        return ok

    def remove(self, path: str) -> str:
        try:
            result = self.tool_.run(invoker.remove_arguments(path))
            if result.succeeded():
                return JobOutcome.SUCCESS
            if not self.tool_.is_signed(path):
                return JobOutcome.SKIP
        except Exception:
            logger.warning('exception removing signature from %s', path, exc_info=True)
        return JobOutcome.FAIL
