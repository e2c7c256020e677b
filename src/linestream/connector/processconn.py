import logging
import shlex

from linestream.conduit.process_conduit import KILL_TIMEOUT, ProcessConduit
from linestream.connector.base import Transport
from linestream.support.cancel import CancelToken

logger = logging.getLogger(__name__)


class ProcessTransport(Transport):
    """
    A transport that reads records from the standard output of a process.
    The address is the command line, either a string split with shell rules or a sequence of arguments.
    Each connection cycle starts the process afresh.
    """

    def __init__(self, cwd=None, kill_timeout=KILL_TIMEOUT):
        self.cwd = cwd
        self.kill_timeout = kill_timeout

    def _connect(self, cancel: CancelToken, address) -> ProcessConduit:
        args = shlex.split(address) if isinstance(address, str) else list(address)
        if not args:
            raise ValueError("no command given")
        conduit = ProcessConduit(*args, cwd=self.cwd, cancel=cancel, kill_timeout=self.kill_timeout)
        logger.info("started process %s" % args)
        return conduit
