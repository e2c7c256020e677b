import logging
import os
import signal
import subprocess
import threading

from linestream.conduit.base import StreamConduit
from linestream.support.cancel import CancelToken

logger = logging.getLogger(__name__)

# seconds a process is given to exit after it is asked to terminate, before it is killed
KILL_TIMEOUT = 1.0

_posix = os.name == 'posix'


class ProcessConduit(StreamConduit):
    """
    Reads the standard output of a locally hosted process.

    On POSIX the process is started in its own session, so stopping it signals the whole process group
    and any children that inherited its output pipe. A process that ignores termination is killed
    after kill_timeout seconds.
    """

    def __init__(self, *args, cwd=None, cancel: CancelToken=None, kill_timeout=KILL_TIMEOUT):
        """
        args: the process image name and any additional arguments required by the process.
        raises OSError and ValueError
        """
        self.cwd = cwd
        self.kill_timeout = kill_timeout
        self._kill_timer = None
        self.process = subprocess.Popen(args, cwd=cwd, stdout=subprocess.PIPE, stdin=subprocess.DEVNULL,
                                        start_new_session=_posix)
        super().__init__(self.process.stdout, cancel)

    @property
    def target(self):
        return self.process

    @property
    def open(self):
        """
        The conduit is considered open if the underlying process is still alive.
        """
        return super().open and self.process.poll() is None

    def _interrupt(self):
        # runs on the canceling thread, so the kill is deferred rather than waited for
        self._terminate()
        timer = threading.Timer(self.kill_timeout, self._kill)
        timer.daemon = True
        self._kill_timer = timer
        timer.start()

    def _close(self):
        timer = self._kill_timer
        if timer is not None:
            timer.cancel()
        if self.process.poll() is None:
            self._terminate()
        try:
            self.process.wait(self.kill_timeout)
        except subprocess.TimeoutExpired:
            logger.debug("process %s ignored termination, killing it" % (self.process.args,))
            self._kill()
            self.process.wait()
        self.input.close()
        logger.debug("process %s exited with %s" % (self.process.args, self.process.returncode))

    def _terminate(self):
        if _posix:
            self._signal_group(signal.SIGTERM)
        else:
            self.process.terminate()

    def _kill(self):
        if _posix:
            self._signal_group(signal.SIGKILL)
        else:
            self.process.kill()

    def _signal_group(self, sig):
        try:
            os.killpg(self.process.pid, sig)
        except ProcessLookupError:
            pass
