import logging
import threading
import time

from linestream.support.cancel import CancelToken

logger = logging.getLogger(__name__)


class AsyncLoop:
    """ Continually runs a given function on a background thread until the cancel token fires.
        Exceptions are logged and posted to a given handler
        The background thread is registered as a daemon.
    """

    def __init__(self, fn=None, args=(), cancel: CancelToken=None, log=logger):
        """
        :param fn the function to run
        :param args arguments to pass to fn
        :param cancel the token that stops the loop. A new token is created when not given.
        """
        self.fn = fn
        self.args = args
        self.cancel = cancel if cancel is not None else CancelToken()
        self.background_thread = None
        self.logger = log
        self._lock = threading.Lock()

    def start(self):
        """
        Starts the background thread. Starting a loop that is already running does nothing.
        """
        with self._lock:
            if self.background_thread is None:
                t = threading.Thread(target=self._run, name=self.thread_name(), daemon=True)
                self.background_thread = t
                t.start()

    def thread_name(self):
        return type(self).__name__

    def exception_handler(self, e):
        self.logger.exception(e)

    def _run(self):
        """ The processing loop for the background thread.
             Invokes the callable for as long as the token has not fired.
        """
        self._do(self.startup)
        while self.running():
            self._do(self.loop)
        self._do(self.shutdown)
        self.logger.info("background thread exiting")

    def _do(self, callme):
        """ runs a function and captures any exceptions """
        try:
            time.sleep(0)
            callme()
        except Exception as e:
            time.sleep(0)
            self.exception_handler(e)

    def startup(self):
        """ template method called when the thread starts"""
        pass

    def loop(self):
        self.fn(*self.args)

    def shutdown(self):
        """ template method called when the thread exits """
        pass

    def running(self):
        return not self.cancel.canceled

    def stop(self, timeout=None):
        """
        Fires the token and waits for the background thread to finish.
        :return: True if the thread has finished (or was never started).
        """
        self.cancel.cancel()
        with self._lock:
            thread = self.background_thread
            self.background_thread = None
        if thread and thread is not threading.current_thread():
            thread.join(timeout)
            return not thread.is_alive()
        return True
