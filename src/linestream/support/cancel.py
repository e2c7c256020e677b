"""
One-shot cancellation signals shared between a reader and whoever wants to stop it.

A CancelToken fires at most once. The first reason given wins and is kept as the token's
terminal error; calling cancel() again has no effect. Blocking operations race the token
either by waiting on it directly (wait()) or by registering a listener that unblocks them
when the token fires (add_listener()).
"""
import logging
import threading

from linestream.support.events import EventSource

logger = logging.getLogger(__name__)


class CancellationError(Exception):
    """ The cancel token fired. This is the expected shutdown signal rather than an application error. """


class Canceled(CancellationError):
    """ The token was canceled explicitly. """

    def __init__(self, *args):
        super().__init__(*(args or ('canceled',)))


class DeadlineExceeded(CancellationError):
    """ The token was fired because its deadline passed. """

    def __init__(self, *args):
        super().__init__(*(args or ('deadline exceeded',)))


class CancelToken:
    """
    A cancellation signal with one-shot semantics.

    :param parent: an optional parent token. This token fires with the parent's error when the
        parent fires, but canceling this token leaves the parent untouched.
    :param timeout: when given, the token fires with DeadlineExceeded after this many seconds.
    """

    def __init__(self, parent=None, timeout=None):
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._error = None
        self._listeners = EventSource()
        self._parent = parent
        self._timer = None
        if parent is not None:
            parent.add_listener(self._parent_canceled)
        if timeout is not None:
            self._timer = threading.Timer(timeout, self.cancel, args=(DeadlineExceeded(),))
            self._timer.daemon = True
            self._timer.start()

    def child(self, timeout=None):
        """ creates a scoped token that fires when this one does, or on its own deadline. """
        return CancelToken(self, timeout)

    @property
    def canceled(self) -> bool:
        return self._event.is_set()

    @property
    def error(self) -> CancellationError:
        """ the terminal reason, or None while the token has not fired. """
        return self._error

    def cancel(self, reason: CancellationError=None) -> bool:
        """
        Fires the token.
        :param reason: the terminal error. Defaults to Canceled.
        :return: True if this call fired the token, False if it had already fired.
        """
        with self._lock:
            if self._event.is_set():
                return False
            self._error = reason if reason is not None else Canceled()
            self._event.set()
        logger.debug("token fired: %s" % self._error)
        self._detach()
        self._listeners.fire(self._error)
        return True

    def wait(self, timeout=None) -> bool:
        """
        Blocks until the token fires or the timeout elapses.
        :return: True if the token fired.
        """
        return self._event.wait(timeout)

    def raise_if_canceled(self):
        if self._event.is_set():
            raise self._error

    def close(self):
        """
        Releases a token that is no longer needed. It stops following its parent and its deadline,
        so neither keeps a reference to it. The token is not fired, and can still be canceled directly.
        """
        self._detach()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    def add_listener(self, handler):
        """
        Registers a callable that receives the terminal error when the token fires.
        If the token has already fired the handler is called immediately on the calling thread.
        """
        with self._lock:
            fired = self._event.is_set()
            if not fired:
                self._listeners.add(handler)
        if fired:
            handler(self._error)

    def remove_listener(self, handler):
        self._listeners.remove(handler)

    def _parent_canceled(self, error):
        self.cancel(error)

    def _detach(self):
        timer = self._timer
        self._timer = None
        if timer is not None:
            timer.cancel()
        if self._parent is not None:
            self._parent.remove_listener(self._parent_canceled)
