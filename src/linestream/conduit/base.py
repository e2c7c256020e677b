import logging
from abc import abstractmethod
from io import IOBase

from linestream.connector.base import ReadFailure
from linestream.support.cancel import CancelToken

logger = logging.getLogger(__name__)


class Conduit:
    """
    A conduit is a readable byte-stream source for a single connection cycle.
    """

    @property
    @abstractmethod
    def target(self):
        raise NotImplementedError

    @property
    @abstractmethod
    def open(self) -> bool:
        """ determines if this conduit is open. When open, read() may be called. """
        raise NotImplementedError

    @abstractmethod
    def read(self, size: int) -> bytes:
        """ reads up to size bytes. An empty result means the stream is exhausted. """
        raise NotImplementedError

    @abstractmethod
    def close(self):
        raise NotImplementedError


class StreamConduit(Conduit):
    """
    Reads from a file-like input stream, and makes the blocking read interruptible by a cancel token.

    When the token fires, _interrupt() is called from the canceling thread. Subclasses implement it to
    unblock a pending read (shutting down a socket, terminating a process). The read then raises the
    token's error rather than reporting end of stream or an I/O error.

    :param input: the stream to read. read1() is used when available so a read returns as soon as
        any data arrives.
    :param cancel: the token to honor.
    """

    def __init__(self, input: IOBase, cancel: CancelToken=None):
        self._input = input
        self._cancel = cancel
        self._closed = False
        if cancel is not None:
            cancel.add_listener(self._canceled)

    @property
    def target(self):
        return self._input

    @property
    def input(self) -> IOBase:
        return self._input

    @property
    def open(self) -> bool:
        return not self._closed

    def read(self, size: int) -> bytes:
        self._raise_if_canceled()
        stream = self._input
        try:
            data = stream.read1(size) if hasattr(stream, 'read1') else stream.read(size)
        except (OSError, ValueError) as e:
            self._raise_if_canceled()
            raise ReadFailure("error reading from %s: %s" % (self.target, e)) from e
        if not data:
            self._raise_if_canceled()
        return data

    def close(self):
        if self._closed:
            return
        self._closed = True
        if self._cancel is not None:
            self._cancel.remove_listener(self._canceled)
        self._close()

    def _raise_if_canceled(self):
        if self._cancel is not None:
            self._cancel.raise_if_canceled()

    def _canceled(self, error):
        if not self._closed:
            logger.debug("interrupting read from %s: %s" % (self.target, error))
            self._interrupt()

    def _interrupt(self):
        """ template method: unblock a read in progress. """
        pass

    def _close(self):
        self._input.close()
