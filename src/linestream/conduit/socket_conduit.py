import socket

from linestream.conduit import base
from linestream.support.cancel import CancelToken


class SocketConduit(base.StreamConduit):
    """
    A conduit that reads from a connected socket.
    Canceling the token shuts the socket down, which wakes a blocked read.
    :param sock The open, connected socket
    """
    def __init__(self, sock: socket.socket, cancel: CancelToken=None):
        """
        :param sock: the client socket that represents the connection
        :type sock: socket
        """
        self.sock = sock
        super().__init__(sock.makefile('rb'), cancel)

    @property
    def open(self) -> bool:
        return super().open and self.sock.fileno() >= 0

    @property
    def target(self):
        return self.sock

    def _interrupt(self):
        try:
            self.sock.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass    # the peer may have closed the socket already

    def _close(self):
        self.input.close()
        try:
            self.sock.shutdown(socket.SHUT_RDWR)
        except socket.error:
            pass
        finally:
            self.sock.close()
