import logging
import socket

from linestream.conduit.socket_conduit import SocketConduit
from linestream.connector.base import Transport
from linestream.support.cancel import CancelToken

logger = logging.getLogger(__name__)


class TCPServerEndpoint:
    """
    Describes a TCP server endpoint, parsed from a 'host:port' address.
    """
    def __init__(self, hostname, port):
        self.hostname = hostname
        self.port = port

    @classmethod
    def parse(cls, address):
        """
        >>> e = TCPServerEndpoint.parse('logs.example.com:5140')
        >>> e.hostname, e.port
        ('logs.example.com', 5140)
        >>> TCPServerEndpoint.parse('[::1]:5140').hostname
        '::1'
        """
        host, sep, port = str(address).rpartition(':')
        if not sep or not host:
            raise ValueError("expected host:port, got '%s'" % address)
        if host.startswith('[') and host.endswith(']'):
            host = host[1:-1]
        return cls(host, int(port))

    def key(self):
        """
        >>> TCPServerEndpoint('name', 55).key()
        'name:55'
        """
        return str(self.hostname) + ':' + str(self.port)


class SocketTransport(Transport):
    """
    A transport that reads records from a TCP server.
    The address is a 'host:port' string.
    """
    def __init__(self, connect_timeout=5, report_errors=True):
        """
        :param connect_timeout: seconds to wait for the connection to be established.
        :param report_errors: when False, connection errors are logged at debug level only.
        """
        self.connect_timeout = connect_timeout
        self._report_errors = report_errors

    def _connect(self, cancel: CancelToken, address) -> SocketConduit:
        endpoint = TCPServerEndpoint.parse(address)
        try:
            sock = socket.create_connection((endpoint.hostname, endpoint.port), self.connect_timeout)
        except socket.error as e:
            method = logger.warning if self._report_errors else logger.debug
            method("error opening socket to %s: %s" % (endpoint.key(), e))
            raise
        sock.settimeout(None)
        logger.info("opened socket to %s" % endpoint.key())
        return SocketConduit(sock, cancel)
