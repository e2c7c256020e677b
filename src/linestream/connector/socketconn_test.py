import socket
import threading
import unittest
from unittest.mock import Mock, patch

import timeout_decorator
from hamcrest import assert_that, calling, instance_of, is_, raises

from linestream.conduit.socket_conduit import SocketConduit
from linestream.connector.base import ConnectFailure
from linestream.connector.socketconn import SocketTransport, TCPServerEndpoint
from linestream.support.cancel import CancelToken
from linestream.support.cancel_test import debug_timeout


class LineServer:
    """ accepts one client on a free local port and sends it the given data. """

    def __init__(self, data):
        self.data = data
        self.listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self.listener.bind(('127.0.0.1', 0))
        self.listener.listen(1)
        self.address = '127.0.0.1:%d' % self.listener.getsockname()[1]
        self.thread = threading.Thread(target=self._serve, daemon=True)
        self.thread.start()

    def _serve(self):
        client, _ = self.listener.accept()
        try:
            client.sendall(self.data)
            client.shutdown(socket.SHUT_WR)
        finally:
            client.close()
            self.listener.close()


class TCPServerEndpointTest(unittest.TestCase):

    def test_parse(self):
        sut = TCPServerEndpoint.parse('logs.local:5140')
        assert_that((sut.hostname, sut.port), is_(('logs.local', 5140)))
        assert_that(sut.key(), is_('logs.local:5140'))

    def test_parse_ipv6(self):
        sut = TCPServerEndpoint.parse('[::1]:80')
        assert_that((sut.hostname, sut.port), is_(('::1', 80)))

    def test_parse_invalid(self):
        assert_that(calling(TCPServerEndpoint.parse).with_args('nohost'), raises(ValueError))
        assert_that(calling(TCPServerEndpoint.parse).with_args(':80'), raises(ValueError))
        assert_that(calling(TCPServerEndpoint.parse).with_args('host:port'), raises(ValueError))


class SocketTransportTest(unittest.TestCase):

    def setUp(self):
        self.cancel = CancelToken()

    @timeout_decorator.timeout(debug_timeout(5))
    def test_connects_and_reads(self):
        server = LineServer(b'one\ntwo\n')
        conduit = SocketTransport(connect_timeout=2)(self.cancel, server.address)
        try:
            assert_that(conduit, is_(instance_of(SocketConduit)))
            received = b''
            while True:
                data = conduit.read(4096)
                if not data:
                    break
                received += data
            assert_that(received, is_(b'one\ntwo\n'))
        finally:
            conduit.close()
        server.thread.join()

    def test_invalid_address_is_a_connect_failure(self):
        assert_that(calling(SocketTransport()).with_args(self.cancel, 'not an address'), raises(ConnectFailure))

    @patch('socket.create_connection')
    def test_refused_is_a_connect_failure(self, create_connection):
        create_connection.side_effect = ConnectionRefusedError('refused')
        sut = SocketTransport(connect_timeout=3, report_errors=False)
        assert_that(calling(sut).with_args(self.cancel, 'host:1'), raises(ConnectFailure, 'refused'))
        create_connection.assert_called_once_with(('host', 1), 3)

    @patch('socket.create_connection')
    def test_connected_socket_blocks_without_timeout(self, create_connection):
        sock = create_connection.return_value = Mock()
        SocketTransport()(self.cancel, 'host:1')
        sock.settimeout.assert_called_once_with(None)


if __name__ == '__main__':  # pragma no cover
    unittest.main()
