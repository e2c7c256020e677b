import logging
from abc import abstractmethod

from linestream.support.cancel import CancelToken

logger = logging.getLogger(__name__)


class ConnectorError(Exception):
    """ Indicates an error condition with a connection. These are transient and retried. """


class ConnectFailure(ConnectorError):
    """ The transport could not produce a byte-stream source for the address. """


class ReadFailure(ConnectorError):
    """ The byte-stream source ended or errored part way through a cycle. """


class StreamEnded(ReadFailure):
    """ The byte-stream source is exhausted. Running out of data is a failure like any other. """

    def __init__(self, *args):
        super().__init__(*(args or ('end of stream',)))


class RecordTooLong(ReadFailure):
    """
    A line was longer than the decoder's limit.
    records holds the valid records decoded alongside it, in stream order.
    """

    def __init__(self, *args, records=()):
        super().__init__(*args)
        self.records = list(records)


class Transport:
    """
    A transport produces a byte-stream source for an address.

    Any callable taking (cancel_token, address) and returning an object with a read(size) method
    can be used as a transport; this class gives the shipped transports a common shape.
    The source must honor the token: a read blocked when the token fires raises the token's error.
    """

    def __call__(self, cancel: CancelToken, address):
        cancel.raise_if_canceled()
        try:
            return self._connect(cancel, address)
        except (ConnectorError, OSError, ValueError) as e:
            if isinstance(e, ConnectFailure):
                raise
            raise ConnectFailure("unable to connect to %s: %s" % (address, e)) from e

    @abstractmethod
    def _connect(self, cancel: CancelToken, address):
        """ Template method for subclasses to open the source.
            If connection is not possible, an exception should be thrown
        """
        raise NotImplementedError
