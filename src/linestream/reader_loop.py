import logging

from linestream.protocol.lines import LineDecoder
from linestream.reader import DEFAULT_RETRY_PERIOD, read_until_canceled
from linestream.record_queue import RecordQueue
from linestream.support.cancel import CancellationError, CancelToken
from linestream.support.events import EventSource
from linestream.support.loop import AsyncLoop

logger = logging.getLogger(__name__)


class ReaderLoop(AsyncLoop):
    """
    Reads records from one address on a background thread.

    The consumer takes records from `records` on its own thread. ReaderStateChanged events are fired
    on the background thread to the handlers in `events`.

    :param transport: a callable (cancel, address) returning a byte-stream source.
    :param address: the address to read from.
    :param records: the queue records are delivered to. A new RecordQueue is created when not given.
    :param cancel: the token that stops the reader. Several loops may share one token, or use
        child tokens of a common parent.
    :param retry_strategy: the interval between reconnection attempts.
    :param delay: replaces waiting on the token between attempts.
    :param decoder_factory: creates the record decoder for each connection cycle.
    """

    def __init__(self, transport, address, records: RecordQueue=None, cancel: CancelToken=None,
                 retry_strategy=None, delay=None, decoder_factory=LineDecoder, log=logger):
        super().__init__(cancel=cancel, log=log)
        self.transport = transport
        self.address = address
        self.records = records if records is not None else RecordQueue()
        self.retry_strategy = retry_strategy
        self.delay = delay
        self.decoder_factory = decoder_factory
        self.events = EventSource()

    def thread_name(self):
        return 'reader %s' % (self.address,)

    def loop(self):
        """
        reads until canceled. read_until_canceled only returns once the token fires, so this runs once
        unless an unexpected error escapes, in which case the thread waits out a retry period and
        starts again.
        """
        try:
            read_until_canceled(self.cancel, self.transport, self.address, self.records,
                                delay=self.delay, retry_strategy=self.retry_strategy,
                                events=self.events, decoder_factory=self.decoder_factory,
                                log=self.logger)
        finally:
            self.cancel.wait(DEFAULT_RETRY_PERIOD)

    def __iter__(self):
        """ yields records until the reader is stopped. """
        records = self.records
        cancel = self.cancel
        while not cancel.canceled:
            try:
                yield records.get(cancel=cancel)
            except CancellationError:
                return
