"""
Reads newline-delimited records from an address, reconnecting whenever the stream ends or fails.

read_once() owns a single connection cycle: connect, then decode and deliver records until the
stream fails or the cancel token fires. It never retries.

read_until_canceled() repeats cycles, waiting between them, until the token fires. Any failure other
than cancellation is treated as transient and retried without limit.
"""
import logging
from enum import Enum

from linestream.connector.base import ConnectFailure, RecordTooLong, StreamEnded
from linestream.protocol.lines import LineDecoder
from linestream.record_queue import RecordQueue
from linestream.support.cancel import CancellationError, CancelToken
from linestream.support.retry_strategy import FixedRetryStrategy, RetryStrategy

logger = logging.getLogger(__name__)

# bytes requested from the source per read
CHUNK_SIZE = 4096

# seconds between reconnection attempts when no retry strategy is given
DEFAULT_RETRY_PERIOD = 1.0


class ReaderState(Enum):
    CONNECTING_AND_READING = 'connecting_and_reading'
    WAITING_TO_RETRY = 'waiting_to_retry'
    TERMINATED = 'terminated'


class ReaderStateChanged:
    """ fired by the reconnecting loop each time it changes state. """

    def __init__(self, address, state: ReaderState, failure: Exception=None):
        self.address = address
        self.state = state
        self.failure = failure

    def __repr__(self):
        return 'ReaderStateChanged(%r, %s, %r)' % (self.address, self.state.name, self.failure)


class CycleResult:
    """ the outcome of one connection cycle: the failure that ended it, and how many records it delivered. """

    def __init__(self, failure: Exception, delivered=0):
        self.failure = failure
        self.delivered = delivered


def read_once(cancel: CancelToken, transport, address, records: RecordQueue,
              decoder_factory=LineDecoder) -> Exception:
    """
    Runs a single connection cycle.

    :param cancel: the token that ends the cycle.
    :param transport: a callable (cancel, address) returning a byte-stream source.
    :param address: passed to the transport unchanged.
    :param records: the queue that receives each decoded record.
    :param decoder_factory: creates the decoder for the cycle.
    :return: the failure that ended the cycle. This is never None - an exhausted stream is StreamEnded.
    """
    return _read_cycle(cancel, transport, address, records, decoder_factory).failure


def _read_cycle(cancel, transport, address, records, decoder_factory) -> CycleResult:
    if cancel.canceled:
        return CycleResult(cancel.error)
    try:
        source = transport(cancel, address)
    except (CancellationError, ConnectFailure) as e:
        return CycleResult(e)
    except Exception as e:
        failure = ConnectFailure("unable to connect to %s: %s" % (address, e))
        failure.__cause__ = e
        return CycleResult(failure)

    delivered = 0
    decoder = decoder_factory()
    try:
        while True:
            if cancel.canceled:
                return CycleResult(cancel.error, delivered)
            failure = None
            try:
                data = source.read(CHUNK_SIZE)
                batch = decoder.feed(data) if data else decoder.finish()
            except RecordTooLong as e:
                batch, failure = e.records, e
            except Exception as e:
                return CycleResult(e, delivered)
            for record in batch:
                try:
                    records.put(record, cancel)
                except CancellationError as e:
                    return CycleResult(e, delivered)
                delivered += 1
            if failure is not None:
                return CycleResult(failure, delivered)
            if not data:
                return CycleResult(StreamEnded("end of stream from %s" % (address,)), delivered)
    finally:
        _close_source(source, address)


def read_until_canceled(cancel: CancelToken, transport, address, records: RecordQueue,
                        delay=None, retry_strategy: RetryStrategy=None, events=None,
                        decoder_factory=LineDecoder, log=logger):
    """
    Reads records from the address until the cancel token fires, reconnecting after each failure.

    :param delay: called with the retry interval between cycles. Defaults to waiting on the token,
        which sleeps but wakes as soon as the token fires. Tests pass a no-op.
    :param retry_strategy: gives the interval to wait after each failed cycle.
        Defaults to a fixed period of DEFAULT_RETRY_PERIOD seconds.
    :param events: an optional EventSource that receives ReaderStateChanged events.
    """
    delay = delay or cancel.wait
    retry_strategy = retry_strategy or FixedRetryStrategy(DEFAULT_RETRY_PERIOD)
    failures = 0
    while True:
        _fire(events, address, ReaderState.CONNECTING_AND_READING)
        result = _read_cycle(cancel, transport, address, records, decoder_factory)
        failure = result.failure
        if isinstance(failure, CancellationError) or cancel.canceled:
            log.info("stopped reading from %s: %s" % (address, cancel.error or failure))
            _fire(events, address, ReaderState.TERMINATED, failure)
            return
        failures = 1 if result.delivered else failures + 1
        interval = retry_strategy(result.delivered)
        _log_failure(log, address, failure, failures, interval)
        _fire(events, address, ReaderState.WAITING_TO_RETRY, failure)
        delay(interval)


def _log_failure(log, address, failure, failures, interval):
    """ the first failure in a run is logged at info level, repeats at debug. """
    level = logging.INFO if failures <= 1 else logging.DEBUG
    if log.isEnabledFor(level):
        log.log(level, "reading from %s failed: %s, retrying in %.3gs" % (address, failure, interval))
        if log.isEnabledFor(logging.DEBUG) and not isinstance(failure, StreamEnded):
            log.debug("failure detail", exc_info=failure)


def _fire(events, address, state, failure=None):
    if events is not None:
        events.fire(ReaderStateChanged(address, state, failure))


def _close_source(source, address):
    close = getattr(source, 'close', None)
    if close is None:
        return
    try:
        close()
    except Exception as e:
        logger.debug("error closing source for %s: %s" % (address, e))
