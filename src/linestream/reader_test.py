import logging
import threading
import unittest
from io import BytesIO
from queue import Empty
from unittest.mock import Mock

import timeout_decorator
from hamcrest import assert_that, calling, contains_exactly, greater_than_or_equal_to, instance_of, is_, raises

from linestream.connector.base import ConnectFailure, ReadFailure, RecordTooLong, StreamEnded
from linestream.protocol.lines import LineDecoder
from linestream.reader import ReaderState, read_once, read_until_canceled
from linestream.record_queue import RecordQueue
from linestream.support.cancel import Canceled, CancelToken
from linestream.support.cancel_test import debug_timeout
from linestream.support.events import EventSource
from linestream.support.retry_strategy import BackoffRetryStrategy, FixedRetryStrategy


class RepeatingSource:
    """
    Returns the record, newline terminated, on each read until count reads have been made,
    then fails. A read after the token fires raises the token's error.
    """

    def __init__(self, cancel, record, count):
        self.cancel = cancel
        self.record = record
        self.count = count
        self.closed = False

    def read(self, size):
        self.count -= 1
        if self.count < 0:
            raise ReadFailure("count exceeded")
        self.cancel.raise_if_canceled()
        return b'  ' + self.record + b'\r\n'

    def close(self):
        self.closed = True


class BlockingSource:
    """ returns one record, then blocks until the token fires. """

    def __init__(self, cancel, record):
        self.cancel = cancel
        self.record = record
        self.reads = 0

    def read(self, size):
        self.reads += 1
        if self.reads == 1:
            return self.record + b'\n'
        self.cancel.wait()
        raise self.cancel.error


def repeating_transport(count):
    def transport(cancel, address):
        return RepeatingSource(cancel, address.encode('ascii'), count)
    return Mock(side_effect=transport)


def consume(records, count, cancel=None, received=None):
    """ takes count records on a background thread, then fires the token if given. """
    received = received if received is not None else []

    def take():
        try:
            for _ in range(count):
                received.append(records.get(timeout=debug_timeout(1)))
        finally:
            if cancel is not None:
                cancel.cancel()
    t = threading.Thread(target=take, daemon=True)
    t.start()
    return t, received


class ReadOnceTest(unittest.TestCase):

    def setUp(self):
        self.cancel = CancelToken()
        self.records = RecordQueue()
        self.address = 'my.address.co'

    @timeout_decorator.timeout(debug_timeout(2))
    def test_cancel_after_taking_records_returns_cancellation(self):
        n = 3
        transport = repeating_transport(10 * n)
        consumer, received = consume(self.records, n, self.cancel)
        result = read_once(self.cancel, transport, self.address, self.records)
        consumer.join()
        assert_that(result, is_(instance_of(Canceled)))
        assert_that(received, is_([b'my.address.co'] * n))
        transport.assert_called_once_with(self.cancel, self.address)

    @timeout_decorator.timeout(debug_timeout(2))
    def test_cancel_during_blocked_read_is_not_a_read_failure(self):
        transport = Mock(side_effect=lambda cancel, address: BlockingSource(cancel, b'first'))
        consumer, received = consume(self.records, 1, self.cancel)
        result = read_once(self.cancel, transport, self.address, self.records)
        consumer.join()
        assert_that(result, is_(instance_of(Canceled)))
        assert_that(received, is_([b'first']))

    @timeout_decorator.timeout(debug_timeout(2))
    def test_cancel_during_delivery_drops_the_pending_record(self):
        transport = repeating_transport(100)
        threading.Timer(0.05, self.cancel.cancel).start()
        result = read_once(self.cancel, transport, self.address, self.records)
        assert_that(result, is_(self.cancel.error))
        assert_that(transport.call_count, is_(1))
        assert_that(calling(self.records.get).with_args(timeout=0.01), raises(Empty))

    def test_already_canceled_does_not_connect(self):
        transport = Mock()
        self.cancel.cancel()
        assert_that(read_once(self.cancel, transport, self.address, self.records), is_(instance_of(Canceled)))
        transport.assert_not_called()

    def test_connect_error_is_returned_as_connect_failure(self):
        error = ConnectionRefusedError('refused')
        transport = Mock(side_effect=error)
        result = read_once(self.cancel, transport, self.address, self.records)
        assert_that(result, is_(instance_of(ConnectFailure)))
        assert_that(result.__cause__, is_(error))

    def test_connect_failure_is_returned_unchanged(self):
        error = ConnectFailure('no route')
        transport = Mock(side_effect=error)
        assert_that(read_once(self.cancel, transport, self.address, self.records), is_(error))

    def test_transport_cancellation_is_returned(self):
        error = Canceled()
        transport = Mock(side_effect=error)
        assert_that(read_once(self.cancel, transport, self.address, self.records), is_(error))

    def test_read_failure_is_returned_verbatim(self):
        error = ReadFailure('connection reset')
        source = Mock()
        source.read.side_effect = error
        result = read_once(self.cancel, Mock(return_value=source), self.address, self.records)
        assert_that(result, is_(error))
        source.close.assert_called_once_with()

    @timeout_decorator.timeout(debug_timeout(2))
    def test_exhaustion_delivers_last_line_and_ends_the_stream(self):
        consumer, received = consume(self.records, 3)
        source = BytesIO(b' one \n\ttwo\nthree')
        result = read_once(self.cancel, Mock(return_value=source), self.address, self.records)
        consumer.join()
        assert_that(result, is_(instance_of(StreamEnded)))
        assert_that(received, contains_exactly(b'one', b'two', b'three'))
        assert_that(source.closed, is_(True))

    @timeout_decorator.timeout(debug_timeout(2))
    def test_records_split_across_reads(self):
        source = Mock()
        source.read.side_effect = [b'al', b'pha\nbe', b'ta\n', b'']
        consumer, received = consume(self.records, 2)
        result = read_once(self.cancel, Mock(return_value=source), self.address, self.records)
        consumer.join()
        assert_that(result, is_(instance_of(StreamEnded)))
        assert_that(received, is_([b'alpha', b'beta']))

    def test_decoder_failure_is_returned(self):
        source = BytesIO(b'x' * 100)
        result = read_once(self.cancel, Mock(return_value=source), self.address, self.records,
                           decoder_factory=lambda: LineDecoder(10))
        assert_that(result, is_(instance_of(RecordTooLong)))

    @timeout_decorator.timeout(debug_timeout(2))
    def test_records_around_an_overlong_line_are_delivered(self):
        consumer, received = consume(self.records, 2)
        source = BytesIO(b'a\n' + b'x' * 20 + b'\nok\nmore')
        result = read_once(self.cancel, Mock(return_value=source), self.address, self.records,
                           decoder_factory=lambda: LineDecoder(10))
        consumer.join()
        assert_that(result, is_(instance_of(RecordTooLong)))
        assert_that(received, is_([b'a', b'ok']))

    def test_close_error_does_not_replace_the_failure(self):
        source = Mock()
        source.read.return_value = b''
        source.close.side_effect = RuntimeError('close failed')
        result = read_once(self.cancel, Mock(return_value=source), self.address, self.records)
        assert_that(result, is_(instance_of(StreamEnded)))
        source.close.assert_called_once_with()

    def test_close_error_does_not_end_the_loop(self):
        source = Mock()
        source.read.return_value = b''
        source.close.side_effect = RuntimeError('close failed')
        transport = Mock(return_value=source)
        delay = Mock(side_effect=lambda interval: self.cancel.cancel() if delay.call_count == 2 else None)
        read_until_canceled(self.cancel, transport, self.address, self.records, delay=delay)
        assert_that(transport.call_count, is_(2))

    def test_source_without_close(self):
        source = Mock(spec=['read'])
        source.read.return_value = b''
        result = read_once(self.cancel, Mock(return_value=source), self.address, self.records)
        assert_that(result, is_(instance_of(StreamEnded)))


class ReadUntilCanceledTest(unittest.TestCase):

    def setUp(self):
        self.cancel = CancelToken()
        self.records = RecordQueue()
        self.address = 'some.addr.local'
        self.no_sleep = Mock()

    def run_in_background(self, transport, **kwargs):
        t = threading.Thread(target=read_until_canceled,
                             args=(self.cancel, transport, self.address, self.records),
                             kwargs=dict(delay=self.no_sleep, **kwargs), daemon=True)
        t.start()
        return t

    @timeout_decorator.timeout(debug_timeout(2))
    def test_reconnects_after_each_failure(self):
        transport = repeating_transport(1)
        loop = self.run_in_background(transport)
        consumer, received = consume(self.records, 3, self.cancel)
        consumer.join()
        loop.join(debug_timeout(0.5))
        assert_that(loop.is_alive(), is_(False))
        assert_that(received, is_([b'some.addr.local'] * 3))
        assert_that(transport.call_count, is_(greater_than_or_equal_to(3)))

    @timeout_decorator.timeout(debug_timeout(2))
    def test_records_flow_across_reconnects(self):
        k, m = 2, 7
        transport = repeating_transport(k)
        loop = self.run_in_background(transport)
        consumer, received = consume(self.records, m, self.cancel)
        consumer.join()
        loop.join(debug_timeout(0.5))
        assert_that(len(received), is_(m))
        assert_that(transport.call_count, is_(greater_than_or_equal_to(4)))

    def test_delay_is_called_once_between_attempts(self):
        transport = Mock(side_effect=ConnectFailure('down'))

        def delay(interval):
            if self.no_sleep.call_count == 3:
                self.cancel.cancel()
        self.no_sleep.side_effect = delay
        read_until_canceled(self.cancel, transport, self.address, self.records, delay=self.no_sleep,
                            retry_strategy=BackoffRetryStrategy(1, 10))
        assert_that(transport.call_count, is_(3))
        assert_that([c[0][0] for c in self.no_sleep.call_args_list], is_([1, 2, 4]))

    def test_canceled_before_start(self):
        transport = Mock()
        self.cancel.cancel()
        read_until_canceled(self.cancel, transport, self.address, self.records, delay=self.no_sleep)
        transport.assert_not_called()
        self.no_sleep.assert_not_called()

    def test_cancellation_from_the_cycle_ends_without_delay(self):
        def transport(cancel, address):
            cancel.cancel()
            raise cancel.error
        read_until_canceled(self.cancel, transport, self.address, self.records, delay=self.no_sleep)
        self.no_sleep.assert_not_called()

    @timeout_decorator.timeout(debug_timeout(2))
    def test_default_delay_wakes_on_cancel(self):
        transport = Mock(side_effect=ConnectFailure('down'))
        threading.Timer(0.05, self.cancel.cancel).start()
        read_until_canceled(self.cancel, transport, self.address, self.records,
                            retry_strategy=FixedRetryStrategy(60))
        assert_that(transport.call_count, is_(1))

    @timeout_decorator.timeout(debug_timeout(2))
    def test_canceling_twice_is_the_same_as_once(self):
        transport = repeating_transport(1)
        loop = self.run_in_background(transport)
        consume(self.records, 1)[0].join()
        self.cancel.cancel()
        self.cancel.cancel()
        loop.join(debug_timeout(0.5))
        assert_that(loop.is_alive(), is_(False))
        assert_that(self.cancel.error, is_(instance_of(Canceled)))

    def test_state_changes_are_fired(self):
        events = EventSource()
        listener = Mock()
        events += listener
        failure = ConnectFailure('down')
        transport = Mock(side_effect=failure)
        self.no_sleep.side_effect = lambda interval: self.cancel.cancel()
        read_until_canceled(self.cancel, transport, self.address, self.records, delay=self.no_sleep,
                            events=events)
        states = [(c[0][0].state, c[0][0].failure) for c in listener.call_args_list]
        assert_that(states, is_([(ReaderState.CONNECTING_AND_READING, None),
                                 (ReaderState.WAITING_TO_RETRY, failure),
                                 (ReaderState.CONNECTING_AND_READING, None),
                                 (ReaderState.TERMINATED, self.cancel.error)]))

    def test_repeated_failures_are_logged_at_debug(self):
        log = Mock()
        log.isEnabledFor.return_value = True
        transport = Mock(side_effect=ConnectFailure('down'))

        def delay(interval):
            if self.no_sleep.call_count == 3:
                self.cancel.cancel()
        self.no_sleep.side_effect = delay
        read_until_canceled(self.cancel, transport, self.address, self.records, delay=self.no_sleep, log=log)
        levels = [c[0][0] for c in log.log.call_args_list]
        assert_that(levels, is_([logging.INFO, logging.DEBUG, logging.DEBUG]))
        log.info.assert_called_once()


if __name__ == '__main__':  # pragma no cover
    unittest.main()
