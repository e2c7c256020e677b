"""
A synchronous handoff between a reader and the consumer of its records.
"""
import threading
from queue import Empty

from linestream.support.cancel import CancelToken


class _Offer:
    """ a record waiting to be taken, and whether it has been. """
    __slots__ = ('record', 'taken')

    def __init__(self, record):
        self.record = record
        self.taken = False


class RecordQueue:
    """
    An unbuffered, single-slot queue. put() blocks until a consumer has taken the record with get(),
    so at most one record is in flight and a slow consumer stalls the producer.

    Both sides can race a CancelToken. A record whose put() is abandoned because the token fired is
    withdrawn and never seen by the consumer.
    """

    def __init__(self):
        self._cond = threading.Condition()
        self._offer = None

    def put(self, record, cancel: CancelToken=None):
        """
        Offers a record and waits for a consumer to take it.
        :param record: the record to deliver.
        :param cancel: the token to race. When it fires before the record is taken,
            the record is withdrawn and the token's error raised.
        """
        with _Wakeup(self._cond, cancel):
            cond = self._cond
            cond.wait_for(lambda: self._offer is None or _fired(cancel))
            if _fired(cancel):
                raise cancel.error
            offer = self._offer = _Offer(record)
            cond.notify_all()
            cond.wait_for(lambda: offer.taken or _fired(cancel))
            if not offer.taken:
                self._offer = None
                cond.notify_all()
                raise cancel.error

    def get(self, timeout=None, cancel: CancelToken=None):
        """
        Takes the next record, releasing the producer that offered it.
        :param timeout: seconds to wait for a record. queue.Empty is raised if none arrives in time.
        :param cancel: the token to race. Raises the token's error if it fires first.
        """
        with _Wakeup(self._cond, cancel):
            cond = self._cond
            cond.wait_for(lambda: self._pending() or _fired(cancel), timeout)
            if not self._pending():
                if _fired(cancel):
                    raise cancel.error
                raise Empty
            offer = self._offer
            offer.taken = True
            self._offer = None
            cond.notify_all()
            return offer.record

    def __iter__(self):
        """ yields records as they are offered. Runs until the consumer stops iterating. """
        while True:
            yield self.get()

    def _pending(self):
        return self._offer is not None and not self._offer.taken


def _fired(cancel):
    return cancel is not None and cancel.canceled


class _Wakeup:
    """ notifies the condition's waiters when the token fires, for the duration of a with block. """

    def __init__(self, cond, cancel):
        self.cond = cond
        self.cancel = cancel

    def __enter__(self):
        if self.cancel is not None:
            self.cancel.add_listener(self._notify)
        self.cond.acquire()
        return self

    def __exit__(self, *exc):
        self.cond.release()
        if self.cancel is not None:
            self.cancel.remove_listener(self._notify)

    def _notify(self, error):
        with self.cond:
            self.cond.notify_all()
