class RetryStrategy:
    """
    Determines how long to wait before the next connection attempt.
    The strategy is called once per failed cycle with the number of records that cycle delivered.
    """

    def __call__(self, delivered=0):
        return 0

    def __eq__(self, other):
        return type(other) is type(self) and other.__dict__ == self.__dict__

    def __ne__(self, other):
        return not self.__eq__(other)

    def __repr__(self):
        return '%s(%s)' % (type(self).__name__, ', '.join('%s=%r' % kv for kv in sorted(self.__dict__.items())))


class FixedRetryStrategy(RetryStrategy):

    def __init__(self, retry_period):
        """
        :param retry_period: The retry period in seconds.
        """
        self.retry_period = retry_period

    def __call__(self, delivered=0):
        return self.retry_period


class BackoffRetryStrategy(RetryStrategy):
    """
    Multiplies the delay after each failed cycle, up to a ceiling. A cycle that delivered records
    counts as a working connection, so the delay starts again from the initial period.
    There is no limit on the number of retries.
    """

    def __init__(self, initial_period, max_period, factor=2.0):
        self.initial_period = initial_period
        self.max_period = max_period
        self.factor = factor
        self.next_period = initial_period

    def __call__(self, delivered=0):
        if delivered:
            self.next_period = self.initial_period
        result = self.next_period
        self.next_period = min(self.max_period, self.next_period * self.factor)
        return result
