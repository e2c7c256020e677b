"""
Newline framing for byte streams.
"""
from linestream.connector.base import RecordTooLong

# lines longer than this, not counting the newline, are rejected
MAX_RECORD_SIZE = 64 * 1024


def trim(line: bytes) -> bytes:
    """
    Removes surrounding whitespace from a line.
    >>> trim(b"  hello world\\r\\n")
    b'hello world'
    """
    return line.strip()


class LineDecoder:
    """
    Accumulates chunks of bytes and splits them into newline-terminated records.

    Each record is trimmed of surrounding whitespace. Bytes after the last newline are kept until
    more data arrives, or until finish() is called at the end of the stream.

    A line longer than max_record_size bytes, not counting its newline, is rejected however the
    stream is chunked. The line is dropped, the decoder skips ahead to the next newline and
    RecordTooLong is raised carrying the valid records decoded by the same call. The decoder
    remains usable afterwards.

    :param max_record_size: the longest line that will be accepted.
    """

    def __init__(self, max_record_size=MAX_RECORD_SIZE):
        self.max_record_size = max_record_size
        self._buffer = bytearray()
        self._discarding = False

    def feed(self, data: bytes) -> list:
        """
        Adds data to the buffer and returns the complete records it contained, in stream order.
        """
        if self._discarding:
            end = data.find(b'\n')
            if end < 0:
                return []
            self._discarding = False
            data = data[end + 1:]
        buffer = self._buffer
        start = len(buffer)
        buffer += data
        records = []
        overlong = False
        begin = 0
        end = buffer.find(b'\n', start)
        while end >= 0:
            if end - begin > self.max_record_size:
                overlong = True
            else:
                records.append(trim(bytes(buffer[begin:end])))
            begin = end + 1
            end = buffer.find(b'\n', begin)
        del buffer[:begin]
        if len(buffer) > self.max_record_size:
            overlong = True
            buffer.clear()
            self._discarding = True
        if overlong:
            raise RecordTooLong("record exceeds %d bytes" % self.max_record_size, records=records)
        return records

    def finish(self) -> list:
        """
        Flushes the final unterminated line at the end of the stream.
        :return: a list holding the trimmed line, or an empty list if nothing was buffered.
            A line of only whitespace is delivered as an empty record, as it is mid-stream.
        """
        discarding = self._discarding
        self._discarding = False
        if discarding or not self._buffer:
            return []
        line = trim(bytes(self._buffer))
        self._buffer.clear()
        return [line]

    @property
    def buffered(self) -> int:
        """ the number of bytes held back waiting for a newline. """
        return len(self._buffer)
