"""
Resilient line-oriented stream reading.

- Transport: a callable (cancel_token, address) -> byte-stream source. SocketTransport connects to
  a 'host:port' TCP server, ProcessTransport runs a command and reads its standard output.
- Conduit: the byte-stream source for one connection cycle. Its blocking read is interrupted when
  the cancel token fires.
- LineDecoder: splits the bytes into newline-terminated records, trimmed of whitespace.
- RecordQueue: an unbuffered handoff to the consumer. Each put() waits for a get(), so a slow
  consumer stalls the reader rather than records piling up.
- read_once: one connection cycle - connect, decode and deliver until the stream fails or the
  token fires. Never retries.
- read_until_canceled: repeats cycles with a delay between them until the token fires. Every
  failure other than cancellation is retried, without limit.
- ReaderLoop: runs read_until_canceled on a daemon thread.


## Threading

Each reader runs on one thread. It can block in three places: reading from the source, waiting
for the consumer to take a record, and waiting between connection attempts. All three wake when
the cancel token fires:

- the conduits register a listener on the token that shuts down the socket or terminates the
  process, so the read returns and raises the token's error.
- RecordQueue waits on a condition that a token listener notifies.
- the default delay is CancelToken.wait(), which returns as soon as the token fires.

A record that has been decoded but not taken when the token fires is dropped. Records are
never delivered twice across a reconnection.
"""
