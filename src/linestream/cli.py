"""
Command line front end: reads records from one address and writes them to standard output, one per line.
"""
import argparse
import functools
import logging
import sys

from linestream.config.config import ReaderSettings
from linestream.connector.processconn import ProcessTransport
from linestream.connector.socketconn import SocketTransport
from linestream.protocol.lines import LineDecoder
from linestream.reader_loop import ReaderLoop

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog='linestream',
                                description='Read newline-delimited records from an address, reconnecting as needed.')
    p.add_argument('address', help="'host:port' of a TCP server, or a command line with --process")
    p.add_argument('--process', action='store_true', help='run the address as a command and read its output')
    p.add_argument('--config', help='configuration file overriding the packaged defaults')
    p.add_argument('--retry-period', type=float, help='seconds to wait before reconnecting')
    p.add_argument('--max-retry-period', type=float, help='ceiling for the backoff between reconnections')
    p.add_argument('--connect-timeout', type=float, help='seconds to wait for a connection')
    p.add_argument('-v', '--verbose', action='store_true', help='log at debug level')
    return p


def load_settings(args: argparse.Namespace) -> ReaderSettings:
    settings = ReaderSettings.load(args.config)
    for name in ('retry_period', 'max_retry_period', 'connect_timeout'):
        value = getattr(args, name)
        if value is not None:
            setattr(settings, name, value)
    if args.verbose:
        settings.log_level = 'DEBUG'
    return settings


def build_reader(args: argparse.Namespace, settings: ReaderSettings) -> ReaderLoop:
    transport = ProcessTransport() if args.process else SocketTransport(settings.connect_timeout)
    return ReaderLoop(transport, args.address,
                      retry_strategy=settings.retry_strategy(),
                      decoder_factory=functools.partial(LineDecoder, settings.max_record_size))


def main(argv=None, out=None) -> int:
    args = build_parser().parse_args(argv)
    settings = load_settings(args)
    logging.basicConfig(level=getattr(logging, settings.log_level), stream=sys.stderr,
                        format='%(asctime)s %(levelname)s %(name)s: %(message)s')
    logger.debug("settings %s" % settings)
    out = out or sys.stdout.buffer
    reader = build_reader(args, settings)
    reader.start()
    try:
        for record in reader:
            out.write(record + b'\n')
            out.flush()
    except KeyboardInterrupt:
        logger.info("interrupted")
    finally:
        reader.stop()
    return 0
