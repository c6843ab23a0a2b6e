"""
Block scanner entry point.

Connects to the configured ledger API, seeds (or resumes) the shard
frontier and appends a record for every newly finalized block until
interrupted.

Usage:
    python -m blockscan --db-backend sqlite --db-path data/blocks.db
    python -m blockscan --api-url https://toncenter.com/api/v2 --max-iterations 10
"""

import argparse
import logging
import signal
import sys

from .client import TonHttpSource
from .config import load_config
from .errors import ScanError
from .indexer import ScanCoordinator
from .storage import open_sink

logger = logging.getLogger("blockscan")


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description='Shard frontier block scanner')
    parser.add_argument('--env-file', default=None, help='Path to .env file')
    parser.add_argument('--api-url', action='append', dest='api_urls',
                        help='Ledger API endpoint (repeat for failover replicas)')
    parser.add_argument('--db-backend', choices=['sqlite', 'postgres'], help='Persistence backend')
    parser.add_argument('--db-path', help='SQLite database path')
    parser.add_argument('--checkpoint', help='Frontier checkpoint path')
    parser.add_argument('--no-checkpoint', action='store_true', help='Do not read or write a checkpoint')
    parser.add_argument('--no-master-records', action='store_true',
                        help='Only record shard blocks, not master blocks')
    parser.add_argument('--max-iterations', type=int, default=None,
                        help='Stop after N master blocks')
    parser.add_argument('--log-level', default='INFO', help='Logging level')
    parser.add_argument('--log-file', default=None, help='Also log to this file')
    return parser.parse_args(argv)


def configure_logging(level: str, log_file: str = None):
    handlers = [logging.StreamHandler()]
    if log_file:
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=handlers
    )


def main(argv=None) -> int:
    args = parse_args(argv)
    configure_logging(args.log_level, args.log_file)

    try:
        config = load_config(args.env_file)
    except ScanError as e:
        logger.error(f"Configuration error: {e}")
        return 1

    if args.api_urls:
        config.source.api_urls = args.api_urls
    if args.db_backend:
        config.storage.backend = args.db_backend
    if args.db_path:
        config.storage.db_path = args.db_path
    if args.checkpoint:
        config.scan.checkpoint_path = args.checkpoint
    if args.no_checkpoint:
        config.scan.checkpoint_path = None
    if args.no_master_records:
        config.scan.record_master_blocks = False
    if args.max_iterations is not None:
        config.scan.max_iterations = args.max_iterations

    source = TonHttpSource(config.source)
    try:
        sink = open_sink(config.storage)
    except ScanError as e:
        logger.error(f"Storage error: {e}")
        source.close()
        return 1

    coordinator = None
    try:
        coordinator = ScanCoordinator(source, sink, config.scan)

        def handle_signal(signum, frame):
            logger.info(f"Signal {signum} received, stopping...")
            coordinator.stop()

        signal.signal(signal.SIGINT, handle_signal)
        signal.signal(signal.SIGTERM, handle_signal)

        logger.info(f"Scanning via {source.endpoint} into {config.storage.backend}")
        coordinator.run()
    except ScanError as e:
        logger.error(f"Fatal: {e}")
        return 1
    finally:
        sink.close()
        source.close()
        if coordinator is not None:
            logger.info(f"Final stats: {coordinator.get_stats()}")

    return 0


if __name__ == '__main__':
    sys.exit(main())
