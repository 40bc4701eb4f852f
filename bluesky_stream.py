"""Stream Bluesky posts matching a search term to a CSV or JSON Lines file."""

import argparse
import sys
import time

from bsky_stream.config import ConfigurationError, StreamConfig
from bsky_stream.errors import AuthError
from bsky_stream.logger import setup_logger
from bsky_stream.offsets import DEFAULT_STATE_FILE, OffsetStore
from bsky_stream.sinks import CSVSink, JSONLinesSink, RecordSink
from bsky_stream.source import BlueskySourceTask

logger = setup_logger()

# seconds between collecting buffered posts from the fetcher
DEFAULT_DRAIN_INTERVAL = 1.0


def get_sink(sink_type: str, output: str | None) -> RecordSink:
    """Create a record sink.

    Args:
        sink_type: Sink type ("csv" or "jsonl")
        output: Output filename. For jsonl, None or "-" writes to stdout.

    Returns:
        RecordSink instance
    """
    if sink_type == "jsonl":
        return JSONLinesSink(output or "-")
    return CSVSink(output or "bluesky_posts.csv")


def run(
    task: BlueskySourceTask,
    sink: RecordSink,
    offset_store: OffsetStore,
    drain_interval: float = DEFAULT_DRAIN_INTERVAL,
    max_polls: int | None = None,
) -> int:
    """Collect records from a started task until interrupted.

    Args:
        task: Started source task
        sink: Where records are written
        offset_store: Store that offsets are committed to after each write
        drain_interval: Seconds to sleep between polls
        max_polls: Stop after this many polls (None runs forever)

    Returns:
        Total number of records written
    """
    written = 0
    polls = 0
    while max_polls is None or polls < max_polls:
        polls += 1
        records = task.poll()
        if records:
            written += sink.write(records)
            offset_store.commit(records)
            logger.info(f"Wrote {len(records)} records (latest {records[-1].created_at})")
        time.sleep(drain_interval)
    return written


def main(argv: list[str] | None = None) -> int:
    """Run the Bluesky stream."""
    parser = argparse.ArgumentParser(description="Stream Bluesky search results")
    parser.add_argument(
        "-q", "--query",
        help="Search term (default: BLUESKY_SEARCH_TERM env var or 'bluesky')",
    )
    parser.add_argument(
        "-o", "--output",
        help="Output filename (default: bluesky_posts.csv, or stdout for jsonl)",
    )
    parser.add_argument(
        "--sink",
        choices=["csv", "jsonl"],
        default="csv",
        help="Output format (default: csv)",
    )
    parser.add_argument(
        "--state-file",
        default=DEFAULT_STATE_FILE,
        help=f"Offset state file (default: {DEFAULT_STATE_FILE})",
    )
    parser.add_argument(
        "--from-start",
        action="store_true",
        help="Ignore the stored offset and fetch everything the search returns",
    )
    parser.add_argument(
        "--poll-ms",
        type=int,
        help="Milliseconds between searches (minimum 30000)",
    )
    parser.add_argument(
        "--drain-interval",
        type=float,
        default=DEFAULT_DRAIN_INTERVAL,
        help=f"Seconds between collecting fetched posts (default: {DEFAULT_DRAIN_INTERVAL})",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log level (default: INFO)",
    )
    args = parser.parse_args(argv)

    if args.sink == "jsonl" and args.output in (None, "-"):
        # stdout carries the records, so log lines go to stderr
        setup_logger(stream=sys.stderr)
    logger.setLevel(args.log_level)

    try:
        config = StreamConfig.from_env(
            search_term=args.query, poll_interval_ms=args.poll_ms
        )
    except ConfigurationError as e:
        logger.error(f"Invalid configuration: {e}")
        return 2

    offset_store = OffsetStore(args.state_file)
    if args.from_start:
        logger.info("Full sync (--from-start specified)")
        offset_store.clear()

    sink = get_sink(args.sink, args.output)
    task = BlueskySourceTask()

    logger.info("Connecting to Bluesky...")
    try:
        task.start(config, offset_store)
    except AuthError as e:
        logger.error(f"Failed to connect: {e}")
        return 1

    try:
        run(task, sink, offset_store, drain_interval=args.drain_interval)
    except KeyboardInterrupt:
        logger.info("Interrupted")
    except AuthError as e:
        logger.error(f"Bluesky session lost: {e}")
        return 1
    finally:
        task.stop()
        sink.close()

    return 0


if __name__ == "__main__":
    sys.exit(main())
