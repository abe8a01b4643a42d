#!/usr/bin/env python
"""
Webhook Recovery Worker

Background process that reprocesses webhook events left pending past the
grace period (for example after a crash between recording and processing).
Failed events are not retried here; that is an explicit operator action.

Run with:
    python worker.py

Single pass (cron style):
    python worker.py --once
"""

import argparse
import os
import sys
import time
import logging
import signal

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from channel_sync.config import settings
from channel_sync.database import SessionLocal
from channel_sync.services.webhook_processor import process_stale_pending
from channel_sync.utils.logging_config import setup_logging

logger = logging.getLogger("worker")

RUNNING = True


def signal_handler(signum, frame):
    """Handle shutdown signals gracefully"""
    global RUNNING
    logger.info("Received shutdown signal, finishing current batch...")
    RUNNING = False


def run_cycle(batch_size: int = None) -> int:
    """One recovery pass. Returns the number of events processed."""
    try:
        return process_stale_pending(SessionLocal, limit=batch_size or settings.worker_batch_size)
    except Exception as e:
        logger.error(f"Error in webhook recovery: {e}", exc_info=True)
        return 0


def run_worker(poll_interval: int, batch_size: int):
    """Main worker loop"""
    logger.info(
        f"Starting webhook recovery worker "
        f"(interval: {poll_interval}s, batch: {batch_size}, "
        f"grace: {settings.webhook_pending_grace_seconds}s)"
    )

    cycle = 0

    while RUNNING:
        cycle += 1
        start_time = time.time()

        processed = run_cycle(batch_size)

        # Log only if something happened
        if processed:
            duration = time.time() - start_time
            logger.info(f"Cycle {cycle}: reprocessed {processed} events in {duration:.2f}s")

        # Sleep in short steps so a signal stops the worker promptly
        slept = 0.0
        while RUNNING and slept < poll_interval:
            time.sleep(min(1.0, poll_interval - slept))
            slept += 1.0

    logger.info("Worker shutdown complete")


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Reprocess stale pending webhook events")
    parser.add_argument("--once", action="store_true", help="run a single pass and exit")
    parser.add_argument("--interval", type=int, default=settings.worker_poll_interval, help="seconds between passes")
    parser.add_argument("--batch-size", type=int, default=settings.worker_batch_size, help="events per pass")
    return parser.parse_args(argv)


if __name__ == "__main__":
    args = parse_args()
    setup_logging(settings.log_level, json_format=settings.log_json, include_uvicorn=False)

    if args.once:
        count = run_cycle(args.batch_size)
        logger.info(f"Reprocessed {count} events")
        sys.exit(0)

    # Register signal handlers for graceful shutdown
    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    try:
        run_worker(args.interval, args.batch_size)
    except KeyboardInterrupt:
        logger.info("Worker interrupted by user")
    except Exception as e:
        logger.critical(f"Worker crashed: {e}")
        sys.exit(1)
