"""Stale task cleanup sweep.

Runs once at startup and then periodically while the gateway is up. DONE
tasks are dropped after a short grace window and IDLE tasks after a much
longer one; pinned tasks are always kept. When anything is removed the
snapshot is persisted immediately and, while serving, pushed to the UI.

Usage:
    python -m tallr.tasks.cleanup_sweep [--data-dir PATH]
"""

import asyncio
import logging
import sys
from typing import List, Optional

from starlette.concurrency import run_in_threadpool

from tallr.core.config import GlobalConfig
from tallr.core.errors import PersistenceError
from tallr.core.state_store import StateStore
from tallr.persistence.state_file import StateFile

logger = logging.getLogger(__name__)


def sweep(store: StateStore, config: GlobalConfig, now: Optional[int] = None) -> List[str]:
    """Run the cleanup rules from ``config`` against ``store``."""
    return store.cleanup(
        now=now,
        done_grace_seconds=config.done_grace_seconds,
        idle_max_age_seconds=config.idle_max_age_seconds,
        include_idle=config.cleanup_idle,
    )


def run_startup_cleanup(store: StateStore, state_file: StateFile, config: GlobalConfig) -> List[str]:
    """Sweep once and persist right away if anything was removed."""
    removed = sweep(store, config)
    if removed:
        logger.debug(f"Cleaned up {len(removed)} old tasks on startup")
        try:
            state_file.save_from(store)
        except PersistenceError as e:
            logger.error(f"Failed to save cleaned app state: {e}")
    return removed


async def periodic_cleanup(
    store: StateStore,
    state_file: StateFile,
    config: GlobalConfig,
    publisher=None,
) -> None:
    """Re-run the sweep every ``cleanup_interval_seconds`` until cancelled.

    Args:
        store: The live state store
        state_file: Where to persist after a removal
        config: Cleanup windows and interval
        publisher: Optional EventPublisher for pushing the new snapshot
    """
    interval = config.cleanup_interval_seconds
    if interval <= 0:
        logger.info("Periodic cleanup disabled")
        return

    while True:
        await asyncio.sleep(interval)
        try:
            removed = sweep(store, config)
        except Exception as e:
            logger.error(f"Cleanup sweep failed: {e}", exc_info=True)
            continue

        if not removed:
            continue

        if publisher is not None:
            await publisher.publish(store.snapshot())

        try:
            await run_in_threadpool(state_file.save_from, store)
        except PersistenceError as e:
            logger.error(f"Failed to save app state after cleanup: {e}")


def main():
    """CLI entry point for an offline sweep of the state file."""
    import argparse

    from tallr.core.config import load_config
    from tallr.core.logging_setup import configure_logging

    parser = argparse.ArgumentParser(description="Remove finished and stale Tallr tasks")
    parser.add_argument("--data-dir", default=None, help="Override the Tallr data directory")
    args = parser.parse_args()

    config = load_config()
    if args.data_dir:
        config.data_dir = args.data_dir
    configure_logging(config)

    state_file = StateFile(config.sessions_file)
    store = StateStore()
    store.load(state_file.load_or_empty())

    removed = run_startup_cleanup(store, state_file, config)
    logger.info(f"Cleanup sweep complete: {len(removed)} removed")
    sys.exit(0)


if __name__ == "__main__":
    main()
