# =============================================================================
# File: msk_sync/workers/publisher_worker.py
# Description: One-shot publish run: fetch file -> record store -> bus
# =============================================================================
"""
Publisher Worker

Flow:
1. Load the fetch file (`{"results": [...]}`)
2. Connect the record store (bounded timeout, fatal on failure)
3. Connect the bus (bounded retry with backoff, fatal on give-up)
4. Classify, version and publish every sample in file order
5. Print the run summary; exit non-zero if any sample failed

Topics produced:
- channels.insertNewChannel (first-sight and re-announced samples)
- channels.insertUpdateChannel (revised samples)
"""

import argparse
import asyncio
import logging
import os
import sys
import uuid
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import ValidationError

from msk_sync.common.exceptions.exceptions import ConfigurationError, MskSyncException
from msk_sync.config.bus_config import BusConfig, get_bus_config
from msk_sync.config.logging_config import (
    setup_logging,
    log_worker_banner,
    log_status_update,
    log_metrics_table,
)
from msk_sync.config.store_config import StoreConfig, get_store_config
from msk_sync.config.sync_config import PublisherConfig, get_publisher_config
from msk_sync.domain.enums import TopicKind
from msk_sync.infra.bus.redis_pubsub_bus import RedisPubSubBus
from msk_sync.infra.persistence.pg_client import create_pool
from msk_sync.infra.record_store.pg_record_store import PostgresRecordStore
from msk_sync.publisher.change_detector import ChangeDetector
from msk_sync.publisher.event_publisher import EventPublisher
from msk_sync.publisher.fetch_loader import load_fetch_batch
from msk_sync.publisher.publish_run import PublishRun, RunSummary
from msk_sync.publisher.version_writer import VersionWriter

log = logging.getLogger("msk_sync.worker.publisher")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="msk-publish",
        description="Classify fetched samples against the record store and publish change events.",
    )
    parser.add_argument("--input-file", help="Fetch JSON file (default: PUBLISHER_INPUT_FILE)")
    parser.add_argument("--store-dsn", help="PostgreSQL DSN of the record store")
    parser.add_argument("--table", dest="table_name", help="Record store table name")
    parser.add_argument("--bus-url", help="Redis URL of the bus")
    parser.add_argument(
        "--no-republish-unchanged",
        dest="republish_unchanged",
        action="store_const",
        const=False,
        default=None,
        help="Do not re-announce unchanged samples",
    )
    parser.add_argument(
        "--fail-fast",
        action="store_const",
        const=True,
        default=None,
        help="Abort on the first failing sample",
    )
    parser.add_argument("--log-level", help="Override LOG_LEVEL")
    return parser


def resolve_configs(args: argparse.Namespace):
    """Environment/.env settings with command-line flags applied on top."""
    try:
        publisher_config: PublisherConfig = get_publisher_config().with_overrides(
            input_file=args.input_file,
            republish_unchanged=args.republish_unchanged,
            fail_fast=args.fail_fast,
        )
        store_config: StoreConfig = get_store_config().with_overrides(
            dsn=args.store_dsn,
            table_name=args.table_name,
        )
        bus_config: BusConfig = get_bus_config().with_overrides(url=args.bus_url)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid publisher settings: {e}") from e
    return publisher_config, store_config, bus_config


async def run_publisher(args: argparse.Namespace) -> RunSummary:
    publisher_config, store_config, bus_config = resolve_configs(args)

    batch = load_fetch_batch(publisher_config.input_file)
    log.info(f"Loaded {len(batch.results)} samples from {publisher_config.input_file}")

    pool = await create_pool(store_config)
    store = PostgresRecordStore(pool, store_config.table_name)
    bus = RedisPubSubBus(bus_config)

    try:
        await store.ensure_schema()
        await bus.connect()

        log_status_update(log, "Publisher Ready", {
            "input_file": publisher_config.input_file,
            "samples": len(batch.results),
            "table": store_config.table_name,
            "topics": [bus_config.topic_for(kind) for kind in TopicKind],
        })

        run = PublishRun(
            detector=ChangeDetector(store),
            writer=VersionWriter(store),
            publisher=EventPublisher(bus, bus_config),
            republish_unchanged=publisher_config.republish_unchanged,
            fail_fast=publisher_config.fail_fast,
        )
        return await run.run(batch.results)
    finally:
        await bus.close()
        await store.close()


async def run_worker(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    setup_logging(
        service_name="worker.publisher",
        log_level=args.log_level,
        log_file=os.getenv("WORKER_LOG_FILE"),
        service_type="publisher",
    )
    log_worker_banner(
        logger=log,
        worker_name="MSK Publisher",
        instance_id=os.getenv("WORKER_INSTANCE_ID") or f"publisher-{uuid.uuid4().hex[:8]}",
    )

    try:
        summary = await run_publisher(args)
    except MskSyncException as e:
        log.error(f"Publisher failed: {e}", exc_info=True)
        return 1

    log_metrics_table(log, "Publish Run", summary.as_metrics())
    for outcome in summary.outcomes:
        if not outcome.ok:
            log.error(f"Failed sample {outcome.identity}: {outcome.error}")
    return 1 if summary.failed else 0


def main(argv: Optional[List[str]] = None):
    """Main entry point"""
    load_dotenv()

    try:
        exit_code = asyncio.run(run_worker(argv))
    except KeyboardInterrupt:
        print("\nPublisher interrupted")
        exit_code = 130
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
