# =============================================================================
# File: msk_sync/workers/subscriber_worker.py
# Description: Long-running subscriber; maintains the consolidated snapshot
# =============================================================================
"""
Subscriber Worker

Subscribes to one topic or pattern. On the aggregate pattern (`channels.*`)
every record received is reconciled into the snapshot file; on a single
topic records are only logged and the snapshot is never touched.

Signals:
- 1st SIGINT/SIGTERM: graceful shutdown (in-flight deliveries finish)
- 2nd: forced exit
"""

import argparse
import asyncio
import logging
import os
import signal
import sys
import uuid
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import ValidationError

from msk_sync.common.exceptions.exceptions import BusConnectionError, ConfigurationError, MskSyncException
from msk_sync.config.bus_config import BusConfig, get_bus_config
from msk_sync.config.logging_config import (
    setup_logging,
    log_worker_banner,
    log_status_update,
    log_metrics_table,
)
from msk_sync.config.sync_config import SubscriberConfig, get_subscriber_config
from msk_sync.infra.bus.redis_pubsub_bus import RedisPubSubBus
from msk_sync.infra.bus.transport_adapter import BusTransport
from msk_sync.subscriber.event_consumer import EventConsumer
from msk_sync.subscriber.snapshot_file import SnapshotFile
from msk_sync.subscriber.snapshot_reconciler import SnapshotReconciler

log = logging.getLogger("msk_sync.worker.subscriber")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="msk-subscribe",
        description="Subscribe to sample change events and maintain the consolidated snapshot.",
    )
    parser.add_argument("--channel", help="Topic or pattern (default: SUBSCRIBER_CHANNEL, channels.*)")
    parser.add_argument("--snapshot-file", help="Snapshot output path")
    parser.add_argument("--bus-url", help="Redis URL of the bus")
    parser.add_argument(
        "--load-snapshot",
        dest="reset_snapshot_on_start",
        action="store_const",
        const=False,
        default=None,
        help="Load the existing snapshot as prior state instead of truncating it",
    )
    parser.add_argument("--log-level", help="Override LOG_LEVEL")
    return parser


def resolve_configs(args: argparse.Namespace):
    """Environment/.env settings with command-line flags applied on top."""
    try:
        subscriber_config: SubscriberConfig = get_subscriber_config().with_overrides(
            channel=args.channel,
            snapshot_file=args.snapshot_file,
            reset_snapshot_on_start=args.reset_snapshot_on_start,
        )
        bus_config: BusConfig = get_bus_config().with_overrides(url=args.bus_url)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid subscriber settings: {e}") from e
    return subscriber_config, bus_config


class SubscriberWorker:
    """Wires bus, consumer and (in aggregate mode) the snapshot reconciler."""

    def __init__(self, subscriber_config: SubscriberConfig, bus_config: BusConfig,
                 bus: Optional[BusTransport] = None):
        self.config = subscriber_config
        self.bus_config = bus_config
        self.bus = bus or RedisPubSubBus(bus_config)
        self.reconciler: Optional[SnapshotReconciler] = None
        self.consumer: Optional[EventConsumer] = None
        self._shutdown_event = asyncio.Event()
        self._signal_count = 0

    @property
    def aggregate(self) -> bool:
        return self.config.channel == self.bus_config.aggregate_pattern

    async def start(self) -> None:
        # Connect before subscribing; gives up with BusConnectionError
        await self.bus.connect()

        if self.aggregate:
            self.reconciler = SnapshotReconciler(
                SnapshotFile(self.config.snapshot_file),
                reset_on_start=self.config.reset_snapshot_on_start,
            )
            await self.reconciler.load()

        self.consumer = EventConsumer(reconciler=self.reconciler)
        await self.bus.subscribe(self.config.channel, self.consumer.handle_message)

    async def run_until_shutdown(self) -> None:
        """Block until a shutdown signal or until the bus listener stops."""
        listener = asyncio.create_task(self.bus.run_forever())
        shutdown = asyncio.create_task(self._shutdown_event.wait())

        done, _ = await asyncio.wait({listener, shutdown}, return_when=asyncio.FIRST_COMPLETED)

        if listener in done:
            shutdown.cancel()
            # Surfaces the listener's failure, if any
            listener.result()
            raise BusConnectionError("Bus listener stopped before shutdown was requested")
        else:
            listener.cancel()
            try:
                await listener
            except asyncio.CancelledError:
                pass

    def request_shutdown(self) -> None:
        self._shutdown_event.set()

    def handle_signal(self, sig: int) -> None:
        self._signal_count += 1
        log.warning(f"Received signal {signal.Signals(sig).name} (count: {self._signal_count})")

        if self._signal_count == 1:
            log.warning("Initiating graceful shutdown...")
            self.request_shutdown()
        else:
            log.error("Multiple signals received - forcing immediate exit")
            os._exit(1)

    def install_signal_handlers(self) -> None:
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, self.handle_signal, sig)
            except NotImplementedError:
                # Windows event loops: KeyboardInterrupt still reaches main()
                log.debug(f"Signal handler for {sig} not supported on this platform")

    async def stop(self) -> None:
        await self.bus.close()

    def metrics(self) -> dict:
        metrics = {
            "channel": self.config.channel,
            "records_received": self.consumer.received_count if self.consumer else 0,
        }
        if self.reconciler is not None:
            metrics["snapshot_samples"] = len(self.reconciler)
            metrics["snapshot_replacements"] = self.reconciler.replaced_count
        return metrics


async def run_worker(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    setup_logging(
        service_name="worker.subscriber",
        log_level=args.log_level,
        log_file=os.getenv("WORKER_LOG_FILE"),
        service_type="subscriber",
    )

    try:
        subscriber_config, bus_config = resolve_configs(args)
    except ConfigurationError as e:
        log.error(f"Subscriber failed: {e}")
        return 1

    worker = SubscriberWorker(subscriber_config, bus_config)
    log_worker_banner(
        logger=log,
        worker_name="MSK Subscriber",
        instance_id=os.getenv("WORKER_INSTANCE_ID") or f"subscriber-{uuid.uuid4().hex[:8]}",
    )

    exit_code = 0
    try:
        worker.install_signal_handlers()
        await worker.start()

        status = {"channel": subscriber_config.channel, "bus": bus_config.url}
        if worker.aggregate:
            status["snapshot_file"] = subscriber_config.snapshot_file
            status["snapshot_mode"] = "reset" if subscriber_config.reset_snapshot_on_start else "load"
        log_status_update(log, "Subscriber Ready", status)

        await worker.run_until_shutdown()
    except MskSyncException as e:
        log.error(f"Subscriber failed: {e}", exc_info=True)
        exit_code = 1
    finally:
        try:
            await asyncio.wait_for(worker.stop(), timeout=30.0)
            log.info("Graceful shutdown completed")
        except asyncio.TimeoutError:
            log.error("Graceful shutdown timed out")

    log_metrics_table(log, "Subscriber", worker.metrics())
    return exit_code


def main(argv: Optional[List[str]] = None):
    """Main entry point"""
    load_dotenv()

    try:
        exit_code = asyncio.run(run_worker(argv))
    except KeyboardInterrupt:
        print("\nSubscriber interrupted")
        exit_code = 130
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
