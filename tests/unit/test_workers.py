"""Tests for the worker entry points, wired to in-memory fakes."""

import asyncio
import logging

import pytest

from msk_sync.common.exceptions.exceptions import BusConnectionError, ConfigurationError
from msk_sync.config.sync_config import SubscriberConfig, reset_sync_configs
from msk_sync.wire.record_codec import RecordCodec
from msk_sync.workers import publisher_worker, subscriber_worker
from msk_sync.workers.subscriber_worker import SubscriberWorker
from tests.conftest import make_record


@pytest.fixture(autouse=True)
def _fresh_configs():
    reset_sync_configs()
    yield
    reset_sync_configs()


def _subscriber_config(tmp_path, **kwargs) -> SubscriberConfig:
    return SubscriberConfig(_env_file=None, snapshot_file=str(tmp_path / "master.json"), **kwargs)


class TestSubscriberWorker:

    async def test_aggregate_mode_reconciles_into_snapshot(self, tmp_path, bus, bus_config):
        worker = SubscriberWorker(_subscriber_config(tmp_path), bus_config, bus=bus)

        await worker.start()
        await bus.publish("channels.insertNewChannel", RecordCodec().encode(make_record("S-1")))

        assert worker.aggregate
        assert bus.connected
        assert list(bus.subscriptions) == ["channels.*"]
        assert [r.identity for r in worker.reconciler.entries()] == ["S-1"]
        assert worker.metrics()["snapshot_samples"] == 1

    async def test_single_topic_mode_has_no_snapshot(self, tmp_path, bus, bus_config):
        config = _subscriber_config(tmp_path, channel="channels.insertUpdateChannel")
        worker = SubscriberWorker(config, bus_config, bus=bus)

        await worker.start()
        await bus.publish("channels.insertUpdateChannel", RecordCodec().encode(make_record("S-1")))

        assert not worker.aggregate
        assert worker.reconciler is None
        assert worker.consumer.received_count == 1
        assert not (tmp_path / "master.json").exists()

    async def test_connect_failure_prevents_subscription(self, tmp_path, bus, bus_config):
        bus.fail_connect()
        worker = SubscriberWorker(_subscriber_config(tmp_path), bus_config, bus=bus)

        with pytest.raises(BusConnectionError):
            await worker.start()

        assert bus.subscriptions == {}

    async def test_shutdown_request_stops_the_run(self, tmp_path, bus, bus_config):
        worker = SubscriberWorker(_subscriber_config(tmp_path), bus_config, bus=bus)
        await worker.start()

        asyncio.get_running_loop().call_later(0.05, worker.request_shutdown)
        await asyncio.wait_for(worker.run_until_shutdown(), timeout=5)

        await worker.stop()
        assert bus.closed

    async def test_listener_stopping_on_its_own_is_an_error(self, tmp_path, bus, bus_config):
        worker = SubscriberWorker(_subscriber_config(tmp_path), bus_config, bus=bus)
        await worker.start()
        await bus.close()

        with pytest.raises(BusConnectionError):
            await asyncio.wait_for(worker.run_until_shutdown(), timeout=5)

    def test_parser_load_snapshot_flag(self):
        args = subscriber_worker.build_parser().parse_args(["--load-snapshot", "--channel", "channels.insertNewChannel"])

        assert args.reset_snapshot_on_start is False
        assert args.channel == "channels.insertNewChannel"


class TestPublisherWorker:

    def test_flags_override_settings(self):
        args = publisher_worker.build_parser().parse_args(
            ["--input-file", "batch.json", "--no-republish-unchanged", "--table", "samples"]
        )

        publisher_config, store_config, bus_config = publisher_worker.resolve_configs(args)

        assert publisher_config.input_file == "batch.json"
        assert publisher_config.republish_unchanged is False
        assert publisher_config.fail_fast is False
        assert store_config.table_name == "samples"

    def test_invalid_table_flag_is_a_configuration_error(self):
        args = publisher_worker.build_parser().parse_args(["--table", "x; DROP TABLE testing"])

        with pytest.raises(ConfigurationError):
            publisher_worker.resolve_configs(args)

    def test_absent_flags_keep_settings(self):
        args = publisher_worker.build_parser().parse_args([])

        publisher_config, _, _ = publisher_worker.resolve_configs(args)

        assert publisher_config.republish_unchanged is True

    async def test_missing_input_file_exits_non_zero(self, tmp_path, monkeypatch):
        monkeypatch.setenv("LOG_JSON_FORMAT", "true")
        root = logging.getLogger()
        saved_handlers, saved_level = list(root.handlers), root.level
        try:
            exit_code = await publisher_worker.run_worker(["--input-file", str(tmp_path / "absent.json")])
        finally:
            root.handlers[:] = saved_handlers
            root.setLevel(saved_level)

        assert exit_code == 1
