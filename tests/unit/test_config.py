"""Tests for settings classes and CLI-style overrides."""

import pydantic
import pytest

from msk_sync.config.bus_config import BusConfig
from msk_sync.config.store_config import StoreConfig
from msk_sync.config.sync_config import PublisherConfig, SubscriberConfig
from msk_sync.domain.enums import TopicKind


class TestDefaults:

    def test_bus_topics(self):
        config = BusConfig(_env_file=None)

        assert config.topic_for(TopicKind.NEW) == "channels.insertNewChannel"
        assert config.topic_for(TopicKind.UPDATED) == "channels.insertUpdateChannel"
        assert config.aggregate_pattern == "channels.*"

    def test_bus_retry_policies_follow_settings(self):
        config = BusConfig(_env_file=None, connect_max_attempts=7, publish_max_attempts=2)

        assert config.connect_retry().max_attempts == 7
        assert config.publish_retry().max_attempts == 2

    def test_store_defaults(self):
        config = StoreConfig(_env_file=None)

        assert config.table_name == "testing"
        assert config.connect_timeout_seconds == 20.0

    def test_subscriber_defaults(self):
        config = SubscriberConfig(_env_file=None)

        assert config.channel == "channels.*"
        assert config.reset_snapshot_on_start is True


class TestEnvironment:

    def test_prefixed_environment_variables(self, monkeypatch):
        monkeypatch.setenv("PUBLISHER_INPUT_FILE", "fetch_full.json")
        monkeypatch.setenv("PUBLISHER_REPUBLISH_UNCHANGED", "false")

        config = PublisherConfig(_env_file=None)

        assert config.input_file == "fetch_full.json"
        assert config.republish_unchanged is False

    def test_invalid_table_name_is_rejected(self):
        with pytest.raises(pydantic.ValidationError):
            StoreConfig(_env_file=None, table_name="samples; DROP TABLE x")


class TestOverrides:

    def test_none_overrides_are_ignored(self):
        config = SubscriberConfig(_env_file=None).with_overrides(channel=None, snapshot_file="/tmp/out.json")

        assert config.channel == "channels.*"
        assert config.snapshot_file == "/tmp/out.json"

    def test_repr_masks_dsn(self):
        config = StoreConfig(_env_file=None, dsn="postgresql://user:hunter2@db:5432/msk")

        assert "hunter2" not in repr(config)
        assert config.dsn.get_secret_value().endswith("@db:5432/msk")

    def test_secret_override_stays_secret(self):
        config = StoreConfig(_env_file=None).with_overrides(dsn="postgresql://u:p@other:5432/msk")

        assert config.dsn.get_secret_value() == "postgresql://u:p@other:5432/msk"
