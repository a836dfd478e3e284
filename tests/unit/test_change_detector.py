"""Tests for ChangeDetector and VersionWriter."""

from datetime import datetime, timezone

import pytest

from msk_sync.common.exceptions.exceptions import RecordStoreError
from msk_sync.domain.enums import ChangeKind
from msk_sync.publisher.change_detector import ChangeDetector
from msk_sync.publisher.version_writer import VersionWriter
from tests.conftest import make_record


class TestChangeDetector:

    async def test_unknown_identity_is_new(self, store):
        result = await ChangeDetector(store).classify(make_record())

        assert result.kind is ChangeKind.NEW
        assert result.previous is None
        assert store.get_call_count("find_latest") == 1

    async def test_identical_content_with_different_last_modified_is_unchanged(self, store):
        store.seed(make_record(last_modified=datetime(2023, 5, 1, tzinfo=timezone.utc)))
        candidate = make_record(last_modified=datetime(2024, 2, 2, tzinfo=timezone.utc))

        result = await ChangeDetector(store).classify(candidate)

        assert result.kind is ChangeKind.UNCHANGED
        assert result.previous is not None

    async def test_candidate_without_last_modified_is_unchanged(self, store):
        store.seed(make_record(last_modified=datetime(2023, 5, 1, tzinfo=timezone.utc)))

        result = await ChangeDetector(store).classify(make_record())

        assert result.kind is ChangeKind.UNCHANGED

    async def test_nested_field_difference_is_changed(self, store):
        store.seed(make_record(tumor_vaf=0.12, last_modified=datetime(2023, 5, 1, tzinfo=timezone.utc)))

        result = await ChangeDetector(store).classify(make_record(tumor_vaf=0.31))

        assert result.kind is ChangeKind.CHANGED
        assert result.previous.snv_variants[0].tumor_vaf == 0.12

    async def test_compares_against_latest_version_only(self, store):
        store.seed(make_record(tumor_vaf=0.12, last_modified=datetime(2023, 1, 1, tzinfo=timezone.utc)))
        store.seed(make_record(tumor_vaf=0.31, last_modified=datetime(2023, 6, 1, tzinfo=timezone.utc)))

        result = await ChangeDetector(store).classify(make_record(tumor_vaf=0.31))

        assert result.kind is ChangeKind.UNCHANGED

    async def test_store_failure_propagates(self, store):
        store.configure_failure("find_latest", "connection reset")

        with pytest.raises(RecordStoreError, match="connection reset"):
            await ChangeDetector(store).classify(make_record())

    async def test_classify_has_no_side_effects(self, store):
        await ChangeDetector(store).classify(make_record())

        assert not store.was_called("insert_version")
        assert store.rows == []


class TestVersionWriter:

    async def test_write_sets_last_modified_and_returns_version_id(self, store, ticking_clock):
        record = make_record()

        version_id = await VersionWriter(store, clock=ticking_clock).write(record)

        assert version_id == 1
        stored = store.versions_of(record.identity)
        assert len(stored) == 1
        assert stored[0].last_modified == datetime(2024, 1, 1, 0, 0, 1, tzinfo=timezone.utc)

    async def test_write_does_not_mutate_input(self, store, ticking_clock):
        record = make_record()

        await VersionWriter(store, clock=ticking_clock).write(record)

        assert record.last_modified is None

    async def test_successive_writes_append(self, store, ticking_clock):
        writer = VersionWriter(store, clock=ticking_clock)

        first = await writer.write(make_record(tumor_vaf=0.1))
        second = await writer.write(make_record(tumor_vaf=0.2))

        assert first != second
        assert len(store.versions_of("P-0000001-T01-IM6")) == 2

    async def test_default_clock_is_utc(self, store):
        await VersionWriter(store).write(make_record())

        stored = store.versions_of("P-0000001-T01-IM6")[0]
        assert stored.last_modified.utcoffset().total_seconds() == 0
