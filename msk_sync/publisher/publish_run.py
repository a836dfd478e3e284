# =============================================================================
# File: msk_sync/publisher/publish_run.py
# Description: Sequential classify -> write -> publish loop over one batch
# =============================================================================

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from msk_sync.common.exceptions.exceptions import MskSyncException
from msk_sync.domain.enums import ChangeKind, TopicKind
from msk_sync.domain.records import SampleRecord
from msk_sync.infra.record_store.base_record_store import StoredVersionId
from msk_sync.publisher.change_detector import ChangeDetector
from msk_sync.publisher.event_publisher import EventPublisher
from msk_sync.publisher.fetch_loader import parse_candidate, raw_identity
from msk_sync.publisher.version_writer import VersionWriter

log = logging.getLogger("msk_sync.publisher.run")


@dataclass
class RecordOutcome:
    """Result of processing one candidate."""
    identity: str
    kind: Optional[ChangeKind] = None
    version_id: Optional[StoredVersionId] = None
    topic: Optional[str] = None
    # last_modified of the stored version the candidate was compared against
    previous_modified: Optional[datetime] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class RunSummary:
    outcomes: List[RecordOutcome] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.outcomes)

    @property
    def failed(self) -> int:
        return sum(1 for outcome in self.outcomes if not outcome.ok)

    @property
    def succeeded(self) -> int:
        return self.total - self.failed

    @property
    def published(self) -> int:
        return sum(1 for outcome in self.outcomes if outcome.ok and outcome.topic is not None)

    def count(self, kind: ChangeKind) -> int:
        return sum(1 for outcome in self.outcomes if outcome.kind is kind)

    def as_metrics(self) -> Dict[str, int]:
        return {
            "records_total": self.total,
            "records_new": self.count(ChangeKind.NEW),
            "records_changed": self.count(ChangeKind.CHANGED),
            "records_unchanged": self.count(ChangeKind.UNCHANGED),
            "events_published": self.published,
            "records_failed": self.failed,
        }


class PublishRun:
    """
    For each candidate, in order:

        NEW       -> write version, publish on the new-record topic
        CHANGED   -> write version, publish on the update topic
        UNCHANGED -> republish on the new-record topic (or skip when
                     `republish_unchanged` is off); nothing is written

    Failures are recorded per record and the batch continues, unless
    `fail_fast` is set, in which case the first error propagates.
    """

    def __init__(
            self,
            detector: ChangeDetector,
            writer: VersionWriter,
            publisher: EventPublisher,
            republish_unchanged: bool = True,
            fail_fast: bool = False,
    ):
        self._detector = detector
        self._writer = writer
        self._publisher = publisher
        self._republish_unchanged = republish_unchanged
        self._fail_fast = fail_fast

    async def process(self, candidate: SampleRecord, outcome: Optional[RecordOutcome] = None) -> RecordOutcome:
        """Process one candidate, filling `outcome` as steps complete; errors propagate."""
        if outcome is None:
            outcome = RecordOutcome(identity=candidate.identity)

        classification = await self._detector.classify(candidate)
        outcome.kind = classification.kind
        if classification.previous is not None:
            outcome.previous_modified = classification.previous.last_modified

        if classification.kind is ChangeKind.NEW:
            outcome.version_id = await self._writer.write(candidate)
            outcome.topic = await self._publisher.publish(candidate, TopicKind.NEW)

        elif classification.kind is ChangeKind.CHANGED:
            outcome.version_id = await self._writer.write(candidate)
            outcome.topic = await self._publisher.publish(candidate, TopicKind.UPDATED)

        elif self._republish_unchanged:
            outcome.topic = await self._publisher.publish(candidate, TopicKind.NEW)

        else:
            log.info(f"Skipping unchanged sample {candidate.identity}")

        return outcome

    async def run(self, candidates: Iterable[Any]) -> RunSummary:
        """
        Process candidates in order. Items may be SampleRecord instances or
        raw fetch items; raw items are validated individually.
        """
        summary = RunSummary()

        for position, item in enumerate(candidates):
            outcome = RecordOutcome(identity=raw_identity(item, position))
            try:
                candidate = parse_candidate(item, position)
                outcome.identity = candidate.identity
                await self.process(candidate, outcome)
            except MskSyncException as e:
                if self._fail_fast:
                    raise
                log.error(f"Sample {outcome.identity} failed: {e}")
                outcome.error = f"{type(e).__name__}: {e}"
            summary.outcomes.append(outcome)

        log.info(
            f"Publish run finished - total: {summary.total}, "
            f"published: {summary.published}, failed: {summary.failed}"
        )
        return summary
