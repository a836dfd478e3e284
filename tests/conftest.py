"""Shared fixtures for msk-sync tests.

Provides:
- make_record: builds SampleRecord instances with a few variant calls
- store / bus: in-memory fakes from tests/fakes
- bus_config: BusConfig isolated from the environment and .env
- fast_retry: publish retry policy without real waiting
- ticking_clock: deterministic, strictly increasing timestamps
"""

from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

import pytest

from msk_sync.config.bus_config import BusConfig
from msk_sync.config.reliability_config import RetryConfig
from msk_sync.domain.records import SampleMetadata, SampleRecord, SnvVariant, CnvVariant
from tests.fakes.fake_bus_transport import FakeBusTransport
from tests.fakes.fake_record_store import FakeRecordStore


def make_record(
        identity: str = "P-0000001-T01-IM6",
        tumor_vaf: float = 0.12,
        tumor_type: str = "Lung Adenocarcinoma",
        last_modified: Optional[datetime] = None,
) -> SampleRecord:
    return SampleRecord(
        meta_data=SampleMetadata(
            dmp_sample_id=identity,
            dmp_patient_id=identity.split("-T")[0],
            gene_panel="IMPACT468",
            tumor_type_name=tumor_type,
            is_metastasis=False,
            sample_coverage=612,
        ),
        snv_variants=[
            SnvVariant(
                gene_id="TP53",
                chromosome="17",
                start_position=7577120,
                ref_allele="C",
                alt_allele="T",
                variant_class="Missense_Mutation",
                aa_change="p.R273H",
                tumor_vaf=tumor_vaf,
            ),
        ],
        cnv_variants=[CnvVariant(gene_id="EGFR", chromosome="7", cnv_class_name="ECN_AMP", gene_fold_change=3.4)],
        last_modified=last_modified,
    )


@pytest.fixture()
def store() -> FakeRecordStore:
    return FakeRecordStore()


@pytest.fixture()
def bus() -> FakeBusTransport:
    return FakeBusTransport()


@pytest.fixture()
def bus_config() -> BusConfig:
    return BusConfig(_env_file=None)


@pytest.fixture()
def fast_retry() -> RetryConfig:
    return RetryConfig(max_attempts=3, initial_delay_ms=0, max_delay_ms=0, jitter=False)


@pytest.fixture()
def ticking_clock() -> Callable[[], datetime]:
    current = [datetime(2024, 1, 1, tzinfo=timezone.utc)]

    def _tick() -> datetime:
        current[0] = current[0] + timedelta(seconds=1)
        return current[0]

    return _tick
