# =============================================================================
# File: msk_sync/domain/records.py
# Description: Sample catalog records (fetch input, stored versions, events,
#              snapshot entries all share this shape)
# =============================================================================

from __future__ import annotations

from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class _RecordModel(BaseModel):
    """Strict-shape base: unknown keys are rejected, instances are immutable."""

    model_config = ConfigDict(
        frozen=True,
        extra='forbid',
        populate_by_name=True,
    )


class SampleMetadata(_RecordModel):
    """Sample-level metadata; `dmp_sample_id` is the record identity."""

    dmp_sample_id: str = Field(min_length=1)
    dmp_patient_id: Optional[str] = None
    gene_panel: Optional[str] = None
    tumor_type_name: Optional[str] = None
    primary_site: Optional[str] = None
    metastasis_site: Optional[str] = None
    is_metastasis: Optional[bool] = None
    sample_coverage: Optional[int] = None
    tumor_purity: Optional[str] = None
    somatic_status: Optional[str] = None
    date_tumor_sequencing: Optional[str] = None


class SnvVariant(_RecordModel):
    """Single-nucleotide variant call"""

    gene_id: str
    chromosome: Optional[str] = None
    start_position: Optional[int] = None
    ref_allele: Optional[str] = None
    alt_allele: Optional[str] = None
    variant_class: Optional[str] = None
    aa_change: Optional[str] = None
    tumor_vaf: Optional[float] = None


class CnvVariant(_RecordModel):
    """Copy-number variant call"""

    gene_id: str
    chromosome: Optional[str] = None
    cnv_class_name: Optional[str] = None
    gene_fold_change: Optional[float] = None


class SvVariant(_RecordModel):
    """Structural variant call"""

    site1_gene: Optional[str] = None
    site2_gene: Optional[str] = None
    sv_class_name: Optional[str] = None
    event_info: Optional[str] = None


class SampleRecord(_RecordModel):
    """
    One sample observation.

    `last_modified` is storage metadata: it is assigned by the version writer
    and must be cleared before two records are compared for content.
    """

    meta_data: SampleMetadata
    snv_variants: List[SnvVariant] = Field(default_factory=list)
    cnv_variants: List[CnvVariant] = Field(default_factory=list)
    sv_variants: List[SvVariant] = Field(default_factory=list)
    last_modified: Optional[datetime] = None

    @property
    def identity(self) -> str:
        return self.meta_data.dmp_sample_id

    def without_last_modified(self) -> SampleRecord:
        """Copy with storage metadata cleared, for structural comparison."""
        if self.last_modified is None:
            return self
        return self.model_copy(update={"last_modified": None})

    def content_equals(self, other: SampleRecord) -> bool:
        """Field-by-field equality ignoring `last_modified`."""
        return self.without_last_modified() == other.without_last_modified()


class FetchBatch(BaseModel):
    """
    Input document: a named list of candidate records.

    Items stay raw here; each one is validated on its own when the batch is
    processed, so one malformed record cannot reject its neighbours.
    """

    model_config = ConfigDict(extra='ignore')

    results: List[Any] = Field(default_factory=list)
