# =============================================================================
# File: msk_sync/wire/schema.py
# Description: Field-numbered wire schema for SampleRecord (version 1)
# =============================================================================
"""
Field numbers are the wire contract: names may be renamed in code, numbers
must never be reused. Numbers 0 and 1 of the outer envelope are reserved for
the schema version and the record body.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple


@dataclass(frozen=True)
class WireField:
    number: int
    name: str
    message: Optional["MessageSchema"] = None
    repeated: bool = False


@dataclass(frozen=True)
class MessageSchema:
    name: str
    fields: Tuple[WireField, ...]
    _by_number: Dict[int, WireField] = field(init=False, repr=False, compare=False)
    _by_name: Dict[str, WireField] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        by_number = {f.number: f for f in self.fields}
        by_name = {f.name: f for f in self.fields}
        if len(by_number) != len(self.fields) or len(by_name) != len(self.fields):
            raise ValueError(f"Duplicate field number or name in {self.name}")
        object.__setattr__(self, "_by_number", by_number)
        object.__setattr__(self, "_by_name", by_name)

    def field_by_number(self, number: int) -> Optional[WireField]:
        return self._by_number.get(number)

    def field_by_name(self, name: str) -> Optional[WireField]:
        return self._by_name.get(name)


ENVELOPE_VERSION_FIELD = 0
ENVELOPE_BODY_FIELD = 1

SAMPLE_METADATA_V1 = MessageSchema(
    name="SampleMetadata",
    fields=(
        WireField(1, "dmp_sample_id"),
        WireField(2, "dmp_patient_id"),
        WireField(3, "gene_panel"),
        WireField(4, "tumor_type_name"),
        WireField(5, "primary_site"),
        WireField(6, "metastasis_site"),
        WireField(7, "is_metastasis"),
        WireField(8, "sample_coverage"),
        WireField(9, "tumor_purity"),
        WireField(10, "somatic_status"),
        WireField(11, "date_tumor_sequencing"),
    ),
)

SNV_VARIANT_V1 = MessageSchema(
    name="SnvVariant",
    fields=(
        WireField(1, "gene_id"),
        WireField(2, "chromosome"),
        WireField(3, "start_position"),
        WireField(4, "ref_allele"),
        WireField(5, "alt_allele"),
        WireField(6, "variant_class"),
        WireField(7, "aa_change"),
        WireField(8, "tumor_vaf"),
    ),
)

CNV_VARIANT_V1 = MessageSchema(
    name="CnvVariant",
    fields=(
        WireField(1, "gene_id"),
        WireField(2, "chromosome"),
        WireField(3, "cnv_class_name"),
        WireField(4, "gene_fold_change"),
    ),
)

SV_VARIANT_V1 = MessageSchema(
    name="SvVariant",
    fields=(
        WireField(1, "site1_gene"),
        WireField(2, "site2_gene"),
        WireField(3, "sv_class_name"),
        WireField(4, "event_info"),
    ),
)

SAMPLE_RECORD_V1 = MessageSchema(
    name="SampleRecord",
    fields=(
        WireField(1, "meta_data", message=SAMPLE_METADATA_V1),
        WireField(2, "snv_variants", message=SNV_VARIANT_V1, repeated=True),
        WireField(3, "cnv_variants", message=CNV_VARIANT_V1, repeated=True),
        WireField(4, "sv_variants", message=SV_VARIANT_V1, repeated=True),
        WireField(15, "last_modified"),
    ),
)

CURRENT_SCHEMA_VERSION = 1

SCHEMAS: Dict[int, MessageSchema] = {
    1: SAMPLE_RECORD_V1,
}
