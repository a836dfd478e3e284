# =============================================================================
# File: msk_sync/wire/record_codec.py
# Description: SampleRecord <-> wire bytes (JSON interchange -> numbered msgpack)
# =============================================================================
"""
Encoding pipeline:

    SampleRecord
        -> canonical interchange dict (field names, JSON types)
        -> field-numbered map (wire schema)
        -> msgpack bytes: {0: schema_version, 1: body}

Decoding runs the same steps backwards and rejects anything that does not
match the schema: unknown versions, unknown field numbers, wrong shapes, or
values that fail record validation.
"""

from __future__ import annotations

import logging
from typing import Any, Dict

import msgpack
from pydantic import ValidationError

from msk_sync.common.exceptions.exceptions import WireDecodeError, WireEncodeError
from msk_sync.domain.records import SampleRecord
from msk_sync.wire.schema import (
    CURRENT_SCHEMA_VERSION,
    ENVELOPE_BODY_FIELD,
    ENVELOPE_VERSION_FIELD,
    SCHEMAS,
    MessageSchema,
)

log = logging.getLogger("msk_sync.wire.codec")


# =============================================================================
# Interchange (field-named) layer
# =============================================================================

def to_interchange(record: SampleRecord) -> Dict[str, Any]:
    """Canonical field-named form; null fields are omitted."""
    return record.model_dump(mode="json", exclude_none=True)


def from_interchange(data: Dict[str, Any]) -> SampleRecord:
    try:
        return SampleRecord.model_validate(data)
    except ValidationError as e:
        raise WireDecodeError(f"Payload does not match record schema: {e}") from e


# =============================================================================
# Field-numbered layer
# =============================================================================

def _number_message(schema: MessageSchema, data: Dict[str, Any]) -> Dict[int, Any]:
    numbered: Dict[int, Any] = {}
    for name, value in data.items():
        wire_field = schema.field_by_name(name)
        if wire_field is None:
            raise WireEncodeError(f"{schema.name} has no wire field for '{name}'")
        if value is None:
            continue
        if wire_field.message is None:
            numbered[wire_field.number] = value
        elif wire_field.repeated:
            numbered[wire_field.number] = [_number_message(wire_field.message, item) for item in value]
        else:
            numbered[wire_field.number] = _number_message(wire_field.message, value)
    return numbered


def _name_message(schema: MessageSchema, data: Any) -> Dict[str, Any]:
    if not isinstance(data, dict):
        raise WireDecodeError(f"{schema.name}: expected a map, got {type(data).__name__}")

    named: Dict[str, Any] = {}
    for number, value in data.items():
        if not isinstance(number, int) or isinstance(number, bool):
            raise WireDecodeError(f"{schema.name}: field keys must be numbers, got {number!r}")
        wire_field = schema.field_by_number(number)
        if wire_field is None:
            raise WireDecodeError(f"{schema.name}: unknown field number {number}")

        if wire_field.message is None:
            if isinstance(value, (dict, list)):
                raise WireDecodeError(f"{schema.name}.{wire_field.name}: expected a scalar")
            named[wire_field.name] = value
        elif wire_field.repeated:
            if not isinstance(value, list):
                raise WireDecodeError(f"{schema.name}.{wire_field.name}: expected a list")
            named[wire_field.name] = [_name_message(wire_field.message, item) for item in value]
        else:
            named[wire_field.name] = _name_message(wire_field.message, value)
    return named


# =============================================================================
# Codec
# =============================================================================

class RecordCodec:
    """Versioned binary codec for SampleRecord."""

    def __init__(self, schema_version: int = CURRENT_SCHEMA_VERSION):
        if schema_version not in SCHEMAS:
            raise ValueError(f"Unknown wire schema version {schema_version}")
        self.schema_version = schema_version
        self.stats = {
            'encoded': 0,
            'decoded': 0,
            'decode_failures': 0,
        }

    def encode(self, record: SampleRecord) -> bytes:
        schema = SCHEMAS[self.schema_version]
        try:
            body = _number_message(schema, to_interchange(record))
            payload = msgpack.packb(
                {ENVELOPE_VERSION_FIELD: self.schema_version, ENVELOPE_BODY_FIELD: body},
                use_bin_type=True,
            )
        except WireEncodeError:
            raise
        except (TypeError, ValueError, OverflowError) as e:
            raise WireEncodeError(f"Failed to encode record {record.identity}: {e}") from e

        self.stats['encoded'] += 1
        log.debug(f"Encoded record {record.identity}: {len(payload)} bytes (schema v{self.schema_version})")
        return payload

    def decode(self, payload: bytes) -> SampleRecord:
        try:
            record = self._decode(payload)
        except WireDecodeError:
            self.stats['decode_failures'] += 1
            raise
        self.stats['decoded'] += 1
        return record

    def _decode(self, payload: bytes) -> SampleRecord:
        if not isinstance(payload, (bytes, bytearray, memoryview)):
            raise WireDecodeError(f"Expected bytes payload, got {type(payload).__name__}")

        try:
            envelope = msgpack.unpackb(payload, raw=False, strict_map_key=False)
        except (ValueError, TypeError) as e:
            raise WireDecodeError(f"Payload is not valid msgpack: {e}") from e

        if not isinstance(envelope, dict) or set(envelope) != {ENVELOPE_VERSION_FIELD, ENVELOPE_BODY_FIELD}:
            raise WireDecodeError("Payload is not a versioned record envelope")

        version = envelope[ENVELOPE_VERSION_FIELD]
        schema = None
        if isinstance(version, int) and not isinstance(version, bool):
            schema = SCHEMAS.get(version)
        if schema is None:
            raise WireDecodeError(f"Unsupported wire schema version {version!r}")

        return from_interchange(_name_message(schema, envelope[ENVELOPE_BODY_FIELD]))

