# =============================================================================
# File: msk_sync/publisher/fetch_loader.py
# Description: Read the fetch input file into candidate records
# =============================================================================

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Union

from pydantic import ValidationError

from msk_sync.common.exceptions.exceptions import InputFileError, InvalidRecordError
from msk_sync.domain.records import FetchBatch, SampleRecord

log = logging.getLogger("msk_sync.publisher.fetch_loader")


def load_fetch_batch(path: Union[str, Path]) -> FetchBatch:
    """
    Parse `{"results": [...]}` from disk; read once per run.

    Only the document shape is checked here. Items are validated one by one
    with parse_candidate().
    """
    path = Path(path)
    try:
        raw = path.read_bytes()
    except OSError as e:
        raise InputFileError(f"Cannot read input file {path}: {e}") from e

    try:
        batch = FetchBatch.model_validate_json(raw)
    except ValidationError as e:
        raise InputFileError(f"Error during parsing of {path}: {e}") from e

    log.info(f"Loaded {len(batch.results)} candidate samples from {path}")
    return batch


def raw_identity(item: Any, position: int) -> str:
    """Best-effort identity of an unvalidated item, for outcome reporting."""
    if isinstance(item, dict):
        meta_data = item.get("meta_data")
        if isinstance(meta_data, dict) and isinstance(meta_data.get("dmp_sample_id"), str):
            if meta_data["dmp_sample_id"]:
                return meta_data["dmp_sample_id"]
    return f"results[{position}]"


def parse_candidate(item: Any, position: int = 0) -> SampleRecord:
    if isinstance(item, SampleRecord):
        return item
    try:
        return SampleRecord.model_validate(item)
    except ValidationError as e:
        raise InvalidRecordError(f"Input record {raw_identity(item, position)} is invalid: {e}") from e
