# =============================================================================
# File: msk_sync/subscriber/snapshot_file.py
# Description: Durable JSON snapshot of consolidated sample records
# =============================================================================

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import List, Sequence, Union

from pydantic import ValidationError

from msk_sync.common.exceptions.exceptions import SnapshotPersistenceError
from msk_sync.domain.records import SampleRecord
from msk_sync.wire.record_codec import to_interchange

log = logging.getLogger("msk_sync.subscriber.snapshot_file")


class SnapshotFile:
    """
    JSON array of records, always rewritten in full.

    Writes go to a temp file in the same directory and are moved into place
    with os.replace, so readers never observe a half-written snapshot.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def reset(self) -> None:
        """Create the file if missing, otherwise truncate it to empty."""
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "wb"):
                pass
        except OSError as e:
            raise SnapshotPersistenceError(f"Cannot reset snapshot {self.path}: {e}") from e
        log.info(f"Snapshot {self.path} reset to empty")

    def read(self) -> List[SampleRecord]:
        """Records in file order; a missing or empty file is an empty snapshot."""
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return []
        except UnicodeDecodeError as e:
            raise SnapshotPersistenceError(f"Snapshot {self.path} is corrupt: {e}") from e
        except OSError as e:
            raise SnapshotPersistenceError(f"Cannot read snapshot {self.path}: {e}") from e

        if not raw.strip():
            return []

        try:
            data = json.loads(raw)
            if not isinstance(data, list):
                raise SnapshotPersistenceError(f"Snapshot {self.path} is not a JSON array")
            return [SampleRecord.model_validate(item) for item in data]
        except (json.JSONDecodeError, ValidationError) as e:
            raise SnapshotPersistenceError(f"Snapshot {self.path} is corrupt: {e}") from e

    def write(self, records: Sequence[SampleRecord]) -> None:
        data = json.dumps([to_interchange(record) for record in records])
        directory = self.path.parent
        tmp_name = None
        try:
            directory.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                    "w", encoding="utf-8", dir=directory, prefix=f".{self.path.name}.", delete=False
            ) as tmp:
                tmp_name = tmp.name
                tmp.write(data)
                tmp.flush()
                os.fsync(tmp.fileno())
            os.replace(tmp_name, self.path)
        except OSError as e:
            if tmp_name and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise SnapshotPersistenceError(f"Cannot write snapshot {self.path}: {e}") from e

        log.debug(f"Snapshot {self.path} rewritten with {len(records)} records")
