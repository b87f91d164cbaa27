"""
Backup mirror - secondary full-dataset copy used for cold-start recovery.

The mirror lives in a single JSON file slot, wrapped in a tagged envelope:

    {"format": "bnpl-tracker/backup", "version": 1, "savedAt": ..., "snapshot": {...}}

Anything that does not parse as that envelope, or whose snapshot fails
integrity validation, is treated as absent rather than partially trusted.
"""

import asyncio
import errno
import logging
import os
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, ValidationError
from pydantic.alias_generators import to_camel

from bnpl_tracker.domain.exceptions import BackupQuotaExceededError, SnapshotValidationError
from bnpl_tracker.domain.snapshot import Snapshot, validate_snapshot
from bnpl_tracker.utils.date_utils import utc_now

logger = logging.getLogger(__name__)

BACKUP_FORMAT = "bnpl-tracker/backup"
BACKUP_ENVELOPE_VERSION = 1

_QUOTA_ERRNOS = {errno.ENOSPC, getattr(errno, "EDQUOT", errno.ENOSPC)}


class BackupEnvelope(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    format: Literal["bnpl-tracker/backup"]
    version: Literal[1]
    saved_at: datetime
    snapshot: Dict[str, Any]


class BackupMirror:
    """File-backed key/value slot holding the latest snapshot"""

    def __init__(self, path: Union[str, Path], max_bytes: int):
        self.path = Path(path)
        self.max_bytes = max_bytes

    def exists(self) -> bool:
        return self.path.exists()

    async def read(self) -> Optional[Snapshot]:
        return await asyncio.to_thread(self._read_sync)

    async def write(self, snapshot: Snapshot) -> None:
        """
        Replace the mirror with snapshot.

        Raises:
            BackupQuotaExceededError: payload exceeds max_bytes or the disk is full
        """
        envelope = BackupEnvelope(
            format=BACKUP_FORMAT,
            version=BACKUP_ENVELOPE_VERSION,
            saved_at=utc_now(),
            snapshot=snapshot.to_json(),
        )
        data = envelope.model_dump_json(by_alias=True).encode("utf-8")
        if len(data) > self.max_bytes:
            raise BackupQuotaExceededError(
                f"Backup of {len(data)} bytes exceeds quota of {self.max_bytes} bytes"
            )
        await asyncio.to_thread(self._write_sync, data)

    async def discard(self) -> None:
        await asyncio.to_thread(self.path.unlink, missing_ok=True)

    def _read_sync(self) -> Optional[Snapshot]:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(f"Failed to read backup: {e}", extra={"path": str(self.path)})
            return None

        try:
            envelope = BackupEnvelope.model_validate_json(raw)
            snapshot = validate_snapshot(envelope.snapshot)
        except (ValidationError, SnapshotValidationError) as e:
            logger.warning(f"Rejected backup mirror: {e}", extra={"path": str(self.path)})
            return None

        logger.info(
            "Found backup mirror",
            extra={"saved_at": envelope.saved_at.isoformat(), "orders": len(snapshot.orders)},
        )
        return snapshot

    def _write_sync(self, data: bytes) -> None:
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_bytes(data)
            os.replace(tmp_path, self.path)
        except OSError as e:
            tmp_path.unlink(missing_ok=True)
            if e.errno in _QUOTA_ERRNOS:
                raise BackupQuotaExceededError(f"No space left for backup: {e}") from e
            raise
