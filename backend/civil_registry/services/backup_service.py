"""
Civil Registry Backend - Backup File Service
=============================================

What:  Writes resident export documents to timestamped JSON files.
Who:   Called by ResidentService.export_residents().
When:  On every GET /api/residents/export.

File naming:
    residents_backup_<ISO-8601 UTC, milliseconds, ':' and '.' → '-'>.json
    e.g. residents_backup_2024-01-15T12-00-00-123Z.json

    Files are created exclusively. If two exports land on the same
    millisecond, the second gets a short random suffix instead of
    overwriting the first.

Retention:
    None. Every export stays on disk until an operator removes it.
"""

import json
import logging
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, List, Optional, Tuple

import aiofiles

from civil_registry.config import settings
from civil_registry.exceptions import FileStorageError

logger = logging.getLogger(__name__)

FILENAME_PREFIX = "residents_backup_"


def backup_timestamp(now: Optional[datetime] = None) -> str:
    """ISO-8601 UTC timestamp with ':' and '.' replaced by '-'."""
    now = now or datetime.now(timezone.utc)
    iso = now.astimezone(timezone.utc).isoformat(timespec="milliseconds")
    iso = iso.replace("+00:00", "Z")
    return iso.replace(":", "-").replace(".", "-")


class BackupService:
    """
    Manages the backup directory and export files.

    Directory Structure:
        backups/
        ├── residents_backup_2024-01-15T12-00-00-123Z.json
        └── residents_backup_2024-01-16T08-30-12-004Z.json
    """

    def __init__(self, backup_dir: Optional[str] = None):
        """
        Args:
            backup_dir: Override the default directory (used in tests).
                        If None, uses settings.backup_dir.
        """
        self.backup_dir = Path(backup_dir or settings.backup_dir).resolve()

    def build_filename(self, now: Optional[datetime] = None) -> str:
        return f"{FILENAME_PREFIX}{backup_timestamp(now)}.json"

    def ensure_directory(self) -> Path:
        try:
            self.backup_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.error("Cannot create backup directory %s: %s", self.backup_dir, str(e))
            raise FileStorageError(
                message="Error exporting residents data",
                error=str(e),
                context={"path": str(self.backup_dir)},
            )
        return self.backup_dir

    @staticmethod
    async def _write_new(path: Path, content: str) -> None:
        """Create `path` exclusively; raises FileExistsError if it is taken."""
        async with aiofiles.open(path, "x", encoding="utf-8") as f:
            await f.write(content)

    async def write_export(self, records: List[Any]) -> Tuple[Path, str]:
        """
        Serialize `records` (JSON-ready dicts) to a new export file.

        Returns:
            Tuple of (absolute_path, download_filename).

        Raises:
            FileStorageError if the directory or file cannot be written.
        """
        directory = self.ensure_directory()
        filename = self.build_filename()
        content = json.dumps(records, indent=2, ensure_ascii=False)

        path = directory / filename
        try:
            try:
                await self._write_new(path, content)
            except FileExistsError:
                filename = f"{path.stem}-{uuid.uuid4().hex[:6]}.json"
                path = directory / filename
                await self._write_new(path, content)
        except OSError as e:
            logger.error("Failed to write export file %s: %s", path, str(e))
            raise FileStorageError(
                message="Error exporting residents data",
                error=str(e),
                context={"path": str(path)},
            )

        logger.info("Export written: %s (%d records, %d bytes)", filename, len(records), len(content))
        return path, filename


backup_service = BackupService()
