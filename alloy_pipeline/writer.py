"""
Atomic configuration file writer.

The rendered document is written to a temporary file next to the
destination, flushed to disk and renamed into place. A failed write
leaves the previous configuration untouched and no partial file behind.
"""

import logging
import os
import shutil
import tempfile
import time
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Union

from alloy_pipeline.logging_config import log_config_operation

logger = logging.getLogger("alloy_pipeline.writer")

DEFAULT_CONFIG_PATH = "/etc/alloy/config.alloy"
DEFAULT_FILE_MODE = 0o644


class ConfigWriter:
    """Writes generated configuration documents to a well-known path."""

    def __init__(self, path: Union[str, Path] = DEFAULT_CONFIG_PATH, backup_count: int = 0):
        """
        Initialize writer.

        Args:
            path: Destination configuration file
            backup_count: Timestamped backups of the previous file to keep (0 disables)
        """
        self.path = Path(path)
        self.backup_count = backup_count

    def write(self, text: str) -> Path:
        """
        Atomically replace the destination with ``text``.

        Args:
            text: Complete configuration document

        Returns:
            Path of the written file

        Raises:
            OSError: If the directory cannot be created or the file cannot be written
            UnicodeEncodeError: If the text cannot be encoded as UTF-8
        """
        start_time = time.time()
        directory = self.path.parent
        directory.mkdir(parents=True, exist_ok=True)

        mode = DEFAULT_FILE_MODE
        if self.path.exists():
            mode = self.path.stat().st_mode & 0o777

        backup_file = None
        if self.backup_count > 0:
            backup_file = self._create_timestamped_backup()

        fd, temp_name = tempfile.mkstemp(
            dir=directory, prefix=f".{self.path.name}.", suffix=".tmp"
        )
        temp_path = Path(temp_name)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(text)
                f.flush()
                os.fsync(f.fileno())
            os.chmod(temp_path, mode)
            os.replace(temp_path, self.path)
        except BaseException as e:
            temp_path.unlink(missing_ok=True)
            logger.error(f"Failed to write config to {self.path}: {e}")
            log_config_operation("write", success=False, path=str(self.path), error=str(e))
            raise

        if self.backup_count > 0:
            self._cleanup_old_backups(keep_count=self.backup_count)

        duration_ms = int((time.time() - start_time) * 1000)
        logger.info(f"Wrote {len(text)} bytes to {self.path} in {duration_ms}ms")
        log_config_operation(
            "write",
            success=True,
            path=str(self.path),
            details={
                "bytes": len(text),
                "lines": len(text.splitlines()),
                "backup": backup_file.name if backup_file else None,
                "duration_ms": duration_ms,
            },
        )
        return self.path

    def current(self) -> Optional[str]:
        """Return the current configuration, or None if there is none."""
        if not self.path.exists():
            return None
        return self.path.read_text(encoding="utf-8")

    def _create_timestamped_backup(self) -> Optional[Path]:
        """
        Copy the current configuration to a timestamped backup.

        Returns:
            Path to backup file if created, None if there was nothing to back up
        """
        if not self.path.exists():
            logger.debug("No existing config to backup")
            return None

        if self.path.stat().st_size == 0:
            logger.warning("Current config is empty, skipping backup")
            return None

        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        backup_file = self.path.with_name(f"{self.path.name}.backup.{timestamp}")
        shutil.copy2(self.path, backup_file)
        logger.info(f"Created timestamped backup: {backup_file.name}")
        return backup_file

    def _get_backup_files(self) -> List[Path]:
        """Backup files sorted newest first."""
        backups = list(self.path.parent.glob(f"{self.path.name}.backup.*"))
        backups.sort(key=lambda p: p.stat().st_mtime, reverse=True)
        return backups

    def _cleanup_old_backups(self, keep_count: int) -> None:
        """
        Remove old backup files, keeping only the most recent ones.

        Args:
            keep_count: Number of recent backups to keep
        """
        for old_backup in self._get_backup_files()[keep_count:]:
            try:
                old_backup.unlink()
                logger.debug(f"Removed old backup: {old_backup.name}")
            except OSError as e:
                logger.warning(f"Failed to remove old backup {old_backup.name}: {e}")
