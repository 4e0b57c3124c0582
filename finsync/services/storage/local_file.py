"""
JSON File Local Store

One JSON file per collection key inside a namespaced directory.

Writes go to a temp file in the same directory and are moved into place
with os.replace, so a crash mid-write leaves the previous file intact.
Transient OSErrors on write are retried with tenacity.
"""

import os
import re
import tempfile
from pathlib import Path
from typing import Optional

import structlog
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from finsync.config import get_settings, resolve_data_dir
from finsync.services.storage.interface import LocalStoreError, LocalStoreInterface

logger = structlog.get_logger(__name__)

KEY_PATTERN = re.compile(r"^[A-Za-z0-9_.-]+$")


class JsonFileLocalStore(LocalStoreInterface):
    """File-backed local cache."""

    def __init__(
        self,
        directory: Optional[Path] = None,
        write_attempts: Optional[int] = None,
    ):
        self.directory = resolve_data_dir(directory)
        attempts = write_attempts or get_settings().storage.write_attempts

        self._write_with_retry = retry(
            stop=stop_after_attempt(attempts),
            wait=wait_exponential(multiplier=0.05, min=0.05, max=0.5),
            retry=retry_if_exception_type(OSError),
            reraise=True,
        )(self._write_once)

    def path_for(self, key: str) -> Path:
        if not KEY_PATTERN.match(key) or key.startswith("."):
            raise LocalStoreError(f"Invalid cache key: {key!r}")
        return self.directory / f"{key}.json"

    def _read(self, key: str) -> Optional[str]:
        path = self.path_for(key)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as e:
            raise LocalStoreError(f"Failed to read {path}: {e}") from e

    def _write(self, key: str, payload: str) -> None:
        path = self.path_for(key)
        try:
            self._write_with_retry(path, payload)
        except OSError as e:
            raise LocalStoreError(f"Failed to write {path}: {e}") from e
        logger.debug("local_store_written", key=key, bytes=len(payload))

    def _write_once(self, path: Path, payload: str) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, temp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.stem}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(payload)
            os.replace(temp_name, path)
        except OSError:
            try:
                os.unlink(temp_name)
            except FileNotFoundError:
                pass
            raise

    def delete(self, key: str) -> bool:
        try:
            path = self.path_for(key)
            path.unlink()
        except FileNotFoundError:
            return False
        except (OSError, LocalStoreError) as e:
            logger.warning("local_store_delete_failed", key=key, error=str(e))
            return False
        return True
