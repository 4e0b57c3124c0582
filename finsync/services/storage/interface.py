"""
Abstract Local Store Interface

DESIGN DECISION: The local fallback cache sits behind an abstract interface.
This allows us to:
1. Keep a JSON file cache on disk for real sessions
2. Use in-memory storage for testing
3. Keep the store and bootstrap logic decoupled from where bytes live

The interface is intentionally tiny: one JSON array per collection key.
Neither operation ever raises; the cache is a fallback, so a broken cache
must degrade to "nothing cached" rather than break the session.
"""

import json
from abc import ABC, abstractmethod
from typing import Any, Optional

import structlog

logger = structlog.get_logger(__name__)


class LocalStoreError(Exception):
    """Base exception for local cache operations. Never escapes load/save."""
    pass


class LocalStoreInterface(ABC):
    """
    Abstract interface for the local collection cache.

    Any implementation must honour the never-raise contract.
    """

    def load(self, key: str) -> Optional[list[dict[str, Any]]]:
        """
        Load the collection stored under `key`.

        Returns:
            The list of records, or None when the entry is missing,
            unreadable or not a JSON array of objects.
        """
        try:
            raw = self._read(key)
        except LocalStoreError as e:
            logger.warning("local_store_read_failed", key=key, error=str(e))
            return None
        if raw is None:
            return None
        return decode_collection(key, raw)

    def save(self, key: str, collection: list[dict[str, Any]]) -> bool:
        """
        Replace the collection stored under `key`.

        Returns:
            True if written, False on any serialization or I/O failure
        """
        try:
            payload = json.dumps(list(collection), ensure_ascii=False)
        except (TypeError, ValueError) as e:
            logger.warning("local_store_serialize_failed", key=key, error=str(e))
            return False
        try:
            self._write(key, payload)
        except LocalStoreError as e:
            logger.warning("local_store_write_failed", key=key, error=str(e))
            return False
        return True

    @abstractmethod
    def _read(self, key: str) -> Optional[str]:
        """
        Raw serialized entry for `key`, or None if absent.

        Raises:
            LocalStoreError: If the entry exists but cannot be read
        """
        pass

    @abstractmethod
    def _write(self, key: str, payload: str) -> None:
        """
        Store the serialized entry.

        Raises:
            LocalStoreError: If the entry cannot be written
        """
        pass

    @abstractmethod
    def delete(self, key: str) -> bool:
        """Remove the entry. True if something was removed."""
        pass


def decode_collection(key: str, raw: str) -> Optional[list[dict[str, Any]]]:
    """Parse a cached JSON array of objects; None when malformed."""
    try:
        data = json.loads(raw)
    except ValueError as e:
        logger.warning("local_store_corrupt", key=key, error=str(e))
        return None
    if not isinstance(data, list) or not all(isinstance(item, dict) for item in data):
        logger.warning("local_store_unexpected_shape", key=key, type=type(data).__name__)
        return None
    return data
