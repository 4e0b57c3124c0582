"""In-memory local store for tests and throwaway sessions."""

from typing import Optional

from finsync.services.storage.interface import LocalStoreInterface


class InMemoryLocalStore(LocalStoreInterface):
    """Keeps serialized entries in a dict, exactly as the file store would write them."""

    def __init__(self):
        self.entries: dict[str, str] = {}

    def _read(self, key: str) -> Optional[str]:
        return self.entries.get(key)

    def _write(self, key: str, payload: str) -> None:
        self.entries[key] = payload

    def delete(self, key: str) -> bool:
        return self.entries.pop(key, None) is not None
