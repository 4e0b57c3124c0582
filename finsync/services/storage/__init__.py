"""
Storage Services Package

Provides the abstract local cache interface and its implementations.
The JSON file store is used for real sessions, the in-memory one for tests.
"""

from finsync.services.storage.interface import (
    LocalStoreError,
    LocalStoreInterface,
)
from finsync.services.storage.local_file import JsonFileLocalStore
from finsync.services.storage.memory import InMemoryLocalStore

__all__ = [
    # Interfaces
    "LocalStoreInterface",
    # Exceptions
    "LocalStoreError",
    # Implementations
    "InMemoryLocalStore",
    "JsonFileLocalStore",
]
