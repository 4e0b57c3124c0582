"""
Backend Services Package

REST client for the record collections and the health probe that gates it.
"""

from finsync.services.backend.client import (
    BackendClient,
    BackendClientError,
    BackendError,
    NetworkError,
    extract_canonical_id,
    unwrap_collection,
)
from finsync.services.backend.health import HealthProbe

__all__ = [
    # Client
    "BackendClient",
    "HealthProbe",
    # Exceptions
    "BackendClientError",
    "BackendError",
    "NetworkError",
    # Helpers
    "extract_canonical_id",
    "unwrap_collection",
]
