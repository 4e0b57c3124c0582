"""Audit logging package."""

from finsync.audit.logger import SyncAuditLogger, configure_logging

__all__ = ["SyncAuditLogger", "configure_logging"]
