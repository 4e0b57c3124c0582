"""Validation package."""

from finsync.validation.validator import FieldValidator, ValidationError

__all__ = ["FieldValidator", "ValidationError"]
