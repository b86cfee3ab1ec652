"""Domain exception hierarchy for the minibus package."""

from __future__ import annotations


class MinibusError(RuntimeError):
    """Base class for all minibus errors."""


class InvalidArgumentError(MinibusError, ValueError):
    """Raised when a bus operation is called with arguments it cannot accept."""


class ConfigValidationError(MinibusError):
    """Raised when configuration cannot be validated safely."""
