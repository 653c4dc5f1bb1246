"""Exceptions raised by the staffing simulation engine."""
from __future__ import annotations


class StaffsimError(RuntimeError):
    """Base class for every error raised by :mod:`staffsim`."""


class InvalidParameter(StaffsimError, ValueError):
    """Raised for a non-positive ratio, shift, rate or iteration count, or an unsupported option."""


class InvalidTaskProfile(StaffsimError, ValueError):
    """Raised when task statistics are inconsistent (``min >= max``, frequency outside ``(0, 1]``)."""


class NotFound(StaffsimError, LookupError):
    """Raised when a named scenario is missing from a scenario group."""


class InsufficientData(StaffsimError):
    """Raised when the task statistics are too thin to simulate on."""


__all__ = [
    "StaffsimError",
    "InvalidParameter",
    "InvalidTaskProfile",
    "NotFound",
    "InsufficientData",
]
