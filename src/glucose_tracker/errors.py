"""Jerarquía de errores del tracker de glucosa."""

from __future__ import annotations


class GlucoseTrackerError(Exception):
    """Base class for every error raised by the tracker."""


class StoreError(GlucoseTrackerError):
    """The backing store could not complete an operation."""


class FetchFailure(StoreError):
    """Loading a day or a date range from the store failed."""


class WriteFailure(StoreError):
    """Saving, moving, updating or deleting failed in the store."""


class ValidationFailure(GlucoseTrackerError, ValueError):
    """Input rejected before any store call."""


class MissingValue(ValidationFailure):
    """A required glucose value was not provided."""


class InvalidPosition(ValidationFailure):
    """A retest position outside the allowed anchor range."""


class InvalidRange(ValidationFailure):
    """An export range whose start is after its end."""


class RetestNotFound(ValidationFailure, LookupError):
    """No retest with the given id in the loaded day."""
