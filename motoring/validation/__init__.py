"""Record input validation."""

from motoring.validation.validator import RecordValidationError, RecordValidator

__all__ = ["RecordValidationError", "RecordValidator"]
