"""Shared kernel exception hierarchy."""
from typing import Optional, Dict, Any


class DomainError(Exception):
    """Base exception for all domain errors."""

    default_code = "DOMAIN_ERROR"

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": type(self).__name__,
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class NotFoundError(DomainError):
    """Raised when a referenced Work or Unit is absent."""

    default_code = "NOT_FOUND"


class ValidationError(DomainError):
    """Raised when input is malformed, duplicated or violates a schema."""

    default_code = "VALIDATION_ERROR"


class LengthError(ValidationError):
    """Word count outside the configured bounds."""

    default_code = "LENGTH"


class DuplicationError(ValidationError):
    """Too many near-duplicate sentences."""

    default_code = "DUPLICATION"


class QualityError(ValidationError):
    """Overall quality score below the minimum."""

    default_code = "QUALITY"


class ContinuityError(ValidationError):
    """Candidate contradicts an established fact."""

    default_code = "CONTINUITY"

    def __init__(
        self,
        message: str,
        fact: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, code=code, details={**(details or {}), "fact": fact})
        self.fact = fact


class StorageError(DomainError):
    """Raised when a durable read or write fails."""

    default_code = "STORAGE_ERROR"


class GenerationError(DomainError):
    """Raised when the external content step fails or times out."""

    default_code = "GENERATION_ERROR"
