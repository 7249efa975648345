"""
Contactmine errors - one exception family with a category per failure domain.

Categories:
- PARSING_ERROR: content unreachable or unparseable (source-level, job continues)
- AI_ERROR: model call or response parsing failed (retried, then source-level)
- VALIDATION_ERROR: malformed enrichment input, or content rejected by a gate
- CACHE_ERROR: cache read/write failure (cache bypassed for that operation)
- EXTRACTION_ERROR: aggregation/persistence failure (fatal, job FAILED)
"""

from typing import Any, Literal

ErrorCategory = Literal[
    "PARSING_ERROR",
    "AI_ERROR",
    "VALIDATION_ERROR",
    "CACHE_ERROR",
    "EXTRACTION_ERROR",
]


class ContactExtractionError(Exception):
    """Base class for every error raised by the extraction pipeline."""

    category: ErrorCategory = "EXTRACTION_ERROR"
    default_code = "EXTRACTION_FAILED"

    def __init__(
        self,
        message: str,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.details = details or {}

    def __str__(self) -> str:
        return f"[{self.category}/{self.code}] {self.message}"


class ParsingError(ContactExtractionError):
    """Raised when a URL cannot be fetched or its content cannot be parsed."""

    category: ErrorCategory = "PARSING_ERROR"
    default_code = "PARSING_FAILED"


class AIError(ContactExtractionError):
    """Raised when the generative model cannot produce usable candidates."""

    category: ErrorCategory = "AI_ERROR"
    default_code = "AI_FAILED"


class AICallFailedError(AIError):
    """Raised after every attempt at the model call has failed."""

    default_code = "AI_CALL_FAILED"


class AIParseFailedError(AIError):
    """Raised when the model response holds no JSON array of candidates."""

    default_code = "AI_PARSE_FAILED"


class ContactValidationError(ContactExtractionError):
    """Raised for malformed enrichment input."""

    category: ErrorCategory = "VALIDATION_ERROR"
    default_code = "VALIDATION_FAILED"


class LowQualityContentError(ContactValidationError):
    """Raised when strict mode rejects a source before identification runs."""

    default_code = "LOW_QUALITY_CONTENT"


class CacheError(ContactExtractionError):
    """Raised when the extraction cache cannot be read or written."""

    category: ErrorCategory = "CACHE_ERROR"
    default_code = "CACHE_FAILED"


class ExtractionError(ContactExtractionError):
    """Raised when aggregation or persistence fails; the job is marked FAILED."""

    category: ErrorCategory = "EXTRACTION_ERROR"
    default_code = "EXTRACTION_FAILED"
