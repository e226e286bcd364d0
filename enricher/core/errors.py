"""Error types for the enrichment pipeline.

Two families live here:
- Exceptions raised across component seams (transport, malformed output,
  missing rows/documents, exhausted retries, untrustworthy checkpoint).
- Structured, non-raising error records that stages accumulate per invocation
  so one entity's failure is reported without halting the queue.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class EnrichmentError(Exception):
    """Base class for all pipeline exceptions."""


class TransportError(EnrichmentError):
    """Network or HTTP failure calling the completion service."""


class MalformedOutput(EnrichmentError):
    """Model output does not match the expected shape.

    Raised by the completion client when the response lacks text, and by the
    extractor when the text cannot be parsed into a structured object.
    """

    def __init__(self, message: str, raw_output: str | None = None):
        super().__init__(message)
        self.raw_output = raw_output


class NotFound(EnrichmentError):
    """An entity, row, or document does not exist."""


class ExhaustedRetries(EnrichmentError):
    """Every attempt of a completion call failed."""

    def __init__(self, attempts: int, last_error: Exception):
        super().__init__(f"Completion failed after {attempts} attempts. Last error: {last_error}")
        self.attempts = attempts
        self.last_error = last_error


class CheckpointCorrupt(EnrichmentError):
    """The persisted checkpoint cannot be read or validated.

    The only error that aborts a whole resume() invocation.
    """


class InvocationInProgress(EnrichmentError):
    """Another resume() invocation holds the checkpoint."""


class ErrorSeverity(Enum):
    """Severity levels for recorded stage errors."""
    WARNING = "warning"   # Stage skipped, entity continued
    ERROR = "error"       # Stage failed for this entity, queue continued
    CRITICAL = "critical" # Invocation halted


class ErrorCategory(Enum):
    """Categories of recorded stage errors."""
    TRANSPORT = "transport"       # Completion service unreachable after retries
    MALFORMED = "malformed"       # Unparseable model output
    NOT_FOUND = "not_found"       # Missing entity, row, or document
    CHECKPOINT = "checkpoint"     # Persisted state unreadable
    UNKNOWN = "unknown"


@dataclass
class StageError:
    """Structured stage error with context."""

    category: ErrorCategory
    severity: ErrorSeverity
    message: str
    stage: str
    entity: str | None = None
    original_error: Exception | None = None
    context: dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        parts = [f"[{self.severity.value.upper()}] {self.category.value}: {self.message}"]
        if self.entity:
            parts.append(f"entity={self.entity}")
        if self.stage:
            parts.append(f"stage={self.stage}")
        return " | ".join(parts)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "category": self.category.value,
            "severity": self.severity.value,
            "message": self.message,
            "stage": self.stage,
            "entity": self.entity,
            "context": self.context,
        }


@dataclass
class PipelineErrors:
    """Aggregate errors across one resume() invocation."""

    errors: list[StageError] = field(default_factory=list)
    warnings: list[StageError] = field(default_factory=list)
    failed_entities: list[str] = field(default_factory=list)

    def add(self, error: StageError):
        """Add an error or warning."""
        if error.severity == ErrorSeverity.WARNING:
            self.warnings.append(error)
        else:
            self.errors.append(error)
            if error.entity and error.entity not in self.failed_entities:
                self.failed_entities.append(error.entity)

    @property
    def error_count(self) -> int:
        return len(self.errors)

    @property
    def warning_count(self) -> int:
        return len(self.warnings)

    def summary(self) -> dict:
        """Get summary statistics."""
        by_category = {}
        for error in self.errors:
            cat = error.category.value
            by_category[cat] = by_category.get(cat, 0) + 1

        return {
            "total_errors": self.error_count,
            "total_warnings": self.warning_count,
            "failed_entities": len(self.failed_entities),
            "errors_by_category": by_category,
        }


def classify(exc: Exception, stage: str, entity: str | None = None) -> StageError:
    """Turn a stage exception into a StageError record.

    NotFound is a warning (the stage is skipped); everything else fails the
    stage for this entity only.
    """
    if isinstance(exc, NotFound):
        category, severity = ErrorCategory.NOT_FOUND, ErrorSeverity.WARNING
    elif isinstance(exc, MalformedOutput):
        category, severity = ErrorCategory.MALFORMED, ErrorSeverity.ERROR
    elif isinstance(exc, (ExhaustedRetries, TransportError)):
        category, severity = ErrorCategory.TRANSPORT, ErrorSeverity.ERROR
    elif isinstance(exc, CheckpointCorrupt):
        category, severity = ErrorCategory.CHECKPOINT, ErrorSeverity.CRITICAL
    else:
        category, severity = ErrorCategory.UNKNOWN, ErrorSeverity.ERROR

    context = {}
    if isinstance(exc, MalformedOutput) and exc.raw_output:
        context["raw_output"] = exc.raw_output[:500]

    return StageError(
        category=category,
        severity=severity,
        message=str(exc),
        stage=stage,
        entity=entity,
        original_error=exc,
        context=context,
    )
