"""Core utilities for the enrichment pipeline.

The schema-driven extractor lives in enricher.core.extractor and is imported
from there directly; it depends on the models package, which depends on this
package's config.
"""

from enricher.core.config import (
    API_KEY_ENV_VAR,
    SMART_MODEL,
    SMART_FALLBACK_MODEL,
    FAST_MODEL,
    UNDISCLOSED,
    ERROR_SENTINEL,
    IDENTITY_FIELDS,
    LLMConfig,
    RetryConfig,
    SchedulerConfig,
    DocumentConfig,
    StateKeys,
    AssetConfig,
)
from enricher.core.completion_client import (
    Attachment,
    CompletionClient,
    ModelTier,
    add_citations,
    strip_code_fences,
)
from enricher.core.pipeline_logger import PipelineLogger, get_logger, reset_logger
from enricher.core.errors import (
    EnrichmentError,
    TransportError,
    MalformedOutput,
    NotFound,
    ExhaustedRetries,
    CheckpointCorrupt,
    InvocationInProgress,
    ErrorSeverity,
    ErrorCategory,
    StageError,
    PipelineErrors,
    classify,
)
from enricher.core.cost_tracker import CostTracker, CallUsage
from enricher.core.time_budget import Clock, SystemClock, TimeBudget

__all__ = [
    # Configuration
    "API_KEY_ENV_VAR",
    "SMART_MODEL",
    "SMART_FALLBACK_MODEL",
    "FAST_MODEL",
    "UNDISCLOSED",
    "ERROR_SENTINEL",
    "IDENTITY_FIELDS",
    "LLMConfig",
    "RetryConfig",
    "SchedulerConfig",
    "DocumentConfig",
    "StateKeys",
    "AssetConfig",
    # Completion client
    "Attachment",
    "CompletionClient",
    "ModelTier",
    "add_citations",
    "strip_code_fences",
    # Logging
    "PipelineLogger",
    "get_logger",
    "reset_logger",
    # Errors
    "EnrichmentError",
    "TransportError",
    "MalformedOutput",
    "NotFound",
    "ExhaustedRetries",
    "CheckpointCorrupt",
    "InvocationInProgress",
    "ErrorSeverity",
    "ErrorCategory",
    "StageError",
    "PipelineErrors",
    "classify",
    # Cost tracking
    "CostTracker",
    "CallUsage",
    # Time budget
    "Clock",
    "SystemClock",
    "TimeBudget",
]
