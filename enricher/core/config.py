"""Centralized configuration for the enrichment pipeline.

All magic numbers, thresholds, and configuration constants are documented here.
Each constant includes:
- What it controls
- Why this value was chosen
- What changing it affects
"""

import os
from typing import Final


# =============================================================================
# Model Configuration
# =============================================================================
#
# Model names are litellm identifiers, so any provider litellm supports can be
# swapped in through the environment:
#   - ENRICHER_SMART_MODEL: high-capability tier (grounded search, synthesis)
#   - ENRICHER_SMART_FALLBACK_MODEL: alternate variant of the smart tier
#   - ENRICHER_FAST_MODEL: fast tier (JSON formatting, document extraction)
#
# =============================================================================

API_KEY_ENV_VAR: Final[str] = os.environ.get("ENRICHER_API_KEY_ENV_VAR", "GEMINI_API_KEY")
"""Environment variable holding the completion service API key."""

SMART_MODEL: Final[str] = os.environ.get("ENRICHER_SMART_MODEL", "gemini/gemini-2.5-pro")
"""High-capability tier. Used for grounded web search and synthesis, where
reasoning quality drives everything downstream."""

SMART_FALLBACK_MODEL: Final[str] = os.environ.get(
    "ENRICHER_SMART_FALLBACK_MODEL", "gemini/gemini-2.5-pro-preview-03-25"
)
"""Preview/alternate variant of the smart tier.

Swapped in by the completion client once the smart tier has failed twice in a
row for the same call. Keeps a run alive when the primary deployment is
overloaded.
"""

FAST_MODEL: Final[str] = os.environ.get("ENRICHER_FAST_MODEL", "gemini/gemini-2.0-flash")
"""Fast tier. Used for JSON formatting passes and multimodal document reads,
which are high-volume and need little reasoning."""


# LLM Call Configuration

class LLMConfig:
    """Default parameters for completion calls."""

    TEMPERATURE: Final[float] = 0.0
    """0.0 keeps re-runs of a stage producing equivalent fields."""

    TOP_P: Final[float] = 0.95

    MAX_OUTPUT_TOKENS: Final[int] = 65536
    """Generous ceiling: grounded answers with spliced citations run long."""

    DOCUMENT_MAX_OUTPUT_TOKENS: Final[int] = 8192
    """Document extraction returns one flat JSON object, never long prose."""

    GROUNDING_TOOL: Final[dict] = {"googleSearch": {}}
    """Tool payload that switches on retrieval-augmented generation."""


# Retry Configuration

class RetryConfig:
    """Completion client retry behavior.

    Fixed delay rather than exponential backoff: the scheduler's time budget is
    the real ceiling, and a predictable worst case (3 attempts, 2 sleeps) keeps
    budget accounting simple.
    """

    MAX_ATTEMPTS: Final[int] = 3
    """Maximum attempts per complete() call, including the first."""

    DELAY_SECONDS: Final[float] = 5.0
    """Sleep between attempts. Never slept after the final attempt."""

    FALLBACK_FROM_ATTEMPT: Final[int] = 2
    """Zero-based attempt index from which the smart tier uses
    SMART_FALLBACK_MODEL (i.e. the second retry)."""


# Scheduler Configuration

class SchedulerConfig:
    """Time-boxing for resume() invocations.

    The host kills an invocation at HARD_LIMIT_SECONDS. resume() checks
    TIME_BUDGET_SECONDS before starting each entity, so an entity that starts
    just under the budget still has a minute of headroom to finish.
    """

    TIME_BUDGET_SECONDS: Final[float] = 5 * 60
    """Elapsed time after which resume() yields before the next entity."""

    HARD_LIMIT_SECONDS: Final[float] = 6 * 60
    """Platform ceiling. Informational; never enforced in code."""

    ENTITIES_PER_INVOCATION: Final[int] = 1
    """Item ceiling per invocation. One entity keeps a worst-case web
    enrichment (6 calls, each up to 3 attempts) inside the hard limit."""

    TRIGGER_PERIOD_SECONDS: Final[float] = 60.0
    """How often the recurring trigger calls resume()."""

    RATE_LIMIT_DELAY_SECONDS: Final[float] = 1.0
    """Blocking pause after each entity's external calls."""

    HISTORY_LIMIT: Final[int] = 50
    """Stage outcomes kept in the checkpoint for `status` output."""

    RESUME_HANDLER: Final[str] = "resume"
    """Handler name the recurring trigger is registered under."""


# Document Selection

class DocumentConfig:
    """Which uploaded documents feed document extraction."""

    RECENCY_WINDOW_DAYS: Final[int] = 180
    """Documents modified within this window are preferred."""

    MAX_RECENT_DOCUMENTS: Final[int] = 3
    """Cap on in-window documents sent in one multimodal call."""

    FALLBACK_DOCUMENT_COUNT: Final[int] = 2
    """When nothing is in-window, take this many most recent documents."""

    SUPPORTED_MIME_TYPES: Final[frozenset[str]] = frozenset({"application/pdf"})

    ARCHIVE_MARKER: Final[str] = "archives"
    """Folders whose name contains this (case-insensitive) are ignored."""


# Persisted State

class StateKeys:
    """Well-known keys in the persisted state store."""

    PROCESS_QUEUE: Final[str] = "PROCESS_QUEUE"
    """Checkpoint: JSON-encoded work descriptor list plus cursor."""

    FIELD_SCHEMA: Final[str] = "FIELD_SCHEMA"
    """Optional JSON-encoded UnifiedFieldSchema override."""

    TRIGGERS: Final[str] = "TRIGGERS"
    """Registered recurring triggers."""


# Report Assets

class AssetConfig:
    """URL templates used to resolve report images."""

    LOGO_URL: Final[str] = (
        "https://t3.gstatic.com/faviconV2?client=SOCIAL&type=FAVICON"
        "&fallback_opts=TYPE,SIZE,URL&url=http://{domain}&size=128"
    )
    DEFAULT_LOGO_DOMAIN: Final[str] = os.environ.get("ENRICHER_DEFAULT_LOGO_DOMAIN", "startupbootcamp.org")
    FLAG_URL: Final[str] = "https://flagsapi.com/{code}/flat/64.png"

    DEFAULT_TEMPLATE_ID: Final[str] = "onepager"
    """Template used by report generation unless a descriptor names another."""


# Sentinels

UNDISCLOSED: Final[str] = "Undisclosed"
"""Written for a declared field the model left absent or null."""

ERROR_SENTINEL: Final[str] = "error"
"""Written over a stage group's fields when that group failed."""

IDENTITY_FIELDS: Final[tuple[str, ...]] = ("name", "website", "sector", "location")
"""Copied verbatim from the source record into the final partition."""
