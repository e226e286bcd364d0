"""Per-entity stages.

Each stage is a separate class so it can be tested and retried in isolation.
Stages read and write the record store through a shared StageContext (see
stage_base.py); the executor turns their exceptions into stage statuses.
"""

from enricher.stages.stage_base import (
    InvocationState,
    ReportRenderer,
    StageConfig,
    StageContext,
    StageReport,
    StageResources,
    StageRunner,
)
from enricher.stages.document_extraction_stage import DocumentExtractionStage
from enricher.stages.web_enrichment_stage import WebEnrichmentStage
from enricher.stages.synthesis_stage import SynthesisStage
from enricher.stages.report_generation_stage import ReportGenerationStage
from enricher.stages.executor import StageExecutor, default_runners

__all__ = [
    # Base
    "InvocationState",
    "ReportRenderer",
    "StageConfig",
    "StageContext",
    "StageReport",
    "StageResources",
    "StageRunner",
    # Stages
    "DocumentExtractionStage",
    "WebEnrichmentStage",
    "SynthesisStage",
    "ReportGenerationStage",
    # Execution
    "StageExecutor",
    "default_runners",
]
