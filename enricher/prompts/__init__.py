"""Prompt templates for completion calls.

Each module holds the template text and a small builder that fills it in.
Field lines and JSON skeletons are generated from the schema by
enricher.core.extractor, not written here.
"""

from enricher.prompts.research_prompt import GROUP_PERSONAS, RESEARCH_PROMPT, build_research_prompt
from enricher.prompts.formatting_prompt import FORMATTING_PROMPT, build_formatting_prompt_text
from enricher.prompts.synthesis_prompt import SYNTHESIS_PROMPT, build_synthesis_prompt
from enricher.prompts.document_prompt import DOCUMENT_PROMPT, build_document_prompt

__all__ = [
    # Research
    "GROUP_PERSONAS",
    "RESEARCH_PROMPT",
    "build_research_prompt",
    # Formatting
    "FORMATTING_PROMPT",
    "build_formatting_prompt_text",
    # Synthesis
    "SYNTHESIS_PROMPT",
    "build_synthesis_prompt",
    # Documents
    "DOCUMENT_PROMPT",
    "build_document_prompt",
]
