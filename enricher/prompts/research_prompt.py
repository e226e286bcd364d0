"""Prompts for grounded web research (web enrichment, extraction pass).

The research call runs on the smart tier with search grounding. It answers in
tagged lines, one fact per line, so the formatting pass can map each line onto
a canonical field key.
"""

from enricher.pydantic_models.schema import StageGroup

GROUP_PERSONAS: dict[StageGroup, tuple[str, str]] = {
    StageGroup.GENERAL_INFO: ("market analyst", "extract key qualitative information"),
    StageGroup.METRICS: ("financial analyst", "extract key performance metrics"),
    StageGroup.FUNDING: ("venture capital analyst", "extract all relevant fundraising information"),
}
"""Persona and objective per stage group."""

DEFAULT_PERSONA: tuple[str, str] = ("research analyst", "extract all information listed below")

RESEARCH_PROMPT = """You are a {persona}. Your task is to perform in-depth market research on {name} ({website}) and {objective}.

**Instructions:**
1. Use your search capabilities to find information for each category listed below.
2. For each piece of information you find, write it on a new line.
3. Start each line with the category's [TAG] exactly as written below.
4. If you find multiple distinct items for one category (like two different news articles), create a separate line for each.
5. State values with their context (date, period, currency). Report monetary values in their original currency.
6. If after a thorough search you cannot find information for a category, do not include the tag.
7. Do not generate or fabricate information. Every statement must be grounded in a verifiable source.

---
**Categories to Extract:**

{categories}
"""


def build_research_prompt(name: str, website: str, group: StageGroup, categories: str) -> str:
    persona, objective = GROUP_PERSONAS.get(group, DEFAULT_PERSONA)
    return RESEARCH_PROMPT.format(
        persona=persona,
        objective=objective,
        name=name,
        website=website or "website unknown",
        categories=categories,
    )
