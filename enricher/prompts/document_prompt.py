"""Prompt for document extraction from uploaded company updates.

The response shape is enforced by a JSON response schema, so the prompt only
states the task and the no-fabrication rule.
"""

DOCUMENT_PROMPT = """You are a helpful assistant that extracts information from company update documents about {name}.
Based on the provided document files, extract the required information for each field below.
You are not to find any additional information or create information, only extract. You may paraphrase what the documents say, but do not search or hallucinate.
When documents disagree, prefer the most recent one.
If you cannot find a specific piece of information, leave the corresponding field null.

**Fields:**
{categories}
"""


def build_document_prompt(name: str, categories: str) -> str:
    return DOCUMENT_PROMPT.format(name=name, categories=categories)
