"""Prompt for the fast-tier formatting pass.

Converts tagged research or synthesis text into one compact JSON object that
follows a skeleton generated from the field schema.
"""

FORMATTING_PROMPT = """You are a data formatting expert. Your only task is to convert the provided "{label}" into a perfectly valid, single-line, compact JSON object that strictly adheres to the provided "JSON Schema".

**CRITICAL OUTPUT INSTRUCTIONS:**
1. The entire output must be only the raw JSON string.
2. Do not wrap the JSON in markdown code fences.
3. Do not add any explanatory text before or after the JSON string.
4. For each line in the {label}, find the [TAG] and use the corresponding information and source URLs to populate the field with the same key.
5. Fields that are arrays may hold several objects, one per line with that tag.
6. Leave a field as null when the {label} has no line for it.

---
**JSON Schema:**
{skeleton}

---
**{label}:**
{text}
"""


def build_formatting_prompt_text(text: str, skeleton: str, label: str = "Extracted Text") -> str:
    return FORMATTING_PROMPT.format(label=label, skeleton=skeleton, text=text)
