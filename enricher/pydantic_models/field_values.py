"""Field values produced by the completion service.

The service returns loosely shaped JSON: a field may come back as a plain
string, a ``{"description": ..., "sources": [...]}`` object, or an array of
such objects. Everything is normalized into one tagged union at the parse
boundary so downstream code never inspects shapes:

    FieldValue = Scalar | Described | DescribedList

Cells in the record store are plain text, so every variant also knows how to
render itself into a cell.
"""

import json
import re
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

from enricher.core.config import ERROR_SENTINEL, UNDISCLOSED


class Scalar(BaseModel):
    """A bare value: string, number, or boolean."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["scalar"] = "scalar"
    value: str | int | float | bool


class Described(BaseModel):
    """A statement with the sources that support it."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["described"] = "described"
    description: str
    sources: tuple[str, ...] = ()
    date: str | None = None


class DescribedList(BaseModel):
    """Multiple statements for a multi-valued field (risks, news, ...)."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["list"] = "list"
    items: tuple[Described, ...]


FieldValue = Annotated[Union[Scalar, Described, DescribedList], Field(discriminator="kind")]


def undisclosed() -> Scalar:
    return Scalar(value=UNDISCLOSED)


def error_marker() -> Scalar:
    return Scalar(value=ERROR_SENTINEL)


def is_undisclosed(value: Scalar | Described | DescribedList) -> bool:
    """True if the value carries no information."""
    if isinstance(value, Scalar):
        return value.value == UNDISCLOSED
    if isinstance(value, Described):
        return value.description == UNDISCLOSED and not value.sources
    return False


def _clean_sources(raw: Any) -> tuple[str, ...]:
    if raw is None:
        return ()
    if isinstance(raw, str):
        raw = [raw]
    if not isinstance(raw, list):
        return ()
    return tuple(str(s).strip() for s in raw if s is not None and str(s).strip())


def _normalize_described(raw: dict) -> Described:
    description = raw.get("description")
    description = str(description).strip() if description is not None else ""
    date = raw.get("date")
    return Described(
        description=description or UNDISCLOSED,
        sources=_clean_sources(raw.get("sources")),
        date=str(date).strip() or None if date else None,
    )


def _normalize_item(raw: Any) -> Described | None:
    if raw is None:
        return None
    if isinstance(raw, dict):
        item = _normalize_described(raw)
        return None if is_undisclosed(item) else item
    text = str(raw).strip()
    return Described(description=text) if text else None


def normalize_value(raw: Any) -> Scalar | Described | DescribedList:
    """Normalize one raw JSON value into a FieldValue.

    - null / missing / blank string / empty list -> Undisclosed
    - object with "description" -> Described (trimmed, sources cleaned)
    - array -> DescribedList of normalized items
    - string / number / boolean -> Scalar
    - any other object -> Scalar holding its compact JSON
    """
    if raw is None:
        return undisclosed()
    if isinstance(raw, bool) or isinstance(raw, (int, float)):
        return Scalar(value=raw)
    if isinstance(raw, str):
        text = raw.strip()
        return Scalar(value=text) if text else undisclosed()
    if isinstance(raw, dict):
        if "description" in raw:
            return _normalize_described(raw)
        return Scalar(value=json.dumps(raw, ensure_ascii=False, sort_keys=True))
    if isinstance(raw, list):
        items = tuple(item for item in (_normalize_item(r) for r in raw) if item is not None)
        return DescribedList(items=items) if items else undisclosed()
    return Scalar(value=str(raw))


def _yes_no(text: str) -> str:
    lowered = text.strip().lower()
    if lowered in ("yes", "true", "y"):
        return "Yes"
    if lowered in ("no", "false", "n"):
        return "No"
    return UNDISCLOSED


def normalize_boolean(value: Scalar | Described | DescribedList) -> Scalar | Described | DescribedList:
    """Coerce a yes/no field to "Yes", "No" or Undisclosed, keeping sources."""
    if isinstance(value, Scalar):
        if isinstance(value.value, bool):
            return Scalar(value="Yes" if value.value else "No")
        return Scalar(value=_yes_no(str(value.value)))
    if isinstance(value, Described):
        return value.model_copy(update={"description": _yes_no(value.description)})
    if isinstance(value, DescribedList):
        if not value.items:
            return undisclosed()
        return normalize_boolean(value.items[0])
    raise TypeError(f"Unsupported field value: {type(value).__name__}")


def render_cell(value: Scalar | Described | DescribedList) -> str:
    """Render a FieldValue as cell text.

    Described values become the description followed by a ``Sources:`` block;
    list items are separated by blank lines.
    """
    if isinstance(value, Scalar):
        if isinstance(value.value, bool):
            return "Yes" if value.value else "No"
        return str(value.value)
    if isinstance(value, Described):
        text = f"{value.date}: {value.description}" if value.date else value.description
        if value.sources:
            text += "\n\nSources:\n" + "\n".join(value.sources)
        return text
    if isinstance(value, DescribedList):
        if not value.items:
            return UNDISCLOSED
        return "\n\n".join(render_cell(item) for item in value.items)
    raise TypeError(f"Unsupported field value: {type(value).__name__}")


_SOURCES_BLOCK = re.compile(r"\n\nSources:\n[^\n]*(?:\n(?!\n)[^\n]*)*")


def strip_sources(cell: str) -> str:
    """Drop the ``Sources:`` blocks render_cell appends, keeping the statements."""
    return _SOURCES_BLOCK.sub("", cell)

