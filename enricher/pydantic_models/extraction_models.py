"""Parsed stage output, before it is written to the record store."""

from pydantic import BaseModel, Field

from enricher.pydantic_models.field_values import FieldValue, error_marker, render_cell
from enricher.pydantic_models.schema import StageGroup


class StageResult(BaseModel):
    """Fields produced by one extraction+formatting round-trip.

    Keyed by canonical field key. A failed result carries the "error"
    sentinel in every field it was responsible for, so the failure is visible
    in the store instead of leaving old values in place.
    """

    group: StageGroup | None = None
    fields: dict[str, FieldValue] = Field(default_factory=dict)
    failed: bool = False
    error: str | None = None

    @classmethod
    def failure(cls, keys: list[str], error: str, group: StageGroup | None = None) -> "StageResult":
        return cls(
            group=group,
            fields={key: error_marker() for key in keys},
            failed=True,
            error=error,
        )

    def cells(self) -> dict[str, str]:
        """Field values rendered as cell text."""
        return {key: render_cell(value) for key, value in self.fields.items()}
