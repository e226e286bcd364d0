"""Unified field schema: the single source of truth for business fields.

Every canonical field key declares:
- where it is stored in each record partition (column header),
- the prompt fragment used to ask the completion service for it,
- whether it is multi-valued,
- which web-enrichment stage group it belongs to.

The schema is constructed once (built-in default, or a JSON override from the
state store) and injected into every component. It is frozen; nothing mutates
it during a run.
"""

from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator


class StageGroup(str, Enum):
    """Sub-partition of the schema scoped to one extraction+formatting round-trip."""

    GENERAL_INFO = "generalInfo"
    METRICS = "keyMetrics"
    FUNDING = "funding"
    NONE = "none"

    def __str__(self) -> str:
        return self.value


ENRICHMENT_GROUPS: tuple[StageGroup, ...] = (
    StageGroup.GENERAL_INFO,
    StageGroup.METRICS,
    StageGroup.FUNDING,
)
"""Groups processed by web enrichment, in order."""


class PartitionKind(str, Enum):
    """Record partitions an entity's fields live in."""

    INTERNAL = "internal"      # Manual data and document extraction
    CRM = "crm"                # CRM import
    DISCOVERED = "discovered"  # Web enrichment
    FINAL = "final"            # Synthesis output, read by report generation

    def __str__(self) -> str:
        return self.value


class FieldSpec(BaseModel):
    """Declaration of one canonical field."""

    model_config = ConfigDict(frozen=True)

    key: str = Field(description="Canonical field key, stable across all stages")
    label: str = Field(description="Default column header")
    prompt: str = Field(default="", description="Instruction fragment sent to the model")
    multi_valued: bool = False
    group: StageGroup = StageGroup.NONE
    value_kind: Literal["text", "boolean"] = "text"
    partitions: tuple[PartitionKind, ...] = tuple(PartitionKind)
    columns: dict[PartitionKind, str] = Field(
        default_factory=dict,
        description="Per-partition column override; defaults to label",
    )

    def column(self, partition: PartitionKind) -> str | None:
        """Column this field occupies in a partition, or None if not stored there."""
        if partition not in self.partitions:
            return None
        return self.columns.get(partition, self.label)


class UnifiedFieldSchema(BaseModel):
    """Immutable, ordered collection of FieldSpecs."""

    model_config = ConfigDict(frozen=True)

    fields: tuple[FieldSpec, ...]

    @model_validator(mode="after")
    def _unique_keys(self) -> "UnifiedFieldSchema":
        seen: set[str] = set()
        for spec in self.fields:
            if spec.key in seen:
                raise ValueError(f"Duplicate field key in schema: {spec.key}")
            seen.add(spec.key)
        return self

    @property
    def keys(self) -> list[str]:
        return [spec.key for spec in self.fields]

    def get(self, key: str) -> FieldSpec:
        for spec in self.fields:
            if spec.key == key:
                return spec
        raise KeyError(key)

    def for_group(self, group: StageGroup | None) -> list[FieldSpec]:
        """Fields in a stage group. ``None`` means every enrichable field."""
        if group is None:
            return self.enrichable()
        return [spec for spec in self.fields if spec.group == group]

    def enrichable(self) -> list[FieldSpec]:
        """Fields that belong to some stage group."""
        return [spec for spec in self.fields if spec.group != StageGroup.NONE]

    def to_columns(self, field_map: dict[str, str], partition: PartitionKind) -> dict[str, str]:
        """Map canonical keys to this partition's columns.

        Raises:
            KeyError: If a key is not declared in the schema.
        """
        row: dict[str, str] = {}
        for key, value in field_map.items():
            column = self.get(key).column(partition)
            if column is not None:
                row[column] = value
        return row

    def from_columns(self, row: dict[str, str], partition: PartitionKind) -> dict[str, str]:
        """Map a partition row back to canonical keys, dropping blank cells."""
        data: dict[str, str] = {}
        for spec in self.fields:
            column = spec.column(partition)
            if column is None:
                continue
            value = row.get(column)
            if value not in (None, ""):
                data[spec.key] = value
        return data


def _field(
    key: str,
    label: str,
    prompt: str = "",
    group: StageGroup = StageGroup.NONE,
    multi_valued: bool = False,
    value_kind: Literal["text", "boolean"] = "text",
    partitions: tuple[PartitionKind, ...] = tuple(PartitionKind),
) -> FieldSpec:
    return FieldSpec(
        key=key,
        label=label,
        prompt=prompt,
        group=group,
        multi_valued=multi_valued,
        value_kind=value_kind,
        partitions=partitions,
    )


_GI = StageGroup.GENERAL_INFO
_KM = StageGroup.METRICS
_FU = StageGroup.FUNDING

DEFAULT_FIELDS: tuple[FieldSpec, ...] = (
    # Identity
    _field("name", "Name"),
    _field("source", "Source"),
    _field("sector", "Sector"),
    _field("website", "Website"),
    _field("location", "Location"),
    # General info
    _field("companySummary", "Company Summary",
           "A 2-3 sentence overview of the company's mission and core product.", _GI),
    _field("businessModel", "Business Model",
           "The company's primary business model (e.g., B2B SaaS, Marketplace).", _GI),
    _field("keyDifferentiators", "Key Differentiators",
           "A unique aspect of their technology, partnerships, or market strategy.", _GI, True),
    _field("recentHighlightsAndNews", "Recent Highlights and News",
           "A significant recent milestone, product update, or partnership. Include the date if available.",
           _GI, True),
    _field("strategicFocus", "Strategic Focus",
           "A current strategic priority, such as a fundraising goal or product launch.", _GI),
    _field("risks", "Risks", "A potential risk or challenge facing the company.", _GI, True),
    _field("founders", "Founders", "The founders or co-founders of the company and their roles.", _GI, True),
    _field("founderCommentary", "Founder Commentary",
           "A direct quote or paraphrased statement from a founder, followed by the speaker's name and title.",
           _GI, True),
    _field("fundCommentary", "Fund Commentary",
           "A direct quote or paraphrased statement from an investment fund about the company.", _GI, True),
    # Key metrics
    _field("currentValuation", "Current Valuation", "The most recent company valuation.", _KM),
    _field("arr", "ARR (Annual Recurring Revenue)", "Annual recurring revenue, with period and currency.", _KM),
    _field("grossProfit", "Gross Profit", "Gross profit or gross margin, with period.", _KM),
    _field("cashRunway", "Runway", "Remaining cash runway in months.", _KM),
    _field("employeeCount", "Employee Count",
           "Number of employees. Specify if approximate (e.g., from LinkedIn).", _KM),
    _field("customerCount", "Customer Count",
           "Number of customers. Specify if it is a minimum (e.g., \"over 1,000\").", _KM),
    _field("retention", "Retention (Customer or Revenue)",
           "Retention rate. Specify the type (e.g., Net Revenue Retention).", _KM),
    # Funding
    _field("totalCapitalRaised", "Total Capital Raised", "Total capital raised to date.", _FU),
    _field("initialInvestment", "Initial Investment", "Initial investment amount and type.", _FU),
    _field("leadInvestor", "Lead Investor", "Lead investor(s) of the last round.", _FU),
    _field("lastRoundDate", "Last Round: Date", "Date of the last funding round.", _FU),
    _field("lastRoundType", "Last Round: Type", "Type of the last funding round (e.g., Seed, Series A).", _FU),
    _field("lastRoundAmount", "Last Round: Amount", "Amount raised in the last round.", _FU),
    _field("isCurrentlyRaising", "Currently Raising?",
           "Whether the company is currently raising. State \"Yes\" or \"No\".", _FU, value_kind="boolean"),
    _field("targetAmount", "Current Raise: Target", "Target amount of the current raise.", _FU),
    _field("committedAmount", "Current Raise: Committed", "Amount already committed in the current raise.", _FU),
    _field("committedPercent", "Current Raise: Committed Percent",
           "Committed amount as a percentage of the target.", _FU),
    _field("preMoneyValuation", "Current Raise: Pre Money", "Pre-money valuation of the current raise.", _FU),
    _field("postMoneyValuation", "Current Raise: Post Money", "Post-money valuation of the current raise.", _FU),
    _field("terms", "Current Raise: Terms", "Terms of the current raise (e.g., SAFE, priced round).", _FU),
    # Output
    _field("reportLink", "Report Link", partitions=(PartitionKind.FINAL,)),
)


def default_schema() -> UnifiedFieldSchema:
    """The built-in schema used when no override is persisted."""
    return UnifiedFieldSchema(fields=DEFAULT_FIELDS)
