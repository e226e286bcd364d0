"""Import organizations from a CRM export into the CRM partition.

The export is the JSON returned by the CRM's company search endpoint: either a
list of ``{"properties": {...}}`` objects or ``{"results": [...]}``. Each
company is registered in the record store (names are case-insensitive) and
its mapped properties are written to the CRM partition. The cohort property
groups companies so a whole cohort can be submitted at once.
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from enricher.collaborators.record_store import RecordStore, write_fields
from enricher.pydantic_models.schema import PartitionKind, UnifiedFieldSchema

logger = logging.getLogger(__name__)

CRM_PROPERTY_MAP: dict[str, str] = {
    "name": "name",
    "n1_4__company___industry": "sector",
    "website": "website",
    "n5_3_05__updated_company_description": "companySummary",
    "n5_3_06__current_number_of_full_time_employees": "employeeCount",
    "n5_3_09__total_amount_of_money_raised_to_date": "totalCapitalRaised",
    "n5_0_06__alumni___latest_funding_round___date": "lastRoundDate",
    "n5_0_08__alumni___raising_round": "lastRoundType",
    "n5_3_10__how_much_are_they_currently_fundraising_": "targetAmount",
    "n5_3_11__how_much_out_of_this_amount_is_already_committed": "committedAmount",
    "n5_2_09__what_are_the_basic_terms_of_this_raise": "terms",
    "n5_03_00__company_valuation": "currentValuation",
    "n5_3_12__what_is_your_current_annual_recurring_revenue__arr_": "arr",
    "n5_3_11__what_is_your_current_company_runway": "cashRunway",
    "n5_3_10__last_6_month_highlights": "recentHighlightsAndNews",
}
"""CRM property name -> canonical field key."""

COHORT_PROPERTY = "program_name"


@dataclass
class CrmImportResult:
    imported: list[str] = field(default_factory=list)
    skipped: int = 0
    cohorts: dict[str, list[str]] = field(default_factory=dict)


def _companies(export: Any) -> list[dict]:
    if isinstance(export, dict):
        export = export.get("results", [])
    if not isinstance(export, list):
        raise ValueError("CRM export must be a list of companies or an object with 'results'")
    return [c for c in export if isinstance(c, dict)]


def map_properties(properties: dict[str, Any], property_map: dict[str, str] = CRM_PROPERTY_MAP) -> dict[str, str]:
    """Map CRM properties to canonical keys, dropping empty values."""
    mapped = {}
    for prop, key in property_map.items():
        value = properties.get(prop)
        if value is None:
            continue
        text = str(value).strip()
        if text:
            mapped[key] = text
    return mapped


def import_crm_export(
    export: Any,
    store: RecordStore,
    schema: UnifiedFieldSchema,
    property_map: dict[str, str] = CRM_PROPERTY_MAP,
) -> CrmImportResult:
    """Register every company in the export and write its CRM fields."""
    result = CrmImportResult()
    declared = set(schema.keys)

    for company in _companies(export):
        properties = company.get("properties", company)
        name = str(properties.get("name") or "").strip()
        if not name:
            result.skipped += 1
            logger.warning("Skipping CRM company without a name")
            continue

        cohort = str(properties.get(COHORT_PROPERTY) or "").strip() or None
        record = store.register(name, cohort=cohort)

        fields = {k: v for k, v in map_properties(properties, property_map).items() if k in declared}
        write_fields(store, schema, record.entity_id, PartitionKind.CRM, fields)

        result.imported.append(record.name)
        if cohort:
            result.cohorts.setdefault(cohort, []).append(record.name)

    logger.info(f"Imported {len(result.imported)} companies from CRM export ({result.skipped} skipped)")
    return result


def load_crm_export(path: str | Path) -> Any:
    return json.loads(Path(path).read_text(encoding="utf-8"))
