"""
Persistence boundary conversions.

Older records store a loan schedule in whatever shape the writer had at
hand: a list, a JSON string, a single object, or nothing. normalize_schedule
is the one place that ambiguity is resolved; everything past it works with
a plain list of AmortizationEntry.

Reads never raise. Malformed data is logged and dropped.
"""

import json
from typing import Any

import structlog
from pydantic import ValidationError as PydanticValidationError

from finance_engine.models.loan import AmortizationEntry, Loan

logger = structlog.get_logger()


def _parse_json(raw: str) -> Any:
    try:
        return json.loads(raw)
    except (TypeError, ValueError, RecursionError):
        logger.warning("unparseable_json", length=len(raw))
        return None


def normalize_schedule(raw: Any) -> list[AmortizationEntry]:
    """
    Coerce a persisted schedule into a list of entries.

    - list: entries pass through
    - str: parsed as JSON; a list result passes through, anything else is empty
    - dict: wrapped as a single entry
    - anything else (including None): empty

    Entries that fail validation are dropped. The result is sorted by period.
    """
    if isinstance(raw, str):
        parsed = _parse_json(raw)
        items = parsed if isinstance(parsed, list) else []
    elif isinstance(raw, (list, tuple)):
        items = list(raw)
    elif isinstance(raw, dict):
        items = [raw]
    else:
        items = []

    entries = []
    for item in items:
        if isinstance(item, AmortizationEntry):
            entries.append(item)
            continue
        if not isinstance(item, dict):
            logger.warning("schedule_entry_dropped", reason="not an object")
            continue
        try:
            entries.append(AmortizationEntry.model_validate(item))
        except PydanticValidationError as e:
            logger.warning("schedule_entry_dropped", reason=str(e.errors()[0].get("msg")))
    return sorted(entries, key=lambda entry: entry.period)


def parse_metadata(raw: Any) -> dict[str, Any]:
    """Transaction metadata as a dict; JSON strings are parsed, junk becomes {}."""
    if isinstance(raw, dict):
        return dict(raw)
    if isinstance(raw, str) and raw.strip():
        parsed = _parse_json(raw)
        if isinstance(parsed, dict):
            return parsed
    return {}


def loan_to_record(loan: Loan) -> dict[str, Any]:
    """Flat record with the schedule stored as a JSON array string."""
    record = loan.model_dump(mode="json")
    record["schedule"] = json.dumps(record["schedule"])
    return record


def loan_from_record(record: dict[str, Any]) -> Loan:
    """Inverse of loan_to_record; tolerates every legacy schedule shape."""
    data = dict(record)
    data["schedule"] = normalize_schedule(data.get("schedule"))
    return Loan.model_validate(data)
