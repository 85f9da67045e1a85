from __future__ import annotations

import json
import logging
from pathlib import Path

import openpyxl
from sqlalchemy import select
from sqlalchemy.orm import Session

from readiness.models import DIMENSIONS, INVESTOR_TYPES, Investor
from readiness.schemas import InvestorImportResult

log = logging.getLogger(__name__)


def _s(value: object) -> str:
    """Safely coerce cell value to stripped string."""
    if value is None:
        return ""
    return str(value).strip()


def _col(row: tuple, idx: int) -> object:
    """Safely get a column value from a row tuple."""
    return row[idx] if idx < len(row) else None


def _f(value: object) -> float | None:
    """Safely coerce cell value to float, None if missing."""
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (ValueError, TypeError):
        return None


def _tags(value: object) -> list[str]:
    """Split a comma/semicolon separated cell into tags."""
    text = _s(value).replace(";", ",")
    return [t.strip() for t in text.split(",") if t.strip()]


# ---------------------------------------------------------------------------
# Sheet layout (1 header row)
# ---------------------------------------------------------------------------

_INVESTOR_COLS = {
    "name": 0, "investor_type": 1, "focus_areas": 2, "investment_range_min": 3,
    "investment_range_max": 4, "geographic_focus": 5, "description": 6, "website": 7,
}
# criteria weight columns follow, one per dimension in DIMENSIONS order
_WEIGHT_START = 8


def _parse_row(row: tuple) -> dict:
    investor_type = _s(_col(row, _INVESTOR_COLS["investor_type"])).lower() or "vc"
    if investor_type not in INVESTOR_TYPES:
        log.warning("Unknown investor type %r, defaulting to vc", investor_type)
        investor_type = "vc"

    weights = {}
    for offset, dim in enumerate(DIMENSIONS):
        w = _f(_col(row, _WEIGHT_START + offset))
        if w is not None:
            weights[dim] = w

    return {
        "name": _s(_col(row, _INVESTOR_COLS["name"])),
        "investor_type": investor_type,
        "focus_areas_json": json.dumps(_tags(_col(row, _INVESTOR_COLS["focus_areas"]))),
        "investment_range_min": _f(_col(row, _INVESTOR_COLS["investment_range_min"])),
        "investment_range_max": _f(_col(row, _INVESTOR_COLS["investment_range_max"])),
        "geographic_focus_json": json.dumps(_tags(_col(row, _INVESTOR_COLS["geographic_focus"]))),
        "description": _s(_col(row, _INVESTOR_COLS["description"])),
        "website": _s(_col(row, _INVESTOR_COLS["website"])),
        # No weight columns filled -> NULL, so matching falls back to default weights
        "criteria_weights_json": json.dumps(weights) if weights else None,
    }


def _normalize_key(name: str) -> str:
    return name.strip().casefold()


def import_investors_xlsx(file_path: str | Path, session: Session) -> InvestorImportResult:
    """Import the first worksheet of an investor roster. Upserts by name."""
    file_path = Path(file_path)
    wb = openpyxl.load_workbook(file_path, read_only=True, data_only=True)
    try:
        rows = list(wb.worksheets[0].iter_rows(min_row=2, values_only=True))
    finally:
        wb.close()

    existing = {
        _normalize_key(inv.name): inv
        for inv in session.execute(select(Investor)).scalars().all()
    }

    created = updated = skipped = 0
    for row in rows:
        if not row or not _s(_col(row, _INVESTOR_COLS["name"])):
            skipped += 1
            continue
        data = _parse_row(row)
        key = _normalize_key(data["name"])
        if key in existing:
            inv = existing[key]
            for field, val in data.items():
                setattr(inv, field, val)
            updated += 1
        else:
            inv = Investor(**data)
            session.add(inv)
            existing[key] = inv
            created += 1

    session.commit()
    log.info("Imported investors from %s: %d created, %d updated, %d skipped",
             file_path.name, created, updated, skipped)
    return InvestorImportResult(
        total_imported=created + updated, created=created, updated=updated, skipped=skipped,
    )
