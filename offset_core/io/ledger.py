from __future__ import annotations

import datetime as dt
import json
from pathlib import Path
from typing import Any, Dict, List, Optional

import pandas as pd

from offset_core.domain.models import (
    CarbonEntry,
    LedgerData,
    NotFoundError,
    Planting,
    RecurringCarbon,
    TreeOption,
)


REQUIRED_CATALOG_COLUMNS = {"name", "co2_absorption", "cost"}


def load_catalog(csv_path: str | Path) -> List[TreeOption]:
    path = Path(csv_path)
    if not path.exists():
        raise NotFoundError(f"Tree catalog not found: {path}")

    df = pd.read_csv(path)
    missing = REQUIRED_CATALOG_COLUMNS - set(df.columns)
    if missing:
        raise ValueError(f"Missing columns in tree catalog CSV: {missing}")

    if "description" not in df.columns:
        df["description"] = ""
    df["description"] = df["description"].fillna("")

    return [
        TreeOption(
            name=str(row["name"]),
            co2_per_unit=float(row["co2_absorption"]),
            cost_per_unit=float(row["cost"]),
            description=str(row["description"]),
        )
        for _, row in df.iterrows()
    ]


def load_ledger(json_path: str | Path, catalog_path: Optional[str | Path] = None) -> LedgerData:
    """
    Reads the carbon_config.json store written by the tracker.

    A catalog CSV, when given, replaces the tree types kept in the store.
    """
    path = Path(json_path)
    if not path.exists():
        raise NotFoundError(f"Ledger file not found: {path}")
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ValueError(f"Failed to parse ledger file {path}: {exc}") from exc

    if catalog_path is not None:
        tree_types = load_catalog(catalog_path)
    else:
        tree_types = [_tree_from_json(t) for t in data.get("tree_types") or []]

    recurring = data.get("recurring_carbon") or {}
    return LedgerData(
        currency=data.get("currency") or "USD",
        monthly_budget=float(data.get("monthly_budget") or 0),
        tree_types=tree_types,
        carbon_entries=[_entry_from_json(e) for e in data.get("carbon_entries") or []],
        plantings=[_planting_from_json(p) for p in data.get("plantings") or []],
        recurring=RecurringCarbon(
            amount=float(recurring.get("amount") or 0),
            start_date=_parse_date(recurring.get("start_date")) if recurring.get("start_date") else None,
        ),
    )


def _parse_date(raw: Any) -> dt.date:
    if raw is None:
        return dt.date.today()
    return pd.to_datetime(raw).date()


def _tree_from_json(item: Dict[str, Any]) -> TreeOption:
    return TreeOption(
        name=str(item.get("name") or ""),
        co2_per_unit=float(item.get("co2_absorption") or 0),
        cost_per_unit=float(item.get("cost") or 0),
        description=item.get("description") or "",
    )


def _entry_from_json(item: Dict[str, Any]) -> CarbonEntry:
    return CarbonEntry(
        date=_parse_date(item.get("date")),
        amount=float(item.get("amount") or 0),
        category=item.get("category") or "manual",
        description=item.get("description") or "",
    )


def _planting_from_json(item: Dict[str, Any]) -> Planting:
    return Planting(
        date=_parse_date(item.get("date")),
        tree_type=str(item.get("tree_type") or ""),
        quantity=int(item.get("quantity") or 0),
        co2_offset=float(item.get("co2_offset") or 0),
        cost=float(item.get("cost") or 0),
        notes=item.get("notes") or "",
    )
