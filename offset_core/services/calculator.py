from __future__ import annotations

import datetime as dt
import math
from typing import Dict, Iterable, List, Optional

import pandas as pd

from offset_core.domain.models import CarbonEntry, LedgerData, LedgerSnapshot, Planting, RecurringCarbon
from offset_core.services.dates import add_months
from offset_core.services.optimizer import offset_capacity


def expand_recurring(
    entries: Iterable[CarbonEntry],
    recurring: RecurringCarbon,
    today: Optional[dt.date] = None,
) -> List[CarbonEntry]:
    """
    Returns the entries plus one "recurring" entry per month since the recurring
    amount started, continuing after the last recurring entry already logged.
    """
    expanded = list(entries)
    today = today or dt.date.today()
    if not recurring.amount or recurring.start_date is None or today < recurring.start_date:
        return expanded

    logged = [e.date for e in expanded if e.recurring]
    step = 0
    if logged:
        last = max(logged)
        while add_months(recurring.start_date, step) <= last:
            step += 1

    while True:
        due = add_months(recurring.start_date, step)
        if due > today:
            break
        expanded.append(
            CarbonEntry(date=due, amount=recurring.amount, category="recurring", description="Monthly recurring carbon")
        )
        step += 1
    return expanded


def total_carbon_to_offset(entries: Iterable[CarbonEntry]) -> float:
    return float(sum(e.amount for e in entries))


def total_offset_achieved(plantings: Iterable[Planting]) -> float:
    return float(sum(p.co2_offset for p in plantings))


def remaining_to_offset(entries: Iterable[CarbonEntry], plantings: Iterable[Planting]) -> float:
    return max(total_carbon_to_offset(entries) - total_offset_achieved(plantings), 0.0)


def progress_percentage(entries: Iterable[CarbonEntry], plantings: Iterable[Planting]) -> float:
    total = total_carbon_to_offset(entries)
    if total == 0:
        return 0.0
    return round(total_offset_achieved(plantings) / total * 100, 1)


def _entries_frame(entries: Iterable[CarbonEntry]) -> pd.DataFrame:
    rows = [{"month": e.month_key, "category": e.category, "amount": e.amount} for e in entries]
    return pd.DataFrame(rows, columns=["month", "category", "amount"])


def carbon_by_category(entries: Iterable[CarbonEntry]) -> Dict[str, Dict[str, float]]:
    df = _entries_frame(entries)
    if df.empty:
        return {}
    grouped = df.groupby("category", sort=False)["amount"].agg(["count", "sum"])
    return {cat: {"count": int(row["count"]), "total": float(row["sum"])} for cat, row in grouped.iterrows()}


def carbon_by_month(entries: Iterable[CarbonEntry]) -> Dict[str, float]:
    """Monthly totals keyed by YYYY-MM, newest month first."""
    df = _entries_frame(entries)
    if df.empty:
        return {}
    monthly = df.groupby("month")["amount"].sum().sort_index(ascending=False)
    return {month: float(total) for month, total in monthly.items()}


def build_snapshot(ledger: LedgerData, today: Optional[dt.date] = None) -> LedgerSnapshot:
    entries = expand_recurring(ledger.carbon_entries, ledger.recurring, today)
    return LedgerSnapshot(
        monthly_budget=ledger.monthly_budget,
        remaining_carbon=remaining_to_offset(entries, ledger.plantings),
        total_carbon_to_date=total_carbon_to_offset(entries),
        recurring_monthly_carbon=ledger.recurring.amount or 0.0,
        catalog=tuple(ledger.tree_types),
        offset_to_date=total_offset_achieved(ledger.plantings),
    )


def projected_neutrality_date(snapshot: LedgerSnapshot, today: Optional[dt.date] = None) -> Optional[dt.date]:
    """Straight-line estimate: capacity net of recurring carbon pays down the backlog."""
    if snapshot.monthly_budget <= 0:
        return None
    net_reduction = offset_capacity(snapshot.monthly_budget, snapshot.catalog) - snapshot.recurring_monthly_carbon
    if net_reduction <= 0:
        return None
    months = math.ceil(snapshot.remaining_carbon / net_reduction)
    return add_months(today or dt.date.today(), months)
