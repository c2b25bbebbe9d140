from __future__ import annotations

import datetime as dt

import pandas as pd


def add_months(start: dt.date, months: int) -> dt.date:
    """Calendar month arithmetic; the day is clamped to the end of shorter months."""
    return (pd.Timestamp(start) + pd.DateOffset(months=months)).date()


def month_label(start: dt.date, offset_months: int = 0) -> str:
    return (pd.Period(start, freq="M") + offset_months).strftime("%B %Y")
