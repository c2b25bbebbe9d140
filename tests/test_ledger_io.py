import datetime as dt
import json
from pathlib import Path

import pytest

from offset_core.domain.models import (
    CarbonEntry,
    LedgerSnapshot,
    NotFoundError,
    Planting,
    RecurringCarbon,
    TreeOption,
    ValidationError,
)
from offset_core.io import config as config_io
from offset_core.io import ledger as ledger_io
from offset_core.services import calculator

DATA = Path(__file__).parent / "data"
TODAY = dt.date(2025, 3, 15)


def test_load_ledger_reads_existing_store():
    ledger = ledger_io.load_ledger(DATA / "carbon_config.json")

    assert ledger.currency == "USD"
    assert ledger.monthly_budget == 150
    assert [t.name for t in ledger.tree_types] == ["Oak", "Pine", "Maple"]
    assert ledger.tree_types[0].efficiency == 20
    assert len(ledger.carbon_entries) == 2
    assert ledger.plantings[0].co2_offset == 500
    assert ledger.recurring.start_date is None


def test_build_snapshot_derives_totals():
    snapshot = calculator.build_snapshot(ledger_io.load_ledger(DATA / "carbon_config.json"), today=TODAY)

    assert snapshot.total_carbon_to_date == 2800
    assert snapshot.achieved_offset == 500
    assert snapshot.remaining_carbon == 2300
    assert snapshot.monthly_budget == 150
    assert [t.name for t in snapshot.catalog] == ["Oak", "Pine", "Maple"]


def test_missing_ledger_file(tmp_path: Path):
    with pytest.raises(NotFoundError):
        ledger_io.load_ledger(tmp_path / "nope.json")


def test_corrupt_ledger_file(tmp_path: Path):
    path = tmp_path / "carbon_config.json"
    path.write_text("{not json")
    with pytest.raises(ValueError, match="Failed to parse"):
        ledger_io.load_ledger(path)


def test_invalid_tree_in_store_is_rejected(tmp_path: Path):
    path = tmp_path / "carbon_config.json"
    path.write_text(json.dumps({"tree_types": [{"name": "Bad", "co2_absorption": 0, "cost": 10}]}))
    with pytest.raises(ValidationError):
        ledger_io.load_ledger(path)


def test_load_catalog_csv():
    catalog = ledger_io.load_catalog(DATA / "trees.csv")
    assert [t.name for t in catalog] == ["Oak", "Pine", "Maple"]
    assert catalog[1].description == ""
    assert catalog[2].co2_per_unit == 200


def test_catalog_csv_replaces_stored_tree_types(tmp_path: Path):
    path = tmp_path / "trees.csv"
    path.write_text("name,co2_absorption,cost,description\nBirch,100,50,Pioneer species\n")

    ledger = ledger_io.load_ledger(DATA / "carbon_config.json", catalog_path=path)

    assert [t.name for t in ledger.tree_types] == ["Birch"]
    assert ledger.tree_types[0].description == "Pioneer species"
    assert ledger.monthly_budget == 150
    assert len(ledger.carbon_entries) == 2


def test_missing_catalog_file(tmp_path: Path):
    with pytest.raises(NotFoundError, match="Tree catalog not found"):
        ledger_io.load_ledger(DATA / "carbon_config.json", catalog_path=tmp_path / "trees.csv")


def test_load_catalog_requires_columns(tmp_path: Path):
    path = tmp_path / "trees.csv"
    path.write_text("name,cost\nOak,25\n")
    with pytest.raises(ValueError, match="Missing columns"):
        ledger_io.load_catalog(path)


def test_expand_recurring_fills_missing_months():
    recurring = RecurringCarbon(amount=50, start_date=dt.date(2025, 1, 10))
    entries = calculator.expand_recurring([], recurring, today=TODAY)
    assert [e.date for e in entries] == [dt.date(2025, 1, 10), dt.date(2025, 2, 10), dt.date(2025, 3, 10)]
    assert all(e.category == "recurring" and e.amount == 50 for e in entries)


def test_expand_recurring_continues_after_last_logged_entry():
    recurring = RecurringCarbon(amount=50, start_date=dt.date(2025, 1, 10))
    logged = [
        CarbonEntry(date=dt.date(2025, 1, 10), amount=50, category="recurring"),
        CarbonEntry(date=dt.date(2025, 2, 10), amount=50, category="recurring"),
    ]
    entries = calculator.expand_recurring(logged, recurring, today=TODAY)
    assert len(entries) == 3
    assert entries[-1].date == dt.date(2025, 3, 10)
    assert len(logged) == 2


def test_expand_recurring_not_started_yet():
    recurring = RecurringCarbon(amount=50, start_date=dt.date(2025, 6, 1))
    assert calculator.expand_recurring([], recurring, today=TODAY) == []


def test_ledger_totals():
    entries = [
        CarbonEntry(date=dt.date(2025, 1, 5), amount=100, category="transport"),
        CarbonEntry(date=dt.date(2025, 1, 20), amount=50, category="food"),
        CarbonEntry(date=dt.date(2025, 2, 3), amount=150, category="transport"),
    ]
    plantings = [Planting(date=dt.date(2025, 2, 1), tree_type="Oak", quantity=1, co2_offset=100, cost=25)]

    assert calculator.total_carbon_to_offset(entries) == 300
    assert calculator.total_offset_achieved(plantings) == 100
    assert calculator.remaining_to_offset(entries, plantings) == 200
    assert calculator.progress_percentage(entries, plantings) == 33.3
    assert calculator.progress_percentage([], plantings) == 0
    assert calculator.carbon_by_category(entries) == {
        "transport": {"count": 2, "total": 250.0},
        "food": {"count": 1, "total": 50.0},
    }
    assert calculator.carbon_by_month(entries) == {"2025-02": 150.0, "2025-01": 150.0}
    assert list(calculator.carbon_by_month(entries)) == ["2025-02", "2025-01"]


def test_remaining_never_negative():
    entries = [CarbonEntry(date=dt.date(2025, 1, 5), amount=100)]
    plantings = [Planting(date=dt.date(2025, 2, 1), tree_type="Oak", quantity=2, co2_offset=1000, cost=50)]
    assert calculator.remaining_to_offset(entries, plantings) == 0


def test_projected_neutrality_date():
    snapshot = LedgerSnapshot(
        monthly_budget=100,
        remaining_carbon=1000,
        total_carbon_to_date=1000,
        recurring_monthly_carbon=50,
        catalog=(TreeOption("Birch", 100, 50),),
    )
    assert calculator.projected_neutrality_date(snapshot, today=TODAY) == dt.date(2025, 10, 15)

    stuck = LedgerSnapshot(
        monthly_budget=100,
        remaining_carbon=1000,
        total_carbon_to_date=1000,
        recurring_monthly_carbon=200,
        catalog=(TreeOption("Birch", 100, 50),),
    )
    assert calculator.projected_neutrality_date(stuck, today=TODAY) is None


@pytest.mark.parametrize(
    "kwargs",
    [
        {"name": "", "co2_per_unit": 10, "cost_per_unit": 5},
        {"name": "Oak", "co2_per_unit": 0, "cost_per_unit": 5},
        {"name": "Oak", "co2_per_unit": 10, "cost_per_unit": -1},
    ],
)
def test_tree_option_validation(kwargs):
    with pytest.raises(ValidationError):
        TreeOption(**kwargs)


def test_entities_reject_bad_values():
    with pytest.raises(ValidationError):
        CarbonEntry(date=TODAY, amount=-1)
    with pytest.raises(ValidationError):
        CarbonEntry(date=TODAY, amount=1, category="holiday")
    with pytest.raises(ValidationError):
        Planting(date=TODAY, tree_type="Oak", quantity=0, co2_offset=0, cost=0)
    with pytest.raises(ValidationError):
        LedgerSnapshot(monthly_budget=-1, remaining_carbon=0, total_carbon_to_date=0)


def test_settings_from_env_and_file(tmp_path: Path, monkeypatch):
    monkeypatch.setenv("CARBON_DATA_DIR", str(tmp_path / "store"))
    monkeypatch.setenv("CARBON_CURRENCY", "EUR")
    settings = config_io.load_settings()
    assert settings.data_file == tmp_path / "store" / "carbon_config.json"
    assert settings.currency == "EUR"
    assert settings.diversity_factor == 0.3

    path = tmp_path / "settings.json"
    path.write_text(json.dumps({"currency": "GBP", "diversity_factor": 0.45}))
    settings = config_io.load_settings(path)
    assert settings.currency == "GBP"
    assert settings.diversity_factor == 0.45
    assert settings.data_dir == tmp_path / "store"


def test_missing_settings_file(tmp_path: Path):
    with pytest.raises(NotFoundError, match="Settings file not found"):
        config_io.load_settings(tmp_path / "settings.json")


def test_corrupt_settings_file(tmp_path: Path):
    path = tmp_path / "settings.json"
    path.write_text("currency = EUR")
    with pytest.raises(ValueError, match="Failed to parse settings"):
        config_io.load_settings(path)
