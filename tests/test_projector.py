import datetime as dt
import math

import pytest

from offset_core.domain.models import LedgerSnapshot, TreeOption, ValidationError
from offset_core.services.projector import SCENARIOS, GrowthProjector, monthly_growth_factor

START = dt.date(2025, 1, 15)


def _snapshot(carbon: float, budget: float, recurring: float, tree=None) -> LedgerSnapshot:
    tree = tree or TreeOption("Birch", co2_per_unit=100, cost_per_unit=50)
    return LedgerSnapshot(
        monthly_budget=budget,
        remaining_carbon=carbon,
        total_carbon_to_date=carbon,
        recurring_monthly_carbon=recurring,
        catalog=(tree,),
    )


def test_zero_growth_backlog_falls_by_net_capacity():
    # capacity = floor(100 / 50) * 100 = 200, recurring 50 -> net 150 per month
    result = GrowthProjector().project(1, 0, 0, _snapshot(1000, 100, 50), start=START)
    remaining = [m.carbon_remaining for m in result.monthly_projections]

    assert remaining[:6] == [850, 700, 550, 400, 250, 100]
    assert remaining[6:] == [0] * 6
    assert result.summary.neutrality_month == math.ceil(1000 / 150) == 7
    assert result.summary.neutrality_date == dt.date(2025, 8, 15)


def test_zero_growth_summary_totals():
    result = GrowthProjector().project(1, 0, 0, _snapshot(1000, 100, 50), start=START)
    summary = result.summary

    assert summary.final_carbon == 0
    assert summary.total_offset == 6 * 200 + 150 + 5 * 50
    assert summary.total_cost == 1200
    assert summary.average_monthly_offset == pytest.approx(1600 / 12)
    assert summary.final_monthly_budget == 100


def test_capacity_not_above_recurring_never_reaches_neutrality():
    result = GrowthProjector().project(2, 0, 0, _snapshot(1000, 100, 200), start=START)
    assert result.summary.neutrality_month is None
    assert result.summary.neutrality_date is None
    assert all(m.carbon_remaining == 1000 for m in result.monthly_projections)


def test_runs_twelve_iterations_per_year():
    result = GrowthProjector().project(3, 0, 0, _snapshot(1000, 100, 50), start=START)
    months = result.monthly_projections

    assert len(months) == 36
    assert [m.month_index for m in months] == list(range(1, 37))
    assert months[11].year_index == 1
    assert months[12].year_index == 2
    assert months[35].year_index == 3


def test_budget_growth_is_applied_at_year_boundaries_only():
    tree = TreeOption("Shrub", co2_per_unit=1, cost_per_unit=1)
    result = GrowthProjector().project(3, 0, 10, _snapshot(1_000_000, 100, 0, tree), start=START)
    budgets = [m.monthly_budget for m in result.monthly_projections]

    assert budgets[:12] == [100] * 12
    assert budgets[12] == pytest.approx(110)
    assert len(set(budgets[12:24])) == 1
    assert budgets[24] == pytest.approx(121)
    assert result.summary.final_monthly_budget == pytest.approx(121)


def test_recurring_carbon_growth_steps_yearly():
    tree = TreeOption("Shrub", co2_per_unit=1, cost_per_unit=1)
    result = GrowthProjector().project(2, 100, 0, _snapshot(0, 1, 10, tree), start=START)
    months = result.monthly_projections

    # year one: +10 recurring, -1 offset each month; year two recurring doubles to 20
    assert months[11].carbon_remaining == pytest.approx(108)
    assert months[12].carbon_remaining == pytest.approx(127)


def test_total_cost_counts_budget_even_without_need():
    result = GrowthProjector().project(1, 0, 0, _snapshot(0, 100, 0), start=START)
    assert result.summary.total_offset == 0
    assert result.summary.total_cost == 1200
    assert result.summary.neutrality_month == 1


def test_neutrality_month_is_not_overwritten():
    # backlog hits zero in month 1, then recurring outgrows capacity in year two
    result = GrowthProjector().project(2, 1000, 0, _snapshot(0, 100, 150), start=START)
    assert result.summary.neutrality_month == 1
    assert result.monthly_projections[-1].carbon_remaining > 0


def test_projection_is_deterministic():
    snapshot = _snapshot(5000, 100, 80)
    projector = GrowthProjector()
    assert projector.project(5, 5, 3, snapshot, START) == projector.project(5, 5, 3, snapshot, START)


def test_invalid_inputs_are_rejected():
    projector = GrowthProjector()
    with pytest.raises(ValidationError):
        projector.project(5, 0, 0, _snapshot(1000, 0, 0))
    with pytest.raises(ValidationError):
        projector.project(0, 0, 0, _snapshot(1000, 100, 0))
    empty = LedgerSnapshot(monthly_budget=100, remaining_carbon=10, total_carbon_to_date=10)
    with pytest.raises(ValidationError):
        projector.project(5, 0, 0, empty)


def test_monthly_growth_factor():
    assert monthly_growth_factor(0) == 0
    assert (1 + monthly_growth_factor(12)) ** 12 == pytest.approx(1.12)
    assert monthly_growth_factor(-5) < 0


def test_projection_frame_has_one_row_per_month():
    frame = GrowthProjector().project(2, 0, 0, _snapshot(1000, 100, 50), start=START).to_frame()
    assert len(frame) == 24
    assert {"month_index", "year_index", "carbon_remaining", "monthly_offset"} <= set(frame.columns)


def test_scenarios_cover_the_five_presets():
    snapshot = _snapshot(1000, 100, 50)
    projector = GrowthProjector()
    outcomes = projector.run_scenarios(snapshot, years=5, start=START)

    assert [o.name for o in outcomes] == [s[0] for s in SCENARIOS]
    status_quo = outcomes[-1]
    baseline = projector.project(5, 0, 0, snapshot, start=START).summary
    assert status_quo.neutrality_date == baseline.neutrality_date
    assert status_quo.total_cost == baseline.total_cost
    assert status_quo.success is True


def test_sensitivity_sweeps():
    analysis = GrowthProjector().analyze_sensitivity(_snapshot(1000, 100, 50), years=2, start=START)

    assert analysis is not None
    assert [p.budget_growth_rate for p in analysis.budget_sensitivity] == list(range(-20, 25, 5))
    assert all(p.carbon_growth_rate == 0 for p in analysis.budget_sensitivity)
    assert [p.carbon_growth_rate for p in analysis.carbon_sensitivity] == list(range(-20, 25, 5))
    assert len(analysis.combined_sensitivity) == 5
    assert all(p.budget_growth_rate == 5 for p in analysis.combined_sensitivity)


def test_sensitivity_needs_a_budget():
    assert GrowthProjector().analyze_sensitivity(_snapshot(1000, 0, 50)) is None
