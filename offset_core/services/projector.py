from __future__ import annotations

import datetime as dt
import math
from typing import List, Optional, Sequence, Tuple

from offset_core.domain.models import (
    LedgerSnapshot,
    ProjectionMonth,
    ProjectionResult,
    ProjectionSummary,
    ScenarioOutcome,
    SensitivityAnalysis,
    SensitivityPoint,
    ValidationError,
)
from offset_core.logging import get_logger
from offset_core.services.dates import add_months
from offset_core.services.optimizer import offset_capacity, validate_inputs

logger = get_logger(__name__)

# (name, annual carbon growth %, annual budget growth %)
SCENARIOS: Tuple[Tuple[str, float, float], ...] = (
    ("Conservative", 10, 3),
    ("Moderate", 5, 5),
    ("Optimistic", 0, 7),
    ("Aggressive Reduction", -5, 10),
    ("Status Quo", 0, 0),
)

SWEEP_RATES: Tuple[int, ...] = tuple(range(-20, 25, 5))
COMBINED_RATES: Tuple[Tuple[int, int], ...] = ((-10, 5), (-5, 5), (0, 5), (5, 5), (10, 5))


def monthly_growth_factor(annual_rate_pct: float) -> float:
    if annual_rate_pct == 0:
        return 0.0
    return math.pow(1 + annual_rate_pct / 100.0, 1 / 12) - 1


class GrowthProjector:
    def project(
        self,
        years: int,
        carbon_growth_rate: float,
        budget_growth_rate: float,
        snapshot: LedgerSnapshot,
        start: Optional[dt.date] = None,
    ) -> ProjectionResult:
        """
        Month-by-month projection of the carbon backlog:
        - Recurring carbon is added every month, then offset with what the budget buys.
        - Growth is a yearly step: budget (and recurring carbon when its rate is
          non-zero) jump by a full year's compounding at months 13, 25, ...
        """
        if years <= 0:
            raise ValidationError("Projection years must be positive")
        validate_inputs(snapshot.monthly_budget, snapshot.catalog)

        start = start or dt.date.today()
        carbon_factor = monthly_growth_factor(carbon_growth_rate)
        budget_factor = monthly_growth_factor(budget_growth_rate)

        backlog = snapshot.remaining_carbon
        budget = snapshot.monthly_budget
        recurring = snapshot.recurring_monthly_carbon
        total_offset = 0.0
        total_cost = 0.0
        neutrality_month: Optional[int] = None
        months: List[ProjectionMonth] = []

        for month in range(years * 12):
            if month > 0 and month % 12 == 0:
                budget *= (1 + budget_factor) ** 12
                if carbon_growth_rate != 0:
                    recurring *= (1 + carbon_factor) ** 12

            backlog += recurring
            offset = min(offset_capacity(budget, snapshot.catalog), backlog)
            backlog -= offset
            total_offset += offset
            total_cost += budget

            months.append(
                ProjectionMonth(
                    month_index=month + 1,
                    year_index=month // 12 + 1,
                    carbon_remaining=backlog,
                    monthly_offset=offset,
                    monthly_budget=budget,
                    cumulative_offset=total_offset,
                )
            )
            if backlog <= 0 and neutrality_month is None:
                neutrality_month = month + 1

        summary = ProjectionSummary(
            final_carbon=backlog,
            total_offset=total_offset,
            total_cost=total_cost,
            neutrality_month=neutrality_month,
            neutrality_date=add_months(start, neutrality_month) if neutrality_month else None,
            average_monthly_offset=total_offset / (years * 12),
            final_monthly_budget=budget,
        )
        logger.debug(
            "projection_complete",
            years=years,
            carbon_growth=carbon_growth_rate,
            budget_growth=budget_growth_rate,
            neutrality_month=neutrality_month,
        )
        return ProjectionResult(
            years=years,
            carbon_growth_rate=carbon_growth_rate,
            budget_growth_rate=budget_growth_rate,
            starting_carbon=snapshot.remaining_carbon,
            starting_budget=snapshot.monthly_budget,
            monthly_projections=months,
            summary=summary,
        )

    def run_scenarios(
        self,
        snapshot: LedgerSnapshot,
        years: int = 5,
        start: Optional[dt.date] = None,
    ) -> List[ScenarioOutcome]:
        outcomes: List[ScenarioOutcome] = []
        for name, carbon_growth, budget_growth in SCENARIOS:
            summary = self.project(years, carbon_growth, budget_growth, snapshot, start).summary
            outcomes.append(
                ScenarioOutcome(
                    name=name,
                    years=years,
                    carbon_growth_rate=carbon_growth,
                    budget_growth_rate=budget_growth,
                    neutrality_date=summary.neutrality_date,
                    total_cost=summary.total_cost,
                    final_carbon=summary.final_carbon,
                    success=summary.neutrality_achieved,
                )
            )
        return outcomes

    def analyze_sensitivity(
        self,
        snapshot: LedgerSnapshot,
        years: int = 5,
        start: Optional[dt.date] = None,
    ) -> Optional[SensitivityAnalysis]:
        """Sweep growth assumptions one axis at a time, then a few combined pairs."""
        if snapshot.monthly_budget <= 0:
            return None
        return SensitivityAnalysis(
            budget_sensitivity=self._sweep([(0, rate) for rate in SWEEP_RATES], snapshot, years, start),
            carbon_sensitivity=self._sweep([(rate, 0) for rate in SWEEP_RATES], snapshot, years, start),
            combined_sensitivity=self._sweep(COMBINED_RATES, snapshot, years, start),
        )

    def _sweep(
        self,
        rates: Sequence[Tuple[float, float]],
        snapshot: LedgerSnapshot,
        years: int,
        start: Optional[dt.date],
    ) -> List[SensitivityPoint]:
        points = []
        for carbon_growth, budget_growth in rates:
            summary = self.project(years, carbon_growth, budget_growth, snapshot, start).summary
            points.append(
                SensitivityPoint(
                    carbon_growth_rate=carbon_growth,
                    budget_growth_rate=budget_growth,
                    neutrality_date=summary.neutrality_date,
                    total_cost=summary.total_cost,
                    final_carbon=summary.final_carbon,
                    success=summary.neutrality_achieved,
                )
            )
        return points
