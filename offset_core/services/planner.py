from __future__ import annotations

import datetime as dt
from typing import List, Optional

from offset_core.domain.models import LedgerSnapshot, MonthlyPlanEntry, OptimizationMode, ValidationError
from offset_core.logging import get_logger
from offset_core.services.dates import month_label
from offset_core.services.optimizer import AllocationOptimizer, validate_inputs

logger = get_logger(__name__)


class MonthlyPlanGenerator:
    def __init__(self, optimizer: Optional[AllocationOptimizer] = None):
        self.optimizer = optimizer or AllocationOptimizer()

    def plan(
        self,
        horizon_months: int,
        budget: Optional[float],
        mode: OptimizationMode | str,
        snapshot: LedgerSnapshot,
        start: Optional[dt.date] = None,
    ) -> List[MonthlyPlanEntry]:
        """
        Month-by-month purchase plan:
        - Each month re-runs the optimizer against whatever carbon is still outstanding.
        - Stops as soon as nothing remains; months with nothing affordable are left out.
        """
        if horizon_months < 0:
            raise ValidationError("Horizon must be non-negative")
        budget = snapshot.monthly_budget if budget is None else budget
        validate_inputs(budget, snapshot.catalog)
        mode = OptimizationMode.parse(mode)

        start = start or dt.date.today()
        remaining = snapshot.remaining_carbon
        cumulative = 0.0
        entries: List[MonthlyPlanEntry] = []

        for i in range(horizon_months):
            if remaining <= 0:
                break
            result = self.optimizer.allocate(budget, remaining, snapshot.catalog, mode)
            if result.total_offset <= 0:
                continue
            cumulative += result.total_offset
            entries.append(
                MonthlyPlanEntry(
                    month_index=i + 1,
                    calendar_label=month_label(start, i),
                    purchases=result.purchases,
                    cost=result.total_cost,
                    offset=result.total_offset,
                    cumulative_offset=cumulative,
                    remaining_after=max(remaining - result.total_offset, 0.0),
                )
            )
            remaining -= result.total_offset

        logger.debug("plan_generated", months=len(entries), horizon=horizon_months, remaining=max(remaining, 0.0))
        return entries
