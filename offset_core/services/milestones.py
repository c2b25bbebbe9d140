from __future__ import annotations

import datetime as dt
import math
from typing import List, Optional

from offset_core.domain.models import LedgerSnapshot, Milestone, MilestoneReport
from offset_core.services.dates import add_months
from offset_core.services.optimizer import offset_capacity

MILESTONES = (
    ("25% Offset", 0.25),
    ("50% Offset", 0.50),
    ("75% Offset", 0.75),
    ("Carbon Neutral", 1.0),
)


class MilestoneTracker:
    def track(self, snapshot: LedgerSnapshot, today: Optional[dt.date] = None) -> MilestoneReport:
        """
        Checkpoints at fixed shares of all carbon logged so far. Only the next
        unreached one gets a date estimate, based on this month's offset capacity.
        """
        total = snapshot.total_carbon_to_date
        achieved = snapshot.achieved_offset

        milestones: List[Milestone] = []
        for name, share in MILESTONES:
            target = total * share
            milestones.append(Milestone(name=name, target_amount=target, achieved=achieved >= target))

        next_milestone = next((m for m in milestones if not m.achieved), None)
        if next_milestone is not None and snapshot.monthly_budget > 0:
            capacity = offset_capacity(snapshot.monthly_budget, snapshot.catalog)
            if capacity > 0:
                months = math.ceil((next_milestone.target_amount - achieved) / capacity)
                next_milestone.estimated_date = add_months(today or dt.date.today(), months)

        progress = round(achieved / total * 100, 1) if total else 0.0
        return MilestoneReport(milestones=milestones, next_milestone=next_milestone, progress_percentage=progress)
