from offset_core.services.milestones import MilestoneTracker  # noqa: F401
from offset_core.services.optimizer import AllocationOptimizer, offset_capacity  # noqa: F401
from offset_core.services.planner import MonthlyPlanGenerator  # noqa: F401
from offset_core.services.projector import GrowthProjector  # noqa: F401

__all__ = [
    "AllocationOptimizer",
    "GrowthProjector",
    "MilestoneTracker",
    "MonthlyPlanGenerator",
    "offset_capacity",
]
