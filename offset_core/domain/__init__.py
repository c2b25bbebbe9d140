from offset_core.domain.models import (  # noqa: F401
    AllocationResult,
    CarbonEntry,
    LedgerData,
    LedgerSnapshot,
    Milestone,
    MilestoneReport,
    ModeComparison,
    MonthlyPlanEntry,
    NotFoundError,
    OptimizationMode,
    Planting,
    ProjectionMonth,
    ProjectionResult,
    ProjectionSummary,
    RecurringCarbon,
    ScenarioOutcome,
    SensitivityAnalysis,
    SensitivityPoint,
    TreeOption,
    ValidationError,
)

__all__ = [
    "AllocationResult",
    "CarbonEntry",
    "LedgerData",
    "LedgerSnapshot",
    "Milestone",
    "MilestoneReport",
    "ModeComparison",
    "MonthlyPlanEntry",
    "NotFoundError",
    "OptimizationMode",
    "Planting",
    "ProjectionMonth",
    "ProjectionResult",
    "ProjectionSummary",
    "RecurringCarbon",
    "ScenarioOutcome",
    "SensitivityAnalysis",
    "SensitivityPoint",
    "TreeOption",
    "ValidationError",
]
