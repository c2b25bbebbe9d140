from __future__ import annotations

import dataclasses
import datetime as dt
import enum
from typing import Dict, List, Optional, Tuple

import pandas as pd


class ValidationError(ValueError):
    """Raised when inputs cannot be planned against."""


class NotFoundError(LookupError):
    pass


class OptimizationMode(str, enum.Enum):
    BALANCED = "balanced"
    COST_EFFICIENT = "cost_efficient"
    MAX_DIVERSITY = "max_diversity"

    @classmethod
    def parse(cls, value: "OptimizationMode | str") -> "OptimizationMode":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            allowed = ", ".join(m.value for m in cls)
            raise ValidationError(f"Unknown optimization mode: {value} (expected one of {allowed})") from None


@dataclasses.dataclass(frozen=True)
class TreeOption:
    name: str
    co2_per_unit: float
    cost_per_unit: float
    description: str = ""

    def __post_init__(self) -> None:
        if not self.name or not str(self.name).strip():
            raise ValidationError("Tree name is required")
        if self.co2_per_unit <= 0:
            raise ValidationError("CO2 absorption must be positive")
        if self.cost_per_unit <= 0:
            raise ValidationError("Cost must be positive")

    @property
    def efficiency(self) -> float:
        return self.co2_per_unit / self.cost_per_unit


@dataclasses.dataclass(frozen=True)
class LedgerSnapshot:
    """Read-only view of the ledger handed to the planning services."""

    monthly_budget: float
    remaining_carbon: float
    total_carbon_to_date: float
    recurring_monthly_carbon: float = 0.0
    catalog: Tuple[TreeOption, ...] = ()
    offset_to_date: Optional[float] = None

    def __post_init__(self) -> None:
        for field in ("monthly_budget", "remaining_carbon", "total_carbon_to_date", "recurring_monthly_carbon"):
            if getattr(self, field) < 0:
                raise ValidationError(f"{field} must be non-negative")
        # Accept any sequence but store a tuple so the snapshot stays hashable.
        object.__setattr__(self, "catalog", tuple(self.catalog))

    @property
    def achieved_offset(self) -> float:
        if self.offset_to_date is not None:
            return self.offset_to_date
        return max(self.total_carbon_to_date - self.remaining_carbon, 0.0)


@dataclasses.dataclass
class AllocationResult:
    purchases: Dict[str, int]
    total_cost: float = 0.0
    total_offset: float = 0.0

    @property
    def tree_diversity(self) -> int:
        return len(self.purchases)


@dataclasses.dataclass
class ModeComparison:
    mode: OptimizationMode
    total_cost: float
    total_offset: float
    tree_diversity: int
    efficiency: float  # kg CO2 per currency unit actually spent
    purchases: Dict[str, int]


@dataclasses.dataclass
class MonthlyPlanEntry:
    month_index: int
    calendar_label: str
    purchases: Dict[str, int]
    cost: float
    offset: float
    cumulative_offset: float
    remaining_after: float


@dataclasses.dataclass
class ProjectionMonth:
    month_index: int
    year_index: int
    carbon_remaining: float
    monthly_offset: float
    monthly_budget: float
    cumulative_offset: float


@dataclasses.dataclass
class ProjectionSummary:
    final_carbon: float
    total_offset: float
    total_cost: float
    neutrality_month: Optional[int]
    neutrality_date: Optional[dt.date]
    average_monthly_offset: float
    final_monthly_budget: float

    @property
    def neutrality_achieved(self) -> bool:
        return self.neutrality_month is not None


@dataclasses.dataclass
class ProjectionResult:
    years: int
    carbon_growth_rate: float
    budget_growth_rate: float
    starting_carbon: float
    starting_budget: float
    monthly_projections: List[ProjectionMonth]
    summary: ProjectionSummary

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame([dataclasses.asdict(m) for m in self.monthly_projections])


@dataclasses.dataclass
class ScenarioOutcome:
    name: str
    years: int
    carbon_growth_rate: float
    budget_growth_rate: float
    neutrality_date: Optional[dt.date]
    total_cost: float
    final_carbon: float
    success: bool


@dataclasses.dataclass
class SensitivityPoint:
    carbon_growth_rate: float
    budget_growth_rate: float
    neutrality_date: Optional[dt.date]
    total_cost: float
    final_carbon: float
    success: bool


@dataclasses.dataclass
class SensitivityAnalysis:
    budget_sensitivity: List[SensitivityPoint]
    carbon_sensitivity: List[SensitivityPoint]
    combined_sensitivity: List[SensitivityPoint]


@dataclasses.dataclass
class Milestone:
    name: str
    target_amount: float
    achieved: bool
    estimated_date: Optional[dt.date] = None


@dataclasses.dataclass
class MilestoneReport:
    milestones: List[Milestone]
    next_milestone: Optional[Milestone]
    progress_percentage: float


CARBON_CATEGORIES = ("manual", "recurring", "activity", "transport", "energy", "food", "waste", "shopping")


@dataclasses.dataclass(frozen=True)
class CarbonEntry:
    date: dt.date
    amount: float  # kg CO2
    category: str = "manual"
    description: str = ""

    def __post_init__(self) -> None:
        if self.amount < 0:
            raise ValidationError("Amount must be non-negative")
        if self.category not in CARBON_CATEGORIES:
            raise ValidationError(f"Invalid category: {self.category}")

    @property
    def month_key(self) -> str:
        return self.date.strftime("%Y-%m")

    @property
    def recurring(self) -> bool:
        return self.category == "recurring"


@dataclasses.dataclass(frozen=True)
class Planting:
    date: dt.date
    tree_type: str
    quantity: int
    co2_offset: float
    cost: float
    notes: str = ""

    def __post_init__(self) -> None:
        if not self.tree_type:
            raise ValidationError("Tree type is required")
        if self.quantity <= 0:
            raise ValidationError("Quantity must be positive")
        if self.co2_offset < 0:
            raise ValidationError("CO2 offset must be non-negative")
        if self.cost < 0:
            raise ValidationError("Cost must be non-negative")


@dataclasses.dataclass(frozen=True)
class RecurringCarbon:
    amount: float = 0.0
    start_date: Optional[dt.date] = None


@dataclasses.dataclass
class LedgerData:
    """Everything the storage layer knows, before it is reduced to a snapshot."""

    currency: str
    monthly_budget: float
    tree_types: List[TreeOption]
    carbon_entries: List[CarbonEntry]
    plantings: List[Planting]
    recurring: RecurringCarbon
