from __future__ import annotations

import math
from typing import Dict, List, Optional, Sequence

from offset_core.domain.models import (
    AllocationResult,
    ModeComparison,
    OptimizationMode,
    TreeOption,
    ValidationError,
)
from offset_core.logging import get_logger

logger = get_logger(__name__)

DIVERSITY_FACTOR_MIN = 0.1
DIVERSITY_FACTOR_MAX = 0.5
DIVERSITY_SLOTS = 3


def sort_by_efficiency(catalog: Sequence[TreeOption]) -> List[TreeOption]:
    # sorted() is stable, so equal efficiencies keep catalog order
    return sorted(catalog, key=lambda t: -t.efficiency)


def validate_inputs(budget: Optional[float], catalog: Sequence[TreeOption]) -> None:
    if budget is None or budget <= 0:
        raise ValidationError("No monthly budget set")
    if not catalog:
        raise ValidationError("No tree types available")


def offset_capacity(budget: float, catalog: Sequence[TreeOption]) -> float:
    """Most CO2 one month's budget can offset using only the most efficient tree."""
    if not catalog or budget <= 0:
        return 0.0
    best = sort_by_efficiency(catalog)[0]
    return math.floor(budget / best.cost_per_unit) * best.co2_per_unit


class _Basket:
    """Running purchase map; keys are inserted in the order trees are first bought."""

    def __init__(self, budget: float) -> None:
        self.budget = budget
        self.purchases: Dict[str, int] = {}
        self.cost = 0.0
        self.offset = 0.0

    @property
    def spendable(self) -> float:
        return self.budget - self.cost

    def units(self, tree: TreeOption, money: float) -> int:
        """Whole units of ``tree`` that ``money`` buys without taking the basket over budget."""
        quantity = math.floor(money / tree.cost_per_unit)
        # floor(a / b) * b can land just above a in floating point
        while quantity > 0 and self.cost + quantity * tree.cost_per_unit > self.budget:
            quantity -= 1
        return max(quantity, 0)

    def add(self, tree: TreeOption, quantity: int) -> None:
        if quantity <= 0:
            return
        self.purchases[tree.name] = self.purchases.get(tree.name, 0) + quantity
        self.cost += quantity * tree.cost_per_unit
        self.offset += quantity * tree.co2_per_unit

    def result(self) -> AllocationResult:
        return AllocationResult(purchases=dict(self.purchases), total_cost=self.cost, total_offset=self.offset)


class AllocationOptimizer:
    """
    Single-period tree purchase planner.

    Modes:
    - balanced: reserve a diversity share of the budget for the top options, then
      fill towards the target greedily by efficiency.
    - cost_efficient: greedy by efficiency only.
    - max_diversity: even split across every affordable option, leftover to the best one.
    """

    def __init__(self, diversity_factor: float = 0.3):
        self.diversity_factor = min(max(diversity_factor, DIVERSITY_FACTOR_MIN), DIVERSITY_FACTOR_MAX)

    def allocate(
        self,
        budget: float,
        target_offset: float,
        catalog: Sequence[TreeOption],
        mode: OptimizationMode | str = OptimizationMode.BALANCED,
    ) -> AllocationResult:
        validate_inputs(budget, catalog)
        mode = OptimizationMode.parse(mode)
        ranked = sort_by_efficiency(catalog)

        if mode is OptimizationMode.COST_EFFICIENT:
            result = self._cost_efficient(budget, target_offset, ranked)
        elif mode is OptimizationMode.MAX_DIVERSITY:
            result = self._max_diversity(budget, ranked)
        else:
            result = self._balanced(budget, target_offset, ranked)

        logger.debug(
            "allocation_complete",
            mode=mode.value,
            budget=budget,
            target=target_offset,
            cost=result.total_cost,
            offset=result.total_offset,
            trees=result.tree_diversity,
        )
        return result

    def compare_modes(
        self,
        budget: float,
        target_offset: float,
        catalog: Sequence[TreeOption],
    ) -> List[ModeComparison]:
        comparisons: List[ModeComparison] = []
        for mode in OptimizationMode:
            result = self.allocate(budget, target_offset, catalog, mode)
            efficiency = result.total_offset / result.total_cost if result.total_cost > 0 else 0.0
            comparisons.append(
                ModeComparison(
                    mode=mode,
                    total_cost=result.total_cost,
                    total_offset=result.total_offset,
                    tree_diversity=result.tree_diversity,
                    efficiency=efficiency,
                    purchases=result.purchases,
                )
            )
        return comparisons

    # -------------------------------
    # Strategies (catalog already ranked)
    # -------------------------------

    def _balanced(self, budget: float, target: float, ranked: List[TreeOption]) -> AllocationResult:
        basket = _Basket(budget)

        # Phase 1 spends the diversity share regardless of the target.
        if len(ranked) > 1:
            slots = min(len(ranked), DIVERSITY_SLOTS)
            share = budget * self.diversity_factor / slots
            for tree in ranked[:slots]:
                if share >= tree.cost_per_unit:
                    basket.add(tree, basket.units(tree, share))

        _fill_towards_target(basket, target, ranked)
        return basket.result()

    def _cost_efficient(self, budget: float, target: float, ranked: List[TreeOption]) -> AllocationResult:
        basket = _Basket(budget)
        _fill_towards_target(basket, target, ranked)
        return basket.result()

    def _max_diversity(self, budget: float, ranked: List[TreeOption]) -> AllocationResult:
        basket = _Basket(budget)
        affordable = [t for t in ranked if t.cost_per_unit <= budget]
        if not affordable:
            return basket.result()

        share = budget / len(affordable)
        for tree in affordable:
            basket.add(tree, basket.units(tree, share))

        best = affordable[0]
        if basket.spendable >= best.cost_per_unit:
            basket.add(best, basket.units(best, basket.spendable))
        return basket.result()


def _fill_towards_target(basket: _Basket, target: float, ranked: List[TreeOption]) -> None:
    """Greedy pass: buy the most efficient trees first until money or need runs out."""
    # cheapest[i] = cheapest unit cost among ranked[i:]
    cheapest = [0.0] * len(ranked)
    floor_cost = math.inf
    for i in range(len(ranked) - 1, -1, -1):
        floor_cost = min(floor_cost, ranked[i].cost_per_unit)
        cheapest[i] = floor_cost

    for i, tree in enumerate(ranked):
        if basket.spendable < cheapest[i] or basket.offset >= target:
            break
        quantity = basket.units(tree, basket.spendable)
        if math.isfinite(target):
            # ceil() can overshoot the target by part of a tree; that is kept.
            quantity = min(quantity, math.ceil((target - basket.offset) / tree.co2_per_unit))
        basket.add(tree, quantity)


def best_mode(comparisons: Sequence[ModeComparison]) -> Optional[ModeComparison]:
    if not comparisons:
        return None
    # max() keeps the first of equal values
    return max(comparisons, key=lambda c: c.efficiency)
