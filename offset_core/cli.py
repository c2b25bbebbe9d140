from __future__ import annotations

import dataclasses
import datetime as dt
import enum
import json
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, List, Optional

import typer
from rich.console import Console
from rich.table import Table

from offset_core.domain.models import LedgerData, LedgerSnapshot, NotFoundError, OptimizationMode, ValidationError
from offset_core.io import config as config_io
from offset_core.io import ledger as ledger_io
from offset_core.logging import configure_logging, get_logger
from offset_core.services import calculator
from offset_core.services.milestones import MilestoneTracker
from offset_core.services.optimizer import AllocationOptimizer, best_mode
from offset_core.services.planner import MonthlyPlanGenerator
from offset_core.services.projector import GrowthProjector

app = typer.Typer(help="Carbon offset planner: tree purchase plans and neutrality projections.")
console = Console()
logger = get_logger(__name__)

CURRENCY_SYMBOLS = {"USD": "$", "EUR": "€", "GBP": "£"}


@dataclasses.dataclass
class _Context:
    settings: config_io.OffsetSettings
    ledger: LedgerData
    snapshot: LedgerSnapshot

    @property
    def optimizer(self) -> AllocationOptimizer:
        return AllocationOptimizer(self.settings.diversity_factor)


# -------------------------------
# Output helpers
# -------------------------------


def _jsonable(value: Any) -> Any:
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {f.name: _jsonable(getattr(value, f.name)) for f in dataclasses.fields(value)}
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, (dt.date, dt.datetime)):
        return value.isoformat()
    if isinstance(value, Path):
        return str(value)
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return value


def _save_json(path: Path, payload):
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2)


def _emit(payload: Any, out: Optional[Path], as_json: bool) -> bool:
    """Writes/prints the JSON form; returns False when the caller should render tables instead."""
    data = _jsonable(payload)
    if out:
        _save_json(out, data)
        typer.echo(f"Written to {out}")
        return True
    if as_json:
        typer.echo(json.dumps(data, indent=2))
        return True
    return False


def _money(amount: Optional[float], currency: str) -> str:
    symbol = CURRENCY_SYMBOLS.get(currency.upper(), "")
    value = f"{symbol}{(amount or 0):,.2f}"
    return value if symbol else f"{value} {currency}"


def _kg(amount: float) -> str:
    return f"{amount:,.2f} kg"


def _when(date: Optional[dt.date]) -> str:
    return date.strftime("%B %Y") if date else "Not achieved"


def _progress_bar(pct: float, width: int = 30) -> str:
    filled = min(width, round(pct / 100 * width))
    color = "green" if pct >= 50 else "yellow"
    return f"[{color}]{'█' * filled}{'░' * (width - filled)}[/{color}]"


@contextmanager
def _user_errors() -> Iterator[None]:
    try:
        yield
    except (ValidationError, NotFoundError, ValueError) as exc:
        logger.debug("command_failed", error=str(exc))
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=1)


def _load_context(
    data: Optional[Path],
    settings_path: Optional[Path],
    log_level: Optional[str],
    catalog: Optional[Path] = None,
) -> _Context:
    settings = config_io.load_settings(settings_path)
    configure_logging(level=log_level or settings.log_level, format_json=settings.log_json)
    path = data or settings.data_file
    ledger = ledger_io.load_ledger(path, catalog_path=catalog)
    snapshot = calculator.build_snapshot(ledger)
    logger.debug("snapshot_loaded", path=str(path), remaining=snapshot.remaining_carbon, trees=len(snapshot.catalog))
    return _Context(settings=settings, ledger=ledger, snapshot=snapshot)


DataOpt = typer.Option(None, "--data", help="Ledger JSON (defaults to <data_dir>/carbon_config.json)")
CatalogOpt = typer.Option(None, "--catalog", help="Tree catalog CSV replacing the ledger's tree types")
SettingsOpt = typer.Option(None, "--settings", help="Settings JSON (data_dir, currency, diversity_factor, ...)")
LogLevelOpt = typer.Option(None, "--log-level", help="Override log level (DEBUG, INFO, ...)")
JsonOpt = typer.Option(False, "--json", help="Print JSON instead of tables")
OutOpt = typer.Option(None, help="Write JSON output to this path")


# -------------------------------
# Commands
# -------------------------------


@app.command()
def status(
    data: Optional[Path] = DataOpt,
    catalog: Optional[Path] = CatalogOpt,
    settings: Optional[Path] = SettingsOpt,
    log_level: Optional[str] = LogLevelOpt,
    as_json: bool = JsonOpt,
    out: Optional[Path] = OutOpt,
):
    """Summarize the ledger: carbon logged, offset so far, budget and projected neutrality."""
    with _user_errors():
        ctx = _load_context(data, settings, log_level, catalog)
        snap = ctx.snapshot
        entries = calculator.expand_recurring(ctx.ledger.carbon_entries, ctx.ledger.recurring)
        progress = calculator.progress_percentage(entries, ctx.ledger.plantings)
        neutrality = calculator.projected_neutrality_date(snap)
        payload = {
            "total_carbon": snap.total_carbon_to_date,
            "offset_achieved": snap.achieved_offset,
            "remaining": snap.remaining_carbon,
            "progress_percentage": progress,
            "monthly_budget": snap.monthly_budget,
            "recurring_monthly_carbon": snap.recurring_monthly_carbon,
            "tree_types": len(snap.catalog),
            "projected_neutrality": neutrality,
            "by_category": calculator.carbon_by_category(entries),
            "by_month": calculator.carbon_by_month(entries),
        }
    if _emit(payload, out, as_json):
        return

    currency = ctx.settings.currency
    table = Table(title="Carbon Offset Status")
    table.add_column("Metric")
    table.add_column("Value", justify="right")
    table.add_row("Total carbon to offset", _kg(snap.total_carbon_to_date))
    table.add_row("Total offset achieved", _kg(snap.achieved_offset))
    table.add_row("Remaining to offset", _kg(snap.remaining_carbon))
    table.add_row("Progress", f"{progress}%")
    table.add_row("Monthly budget", _money(snap.monthly_budget, currency))
    table.add_row("Recurring carbon", f"{_kg(snap.recurring_monthly_carbon)}/month")
    table.add_row("Tree types available", str(len(snap.catalog)))
    table.add_row("Projected neutrality", _when(neutrality))
    console.print(table)
    if snap.total_carbon_to_date > 0:
        console.print(f"Progress: {_progress_bar(progress)} {progress}%")

    if payload["by_category"]:
        table = Table(title="Carbon by Category")
        table.add_column("Category")
        table.add_column("Entries", justify="right")
        table.add_column("Total", justify="right")
        for category, row in payload["by_category"].items():
            table.add_row(category, str(row["count"]), _kg(row["total"]))
        console.print(table)

    if payload["by_month"]:
        table = Table(title="Carbon by Month")
        table.add_column("Month")
        table.add_column("Total", justify="right")
        for month, total in payload["by_month"].items():
            table.add_row(month, _kg(total))
        console.print(table)


@app.command()
def allocate(
    mode: OptimizationMode = typer.Option(OptimizationMode.BALANCED, help="Optimization mode"),
    budget: Optional[float] = typer.Option(None, help="Override the monthly budget"),
    target: Optional[float] = typer.Option(None, help="Override the carbon target (defaults to remaining)"),
    data: Optional[Path] = DataOpt,
    catalog: Optional[Path] = CatalogOpt,
    settings: Optional[Path] = SettingsOpt,
    log_level: Optional[str] = LogLevelOpt,
    as_json: bool = JsonOpt,
    out: Optional[Path] = OutOpt,
):
    """Recommend a single month's tree purchases."""
    with _user_errors():
        ctx = _load_context(data, settings, log_level, catalog)
        snap = ctx.snapshot
        result = ctx.optimizer.allocate(
            budget if budget is not None else snap.monthly_budget,
            target if target is not None else snap.remaining_carbon,
            snap.catalog,
            mode,
        )
    if _emit(result, out, as_json):
        return

    currency = ctx.settings.currency
    table = Table(title=f"Purchase Recommendation ({mode.value})")
    table.add_column("Tree")
    table.add_column("Quantity", justify="right")
    for name, qty in result.purchases.items():
        table.add_row(name, str(qty))
    console.print(table)
    console.print(f"Cost: [bold]{_money(result.total_cost, currency)}[/bold] | Offset: [bold]{_kg(result.total_offset)}[/bold]")


@app.command()
def plan(
    months: int = typer.Option(12, help="Months to plan"),
    mode: OptimizationMode = typer.Option(OptimizationMode.BALANCED, help="Optimization mode"),
    budget: Optional[float] = typer.Option(None, help="Override the monthly budget"),
    data: Optional[Path] = DataOpt,
    catalog: Optional[Path] = CatalogOpt,
    settings: Optional[Path] = SettingsOpt,
    log_level: Optional[str] = LogLevelOpt,
    as_json: bool = JsonOpt,
    out: Optional[Path] = OutOpt,
):
    """Generate a month-by-month planting plan."""
    with _user_errors():
        ctx = _load_context(data, settings, log_level, catalog)
        entries = MonthlyPlanGenerator(ctx.optimizer).plan(months, budget, mode, ctx.snapshot)
    if _emit(entries, out, as_json):
        return

    if not entries:
        console.print("[yellow]Nothing to plan: no carbon outstanding or no tree is affordable.[/yellow]")
        return

    currency = ctx.settings.currency
    table = Table(title=f"Monthly Planting Plan ({mode.value})")
    for col in ("Month", "Trees to Plant", "Cost", "CO2 Offset", "Remaining"):
        table.add_column(col)
    for entry in entries:
        trees = ", ".join(f"{qty}x {name}" for name, qty in entry.purchases.items())
        table.add_row(entry.calendar_label, trees, _money(entry.cost, currency), _kg(entry.offset), _kg(entry.remaining_after))
    table.add_section()
    table.add_row(
        "TOTAL",
        "",
        _money(sum(e.cost for e in entries), currency),
        _kg(sum(e.offset for e in entries)),
        _kg(entries[-1].remaining_after),
    )
    console.print(table)
    if entries[-1].remaining_after > 0:
        console.print("[yellow]This plan doesn't fully offset your carbon. Extend the plan or raise the budget.[/yellow]")
    else:
        console.print("[green]This plan fully offsets your carbon.[/green]")


@app.command()
def compare(
    budget: Optional[float] = typer.Option(None, help="Override the monthly budget"),
    data: Optional[Path] = DataOpt,
    catalog: Optional[Path] = CatalogOpt,
    settings: Optional[Path] = SettingsOpt,
    log_level: Optional[str] = LogLevelOpt,
    as_json: bool = JsonOpt,
    out: Optional[Path] = OutOpt,
):
    """Compare the three optimization modes for one month."""
    with _user_errors():
        ctx = _load_context(data, settings, log_level, catalog)
        snap = ctx.snapshot
        spend = budget if budget is not None else snap.monthly_budget
        comparisons = ctx.optimizer.compare_modes(spend, snap.remaining_carbon, snap.catalog)
    best = best_mode(comparisons)
    if _emit({"comparisons": comparisons, "recommended": best.mode if best else None}, out, as_json):
        return

    currency = ctx.settings.currency
    table = Table(title=f"Mode Comparison | Budget {_money(spend, currency)} | Target {_kg(snap.remaining_carbon)}")
    for col in ("Mode", "Cost", "CO2 Offset", "Diversity", "Efficiency"):
        table.add_column(col)
    for comp in comparisons:
        table.add_row(
            comp.mode.value,
            _money(comp.total_cost, currency),
            _kg(comp.total_offset),
            f"{comp.tree_diversity} types",
            f"{comp.efficiency:.2f} kg/{currency}",
        )
    console.print(table)
    if best:
        console.print(f"[green]Recommendation: use {best.mode.value} mode for best efficiency[/green]")


@app.command()
def project(
    years: int = typer.Option(5, help="Years to project"),
    carbon_growth: float = typer.Option(0.0, help="Annual growth of recurring carbon, in %"),
    budget_growth: float = typer.Option(0.0, help="Annual budget growth, in %"),
    data: Optional[Path] = DataOpt,
    catalog: Optional[Path] = CatalogOpt,
    settings: Optional[Path] = SettingsOpt,
    log_level: Optional[str] = LogLevelOpt,
    as_json: bool = JsonOpt,
    out: Optional[Path] = OutOpt,
):
    """Project the carbon backlog and neutrality date."""
    with _user_errors():
        ctx = _load_context(data, settings, log_level, catalog)
        result = GrowthProjector().project(years, carbon_growth, budget_growth, ctx.snapshot)
    if _emit(result, out, as_json):
        return

    summary = result.summary
    currency = ctx.settings.currency
    console.print("\n[bold cyan]== Projection ==[/bold cyan]")
    console.print(f"Years: {years} | Carbon growth: {carbon_growth}%/yr | Budget growth: {budget_growth}%/yr")
    if summary.neutrality_achieved:
        console.print(
            f"[green]Carbon neutrality in month {summary.neutrality_month} ({_when(summary.neutrality_date)})[/green]"
        )
    else:
        console.print("[red]Carbon neutrality not achieved within the projection period[/red]")
    console.print(f"Final carbon: {_kg(summary.final_carbon)}")
    console.print(f"Total offset: {_kg(summary.total_offset)}")
    console.print(f"Total cost: {_money(summary.total_cost, currency)}")
    console.print(f"Average monthly offset: {_kg(summary.average_monthly_offset)}")
    console.print(f"Final monthly budget: {_money(summary.final_monthly_budget, currency)}")

    frame = result.to_frame()
    yearly = frame.groupby("year_index").agg(
        offset=("monthly_offset", "sum"),
        remaining=("carbon_remaining", "last"),
        budget=("monthly_budget", "last"),
    )
    table = Table(title="By Year")
    for col in ("Year", "Offset", "Remaining", "Monthly budget"):
        table.add_column(col, justify="right")
    for year, row in yearly.iterrows():
        table.add_row(str(year), _kg(row["offset"]), _kg(row["remaining"]), _money(row["budget"], currency))
    console.print(table)


@app.command()
def scenarios(
    years: int = typer.Option(5, help="Years to project each scenario"),
    data: Optional[Path] = DataOpt,
    catalog: Optional[Path] = CatalogOpt,
    settings: Optional[Path] = SettingsOpt,
    log_level: Optional[str] = LogLevelOpt,
    as_json: bool = JsonOpt,
    out: Optional[Path] = OutOpt,
):
    """Run the five standard growth scenarios."""
    with _user_errors():
        ctx = _load_context(data, settings, log_level, catalog)
        outcomes = GrowthProjector().run_scenarios(ctx.snapshot, years)
    if _emit(outcomes, out, as_json):
        return

    currency = ctx.settings.currency
    table = Table(title="Future Projections")
    for col in ("Scenario", "Carbon Growth", "Budget Growth", "Neutrality Date", "Total Cost"):
        table.add_column(col)
    for o in outcomes:
        mark = "[green]✓[/green]" if o.success else "[red]✗[/red]"
        table.add_row(
            f"{mark} {o.name}",
            f"{o.carbon_growth_rate}%/yr",
            f"{o.budget_growth_rate}%/yr",
            _when(o.neutrality_date),
            _money(o.total_cost, currency),
        )
    console.print(table)


@app.command()
def sensitivity(
    years: int = typer.Option(5, help="Years to project each point"),
    data: Optional[Path] = DataOpt,
    catalog: Optional[Path] = CatalogOpt,
    settings: Optional[Path] = SettingsOpt,
    log_level: Optional[str] = LogLevelOpt,
    as_json: bool = JsonOpt,
    out: Optional[Path] = OutOpt,
):
    """Show how the neutrality date reacts to budget and carbon growth."""
    with _user_errors():
        ctx = _load_context(data, settings, log_level, catalog)
        analysis = GrowthProjector().analyze_sensitivity(ctx.snapshot, years)
    if analysis is None:
        console.print("[yellow]Set a monthly budget to run the sensitivity analysis.[/yellow]")
        raise typer.Exit(code=1)
    if _emit(analysis, out, as_json):
        return

    currency = ctx.settings.currency
    sections = (
        ("Budget growth", analysis.budget_sensitivity),
        ("Carbon growth", analysis.carbon_sensitivity),
        ("Combined", analysis.combined_sensitivity),
    )
    for title, points in sections:
        table = Table(title=title)
        for col in ("Carbon %/yr", "Budget %/yr", "Neutrality", "Total Cost", "Final Carbon"):
            table.add_column(col, justify="right")
        for p in points:
            table.add_row(
                f"{p.carbon_growth_rate:+g}",
                f"{p.budget_growth_rate:+g}",
                _when(p.neutrality_date),
                _money(p.total_cost, currency),
                _kg(p.final_carbon),
            )
        console.print(table)


@app.command()
def milestones(
    data: Optional[Path] = DataOpt,
    catalog: Optional[Path] = CatalogOpt,
    settings: Optional[Path] = SettingsOpt,
    log_level: Optional[str] = LogLevelOpt,
    as_json: bool = JsonOpt,
    out: Optional[Path] = OutOpt,
):
    """Show offset milestones and when the next one is expected."""
    with _user_errors():
        ctx = _load_context(data, settings, log_level, catalog)
        report = MilestoneTracker().track(ctx.snapshot)
    if _emit(report, out, as_json):
        return

    lines: List[str] = ["[bold cyan]MILESTONES[/bold cyan]"]
    for m in report.milestones:
        mark = "[green]✓[/green]" if m.achieved else "○"
        lines.append(f"  {mark} {m.name}: {_kg(m.target_amount)}")
    nxt = report.next_milestone
    if nxt is not None:
        lines.append(f"\nNext: [yellow]{nxt.name}[/yellow]")
        if nxt.estimated_date:
            lines.append(f"Est. date: {_when(nxt.estimated_date)}")
    lines.append(f"Progress: {report.progress_percentage}%")
    console.print("\n".join(lines))


if __name__ == "__main__":
    app()
