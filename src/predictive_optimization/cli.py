"""
Command Line Interface for the Predictive Optimization Engine.

Operator commands for validating configuration, running the service,
triggering a single optimization cycle and reviewing decisions, anomalies
and reports.
"""

import asyncio
import sys
from typing import Awaitable, Callable, List, Optional, TypeVar

import typer
from rich.console import Console
from rich.table import Table

from predictive_optimization import __version__
from predictive_optimization.config.settings import get_settings, validate_required_settings
from predictive_optimization.core.logging import get_logger, setup_logging
from predictive_optimization.optimization import DecisionStatus, OptimizationDecision, ReportPeriodType
from predictive_optimization.service import PredictiveOptimizationService

app = typer.Typer(
    name="predictive-optimization",
    help="Predictive performance and cost optimization engine CLI",
    add_completion=False,
)
console = Console()

T = TypeVar("T")

PRIORITY_STYLES = {
    "critical": "bold red",
    "high": "red",
    "medium": "yellow",
    "low": "green",
}


def _configure_logging() -> None:
    settings = get_settings()
    setup_logging(settings.log_level, settings.environment, settings.log_file)


def _run(action: Callable[[PredictiveOptimizationService], Awaitable[T]]) -> T:
    """Open a service without background loops, run one action and close it."""

    async def runner() -> T:
        service = PredictiveOptimizationService()
        await service.open()
        try:
            return await action(service)
        finally:
            await service.close()

    return asyncio.run(runner())


def _fail(message: str, error: Exception) -> None:
    console.print(f"❌ {message}: {error}", style="red")
    sys.exit(1)


def _decision_table(title: str, decisions: List[OptimizationDecision]) -> Table:
    table = Table(title=title)
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Type")
    table.add_column("Priority")
    table.add_column("Score", justify="right")
    table.add_column("Status", style="magenta")
    table.add_column("Items", justify="right")
    table.add_column("Auto")
    table.add_column("Trigger")

    for decision in decisions:
        priority = decision.priority.value
        table.add_row(
            decision.id,
            decision.type.value,
            f"[{PRIORITY_STYLES[priority]}]{priority}[/]",
            f"{decision.priority_score:.1f}",
            decision.status.value,
            str(decision.item_count),
            "✅" if decision.auto_approve else "",
            decision.trigger.description,
        )
    return table


@app.command()
def version():
    """Show version information."""
    console.print(f"Predictive Optimization Engine v{__version__}")


@app.command()
def validate_config():
    """Validate system configuration."""
    try:
        settings = get_settings()
        validate_required_settings(settings)

        console.print("✅ Configuration validation successful!", style="green")

        table = Table(title="Configuration Summary")
        table.add_column("Setting", style="cyan")
        table.add_column("Value", style="magenta")

        table.add_row("Environment", settings.environment)
        table.add_row("Debug Mode", str(settings.debug))
        table.add_row("Log Level", settings.log_level)
        table.add_row("Redis URL", "✅ Configured" if settings.store.redis_url else "❌ Missing")
        table.add_row("Collection Interval", f"{settings.schedule.collection_interval:g}s")
        table.add_row("Optimization Interval", f"{settings.schedule.optimization_interval:g}s")
        table.add_row("Cost Analysis Interval", f"{settings.schedule.cost_analysis_interval:g}s")
        table.add_row("Monthly Budget", f"${settings.thresholds.monthly_budget:,.2f}")

        console.print(table)

    except Exception as e:
        _fail("Configuration validation failed", e)


@app.command()
def run():
    """Start every component and run until interrupted."""
    _configure_logging()
    logger = get_logger("cli")

    async def serve() -> None:
        async with PredictiveOptimizationService() as service:
            console.print("🚀 Predictive optimization service running (Ctrl+C to stop)", style="blue")
            health = await service.health()
            logger.info("Service health", **health)
            await asyncio.Event().wait()

    try:
        asyncio.run(serve())
    except KeyboardInterrupt:
        console.print("👋 Service stopped", style="blue")
    except Exception as e:
        _fail("Service failed", e)


@app.command()
def cycle():
    """Run one optimization cycle and show the decisions it produced."""
    _configure_logging()
    try:
        decisions = _run(lambda service: service.run_cycle())
    except Exception as e:
        _fail("Optimization cycle failed", e)
        return

    if not decisions:
        console.print("✅ Nothing to optimize", style="green")
        return
    console.print(_decision_table("Optimization Cycle", decisions))


@app.command()
def decisions(
    status: Optional[DecisionStatus] = typer.Option(None, help="Only show decisions in this status"),
):
    """List optimization decisions, newest first."""
    _configure_logging()
    try:
        found = _run(lambda service: service.list_decisions(status))
    except Exception as e:
        _fail("Could not list decisions", e)
        return

    console.print(_decision_table("Optimization Decisions", found))


@app.command()
def approve(decision_id: str = typer.Argument(..., help="Decision ID")):
    """Approve a pending decision and execute it."""
    _configure_logging()
    try:
        decision = _run(lambda service: service.approve(decision_id))
    except Exception as e:
        _fail("Approval failed", e)
        return

    style = "green" if decision.status is DecisionStatus.COMPLETED else "yellow"
    console.print(f"Decision {decision.id} is {decision.status.value}", style=style)
    if decision.result and decision.result.errors:
        for error in decision.result.errors:
            console.print(f"  • {error}", style="red")


@app.command()
def reject(
    decision_id: str = typer.Argument(..., help="Decision ID"),
    reason: str = typer.Option(..., "--reason", help="Why the decision is rejected"),
):
    """Reject a pending decision."""
    _configure_logging()
    try:
        decision = _run(lambda service: service.reject(decision_id, reason))
    except Exception as e:
        _fail("Rejection failed", e)
        return

    console.print(f"Decision {decision.id} rejected: {decision.rejection_reason}", style="green")


@app.command()
def report(
    period: ReportPeriodType = typer.Option(ReportPeriodType.DAILY, help="Reporting period"),
):
    """Generate and show an optimization report."""
    _configure_logging()
    try:
        generated = _run(lambda service: service.generate_report(period))
    except Exception as e:
        _fail("Report generation failed", e)
        return

    summary = generated.summary
    metrics = generated.metrics

    table = Table(title=f"Optimization Report ({generated.period.type.value})")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="magenta", justify="right")
    table.add_row("Decisions", str(summary.total_decisions))
    table.add_row("Successful", str(summary.successful_optimizations))
    table.add_row("Failed", str(summary.failed_optimizations))
    table.add_row("Pending", str(summary.pending_decisions))
    table.add_row("Cost Savings", f"${summary.total_cost_savings:,.2f}")
    table.add_row("Performance Improvement", f"{summary.total_performance_improvement:.1f}")
    table.add_row("Effectiveness", f"{metrics.optimization_effectiveness:.0%}")
    table.add_row("Automation Rate", f"{metrics.automation_rate:.0%}")
    table.add_row("Approval Rate", f"{metrics.approval_rate:.0%}")
    console.print(table)

    for trend in generated.trends:
        console.print(f"📈 {trend.metric}: {trend.direction.value} ({trend.magnitude:+.1f})")
    for recommendation in generated.recommendations:
        console.print(f"💡 [{recommendation.priority.value}] {recommendation.title}: {recommendation.description}")


@app.command()
def anomalies():
    """List active anomalies."""
    _configure_logging()
    try:
        active = _run(lambda service: service.list_active_anomalies())
    except Exception as e:
        _fail("Could not list anomalies", e)
        return

    table = Table(title="Active Anomalies")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Metric")
    table.add_column("Type")
    table.add_column("Severity")
    table.add_column("Value", justify="right")
    table.add_column("Expected", justify="right")
    table.add_column("Detected")

    for anomaly in active:
        table.add_row(
            anomaly.id,
            anomaly.metric_name,
            anomaly.anomaly_type.value,
            anomaly.severity.value,
            f"{anomaly.value:.3f}",
            f"{anomaly.expected_value:.3f}",
            anomaly.detected_at.isoformat(timespec="seconds"),
        )
    console.print(table)


def main():
    """Main CLI entry point."""
    app()


if __name__ == "__main__":
    main()
