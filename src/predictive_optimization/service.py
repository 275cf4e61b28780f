"""
Service facade wiring every optimization component to one store.

The surrounding service (API, UI, auth) talks to the engine only through
this facade; nothing else in the package is meant to be called from outside.
"""

from typing import Any, Dict, List, Optional

import structlog

from predictive_optimization.config.settings import Settings, get_settings
from predictive_optimization.detection import Anomaly, AnomalyDetector
from predictive_optimization.monitoring import MetricAlert, MetricsCollector
from predictive_optimization.optimization import (
    ActionExecutor,
    CostDataSource,
    CostOptimizer,
    DecisionStatus,
    OptimizationDecision,
    OptimizationEngine,
    OptimizationReport,
    ReportPeriodType,
    ResourceOptimizer,
    SimulatedExecutor,
)
from predictive_optimization.optimization.cost_models import CostAlert
from predictive_optimization.prediction import PerformancePredictor
from predictive_optimization.storage import OptimizationStore

logger = structlog.get_logger(__name__)


class PredictiveOptimizationService:
    """
    Owns the store and the six components, and starts and stops them in order.

    ``executor`` is shared by the resource and cost optimizers, so it should
    implement both executor ports.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        store: Optional[OptimizationStore] = None,
        executor: Optional[ActionExecutor] = None,
        cost_source: Optional[CostDataSource] = None,
    ):
        self.settings = settings or get_settings()
        self.store = store or OptimizationStore.from_settings(self.settings)
        executor = executor or SimulatedExecutor()

        schedule = self.settings.schedule
        thresholds = self.settings.thresholds

        self.collector = MetricsCollector(self.store, interval=schedule.collection_interval)
        self.predictor = PerformancePredictor(
            self.store,
            self.collector,
            interval=schedule.prediction_interval,
            bottleneck_confidence=thresholds.bottleneck_confidence,
            retrain_mape=thresholds.retrain_mape,
        )
        self.detector = AnomalyDetector(
            self.store,
            self.collector,
            interval=schedule.detection_interval,
            retrain_f1=thresholds.retrain_f1,
            correlation_threshold=thresholds.correlation_break,
        )
        self.resource_optimizer = ResourceOptimizer(self.store, executor=executor)
        self.cost_optimizer = CostOptimizer(
            self.store,
            executor=executor,
            source=cost_source,
            interval=schedule.cost_analysis_interval,
            monthly_budget=thresholds.monthly_budget,
        )
        self.engine = OptimizationEngine(
            self.store,
            self.collector,
            self.predictor,
            self.detector,
            self.resource_optimizer,
            self.cost_optimizer,
            interval=schedule.optimization_interval,
            cost_savings_floor=thresholds.cost_savings_floor,
        )

        self._running = False

    @property
    def components(self) -> List[Any]:
        return [
            self.collector,
            self.predictor,
            self.detector,
            self.resource_optimizer,
            self.cost_optimizer,
            self.engine,
        ]

    @property
    def is_running(self) -> bool:
        return self._running

    async def open(self) -> None:
        """
        Connect the store and load models and strategies without starting any loop.

        Used by one-shot callers such as the CLI; ``close`` flushes the same state.
        """
        await self.store.connect()
        await self.predictor.models.load()
        await self.detector.models.load()
        self.detector.initialize_default_models()
        await self.resource_optimizer.start()
        await self.engine.load_strategies()
        await self.engine.initialize_default_strategies()

    async def close(self) -> None:
        await self.predictor.models.save()
        await self.detector.models.save()
        await self.resource_optimizer.stop()
        await self.engine.save_strategies()
        await self.store.disconnect()

    async def start(self) -> None:
        """Connect the store, then start every component."""
        if self._running:
            return

        await self.store.connect()
        for component in self.components:
            await component.start()

        self._running = True
        logger.info("Predictive optimization service started", environment=self.settings.environment)

    async def stop(self) -> None:
        """Stop components in reverse start order, then disconnect."""
        if not self._running:
            return

        for component in reversed(self.components):
            try:
                await component.stop()
            except Exception as e:
                logger.error(
                    "Component failed to stop cleanly",
                    component=type(component).__name__,
                    error=str(e),
                )
        await self.store.disconnect()

        self._running = False
        logger.info("Predictive optimization service stopped")

    async def __aenter__(self) -> "PredictiveOptimizationService":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()

    # Collaborator-facing calls

    async def list_active_anomalies(self, metric_name: Optional[str] = None) -> List[Anomaly]:
        return await self.detector.list_active_anomalies(metric_name)

    async def list_active_alerts(self) -> List[MetricAlert]:
        return await self.collector.list_active_alerts()

    async def list_cost_alerts(self) -> List[CostAlert]:
        return await self.cost_optimizer.list_active_alerts()

    async def list_decisions(self, status: Optional[DecisionStatus] = None) -> List[OptimizationDecision]:
        return await self.engine.list_decisions(status)

    async def get_decision(self, decision_id: str) -> OptimizationDecision:
        return await self.engine.get_decision(decision_id)

    async def approve(self, decision_id: str) -> OptimizationDecision:
        return await self.engine.approve(decision_id)

    async def reject(self, decision_id: str, reason: str) -> OptimizationDecision:
        return await self.engine.reject(decision_id, reason)

    async def generate_report(self, period: ReportPeriodType = ReportPeriodType.DAILY) -> OptimizationReport:
        return await self.engine.generate_report(period)

    async def run_cycle(self) -> List[OptimizationDecision]:
        return await self.engine.run_cycle()

    async def health(self) -> Dict[str, Any]:
        """Store reachability plus a few counters for a readiness check."""
        store_ok = await self.store.ping()
        snapshot = self.collector.latest_snapshot()

        status: Dict[str, Any] = {
            "status": "healthy" if store_ok else "unhealthy",
            "running": self._running,
            "store": store_ok,
            "last_snapshot": snapshot.timestamp if snapshot else None,
            "engine_strategies": len(self.engine.strategies),
            "resource_strategies": len(self.resource_optimizer.list_strategies()),
        }
        if store_ok:
            status["active_anomalies"] = len(await self.detector.list_active_anomalies())
            status["pending_decisions"] = len(await self.engine.list_decisions(DecisionStatus.PENDING))
        return status


__all__ = ["PredictiveOptimizationService"]
