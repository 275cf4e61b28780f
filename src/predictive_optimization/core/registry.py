"""
Per-metric model registry.

A registry holds exactly one model per metric name for its owner (the
performance predictor or the anomaly detector). Models are loaded from the
store at start, mutated in place by the owner only, and written back at stop
or whenever the owner asks for a flush.
"""

from typing import Dict, Generic, ItemsView, Optional, Set, Type, TypeVar

import structlog
from pydantic import BaseModel

from predictive_optimization.core.exceptions import StoreError
from predictive_optimization.storage.redis_store import OptimizationStore

logger = structlog.get_logger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


class ModelRegistry(Generic[ModelT]):
    """One model per metric name, persisted under ``<kind>:<metric>``."""

    def __init__(self, store: OptimizationStore, kind: str, model_cls: Type[ModelT]):
        self.store = store
        self.kind = kind
        self.model_cls = model_cls
        self._models: Dict[str, ModelT] = {}
        self._dirty: Set[str] = set()

    def __contains__(self, metric_name: str) -> bool:
        return metric_name in self._models

    def __len__(self) -> int:
        return len(self._models)

    def get(self, metric_name: str) -> Optional[ModelT]:
        return self._models.get(metric_name)

    def put(self, metric_name: str, model: ModelT) -> None:
        self._models[metric_name] = model
        self._dirty.add(metric_name)

    def mark_dirty(self, metric_name: str) -> None:
        if metric_name in self._models:
            self._dirty.add(metric_name)

    def items(self) -> ItemsView[str, ModelT]:
        return self._models.items()

    async def load(self) -> int:
        """Load every persisted model; returns how many were loaded."""
        try:
            models = await self.store.list(self.kind, self.model_cls)
        except StoreError as e:
            logger.warning("Could not load models, starting empty", kind=self.kind, error=str(e))
            return 0

        for model in models:
            self._models[model.metric_name] = model

        logger.info("Models loaded", kind=self.kind, count=len(models))
        return len(models)

    async def save(self, metric_name: Optional[str] = None) -> int:
        """Persist dirty models (or one model); returns how many were written."""
        names = [metric_name] if metric_name else sorted(self._dirty)
        written = 0
        for name in names:
            model = self._models.get(name)
            if model is None:
                continue
            await self.store.save(self.kind, name, model)
            self._dirty.discard(name)
            written += 1

        if written:
            logger.debug("Models saved", kind=self.kind, count=written)
        return written


__all__ = ["ModelRegistry"]
