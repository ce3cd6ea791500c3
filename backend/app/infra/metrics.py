"""Process-local counters for gate decisions, listing loads and entry mutations."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import Dict

from .logging import get_logger

logger = get_logger(__name__)


class MetricsClient:  # pragma: no cover - interface
    def increment(self, metric: str, value: int = 1) -> None:
        raise NotImplementedError


@dataclass
class InMemoryMetricsClient(MetricsClient):
    """Counter sink; the gate, listing, editor and routers all report here."""

    counters: Counter = field(default_factory=Counter)

    def increment(self, metric: str, value: int = 1) -> None:
        self.counters[metric] += value
        logger.debug("metrics_increment", extra={"metric": metric, "value": value})

    def count(self, metric: str) -> int:
        return self.counters[metric]

    def snapshot(self, prefix: str = "") -> Dict[str, int]:
        """Non-zero counters whose name starts with ``prefix``."""

        return {
            metric: value
            for metric, value in sorted(self.counters.items())
            if metric.startswith(prefix) and value
        }


_metrics_singleton: InMemoryMetricsClient | None = None


def get_metrics_client() -> MetricsClient:
    """Return the shared metrics client."""

    global _metrics_singleton
    if _metrics_singleton is None:
        _metrics_singleton = InMemoryMetricsClient()
    return _metrics_singleton
