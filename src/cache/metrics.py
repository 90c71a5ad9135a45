"""Counters for cache hit/miss, errors and backend switches."""

import statistics
from dataclasses import dataclass, field
from typing import Any, Dict, List


@dataclass
class CacheMetrics:
    """Metrics for monitoring cache effectiveness and backend health."""

    hits: int = 0
    misses: int = 0
    sets: int = 0
    deletes: int = 0
    errors: int = 0
    serialization_errors: int = 0
    backend_switches: int = 0
    hits_by_backend: Dict[str, int] = field(default_factory=dict)
    latency_ms: List[float] = field(default_factory=list)

    def _record_latency(self, elapsed_ms: float) -> None:
        self.latency_ms.append(elapsed_ms)
        if len(self.latency_ms) > 1000:  # Keep last 1000 samples
            self.latency_ms = self.latency_ms[-1000:]

    def record_hit(self, backend: str, elapsed_ms: float) -> None:
        """Record a cache hit on the given backend."""
        self.hits += 1
        self.hits_by_backend[backend] = self.hits_by_backend.get(backend, 0) + 1
        self._record_latency(elapsed_ms)

    def record_miss(self, elapsed_ms: float) -> None:
        """Record a cache miss."""
        self.misses += 1
        self._record_latency(elapsed_ms)

    def record_set(self) -> None:
        self.sets += 1

    def record_delete(self, count: int = 1) -> None:
        self.deletes += count

    def record_error(self, serialization: bool = False) -> None:
        """Record a failed cache operation."""
        self.errors += 1
        if serialization:
            self.serialization_errors += 1

    def record_backend_switch(self) -> None:
        self.backend_switches += 1

    def hit_rate(self) -> float:
        """Calculate hit rate as percentage of lookups."""
        lookups = self.hits + self.misses
        if lookups == 0:
            return 0.0
        return (self.hits / lookups) * 100

    def get_avg_latency(self) -> float:
        """Get average lookup latency in milliseconds."""
        if not self.latency_ms:
            return 0.0
        return statistics.mean(self.latency_ms)

    def get_p95_latency(self) -> float:
        """Get 95th percentile lookup latency."""
        if len(self.latency_ms) < 2:
            return self.get_avg_latency()
        return statistics.quantiles(self.latency_ms, n=20)[18]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "hits": self.hits,
            "misses": self.misses,
            "sets": self.sets,
            "deletes": self.deletes,
            "errors": self.errors,
            "serialization_errors": self.serialization_errors,
            "backend_switches": self.backend_switches,
            "hits_by_backend": dict(self.hits_by_backend),
            "hit_rate": round(self.hit_rate(), 2),
            "avg_latency_ms": round(self.get_avg_latency(), 3),
            "p95_latency_ms": round(self.get_p95_latency(), 3),
        }
