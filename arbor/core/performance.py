#!/usr/bin/env python3
"""Performance monitoring for layout and render recomputes."""

import functools
import time
from collections import defaultdict
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

import psutil

from arbor.core.logging_config import get_logger

logger = get_logger(__name__)


@dataclass
class PerformanceMetric:
    """Individual performance metric."""
    name: str
    start_time: float
    end_time: Optional[float] = None
    duration: Optional[float] = None
    memory_before: Optional[float] = None
    memory_after: Optional[float] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def finish(self, end_time: Optional[float] = None) -> float:
        """Mark the metric as finished and calculate duration."""
        self.end_time = end_time or time.perf_counter()
        self.duration = self.end_time - self.start_time
        return self.duration


class PerformanceMonitor:
    """Collects timings of named operations; a no-op while disabled."""

    def __init__(self, enabled: bool = True, max_metrics: int = 1000):
        self.enabled = enabled
        self.max_metrics = max_metrics
        self.metrics: List[PerformanceMetric] = []
        self.aggregated_stats: Dict[str, List[float]] = defaultdict(list)

    @contextmanager
    def measure(self, operation_name: str, **metadata):
        """Context manager for measuring operation performance."""
        if not self.enabled:
            yield None
            return

        metric = PerformanceMetric(
            name=operation_name,
            start_time=time.perf_counter(),
            memory_before=self._get_memory_usage(),
            metadata=metadata,
        )
        try:
            yield metric
        finally:
            duration = metric.finish(time.perf_counter())
            metric.memory_after = self._get_memory_usage()
            if metric.memory_before is not None:
                metric.metadata['memory_delta'] = metric.memory_after - metric.memory_before
            self._record(metric)
            logger.debug(f"Performance: {operation_name} took {duration:.4f}s")

    def _record(self, metric: PerformanceMetric) -> None:
        self.metrics.append(metric)
        if len(self.metrics) > self.max_metrics:
            del self.metrics[:len(self.metrics) - self.max_metrics]
        self.aggregated_stats[metric.name].append(metric.duration or 0.0)

    def get_stats(self) -> Dict[str, Any]:
        """Get aggregated performance statistics."""
        stats: Dict[str, Any] = {}
        for name, durations in self.aggregated_stats.items():
            if durations:
                stats[name] = {
                    'count': len(durations),
                    'total_time': sum(durations),
                    'avg_time': sum(durations) / len(durations),
                    'min_time': min(durations),
                    'max_time': max(durations),
                    'last_time': durations[-1],
                }
        stats['system'] = self._get_system_stats()
        return stats

    def clear_metrics(self) -> None:
        """Clear all stored metrics."""
        self.metrics.clear()
        self.aggregated_stats.clear()

    def log_slow_operations(self, threshold_seconds: float = 0.1) -> None:
        """Log operations that took longer than the threshold."""
        slow_ops = [m for m in self.metrics if m.duration and m.duration > threshold_seconds]
        if slow_ops:
            logger.warning(f"Found {len(slow_ops)} slow operations (>{threshold_seconds}s):")
            for metric in slow_ops:
                logger.warning(f"  {metric.name}: {metric.duration:.3f}s")

    def _get_memory_usage(self) -> float:
        """Get current memory usage in MB."""
        try:
            return psutil.Process().memory_info().rss / 1024 / 1024
        except (psutil.NoSuchProcess, psutil.AccessDenied):
            return 0.0

    def _get_system_stats(self) -> Dict[str, Any]:
        try:
            return {
                'memory_usage_mb': self._get_memory_usage(),
                'memory_percent': psutil.virtual_memory().percent,
            }
        except (psutil.NoSuchProcess, psutil.AccessDenied):
            return {}


# Global performance monitor instance, disabled by default
_performance_monitor = PerformanceMonitor(enabled=False)


def enable_performance_monitoring(enabled: bool = True) -> None:
    """Enable or disable global performance monitoring."""
    _performance_monitor.enabled = enabled
    logger.info(f"Performance monitoring {'enabled' if enabled else 'disabled'}")


def get_performance_monitor() -> PerformanceMonitor:
    """Get the global performance monitor instance."""
    return _performance_monitor


def performance_timer(operation_name: Optional[str] = None):
    """Decorator for timing function execution."""
    def decorator(func: Callable) -> Callable:
        name = operation_name or f"{func.__module__}.{func.__name__}"

        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            with _performance_monitor.measure(name):
                return func(*args, **kwargs)
        return wrapper
    return decorator
