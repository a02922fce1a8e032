"""Stage timing profiler for FrameRead."""

import json
import logging
import threading
import time
from collections import defaultdict
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional

logger = logging.getLogger(__name__)


class Profiler:
    """Singleton that collects per-stage durations when enabled."""

    _instance = None
    _lock = threading.Lock()

    def __new__(cls):
        with cls._lock:
            if cls._instance is None:
                cls._instance = super(Profiler, cls).__new__(cls)
                cls._instance._initialized = False
            return cls._instance

    def __init__(self):
        if self._initialized:
            return

        self.enabled = False
        self.output_file: Optional[str] = None
        self.metrics: Dict[str, List[Any]] = defaultdict(list)
        self.start_time: Optional[float] = None
        self._timers: Dict[str, float] = {}
        self._initialized = True

    def enable(self, output_file: str):
        """Enable profiling and set output file."""
        self.enabled = True
        self.output_file = output_file
        self.start_time = time.time()
        logger.info(f"Profiling enabled. Output will be written to {output_file}")

    def reset(self):
        """Disable profiling and drop collected metrics."""
        with self._lock:
            self.enabled = False
            self.output_file = None
            self.metrics.clear()
            self._timers.clear()
            self.start_time = None

    def start_timer(self, key: str) -> None:
        if not self.enabled:
            return
        self._timers[key] = time.perf_counter()

    def stop_timer(self, key: str) -> None:
        if not self.enabled or key not in self._timers:
            return
        self.add_metric(key, time.perf_counter() - self._timers.pop(key))

    @contextmanager
    def timed(self, key: str) -> Iterator[None]:
        """Time the enclosed block under ``key``."""
        self.start_timer(key)
        try:
            yield
        finally:
            self.stop_timer(key)

    def add_metric(self, key: str, value: Any) -> None:
        if not self.enabled:
            return
        with self._lock:
            self.metrics[key].append(value)

    def summary(self) -> Dict[str, Any]:
        """Aggregate count/total/avg/min/max per metric."""
        duration = time.time() - self.start_time if self.start_time else 0.0
        summary: Dict[str, Any] = {"total_duration": duration, "metrics": {}}

        with self._lock:
            for key, values in self.metrics.items():
                if not values:
                    continue
                try:
                    total = sum(values)
                    summary["metrics"][key] = {
                        "count": len(values),
                        "total": total,
                        "avg": total / len(values),
                        "min": min(values),
                        "max": max(values),
                    }
                except TypeError:
                    summary["metrics"][key] = {"count": len(values), "values": values}
        return summary

    def save_results(self) -> None:
        """Save profiling results to the JSON output file."""
        if not self.enabled or not self.output_file:
            return

        try:
            with open(self.output_file, 'w') as f:
                json.dump(self.summary(), f, indent=2)
            logger.info(f"Profiling results saved to {self.output_file}")
        except OSError as e:
            logger.error(f"Failed to save profiling results: {e}")


# Global instance
profiler = Profiler()
