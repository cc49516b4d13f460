"""
Observability utilities for the methylset store.

This module provides:
- Logging configuration for the `methylset` logger hierarchy
- A lightweight execution profiler that store operations report into
"""

import logging
import time
from contextlib import contextmanager
from typing import Optional, Dict, Any, Deque
from dataclasses import dataclass, field
from collections import deque
import json

from .config import PROFILE_MAX_ENTRIES


# ============================================================================
# Logging Configuration
# ============================================================================

LOGGER_NAME = 'methylset'


def configure_logging(level: str = "INFO", log_file: Optional[str] = None):
    """
    Configure logging for the methylset package.

    Calling it again replaces the handlers installed by the previous call.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional file path to write logs
    """
    log_level = getattr(logging, level.upper())

    console_formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    detailed_formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    store_logger = logging.getLogger(LOGGER_NAME)
    store_logger.setLevel(logging.DEBUG if log_file else log_level)

    for handler in list(store_logger.handlers):
        store_logger.removeHandler(handler)
        handler.close()

    console_handler = logging.StreamHandler()
    console_handler.setLevel(log_level)
    console_handler.setFormatter(console_formatter)
    store_logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(logging.DEBUG)  # Always log everything to file
        file_handler.setFormatter(detailed_formatter)
        store_logger.addHandler(file_handler)

    store_logger.propagate = False

    return store_logger


# ============================================================================
# Performance Profiling
# ============================================================================

@dataclass
class ProfileEntry:
    """Single profile measurement."""
    name: str
    start_time: float
    end_time: Optional[float] = None
    duration: Optional[float] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def complete(self):
        self.end_time = time.perf_counter()
        self.duration = self.end_time - self.start_time

    def to_dict(self) -> dict:
        return {
            'name': self.name,
            'duration': self.duration,
            'metadata': self.metadata
        }


class ExecutionProfiler:
    """
    Records how long store operations take.

    Only the most recent `max_entries` measurements are kept individually;
    per-operation statistics cover every call.

    Example:
        profiler = get_profiler()
        handle.fill("s1", values)
        profiler.get_summary()["fileset.fill"]["count"]
    """

    def __init__(self, max_entries: int = PROFILE_MAX_ENTRIES):
        self.entries: Deque[ProfileEntry] = deque(maxlen=max_entries)
        self.aggregated: Dict[str, Dict[str, float]] = {}
        self._enabled = True

    @contextmanager
    def profile(self, name: str, **metadata):
        """
        Context manager for profiling a code block.

        Args:
            name: Name of the operation being profiled
            **metadata: Additional metadata to attach (cell counts, sample ids)
        """
        if not self._enabled:
            yield None
            return

        entry = ProfileEntry(name=name, start_time=time.perf_counter(), metadata=metadata)
        try:
            yield entry
        finally:
            entry.complete()
            self.entries.append(entry)
            self._aggregate(name, entry.duration)

    def _aggregate(self, name: str, duration: float):
        stats = self.aggregated.get(name)
        if stats is None:
            self.aggregated[name] = {'count': 1, 'total': duration, 'min': duration, 'max': duration}
            return
        stats['count'] += 1
        stats['total'] += duration
        stats['min'] = min(stats['min'], duration)
        stats['max'] = max(stats['max'], duration)

    def get_summary(self) -> Dict[str, Dict[str, float]]:
        """
        Aggregated statistics per operation name.

        Returns:
            Dictionary mapping operation names to count/total/mean/min/max
        """
        return {
            name: dict(stats, mean=stats['total'] / stats['count'])
            for name, stats in self.aggregated.items()
        }

    def log_summary(self, logger: Optional[logging.Logger] = None):
        """Write one line per profiled operation to the package logger."""
        logger = logger or logging.getLogger(LOGGER_NAME)
        for name, stats in sorted(self.get_summary().items(), key=lambda x: x[1]['total'], reverse=True):
            logger.info("%-28s count=%-6d total=%.4fs mean=%.6fs",
                        name, stats['count'], stats['total'], stats['mean'])

    def save_json(self, filepath: str):
        data = {
            'summary': self.get_summary(),
            'entries': [entry.to_dict() for entry in self.entries]
        }
        with open(filepath, 'w') as f:
            json.dump(data, f, indent=2)

    def reset(self):
        self.entries.clear()
        self.aggregated.clear()

    def enable(self):
        self._enabled = True

    def disable(self):
        self._enabled = False


# Global profiler instance
_global_profiler = ExecutionProfiler()

def get_profiler() -> ExecutionProfiler:
    """Get the global profiler instance."""
    return _global_profiler
