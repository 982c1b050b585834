# ============================================
# forestfit - src/forestfit/utils/timing.py
# Timing utilities for training and evaluation runs
# ============================================

import time
import functools
import threading
import statistics
from typing import Any, Dict, Optional, Callable
from dataclasses import dataclass, field
from collections import defaultdict, deque

from .logger import get_logger
from .exceptions import BusinessLogicError

logger = get_logger('timing')

# ============================================
# Core Timing Classes
# ============================================

@dataclass
class TimingResult:
    """Container for timing measurement results"""
    operation_name: str
    start_time: float
    end_time: float
    duration: float
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def duration_ms(self) -> float:
        """Duration in milliseconds"""
        return self.duration * 1000

    @property
    def duration_str(self) -> str:
        """Human-readable duration string"""
        return format_duration(self.duration)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization"""
        return {
            'operation_name': self.operation_name,
            'duration': self.duration,
            'duration_ms': self.duration_ms,
            'duration_str': self.duration_str,
            'metadata': self.metadata,
        }


class Timer:
    """
    High-precision timer for measuring operation performance

    Usable as a context manager:

        with Timer("bagging_train") as timer:
            ...
        timer.result.duration
    """

    def __init__(self, operation_name: str, auto_log: bool = True,
                 log_level: str = 'debug', metadata: Optional[Dict[str, Any]] = None):
        """
        Initialize timer

        Args:
            operation_name: Name of the operation being timed
            auto_log: Whether to automatically log timing results
            log_level: Log level for timing messages
            metadata: Additional metadata to include
        """
        self.operation_name = operation_name
        self.auto_log = auto_log
        self.log_level = log_level.lower()
        self.metadata = metadata or {}

        self.start_time: Optional[float] = None
        self.end_time: Optional[float] = None
        self.result: Optional[TimingResult] = None

    def start(self) -> 'Timer':
        """Start timing"""
        self.start_time = time.perf_counter()
        return self

    def stop(self) -> TimingResult:
        """Stop timing and return result"""
        if self.start_time is None:
            raise BusinessLogicError("Timer not started")

        self.end_time = time.perf_counter()
        self.result = TimingResult(
            operation_name=self.operation_name,
            start_time=self.start_time,
            end_time=self.end_time,
            duration=self.end_time - self.start_time,
            metadata=self.metadata
        )

        if self.auto_log:
            self._log_result()

        return self.result

    def _log_result(self):
        """Log timing result"""
        message = f"Operation '{self.operation_name}' completed in {self.result.duration_str}"

        log_func = getattr(logger, self.log_level, logger.debug)
        log_func(message, extra={
            'operation_name': self.operation_name,
            'duration': self.result.duration,
            'performance_metric': True,
        })

    def __enter__(self) -> 'Timer':
        return self.start()

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop()

        if exc_type is not None:
            logger.error(
                f"Operation '{self.operation_name}' failed after {self.result.duration_str}: "
                f"{exc_type.__name__}: {exc_val}"
            )

# ============================================
# Performance Monitor
# ============================================

class PerformanceMonitor:
    """Thread-safe collection of timing statistics per operation"""

    def __init__(self, max_history: int = 1000):
        self.max_history = max_history
        self.timings: Dict[str, deque] = defaultdict(lambda: deque(maxlen=max_history))
        self.operation_counts: Dict[str, int] = defaultdict(int)
        self.lock = threading.Lock()

    def record_timing(self, timing_result: TimingResult):
        """Record timing result"""
        with self.lock:
            self.timings[timing_result.operation_name].append(timing_result.duration)
            self.operation_counts[timing_result.operation_name] += 1

    def get_statistics(self, operation_name: str) -> Optional[Dict[str, float]]:
        """
        Get timing statistics for an operation

        Returns:
            Dictionary with timing statistics or None if no data
        """
        with self.lock:
            durations = list(self.timings.get(operation_name, ()))

        if not durations:
            return None

        return {
            'count': len(durations),
            'total_time': sum(durations),
            'mean': statistics.mean(durations),
            'median': statistics.median(durations),
            'min': min(durations),
            'max': max(durations),
            'std_dev': statistics.stdev(durations) if len(durations) > 1 else 0.0
        }

    def clear_statistics(self, operation_name: Optional[str] = None):
        """Clear statistics for one operation, or for all of them"""
        with self.lock:
            if operation_name:
                self.timings.pop(operation_name, None)
                self.operation_counts.pop(operation_name, None)
            else:
                self.timings.clear()
                self.operation_counts.clear()

# ============================================
# Decorators
# ============================================

def time_it(operation_name: Optional[str] = None, auto_log: bool = True,
            log_level: str = 'debug', include_args: bool = False):
    """
    Decorator to time function execution

    Args:
        operation_name: Custom operation name (defaults to function name)
        auto_log: Whether to automatically log timing results
        log_level: Log level for timing messages
        include_args: Whether to include argument counts in metadata

    Returns:
        Decorator function
    """
    def decorator(func: Callable) -> Callable:
        name = operation_name or f"{func.__module__}.{func.__name__}"

        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            metadata = {}
            if include_args:
                metadata['args_count'] = len(args)
                metadata['kwargs_count'] = len(kwargs)

            timer = Timer(name, auto_log, log_level, metadata)
            with timer:
                result = func(*args, **kwargs)

            global_monitor.record_timing(timer.result)
            return result

        return wrapper

    return decorator

# ============================================
# Utility Functions
# ============================================

def format_duration(seconds: float) -> str:
    """
    Format duration in human-readable format

    Args:
        seconds: Duration in seconds

    Returns:
        Formatted duration string
    """
    if seconds < 0.001:
        return f"{seconds * 1000000:.0f}us"
    elif seconds < 1:
        return f"{seconds * 1000:.1f}ms"
    elif seconds < 60:
        return f"{seconds:.2f}s"
    elif seconds < 3600:
        minutes = int(seconds // 60)
        return f"{minutes}m {seconds % 60:.1f}s"
    else:
        hours = int(seconds // 3600)
        minutes = int((seconds % 3600) // 60)
        return f"{hours}h {minutes}m {seconds % 60:.0f}s"

# ============================================
# Global Performance Monitor
# ============================================

global_monitor = PerformanceMonitor(max_history=10000)

def get_global_monitor() -> PerformanceMonitor:
    """Get the global performance monitor instance"""
    return global_monitor
