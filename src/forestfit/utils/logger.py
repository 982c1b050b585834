# ============================================
# forestfit - src/forestfit/utils/logger.py
# Logging system with performance and audit tracking
# ============================================

import sys
import json
import logging
import logging.config
import traceback
from datetime import datetime, timezone
from functools import wraps
from typing import Any, Callable, Dict
import time

from .config_loader import get_config

ROOT_LOGGER_NAME = "forestfit"

# Attributes every LogRecord carries; anything else came in through `extra`
_RESERVED_RECORD_KEYS = frozenset(logging.LogRecord(
    'x', logging.INFO, __file__, 0, '', (), None).__dict__) | {'message', 'asctime'}


class PerformanceLogger:
    """Performance tracking and timing utilities"""

    def __init__(self, logger: logging.Logger):
        self.logger = logger
        self.timings: Dict[str, float] = {}

    def time_operation(self, operation_name: str):
        """Decorator for timing operations"""
        def decorator(func: Callable) -> Callable:
            @wraps(func)
            def wrapper(*args, **kwargs):
                start_time = time.perf_counter()
                try:
                    result = func(*args, **kwargs)
                except Exception as e:
                    duration = time.perf_counter() - start_time
                    self.logger.error(
                        f"PERFORMANCE: {operation_name} failed after {duration:.3f}s",
                        extra={'operation': operation_name, 'duration': duration, 'error': str(e)}
                    )
                    raise
                self.log_timing(operation_name, time.perf_counter() - start_time,
                                function=func.__name__)
                return result
            return wrapper
        return decorator

    def log_timing(self, operation_name: str, duration: float, **kwargs):
        """Manually log timing information"""
        self.timings[operation_name] = duration
        self.logger.debug(
            f"TIMING: {operation_name} - {duration:.3f}s",
            extra={'operation': operation_name, 'duration': duration,
                   'performance_metric': True, **kwargs}
        )

    def get_performance_summary(self) -> Dict[str, Any]:
        """Get summary of recorded performance metrics"""
        if not self.timings:
            return {}

        return {
            'total_operations': len(self.timings),
            'total_time': sum(self.timings.values()),
            'average_time': sum(self.timings.values()) / len(self.timings),
            'slowest_operation': max(self.timings.items(), key=lambda x: x[1]),
            'fastest_operation': min(self.timings.items(), key=lambda x: x[1]),
            'operations': dict(self.timings)
        }


class AuditLogger:
    """Audit trail of model training events"""

    def __init__(self, logger: logging.Logger):
        self.logger = logger

    def log_model_training(self, model_type: str, **metadata):
        """Log a completed training run"""
        self.logger.info(
            f"MODEL_TRAINING: {model_type}",
            extra={
                'audit': True,
                'event_type': 'model_training',
                'model_type': model_type,
                'event_time': datetime.now(timezone.utc).isoformat(),
                **metadata
            }
        )


class ContextFilter(logging.Filter):
    """Add contextual information to log records"""

    def __init__(self):
        super().__init__()
        self.context: Dict[str, Any] = {}

    def filter(self, record):
        for key, value in self.context.items():
            if not hasattr(record, key):
                setattr(record, key, value)

        if not hasattr(record, 'component'):
            # forestfit.models.ensemble -> models
            name_parts = record.name.split('.')
            record.component = name_parts[1] if len(name_parts) >= 2 else 'core'

        return True

    def set_context(self, **kwargs):
        """Set context for subsequent log messages"""
        self.context.update(kwargs)

    def clear_context(self):
        """Clear context"""
        self.context.clear()


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging"""

    def format(self, record):
        log_entry = {
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno,
        }

        if record.exc_info:
            log_entry['exception'] = {
                'type': record.exc_info[0].__name__,
                'message': str(record.exc_info[1]),
                'traceback': traceback.format_exception(*record.exc_info)
            }

        for key, value in record.__dict__.items():
            if key not in _RESERVED_RECORD_KEYS:
                log_entry[key] = value

        return json.dumps(log_entry, default=str)


class ForestFitLogger:
    """
    Logging system for forestfit

    Only the ``forestfit`` logger namespace is configured; the root logger
    and other libraries' loggers are left to the application.
    """

    def __init__(self):
        self.context_filter = ContextFilter()
        self._setup_logging()

        self._loggers: Dict[str, logging.Logger] = {}
        self._performance_loggers: Dict[str, PerformanceLogger] = {}
        self._audit_loggers: Dict[str, AuditLogger] = {}

    def _setup_logging(self):
        """Setup logging configuration"""
        logging_config = get_config('logging')
        try:
            if logging_config:
                logging.config.dictConfig(logging_config)
            else:
                self._setup_default_logging()
        except (ValueError, TypeError, AttributeError, ImportError) as e:
            print(f"Warning: Failed to apply logging config, using defaults: {e}", file=sys.stderr)
            self._setup_default_logging()

        package_logger = logging.getLogger(ROOT_LOGGER_NAME)
        for handler in package_logger.handlers:
            handler.addFilter(self.context_filter)

    def _setup_default_logging(self):
        """Console handler on the package logger"""
        package_logger = logging.getLogger(ROOT_LOGGER_NAME)
        package_logger.handlers.clear()

        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setFormatter(logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        ))
        console_handler.setLevel(logging.WARNING)

        package_logger.setLevel(logging.INFO)
        package_logger.addHandler(console_handler)

    def get_logger(self, name: str) -> logging.Logger:
        """
        Get a logger for a specific component

        Args:
            name: Logger name (e.g., 'models.ensemble.bagging', 'evaluation.fit')

        Returns:
            Configured logger instance
        """
        if name in self._loggers:
            return self._loggers[name]

        full_name = name if name.startswith(ROOT_LOGGER_NAME) else f"{ROOT_LOGGER_NAME}.{name}"
        logger = logging.getLogger(full_name)
        self._loggers[name] = logger

        return logger

    def get_performance_logger(self, name: str) -> PerformanceLogger:
        """Get performance logger for a component"""
        if name not in self._performance_loggers:
            self._performance_loggers[name] = PerformanceLogger(self.get_logger(f"{name}.performance"))

        return self._performance_loggers[name]

    def get_audit_logger(self, name: str = "audit") -> AuditLogger:
        """Get audit logger for training events"""
        if name not in self._audit_loggers:
            self._audit_loggers[name] = AuditLogger(self.get_logger(f"audit.{name}"))

        return self._audit_loggers[name]

    def set_context(self, **kwargs):
        """Set context for all subsequent log messages"""
        self.context_filter.set_context(**kwargs)

    def clear_context(self):
        """Clear logging context"""
        self.context_filter.clear_context()


# Global logger instance
logger_system = ForestFitLogger()

# Convenience functions for common operations
def get_logger(name: str) -> logging.Logger:
    """Get a logger for a specific component"""
    return logger_system.get_logger(name)

def get_performance_logger(name: str) -> PerformanceLogger:
    """Get performance logger for a component"""
    return logger_system.get_performance_logger(name)

def get_audit_logger(name: str = "audit") -> AuditLogger:
    """Get audit logger for training events"""
    return logger_system.get_audit_logger(name)

def set_logging_context(**kwargs):
    """Set context for all subsequent log messages"""
    logger_system.set_context(**kwargs)

def clear_logging_context():
    """Clear logging context"""
    logger_system.clear_context()

def log_model_training(model_type: str, **metadata):
    """Log model training events"""
    get_audit_logger().log_model_training(model_type, **metadata)
