# ============================================
# forestfit - src/forestfit/utils/exceptions.py
# Exception hierarchy for training, prediction and configuration errors
# ============================================

import re
import json
from typing import Any, Dict, List, Optional
from datetime import datetime, timezone


class ForestFitBaseException(Exception):
    """
    Base exception class for all forestfit exceptions

    Features:
    - Error codes for programmatic handling
    - Context information for debugging
    - Severity levels for appropriate responses
    - Suggested fixes for the caller
    """

    default_severity = "error"

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        severity: Optional[str] = None,
        suggestions: Optional[List[str]] = None,
        cause: Optional[Exception] = None
    ):
        """
        Initialize base exception

        Args:
            message: Technical error message for logs
            error_code: Unique error code for programmatic handling
            context: Additional context information
            severity: Error severity (debug, info, warning, error, critical)
            suggestions: List of suggested solutions
            cause: Original exception that caused this error
        """
        super().__init__(message)

        self.message = message
        self.error_code = error_code or self._generate_error_code()
        self.context = dict(context or {})
        self.severity = severity or self.default_severity
        self.suggestions = list(suggestions or [])
        self.cause = cause
        self.timestamp = datetime.now(timezone.utc)

        self.context.update({
            'exception_type': self.__class__.__name__,
            'timestamp': self.timestamp.isoformat(),
            'severity': self.severity
        })

    def _generate_error_code(self) -> str:
        """Generate error code based on class name"""
        class_name = self.__class__.__name__
        # Convert CamelCase to UPPER_SNAKE_CASE
        error_code = re.sub('(.)([A-Z][a-z]+)', r'\1_\2', class_name)
        error_code = re.sub('([a-z0-9])([A-Z])', r'\1_\2', error_code).upper()
        return error_code.replace('_EXCEPTION', '_ERROR')

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for JSON serialization"""
        return {
            'error_code': self.error_code,
            'message': self.message,
            'severity': self.severity,
            'context': self.context,
            'suggestions': self.suggestions,
            'timestamp': self.timestamp.isoformat(),
            'cause': repr(self.cause) if self.cause else None
        }

    def to_json(self) -> str:
        """Convert exception to JSON string"""
        return json.dumps(self.to_dict(), default=str, indent=2)

    def add_context(self, **kwargs):
        """Add additional context to the exception"""
        self.context.update(kwargs)

    def add_suggestion(self, suggestion: str):
        """Add a suggestion for resolving the error"""
        self.suggestions.append(suggestion)

# ============================================
# Data-related Exceptions
# ============================================

class DataError(ForestFitBaseException):
    """Base class for data-related errors"""


class DataValidationError(DataError):
    """Raised when training or test data fails validation"""

    def __init__(self, message: str, validation_errors: Optional[List[str]] = None, **kwargs):
        context = kwargs.pop('context', None) or {}
        if validation_errors:
            context['validation_errors'] = validation_errors
        kwargs.setdefault('suggestions', [
            "Check that x is a 2-D matrix and y a 1-D vector",
            "Make sure x and y have the same number of rows",
            "Remove NaN or infinite values before training"
        ])
        super().__init__(message, context=context, **kwargs)


class InsufficientDataError(DataError):
    """Raised when there are not enough rows for the requested operation"""

    default_severity = "warning"

    def __init__(self, message: str, required_points: Optional[int] = None,
                 available_points: Optional[int] = None, **kwargs):
        context = kwargs.pop('context', None) or {}
        if required_points is not None:
            context['required_points'] = required_points
        if available_points is not None:
            context['available_points'] = available_points
        super().__init__(message, context=context, **kwargs)

# ============================================
# Model-related Exceptions
# ============================================

class ModelError(ForestFitBaseException):
    """Base class for model-related errors"""


class ModelTrainingError(ModelError):
    """Raised when model training fails"""

    def __init__(self, message: str, model_type: Optional[str] = None, **kwargs):
        context = kwargs.pop('context', None) or {}
        if model_type:
            context['model_type'] = model_type
        super().__init__(message, context=context, **kwargs)


# ============================================
# Configuration Exceptions
# ============================================

class ConfigurationError(ForestFitBaseException):
    """Raised when configuration or hyperparameters are invalid"""

    default_severity = "critical"

    def __init__(self, message: str, config_name: Optional[str] = None, **kwargs):
        context = kwargs.pop('context', None) or {}
        if config_name:
            context['config_name'] = config_name
        super().__init__(message, context=context, **kwargs)


class InvalidParameterError(ConfigurationError):
    """Raised when a hyperparameter is outside its accepted range"""

    def __init__(self, message: str, parameter_name: Optional[str] = None,
                 provided_value: Any = None, **kwargs):
        context = kwargs.pop('context', None) or {}
        if parameter_name:
            context['parameter_name'] = parameter_name
        if provided_value is not None:
            context['provided_value'] = provided_value
        kwargs.setdefault('suggestions', [
            "Check parameter values",
            "Refer to HyperParameter for valid ranges",
            "Use default values if unsure"
        ])
        super().__init__(message, context=context, **kwargs)

        self.parameter_name = parameter_name
        self.provided_value = provided_value


class DimensionMismatchError(DataValidationError, ConfigurationError):
    """Raised when x and y disagree on the number of rows"""

# ============================================
# Business Logic Exceptions
# ============================================

class BusinessLogicError(ForestFitBaseException):
    """Raised when an operation is invoked in the wrong model state"""

    default_severity = "warning"

# ============================================
# Utility Functions
# ============================================

def handle_exception(func):
    """
    Decorator that converts unexpected exceptions into forestfit exceptions

    Usage:
        @handle_exception
        def my_function():
            ...
    """
    from functools import wraps

    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except ForestFitBaseException:
            raise
        except Exception as e:
            raise ForestFitBaseException(
                message=f"Unexpected error in {func.__name__}: {str(e)}",
                cause=e,
                context={
                    'function': func.__name__,
                    'args': str(args)[:200],
                    'kwargs': str(kwargs)[:200]
                }
            ) from e

    return wrapper


def log_exception(exception: Exception, logger=None):
    """Log exception with appropriate level and context"""
    from .logger import get_logger

    if logger is None:
        logger = get_logger('exceptions')

    if isinstance(exception, ForestFitBaseException):
        level_map = {
            'debug': logger.debug,
            'info': logger.info,
            'warning': logger.warning,
            'error': logger.error,
            'critical': logger.critical
        }

        log_func = level_map.get(exception.severity, logger.error)
        log_func(
            f"[{exception.error_code}] {exception.message}",
            extra={'error_context': exception.context},
            exc_info=exception.severity in ['error', 'critical']
        )
    else:
        logger.error(f"Unexpected exception: {str(exception)}",
                     exc_info=(type(exception), exception, exception.__traceback__))

# ============================================
# Exception Registry
# ============================================

EXCEPTION_REGISTRY = {
    # Data exceptions
    'DATA_ERROR': DataError,
    'DATA_VALIDATION_ERROR': DataValidationError,
    'INSUFFICIENT_DATA_ERROR': InsufficientDataError,

    # Model exceptions
    'MODEL_ERROR': ModelError,
    'MODEL_TRAINING_ERROR': ModelTrainingError,

    # Configuration exceptions
    'CONFIGURATION_ERROR': ConfigurationError,
    'INVALID_PARAMETER_ERROR': InvalidParameterError,
    'DIMENSION_MISMATCH_ERROR': DimensionMismatchError,

    # Business logic exceptions
    'BUSINESS_LOGIC_ERROR': BusinessLogicError,
}


def get_exception_class(error_code: str) -> type:
    """Get exception class by error code"""
    return EXCEPTION_REGISTRY.get(error_code, ForestFitBaseException)
