# ============================================
# forestfit - src/forestfit/utils/validators.py
# Data and hyperparameter validation
# ============================================

import numbers
import numpy as np
import pandas as pd
from typing import Any, Dict, List, Optional, Tuple

from .exceptions import DataValidationError, DimensionMismatchError, InvalidParameterError
from .logger import get_logger

logger = get_logger('validators')

# ============================================
# Base Validation Framework
# ============================================

class ValidationResult:
    """Container for validation results"""

    def __init__(self, is_valid: bool = True, errors: Optional[List[str]] = None,
                 warnings: Optional[List[str]] = None):
        self.is_valid = is_valid
        self.errors = errors or []
        self.warnings = warnings or []
        self.invalid_parameters: Dict[str, Any] = {}
        self.shape_mismatch = False

    def add_error(self, error: str, parameter: Optional[str] = None, value: Any = None):
        """Add an error message, optionally naming the offending parameter"""
        self.errors.append(error)
        self.is_valid = False
        if parameter is not None:
            self.invalid_parameters[parameter] = value

    def add_warning(self, warning: str):
        """Add a warning message"""
        self.warnings.append(warning)

    def merge(self, other: 'ValidationResult'):
        """Merge another validation result"""
        self.errors.extend(other.errors)
        self.warnings.extend(other.warnings)
        self.invalid_parameters.update(other.invalid_parameters)
        self.shape_mismatch = self.shape_mismatch or other.shape_mismatch
        if not other.is_valid:
            self.is_valid = False

    def raise_if_invalid(self):
        """Raise exception if validation failed"""
        if self.is_valid:
            return

        error_msg = "; ".join(self.errors)
        if self.invalid_parameters:
            name, value = next(iter(self.invalid_parameters.items()))
            raise InvalidParameterError(
                f"Invalid configuration: {error_msg}",
                parameter_name=name,
                provided_value=value,
                context={'invalid_parameters': dict(self.invalid_parameters)}
            )
        error_class = DimensionMismatchError if self.shape_mismatch else DataValidationError
        raise error_class(
            f"Validation failed: {error_msg}",
            validation_errors=self.errors
        )

    def __str__(self) -> str:
        status = "VALID" if self.is_valid else "INVALID"
        parts = [f"Validation: {status}"]

        if self.errors:
            parts.append(f"Errors: {', '.join(self.errors)}")
        if self.warnings:
            parts.append(f"Warnings: {', '.join(self.warnings)}")

        return " | ".join(parts)


class BaseValidator:
    """Base class for all validators"""

    def __init__(self, strict_mode: bool = False):
        self.strict_mode = strict_mode

    def _create_result(self, is_valid: bool = True) -> ValidationResult:
        """Create new validation result"""
        return ValidationResult(is_valid=is_valid)

# ============================================
# Data Validators
# ============================================

def as_matrix(x: Any) -> np.ndarray:
    """Convert array-likes and DataFrames to a 2-D float matrix (1-D becomes one row)"""
    if isinstance(x, (pd.DataFrame, pd.Series)):
        x = x.to_numpy()
    matrix = np.asarray(x, dtype=float)
    if matrix.ndim == 1:
        matrix = matrix.reshape(1, -1)
    return matrix


def as_vector(y: Any) -> np.ndarray:
    """Convert array-likes and Series to a 1-D float vector"""
    if isinstance(y, (pd.DataFrame, pd.Series)):
        y = y.to_numpy()
    return np.asarray(y, dtype=float).ravel()


class DataValidator(BaseValidator):
    """Validate feature matrices and response vectors"""

    def validate_training_data(self, x: Any, y: Any) -> ValidationResult:
        """
        Validate a training (or testing) pair

        Args:
            x: Feature matrix, one row per instance
            y: Response vector

        Returns:
            ValidationResult with validation status
        """
        result = self._create_result()

        x_arr = np.asarray(x.to_numpy() if isinstance(x, pd.DataFrame) else x, dtype=float)
        y_arr = np.asarray(y.to_numpy() if isinstance(y, (pd.Series, pd.DataFrame)) else y, dtype=float)

        if x_arr.ndim != 2:
            result.add_error(f"Feature matrix must be 2-D, got {x_arr.ndim}-D")
            return result
        if y_arr.ndim != 1:
            result.add_error(f"Response must be a 1-D vector, got {y_arr.ndim}-D")
            return result
        if x_arr.shape[0] == 0:
            result.add_error("Feature matrix is empty")
            return result
        if x_arr.shape[1] == 0:
            result.add_error("Feature matrix has no columns")
        if x_arr.shape[0] != y_arr.shape[0]:
            result.shape_mismatch = True
            result.add_error(
                f"Dimension mismatch: x has {x_arr.shape[0]} rows but y has {y_arr.shape[0]} elements")

        for name, arr in (("Feature matrix", x_arr), ("Response vector", y_arr)):
            if np.all(np.isfinite(arr)):
                continue
            message = f"{name} contains NaN or infinite values"
            if self.strict_mode:
                result.add_error(message)
            else:
                result.add_warning(message)

        for warning in result.warnings:
            logger.warning(warning)

        return result

# ============================================
# Parameter Validators
# ============================================

def _is_integer(value: Any) -> bool:
    return isinstance(value, numbers.Integral) and not isinstance(value, bool)


def _is_real(value: Any) -> bool:
    return isinstance(value, numbers.Real) and not isinstance(value, bool)


class ParameterValidator(BaseValidator):
    """Validate tree and ensemble hyperparameters"""

    RATIO_BOUNDS: Tuple[float, float] = (0.0, 1.0)

    def validate_tree_params(self, max_depth: Any) -> ValidationResult:
        """Validate the depth limit shared by every tree learner"""
        result = self._create_result()

        if not _is_integer(max_depth) or max_depth < 1:
            result.add_error(f"maxDepth must be an integer >= 1, got {max_depth!r}",
                             parameter='maxDepth', value=max_depth)

        return result

    def validate_ensemble_params(self, n_trees: Any, b_ratio: Any,
                                 fb_ratio: Any = None) -> ValidationResult:
        """
        Validate ensemble size and sampling ratios

        Args:
            n_trees: Number of trees in the ensemble
            b_ratio: Row sampling fraction
            fb_ratio: Column sampling fraction, None when feature bagging is off

        Returns:
            ValidationResult with validation status
        """
        result = self.validate_ensemble_size(n_trees)

        result.merge(self._validate_ratio('bRatio', b_ratio))
        if fb_ratio is not None:
            result.merge(self._validate_ratio('fbRatio', fb_ratio))

        return result

    def validate_ensemble_size(self, n_trees: Any) -> ValidationResult:
        """An ensemble holds at least one tree"""
        result = self._create_result()

        if not _is_integer(n_trees) or n_trees < 1:
            result.add_error(f"nTrees must be an integer >= 1, got {n_trees!r}",
                             parameter='nTrees', value=n_trees)

        return result

    def _validate_ratio(self, name: str, value: Any) -> ValidationResult:
        """Ratios live in (0, 1]"""
        result = self._create_result()
        low, high = self.RATIO_BOUNDS

        if not _is_real(value) or not np.isfinite(value) or not (low < value <= high):
            result.add_error(f"{name} must be in ({low:g}, {high:g}], got {value!r}",
                             parameter=name, value=value)

        return result

    def validate_sample_size(self, size: Any, n_rows: int) -> ValidationResult:
        """A sub-sample must hold between 1 and n_rows rows"""
        result = self._create_result()

        if not _is_integer(size) or size <= 0 or size > n_rows:
            result.add_error(f"Sample size must be in [1, {n_rows}], got {size!r}",
                             parameter='sampleSize', value=size)

        return result
