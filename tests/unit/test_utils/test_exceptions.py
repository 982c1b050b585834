"""
tests/unit/test_utils/test_exceptions.py

Unit tests for the forestfit exception hierarchy.
"""

import json
import sys
from pathlib import Path

import pytest

# Add project root to Python path for imports
project_root = Path(__file__).parent.parent.parent.parent
sys.path.append(str(project_root))

from forestfit.utils.exceptions import (
    EXCEPTION_REGISTRY, BusinessLogicError, ConfigurationError, DataValidationError,
    DimensionMismatchError, ForestFitBaseException, InvalidParameterError,
    ModelTrainingError, get_exception_class, handle_exception, log_exception
)


class TestExceptionHierarchy:
    """Test exception classes and their payloads"""

    def test_invalid_parameter_is_configuration_error(self):
        """Test range errors are configuration errors carrying the value"""
        error = InvalidParameterError("bRatio out of range", parameter_name='bRatio', provided_value=1.5)

        assert isinstance(error, ConfigurationError)
        assert error.parameter_name == 'bRatio'
        assert error.provided_value == 1.5
        assert error.context['provided_value'] == 1.5
        assert error.severity == 'critical'
        assert error.suggestions

    def test_dimension_mismatch_is_both(self):
        """Test shape mismatches are data and configuration errors"""
        error = DimensionMismatchError("x has 3 rows, y has 2", validation_errors=["mismatch"])
        assert isinstance(error, DataValidationError)
        assert isinstance(error, ConfigurationError)
        assert error.context['validation_errors'] == ["mismatch"]

    def test_error_code_from_class_name(self):
        """Test default error codes"""
        assert ModelTrainingError("boom").error_code == "MODEL_TRAINING_ERROR"
        assert BusinessLogicError("not trained").severity == "warning"

    def test_serialization(self):
        """Test dict and JSON views"""
        error = ConfigurationError("bad config", config_name='model_config')
        error.add_context(file='model_config.yaml')
        error.add_suggestion('Check the file')

        payload = json.loads(error.to_json())
        assert payload['error_code'] == 'CONFIGURATION_ERROR'
        assert payload['context']['config_name'] == 'model_config'
        assert payload['context']['file'] == 'model_config.yaml'
        assert payload['context']['exception_type'] == 'ConfigurationError'
        assert 'Check the file' in payload['suggestions']
        assert error.to_dict()['message'] == 'bad config'

    def test_registry_lookup(self):
        """Test error codes resolve to classes"""
        assert get_exception_class('DIMENSION_MISMATCH_ERROR') is DimensionMismatchError
        assert get_exception_class('UNKNOWN') is ForestFitBaseException
        assert all(issubclass(cls, ForestFitBaseException) for cls in EXCEPTION_REGISTRY.values())

    def test_handle_exception_wraps_foreign_errors(self):
        """Test non-forestfit errors are wrapped with their cause"""
        @handle_exception
        def failing():
            raise ValueError("raw")

        with pytest.raises(ForestFitBaseException) as exc_info:
            failing()
        assert isinstance(exc_info.value.cause, ValueError)
        assert exc_info.value.context['function'] == 'failing'

    def test_handle_exception_passes_forestfit_errors(self):
        """Test forestfit errors are re-raised unchanged"""
        @handle_exception
        def failing():
            raise BusinessLogicError("not trained")

        with pytest.raises(BusinessLogicError):
            failing()

    def test_load_missing_model_file(self, tmp_path):
        """Test persistence errors surface as forestfit errors"""
        from forestfit.models.trees.regression_tree import RegressionTree

        with pytest.raises(ForestFitBaseException) as exc_info:
            RegressionTree.load(tmp_path / "missing.joblib")
        assert isinstance(exc_info.value.cause, FileNotFoundError)


class TestLogException:
    """Test exception logging"""

    def test_severity_selects_level(self, forestfit_caplog):
        """Test warnings are logged at warning level"""
        log_exception(BusinessLogicError("predict before train"))
        record = forestfit_caplog.records[-1]
        assert record.levelname == 'WARNING'
        assert "BUSINESS_LOGIC_ERROR" in record.getMessage()

    def test_foreign_exception_logged_as_error(self, forestfit_caplog):
        """Test other exceptions are logged at error level"""
        log_exception(ValueError("raw"))
        assert forestfit_caplog.records[-1].levelname == 'ERROR'
