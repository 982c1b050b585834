"""
tests/unit/test_utils/test_logging_and_timing.py

Unit tests for the logging system and timing utilities.
"""

import json
import logging
import sys
import time
from pathlib import Path

import pytest

# Add project root to Python path for imports
project_root = Path(__file__).parent.parent.parent.parent
sys.path.append(str(project_root))

from tests.utils.mock_factories import RegressionDataFactory
from forestfit.models.ensemble.bagging import BaggingEnsemble
from forestfit.models.hyperparameters import HyperParameter
from forestfit.utils.exceptions import BusinessLogicError
from forestfit.utils.logger import (
    ContextFilter, JSONFormatter, clear_logging_context, get_logger,
    get_performance_logger, set_logging_context
)
from forestfit.utils.timing import PerformanceMonitor, Timer, format_duration, time_it

# ============================================
# TEST LOGGING
# ============================================

class TestLogger:
    """Test logger naming, formatting and context"""

    def test_component_loggers_are_namespaced(self):
        """Test component loggers live under the package logger"""
        assert get_logger('models.ensemble.bagging').name == 'forestfit.models.ensemble.bagging'
        assert get_logger('forestfit.evaluation').name == 'forestfit.evaluation'

    def test_json_formatter_includes_extra_fields(self):
        """Test structured output carries extra fields"""
        record = logging.LogRecord('forestfit.test', logging.INFO, __file__, 10,
                                   'trained %s', ('bagging',), None)
        record.n_trees = 3

        payload = json.loads(JSONFormatter().format(record))
        assert payload['message'] == 'trained bagging'
        assert payload['level'] == 'INFO'
        assert payload['n_trees'] == 3

    def test_json_formatter_includes_exception(self):
        """Test exception info is serialized"""
        try:
            raise ValueError("boom")
        except ValueError:
            record = logging.LogRecord('forestfit.test', logging.ERROR, __file__, 10,
                                       'failed', (), sys.exc_info())

        payload = json.loads(JSONFormatter().format(record))
        assert payload['exception']['type'] == 'ValueError'

    def test_context_filter(self):
        """Test context fields and the derived component"""
        context_filter = ContextFilter()
        context_filter.set_context(run_id='abc')

        record = logging.LogRecord('forestfit.models.ensemble', logging.INFO, __file__, 1, 'msg', (), None)
        assert context_filter.filter(record)
        assert record.run_id == 'abc'
        assert record.component == 'models'

        context_filter.clear_context()
        assert context_filter.context == {}

    def test_global_context_helpers(self):
        """Test module-level context helpers do not fail"""
        set_logging_context(experiment='unit')
        clear_logging_context()

    def test_training_emits_audit_record(self, caplog):
        """Test ensembles log an audit event after training"""
        caplog.set_level(logging.INFO, logger='forestfit.audit')
        x, y = RegressionDataFactory.create_linear_data(n_samples=30)

        BaggingEnsemble(HyperParameter(max_depth=2, n_trees=2)).train(x, y)

        audit = [r for r in caplog.records if getattr(r, 'event_type', None) == 'model_training']
        assert audit
        assert audit[-1].model_type == 'bagging'
        assert audit[-1].n_trees == 2

    def test_performance_logger_summary(self):
        """Test recorded timings are summarized"""
        perf = get_performance_logger('tests')
        perf.log_timing('fast', 0.1)
        perf.log_timing('slow', 0.5)

        summary = perf.get_performance_summary()
        assert summary['slowest_operation'] == ('slow', 0.5)
        assert summary['total_operations'] >= 2

# ============================================
# TEST TIMING
# ============================================

class TestTiming:
    """Test timers, decorators and the performance monitor"""

    def test_timer_context_manager(self):
        """Test a timer measures the enclosed block"""
        with Timer('sleep', auto_log=False) as timer:
            time.sleep(0.01)
        assert timer.result.duration >= 0.01
        assert timer.result.to_dict()['operation_name'] == 'sleep'

    def test_stop_without_start_raises(self):
        """Test stopping an idle timer is a usage error"""
        with pytest.raises(BusinessLogicError):
            Timer('idle').stop()

    def test_time_it_records_statistics(self):
        """Test the decorator feeds the global monitor"""
        from forestfit.utils.timing import get_global_monitor

        @time_it('unit_test_operation', auto_log=False)
        def work():
            return 42

        assert work() == 42
        assert work() == 42
        stats = get_global_monitor().get_statistics('unit_test_operation')
        assert stats['count'] >= 2

    def test_monitor_statistics(self):
        """Test statistics and clearing"""
        monitor = PerformanceMonitor()
        with Timer('op', auto_log=False) as timer:
            pass
        monitor.record_timing(timer.result)

        assert monitor.get_statistics('op')['count'] == 1
        monitor.clear_statistics('op')
        assert monitor.get_statistics('op') is None

    @pytest.mark.parametrize("seconds,expected", [
        (0.0005, "500us"),
        (0.25, "250.0ms"),
        (2.5, "2.50s"),
        (125.0, "2m 5.0s"),
        (3725.0, "1h 2m 5s"),
    ])
    def test_format_duration(self, seconds, expected):
        """Test human-readable durations"""
        assert format_duration(seconds) == expected
