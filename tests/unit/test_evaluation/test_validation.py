"""
tests/unit/test_evaluation/test_validation.py

Unit tests for train/test validation and k-fold cross-validation.
"""

import sys
from pathlib import Path

import numpy as np
import pandas as pd
import pytest

# Add project root to Python path for imports
project_root = Path(__file__).parent.parent.parent.parent
sys.path.append(str(project_root))

from tests.utils.assertions import QoFAssertions
from tests.utils.mock_factories import MeanStubLearner, RegressionDataFactory
from forestfit.evaluation.fit import QoF
from forestfit.evaluation.validation import cross_validate, train_n_test, validate
from forestfit.models.ensemble.bagging import BaggingEnsemble
from forestfit.models.hyperparameters import HyperParameter
from forestfit.utils.exceptions import InsufficientDataError, InvalidParameterError
from forestfit.utils.timing import get_global_monitor


class TestTrainNTest:
    """Test the train-then-test shortcut"""

    def test_in_sample_when_no_test_set(self, linear_data):
        """Test the training data is reused for testing by default"""
        x, y = linear_data
        model = MeanStubLearner(HyperParameter())
        yp, qof = train_n_test(model, x, y)

        assert len(yp) == len(y)
        QoFAssertions.assert_degrees_of_freedom(qof, 1, len(y))

    def test_separate_test_set(self, linear_data):
        """Test predictions are produced for the test rows"""
        x, y = linear_data
        yp, qof = train_n_test(MeanStubLearner(HyperParameter()), x[:80], y[:80], x[80:], y[80:])
        assert len(yp) == 20
        assert qof[QoF.m] == 20

    def test_accepts_pandas(self):
        """Test DataFrame/Series inputs"""
        x, y = RegressionDataFactory.create_dataframe(n_samples=40)
        model = BaggingEnsemble(HyperParameter(max_depth=2, n_trees=2))
        yp, _ = train_n_test(model, x, y)
        assert isinstance(yp, np.ndarray)


class TestValidate:
    """Test hold-out validation"""

    def test_holds_out_ratio(self, linear_data):
        """Test the test split has ceil(ratio * m) rows"""
        x, y = linear_data
        yp, qof = validate(BaggingEnsemble(HyperParameter(max_depth=3, n_trees=3)), x, y, ratio=0.2)

        assert len(yp) == 20
        assert qof[QoF.m] == 20
        assert qof[QoF.rSq] > 0.0

    def test_reproducible_split(self, linear_data):
        """Test the same seed gives the same result"""
        x, y = linear_data
        hp = HyperParameter(max_depth=3, n_trees=3)
        first, _ = validate(BaggingEnsemble(hp), x, y, seed=5)
        second, _ = validate(BaggingEnsemble(hp), x, y, seed=5)
        np.testing.assert_array_equal(first, second)

    def test_constant_test_split_warns(self, forestfit_caplog):
        """Test a test split with no variability is reported"""
        x = np.arange(20, dtype=float).reshape(-1, 1)
        y = np.where(x[:, 0] < 15, x[:, 0], 100.0)

        _, qof = validate(MeanStubLearner(HyperParameter()), x, y, ratio=0.25, shuffle=False)
        assert qof[QoF.sst] == 0.0
        assert "no variability" in forestfit_caplog.text

    @pytest.mark.parametrize("ratio", [0.0, 1.0, 1.5])
    def test_invalid_ratio_raises(self, linear_data, ratio):
        """Test the hold-out ratio must be strictly between 0 and 1"""
        x, y = linear_data
        with pytest.raises(InvalidParameterError):
            validate(MeanStubLearner(HyperParameter()), x, y, ratio=ratio)

    def test_timed(self, linear_data):
        """Test validation runs are recorded by the performance monitor"""
        x, y = linear_data
        validate(MeanStubLearner(HyperParameter()), x, y)
        assert get_global_monitor().get_statistics("validate")['count'] >= 1


class TestCrossValidate:
    """Test k-fold cross-validation"""

    def test_fold_statistics(self, linear_data):
        """Test per-QoF statistics over all folds"""
        x, y = linear_data
        result = cross_validate(lambda: BaggingEnsemble(HyperParameter(max_depth=2, n_trees=2)),
                                x, y, k=4)

        assert result['n_folds'] == 4
        assert len(result['fold_qof']) == 4
        assert result['used_folds'] == [0, 1, 2, 3]

        stats = result['statistics']
        assert isinstance(stats, pd.DataFrame)
        assert list(stats.columns) == ['mean', 'std', 'min', 'max']
        assert stats.loc['m', 'mean'] == 25
        assert stats.loc['rSq', 'min'] <= stats.loc['rSq', 'mean'] <= stats.loc['rSq', 'max']

    def test_fresh_model_per_fold(self, linear_data):
        """Test the factory is called once per fold"""
        x, y = linear_data
        built = []

        def factory():
            model = MeanStubLearner(HyperParameter())
            built.append(model)
            return model

        cross_validate(factory, x, y, k=5)
        assert len(built) == 5
        assert len({id(model) for model in built}) == 5

    def test_constant_folds_excluded(self):
        """Test folds without variability are left out of the statistics"""
        x = np.arange(12, dtype=float).reshape(-1, 1)
        y = np.array([1.0, 2.0, 3.0, 4.0, 5.0, 6.0, 7.0, 8.0, 9.0, 5.0, 5.0, 5.0])

        result = cross_validate(lambda: MeanStubLearner(HyperParameter()), x, y, k=4, shuffle=False)

        assert len(result['fold_qof']) == 4
        assert result['used_folds'] == [0, 1, 2]
        assert result['statistics'].loc['m', 'max'] == 3

    def test_too_few_folds_raises(self, linear_data):
        """Test at least three folds are required"""
        x, y = linear_data
        with pytest.raises(InvalidParameterError):
            cross_validate(lambda: MeanStubLearner(HyperParameter()), x, y, k=2)

    def test_too_few_rows_raises(self, tiny_data):
        """Test more folds than rows is rejected"""
        x, y = tiny_data
        with pytest.raises(InsufficientDataError):
            cross_validate(lambda: MeanStubLearner(HyperParameter()), x, y, k=5)
