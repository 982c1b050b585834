"""
tests/unit/test_models/test_boosting.py

Unit tests for the gradient boosting ensemble.
"""

import sys
from pathlib import Path

import numpy as np
import pytest

# Add project root to Python path for imports
project_root = Path(__file__).parent.parent.parent.parent
sys.path.append(str(project_root))

from tests.utils.assertions import ModelAssertions, QoFAssertions
from tests.utils.mock_factories import MeanStubLearner
from forestfit.evaluation.fit import QoF
from forestfit.models.base.base_model import ModelStatus
from forestfit.models.ensemble.bagging import BaggingEnsemble
from forestfit.models.ensemble.boosting import BoostingEnsemble
from forestfit.models.hyperparameters import HyperParameter
from forestfit.models.trees.regression_tree import RegressionTree
from forestfit.utils.exceptions import ConfigurationError, DimensionMismatchError

# ============================================
# TEST BOOSTING WITH STUB LEARNERS
# ============================================

class TestBoostingWithStub:
    """Test the boosting fold with a mean-storing learner"""

    def test_stub_keeps_baseline(self, tiny_data, full_sample_params, stub_factory):
        """Test residuals [-2, 0, 2] have mean 0, so predictions stay at 4.0"""
        x, y = tiny_data
        model = BoostingEnsemble(full_sample_params, base_learner=stub_factory).train(x, y)

        assert model.baseline == 4.0
        assert all(tree.mean_ == 0.0 for tree in model.forest)
        np.testing.assert_array_equal(model.predict(x), np.array([4.0, 4.0, 4.0]))

    def test_every_tree_fits_residuals(self, tiny_data, full_sample_params, stub_factory):
        """Test each learner is trained on the full x with residual targets"""
        x, y = tiny_data
        model = BoostingEnsemble(full_sample_params, base_learner=stub_factory).train(x, y)

        assert model.n_trees == 3
        for tree in model.forest:
            np.testing.assert_array_equal(tree.seen_rows_, x)
        assert [record['residual_sse'] for record in model.training_history] == [8.0, 8.0, 8.0]

    def test_degrees_of_freedom(self, tiny_data, full_sample_params, stub_factory):
        """Test df1 = sum of leaves and df1 + df2 = m"""
        x, y = tiny_data
        model = BoostingEnsemble(full_sample_params, base_learner=stub_factory).train(x, y)

        _, qof = model.test(x, y)
        QoFAssertions.assert_degrees_of_freedom(qof, 3, 3)

    def test_n_trees_zero_raises(self, tiny_data):
        """Test an empty ensemble is a configuration error"""
        x, y = tiny_data
        model = BoostingEnsemble(HyperParameter(n_trees=0), base_learner=MeanStubLearner)
        with pytest.raises(ConfigurationError):
            model.train(x, y)
        assert not model.is_fitted

    def test_dimension_mismatch_raises_before_training(self, tiny_data, full_sample_params, mocker):
        """Test x and y with different row counts fail before the boosting fold"""
        x, y = tiny_data
        model = BoostingEnsemble(full_sample_params, base_learner=MeanStubLearner)
        spy = mocker.spy(model, '_boosting_step')

        with pytest.raises(DimensionMismatchError):
            model.train(x, y[:2])

        assert spy.call_count == 0
        assert model.status == ModelStatus.CREATED
        assert model.forest == []

    def test_sampling_ratio_not_used(self, tiny_data):
        """Test boosting trains on every row regardless of bRatio"""
        x, y = tiny_data
        model = BoostingEnsemble(HyperParameter(n_trees=2, b_ratio=0.1),
                                 base_learner=MeanStubLearner).train(x, y)
        assert model.forest[0].seen_rows_.shape == x.shape

# ============================================
# TEST BOOSTING REGRESSION TREES
# ============================================

class TestBoostingWithTrees:
    """Test boosting regression trees"""

    def test_residual_error_never_increases(self, linear_data):
        """Test squared-error boosting monotonically reduces training sse"""
        x, y = linear_data
        model = BoostingEnsemble(HyperParameter(max_depth=2, n_trees=6)).train(x, y)

        sse = [record['residual_sse'] for record in model.training_history]
        assert len(sse) == 6
        assert all(later <= earlier + 1e-9 for earlier, later in zip(sse, sse[1:]))

    def test_boosting_beats_single_tree(self, linear_data):
        """Test boosting shallow trees fits better than one shallow tree"""
        x, y = linear_data
        hp = HyperParameter(max_depth=2, n_trees=8)

        _, qof_boost = BoostingEnsemble(hp).train(x, y).test(x, y)
        _, qof_tree = RegressionTree(hp).train(x, y).test(x, y)

        assert qof_boost[QoF.sse] < qof_tree[QoF.sse]

    def test_staged_predictions_end_at_predict(self, linear_data):
        """Test the last staged prediction equals predict"""
        x, y = linear_data
        model = BoostingEnsemble(HyperParameter(max_depth=2, n_trees=4)).train(x, y)

        stages = list(model.staged_predict(x))
        assert len(stages) == 4
        np.testing.assert_allclose(stages[-1], model.predict(x))

    def test_retraining_is_reproducible(self, linear_data):
        """Test identical inputs give identical forests"""
        x, y = linear_data
        hp = HyperParameter(max_depth=3, n_trees=4)

        first = BoostingEnsemble(hp).train(x, y)
        second = BoostingEnsemble(hp).train(x, y)

        ModelAssertions.assert_same_forest(first, second)
        np.testing.assert_array_equal(first.predict(x), second.predict(x))

    def test_boosting_bagged_forests(self, linear_data):
        """Test an ensemble can serve as the base learner of another"""
        x, y = linear_data
        hp = HyperParameter(max_depth=2, n_trees=2, b_ratio=0.8)
        model = BoostingEnsemble(hp, base_learner=BaggingEnsemble).train(x, y)

        assert model.num_leaves == sum(forest.num_leaves for forest in model.forest)
        assert model.model_name == "BoostingEnsemble (2, 2)"
        assert model.get_model_summary()['baseline'] == pytest.approx(np.mean(y))
