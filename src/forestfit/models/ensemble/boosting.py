# ============================================
# forestfit - src/forestfit/models/ensemble/boosting.py
# Gradient boosting ensemble: trees fitted to successive residuals
# ============================================

import numpy as np
from functools import partial, reduce
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

from ...utils.logger import get_logger
from ...evaluation.fit import Fit
from ..base.base_learner import BaseLearner
from ..hyperparameters import HyperParameter
from .base_ensemble import LearnerFactory, TreeEnsemble

logger = get_logger('models.ensemble.boosting')

# (current predictions, trees so far, per-iteration history)
BoostingState = Tuple[np.ndarray, Tuple[BaseLearner, ...], Tuple[Dict[str, Any], ...]]

# ============================================
# Boosting Ensemble
# ============================================

class BoostingEnsemble(TreeEnsemble):
    """
    Gradient boosting for squared error

    Training starts from the baseline mean(y). Every iteration fits a fresh
    learner to the residuals of the current predictions and adds its
    predictions in full; there is no shrinkage and no early stopping, so
    exactly nTrees learners are trained.

    prediction(z) = baseline + sum of every learner's prediction(z)
    """

    def __init__(self,
                 hyperparameters: Optional[HyperParameter] = None,
                 base_learner: Optional[LearnerFactory] = None,
                 random_state: Optional[int] = 0,
                 name: str = "boosting_ensemble",
                 diagnostics: Optional[Fit] = None,
                 verbose: bool = True):
        self.baseline: float = 0.0
        self.training_history: List[Dict[str, Any]] = []

        super().__init__(
            hyperparameters=hyperparameters,
            base_learner=base_learner,
            random_state=random_state,
            name=name,
            model_type="boosting",
            diagnostics=diagnostics,
            verbose=verbose
        )

    def build_model(self, columns: Sequence[int]) -> 'BoostingEnsemble':
        """Untrained ensemble with the same learner factory and hyperparameters"""
        model = self.__class__(
            hyperparameters=self.hyperparameters,
            base_learner=self.base_learner,
            random_state=self.random_state,
            name=self.name,
            verbose=self.verbose
        )
        return self._with_columns(model, columns)

    # ----------------------------------------
    # Training
    # ----------------------------------------

    def _boosting_step(self, x: np.ndarray, y: np.ndarray,
                       state: BoostingState, k: int) -> BoostingState:
        """Fit learner k to the current residuals and fold it into the state"""
        yp, forest, history = state
        residuals = y - yp

        learner = self._new_learner(k)
        learner.train(x, residuals)

        record = {
            'iteration': k,
            'residual_sse': float(residuals @ residuals),
            'n_leaves': learner.num_leaves,
        }
        logger.debug(f"{self.name}: iteration {k}, residual sse {record['residual_sse']:.6g}")

        return yp + learner.predict(x), forest + (learner,), history + (record,)

    def _train(self, x: np.ndarray, y: np.ndarray):
        baseline = float(np.mean(y))
        initial: BoostingState = (np.full(y.shape[0], baseline), (), ())

        _, forest, history = reduce(
            partial(self._boosting_step, x, y),
            range(self.hyperparameters.n_trees),
            initial
        )

        self.baseline = baseline
        self.forest = list(forest)
        self.training_history = list(history)

    # ----------------------------------------
    # Prediction
    # ----------------------------------------

    def _predict_matrix(self, z: np.ndarray) -> np.ndarray:
        yp = np.full(z.shape[0], self.baseline)
        for tree in self.forest:
            yp = yp + tree.predict(z)
        return yp

    def staged_predict(self, z) -> Iterator[np.ndarray]:
        """
        Predictions after each boosting iteration

        Yields nTrees arrays; the last equals ``predict(z)``.
        """
        self._check_is_fitted()
        z_arr = np.atleast_2d(np.asarray(z, dtype=float))
        yp = np.full(z_arr.shape[0], self.baseline)
        for tree in self.forest:
            yp = yp + tree.predict(z_arr)
            yield yp

    def get_model_summary(self) -> Dict[str, Any]:
        summary = super().get_model_summary()
        summary['baseline'] = self.baseline
        if self.training_history:
            summary['final_residual_sse'] = self.training_history[-1]['residual_sse']
        return summary
