# ============================================
# forestfit - src/forestfit/models/ensemble/bagging.py
# Bagging ensemble: trees on sub-samples, predictions averaged
# ============================================

import numpy as np
from typing import Any, Dict, Optional, Sequence, Tuple
from joblib import Parallel, delayed

from ...utils.config_loader import get
from ...utils.exceptions import DataValidationError
from ...utils.logger import get_logger
from ...utils.validators import ParameterValidator
from ...evaluation.fit import Fit
from ..base.base_learner import BaseLearner
from ..hyperparameters import HyperParameter
from .base_ensemble import ColumnSubsetLearner, LearnerFactory, TreeEnsemble
from .subsampler import Subsampler

logger = get_logger('models.ensemble.bagging')

# ============================================
# Bagging Ensemble
# ============================================

class BaggingEnsemble(TreeEnsemble):
    """
    Bagging ensemble of base learners

    Features:
    - Tree k is trained on a sub-sample of floor(bRatio * m) rows drawn
      with seed k, so retraining reproduces the same forest
    - Optional feature bagging: each tree also sees only a fbRatio share
      of the columns
    - Trees are independent and may be trained in parallel (joblib threads);
      the result does not depend on the number of jobs
    - Prediction is the mean of the per-tree predictions
    - Out-of-bag predictions re-derived from the per-tree seeds
    """

    def __init__(self,
                 hyperparameters: Optional[HyperParameter] = None,
                 base_learner: Optional[LearnerFactory] = None,
                 use_fb: bool = False,
                 replace: Optional[bool] = None,
                 n_jobs: Optional[int] = None,
                 random_state: Optional[int] = 0,
                 name: str = "bagging_ensemble",
                 diagnostics: Optional[Fit] = None,
                 verbose: bool = True):
        """
        Initialize bagging ensemble

        Args:
            hyperparameters: maxDepth, nTrees, bRatio and (with use_fb) fbRatio
            base_learner: Learner factory, ``RegressionTree`` by default
            use_fb: Also sub-sample feature columns for every tree
            replace: Draw rows with replacement (config ``ensemble.replace``)
            n_jobs: Parallel jobs for training (config ``ensemble.n_jobs``)
            random_state: Seed offset; tree k uses ``random_state + k``
            name: Model name
            diagnostics: QoF collaborator used by ``test``
            verbose: Log lifecycle events at info level
        """
        self.use_fb = use_fb
        self.replace = bool(get('model_config', 'ensemble.replace', False)) if replace is None else replace
        self.n_jobs = get('model_config', 'ensemble.n_jobs', 1) if n_jobs is None else n_jobs
        self.subsampler = Subsampler(replace=self.replace)
        self.training_rows_: Optional[int] = None

        super().__init__(
            hyperparameters=hyperparameters,
            base_learner=base_learner,
            random_state=random_state,
            name=name,
            model_type="bagging",
            diagnostics=diagnostics,
            verbose=verbose
        )

    def _validate_configuration(self, n_rows: int):
        self.hyperparameters.validate(feature_bagging=self.use_fb).raise_if_invalid()
        size = self.hyperparameters.sample_size(n_rows)
        ParameterValidator().validate_sample_size(size, n_rows).raise_if_invalid()

    @property
    def model_name(self) -> str:
        hp = self.hyperparameters
        return f"{self.__class__.__name__} ({hp.max_depth}, {hp.n_trees}, {self.use_fb})"

    def build_model(self, columns: Sequence[int]) -> 'BaggingEnsemble':
        """Untrained ensemble with the same learner, sampling and parallelism settings"""
        model = self.__class__(
            hyperparameters=self.hyperparameters,
            base_learner=self.base_learner,
            use_fb=self.use_fb,
            replace=self.replace,
            n_jobs=self.n_jobs,
            random_state=self.random_state,
            name=self.name,
            verbose=self.verbose
        )
        return self._with_columns(model, columns)

    # ----------------------------------------
    # Training
    # ----------------------------------------

    def _train_tree(self, x: np.ndarray, y: np.ndarray, size: int, k: int) -> BaseLearner:
        """Train tree k on its own sub-sample"""
        seed = self._tree_seed(k)
        fb_ratio = self.hyperparameters.fb_ratio if self.use_fb else None
        sub = self.subsampler.sample(x, y, size, seed, feature_ratio=fb_ratio)

        learner = self._new_learner(k)
        if sub.columns is not None:
            learner = ColumnSubsetLearner(learner, sub.columns, x.shape[1])
        learner.train(sub.rows, sub.targets)
        return learner

    def _train(self, x: np.ndarray, y: np.ndarray):
        n_trees = self.hyperparameters.n_trees
        size = self.hyperparameters.sample_size(x.shape[0])

        self._log(f"Training {n_trees} trees on {size} of {x.shape[0]} rows each (n_jobs={self.n_jobs})")

        forest = Parallel(n_jobs=self.n_jobs, prefer="threads")(
            delayed(self._train_tree)(x, y, size, k) for k in range(n_trees)
        )

        # the forest is replaced only once every tree has trained
        self.forest = list(forest)
        self.training_rows_ = x.shape[0]

    # ----------------------------------------
    # Prediction
    # ----------------------------------------

    def _predict_matrix(self, z: np.ndarray) -> np.ndarray:
        return np.mean(self._tree_predictions(z), axis=0)

    def _tree_predictions(self, z: np.ndarray) -> np.ndarray:
        return np.vstack([tree.predict(z) for tree in self.forest])

    def get_tree_predictions(self, z) -> np.ndarray:
        """
        Per-tree predictions

        Args:
            z: Feature matrix

        Returns:
            Array of shape (n_trees, n_rows)
        """
        self._check_is_fitted()
        z_arr = np.atleast_2d(np.asarray(z, dtype=float))
        return self._tree_predictions(z_arr)

    def predict_std(self, z) -> np.ndarray:
        """Spread of the per-tree predictions for every row of z"""
        return np.std(self.get_tree_predictions(z), axis=0)

    # ----------------------------------------
    # Out-of-bag estimates
    # ----------------------------------------

    def oob_predictions(self, x, y) -> Tuple[np.ndarray, np.ndarray]:
        """
        Out-of-bag predictions on the training data

        Each row is predicted by the trees whose sub-sample did not contain
        it; the sub-samples are re-drawn from the per-tree seeds.

        Args:
            x: The training feature matrix
            y: The training response vector

        Returns:
            Tuple of (predictions, counts); rows no tree left out get NaN
        """
        self._check_is_fitted()
        x_arr, y_arr = self._validate_input_data(x, y)
        if x_arr.shape[0] != self.training_rows_:
            raise DataValidationError(
                f"Out-of-bag estimates need the {self.training_rows_} training rows, "
                f"got {x_arr.shape[0]}",
                validation_errors=["row count mismatch"]
            )

        m = x_arr.shape[0]
        size = self.hyperparameters.sample_size(m)
        totals = np.zeros(m)
        counts = np.zeros(m, dtype=int)

        for k, tree in enumerate(self.forest):
            in_bag = np.zeros(m, dtype=bool)
            in_bag[self.subsampler.draw_indices(m, size, self._tree_seed(k))] = True
            out_of_bag = ~in_bag
            if out_of_bag.any():
                totals[out_of_bag] += tree.predict(x_arr[out_of_bag])
                counts[out_of_bag] += 1

        predictions = np.where(counts > 0, totals / np.maximum(counts, 1), np.nan)

        return predictions, counts

    def oob_score(self, x, y) -> float:
        """Coefficient of determination of the out-of-bag predictions"""
        predictions, counts = self.oob_predictions(x, y)
        y_arr = np.asarray(y, dtype=float)
        covered = counts > 0

        if covered.sum() < 2:
            logger.warning(f"{self.name}: fewer than 2 out-of-bag rows, score undefined")
            return float('nan')

        y_oob = y_arr[covered]
        sst = float(np.sum((y_oob - y_oob.mean()) ** 2))
        sse = float(np.sum((y_oob - predictions[covered]) ** 2))
        if sst == 0.0:
            logger.warning(f"{self.name}: out-of-bag responses have no variability")
            return float('nan')
        return 1.0 - sse / sst

    def get_model_summary(self) -> Dict[str, Any]:
        summary = super().get_model_summary()
        summary.update({
            'use_fb': self.use_fb,
            'replace': self.replace,
            'n_jobs': self.n_jobs,
        })
        return summary
