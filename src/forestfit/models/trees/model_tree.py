# ============================================
# forestfit - src/forestfit/models/trees/model_tree.py
# Regression tree with linear models in its leaves
# ============================================

import numpy as np
from typing import Dict, Optional, Union
from sklearn.linear_model import LinearRegression

from ...utils.logger import get_logger
from .regression_tree import RegressionTree
from ..hyperparameters import HyperParameter

logger = get_logger('models.trees.model_tree')

LeafModel = Union[float, LinearRegression]


class ModelTree(RegressionTree):
    """
    Model tree: the regression tree partition with a least-squares linear
    model (no intercept) fitted on the rows reaching each leaf.

    A leaf with no more rows than features cannot support the regression
    and keeps the mean response instead.
    """

    def __init__(self,
                 hyperparameters: Optional[HyperParameter] = None,
                 random_state: Optional[int] = 0,
                 min_samples_leaf: int = 1,
                 name: Optional[str] = None,
                 **kwargs):
        self.leaf_models_: Dict[int, LeafModel] = {}
        super().__init__(
            hyperparameters=hyperparameters,
            random_state=random_state,
            min_samples_leaf=min_samples_leaf,
            name=name,
            model_type='model_tree',
            **kwargs
        )

    def _train(self, x: np.ndarray, y: np.ndarray):
        super()._train(x, y)

        leaf_ids = self.model.apply(x)
        self.leaf_models_ = {}
        for leaf in np.unique(leaf_ids):
            rows = leaf_ids == leaf
            xx, yy = x[rows], y[rows]
            if xx.shape[0] <= xx.shape[1]:
                self.leaf_models_[int(leaf)] = float(np.mean(yy))
            else:
                self.leaf_models_[int(leaf)] = LinearRegression(fit_intercept=False).fit(xx, yy)

        n_linear = sum(isinstance(m, LinearRegression) for m in self.leaf_models_.values())
        logger.debug(f"{self.name}: {n_linear} of {len(self.leaf_models_)} leaves hold a linear model")

    def _predict_matrix(self, z: np.ndarray) -> np.ndarray:
        leaf_ids = self.model.apply(z)
        yp = np.empty(z.shape[0], dtype=float)

        for leaf in np.unique(leaf_ids):
            rows = leaf_ids == leaf
            leaf_model = self.leaf_models_[int(leaf)]
            if isinstance(leaf_model, LinearRegression):
                yp[rows] = leaf_model.predict(z[rows])
            else:
                yp[rows] = leaf_model

        return yp

    def has_finite_parameters(self) -> bool:
        for leaf_model in self.leaf_models_.values():
            params = leaf_model.coef_ if isinstance(leaf_model, LinearRegression) else leaf_model
            if not np.all(np.isfinite(params)):
                return False
        return super().has_finite_parameters()
