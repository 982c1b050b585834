# ============================================
# forestfit - src/forestfit/models/trees/regression_tree.py
# CART regression tree base learner
# ============================================

import numpy as np
from typing import Optional, Sequence
from sklearn.tree import DecisionTreeRegressor, export_text

from ...utils.logger import get_logger
from ..base.base_learner import BaseLearner
from ..hyperparameters import HyperParameter

logger = get_logger('models.trees.regression_tree')

# ============================================
# Regression Tree
# ============================================

class RegressionTree(BaseLearner):
    """
    Regression tree with mean-valued leaves

    Splits minimize the squared error; depth is bounded by ``maxDepth``.
    A node holding no more rows than there are features is not split
    further, so every leaf has at least as many rows as needed to estimate
    a per-feature effect.
    """

    def __init__(self,
                 hyperparameters: Optional[HyperParameter] = None,
                 random_state: Optional[int] = 0,
                 min_samples_leaf: int = 1,
                 name: Optional[str] = None,
                 **kwargs):
        """
        Initialize regression tree

        Args:
            hyperparameters: Uses ``max_depth``
            random_state: Seed for tie-breaking between equally good splits
            min_samples_leaf: Minimum rows in a leaf
            name: Model name
        """
        self.min_samples_leaf = min_samples_leaf
        self.model: Optional[DecisionTreeRegressor] = None
        super().__init__(
            hyperparameters=hyperparameters,
            random_state=random_state,
            name=name,
            model_type=kwargs.pop('model_type', 'regression_tree'),
            **kwargs
        )

    def _create_model(self, n_features: int) -> DecisionTreeRegressor:
        """Create the underlying scikit-learn tree"""
        return DecisionTreeRegressor(
            criterion='squared_error',
            max_depth=self.hyperparameters.max_depth,
            min_samples_split=max(2, n_features + 1),
            min_samples_leaf=self.min_samples_leaf,
            random_state=self.random_state
        )

    def build_model(self, columns: Sequence[int]) -> 'RegressionTree':
        """Untrained tree of the same kind and configuration for a feature subset"""
        model = self.__class__(
            hyperparameters=self.hyperparameters,
            random_state=self.random_state,
            min_samples_leaf=self.min_samples_leaf,
            name=self.name,
            verbose=self.verbose
        )
        return self._with_columns(model, columns)

    def _train(self, x: np.ndarray, y: np.ndarray):
        self.model = self._create_model(x.shape[1])
        self.model.fit(x, y)
        logger.debug(f"{self.name}: {self.num_leaves} leaves, depth {self.depth}")

    def _predict_matrix(self, z: np.ndarray) -> np.ndarray:
        return self.model.predict(z)

    @property
    def num_leaves(self) -> int:
        if self.model is None:
            return 0
        return int(self.model.get_n_leaves())

    @property
    def depth(self) -> Optional[int]:
        if self.model is None:
            return None
        return int(self.model.get_depth())

    def has_finite_parameters(self) -> bool:
        if self.model is None:
            return True
        tree = self.model.tree_
        return bool(np.all(np.isfinite(tree.value)) and np.all(np.isfinite(tree.threshold)))

    def leaf_index(self, z: np.ndarray) -> np.ndarray:
        """Index of the leaf each row of z falls into"""
        self._check_is_fitted()
        return self.model.apply(np.atleast_2d(np.asarray(z, dtype=float)))

    def print_tree(self, feature_names=None) -> str:
        """Text rendering of the trained tree"""
        self._check_is_fitted()
        names = list(feature_names) if feature_names is not None else None
        return export_text(self.model, feature_names=names, decimals=4)
