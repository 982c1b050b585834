# ============================================
# forestfit - src/forestfit/models/ensemble/base_ensemble.py
# Shared machinery for ensembles of tree learners
# ============================================

import numpy as np
from typing import Any, Callable, Dict, List, Optional

from ...utils.logger import get_logger, get_performance_logger, log_model_training
from ...utils.validators import ParameterValidator
from ...evaluation.fit import Fit
from ..base.base_learner import BaseLearner
from ..hyperparameters import HyperParameter
from ..trees.regression_tree import RegressionTree

logger = get_logger('models.ensemble.base')
performance_logger = get_performance_logger('models.ensemble')

# Called as factory(hyperparameters=..., random_state=...) for every tree
LearnerFactory = Callable[..., BaseLearner]

# ============================================
# Column-restricted learner
# ============================================

class ColumnSubsetLearner(BaseLearner):
    """
    Wraps a learner trained on a subset of the feature columns

    Training receives rows already restricted to ``columns``; prediction
    receives full-width rows and projects them onto ``columns`` before
    delegating to the wrapped learner.
    """

    def __init__(self, learner: BaseLearner, columns: np.ndarray, n_features: int):
        self.learner = learner
        self.columns = np.asarray(columns, dtype=int)
        self.total_features = n_features
        super().__init__(
            hyperparameters=learner.hyperparameters,
            random_state=learner.random_state,
            name=f"{learner.name}[{len(self.columns)}/{n_features} cols]",
            model_type=learner.model_type,
            diagnostics=learner.diagnostics,
            verbose=False
        )

    def _train(self, x: np.ndarray, y: np.ndarray):
        self.learner.train(x, y)

    def _post_training_processing(self, x: np.ndarray, y: np.ndarray):
        # predictions are requested on the full feature width
        self.n_features_ = self.total_features
        self.metadata.training_features = self.total_features

    def _predict_matrix(self, z: np.ndarray) -> np.ndarray:
        return self.learner.predict(z[:, self.columns])

    @property
    def num_leaves(self) -> int:
        return self.learner.num_leaves

    @property
    def depth(self) -> Optional[int]:
        return self.learner.depth

    def has_finite_parameters(self) -> bool:
        return self.learner.has_finite_parameters()

# ============================================
# Tree Ensemble
# ============================================

class TreeEnsemble(BaseLearner):
    """
    Base class for ensembles of base learners

    Holds the trained forest and derives from it everything that does not
    depend on how the trees were combined: the total number of leaves
    (the model degrees of freedom), tree statistics and flaw reporting.
    An ensemble is itself a ``BaseLearner`` and can serve as the base
    learner of another ensemble.

    Tree ``k`` is built with seed ``random_state + k`` (``random_state``
    defaults to 0), so training the same ensemble on the same data twice
    yields the same forest.
    """

    def __init__(self,
                 hyperparameters: Optional[HyperParameter] = None,
                 base_learner: Optional[LearnerFactory] = None,
                 random_state: Optional[int] = 0,
                 name: Optional[str] = None,
                 model_type: str = "tree_ensemble",
                 diagnostics: Optional[Fit] = None,
                 verbose: bool = True):
        """
        Initialize ensemble

        Args:
            hyperparameters: Shared by the ensemble and every base learner
            base_learner: Learner factory, ``RegressionTree`` by default
            random_state: Seed offset; tree k uses ``random_state + k``
            name: Model name
            model_type: Type of ensemble
            diagnostics: QoF collaborator used by ``test``
            verbose: Log lifecycle events at info level
        """
        self.base_learner: LearnerFactory = base_learner if base_learner is not None else RegressionTree
        self.forest: List[BaseLearner] = []
        self.flaws_: List[str] = []
        self.tree_stats_: Dict[str, Any] = {}

        super().__init__(
            hyperparameters=hyperparameters,
            random_state=random_state,
            name=name,
            model_type=model_type,
            diagnostics=diagnostics,
            verbose=verbose
        )

    def _validate_configuration(self, n_rows: int):
        validator = ParameterValidator()
        result = validator.validate_tree_params(self.hyperparameters.max_depth)
        result.merge(validator.validate_ensemble_size(self.hyperparameters.n_trees))
        result.raise_if_invalid()

    def _tree_seed(self, k: int) -> int:
        return (self.random_state or 0) + k

    def _new_learner(self, k: int) -> BaseLearner:
        """Fresh, untrained base learner for tree k"""
        return self.base_learner(hyperparameters=self.hyperparameters,
                                 random_state=self._tree_seed(k))

    def _check_tree(self, k: int, learner: BaseLearner) -> List[str]:
        """Report numerical flaws of a trained tree; they are never fatal"""
        if learner.has_finite_parameters():
            return []
        flaw = f"tree {k}: non-finite parameters"
        logger.warning(f"{self.name}: {flaw}")
        return [flaw]

    def _record_flaws(self):
        self.flaws_ = [flaw for k, tree in enumerate(self.forest) for flaw in self._check_tree(k, tree)]

    # ----------------------------------------
    # Forest properties
    # ----------------------------------------

    @property
    def n_trees(self) -> int:
        return len(self.forest)

    @property
    def num_leaves(self) -> int:
        """Total number of leaves across the forest"""
        return int(sum(tree.num_leaves for tree in self.forest))

    @property
    def depth(self) -> Optional[int]:
        depths = [tree.depth for tree in self.forest if tree.depth is not None]
        return max(depths) if depths else None

    def has_finite_parameters(self) -> bool:
        return all(tree.has_finite_parameters() for tree in self.forest)

    @property
    def model_name(self) -> str:
        """Descriptive name including the main hyperparameters"""
        hp = self.hyperparameters
        return f"{self.__class__.__name__} ({hp.max_depth}, {hp.n_trees})"

    # ----------------------------------------
    # Post-training
    # ----------------------------------------

    def _post_training_processing(self, x: np.ndarray, y: np.ndarray):
        self._record_flaws()
        self._calculate_tree_statistics()
        performance_logger.log_timing(f"{self.model_type}_train", self.training_duration,
                                      n_trees=self.n_trees)

        log_model_training(
            self.model_type,
            model_name=self.model_name,
            n_trees=self.n_trees,
            total_leaves=self.num_leaves,
            training_samples=int(x.shape[0]),
            n_flaws=len(self.flaws_)
        )

    def _calculate_tree_statistics(self):
        """Calculate statistics about the trees in the forest"""
        tree_depths = [tree.depth for tree in self.forest if tree.depth is not None]
        tree_leaves = [tree.num_leaves for tree in self.forest]

        self.tree_stats_ = {
            'n_trees': len(self.forest),
            'mean_depth': float(np.mean(tree_depths)) if tree_depths else 0.0,
            'std_depth': float(np.std(tree_depths)) if tree_depths else 0.0,
            'max_depth': int(np.max(tree_depths)) if tree_depths else 0,
            'min_depth': int(np.min(tree_depths)) if tree_depths else 0,
            'mean_leaves': float(np.mean(tree_leaves)) if tree_leaves else 0.0,
            'total_leaves': int(np.sum(tree_leaves)) if tree_leaves else 0
        }

        logger.debug(f"Tree statistics: {self.tree_stats_['n_trees']} trees, "
                     f"mean depth: {self.tree_stats_['mean_depth']:.1f}")

    def get_tree_statistics(self) -> Dict[str, Any]:
        """Depth and leaf statistics of the trained forest"""
        self._check_is_fitted()
        return dict(self.tree_stats_)

    def get_model_summary(self) -> Dict[str, Any]:
        summary = super().get_model_summary()
        summary['model_name'] = self.model_name
        summary['base_learner'] = getattr(self.base_learner, '__name__', repr(self.base_learner))
        if self.is_fitted:
            summary['tree_statistics'] = self.get_tree_statistics()
            summary['flaws'] = list(self.flaws_)
        return summary
