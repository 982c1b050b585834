# ============================================
# forestfit - src/forestfit/__init__.py
# Bagging and boosting ensembles of regression trees
# ============================================

__version__ = "1.0.0"

from .models.hyperparameters import HyperParameter
from .models.base.base_learner import BaseLearner
from .models.trees.regression_tree import RegressionTree
from .models.trees.model_tree import ModelTree
from .models.ensemble.subsampler import Subsample, Subsampler
from .models.ensemble.bagging import BaggingEnsemble
from .models.ensemble.boosting import BoostingEnsemble
from .evaluation.fit import Fit, QoF
from .evaluation.validation import cross_validate, train_n_test, validate
from .evaluation.selection import (
    SelectionResult,
    backward_elimination,
    forward_selection,
    importance,
    stepwise_selection,
)

__all__ = [
    'HyperParameter',
    'BaseLearner',
    'RegressionTree',
    'ModelTree',
    'Subsample',
    'Subsampler',
    'BaggingEnsemble',
    'BoostingEnsemble',
    'Fit',
    'QoF',
    'cross_validate',
    'train_n_test',
    'validate',
    'SelectionResult',
    'backward_elimination',
    'forward_selection',
    'importance',
    'stepwise_selection',
]
