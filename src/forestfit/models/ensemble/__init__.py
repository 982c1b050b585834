from .subsampler import Subsample, Subsampler
from .base_ensemble import ColumnSubsetLearner, TreeEnsemble
from .bagging import BaggingEnsemble
from .boosting import BoostingEnsemble

__all__ = [
    'Subsample',
    'Subsampler',
    'ColumnSubsetLearner',
    'TreeEnsemble',
    'BaggingEnsemble',
    'BoostingEnsemble',
]
