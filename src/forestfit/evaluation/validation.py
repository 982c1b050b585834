# ============================================
# forestfit - src/forestfit/evaluation/validation.py
# Train/test validation and k-fold cross-validation
# ============================================

import numpy as np
import pandas as pd
from typing import Any, Callable, Dict, List, Optional, Tuple
from sklearn.model_selection import KFold, train_test_split

from ..utils.config_loader import get
from ..utils.exceptions import InsufficientDataError, InvalidParameterError
from ..utils.logger import get_logger
from ..utils.timing import time_it
from ..utils.validators import DataValidator, as_matrix, as_vector
from .fit import QOF_NAMES, QoF

logger = get_logger('evaluation.validation')

# Cross-validation needs at least this many folds
MIN_FOLDS = 3


def _as_arrays(x, y) -> Tuple[np.ndarray, np.ndarray]:
    DataValidator().validate_training_data(x, y).raise_if_invalid()
    return as_matrix(x), as_vector(y)


def _has_variability(y: np.ndarray) -> bool:
    return len(y) > 1 and float(np.sum((y - y.mean()) ** 2)) > 0.0

# ============================================
# Train and test
# ============================================

def train_n_test(model, x, y, x_test=None, y_test=None) -> Tuple[np.ndarray, np.ndarray]:
    """
    Train on (x, y) and test on (x_test, y_test), or in-sample when omitted

    Returns:
        Tuple of (predictions, QoF vector)
    """
    model.train(x, y)
    if x_test is None or y_test is None:
        return model.test(x, y)
    return model.test(x_test, y_test)


@time_it("validate")
def validate(model, x, y, ratio: Optional[float] = None, shuffle: Optional[bool] = None,
             seed: Optional[int] = None) -> Tuple[np.ndarray, np.ndarray]:
    """
    Hold out a test split, train on the rest and test on the held-out rows

    Args:
        model: Any forestfit model exposing ``train`` and ``test``
        x: Full feature matrix
        y: Full response vector
        ratio: Fraction of rows held out for testing (config ``validation.test_ratio``)
        shuffle: Shuffle rows before splitting (config ``validation.shuffle``)
        seed: Seed for the shuffle (config ``validation.seed``)

    Returns:
        Tuple of (test predictions, QoF vector)
    """
    ratio = get('model_config', 'validation.test_ratio', 0.2) if ratio is None else ratio
    shuffle = get('model_config', 'validation.shuffle', True) if shuffle is None else shuffle
    seed = get('model_config', 'validation.seed', 0) if seed is None else seed

    if not 0.0 < ratio < 1.0:
        raise InvalidParameterError(f"Test ratio must be in (0, 1), got {ratio!r}",
                                    parameter_name='ratio', provided_value=ratio)

    x_arr, y_arr = _as_arrays(x, y)
    x_train, x_test, y_train, y_test = train_test_split(
        x_arr, y_arr, test_size=ratio, shuffle=shuffle,
        random_state=seed if shuffle else None
    )

    if not _has_variability(y_test):
        logger.warning(f"validate: test split of {len(y_test)} rows has no variability in y, "
                       "QoF will be degenerate")

    logger.debug(f"validate: {len(y_train)} training rows, {len(y_test)} testing rows")
    return train_n_test(model, x_train, y_train, x_test, y_test)

# ============================================
# Cross-validation
# ============================================

@time_it("cross_validate")
def cross_validate(model_factory: Callable[[], Any], x, y, k: Optional[int] = None,
                   shuffle: Optional[bool] = None, seed: Optional[int] = None) -> Dict[str, Any]:
    """
    k-fold cross-validation

    A fresh model is built from ``model_factory`` for every fold. Folds whose
    test response has no variability are reported but excluded from the
    QoF statistics.

    Args:
        model_factory: Zero-argument callable returning an untrained model
        x: Full feature matrix
        y: Full response vector
        k: Number of folds, at least 3 (config ``validation.n_folds``)
        shuffle: Shuffle rows before folding (config ``validation.shuffle``)
        seed: Seed for the shuffle (config ``validation.seed``)

    Returns:
        Dictionary with per-fold QoF vectors, the indices of the folds used
        for the statistics, and a DataFrame of mean/std/min/max per QoF
    """
    k = get('model_config', 'validation.n_folds', 5) if k is None else k
    shuffle = get('model_config', 'validation.shuffle', True) if shuffle is None else shuffle
    seed = get('model_config', 'validation.seed', 0) if seed is None else seed
    min_folds = get('model_config', 'validation.min_folds', MIN_FOLDS)

    if not isinstance(k, (int, np.integer)) or k < min_folds:
        raise InvalidParameterError(f"Cross-validation needs at least {min_folds} folds, got {k!r}",
                                    parameter_name='k', provided_value=k)

    x_arr, y_arr = _as_arrays(x, y)
    if len(y_arr) < k:
        raise InsufficientDataError(f"{k}-fold cross-validation needs at least {k} rows",
                                    required_points=k, available_points=len(y_arr))

    folds = KFold(n_splits=k, shuffle=shuffle, random_state=seed if shuffle else None)

    fold_qofs: List[np.ndarray] = []
    used_folds: List[int] = []
    for fold, (train_idx, test_idx) in enumerate(folds.split(x_arr)):
        model = model_factory()
        _, qof = train_n_test(model, x_arr[train_idx], y_arr[train_idx],
                              x_arr[test_idx], y_arr[test_idx])
        fold_qofs.append(qof)

        if qof[QoF.sst] > 0.0:
            used_folds.append(fold)
        else:
            logger.warning(f"cross_validate: fold {fold + 1}/{k} has no variability in y, skipped in statistics")

        logger.debug(f"Fold {fold + 1}/{k}: rSq={qof[QoF.rSq]:.4f}, "
                     f"train_size={len(train_idx)}, test_size={len(test_idx)}")

    if used_folds:
        tally = np.vstack([fold_qofs[i] for i in used_folds])
        stats = pd.DataFrame({
            'mean': tally.mean(axis=0),
            'std': tally.std(axis=0),
            'min': tally.min(axis=0),
            'max': tally.max(axis=0),
        }, index=pd.Index(QOF_NAMES, name='qof'))
    else:
        logger.warning("cross_validate: no fold had variability in y, statistics are empty")
        stats = pd.DataFrame(np.nan, index=pd.Index(QOF_NAMES, name='qof'),
                             columns=['mean', 'std', 'min', 'max'])

    return {
        'n_folds': k,
        'fold_qof': fold_qofs,
        'used_folds': used_folds,
        'statistics': stats,
    }
