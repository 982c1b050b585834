# ============================================
# forestfit - src/forestfit/models/ensemble/subsampler.py
# Reproducible row/column sub-sampling for bagged trees
# ============================================

import numpy as np
from dataclasses import dataclass
from typing import Optional

from ...utils.exceptions import InvalidParameterError
from ...utils.logger import get_logger
from ...utils.validators import DataValidator, ParameterValidator

logger = get_logger('models.ensemble.subsampler')


@dataclass(frozen=True)
class Subsample:
    """One resampled training set"""
    rows: np.ndarray
    targets: np.ndarray
    index_map: np.ndarray
    seed: int
    columns: Optional[np.ndarray] = None

    @property
    def size(self) -> int:
        return len(self.index_map)


class Subsampler:
    """
    Draws sub-samples of a training set from an explicit seed

    Every draw uses its own ``numpy.random.default_rng(seed)``, so the same
    seed always selects the same rows and columns and no global random state
    is touched.

    Args:
        replace: draw rows with replacement (bootstrap, rows may repeat);
            the default draws distinct rows, so a full-size draw returns
            the whole training set
    """

    def __init__(self, replace: bool = False):
        self.replace = replace

    def draw_indices(self, n_rows: int, size: int, seed: int) -> np.ndarray:
        """Row indices (ascending) selected for ``seed``"""
        ParameterValidator().validate_sample_size(size, n_rows).raise_if_invalid()

        rng = np.random.default_rng(seed)
        if self.replace:
            indices = rng.integers(0, n_rows, size=size)
        else:
            indices = rng.choice(n_rows, size=size, replace=False)
        return np.sort(indices)

    def draw_columns(self, n_columns: int, feature_ratio: float, seed: int) -> np.ndarray:
        """Column indices (ascending) selected for ``seed``"""
        if not 0.0 < feature_ratio <= 1.0:
            raise InvalidParameterError(
                f"feature ratio must be in (0, 1], got {feature_ratio!r}",
                parameter_name='fbRatio',
                provided_value=feature_ratio
            )
        n_selected = max(1, int(feature_ratio * n_columns))
        # offset the stream so column choice is independent of the row draw
        rng = np.random.default_rng([seed, 1])
        return np.sort(rng.choice(n_columns, size=n_selected, replace=False))

    def sample(self, x: np.ndarray, y: np.ndarray, size: int, seed: int,
               feature_ratio: Optional[float] = None) -> Subsample:
        """
        Draw a sub-sample of ``size`` rows

        Args:
            x: full feature matrix (m rows)
            y: full response vector
            size: number of rows to draw, 0 < size <= m
            seed: caller-supplied seed (the tree index for bagging)
            feature_ratio: when given, also restrict to this fraction of columns

        Returns:
            Subsample holding rows, targets, index_map, seed and columns
        """
        x = np.asarray(x, dtype=float)
        y = np.asarray(y, dtype=float)
        ParameterValidator().validate_sample_size(size, len(x)).raise_if_invalid()
        DataValidator().validate_training_data(x, y).raise_if_invalid()

        index_map = self.draw_indices(x.shape[0], size, seed)
        rows = x[index_map]

        columns = None
        if feature_ratio is not None:
            columns = self.draw_columns(x.shape[1], feature_ratio, seed)
            rows = rows[:, columns]

        logger.debug(f"seed {seed}: drew {size} of {x.shape[0]} rows"
                     + (f", {len(columns)} of {x.shape[1]} columns" if columns is not None else ""))

        return Subsample(rows=rows, targets=y[index_map], index_map=index_map,
                         seed=seed, columns=columns)
