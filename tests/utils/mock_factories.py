"""
tests/utils/mock_factories.py

Mock data factories for forestfit tests.
Generates reproducible regression data sets and lightweight stub learners
that exercise ensembles without depending on tree internals.
"""

import sys
from pathlib import Path
from typing import Optional, Tuple

import numpy as np
import pandas as pd

# Add project root and src to Python path for imports
project_root = Path(__file__).parent.parent.parent
sys.path.append(str(project_root))
sys.path.append(str(project_root / "src"))

from forestfit.models.base.base_learner import BaseLearner
from forestfit.models.hyperparameters import HyperParameter

# ============================================
# REGRESSION DATA FACTORIES
# ============================================

class RegressionDataFactory:
    """Factory for synthetic regression data sets"""

    @staticmethod
    def create_linear_data(n_samples: int = 100, n_features: int = 3,
                           noise: float = 0.1, seed: int = 42) -> Tuple[np.ndarray, np.ndarray]:
        """
        Generate y = x @ beta + noise

        Args:
            n_samples: Number of rows
            n_features: Number of columns
            noise: Standard deviation of the additive noise
            seed: Random seed for reproducibility

        Returns:
            Tuple of (x, y)
        """
        rng = np.random.default_rng(seed)
        x = rng.uniform(0.0, 10.0, size=(n_samples, n_features))
        beta = np.arange(1, n_features + 1, dtype=float)
        y = x @ beta + rng.normal(0.0, noise, size=n_samples)
        return x, y

    @staticmethod
    def create_step_data(n_samples: int = 120, seed: int = 7) -> Tuple[np.ndarray, np.ndarray]:
        """Piecewise-constant response a tree should recover well"""
        rng = np.random.default_rng(seed)
        x = rng.uniform(0.0, 3.0, size=(n_samples, 2))
        y = np.floor(x[:, 0]) * 10.0 + rng.normal(0.0, 0.05, size=n_samples)
        return x, y

    @staticmethod
    def create_dataframe(n_samples: int = 50, n_features: int = 3,
                         seed: int = 42) -> Tuple[pd.DataFrame, pd.Series]:
        """Same as create_linear_data but as pandas objects"""
        x, y = RegressionDataFactory.create_linear_data(n_samples, n_features, seed=seed)
        columns = [f"x{i}" for i in range(n_features)]
        return pd.DataFrame(x, columns=columns), pd.Series(y, name="y")

    @staticmethod
    def create_tiny_data() -> Tuple[np.ndarray, np.ndarray]:
        """Three rows, y = [2, 4, 6]"""
        x = np.array([[1.0], [2.0], [3.0]])
        y = np.array([2.0, 4.0, 6.0])
        return x, y

# ============================================
# STUB LEARNERS
# ============================================

class MeanStubLearner(BaseLearner):
    """Learner that stores mean(y) and predicts it everywhere; one leaf"""

    def __init__(self, hyperparameters: Optional[HyperParameter] = None,
                 random_state: Optional[int] = 0, **kwargs):
        super().__init__(hyperparameters=hyperparameters, random_state=random_state,
                         model_type="mean_stub", **kwargs)
        self.mean_: Optional[float] = None
        self.seen_rows_: Optional[np.ndarray] = None

    def _train(self, x: np.ndarray, y: np.ndarray):
        self.mean_ = float(np.mean(y))
        self.seen_rows_ = x.copy()

    def _predict_matrix(self, z: np.ndarray) -> np.ndarray:
        return np.full(z.shape[0], self.mean_)

    @property
    def num_leaves(self) -> int:
        return 1


class NonFiniteStubLearner(MeanStubLearner):
    """Stub whose trained parameters are reported as non-finite"""

    def has_finite_parameters(self) -> bool:
        return False


class FailingStubLearner(MeanStubLearner):
    """Stub that fails during training"""

    def _train(self, x: np.ndarray, y: np.ndarray):
        raise RuntimeError("stub training failure")
