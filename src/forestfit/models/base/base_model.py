# ============================================
# forestfit - src/forestfit/models/base/base_model.py
# Base model interface shared by tree learners and ensembles
# ============================================

import numpy as np
import pandas as pd
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union
from datetime import datetime
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
import joblib

from ...utils.exceptions import (
    BusinessLogicError, DataValidationError, handle_exception, log_exception
)
from ...utils.logger import get_logger
from ...utils.timing import Timer
from ...utils.validators import DataValidator, as_matrix, as_vector
from ...evaluation.fit import Fit
from ..hyperparameters import HyperParameter

logger = get_logger('models.base.model')

ArrayLike = Union[np.ndarray, pd.DataFrame, pd.Series, list]

# ============================================
# Model Enums and Types
# ============================================

class ModelStatus(Enum):
    """Model lifecycle status"""
    CREATED = "created"
    TRAINING = "training"
    TRAINED = "trained"
    ERROR = "error"


@dataclass
class ModelMetadata:
    """Model metadata recorded across the training lifecycle"""
    model_id: str
    name: str
    model_type: str
    created_at: datetime
    updated_at: datetime

    hyperparameters: Dict[str, Any] = field(default_factory=dict)
    training_samples: Optional[int] = None
    training_features: Optional[int] = None
    training_duration: Optional[float] = None
    training_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        """Convert metadata to dictionary"""
        return {
            'model_id': self.model_id,
            'name': self.name,
            'model_type': self.model_type,
            'created_at': self.created_at.isoformat(),
            'updated_at': self.updated_at.isoformat(),
            'hyperparameters': self.hyperparameters,
            'training_samples': self.training_samples,
            'training_features': self.training_features,
            'training_duration': self.training_duration,
            'training_count': self.training_count,
        }

# ============================================
# Base Model Class
# ============================================

class BaseModel(ABC):
    """
    Abstract base class for every predictive model in forestfit

    Features:
    - Lifecycle tracking (created, training, trained, error)
    - ``train(x, y)`` with input validation and timing
    - ``predict(z)`` on a single vector (returns a float) or a matrix
      (returns a vector, row-wise)
    - ``test(x_, y_)`` delegating QoF computation to a diagnostics collaborator
      with model/error degrees of freedom supplied by the subclass
    - Persistence with joblib
    """

    def __init__(self,
                 name: str,
                 model_type: str,
                 hyperparameters: Optional[HyperParameter] = None,
                 diagnostics: Optional[Fit] = None,
                 verbose: bool = True):
        """
        Initialize base model

        Args:
            name: Model name
            model_type: Type of model (e.g., 'regression_tree', 'bagging')
            hyperparameters: Immutable hyperparameter value (defaults from config)
            diagnostics: Collaborator exposing reset_degrees_of_freedom and diagnose
            verbose: Log lifecycle events at info level (debug otherwise)
        """
        self.name = name
        self.model_type = model_type
        self.hyperparameters = hyperparameters if hyperparameters is not None else HyperParameter.from_config()
        self.diagnostics = diagnostics if diagnostics is not None else Fit()
        self.verbose = verbose

        self.status = ModelStatus.CREATED
        self.is_fitted = False
        self.n_features_: Optional[int] = None
        self.feature_columns: Optional[List[int]] = None
        self.last_error: Optional[str] = None
        self.training_duration: Optional[float] = None

        now = datetime.now()
        self.metadata = ModelMetadata(
            model_id=f"{name}_{model_type}_{now.strftime('%Y%m%d_%H%M%S')}",
            name=name,
            model_type=model_type,
            created_at=now,
            updated_at=now,
            hyperparameters=self.hyperparameters.to_dict()
        )

        self._log(f"Initialized model {self.name} ({self.model_type})")

    def _log(self, message: str):
        if self.verbose:
            logger.info(message)
        else:
            logger.debug(message)

    # ----------------------------------------
    # Hooks for subclasses
    # ----------------------------------------

    def _validate_configuration(self, n_rows: int):
        """Raise a configuration error before training; override to add checks"""
        self.hyperparameters.validate().raise_if_invalid()

    @abstractmethod
    def _train(self, x: np.ndarray, y: np.ndarray):
        """Fit the model to validated training data"""
        pass

    @abstractmethod
    def _predict_matrix(self, z: np.ndarray) -> np.ndarray:
        """Predict one value per row of a 2-D matrix"""
        pass

    @property
    @abstractmethod
    def model_degrees_of_freedom(self) -> int:
        """Degrees of freedom taken by the trained model (df1)"""
        pass

    def _post_training_processing(self, x: np.ndarray, y: np.ndarray):
        """Called after a successful training run"""
        pass

    def build_model(self, columns: Sequence[int]) -> 'BaseModel':
        """
        Untrained model of the same configuration for a subset of the features

        Feature selection trains the returned model on ``x[:, columns]``;
        models that support it override this method.

        Args:
            columns: Indices of the original feature columns the new model uses

        Returns:
            New, untrained model with ``feature_columns`` set
        """
        raise NotImplementedError(f"{self.__class__.__name__} does not support feature selection")

    @staticmethod
    def _with_columns(model: 'BaseModel', columns: Sequence[int]) -> 'BaseModel':
        model.feature_columns = [int(j) for j in columns]
        return model

    # ----------------------------------------
    # Training
    # ----------------------------------------

    def _validate_input_data(self, x: ArrayLike, y: ArrayLike) -> Tuple[np.ndarray, np.ndarray]:
        """Check shapes and convert to float arrays"""
        DataValidator().validate_training_data(x, y).raise_if_invalid()
        return as_matrix(x), as_vector(y)

    def train(self, x: ArrayLike, y: ArrayLike) -> 'BaseModel':
        """
        Train the model on feature matrix x and response vector y

        Configuration errors (hyperparameters, x/y shape) are raised before
        any training happens; the model keeps its previous state.

        Args:
            x: Training feature matrix (m rows, n columns)
            y: Training response vector (m elements)

        Returns:
            self
        """
        n_rows = len(x)
        self._validate_configuration(n_rows)
        x_arr, y_arr = self._validate_input_data(x, y)

        self.status = ModelStatus.TRAINING
        try:
            with Timer(f"{self.model_type}_train", auto_log=False) as timer:
                self._train(x_arr, y_arr)
        except Exception as e:
            self.status = ModelStatus.ERROR
            self.is_fitted = False
            self.last_error = str(e)
            log_exception(e, logger)
            raise

        self.n_features_ = x_arr.shape[1]
        self.training_duration = timer.result.duration
        self.status = ModelStatus.TRAINED
        self.is_fitted = True

        self.metadata.updated_at = datetime.now()
        self.metadata.training_samples = x_arr.shape[0]
        self.metadata.training_features = x_arr.shape[1]
        self.metadata.training_duration = self.training_duration
        self.metadata.training_count += 1

        self._post_training_processing(x_arr, y_arr)
        self._log(f"Trained {self.name} on {x_arr.shape[0]} rows in {timer.result.duration_str}")
        return self

    # ----------------------------------------
    # Prediction
    # ----------------------------------------

    def _check_is_fitted(self):
        if not self.is_fitted:
            raise BusinessLogicError(f"Model {self.name} must be trained before making predictions")

    def predict(self, z: ArrayLike) -> Union[float, np.ndarray]:
        """
        Predict the response for one instance or many

        Args:
            z: A single feature vector (1-D) or a matrix of rows (2-D)

        Returns:
            float for a vector, numpy array (one value per row) for a matrix
        """
        self._check_is_fitted()

        if isinstance(z, (pd.DataFrame, pd.Series)):
            z = z.to_numpy()
        z_arr = np.asarray(z, dtype=float)

        if z_arr.ndim not in (1, 2):
            raise DataValidationError(f"Cannot predict on a {z_arr.ndim}-D input")
        if self.n_features_ is not None and z_arr.shape[-1] != self.n_features_:
            raise DataValidationError(
                f"Expected {self.n_features_} features, got {z_arr.shape[-1]}",
                validation_errors=["feature count mismatch"]
            )

        if z_arr.ndim == 1:
            return float(self._predict_matrix(z_arr.reshape(1, -1))[0])
        return np.asarray(self._predict_matrix(z_arr), dtype=float)

    # ----------------------------------------
    # Testing
    # ----------------------------------------

    def test(self, x_: ArrayLike, y_: ArrayLike) -> Tuple[np.ndarray, np.ndarray]:
        """
        Test the trained model on (x_, y_) and return predictions and QoF

        Model degrees of freedom df1 come from ``model_degrees_of_freedom``;
        error degrees of freedom are df2 = len(y_) - df1.

        Args:
            x_: Testing (or full) feature matrix
            y_: Testing (or full) response vector

        Returns:
            Tuple of (predictions, QoF vector)
        """
        x_arr, y_arr = self._validate_input_data(x_, y_)
        yp = self.predict(x_arr)

        df1 = self.model_degrees_of_freedom
        df2 = len(y_arr) - df1
        self.diagnostics.reset_degrees_of_freedom(df1, df2)
        qof = self.diagnostics.diagnose(y_arr, yp)

        return yp, qof

    # ----------------------------------------
    # Reporting and persistence
    # ----------------------------------------

    def get_model_summary(self) -> Dict[str, Any]:
        """Summary of model state and metadata"""
        return {
            'name': self.name,
            'model_type': self.model_type,
            'status': self.status.value,
            'is_fitted': self.is_fitted,
            'hyperparameters': self.hyperparameters.to_dict(),
            'feature_columns': self.feature_columns,
            'metadata': self.metadata.to_dict(),
        }

    @handle_exception
    def save(self, path: Union[str, Path]) -> Path:
        """Persist the model with joblib"""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        joblib.dump(self, path)
        logger.info(f"Saved model {self.name} to {path}")
        return path

    @classmethod
    @handle_exception
    def load(cls, path: Union[str, Path]) -> 'BaseModel':
        """Load a model persisted with ``save``"""
        model = joblib.load(Path(path))
        if not isinstance(model, cls):
            raise DataValidationError(
                f"{path} holds a {type(model).__name__}, expected {cls.__name__}")
        logger.info(f"Loaded model {model.name} from {path}")
        return model

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name='{self.name}', status='{self.status.value}')"
