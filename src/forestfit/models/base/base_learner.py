# ============================================
# forestfit - src/forestfit/models/base/base_learner.py
# Contract for base learners trained and queried by ensembles
# ============================================

from abc import abstractmethod
from typing import Optional

from .base_model import BaseModel
from ..hyperparameters import HyperParameter
from ...evaluation.fit import Fit
from ...utils.validators import ParameterValidator


class BaseLearner(BaseModel):
    """
    A trainable model that reports its number of leaves

    Ensembles depend only on this contract:

    - ``train(x, y)`` fits the learner (inherited from ``BaseModel``)
    - ``predict(z)`` returns a float for a vector, a vector for a matrix
    - ``num_leaves`` counts terminal nodes, used for degrees of freedom

    Concrete learners are constructed as
    ``Learner(hyperparameters=..., random_state=...)`` so that an ensemble
    can build a fresh one for every tree.
    """

    def __init__(self,
                 hyperparameters: Optional[HyperParameter] = None,
                 random_state: Optional[int] = 0,
                 name: Optional[str] = None,
                 model_type: str = "base_learner",
                 diagnostics: Optional[Fit] = None,
                 verbose: bool = False):
        self.random_state = random_state
        super().__init__(
            name=name or model_type,
            model_type=model_type,
            hyperparameters=hyperparameters,
            diagnostics=diagnostics,
            verbose=verbose
        )

    def _validate_configuration(self, n_rows: int):
        """A single learner only needs a valid depth limit"""
        ParameterValidator().validate_tree_params(self.hyperparameters.max_depth).raise_if_invalid()

    @property
    @abstractmethod
    def num_leaves(self) -> int:
        """Number of terminal nodes of the trained learner"""
        pass

    @property
    def depth(self) -> Optional[int]:
        """Depth of the trained learner, None when not meaningful"""
        return None

    def has_finite_parameters(self) -> bool:
        """Whether every trained parameter is finite"""
        return True

    @property
    def model_degrees_of_freedom(self) -> int:
        return self.num_leaves
