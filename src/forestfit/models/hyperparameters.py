# ============================================
# forestfit - src/forestfit/models/hyperparameters.py
# Immutable hyperparameter values for tree learners and ensembles
# ============================================

import numbers
from collections import abc
from dataclasses import dataclass, fields, replace, asdict
from typing import Any, Dict, Iterator, Mapping, Optional

from ..utils.config_loader import get
from ..utils.exceptions import InvalidParameterError
from ..utils.validators import ParameterValidator, ValidationResult

# camelCase names used in configuration files -> attribute names
KEY_ALIASES: Dict[str, str] = {
    'maxDepth': 'max_depth',
    'nTrees': 'n_trees',
    'bRatio': 'b_ratio',
    'fbRatio': 'fb_ratio',
}

# Counts: whole-valued reals such as 4.0 are stored as int
INTEGER_FIELDS = ('max_depth', 'n_trees')


def _is_whole_real(value: Any) -> bool:
    if isinstance(value, numbers.Integral) or not isinstance(value, numbers.Real):
        return False
    return float(value).is_integer()


@dataclass(frozen=True)
class HyperParameter(abc.Mapping):
    """
    Hyperparameters shared by tree learners and ensembles

    Attributes:
        max_depth: depth limit of every tree (maxDepth)
        n_trees: number of trees in an ensemble (nTrees)
        b_ratio: fraction of rows drawn for each bagged tree (bRatio)
        fb_ratio: fraction of columns drawn when feature bagging is on (fbRatio)

    Values are immutable; use ``updated`` to derive a modified copy. The
    value is also a read-only mapping keyed by the camelCase names, so
    ``dict(hp)`` gives the configuration-file view.
    """
    max_depth: int = 5
    n_trees: int = 9
    b_ratio: float = 0.7
    fb_ratio: float = 0.7

    def __post_init__(self):
        for name in INTEGER_FIELDS:
            value = getattr(self, name)
            if _is_whole_real(value):
                object.__setattr__(self, name, int(value))

    @classmethod
    def from_config(cls, overrides: Optional[Mapping[str, Any]] = None) -> 'HyperParameter':
        """Defaults from ``model_config.hyperparameters`` with optional overrides"""
        configured = get('model_config', 'hyperparameters', {}) or {}
        merged = {**configured, **(overrides or {})}
        return cls.from_mapping(merged)

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any]) -> 'HyperParameter':
        """
        Build from a name -> value mapping

        Accepts the camelCase keys (maxDepth, nTrees, bRatio, fbRatio) and
        their snake_case attribute names. Unknown keys are rejected.
        """
        known = {f.name for f in fields(cls)}
        values: Dict[str, Any] = {}

        for key, value in mapping.items():
            name = KEY_ALIASES.get(key, key)
            if name not in known:
                raise InvalidParameterError(
                    f"Unknown hyperparameter '{key}'",
                    parameter_name=key,
                    provided_value=value
                )
            values[name] = value

        return cls(**values)

    def updated(self, **changes: Any) -> 'HyperParameter':
        """Return a copy with some values changed (camelCase or snake_case keys)"""
        return replace(self, **{KEY_ALIASES.get(k, k): v for k, v in changes.items()})

    def validate(self, feature_bagging: bool = False) -> ValidationResult:
        """Check every value against its accepted range"""
        validator = ParameterValidator()
        result = validator.validate_tree_params(self.max_depth)
        result.merge(validator.validate_ensemble_params(
            self.n_trees, self.b_ratio, self.fb_ratio if feature_bagging else None))
        return result

    def sample_size(self, n_rows: int) -> int:
        """Rows drawn per bagged tree: floor(bRatio * m)"""
        return int(self.b_ratio * n_rows)

    def to_dict(self) -> Dict[str, Any]:
        """camelCase view, as written in configuration files"""
        inverse = {v: k for k, v in KEY_ALIASES.items()}
        return {inverse[k]: v for k, v in asdict(self).items()}

    def __getitem__(self, key: str) -> Any:
        name = KEY_ALIASES.get(key, key)
        try:
            return getattr(self, name)
        except AttributeError:
            raise KeyError(key) from None

    def __iter__(self) -> Iterator[str]:
        return iter(KEY_ALIASES)

    def __len__(self) -> int:
        return len(KEY_ALIASES)
