# ============================================
# forestfit - src/forestfit/evaluation/selection.py
# Feature selection: forward, backward and stepwise search over columns
# ============================================

import math
import numpy as np
import pandas as pd
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from ..utils.config_loader import get
from ..utils.exceptions import InvalidParameterError
from ..utils.logger import get_logger
from ..utils.timing import time_it
from ..utils.validators import DataValidator, as_matrix, as_vector
from .fit import QoF
from .validation import cross_validate, train_n_test

logger = get_logger('evaluation.selection')

# Measures where a smaller value is the better fit; all others prefer larger
LOWER_IS_BETTER = frozenset({
    QoF.sse, QoF.sde, QoF.mse0, QoF.rmse, QoF.mae, QoF.smape, QoF.aic, QoF.bic,
    QoF.mape, QoF.mase, QoF.smapeIC, QoF.iscore, QoF.wis,
})

QoFKey = Union[QoF, int, str]

# ============================================
# Comparing Candidates
# ============================================

def _qof_index(qk: Optional[QoFKey]) -> QoF:
    """Resolve a QoF name, index or member (config ``selection.qof`` when None)"""
    qk = get('model_config', 'selection.qof', 'rSqBar') if qk is None else qk
    try:
        return QoF[qk] if isinstance(qk, str) else QoF(int(qk))
    except (KeyError, ValueError):
        raise InvalidParameterError(f"Unknown quality-of-fit measure {qk!r}",
                                    parameter_name='qk', provided_value=qk) from None


def extreme(qk: QoF) -> float:
    """Worst possible value of measure qk, the starting point of a search"""
    return math.inf if qk in LOWER_IS_BETTER else -math.inf


def is_better(new: float, old: float, qk: QoF) -> bool:
    """Whether score ``new`` strictly improves on ``old`` for measure qk"""
    if math.isnan(new):
        return False
    if math.isnan(old):
        return True
    return new < old if qk in LOWER_IS_BETTER else new > old


@dataclass
class BestStep:
    """Best candidate of a selection step; ``col == -1`` means none was found"""
    col: int = -1
    qof: Optional[np.ndarray] = None
    model: Any = None
    score: float = float('nan')

    def better(self, col: int, qof: np.ndarray, model: Any, qk: QoF) -> 'BestStep':
        """Keep whichever of self and the new candidate scores better"""
        score = float(qof[qk])
        if is_better(score, self.score, qk):
            return BestStep(col=col, qof=qof, model=model, score=score)
        return self


@dataclass
class SelectionResult:
    """
    Outcome of a feature-selection search

    Attributes:
        columns: Selected columns; for forward and backward searches they
            are ordered from most to least important
        history: One row per accepted step with its QoF summary
        best: Best model seen during the search
        qk: Measure used to compare candidates
        removed: Columns in the order backward elimination dropped them
    """
    columns: List[int]
    history: pd.DataFrame
    best: BestStep
    qk: QoF
    removed: List[int] = field(default_factory=list)

# ============================================
# Single Steps
# ============================================

def _as_arrays(x, y) -> Tuple[np.ndarray, np.ndarray]:
    DataValidator().validate_training_data(x, y).raise_if_invalid()
    return as_matrix(x), as_vector(y)


def _evaluate(model, x: np.ndarray, y: np.ndarray, columns: Sequence[int]) -> Tuple[np.ndarray, Any]:
    """Train a model restricted to ``columns`` and test it in-sample"""
    candidate = model.build_model(columns)
    _, qof = train_n_test(candidate, x[:, list(columns)], y)
    return qof, candidate


def forward_step(model, x, y, columns: Sequence[int], qk: Optional[QoFKey] = None) -> BestStep:
    """
    Find the column whose addition gives the best model

    Args:
        model: Prototype whose ``build_model`` creates each candidate
        x: Full feature matrix
        y: Response vector
        columns: Columns already in the model
        qk: Measure used to compare candidates (default rSqBar)

    Returns:
        BestStep with the column to add, or ``col == -1`` when none is left
    """
    qk = _qof_index(qk)
    x, y = _as_arrays(x, y)
    best = BestStep()

    for j in range(x.shape[1]):
        if j in columns:
            continue
        qof, candidate = _evaluate(model, x, y, list(columns) + [j])
        best = best.better(j, qof, candidate, qk)

    if best.col == -1:
        logger.warning(f"forward_step: could not find a variable to add to {list(columns)}")
    return best


def backward_step(model, x, y, columns: Sequence[int], first: int = 0,
                  qk: Optional[QoFKey] = None) -> BestStep:
    """
    Find the column whose removal gives the best model

    Columns below ``first`` are never removed, and at least one column
    always stays in the model.

    Returns:
        BestStep with the column to remove, or ``col == -1`` when none can go
    """
    qk = _qof_index(qk)
    x, y = _as_arrays(x, y)
    best = BestStep()

    if len(columns) > 1:
        for j in columns:
            if j < first:
                continue
            qof, candidate = _evaluate(model, x, y, [c for c in columns if c != j])
            best = best.better(j, qof, candidate, qk)

    if best.col == -1:
        logger.warning(f"backward_step: could not find a variable to remove from {list(columns)}")
    return best

# ============================================
# Full Searches
# ============================================

def _cross_validated_r_sq(model, x: np.ndarray, y: np.ndarray, columns: Sequence[int],
                          k: Optional[int]) -> float:
    cols = list(columns)
    results = cross_validate(lambda: model.build_model(cols), x[:, cols], y, k=k)
    return float(results['statistics'].loc['rSq', 'mean'])


def _record(step: int, action: str, columns: Sequence[int], best: BestStep, model,
            x: np.ndarray, y: np.ndarray, cross: bool, k: Optional[int],
            added: Optional[int] = None, removed: Optional[int] = None) -> Dict[str, Any]:
    """QoF summary of an accepted step: rSq, rSqBar, sMAPE and optionally cross-validated rSq"""
    qof = best.qof
    return {
        'step': step,
        'action': action,
        'added': added,
        'removed': removed,
        'columns': tuple(columns),
        'rSq': float(qof[QoF.rSq]),
        'rSqBar': float(qof[QoF.rSqBar]),
        'smape': float(qof[QoF.smape]),
        'rSq_cv': _cross_validated_r_sq(model, x, y, columns, k) if cross else float('nan'),
    }


def _history_frame(records: List[Dict[str, Any]]) -> pd.DataFrame:
    columns = ['step', 'action', 'added', 'removed', 'columns', 'rSq', 'rSqBar', 'smape', 'rSq_cv']
    return pd.DataFrame.from_records(records, columns=columns).set_index('step')


def _resolve_cross(cross: Optional[bool]) -> bool:
    return bool(get('model_config', 'selection.cross', False)) if cross is None else cross


@time_it("forward_selection")
def forward_selection(model, x, y, cross: Optional[bool] = None, qk: Optional[QoFKey] = None,
                      k: Optional[int] = None) -> SelectionResult:
    """
    Forward selection: start with no columns and repeatedly add the most
    predictive one until every column is in the model

    Args:
        model: Prototype whose ``build_model`` creates each candidate
        x: Full feature matrix
        y: Response vector
        cross: Also record cross-validated rSq per step (config ``selection.cross``)
        qk: Measure used to compare candidates (config ``selection.qof``)
        k: Folds for the cross-validated rSq

    Returns:
        SelectionResult; ``columns`` are in the order they were added
    """
    qk = _qof_index(qk)
    cross = _resolve_cross(cross)
    x, y = _as_arrays(x, y)

    columns: List[int] = []
    records: List[Dict[str, Any]] = []
    overall = BestStep()

    for step in range(1, x.shape[1] + 1):
        best = forward_step(model, x, y, columns, qk)
        if best.col == -1:
            break
        overall = overall.better(best.col, best.qof, best.model, qk)
        columns.append(best.col)
        records.append(_record(step, 'add', columns, best, model, x, y, cross, k, added=best.col))
        logger.info(f"forward_selection: (l = {step}) ADD variable {best.col} "
                    f"=> cols = {columns} @ {qk.name} = {best.score:.4f}")

    return SelectionResult(columns=columns, history=_history_frame(records), best=overall, qk=qk)


@time_it("backward_elimination")
def backward_elimination(model, x, y, first: int = 0, cross: Optional[bool] = None,
                         qk: Optional[QoFKey] = None, k: Optional[int] = None) -> SelectionResult:
    """
    Backward elimination: start with every column and repeatedly remove the
    least predictive one until a single column (or only columns below
    ``first``) remains

    Returns:
        SelectionResult; ``columns`` lists the columns from most to least
        important (the last survivor first, then the removals in reverse),
        ``removed`` the columns in the order they were eliminated
    """
    qk = _qof_index(qk)
    cross = _resolve_cross(cross)
    x, y = _as_arrays(x, y)

    columns = list(range(x.shape[1]))
    qof, full_model = _evaluate(model, x, y, columns)
    overall = BestStep(col=-1, qof=qof, model=full_model, score=float(qof[qk]))
    records = [_record(0, 'initial', columns, overall, model, x, y, cross, k)]
    logger.info(f"backward_elimination: (l = 0) INITIAL variables (all) "
                f"=> cols = {columns} @ {qk.name} = {overall.score:.4f}")

    removed: List[int] = []
    for step in range(1, x.shape[1]):
        best = backward_step(model, x, y, columns, first, qk)
        if best.col == -1:
            break
        overall = overall.better(best.col, best.qof, best.model, qk)
        columns.remove(best.col)
        removed.append(best.col)
        records.append(_record(step, 'remove', columns, best, model, x, y, cross, k, removed=best.col))
        logger.info(f"backward_elimination: (l = {step}) REMOVE variable {best.col} "
                    f"=> cols = {columns} @ {qk.name} = {best.score:.4f}")

    ranked = columns + removed[::-1]
    return SelectionResult(columns=ranked, history=_history_frame(records), best=overall,
                           qk=qk, removed=removed)


@time_it("stepwise_selection")
def stepwise_selection(model, x, y, cross: Optional[bool] = None, swap: bool = True,
                       qk: Optional[QoFKey] = None, k: Optional[int] = None) -> SelectionResult:
    """
    Stepwise selection: at every step take the better of the best addition
    and the best removal, provided it improves the current model; when
    neither does, optionally try swapping the removal candidate for the
    addition candidate. Stops when no move improves the model.

    Returns:
        SelectionResult; ``columns`` are the selected columns in the order
        they entered the model
    """
    qk = _qof_index(qk)
    cross = _resolve_cross(cross)
    x, y = _as_arrays(x, y)
    n_columns = x.shape[1]

    columns: List[int] = []
    records: List[Dict[str, Any]] = []
    overall = BestStep()
    last = extreme(qk)

    # every accepted move strictly improves the score, the bound is a safeguard
    for step in range(1, 2 * n_columns + 1):
        bestf = forward_step(model, x, y, columns, qk) if len(columns) < n_columns else BestStep()
        bestb = backward_step(model, x, y, columns, 0, qk) if len(columns) > 1 else BestStep()
        logger.debug(f"stepwise_selection: bestf = {bestf.col} @ {bestf.score:.4f}, "
                     f"bestb = {bestb.col} @ {bestb.score:.4f}")

        forward_ok = bestf.col != -1 and (bestb.col == -1 or not is_better(bestb.score, bestf.score, qk))
        if forward_ok and is_better(bestf.score, last, qk):
            best, action, added, removed = bestf, 'add', bestf.col, None
            columns.append(bestf.col)
        elif bestb.col != -1 and is_better(bestb.score, last, qk):
            best, action, added, removed = bestb, 'remove', None, bestb.col
            columns.remove(bestb.col)
        elif swap and bestf.col != -1 and bestb.col != -1:
            swapped = [c for c in columns if c != bestb.col] + [bestf.col]
            qof, candidate = _evaluate(model, x, y, swapped)
            bestfb = BestStep(col=bestf.col, qof=qof, model=candidate, score=float(qof[qk]))
            if not is_better(bestfb.score, last, qk):
                break
            best, action, added, removed = bestfb, 'swap', bestf.col, bestb.col
            columns = swapped
        else:
            break

        overall = overall.better(best.col, best.qof, best.model, qk)
        last = best.score
        records.append(_record(step, action, columns, best, model, x, y, cross, k,
                               added=added, removed=removed))
        logger.info(f"stepwise_selection: (l = {step}) {action.upper()} "
                    f"=> cols = {columns} @ {qk.name} = {last:.4f}")

    logger.info(f"stepwise_selection: selected features = {columns}")
    return SelectionResult(columns=columns, history=_history_frame(records), best=overall, qk=qk)

# ============================================
# Importance
# ============================================

def importance(result: SelectionResult) -> List[Tuple[int, float]]:
    """
    Relative importance of the columns added by forward selection

    The importance of a column is the gain in rSq when it entered the
    model (the model without columns has rSq = 0), rescaled so the most
    important column scores 1.

    Returns:
        (column, importance) pairs ordered from highest to lowest
    """
    added = result.history[result.history['action'] == 'add']
    if added.empty:
        return []

    r_sq = added['rSq'].to_numpy(dtype=float)
    gains = np.diff(np.concatenate(([0.0], r_sq)))
    top = gains.max()
    scaled = gains / top if top > 0.0 else np.zeros_like(gains)

    pairs = [(int(col), float(value)) for col, value in zip(added['added'], scaled)]
    return sorted(pairs, key=lambda pair: pair[1], reverse=True)
