# ============================================
# forestfit - src/forestfit/evaluation/fit.py
# Quality-of-fit (QoF) diagnostics for regression models
# ============================================

import math
from enum import IntEnum
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from scipy import stats

from ..utils.logger import get_logger

logger = get_logger('evaluation.fit')

# ============================================
# QoF Layout
# ============================================

class QoF(IntEnum):
    """Positions of the measures in a QoF vector"""
    rSq = 0         # coefficient of determination
    rSqBar = 1      # adjusted R-squared
    sst = 2         # total sum of squares
    sse = 3         # sum of squared errors
    sde = 4         # standard deviation of errors
    mse0 = 5        # raw/MLE mean squared error
    rmse = 6        # root mean squared error
    mae = 7         # mean absolute error
    smape = 8       # symmetric mean absolute percentage error
    m = 9           # number of instances
    dfm = 10        # degrees of freedom taken by the model
    df = 11         # degrees of freedom left for error
    fStat = 12      # F statistic
    aic = 13        # Akaike information criterion
    bic = 14        # Bayesian information criterion
    mape = 15       # mean absolute percentage error
    mase = 16       # mean absolute scaled error
    smapeIC = 17    # sMAPE information criterion
    picp = 18       # prediction interval coverage probability
    pinc = 19       # prediction interval nominal coverage
    ace = 20        # average coverage error
    pinaw = 21      # prediction interval normalized average width
    pinad = 22      # prediction interval normalized average deviation
    iscore = 23     # interval score
    wis = 24        # weighted interval score


QOF_NAMES: List[str] = [q.name for q in QoF]

# Interval measures stay at this value until an interval diagnosis runs
NOT_COMPUTED = -1.0

# Penalty multiplier for the sMAPE information criterion
SMAPE_IC_PENALTY = 2.0

DEFAULT_WIS_ALPHAS: Tuple[float, ...] = (0.02, 0.05, 0.1, 0.2, 0.3, 0.4, 0.5, 0.6, 0.7, 0.8, 0.9)

# ============================================
# Standalone Measures
# ============================================

def mae_naive(y: np.ndarray, h: int = 1) -> float:
    """MAE of the naive (random walk) model with stride h"""
    y = np.asarray(y, dtype=float)
    if len(y) <= h:
        return float('nan')
    return float(np.mean(np.abs(y[h:] - y[:-h])))


def mase(y: np.ndarray, yp: np.ndarray) -> float:
    """Mean absolute scaled error: MAE of the model over MAE of the naive model"""
    y = np.asarray(y, dtype=float)
    yp = np.asarray(yp, dtype=float)
    with np.errstate(divide='ignore', invalid='ignore'):
        return float(np.mean(np.abs(y - yp)) / mae_naive(y, 1))


def smape(y: np.ndarray, yp: np.ndarray) -> float:
    """Symmetric mean absolute percentage error, in percent"""
    y = np.asarray(y, dtype=float)
    yp = np.asarray(yp, dtype=float)
    with np.errstate(divide='ignore', invalid='ignore'):
        ratios = np.abs(y - yp) / (np.abs(y) + np.abs(yp))
    # 0/0 means both actual and predicted are zero, a perfect hit
    return float(200.0 * np.mean(np.nan_to_num(ratios, nan=0.0)))


def picp(y: np.ndarray, low: np.ndarray, up: np.ndarray) -> float:
    """Fraction of actual values inside their prediction interval"""
    y = np.asarray(y, dtype=float)
    return float(np.mean((y >= low) & (y <= up)))


def pinad(y: np.ndarray, low: np.ndarray, up: np.ndarray) -> float:
    """Average deviation outside the interval, normalized by the range of y"""
    y = np.asarray(y, dtype=float)
    deviation = np.where(y < low, low - y, np.where(y > up, y - up, 0.0))
    with np.errstate(divide='ignore', invalid='ignore'):
        return float(deviation.sum() / (len(y) * (y.max() - y.min())))


def interval_score(y: np.ndarray, low: np.ndarray, up: np.ndarray, alpha: float = 0.1) -> float:
    """Interval score: width plus 2/alpha times the miss distance"""
    y = np.asarray(y, dtype=float)
    penalty = 2.0 / alpha
    score = (up - low) + penalty * np.clip(low - y, 0.0, None) + penalty * np.clip(y - up, 0.0, None)
    return float(np.mean(score))


def weighted_interval_score(y: np.ndarray, yp: np.ndarray, low: np.ndarray, up: np.ndarray,
                            alphas: Sequence[float] = DEFAULT_WIS_ALPHAS) -> float:
    """
    Weighted interval score over several nominal levels

    Args:
        y: actual values
        yp: point predictions
        low: lower bounds, one row per alpha
        up: upper bounds, one row per alpha
        alphas: the nominal levels, the first one weighting the point error

    Returns:
        WIS value
    """
    y = np.asarray(y, dtype=float)
    low = np.atleast_2d(np.asarray(low, dtype=float))
    up = np.atleast_2d(np.asarray(up, dtype=float))
    k = len(alphas)

    total = alphas[0] * np.mean(np.abs(y - yp))
    for j in range(1, k):
        total += alphas[j] * interval_score(y, low[j], up[j], alphas[j])
    return float(total / (2 * k + 1))

# ============================================
# Fit: Diagnostics Collaborator
# ============================================

class Fit:
    """
    Quality-of-fit diagnostics for a predictive model y = f(x) + e

    Degrees of freedom are owned by the caller: a model sets them with
    ``reset_degrees_of_freedom(df1, df2)`` (model, error) before calling
    ``diagnose(y, yp)``, which returns the QoF vector laid out by ``QoF``.

    Degenerate inputs (fewer than two instances, no variability in y,
    negative degrees of freedom) are reported as flaws, logged as warnings
    and recorded in ``flaws``; the QoF vector is still returned.
    """

    def __init__(self, dfm: float = 1.0, df: float = 1.0):
        self.flaws: List[str] = []
        self._qof = np.full(len(QoF), NOT_COMPUTED)
        self.p_value = float('nan')
        self.reset_degrees_of_freedom(dfm, df)

    def reset_degrees_of_freedom(self, df1: float, df2: float):
        """
        Set the model (df1) and error (df2) degrees of freedom

        Args:
            df1: degrees of freedom taken by the model
            df2: degrees of freedom left for error
        """
        self.dfm = float(df1)
        self.df = float(df2)
        self.df_total = self.dfm + self.df
        # ratio of total to error degrees of freedom, for adjusted R-squared
        self.r_df = self.df_total / self.df if self.df > 1.0 else self.dfm + 1.0
        logger.debug(f"reset_degrees_of_freedom: dfm = {self.dfm}, df = {self.df}")

    def _flaw(self, method: str, message: str):
        self.flaws.append(f"{method}: {message}")
        logger.warning(f"Fit.{method}: {message}")

    def diagnose(self, y, yp, w=None) -> np.ndarray:
        """
        Compute the QoF vector for actual ``y`` and predicted ``yp``

        Args:
            y: actual response vector (testing or full)
            yp: predicted response vector
            w: optional instance weights

        Returns:
            QoF vector (see ``QoF`` for positions); interval measures are -1
        """
        y = np.asarray(y, dtype=float).ravel()
        yp = np.asarray(yp, dtype=float).ravel()
        self.flaws = []

        m = len(y)
        if m < 2:
            self._flaw("diagnose", f"requires at least 2 responses to evaluate m = {m}")
        if len(yp) != m:
            self._flaw("diagnose", f"len(yp) = {len(yp)} != len(y) = {m}")
            n = min(m, len(yp))
            y, yp, m = y[:n], yp[:n], n
        if self.dfm < 0 or self.df < 0:
            self._flaw("diagnose", f"degrees of freedom dfm = {self.dfm} and df = {self.df} must be non-negative")

        qof = np.full(len(QoF), NOT_COMPUTED)
        e = y - yp

        with np.errstate(divide='ignore', invalid='ignore', over='ignore'):
            sse = float(e @ e)
            if w is None:
                mu = float(np.mean(y)) if m else float('nan')
                sst = float(np.sum((y - mu) ** 2))
                ssr = sst - sse
            else:
                w = np.asarray(w, dtype=float).ravel()[:m]
                yp_mean = float(np.sum(w * yp) / np.sum(w))
                ssr = float(np.sum(w * (yp - yp_mean) ** 2))
                sst = ssr + sse

            if m >= 2 and sst == 0.0:
                self._flaw("diagnose", "response has no variability (sst = 0), QoF is degenerate")

            mse0 = sse / m if m else float('nan')
            r_sq = 1.0 - sse / sst if sst != 0.0 else (float('nan') if sse == 0.0 else float('-inf'))
            msr = 0.0 if self.dfm == 0 else ssr / self.dfm
            mse = sse / self.df if self.df != 0 else float('inf')
            f_stat = msr / mse if mse != 0 else float('inf')

            sig2e = float(np.var(e)) if m else float('nan')
            log_likelihood = -m / 2.0 * (math.log(2 * math.pi) + np.log(sig2e) + mse0 / sig2e)
            aic = log_likelihood + 2 * (self.dfm + 1)
            bic = aic + (self.dfm + 1) * (np.log(m) - 2) if m else float('nan')

            qof[QoF.rSq] = r_sq
            qof[QoF.rSqBar] = 1.0 - (1.0 - r_sq) * self.r_df
            qof[QoF.sst] = sst
            qof[QoF.sse] = sse
            qof[QoF.sde] = float(np.std(e, ddof=1)) if m > 1 else 0.0
            qof[QoF.mse0] = mse0
            qof[QoF.rmse] = math.sqrt(mse0) if mse0 >= 0 else float('nan')
            qof[QoF.mae] = float(np.mean(np.abs(e))) if m else float('nan')
            qof[QoF.smape] = smape(y, yp) if m else float('nan')
            qof[QoF.m] = m
            qof[QoF.dfm] = self.dfm
            qof[QoF.df] = self.df
            qof[QoF.fStat] = f_stat
            qof[QoF.aic] = aic
            qof[QoF.bic] = bic
            qof[QoF.mape] = float(100.0 * np.sum(np.abs(e) / np.abs(y)) / m) if m else float('nan')
            qof[QoF.mase] = mase(y, yp) if m else float('nan')
            qof[QoF.smapeIC] = qof[QoF.smape] + SMAPE_IC_PENALTY * (self.dfm + 1) / m if m else float('nan')

        self.p_value = self._f_test_p_value(f_stat)
        self._qof = qof
        return qof.copy()

    def _f_test_p_value(self, f_stat: float) -> float:
        """p-value of the F statistic; -0.0 when it cannot be computed"""
        if self.dfm <= 0 or self.df <= 0 or not np.isfinite(f_stat):
            return -0.0
        p = float(stats.f.sf(f_stat, self.dfm, self.df))
        return -0.0 if np.isnan(p) else p

    def diagnose_interval(self, y, yp, low, up, alpha: float = 0.1, w=None) -> np.ndarray:
        """
        Diagnose point predictions plus a prediction interval [low, up]

        Args:
            y: actual response vector
            yp: point predictions
            low: lower bounds
            up: upper bounds
            alpha: nominal level of uncertainty (0.1 means a 90% interval)
            w: optional instance weights

        Returns:
            QoF vector including the interval measures
        """
        qof = self.diagnose(y, yp, w)
        y = np.asarray(y, dtype=float).ravel()
        low = np.asarray(low, dtype=float).ravel()
        up = np.asarray(up, dtype=float).ravel()

        with np.errstate(divide='ignore', invalid='ignore'):
            qof[QoF.picp] = picp(y, low, up)
            qof[QoF.pinc] = 1.0 - alpha
            qof[QoF.ace] = qof[QoF.picp] - qof[QoF.pinc]
            qof[QoF.pinaw] = float(np.mean(up - low) / (y.max() - y.min()))
            qof[QoF.pinad] = pinad(y, low, up)
            qof[QoF.iscore] = interval_score(y, low, up, alpha)

        self._qof = qof
        return qof.copy()

    def diagnose_wis(self, y, yp, low, up, alphas: Sequence[float] = DEFAULT_WIS_ALPHAS) -> float:
        """Compute the weighted interval score and store it in the QoF vector"""
        score = weighted_interval_score(y, yp, low, up, alphas)
        self._qof[QoF.wis] = score
        return score

    def fit(self) -> np.ndarray:
        """QoF vector from the last diagnosis"""
        return self._qof.copy()

    def fit_map(self) -> Dict[str, float]:
        """QoF name -> value from the last diagnosis"""
        return {name: float(value) for name, value in zip(QOF_NAMES, self._qof)}

    def summary(self, model_name: Optional[str] = None) -> pd.DataFrame:
        """QoF table (one row per measure) from the last diagnosis"""
        column = model_name or 'value'
        frame = pd.DataFrame({column: self._qof}, index=pd.Index(QOF_NAMES, name='qof'))
        frame.attrs['p_value'] = self.p_value
        return frame
