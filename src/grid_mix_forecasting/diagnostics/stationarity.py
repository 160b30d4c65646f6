# stdlib
import warnings
from dataclasses import dataclass
# thirdpartylib
import numpy as np
import pandas as pd
from statsmodels.tools.sm_exceptions import ( # pyright: ignore
    InterpolationWarning,
)
from statsmodels.tsa.stattools import kpss # pyright: ignore
# projectlib
from grid_mix_forecasting.config.constants import (
    KPSS_ALPHA,
    MAX_D,
    MAX_SEASONAL_D,
    SEASONAL_PERIOD,
    SEASONAL_STRENGTH_THRESHOLD,
)
from grid_mix_forecasting.diagnostics.decomposition import (
    decompose,
    feature_strength,
)


@dataclass(frozen=True)
class StationarityResult:
    """Outcome of a KPSS level-stationarity test."""
    statistic: float
    p_value: float
    lags: int
    non_stationary: bool


def kpss_test(
        series: pd.Series,
        *,
        alpha: float = KPSS_ALPHA,
    ) -> StationarityResult:
    """
    KPSS test of the null hypothesis that ``series`` is level
    stationary.

    statsmodels interpolates the p-value from a table bounded to
    [0.01, 0.1]; values outside are clipped to the bound, which is
    enough for a verdict at the usual levels.

    Parameters
    ----------
    series : pd.Series
        Series to test. Missing values are dropped.
    alpha : float, default 0.05
        Significance threshold. The series is declared non-stationary
        when the p-value falls below it.

    Returns
    -------
    StationarityResult
    """
    values = pd.Series(series).dropna().to_numpy(dtype=np.float64)
    with warnings.catch_warnings():
        # The p-value is clipped at the table bounds; the verdict does
        # not depend on the exact value there
        warnings.simplefilter("ignore", InterpolationWarning)
        stat, p_value, lags, _ = kpss(values, regression="c", nlags="auto")
    return StationarityResult(
        statistic=float(stat),
        p_value=float(p_value),
        lags=int(lags),
        non_stationary=bool(p_value < alpha),
    )

def difference(series: pd.Series, lag: int = 1) -> pd.Series:
    """Lagged difference with the leading undefined values removed."""
    return series.diff(lag).iloc[lag:]

def seasonal_difference(
        series: pd.Series,
        lag: int = SEASONAL_PERIOD,
    ) -> pd.Series:
    """``x[t] - x[t - lag]``; the first ``lag`` observations are lost."""
    return difference(series, lag)

def invert_seasonal_difference(
        diffed: pd.Series,
        initial: pd.Series,
        lag: int = SEASONAL_PERIOD,
    ) -> pd.Series:
    """
    Rebuild a series from its seasonal difference.

    Each season position ``k`` is reconstructed by cumulatively summing
    every ``lag``-th difference onto ``initial[k]``.

    Parameters
    ----------
    diffed : pd.Series
        Output of :func:`seasonal_difference`.
    initial : pd.Series
        The first ``lag`` values of the original series.
    lag : int, default 12
        Seasonal lag used for the difference.

    Returns
    -------
    pd.Series
        The original series, indexed by ``initial`` then ``diffed``.
    """
    if len(initial) != lag:
        raise ValueError(
            f"Exactly {lag} initial values are required, "
            f"got {len(initial)}."
        )
    head = initial.to_numpy(dtype=np.float64)
    steps = diffed.to_numpy(dtype=np.float64)
    out = np.empty(lag + len(steps), dtype=np.float64)
    out[:lag] = head
    for k in range(lag):
        out[lag + k::lag] = head[k] + np.cumsum(steps[k::lag])
    index = initial.index.append(diffed.index)
    return pd.Series(out, index=index, name=diffed.name)

def ndiffs(
        series: pd.Series,
        *,
        alpha: float = KPSS_ALPHA,
        max_d: int = MAX_D,
    ) -> int:
    """
    Smallest number of first differences after which the KPSS test no
    longer rejects stationarity, capped at ``max_d``.
    """
    current = pd.Series(series).dropna()
    for d in range(max_d + 1):
        if len(current) < 3:
            return d
        if not kpss_test(current, alpha=alpha).non_stationary:
            return d
        if d < max_d:
            current = difference(current)
    return max_d

def nsdiffs(
        series: pd.Series,
        *,
        period: int = SEASONAL_PERIOD,
        max_D: int = MAX_SEASONAL_D,
        threshold: float = SEASONAL_STRENGTH_THRESHOLD,
    ) -> int:
    """
    Number of seasonal differences suggested by STL seasonal strength.

    The series is seasonally differenced while its seasonal strength
    exceeds ``threshold`` (0.64 is the customary cut-off), up to
    ``max_D`` times. Series shorter than two full seasons cannot be
    decomposed and yield zero.
    """
    current = pd.Series(series).dropna()
    for D in range(max_D + 1):
        if len(current) < 2 * period:
            return D
        strength = feature_strength(decompose(current, period=period))
        if strength["seasonal_strength"] <= threshold:
            return D
        if D < max_D:
            current = seasonal_difference(current, period)
    return max_D
