# stdlib
from dataclasses import dataclass
from typing import Dict
# thirdpartylib
import numpy as np
import pandas as pd
from statsmodels.stats.diagnostic import acorr_ljungbox # pyright: ignore
from statsmodels.tsa.seasonal import STL # pyright: ignore
from statsmodels.tsa.stattools import acf, pacf # pyright: ignore
# projectlib
from grid_mix_forecasting.config.constants import SEASONAL_PERIOD

def decompose(
        series: pd.Series,
        *,
        period: int = SEASONAL_PERIOD,
        robust: bool = True,
    ) -> pd.DataFrame:
    """
    STL decomposition into trend, seasonal and remainder components.

    Parameters
    ----------
    series : pd.Series
        Regularly spaced series with at least two full seasons.
    period : int, default 12
        Season length in observations.
    robust : bool, default True
        Use robust LOESS weights so isolated spikes do not leak into the
        trend and seasonal estimates.

    Returns
    -------
    pd.DataFrame
        Columns ``observed``, ``trend``, ``seasonal``, ``remainder``
        aligned to ``series``.
    """
    values = pd.Series(series).dropna().astype(np.float64)
    fit = STL(values, period=period, robust=robust).fit()
    return pd.DataFrame(
        {
            "observed": values,
            "trend": np.asarray(fit.trend),
            "seasonal": np.asarray(fit.seasonal),
            "remainder": np.asarray(fit.resid),
        },
        index=values.index,
    )

def feature_strength(components: pd.DataFrame) -> Dict[str, float]:
    """
    Trend and seasonal strength of an STL decomposition.

    Both are ``max(0, 1 - Var(R) / Var(X + R))`` where ``X`` is the
    trend or seasonal component and ``R`` the remainder; values near 1
    indicate a dominant component.
    """
    remainder = components["remainder"]
    var_r = float(np.var(remainder, ddof=1))

    def strength(component: str) -> float:
        denom = float(np.var(components[component] + remainder, ddof=1))
        if denom <= 0:
            return 0.0
        return max(0.0, 1.0 - var_r / denom)

    return {
        "trend_strength": strength("trend"),
        "seasonal_strength": strength("seasonal"),
    }

def autocorrelation(series: pd.Series, nlags: int = 24) -> pd.DataFrame:
    """
    ACF and PACF up to ``nlags`` with the approximate 95% significance
    bound ``±1.96 / sqrt(n)``.
    """
    values = pd.Series(series).dropna().to_numpy(dtype=np.float64)
    nlags = min(nlags, len(values) // 2 - 1)
    bound = 1.96 / np.sqrt(len(values))
    frame = pd.DataFrame(
        {
            "acf": acf(values, nlags=nlags, fft=True),
            "pacf": pacf(values, nlags=nlags),
        },
        index=pd.RangeIndex(0, nlags + 1, name="lag"),
    )
    frame["significant"] = frame["acf"].abs() > bound
    frame.loc[0, "significant"] = False
    return frame


@dataclass(frozen=True)
class LjungBoxResult:
    statistic: float
    p_value: float
    lag: int
    white_noise: bool


def ljung_box(
        residuals: pd.Series,
        *,
        lag: int = 2 * SEASONAL_PERIOD,
        dof: int = 0,
        alpha: float = 0.05,
    ) -> LjungBoxResult:
    # Residual whiteness; ``dof`` is the number of estimated ARMA terms
    values = pd.Series(residuals).dropna().to_numpy(dtype=np.float64)
    lag = max(1, min(lag, len(values) - 1))
    table = acorr_ljungbox(values, lags=[lag], model_df=dof)
    stat = float(table["lb_stat"].iloc[-1])
    p_value = float(table["lb_pvalue"].iloc[-1])
    return LjungBoxResult(
        statistic=stat,
        p_value=p_value,
        lag=lag,
        white_noise=bool(p_value >= alpha),
    )
