# stdlib
from typing import Dict, Optional
# thirdpartylib
import numpy as np
from scipy.stats import norm # pyright: ignore[reportMissingTypeStubs]
from sklearn.metrics import mean_absolute_error, root_mean_squared_error
# projectlib
from grid_mix_forecasting.utils.typing import ArrayLike1D
from grid_mix_forecasting.config.constants import (
    INTERVAL_LEVEL,
    SEASONAL_PERIOD,
)

def mean_error(y_true: ArrayLike1D, y_pred: ArrayLike1D) -> float:
    """Mean of ``y_true - y_pred``; positive values mean under-forecast."""
    y_true = np.asarray(y_true, dtype=np.float64)
    y_pred = np.asarray(y_pred, dtype=np.float64)
    return float(np.mean(y_true - y_pred))

def rmse(y_true: ArrayLike1D, y_pred: ArrayLike1D) -> float:
    return float(root_mean_squared_error(y_true, y_pred))

def mae(y_true: ArrayLike1D, y_pred: ArrayLike1D) -> float:
    return float(mean_absolute_error(y_true, y_pred))

def mpe(
        y_true: ArrayLike1D,
        y_pred: ArrayLike1D,
        eps: float = 1e-6
    ) -> float:
    """
    Mean Percentage Error.

    The signed counterpart of :func:`mape`; the magnitude of the
    denominator is clamped to ``eps`` to avoid division by zero.
    """
    y_true = np.asarray(y_true, dtype=np.float64)
    y_pred = np.asarray(y_pred, dtype=np.float64)
    denom = np.sign(y_true) * np.maximum(eps, np.abs(y_true))
    denom[denom == 0] = eps
    return float(np.mean((y_true - y_pred) / denom) * 100.0)

def mape(
        y_true: ArrayLike1D,
        y_pred: ArrayLike1D,
        eps: float = 1e-6
    ) -> float:
    """
    Numerically safe Mean Absolute Percentage Error (MAPE).

    This variant clamps the denominator to `eps` to avoid division
    by zero and excessive inflation when y_true is near zero.

    Parameters
    ----------
    y_true : array-like
        Ground truth values.
    y_pred : array-like
        Predicted values.
    eps : float, default=1e-6
        Minimum value for the denominator.

    Returns
    -------
    float
        MAPE expressed as a percentage.
    """
    y_true = np.asarray(y_true, dtype=np.float64)
    y_pred = np.asarray(y_pred, dtype=np.float64)
    return float(
        np.mean(
            np.abs((y_true - y_pred) / np.maximum(eps, np.abs(y_true)))
        ) * 100.0
    )

def _seasonal_naive_scale(
        training: ArrayLike1D,
        m: int,
        power: int,
    ) -> float:
    train = np.asarray(training, dtype=np.float64)
    if len(train) <= m:
        return float("nan")
    return float(np.mean(np.abs(train[m:] - train[:-m]) ** power))

def mase(
        y_true: ArrayLike1D,
        y_pred: ArrayLike1D,
        training: ArrayLike1D,
        m: int = SEASONAL_PERIOD,
    ) -> float:
    """
    Mean Absolute Scaled Error against the in-sample seasonal naive
    forecast with period ``m``.

    Returns ``NaN`` when the scale is undefined (training too short) or
    zero, instead of coercing the result to a finite value.
    """
    scale = _seasonal_naive_scale(training, m, 1)
    if not np.isfinite(scale) or scale <= 0:
        return float("nan")
    return mae(y_true, y_pred) / scale

def rmsse(
        y_true: ArrayLike1D,
        y_pred: ArrayLike1D,
        training: ArrayLike1D,
        m: int = SEASONAL_PERIOD,
    ) -> float:
    """Root Mean Squared Scaled Error; same scaling rules as MASE."""
    scale = _seasonal_naive_scale(training, m, 2)
    if not np.isfinite(scale) or scale <= 0:
        return float("nan")
    return float(np.sqrt(rmse(y_true, y_pred) ** 2 / scale))

def winkler_score(
        y_true: ArrayLike1D,
        lower: ArrayLike1D,
        upper: ArrayLike1D,
        level: float = INTERVAL_LEVEL,
    ) -> float:
    """
    Mean Winkler interval score.

    For a ``level``% interval ``[l, u]`` and ``alpha = 1 - level/100``
    the score of one observation ``y`` is the interval width plus a
    penalty ``2/alpha`` times the distance by which ``y`` falls outside
    the interval. Lower is better.
    """
    y = np.asarray(y_true, dtype=np.float64)
    lo = np.asarray(lower, dtype=np.float64)
    hi = np.asarray(upper, dtype=np.float64)
    alpha = 1.0 - level / 100.0
    score = (hi - lo)
    score = score + np.where(y < lo, (2.0 / alpha) * (lo - y), 0.0)
    score = score + np.where(y > hi, (2.0 / alpha) * (y - hi), 0.0)
    return float(np.mean(score))

def crps_gaussian(
        y_true: ArrayLike1D,
        mean: ArrayLike1D,
        sd: ArrayLike1D,
    ) -> float:
    """
    Mean Continuous Ranked Probability Score of normal forecasts.

    Uses the closed form for ``N(mean, sd**2)``; a zero ``sd``
    degenerates to the absolute error.
    """
    y = np.asarray(y_true, dtype=np.float64)
    mu = np.asarray(mean, dtype=np.float64)
    sigma = np.asarray(sd, dtype=np.float64)
    abs_err = np.abs(y - mu)
    safe = np.where(sigma > 0, sigma, 1.0)
    z = (y - mu) / safe
    crps = safe * (
        z * (2.0 * norm.cdf(z) - 1.0)
        + 2.0 * norm.pdf(z)
        - 1.0 / np.sqrt(np.pi)
    )
    return float(np.mean(np.where(sigma > 0, crps, abs_err)))

def accuracy(
        y_true: ArrayLike1D,
        mean: ArrayLike1D,
        *,
        sd: Optional[ArrayLike1D] = None,
        lower: Optional[ArrayLike1D] = None,
        upper: Optional[ArrayLike1D] = None,
        training: Optional[ArrayLike1D] = None,
        level: float = INTERVAL_LEVEL,
        m: int = SEASONAL_PERIOD,
    ) -> Dict[str, float]:
    """
    Point and distributional accuracy of one forecast.

    Point metrics (``ME``, ``RMSE``, ``MAE``, ``MPE``, ``MAPE``) are
    always computed; ``MASE``/``RMSSE`` need ``training``, ``winkler``
    needs the interval bounds and ``CRPS`` the standard deviation.
    Metrics whose inputs are missing are omitted.
    """
    y = np.asarray(y_true, dtype=np.float64)
    mu = np.asarray(mean, dtype=np.float64)
    if y.shape != mu.shape:
        raise ValueError(
            f"Actual and forecast lengths differ: {y.shape} vs {mu.shape}"
        )
    metrics: Dict[str, float] = {
        "ME": mean_error(y, mu),
        "RMSE": rmse(y, mu),
        "MAE": mae(y, mu),
        "MPE": mpe(y, mu),
        "MAPE": mape(y, mu),
    }
    if training is not None:
        metrics["MASE"] = mase(y, mu, training, m)
        metrics["RMSSE"] = rmsse(y, mu, training, m)
    if lower is not None and upper is not None:
        metrics["winkler"] = winkler_score(y, lower, upper, level)
    if sd is not None:
        metrics["CRPS"] = crps_gaussian(y, mu, sd)
    return metrics
