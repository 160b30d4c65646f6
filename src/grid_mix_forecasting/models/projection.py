# stdlib
from typing import Iterable, Optional, Union
# thirdpartylib
import pandas as pd
# projectlib
from grid_mix_forecasting.utils.logging import Logger
from grid_mix_forecasting.config.constants import (
    FORECAST_END,
    INTERVAL_LEVEL,
)
from grid_mix_forecasting.models.forecasting import (
    FittedModel,
    Forecast,
    ForecastStrategy,
)

type PeriodLike = Union[str, pd.Timestamp, pd.Period]

def as_month(period: PeriodLike) -> pd.Period:
    """Normalize a month given as ``"2030-12"``, timestamp or period."""
    return pd.Period(period, freq="M")

def horizon_until(last_period: PeriodLike, end: PeriodLike) -> int:
    """
    Number of monthly steps from the month after ``last_period``
    through ``end`` inclusive.

    Raises
    ------
    ValueError
        If ``end`` is not after ``last_period``.
    """
    last, stop = as_month(last_period), as_month(end)
    steps = (stop.year - last.year) * 12 + (stop.month - last.month)
    if steps <= 0:
        raise ValueError(
            f"Forecast end {stop} must be after the last observed "
            f"period {last}."
        )
    return steps

def project(
        strategy: ForecastStrategy,
        frame: pd.DataFrame,
        target: str,
        *,
        end: PeriodLike = FORECAST_END,
        covariates: Optional[pd.DataFrame] = None,
        level: int = INTERVAL_LEVEL,
        logger: Optional[Logger] = None,
    ) -> Forecast:
    """
    Refit ``strategy`` on the whole of ``frame`` and forecast through
    ``end``.

    The refit uses every observed period (training and holdout
    together). There is no retry: a refit failure propagates to the
    caller.

    Parameters
    ----------
    strategy : ForecastStrategy
        Model to refit.
    frame : pd.DataFrame
        Full model frame indexed by month.
    target : str
        Column to forecast.
    end : str or Timestamp, default "2030-12"
        Last month of the projection.
    covariates : pd.DataFrame, optional
        Future covariate values indexed by month. Required for
        strategies that use covariates; historical columns for the refit
        are taken from ``frame``.
    level : int, default 95
        Prediction interval coverage in percent.
    logger : Logger, optional
        Progress messages at verbosity 1.

    Returns
    -------
    Forecast

    Raises
    ------
    ModelFitError
        If the refit fails.
    MissingCovariatesError
        If the strategy needs covariates that were not supplied.
    """
    # Fail before the refit when the end is not in the future
    horizon_until(frame.index[-1], end)
    fitted = refit(strategy, frame, target, logger=logger)
    return project_fitted(
        strategy, fitted, end=end, covariates=covariates, level=level
    )

def refit(
        strategy: ForecastStrategy,
        frame: pd.DataFrame,
        target: str,
        *,
        logger: Optional[Logger] = None,
    ) -> FittedModel:
    """Fit ``strategy`` on every period of ``frame``."""
    log = logger if logger is not None else Logger(verbose=0)
    history = frame if strategy.uses_covariates else None
    log(f"Refitting {strategy.name} on {len(frame)} periods...", 1)
    return strategy.fit(frame[target], history)

def project_fitted(
        strategy: ForecastStrategy,
        fitted: FittedModel,
        *,
        end: PeriodLike = FORECAST_END,
        covariates: Optional[pd.DataFrame] = None,
        level: int = INTERVAL_LEVEL,
    ) -> Forecast:
    """Forecast an already refit model from its last period to ``end``."""
    horizon = horizon_until(fitted.last_period, end)
    return strategy.forecast(fitted, horizon, covariates, level)

def forecast_table(forecasts: Iterable[Forecast]) -> pd.DataFrame:
    """Concatenate forecasts into one long table sorted by model/period."""
    tables = [f.to_table() for f in forecasts]
    if not tables:
        return pd.DataFrame(
            columns=[
                "period", "model", "mean", "variance",
                "lower", "upper", "distribution",
            ]
        )
    return (
        pd.concat(tables, ignore_index=True)
        .sort_values(["model", "period"], kind="stable")
        .reset_index(drop=True)
    )

def select_period(
        table: pd.DataFrame,
        period: PeriodLike,
        *,
        model: Optional[str] = None,
    ) -> pd.DataFrame:
    """
    Rows of a forecast table for exactly one month, e.g. ``"2030-12"``.

    Raises
    ------
    KeyError
        If no row matches.
    """
    month = as_month(period)
    mask = table["period"].dt.to_period("M") == month
    if model is not None:
        mask &= table["model"] == model
    rows = table.loc[mask]
    if rows.empty:
        who = f" for model '{model}'" if model else ""
        raise KeyError(f"No forecast for {month}{who}.")
    return rows.reset_index(drop=True)
