# stdlib
from dataclasses import dataclass, field
from typing import Dict, List, Optional
# thirdpartylib
import pandas as pd
# projectlib
from grid_mix_forecasting.utils.logging import Logger
from grid_mix_forecasting.utils.exceptions import GridForecastingError
from grid_mix_forecasting.config.constants import (
    INTERVAL_LEVEL,
    SEASONAL_PERIOD,
)
from grid_mix_forecasting.models.forecasting import (
    BankFit,
    Forecast,
    ModelBank,
)
from grid_mix_forecasting.evaluation.metrics import accuracy


@dataclass
class Evaluation:
    """
    Holdout forecasts and their accuracy, one row per model in
    ``accuracy``.
    """
    forecasts: Dict[str, Forecast] = field(default_factory=dict)
    accuracy: pd.DataFrame = field(default_factory=pd.DataFrame)
    failures: Dict[str, str] = field(default_factory=dict)


def evaluate(
        bank: ModelBank,
        bank_fit: BankFit,
        train: pd.DataFrame,
        test: pd.DataFrame,
        target: str,
        *,
        level: int = INTERVAL_LEVEL,
        m: int = SEASONAL_PERIOD,
        logger: Optional[Logger] = None,
    ) -> Evaluation:
    """
    Forecast the holdout window with every fitted model and score it.

    Covariate models receive the realized test rows as their future
    covariates. Models that failed to fit, or fail to forecast, are
    carried in ``failures`` and left out of the accuracy table.

    Parameters
    ----------
    bank : ModelBank
        Strategies that produced ``bank_fit``.
    bank_fit : BankFit
        Models fitted on ``train``.
    train, test : pd.DataFrame
        Chronological split of the model frame.
    target : str
        Column being forecast.
    level : int, default 95
        Prediction interval coverage in percent.
    m : int, default 12
        Seasonal period of the naive scaling in MASE/RMSSE.
    logger : Logger, optional
        Progress at verbosity 1.

    Returns
    -------
    Evaluation
    """
    log = logger if logger is not None else Logger(verbose=0)
    horizon = len(test)
    actual = test[target].to_numpy()
    training = train[target].to_numpy()
    outcome = Evaluation(failures=dict(bank_fit.failures))
    rows: List[Dict[str, float]] = []
    names: List[str] = []
    for name, fitted in bank_fit.fitted.items():
        strategy = bank[name]
        covariates = test if strategy.uses_covariates else None
        try:
            forecast = strategy.forecast(fitted, horizon, covariates, level)
        except (GridForecastingError, ValueError) as exc:
            outcome.failures[name] = str(exc)
            log.warn(f"{name} holdout forecast failed: {exc}")
            continue
        outcome.forecasts[name] = forecast
        frame = forecast.frame
        scores = accuracy(
            actual,
            frame["mean"].to_numpy(),
            sd=frame["sd"].to_numpy(),
            lower=frame["lower"].to_numpy(),
            upper=frame["upper"].to_numpy(),
            training=training,
            level=level,
            m=m,
        )
        log(
            f"{name} ({fitted.spec}): RMSE={scores['RMSE']:.2f}, "
            f"MAPE={scores['MAPE']:.2f}%",
            1,
        )
        rows.append(scores)
        names.append(name)
    outcome.accuracy = pd.DataFrame(
        rows, index=pd.Index(names, name="model")
    )
    return outcome
