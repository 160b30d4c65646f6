# stdlib
import itertools
import warnings
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import (
    Any,
    Callable,
    Dict,
    Iterator,
    List,
    Optional,
    Sequence,
    Tuple,
    cast,
)
# thirdpartylib
import numpy as np
import pandas as pd
from scipy.stats import norm # pyright: ignore[reportMissingTypeStubs]
from statsmodels.tsa.exponential_smoothing.ets import ( # pyright: ignore
    ETSModel,
    ETSResults,
)
# projectlib
from grid_mix_forecasting.utils.typing import Criterion, ModelName
from grid_mix_forecasting.utils.logging import Logger
from grid_mix_forecasting.utils.exceptions import (
    GridForecastingError,
    MissingCovariatesError,
    ModelFitError,
)
from grid_mix_forecasting.config.constants import (
    INTERVAL_LEVEL,
    SEASONAL_PERIOD,
)
from grid_mix_forecasting.data.schemas import PREDICTORS
from grid_mix_forecasting.models.order_selection import (
    OrderSearch,
    SeasonalOrder,
    Order,
    SelectedOrder,
    best_fit,
    search_orders,
    trend_options,
)

def interval_z(level: float) -> float:
    """Two-sided standard normal quantile for a ``level``% interval."""
    return float(norm.ppf(0.5 + level / 200.0))

def future_index(
        last_period: pd.Timestamp,
        horizon: int,
        freq: str = "MS",
    ) -> pd.DatetimeIndex:
    """The ``horizon`` periods following ``last_period``."""
    periods = pd.date_range(
        last_period, periods=horizon + 1, freq=freq, name="period"
    )
    return periods[1:]


@dataclass(frozen=True)
class Forecast:
    """
    Point and interval forecasts of one model.

    ``frame`` is indexed by period and holds ``mean``, ``sd``,
    ``lower`` and ``upper``. The predictive distribution is summarized
    as normal with the given mean and standard deviation; ``lower`` and
    ``upper`` are the model's own ``level``% interval (which for
    multiplicative ETS models comes from simulation and need not be
    symmetric).
    """
    model: str
    frame: pd.DataFrame
    level: int = INTERVAL_LEVEL

    @property
    def mean(self) -> pd.Series:
        return self.frame["mean"]

    def to_table(self) -> pd.DataFrame:
        """
        Long table of ``(period, model, mean, variance, lower, upper,
        distribution)`` rows ordered by period.
        """
        table = pd.DataFrame({
            "period": self.frame.index,
            "model": self.model,
            "mean": self.frame["mean"].to_numpy(),
            "variance": (self.frame["sd"] ** 2).to_numpy(),
            "lower": self.frame["lower"].to_numpy(),
            "upper": self.frame["upper"].to_numpy(),
        })
        table["distribution"] = [
            f"N({m:.4g}, {v:.4g})"
            for m, v in zip(table["mean"], table["variance"])
        ]
        return table


@dataclass
class FittedModel:
    """
    A fitted forecasting model together with what is needed to project
    it forward.
    """
    name: str
    spec: str
    result: Any
    last_period: pd.Timestamp
    nobs: int
    freq: str = "MS"
    covariates: Tuple[str, ...] = ()
    order: Optional[SelectedOrder] = None

    @property
    def aicc(self) -> float:
        return float(self.result.aicc)

    @property
    def residuals(self) -> pd.Series:
        return pd.Series(np.asarray(self.result.resid)).dropna()

    @property
    def n_params(self) -> int:
        return int(len(np.asarray(self.result.params)))


class ForecastStrategy(ABC):
    """
    Interface shared by the forecasting models.

    A strategy is stateless configuration: ``fit`` returns a new
    :class:`FittedModel` and ``forecast`` projects one forward, so the
    same strategy can be fit on the training window and later refit on
    the full series.
    """

    name: str = "model"
    # Whether ``fit``/``forecast`` need exogenous covariates
    uses_covariates: bool = False

    def __init__(self, logger: Optional[Logger] = None) -> None:
        self.log = logger if logger is not None else Logger(verbose=0)

    @abstractmethod
    def fit(
            self,
            series: pd.Series,
            covariates: Optional[pd.DataFrame] = None,
        ) -> FittedModel: ...

    @abstractmethod
    def forecast(
            self,
            fitted: FittedModel,
            horizon: int,
            covariates: Optional[pd.DataFrame] = None,
            level: int = INTERVAL_LEVEL,
        ) -> Forecast: ...

    def _check_series(self, series: pd.Series) -> pd.Series:
        if series.isna().any():
            raise ModelFitError(
                f"{self.name}: series contains missing values."
            )
        if not isinstance(series.index, pd.DatetimeIndex):
            raise ModelFitError(
                f"{self.name}: series must have a DatetimeIndex."
            )
        return series.astype(np.float64)


class ETSStrategy(ForecastStrategy):
    """
    Exponential smoothing state-space model with automatic form
    selection.

    Every admissible combination of error (additive, multiplicative),
    trend (none, additive, additive damped) and season (none, additive,
    multiplicative) is estimated and the one with the lowest
    information criterion kept. Multiplicative components require
    strictly positive data, and additive errors are not combined with
    multiplicative seasonality since that form is numerically unstable.
    """

    name = "ets"

    def __init__(
            self,
            seasonal_periods: int = SEASONAL_PERIOD,
            *,
            criterion: Criterion = "aicc",
            maxiter: int = 1000,
            logger: Optional[Logger] = None,
        ) -> None:
        super().__init__(logger)
        self.seasonal_periods = seasonal_periods
        self.criterion = criterion
        self.maxiter = maxiter

    def candidates(
            self,
            series: pd.Series,
        ) -> Iterator[Tuple[str, Optional[str], bool, Optional[str]]]:
        """Yield ``(error, trend, damped, seasonal)`` combinations."""
        positive = bool((series > 0).all())
        seasonal_ok = len(series) >= 2 * self.seasonal_periods + 2
        errors = ["add", "mul"] if positive else ["add"]
        trends: List[Tuple[Optional[str], bool]] = [
            (None, False), ("add", False), ("add", True)
        ]
        seasons: List[Optional[str]] = [None]
        if seasonal_ok:
            seasons += ["add", "mul"] if positive else ["add"]
        for error, (trend, damped), seasonal in itertools.product(
            errors, trends, seasons
        ):
            if error == "add" and seasonal == "mul":
                continue
            yield error, trend, damped, seasonal

    @staticmethod
    def label(
            error: str,
            trend: Optional[str],
            damped: bool,
            seasonal: Optional[str],
        ) -> str:
        """Conventional ``ETS(E,T,S)`` notation, e.g. ``ETS(A,Ad,M)``."""
        code = {"add": "A", "mul": "M", None: "N"}
        t = code[trend] + ("d" if damped else "")
        return f"ETS({code[error]},{t},{code[seasonal]})"

    def _fit_one(
            self,
            series: pd.Series,
            error: str,
            trend: Optional[str],
            damped: bool,
            seasonal: Optional[str],
        ) -> ETSResults:
        with warnings.catch_warnings():
            warnings.simplefilter("ignore")
            model = ETSModel(
                series,
                error=error,
                trend=trend,
                damped_trend=damped,
                seasonal=seasonal,
                seasonal_periods=(
                    self.seasonal_periods if seasonal else None
                ),
            )
            result = cast(
                ETSResults,
                model.fit( # pyright: ignore[reportUnknownMemberType]
                    disp=False,
                    maxiter=self.maxiter,
                ),
            )
        retvals = getattr(result, "mle_retvals", None) or {}
        if not retvals.get("converged", True):
            raise ModelFitError(
                f"{self.label(error, trend, damped, seasonal)} "
                "did not converge."
            )
        return result

    def fit(
            self,
            series: pd.Series,
            covariates: Optional[pd.DataFrame] = None,
        ) -> FittedModel:
        """
        Fit every candidate form and return the best by criterion.

        Raises
        ------
        ValueError
            If covariates are passed; ETS takes no exogenous predictors.
        ModelFitError
            If no candidate form could be estimated.
        """
        if covariates is not None:
            raise ValueError("ETS does not accept exogenous covariates.")
        series = self._check_series(series)
        best: Optional[Tuple[float, str, ETSResults]] = None
        for form in self.candidates(series):
            spec = self.label(*form)
            try:
                result = self._fit_one(series, *form)
            except (ModelFitError, ValueError, np.linalg.LinAlgError) as e:
                self.log(f"  {spec} skipped: {e}", 2)
                continue
            score = float(getattr(result, self.criterion))
            if not np.isfinite(score):
                continue
            self.log(f"  {spec}  {self.criterion}={score:.2f}", 2)
            if best is None or score < best[0]:
                best = (score, spec, result)
        if best is None:
            raise ModelFitError("No ETS form could be fitted.")
        score, spec, result = best
        self.log(f"{self.name}: selected {spec} ({self.criterion}="
                 f"{score:.2f})", 1)
        return FittedModel(
            name=self.name,
            spec=spec,
            result=result,
            last_period=series.index[-1],
            nobs=len(series),
            freq=series.index.freqstr or "MS",
        )

    def forecast(
            self,
            fitted: FittedModel,
            horizon: int,
            covariates: Optional[pd.DataFrame] = None,
            level: int = INTERVAL_LEVEL,
        ) -> Forecast:
        result = cast(ETSResults, fitted.result)
        prediction = result.get_prediction(
            start=fitted.nobs,
            end=fitted.nobs + horizon - 1,
        )
        summary = prediction.summary_frame(alpha=1 - level / 100)
        lower = summary["pi_lower"].to_numpy()
        upper = summary["pi_upper"].to_numpy()
        frame = pd.DataFrame(
            {
                "mean": summary["mean"].to_numpy(),
                "sd": (upper - lower) / (2 * interval_z(level)),
                "lower": lower,
                "upper": upper,
            },
            index=future_index(fitted.last_period, horizon, fitted.freq),
        )
        return Forecast(model=self.name, frame=frame, level=level)


class ARIMAStrategy(ForecastStrategy):
    """Shared forecasting for SARIMAX-backed strategies."""

    def __init__(
            self,
            seasonal_period: int = SEASONAL_PERIOD,
            *,
            search: OrderSearch = OrderSearch(),
            logger: Optional[Logger] = None,
        ) -> None:
        super().__init__(logger)
        self.seasonal_period = seasonal_period
        self.search = search

    def _future_covariates(
            self,
            fitted: FittedModel,
            horizon: int,
            covariates: Optional[pd.DataFrame],
        ) -> Optional[pd.DataFrame]:
        if not fitted.covariates:
            return None
        index = future_index(fitted.last_period, horizon, fitted.freq)
        if covariates is None:
            raise MissingCovariatesError(
                f"{fitted.name} needs future values of "
                f"{', '.join(fitted.covariates)} for "
                f"{index[0]:%Y-%m} to {index[-1]:%Y-%m}; none supplied."
            )
        missing_cols = [
            c for c in fitted.covariates if c not in covariates.columns
        ]
        if missing_cols:
            raise MissingCovariatesError(
                f"Future covariates lack columns: {missing_cols}"
            )
        future = covariates.reindex(index)[list(fitted.covariates)]
        if future.isna().any().any():
            n = int(future.isna().any(axis=1).sum())
            raise MissingCovariatesError(
                f"Future covariates are missing for {n} of the "
                f"{horizon} forecast periods."
            )
        return future.astype(np.float64)

    def forecast(
            self,
            fitted: FittedModel,
            horizon: int,
            covariates: Optional[pd.DataFrame] = None,
            level: int = INTERVAL_LEVEL,
        ) -> Forecast:
        exog = self._future_covariates(fitted, horizon, covariates)
        prediction = fitted.result.get_forecast(
            steps=horizon,
            exog=None if exog is None else exog.to_numpy(),
        )
        summary = prediction.summary_frame(alpha=1 - level / 100)
        frame = pd.DataFrame(
            {
                "mean": summary["mean"].to_numpy(),
                "sd": summary["mean_se"].to_numpy(),
                "lower": summary["mean_ci_lower"].to_numpy(),
                "upper": summary["mean_ci_upper"].to_numpy(),
            },
            index=future_index(fitted.last_period, horizon, fitted.freq),
        )
        return Forecast(model=self.name, frame=frame, level=level)

    def _fitted(
            self,
            series: pd.Series,
            selected: SelectedOrder,
            result: Any,
            covariates: Tuple[str, ...] = (),
        ) -> FittedModel:
        self.log(
            f"{self.name}: selected {selected.label()} "
            f"({self.search.criterion}={selected.score:.2f})",
            1,
        )
        return FittedModel(
            name=self.name,
            spec=selected.label(),
            result=result,
            last_period=series.index[-1],
            nobs=len(series),
            freq=series.index.freqstr or "MS",
            covariates=covariates,
            order=selected,
        )


class SARIMAStrategy(ARIMAStrategy):
    """
    Seasonal ARIMA on the target alone.

    Orders are chosen automatically unless pinned through ``order`` and
    ``seasonal_order``. With pinned orders and no explicit ``trend`` the
    constant is still chosen by the information criterion.
    """

    name = "sarima"

    def __init__(
            self,
            seasonal_period: int = SEASONAL_PERIOD,
            *,
            order: Optional[Order] = None,
            seasonal_order: Optional[SeasonalOrder] = None,
            trend: Optional[str] = None,
            search: OrderSearch = OrderSearch(),
            logger: Optional[Logger] = None,
        ) -> None:
        super().__init__(seasonal_period, search=search, logger=logger)
        if (order is None) != (seasonal_order is None):
            raise ValueError(
                "Pin both `order` and `seasonal_order`, or neither."
            )
        self.order = order
        self.seasonal_order = seasonal_order
        self.trend = trend

    def fit(
            self,
            series: pd.Series,
            covariates: Optional[pd.DataFrame] = None,
        ) -> FittedModel:
        if covariates is not None:
            raise ValueError("SARIMA does not accept exogenous covariates.")
        series = self._check_series(series)
        if self.order is not None and self.seasonal_order is not None:
            d, D = self.order[1], self.seasonal_order[1]
            trends = (
                [self.trend] if self.trend is not None
                else trend_options(d, D)
            )
            selected, result = best_fit(
                series,
                [(self.order, self.seasonal_order, t) for t in trends],
                criterion=self.search.criterion,
                maxiter=self.search.maxiter,
                logger=self.log,
            )
        else:
            selected, result = search_orders(
                series,
                seasonal_period=self.seasonal_period,
                search=self.search,
                logger=self.log,
            )
        return self._fitted(series, selected, result)


class DynamicRegressionStrategy(ARIMAStrategy):
    """
    Linear regression on exogenous predictors with ARIMA errors.

    Forecasting needs the predictors' values over the whole horizon.
    Inside the holdout window those are the realized test rows; beyond
    the observed data they have to be supplied by the caller, otherwise
    :class:`MissingCovariatesError` is raised rather than reusing stale
    values.
    """

    name = "dynamic_regression"
    uses_covariates = True

    def __init__(
            self,
            predictors: Sequence[str] = PREDICTORS,
            seasonal_period: int = SEASONAL_PERIOD,
            *,
            search: OrderSearch = OrderSearch(),
            logger: Optional[Logger] = None,
        ) -> None:
        super().__init__(seasonal_period, search=search, logger=logger)
        self.predictors = tuple(str(p) for p in predictors)

    def design(self, covariates: Optional[pd.DataFrame]) -> pd.DataFrame:
        """
        Select the predictor columns and reject unusable designs.

        Raises
        ------
        MissingCovariatesError
            If covariates or some predictor columns are absent.
        ModelFitError
            If the design (with intercept) is rank deficient, e.g. a
            predictor that is constant over the fitting window.
        """
        if covariates is None:
            raise MissingCovariatesError(
                f"{self.name} requires covariates: "
                f"{', '.join(self.predictors)}"
            )
        missing = [p for p in self.predictors if p not in covariates]
        if missing:
            raise MissingCovariatesError(
                f"Covariates lack columns: {missing}"
            )
        exog = covariates[list(self.predictors)].astype(np.float64)
        if exog.isna().any().any():
            raise ModelFitError(f"{self.name}: covariates contain NaN.")
        design = np.column_stack([np.ones(len(exog)), exog.to_numpy()])
        rank = np.linalg.matrix_rank(design)
        if rank < design.shape[1]:
            raise ModelFitError(
                f"{self.name}: design matrix is rank deficient "
                f"(rank {rank} < {design.shape[1]} columns)."
            )
        return exog

    def fit(
            self,
            series: pd.Series,
            covariates: Optional[pd.DataFrame] = None,
        ) -> FittedModel:
        series = self._check_series(series)
        exog = self.design(covariates)
        if not exog.index.equals(series.index):
            exog = exog.reindex(series.index)
            if exog.isna().any().any():
                raise ModelFitError(
                    f"{self.name}: covariates do not cover the series."
                )
        selected, result = search_orders(
            series,
            seasonal_period=self.seasonal_period,
            exog=exog,
            search=self.search,
            logger=self.log,
        )
        return self._fitted(series, selected, result, self.predictors)


# Registry of available strategies keyed by name
STRATEGIES: Dict[ModelName, Callable[..., ForecastStrategy]] = {
    "ets": ETSStrategy,
    "dynamic_regression": DynamicRegressionStrategy,
    "sarima": SARIMAStrategy,
}

def create_strategy(name: ModelName, **kwargs: Any) -> ForecastStrategy:
    """Instantiate a registered strategy by name."""
    if name not in STRATEGIES:
        raise ValueError(
            f"Unknown model '{name}'. "
            f"Choose from {', '.join(STRATEGIES)}."
        )
    return STRATEGIES[name](**kwargs)


@dataclass
class BankFit:
    """Outcome of fitting every strategy of a :class:`ModelBank`."""
    fitted: Dict[str, FittedModel] = field(default_factory=dict)
    failures: Dict[str, str] = field(default_factory=dict)


class ModelBank(object):
    """
    A set of forecasting strategies fitted independently on the same
    series. A failure in one model is recorded and does not stop the
    others.
    """

    def __init__(
            self,
            strategies: Sequence[ForecastStrategy],
            logger: Optional[Logger] = None,
        ) -> None:
        names = [s.name for s in strategies]
        if len(set(names)) != len(names):
            raise ValueError(f"Duplicate strategy names: {names}")
        self.strategies: Dict[str, ForecastStrategy] = {
            s.name: s for s in strategies
        }
        self.log = logger if logger is not None else Logger(verbose=0)

    def __getitem__(self, name: str) -> ForecastStrategy:
        return self.strategies[name]

    def __iter__(self) -> Iterator[ForecastStrategy]:
        return iter(self.strategies.values())

    def fit_all(
            self,
            series: pd.Series,
            covariates: Optional[pd.DataFrame] = None,
        ) -> BankFit:
        """
        Fit each strategy on ``series``; covariates go only to the
        strategies that use them.
        """
        outcome = BankFit()
        for strategy in self:
            self.log(f"Fitting {strategy.name}...", 1)
            try:
                outcome.fitted[strategy.name] = strategy.fit(
                    series,
                    covariates if strategy.uses_covariates else None,
                )
            except (GridForecastingError, ValueError) as exc:
                outcome.failures[strategy.name] = str(exc)
                self.log.warn(f"{strategy.name} failed: {exc}")
        return outcome
