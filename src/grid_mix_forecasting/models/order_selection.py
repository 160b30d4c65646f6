# stdlib
import itertools
import warnings
from dataclasses import dataclass
from typing import Iterable, Iterator, List, Optional, Tuple, cast
# thirdpartylib
import numpy as np
import pandas as pd
import statsmodels.api as sm # pyright: ignore[reportMissingTypeStubs]
from statsmodels.tsa.statespace.sarimax import ( # pyright: ignore
    SARIMAX,
    SARIMAXResultsWrapper,
)
# projectlib
from grid_mix_forecasting.utils.typing import Criterion
from grid_mix_forecasting.utils.logging import Logger
from grid_mix_forecasting.utils.exceptions import ModelFitError
from grid_mix_forecasting.config.constants import (
    MAX_D,
    MAX_SEASONAL_D,
    SEASONAL_PERIOD,
)
from grid_mix_forecasting.diagnostics.stationarity import (
    ndiffs,
    nsdiffs,
    seasonal_difference,
)

type Order = Tuple[int, int, int]
type SeasonalOrder = Tuple[int, int, int, int]
type Candidate = Tuple[Order, SeasonalOrder, str]


@dataclass(frozen=True)
class OrderSearch:
    """
    Bounds of the automatic ARIMA order search.

    The defaults mirror the usual stepwise-search limits for monthly
    data: non-seasonal AR/MA terms up to 2, seasonal terms up to 1 and
    no more than five ARMA terms in total.
    """
    max_p: int = 2
    max_q: int = 2
    max_P: int = 1
    max_Q: int = 1
    max_order: int = 5
    max_d: int = MAX_D
    max_D: int = MAX_SEASONAL_D
    criterion: Criterion = "aicc"
    maxiter: int = 200


@dataclass(frozen=True)
class SelectedOrder:
    order: Order
    seasonal_order: SeasonalOrder
    trend: str
    score: float

    def as_tuple(self) -> Tuple[int, int, int, int, int, int]:
        """Orders as ``(p, d, q, P, D, Q)``."""
        p, d, q = self.order
        P, D, Q, _ = self.seasonal_order
        return (p, d, q, P, D, Q)

    def label(self) -> str:
        """Conventional ``ARIMA(p,d,q)(P,D,Q)[s]`` notation."""
        p, d, q = self.order
        P, D, Q, s = self.seasonal_order
        drift = " w/ const" if self.trend == "c" else ""
        return f"ARIMA({p},{d},{q})({P},{D},{Q})[{s}]{drift}"


def trend_options(d: int, D: int) -> List[str]:
    """
    Deterministic terms worth trying for the given differencing.

    A constant on a twice-differenced series implies a quadratic trend
    in levels, so it is only offered when ``d + D <= 1``.
    """
    return ["n", "c"] if d + D <= 1 else ["n"]

def ols_residuals(series: pd.Series, exog: pd.DataFrame) -> pd.Series:
    """Residuals of an OLS regression of ``series`` on ``exog``."""
    design = sm.add_constant(exog.astype(np.float64), has_constant="add")
    fit = sm.OLS(series.astype(np.float64), design).fit()
    return cast(pd.Series, fit.resid)

def differencing_orders(
        series: pd.Series,
        *,
        seasonal_period: int = SEASONAL_PERIOD,
        search: OrderSearch = OrderSearch(),
    ) -> Tuple[int, int]:
    """
    Ordinary and seasonal differencing orders ``(d, D)``.

    The seasonal order is chosen first; ``d`` is then estimated on the
    seasonally differenced series.
    """
    D = (
        nsdiffs(series, period=seasonal_period, max_D=search.max_D)
        if seasonal_period > 1
        else 0
    )
    base = seasonal_difference(series, seasonal_period) if D else series
    d = ndiffs(base, max_d=search.max_d)
    return d, D

def candidate_orders(
        d: int,
        D: int,
        *,
        seasonal_period: int = SEASONAL_PERIOD,
        search: OrderSearch = OrderSearch(),
    ) -> Iterator[Candidate]:
    """Enumerate the ``(order, seasonal_order, trend)`` grid."""
    seasonal = seasonal_period > 1
    grid = itertools.product(
        range(search.max_p + 1),
        range(search.max_q + 1),
        range(search.max_P + 1 if seasonal else 1),
        range(search.max_Q + 1 if seasonal else 1),
    )
    for p, q, P, Q in grid:
        if p + q + P + Q > search.max_order:
            continue
        for trend in trend_options(d, D):
            yield (
                (p, d, q),
                (P, D, Q, seasonal_period if seasonal else 0),
                trend,
            )

def fit_sarimax(
        series: pd.Series,
        order: Order,
        seasonal_order: SeasonalOrder,
        trend: str,
        *,
        exog: Optional[pd.DataFrame] = None,
        maxiter: int = 200,
    ) -> SARIMAXResultsWrapper:
    """
    Fit a single SARIMAX specification by maximum likelihood.

    Raises
    ------
    ModelFitError
        If estimation raises or the optimizer reports no convergence.
    """
    try:
        with warnings.catch_warnings():
            # Convergence is checked explicitly below
            warnings.simplefilter("ignore")
            model = SARIMAX(
                series,
                exog=exog,
                order=order,
                seasonal_order=seasonal_order,
                trend=trend,
            )
            result = cast(
                SARIMAXResultsWrapper,
                model.fit( # pyright: ignore[reportUnknownMemberType]
                    disp=False,
                    maxiter=maxiter,
                ),
            )
    except (ValueError, np.linalg.LinAlgError) as exc:
        raise ModelFitError(
            f"SARIMAX{order}x{seasonal_order} failed to fit: {exc}"
        ) from exc
    retvals = getattr(result, "mle_retvals", None) or {}
    if not retvals.get("converged", True):
        raise ModelFitError(
            f"SARIMAX{order}x{seasonal_order} did not converge "
            f"within {maxiter} iterations."
        )
    return result

def best_fit(
        series: pd.Series,
        candidates: Iterable[Candidate],
        *,
        exog: Optional[pd.DataFrame] = None,
        criterion: Criterion = "aicc",
        maxiter: int = 200,
        logger: Optional[Logger] = None,
    ) -> Tuple[SelectedOrder, SARIMAXResultsWrapper]:
    """
    Fit every candidate and keep the one with the lowest criterion.

    Candidates that fail or do not converge are skipped; only when all
    of them fail is an error raised.

    Raises
    ------
    ModelFitError
        If no candidate could be fitted.
    """
    log = logger if logger is not None else Logger(verbose=0)
    best: Optional[Tuple[SelectedOrder, SARIMAXResultsWrapper]] = None
    tried = 0
    for order, seasonal_order, trend in candidates:
        tried += 1
        try:
            result = fit_sarimax(
                series,
                order,
                seasonal_order,
                trend,
                exog=exog,
                maxiter=maxiter,
            )
        except ModelFitError as exc:
            log(f"  skipped: {exc}", 2)
            continue
        score = float(getattr(result, criterion))
        if not np.isfinite(score):
            continue
        selected = SelectedOrder(order, seasonal_order, trend, score)
        tag = ""
        if best is None or score < best[0].score:
            best = (selected, result)
            tag = " << best"
        log(f"  {selected.label()}  {criterion}={score:.2f}{tag}", 2)
    if best is None:
        raise ModelFitError(
            f"None of the {tried} candidate ARIMA specifications "
            "could be fitted."
        )
    return best

def search_orders(
        series: pd.Series,
        *,
        seasonal_period: int = SEASONAL_PERIOD,
        exog: Optional[pd.DataFrame] = None,
        search: OrderSearch = OrderSearch(),
        logger: Optional[Logger] = None,
    ) -> Tuple[SelectedOrder, SARIMAXResultsWrapper]:
    """
    Automatic order selection returning the winning fit as well.

    Differencing orders come from unit-root heuristics applied to the
    series (or, with ``exog``, to the residuals of the OLS regression
    on ``exog``). The remaining orders and the constant are chosen by
    minimizing ``search.criterion`` over the candidate grid.
    """
    base = series if exog is None else ols_residuals(series, exog)
    d, D = differencing_orders(
        base, seasonal_period=seasonal_period, search=search
    )
    if logger is not None:
        logger(f"  differencing: d={d}, D={D}", 2)
    candidates = candidate_orders(
        d, D, seasonal_period=seasonal_period, search=search
    )
    return best_fit(
        series,
        candidates,
        exog=exog,
        criterion=search.criterion,
        maxiter=search.maxiter,
        logger=logger,
    )

def select_order(
        series: pd.Series,
        seasonal_period: int = SEASONAL_PERIOD,
        *,
        exog: Optional[pd.DataFrame] = None,
        search: OrderSearch = OrderSearch(),
        logger: Optional[Logger] = None,
    ) -> SelectedOrder:
    """
    Choose ``(p, d, q)(P, D, Q)`` orders for ``series``.

    Parameters
    ----------
    series : pd.Series
        Regularly indexed target series.
    seasonal_period : int, default 12
        Season length; ``1`` disables the seasonal part.
    exog : pd.DataFrame, optional
        Regressors for a regression with ARIMA errors.
    search : OrderSearch
        Grid bounds and information criterion.
    logger : Logger, optional
        Receives per-candidate scores at verbosity 2.

    Returns
    -------
    SelectedOrder
        Use ``as_tuple()`` for ``(p, d, q, P, D, Q)``.
    """
    selected, _ = search_orders(
        series,
        seasonal_period=seasonal_period,
        exog=exog,
        search=search,
        logger=logger,
    )
    return selected
