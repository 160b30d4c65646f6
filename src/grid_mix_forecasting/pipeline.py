# stdlib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Sequence
# thirdpartylib
import numpy as np
import polars as pl
import pandas as pd
# projectlib
from grid_mix_forecasting.utils.typing import Address, Verbosity
from grid_mix_forecasting.utils.paths import validate_address
from grid_mix_forecasting.utils.logging import Logger
from grid_mix_forecasting.utils.exceptions import MissingCovariatesError
from grid_mix_forecasting.config.env import (
    DATA_ROOT,
    GRID_DATA_FILE,
    OUTPUT_ROOT,
)
from grid_mix_forecasting.config.constants import (
    FINAL_SARIMA_ORDER,
    FINAL_SARIMA_SEASONAL_ORDER,
    FORECAST_END,
    INTERVAL_LEVEL,
    OBSERVATION_INTERVAL,
    POWER_UNIT,
    SEASONAL_PERIOD,
    TEST_START_YEAR,
)
from grid_mix_forecasting.data.schemas import (
    COLLINEAR,
    PREDICTORS,
    TARGET,
    Column,
)
from grid_mix_forecasting.data.loaders import (
    check_timestamps,
    load_grid_data,
    write_snapshot,
)
from grid_mix_forecasting.preprocessing.reduce import reduce_sources
from grid_mix_forecasting.preprocessing.aggregate import (
    aggregate_daily,
    aggregate_monthly,
    missing_report,
)
from grid_mix_forecasting.preprocessing.model_frame import (
    build_model_frame,
    to_monthly_pandas,
    train_test_split,
)
from grid_mix_forecasting.diagnostics.stationarity import (
    StationarityResult,
    kpss_test,
    ndiffs,
    nsdiffs,
)
from grid_mix_forecasting.diagnostics.decomposition import (
    LjungBoxResult,
    decompose,
    feature_strength,
    ljung_box,
)
from grid_mix_forecasting.diagnostics.collinearity import (
    CollinearityReport,
    collinearity_check,
)
from grid_mix_forecasting.models.order_selection import OrderSearch
from grid_mix_forecasting.models.forecasting import (
    BankFit,
    DynamicRegressionStrategy,
    ETSStrategy,
    FittedModel,
    Forecast,
    ForecastStrategy,
    ModelBank,
    SARIMAStrategy,
)
from grid_mix_forecasting.models.projection import (
    forecast_table,
    project_fitted,
    refit,
    select_period,
)
from grid_mix_forecasting.models.io import save_model
from grid_mix_forecasting.evaluation.backtest import Evaluation, evaluate
from grid_mix_forecasting.evaluation.selection import (
    ModelSelection,
    select_model,
)
from grid_mix_forecasting.visualization.timeseries import (
    plot_decomposition,
    plot_forecasts,
    plot_series_comparison,
    save_figure,
    use_dark_theme,
)


@dataclass
class Diagnostics:
    """Pre-modelling checks on the training window. Nothing here gates."""
    stationarity: Optional[StationarityResult] = None
    d: Optional[int] = None
    D: Optional[int] = None
    strength: Dict[str, float] = field(default_factory=dict)
    collinearity: Optional[CollinearityReport] = None
    residuals: Dict[str, LjungBoxResult] = field(default_factory=dict)


@dataclass
class PipelineResult:
    daily: pl.DataFrame
    monthly: pl.DataFrame
    frame: pd.DataFrame
    diagnostics: Diagnostics
    evaluation: Evaluation
    selection: Optional[ModelSelection]
    forecasts: pd.DataFrame
    skipped: Dict[str, str] = field(default_factory=dict)
    missing: Dict[str, Dict[str, int]] = field(default_factory=dict)
    outputs: Dict[str, Path] = field(default_factory=dict)


def build_bank(
        predictors: Sequence[str] = PREDICTORS,
        *,
        search: OrderSearch = OrderSearch(),
        logger: Optional[Logger] = None,
    ) -> ModelBank:
    """The three candidate models, orders chosen by automatic search."""
    return ModelBank(
        [
            ETSStrategy(SEASONAL_PERIOD, criterion=search.criterion,
                        logger=logger),
            DynamicRegressionStrategy(predictors, SEASONAL_PERIOD,
                                      search=search, logger=logger),
            SARIMAStrategy(SEASONAL_PERIOD, search=search, logger=logger),
        ],
        logger=logger,
    )

def final_strategy(
        strategy: ForecastStrategy,
        *,
        search: OrderSearch = OrderSearch(),
        logger: Optional[Logger] = None,
    ) -> ForecastStrategy:
    """
    Strategy used for the full-series refit. SARIMA is pinned to the
    orders settled on during analysis; the others are reused as is.
    """
    if isinstance(strategy, SARIMAStrategy):
        return SARIMAStrategy(
            strategy.seasonal_period,
            order=FINAL_SARIMA_ORDER,
            seasonal_order=FINAL_SARIMA_SEASONAL_ORDER,
            search=search,
            logger=logger,
        )
    return strategy

def run_diagnostics(
        train: pd.DataFrame,
        monthly: pl.DataFrame,
        target: str,
        predictors: Sequence[str],
        *,
        logger: Logger,
    ) -> Diagnostics:
    """
    Stationarity, seasonality and collinearity of the training window.

    Failures are logged as warnings and leave the matching field
    unset.
    """
    report = Diagnostics()
    series = train[target]
    try:
        report.stationarity = kpss_test(series)
        report.D = nsdiffs(series)
        report.d = ndiffs(series)
        report.strength = feature_strength(decompose(series))
    except (ValueError, np.linalg.LinAlgError) as exc:
        logger.warn(f"Stationarity diagnostics failed: {exc}")
    else:
        logger(
            f"KPSS p={report.stationarity.p_value:.3f} "
            f"(non-stationary={report.stationarity.non_stationary}); "
            f"suggested d={report.d}, D={report.D}; "
            f"seasonal strength={report.strength['seasonal_strength']:.2f}",
            1,
        )
    # Collinearity before the collinear columns are dropped
    raw = to_monthly_pandas(monthly)
    raw = raw.loc[raw.index.isin(train.index)]
    candidates = [
        str(p) for p in (*predictors, *COLLINEAR)
        if p in raw.columns and p != Column.OUTLIER
    ]
    try:
        report.collinearity = collinearity_check(
            raw[[target, *candidates]].dropna(), target, candidates
        )
    except (ValueError, np.linalg.LinAlgError) as exc:
        logger.warn(f"Collinearity check failed: {exc}")
    else:
        logger(
            f"OLS R^2={report.collinearity.r_squared:.3f}; collinear "
            f"predictors: {report.collinearity.collinear or 'none'}",
            1,
        )
    return report

def check_residuals(
        bank_fit: BankFit,
        logger: Logger,
    ) -> Dict[str, LjungBoxResult]:
    """Ljung-Box test on the residuals of every fitted model."""
    results: Dict[str, LjungBoxResult] = {}
    for name, fitted in bank_fit.fitted.items():
        dof = 0
        if fitted.order is not None:
            # ARMA terms only; differencing is not estimated
            p, _, q, P, _, Q = fitted.order.as_tuple()
            dof = p + q + P + Q
        results[name] = ljung_box(fitted.residuals, dof=dof)
        logger(
            f"{name} residuals: Ljung-Box p={results[name].p_value:.3f} "
            f"(white noise={results[name].white_noise})",
            1,
        )
    return results

def report_missing(
        frames: Dict[str, pl.DataFrame],
        logger: Logger,
    ) -> Dict[str, Dict[str, int]]:
    """
    Missing cells of each aggregation level, warned about per level.

    The monthly mean skips days that are entirely missing, so a gap in
    the export only shows up at the daily level. Levels without missing
    cells are left out of the result.
    """
    missing: Dict[str, Dict[str, int]] = {}
    for level, frame in frames.items():
        counts = missing_report(frame)
        if counts:
            missing[level] = counts
            logger.warn(f"Missing {level} values: {counts}")
    return missing

def write_table(table: pd.DataFrame, address: Address, **kwargs) -> Path:
    path = validate_address(address, mode="w")
    table.to_csv(path, **kwargs)
    return path

def run_pipeline(
        source: Optional[Address] = None,
        output_dir: Optional[Address] = None,
        *,
        target: str = TARGET,
        predictors: Sequence[str] = PREDICTORS,
        test_start_year: int = TEST_START_YEAR,
        forecast_end: str = FORECAST_END,
        future_covariates: Optional[pd.DataFrame] = None,
        search: OrderSearch = OrderSearch(),
        level: int = INTERVAL_LEVEL,
        verbosity: Verbosity = 0,
        write_log: bool = False,
        plot: bool = True,
        save_models: bool = True,
    ) -> PipelineResult:
    """
    Run the grid mix analysis from the raw export to the long-range
    projection.

    Stages, in order: load and validate the raw CSV, fold minor
    sources into ``total_other``, aggregate to daily and monthly means
    (written as snapshots), build the model frame, run diagnostics on
    the training window, fit the model bank, score it on the holdout,
    select a preferred model, and refit every model on the full series
    to project through ``forecast_end``.

    Parameters
    ----------
    source : Address, optional
        Raw CSV; defaults to ``DATA_ROOT / GRID_DATA_FILE``.
    output_dir : Address, optional
        Destination of snapshots, tables, models and figures; defaults
        to ``OUTPUT_ROOT``.
    target : str, default "wind"
        Series to forecast.
    predictors : Sequence[str]
        Covariates of the dynamic regression.
    test_start_year : int, default 2022
        First year of the holdout window.
    forecast_end : str, default "2030-12"
        Last month of the projection.
    future_covariates : pd.DataFrame, optional
        Values of ``predictors`` for every projected month. Without
        them the dynamic regression is evaluated on the holdout but its
        projection is skipped.
    search : OrderSearch
        Bounds of the automatic ARIMA order search.
    level : int, default 95
        Prediction interval coverage in percent.
    verbosity : Verbosity, default 0
        Logger verbosity.
    write_log : bool, default False
        Append messages to ``log.txt`` in ``output_dir`` instead of
        printing them.
    plot : bool, default True
        Write PNG figures under ``output_dir / "figures"``.
    save_models : bool, default True
        Dump the refit models under ``output_dir / "models"``.

    Returns
    -------
    PipelineResult

    Raises
    ------
    polars.exceptions.ColumnNotFoundError, ValueError
        On malformed input, before any modelling.
    ModelFitError
        If a full-series refit fails.
    """
    source = DATA_ROOT / GRID_DATA_FILE if source is None else source
    output_dir = validate_address(
        OUTPUT_ROOT if output_dir is None else output_dir, mkdir=True
    )
    logger = Logger(verbose=verbosity, log_dir=output_dir,
                    write_log=write_log)
    outputs: Dict[str, Path] = {}
    # Load
    logger(f"Loading {source}...", 1)
    raw = load_grid_data(source).collect()
    irregular = check_timestamps(raw)
    logger(f"Loaded {raw.height} rows.", 1)
    if irregular:
        logger(
            f"{irregular} timestamp steps differ from the "
            f"{OBSERVATION_INTERVAL} export cadence.",
            1,
        )
    # Reduce and aggregate
    reduced = reduce_sources(raw.lazy())
    daily = aggregate_daily(reduced)
    monthly = aggregate_monthly(daily)
    outputs["daily"] = write_snapshot(daily, output_dir / "daily.csv")
    outputs["monthly"] = write_snapshot(monthly, output_dir / "monthly.csv")
    logger(f"Aggregated to {daily.height} days and {monthly.height} "
           "months.", 1)
    missing = report_missing({"daily": daily, "monthly": monthly}, logger)
    # Model frame
    frame = build_model_frame(monthly, target=target, predictors=predictors)
    train, test = train_test_split(frame, test_start_year=test_start_year)
    logger(
        f"Training on {len(train)} months to {train.index[-1]:%Y-%m}, "
        f"testing on {len(test)} months.",
        1,
    )
    diagnostics = run_diagnostics(
        train, monthly, target, predictors, logger=logger
    )
    # Fit and evaluate
    bank = build_bank(predictors, search=search, logger=logger)
    covariates = train[list(predictors)]
    bank_fit = bank.fit_all(train[target], covariates)
    diagnostics.residuals = check_residuals(bank_fit, logger)
    evaluation = evaluate(
        bank, bank_fit, train, test, target, level=level, logger=logger
    )
    if not evaluation.accuracy.empty:
        outputs["accuracy"] = write_table(
            evaluation.accuracy, output_dir / "accuracy.csv"
        )
    selection: Optional[ModelSelection] = None
    if not evaluation.accuracy.empty:
        selection = select_model(evaluation.accuracy)
        logger(f"Preferred model: {selection.model}. "
               f"{selection.rationale}", 0)
    else:
        logger.warn("No model produced a holdout forecast.")
    # Project
    projections: List[Forecast] = []
    finals: Dict[str, FittedModel] = {}
    skipped: Dict[str, str] = {}
    for name in evaluation.forecasts:
        strategy = final_strategy(bank[name], search=search, logger=logger)
        fitted = refit(strategy, frame, target, logger=logger)
        finals[name] = fitted
        if save_models:
            outputs[f"model_{name}"] = save_model(
                fitted, output_dir / "models", logger=logger
            )
        try:
            projections.append(
                project_fitted(
                    strategy,
                    fitted,
                    end=forecast_end,
                    covariates=future_covariates,
                    level=level,
                )
            )
        except MissingCovariatesError as exc:
            skipped[name] = str(exc)
            logger.warn(f"Projection of {name} skipped: {exc}")
    table = forecast_table(projections)
    if not table.empty:
        outputs["forecasts"] = write_table(
            table, output_dir / "forecasts.csv", index=False,
            date_format="%Y-%m",
        )
        headline = select_period(table, forecast_end)
        for _, row in headline.iterrows():
            logger(
                f"{row['model']} {forecast_end}: "
                f"{row['mean']:.2f} {POWER_UNIT} "
                f"[{row['lower']:.2f}, {row['upper']:.2f}]",
                0,
            )
    if plot:
        use_dark_theme()
        figures = validate_address(output_dir / "figures", mkdir=True)
        ax = plot_series_comparison(
            frame, [target, Column.DEMAND], title="Monthly mean generation"
        )
        outputs["fig_series"] = save_figure(
            ax.figure, figures / "series.png"
        )
        try:
            fig = plot_decomposition(
                decompose(train[target]), title=f"STL: {target}"
            )
        except ValueError as exc:
            logger.warn(f"Decomposition plot skipped: {exc}")
        else:
            outputs["fig_decomposition"] = save_figure(
                fig, figures / "decomposition.png"
            )
        if evaluation.forecasts:
            ax = plot_forecasts(
                train[target],
                evaluation.forecasts.values(),
                actual=test[target],
                title="Holdout forecasts",
            )
            outputs["fig_holdout"] = save_figure(
                ax.figure, figures / "holdout.png"
            )
        if projections:
            ax = plot_forecasts(
                frame[target], projections,
                title=f"Projection to {forecast_end}",
            )
            outputs["fig_projection"] = save_figure(
                ax.figure, figures / "projection.png"
            )
    return PipelineResult(
        daily=daily,
        monthly=monthly,
        frame=frame,
        diagnostics=diagnostics,
        evaluation=evaluation,
        selection=selection,
        forecasts=table,
        skipped=skipped,
        missing=missing,
        outputs=outputs,
    )
