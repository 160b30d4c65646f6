# stdlib
from typing import Sequence, Tuple
# thirdpartylib
import numpy as np
import pandas as pd
import polars as pl
# projectlib
from grid_mix_forecasting.data.loaders import validate_columns
from grid_mix_forecasting.data.schemas import (
    Column,
    COLLINEAR,
    PREDICTORS,
    TARGET,
)
from grid_mix_forecasting.preprocessing.aggregate import find_gaps
from grid_mix_forecasting.preprocessing.outliers import flag_steepest_drop
from grid_mix_forecasting.config.constants import TEST_START_YEAR

def to_monthly_pandas(
        monthly: pl.DataFrame,
        *,
        on: str = Column.DATE,
    ) -> pd.DataFrame:
    """
    Convert a monthly polars frame into a pandas frame with a regular
    ``DatetimeIndex`` (``freq="MS"``), as required by statsmodels.

    Raises
    ------
    ValueError
        If months are missing between the first and last period.
    """
    gaps = find_gaps(monthly, period="month", on=on)
    if gaps:
        shown = ", ".join(d.isoformat() for d in gaps[:5])
        raise ValueError(
            f"Monthly series has {len(gaps)} missing periods "
            f"(first: {shown}); a regular index is required."
        )
    index = pd.DatetimeIndex(
        pd.to_datetime(monthly.get_column(on).to_list()),
        freq="MS",
        name=on,
    )
    return pd.DataFrame(
        {
            name: monthly.get_column(name).to_numpy().astype(np.float64)
            for name in monthly.columns if name != on
        },
        index=index,
    )

def build_model_frame(
        monthly: pl.DataFrame,
        *,
        target: str = TARGET,
        predictors: Sequence[str] = PREDICTORS,
        drop: Sequence[str] = COLLINEAR,
    ) -> pd.DataFrame:
    """
    Assemble the frame the models are fitted on.

    Starting from the monthly aggregate this drops the collinear
    columns, adds the ``outlier`` intervention flag computed on
    ``target`` and checks that no modelling column is missing a value.

    Parameters
    ----------
    monthly : pl.DataFrame
        Output of ``aggregate_monthly``.
    target : str, default "wind"
        Forecast target.
    predictors : Sequence[str]
        Covariates of the dynamic regression. ``outlier`` is created
        here and need not be present in ``monthly``.
    drop : Sequence[str], default ("coal",)
        Columns removed before modelling.

    Returns
    -------
    pd.DataFrame
        Monthly frame indexed by period start.

    Raises
    ------
    pl.exceptions.ColumnNotFoundError
        If the target or a predictor is absent.
    ValueError
        On gaps in the monthly index or missing values in modelling
        columns.
    """
    required = [target, *(p for p in predictors if p != Column.OUTLIER)]
    validate_columns(monthly, required)
    frame = to_monthly_pandas(
        monthly.drop([c for c in drop if c in monthly.columns])
    )
    missing = frame[required].isna().sum()
    missing = missing[missing > 0]
    if not missing.empty:
        detail = ", ".join(f"{k}={v}" for k, v in missing.items())
        raise ValueError(
            f"Missing values in modelling columns ({detail}); "
            "resolve them upstream instead of imputing zeros."
        )
    frame[Column.OUTLIER.value] = flag_steepest_drop(frame[target])
    return frame

def train_test_split(
        frame: pd.DataFrame,
        *,
        test_start_year: int = TEST_START_YEAR,
    ) -> Tuple[pd.DataFrame, pd.DataFrame]:
    """
    Split a time-indexed frame at the first day of ``test_start_year``.

    Rows before the cutoff form the training set, the remainder the
    test set. Order is preserved and the two sets never overlap.

    Raises
    ------
    ValueError
        If either side of the split is empty.
    """
    frame = frame.sort_index()
    # Positional slicing keeps the index frequency intact
    n_train = int((frame.index.year < test_start_year).sum())
    train, test = frame.iloc[:n_train], frame.iloc[n_train:]
    if train.empty or test.empty:
        raise ValueError(
            f"Split at {test_start_year} leaves an empty "
            f"{'training' if train.empty else 'test'} set."
        )
    return train, test
