# stdlib
from datetime import date
from typing import Dict, List, Union
# thirdpartylib
import polars as pl
# projectlib
from grid_mix_forecasting.utils.typing import Period
from grid_mix_forecasting.data.loaders import validate_columns
from grid_mix_forecasting.data.schemas import Column

# Polars truncation/range intervals per calendar period
INTERVALS: Dict[Period, str] = {"day": "1d", "month": "1mo"}

def aggregate_by_period(
        data: Union[pl.LazyFrame, pl.DataFrame],
        *,
        period: Period,
        on: str = Column.DATE,
    ) -> pl.DataFrame:
    """
    Downsample rows to one row per calendar period by arithmetic mean.

    Rows are grouped on ``on`` truncated to the requested period (the
    first day of the period becomes its key). Every other column is
    replaced by its mean over the group, ignoring missing values. A
    group in which a column is entirely missing keeps a null for that
    column; it is never coerced to zero. Use :func:`missing_report` to
    surface such cells before modelling.

    Parameters
    ----------
    data : pl.LazyFrame or pl.DataFrame
        Rows carrying a ``Date`` column named ``on``.
    period : {"day", "month"}
        Calendar period to aggregate to.
    on : str, default "date"
        Name of the date column.

    Returns
    -------
    pl.DataFrame
        One row per period present in the input, ascending by period.
    """
    validate_columns(data, (on,))
    lf = data.lazy() if isinstance(data, pl.DataFrame) else data
    return (
        lf
        .with_columns(pl.col(on).dt.truncate(INTERVALS[period]))
        .group_by(on)
        .agg(pl.exclude(on).mean())
        .sort(on)
        .collect()
    )

def aggregate_daily(
        data: Union[pl.LazyFrame, pl.DataFrame],
    ) -> pl.DataFrame:
    """Average reduced five-minute rows into one row per date."""
    return aggregate_by_period(data, period="day")

def aggregate_monthly(
        data: Union[pl.LazyFrame, pl.DataFrame],
    ) -> pl.DataFrame:
    """Average daily rows into one row per calendar month."""
    return aggregate_by_period(data, period="month")

def missing_report(frame: pl.DataFrame) -> Dict[str, int]:
    """Per-column count of missing (null or NaN) cells, non-zero only."""
    counts: Dict[str, int] = {}
    for name, dtype in frame.schema.items():
        col = frame.get_column(name)
        n = col.null_count()
        if dtype.is_float():
            n += int(col.is_nan().sum())
        if n:
            counts[name] = n
    return counts

def find_gaps(
        frame: pl.DataFrame,
        *,
        period: Period,
        on: str = Column.DATE,
    ) -> List[date]:
    """
    List periods absent between the first and last period of ``frame``.

    The modelling stage assumes a regular index, so any returned period
    would break it.
    """
    if frame.height == 0:
        return []
    col = frame.get_column(on)
    expected = pl.date_range(
        col.min(), # pyright: ignore[reportArgumentType]
        col.max(), # pyright: ignore[reportArgumentType]
        interval=INTERVALS[period],
        eager=True,
    )
    present = set(col.to_list())
    return [d for d in expected.to_list() if d not in present]
