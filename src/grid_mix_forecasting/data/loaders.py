# stdlib
from datetime import timedelta
from typing import Iterable, Union
from pathlib import Path
# thirdpartylib
import polars as pl
# projectlib
from grid_mix_forecasting.utils.typing import Address
from grid_mix_forecasting.utils.paths import validate_address
from grid_mix_forecasting.config.constants import OBSERVATION_INTERVAL
from grid_mix_forecasting.data.schemas import (
    Column,
    MEASUREMENTS,
    RAW_COLUMNS,
)

def validate_columns(
        lf: Union[pl.LazyFrame, pl.DataFrame],
        required: Iterable[str],
    ) -> None:
    """
    Ensure that all ``required`` column names are present.

    Raises
    ------
    pl.exceptions.ColumnNotFoundError
        Listing every missing column.
    """
    schema = (
        lf.collect_schema()
        if isinstance(lf, pl.LazyFrame)
        else lf.schema
    )
    missing = [
        str(getattr(col, "value", col))
        for col in required if col not in schema
    ]
    if missing:
        msg = f"Required columns not found: {', '.join(missing)}"
        raise pl.exceptions.ColumnNotFoundError(msg)

def strip_headers(lf: pl.LazyFrame) -> pl.LazyFrame:
    """Remove surrounding whitespace from column names."""
    names = lf.collect_schema().names()
    return lf.rename({name: name.strip() for name in names})

def load_grid_data(source: Address) -> pl.LazyFrame:
    """
    Lazily read the raw five-minute grid export.

    The export carries a header row whose names may be padded with
    whitespace (``" timestamp"``) and timestamps written as ISO-like
    strings. This function:

    - Normalizes header names and checks every required column exists
    - Parses ``timestamp`` to ``Datetime`` and casts measurements to
      ``Float64``
    - Sorts by timestamp

    Uniqueness and ordering of timestamps are checked separately by
    :func:`check_timestamps`, which needs to materialize the column.

    Parameters
    ----------
    source : Address
        Path to the CSV export.

    Returns
    -------
    pl.LazyFrame
        Typed observation rows ordered by timestamp.

    Raises
    ------
    FileNotFoundError
        If ``source`` does not exist.
    pl.exceptions.ColumnNotFoundError
        If any required column is absent.
    """
    source = validate_address(source, extension=".csv")
    lf = pl.scan_csv( # type: ignore[reportUnknownMemberType]
        source,
        infer_schema=False,
    )
    lf = strip_headers(lf)
    validate_columns(lf, RAW_COLUMNS)

    return (
        lf
        .select(RAW_COLUMNS)
        .with_columns(
            pl.col(Column.ID).str.strip_chars().cast(pl.Int64),
            pl.col(Column.TIMESTAMP)
            .str.strip_chars()
            .str.to_datetime(time_unit="us"),
            *(
                pl.col(col).str.strip_chars().cast(pl.Float64)
                for col in MEASUREMENTS
            ),
        )
        .sort(Column.TIMESTAMP)
    )

def check_timestamps(
        frame: pl.DataFrame,
        interval: timedelta = OBSERVATION_INTERVAL,
    ) -> int:
    """
    Verify that timestamps are unique and strictly increasing.

    Steps other than ``interval`` (gaps in the export, or a different
    cadence) are tolerated: aggregation averages whatever rows a day
    holds. Their number is returned so the caller can report it.

    Returns
    -------
    int
        Number of consecutive-row steps not equal to ``interval``.

    Raises
    ------
    ValueError
        If null, duplicated or out-of-order timestamps are found.
    """
    ts = frame.get_column(Column.TIMESTAMP)
    if ts.null_count():
        raise ValueError(
            f"{ts.null_count()} rows have an unparseable timestamp."
        )
    steps = ts.diff().drop_nulls()
    if (steps.dt.total_microseconds() <= 0).any():
        dupes = ts.is_duplicated().sum()
        raise ValueError(
            "Timestamps must be unique and strictly increasing; "
            f"found {dupes} duplicated timestamps."
        )
    expected = interval // timedelta(microseconds=1)
    return int((steps.dt.total_microseconds() != expected).sum())

def read_snapshot(address: Address) -> pl.DataFrame:
    """Read an aggregated CSV snapshot, parsing the ``date`` column."""
    address = validate_address(address, extension=".csv")
    return pl.read_csv(address, try_parse_dates=True)

def write_snapshot(frame: pl.DataFrame, address: Address) -> Path:
    """
    Write an aggregated frame to CSV for inspection and reuse.

    Existing files are never overwritten; a timestamped sibling name is
    used instead.

    Returns
    -------
    Path
        The path actually written.
    """
    address = validate_address(address, extension=".csv", mode="w")
    frame.write_csv(address)
    return address
