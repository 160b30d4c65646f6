# stdlib
from typing import Sequence
# thirdpartylib
import polars as pl
# projectlib
from grid_mix_forecasting.data.loaders import validate_columns
from grid_mix_forecasting.data.schemas import (
    Column,
    MINOR_SOURCES,
    REDUCED_COLUMNS,
)

def total_other_expr(
        sources: Sequence[str] = MINOR_SOURCES,
    ) -> pl.Expr:
    """
    Expression summing minor sources into a single non-negative column.

    Missing values are ignored by the horizontal sum. Net exports on the
    interconnectors can push the sum below zero, which has no physical
    meaning for a generation share, so the result is clamped at zero.
    """
    return (
        pl.sum_horizontal(*(pl.col(col) for col in sources))
        .clip(lower_bound=0.0)
        .alias(Column.TOTAL_OTHER)
    )

def reduce_sources(lf: pl.LazyFrame) -> pl.LazyFrame:
    """
    Fold low-signal columns into ``total_other`` and drop unused ones.

    Steps:
    - ``total_other = max(0, sum(minor sources))``
    - derive ``date`` from ``timestamp``
    - keep only ``date``, ``demand``, the major sources and
      ``total_other`` (this drops the minor sources, ``north_south``,
      ``id``, ``frequency`` and the raw ``timestamp``)

    Parameters
    ----------
    lf : pl.LazyFrame
        Typed observation rows as returned by ``load_grid_data``.

    Returns
    -------
    pl.LazyFrame
        Reduced rows in timestamp order.

    Raises
    ------
    pl.exceptions.ColumnNotFoundError
        If the input is missing any column the reduction needs.
    """
    required = (
        Column.TIMESTAMP,
        *(col for col in REDUCED_COLUMNS
          if col not in (Column.DATE, Column.TOTAL_OTHER)),
        *MINOR_SOURCES,
    )
    validate_columns(lf, required)

    return (
        lf
        .with_columns(
            total_other_expr(),
            pl.col(Column.TIMESTAMP).dt.date().alias(Column.DATE),
        )
        .select(REDUCED_COLUMNS)
    )
