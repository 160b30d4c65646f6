"""
Unit tests for source reduction, aggregation and the model frame.
"""

# stdlib
import tempfile
import unittest
from datetime import date
from pathlib import Path
# thirdpartylib
import numpy as np
import pandas as pd
import polars as pl
# projectlib
from grid_mix_forecasting.data.schemas import (
    Column,
    MINOR_SOURCES,
    PREDICTORS,
    REDUCED_COLUMNS,
)
from grid_mix_forecasting.data.loaders import load_grid_data
from grid_mix_forecasting.preprocessing.reduce import reduce_sources
from grid_mix_forecasting.preprocessing.aggregate import (
    aggregate_daily,
    aggregate_monthly,
    find_gaps,
    missing_report,
)
from grid_mix_forecasting.preprocessing.outliers import flag_steepest_drop
from grid_mix_forecasting.preprocessing.model_frame import (
    build_model_frame,
    to_monthly_pandas,
    train_test_split,
)
from grid_fixtures import (
    negative_minor_frame,
    reduced_frame,
    synthetic_raw,
    write_raw_csv,
)


class TestReduceSources(unittest.TestCase):
    """Folding minor sources into ``total_other``."""

    def test_output_columns(self):
        out = reduce_sources(reduced_frame().lazy()).collect()
        self.assertEqual(out.columns, [c.value for c in REDUCED_COLUMNS])
        self.assertEqual(out.schema[Column.DATE], pl.Date)

    def test_total_other_sums_minor_sources(self):
        out = reduce_sources(reduced_frame().lazy()).collect()
        # 14 minor sources at 100 each
        self.assertTrue(
            (out.get_column(Column.TOTAL_OTHER) == 1400.0).all()
        )

    def test_negative_sum_is_clamped(self):
        out = reduce_sources(negative_minor_frame().lazy()).collect()
        total = out.get_column(Column.TOTAL_OTHER).to_list()
        self.assertEqual(total, [0.0, 140.0])

    def test_missing_minor_values_are_skipped(self):
        frame = reduced_frame(3).with_columns(
            pl.Series(Column.NEMO.value, [None, 100.0, None]),
            pl.Series(Column.SOLAR.value, [None, 100.0, 100.0]),
        )
        out = reduce_sources(frame.lazy()).collect()
        self.assertEqual(
            out.get_column(Column.TOTAL_OTHER).to_list(),
            [1200.0, 1400.0, 1300.0],
        )

    def test_all_minor_values_missing_gives_zero(self):
        frame = reduced_frame(2).with_columns(
            pl.Series(c.value, [None, 100.0], dtype=pl.Float64)
            for c in MINOR_SOURCES
        )
        out = reduce_sources(frame.lazy()).collect()
        self.assertEqual(
            out.get_column(Column.TOTAL_OTHER).to_list(), [0.0, 1400.0]
        )

    def test_missing_minor_source_raises(self):
        lf = reduced_frame().lazy().drop(Column.NEMO)
        with self.assertRaises(pl.exceptions.ColumnNotFoundError):
            reduce_sources(lf)


class TestAggregation(unittest.TestCase):

    @classmethod
    def setUpClass(cls):
        cls.tmp = tempfile.TemporaryDirectory()
        raw = synthetic_raw("2021-01-01", "2021-03-31 18:00", "6h")
        path = write_raw_csv(raw, Path(cls.tmp.name) / "grid.csv")
        cls.reduced = reduce_sources(load_grid_data(path))
        cls.daily = aggregate_daily(cls.reduced)
        cls.monthly = aggregate_monthly(cls.daily)

    @classmethod
    def tearDownClass(cls):
        cls.tmp.cleanup()

    def test_one_row_per_day_and_month(self):
        self.assertEqual(self.daily.height, 31 + 28 + 31)
        self.assertEqual(self.monthly.height, 3)
        self.assertEqual(
            self.monthly.get_column(Column.DATE).to_list(),
            [date(2021, 1, 1), date(2021, 2, 1), date(2021, 3, 1)],
        )

    def test_total_other_non_negative_at_every_level(self):
        rows = self.reduced.collect()
        for frame in (rows, self.daily, self.monthly):
            self.assertGreaterEqual(
                frame.get_column(Column.TOTAL_OTHER).min(), 0.0
            )

    def test_daily_mean(self):
        rows = self.reduced.collect()
        first = rows.filter(pl.col(Column.DATE) == date(2021, 1, 1))
        self.assertAlmostEqual(
            self.daily.get_column(Column.WIND)[0],
            first.get_column(Column.WIND).mean(),
        )

    def test_all_missing_group_stays_null(self):
        frame = pl.DataFrame({
            "date": [date(2021, 1, 1), date(2021, 1, 1), date(2021, 1, 2)],
            "wind": [None, None, 5.0],
        }, schema={"date": pl.Date, "wind": pl.Float64})
        daily = aggregate_daily(frame)
        self.assertIsNone(daily.get_column("wind")[0])
        self.assertEqual(missing_report(daily), {"wind": 1})

    def test_missing_day_is_absorbed_by_monthly_mean(self):
        raw = synthetic_raw("2021-01-01", "2021-01-31 18:00", "6h")
        gap = raw[Column.TIMESTAMP.value].str.startswith("2021-01-10")
        raw.loc[gap, Column.WIND.value] = np.nan
        path = write_raw_csv(raw, Path(self.tmp.name) / "gap.csv")
        daily = aggregate_daily(reduce_sources(load_grid_data(path)))
        monthly = aggregate_monthly(daily)
        self.assertEqual(missing_report(daily), {"wind": 1})
        self.assertIsNotNone(monthly.get_column(Column.WIND)[0])
        self.assertEqual(missing_report(monthly), {})

    def test_find_gaps(self):
        frame = pl.DataFrame({
            "date": [date(2021, 1, 1), date(2021, 3, 1)],
            "wind": [1.0, 2.0],
        })
        self.assertEqual(
            find_gaps(frame, period="month"), [date(2021, 2, 1)]
        )
        self.assertEqual(find_gaps(self.monthly, period="month"), [])


class TestOutlierFlag(unittest.TestCase):

    def test_single_flag_at_steepest_drop(self):
        series = pd.Series([10.0, 12.0, 4.0, 5.0, 1.0, 3.0])
        flags = flag_steepest_drop(series)
        self.assertEqual(int(flags.sum()), 1)
        self.assertEqual(int(flags.idxmax()), 2)
        self.assertEqual(flags.name, "outlier")

    def test_ties_resolve_to_first(self):
        flags = flag_steepest_drop(pd.Series([5.0, 3.0, 5.0, 3.0]))
        self.assertEqual(flags.tolist(), [0, 1, 0, 0])

    def test_too_short_raises(self):
        with self.assertRaises(ValueError):
            flag_steepest_drop(pd.Series([1.0]))


def monthly_polars(periods: int = 36) -> pl.DataFrame:
    """Monthly aggregate with every reduced column."""
    rng = np.random.default_rng(4)
    dates = pl.date_range(
        date(2019, 1, 1),
        (pd.Timestamp("2019-01-01") + pd.DateOffset(months=periods - 1))
        .date(),
        "1mo",
        eager=True,
    )
    data = {Column.DATE.value: dates}
    for column in REDUCED_COLUMNS:
        if column != Column.DATE:
            data[column.value] = rng.uniform(100, 200, periods)
    return pl.DataFrame(data)


class TestModelFrame(unittest.TestCase):

    def setUp(self):
        self.monthly = monthly_polars()

    def test_regular_monthly_index(self):
        frame = to_monthly_pandas(self.monthly)
        self.assertIsInstance(frame.index, pd.DatetimeIndex)
        self.assertEqual(frame.index.freqstr, "MS")
        self.assertEqual(len(frame), 36)

    def test_gap_raises(self):
        with self.assertRaises(ValueError):
            to_monthly_pandas(
                self.monthly.filter(pl.col("date") != date(2020, 6, 1))
            )

    def test_build_model_frame(self):
        frame = build_model_frame(self.monthly)
        self.assertNotIn(Column.COAL, frame.columns)
        for column in (Column.WIND, *PREDICTORS):
            self.assertIn(column, frame.columns)
        self.assertEqual(int(frame[Column.OUTLIER].sum()), 1)

    def test_missing_value_is_rejected_not_filled(self):
        monthly = self.monthly.with_columns(
            pl.when(pl.col("date") == date(2020, 2, 1))
            .then(None)
            .otherwise(pl.col("hydro"))
            .alias("hydro")
        )
        with self.assertRaises(ValueError) as ctx:
            build_model_frame(monthly)
        self.assertIn("hydro", str(ctx.exception))

    def test_collinear_column_dropped_even_when_empty(self):
        frame = build_model_frame(
            self.monthly.with_columns(pl.lit(None).alias("coal"))
        )
        self.assertNotIn("coal", frame.columns)

    def test_split_is_exclusive_and_ordered(self):
        frame = build_model_frame(self.monthly)
        train, test = train_test_split(frame, test_start_year=2021)
        self.assertEqual(len(train) + len(test), len(frame))
        self.assertTrue(train.index.max() < test.index.min())
        self.assertTrue((train.index.year < 2021).all())
        self.assertTrue((test.index.year >= 2021).all())
        self.assertEqual(test.index.freqstr, "MS")

    def test_empty_side_raises(self):
        frame = build_model_frame(self.monthly)
        with self.assertRaises(ValueError):
            train_test_split(frame, test_start_year=2030)
        with self.assertRaises(ValueError):
            train_test_split(frame, test_start_year=2000)


if __name__ == "__main__":
    unittest.main()
