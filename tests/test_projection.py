"""
Unit tests for the long-range projection and model persistence.
"""

# stdlib
import tempfile
import unittest
import warnings
from pathlib import Path
# thirdpartylib
import joblib
import numpy as np
import pandas as pd
# projectlib
from grid_mix_forecasting.utils.exceptions import MissingCovariatesError
from grid_mix_forecasting.data.schemas import Column
from grid_mix_forecasting.models.order_selection import OrderSearch
from grid_mix_forecasting.models.forecasting import (
    DynamicRegressionStrategy,
    FittedModel,
    SARIMAStrategy,
)
from grid_mix_forecasting.models.projection import (
    forecast_table,
    horizon_until,
    project,
    select_period,
)
from grid_mix_forecasting.models.io import load_model, save_model
from grid_fixtures import monthly_frame

warnings.filterwarnings("ignore")


def pinned_sarima() -> SARIMAStrategy:
    return SARIMAStrategy(
        12, order=(0, 0, 0), seasonal_order=(0, 1, 0, 12), trend="c"
    )


class TestHorizon(unittest.TestCase):

    def test_months_through_end(self):
        self.assertEqual(horizon_until("2023-12", "2030-12"), 84)
        self.assertEqual(
            horizon_until(pd.Timestamp("2021-06-01"), "2021-07"), 1
        )

    def test_end_not_after_last_raises(self):
        with self.assertRaises(ValueError):
            horizon_until("2023-12", "2023-12")
        with self.assertRaises(ValueError):
            horizon_until("2023-12", "2023-01")


class TestProject(unittest.TestCase):

    def setUp(self):
        # 2016-01 to 2019-12
        self.frame = monthly_frame(periods=48)

    def test_projects_through_end(self):
        forecast = project(
            pinned_sarima(), self.frame, Column.WIND, end="2021-12"
        )
        self.assertEqual(len(forecast.frame), 24)
        self.assertEqual(forecast.frame.index[0], pd.Timestamp("2020-01-01"))
        self.assertEqual(forecast.frame.index[-1], pd.Timestamp("2021-12-01"))

    def test_past_end_fails_before_refit(self):
        with self.assertRaises(ValueError):
            project(pinned_sarima(), self.frame, Column.WIND, end="2019-06")

    def test_covariate_model_without_future_values(self):
        strategy = DynamicRegressionStrategy(
            search=OrderSearch(max_p=1, max_q=0, max_P=0, max_Q=0,
                               max_order=1, maxiter=100)
        )
        with self.assertRaises(MissingCovariatesError):
            project(strategy, self.frame, Column.WIND, end="2020-06")

    def test_table_and_period_lookup(self):
        forecast = project(
            pinned_sarima(), self.frame, Column.WIND, end="2020-12"
        )
        table = forecast_table([forecast])
        self.assertEqual(
            list(table.columns),
            ["period", "model", "mean", "variance", "lower", "upper",
             "distribution"],
        )
        row = select_period(table, "2020-12", model="sarima")
        self.assertEqual(len(row), 1)
        self.assertAlmostEqual(
            row.loc[0, "mean"], forecast.mean.iloc[-1]
        )
        self.assertTrue(row.loc[0, "distribution"].startswith("N("))
        np.testing.assert_allclose(
            table["variance"], forecast.frame["sd"] ** 2
        )
        with self.assertRaises(KeyError):
            select_period(table, "2031-01")
        with self.assertRaises(KeyError):
            select_period(table, "2020-12", model="ets")

    def test_empty_table(self):
        table = forecast_table([])
        self.assertTrue(table.empty)
        self.assertIn("distribution", table.columns)


class TestModelIO(unittest.TestCase):

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.dir = Path(self.tmp.name)
        frame = monthly_frame(periods=48)
        self.strategy = pinned_sarima()
        self.fitted = self.strategy.fit(frame[Column.WIND])

    def tearDown(self):
        self.tmp.cleanup()

    def test_round_trip_forecasts_identically(self):
        path = save_model(self.fitted, self.dir / "models")
        self.assertEqual(path.name, "sarima_model.joblib")
        loaded = load_model(path)
        self.assertIsInstance(loaded, FittedModel)
        self.assertEqual(loaded.spec, self.fitted.spec)
        before = self.strategy.forecast(self.fitted, 6).mean
        after = self.strategy.forecast(loaded, 6).mean
        np.testing.assert_allclose(before, after)

    def test_save_does_not_overwrite(self):
        first = save_model(self.fitted, self.dir)
        second = save_model(self.fitted, self.dir)
        self.assertNotEqual(first, second)

    def test_load_rejects_other_objects(self):
        path = self.dir / "other.joblib"
        joblib.dump({"not": "a model"}, path)
        with self.assertRaises(RuntimeError):
            load_model(path)

    def test_load_missing_file(self):
        with self.assertRaises(FileNotFoundError):
            load_model(self.dir / "absent.joblib")


if __name__ == "__main__":
    unittest.main()
