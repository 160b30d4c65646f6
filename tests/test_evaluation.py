"""
Unit tests for accuracy metrics and model selection.
"""

# stdlib
import unittest
import warnings
# thirdpartylib
import numpy as np
import pandas as pd
# projectlib
from grid_mix_forecasting.evaluation.metrics import (
    accuracy,
    crps_gaussian,
    mae,
    mape,
    mase,
    mean_error,
    mpe,
    rmse,
    rmsse,
    winkler_score,
)
from grid_mix_forecasting.data.schemas import Column
from grid_mix_forecasting.models.forecasting import ModelBank, SARIMAStrategy
from grid_mix_forecasting.evaluation.backtest import evaluate
from grid_mix_forecasting.evaluation.selection import select_model
from grid_fixtures import monthly_frame

warnings.filterwarnings("ignore")


class TestPointMetrics(unittest.TestCase):

    def setUp(self):
        self.actual = np.array([100.0, 200.0, 300.0, 400.0])
        self.forecast = np.array([110.0, 190.0, 330.0, 400.0])

    def test_mean_error_sign(self):
        # Errors: -10, 10, -30, 0
        self.assertAlmostEqual(mean_error(self.actual, self.forecast), -7.5)

    def test_rmse_and_mae(self):
        self.assertAlmostEqual(
            rmse(self.actual, self.forecast), np.sqrt(1100 / 4)
        )
        self.assertAlmostEqual(mae(self.actual, self.forecast), 12.5)

    def test_percentage_errors(self):
        expected_mpe = np.mean([-10.0, 5.0, -10.0, 0.0])
        self.assertAlmostEqual(mpe(self.actual, self.forecast), expected_mpe)
        self.assertAlmostEqual(mape(self.actual, self.forecast), 6.25)

    def test_mape_zero_actual_is_finite(self):
        value = mape([0.0, 10.0], [1.0, 10.0])
        self.assertTrue(np.isfinite(value))

    def test_perfect_forecast(self):
        for metric in (mean_error, rmse, mae, mpe, mape):
            self.assertEqual(metric(self.actual, self.actual), 0.0)


class TestScaledMetrics(unittest.TestCase):

    def setUp(self):
        # Seasonal naive errors of this history are all exactly 12
        self.training = np.concatenate([np.arange(12.0), np.arange(12.0) + 12])

    def test_mase_scales_by_seasonal_naive(self):
        actual = np.array([30.0, 31.0])
        forecast = np.array([24.0, 25.0])
        self.assertAlmostEqual(mase(actual, forecast, self.training), 0.5)
        self.assertAlmostEqual(rmsse(actual, forecast, self.training), 0.5)

    def test_short_training_gives_nan(self):
        self.assertTrue(np.isnan(mase([1.0], [1.0], np.arange(12.0))))

    def test_constant_training_gives_nan(self):
        self.assertTrue(np.isnan(rmsse([1.0], [2.0], np.ones(30))))


class TestDistributionalMetrics(unittest.TestCase):

    def test_winkler_inside_interval_is_width(self):
        score = winkler_score([5.0], [0.0], [10.0], level=95)
        self.assertAlmostEqual(score, 10.0)

    def test_winkler_penalizes_misses(self):
        # 2 units below the interval at alpha = 0.05
        score = winkler_score([-2.0], [0.0], [10.0], level=95)
        self.assertAlmostEqual(score, 10.0 + 2 / 0.05 * 2.0)
        above = winkler_score([12.0], [0.0], [10.0], level=80)
        self.assertAlmostEqual(above, 10.0 + 2 / 0.2 * 2.0)

    def test_crps_gaussian_closed_form(self):
        # CRPS of N(0, 1) at its mean is 2 * pdf(0) - 1 / sqrt(pi)
        expected = 2 / np.sqrt(2 * np.pi) - 1 / np.sqrt(np.pi)
        self.assertAlmostEqual(crps_gaussian([0.0], [0.0], [1.0]), expected)

    def test_crps_zero_sd_is_absolute_error(self):
        self.assertAlmostEqual(crps_gaussian([3.0], [1.0], [0.0]), 2.0)

    def test_crps_grows_with_error(self):
        near = crps_gaussian([0.5], [0.0], [1.0])
        far = crps_gaussian([3.0], [0.0], [1.0])
        self.assertLess(near, far)


class TestAccuracy(unittest.TestCase):

    def test_keys_depend_on_inputs(self):
        actual = np.array([1.0, 2.0, 3.0])
        point = accuracy(actual, actual + 1)
        self.assertEqual(set(point), {"ME", "RMSE", "MAE", "MPE", "MAPE"})
        full = accuracy(
            actual,
            actual + 1,
            sd=np.ones(3),
            lower=actual - 2,
            upper=actual + 4,
            training=np.arange(30.0),
        )
        self.assertTrue(
            {"MASE", "RMSSE", "winkler", "CRPS"}.issubset(full)
        )

    def test_length_mismatch_raises(self):
        with self.assertRaises(ValueError):
            accuracy([1.0, 2.0], [1.0])


class TestSelectModel(unittest.TestCase):

    def test_dominant_model_wins(self):
        table = pd.DataFrame(
            {
                "ME": [1.0, -5.0],
                "RMSE": [10.0, 20.0],
                "MAE": [8.0, 15.0],
                "MPE": [-0.5, 2.0],
                "MAPE": [3.0, 6.0],
                "winkler": [40.0, 90.0],
                "CRPS": [5.0, 9.0],
            },
            index=pd.Index(["ets", "sarima"], name="model"),
        )
        selection = select_model(table)
        self.assertEqual(selection.model, "ets")
        self.assertEqual(selection.wins, {"ets": 7, "sarima": 0})

    def test_lower_rmse_wins_when_metrics_agree(self):
        table = pd.DataFrame(
            {"RMSE": [12.0, 9.0], "MAE": [10.0, 7.0], "MAPE": [5.0, 4.0]},
            index=["ets", "sarima"],
        )
        self.assertEqual(select_model(table).model, "sarima")

    def test_signed_metrics_compare_magnitude(self):
        table = pd.DataFrame(
            {"ME": [-1.0, 4.0], "MAPE": [2.0, 3.0]},
            index=["dynamic_regression", "sarima"],
        )
        selection = select_model(table, metrics=["ME"])
        self.assertEqual(selection.model, "dynamic_regression")

    def test_tie_broken_by_mape(self):
        table = pd.DataFrame(
            {"RMSE": [10.0, 11.0], "MAE": [9.0, 8.0], "MAPE": [4.0, 3.5]},
            index=["ets", "sarima"],
        )
        selection = select_model(table, metrics=["RMSE", "MAE"])
        self.assertEqual(selection.wins, {"ets": 1, "sarima": 1})
        self.assertEqual(selection.model, "sarima")
        self.assertIn("MAPE", selection.rationale)

    def test_empty_table_raises(self):
        with self.assertRaises(ValueError):
            select_model(pd.DataFrame())

def pinned_sarima(cls=SARIMAStrategy):
    return cls(12, order=(0, 0, 0), seasonal_order=(0, 1, 0, 12),
               trend="c")


class UnforecastableSARIMA(SARIMAStrategy):
    """Fits normally, then fails inside the statsmodels forecast."""

    name = "unforecastable"

    def forecast(self, fitted, horizon, covariates=None, level=95):
        raise ValueError("Prediction must have `end` after `start`.")


class TestEvaluate(unittest.TestCase):

    def setUp(self):
        frame = monthly_frame(periods=60)
        self.train = frame.iloc[:48]
        self.test = frame.iloc[48:]
        self.bank = ModelBank([
            pinned_sarima(), pinned_sarima(UnforecastableSARIMA)
        ])
        self.bank_fit = self.bank.fit_all(self.train[Column.WIND])

    def test_forecast_error_is_isolated(self):
        self.assertEqual(
            set(self.bank_fit.fitted), {"sarima", "unforecastable"}
        )
        outcome = evaluate(
            self.bank, self.bank_fit, self.train, self.test, Column.WIND
        )
        self.assertEqual(list(outcome.forecasts), ["sarima"])
        self.assertEqual(list(outcome.accuracy.index), ["sarima"])
        self.assertIn("`end`", outcome.failures["unforecastable"])

    def test_accuracy_table_columns(self):
        outcome = evaluate(
            self.bank, self.bank_fit, self.train, self.test, Column.WIND
        )
        for metric in ("RMSE", "MAPE", "MASE", "winkler", "CRPS"):
            self.assertIn(metric, outcome.accuracy.columns)
        self.assertEqual(outcome.accuracy.index.name, "model")



if __name__ == "__main__":
    unittest.main()
