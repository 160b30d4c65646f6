"""
Unit tests for stationarity, decomposition and collinearity diagnostics.
"""

# stdlib
import unittest
# thirdpartylib
import numpy as np
import pandas as pd
# projectlib
from grid_mix_forecasting.diagnostics.stationarity import (
    difference,
    invert_seasonal_difference,
    kpss_test,
    ndiffs,
    nsdiffs,
    seasonal_difference,
)
from grid_mix_forecasting.diagnostics.decomposition import (
    autocorrelation,
    decompose,
    feature_strength,
    ljung_box,
)
from grid_mix_forecasting.diagnostics.collinearity import (
    collinearity_check,
    prune_collinear,
    variance_inflation,
)


def monthly_index(periods: int) -> pd.DatetimeIndex:
    return pd.date_range("2012-01-01", periods=periods, freq="MS")


class TestStationarity(unittest.TestCase):

    def setUp(self):
        np.random.seed(42)
        n = 120
        self.index = monthly_index(n)
        self.noise = pd.Series(np.random.normal(0, 1, n), index=self.index)
        self.walk = (self.noise + 0.5).cumsum()
        months = np.arange(n)
        self.seasonal = pd.Series(
            10 * np.sin(2 * np.pi * months / 12)
            + np.random.normal(0, 0.5, n),
            index=self.index,
        )

    def test_white_noise_is_stationary(self):
        result = kpss_test(self.noise, alpha=0.01)
        self.assertFalse(result.non_stationary)
        self.assertEqual(ndiffs(self.noise, alpha=0.01), 0)

    def test_random_walk_needs_differencing(self):
        self.assertTrue(kpss_test(self.walk).non_stationary)
        self.assertGreaterEqual(ndiffs(self.walk), 1)

    def test_strong_seasonality_needs_seasonal_difference(self):
        self.assertEqual(nsdiffs(self.seasonal), 1)

    def test_short_series_has_no_seasonal_difference(self):
        self.assertEqual(nsdiffs(self.seasonal.iloc[:20]), 0)

    def test_difference_drops_leading_values(self):
        diffed = difference(self.walk)
        self.assertEqual(len(diffed), len(self.walk) - 1)
        self.assertFalse(diffed.isna().any())

    def test_seasonal_difference_round_trip(self):
        series = self.seasonal + self.walk
        diffed = seasonal_difference(series, 12)
        self.assertEqual(len(diffed), len(series) - 12)
        rebuilt = invert_seasonal_difference(diffed, series.iloc[:12], 12)
        np.testing.assert_allclose(rebuilt.to_numpy(), series.to_numpy())
        self.assertTrue(rebuilt.index.equals(series.index))

    def test_round_trip_needs_one_full_season(self):
        diffed = seasonal_difference(self.seasonal, 12)
        with self.assertRaises(ValueError):
            invert_seasonal_difference(diffed, self.seasonal.iloc[:6], 12)


class TestDecomposition(unittest.TestCase):

    def setUp(self):
        np.random.seed(7)
        n = 96
        months = np.arange(n)
        self.series = pd.Series(
            100 + 0.5 * months
            + 20 * np.cos(2 * np.pi * months / 12)
            + np.random.normal(0, 1, n),
            index=monthly_index(n),
        )

    def test_components_add_up(self):
        components = decompose(self.series)
        self.assertEqual(
            list(components.columns),
            ["observed", "trend", "seasonal", "remainder"],
        )
        total = (
            components["trend"]
            + components["seasonal"]
            + components["remainder"]
        )
        np.testing.assert_allclose(total, components["observed"])

    def test_strength_in_unit_interval(self):
        strength = feature_strength(decompose(self.series))
        for value in strength.values():
            self.assertGreaterEqual(value, 0.0)
            self.assertLessEqual(value, 1.0)
        self.assertGreater(strength["seasonal_strength"], 0.64)

    def test_autocorrelation_flags_seasonal_lag(self):
        acf = autocorrelation(self.series.diff().dropna(), nlags=24)
        self.assertEqual(acf.index[0], 0)
        self.assertTrue(acf.loc[12, "significant"])
        self.assertFalse(acf.loc[0, "significant"])

    def test_ljung_box(self):
        np.random.seed(1)
        noise = pd.Series(np.random.normal(0, 1, 200))
        self.assertTrue(ljung_box(noise, alpha=0.01).white_noise)
        self.assertFalse(ljung_box(self.series).white_noise)


class TestCollinearity(unittest.TestCase):

    def setUp(self):
        np.random.seed(3)
        n = 200
        a = np.random.normal(0, 1, n)
        b = np.random.normal(0, 1, n)
        c = np.random.normal(0, 1, n)
        self.frame = pd.DataFrame({
            "a": a,
            "b": b,
            "c": c,
            # Nearly a linear combination of a and b
            "d": a + b + np.random.normal(0, 0.05, n),
        })
        self.frame["y"] = (
            2 * a - b + 0.5 * c + np.random.normal(0, 0.1, n)
        )

    def test_independent_predictors_have_low_vif(self):
        vif = variance_inflation(self.frame, ["a", "b", "c"])
        self.assertTrue((vif < 2).all())

    def test_collinear_predictor_is_flagged(self):
        report = collinearity_check(self.frame, "y", ["a", "b", "c", "d"])
        self.assertIn("d", report.collinear)
        self.assertNotIn("c", report.collinear)
        self.assertGreater(report.r_squared, 0.9)

    def test_pruning_strictly_lowers_max_vif(self):
        predictors = ["a", "b", "c", "d"]
        before = collinearity_check(self.frame, "y", predictors)
        kept = prune_collinear(self.frame, "y", predictors)
        after = collinearity_check(self.frame, "y", kept)
        self.assertLess(len(kept), len(predictors))
        self.assertLess(after.max_vif, before.max_vif)
        self.assertFalse(after.collinear)
        self.assertIn("c", kept)


if __name__ == "__main__":
    unittest.main()
