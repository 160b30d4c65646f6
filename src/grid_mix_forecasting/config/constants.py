# stdlib
from datetime import timedelta

# Months per seasonal cycle of the monthly series
SEASONAL_PERIOD = 12
# Significance level for the KPSS stationarity test
KPSS_ALPHA = 0.05
# Caps for the differencing-order estimators
MAX_D = 2
MAX_SEASONAL_D = 1
# STL seasonal strength above which a seasonal difference is taken
SEASONAL_STRENGTH_THRESHOLD = 0.64
# Variance inflation factor above which a predictor is collinear
VIF_THRESHOLD = 5.0
# First calendar year of the holdout window
TEST_START_YEAR = 2022
# Last month covered by the long-range projection
FORECAST_END = "2030-12"
# Prediction interval coverage, in percent
INTERVAL_LEVEL = 95
# Orders used when the SARIMA model is refit on the full series
FINAL_SARIMA_ORDER = (1, 0, 0)
FINAL_SARIMA_SEASONAL_ORDER = (0, 1, 1, SEASONAL_PERIOD)
# Spacing of rows in the raw export
OBSERVATION_INTERVAL = timedelta(minutes=5)
# Unit of every power measurement in the export
POWER_UNIT = "GW"
