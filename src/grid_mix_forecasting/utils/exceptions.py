"""
Custom exceptions for the grid-mix forecasting pipeline.

Malformed input is reported with the backend's own errors
(``polars.exceptions.ColumnNotFoundError``, ``ValueError``); the classes
below cover the modelling failures that callers are expected to catch
and report per model.
"""


class GridForecastingError(Exception):
    """Base exception for the forecasting pipeline."""
    pass


class ModelFitError(GridForecastingError):
    """Raised when a model fails to fit or its optimizer does not converge."""
    pass


class MissingCovariatesError(GridForecastingError):
    """
    Raised when a model with exogenous regressors is asked to forecast
    periods for which no covariate values were supplied.
    """
    pass
