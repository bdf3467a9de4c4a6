"""
Seasonal Forecaster - Errors
----------------------------
Named failure conditions raised by the data and modelling layers.

Residual autocorrelation and other statistical inadequacies are not errors;
they are reported as diagnostic outcomes.
"""


class ForecastingError(Exception):
    """Base class for all failures raised by this project."""


class DataShapeError(ForecastingError, ValueError):
    """Input table has the wrong shape or holds non-numeric values."""


class DegenerateSeriesError(ForecastingError, ValueError):
    """Series is too short or has zero variance for the requested operation."""


class ConvergenceError(ForecastingError, RuntimeError):
    """An iterative estimator stopped without converging."""

    def __init__(self, model, message=''):
        self.model = model
        self.message = message
        text = f"{model} estimation did not converge"
        if message:
            text = f"{text}: {message}"
        super().__init__(text)
