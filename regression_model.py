"""
Seasonal Forecaster - Trend + Seasonal Regression with ARMA Errors
------------------------------------------------------------------
Ordinary least squares on a linear time index and month-of-year dummies,
followed by a low-order ARMA model of the regression residuals.

The residual order starts at the PACF cut-off and is confirmed by
likelihood-ratio tests against the nested simpler candidate.
"""

from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np
import pandas as pd
import statsmodels.api as sm
from scipy.stats import chi2, norm
from statsmodels.tsa.statespace.sarimax import SARIMAX
from statsmodels.tsa.stattools import pacf

from errors import ConvergenceError, DegenerateSeriesError
from forecasting import Forecast
from series import MonthlySeries


def design_matrix(series: MonthlySeries, start: int = 0, n: Optional[int] = None) -> pd.DataFrame:
    """
    Regressors for observations ``start .. start + n - 1``.

    Columns are a constant, the time index ``t`` (1 for the first observation)
    and one dummy per season except the first, which is the baseline.  Positions
    past the end of the series are allowed, for forecasting.
    """
    n = len(series) - start if n is None else n
    seasons = series.seasons(start, n)
    dummies = pd.get_dummies(
        pd.Categorical(seasons, categories=range(1, series.frequency + 1)),
        prefix='month', drop_first=True
    ).astype(float)
    dummies.insert(0, 'time', np.arange(start + 1, start + n + 1, dtype=float))
    return sm.add_constant(dummies, has_constant='add')


def fit_trend_seasonal(series: MonthlySeries):
    """OLS fit of the series on trend and seasonal dummies."""
    X = design_matrix(series)
    if len(series) <= X.shape[1]:
        raise DegenerateSeriesError(
            f"Need more than {X.shape[1]} observations for the trend+seasonal regression, got {len(series)}")
    y = pd.Series(series.values, index=X.index)
    return sm.OLS(y, X).fit()


@dataclass
class ArmaFit:
    order: Tuple[int, int, int]
    results: object

    @property
    def log_likelihood(self) -> float:
        return float(self.results.llf)

    @property
    def n_params(self) -> int:
        return self.order[0] + self.order[2]

    @property
    def name(self) -> str:
        return f"ARMA({self.order[0]},{self.order[2]})"


def fit_residual_arma(residuals: pd.Series, order: Tuple[int, int, int],
                      start_from: Optional[ArmaFit] = None) -> ArmaFit:
    """
    Zero-mean ARMA fit of regression residuals.

    Parameters:
    -----------
    residuals : pd.Series
        Residual sequence
    order : tuple
        (p, 0, q) order
    start_from : ArmaFit, optional
        Nested simpler fit whose estimates seed the optimiser; coefficients it
        lacks start at zero

    Raises:
    -------
    ConvergenceError
        If the likelihood optimiser does not converge
    """
    model = SARIMAX(residuals, order=order, trend='n')

    start_params = None
    if start_from is not None:
        previous = start_from.results.params
        start_params = np.array([previous.get(name, 0.0) for name in model.param_names])

    results = model.fit(start_params=start_params, disp=False)
    fit = ArmaFit(order=tuple(order), results=results)
    if not results.mle_retvals.get('converged', True):
        raise ConvergenceError(fit.name, str(results.mle_retvals.get('warnflag', '')))
    return fit


def likelihood_ratio_test(simpler: ArmaFit, richer: ArmaFit, df: int = 1) -> Tuple[float, float]:
    """
    Likelihood-ratio test of a nested pair.

    Returns:
    --------
    tuple
        (2 * (logLik_richer - logLik_simpler), chi-squared upper tail p-value)
    """
    # Nested optimum can only improve; negative values are optimiser noise.
    statistic = max(2.0 * (richer.log_likelihood - simpler.log_likelihood), 0.0)
    return statistic, float(chi2.sf(statistic, df))


def select_ar_order_by_pacf(residuals, max_order: int = 3, alpha: float = 0.05) -> int:
    """Number of leading partial autocorrelations outside the +/- z/sqrt(n) band."""
    values = np.asarray(residuals, dtype=float)
    nlags = min(max_order, len(values) // 2 - 1)
    if nlags < 1:
        return 0
    partial = pacf(values, nlags=nlags)[1:]
    bound = norm.ppf(1 - alpha / 2) / np.sqrt(len(values))

    order = 0
    for value in partial:
        if abs(value) <= bound:
            break
        order += 1
    return order


def select_residual_arma(residuals: pd.Series, max_order: int = 3,
                         alpha: float = 0.05) -> Tuple[ArmaFit, pd.DataFrame]:
    """
    Choose the residual ARMA order.

    Start at the PACF cut-off, drop AR terms while the likelihood-ratio test
    cannot reject the simpler model, then test one added MA term.

    Returns:
    --------
    tuple
        Selected fit and a table of the likelihood-ratio comparisons
    """
    p = select_ar_order_by_pacf(residuals, max_order, alpha)
    print(f"PACF cut-off suggests AR order {p}")

    comparisons = []

    def compare(simpler, richer):
        statistic, p_value = likelihood_ratio_test(simpler, richer, df=1)
        accepted = p_value < alpha
        comparisons.append({
            'simpler': simpler.name,
            'richer': richer.name,
            'loglik_simpler': simpler.log_likelihood,
            'loglik_richer': richer.log_likelihood,
            'lr_statistic': statistic,
            'p_value': p_value,
            'richer_accepted': accepted
        })
        print(f"LR test {simpler.name} vs {richer.name}: statistic={statistic:.4f}, "
              f"p-value={p_value:.4f} -> {'keep ' + richer.name if accepted else 'keep ' + simpler.name}")
        return accepted

    current = None
    while p > 0:
        simpler = fit_residual_arma(residuals, (p - 1, 0, 0))
        richer = fit_residual_arma(residuals, (p, 0, 0), start_from=simpler)
        if compare(simpler, richer):
            current = richer
            break
        current = simpler
        p -= 1
    if current is None:
        current = fit_residual_arma(residuals, (0, 0, 0))

    with_ma = fit_residual_arma(residuals, (current.order[0], 0, 1), start_from=current)
    if compare(current, with_ma):
        current = with_ma

    print(f"Selected residual model: {current.name}")
    return current, pd.DataFrame(comparisons)


@dataclass
class RegressionArmaFit:
    series: MonthlySeries
    ols: object
    arma: ArmaFit
    comparisons: pd.DataFrame

    @property
    def name(self) -> str:
        return f"Trend+Seasonal regression + {self.arma.name}"

    @property
    def intercept(self) -> float:
        return float(self.ols.params['const'])

    @property
    def slope(self) -> float:
        return float(self.ols.params['time'])

    @property
    def seasonal_offsets(self) -> np.ndarray:
        """Offset of each season relative to the baseline (first season = 0)."""
        offsets = np.zeros(self.series.frequency)
        for season in range(2, self.series.frequency + 1):
            offsets[season - 1] = self.ols.params[f'month_{season}']
        return offsets

    @property
    def residuals(self) -> pd.Series:
        return self.ols.resid

    @property
    def n_params(self) -> int:
        return len(self.ols.params) + self.arma.n_params

    @property
    def log_likelihood(self) -> float:
        """Residual-ARMA likelihood, conditional on the OLS estimates."""
        return self.arma.log_likelihood

    @property
    def aic(self) -> float:
        return -2.0 * self.log_likelihood + 2.0 * (self.n_params + 1)

    @property
    def bic(self) -> float:
        return -2.0 * self.log_likelihood + np.log(len(self.series)) * (self.n_params + 1)


def fit_regression_arma(series: MonthlySeries, max_ar_order: int = 3,
                        alpha: float = 0.05) -> RegressionArmaFit:
    """
    Fit the trend+seasonal regression and model its residuals as ARMA.

    Parameters:
    -----------
    series : MonthlySeries
        Observed series
    max_ar_order : int
        Largest AR order considered for the residuals
    alpha : float
        Significance level for the PACF band and likelihood-ratio tests

    Returns:
    --------
    RegressionArmaFit
        Regression, residual model and the order-selection comparisons
    """
    print(f"\nFitting trend+seasonal regression on {len(series)} observations...")
    ols = fit_trend_seasonal(series)
    print(f"Intercept={ols.params['const']:.4f}, slope={ols.params['time']:.4f}, R²={ols.rsquared:.4f}")

    residuals = ols.resid.copy()
    residuals.index = series.index()
    arma, comparisons = select_residual_arma(residuals, max_ar_order, alpha)

    return RegressionArmaFit(series=series, ols=ols, arma=arma, comparisons=comparisons)


def forecast_regression_arma(fit: RegressionArmaFit, horizon: int,
                             propagate_parameter_uncertainty: bool = False) -> Forecast:
    """
    Extrapolate trend and seasonal offsets and add the residual-ARMA forecast.

    By default the standard error is that of the residual-ARMA forecast alone:
    the trend and seasonal coefficients are treated as known, so the interval
    is an approximation that understates uncertainty.  With
    ``propagate_parameter_uncertainty`` the variance of the estimated
    regression mean is added.
    """
    n = len(fit.series)
    X_future = design_matrix(fit.series, start=n, n=horizon)
    structural = np.asarray(fit.ols.predict(X_future), dtype=float)

    arma_prediction = fit.arma.results.get_forecast(steps=horizon)
    arma_mean = np.asarray(arma_prediction.predicted_mean, dtype=float)
    variance = np.asarray(arma_prediction.var_pred_mean, dtype=float)

    if propagate_parameter_uncertainty:
        mean_prediction = fit.ols.get_prediction(X_future)
        variance = variance + np.asarray(mean_prediction.se_mean, dtype=float) ** 2

    return Forecast.after(fit.series, structural + arma_mean, np.sqrt(variance), model=fit.name)
