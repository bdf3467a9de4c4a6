#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Seasonal ARIMA Modeling
-----------------------
Fits SARIMA(p,d,q)x(P,D,Q,s) models by maximum likelihood and selects among a
list of candidate orders:
1. Degeneracy check of the differenced series
2. Parameter estimation
3. Diagnostic checking (Ljung-Box, Jarque-Bera)
4. Ranking by residual whiteness, AIC and parsimony
5. Forecasting with standard errors
"""

from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from scipy import stats
from statsmodels.stats.diagnostic import acorr_ljungbox
from statsmodels.tsa.statespace.sarimax import SARIMAX

from errors import ConvergenceError, DegenerateSeriesError
from forecasting import Forecast
from series import MonthlySeries

Order = Tuple[int, int, int]
SeasonalOrder = Tuple[int, int, int, int]


def model_name(order: Order, seasonal_order: SeasonalOrder) -> str:
    return f"SARIMA{tuple(order)}{tuple(seasonal_order)}"


def aic(log_likelihood: float, n_params: int) -> float:
    """
    Akaike Information Criterion.

    ``n_params`` counts the AR and MA coefficients; the innovation variance is
    added as one more estimated parameter.
    """
    return -2.0 * log_likelihood + 2.0 * (n_params + 1)


def bic(log_likelihood: float, n_params: int, nobs: int) -> float:
    """Bayesian Information Criterion, counting the innovation variance."""
    return -2.0 * log_likelihood + np.log(nobs) * (n_params + 1)


@dataclass
class SarimaFit:
    order: Order
    seasonal_order: SeasonalOrder
    series: MonthlySeries
    results: object
    log_likelihood: float
    n_params: int
    aic: float
    bic: float
    residuals: pd.Series
    burn: int

    @property
    def name(self) -> str:
        return model_name(self.order, self.seasonal_order)

    @property
    def params(self) -> pd.Series:
        return self.results.params

    @property
    def coefficients(self) -> pd.Series:
        """AR/MA coefficients, without the innovation variance."""
        return self.results.params.drop('sigma2', errors='ignore')

    @property
    def diagnostic_residuals(self) -> pd.Series:
        """Residuals after the diffuse start-up periods."""
        return self.residuals.iloc[self.burn:]


def _check_differenced_variance(series: MonthlySeries, order: Order, seasonal_order: SeasonalOrder):
    d = order[1]
    D, s = seasonal_order[1], seasonal_order[3]
    values = series.values
    for _ in range(d):
        values = np.diff(values)
    for _ in range(D):
        values = values[s:] - values[:-s]
    n_coef = order[0] + order[2] + seasonal_order[0] + seasonal_order[2]
    if len(values) <= n_coef + 1:
        raise DegenerateSeriesError(
            f"Only {len(values)} observations remain after differencing for {model_name(order, seasonal_order)}")
    if np.ptp(values) == 0:
        raise DegenerateSeriesError(
            f"Differenced series for {model_name(order, seasonal_order)} has zero variance")


def fit_sarima(series: MonthlySeries, order: Order, seasonal_order: SeasonalOrder = (0, 0, 0, 12),
               verbose: bool = True) -> SarimaFit:
    """
    Fit a seasonal ARIMA model by maximum likelihood.

    Parameters:
    -----------
    series : MonthlySeries
        Observed series
    order : tuple
        (p, d, q) non-seasonal order
    seasonal_order : tuple
        (P, D, Q, s) seasonal order

    Returns:
    --------
    SarimaFit
        Estimated model with residuals and information criteria

    Raises:
    -------
    DegenerateSeriesError
        If the differenced series is constant or too short
    ConvergenceError
        If the likelihood optimiser does not converge
    """
    order = tuple(order)
    seasonal_order = tuple(seasonal_order)
    name = model_name(order, seasonal_order)
    _check_differenced_variance(series, order, seasonal_order)

    if verbose:
        print(f"\nFitting {name} on {len(series)} observations...")

    model = SARIMAX(series.to_pandas(), order=order, seasonal_order=seasonal_order)
    results = model.fit(disp=False)

    if not results.mle_retvals.get('converged', True):
        raise ConvergenceError(name, str(results.mle_retvals.get('warnflag', '')))
    if not np.isfinite(results.llf):
        raise ConvergenceError(name, f"non-finite log-likelihood {results.llf}")

    llf = float(results.llf)
    n_params = len(results.params) - 1
    burn = order[1] + seasonal_order[1] * seasonal_order[3]
    nobs = int(results.nobs) - burn
    fit = SarimaFit(
        order=order,
        seasonal_order=seasonal_order,
        series=series,
        results=results,
        log_likelihood=llf,
        n_params=n_params,
        aic=aic(llf, n_params),
        bic=bic(llf, n_params, nobs),
        residuals=results.resid,
        burn=burn
    )

    if verbose:
        print(f"{name}: logLik={llf:.2f}, AIC={fit.aic:.2f}, BIC={fit.bic:.2f}")
    return fit


def ljung_box_pvalues(residuals, lags: Sequence[int] = (6, 12, 18, 24)) -> dict:
    """Ljung-Box p-values at each lag shorter than the residual sequence."""
    values = np.asarray(residuals, dtype=float)
    usable = [lag for lag in lags if lag < len(values)]
    if not usable:
        return {}
    lb_test = acorr_ljungbox(values, lags=usable, return_df=True)
    return {int(lag): float(p) for lag, p in zip(usable, lb_test['lb_pvalue'])}


def residual_diagnostics(residuals, lags: Sequence[int] = (6, 12, 18, 24), alpha: float = 0.05,
                         title: str = '') -> dict:
    """
    Ljung-Box and Jarque-Bera checks of a residual sequence.

    Autocorrelated or non-normal residuals are reported, never raised.
    """
    values = np.asarray(residuals, dtype=float)
    print(f"\n--- Residual Diagnostics {title} ---".rstrip())

    lb_pvalues = ljung_box_pvalues(values, lags)
    for lag, p in lb_pvalues.items():
        print(f"Ljung-Box p-value (lag {lag}): {p:.4f}")
    min_p = min(lb_pvalues.values()) if lb_pvalues else np.nan
    is_white = bool(lb_pvalues) and min_p > alpha
    if is_white:
        print("Indication: No significant autocorrelation detected in residuals.")
    else:
        print("Indication: Significant autocorrelation present in residuals. Model may need order adjustment.")

    jb_stat, jb_pvalue = stats.jarque_bera(values)
    print(f"Jarque-Bera p-value: {jb_pvalue:.4f}")
    if jb_pvalue <= alpha:
        print("Indication: Residuals may not be normally distributed.")

    return {
        'ljung_box': lb_pvalues,
        'lb_min_pvalue': float(min_p),
        'is_white': is_white,
        'jarque_bera_stat': float(jb_stat),
        'jarque_bera_pvalue': float(jb_pvalue),
        'residual_mean': float(values.mean()),
        'residual_std': float(values.std(ddof=1)) if len(values) > 1 else np.nan
    }


def rank_candidates(table: pd.DataFrame) -> pd.DataFrame:
    """
    Order candidate models best first.

    White residuals (all Ljung-Box p-values above the threshold) come first,
    then lower AIC, then fewer parameters.  Rows without an AIC (failed fits)
    sort last.
    """
    ranked = table.copy()
    if 'is_white' not in ranked.columns:
        ranked['is_white'] = True
    ranked['is_white'] = ranked['is_white'].fillna(False).astype(bool)
    ranked['_failed'] = ranked['aic'].isna()
    ranked = ranked.sort_values(
        by=['_failed', 'is_white', 'aic', 'n_params'],
        ascending=[True, False, True, True],
        kind='mergesort'
    )
    return ranked.drop(columns='_failed')


def _format_coefficients(coefficients: pd.Series) -> str:
    return ', '.join(f"{name}={value:.4f}" for name, value in coefficients.items())


def search_sarima(series: MonthlySeries,
                  candidates: List[Tuple[Order, SeasonalOrder]],
                  lags: Sequence[int] = (6, 12, 18, 24),
                  alpha: float = 0.05) -> Tuple[pd.DataFrame, SarimaFit]:
    """
    Fit every candidate order and pick the best one.

    Parameters:
    -----------
    series : MonthlySeries
        Observed series
    candidates : list
        (order, seasonal_order) pairs to try
    lags : sequence of int
        Ljung-Box lags used to judge residual whiteness
    alpha : float
        Ljung-Box significance threshold

    Returns:
    --------
    tuple
        Ranked comparison table and the best fitted model
    """
    print(f"\nEvaluating {len(candidates)} SARIMA candidates...")

    rows = []
    fits = {}
    last_error = None
    for order, seasonal_order in candidates:
        name = model_name(order, seasonal_order)
        try:
            fit = fit_sarima(series, order, seasonal_order)
        except (ConvergenceError, DegenerateSeriesError) as e:
            print(f"  {name} failed: {e}")
            last_error = e
            rows.append({
                'model': name, 'order': tuple(order), 'seasonal_order': tuple(seasonal_order),
                'coefficients': '', 'log_likelihood': np.nan, 'n_params': np.nan,
                'aic': np.nan, 'bic': np.nan, 'lb_min_pvalue': np.nan,
                'is_white': False, 'note': f"failed: {e}"
            })
            continue

        lb_pvalues = ljung_box_pvalues(fit.diagnostic_residuals, lags)
        min_p = min(lb_pvalues.values()) if lb_pvalues else np.nan
        is_white = bool(lb_pvalues) and min_p > alpha
        fits[name] = fit
        rows.append({
            'model': name,
            'order': fit.order,
            'seasonal_order': fit.seasonal_order,
            'coefficients': _format_coefficients(fit.coefficients),
            'log_likelihood': fit.log_likelihood,
            'n_params': fit.n_params,
            'aic': fit.aic,
            'bic': fit.bic,
            'lb_min_pvalue': min_p,
            'is_white': is_white,
            'note': 'residuals white' if is_white else 'residual autocorrelation remains'
        })

    if not fits:
        raise last_error

    results = rank_candidates(pd.DataFrame(rows)).reset_index(drop=True)

    print("\nCandidates ranked by residual whiteness, AIC and parsimony:")
    print(results[['model', 'log_likelihood', 'aic', 'bic', 'lb_min_pvalue', 'note']].to_string(index=False))

    best_name = results.iloc[0]['model']
    if not results.iloc[0]['is_white']:
        print("WARNING: No candidate has white residuals; choosing the lowest AIC.")
    print(f"\nBest model: {best_name} with AIC={fits[best_name].aic:.3f}")

    return results, fits[best_name]


def forecast_sarima(fit: SarimaFit, horizon: int) -> Forecast:
    """Point forecasts and standard errors ``horizon`` steps past the data."""
    prediction = fit.results.get_forecast(steps=horizon)
    return Forecast.after(
        fit.series,
        prediction.predicted_mean.to_numpy(),
        np.sqrt(np.asarray(prediction.var_pred_mean, dtype=float)),
        model=fit.name
    )


def select_orders(candidates: Optional[list]) -> List[Tuple[Order, SeasonalOrder]]:
    """Normalise configured candidate pairs to tuples."""
    return [(tuple(order), tuple(seasonal)) for order, seasonal in (candidates or [])]
