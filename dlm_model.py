"""
Seasonal Forecaster - Dynamic Linear Model
------------------------------------------
State-space model made of a local linear trend and a trigonometric seasonal
component:

    y_t     = F theta_t + v_t,        v_t ~ N(0, V)
    theta_t = G theta_{t-1} + w_t,    w_t ~ N(0, W)

The trend block holds level and slope, each with its own noise variance.  The
seasonal block holds ``frequency // 2`` harmonics sharing one noise variance.
Unknown variances are estimated by maximising the Kalman filter likelihood over
log-variances.
"""

from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from scipy.optimize import minimize

from errors import ConvergenceError, DegenerateSeriesError
from forecasting import Forecast
from series import MonthlySeries

N_PARAMS = 4


@dataclass(frozen=True, eq=False)
class DLMSpec:
    """
    Immutable system matrices of a dynamic linear model.

    Attributes:
    -----------
    F : np.ndarray
        Observation vector, shape (k,)
    G : np.ndarray
        State transition matrix, shape (k, k)
    V : float
        Observation noise variance
    W : np.ndarray
        State noise covariance, shape (k, k)
    m0, C0 : np.ndarray
        Prior mean and covariance of the initial state
    """
    F: np.ndarray
    G: np.ndarray
    V: float
    W: np.ndarray
    m0: np.ndarray
    C0: np.ndarray

    def __post_init__(self):
        for name in ('F', 'G', 'W', 'm0', 'C0'):
            value = np.array(getattr(self, name), dtype=float)
            value.setflags(write=False)
            object.__setattr__(self, name, value)

    @property
    def state_dim(self) -> int:
        return len(self.F)


def _harmonic_block(j: int, frequency: int) -> np.ndarray:
    omega = 2.0 * np.pi * j / frequency
    return np.array([[np.cos(omega), np.sin(omega)],
                     [-np.sin(omega), np.cos(omega)]])


def build_dlm(params: Sequence[float], frequency: int = 12, prior_variance: float = 1e7) -> DLMSpec:
    """
    Build the trend + trigonometric seasonal model for a parameter vector.

    Parameters:
    -----------
    params : sequence of float
        ``[log V, log W_level, log W_slope, log W_seasonal]``
    frequency : int
        Seasonal period
    prior_variance : float
        Diagonal of the (vague) initial state covariance

    Returns:
    --------
    DLMSpec
        System matrices; state is ``[level, slope, a_1, b_1, ..., a_H, b_H]``
        with ``H = frequency // 2``
    """
    params = np.asarray(params, dtype=float)
    if params.shape != (N_PARAMS,):
        raise ValueError(f"Expected {N_PARAMS} log-variance parameters, got shape {params.shape}")

    n_harmonics = frequency // 2
    k = 2 + 2 * n_harmonics

    F = np.zeros(k)
    F[0] = 1.0
    F[2::2] = 1.0

    G = np.zeros((k, k))
    G[:2, :2] = [[1.0, 1.0], [0.0, 1.0]]
    for j in range(1, n_harmonics + 1):
        i = 2 * j
        G[i:i + 2, i:i + 2] = _harmonic_block(j, frequency)

    variances = np.exp(params)
    W = np.diag(np.concatenate([variances[1:3], np.full(2 * n_harmonics, variances[3])]))

    return DLMSpec(F=F, G=G, V=float(variances[0]), W=W,
                   m0=np.zeros(k), C0=np.eye(k) * prior_variance)


@dataclass
class FilterResult:
    """
    Kalman filter output.

    ``m`` and ``C`` have ``n + 1`` entries; entry 0 is the prior.  ``a`` and
    ``R`` are the one-step state predictions, ``f`` and ``Q`` the one-step
    observation predictions and their variances.
    """
    m: np.ndarray
    C: np.ndarray
    a: np.ndarray
    R: np.ndarray
    f: np.ndarray
    Q: np.ndarray
    y: np.ndarray
    log_likelihood: float

    @property
    def innovations(self) -> np.ndarray:
        return self.y - self.f


def kalman_filter(spec: DLMSpec, y) -> FilterResult:
    """Forward filtering pass with the Gaussian prediction-error likelihood."""
    y = np.asarray(y, dtype=float)
    n, k = len(y), spec.state_dim
    F, G, W, V = spec.F, spec.G, spec.W, spec.V
    identity = np.eye(k)

    m = np.zeros((n + 1, k))
    C = np.zeros((n + 1, k, k))
    a = np.zeros((n, k))
    R = np.zeros((n, k, k))
    f = np.zeros(n)
    Q = np.zeros(n)
    m[0], C[0] = spec.m0, spec.C0
    log_likelihood = 0.0

    for t in range(n):
        a[t] = G @ m[t]
        R[t] = G @ C[t] @ G.T + W
        f[t] = F @ a[t]
        RF = R[t] @ F
        Q[t] = F @ RF + V
        if not np.isfinite(Q[t]) or Q[t] <= 0:
            raise DegenerateSeriesError(f"Non-positive prediction variance {Q[t]} at t={t}")

        error = y[t] - f[t]
        gain = RF / Q[t]
        m[t + 1] = a[t] + gain * error
        # Joseph form keeps C symmetric positive semi-definite
        reduction = identity - np.outer(gain, F)
        C[t + 1] = reduction @ R[t] @ reduction.T + V * np.outer(gain, gain)
        log_likelihood -= 0.5 * (np.log(2.0 * np.pi * Q[t]) + error ** 2 / Q[t])

    return FilterResult(m=m, C=C, a=a, R=R, f=f, Q=Q, y=y, log_likelihood=float(log_likelihood))


def kalman_smoother(spec: DLMSpec, filtered: FilterResult) -> Tuple[np.ndarray, np.ndarray]:
    """
    Rauch-Tung-Striebel backward pass.

    Returns:
    --------
    tuple
        Smoothed state means (n + 1, k) and covariances (n + 1, k, k); entry 0
        refers to the initial state
    """
    n = len(filtered.a)
    G = spec.G
    s = filtered.m.copy()
    S = filtered.C.copy()

    for t in range(n - 1, -1, -1):
        # J = C_t G' R_{t+1}^{-1}, with R symmetric
        J = np.linalg.solve(filtered.R[t], G @ filtered.C[t]).T
        s[t] = filtered.m[t] + J @ (s[t + 1] - filtered.a[t])
        S[t] = filtered.C[t] + J @ (S[t + 1] - filtered.R[t]) @ J.T

    return s, S


def negative_log_likelihood(params, y, frequency: int = 12, prior_variance: float = 1e7) -> float:
    spec = build_dlm(params, frequency, prior_variance)
    return -kalman_filter(spec, y).log_likelihood


@dataclass
class DLMFit:
    series: MonthlySeries
    params: np.ndarray
    spec: DLMSpec
    filtered: FilterResult
    smoothed_states: np.ndarray
    smoothed_covariances: np.ndarray
    optimizer: object
    name: str = 'DLM (local linear trend + trigonometric seasonal)'

    @property
    def log_likelihood(self) -> float:
        return self.filtered.log_likelihood

    @property
    def variances(self) -> dict:
        values = np.exp(self.params)
        return {'observation': values[0], 'level': values[1], 'slope': values[2], 'seasonal': values[3]}

    @property
    def n_params(self) -> int:
        return N_PARAMS

    @property
    def aic(self) -> float:
        return -2.0 * self.log_likelihood + 2.0 * self.n_params

    @property
    def bic(self) -> float:
        return -2.0 * self.log_likelihood + np.log(len(self.series)) * self.n_params

    @property
    def residuals(self) -> pd.Series:
        """One-step forecast errors, dropping the first ``state_dim`` start-up periods."""
        errors = self.filtered.innovations
        burn = min(self.spec.state_dim, len(errors) - 1)
        return pd.Series(errors, index=self.series.index()).iloc[burn:]


def fit_dlm(series: MonthlySeries,
            initial_params: Optional[Sequence[float]] = None,
            method: str = 'Nelder-Mead',
            max_iter: int = 4000,
            log_variance_bounds: Tuple[float, float] = (-25.0, 25.0),
            prior_variance: float = 1e7) -> DLMFit:
    """
    Estimate the model variances by maximum likelihood, then filter and smooth.

    Parameters:
    -----------
    series : MonthlySeries
        Observed series
    initial_params : sequence of float, optional
        Starting log-variances (zero vector by default)
    method : str
        ``scipy.optimize.minimize`` method
    max_iter : int
        Iteration budget of the optimiser
    log_variance_bounds : tuple
        Lower and upper bound for every log-variance
    prior_variance : float
        Diagonal of the initial state covariance

    Returns:
    --------
    DLMFit
        Fitted model with filtered and smoothed states

    Raises:
    -------
    ConvergenceError
        If the optimiser reports failure
    """
    y = series.values
    if len(y) < 2 * series.frequency:
        raise DegenerateSeriesError(
            f"Need at least two seasons ({2 * series.frequency} observations) for the DLM, got {len(y)}")
    if np.ptp(y) == 0:
        raise DegenerateSeriesError("Series has zero variance; DLM likelihood is undefined")

    x0 = np.zeros(N_PARAMS) if initial_params is None else np.asarray(initial_params, dtype=float)
    print(f"\nEstimating DLM variances on {len(y)} observations ({method})...")

    options = {'maxiter': max_iter}
    if method == 'Nelder-Mead':
        options['maxfev'] = 2 * max_iter
        options['initial_simplex'] = np.vstack([x0, x0 + np.eye(N_PARAMS)])

    result = minimize(
        negative_log_likelihood, x0,
        args=(y, series.frequency, prior_variance),
        method=method,
        bounds=[log_variance_bounds] * N_PARAMS,
        options=options
    )
    if not result.success:
        raise ConvergenceError('DLM', str(result.message))

    spec = build_dlm(result.x, series.frequency, prior_variance)
    filtered = kalman_filter(spec, y)
    smoothed_states, smoothed_covariances = kalman_smoother(spec, filtered)

    fit = DLMFit(series=series, params=np.asarray(result.x), spec=spec, filtered=filtered,
                 smoothed_states=smoothed_states, smoothed_covariances=smoothed_covariances,
                 optimizer=result)
    print("Estimated variances: " + ', '.join(f"{k}={v:.4g}" for k, v in fit.variances.items()))
    print(f"DLM logLik={fit.log_likelihood:.2f}, AIC={fit.aic:.2f}")
    return fit


def decompose(fit: DLMFit) -> pd.DataFrame:
    """Smoothed trend and seasonal components at every observed period."""
    states = fit.smoothed_states[1:]
    seasonal_F = fit.spec.F.copy()
    seasonal_F[:2] = 0.0
    trend = states[:, 0]
    seasonal = states @ seasonal_F
    return pd.DataFrame({
        'observed': fit.series.values,
        'trend': trend,
        'slope': states[:, 1],
        'seasonal': seasonal,
        'irregular': fit.series.values - trend - seasonal
    }, index=fit.series.index())


def forecast_dlm(fit: DLMFit, horizon: int) -> Forecast:
    """
    Propagate the last filtered state ``horizon`` steps without observations.

    The standard error is ``sqrt(F R F' + V)`` at each step.
    """
    spec = fit.spec
    m = fit.filtered.m[-1]
    C = fit.filtered.C[-1]
    means = np.zeros(horizon)
    variances = np.zeros(horizon)

    for step in range(horizon):
        m = spec.G @ m
        C = spec.G @ C @ spec.G.T + spec.W
        means[step] = spec.F @ m
        variances[step] = spec.F @ C @ spec.F + spec.V

    return Forecast.after(fit.series, means, np.sqrt(variances), model=fit.name)
