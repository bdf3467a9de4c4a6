"""
Seasonal Forecaster - Pipeline
------------------------------
Runs the complete analysis: load the series, check stationarity, fit the three
model families, forecast with prediction intervals, backtest and compare.

Usage:
    python pipeline.py                 # all steps
    python pipeline.py arima dlm       # selected steps (data is always loaded)
"""

import json
import os
import sys
import time
import warnings
from datetime import datetime

from arima_model import forecast_sarima, residual_diagnostics, search_sarima, select_orders
from backtesting import default_forecasters, run_backtests, summarize_backtests
from compare_models import model_comparison_table, write_summary
from config import create_output_directories, get_config
from data_preparation import load_series, prepare_stationary
from dlm_model import decompose, fit_dlm, forecast_dlm
from errors import ForecastingError
from forecasting import z_for_level
from regression_model import fit_regression_arma, forecast_regression_arma
import visualization

warnings.filterwarnings('ignore')

ALL_STEPS = [
    'data_preparation',
    'arima',
    'regression',
    'dlm',
    'backtesting',
    'comparison'
]


def interval_z(forecast_config):
    """Interval multiplier: ``interval_z`` when set, else derived from ``level``."""
    if forecast_config.get('interval_z') is not None:
        return forecast_config['interval_z']
    return z_for_level(forecast_config['level'])


def _step_data_preparation(state, config):
    series = state['series']
    viz_dir = config['output']['visualizations_dir']
    stationarity = config['stationarity']

    report = prepare_stationary(series, stationarity['lag'], stationarity['seasonal_lag'],
                                stationarity['alpha'])
    state['stationarity'] = report

    visualization.plot_series(series, output_dir=viz_dir)
    visualization.plot_differenced(series, report.differenced,
                                   title='First and Seasonal Difference', output_dir=viz_dir)
    visualization.plot_acf_pacf(report.differenced.values, title='Differenced Series', output_dir=viz_dir)


def _step_arima(state, config):
    arima = config['arima']
    horizon = config['forecast']['horizon']
    viz_dir = config['output']['visualizations_dir']

    table, best = search_sarima(state['series'], select_orders(arima['candidates']),
                                arima['ljung_box_lags'], arima['alpha'])
    residual_diagnostics(best.diagnostic_residuals, arima['ljung_box_lags'], arima['alpha'], title=best.name)
    visualization.plot_residual_diagnostics(best.diagnostic_residuals, title=best.name, output_dir=viz_dir)

    state['sarima_candidates'] = table
    state['fits']['sarima'] = best
    state['forecasts']['sarima'] = forecast_sarima(best, horizon)


def _step_regression(state, config):
    regression = config['regression']
    horizon = config['forecast']['horizon']
    viz_dir = config['output']['visualizations_dir']

    fit = fit_regression_arma(state['series'], regression['max_ar_order'], regression['alpha'])
    residual_diagnostics(fit.arma.results.resid, config['arima']['ljung_box_lags'], regression['alpha'],
                         title=fit.name)
    visualization.plot_acf_pacf(fit.residuals.to_numpy(), title='Regression Residuals', output_dir=viz_dir)
    visualization.plot_residual_diagnostics(fit.arma.results.resid, title='Regression ARMA', output_dir=viz_dir)

    state['lr_comparisons'] = fit.comparisons
    state['fits']['regression'] = fit
    state['forecasts']['regression'] = forecast_regression_arma(
        fit, horizon, regression['propagate_parameter_uncertainty'])


def _step_dlm(state, config):
    dlm = config['dlm']
    horizon = config['forecast']['horizon']
    viz_dir = config['output']['visualizations_dir']

    fit = fit_dlm(state['series'], dlm['initial_params'], dlm['method'], dlm['max_iter'],
                  tuple(dlm['log_variance_bounds']), dlm['prior_variance'])
    residual_diagnostics(fit.residuals, config['arima']['ljung_box_lags'], title=fit.name)
    visualization.plot_decomposition(decompose(fit), output_dir=viz_dir)
    visualization.plot_residual_diagnostics(fit.residuals, title='DLM', output_dir=viz_dir)

    state['fits']['dlm'] = fit
    state['forecasts']['dlm'] = forecast_dlm(fit, horizon)


def _step_backtesting(state, config):
    backtest = config['backtest']
    series = state['series']
    train_periods = backtest['train_years'] * series.frequency

    sarima_order = None
    if 'sarima' in state['fits']:
        best = state['fits']['sarima']
        sarima_order = (best.order, best.seasonal_order)

    forecasters = default_forecasters(config, sarima_order)
    results = run_backtests(series, backtest['families'], train_periods, backtest['test_periods'], forecasters)
    state['backtests'] = results
    state['backtest_summary'] = summarize_backtests(results)

    visualization.plot_backtests(series, results, output_dir=config['output']['visualizations_dir'],
                                 filename=config['output']['backtest_image'])


def _step_comparison(state, config):
    output = config['output']
    z = interval_z(config['forecast'])

    comparison = model_comparison_table(state['fits'], state.get('backtests'))
    state['comparison'] = comparison

    if state['forecasts']:
        visualization.plot_forecasts(state['series'], state['forecasts'], z=z,
                                     output_dir=output['visualizations_dir'],
                                     filename=output['forecast_image'])

    write_summary(output['outputs_dir'],
                  sarima_candidates=state.get('sarima_candidates'),
                  lr_comparisons=state.get('lr_comparisons'),
                  comparison=comparison,
                  forecasts=state['forecasts'],
                  z=z)


STEP_FUNCTIONS = {
    'data_preparation': _step_data_preparation,
    'arima': _step_arima,
    'regression': _step_regression,
    'dlm': _step_dlm,
    'backtesting': _step_backtesting,
    'comparison': _step_comparison,
}


def run_pipeline(steps=None, config=None):
    """
    Run the complete pipeline or specific steps.

    Parameters:
    -----------
    steps : list of str or None
        Steps to run, or None to run all steps
    config : dict, optional
        Project configuration (see ``config.get_config``)

    Returns:
    --------
    dict
        Pipeline state: series, fits, forecasts, tables and the run status
    """
    start_time = time.time()
    config = config or get_config()
    create_output_directories(config)

    if steps is None:
        steps = ALL_STEPS
    for step in steps:
        if step not in ALL_STEPS:
            print(f"Warning: Unknown step '{step}'. Skipping.")
    steps = [step for step in ALL_STEPS if step in steps]

    print("=" * 80)
    print("SEASONAL FORECASTER - PIPELINE")
    print("=" * 80)
    print(f"Running pipeline steps: {', '.join(steps)}")
    print("-" * 80)

    state = {'fits': {}, 'forecasts': {}, 'status': 'completed', 'failed_step': None}

    data = config['data']
    try:
        state['series'] = load_series(data['file_path'], data['value_column'], data['start_year'],
                                      data['start_month'], data['frequency'], data['expected_rows'])
    except (ForecastingError, OSError) as e:
        print(f"Error loading data: {e}")
        state['status'] = 'failed'
        state['failed_step'] = 'load'
        steps = []

    for number, step in enumerate(steps, start=1):
        print(f"\nSTEP {number}: {step.replace('_', ' ').upper()}")
        try:
            STEP_FUNCTIONS[step](state, config)
            print(f"{step} completed successfully.")
        except ForecastingError as e:
            print(f"Error in {step}: {e}")
            state['status'] = 'failed'
            state['failed_step'] = step
            break

    elapsed_time = time.time() - start_time
    print("\n" + "=" * 80)
    print(f"PIPELINE {state['status'].upper()} IN {elapsed_time:.2f} SECONDS")
    print("=" * 80)

    pipeline_record = {
        'timestamp': datetime.now().strftime('%Y-%m-%d %H:%M:%S'),
        'steps_executed': steps,
        'execution_time_seconds': elapsed_time,
        'status': state['status'],
        'failed_step': state['failed_step']
    }
    with open(os.path.join(config['output']['outputs_dir'], 'pipeline_record.json'), 'w') as f:
        json.dump(pipeline_record, f, indent=2)

    return state


def main():
    """Main function to run the pipeline."""
    if len(sys.argv) > 1:
        run_pipeline(sys.argv[1:])
    else:
        run_pipeline()


if __name__ == "__main__":
    main()
