"""
Seasonal Forecaster - Configuration
-----------------------------------
Project-wide settings for the monthly forecasting analysis: where the data
lives, how it is interpreted, which candidate models are tried and where the
results are written.
"""

import copy
import os

# Project configuration
CONFIG = {
    'data': {
        'file_path': 'data/series.txt',
        'value_column': 2,  # third column of the table
        'start_year': 2010,
        'start_month': 1,
        'frequency': 12,
        'expected_rows': 120
    },
    'stationarity': {
        'lag': 1,
        'seasonal_lag': 12,
        'alpha': 0.05
    },
    'arima': {
        'candidates': [
            ((0, 1, 1), (0, 1, 0, 12)),
            ((0, 1, 0), (0, 1, 1, 12)),
            ((0, 1, 1), (0, 1, 1, 12)),
            ((1, 1, 1), (0, 1, 1, 12))
        ],
        'ljung_box_lags': [6, 12, 18, 24],
        'alpha': 0.05
    },
    'regression': {
        'max_ar_order': 3,
        'alpha': 0.05,
        'propagate_parameter_uncertainty': False
    },
    'dlm': {
        'initial_params': [0.0, 0.0, 0.0, 0.0],
        'method': 'Nelder-Mead',
        'max_iter': 4000,
        'log_variance_bounds': (-25.0, 25.0),
        'prior_variance': 1e7
    },
    'forecast': {
        'horizon': 6,
        'interval_z': 1.96,  # None derives z from level
        'level': 0.95
    },
    'backtest': {
        'train_years': 9,
        'test_periods': 12,
        'families': ['sarima', 'regression', 'dlm', 'mean']
    },
    'output': {
        'visualizations_dir': 'visualizations',
        'outputs_dir': 'outputs',
        'forecast_image': 'forecast_comparison.png',
        'backtest_image': 'backtest_comparison.png'
    }
}


def _merge(base, overrides):
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            _merge(base[key], value)
        else:
            base[key] = value
    return base


def get_config(overrides=None):
    """
    Return a private copy of the project configuration.

    Parameters:
    -----------
    overrides : dict, optional
        Nested dictionary whose values replace the defaults, section by section

    Returns:
    --------
    dict
        Configuration dictionary
    """
    config = copy.deepcopy(CONFIG)
    if overrides:
        _merge(config, copy.deepcopy(overrides))
    return config


def create_output_directories(config=None):
    """Create the output directories named in the configuration."""
    config = config or CONFIG
    directories = [
        config['output']['visualizations_dir'],
        config['output']['outputs_dir'],
    ]

    for directory in directories:
        os.makedirs(directory, exist_ok=True)
