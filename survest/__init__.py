"""
SurvEst - Weighted Survey Estimation

A Python package for design-based estimates of means, proportions and
totals from weighted survey data, with Taylor, bootstrap and jackknife
variance, Kish design effects and winsorization.
"""

from .core import (
    EstimationOptions,
    SurveyEstimate,
    WeightVariable,
    EmptySampleError,
    T_TABLE,
    critical_value,
)
from .estimation import (
    SurveyEstimator,
    calculate_weighted_mean,
    calculate_weighted_proportion,
    calculate_weighted_total,
    export_estimates,
)
from .cleaner import winsorize, weight_summary

__version__ = "1.0.0"
__all__ = [
    "EstimationOptions",
    "SurveyEstimate",
    "WeightVariable",
    "EmptySampleError",
    "T_TABLE",
    "critical_value",
    "SurveyEstimator",
    "calculate_weighted_mean",
    "calculate_weighted_proportion",
    "calculate_weighted_total",
    "export_estimates",
    "winsorize",
    "weight_summary",
]
