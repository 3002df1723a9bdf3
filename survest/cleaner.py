"""
Data Cleaning Utilities for Survey Data

Pre-estimation treatment of survey variables:
- Winsorize extreme values to percentile bounds
- Summarize weight variability before applying a weight column
"""

import numpy as np
import pandas as pd
from typing import Any, Dict, List, Mapping, Sequence, Union
import warnings

from .core import EmptySampleError, kish_design_effect
from .estimation import column_values, parse_numeric

# Coefficient of variation above which weights are flagged as highly variable
HIGH_WEIGHT_CV = 0.5


def winsorize(data: Union[pd.DataFrame, Sequence[Mapping[str, Any]]],
              variable: str,
              lower_percentile: float = 0.05,
              upper_percentile: float = 0.95,
              verbose: bool = False) -> Union[pd.DataFrame, List[Dict[str, Any]]]:
    """
    Clip a numeric variable to nearest-rank percentile bounds
    
    The bounds are the sorted numeric values at positions
    floor(n * lower_percentile) and floor(n * upper_percentile); no
    interpolation. Values that do not parse as numbers are left untouched.
    
    Parameters
    ----------
    data : pd.DataFrame or list of dict
        Survey rows (not modified)
    variable : str
        Variable to winsorize
    lower_percentile : float, default 0.05
        Lower bound position, in [0, 1]
    upper_percentile : float, default 0.95
        Upper bound position, in [0, 1]
    verbose : bool, default False
        Print summary statistics
    
    Returns
    -------
    pd.DataFrame or list of dict
        New dataset of the same kind as ``data``
    """
    if not 0 <= lower_percentile <= upper_percentile <= 1:
        raise ValueError(
            f"Percentiles must satisfy 0 <= lower <= upper <= 1, "
            f"got {lower_percentile} and {upper_percentile}"
        )
    
    values = parse_numeric(column_values(data, variable))
    numeric_mask = ~np.isnan(values)
    sorted_values = np.sort(values[numeric_mask])
    n = len(sorted_values)
    
    if n == 0:
        if verbose:
            print(f"\nWinsorizing '{variable}': no numeric values, data returned unchanged")
        if isinstance(data, pd.DataFrame):
            return data.copy()
        return [dict(row) for row in data]
    
    lower_bound = sorted_values[min(int(np.floor(n * lower_percentile)), n - 1)]
    upper_bound = sorted_values[min(int(np.floor(n * upper_percentile)), n - 1)]
    clipped = np.clip(values, lower_bound, upper_bound)
    
    if verbose:
        n_low = int(np.sum(values[numeric_mask] < lower_bound))
        n_high = int(np.sum(values[numeric_mask] > upper_bound))
        print(f"\nWinsorizing '{variable}':")
        print(f"  Numeric values: {n:,} of {len(values):,} rows")
        print(f"  Bounds: [{lower_bound:.4f}, {upper_bound:.4f}] "
              f"(p{100*lower_percentile:g} / p{100*upper_percentile:g})")
        print(f"  Values clipped: {n_low:,} low, {n_high:,} high")
    
    if isinstance(data, pd.DataFrame):
        result = data.copy()
        if numeric_mask.all():
            result[variable] = clipped
        else:
            column = result[variable].to_numpy(dtype=object, copy=True)
            column[numeric_mask] = clipped[numeric_mask]
            result[variable] = column
        return result
    
    result = []
    for row, is_numeric, value in zip(data, numeric_mask, clipped):
        row = dict(row)
        if is_numeric:
            row[variable] = float(value)
        result.append(row)
    return result


def weight_summary(data: Union[pd.DataFrame, Sequence[Mapping[str, Any]]],
                   weight_column: str) -> Dict[str, float]:
    """
    Describe the distribution of a weight column
    
    Only positive numeric weights are counted. A coefficient of variation
    above 0.5 triggers a warning: highly variable weights inflate the
    design effect.
    
    Parameters
    ----------
    data : pd.DataFrame or list of dict
        Survey rows
    weight_column : str
        Weight variable
    
    Returns
    -------
    dict
        mean, std, min, max, count, n_rows, cv, design_effect
    """
    weights = parse_numeric(column_values(data, weight_column))
    n_rows = len(weights)
    weights = weights[np.isfinite(weights) & (weights > 0)]
    
    if len(weights) == 0:
        raise EmptySampleError(weight_column, f"No positive weights found in column: {weight_column}")
    
    mean = float(weights.mean())
    std = float(weights.std())  # population SD
    cv = std / mean
    
    if cv > HIGH_WEIGHT_CV:
        warnings.warn(
            f"High weight variability in '{weight_column}' (CV = {cv:.2f}). "
            "Consider trimming extreme weights."
        )
    
    return {
        'mean': mean,
        'std': std,
        'min': float(weights.min()),
        'max': float(weights.max()),
        'count': len(weights),
        'n_rows': n_rows,
        'cv': cv,
        'design_effect': kish_design_effect(weights),
    }
