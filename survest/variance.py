"""
Variance Estimators for SurvEst

Variance of a weighted mean on an unstructured weighted sample:
- Taylor (linearized, closed form)
- Bootstrap (resampling units with replacement)
- Jackknife (leave-one-out)
"""

import numpy as np
from typing import Optional, Union

from .core import DEFAULT_BOOTSTRAP_REPLICATES, VARIANCE_METHODS

# Resamples drawn per block, bounds memory to _BOOTSTRAP_CHUNK * n
_BOOTSTRAP_CHUNK = 100

# Leave-one-out denominators below this share of the total weight are recomputed
_CANCELLATION_TOLERANCE = 1e-6


def weighted_mean(values: np.ndarray, weights: np.ndarray) -> float:
    """Weighted arithmetic mean"""
    return float(np.sum(values * weights) / np.sum(weights))


def taylor_variance(values: np.ndarray, weights: np.ndarray, mean: float) -> float:
    """
    Linearized variance
    
    Weighted sum of squared deviations normalized by the total weight:
    sum(w * (x - mean)^2) / sum(w)
    """
    values = np.asarray(values, dtype=float)
    weights = np.asarray(weights, dtype=float)
    return float(np.sum(weights * (values - mean) ** 2) / np.sum(weights))


def bootstrap_variance(values: np.ndarray,
                       weights: np.ndarray,
                       mean: float,
                       replicates: int = DEFAULT_BOOTSTRAP_REPLICATES,
                       random_state: Optional[Union[int, np.random.Generator]] = None) -> float:
    """
    Bootstrap variance of the weighted mean
    
    Draws ``replicates`` resamples of size n with replacement; each drawn
    unit keeps its weight. The spread of the resample means is measured
    around the ORIGINAL estimate ``mean``, not around the average of the
    resample means.
    
    Parameters
    ----------
    values, weights : np.ndarray
        Filtered sample
    mean : float
        Point estimate the deviations are centred on
    replicates : int, default 1000
        Number of bootstrap resamples
    random_state : int or np.random.Generator, optional
        Seed or generator; None draws fresh entropy
    
    Returns
    -------
    float
        sum((m_b - mean)^2) / (replicates - 1)
    """
    values = np.asarray(values, dtype=float)
    weights = np.asarray(weights, dtype=float)
    n = len(values)
    rng = np.random.default_rng(random_state)
    
    sum_sq = 0.0
    remaining = replicates
    while remaining > 0:
        size = min(_BOOTSTRAP_CHUNK, remaining)
        idx = rng.integers(0, n, size=(size, n))
        w = weights[idx]
        means = np.sum(values[idx] * w, axis=1) / np.sum(w, axis=1)
        sum_sq += float(np.sum((means - mean) ** 2))
        remaining -= size
    
    return sum_sq / (replicates - 1)


def jackknife_variance(values: np.ndarray, weights: np.ndarray) -> float:
    """
    Delete-one jackknife variance of the weighted mean
    
    Leave-one-out means are updated incrementally from the full sums, so the
    cost is O(n):
        m_i = (sum(w*x) - w_i*x_i) / (sum(w) - w_i)
        var = (n - 1) / n * sum((m_i - mean(m))^2)
    
    NOTE: Values are centred on the weighted mean first; the variance is
    shift invariant and the small centred sums keep precision for
    large-magnitude values. Where one weight holds nearly all of the total,
    sum(w) - w_i cancels, so those leave-one-out means are recomputed
    directly from the remaining observations.
    """
    values = np.asarray(values, dtype=float)
    weights = np.asarray(weights, dtype=float)
    n = len(values)
    if n < 2:
        return 0.0
    
    centred = values - weighted_mean(values, weights)
    weighted_sum = np.sum(centred * weights)
    total_weight = np.sum(weights)
    
    denominators = total_weight - weights
    unstable = denominators <= _CANCELLATION_TOLERANCE * total_weight
    safe = np.where(unstable, 1.0, denominators)
    loo_means = (weighted_sum - centred * weights) / safe
    
    for i in np.flatnonzero(unstable):
        keep = np.arange(n) != i
        loo_means[i] = weighted_mean(centred[keep], weights[keep])
    
    jackknife_mean = loo_means.mean()
    
    return float((n - 1) / n * np.sum((loo_means - jackknife_mean) ** 2))


def calculate_variance(values: np.ndarray,
                       weights: np.ndarray,
                       mean: float,
                       method: str = 'taylor',
                       replicates: int = DEFAULT_BOOTSTRAP_REPLICATES,
                       random_state: Optional[Union[int, np.random.Generator]] = None) -> float:
    """Dispatch on variance method name; unknown names use Taylor"""
    if method not in VARIANCE_METHODS:
        method = 'taylor'
    
    if method == 'bootstrap':
        return bootstrap_variance(values, weights, mean,
                                  replicates=replicates, random_state=random_state)
    elif method == 'jackknife':
        return jackknife_variance(values, weights)
    return taylor_variance(values, weights, mean)
