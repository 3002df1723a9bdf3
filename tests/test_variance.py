"""
Tests for variance estimators
"""

import numpy as np
import pytest
from survest.core import VARIANCE_METHODS
from survest.variance import (
    bootstrap_variance,
    calculate_variance,
    jackknife_variance,
    taylor_variance,
    weighted_mean,
)


def normal_sample(n=500, seed=2024):
    """i.i.d. normal draws with unit weights"""
    rng = np.random.default_rng(seed)
    return rng.normal(100, 15, n), np.ones(n)


def naive_jackknife(values, weights):
    """Leave-one-out by full recomputation"""
    n = len(values)
    means = []
    for i in range(n):
        keep = np.arange(n) != i
        means.append(weighted_mean(values[keep], weights[keep]))
    means = np.array(means)
    return (n - 1) / n * np.sum((means - means.mean()) ** 2)


class TestTaylor:
    
    def test_known_values(self):
        values = np.array([2.0, 4.0, 6.0])
        weights = np.ones(3)
        
        assert taylor_variance(values, weights, 4.0) == pytest.approx(8 / 3)
    
    def test_weighted(self):
        values = np.array([10.0, 20.0])
        weights = np.array([1.0, 3.0])
        
        # (1 * 7.5^2 + 3 * 2.5^2) / 4
        assert taylor_variance(values, weights, 17.5) == pytest.approx(18.75)


class TestJackknife:
    
    def test_matches_leave_one_out_recomputation(self):
        rng = np.random.default_rng(3)
        values = rng.normal(0, 1, 40)
        weights = rng.uniform(0.2, 4, 40)
        
        assert jackknife_variance(values, weights) == pytest.approx(naive_jackknife(values, weights))
    
    def test_dominant_weight(self):
        values = np.array([1.0, 2.0, 3.0])
        weights = np.array([1e17, 1.0, 1.0])
        
        result = jackknife_variance(values, weights)
        
        assert np.isfinite(result)
        assert result == pytest.approx(1.0)
    
    def test_large_magnitude_values(self):
        rng = np.random.default_rng(8)
        offsets = rng.normal(0, 50, 2000)
        weights = rng.uniform(0.5, 3, 2000)
        
        # Variance is shift invariant; the shifted sample has no precision loss
        expected = naive_jackknife(offsets, weights)
        
        assert jackknife_variance(1e9 + offsets, weights) == pytest.approx(expected, rel=1e-7)
    
    def test_single_observation(self):
        assert jackknife_variance(np.array([5.0]), np.array([2.0])) == 0.0
    
    def test_agrees_with_taylor_on_large_sample(self):
        values, weights = normal_sample()
        n = len(values)
        target = values.var(ddof=1) / n
        
        mean = weighted_mean(values, weights)
        taylor = taylor_variance(values, weights, mean) / n
        jackknife = jackknife_variance(values, weights)
        
        assert abs(taylor - target) / target < 0.10
        assert abs(jackknife - target) / target < 0.10


class TestBootstrap:
    
    def test_seeded_is_reproducible(self):
        values, weights = normal_sample(100)
        mean = weighted_mean(values, weights)
        
        first = bootstrap_variance(values, weights, mean, random_state=11)
        second = bootstrap_variance(values, weights, mean, random_state=11)
        
        assert first == second
    
    def test_accepts_generator(self):
        values, weights = normal_sample(50)
        mean = weighted_mean(values, weights)
        rng = np.random.default_rng(5)
        
        assert bootstrap_variance(values, weights, mean, replicates=50, random_state=rng) > 0
    
    def test_close_to_variance_of_mean(self):
        values, weights = normal_sample()
        n = len(values)
        mean = weighted_mean(values, weights)
        target = values.var(ddof=1) / n
        
        result = bootstrap_variance(values, weights, mean, random_state=1)
        
        assert abs(result - target) / target < 0.20
    
    def test_centered_on_supplied_estimate(self):
        values, weights = normal_sample(100)
        mean = weighted_mean(values, weights)
        
        centred = bootstrap_variance(values, weights, mean, random_state=4)
        shifted = bootstrap_variance(values, weights, mean + 10, random_state=4)
        
        # Same resamples; deviations measured from a point 10 units away
        assert shifted > centred + 10 ** 2 * 0.9
    
    def test_constant_values(self):
        values = np.full(20, 3.0)
        weights = np.linspace(1, 2, 20)
        
        result = bootstrap_variance(values, weights, 3.0, replicates=30, random_state=0)
        assert result == pytest.approx(0.0, abs=1e-20)


class TestDispatch:
    
    def test_dispatch(self):
        values, weights = normal_sample(60)
        mean = weighted_mean(values, weights)
        
        assert calculate_variance(values, weights, mean, 'taylor') == taylor_variance(values, weights, mean)
        assert calculate_variance(values, weights, mean, 'jackknife') == jackknife_variance(values, weights)
        assert calculate_variance(values, weights, mean, 'bootstrap', random_state=9) == \
            bootstrap_variance(values, weights, mean, random_state=9)
    
    def test_known_methods(self):
        assert VARIANCE_METHODS == ('taylor', 'bootstrap', 'jackknife')
    
    def test_unknown_method_falls_back_to_taylor(self):
        values, weights = normal_sample(60)
        mean = weighted_mean(values, weights)
        
        assert calculate_variance(values, weights, mean, 'rao-wu') == taylor_variance(values, weights, mean)
