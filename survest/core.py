"""
SurvEst - Weighted Survey Estimation

Core configuration and result types for design-based survey estimation:
- Estimation options (confidence level, variance method, FPC)
- Survey estimate records
- Weight variable descriptions
- Critical value table

Version: 1.0.0
"""

import numpy as np
from typing import Any, Dict, Mapping, Optional, Tuple
from dataclasses import dataclass, asdict, fields


VARIANCE_METHODS = ('taylor', 'bootstrap', 'jackknife')
ESTIMATION_KINDS = ('mean', 'proportion', 'total')
WEIGHT_TYPES = ('design', 'post_stratification', 'raking')

DEFAULT_BOOTSTRAP_REPLICATES = 1000
DEFAULT_CRITICAL_VALUE = 1.96

# Student-t critical values keyed by half-alpha, one row per df bucket:
# (df > 30, df > 20, df > 10, otherwise)
T_TABLE = {
    0.025: (1.96, 2.086, 2.228, 2.571),
    0.05: (1.645, 1.725, 1.812, 2.015),
    0.01: (2.576, 2.845, 3.169, 3.707),
}

# camelCase keys accepted by EstimationOptions.from_mapping
_OPTION_ALIASES = {
    'confidenceLevel': 'confidence_level',
    'varianceMethod': 'variance_method',
    'finitePopulationCorrection': 'finite_population_correction',
    'populationSize': 'population_size',
    'bootstrapReplicates': 'bootstrap_replicates',
    'randomState': 'random_state',
    'exactCriticalValues': 'exact_critical_values',
}


class EmptySampleError(ValueError):
    """Raised when no valid observations remain for a variable"""
    
    def __init__(self, variable: str, message: Optional[str] = None):
        self.variable = variable
        super().__init__(message or f"No valid values found for variable: {variable}")


@dataclass(frozen=True)
class EstimationOptions:
    """Configuration for a single estimation call"""
    weighted: bool = False  # Apply design-effect inflation to the SE
    confidence_level: float = 0.95
    variance_method: str = 'taylor'  # taylor, bootstrap or jackknife
    finite_population_correction: bool = False
    population_size: Optional[float] = None
    bootstrap_replicates: int = DEFAULT_BOOTSTRAP_REPLICATES
    random_state: Optional[int] = None  # Seed for bootstrap resampling
    exact_critical_values: bool = False  # Use scipy t quantiles instead of T_TABLE
    
    def __post_init__(self):
        if self.bootstrap_replicates < 2:
            raise ValueError(
                f"bootstrap_replicates must be at least 2, got {self.bootstrap_replicates}"
            )
    
    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any]) -> 'EstimationOptions':
        """
        Build options from a plain dict
        
        Accepts snake_case field names as well as the camelCase keys used by
        front-end configuration payloads (e.g. ``confidenceLevel``).
        
        Parameters
        ----------
        mapping : mapping
            Option names and values
        
        Returns
        -------
        EstimationOptions
        """
        known = {f.name for f in fields(cls)}
        kwargs = {}
        for key, value in mapping.items():
            name = _OPTION_ALIASES.get(key, key)
            if name not in known:
                raise ValueError(f"Unknown estimation option: {key}. Available: {sorted(known)}")
            kwargs[name] = value
        return cls(**kwargs)
    
    def fpc_applies(self, sample_size: int) -> bool:
        """Whether the finite population correction should be used"""
        return bool(
            self.finite_population_correction
            and self.population_size
            and self.population_size > sample_size
        )


@dataclass(frozen=True)
class SurveyEstimate:
    """Weighted point estimate with its sampling uncertainty"""
    variable: str
    estimate: float
    standard_error: float
    margin_of_error: float
    confidence_interval: Tuple[float, float]
    sample_size: int
    effective_sample_size: float
    design_effect: float
    
    @property
    def ci_lower(self) -> float:
        return self.confidence_interval[0]
    
    @property
    def ci_upper(self) -> float:
        return self.confidence_interval[1]
    
    def to_dict(self) -> Dict[str, Any]:
        """Flatten to a dict with separate CI bounds"""
        result = asdict(self)
        del result['confidence_interval']
        result['ci_lower'] = self.ci_lower
        result['ci_upper'] = self.ci_upper
        return result


@dataclass
class WeightVariable:
    """Weight column applied to a dataset"""
    column: str
    type: str = 'design'  # design, post_stratification or raking
    description: str = ''
    
    def __post_init__(self):
        if self.type not in WEIGHT_TYPES:
            raise ValueError(f"Unknown weight type: {self.type}. Available: {list(WEIGHT_TYPES)}")


def critical_value(alpha: float, df: float) -> float:
    """
    Look up the critical value for a half-alpha and degrees of freedom
    
    Coarse approximation of the Student-t table: df is bucketed at
    30, 20 and 10. Alphas not in ``T_TABLE`` fall back to 1.96.
    
    Parameters
    ----------
    alpha : float
        Half of (1 - confidence level), e.g. 0.025 for 95%
    df : float
        Degrees of freedom
    
    Returns
    -------
    float
        Critical value
    """
    row = T_TABLE.get(round(alpha, 10))
    if row is None:
        return DEFAULT_CRITICAL_VALUE
    
    if df > 30:
        return row[0]
    elif df > 20:
        return row[1]
    elif df > 10:
        return row[2]
    return row[3]


def half_alpha(confidence_level: float) -> float:
    """Half of the two-sided alpha, rounded to absorb float noise"""
    return round((1 - confidence_level) / 2, 10)


def kish_design_effect(weights: np.ndarray) -> float:
    """
    Kish's design effect from weight dispersion
    
    deff = n * sum(w^2) / sum(w)^2, never reported below 1.
    """
    weights = np.asarray(weights, dtype=float)
    n = len(weights)
    total = weights.sum()
    if n == 0 or total <= 0:
        return 1.0
    deff = n * np.sum(weights ** 2) / total ** 2
    return max(1.0, float(deff))
