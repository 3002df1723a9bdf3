"""
Estimation Functions for SurvEst

Weighted survey estimates with design-based uncertainty:
- Weighted means
- Weighted proportions
- Weighted totals
- Batch estimation over several variables with tabular export
"""

import numpy as np
import pandas as pd
from typing import Any, List, Mapping, Optional, Sequence, Union
from dataclasses import dataclass
from scipy import stats
import warnings

from .core import (
    ESTIMATION_KINDS,
    EmptySampleError,
    EstimationOptions,
    SurveyEstimate,
    WeightVariable,
    critical_value,
    half_alpha,
    kish_design_effect,
)
from .variance import calculate_variance, weighted_mean

Data = Union[pd.DataFrame, Sequence[Mapping[str, Any]]]

EXPORT_COLUMNS = [
    'Variable', 'Estimate', 'Standard Error', 'Margin of Error',
    'CI Lower', 'CI Upper', 'Sample Size', 'Design Effect',
]


@dataclass
class WeightedSample:
    """Observations that survived filtering, with their weights"""
    values: np.ndarray
    weights: np.ndarray
    n_rows: int  # Rows in the input before filtering
    
    @property
    def sample_size(self) -> int:
        return len(self.values)
    
    @property
    def n_excluded(self) -> int:
        return self.n_rows - self.sample_size
    
    @property
    def total_weight(self) -> float:
        return float(self.weights.sum())


def column_values(data: Data, column: str) -> pd.Series:
    """Raw values of a column; absent fields come back as None"""
    if isinstance(data, pd.DataFrame):
        if column not in data.columns:
            return pd.Series([None] * len(data), dtype=object)
        return data[column].reset_index(drop=True)
    return pd.Series([row.get(column) for row in data], dtype=object)


def parse_numeric(raw: pd.Series) -> np.ndarray:
    """Parse values to float; anything unparseable becomes NaN"""
    return pd.to_numeric(raw, errors='coerce').to_numpy(dtype=float, copy=True)


def _parse_weights(data: Data, weight_column: Optional[str]) -> np.ndarray:
    """Weights per row, 1.0 where there is no weight column or the value does not parse"""
    if weight_column is None:
        return np.ones(len(data))
    weights = parse_numeric(column_values(data, weight_column))
    return np.where(np.isnan(weights), 1.0, weights)


def _matches(value: Any, category: Any) -> bool:
    # True == 1 in Python; a bool only matches a bool
    if isinstance(value, (bool, np.bool_)) != isinstance(category, (bool, np.bool_)):
        return False
    try:
        return bool(value == category)
    except (TypeError, ValueError):
        # pd.NA and array-likes have no truth value
        return False


def extract_weighted_values(data: Data,
                            variable: str,
                            weight_column: Optional[str] = None) -> WeightedSample:
    """
    Build the filtered weighted sample for a numeric variable
    
    Rows are dropped when the value does not parse as a finite number or
    the weight is not positive. Dropping is silent; the caller sees it only
    through ``sample_size`` / ``n_excluded``.
    
    Parameters
    ----------
    data : pd.DataFrame or list of dict
        Survey rows
    variable : str
        Target field
    weight_column : str, optional
        Weight field (unparseable weights count as 1)
    
    Returns
    -------
    WeightedSample
    """
    values = parse_numeric(column_values(data, variable))
    weights = _parse_weights(data, weight_column)
    
    mask = np.isfinite(values) & np.isfinite(weights) & (weights > 0)
    return WeightedSample(values=values[mask], weights=weights[mask], n_rows=len(values))


def extract_indicator_values(data: Data,
                             variable: str,
                             category: Any,
                             weight_column: Optional[str] = None) -> WeightedSample:
    """
    Build the filtered weighted sample of a 0/1 category indicator
    
    The indicator is 1 where ``row[variable] == category`` with no type
    coercion ("1" does not match 1). Rows are kept whenever the weight is
    positive.
    """
    raw = column_values(data, variable)
    values = np.array([1.0 if _matches(v, category) else 0.0 for v in raw], dtype=float)
    weights = _parse_weights(data, weight_column)
    
    mask = np.isfinite(weights) & (weights > 0)
    return WeightedSample(values=values[mask], weights=weights[mask], n_rows=len(values))


def finite_population_correction(sample_size: int, options: EstimationOptions) -> float:
    """sqrt((N - n) / (N - 1)) when the correction applies, else 1"""
    if not options.fpc_applies(sample_size):
        return 1.0
    N = options.population_size
    return float(np.sqrt((N - sample_size) / (N - 1)))


def margin_of_error(standard_error: float,
                    confidence_level: float,
                    df: float,
                    exact: bool = False) -> float:
    """
    Critical value times standard error
    
    Parameters
    ----------
    standard_error : float
        Adjusted standard error
    confidence_level : float
        e.g. 0.95
    df : float
        Degrees of freedom (sample size - 1)
    exact : bool, default False
        Use the continuous Student-t quantile instead of the lookup table
    """
    alpha = half_alpha(confidence_level)
    if exact:
        if not 0 < confidence_level < 1:
            raise ValueError(f"confidence_level must be in (0, 1), got {confidence_level}")
        t_value = float(stats.t.ppf(1 - alpha, max(df, 1)))
    else:
        t_value = critical_value(alpha, df)
    return t_value * standard_error


def _check_sample(sample: WeightedSample, variable: str):
    if sample.sample_size == 0:
        raise EmptySampleError(variable)
    if not sample.total_weight > 0:
        raise EmptySampleError(variable, f"Total weight is not positive for variable: {variable}")


def _build_estimate(label: str,
                    estimate: float,
                    variance: float,
                    sample: WeightedSample,
                    options: EstimationOptions,
                    clip_unit: bool = False) -> SurveyEstimate:
    """
    Turn a point estimate and its variance into a SurveyEstimate
    
    NOTE: ``variance`` is divided by the sample size here for every method.
    Bootstrap and jackknife already return the variance of the mean, so
    their standard errors come out roughly 1/sqrt(n) of the Taylor one.
    """
    n = sample.sample_size
    standard_error = np.sqrt(variance / n)
    
    design_effect = kish_design_effect(sample.weights) if options.weighted else 1.0
    effective_sample_size = n / design_effect
    fpc = finite_population_correction(n, options)
    
    adjusted_se = float(standard_error * np.sqrt(design_effect) * fpc)
    moe = margin_of_error(adjusted_se, options.confidence_level, n - 1,
                          exact=options.exact_critical_values)
    
    lower, upper = estimate - moe, estimate + moe
    if clip_unit:
        lower, upper = max(0.0, lower), min(1.0, upper)
    
    return SurveyEstimate(
        variable=label,
        estimate=estimate,
        standard_error=adjusted_se,
        margin_of_error=moe,
        confidence_interval=(lower, upper),
        sample_size=n,
        effective_sample_size=effective_sample_size,
        design_effect=design_effect,
    )


def calculate_weighted_mean(data: Data,
                            variable: str,
                            weight_column: Optional[str] = None,
                            options: Optional[EstimationOptions] = None) -> SurveyEstimate:
    """
    Weighted mean with standard error and confidence interval
    
    Parameters
    ----------
    data : pd.DataFrame or list of dict
        Survey rows
    variable : str
        Numeric variable to estimate
    weight_column : str, optional
        Weight variable; unit weights if omitted
    options : EstimationOptions, optional
        Confidence level, variance method, design effect and FPC settings
    
    Returns
    -------
    SurveyEstimate
    
    Raises
    ------
    EmptySampleError
        If no row has a parseable value with a positive weight
    """
    options = options or EstimationOptions()
    sample = extract_weighted_values(data, variable, weight_column)
    _check_sample(sample, variable)
    
    estimate = weighted_mean(sample.values, sample.weights)
    variance = calculate_variance(
        sample.values, sample.weights, estimate,
        method=options.variance_method,
        replicates=options.bootstrap_replicates,
        random_state=options.random_state,
    )
    return _build_estimate(variable, estimate, variance, sample, options)


def calculate_weighted_proportion(data: Data,
                                  variable: str,
                                  category: Any,
                                  weight_column: Optional[str] = None,
                                  options: Optional[EstimationOptions] = None) -> SurveyEstimate:
    """
    Weighted share of rows where ``variable`` equals ``category``
    
    Uses the binomial variance p(1 - p) whatever ``variance_method`` is set
    to. The confidence interval is clipped to [0, 1].
    """
    options = options or EstimationOptions()
    sample = extract_indicator_values(data, variable, category, weight_column)
    _check_sample(sample, variable)
    
    proportion = weighted_mean(sample.values, sample.weights)
    variance = proportion * (1 - proportion)
    return _build_estimate(f"{variable} ({category})", proportion, variance, sample,
                           options, clip_unit=True)


def calculate_weighted_total(data: Data,
                             variable: str,
                             weight_column: Optional[str] = None,
                             options: Optional[EstimationOptions] = None) -> SurveyEstimate:
    """
    Weighted population total
    
    The mean estimate scaled by the total weight of ALL rows, including rows
    whose value was excluded from the mean. Standard error and margin of
    error scale by the same factor; sample size and design effect pass
    through unchanged.
    
    NOTE: Rows with a non-positive weight still add that weight to the
    scaling total.
    """
    mean_estimate = calculate_weighted_mean(data, variable, weight_column, options)
    total_weight = float(_parse_weights(data, weight_column).sum())
    
    total = mean_estimate.estimate * total_weight
    total_se = mean_estimate.standard_error * total_weight
    total_moe = mean_estimate.margin_of_error * total_weight
    
    return SurveyEstimate(
        variable=f"Total {variable}",
        estimate=total,
        standard_error=total_se,
        margin_of_error=total_moe,
        confidence_interval=(total - total_moe, total + total_moe),
        sample_size=mean_estimate.sample_size,
        effective_sample_size=mean_estimate.effective_sample_size,
        design_effect=mean_estimate.design_effect,
    )


def estimates_to_frame(estimates: Sequence[SurveyEstimate]) -> pd.DataFrame:
    """One row per estimate, confidence interval split into two columns"""
    return pd.DataFrame([est.to_dict() for est in estimates])


def export_estimates(estimates: Sequence[SurveyEstimate],
                     path: Optional[str] = None) -> pd.DataFrame:
    """
    Build the export table and optionally write it as CSV
    
    Values are rounded to 4 decimals, the design effect to 3.
    
    Parameters
    ----------
    estimates : list of SurveyEstimate
        Estimates to export
    path : str, optional
        CSV destination; nothing is written if omitted
    
    Returns
    -------
    pd.DataFrame
        Export table with human-readable headers
    """
    rows = []
    for est in estimates:
        rows.append({
            'Variable': est.variable,
            'Estimate': round(est.estimate, 4),
            'Standard Error': round(est.standard_error, 4),
            'Margin of Error': round(est.margin_of_error, 4),
            'CI Lower': round(est.ci_lower, 4),
            'CI Upper': round(est.ci_upper, 4),
            'Sample Size': est.sample_size,
            'Design Effect': round(est.design_effect, 3),
        })
    table = pd.DataFrame(rows, columns=EXPORT_COLUMNS)
    
    if path is not None:
        table.to_csv(path, index=False)
    return table


class SurveyEstimator:
    """
    Batch estimation over several variables of one dataset
    
    Each variable is estimated independently: a variable with no usable
    observations is reported with a warning and skipped, the rest of the
    batch still completes.
    
    Example workflow:
        estimator = SurveyEstimator(data, weight_column='wt')
        estimates = estimator.estimate(['income', 'age'], kind='mean')
        table = export_estimates(estimates, 'survey_estimates.csv')
    """
    
    def __init__(self,
                 data: Data,
                 weight_column: Union[str, WeightVariable, None] = None,
                 options: Optional[EstimationOptions] = None):
        """
        Initialize SurveyEstimator
        
        Parameters
        ----------
        data : pd.DataFrame or list of dict
            Survey rows (copied, never modified)
        weight_column : str or WeightVariable, optional
            Weight variable
        options : EstimationOptions, optional
            Defaults to weighted estimation when a weight column is given
        """
        if isinstance(data, pd.DataFrame):
            self.data = data.copy()
        else:
            self.data = [dict(row) for row in data]
        
        if isinstance(weight_column, WeightVariable):
            self.weight_variable = weight_column
            weight_column = weight_column.column
        else:
            self.weight_variable = (
                WeightVariable(column=weight_column) if weight_column else None
            )
        self.weight_column = weight_column
        
        if self.weight_column is not None and self.weight_column not in self.columns:
            raise ValueError(f"Weight column '{self.weight_column}' not found in data")
        
        self.options = options or EstimationOptions(weighted=self.weight_column is not None)
    
    @property
    def columns(self) -> List[str]:
        """Column names, in order of first appearance"""
        if isinstance(self.data, pd.DataFrame):
            return list(self.data.columns)
        seen = {}
        for row in self.data:
            for key in row:
                seen.setdefault(key, None)
        return list(seen)
    
    def categories(self, variable: str, limit: int = 10) -> List[Any]:
        """First distinct non-empty values of a column, in order of appearance"""
        raw = column_values(self.data, variable)
        values = []
        for value in pd.unique(raw):
            if value is None or (not isinstance(value, str) and pd.isna(value)) or value == '':
                continue
            values.append(value)
            if len(values) >= limit:
                break
        return values
    
    def estimate(self,
                 variables: Union[str, Sequence[str]],
                 kind: str = 'mean',
                 category: Any = None,
                 display: bool = False) -> List[SurveyEstimate]:
        """
        Estimate every variable in turn
        
        Parameters
        ----------
        variables : str or list of str
            Variables to estimate
        kind : str, default 'mean'
            'mean', 'proportion' or 'total'
        category : any, optional
            Category to count (required for proportions)
        display : bool, default False
            Print the results table
        
        Returns
        -------
        list of SurveyEstimate
            One per variable that could be estimated
        """
        if kind not in ESTIMATION_KINDS:
            raise ValueError(f"Unknown estimation kind: {kind}. Available: {list(ESTIMATION_KINDS)}")
        if kind == 'proportion' and category is None:
            raise ValueError("A category is required for proportion estimates")
        
        variables = [variables] if isinstance(variables, str) else list(variables)
        
        results = []
        for variable in variables:
            try:
                if kind == 'mean':
                    est = calculate_weighted_mean(
                        self.data, variable, self.weight_column, self.options)
                elif kind == 'total':
                    est = calculate_weighted_total(
                        self.data, variable, self.weight_column, self.options)
                else:
                    est = calculate_weighted_proportion(
                        self.data, variable, category, self.weight_column, self.options)
            except EmptySampleError as e:
                warnings.warn(f"Estimation failed for {variable}: {str(e)}")
                continue
            results.append(est)
        
        if display:
            self._display_results(estimates_to_frame(results))
        
        return results
    
    def estimate_frame(self,
                       variables: Union[str, Sequence[str]],
                       kind: str = 'mean',
                       category: Any = None,
                       display: bool = False) -> pd.DataFrame:
        """Same as ``estimate`` but returns a DataFrame"""
        return estimates_to_frame(self.estimate(variables, kind, category, display))
    
    def _display_results(self, results: pd.DataFrame):
        """Display results table"""
        print("\n" + "="*80)
        print("SURVEY ESTIMATION RESULTS")
        print(f"  Variance method: {self.options.variance_method} | "
              f"Confidence level: {self.options.confidence_level:.0%}")
        print("="*80)
        if results.empty:
            print("No estimates could be computed")
        else:
            print(results.to_string(index=False))
        print("="*80 + "\n")
