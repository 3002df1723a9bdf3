"""
Basic Analysis Example

Demonstrates weighted means, proportions and totals with the three
variance methods, winsorization and CSV export.
"""

import pandas as pd
import numpy as np
from survest import (
    EstimationOptions,
    SurveyEstimator,
    export_estimates,
    weight_summary,
    winsorize,
)

# Create synthetic household survey data
np.random.seed(42)
n_households = 2000

data = pd.DataFrame({
    'REGION': np.random.choice(['North', 'South', 'East'], n_households),
    'TENURE': np.random.choice(['owner', 'renter', 'other'], n_households, p=[0.6, 0.35, 0.05]),
    'HHSIZE': np.random.randint(1, 7, n_households),
    'INCOME': np.random.lognormal(10.5, 0.6, n_households),
    'WEIGHT': np.random.uniform(50, 400, n_households),
})

# A few unusable responses
data['INCOME'] = data['INCOME'].astype(object)
data.loc[:24, 'INCOME'] = None
data.loc[25:29, 'INCOME'] = 'refused'

print("="*80)
print("SURVEST BASIC ANALYSIS EXAMPLE")
print("="*80)

print("\n1. Weight Diagnostics")
print("-"*80)
for key, value in weight_summary(data, 'WEIGHT').items():
    print(f"  {key}: {value:.3f}" if isinstance(value, float) else f"  {key}: {value}")

print("\n2. Winsorize Income at the 5th / 95th Percentiles")
print("-"*80)
data = winsorize(data, 'INCOME', 0.05, 0.95, verbose=True)

print("\n3. Weighted Means with Taylor Variance")
print("-"*80)
estimator = SurveyEstimator(data, weight_column='WEIGHT')
means = estimator.estimate(['INCOME', 'HHSIZE'], kind='mean', display=True)

print("\n4. Compare Variance Methods for Mean Income")
print("-"*80)
for method in ['taylor', 'bootstrap', 'jackknife']:
    options = EstimationOptions(weighted=True, variance_method=method, random_state=42)
    est = SurveyEstimator(data, 'WEIGHT', options).estimate('INCOME')[0]
    print(f"  {method:<10} SE = {est.standard_error:10.4f}  "
          f"95% CI = [{est.ci_lower:,.2f}, {est.ci_upper:,.2f}]")

print("\n5. Share of Renters")
print("-"*80)
print(f"  Categories: {estimator.categories('TENURE')}")
shares = estimator.estimate('TENURE', kind='proportion', category='renter', display=True)

print("\n6. Total Household Members with Finite Population Correction")
print("-"*80)
options = EstimationOptions(weighted=True, finite_population_correction=True,
                            population_size=400000)
totals = SurveyEstimator(data, 'WEIGHT', options).estimate('HHSIZE', kind='total', display=True)

print("\n7. Export")
print("-"*80)
table = export_estimates(means + shares + totals)
print(table.to_string(index=False))

print("\n" + "="*80)
print("EXAMPLE COMPLETE")
print("="*80)
