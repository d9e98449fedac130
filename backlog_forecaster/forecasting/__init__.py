"""Monte Carlo backlog forecasting.

This package provides:
- The empirical duration table built from finished tasks (priors)
- A bootstrap sampler of durations per story point size (sampling)
- The Monte Carlo simulator and its quantile reduction (simulator, stats)
- Descriptive analytics of the historical durations (analytics)

Everything here runs on in-memory data; fetching tasks happens up front
through a TaskSource.
"""
