"""Significance testing of model error differences."""

from .significance import (
    SIGNIFICANCE_METHODS,
    compare_models,
    long_errors,
    resolve_pairs,
    test_difference,
)

__all__ = [
    "SIGNIFICANCE_METHODS",
    "compare_models",
    "long_errors",
    "resolve_pairs",
    "test_difference",
]
