"""Classifier adapters."""

from .classifiers import (
    EstimatorClassifier,
    LogisticModel,
    RandomForestModel,
    MajorityModel,
    build_classifier,
)

__all__ = [
    "EstimatorClassifier",
    "LogisticModel",
    "RandomForestModel",
    "MajorityModel",
    "build_classifier",
]
