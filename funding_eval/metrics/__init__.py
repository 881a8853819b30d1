"""Metrics module for classifier evaluation."""

from .metrics import (
    ErrorRateMetric,
    AccuracyMetric,
    PrecisionMetric,
    RecallMetric,
    F1Metric,
    AUCMetric,
    compute_all_metrics,
    create_standard_metrics,
    labels_from_probability,
    threshold_averaged_roc,
    roc_area,
)
from .aggregation import (
    aggregate,
    model_roc_curve,
    per_fold_auc,
    per_fold_error_rates,
)

__all__ = [
    "ErrorRateMetric",
    "AccuracyMetric",
    "PrecisionMetric",
    "RecallMetric",
    "F1Metric",
    "AUCMetric",
    "compute_all_metrics",
    "create_standard_metrics",
    "labels_from_probability",
    "threshold_averaged_roc",
    "roc_area",
    "aggregate",
    "model_roc_curve",
    "per_fold_auc",
    "per_fold_error_rates",
]
