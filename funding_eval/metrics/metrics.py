"""Metric implementations for success classifier evaluation.

Provides the error rate and AUC used for model selection, standard
classification metrics for holdout reports, and threshold-averaged ROC
curves across folds.
"""

from dataclasses import dataclass

import numpy as np
import polars as pl
from sklearn.metrics import (
    accuracy_score,
    auc,
    f1_score,
    precision_score,
    recall_score,
    roc_auc_score,
)

from funding_eval.domain.errors import UndefinedMetric
from funding_eval.domain.protocols import IMetric


DEFAULT_THRESHOLD = 0.5


def labels_from_probability(probability: np.ndarray, threshold: float = DEFAULT_THRESHOLD) -> np.ndarray:
    """Decision rule: positive when the probability is strictly above the threshold."""
    return (np.asarray(probability) > threshold).astype(np.int8)


@dataclass(frozen=True)
class ErrorRateMetric:
    """Fraction of records whose predicted label differs from the observed one."""

    @property
    def name(self) -> str:
        return "error_rate"

    def compute(self, y_true: np.ndarray, y_pred: np.ndarray) -> float:
        if len(y_true) == 0:
            raise UndefinedMetric("Error rate of an empty set is undefined")
        return float(np.mean(np.asarray(y_true) != np.asarray(y_pred)))


@dataclass(frozen=True)
class AccuracyMetric:

    @property
    def name(self) -> str:
        return "accuracy"

    def compute(self, y_true: np.ndarray, y_pred: np.ndarray) -> float:
        return float(accuracy_score(y_true, y_pred))


@dataclass(frozen=True)
class PrecisionMetric:

    @property
    def name(self) -> str:
        return "precision"

    def compute(self, y_true: np.ndarray, y_pred: np.ndarray) -> float:
        return float(precision_score(y_true, y_pred, zero_division=0))


@dataclass(frozen=True)
class RecallMetric:

    @property
    def name(self) -> str:
        return "recall"

    def compute(self, y_true: np.ndarray, y_pred: np.ndarray) -> float:
        return float(recall_score(y_true, y_pred, zero_division=0))


@dataclass(frozen=True)
class F1Metric:

    @property
    def name(self) -> str:
        return "f1"

    def compute(self, y_true: np.ndarray, y_pred: np.ndarray) -> float:
        return float(f1_score(y_true, y_pred, zero_division=0))


@dataclass(frozen=True)
class AUCMetric:
    """Area under the ROC curve.

    ``y_pred`` holds positive-class probabilities. Raises UndefinedMetric
    when only one label is present.
    """

    @property
    def name(self) -> str:
        return "auc"

    def compute(self, y_true: np.ndarray, y_pred: np.ndarray) -> float:
        if len(np.unique(y_true)) < 2:
            raise UndefinedMetric("AUC is undefined when only one class is present")
        return float(roc_auc_score(y_true, y_pred))


def create_standard_metrics() -> list[IMetric]:
    """Label-based metrics reported for every evaluation."""
    return [
        ErrorRateMetric(),
        AccuracyMetric(),
        PrecisionMetric(),
        RecallMetric(),
        F1Metric(),
    ]


def compute_all_metrics(
    y_true: np.ndarray,
    y_pred: np.ndarray,
    metrics: list[IMetric] | None = None,
) -> dict[str, float]:
    """Compute all specified metrics.

    Args:
        y_true: Observed labels
        y_pred: Predicted labels
        metrics: List of metric instances. If None, uses standard metrics.

    Returns:
        Dictionary mapping metric names to computed values
    """
    if metrics is None:
        metrics = create_standard_metrics()

    return {metric.name: metric.compute(y_true, y_pred) for metric in metrics}


def roc_points(
    y_true: np.ndarray,
    y_score: np.ndarray,
    thresholds: np.ndarray,
) -> tuple[np.ndarray, np.ndarray]:
    """False and true positive rates when scores at or above each threshold are positive."""
    y_true = np.asarray(y_true)
    y_score = np.asarray(y_score)
    positives = y_true == 1
    n_pos = positives.sum()
    n_neg = len(y_true) - n_pos
    if n_pos == 0 or n_neg == 0:
        raise UndefinedMetric("ROC is undefined when only one class is present")

    flagged = y_score[None, :] >= thresholds[:, None]
    tpr = (flagged & positives[None, :]).sum(axis=1) / n_pos
    fpr = (flagged & ~positives[None, :]).sum(axis=1) / n_neg
    return fpr, tpr


def threshold_grid(n_thresholds: int = 101) -> np.ndarray:
    """Descending cutoffs from above 1 down to 0."""
    return np.concatenate([[np.inf], np.linspace(1.0, 0.0, n_thresholds)])


def threshold_averaged_roc(
    folds: list[tuple[np.ndarray, np.ndarray]],
    n_thresholds: int = 101,
) -> pl.DataFrame:
    """Average per-fold ROC points at a common set of thresholds.

    Each fold contributes equally regardless of its size. Folds with a single
    class are skipped.

    Args:
        folds: (y_true, y_score) pairs, one per fold
        n_thresholds: Number of evenly spaced cutoffs in [0, 1]

    Returns:
        DataFrame with threshold, fpr, tpr and the number of contributing folds
    """
    thresholds = threshold_grid(n_thresholds)
    fprs, tprs = [], []
    for y_true, y_score in folds:
        try:
            fpr, tpr = roc_points(y_true, y_score, thresholds)
        except UndefinedMetric:
            continue
        fprs.append(fpr)
        tprs.append(tpr)

    if not fprs:
        raise UndefinedMetric("No fold has both classes; ROC cannot be averaged")

    return pl.DataFrame({
        "threshold": thresholds,
        "fpr": np.mean(fprs, axis=0),
        "tpr": np.mean(tprs, axis=0),
        "n_folds": np.full(len(thresholds), len(fprs), dtype=np.int32),
    })


def roc_area(curve: pl.DataFrame) -> float:
    """Trapezoidal area under a threshold-averaged ROC curve."""
    return float(auc(curve["fpr"].to_numpy(), curve["tpr"].to_numpy()))
