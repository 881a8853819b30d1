import math

import numpy as np
import polars as pl
import pytest

from funding_eval.domain.errors import InvalidArgument, UndefinedMetric
from funding_eval.domain.results import ResultTable
from funding_eval.metrics.aggregation import aggregate, model_roc_curve, per_fold_error_rates
from funding_eval.metrics.metrics import (
    AUCMetric,
    ErrorRateMetric,
    compute_all_metrics,
    labels_from_probability,
    roc_area,
    threshold_averaged_roc,
)
from funding_eval.pipelines.cross_validation import run_cv
from funding_eval.splits.partitioning import partition


def _table(rows: list[tuple]) -> ResultTable:
    frame = pl.DataFrame(
        rows,
        schema=["fold", "model", "record_id", "observed", "predicted", "probability"],
        orient="row",
    )
    return ResultTable.from_frame(frame)


def test_decision_rule_is_strictly_above_threshold():
    assert labels_from_probability(np.array([0.2, 0.5, 0.51])).tolist() == [0, 0, 1]


def test_error_rate_metric():
    assert ErrorRateMetric().compute(np.array([1, 0, 1, 1]), np.array([1, 1, 1, 0])) == 0.5
    with pytest.raises(UndefinedMetric):
        ErrorRateMetric().compute(np.array([]), np.array([]))


def test_auc_metric_bounds_and_single_class():
    assert AUCMetric().compute(np.array([0, 0, 1, 1]), np.array([0.1, 0.2, 0.8, 0.9])) == 1.0
    assert AUCMetric().compute(np.array([0, 0, 1, 1]), np.array([0.9, 0.8, 0.2, 0.1])) == 0.0
    with pytest.raises(UndefinedMetric):
        AUCMetric().compute(np.array([1, 1, 1]), np.array([0.1, 0.5, 0.9]))


def test_compute_all_metrics_keys():
    metrics = compute_all_metrics(np.array([1, 0, 1, 0]), np.array([1, 0, 0, 0]))
    assert set(metrics) == {"error_rate", "accuracy", "precision", "recall", "f1"}
    assert metrics["error_rate"] == pytest.approx(0.25)
    assert metrics["accuracy"] == pytest.approx(0.75)


def test_always_zero_model_on_three_positives_has_error_point_three():
    observed = [1, 1, 1, 0, 0, 0, 0, 0, 0, 0]
    table = _table([(0, "zero", i, y, 0, None) for i, y in enumerate(observed)])

    errors = per_fold_error_rates(table.frame)
    assert errors["error_rate"].to_list() == [pytest.approx(0.3)]


def test_probability_rows_use_threshold_not_stored_label():
    table = _table([
        (0, "m", 1, 1, 0, 0.9),
        (0, "m", 2, 0, 1, 0.1),
        (0, "m", 3, 1, 1, 0.4),
        (0, "m", 4, 0, 0, 0.6),
    ])
    assert aggregate(table, threshold=0.5).mean_error_by_model["m"] == pytest.approx(0.5)
    assert aggregate(table, threshold=0.3).mean_error_by_model["m"] == pytest.approx(0.25)


def test_perfect_separation_gives_auc_one():
    rows = []
    for fold in range(3):
        for i in range(6):
            label = int(i >= 3)
            rows.append((fold, "perfect", fold * 10 + i, label, label, 0.1 + 0.8 * label))
    summary = aggregate(_table(rows))

    assert summary.auc_by_model["perfect"] == 1.0
    assert summary.mean_error_by_model["perfect"] == 0.0
    assert summary.roc_auc_threshold_averaged["perfect"] == pytest.approx(1.0)


def test_single_class_fold_is_flagged_not_zero():
    rows = [
        # Fold 0: both classes, perfectly ranked
        (0, "m", 1, 0, 0, 0.2), (0, "m", 2, 1, 1, 0.8),
        # Fold 1: positives only
        (1, "m", 3, 1, 1, 0.7), (1, "m", 4, 1, 1, 0.9),
    ]
    summary = aggregate(_table(rows))
    fold_auc = summary.fold_auc.sort("fold")

    assert fold_auc["auc_undefined"].to_list() == [False, True]
    assert fold_auc["reason"].to_list() == [None, "single_class"]
    assert summary.auc_by_model["m"] == 1.0
    assert summary.undefined_auc_folds == [(1, "m")]


def test_hard_label_model_has_no_auc():
    summary = aggregate(_table([(0, "majority", 1, 1, 0, None), (0, "majority", 2, 0, 0, None)]))

    assert summary.auc_by_model["majority"] is None
    assert summary.fold_auc["reason"].to_list() == ["no_probability"]
    assert summary.mean_error_by_model["majority"] == pytest.approx(0.5)


def test_aggregation_is_order_independent(projects, fast_specs):
    assignment = partition(projects, k=4, stratify_by="label", seed=3)
    results = run_cv(projects, assignment, fast_specs, seed=3)
    shuffled = ResultTable.from_frame(results.frame.sample(fraction=1.0, shuffle=True, seed=99))

    a = aggregate(results)
    b = aggregate(shuffled)

    assert a.per_fold_errors.equals(b.per_fold_errors)
    assert a.fold_auc.equals(b.fold_auc)
    assert a.mean_error_by_model == b.mean_error_by_model
    assert a.auc_by_model == b.auc_by_model


def test_error_rates_and_auc_are_bounded(projects, fast_specs):
    assignment = partition(projects, k=5, stratify_by="label", seed=8)
    summary = aggregate(run_cv(projects, assignment, fast_specs, seed=8))

    errors = summary.per_fold_errors["error_rate"].to_numpy()
    assert np.all((errors >= 0) & (errors <= 1))
    for model, auc in summary.auc_by_model.items():
        if auc is not None:
            assert 0.0 <= auc <= 1.0
    assert summary.models == ["forest", "logistic", "majority"]
    assert summary.per_fold_errors.height == 5 * 3


def test_aggregate_rejects_bad_input():
    with pytest.raises(InvalidArgument):
        aggregate(ResultTable())
    with pytest.raises(InvalidArgument):
        aggregate(_table([(0, "m", 1, 1, 1, 0.9)]), threshold=1.5)


def test_threshold_averaged_roc_shape():
    folds = [
        (np.array([0, 0, 1, 1]), np.array([0.1, 0.4, 0.35, 0.8])),
        (np.array([0, 1, 0, 1]), np.array([0.2, 0.9, 0.6, 0.7])),
        (np.array([1, 1]), np.array([0.5, 0.6])),
    ]
    curve = threshold_averaged_roc(folds, n_thresholds=11)

    assert curve.height == 12
    assert curve["n_folds"].to_list() == [2] * 12
    assert curve["fpr"][0] == 0.0 and curve["tpr"][0] == 0.0
    assert curve["fpr"][-1] == 1.0 and curve["tpr"][-1] == 1.0
    assert 0.0 <= roc_area(curve) <= 1.0


def test_threshold_averaged_roc_needs_two_classes():
    with pytest.raises(UndefinedMetric):
        threshold_averaged_roc([(np.array([1, 1]), np.array([0.3, 0.4]))])


def test_model_roc_curve_requires_probabilities():
    table = _table([(0, "majority", 1, 1, 0, None), (0, "majority", 2, 0, 0, None)])
    with pytest.raises(UndefinedMetric):
        model_roc_curve(table, "majority")
    with pytest.raises(InvalidArgument):
        model_roc_curve(table, "unknown")


def test_summary_text_lists_models():
    summary = aggregate(_table([(0, "a", 1, 1, 1, 0.9), (0, "a", 2, 0, 0, 0.1)]))
    text = summary.summary()

    assert "a" in text
    assert not math.isnan(summary.mean_error_by_model["a"])
