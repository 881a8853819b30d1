import numpy as np
import polars as pl
import pytest

from funding_eval.domain.entities import FoldAssignment, ModelConfig, ModelFamily, ModelSpec
from funding_eval.domain.errors import InvalidArgument, LeakageRisk, UnsupportedCardinality
from funding_eval.pipelines.cross_validation import CrossValidationRunner, evaluate_split, run_cv
from funding_eval.splits.partitioning import partition


def test_every_record_predicted_once_per_model(projects, fast_specs):
    assignment = partition(projects, k=5, stratify_by="label", seed=0)
    results = run_cv(projects, assignment, fast_specs, seed=0)
    frame = results.frame

    assert len(results) == len(projects) * len(fast_specs)
    assert results.models() == ["forest", "logistic", "majority"]
    assert results.folds() == [0, 1, 2, 3, 4]
    for model in results.models():
        rows = frame.filter(pl.col("model") == model)
        assert rows["record_id"].n_unique() == len(projects)


def test_rows_are_tagged_with_held_out_fold(projects, fast_specs):
    assignment = partition(projects, k=4, seed=1)
    frame = run_cv(projects, assignment, fast_specs[:1], seed=1).frame

    for record_id, fold in zip(frame["record_id"].to_list(), frame["fold"].to_list()):
        assert assignment.fold_of(record_id) == fold


def test_observed_labels_match_dataset(projects, fast_specs):
    assignment = partition(projects, k=3, seed=2)
    frame = run_cv(projects, assignment, fast_specs[:1], seed=2).frame
    truth = dict(zip(projects.ids.tolist(), projects.labels.tolist()))

    assert all(truth[r] == o for r, o in zip(frame["record_id"].to_list(), frame["observed"].to_list()))


def test_hard_label_model_has_no_probability(projects, fast_specs):
    assignment = partition(projects, k=3, seed=2)
    frame = run_cv(projects, assignment, fast_specs, seed=2).frame

    assert frame.filter(pl.col("model") == "majority")["probability"].null_count() == 300
    assert frame.filter(pl.col("model") == "logistic")["probability"].null_count() == 0


def test_runs_are_deterministic(projects, fast_specs):
    assignment = partition(projects, k=3, seed=4)
    first = run_cv(projects, assignment, fast_specs, seed=4).frame.sort(["fold", "model", "record_id"])
    second = run_cv(projects, assignment, fast_specs, seed=4).frame.sort(["fold", "model", "record_id"])

    assert first.equals(second)


def test_parallel_matches_sequential(projects, fast_specs):
    assignment = partition(projects, k=3, seed=5)
    keys = ["fold", "model", "record_id"]
    sequential = run_cv(projects, assignment, fast_specs, seed=5, n_jobs=1).frame.sort(keys)
    parallel = run_cv(projects, assignment, fast_specs, seed=5, n_jobs=2).frame.sort(keys)

    assert sequential.equals(parallel)


def test_splits_follow_assignment_ids_not_row_order(projects, fast_specs):
    assignment = partition(projects, k=4, stratify_by="label", seed=6)
    order = np.random.default_rng(0).permutation(len(assignment))
    reordered = FoldAssignment(
        record_ids=assignment.record_ids[order],
        folds=assignment.folds[order],
        k=assignment.k,
    )

    keys = ["fold", "model", "record_id"]
    expected = run_cv(projects, assignment, fast_specs, seed=6).frame.sort(keys)
    actual = run_cv(projects, reordered, fast_specs, seed=6).frame.sort(keys)

    assert actual.equals(expected)
    for fold in range(assignment.k):
        held_out = set(expected.filter(pl.col("fold") == fold)["record_id"].to_list())
        assert held_out == set(reordered.held_out_ids(fold).tolist())


def test_evaluate_split_detects_leakage(projects, fast_specs):
    train = projects.take(range(0, 200))
    test = projects.take(range(150, 300))
    with pytest.raises(LeakageRisk):
        evaluate_split(train, test, fast_specs, fold=0)


def test_assignment_must_cover_dataset(projects, fast_specs):
    partial = FoldAssignment(
        record_ids=projects.ids[:100],
        folds=np.arange(100) % 2,
        k=2,
    )
    with pytest.raises(InvalidArgument):
        run_cv(projects, partial, fast_specs)


def test_duplicate_model_names_rejected(fast_specs):
    with pytest.raises(InvalidArgument):
        CrossValidationRunner(model_specs=[fast_specs[0], fast_specs[0]])


def test_empty_model_list_rejected():
    with pytest.raises(InvalidArgument):
        CrossValidationRunner(model_specs=[])


def test_cardinality_error_propagates(projects):
    spec = ModelSpec(
        name="narrow_forest",
        config=ModelConfig(family=ModelFamily.RANDOM_FOREST, tree_count=3, max_categories=2),
    )
    assignment = partition(projects, k=2, seed=0)
    with pytest.raises(UnsupportedCardinality):
        run_cv(projects, assignment, [spec])
