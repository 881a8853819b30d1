import numpy as np
import polars as pl
import pytest

from funding_eval.domain.entities import (
    ColumnKind,
    FoldAssignment,
    ModelFamily,
    ProjectDataset,
    ProjectRecord,
    default_model_specs,
    success_label,
)
from funding_eval.domain.errors import InvalidArgument


def test_success_label_meets_goal():
    assert success_label(100.0, 100.0) == 1
    assert success_label(150.0, 100.0) == 1
    assert success_label(99.99, 100.0) == 0


def test_duplicate_ids_rejected():
    frame = pl.DataFrame({"ID": [1, 1, 2], "goal_usd": [1.0, 2.0, 3.0], "label": [0, 1, 0]})
    with pytest.raises(InvalidArgument):
        ProjectDataset(frame=frame)


def test_non_binary_labels_rejected():
    frame = pl.DataFrame({"ID": [1, 2, 3], "goal_usd": [1.0, 2.0, 3.0], "label": [0, 2, 1]})
    with pytest.raises(InvalidArgument):
        ProjectDataset(frame=frame)


def test_missing_label_column_rejected():
    with pytest.raises(InvalidArgument):
        ProjectDataset(frame=pl.DataFrame({"ID": [1, 2]}))


def test_feature_columns_exclude_id_label_and_pledge(projects):
    features = projects.feature_columns()
    assert "ID" not in features
    assert "label" not in features
    assert "pledged_usd" not in features
    assert {"goal_usd", "duration_seconds", "main_category", "category"} <= set(features)


def test_schema_kinds(projects):
    assert projects.kind_of("ID") == ColumnKind.IDENTIFIER
    assert projects.kind_of("label") == ColumnKind.LABEL
    assert projects.kind_of("goal_usd") == ColumnKind.NUMERIC
    assert projects.kind_of("country") == ColumnKind.CATEGORICAL


def test_take_and_exclude_are_complementary(projects):
    subset = projects.take([0, 5, 10])
    rest = projects.exclude_ids(subset.ids)

    assert len(subset) == 3
    assert len(rest) == len(projects) - 3
    assert not set(subset.ids.tolist()) & set(rest.ids.tolist())


def test_select_ids(projects):
    wanted = projects.ids[[2, 4]]
    selected = projects.select_ids(wanted.tolist())
    assert sorted(selected.ids.tolist()) == sorted(wanted.tolist())


def test_records_roundtrip():
    records = [
        ProjectRecord.from_pledge(1, 1000.0, 1500.0, 86400.0, "Art", "Painting", "USD", "US"),
        ProjectRecord.from_pledge(2, 1000.0, 200.0, 86400.0, "Games", "Video Games", "GBP", "GB"),
    ]
    dataset = ProjectDataset.from_records(records)

    assert dataset.labels.tolist() == [1, 0]
    assert dataset.to_records() == records


def test_fold_assignment_validates_range():
    with pytest.raises(InvalidArgument):
        FoldAssignment(record_ids=np.array([1, 2]), folds=np.array([0, 3]), k=2)


def test_fold_assignment_alignment():
    assignment = FoldAssignment(record_ids=np.array([10, 20, 30]), folds=np.array([0, 1, 0]), k=2)

    assert assignment.aligned_to(np.array([30, 10, 20])).tolist() == [0, 0, 1]
    assert assignment.fold_of(20) == 1
    assert assignment.held_out_ids(0).tolist() == [10, 30]
    assert assignment.training_ids(0).tolist() == [20]
    with pytest.raises(InvalidArgument):
        assignment.aligned_to(np.array([10, 20, 40]))


def test_default_model_specs():
    specs = default_model_specs()
    names = [spec.name for spec in specs]

    assert names == ["logistic", "random_forest_500", "random_forest_100"]
    assert specs[0].config.family == ModelFamily.LOGISTIC
    assert specs[1].config.tree_count == 500
    assert specs[2].config.tree_count == 100
    assert specs[1].config.category_limit == 53
    assert specs[0].config.category_limit is None
