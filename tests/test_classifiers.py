import numpy as np
import pytest
from sklearn.metrics import roc_auc_score

from funding_eval.domain.entities import ModelConfig, ModelFamily, ModelSpec
from funding_eval.domain.errors import InvalidArgument, Unsupported, UnsupportedCardinality
from funding_eval.domain.protocols import IClassifier
from funding_eval.features.encoding import FeatureEncoder, resolve_feature_columns
from funding_eval.models.classifiers import (
    LogisticModel,
    MajorityModel,
    RandomForestModel,
    build_classifier,
)


def test_resolve_feature_columns_defaults(projects):
    numeric, categorical = resolve_feature_columns(projects, exclude_features=("category",))

    assert numeric == ["goal_usd", "duration_seconds"]
    assert categorical == ["main_category", "currency", "country"]


def test_resolve_feature_columns_rejects_label_and_pledge(projects):
    with pytest.raises(InvalidArgument):
        resolve_feature_columns(projects, features=("label",))
    with pytest.raises(InvalidArgument):
        resolve_feature_columns(projects, features=("pledged_usd",))


def test_encoder_ignores_unseen_levels(projects):
    train = projects.take(range(0, 200))
    test = projects.take(range(200, 300))
    encoder = FeatureEncoder(features=("goal_usd", "main_category")).fit(train)

    X = encoder.transform(test)
    assert X.shape == (100, len(encoder.get_feature_names()))


def test_encoder_cardinality_limit(projects):
    with pytest.raises(UnsupportedCardinality) as excinfo:
        FeatureEncoder(features=("category",), max_categories=3).fit(projects)
    assert excinfo.value.column == "category"


@pytest.mark.parametrize("model", [
    LogisticModel(config=ModelConfig(family=ModelFamily.LOGISTIC)),
    RandomForestModel(config=ModelConfig(family=ModelFamily.RANDOM_FOREST, tree_count=10)),
])
def test_fit_predict_contract(projects, model):
    model.fit(projects)
    labels = model.predict(projects)
    proba = model.predict_proba(projects)

    assert isinstance(model, IClassifier)
    assert labels.shape == (len(projects),)
    assert set(np.unique(labels).tolist()) <= {0, 1}
    assert proba.shape == (len(projects),)
    assert np.all((proba >= 0) & (proba <= 1))


def test_logistic_learns_goal_signal(projects):
    model = LogisticModel(config=ModelConfig(features=("goal_usd", "duration_seconds"))).fit(projects)
    assert roc_auc_score(projects.labels, model.predict_proba(projects)) > 0.65


def test_unfitted_model_raises(projects):
    with pytest.raises(RuntimeError):
        LogisticModel().predict(projects)
    with pytest.raises(RuntimeError):
        MajorityModel().predict(projects)


def test_random_forest_rejects_too_many_categories(projects):
    model = RandomForestModel(
        config=ModelConfig(family=ModelFamily.RANDOM_FOREST, tree_count=5, max_categories=4)
    )
    with pytest.raises(UnsupportedCardinality):
        model.fit(projects)


def test_random_forest_rejects_unknown_backend():
    with pytest.raises(InvalidArgument):
        RandomForestModel(config=ModelConfig(family=ModelFamily.RANDOM_FOREST, backend="ranger"))


def test_xgboost_forest_backend(projects):
    model = RandomForestModel(
        config=ModelConfig(family=ModelFamily.RANDOM_FOREST, tree_count=10, backend="xgboost")
    ).fit(projects)
    proba = model.predict_proba(projects)
    assert np.all((proba >= 0) & (proba <= 1))


def test_majority_model_predicts_most_frequent_label(projects):
    model = MajorityModel().fit(projects)
    expected = int(projects.label_proportion() > 0.5)

    assert np.all(model.predict(projects) == expected)
    with pytest.raises(Unsupported):
        model.predict_proba(projects)


def test_single_class_training_predicts_constant(projects):
    negatives = projects.select_ids(projects.ids[projects.labels == 0])
    model = LogisticModel().fit(negatives)

    assert np.all(model.predict(projects) == 0)
    assert np.all(model.predict_proba(projects) == 0.0)


def test_feature_importance_names(projects):
    model = RandomForestModel(
        config=ModelConfig(family=ModelFamily.RANDOM_FOREST, tree_count=10, exclude_features=("category",))
    ).fit(projects)
    top = model.get_top_features(3)

    assert len(top) == 3
    assert all(name in model.get_feature_importance() for name, _ in top)


def test_save_and_load(projects, tmp_path):
    model = LogisticModel(name="lr").fit(projects)
    model.save(tmp_path / "lr.joblib")

    restored = LogisticModel().load(tmp_path / "lr.joblib")
    assert restored.model_name == "lr"
    assert np.allclose(restored.predict_proba(projects), model.predict_proba(projects))


def test_build_classifier_dispatch():
    assert isinstance(build_classifier(ModelSpec("a", ModelConfig(family=ModelFamily.LOGISTIC))), LogisticModel)
    assert isinstance(
        build_classifier(ModelSpec("b", ModelConfig(family=ModelFamily.RANDOM_FOREST, tree_count=3))),
        RandomForestModel,
    )
    assert isinstance(build_classifier(ModelSpec("c", ModelConfig(family=ModelFamily.MAJORITY))), MajorityModel)
