"""Binary success classifiers behind a uniform fit/predict contract.

Three families are supported:
- Logistic regression (binomial link) on a configurable feature subset
- Random forest with a configurable tree count (scikit-learn or xgboost)
- Majority-class baseline that only emits hard labels

A new instance is built for every fold so no fitted state is ever shared
between training partitions.
"""

from dataclasses import dataclass, field
import logging
from pathlib import Path
from typing import Any

import joblib
import numpy as np
import xgboost as xgb
from sklearn.ensemble import RandomForestClassifier
from sklearn.linear_model import LogisticRegression

from funding_eval.domain.entities import ModelConfig, ModelFamily, ModelSpec, ProjectDataset
from funding_eval.domain.errors import InvalidArgument, Unsupported
from funding_eval.features.encoding import FeatureEncoder


logger = logging.getLogger(__name__)

RANDOM_FOREST_BACKENDS = ("sklearn", "xgboost")


def _target(dataset: ProjectDataset, config: ModelConfig) -> np.ndarray:
    if config.target not in dataset.columns:
        raise InvalidArgument(f"Target column '{config.target}' not found in dataset")
    return dataset.frame[config.target].to_numpy().astype(np.int64)


@dataclass
class EstimatorClassifier:
    """Shared plumbing for classifiers backed by a scikit-learn style estimator."""

    config: ModelConfig = field(default_factory=ModelConfig)
    name: str | None = None

    _encoder: FeatureEncoder | None = field(default=None, init=False)
    _estimator: Any = field(default=None, init=False)
    _constant_label: int | None = field(default=None, init=False)
    _is_fitted: bool = field(default=False, init=False)

    @property
    def model_name(self) -> str:
        return self.name or self.config.family.value

    @property
    def is_fitted(self) -> bool:
        return self._is_fitted

    def fit(self, dataset: ProjectDataset) -> "EstimatorClassifier":
        """Train on the given records.

        Args:
            dataset: Training partition

        Returns:
            self for method chaining
        """
        y = _target(dataset, self.config)
        self._encoder = FeatureEncoder(
            features=self.config.features,
            exclude_features=self.config.exclude_features,
            max_categories=self.config.category_limit,
            scale_numeric=self._scale_numeric(),
        )
        X = self._encoder.fit_transform(dataset)

        classes = np.unique(y)
        if len(classes) < 2:
            # Nothing to discriminate; every prediction is the only observed label
            logger.warning("%s trained on a single class (%s)", self.model_name, classes)
            self._constant_label = int(classes[0]) if len(classes) else 0
            self._estimator = None
        else:
            self._constant_label = None
            self._estimator = self._build_estimator()
            self._estimator.fit(X, y)

        self._is_fitted = True
        return self

    def predict(self, dataset: ProjectDataset) -> np.ndarray:
        """Predict 0/1 labels."""
        self._check_fitted()
        if self._constant_label is not None:
            return np.full(len(dataset), self._constant_label, dtype=np.int8)
        X = self._encoder.transform(dataset)
        return self._estimator.predict(X).astype(np.int8)

    def predict_proba(self, dataset: ProjectDataset) -> np.ndarray:
        """Probability of the positive class for each record."""
        self._check_fitted()
        if self._constant_label is not None:
            return np.full(len(dataset), float(self._constant_label))
        X = self._encoder.transform(dataset)
        proba = self._estimator.predict_proba(X)
        positive = list(self._estimator.classes_).index(1)
        return proba[:, positive].astype(np.float64)

    def get_feature_importance(self) -> dict[str, float]:
        """Return feature importance scores keyed by encoded feature name."""
        self._check_fitted()
        names = self._encoder.get_feature_names()
        if self._estimator is None:
            return {name: 0.0 for name in names}
        scores = self._importance_scores()
        return dict(zip(names, (float(s) for s in scores)))

    def get_top_features(self, n: int = 10) -> list[tuple[str, float]]:
        importance = self.get_feature_importance()
        return sorted(importance.items(), key=lambda x: x[1], reverse=True)[:n]

    def save(self, path: Path) -> None:
        """Save the fitted classifier with joblib."""
        if not self._is_fitted:
            raise RuntimeError("Cannot save unfitted model")
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        joblib.dump({
            "name": self.name,
            "config": self.config,
            "encoder": self._encoder,
            "estimator": self._estimator,
            "constant_label": self._constant_label,
        }, path)

    def load(self, path: Path) -> "EstimatorClassifier":
        """Load a classifier saved with ``save``."""
        state = joblib.load(Path(path))
        self.name = state["name"]
        self.config = state["config"]
        self._encoder = state["encoder"]
        self._estimator = state["estimator"]
        self._constant_label = state["constant_label"]
        self._is_fitted = True
        return self

    def _check_fitted(self) -> None:
        if not self._is_fitted:
            raise RuntimeError("Model must be fitted before prediction")

    def _scale_numeric(self) -> bool:
        return False

    def _build_estimator(self) -> Any:
        raise NotImplementedError

    def _importance_scores(self) -> np.ndarray:
        raise NotImplementedError


@dataclass
class LogisticModel(EstimatorClassifier):
    """Binomial logistic regression.

    The default regularization strength is weak enough that coefficients
    match an unpenalized binomial GLM in practice.
    """

    def _scale_numeric(self) -> bool:
        return True

    def _build_estimator(self) -> LogisticRegression:
        return LogisticRegression(
            C=self.config.regularization_c,
            max_iter=self.config.max_iter,
            random_state=self.config.random_state,
        )

    def _importance_scores(self) -> np.ndarray:
        return np.abs(self._estimator.coef_[0])


@dataclass
class RandomForestModel(EstimatorClassifier):
    """Random forest with ``config.tree_count`` trees."""

    def __post_init__(self) -> None:
        if self.config.backend not in RANDOM_FOREST_BACKENDS:
            raise InvalidArgument(
                f"Unknown random forest backend '{self.config.backend}', "
                f"expected one of {RANDOM_FOREST_BACKENDS}"
            )
        if self.config.tree_count < 1:
            raise InvalidArgument(f"tree_count must be positive, got {self.config.tree_count}")

    def _build_estimator(self) -> Any:
        if self.config.backend == "xgboost":
            return xgb.XGBRFClassifier(
                n_estimators=self.config.tree_count,
                subsample=0.8,
                colsample_bynode=0.8,
                random_state=self.config.random_state,
                n_jobs=self.config.n_jobs,
            )
        return RandomForestClassifier(
            n_estimators=self.config.tree_count,
            random_state=self.config.random_state,
            n_jobs=self.config.n_jobs,
        )

    def _importance_scores(self) -> np.ndarray:
        return self._estimator.feature_importances_


@dataclass
class MajorityModel:
    """Baseline that always predicts the most frequent training label."""

    config: ModelConfig = field(default_factory=lambda: ModelConfig(family=ModelFamily.MAJORITY))
    name: str | None = None

    _label: int | None = field(default=None, init=False)

    @property
    def model_name(self) -> str:
        return self.name or ModelFamily.MAJORITY.value

    @property
    def is_fitted(self) -> bool:
        return self._label is not None

    def fit(self, dataset: ProjectDataset) -> "MajorityModel":
        y = _target(dataset, self.config)
        counts = np.bincount(y, minlength=2)
        self._label = int(np.argmax(counts))
        return self

    def predict(self, dataset: ProjectDataset) -> np.ndarray:
        if self._label is None:
            raise RuntimeError("Model must be fitted before prediction")
        return np.full(len(dataset), self._label, dtype=np.int8)

    def predict_proba(self, dataset: ProjectDataset) -> np.ndarray:
        raise Unsupported(f"{self.model_name} only produces hard labels")

    def save(self, path: Path) -> None:
        if self._label is None:
            raise RuntimeError("Cannot save unfitted model")
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        joblib.dump({"name": self.name, "config": self.config, "label": self._label}, path)

    def load(self, path: Path) -> "MajorityModel":
        state = joblib.load(Path(path))
        self.name = state["name"]
        self.config = state["config"]
        self._label = state["label"]
        return self


def build_classifier(spec: ModelSpec) -> EstimatorClassifier | MajorityModel:
    """Create a fresh, unfitted classifier for a model spec."""
    family = spec.config.family
    if family == ModelFamily.LOGISTIC:
        return LogisticModel(config=spec.config, name=spec.name)
    if family == ModelFamily.RANDOM_FOREST:
        return RandomForestModel(config=spec.config, name=spec.name)
    if family == ModelFamily.MAJORITY:
        return MajorityModel(config=spec.config, name=spec.name)
    raise InvalidArgument(f"Unknown model family: {family}")