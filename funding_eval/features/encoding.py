"""Feature resolution and encoding for success classifiers.

Turns a ProjectDataset into a numeric design matrix:
- Resolves the feature subset from an explicit list or the dataset schema
- Rejects categorical columns with more levels than the model supports
- One-hot encodes categorical columns
- Optionally standardizes numeric columns
"""

from dataclasses import dataclass, field

import numpy as np
import polars as pl
from sklearn.preprocessing import OneHotEncoder, StandardScaler

from funding_eval.domain.entities import FEATURE_KINDS, LEAKY_COLUMNS, ColumnKind, ProjectDataset
from funding_eval.domain.errors import InvalidArgument, UnsupportedCardinality


def resolve_feature_columns(
    dataset: ProjectDataset,
    features: tuple[str, ...] = (),
    exclude_features: tuple[str, ...] = (),
) -> tuple[list[str], list[str]]:
    """Split the requested features into numeric and categorical columns.

    Args:
        dataset: Dataset providing the column schema
        features: Explicit feature columns; empty means all usable columns
        exclude_features: Columns removed from the resolved set

    Returns:
        Tuple of (numeric_columns, categorical_columns)
    """
    if features:
        for column in features:
            kind = dataset.kind_of(column)
            if kind not in FEATURE_KINDS or column in LEAKY_COLUMNS:
                raise InvalidArgument(f"Column '{column}' ({kind.value}) cannot be used as a feature")
        candidates = list(features)
    else:
        candidates = dataset.feature_columns()

    selected = [c for c in candidates if c not in exclude_features]
    if not selected:
        raise InvalidArgument("No feature columns left after exclusions")

    numeric = [c for c in selected if dataset.kind_of(c) == ColumnKind.NUMERIC]
    categorical = [c for c in selected if dataset.kind_of(c) == ColumnKind.CATEGORICAL]
    return numeric, categorical


def check_cardinality(
    dataset: ProjectDataset,
    categorical_columns: list[str],
    max_categories: int | None,
) -> None:
    """Raise UnsupportedCardinality for any column with too many levels."""
    if max_categories is None:
        return
    for column in categorical_columns:
        n_levels = dataset.frame[column].n_unique()
        if n_levels > max_categories:
            raise UnsupportedCardinality(column, n_levels, max_categories)


@dataclass
class FeatureEncoder:
    """Stateful encoder fitted on a training partition only."""

    features: tuple[str, ...] = ()
    exclude_features: tuple[str, ...] = ()
    max_categories: int | None = None
    scale_numeric: bool = False

    _numeric_columns: list[str] = field(default_factory=list, init=False)
    _categorical_columns: list[str] = field(default_factory=list, init=False)
    _one_hot: OneHotEncoder | None = field(default=None, init=False)
    _scaler: StandardScaler | None = field(default=None, init=False)
    _is_fitted: bool = field(default=False, init=False)

    @property
    def is_fitted(self) -> bool:
        return self._is_fitted

    def fit(self, dataset: ProjectDataset) -> "FeatureEncoder":
        numeric, categorical = resolve_feature_columns(
            dataset, self.features, self.exclude_features
        )
        check_cardinality(dataset, categorical, self.max_categories)

        self._numeric_columns = numeric
        self._categorical_columns = categorical

        if categorical:
            self._one_hot = OneHotEncoder(handle_unknown="ignore", sparse_output=False)
            self._one_hot.fit(self._categorical_matrix(dataset))
        if numeric and self.scale_numeric:
            self._scaler = StandardScaler()
            self._scaler.fit(self._numeric_matrix(dataset))

        self._is_fitted = True
        return self

    def transform(self, dataset: ProjectDataset) -> np.ndarray:
        if not self._is_fitted:
            raise RuntimeError("Feature encoder must be fitted before transform")

        blocks = []
        if self._numeric_columns:
            numeric = self._numeric_matrix(dataset)
            if self._scaler is not None:
                numeric = self._scaler.transform(numeric)
            blocks.append(numeric)
        if self._categorical_columns:
            blocks.append(self._one_hot.transform(self._categorical_matrix(dataset)))

        return np.hstack(blocks)

    def fit_transform(self, dataset: ProjectDataset) -> np.ndarray:
        """Fit and transform in one step."""
        self.fit(dataset)
        return self.transform(dataset)

    def get_feature_names(self) -> list[str]:
        """Names of the encoded design matrix columns."""
        if not self._is_fitted:
            raise RuntimeError("Feature encoder must be fitted first")
        names = list(self._numeric_columns)
        if self._one_hot is not None:
            names.extend(self._one_hot.get_feature_names_out(self._categorical_columns).tolist())
        return names

    def _numeric_matrix(self, dataset: ProjectDataset) -> np.ndarray:
        X = dataset.frame.select(
            [pl.col(c).cast(pl.Float64) for c in self._numeric_columns]
        ).to_numpy()
        return np.nan_to_num(X, nan=0.0, posinf=0.0, neginf=0.0)

    def _categorical_matrix(self, dataset: ProjectDataset) -> np.ndarray:
        return dataset.frame.select(
            [pl.col(c).cast(pl.String).fill_null("missing") for c in self._categorical_columns]
        ).to_numpy()
