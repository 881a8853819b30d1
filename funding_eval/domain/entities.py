"""Domain entities for the crowdfunding evaluation pipeline."""

from dataclasses import dataclass, field, fields, replace
from enum import Enum
from typing import Any, Iterable

import numpy as np
import polars as pl

from .errors import InvalidArgument


class ColumnKind(str, Enum):
    """Semantic type of a dataset column."""
    IDENTIFIER = "identifier"
    NUMERIC = "numeric"
    CATEGORICAL = "categorical"
    TEXT = "text"
    TIMESTAMP = "timestamp"
    LABEL = "label"


# Columns of the cleaned projection consumed by the core
PROJECT_SCHEMA: dict[str, ColumnKind] = {
    "ID": ColumnKind.IDENTIFIER,
    "name": ColumnKind.TEXT,
    "goal_usd": ColumnKind.NUMERIC,
    "pledged_usd": ColumnKind.NUMERIC,
    "duration_seconds": ColumnKind.NUMERIC,
    "main_category": ColumnKind.CATEGORICAL,
    "category": ColumnKind.CATEGORICAL,
    "currency": ColumnKind.CATEGORICAL,
    "country": ColumnKind.CATEGORICAL,
    "launched": ColumnKind.TIMESTAMP,
    "deadline": ColumnKind.TIMESTAMP,
    "state": ColumnKind.TEXT,
    "label": ColumnKind.LABEL,
}

# Kinds that may be used as model features
FEATURE_KINDS = (ColumnKind.NUMERIC, ColumnKind.CATEGORICAL)

# pledged_usd determines the label and is never a feature
LEAKY_COLUMNS = ("pledged_usd",)


def success_label(pledged_usd: float, goal_usd: float) -> int:
    """Funding outcome: 1 when the pledged amount meets or exceeds the goal."""
    return 1 if pledged_usd - goal_usd >= 0 else 0


@dataclass(frozen=True)
class ProjectRecord:
    """A single crowdfunding campaign observation."""
    ID: int
    goal_usd: float
    duration_seconds: float
    main_category: str
    category: str
    currency: str
    country: str
    label: int

    @classmethod
    def from_pledge(
        cls,
        ID: int,
        goal_usd: float,
        pledged_usd: float,
        duration_seconds: float,
        main_category: str,
        category: str,
        currency: str,
        country: str,
    ) -> "ProjectRecord":
        """Build a record, deriving the label from the pledged and goal amounts."""
        return cls(
            ID=ID,
            goal_usd=goal_usd,
            duration_seconds=duration_seconds,
            main_category=main_category,
            category=category,
            currency=currency,
            country=country,
            label=success_label(pledged_usd, goal_usd),
        )


def _infer_kind(dtype: pl.DataType) -> ColumnKind:
    if dtype.is_numeric():
        return ColumnKind.NUMERIC
    if dtype.is_temporal():
        return ColumnKind.TIMESTAMP
    return ColumnKind.CATEGORICAL


@dataclass(frozen=True, eq=False)
class ProjectDataset:
    """Immutable labeled collection of project records.

    Wraps a polars DataFrame together with the semantic kind of each column.
    Sampling and partitioning return new datasets; the wrapped frame is
    never modified in place.
    """
    frame: pl.DataFrame
    schema: dict[str, ColumnKind] = field(default_factory=lambda: dict(PROJECT_SCHEMA))
    id_column: str = "ID"
    label_column: str = "label"

    def __post_init__(self) -> None:
        for column in (self.id_column, self.label_column):
            if column not in self.frame.columns:
                raise InvalidArgument(f"Dataset is missing required column '{column}'")

        if self.frame[self.id_column].n_unique() != self.frame.height:
            raise InvalidArgument(f"Record ids in '{self.id_column}' must be unique")

        labels = self.frame[self.label_column]
        if labels.null_count() > 0 or not labels.is_in([0, 1]).all():
            raise InvalidArgument(f"Labels in '{self.label_column}' must be 0 or 1")

        resolved = {
            name: self.schema.get(name, _infer_kind(dtype))
            for name, dtype in self.frame.schema.items()
        }
        resolved[self.id_column] = ColumnKind.IDENTIFIER
        resolved[self.label_column] = ColumnKind.LABEL
        object.__setattr__(self, "schema", resolved)

    def __len__(self) -> int:
        return self.frame.height

    @property
    def columns(self) -> list[str]:
        return self.frame.columns

    @property
    def ids(self) -> np.ndarray:
        return self.frame[self.id_column].to_numpy()

    @property
    def labels(self) -> np.ndarray:
        return self.frame[self.label_column].to_numpy().astype(np.int8)

    def kind_of(self, column: str) -> ColumnKind:
        if column not in self.schema:
            raise InvalidArgument(f"Unknown column '{column}'")
        return self.schema[column]

    def columns_of_kind(self, *kinds: ColumnKind) -> list[str]:
        return [name for name, kind in self.schema.items() if kind in kinds]

    def feature_columns(self) -> list[str]:
        """Columns usable as model inputs, in frame order."""
        return [
            c for c in self.columns_of_kind(*FEATURE_KINDS)
            if c not in LEAKY_COLUMNS
        ]

    def take(self, indices: Iterable[int]) -> "ProjectDataset":
        """Return a new dataset with the rows at the given positions."""
        index = pl.Series("index", np.asarray(list(indices), dtype=np.int64))
        return self._derive(self.frame.select(pl.all().gather(index)))

    def select_ids(self, record_ids: Iterable[Any]) -> "ProjectDataset":
        keep = self._id_series(record_ids)
        return self._derive(self.frame.filter(pl.col(self.id_column).is_in(keep)))

    def exclude_ids(self, record_ids: Iterable[Any]) -> "ProjectDataset":
        """Complement of ``select_ids``, matched by record id rather than position."""
        drop = self._id_series(record_ids)
        return self._derive(self.frame.filter(~pl.col(self.id_column).is_in(drop)))

    def label_proportion(self) -> float:
        if len(self) == 0:
            return float("nan")
        return float(self.labels.mean())

    def to_records(self) -> list[ProjectRecord]:
        names = [f.name for f in fields(ProjectRecord)]
        return [
            ProjectRecord(**{name: row[name] for name in names})
            for row in self.frame.select(names).iter_rows(named=True)
        ]

    @classmethod
    def from_records(cls, records: Iterable[ProjectRecord]) -> "ProjectDataset":
        rows = [
            {f.name: getattr(record, f.name) for f in fields(ProjectRecord)}
            for record in records
        ]
        frame = pl.DataFrame(
            rows,
            schema={
                "ID": pl.Int64,
                "goal_usd": pl.Float64,
                "duration_seconds": pl.Float64,
                "main_category": pl.String,
                "category": pl.String,
                "currency": pl.String,
                "country": pl.String,
                "label": pl.Int8,
            },
        )
        return cls(frame=frame)

    def _id_series(self, record_ids: Iterable[Any]) -> pl.Series:
        values = record_ids if isinstance(record_ids, np.ndarray) else np.asarray(list(record_ids))
        return pl.Series(values).cast(self.frame.schema[self.id_column])

    def _derive(self, frame: pl.DataFrame) -> "ProjectDataset":
        return ProjectDataset(
            frame=frame,
            schema=dict(self.schema),
            id_column=self.id_column,
            label_column=self.label_column,
        )


@dataclass(frozen=True, eq=False)
class FoldAssignment:
    """Mapping from record id to a fold index in ``[0, k)``."""
    record_ids: np.ndarray
    folds: np.ndarray
    k: int
    seed: int | None = None
    stratify_by: str | None = None

    def __post_init__(self) -> None:
        if len(self.record_ids) != len(self.folds):
            raise InvalidArgument(
                f"Record ids ({len(self.record_ids)}) and folds ({len(self.folds)}) "
                "must have the same length"
            )
        if len(self.folds) and (self.folds.min() < 0 or self.folds.max() >= self.k):
            raise InvalidArgument(f"Fold indices must lie in [0, {self.k})")

    def __len__(self) -> int:
        return len(self.folds)

    def fold_sizes(self) -> np.ndarray:
        return np.bincount(self.folds, minlength=self.k)

    def held_out_ids(self, fold: int) -> np.ndarray:
        return self.record_ids[self.folds == fold]

    def training_ids(self, fold: int) -> np.ndarray:
        return self.record_ids[self.folds != fold]

    def fold_of(self, record_id: Any) -> int:
        matches = np.flatnonzero(self.record_ids == record_id)
        if len(matches) == 0:
            raise KeyError(record_id)
        return int(self.folds[matches[0]])

    def aligned_to(self, record_ids: np.ndarray) -> np.ndarray:
        """Fold index for each of ``record_ids``, in that order."""
        if len(record_ids) == len(self.record_ids) and np.array_equal(record_ids, self.record_ids):
            return self.folds
        lookup = dict(zip(self.record_ids.tolist(), self.folds.tolist()))
        missing = [r for r in record_ids.tolist() if r not in lookup]
        if missing or len(record_ids) != len(lookup):
            raise InvalidArgument(
                "Fold assignment does not cover the dataset "
                f"({len(missing)} unassigned record(s))"
            )
        return np.array([lookup[r] for r in record_ids.tolist()], dtype=self.folds.dtype)

    def to_frame(self) -> pl.DataFrame:
        return pl.DataFrame({"record_id": self.record_ids, "fold": self.folds})

    @classmethod
    def from_frame(
        cls,
        frame: pl.DataFrame,
        k: int | None = None,
        seed: int | None = None,
        stratify_by: str | None = None,
    ) -> "FoldAssignment":
        folds = frame["fold"].to_numpy().astype(np.int64)
        return cls(
            record_ids=frame["record_id"].to_numpy(),
            folds=folds,
            k=k if k is not None else int(folds.max()) + 1,
            seed=seed,
            stratify_by=stratify_by,
        )


class ModelFamily(str, Enum):
    LOGISTIC = "logistic"
    RANDOM_FOREST = "random_forest"
    MAJORITY = "majority"


DEFAULT_TREE_COUNT = 500
SMALL_TREE_COUNT = 100
# Largest number of levels a categorical predictor may have in a random forest
RANDOM_FOREST_MAX_CATEGORIES = 53


@dataclass(frozen=True)
class ModelConfig:
    """Explicit model definition: family, target and feature subset.

    An empty ``features`` tuple means every numeric and categorical column
    of the training dataset, minus ``exclude_features``.
    """
    family: ModelFamily = ModelFamily.LOGISTIC
    features: tuple[str, ...] = ()
    exclude_features: tuple[str, ...] = ()
    target: str = "label"
    tree_count: int = DEFAULT_TREE_COUNT
    max_categories: int | None = None
    backend: str = "sklearn"
    regularization_c: float = 1e6
    max_iter: int = 1000
    random_state: int = 42
    n_jobs: int = 1

    @property
    def category_limit(self) -> int | None:
        if self.max_categories is not None:
            return self.max_categories
        if self.family == ModelFamily.RANDOM_FOREST:
            return RANDOM_FOREST_MAX_CATEGORIES
        return None


@dataclass(frozen=True)
class ModelSpec:
    """A named model configuration evaluated by the cross-validation runner."""
    name: str
    config: ModelConfig = field(default_factory=ModelConfig)

    def with_seed(self, seed: int) -> "ModelSpec":
        return replace(self, config=replace(self.config, random_state=seed))


def default_model_specs() -> list[ModelSpec]:
    """Logistic regression plus random forests at a large and a small tree count."""
    return [
        ModelSpec(
            name="logistic",
            config=ModelConfig(
                family=ModelFamily.LOGISTIC,
                exclude_features=("category", "country"),
            ),
        ),
        ModelSpec(
            name=f"random_forest_{DEFAULT_TREE_COUNT}",
            config=ModelConfig(
                family=ModelFamily.RANDOM_FOREST,
                tree_count=DEFAULT_TREE_COUNT,
                exclude_features=("category",),
            ),
        ),
        ModelSpec(
            name=f"random_forest_{SMALL_TREE_COUNT}",
            config=ModelConfig(
                family=ModelFamily.RANDOM_FOREST,
                tree_count=SMALL_TREE_COUNT,
                exclude_features=("category",),
            ),
        ),
    ]
