"""Protocol interfaces for evaluation pipeline components."""

from pathlib import Path
from typing import Protocol, runtime_checkable

import numpy as np

from .entities import FoldAssignment, ProjectDataset
from .results import ResultTable


@runtime_checkable
class IClassifier(Protocol):
    """Interface for binary success classifiers.

    Implementations wrap an externally supplied learner (logistic regression,
    random forest, ...) behind a uniform fit/predict contract.
    """

    @property
    def model_name(self) -> str:
        """Return the model's identifier."""
        ...

    @property
    def is_fitted(self) -> bool:
        """Check if the model has been trained."""
        ...

    def fit(self, dataset: ProjectDataset) -> "IClassifier":
        """Train the model on the given records."""
        ...

    def predict(self, dataset: ProjectDataset) -> np.ndarray:
        """Predict 0/1 labels."""
        ...

    def predict_proba(self, dataset: ProjectDataset) -> np.ndarray:
        """Predict the probability of the positive class."""
        ...

    def save(self, path: Path) -> None:
        """Persist the fitted model to disk."""
        ...

    def load(self, path: Path) -> "IClassifier":
        """Load a fitted model from disk."""
        ...


@runtime_checkable
class IMetric(Protocol):
    """Interface for evaluation metrics."""

    @property
    def name(self) -> str:
        """Return the metric's identifier."""
        ...

    def compute(self, y_true: np.ndarray, y_pred: np.ndarray) -> float:
        """Compute the metric value."""
        ...


@runtime_checkable
class IResultStore(Protocol):
    """Interface for persisting cross-validation runs."""

    def save_run(
        self,
        run_name: str,
        results: ResultTable,
        assignment: FoldAssignment | None = None,
        metadata: dict | None = None,
    ) -> Path:
        """Save a run's result table and fold assignment."""
        ...

    def load_results(self, run_name: str) -> ResultTable:
        """Load a run's result table."""
        ...

    def load_assignment(self, run_name: str) -> FoldAssignment | None:
        """Load a run's fold assignment, if one was stored."""
        ...

    def list_runs(self) -> list[str]:
        """List all stored runs."""
        ...


class IPartitioner(Protocol):
    """Interface for fold partitioning strategies."""

    def __call__(
        self,
        dataset: ProjectDataset,
        k: int,
        stratify_by: str | None = None,
        seed: int = 42,
    ) -> FoldAssignment:
        ...

