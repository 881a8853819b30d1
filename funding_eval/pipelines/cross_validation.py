"""Cross-validation runner.

For every fold, trains a fresh classifier per model spec on the records
outside the fold and predicts the records inside it. Folds are independent
and may run in parallel; per-fold rows are merged into the shared result
table as each fold completes.
"""

from dataclasses import dataclass, field
import logging

import numpy as np
import polars as pl
from joblib import Parallel, delayed

from funding_eval.domain.entities import FoldAssignment, ModelSpec, ProjectDataset
from funding_eval.domain.errors import InvalidArgument, Unsupported
from funding_eval.domain.results import ResultTable
from funding_eval.models.classifiers import build_classifier
from funding_eval.splits.partitioning import check_no_leakage, derive_seed


logger = logging.getLogger(__name__)


def _check_specs(model_specs: list[ModelSpec]) -> None:
    if not model_specs:
        raise InvalidArgument("At least one model spec is required")
    names = [spec.name for spec in model_specs]
    duplicates = sorted({n for n in names if names.count(n) > 1})
    if duplicates:
        raise InvalidArgument(f"Model names must be unique, duplicated: {duplicates}")


def fit_seed(seed: int, model: str, fold: int) -> int:
    """Seed handed to the learner of ``model`` on ``fold``."""
    return derive_seed(seed, f"fit/{model}/fold{fold}")


def evaluate_split(
    train: ProjectDataset,
    test: ProjectDataset,
    model_specs: list[ModelSpec],
    fold: int = 0,
    seed: int = 42,
) -> pl.DataFrame:
    """Train every model on ``train`` and predict ``test``.

    Args:
        train: Training partition
        test: Held-out partition
        model_specs: Models to evaluate
        fold: Fold index recorded on every row
        seed: Base seed; each model gets its own derived seed

    Returns:
        Result rows for all models on the held-out records

    Raises:
        LeakageRisk: If a record appears in both partitions
    """
    check_no_leakage(train.ids, test.ids, fold)

    frames = []
    for spec in model_specs:
        model = build_classifier(spec.with_seed(fit_seed(seed, spec.name, fold)))
        model.fit(train)
        predicted = model.predict(test)
        try:
            probability = model.predict_proba(test)
        except Unsupported:
            probability = None

        frames.append(ResultTable.build_rows(
            fold=fold,
            model=spec.name,
            record_ids=test.ids,
            observed=test.labels,
            predicted=predicted,
            probability=probability,
        ))
        logger.debug("Fold %d: %s fitted on %d records, predicted %d", fold, spec.name, len(train), len(test))

    return pl.concat(frames, how="vertical")


def _evaluate_fold(
    dataset: ProjectDataset,
    assignment: FoldAssignment,
    fold: int,
    model_specs: list[ModelSpec],
    seed: int,
) -> pl.DataFrame:
    train = dataset.select_ids(assignment.training_ids(fold))
    test = dataset.select_ids(assignment.held_out_ids(fold))
    return evaluate_split(train, test, model_specs, fold=fold, seed=seed)


@dataclass
class CrossValidationRunner:
    """Runs every model on every fold of a fold assignment.

    Each (model, fold) pair gets a newly built classifier, so fitted state
    never crosses folds. Results are keyed by (fold, model, record) and do
    not depend on the order in which folds finish.
    """

    model_specs: list[ModelSpec] = field(default_factory=list)
    seed: int = 42
    n_jobs: int = 1

    def __post_init__(self) -> None:
        _check_specs(self.model_specs)
        if self.seed < 0:
            raise InvalidArgument(f"Seed must be non-negative, got {self.seed}")

    def run(self, dataset: ProjectDataset, assignment: FoldAssignment) -> ResultTable:
        """Evaluate all models across all folds.

        Args:
            dataset: Full labeled dataset
            assignment: Fold of every record in ``dataset``

        Returns:
            ResultTable with one row per (fold, model, held-out record)
        """
        folds = assignment.aligned_to(dataset.ids)
        sizes = np.bincount(folds, minlength=assignment.k)
        active = [f for f in range(assignment.k) if sizes[f] > 0]
        for f in range(assignment.k):
            if sizes[f] == 0:
                logger.warning("Fold %d has no held-out records and is skipped", f)

        logger.info(
            "Running %d model(s) over %d fold(s) on %d records",
            len(self.model_specs), len(active), len(dataset),
        )

        table = ResultTable()
        if self.n_jobs == 1:
            for f in active:
                table.append(_evaluate_fold(dataset, assignment, f, self.model_specs, self.seed))
                logger.info("Fold %d/%d complete", f + 1, assignment.k)
        else:
            parallel = Parallel(n_jobs=self.n_jobs, return_as="generator_unordered")
            for rows in parallel(
                delayed(_evaluate_fold)(dataset, assignment, f, self.model_specs, self.seed)
                for f in active
            ):
                table.append(rows)
                logger.info("Fold %d/%d complete", int(rows["fold"][0]) + 1, assignment.k)

        return table


def run_cv(
    dataset: ProjectDataset,
    assignment: FoldAssignment,
    model_specs: list[ModelSpec],
    seed: int = 42,
    n_jobs: int = 1,
) -> ResultTable:
    """Convenience wrapper around CrossValidationRunner."""
    runner = CrossValidationRunner(model_specs=model_specs, seed=seed, n_jobs=n_jobs)
    return runner.run(dataset, assignment)
