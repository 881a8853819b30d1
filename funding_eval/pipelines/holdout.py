"""Single train/test holdout evaluation.

Draws a group-wise holdout sample, trains each model on the complement and
reports label metrics plus AUC on the held-out records.
"""

from dataclasses import dataclass, field
import logging

import numpy as np
import polars as pl

from funding_eval.domain.entities import ModelSpec, ProjectDataset, default_model_specs
from funding_eval.domain.errors import InvalidArgument, UndefinedMetric
from funding_eval.domain.results import EvaluationResult, ResultTable
from funding_eval.metrics.aggregation import with_decisions
from funding_eval.metrics.metrics import DEFAULT_THRESHOLD, AUCMetric, compute_all_metrics
from funding_eval.pipelines.cross_validation import evaluate_split
from funding_eval.splits.partitioning import group_holdout_split


logger = logging.getLogger(__name__)


@dataclass
class HoldoutReport:
    """Outcome of a holdout evaluation."""
    results: ResultTable
    evaluations: dict[str, EvaluationResult]
    train_size: int
    test_size: int
    test_label_proportion: float


@dataclass
class HoldoutEvaluation:
    """Evaluates models on one seeded group-wise holdout sample."""

    model_specs: list[ModelSpec] = field(default_factory=default_model_specs)
    fraction: float = 0.2
    group_by: str | None = "label"
    seed: int = 42
    threshold: float = DEFAULT_THRESHOLD

    def run(self, dataset: ProjectDataset) -> HoldoutReport:
        """Split, train and evaluate.

        Args:
            dataset: Full labeled dataset

        Returns:
            HoldoutReport with per-model EvaluationResults
        """
        if not 0.0 <= self.threshold <= 1.0:
            raise InvalidArgument(f"threshold must lie in [0, 1], got {self.threshold}")

        train, test = group_holdout_split(dataset, self.fraction, self.group_by, self.seed)
        logger.info("Holdout split: %d training, %d held out", len(train), len(test))

        rows = evaluate_split(train, test, self.model_specs, fold=0, seed=self.seed)
        results = ResultTable.from_frame(rows)
        decided = with_decisions(results.frame, self.threshold)

        evaluations = {}
        for spec in self.model_specs:
            evaluations[spec.name] = self._evaluate_model(
                decided.filter(pl.col("model") == spec.name), spec.name
            )

        return HoldoutReport(
            results=results,
            evaluations=evaluations,
            train_size=len(train),
            test_size=len(test),
            test_label_proportion=test.label_proportion(),
        )

    def _evaluate_model(self, rows: pl.DataFrame, model: str) -> EvaluationResult:
        actuals = rows["observed"].to_numpy()
        decisions = rows["decision"].to_numpy()
        metrics = compute_all_metrics(actuals, decisions)

        probabilities = None
        if rows["probability"].null_count() == 0:
            probabilities = rows["probability"].to_numpy()
            try:
                metrics["auc"] = AUCMetric().compute(actuals, probabilities)
            except UndefinedMetric:
                logger.warning("AUC undefined for %s: held-out sample has a single class", model)

        return EvaluationResult(
            metrics=metrics,
            predictions=decisions,
            actuals=actuals,
            model_name=model,
            probabilities=probabilities,
            metadata={
                "n_samples": len(actuals),
                "threshold": self.threshold,
                "positive_rate": float(np.mean(actuals)) if len(actuals) else float("nan"),
            },
        )


def generate_holdout_report(report: HoldoutReport) -> str:
    """Format a holdout report for the terminal."""
    lines = [
        "=" * 70,
        "HOLDOUT EVALUATION REPORT",
        f"Training records: {report.train_size:,}",
        f"Held-out records: {report.test_size:,} (success rate {report.test_label_proportion:.4f})",
        "=" * 70,
    ]
    for evaluation in report.evaluations.values():
        lines.append("")
        lines.append(evaluation.summary())
    lines.append("=" * 70)
    return "\n".join(lines)
