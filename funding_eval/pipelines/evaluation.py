"""Cross-validated model comparison pipeline.

Ties together:
- Fold partitioning of the cleaned dataset
- Cross-validated training and prediction for every model spec
- Per-fold error rates, AUC and threshold-averaged ROC
- Significance of error differences against a baseline model
"""

from dataclasses import dataclass, field
from datetime import datetime
import logging
import math

from funding_eval.domain.entities import FoldAssignment, ModelSpec, ProjectDataset, default_model_specs
from funding_eval.domain.protocols import IPartitioner
from funding_eval.domain.results import AggregateResult, ResultTable, SignificanceResult
from funding_eval.metrics.aggregation import aggregate
from funding_eval.metrics.metrics import DEFAULT_THRESHOLD
from funding_eval.pipelines.config import PipelineConfig
from funding_eval.pipelines.cross_validation import CrossValidationRunner
from funding_eval.splits.partitioning import partition
from funding_eval.stats.significance import compare_models


logger = logging.getLogger(__name__)


@dataclass
class CrossValidationReport:
    """Everything produced by one cross-validation run."""
    results: ResultTable
    aggregate: AggregateResult
    significance: list[SignificanceResult]
    assignment: FoldAssignment | None = None
    evaluation_timestamp: datetime = field(default_factory=datetime.now)
    metadata: dict = field(default_factory=dict)


@dataclass
class EvaluationPipeline:
    """Pipeline for cross-validated comparison of success classifiers.

    Partitions the dataset into folds, evaluates every model spec on every
    fold, aggregates per-fold metrics and tests error differences against
    the baseline model.
    """

    model_specs: list[ModelSpec] = field(default_factory=default_model_specs)
    k: int = 10
    stratify_by: str | None = "label"
    seed: int = 42
    n_jobs: int = 1
    threshold: float = DEFAULT_THRESHOLD
    baseline: str | None = None
    significance_methods: tuple[str, ...] = ("ols", "paired")
    pairs: str | list[tuple[str, str]] | None = None
    roc_thresholds: int = 101
    partitioner: IPartitioner = partition

    @classmethod
    def from_config(cls, config: PipelineConfig) -> "EvaluationPipeline":
        return cls(
            model_specs=config.to_domain_model_specs(),
            k=config.cv.k,
            stratify_by=config.cv.stratify_by,
            seed=config.cv.seed,
            n_jobs=config.cv.n_jobs,
            threshold=config.evaluation.threshold,
            baseline=config.evaluation.baseline_model,
            significance_methods=tuple(config.evaluation.significance_methods),
            pairs=config.evaluation.pairs,
            roc_thresholds=config.evaluation.roc_thresholds,
        )

    def run(self, dataset: ProjectDataset) -> CrossValidationReport:
        """Partition, cross-validate, aggregate and test.

        Args:
            dataset: Cleaned labeled dataset

        Returns:
            CrossValidationReport for the run
        """
        assignment = self.partitioner(dataset, self.k, stratify_by=self.stratify_by, seed=self.seed)
        logger.info("Fold sizes: %s", assignment.fold_sizes().tolist())

        runner = CrossValidationRunner(model_specs=self.model_specs, seed=self.seed, n_jobs=self.n_jobs)
        results = runner.run(dataset, assignment)
        return self.summarize(results, assignment)

    def summarize(
        self,
        results: ResultTable,
        assignment: FoldAssignment | None = None,
    ) -> CrossValidationReport:
        """Aggregate an existing result table and run the significance tests."""
        summary = aggregate(results, self.threshold, self.roc_thresholds)

        significance: list[SignificanceResult] = []
        if len(summary.models) >= 2:
            significance = compare_models(summary, self.baseline, self.significance_methods, self.pairs)
        else:
            logger.warning("Only one model evaluated; skipping significance tests")

        return CrossValidationReport(
            results=results,
            aggregate=summary,
            significance=significance,
            assignment=assignment,
            metadata={
                "k": assignment.k if assignment is not None else len(results.folds()),
                "seed": self.seed,
                "stratify_by": self.stratify_by,
                "threshold": self.threshold,
                "models": [spec.name for spec in self.model_specs],
            },
        )


def _format_float(value: float | None, spec: str = ".4f") -> str:
    if value is None or math.isnan(value):
        return "n/a"
    return format(value, spec)


def generate_report(report: CrossValidationReport) -> str:
    """Render a cross-validation report as plain text.

    Args:
        report: Result of ``EvaluationPipeline.run`` or ``summarize``

    Returns:
        Formatted report string
    """
    summary = report.aggregate
    lines = [
        "=" * 70,
        "CROSS-VALIDATION REPORT",
        f"Folds: {report.metadata.get('k')}  Seed: {report.metadata.get('seed')}  "
        f"Stratified by: {report.metadata.get('stratify_by')}",
        f"Decision threshold: {summary.threshold}",
        f"Timestamp: {report.evaluation_timestamp.isoformat()}",
        "=" * 70,
        "",
        "## Model Summary",
        "-" * 50,
        summary.summary(),
        "",
        "## Threshold-Averaged ROC Area",
        "-" * 50,
    ]
    for model in summary.models:
        area = summary.roc_auc_threshold_averaged.get(model)
        lines.append(f"{model:<28} {_format_float(area):>10}")

    lines.extend([
        "",
        "## Per-Fold Error Rates",
        "-" * 50,
        f"{'Fold':>4}  " + " ".join(f"{m[:16]:>16}" for m in summary.models),
    ])
    errors = summary.per_fold_errors
    for fold in sorted(errors["fold"].unique().to_list()):
        rows = errors.filter(errors["fold"] == fold)
        by_model = dict(zip(rows["model"].to_list(), rows["error_rate"].to_list()))
        lines.append(
            f"{fold:>4}  " + " ".join(f"{_format_float(by_model.get(m)):>16}" for m in summary.models)
        )

    undefined = summary.undefined_auc_folds
    if undefined:
        lines.extend(["", "## Undefined AUC", "-" * 50])
        for fold, model in undefined:
            lines.append(f"fold {fold}: {model}")

    if report.significance:
        lines.extend(["", "## Error Difference vs Baseline", "-" * 50])
        for result in report.significance:
            lines.append(result.summary())

    lines.append("=" * 70)
    return "\n".join(lines)
