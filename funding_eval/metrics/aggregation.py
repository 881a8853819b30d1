"""Aggregation of cross-validation result tables into per-fold metrics."""

import logging

import numpy as np
import polars as pl

from funding_eval.domain.errors import InvalidArgument, UndefinedMetric
from funding_eval.domain.results import AggregateResult, ResultTable
from funding_eval.metrics.metrics import (
    DEFAULT_THRESHOLD,
    AUCMetric,
    roc_area,
    threshold_averaged_roc,
)


logger = logging.getLogger(__name__)

_FOLD_AUC_SCHEMA = {
    "fold": pl.Int32,
    "model": pl.String,
    "auc": pl.Float64,
    "auc_undefined": pl.Boolean,
    "reason": pl.String,
}


def _fold_scores(frame: pl.DataFrame) -> list[tuple[np.ndarray, np.ndarray]]:
    """(observed, probability) arrays per fold, in fold order."""
    return [
        (rows["observed"].to_numpy(), rows["probability"].to_numpy())
        for _, rows in sorted(frame.group_by(["fold"]), key=lambda item: item[0][0])
    ]


def with_decisions(frame: pl.DataFrame, threshold: float = DEFAULT_THRESHOLD) -> pl.DataFrame:
    """Add a ``decision`` column: thresholded probability, else the stored label."""
    return frame.with_columns(
        pl.when(pl.col("probability").is_not_null())
        .then((pl.col("probability") > threshold).cast(pl.Int8))
        .otherwise(pl.col("predicted"))
        .alias("decision")
    )


def per_fold_error_rates(frame: pl.DataFrame, threshold: float = DEFAULT_THRESHOLD) -> pl.DataFrame:
    """Error rate for every (fold, model) pair, sorted by fold then model."""
    return (
        with_decisions(frame, threshold)
        .group_by(["fold", "model"])
        .agg(
            pl.len().alias("n_records"),
            (pl.col("decision") != pl.col("observed")).sum().alias("n_errors"),
        )
        .with_columns((pl.col("n_errors") / pl.col("n_records")).alias("error_rate"))
        .sort(["fold", "model"])
    )


def per_fold_auc(frame: pl.DataFrame) -> pl.DataFrame:
    """AUC for every (fold, model) pair; undefined folds are null and flagged."""
    metric = AUCMetric()
    rows = []
    for (fold, model), group in frame.group_by(["fold", "model"]):
        row = {"fold": fold, "model": model, "auc": None, "auc_undefined": True, "reason": None}
        if group["probability"].null_count() > 0:
            row["reason"] = "no_probability"
        else:
            try:
                row["auc"] = metric.compute(
                    group["observed"].to_numpy(), group["probability"].to_numpy()
                )
                row["auc_undefined"] = False
            except UndefinedMetric:
                logger.warning("AUC undefined for model %s on fold %d: single-class fold", model, fold)
                row["reason"] = "single_class"
        rows.append(row)

    return pl.DataFrame(rows, schema=_FOLD_AUC_SCHEMA).sort(["fold", "model"])


def aggregate(
    results: ResultTable,
    threshold: float = DEFAULT_THRESHOLD,
    roc_thresholds: int = 101,
) -> AggregateResult:
    """Summarize a result table into per-fold errors and AUC by model.

    Mean AUC is the unweighted mean of per-fold AUCs over the folds where it is
    defined. The result does not depend on the row order of ``results``.

    Args:
        results: Result table from a cross-validation run
        threshold: Probability cutoff for the positive label
        roc_thresholds: Grid size for the threshold-averaged ROC curve

    Returns:
        AggregateResult with per-fold tables and per-model summaries
    """
    if not 0.0 <= threshold <= 1.0:
        raise InvalidArgument(f"threshold must lie in [0, 1], got {threshold}")

    frame = results.frame
    if frame.height == 0:
        raise InvalidArgument("Cannot aggregate an empty result table")

    errors = per_fold_error_rates(frame, threshold)
    fold_auc = per_fold_auc(frame)

    mean_error_by_model = {
        model: float(np.mean(group.sort("fold")["error_rate"].to_numpy()))
        for (model,), group in errors.group_by(["model"])
    }

    auc_by_model: dict[str, float | None] = {}
    for (model,), group in fold_auc.group_by(["model"]):
        defined = group.filter(~pl.col("auc_undefined")).sort("fold")["auc"].to_numpy()
        auc_by_model[model] = float(np.mean(defined)) if len(defined) else None

    averaged_area: dict[str, float | None] = {}
    for (model,), group in frame.group_by(["model"]):
        if group["probability"].null_count() > 0:
            averaged_area[model] = None
            continue
        try:
            averaged_area[model] = roc_area(
                threshold_averaged_roc(_fold_scores(group), roc_thresholds)
            )
        except UndefinedMetric:
            averaged_area[model] = None

    return AggregateResult(
        per_fold_errors=errors,
        fold_auc=fold_auc,
        auc_by_model=dict(sorted(auc_by_model.items())),
        mean_error_by_model=dict(sorted(mean_error_by_model.items())),
        threshold=threshold,
        roc_auc_threshold_averaged=dict(sorted(averaged_area.items())),
    )


def model_roc_curve(
    results: ResultTable,
    model: str,
    roc_thresholds: int = 101,
) -> pl.DataFrame:
    """Threshold-averaged ROC curve of one model across its folds."""
    frame = results.frame.filter(pl.col("model") == model)
    if frame.height == 0:
        raise InvalidArgument(f"No results for model '{model}'")
    if frame["probability"].null_count() > 0:
        raise UndefinedMetric(f"Model '{model}' has no probabilities")
    return threshold_averaged_roc(_fold_scores(frame), roc_thresholds)
