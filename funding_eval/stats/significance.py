"""Significance tests on per-fold error rates.

Three ways of testing whether a model's mean error differs from a baseline:
- ``ols``: error ~ model, reference-coded against the baseline. Treats the
  folds of each model as independent samples.
- ``blocked``: error ~ model + fold, with fold as a blocking factor.
- ``paired``: paired t-test on per-fold error differences.

All three report the estimated difference (model minus baseline), its
standard error, t statistic and two-sided p-value. When the residual
variance is zero the result is flagged degenerate and the t statistic and
p-value are NaN.

``compare_models`` tests every model against one baseline and can add
direct comparisons between chosen pairs of models.
"""

from itertools import combinations
import logging
import math

import numpy as np
import polars as pl
import statsmodels.api as sm
from scipy import stats

from funding_eval.domain.errors import InvalidArgument
from funding_eval.domain.results import AggregateResult, SignificanceResult


logger = logging.getLogger(__name__)

SIGNIFICANCE_METHODS = ("ols", "blocked", "paired")

# Residual sums of squares below this (relative to total) count as zero
_DEGENERATE_TOLERANCE = 1e-12


def long_errors(per_fold_errors: pl.DataFrame) -> pl.DataFrame:
    """One row per (fold, model) with the scalar error, sorted by model then fold."""
    value = "error_rate" if "error_rate" in per_fold_errors.columns else "error"
    missing = [c for c in ("fold", "model", value) if c not in per_fold_errors.columns]
    if missing:
        raise InvalidArgument(f"Per-fold errors are missing columns: {missing}")
    return (
        per_fold_errors
        .select(
            pl.col("fold").cast(pl.Int64),
            pl.col("model").cast(pl.String),
            pl.col(value).cast(pl.Float64).alias("error"),
        )
        .sort(["model", "fold"])
    )


def _design_matrix(
    errors: pl.DataFrame,
    others: list[str],
    blocked: bool,
) -> np.ndarray:
    model_col = errors["model"].to_numpy()
    columns = [np.ones(errors.height)]
    columns.extend((model_col == m).astype(np.float64) for m in others)
    if blocked:
        fold_col = errors["fold"].to_numpy()
        for fold in sorted(set(fold_col.tolist()))[1:]:
            columns.append((fold_col == fold).astype(np.float64))
    return np.column_stack(columns)


def _ols_test(
    errors: pl.DataFrame,
    baseline: str,
    blocked: bool,
) -> list[SignificanceResult]:
    method = "blocked" if blocked else "ols"
    models = sorted(errors["model"].unique().to_list())
    others = [m for m in models if m != baseline]

    y = errors["error"].to_numpy()
    X = _design_matrix(errors, others, blocked)
    fit = sm.OLS(y, X).fit()

    total = float(np.sum((y - y.mean()) ** 2))
    degenerate = fit.df_resid <= 0 or fit.ssr <= _DEGENERATE_TOLERANCE * max(total, 1.0)
    if degenerate:
        logger.warning("%s test is degenerate: zero residual variance", method)

    results = []
    for j, model in enumerate(others, start=1):
        n_folds = int((errors["model"] == model).sum())
        if degenerate:
            # Difference of group means, free of least-squares rounding
            estimate = float(
                errors.filter(pl.col("model") == model)["error"].mean()
                - errors.filter(pl.col("model") == baseline)["error"].mean()
            )
            standard_error = 0.0
            t_statistic = p_value = math.nan
        else:
            estimate = float(fit.params[j])
            standard_error = float(fit.bse[j])
            t_statistic = float(fit.tvalues[j])
            p_value = float(fit.pvalues[j])
        results.append(SignificanceResult(
            model=model,
            baseline=baseline,
            method=method,
            estimate=estimate,
            standard_error=standard_error,
            t_statistic=t_statistic,
            p_value=p_value,
            df=float(fit.df_resid),
            n_folds=n_folds,
            degenerate=bool(degenerate),
        ))
    return results


def _paired_test(errors: pl.DataFrame, baseline: str) -> list[SignificanceResult]:
    reference = errors.filter(pl.col("model") == baseline).select(
        "fold", pl.col("error").alias("baseline_error")
    )
    models = sorted(m for m in errors["model"].unique().to_list() if m != baseline)

    results = []
    for model in models:
        paired = (
            errors.filter(pl.col("model") == model)
            .join(reference, on="fold", how="inner")
            .sort("fold")
        )
        n = paired.height
        if n < 2:
            raise InvalidArgument(
                f"Paired test needs at least 2 shared folds between '{model}' and '{baseline}', got {n}"
            )
        model_errors = paired["error"].to_numpy()
        baseline_errors = paired["baseline_error"].to_numpy()
        diffs = model_errors - baseline_errors
        spread = float(np.std(diffs, ddof=1))

        if spread <= math.sqrt(_DEGENERATE_TOLERANCE) * max(float(np.max(np.abs(diffs))), 1.0):
            logger.warning("paired test of %s vs %s is degenerate: constant differences", model, baseline)
            degenerate = True
            standard_error = 0.0
            t_statistic = p_value = math.nan
        else:
            degenerate = False
            outcome = stats.ttest_rel(model_errors, baseline_errors)
            standard_error = spread / math.sqrt(n)
            t_statistic = float(outcome.statistic)
            p_value = float(outcome.pvalue)

        results.append(SignificanceResult(
            model=model,
            baseline=baseline,
            method="paired",
            estimate=float(np.mean(diffs)),
            standard_error=standard_error,
            t_statistic=t_statistic,
            p_value=p_value,
            df=float(n - 1),
            n_folds=n,
            degenerate=degenerate,
        ))
    return results


def test_difference(
    per_fold_errors: pl.DataFrame,
    baseline: str | None = None,
    method: str = "ols",
) -> list[SignificanceResult]:
    """Test each model's mean error against the baseline model.

    Args:
        per_fold_errors: Table with fold, model and error_rate (or error) columns
        baseline: Reference model; defaults to the first model in sorted order
        method: One of "ols", "blocked" or "paired"

    Returns:
        One SignificanceResult per non-baseline model, sorted by model name

    Raises:
        InvalidArgument: Unknown method or baseline, or fewer than two models
    """
    if method not in SIGNIFICANCE_METHODS:
        raise InvalidArgument(f"Unknown significance method '{method}', expected one of {SIGNIFICANCE_METHODS}")

    errors = long_errors(per_fold_errors)
    models = sorted(errors["model"].unique().to_list())
    if len(models) < 2:
        raise InvalidArgument(f"Need at least two models to compare, got {models}")
    if baseline is None:
        baseline = models[0]
    elif baseline not in models:
        raise InvalidArgument(f"Baseline model '{baseline}' not among {models}")

    if method == "paired":
        return _paired_test(errors, baseline)
    return _ols_test(errors, baseline, blocked=(method == "blocked"))


def resolve_pairs(
    pairs: str | list[tuple[str, str]] | list[list[str]] | None,
    models: list[str],
) -> list[tuple[str, str]]:
    """Normalize requested model pairs to (model, baseline) tuples.

    ``"all"`` expands to every pair of models, with the earlier name in
    sorted order as the baseline.
    """
    if pairs is None:
        return []
    if pairs == "all":
        return [(b, a) for a, b in combinations(sorted(models), 2)]
    if isinstance(pairs, str):
        raise InvalidArgument(f"Unknown pair selection '{pairs}', expected 'all' or a list of pairs")

    resolved = []
    for pair in pairs:
        if len(pair) != 2:
            raise InvalidArgument(f"Model pair must name exactly two models, got {pair}")
        model, baseline = pair
        unknown = [m for m in (model, baseline) if m not in models]
        if unknown:
            raise InvalidArgument(f"Unknown model(s) {unknown} in pair, expected among {models}")
        if model == baseline:
            raise InvalidArgument(f"Cannot compare model '{model}' with itself")
        resolved.append((model, baseline))
    return resolved


def compare_models(
    aggregate_result: AggregateResult,
    baseline: str | None = None,
    methods: tuple[str, ...] | list[str] = ("ols", "paired"),
    pairs: str | list[tuple[str, str]] | None = None,
) -> list[SignificanceResult]:
    """Run every requested test on an aggregated cross-validation result.

    Every model is tested against ``baseline``. Each entry of ``pairs`` adds
    a direct comparison fitted on the rows of those two models only; pairs
    already covered by the baseline comparisons are not repeated.
    """
    errors = long_errors(aggregate_result.per_fold_errors)
    extra = resolve_pairs(pairs, sorted(errors["model"].unique().to_list()))

    results = []
    for method in methods:
        batch = test_difference(errors, baseline, method)
        seen = {frozenset((r.model, r.baseline)) for r in batch}
        for model, reference in extra:
            key = frozenset((model, reference))
            if key in seen:
                continue
            seen.add(key)
            subset = errors.filter(pl.col("model").is_in([model, reference]))
            batch.extend(test_difference(subset, reference, method))
        results.extend(batch)
    return results
