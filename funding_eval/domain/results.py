"""Result containers produced by cross-validation, aggregation and testing."""

from dataclasses import dataclass, field
from datetime import datetime
import math
import threading
from typing import Any

import numpy as np
import polars as pl


RESULT_COLUMNS = ("fold", "model", "record_id", "observed", "predicted", "probability")

_RESULT_DTYPES = {
    "fold": pl.Int32,
    "model": pl.String,
    "observed": pl.Int8,
    "predicted": pl.Int8,
    "probability": pl.Float64,
}


def _normalize(rows: pl.DataFrame) -> pl.DataFrame:
    missing = [c for c in RESULT_COLUMNS if c not in rows.columns]
    if missing:
        raise ValueError(f"Result rows are missing columns: {missing}")
    return rows.select(RESULT_COLUMNS).with_columns(
        [pl.col(name).cast(dtype) for name, dtype in _RESULT_DTYPES.items()]
    )


@dataclass(eq=False)
class ResultTable:
    """Long-format prediction table: one row per (fold, model, record).

    Rows are only ever appended; readers get a concatenated snapshot through
    ``frame``. Appends are lock-protected so per-fold results can be merged
    from concurrent workers.
    """

    _frames: list[pl.DataFrame] = field(default_factory=list, init=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    @staticmethod
    def build_rows(
        fold: int,
        model: str,
        record_ids: np.ndarray,
        observed: np.ndarray,
        predicted: np.ndarray,
        probability: np.ndarray | None = None,
    ) -> pl.DataFrame:
        """Assemble the rows for one model on one held-out fold."""
        n = len(record_ids)
        return _normalize(pl.DataFrame({
            "fold": np.full(n, fold, dtype=np.int32),
            "model": [model] * n,
            "record_id": record_ids,
            "observed": np.asarray(observed, dtype=np.int8),
            "predicted": np.asarray(predicted, dtype=np.int8),
            "probability": (
                np.asarray(probability, dtype=np.float64)
                if probability is not None else [None] * n
            ),
        }))

    @classmethod
    def from_frame(cls, frame: pl.DataFrame) -> "ResultTable":
        table = cls()
        table.append(frame)
        return table

    def append(self, rows: pl.DataFrame) -> None:
        rows = _normalize(rows)
        with self._lock:
            self._frames.append(rows)

    @property
    def frame(self) -> pl.DataFrame:
        with self._lock:
            frames = list(self._frames)
        if not frames:
            return pl.DataFrame(schema={
                "fold": pl.Int32,
                "model": pl.String,
                "record_id": pl.Int64,
                "observed": pl.Int8,
                "predicted": pl.Int8,
                "probability": pl.Float64,
            })
        return pl.concat(frames, how="vertical")

    def __len__(self) -> int:
        with self._lock:
            return sum(f.height for f in self._frames)

    def models(self) -> list[str]:
        return sorted(self.frame["model"].unique().to_list())

    def folds(self) -> list[int]:
        return sorted(self.frame["fold"].unique().to_list())


@dataclass
class AggregateResult:
    """Per-fold error rates and AUC summaries for every evaluated model."""
    per_fold_errors: pl.DataFrame
    fold_auc: pl.DataFrame
    auc_by_model: dict[str, float | None]
    mean_error_by_model: dict[str, float]
    threshold: float = 0.5
    roc_auc_threshold_averaged: dict[str, float | None] = field(default_factory=dict)

    @property
    def models(self) -> list[str]:
        return sorted(self.mean_error_by_model)

    @property
    def undefined_auc_folds(self) -> list[tuple[int, str]]:
        flagged = self.fold_auc.filter(pl.col("auc_undefined"))
        return list(zip(flagged["fold"].to_list(), flagged["model"].to_list()))

    def summary(self) -> str:
        lines = [
            f"{'Model':<28} {'Mean error':>12} {'Mean AUC':>10} {'Undefined':>10}",
            "-" * 64,
        ]
        undefined = self.undefined_auc_folds
        for model in self.models:
            auc = self.auc_by_model.get(model)
            auc_text = f"{auc:.4f}" if auc is not None else "n/a"
            n_undefined = sum(1 for _, m in undefined if m == model)
            lines.append(
                f"{model:<28} {self.mean_error_by_model[model]:>12.4f} "
                f"{auc_text:>10} {n_undefined:>10d}"
            )
        return "\n".join(lines)


@dataclass(frozen=True)
class SignificanceResult:
    """Estimated mean error difference of ``model`` relative to ``baseline``."""
    model: str
    baseline: str
    method: str
    estimate: float
    standard_error: float
    t_statistic: float
    p_value: float
    df: float
    n_folds: int
    degenerate: bool = False

    def is_significant(self, alpha: float = 0.05) -> bool:
        if math.isnan(self.p_value):
            return False
        return self.p_value < alpha

    def to_dict(self) -> dict[str, Any]:
        return {
            "model": self.model,
            "baseline": self.baseline,
            "method": self.method,
            "estimate": self.estimate,
            "standard_error": self.standard_error,
            "t_statistic": self.t_statistic,
            "p_value": self.p_value,
            "df": self.df,
            "n_folds": self.n_folds,
            "degenerate": self.degenerate,
        }

    def summary(self) -> str:
        line = (
            f"[{self.method}] {self.model} vs {self.baseline}: "
            f"diff={self.estimate:+.5f} se={self.standard_error:.5f} "
            f"t={self.t_statistic:.3f} p={self.p_value:.4g}"
        )
        if self.degenerate:
            line += " (degenerate: zero residual variance)"
        return line


@dataclass
class EvaluationResult:
    """Label and probability metrics for one model on a held-out partition."""
    metrics: dict[str, float]
    predictions: np.ndarray
    actuals: np.ndarray
    model_name: str
    probabilities: np.ndarray | None = None
    evaluation_timestamp: datetime = field(default_factory=datetime.now)
    metadata: dict[str, Any] = field(default_factory=dict)

    def summary(self) -> str:
        lines = [
            f"Evaluation Results for: {self.model_name}",
            f"Timestamp: {self.evaluation_timestamp}",
            "-" * 50,
        ]
        for metric_name, value in self.metrics.items():
            lines.append(f"{metric_name}: {value:.6f}")
        return "\n".join(lines)
