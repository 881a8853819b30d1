"""Error taxonomy for the evaluation pipeline."""


class FundingEvalError(Exception):
    """Base class for all pipeline errors."""


class InvalidArgument(FundingEvalError, ValueError):
    """A partition, split or configuration request is malformed."""


class UnsupportedCardinality(FundingEvalError, ValueError):
    """A categorical feature has more levels than the model family supports."""

    def __init__(self, column: str, n_levels: int, max_levels: int) -> None:
        self.column = column
        self.n_levels = n_levels
        self.max_levels = max_levels
        super().__init__(
            f"Column '{column}' has {n_levels} distinct values, "
            f"more than the {max_levels} this model can encode"
        )


class LeakageRisk(FundingEvalError, RuntimeError):
    """A record id appears in both the training and held-out partitions."""

    def __init__(self, fold: int, overlapping_ids: list) -> None:
        self.fold = fold
        self.overlapping_ids = overlapping_ids
        preview = ", ".join(str(i) for i in overlapping_ids[:5])
        super().__init__(
            f"Fold {fold}: {len(overlapping_ids)} record id(s) in both "
            f"training and held-out sets ({preview})"
        )


class UndefinedMetric(FundingEvalError, ArithmeticError):
    """A metric cannot be computed, e.g. AUC on a single-class fold."""


class Unsupported(FundingEvalError, NotImplementedError):
    """The model does not support the requested operation."""
