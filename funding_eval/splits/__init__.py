"""Fold partitioning and holdout splits."""

from .partitioning import (
    partition,
    group_holdout_split,
    check_no_leakage,
    make_rng,
    derive_seed,
)

__all__ = [
    "partition",
    "group_holdout_split",
    "check_no_leakage",
    "make_rng",
    "derive_seed",
]
