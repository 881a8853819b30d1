"""Fold partitioning and holdout splitting.

Implements:
- Seeded k-fold assignment, optionally stratified by a discrete column
- Group-wise holdout split with the complement taken by record id
- Leakage check between training and held-out partitions

All randomness comes from generators derived from an explicit seed and a
stage name, never from global random state.
"""

import logging
import zlib

import numpy as np

from funding_eval.domain.entities import ColumnKind, FoldAssignment, ProjectDataset
from funding_eval.domain.errors import InvalidArgument, LeakageRisk


logger = logging.getLogger(__name__)

PARTITION_STAGE = "fold-partition"
HOLDOUT_STAGE = "group-holdout"

_STRATIFIABLE_KINDS = (ColumnKind.LABEL, ColumnKind.CATEGORICAL)


def _seed_sequence(seed: int, stage: str) -> np.random.SeedSequence:
    if seed < 0:
        raise InvalidArgument(f"Seed must be non-negative, got {seed}")
    return np.random.SeedSequence([seed, zlib.crc32(stage.encode("utf-8"))])


def make_rng(seed: int, stage: str) -> np.random.Generator:
    """Independent generator for one pipeline stage."""
    return np.random.default_rng(_seed_sequence(seed, stage))


def derive_seed(seed: int, stage: str) -> int:
    """Integer seed for libraries that take ``random_state``."""
    return int(_seed_sequence(seed, stage).generate_state(1)[0])


def _group_codes(dataset: ProjectDataset, column: str) -> np.ndarray:
    """Dense integer code per record, in sorted order of the column's values."""
    if column not in dataset.columns:
        raise InvalidArgument(f"Cannot stratify by unknown column '{column}'")
    if dataset.kind_of(column) not in _STRATIFIABLE_KINDS:
        raise InvalidArgument(
            f"Cannot stratify by '{column}' ({dataset.kind_of(column).value}); "
            "only label or categorical columns are supported"
        )
    values = dataset.frame[column]
    if values.null_count() > 0:
        raise InvalidArgument(f"Cannot stratify by '{column}': it contains missing values")
    _, codes = np.unique(values.to_numpy(), return_inverse=True)
    return codes.reshape(-1)


def partition(
    dataset: ProjectDataset,
    k: int,
    stratify_by: str | None = None,
    seed: int = 42,
) -> FoldAssignment:
    """Assign every record to exactly one of ``k`` folds.

    Record positions are shuffled with a seeded generator and dealt out
    round-robin. When stratifying, each stratum is shuffled and dealt
    separately, with the round-robin position carried over from one stratum
    to the next so overall fold sizes still differ by at most one.

    Args:
        dataset: Records to partition
        k: Number of folds, between 2 and the number of records
        stratify_by: Optional label or categorical column to balance across folds
        seed: Seed for the shuffle

    Returns:
        FoldAssignment aligned with the dataset's record order

    Raises:
        InvalidArgument: If the dataset is empty, k is out of range or the
            stratification column is unusable
    """
    n_records = len(dataset)
    if n_records == 0:
        raise InvalidArgument("Cannot partition an empty dataset")
    if k < 2:
        raise InvalidArgument(f"k must be at least 2, got {k}")
    if k > n_records:
        raise InvalidArgument(f"k ({k}) exceeds the number of records ({n_records})")

    rng = make_rng(seed, PARTITION_STAGE)
    folds = np.empty(n_records, dtype=np.int64)

    if stratify_by is None:
        order = rng.permutation(n_records)
        folds[order] = np.arange(n_records) % k
    else:
        codes = _group_codes(dataset, stratify_by)
        offset = 0
        for code in range(int(codes.max()) + 1):
            members = rng.permutation(np.flatnonzero(codes == code))
            folds[members] = (offset + np.arange(len(members))) % k
            offset = (offset + len(members)) % k

    assignment = FoldAssignment(
        record_ids=dataset.ids,
        folds=folds,
        k=k,
        seed=seed,
        stratify_by=stratify_by,
    )
    logger.debug("Partitioned %d records into %d folds: %s", n_records, k, assignment.fold_sizes())
    return assignment


def group_holdout_split(
    dataset: ProjectDataset,
    fraction: float,
    group_by: str | None = "label",
    seed: int = 42,
) -> tuple[ProjectDataset, ProjectDataset]:
    """Split off a test set by sampling ``fraction`` of every group.

    The training set is every record whose id is not in the test set, so the
    test set reproduces the source's group proportions exactly (up to
    rounding) even for imbalanced labels.

    Returns:
        Tuple of (train, test) datasets
    """
    if not 0 < fraction < 1:
        raise InvalidArgument(f"fraction must lie in (0, 1), got {fraction}")
    if len(dataset) == 0:
        raise InvalidArgument("Cannot split an empty dataset")

    rng = make_rng(seed, HOLDOUT_STAGE)
    if group_by is None:
        codes = np.zeros(len(dataset), dtype=np.int64)
    else:
        codes = _group_codes(dataset, group_by)

    test_positions: list[np.ndarray] = []
    for code in range(int(codes.max()) + 1):
        members = np.flatnonzero(codes == code)
        size = int(np.floor(fraction * len(members) + 0.5))
        test_positions.append(rng.choice(members, size=size, replace=False))

    positions = np.sort(np.concatenate(test_positions))
    test = dataset.take(positions)
    train = dataset.exclude_ids(test.ids)

    if len(test) == 0 or len(train) == 0:
        raise InvalidArgument(
            f"fraction {fraction} leaves an empty partition "
            f"(train={len(train)}, test={len(test)})"
        )
    return train, test


def check_no_leakage(train_ids: np.ndarray, test_ids: np.ndarray, fold: int) -> None:
    """Raise LeakageRisk if any record id is on both sides of a split."""
    overlap = np.intersect1d(train_ids, test_ids)
    if len(overlap) > 0:
        raise LeakageRisk(fold, overlap.tolist())
