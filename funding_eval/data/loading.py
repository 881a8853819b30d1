"""Loading and cleaning of raw Kickstarter project exports.

The raw CSV carries one row per project with campaign dates, goal and
pledged amounts (in local currency and converted to USD) and the final
state. Cleaning projects it onto the columns used for modelling:

    ID, name, goal_usd, pledged_usd, duration_seconds, main_category,
    category, currency, country, launched, deadline, state, label
"""

import logging
from pathlib import Path

import polars as pl

from funding_eval.domain.entities import ProjectDataset
from funding_eval.domain.errors import InvalidArgument
from funding_eval.splits.partitioning import make_rng


logger = logging.getLogger(__name__)

RAW_COLUMNS = [
    "ID",
    "name",
    "category",
    "main_category",
    "currency",
    "deadline",
    "goal",
    "launched",
    "pledged",
    "state",
    "backers",
    "country",
    "usd pledged",
    "usd_pledged_real",
    "usd_goal_real",
]

REQUIRED_COLUMNS = [
    "ID",
    "category",
    "main_category",
    "currency",
    "deadline",
    "launched",
    "country",
    "usd_pledged_real",
    "usd_goal_real",
]

CATEGORICAL_COLUMNS = ["main_category", "category", "currency", "country"]

SAMPLE_STAGE = "sample"


def load_raw_projects(path: Path | str) -> pl.DataFrame:
    """Read the raw project CSV.

    Args:
        path: Path to the CSV export

    Returns:
        Raw DataFrame with the columns as found in the file

    Raises:
        FileNotFoundError: If the file doesn't exist
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Project data not found: {path}")

    raw = pl.read_csv(
        path,
        infer_schema_length=10000,
        encoding="utf8-lossy",
    )
    logger.info("Loaded %d raw projects from %s", raw.height, path)
    return raw


def _parse_timestamp(raw: pl.DataFrame, column: str) -> pl.Expr:
    """Datetime expression accepting both date-only and date-time strings."""
    if raw.schema[column].is_temporal():
        return pl.col(column).cast(pl.Datetime("us"))
    text = pl.col(column).cast(pl.String).str.strip_chars()
    return pl.coalesce(
        text.str.strptime(pl.Datetime("us"), "%Y-%m-%d %H:%M:%S", strict=False),
        text.str.strptime(pl.Date, "%Y-%m-%d", strict=False).cast(pl.Datetime("us")),
    ).alias(column)


def clean_projects(
    raw: pl.DataFrame,
    keep_states: list[str] | None = None,
) -> ProjectDataset:
    """Project raw rows onto the modelling columns and derive the label.

    A project is successful when its USD pledge reaches its USD goal.

    Args:
        raw: DataFrame from ``load_raw_projects``
        keep_states: Optional list of ``state`` values to retain

    Returns:
        ProjectDataset of complete rows with positive goal and duration

    Raises:
        InvalidArgument: If required columns are missing
    """
    missing = [c for c in REQUIRED_COLUMNS if c not in raw.columns]
    if missing:
        raise InvalidArgument(f"Raw projects are missing columns: {missing}")

    if keep_states:
        if "state" not in raw.columns:
            raise InvalidArgument("Cannot filter by state: column 'state' is missing")
        raw = raw.filter(pl.col("state").is_in(keep_states))

    optional = [
        pl.col(name).cast(pl.String)
        for name in ("name", "state")
        if name in raw.columns
    ]
    frame = (
        raw.select(
            pl.col("ID").cast(pl.Int64),
            *optional,
            pl.col("usd_goal_real").cast(pl.Float64).alias("goal_usd"),
            pl.col("usd_pledged_real").cast(pl.Float64).alias("pledged_usd"),
            *[pl.col(c).cast(pl.String) for c in CATEGORICAL_COLUMNS],
            _parse_timestamp(raw, "launched"),
            _parse_timestamp(raw, "deadline"),
        )
        .with_columns(
            (pl.col("deadline") - pl.col("launched")).dt.total_seconds().cast(pl.Float64).alias("duration_seconds"),
            ((pl.col("pledged_usd") - pl.col("goal_usd")) >= 0).cast(pl.Int8).alias("label"),
        )
    )

    n_before = frame.height
    frame = (
        frame
        .drop_nulls(subset=["ID", "goal_usd", "pledged_usd", "duration_seconds", *CATEGORICAL_COLUMNS])
        .filter((pl.col("goal_usd") > 0) & (pl.col("duration_seconds") > 0))
        .unique(subset=["ID"], keep="first", maintain_order=True)
    )
    if frame.height < n_before:
        logger.info("Dropped %d incomplete or invalid projects", n_before - frame.height)

    ordered = [
        c for c in (
            "ID", "name", "goal_usd", "pledged_usd", "duration_seconds",
            "main_category", "category", "currency", "country",
            "launched", "deadline", "state", "label",
        )
        if c in frame.columns
    ]
    return ProjectDataset(frame=frame.select(ordered))


def sample_projects(dataset: ProjectDataset, n: int, seed: int = 42) -> ProjectDataset:
    """Seeded simple random sample of ``n`` projects, kept in original order."""
    if n < 1:
        raise InvalidArgument(f"Sample size must be positive, got {n}")
    if n >= len(dataset):
        return dataset
    rng = make_rng(seed, SAMPLE_STAGE)
    positions = rng.choice(len(dataset), size=n, replace=False)
    positions.sort()
    return dataset.take(positions)


def load_projects(
    path: Path | str,
    keep_states: list[str] | None = None,
    sample_size: int | None = None,
    seed: int = 42,
) -> ProjectDataset:
    """Load, clean and optionally subsample the project export."""
    dataset = clean_projects(load_raw_projects(path), keep_states=keep_states)
    if sample_size is not None:
        dataset = sample_projects(dataset, sample_size, seed=seed)
    logger.info(
        "Prepared %d projects (success rate %.4f)",
        len(dataset), dataset.label_proportion(),
    )
    return dataset
