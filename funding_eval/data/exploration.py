"""Descriptive summaries of a cleaned project dataset."""

import polars as pl

from funding_eval.domain.entities import ColumnKind, ProjectDataset
from funding_eval.domain.errors import InvalidArgument


def label_balance(dataset: ProjectDataset) -> pl.DataFrame:
    """Count and share of each label value."""
    label = dataset.label_column
    return (
        dataset.frame
        .group_by(label)
        .agg(pl.len().alias("count"))
        .with_columns((pl.col("count") / pl.col("count").sum()).alias("share"))
        .sort(label)
    )


def success_rate_by(
    dataset: ProjectDataset,
    column: str,
    min_count: int = 1,
) -> pl.DataFrame:
    """Success rate per level of a categorical column, highest first.

    Args:
        dataset: Cleaned project dataset
        column: Categorical column to group by
        min_count: Drop levels with fewer projects than this

    Returns:
        DataFrame with the level, n_projects, n_successful and success_rate
    """
    if dataset.kind_of(column) != ColumnKind.CATEGORICAL:
        raise InvalidArgument(f"Column '{column}' is not categorical")
    label = dataset.label_column
    return (
        dataset.frame
        .group_by(column)
        .agg(
            pl.len().alias("n_projects"),
            pl.col(label).sum().cast(pl.Int64).alias("n_successful"),
        )
        .filter(pl.col("n_projects") >= min_count)
        .with_columns((pl.col("n_successful") / pl.col("n_projects")).alias("success_rate"))
        .sort(["success_rate", column], descending=[True, False])
    )


def numeric_summary(dataset: ProjectDataset, columns: list[str] | None = None) -> pl.DataFrame:
    """Mean, median, min and max of numeric columns, split by label."""
    if columns is None:
        columns = dataset.columns_of_kind(ColumnKind.NUMERIC)
    for column in columns:
        if dataset.kind_of(column) != ColumnKind.NUMERIC:
            raise InvalidArgument(f"Column '{column}' is not numeric")
    label = dataset.label_column

    frames = []
    for column in columns:
        frames.append(
            dataset.frame
            .group_by(label)
            .agg(
                pl.col(column).mean().alias("mean"),
                pl.col(column).median().alias("median"),
                pl.col(column).min().cast(pl.Float64).alias("min"),
                pl.col(column).max().cast(pl.Float64).alias("max"),
            )
            .with_columns(pl.lit(column).alias("column"))
            .select("column", label, "mean", "median", "min", "max")
        )
    if not frames:
        return pl.DataFrame(schema={
            "column": pl.String, label: pl.Int8,
            "mean": pl.Float64, "median": pl.Float64, "min": pl.Float64, "max": pl.Float64,
        })
    return pl.concat(frames).sort(["column", label])


def generate_exploration_report(
    dataset: ProjectDataset,
    categorical_columns: list[str] | None = None,
    top_n: int = 10,
) -> str:
    """Plain text overview of label balance and success rates."""
    if categorical_columns is None:
        categorical_columns = dataset.columns_of_kind(ColumnKind.CATEGORICAL)

    lines = [
        "=" * 70,
        "PROJECT DATA OVERVIEW",
        f"Projects: {len(dataset):,}",
        "=" * 70,
        "",
        "## Label Balance",
        "-" * 50,
    ]
    for row in label_balance(dataset).iter_rows(named=True):
        lines.append(f"label={row[dataset.label_column]}: {row['count']:>10,} ({row['share']:.4f})")

    lines.extend(["", "## Numeric Columns by Label", "-" * 50,
                  f"{'Column':<20} {'Label':>5} {'Mean':>14} {'Median':>14}"])
    for row in numeric_summary(dataset).iter_rows(named=True):
        lines.append(
            f"{row['column']:<20} {row[dataset.label_column]:>5} "
            f"{row['mean']:>14.2f} {row['median']:>14.2f}"
        )

    for column in categorical_columns:
        rates = success_rate_by(dataset, column)
        lines.extend([
            "",
            f"## Success Rate by {column} ({rates.height} levels, top {min(top_n, rates.height)})",
            "-" * 50,
        ])
        for row in rates.head(top_n).iter_rows(named=True):
            lines.append(
                f"{str(row[column]):<24} {row['n_projects']:>10,} {row['success_rate']:>8.4f}"
            )

    lines.append("=" * 70)
    return "\n".join(lines)
