"""Raw data ingestion and exploration."""

from .loading import (
    RAW_COLUMNS,
    load_raw_projects,
    clean_projects,
    sample_projects,
    load_projects,
)

from .exploration import (
    label_balance,
    success_rate_by,
    numeric_summary,
    generate_exploration_report,
)

__all__ = [
    "RAW_COLUMNS",
    "load_raw_projects",
    "clean_projects",
    "sample_projects",
    "load_projects",
    "label_balance",
    "success_rate_by",
    "numeric_summary",
    "generate_exploration_report",
]
