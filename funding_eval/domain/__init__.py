"""Domain layer: entities, results, errors and protocols."""

from .entities import (
    ColumnKind,
    PROJECT_SCHEMA,
    ProjectRecord,
    ProjectDataset,
    FoldAssignment,
    ModelFamily,
    ModelConfig,
    ModelSpec,
    default_model_specs,
    success_label,
)

from .errors import (
    FundingEvalError,
    InvalidArgument,
    UnsupportedCardinality,
    LeakageRisk,
    UndefinedMetric,
    Unsupported,
)

from .results import (
    ResultTable,
    AggregateResult,
    SignificanceResult,
    EvaluationResult,
)

from .protocols import (
    IClassifier,
    IMetric,
    IResultStore,
    IPartitioner,
)

__all__ = [
    "ColumnKind",
    "PROJECT_SCHEMA",
    "ProjectRecord",
    "ProjectDataset",
    "FoldAssignment",
    "ModelFamily",
    "ModelConfig",
    "ModelSpec",
    "default_model_specs",
    "success_label",
    "FundingEvalError",
    "InvalidArgument",
    "UnsupportedCardinality",
    "LeakageRisk",
    "UndefinedMetric",
    "Unsupported",
    "ResultTable",
    "AggregateResult",
    "SignificanceResult",
    "EvaluationResult",
    "IClassifier",
    "IMetric",
    "IResultStore",
    "IPartitioner",
]
