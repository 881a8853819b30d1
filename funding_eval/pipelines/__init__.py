"""Pipeline implementations for crowdfunding success evaluation."""

from .config import (
    PipelineConfig,
    PathsConfig,
    DataConfig,
    CrossValidationConfig,
    HoldoutConfig,
    EvaluationConfig,
    ModelSpecConfig,
    load_config,
    get_default_config,
)
from .cross_validation import (
    CrossValidationRunner,
    evaluate_split,
    run_cv,
)
from .holdout import (
    HoldoutEvaluation,
    HoldoutReport,
    generate_holdout_report,
)
from .evaluation import (
    CrossValidationReport,
    EvaluationPipeline,
    generate_report,
)

__all__ = [
    # Config
    "PipelineConfig",
    "PathsConfig",
    "DataConfig",
    "CrossValidationConfig",
    "HoldoutConfig",
    "EvaluationConfig",
    "ModelSpecConfig",
    "load_config",
    "get_default_config",
    # Cross-validation
    "CrossValidationRunner",
    "evaluate_split",
    "run_cv",
    # Holdout
    "HoldoutEvaluation",
    "HoldoutReport",
    "generate_holdout_report",
    # Evaluation
    "CrossValidationReport",
    "EvaluationPipeline",
    "generate_report",
]
