"""Configuration loader for evaluation pipelines.

Provides typed configuration loading from YAML files with
sensible defaults and validation using Pydantic.
"""

from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, Field, model_validator

from funding_eval.domain.entities import (
    DEFAULT_TREE_COUNT,
    ModelConfig,
    ModelFamily,
    ModelSpec,
    default_model_specs,
)


class PathsConfig(BaseModel):
    """Configuration for file system paths."""

    model_config = {"frozen": True}

    data_path: Path = Field(default=Path("data/ks-projects-201801.csv"))
    output_dir: Path = Field(default=Path("artifacts"))
    results_dir: Path = Field(default=Path("artifacts/results"))


class DataConfig(BaseModel):
    """Configuration for loading and cleaning the project dataset."""

    model_config = {"frozen": True}

    keep_states: list[str] | None = Field(default=None)
    sample_size: int | None = Field(default=None, ge=2)


class CrossValidationConfig(BaseModel):
    """Configuration for fold partitioning and the cross-validation runner."""

    model_config = {"frozen": True}

    k: int = Field(default=10, ge=2)
    stratify_by: str | None = Field(default="label")
    seed: int = Field(default=42, ge=0)
    n_jobs: int = Field(default=1)


class HoldoutConfig(BaseModel):
    """Configuration for the single train/test holdout evaluation."""

    model_config = {"frozen": True}

    fraction: float = Field(default=0.2, gt=0, lt=1)
    group_by: str | None = Field(default="label")


class EvaluationConfig(BaseModel):
    """Configuration for metric aggregation and significance testing."""

    model_config = {"frozen": True}

    threshold: float = Field(default=0.5, ge=0, le=1)
    baseline_model: str | None = Field(default=None)
    significance_methods: list[Literal["ols", "blocked", "paired"]] = Field(
        default_factory=lambda: ["ols", "paired"]
    )
    roc_thresholds: int = Field(default=101, ge=2)
    # Extra (model, baseline) comparisons, or "all" for every pair of models
    pairs: list[tuple[str, str]] | Literal["all"] | None = Field(default=None)


class ModelSpecConfig(BaseModel):
    """One named model configuration."""

    model_config = {"frozen": True}

    name: str
    family: Literal["logistic", "random_forest", "majority"] = Field(default="logistic")
    features: list[str] = Field(default_factory=list)
    exclude_features: list[str] = Field(default_factory=list)
    target: str = Field(default="label")
    tree_count: int = Field(default=DEFAULT_TREE_COUNT, ge=1)
    max_categories: int | None = Field(default=None, ge=1)
    backend: Literal["sklearn", "xgboost"] = Field(default="sklearn")
    regularization_c: float = Field(default=1e6, gt=0)
    max_iter: int = Field(default=1000, ge=1)
    n_jobs: int = Field(default=1)

    def to_domain_spec(self, random_state: int = 42) -> ModelSpec:
        """Convert to domain ModelSpec entity."""
        return ModelSpec(
            name=self.name,
            config=ModelConfig(
                family=ModelFamily(self.family),
                features=tuple(self.features),
                exclude_features=tuple(self.exclude_features),
                target=self.target,
                tree_count=self.tree_count,
                max_categories=self.max_categories,
                backend=self.backend,
                regularization_c=self.regularization_c,
                max_iter=self.max_iter,
                random_state=random_state,
                n_jobs=self.n_jobs,
            ),
        )

    @classmethod
    def from_domain_spec(cls, spec: ModelSpec) -> "ModelSpecConfig":
        cfg = spec.config
        return cls(
            name=spec.name,
            family=cfg.family.value,
            features=list(cfg.features),
            exclude_features=list(cfg.exclude_features),
            target=cfg.target,
            tree_count=cfg.tree_count,
            max_categories=cfg.max_categories,
            backend=cfg.backend,
            regularization_c=cfg.regularization_c,
            max_iter=cfg.max_iter,
            n_jobs=cfg.n_jobs,
        )


def _default_models() -> list[ModelSpecConfig]:
    return [ModelSpecConfig.from_domain_spec(spec) for spec in default_model_specs()]


class PipelineConfig(BaseModel):
    """Complete pipeline configuration."""

    model_config = {"frozen": True}

    paths: PathsConfig = Field(default_factory=PathsConfig)
    data: DataConfig = Field(default_factory=DataConfig)
    cv: CrossValidationConfig = Field(default_factory=CrossValidationConfig)
    holdout: HoldoutConfig = Field(default_factory=HoldoutConfig)
    evaluation: EvaluationConfig = Field(default_factory=EvaluationConfig)
    models: list[ModelSpecConfig] = Field(default_factory=_default_models, min_length=1)

    @model_validator(mode="after")
    def check_model_names(self) -> "PipelineConfig":
        names = [m.name for m in self.models]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ValueError(f"Model names must be unique, duplicated: {duplicates}")
        baseline = self.evaluation.baseline_model
        if baseline is not None and baseline not in names:
            raise ValueError(f"Baseline model '{baseline}' is not one of the configured models {names}")
        pairs = self.evaluation.pairs
        if isinstance(pairs, list):
            for model, reference in pairs:
                unknown = [n for n in (model, reference) if n not in names]
                if unknown:
                    raise ValueError(f"Pair ({model}, {reference}) names unknown model(s) {unknown}")
                if model == reference:
                    raise ValueError(f"Pair compares model '{model}' with itself")
        return self

    def with_base_path(self, base_path: Path) -> "PipelineConfig":
        """Return a new config with paths resolved against base_path."""
        def resolve(p: Path) -> Path:
            if not p.is_absolute():
                return base_path / p
            return p

        resolved_paths = PathsConfig(
            data_path=resolve(self.paths.data_path),
            output_dir=resolve(self.paths.output_dir),
            results_dir=resolve(self.paths.results_dir),
        )
        return self.model_copy(update={"paths": resolved_paths})

    def to_domain_model_specs(self) -> list[ModelSpec]:
        """Convert the configured models to domain ModelSpec entities."""
        return [m.to_domain_spec(random_state=self.cv.seed) for m in self.models]


def load_config(config_path: Path | str, base_path: Path | None = None) -> PipelineConfig:
    """Load pipeline configuration from a YAML file.

    Args:
        config_path: Path to the YAML configuration file
        base_path: Optional base path for resolving relative paths.
                   Defaults to the parent directory of the config file.

    Returns:
        PipelineConfig with all settings loaded

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If YAML parsing fails
        pydantic.ValidationError: If configuration validation fails
    """
    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    if base_path is None:
        base_path = config_path.parent

    with open(config_path, "r") as f:
        data = yaml.safe_load(f) or {}

    config = PipelineConfig.model_validate(data)
    return config.with_base_path(base_path)


def get_default_config(base_path: Path | None = None) -> PipelineConfig:
    """Get default configuration without loading from file.

    Args:
        base_path: Optional base path for resolving relative paths.

    Returns:
        PipelineConfig with all default values
    """
    config = PipelineConfig()
    if base_path:
        return config.with_base_path(base_path)
    return config
