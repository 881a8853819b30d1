"""Main entry point for the crowdfunding success evaluation pipeline.

Provides CLI interface for exploring the data, running cross-validation and
holdout evaluations, and re-rendering stored runs.

Usage:
    # Data overview
    python -m funding_eval.main explore --config pipeline_config.yml

    # Cross-validation with config file and overrides
    python -m funding_eval.main cv --config pipeline_config.yml --folds 5 --seed 7

    # Cross-validation saved under a run name
    python -m funding_eval.main cv --config pipeline_config.yml --run-name baseline

    # Single holdout split
    python -m funding_eval.main holdout --config pipeline_config.yml --fraction 0.2

    # Report from a stored run
    python -m funding_eval.main report --config pipeline_config.yml --run-name baseline
"""

import argparse
import logging
from pathlib import Path
import sys

from funding_eval.data.exploration import generate_exploration_report
from funding_eval.data.loading import load_projects
from funding_eval.domain.entities import ProjectDataset
from funding_eval.domain.errors import FundingEvalError
from funding_eval.pipelines.config import PipelineConfig, get_default_config, load_config
from funding_eval.pipelines.evaluation import EvaluationPipeline, generate_report
from funding_eval.pipelines.holdout import HoldoutEvaluation, generate_holdout_report
from funding_eval.storage.result_store import ParquetResultStore


def _load_pipeline_config(config_path: str | None) -> PipelineConfig:
    """Load pipeline config from file or return defaults."""
    if config_path:
        return load_config(config_path)
    return get_default_config()


def _load_dataset(args: argparse.Namespace, config: PipelineConfig) -> ProjectDataset:
    data_path = Path(args.data_path) if args.data_path else config.paths.data_path
    sample_size = args.sample_size if args.sample_size is not None else config.data.sample_size

    print(f"Loading projects from {data_path}")
    dataset = load_projects(
        data_path,
        keep_states=config.data.keep_states,
        sample_size=sample_size,
        seed=config.cv.seed,
    )
    print(f"Projects: {len(dataset):,} (success rate {dataset.label_proportion():.4f})")
    return dataset


def explore(args: argparse.Namespace) -> None:
    """Print label balance and success rates of the cleaned data."""
    config = _load_pipeline_config(args.config)
    dataset = _load_dataset(args, config)
    print(generate_exploration_report(dataset, top_n=args.top))


def cross_validate(args: argparse.Namespace) -> None:
    """Run k-fold cross-validation for all configured models."""
    config = _load_pipeline_config(args.config)
    dataset = _load_dataset(args, config)

    # Use CLI args if provided, otherwise fall back to config
    pipeline = EvaluationPipeline.from_config(config)
    if args.folds is not None:
        pipeline.k = args.folds
    if args.seed is not None:
        pipeline.seed = args.seed
    if args.n_jobs is not None:
        pipeline.n_jobs = args.n_jobs
    if args.no_stratify:
        pipeline.stratify_by = None
    if args.baseline is not None:
        pipeline.baseline = args.baseline

    print("\nStarting cross-validation...")
    print(f"Models: {', '.join(spec.name for spec in pipeline.model_specs)}")
    print(f"Folds: {pipeline.k}, seed: {pipeline.seed}, stratified by: {pipeline.stratify_by}")

    report = pipeline.run(dataset)
    print(generate_report(report))

    if args.run_name:
        store = ParquetResultStore(config.paths.results_dir)
        run_dir = store.save_run(args.run_name, report.results, report.assignment, report.metadata)
        print(f"\nResults saved to: {run_dir}")


def holdout(args: argparse.Namespace) -> None:
    """Evaluate all configured models on one holdout split."""
    config = _load_pipeline_config(args.config)
    dataset = _load_dataset(args, config)

    evaluation = HoldoutEvaluation(
        model_specs=config.to_domain_model_specs(),
        fraction=args.fraction if args.fraction is not None else config.holdout.fraction,
        group_by=config.holdout.group_by,
        seed=args.seed if args.seed is not None else config.cv.seed,
        threshold=config.evaluation.threshold,
    )
    report = evaluation.run(dataset)
    print(generate_holdout_report(report))


def report(args: argparse.Namespace) -> None:
    """Re-aggregate a stored cross-validation run."""
    config = _load_pipeline_config(args.config)
    store = ParquetResultStore(config.paths.results_dir)

    if args.run_name is None:
        runs = store.list_runs()
        print("Stored runs:" if runs else f"No stored runs in {store.storage_path}")
        for name in runs:
            print(f"  {name}")
        return

    results = store.load_results(args.run_name)
    assignment = store.load_assignment(args.run_name)
    metadata = store.get_metadata(args.run_name)

    pipeline = EvaluationPipeline.from_config(config)
    if metadata.get("seed") is not None:
        pipeline.seed = metadata["seed"]
    pipeline.stratify_by = metadata.get("stratify_by", pipeline.stratify_by)
    if args.baseline is not None:
        pipeline.baseline = args.baseline
    if args.threshold is not None:
        pipeline.threshold = args.threshold

    print(generate_report(pipeline.summarize(results, assignment)))


def _add_data_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--config", type=str, help="Path to YAML config file")
    parser.add_argument("--data-path", type=str, help="Path to raw project CSV (overrides config)")
    parser.add_argument("--sample-size", type=int, help="Subsample this many projects (overrides config)")


def main() -> None:
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Crowdfunding Success Classifier Evaluation")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable progress logging")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Exploration subcommand
    explore_parser = subparsers.add_parser("explore", help="Summarize the cleaned project data")
    _add_data_arguments(explore_parser)
    explore_parser.add_argument("--top", type=int, default=10, help="Levels shown per categorical column")

    # Cross-validation subcommand
    cv_parser = subparsers.add_parser("cv", help="Run k-fold cross-validation")
    _add_data_arguments(cv_parser)
    cv_parser.add_argument("--folds", type=int, help="Number of folds (overrides config)")
    cv_parser.add_argument("--seed", type=int, help="Random seed (overrides config)")
    cv_parser.add_argument("--n-jobs", type=int, help="Parallel fold workers (overrides config)")
    cv_parser.add_argument("--no-stratify", action="store_true", help="Disable label stratification")
    cv_parser.add_argument("--baseline", type=str, help="Baseline model for significance tests")
    cv_parser.add_argument("--run-name", type=str, help="Save results under this run name")

    # Holdout subcommand
    holdout_parser = subparsers.add_parser("holdout", help="Evaluate on a single holdout split")
    _add_data_arguments(holdout_parser)
    holdout_parser.add_argument("--fraction", type=float, help="Held-out fraction per group (overrides config)")
    holdout_parser.add_argument("--seed", type=int, help="Random seed (overrides config)")

    # Report subcommand
    report_parser = subparsers.add_parser("report", help="Report on a stored cross-validation run")
    report_parser.add_argument("--config", type=str, help="Path to YAML config file")
    report_parser.add_argument("--run-name", type=str, help="Stored run to report on (lists runs if omitted)")
    report_parser.add_argument("--baseline", type=str, help="Baseline model for significance tests")
    report_parser.add_argument("--threshold", type=float, help="Decision threshold (overrides config)")

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    commands = {
        "explore": explore,
        "cv": cross_validate,
        "holdout": holdout,
        "report": report,
    }
    command = commands.get(args.command)
    if command is None:
        parser.print_help()
        return

    try:
        command(args)
    except (FundingEvalError, FileNotFoundError) as e:
        print(f"Error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
