"""Parquet-based store for cross-validation runs.

Persists result tables and fold assignments so reports can be regenerated
without retraining.
"""

from dataclasses import dataclass
from datetime import datetime
import json
from pathlib import Path
from typing import Any

import polars as pl

from funding_eval.domain.entities import FoldAssignment
from funding_eval.domain.results import ResultTable


@dataclass
class ParquetResultStore:
    """Result store using parquet files for persistence.

    Organizes runs in a directory structure:
        storage_path/
            run_name/
                results.parquet
                folds.parquet
                metadata.json
    """

    storage_path: Path

    def __post_init__(self) -> None:
        self.storage_path = Path(self.storage_path)
        self.storage_path.mkdir(parents=True, exist_ok=True)

    def save_run(
        self,
        run_name: str,
        results: ResultTable,
        assignment: FoldAssignment | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> Path:
        """Save a run to parquet storage.

        Args:
            run_name: Identifier for this run
            results: Result table to store
            assignment: Optional fold assignment used by the run
            metadata: Optional extra JSON-serializable metadata

        Returns:
            Path to the run directory
        """
        run_dir = self.storage_path / run_name
        run_dir.mkdir(parents=True, exist_ok=True)

        frame = results.frame
        frame.write_parquet(run_dir / "results.parquet")

        run_metadata = {
            "n_rows": frame.height,
            "models": results.models(),
            "folds": results.folds(),
            "saved_at": datetime.now().isoformat(),
        }
        folds_path = run_dir / "folds.parquet"
        if assignment is not None:
            assignment.to_frame().write_parquet(folds_path)
            run_metadata.update({
                "k": assignment.k,
                "seed": assignment.seed,
                "stratify_by": assignment.stratify_by,
            })
        elif folds_path.exists():
            folds_path.unlink()
        if metadata:
            run_metadata.update(metadata)

        with open(run_dir / "metadata.json", "w") as f:
            json.dump(run_metadata, f, indent=2, default=str)

        return run_dir

    def load_results(self, run_name: str) -> ResultTable:
        """Load a run's result table.

        Raises:
            FileNotFoundError: If the run doesn't exist
        """
        path = self.storage_path / run_name / "results.parquet"
        if not path.exists():
            raise FileNotFoundError(f"Run '{run_name}' not found at {path}")
        return ResultTable.from_frame(pl.read_parquet(path))

    def load_assignment(self, run_name: str) -> FoldAssignment | None:
        """Load a run's fold assignment, or None if the run stored none."""
        path = self.storage_path / run_name / "folds.parquet"
        if not path.exists():
            return None
        metadata = self.get_metadata(run_name)
        return FoldAssignment.from_frame(
            pl.read_parquet(path),
            k=metadata.get("k"),
            seed=metadata.get("seed"),
            stratify_by=metadata.get("stratify_by"),
        )

    def get_metadata(self, run_name: str) -> dict[str, Any]:
        path = self.storage_path / run_name / "metadata.json"
        if not path.exists():
            return {}
        with open(path) as f:
            return json.load(f)

    def list_runs(self) -> list[str]:
        """List all stored runs, sorted by name."""
        return sorted(
            d.name for d in self.storage_path.iterdir()
            if d.is_dir() and (d / "results.parquet").exists()
        )

    def run_exists(self, run_name: str) -> bool:
        return (self.storage_path / run_name / "results.parquet").exists()
