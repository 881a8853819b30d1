from datetime import datetime, timedelta
import sys

import polars as pl
import pytest

from funding_eval.data.loading import RAW_COLUMNS
from funding_eval.main import main


CONFIG = """\
paths:
  data_path: raw.csv
  results_dir: runs
cv:
  k: 3
  seed: 1
evaluation:
  baseline_model: base
models:
  - name: lr
    family: logistic
    exclude_features: [category, country]
  - name: base
    family: majority
"""


@pytest.fixture
def config_path(projects, tmp_path):
    launched = datetime(2016, 1, 1)
    rows = []
    for record in projects.frame.iter_rows(named=True):
        days = int(record["duration_seconds"] // 86400)
        rows.append({
            "ID": record["ID"],
            "name": f"Project {record['ID']}",
            "category": record["category"],
            "main_category": record["main_category"],
            "currency": record["currency"],
            "deadline": (launched + timedelta(days=days)).strftime("%Y-%m-%d"),
            "goal": record["goal_usd"],
            "launched": launched.strftime("%Y-%m-%d %H:%M:%S"),
            "pledged": record["pledged_usd"],
            "state": "successful" if record["label"] else "failed",
            "backers": 1,
            "country": record["country"],
            "usd pledged": record["pledged_usd"],
            "usd_pledged_real": record["pledged_usd"],
            "usd_goal_real": record["goal_usd"],
        })
    pl.DataFrame(rows).select(RAW_COLUMNS).write_csv(tmp_path / "raw.csv")

    path = tmp_path / "config.yml"
    path.write_text(CONFIG)
    return path


def _run(monkeypatch, *args):
    monkeypatch.setattr(sys, "argv", ["funding-eval", *args])
    main()


def test_cv_then_report(monkeypatch, capsys, config_path, tmp_path):
    _run(monkeypatch, "cv", "--config", str(config_path), "--run-name", "first")
    out = capsys.readouterr().out
    assert "CROSS-VALIDATION REPORT" in out
    assert "[ols] lr vs base" in out
    assert (tmp_path / "runs" / "first" / "results.parquet").exists()

    _run(monkeypatch, "report", "--config", str(config_path))
    assert "first" in capsys.readouterr().out

    _run(monkeypatch, "report", "--config", str(config_path), "--run-name", "first")
    assert "Per-Fold Error Rates" in capsys.readouterr().out


def test_explore(monkeypatch, capsys, config_path):
    _run(monkeypatch, "explore", "--config", str(config_path), "--top", "2")
    out = capsys.readouterr().out
    assert "PROJECT DATA OVERVIEW" in out
    assert "Projects: 300" in out


def test_holdout(monkeypatch, capsys, config_path):
    _run(monkeypatch, "holdout", "--config", str(config_path), "--fraction", "0.3")
    out = capsys.readouterr().out
    assert "HOLDOUT EVALUATION REPORT" in out
    assert "Evaluation Results for: lr" in out


def test_invalid_fold_count_exits_with_error(monkeypatch, capsys, config_path):
    with pytest.raises(SystemExit) as excinfo:
        _run(monkeypatch, "cv", "--config", str(config_path), "--folds", "1")
    assert excinfo.value.code == 1
    assert "Error:" in capsys.readouterr().out


def test_missing_data_file_exits_with_error(monkeypatch, capsys, config_path, tmp_path):
    with pytest.raises(SystemExit):
        _run(monkeypatch, "explore", "--config", str(config_path), "--data-path", str(tmp_path / "none.csv"))
    assert "Error:" in capsys.readouterr().out
