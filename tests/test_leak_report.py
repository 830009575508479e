from __future__ import annotations

from pathlib import Path

import pandas as pd

from leakstopper.leak_report import main, run
from leakstopper.models import FilterOptions

EXPORT = """name,email,last purchase date,total revenue,purchase count
Alice,alice@example.com,2024-05-20,2400,8
Bob,bob@example.com,2023-11-14,1200,4
Cem,cem@example.com,2023-06-01,300,1
Dana,dana@example.com,2024-02-01,9000,
"""


def _export(tmp_path: Path) -> Path:
    path = tmp_path / "export.csv"
    path.write_text(EXPORT, encoding="utf-8")
    return path


def test_run_writes_scores_and_targets(tmp_path: Path) -> None:
    outputs = run(
        _export(tmp_path),
        FilterOptions(min_spending=1000),
        as_of="2024-06-01",
        out_dir=tmp_path / "processed",
        reports_dir=tmp_path / "outreach",
    )

    assert outputs.analysis is not None
    assert outputs.analysis.leaked_customers == 3
    assert outputs.scores_path == tmp_path / "processed" / "leak_scores_2024-06-01.csv"

    scores = pd.read_csv(outputs.scores_path)
    targets = pd.read_csv(outputs.targets_path)
    assert sorted(scores["name"]) == ["Bob", "Cem", "Dana"]
    # Cem is leaked but below the spending floor
    assert list(targets["name"]) == ["Dana", "Bob"]
    assert list(targets["leak_score"]) == sorted(targets["leak_score"], reverse=True)

    bob = targets.set_index("name").loc["Bob"]
    assert bob["days_since_last_purchase"] == 200
    assert bob["estimated_lost_revenue"] == 900.0


def test_main_uses_config_directories(tmp_path: Path, monkeypatch, capsys) -> None:
    export = _export(tmp_path)
    monkeypatch.chdir(tmp_path)

    main([str(export), "--as-of", "2024-06-01", "--risk-level", "critical"])

    assert (tmp_path / "data" / "processed" / "leak_scores_2024-06-01.csv").exists()
    assert (tmp_path / "reports" / "outreach" / "reclamation_targets_2024-06-01.csv").exists()
    out = capsys.readouterr().out
    assert "leaked 3" in out
    assert "Bucket health" in out
