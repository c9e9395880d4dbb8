from pathlib import Path
import json
import sys

import pandas as pd

from homefield.cli.main import main
from homefield.core.pipeline import PipelineError, run_pipeline
from homefield.data.io import read_json

SYN_PATH = Path(__file__).resolve().parent / "synthetic"
if str(SYN_PATH) not in sys.path:
    sys.path.insert(0, str(SYN_PATH))

from generate_trials import generate_trials, write_generated_trials


def _write_trials(tmp_path: Path, **kwargs) -> Path:
    generated = generate_trials(n_sites=3, n_years=3, n_genos=6, seed=17, **kwargs)
    write_generated_trials(tmp_path / "trials", generated)
    return tmp_path / "trials" / "trials.csv"


def test_run_pipeline_outputs(tmp_path: Path, monkeypatch):
    monkeypatch.setenv("HOMEFIELD_FIXED_TIMESTAMP_UTC", "2026-01-01T00:00:00Z")
    table = _write_trials(tmp_path)
    out = tmp_path / "run"

    result = run_pipeline(
        table_path=str(table),
        out_dir=str(out),
        overrides={
            "columns": {"pheno": "yield"},
            "permutation": {"times": 5, "seed": 3, "level": "genotype"},
            "parallel": {"backend": "sequential"},
            "home": {"blup": False},
        },
    )

    assert (out / "home_field.parquet").exists()
    assert (out / "config_resolved.yaml").exists()
    assert (out / "run_metadata.json").exists()
    assert (out / "perms" / "all.parquet").exists()

    home_field = pd.read_parquet(out / "home_field.parquet")
    assert len(home_field) == 6
    assert home_field["level"].tolist() == sorted(home_field["level"].tolist())

    meta = read_json(out / "run_metadata.json")
    assert meta["timestamp_utc"] == "2026-01-01T00:00:00Z"
    assert meta["random_seed"] == 3
    assert meta["run"]["level"] == "genotype"
    assert len(meta["table_hash"]) == 64
    assert "numpy" in meta["package_versions"]
    assert "python_version" in meta
    assert "git_dirty" in meta
    assert result.metadata["n_rows_input"] == 54


def test_run_pipeline_fails_when_filters_remove_everything(tmp_path: Path):
    table = _write_trials(tmp_path)
    try:
        run_pipeline(
            table_path=str(table),
            out_dir=str(tmp_path / "run"),
            overrides={"columns": {"pheno": "yield"}, "filters": {"site_years_min": 10}},
        )
        assert False
    except PipelineError as exc:
        assert "No rows remain" in str(exc)


def test_run_pipeline_rejects_invalid_table(tmp_path: Path):
    table = _write_trials(tmp_path)
    try:
        run_pipeline(table_path=str(table), out_dir=str(tmp_path / "run"))
        assert False
    except PipelineError as exc:
        assert "missing_column" in str(exc)


def test_cli_run_and_report(tmp_path: Path, capsys):
    table = _write_trials(tmp_path, n_popns=2)
    out = tmp_path / "run"
    code = main(
        [
            "run",
            str(table),
            "--out",
            str(out),
            "--pheno",
            "yield",
            "--popn",
            "popn",
            "--times",
            "4",
            "--seed",
            "1",
            "--backend",
            "sequential",
            "--no-blup",
        ]
    )
    assert code == 0
    assert "home_field.parquet" in capsys.readouterr().out
    assert (out / "perms" / "population.parquet").exists()

    assert main(["report", str(out)]) == 0
    payload = json.loads((out / "report.json").read_text(encoding="utf-8"))
    assert payload["summary"]["rows"] == 2
    assert payload["summary"]["level"] == "population"
    assert [row["popn"] for row in payload["rows"]] == ["P1", "P2"]
    assert "# Home Field Advantage Report" in (out / "report.md").read_text(encoding="utf-8")


def test_cli_validate(tmp_path: Path, capsys):
    table = _write_trials(tmp_path)
    assert main(["validate", str(table), "--pheno", "yield"]) == 0
    assert "PASS" in capsys.readouterr().out
    assert main(["validate", str(table), "--json"]) == 2
    assert '"missing_column"' in capsys.readouterr().out


def test_cli_home_filter_temporal_distance(tmp_path: Path):
    table = _write_trials(tmp_path)
    homes = tmp_path / "homes.csv"
    sites = tmp_path / "home_sites.csv"
    assert main(["home", str(table), "--pheno", "yield", "--out", str(homes), "--sites-out", str(sites)]) == 0
    homed = pd.read_csv(homes)
    assert {"rel_yield", "is_home"} <= set(homed.columns)
    assert len(pd.read_csv(sites)) == 6

    filtered = tmp_path / "filtered.csv"
    assert main(["filter", str(table), "--pheno", "yield", "--out", str(filtered), "--site-years-min", "3"]) == 0
    assert len(pd.read_csv(filtered)) == 54

    temporal = tmp_path / "temporal.csv"
    assert main(["temporal", str(table), "--pheno", "yield", "--out", str(temporal), "--no-blup"]) == 0
    assert len(pd.read_csv(temporal)) == 3

    locations = tmp_path / "locations.csv"
    pd.DataFrame({"site": ["S01", "S02", "S03"], "lat": [40.0, 41.0, 42.0], "long": [-90.0, -91.0, -92.0]}).to_csv(
        locations, index=False
    )
    matrix = tmp_path / "distance.csv"
    assert main(["distance", str(homes), str(locations), "--out", str(matrix)]) == 0
    dist = pd.read_csv(matrix, index_col=0)
    assert dist.shape == (6, 6)


def test_cli_without_command_prints_help(capsys):
    assert main([]) == 1
    assert "usage" in capsys.readouterr().out
