"""Integration tests for CLI commands."""

import csv
import json
from pathlib import Path

from typer.testing import CliRunner

from nixsize_cli import __version__, config
from nixsize_cli.cli import app

runner = CliRunner()


def _write_snapshot(directory: Path, payload) -> Path:
    path = directory / "snapshot.json"
    path.write_text(json.dumps(payload), encoding="utf-8")
    return path


SCENARIO = [
    {"path": "A", "size": 10, "references": ["C"]},
    {"path": "B", "size": 20, "references": ["C"]},
    {"path": "C", "size": 5, "references": []},
]


class TestAnalyzeCommand:
    """Tests for 'nixsize analyze'."""

    def test_writes_csv_and_dot(self, temp_dir: Path, snapshot_file: Path):
        out = temp_dir / "out"
        result = runner.invoke(app, ["analyze", "hello", "--from-json", str(snapshot_file), "-o", str(out)])

        assert result.exit_code == 0, result.output
        assert (out / config.CSV_FILE_NAME).exists()
        assert (out / config.DOT_FILE_NAME).exists()
        assert "Wrote CSV report" in result.stdout
        assert "Total bytes calculated for this store path: 32270000" in result.stdout

    def test_scenario_csv_contents(self, temp_dir: Path):
        snapshot = _write_snapshot(temp_dir, SCENARIO)
        result = runner.invoke(
            app,
            ["analyze", "t", "-j", str(snapshot), "-o", str(temp_dir), "--no-dot", "--sort-by", "closure_size"],
        )

        assert result.exit_code == 0, result.output
        assert not (temp_dir / config.DOT_FILE_NAME).exists()
        with open(temp_dir / config.CSV_FILE_NAME, newline="") as f:
            rows = list(csv.reader(f))
        assert rows == [
            ["path", "exclusive_size", "closure_size", "shared_size"],
            ["B", "20", "25", "21.667"],
            ["A", "10", "15", "11.667"],
            ["C", "5", "5", "1.667"],
        ]

    def test_ascending_order_and_policy(self, temp_dir: Path):
        snapshot = _write_snapshot(temp_dir, SCENARIO)
        result = runner.invoke(
            app,
            ["analyze", "t", "-j", str(snapshot), "-o", str(temp_dir), "--no-dot",
             "--sort-by", "id", "--order", "asc", "--policy", "proportional"],
        )

        assert result.exit_code == 0, result.output
        lines = (temp_dir / config.CSV_FILE_NAME).read_text(encoding="utf-8").splitlines()
        assert [line.split(",")[0] for line in lines[1:]] == ["A", "B", "C"]
        assert lines[1] == "A,10,15,11.429"

    def test_idempotent_output(self, temp_dir: Path, snapshot_file: Path):
        outputs = []
        for name in ("run1", "run2"):
            out = temp_dir / name
            result = runner.invoke(app, ["analyze", "x", "-j", str(snapshot_file), "-o", str(out)])
            assert result.exit_code == 0, result.output
            outputs.append((out / config.CSV_FILE_NAME).read_bytes())

        assert outputs[0] == outputs[1]

    def test_cycle_exits_nonzero(self, temp_dir: Path):
        snapshot = _write_snapshot(temp_dir, [
            {"path": "A", "size": 1, "references": ["B"]},
            {"path": "B", "size": 1, "references": ["A"]},
        ])
        out = temp_dir / "out"
        result = runner.invoke(app, ["analyze", "t", "-j", str(snapshot), "-o", str(out)])

        assert result.exit_code == 1
        assert "Error [CycleDetected]" in result.stderr
        assert "CycleDetected" not in result.stdout
        assert not out.exists()

    def test_dangling_exits_nonzero(self, temp_dir: Path):
        snapshot = _write_snapshot(temp_dir, [{"path": "A", "size": 1, "references": ["ghost"]}])
        result = runner.invoke(app, ["analyze", "t", "-j", str(snapshot), "-o", str(temp_dir / "out")])

        assert result.exit_code == 1
        assert "DanglingReference" in result.stderr
        assert "ghost" in result.stderr

    def test_duplicate_exits_nonzero(self, temp_dir: Path):
        snapshot = _write_snapshot(temp_dir, [{"path": "A", "size": 1}, {"path": "A", "size": 2}])
        result = runner.invoke(app, ["analyze", "t", "-j", str(snapshot), "-o", str(temp_dir / "out")])

        assert result.exit_code == 1
        assert "DuplicateNode" in result.stderr

    def test_store_query_failure(self, temp_dir: Path, monkeypatch):
        def fake_run(command, **kwargs):
            raise FileNotFoundError(command[0])

        monkeypatch.setattr("nixsize_cli.store_query.subprocess.run", fake_run)
        result = runner.invoke(app, ["analyze", "/nix/store/whatever", "-o", str(temp_dir / "out")])

        assert result.exit_code == 1
        assert "StoreQueryError" in result.stderr

    def test_bad_sort_key(self, snapshot_file: Path, temp_dir: Path):
        result = runner.invoke(
            app, ["analyze", "t", "-j", str(snapshot_file), "-o", str(temp_dir), "--sort-by", "popularity"]
        )
        assert result.exit_code != 0

    def test_uses_configured_defaults(self, temp_dir: Path):
        runner.invoke(app, ["config", "set", "report.sort_by", "id"])
        runner.invoke(app, ["config", "set", "report.order", "ascending"])
        snapshot = _write_snapshot(temp_dir, SCENARIO)

        result = runner.invoke(app, ["analyze", "t", "-j", str(snapshot), "-o", str(temp_dir), "--no-dot"])

        assert result.exit_code == 0, result.output
        lines = (temp_dir / config.CSV_FILE_NAME).read_text(encoding="utf-8").splitlines()
        assert [line.split(",")[0] for line in lines[1:]] == ["A", "B", "C"]


    def test_explicit_output_files(self, temp_dir: Path, snapshot_file: Path):
        csv_path = temp_dir / "reports" / "hello.csv"
        dot_path = temp_dir / "graphs" / "hello.dot"
        result = runner.invoke(
            app,
            ["analyze", "t", "-j", str(snapshot_file), "-o", str(temp_dir / "unused"),
             "--no-csv", "--no-dot", "-c", str(csv_path), "-d", str(dot_path)],
        )

        assert result.exit_code == 0, result.output
        assert csv_path.read_text(encoding="utf-8").startswith("path,exclusive_size")
        assert dot_path.read_text(encoding="utf-8").startswith("digraph Closure {")
        assert not (temp_dir / "unused").exists()

    def test_hand_edited_config_with_wrong_types(self, temp_dir: Path, snapshot_file: Path):
        config.BASE_DIR.mkdir(parents=True)
        config.CONFIG_FILE.write_text(
            '[report]\ntop = "5"\nprecision = "two"\n\n[analysis]\ntimeout = "soon"\n', encoding="utf-8"
        )
        result = runner.invoke(app, ["analyze", "t", "-j", str(snapshot_file), "-o", str(temp_dir), "--no-dot"])

        assert result.exit_code == 0, result.output
        assert "Top 4 by shared_size" in result.stdout
        row = (temp_dir / config.CSV_FILE_NAME).read_text(encoding="utf-8").splitlines()[1]
        assert len(row.split(",")[3].split(".")[1]) == 3


class TestConfigCommands:
    """Tests for 'nixsize config'."""

    def test_show(self):
        result = runner.invoke(app, ["config", "show"])

        assert result.exit_code == 0
        assert "report.sort_by" in result.stdout
        assert "analysis.policy" in result.stdout

    def test_set(self):
        result = runner.invoke(app, ["config", "set", "analysis.policy", "proportional"])

        assert result.exit_code == 0
        assert "Set analysis.policy = proportional" in result.stdout

    def test_set_unknown_key(self):
        result = runner.invoke(app, ["config", "set", "nope.nothing", "1"])
        assert result.exit_code != 0

    def test_set_invalid_value(self):
        result = runner.invoke(app, ["config", "set", "report.top", "many"])
        assert result.exit_code != 0


def test_version():
    result = runner.invoke(app, ["--version"])

    assert result.exit_code == 0
    assert __version__ in result.stdout
