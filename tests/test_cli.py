"""Tests for pulse_tracker.cli — console summaries and CSV export."""

import json
from datetime import datetime

import pytest
from typer.testing import CliRunner

from pulse_tracker.cli import app
from pulse_tracker.paths import get_usage_dir
from pulse_tracker.reporting import format_duration, format_share

runner = CliRunner()


@pytest.fixture
def data_dir(tmp_path):
    log_dir = get_usage_dir(tmp_path)
    log_dir.mkdir(parents=True)
    today = datetime.now().strftime("%Y-%m-%d")
    (log_dir / f"usage-{today}.json").write_text(json.dumps([
        {"app": "Editor", "title": "a.txt - Editor", "duration": 3_600_000},
        {"app": "Browser", "title": "News", "duration": 1_200_000},
        {"app": "Editor", "title": "b.txt - Editor", "duration": 600_000},
    ]), encoding="utf-8")
    return tmp_path


class TestSummary:
    def test_prints_ranked_apps(self, data_dir):
        result = runner.invoke(app, ["summary", "--data-dir", str(data_dir)])
        assert result.exit_code == 0, result.output
        assert "Total tracked: 01:30:00" in result.output
        lines = [line.strip() for line in result.output.splitlines()]
        editor = next(i for i, line in enumerate(lines) if line.startswith("Editor"))
        browser = next(i for i, line in enumerate(lines) if line.startswith("Browser"))
        assert editor < browser

    def test_empty_range(self, tmp_path):
        result = runner.invoke(app, ["summary", "--data-dir", str(tmp_path)])
        assert result.exit_code == 0
        assert "No app usage recorded" in result.output

    def test_rejects_unknown_range(self, data_dir):
        result = runner.invoke(app, ["summary", "--range", "year", "--data-dir", str(data_dir)])
        assert result.exit_code != 0


class TestDetails:
    def test_prints_titles(self, data_dir):
        result = runner.invoke(app, ["details", "Editor", "--data-dir", str(data_dir)])
        assert result.exit_code == 0, result.output
        assert "Editor: 01:10:00" in result.output
        assert "a.txt" in result.output
        assert "b.txt" in result.output


class TestExport:
    def test_to_stdout(self, data_dir):
        result = runner.invoke(app, ["export", "--data-dir", str(data_dir)])
        assert result.exit_code == 0, result.output
        lines = result.output.splitlines()
        assert lines[0] == "Application,Duration (minutes),Share (%)"
        assert lines[1] == "Editor,70.00,77.78"
        assert lines[2] == "Browser,20.00,22.22"

    def test_to_file(self, data_dir, tmp_path):
        target = tmp_path / "out.csv"
        result = runner.invoke(app, ["export", "-o", str(target), "--data-dir", str(data_dir)])
        assert result.exit_code == 0, result.output
        assert target.read_bytes().startswith(b"Application,Duration (minutes),Share (%)\r\n")


def test_format_helpers():
    assert format_duration(3_723_000) == "01:02:03"
    assert format_share(1, 4) == "25.0%"
    assert format_share(1, 0) == "0.0%"
