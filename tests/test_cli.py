"""
Tests for CLI commands.

Uses typer's CliRunner with a filesystem store under tmp_path.
"""

import json

import pytest
from typer.testing import CliRunner

from bucketspool.cli.main import app

runner = CliRunner()

CONFIG = """
store:
  type: filesystem
  config:
    root_path: {root}
source:
  bucket: incoming
  folder: logs
  pattern: "*.log"
post_processing:
  action: archive
  bucket: archive
  folder: done
logging:
  console_enabled: false
"""


@pytest.fixture
def project(tmp_path):
    root = tmp_path / "data"
    (root / "incoming" / "logs").mkdir(parents=True)
    (root / "archive").mkdir()
    (root / "incoming" / "logs" / "a.log").write_text("a1\na2\n")
    (root / "incoming" / "logs" / "b.log").write_text("b1\n")
    (tmp_path / "config.yaml").write_text(CONFIG.format(root=root))
    return tmp_path


def output_lines(result):
    return [json.loads(line) for line in result.stdout.splitlines() if line.startswith("{")]


class TestVersion:
    def test_version_flag(self):
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert "bucketspool version" in result.output


class TestHelp:
    def test_no_args_shows_help(self):
        result = runner.invoke(app, [])
        assert result.exit_code == 0
        assert "bucketspool" in result.output.lower()

    @pytest.mark.parametrize("command", ["run", "validate"])
    def test_command_help(self, command):
        result = runner.invoke(app, [command, "--help"])
        assert result.exit_code == 0


class TestValidate:
    """Tests for bucketspool validate."""

    def test_valid(self, project):
        result = runner.invoke(app, ["validate", "--project-dir", str(project)])
        assert result.exit_code == 0
        assert "valid" in result.output

    def test_check_buckets(self, project):
        result = runner.invoke(app, ["validate", "-d", str(project), "--check-buckets"])
        assert result.exit_code == 0

    def test_archive_at_source_fails(self, project):
        config = (project / "config.yaml").read_text().replace("bucket: archive\n  folder: done", "bucket: incoming\n  folder: logs")
        (project / "config.yaml").write_text(config)
        result = runner.invoke(app, ["validate", "-d", str(project)])
        assert result.exit_code == 1
        assert "post_processing.folder" in result.output

    def test_missing_bucket(self, project):
        config = (project / "config.yaml").read_text().replace("bucket: archive", "bucket: nowhere")
        (project / "config.yaml").write_text(config)
        result = runner.invoke(app, ["validate", "-d", str(project), "--check-buckets"])
        assert result.exit_code == 1
        assert "nowhere" in result.output

    def test_missing_config(self, tmp_path):
        result = runner.invoke(app, ["validate", "-d", str(tmp_path)])
        assert result.exit_code == 1


class TestRun:
    """Tests for bucketspool run."""

    def test_run_drains_folder(self, project):
        result = runner.invoke(app, ["run", "-d", str(project)])
        assert result.exit_code == 0, result.output

        lines = output_lines(result)
        assert [line["value"]["text"] for line in lines] == ["a1", "a2", "b1"]
        assert lines[0]["key"] == "logs/a.log"
        assert lines[1]["offset"] == 3

        root = project / "data"
        assert sorted(p.name for p in (root / "archive" / "done").iterdir()) == ["a.log", "b.log"]
        assert not list((root / "incoming" / "logs").iterdir())

        state = json.loads((project / ".bucketspool-state.json").read_text())
        assert state["cursor"].startswith("logs/b.log::-1::")

    def test_run_once_then_resume(self, project):
        state_file = project / "state" / "cursor.json"

        first = runner.invoke(app, ["run", "-d", str(project), "--once", "--state-file", str(state_file)])
        assert first.exit_code == 0, first.output
        assert [line["value"]["text"] for line in output_lines(first)] == ["a1", "a2"]
        assert json.loads(state_file.read_text())["cursor"].startswith("logs/a.log::-1::")

        second = runner.invoke(app, ["run", "-d", str(project), "--state-file", str(state_file)])
        assert second.exit_code == 0, second.output
        assert [line["value"]["text"] for line in output_lines(second)] == ["b1"]

    def test_max_batches(self, project):
        result = runner.invoke(app, ["run", "-d", str(project), "--max-batches", "1"])
        assert result.exit_code == 0
        assert len(output_lines(result)) == 2

    def test_bad_cursor(self, project):
        result = runner.invoke(app, ["run", "-d", str(project), "--cursor", "not-a-cursor"])
        assert result.exit_code == 1

    def test_invalid_config(self, project):
        config = (project / "config.yaml").read_text().replace("action: archive", "action: shred")
        (project / "config.yaml").write_text(config)
        result = runner.invoke(app, ["run", "-d", str(project)])
        assert result.exit_code == 1
