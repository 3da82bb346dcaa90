import importlib

import pytest
from click.testing import CliRunner

import lines.cli.main as cli_main


@pytest.fixture
def runner():
    return CliRunner()


@pytest.mark.unit
def test_help_does_not_require_config(monkeypatch, tmp_path, runner):
    home = tmp_path / "home"
    xdg = tmp_path / "xdg"

    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("XDG_CONFIG_HOME", str(xdg))
    monkeypatch.delenv("LINES_HOME", raising=False)

    importlib.reload(cli_main)

    result = runner.invoke(cli_main.cli, ["--help"])

    assert result.exit_code == 0
    assert "Usage:" in result.output
    assert not (xdg / "lines" / "config.toml").exists()


@pytest.mark.unit
class TestPureCommands:
    def test_suggest(self, runner, lines_home):
        result = runner.invoke(
            cli_main.cli, ["suggest", "-d", "1,3,5", "-f", "oneTime", "-a", "2025-01-06"]
        )
        assert result.exit_code == 0, result.output
        assert result.output.splitlines() == [
            "2025-01-06 Mon",
            "2025-01-08 Wed",
            "2025-01-10 Fri",
        ]
        assert not lines_home.exists()

    def test_suggest_day_names(self, runner):
        result = runner.invoke(
            cli_main.cli, ["suggest", "-d", "sun", "-f", "monthly", "-a", "2025-01-05", "-m", "2"]
        )
        assert result.output.splitlines() == ["2025-01-05 Sun", "2025-02-02 Sun"]

    def test_suggest_bad_day(self, runner):
        result = runner.invoke(cli_main.cli, ["suggest", "-d", "funday"])
        assert result.exit_code == 2
        assert "Unknown day" in result.output

    @pytest.mark.parametrize(
        "start, end, expected",
        [("22:00", "02:00", "overnight"), ("18:00", "22:00", "same day")],
    )
    def test_overnight(self, runner, start, end, expected):
        result = runner.invoke(cli_main.cli, ["overnight", start, end])
        assert result.exit_code == 0
        assert result.output.strip() == expected

    def test_overnight_bad_time(self, runner):
        result = runner.invoke(cli_main.cli, ["overnight", "10pm", "02:00"])
        assert result.exit_code == 1
        assert "HH:MM" in result.output


@pytest.mark.integration
class TestWorkspaceCommands:
    def _add(self, runner, home, *extra):
        return runner.invoke(
            cli_main.cli,
            [
                "--home",
                str(home),
                "line",
                "add",
                "Happy hour",
                "--venue",
                "1",
                "-d",
                "mon,wed,fri",
                "--start",
                "18:00",
                "--end",
                "22:00",
                "-a",
                "2025-01-06",
                *extra,
            ],
        )

    def test_line_add_and_list(self, runner, tmp_path):
        home = tmp_path / "cli-home"
        result = self._add(runner, home)
        assert result.exit_code == 0, result.output
        assert "Created line 1 'Happy hour'" in result.output
        assert (home / "config.toml").exists()
        assert (home / "lines.db").exists()

        listed = runner.invoke(cli_main.cli, ["--home", str(home), "line", "list", "--venue", "1"])
        assert listed.exit_code == 0
        assert "Happy hour" in listed.output

    def test_occurrences_and_cancel(self, runner, tmp_path):
        home = tmp_path / "cli-home"
        self._add(runner, home)

        result = runner.invoke(cli_main.cli, ["--home", str(home), "occurrences", "1"])
        assert result.exit_code == 0
        assert "2025-01-06 Mon" in result.output

        cancelled = runner.invoke(cli_main.cli, ["--home", str(home), "cancel", "1"])
        assert cancelled.exit_code == 0
        assert "cancelled" in cancelled.output

        missing = runner.invoke(cli_main.cli, ["--home", str(home), "cancel", "9999"])
        assert missing.exit_code == 1
        assert "no occurrence" in missing.output

    def test_collision_reported(self, runner, tmp_path):
        home = tmp_path / "cli-home"
        self._add(runner, home)

        result = runner.invoke(
            cli_main.cli,
            [
                "--home",
                str(home),
                "collisions",
                "--venue",
                "1",
                "--date",
                "2025-01-06",
                "--start",
                "21:00",
                "--end",
                "23:00",
            ],
        )
        assert result.exit_code == 1
        assert "2025-01-06 18:00-22:00 Happy hour" in result.output

        clear = runner.invoke(
            cli_main.cli,
            [
                "--home",
                str(home),
                "collisions",
                "--venue",
                "1",
                "--date",
                "2025-01-07",
                "--start",
                "21:00",
                "--end",
                "23:00",
            ],
        )
        assert clear.exit_code == 0
        assert "No collisions" in clear.output

    def test_second_overlapping_line_refused(self, runner, tmp_path):
        home = tmp_path / "cli-home"
        self._add(runner, home)
        result = runner.invoke(
            cli_main.cli,
            [
                "--home",
                str(home),
                "line",
                "add",
                "Late",
                "--venue",
                "1",
                "-d",
                "1",
                "--start",
                "21:00",
                "--end",
                "02:00",
                "-a",
                "2025-01-06",
            ],
        )
        assert result.exit_code == 1
        assert "collision" in result.output

    def test_delete_line(self, runner, tmp_path):
        home = tmp_path / "cli-home"
        self._add(runner, home)
        result = runner.invoke(cli_main.cli, ["--home", str(home), "line", "delete", "1", "--yes"])
        assert result.exit_code == 0
        assert "Deleted line 1" in result.output
