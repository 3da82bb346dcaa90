import tomllib

import pytest

from lines.lines_env import DEFAULT_PALETTE, LinesConfig, LinesEnvironment, render_config
from lines.shared import log_msg, set_logging


@pytest.mark.unit
class TestLinesEnvironment:
    def test_home_from_env_var(self, lines_home):
        assert LinesEnvironment().home == lines_home

    def test_xdg_fallback(self, tmp_path, monkeypatch):
        monkeypatch.delenv("LINES_HOME", raising=False)
        monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))
        monkeypatch.chdir(tmp_path)
        assert LinesEnvironment().home == tmp_path / "xdg" / "lines"

    def test_default_config_created(self, lines_home):
        env = LinesEnvironment()
        config = env.load_config()

        assert env.config_path.exists()
        assert config.schedule.horizon_months == 6
        assert config.venue.max_lines == 15
        assert config.venue.palette == DEFAULT_PALETTE
        with open(env.config_path, "rb") as f:
            assert tomllib.load(f)["venue"]["palette"] == DEFAULT_PALETTE

    def test_values_are_read(self, lines_home):
        lines_home.mkdir(parents=True)
        (lines_home / "config.toml").write_text(
            '[schedule]\nhorizon_months = 3\n\n[venue]\npalette = ["#111111", "#222222"]\n'
        )
        config = LinesEnvironment().load_config()
        assert config.schedule.horizon_months == 3
        assert config.venue.palette == ["#111111", "#222222"]
        assert config.ui.yearfirst is True

    @pytest.mark.parametrize(
        "text",
        [
            "[schedule]\nhorizon_months = -2\n",
            "[schedule\nhorizon_months = 3\n",
        ],
    )
    def test_invalid_config_falls_back_to_defaults(self, lines_home, text):
        lines_home.mkdir(parents=True)
        path = lines_home / "config.toml"
        path.write_text(text)

        config = LinesEnvironment().load_config()

        assert config == LinesConfig()
        assert path.read_text() == render_config(LinesConfig())

    def test_config_is_cached(self, test_env):
        assert test_env.config is test_env.config


@pytest.mark.unit
class TestLogMsg:
    def test_writes_to_home_logs(self, lines_home):
        set_logging(True)
        log_msg("hello from a test")
        logs = list((lines_home / "logs").glob("log_*.md"))
        assert len(logs) == 1
        text = logs[0].read_text()
        assert "hello from a test" in text
        assert "test_writes_to_home_logs" in text

    def test_disabled(self, lines_home):
        set_logging(False)
        try:
            log_msg("should not be written")
        finally:
            set_logging(True)
        assert not (lines_home / "logs").exists()
