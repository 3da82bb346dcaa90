"""
Shared pytest fixtures for lines tests.

This module provides common fixtures used across all test files, including:
- Time freezing utilities
- An isolated LINES_HOME per test
- Database, synchronizer and controller fixtures
- A line factory
"""

import pytest
from freezegun import freeze_time

from lines.controller import Controller
from lines.lines_env import LinesEnvironment
from lines.model import DatabaseManager
from lines.occurrence import Line
from lines.sync import OccurrenceSynchronizer


@pytest.fixture
def frozen_time():
    """
    Freezes time to Monday 2025-01-06 12:00:00 for the duration of the test.

    Usage:
        def test_something(frozen_time):
            frozen_time.tick(delta=timedelta(hours=2))
    """
    with freeze_time("2025-01-06 12:00:00") as frozen:
        yield frozen


@pytest.fixture(autouse=True)
def lines_home(tmp_path, monkeypatch):
    """
    Point LINES_HOME at a temporary directory so config files and logs
    never touch the real workspace.
    """
    home = tmp_path / "lines-home"
    monkeypatch.setenv("LINES_HOME", str(home))
    return home


@pytest.fixture
def test_env(lines_home):
    env = LinesEnvironment()
    env.ensure(init_config=True)
    return env


@pytest.fixture
def dbm(tmp_path):
    """A fresh DatabaseManager, closed after the test."""
    manager = DatabaseManager(str(tmp_path / "test_lines.db"), reset=True)
    yield manager
    manager.close()


@pytest.fixture
def synchronizer(dbm):
    return OccurrenceSynchronizer(dbm)


@pytest.fixture
def line_factory(dbm):
    """
    Store a line directly through the DatabaseManager, without generating
    occurrences.

    Usage:
        line = line_factory(name="Friday night", days=[5])
    """

    def _create(**overrides) -> Line:
        fields = dict(
            id=None,
            venue_id=1,
            name="Happy hour",
            days=[1, 3, 5],
            start_time="18:00",
            end_time="22:00",
            frequency="weekly",
            color="#FF6B6B",
        )
        fields.update(overrides)
        line = Line(**fields)
        line.id = dbm.add_line(line)
        return dbm.get_line(line.id)

    return _create


@pytest.fixture
def test_controller(tmp_path, test_env):
    """A Controller with a fresh database, closed after the test."""
    ctrl = Controller(str(tmp_path / "test_controller.db"), test_env, reset=True)
    yield ctrl
    ctrl.close()
