"""
Pytest configuration and fixtures for datagate tests.

This module provides shared fixtures used across unit, integration,
and security tests. Databases are file-based SQLite so that SQLAlchemy
gives every environment a real QueuePool.
"""

import sqlite3
import tempfile
from pathlib import Path
from typing import Any, Callable, Generator

import pytest

from datagate.engine import ExecutionEngine
from datagate.schema import DatagateConfig
from datagate.store import EnvironmentRegistry
from datagate.tools import ToolContext

USER_ROWS = [
    (i, f"user{i}", f"user{i}@example.com", round(i * 1.5, 2), "admin" if i % 3 == 0 else "member")
    for i in range(1, 11)
]


class FakeTimer:
    """threading.Timer stand-in that only fires when told to."""

    instances: list["FakeTimer"] = []

    def __init__(self, interval: float, function: Callable[..., Any], args: tuple = ()) -> None:
        self.interval = interval
        self.function = function
        self.args = args
        self.daemon = False
        self.started = False
        self.cancelled = False
        FakeTimer.instances.append(self)

    def start(self) -> None:
        self.started = True

    def cancel(self) -> None:
        self.cancelled = True

    def fire(self) -> None:
        """Run the callback as the real timer would after `interval`."""
        self.function(*self.args)


def _create_users_db(path: Path, rows: list[tuple] = USER_ROWS) -> Path:
    conn = sqlite3.connect(path)
    try:
        conn.execute(
            "CREATE TABLE users ("
            "id INTEGER PRIMARY KEY, name TEXT NOT NULL, email TEXT NOT NULL, "
            "score REAL, role TEXT)"
        )
        conn.executemany("INSERT INTO users VALUES (?, ?, ?, ?, ?)", rows)
        conn.commit()
    finally:
        conn.close()
    return path


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def users_db(temp_dir: Path) -> Path:
    """SQLite database with a 10-row users table."""
    return _create_users_db(temp_dir / "default.db")


@pytest.fixture
def dev_db(temp_dir: Path) -> Path:
    """Second SQLite database with a 3-row users table."""
    return _create_users_db(temp_dir / "dev.db", USER_ROWS[:3])


@pytest.fixture
def config(users_db: Path, dev_db: Path) -> DatagateConfig:
    """Two environments, each with a single-connection pool."""
    pool = {"pool_size": 1, "max_overflow": 0, "pool_timeout": 0.5}
    return DatagateConfig.model_validate({
        "environments": {
            "default": {"url": f"sqlite:///{users_db}", **pool},
            "dev": {"url": f"sqlite:///{dev_db}", **pool},
        },
        "revert_after_seconds": 600,
    })


@pytest.fixture
def fake_timer() -> Generator[type[FakeTimer], None, None]:
    """FakeTimer class with a fresh instance list."""
    FakeTimer.instances = []
    yield FakeTimer
    FakeTimer.instances = []


@pytest.fixture
def registry(
    config: DatagateConfig, fake_timer: type[FakeTimer]
) -> Generator[EnvironmentRegistry, None, None]:
    """Environment registry over the test databases, with fake revert timers."""
    reg = EnvironmentRegistry(config, timer_factory=fake_timer)
    yield reg
    reg.close()


@pytest.fixture
def engine(registry: EnvironmentRegistry) -> ExecutionEngine:
    """Execution engine over the test registry."""
    return ExecutionEngine(registry)


@pytest.fixture
def tool_context(engine: ExecutionEngine, registry: EnvironmentRegistry) -> ToolContext:
    """Tool context wired to the test engine and registry."""
    return ToolContext(engine=engine, registry=registry)


@pytest.fixture
def sample_config_yaml(users_db: Path, dev_db: Path) -> str:
    """Return an environments YAML for the test databases."""
    return f"""
default_environment: default
revert_after_seconds: 300
environments:
  default: sqlite:///{users_db}
  dev:
    url: sqlite:///{dev_db}
    pool_size: 2
"""
