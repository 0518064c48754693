"""Shared fixtures: isolated settings, logger and app per test."""

import json
from pathlib import Path
from typing import Callable, List

import pytest
from fastapi.testclient import TestClient

from bastion.app.core.config import Settings
from bastion.app.core.logging import COMBINED_LOG_FILENAME, ERROR_LOG_FILENAME, setup_logging
from bastion.app.main import create_app


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(_env_file=None, log_dir=str(tmp_path / "logs"))


@pytest.fixture
def logger(settings):
    return setup_logging(settings)


@pytest.fixture
def app(settings, logger):
    return create_app(settings, logger=logger)


@pytest.fixture
def client(app) -> TestClient:
    return TestClient(app)


@pytest.fixture
def read_log(settings) -> Callable[[str], List[dict]]:
    """Return the JSON records written to a log file so far."""

    def _read(filename: str = COMBINED_LOG_FILENAME) -> List[dict]:
        path = Path(settings.log_dir) / filename
        if not path.exists():
            return []
        with path.open(encoding="utf-8") as f:
            return [json.loads(line) for line in f if line.strip()]

    return _read


@pytest.fixture
def combined_records(read_log) -> Callable[[], List[dict]]:
    return lambda: read_log(COMBINED_LOG_FILENAME)


@pytest.fixture
def error_records(read_log) -> Callable[[], List[dict]]:
    return lambda: read_log(ERROR_LOG_FILENAME)
