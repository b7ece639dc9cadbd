"""
Global pytest configuration and fixtures for the docquery test suite.

Every test gets its own log directory and a fresh configuration so tests can
inspect log files and override settings without leaking into each other.
"""

import json
import os
import sys
import tempfile
from pathlib import Path

import pytest

# Keep log files out of the working tree even for import-time logging
os.environ.setdefault("LOG_DIR", tempfile.mkdtemp(prefix="docquery-logs-"))

sys.path.insert(0, str(Path(__file__).parent))

from docquery.utils.config import reset_config
from docquery.utils.logging import reset_multi_file_logger


# ============================================================================
# Isolation
# ============================================================================

_CONFIG_ENV_VARS = (
    "QUERY_RECURSIVE_OFFLINE_CHECK",
    "QUERY_MAX_POLYGON_POINTS",
    "LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def isolated_environment(tmp_path, monkeypatch):
    """Point logging and config at per-test locations."""
    for env_var in _CONFIG_ENV_VARS:
        monkeypatch.delenv(env_var, raising=False)

    log_dir = tmp_path / "logs"
    monkeypatch.setenv("LOG_DIR", str(log_dir))
    monkeypatch.setenv("DOCQUERY_CONFIG_FILE", str(tmp_path / "query_config.json"))

    reset_multi_file_logger()
    reset_config()

    yield log_dir

    reset_multi_file_logger()
    reset_config()


@pytest.fixture
def log_dir(isolated_environment):
    """Directory receiving this test's log files."""
    return isolated_environment


@pytest.fixture
def write_config(tmp_path):
    """Write query_config.json for the current test and reload config."""
    def _write(data):
        path = tmp_path / "query_config.json"
        path.write_text(json.dumps(data))
        reset_config()
        return path
    return _write


@pytest.fixture
def read_log_lines(log_dir):
    """Parse the JSON lines of one log file."""
    def _read(filename):
        path = log_dir / filename
        if not path.exists():
            return []
        return [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines() if line]
    return _read


# ============================================================================
# Test Data Fixtures
# ============================================================================

@pytest.fixture
def people():
    """Cached records the way the local store hands them to the evaluator."""
    return [
        {"_id": "1", "name": "John", "age": 34, "city": "Boston", "tags": ["admin", "ops"]},
        {"_id": "2", "name": "Alice", "age": 28, "city": "Denver", "tags": ["dev"]},
        {"_id": "3", "name": "Joe", "age": 41, "city": "Boston", "tags": ["dev", "ops"]},
        {"_id": "4", "name": "Maria", "age": 28, "city": "Austin"},
        {"_id": "5", "name": "Ajolote", "city": "Denver", "tags": []},
    ]


# ============================================================================
# Markers
# ============================================================================

def pytest_collection_modifyitems(config, items):
    """Add markers based on test location."""
    for item in items:
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
