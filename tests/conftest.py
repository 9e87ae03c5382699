#!/usr/bin/env python3
"""Shared pytest fixtures for json-filter test suite."""

import pytest
import json
import pathlib
import sys
from typing import Any, Dict

# Add parent directory to path for imports
sys.path.insert(0, str(pathlib.Path(__file__).parent.parent))

from tests.fixtures.generate_test_data import (
    make_person,
    generate_person_response,
    generate_corrupted_response,
)


# ============================================================================
# Data Fixtures
# ============================================================================

@pytest.fixture
def person() -> Dict[str, Any]:
    """A single nested person record."""
    return make_person(0)


@pytest.fixture
def simple_person() -> Dict[str, Any]:
    """The small record used throughout the projection scenarios."""
    return {
        "personid": "U1",
        "personBasic": {"names": [{"firstName": "Bugs", "lastName": "Bunny"}]},
        "extra": "x",
    }


@pytest.fixture
def response_bytes() -> bytes:
    """A 25-record response body."""
    return generate_person_response(25).encode()


# ============================================================================
# File Fixtures
# ============================================================================

@pytest.fixture
def response_file(tmp_path) -> pathlib.Path:
    """A response document on disk."""
    json_file = tmp_path / "persons.json"
    generate_person_response(50, str(json_file))
    return json_file


@pytest.fixture
def array_file(tmp_path) -> pathlib.Path:
    """A bare top-level array on disk."""
    json_file = tmp_path / "array.json"
    json_file.write_text(json.dumps([make_person(i) for i in range(10)]))
    return json_file


@pytest.fixture
def corrupted_file(tmp_path) -> pathlib.Path:
    """A response document truncated in the middle of a record."""
    json_file = tmp_path / "corrupted.json"
    generate_corrupted_response(5, str(json_file))
    return json_file


@pytest.fixture
def config_file(tmp_path) -> pathlib.Path:
    """A config file in the connector's dataSource layout."""
    path = tmp_path / "config.json"
    path.write_text(json.dumps({
        "dataSource": {
            "extractPath": "response[*]",
            "fieldsToKeep": ["personid", "personBasic.names[*].firstName"],
        },
        "chunkSizeKb": 8,
    }))
    return path


# ============================================================================
# Environment Fixtures
# ============================================================================

@pytest.fixture
def clean_environment(monkeypatch):
    """Ensure a clean environment for tests."""
    env_vars_to_remove = ['DATASOURCE_EXTRACT_PATH', 'DATASOURCE_FIELDS_TO_KEEP',
                          'JSON_CHUNK_SIZE', 'DEBUG', 'JSON_FILTER_CONFIG']
    for var in env_vars_to_remove:
        monkeypatch.delenv(var, raising=False)

    yield


# ============================================================================
# Performance Testing Fixtures
# ============================================================================

@pytest.fixture
def memory_profiler():
    """Setup memory profiling for tests."""
    try:
        from memory_profiler import memory_usage
    except ImportError:
        pytest.skip("memory_profiler not installed")

    def profile_memory(func, *args, **kwargs):
        """Profile memory usage (MiB) of a function."""
        baseline = max(memory_usage(-1, interval=0.1, timeout=0.5))
        mem_usage = memory_usage((func, args, kwargs), interval=0.05)
        return {
            "baseline": baseline,
            "min": min(mem_usage),
            "max": max(mem_usage),
            "avg": sum(mem_usage) / len(mem_usage)
        }

    return profile_memory


# ============================================================================
# Test Markers
# ============================================================================

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "slow: marks tests as slow")
    config.addinivalue_line("markers", "integration: marks integration tests")
    config.addinivalue_line("markers", "benchmark: marks benchmark tests")
