"""
Shared pytest fixtures and configuration for idspine tests.

This module provides:
- Auto-marking of tests by location (unit / integration)
- Sample rows and batches modelled on a small people registry
- Settings cache and structlog configuration isolation

Usage:
    Fixtures are auto-discovered by pytest. Use them as function arguments:

    def test_something(people_batch):
        ...
"""

import sys
from datetime import date
from pathlib import Path
from typing import Generator

import pytest
import structlog

# Ensure idspine package is importable
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from idspine.core.settings import clear_settings_cache
from idspine.identity import Batch, FieldType


# =============================================================================
# Test Markers Configuration
# =============================================================================


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Auto-mark tests based on their location."""
    for item in items:
        test_path = Path(item.fspath).relative_to(Path(__file__).parent)

        if "integration" in str(test_path):
            item.add_marker(pytest.mark.integration)

        markers = {mark.name for mark in item.iter_markers()}
        if not markers.intersection({"unit", "integration"}):
            item.add_marker(pytest.mark.unit)


# =============================================================================
# Settings and Logging Isolation
# =============================================================================


@pytest.fixture(autouse=True)
def clean_settings_cache() -> Generator[None, None, None]:
    """Drop cached settings before and after each test."""
    clear_settings_cache()
    yield
    clear_settings_cache()


@pytest.fixture(autouse=True)
def reset_structlog() -> Generator[None, None, None]:
    """Start and end each test with default structlog config and empty context."""
    structlog.reset_defaults()
    structlog.contextvars.clear_contextvars()
    yield
    structlog.contextvars.clear_contextvars()
    structlog.reset_defaults()


# =============================================================================
# Sample Data Fixtures
# =============================================================================


PEOPLE_SCHEMA = {
    "name": FieldType.STRING,
    "date": FieldType.DATE,
    "location": FieldType.STRING,
}

LOCATIONS = ("Berlin", "Paris", "Rome")


@pytest.fixture
def people_rows() -> list[dict]:
    """Three distinct people, as parsed from a delimited file."""
    return [
        {"name": "John Doe", "date": "1948-12-10", "location": "Paris"},
        {"name": "Jane Roe", "date": "1950-01-02", "location": "Rome"},
        {"name": "Max Mustermann", "date": date(1961, 8, 13), "location": "Berlin"},
    ]


@pytest.fixture
def people_batch(people_rows) -> Batch:
    return Batch.from_rows(people_rows, dataset_tag="ds1", schema=PEOPLE_SCHEMA, stable_order=True)


@pytest.fixture
def coded_people_batch(people_rows) -> Batch:
    """The same people with location read as categorical codes."""
    coded = [dict(row, location=LOCATIONS.index(row["location"])) for row in people_rows]
    return Batch.from_rows(
        coded,
        dataset_tag="ds1",
        schema=PEOPLE_SCHEMA,
        categories={"location": LOCATIONS},
        stable_order=True,
    )
