"""
Shared pytest fixtures and configuration for gherkin-query tests.

This module provides:
- Repositories with every optional index enabled, or none
- The sample Gherkin document and its pickles (see ``tests/_support``)
- A complete test run over them (``run_query``)
- Settings and logging isolation

Usage:
    Fixtures are auto-discovered by pytest. Use them as function arguments:

    def test_something(query, full_repository):
        ...
"""

from __future__ import annotations

from pathlib import Path

import pytest
import structlog

from gherkin_query.core.settings import clear_settings_cache
from gherkin_query.messages import (
    GherkinDocument,
    Pickle,
    TestCase,
    TestRunFinished,
    TestRunStarted,
    TestStepResultStatus,
)
from gherkin_query.query import Query
from gherkin_query.repository import Repository, RepositoryFeature
from tests._support import (
    attempt,
    build_test_case,
    eating_document,
    ingest,
    outline_pickles,
    plain_pickle,
    rule_pickle,
    ts,
)

PASSED = TestStepResultStatus.PASSED
FAILED = TestStepResultStatus.FAILED
UNDEFINED = TestStepResultStatus.UNDEFINED


# =============================================================================
# Test Markers Configuration
# =============================================================================


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Mark tests under ``integration/`` as integration tests and the rest as unit tests."""
    for item in items:
        test_path = Path(item.fspath).relative_to(Path(__file__).parent)

        if "integration" in str(test_path):
            item.add_marker(pytest.mark.integration)

        markers = {mark.name for mark in item.iter_markers()}
        if not markers.intersection({"unit", "integration"}):
            item.add_marker(pytest.mark.unit)


# =============================================================================
# Isolation Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def clean_settings_and_logging():
    """Reset the settings cache and structlog configuration around each test."""
    clear_settings_cache()
    yield
    clear_settings_cache()
    structlog.reset_defaults()
    structlog.contextvars.clear_contextvars()


# =============================================================================
# Repository Fixtures
# =============================================================================


@pytest.fixture
def full_repository() -> Repository:
    """A repository with every optional index enabled."""
    builder = Repository.builder()
    for feature in RepositoryFeature:
        builder.feature(feature, True)
    return builder.build()


@pytest.fixture
def bare_repository() -> Repository:
    """A repository with no optional index enabled."""
    return Repository.builder().build()


@pytest.fixture
def query(full_repository: Repository) -> Query:
    return Query(full_repository)


# =============================================================================
# Gherkin Fixtures
# =============================================================================


@pytest.fixture
def document() -> GherkinDocument:
    return eating_document()


@pytest.fixture
def pickles() -> list[Pickle]:
    """Plain, outline (six) and rule pickles, in document order."""
    return [plain_pickle(), *outline_pickles(), rule_pickle()]


@pytest.fixture
def gherkin_query(full_repository: Repository, document: GherkinDocument, pickles: list[Pickle]) -> Query:
    """A query over the sample document and all of its pickles."""
    ingest(full_repository, [document, *pickles])
    return Query(full_repository)


# =============================================================================
# Test Run Fixtures
# =============================================================================


@pytest.fixture
def cases_by_pickle_id(pickles: list[Pickle]) -> dict[str, TestCase]:
    return {pickle.id: build_test_case(pickle) for pickle in pickles}


@pytest.fixture
def run_query(gherkin_query: Query, cases_by_pickle_id: dict[str, TestCase]) -> Query:
    """A complete run: FAILED twice, PASSED three times, one retried attempt.

    ``pickle-1-2`` is attempted twice; its first attempt (``started-1-2-retried``)
    will be retried.
    """
    tc = cases_by_pickle_id
    ingest(
        gherkin_query.repository,
        [
            TestRunStarted(timestamp=ts(100), id="run-1"),
            *tc.values(),
            *attempt(tc["pickle-plain"], "started-plain", 101, [PASSED, FAILED]),
            *attempt(tc["pickle-1-1"], "started-1-1", 110, [PASSED]),
            *attempt(tc["pickle-1-2"], "started-1-2-retried", 120, [UNDEFINED], will_be_retried=True),
            *attempt(tc["pickle-1-2"], "started-1-2", 130, [FAILED], attempt_number=1),
            *attempt(tc["pickle-1-3"], "started-1-3", 140, [PASSED]),
            *attempt(tc["pickle-rule"], "started-rule", 150, [PASSED]),
            TestRunFinished(success=False, timestamp=ts(160, 250), test_run_started_id="run-1"),
        ],
    )
    return gherkin_query
