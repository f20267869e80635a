"""
Gherkin Query - an in-memory read model over a Gherkin test run.

Feed decoded envelopes to a :class:`Repository`, then ask a :class:`Query`:

- gherkin_query.messages: message and envelope value types
- gherkin_query.repository: the indices, built one envelope at a time
- gherkin_query.lineage: ancestor snapshots of Gherkin document elements
- gherkin_query.query: lookups, ordering, severity and durations
- gherkin_query.reducer / gherkin_query.naming: fold a lineage into a value
- gherkin_query.core: errors, logging and settings
"""

__version__ = "0.1.0"

from gherkin_query.core.errors import (
    ConfigError,
    InvariantViolationError,
    QueryError,
    UnsupportedMessageError,
)
from gherkin_query.lineage import Lineage
from gherkin_query.messages import Envelope
from gherkin_query.naming import ExampleName, FeatureName, NamingStrategy, Strategy
from gherkin_query.query import Query
from gherkin_query.reducer import FirstLocationCollector, LineageCollector, LineageReducer
from gherkin_query.repository import Repository, RepositoryFeature

__all__ = [
    "ConfigError",
    "Envelope",
    "ExampleName",
    "FeatureName",
    "FirstLocationCollector",
    "InvariantViolationError",
    "Lineage",
    "LineageCollector",
    "LineageReducer",
    "NamingStrategy",
    "Query",
    "QueryError",
    "Repository",
    "RepositoryFeature",
    "Strategy",
    "UnsupportedMessageError",
]
