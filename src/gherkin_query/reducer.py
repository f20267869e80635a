"""
Reduce a lineage to a single value.

Messages cannot express the hierarchy of a Gherkin document as a tree of
nodes, but the usual tree operations (naming an element, finding its
location) can still be expressed as a fold over its :class:`Lineage`.

A :class:`LineageCollector` receives one callback per element kind and
produces the result in :meth:`LineageCollector.finish`. A
:class:`LineageReducer` decides the order in which the elements are offered:

- **descending** (root to leaf): document, feature, rule, scenario,
  examples, example, then the pickle
- **ascending** (leaf to root): the pickle, then example, examples,
  scenario, rule, feature, document

The order only changes the sequence of callbacks, never which elements are
visited. Each reduction gets a fresh collector from the factory, so one
reducer can be shared between threads.

Examples:
    >>> reducer = LineageReducer.ascending(FirstLocationCollector)
    >>> reducer.reduce(lineage)  # location of the deepest element
    Location(line=12, column=7)

Tags:
    lineage, visitor, reducer, gherkin-query
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Protocol

from gherkin_query.lineage import Lineage
from gherkin_query.messages import (
    Examples,
    Feature,
    GherkinDocument,
    Location,
    Pickle,
    Rule,
    Scenario,
    TableRow,
)


class LineageCollector[T]:
    """Collects the elements of a lineage and reduces them to one result.

    Every ``add_*`` hook is a no-op; subclasses override the ones they need
    and must implement :meth:`finish`.
    """

    def add_document(self, document: GherkinDocument) -> None:
        pass

    def add_feature(self, feature: Feature) -> None:
        pass

    def add_rule(self, rule: Rule) -> None:
        pass

    def add_scenario(self, scenario: Scenario) -> None:
        pass

    def add_examples(self, examples: Examples, index: int) -> None:
        pass

    def add_example(self, example: TableRow, index: int) -> None:
        pass

    def add_pickle(self, pickle: Pickle) -> None:
        pass

    def finish(self) -> T:
        raise NotImplementedError


type CollectorFactory[T] = Callable[[], LineageCollector[T]]


class LineageReducer[T](Protocol):
    """Reduces the lineage of a Gherkin document element or pickle."""

    def reduce(self, lineage: Lineage, pickle: Pickle | None = None) -> T: ...

    @staticmethod
    def descending(collector_factory: CollectorFactory[T]) -> DescendingLineageReducer[T]:
        return DescendingLineageReducer(collector_factory)

    @staticmethod
    def ascending(collector_factory: CollectorFactory[T]) -> AscendingLineageReducer[T]:
        return AscendingLineageReducer(collector_factory)


class DescendingLineageReducer[T]:
    """Offers the lineage root first, the pickle last."""

    def __init__(self, collector_factory: CollectorFactory[T]) -> None:
        self._collector_factory = collector_factory

    def reduce(self, lineage: Lineage, pickle: Pickle | None = None) -> T:
        collector = self._collector_factory()
        collector.add_document(lineage.document)
        if lineage.feature is not None:
            collector.add_feature(lineage.feature)
        if lineage.rule is not None:
            collector.add_rule(lineage.rule)
        if lineage.scenario is not None:
            collector.add_scenario(lineage.scenario)
        if lineage.examples is not None:
            collector.add_examples(lineage.examples, lineage.examples_index or 0)
        if lineage.example is not None:
            collector.add_example(lineage.example, lineage.example_index or 0)
        if pickle is not None:
            collector.add_pickle(pickle)
        return collector.finish()


class AscendingLineageReducer[T]:
    """Offers the pickle first, then the lineage from leaf to root."""

    def __init__(self, collector_factory: CollectorFactory[T]) -> None:
        self._collector_factory = collector_factory

    def reduce(self, lineage: Lineage, pickle: Pickle | None = None) -> T:
        collector = self._collector_factory()
        if pickle is not None:
            collector.add_pickle(pickle)
        if lineage.example is not None:
            collector.add_example(lineage.example, lineage.example_index or 0)
        if lineage.examples is not None:
            collector.add_examples(lineage.examples, lineage.examples_index or 0)
        if lineage.scenario is not None:
            collector.add_scenario(lineage.scenario)
        if lineage.rule is not None:
            collector.add_rule(lineage.rule)
        if lineage.feature is not None:
            collector.add_feature(lineage.feature)
        collector.add_document(lineage.document)
        return collector.finish()


class FirstLocationCollector(LineageCollector[Location | None]):
    """Keeps the first location offered.

    Reduced ascending this is the location of the deepest element; reduced
    descending it is the feature's.
    """

    def __init__(self) -> None:
        self._location: Location | None = None

    def _offer(self, location: Location) -> None:
        if self._location is None:
            self._location = location

    def add_feature(self, feature: Feature) -> None:
        self._offer(feature.location)

    def add_rule(self, rule: Rule) -> None:
        self._offer(rule.location)

    def add_scenario(self, scenario: Scenario) -> None:
        self._offer(scenario.location)

    def add_examples(self, examples: Examples, index: int) -> None:
        self._offer(examples.location)

    def add_example(self, example: TableRow, index: int) -> None:
        self._offer(example.location)

    def finish(self) -> Location | None:
        return self._location


__all__ = [
    "LineageCollector",
    "LineageReducer",
    "DescendingLineageReducer",
    "AscendingLineageReducer",
    "FirstLocationCollector",
    "CollectorFactory",
]
