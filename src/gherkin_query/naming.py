"""
Name pickles and other Gherkin document elements.

Pickles have a name, but shown without the structure of their document (in a
flat xml report, for example) that name can lose its meaning. The long naming
strategy prefixes an element's name with the names of all its ancestors,
optionally including the feature name. The short strategy keeps only the
element's own name.

Pickles generated from an example row can be named by their example number
(``#2.1``), by their pickle name, or by the number followed by the pickle
name when the outline is parameterized.

Given::

    Feature: Examples Tables
      Scenario Outline: Eating <eat> cucumbers
        Examples: These are passing
          | start | eat | left |
          |    12 |   5 |    7 |
          |    20 |   6 |   14 |

        Examples: These are failing
          | start | eat | left |
          |    12 |  20 |    0 |

the long strategy with example numbers names the pickles::

    Examples Tables - Eating <eat> cucumbers - These are passing - #1.1
    Examples Tables - Eating <eat> cucumbers - These are passing - #1.2
    Examples Tables - Eating <eat> cucumbers - These are failing - #2.1

and the short strategy with pickle names::

    Eating 5 cucumbers
    Eating 6 cucumbers
    Eating 20 cucumbers

Examples:
    >>> naming = (
    ...     NamingStrategy.strategy(Strategy.LONG)
    ...     .feature_name(FeatureName.EXCLUDE)
    ...     .example_name(ExampleName.PICKLE)
    ...     .build()
    ... )
    >>> query.find_name_of(pickle, naming)
    'Eating <eat> cucumbers - These are passing - Eating 5 cucumbers'

Tags:
    naming, lineage, reporting, gherkin-query
"""

from __future__ import annotations

from enum import Enum

from gherkin_query.lineage import Lineage
from gherkin_query.messages import Examples, Feature, Pickle, Rule, Scenario, TableRow
from gherkin_query.reducer import DescendingLineageReducer, LineageCollector


class Strategy(str, Enum):
    LONG = "LONG"
    """Name an element by including all its ancestors in the name."""
    SHORT = "SHORT"
    """Name an element by its own name only."""


class FeatureName(str, Enum):
    INCLUDE = "INCLUDE"
    """With the long strategy, include the feature name."""
    EXCLUDE = "EXCLUDE"
    """With the long strategy, leave the feature name out."""


class ExampleName(str, Enum):
    NUMBER = "NUMBER"
    """Number examples, e.g. ``#3.14``."""
    PICKLE = "PICKLE"
    """Use the name of the pickle generated from the example."""
    NUMBER_AND_PICKLE_IF_PARAMETERIZED = "NUMBER_AND_PICKLE_IF_PARAMETERIZED"
    """Number examples, followed by the pickle name when it differs from the scenario name."""


_DELIMITER = " - "


class NamingCollector(LineageCollector[str]):
    """Collects the name parts of a lineage, root first."""

    def __init__(
        self,
        strategy: Strategy,
        feature_name: FeatureName,
        example_name: ExampleName,
    ) -> None:
        self._strategy = strategy
        self._feature_name = feature_name
        self._example_name = example_name
        # A feature file has at most five levels.
        self._parts: list[str] = []
        self._scenario_name: str | None = None
        self._is_example = False
        self._examples_index = 0

    def add_feature(self, feature: Feature) -> None:
        if self._feature_name is FeatureName.INCLUDE or self._strategy is Strategy.SHORT:
            self._parts.append(feature.name)

    def add_rule(self, rule: Rule) -> None:
        self._parts.append(rule.name)

    def add_scenario(self, scenario: Scenario) -> None:
        self._scenario_name = scenario.name
        self._parts.append(scenario.name)

    def add_examples(self, examples: Examples, index: int) -> None:
        self._parts.append(examples.name)
        self._examples_index = index

    def add_example(self, example: TableRow, index: int) -> None:
        self._is_example = True
        self._parts.append(f"#{self._examples_index + 1}.{index + 1}")

    def add_pickle(self, pickle: Pickle) -> None:
        pickle_name = pickle.name

        # Lineage without a scenario: the pickle names itself.
        if self._scenario_name is None:
            self._parts.append(pickle_name)
            return

        # Pickles from a scenario need nothing; their name is the scenario's.
        if not self._is_example:
            return

        match self._example_name:
            case ExampleName.NUMBER:
                pass
            case ExampleName.NUMBER_AND_PICKLE_IF_PARAMETERIZED:
                if pickle_name != self._scenario_name:
                    example_number = self._parts.pop()
                    self._parts.append(f"{example_number}: {pickle_name}")
            case ExampleName.PICKLE:
                self._parts.pop()
                self._parts.append(pickle_name)

    def finish(self) -> str:
        if self._strategy is Strategy.SHORT:
            non_empty = [part for part in self._parts if part]
            return non_empty[-1] if non_empty else ""
        return _DELIMITER.join(part for part in self._parts if part)


class NamingStrategy:
    """A configured reducer from lineage (and pickle) to display name.

    Build one with :meth:`strategy`; instances are immutable and every call
    to :meth:`reduce` uses a fresh :class:`NamingCollector`.
    """

    def __init__(
        self,
        strategy: Strategy,
        feature_name: FeatureName = FeatureName.INCLUDE,
        example_name: ExampleName = ExampleName.NUMBER_AND_PICKLE_IF_PARAMETERIZED,
    ) -> None:
        self._strategy = strategy
        self._feature_name = feature_name
        self._example_name = example_name
        self._reducer = DescendingLineageReducer(self._new_collector)

    @staticmethod
    def strategy(strategy: Strategy) -> NamingStrategyBuilder:
        return NamingStrategyBuilder(strategy)

    def _new_collector(self) -> NamingCollector:
        return NamingCollector(self._strategy, self._feature_name, self._example_name)

    def reduce(self, lineage: Lineage, pickle: Pickle | None = None) -> str:
        return self._reducer.reduce(lineage, pickle)

    def __repr__(self) -> str:
        return (
            f"NamingStrategy(strategy={self._strategy.value}, "
            f"feature_name={self._feature_name.value}, example_name={self._example_name.value})"
        )


class NamingStrategyBuilder:
    """Fluent builder for :class:`NamingStrategy`."""

    def __init__(self, strategy: Strategy) -> None:
        self._strategy = Strategy(strategy)
        self._feature_name = FeatureName.INCLUDE
        self._example_name = ExampleName.NUMBER_AND_PICKLE_IF_PARAMETERIZED

    def feature_name(self, feature_name: FeatureName) -> NamingStrategyBuilder:
        self._feature_name = FeatureName(feature_name)
        return self

    def example_name(self, example_name: ExampleName) -> NamingStrategyBuilder:
        self._example_name = ExampleName(example_name)
        return self

    def build(self) -> NamingStrategy:
        return NamingStrategy(self._strategy, self._feature_name, self._example_name)


__all__ = [
    "Strategy",
    "FeatureName",
    "ExampleName",
    "NamingCollector",
    "NamingStrategy",
    "NamingStrategyBuilder",
]
