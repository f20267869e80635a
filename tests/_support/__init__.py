"""
Test support utilities for gherkin-query tests.

Builders for a small but complete Gherkin document and the messages a test
run over it would produce. Everything here is plain data; fixtures wrapping
it live in ``tests/conftest.py``.

The document::

    Feature: Eating fruit                              # line 1
      Background:                                      # line 3
        Given a basket                                 # line 4

      Scenario: Plain eating                           # line 6
        When I eat                                     # line 7

      Scenario Outline: Eat <fruit>                    # line 9
        When I eat <fruit>                             # line 10

        Examples: Tasty                                # line 12
          | fruit   |                                  # line 13
          | <fruit> |                                  # line 14
          | banana  |                                  # line 15
          | apple   |                                  # line 16

        Examples: Not so tasty                         # line 18
          | fruit      |                               # line 19
          | cherry     |                               # line 20
          | durian     |                               # line 21
          | elderberry |                               # line 22

      Rule: Ripe fruit only                            # line 25
        Background:                                    # line 26
          Given a ripe basket                          # line 27

        Scenario: Eat a ripe banana                    # line 29
          When I eat a ripe banana                     # line 30
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from gherkin_query.messages import (
    Background,
    Envelope,
    Examples,
    Feature,
    FeatureChild,
    GherkinDocument,
    Location,
    Pickle,
    PickleStep,
    Rule,
    RuleChild,
    Scenario,
    Step,
    TableCell,
    TableRow,
    TestCase,
    TestCaseFinished,
    TestCaseStarted,
    TestStep,
    TestStepFinished,
    TestStepResult,
    TestStepResultStatus,
    TestStepStarted,
    Timestamp,
)
from gherkin_query.repository import Repository

URI = "features/eating.feature"

TASTY_FRUIT = ("<fruit>", "banana", "apple")
NOT_SO_TASTY_FRUIT = ("cherry", "durian", "elderberry")


def ts(seconds: int, nanos: int = 0) -> Timestamp:
    return Timestamp(seconds, nanos)


def _row(row_id: str, line: int, value: str) -> TableRow:
    return TableRow(id=row_id, location=Location(line, 7), cells=(TableCell(Location(line, 9), value),))


def _examples(index: int, line: int, name: str, fruit: Sequence[str]) -> Examples:
    return Examples(
        id=f"examples-{index}",
        location=Location(line, 5),
        name=name,
        table_header=_row(f"header-{index}", line + 1, "fruit"),
        table_body=tuple(
            _row(f"row-{index}-{position + 1}", line + 2 + position, value)
            for position, value in enumerate(fruit)
        ),
    )


def eating_document(uri: str = URI) -> GherkinDocument:
    """The Gherkin document shown in this module's docstring."""
    background = Background(
        id="background-1",
        location=Location(3, 3),
        steps=(Step("step-background", Location(4, 5), "Given ", "a basket"),),
    )
    plain = Scenario(
        id="scenario-plain",
        location=Location(6, 3),
        name="Plain eating",
        steps=(Step("step-plain", Location(7, 5), "When ", "I eat"),),
    )
    outline = Scenario(
        id="scenario-outline",
        location=Location(9, 3),
        keyword="Scenario Outline",
        name="Eat <fruit>",
        steps=(Step("step-eat", Location(10, 5), "When ", "I eat <fruit>"),),
        examples=(
            _examples(1, 12, "Tasty", TASTY_FRUIT),
            _examples(2, 18, "Not so tasty", NOT_SO_TASTY_FRUIT),
        ),
    )
    rule = Rule(
        id="rule-1",
        location=Location(25, 3),
        name="Ripe fruit only",
        children=(
            RuleChild(
                background=Background(
                    id="rule-background-1",
                    location=Location(26, 5),
                    steps=(Step("step-rule-background", Location(27, 7), "Given ", "a ripe basket"),),
                )
            ),
            RuleChild(
                scenario=Scenario(
                    id="scenario-rule",
                    location=Location(29, 5),
                    name="Eat a ripe banana",
                    steps=(Step("step-rule", Location(30, 7), "When ", "I eat a ripe banana"),),
                )
            ),
        ),
    )
    feature = Feature(
        location=Location(1, 1),
        name="Eating fruit",
        children=(
            FeatureChild(background=background),
            FeatureChild(scenario=plain),
            FeatureChild(scenario=outline),
            FeatureChild(rule=rule),
        ),
    )
    return GherkinDocument(uri=uri, feature=feature)


def large_document(scenarios: int, uri: str = "features/many.feature") -> GherkinDocument:
    """A feature with *scenarios* one-step scenarios, ``scenario-0`` onwards."""
    return GherkinDocument(
        uri=uri,
        feature=Feature(
            location=Location(1, 1),
            name="Many scenarios",
            children=tuple(
                FeatureChild(
                    scenario=Scenario(
                        id=f"scenario-{number}",
                        location=Location(3 * number + 3, 3),
                        name=f"Scenario {number}",
                        steps=(Step(f"step-{number}", Location(3 * number + 4, 5), "When ", f"I do {number}"),),
                    )
                )
                for number in range(scenarios)
            ),
        ),
    )


def large_pickles(scenarios: int, uri: str = "features/many.feature") -> list[Pickle]:
    return [
        Pickle(
            id=f"pickle-{number}",
            uri=uri,
            name=f"Scenario {number}",
            ast_node_ids=(f"scenario-{number}",),
            steps=(PickleStep(id=f"pickle-step-{number}", ast_node_ids=(f"step-{number}",), text=f"I do {number}"),),
        )
        for number in range(scenarios)
    ]


def outline_pickles(uri: str = URI) -> list[Pickle]:
    """The six pickles compiled from ``Eat <fruit>``, in document order."""
    pickles = []
    for examples_number, fruit in ((1, TASTY_FRUIT), (2, NOT_SO_TASTY_FRUIT)):
        for row_number, value in enumerate(fruit, start=1):
            suffix = f"{examples_number}-{row_number}"
            row_id = f"row-{suffix}"
            pickles.append(
                Pickle(
                    id=f"pickle-{suffix}",
                    uri=uri,
                    name=f"Eat {value}",
                    ast_node_ids=("scenario-outline", row_id),
                    steps=(
                        PickleStep(
                            id=f"pickle-step-{suffix}",
                            ast_node_ids=("step-eat", row_id),
                            text=f"I eat {value}",
                        ),
                    ),
                )
            )
    return pickles


def plain_pickle(uri: str = URI) -> Pickle:
    return Pickle(
        id="pickle-plain",
        uri=uri,
        name="Plain eating",
        ast_node_ids=("scenario-plain",),
        steps=(
            PickleStep(id="pickle-step-plain-background", ast_node_ids=("step-background",), text="a basket"),
            PickleStep(id="pickle-step-plain", ast_node_ids=("step-plain",), text="I eat"),
        ),
    )


def rule_pickle(uri: str = URI) -> Pickle:
    return Pickle(
        id="pickle-rule",
        uri=uri,
        name="Eat a ripe banana",
        ast_node_ids=("scenario-rule",),
        steps=(
            PickleStep(id="pickle-step-rule", ast_node_ids=("step-rule",), text="I eat a ripe banana"),
        ),
    )


def build_test_case(
    pickle: Pickle,
    test_case_id: str | None = None,
    step_definition_ids: tuple[str, ...] | None = ("step-definition-1",),
) -> TestCase:
    """A TestCase with one TestStep per pickle step."""
    test_case_id = test_case_id or f"test-case-{pickle.id}"
    return TestCase(
        id=test_case_id,
        pickle_id=pickle.id,
        test_steps=tuple(
            TestStep(
                id=f"{test_case_id}-step-{position}",
                pickle_step_id=pickle_step.id,
                step_definition_ids=step_definition_ids,
            )
            for position, pickle_step in enumerate(pickle.steps)
        ),
    )


def attempt(
    test_case: TestCase,
    started_id: str,
    start: int,
    statuses: Sequence[TestStepResultStatus],
    *,
    attempt_number: int = 0,
    will_be_retried: bool = False,
    finished: bool = True,
) -> list:
    """Messages for one execution attempt of *test_case*.

    Step ``k`` starts at ``start + k`` seconds and takes one second; the
    attempt finishes one second after its last step.
    """
    messages: list = [
        TestCaseStarted(id=started_id, test_case_id=test_case.id, timestamp=ts(start), attempt=attempt_number)
    ]
    for position, (test_step, status) in enumerate(zip(test_case.test_steps, statuses)):
        messages.append(TestStepStarted(started_id, test_step.id, ts(start + position)))
        messages.append(
            TestStepFinished(
                started_id,
                test_step.id,
                TestStepResult(status=status),
                ts(start + position + 1),
            )
        )
    if finished:
        messages.append(
            TestCaseFinished(
                test_case_started_id=started_id,
                timestamp=ts(start + len(statuses) + 1),
                will_be_retried=will_be_retried,
            )
        )
    return messages


def envelopes(messages: Iterable) -> list[Envelope]:
    return [Envelope.of(message) for message in messages]


def ingest(repository: Repository, messages: Iterable) -> Repository:
    for envelope in envelopes(messages):
        repository.update(envelope)
    return repository
