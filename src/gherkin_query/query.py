"""
Read-model queries over a :class:`~gherkin_query.repository.Repository`.

Manifesto:
    - **Pure reads:** no method mutates the repository; calling the same
      method twice without an intervening ``update`` gives equal results
    - **Misses are quiet:** a dangling id or a disabled index yields ``None``
      or an empty list
    - **Broken streams are loud:** a relationship the message protocol
      guarantees raises :class:`InvariantViolationError`

Ordering:
    ``find_all_test_case_started`` excludes attempts that will be retried
    and orders the rest by ``(timestamp, id)``. The id only breaks ties, so
    the result is deterministic whatever order the envelopes arrived in.

Severity:
    "Most severe" uses :attr:`TestStepResultStatus.severity`:
    UNKNOWN < PASSED < SKIPPED < PENDING < UNDEFINED < AMBIGUOUS < FAILED.

Examples:
    >>> query = Query(repository)
    >>> [started.id for started in query.find_all_test_case_started()]
    ['0', '1', '2']
    >>> query.count_most_severe_test_step_result_status()[TestStepResultStatus.FAILED]
    2

Tags:
    query, read-model, retry, severity, lineage, gherkin-query

Doc-Types:
    - API Reference
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from typing import Any

from gherkin_query.core.errors import InvariantViolationError, UnsupportedMessageError
from gherkin_query.core.logging import get_logger
from gherkin_query.lineage import Lineage
from gherkin_query.messages import (
    Attachment,
    Duration,
    Examples,
    Feature,
    GherkinDocument,
    Hook,
    Location,
    Meta,
    Pickle,
    PickleStep,
    Rule,
    Scenario,
    Step,
    StepDefinition,
    Suggestion,
    TableRow,
    TestCase,
    TestCaseFinished,
    TestCaseStarted,
    TestRunFinished,
    TestRunHookFinished,
    TestRunHookStarted,
    TestRunStarted,
    TestStep,
    TestStepFinished,
    TestStepResult,
    TestStepResultStatus,
    TestStepStarted,
    UndefinedParameterType,
)
from gherkin_query.naming import NamingStrategy
from gherkin_query.repository import Repository

logger = get_logger(__name__)

type OrderBy[T] = Callable[[Query, T], Any]
type LineageElement = (
    GherkinDocument
    | Feature
    | Rule
    | Scenario
    | Examples
    | TableRow
    | Pickle
    | TestCaseStarted
    | TestCaseFinished
)


def _unsupported(operation: str, element: object) -> UnsupportedMessageError:
    return UnsupportedMessageError(
        f"{operation} does not accept {type(element).__name__}"
    )


def _invariant_violation(message: str, **context: Any) -> InvariantViolationError:
    logger.warning("invariant_violation", reason=message, **context)
    return InvariantViolationError(message).with_context(**context)


def _order_by[T](query: Query, items: Iterable[T], order_by: OrderBy[T]) -> list[T]:
    keyed = [(order_by(query, item), item) for item in items]
    present = sorted((pair for pair in keyed if pair[0] is not None), key=lambda pair: pair[0])
    missing = [item for key, item in keyed if key is None]
    return [item for _, item in present] + missing


class Query:
    """Stateless facade over one :class:`Repository`.

    The repository is shared, not copied; queries see whatever has been
    ingested so far.
    """

    def __init__(self, repository: Repository) -> None:
        self._repository = repository

    @property
    def repository(self) -> Repository:
        return self._repository

    # ------------------------------------------------------------------
    # Aggregation
    # ------------------------------------------------------------------

    def count_most_severe_test_step_result_status(self) -> dict[TestStepResultStatus, int]:
        """Histogram of the most severe result of every included attempt.

        Every status is present as a key, zero when absent from the run.
        Attempts without finished steps are not counted.
        """
        counts = {status: 0 for status in TestStepResultStatus}
        for test_case_started in self.find_all_test_case_started():
            result = self.find_most_severe_test_step_result_by(test_case_started)
            if result is not None:
                counts[result.status] += 1
        return counts

    def count_test_cases_started(self) -> int:
        return len(self.find_all_test_case_started())

    @property
    def test_cases_started_count(self) -> int:
        return self.count_test_cases_started()

    # ------------------------------------------------------------------
    # Enumeration
    # ------------------------------------------------------------------

    def find_all_pickles(self) -> list[Pickle]:
        return list(self._repository.pickle_by_id.values())

    def find_all_pickle_steps(self) -> list[PickleStep]:
        return list(self._repository.pickle_step_by_id.values())

    def find_all_step_definitions(self) -> list[StepDefinition]:
        return list(self._repository.step_definition_by_id.values())

    def find_all_test_cases(self) -> list[TestCase]:
        return list(self._repository.test_case_by_id.values())

    def find_all_test_steps(self) -> list[TestStep]:
        return list(self._repository.test_step_by_id.values())

    def find_all_test_case_started(self) -> list[TestCaseStarted]:
        """Final attempts, ordered by ``(timestamp, id)``.

        An attempt is final when its TestCaseFinished is not marked
        ``will_be_retried``, or when it has not finished yet.
        """
        finished_by_id = self._repository.test_case_finished_by_test_case_started_id
        included = [
            started
            for started in self._repository.test_case_started_by_id.values()
            if not (started.id in finished_by_id and finished_by_id[started.id].will_be_retried)
        ]
        return sorted(included, key=lambda started: (started.timestamp, started.id))

    def find_all_test_case_started_order_by(
        self, order_by: OrderBy[TestCaseStarted]
    ) -> list[TestCaseStarted]:
        """Final attempts, stably sorted by ``order_by(query, started)``.

        Attempts for which ``order_by`` returns ``None`` come last.
        """
        return _order_by(self, self.find_all_test_case_started(), order_by)

    def find_all_test_case_started_grouped_by_feature(
        self,
    ) -> dict[Feature | None, list[TestCaseStarted]]:
        """Final attempts grouped by feature; ``None`` collects the unresolved.

        Features are grouped by identity and each is hashed once, when the
        result is built. Equal features from different documents share a group.
        """
        features: dict[int, Feature | None] = {}
        grouped: dict[int, list[TestCaseStarted]] = {}
        for test_case_started in self.find_all_test_case_started():
            feature = self.find_feature_by(test_case_started)
            features.setdefault(id(feature), feature)
            grouped.setdefault(id(feature), []).append(test_case_started)
        result: dict[Feature | None, list[TestCaseStarted]] = {}
        for key, attempts in grouped.items():
            result.setdefault(features[key], []).extend(attempts)
        return result

    def find_all_test_case_finished(self) -> list[TestCaseFinished]:
        """Finished final attempts, ordered by ``(timestamp, test_case_started_id)``."""
        included = [
            finished
            for finished in self._repository.test_case_finished_by_test_case_started_id.values()
            if not finished.will_be_retried
        ]
        return sorted(
            included,
            key=lambda finished: (finished.timestamp, finished.test_case_started_id),
        )

    def find_all_test_case_finished_order_by(
        self, order_by: OrderBy[TestCaseFinished]
    ) -> list[TestCaseFinished]:
        return _order_by(self, self.find_all_test_case_finished(), order_by)

    def find_all_test_step_started(self) -> list[TestStepStarted]:
        """Step starts attempt by attempt; each attempt's in arrival order."""
        return [
            test_step_started
            for steps in self._repository.test_steps_started_by_test_case_started_id.values()
            for test_step_started in steps
        ]

    def find_all_test_step_finished(self) -> list[TestStepFinished]:
        return [
            test_step_finished
            for steps in self._repository.test_steps_finished_by_test_case_started_id.values()
            for test_step_finished in steps
        ]

    def find_all_test_run_hook_started(self) -> list[TestRunHookStarted]:
        return list(self._repository.test_run_hook_started_by_id.values())

    def find_all_test_run_hook_finished(self) -> list[TestRunHookFinished]:
        return list(self._repository.test_run_hook_finished_by_test_run_hook_started_id.values())

    def find_all_undefined_parameter_types(self) -> list[UndefinedParameterType]:
        return list(self._repository.undefined_parameter_types)

    # ------------------------------------------------------------------
    # Test run
    # ------------------------------------------------------------------

    def find_meta(self) -> Meta | None:
        return self._repository.meta

    def find_test_run_started(self) -> TestRunStarted | None:
        return self._repository.test_run_started

    def find_test_run_finished(self) -> TestRunFinished | None:
        return self._repository.test_run_finished

    def find_test_run_duration(self) -> Duration | None:
        started = self._repository.test_run_started
        finished = self._repository.test_run_finished
        if started is None or finished is None:
            return None
        return finished.timestamp - started.timestamp

    # ------------------------------------------------------------------
    # Test cases and attempts
    # ------------------------------------------------------------------

    def find_test_case_started_by(
        self, element: TestStepStarted | TestStepFinished | TestCaseFinished
    ) -> TestCaseStarted | None:
        match element:
            case TestStepStarted() | TestStepFinished() | TestCaseFinished():
                return self._repository.test_case_started_by_id.get(element.test_case_started_id)
            case _:
                raise _unsupported("find_test_case_started_by", element)

    def _require_test_case_started(
        self, element: TestStepStarted | TestStepFinished | TestCaseFinished
    ) -> TestCaseStarted:
        test_case_started = self.find_test_case_started_by(element)
        if test_case_started is None:
            raise _invariant_violation(
                f"{type(element).__name__} references an unknown TestCaseStarted",
                test_case_started_id=element.test_case_started_id,
            )
        return test_case_started

    def find_test_case_finished_by(self, test_case_started: TestCaseStarted) -> TestCaseFinished | None:
        return self._repository.test_case_finished_by_test_case_started_id.get(test_case_started.id)

    def find_test_case_by(
        self,
        element: TestCaseStarted | TestCaseFinished | TestStepStarted | TestStepFinished,
    ) -> TestCase | None:
        """Resolve the TestCase of an attempt or of one of its events.

        Raises:
            InvariantViolationError: if a step or finished event references
                an attempt that was never started.
        """
        match element:
            case TestCaseStarted():
                return self._repository.test_case_by_id.get(element.test_case_id)
            case TestCaseFinished() | TestStepStarted() | TestStepFinished():
                return self.find_test_case_by(self._require_test_case_started(element))
            case _:
                raise _unsupported("find_test_case_by", element)

    def find_test_case_duration_by(
        self, element: TestCaseStarted | TestCaseFinished
    ) -> Duration | None:
        match element:
            case TestCaseStarted():
                test_case_started = element
                test_case_finished = self.find_test_case_finished_by(element)
            case TestCaseFinished():
                test_case_started = self.find_test_case_started_by(element)
                test_case_finished = element
            case _:
                raise _unsupported("find_test_case_duration_by", element)
        if test_case_started is None or test_case_finished is None:
            return None
        return test_case_finished.timestamp - test_case_started.timestamp

    def find_most_severe_test_step_result_by(
        self, element: TestCaseStarted | TestCaseFinished
    ) -> TestStepResult | None:
        """The most severe result among the finished steps of an attempt.

        Returns ``None`` when nothing finished, or when a TestCaseFinished
        cannot be traced back to its attempt. Ties keep the first result.
        """
        match element:
            case TestCaseStarted():
                test_case_started = element
            case TestCaseFinished():
                test_case_started = self.find_test_case_started_by(element)
                if test_case_started is None:
                    return None
            case _:
                raise _unsupported("find_most_severe_test_step_result_by", element)

        most_severe: TestStepResult | None = None
        for test_step_finished in self.find_test_steps_finished_by(test_case_started):
            result = test_step_finished.test_step_result
            if most_severe is None or result.status.severity > most_severe.status.severity:
                most_severe = result
        return most_severe

    # ------------------------------------------------------------------
    # Test steps
    # ------------------------------------------------------------------

    def find_test_step_by(self, element: TestStepStarted | TestStepFinished) -> TestStep | None:
        match element:
            case TestStepStarted() | TestStepFinished():
                return self._repository.test_step_by_id.get(element.test_step_id)
            case _:
                raise _unsupported("find_test_step_by", element)

    def find_test_steps_started_by(
        self, element: TestCaseStarted | TestCaseFinished
    ) -> list[TestStepStarted]:
        match element:
            case TestCaseStarted():
                test_case_started_id = element.id
            case TestCaseFinished():
                test_case_started_id = element.test_case_started_id
            case _:
                raise _unsupported("find_test_steps_started_by", element)
        return list(
            self._repository.test_steps_started_by_test_case_started_id.get(test_case_started_id, ())
        )

    def find_test_steps_finished_by(
        self, element: TestCaseStarted | TestCaseFinished
    ) -> list[TestStepFinished]:
        match element:
            case TestCaseStarted():
                test_case_started = element
            case TestCaseFinished():
                test_case_started = self.find_test_case_started_by(element)
                if test_case_started is None:
                    return []
            case _:
                raise _unsupported("find_test_steps_finished_by", element)
        return list(
            self._repository.test_steps_finished_by_test_case_started_id.get(test_case_started.id, ())
        )

    def find_test_step_finished_and_test_step_by(
        self, test_case_started: TestCaseStarted
    ) -> list[tuple[TestStepFinished, TestStep]]:
        """Pair each finished step of an attempt with its TestStep.

        Raises:
            InvariantViolationError: if a finished step references an unknown
                TestStep.
        """
        pairs: list[tuple[TestStepFinished, TestStep]] = []
        for test_step_finished in self.find_test_steps_finished_by(test_case_started):
            test_step = self.find_test_step_by(test_step_finished)
            if test_step is None:
                raise _invariant_violation(
                    "TestStepFinished references an unknown TestStep",
                    test_case_started_id=test_step_finished.test_case_started_id,
                    test_step_id=test_step_finished.test_step_id,
                )
            pairs.append((test_step_finished, test_step))
        return pairs

    def find_attachments_by(
        self, element: TestStepFinished | TestRunHookFinished
    ) -> list[Attachment]:
        match element:
            case TestStepFinished():
                attachments = self._repository.attachments_by_test_case_started_id.get(
                    element.test_case_started_id, ()
                )
                return [
                    attachment
                    for attachment in attachments
                    if attachment.test_step_id == element.test_step_id
                ]
            case TestRunHookFinished():
                return list(
                    self._repository.attachments_by_test_run_hook_started_id.get(
                        element.test_run_hook_started_id, ()
                    )
                )
            case _:
                raise _unsupported("find_attachments_by", element)

    # ------------------------------------------------------------------
    # Hooks
    # ------------------------------------------------------------------

    def find_hook_by(self, element: TestStep | TestRunHookStarted | TestRunHookFinished) -> Hook | None:
        """Resolve the hook behind a test step or test run hook.

        Raises:
            InvariantViolationError: if a TestRunHookFinished references a
                TestRunHookStarted that was never ingested.
        """
        match element:
            case TestStep():
                if not element.hook_id:
                    return None
                return self._repository.hook_by_id.get(element.hook_id)
            case TestRunHookStarted():
                return self._repository.hook_by_id.get(element.hook_id)
            case TestRunHookFinished():
                test_run_hook_started = self.find_test_run_hook_started_by(element)
                if test_run_hook_started is None:
                    raise _invariant_violation(
                        "TestRunHookFinished references an unknown TestRunHookStarted",
                        test_run_hook_started_id=element.test_run_hook_started_id,
                    )
                return self.find_hook_by(test_run_hook_started)
            case _:
                raise _unsupported("find_hook_by", element)

    def find_test_run_hook_started_by(
        self, test_run_hook_finished: TestRunHookFinished
    ) -> TestRunHookStarted | None:
        return self._repository.test_run_hook_started_by_id.get(
            test_run_hook_finished.test_run_hook_started_id
        )

    def find_test_run_hook_finished_by(
        self, test_run_hook_started: TestRunHookStarted
    ) -> TestRunHookFinished | None:
        return self._repository.test_run_hook_finished_by_test_run_hook_started_id.get(
            test_run_hook_started.id
        )

    # ------------------------------------------------------------------
    # Pickles, steps and step definitions
    # ------------------------------------------------------------------

    def find_pickle_by(
        self,
        element: TestCase | TestCaseStarted | TestCaseFinished | TestStepStarted | TestStepFinished,
    ) -> Pickle | None:
        """Resolve the pickle a test case was compiled from.

        Raises:
            InvariantViolationError: if a step or finished event references
                an attempt that was never started.
        """
        match element:
            case TestCase():
                test_case = element
            case TestCaseStarted() | TestCaseFinished() | TestStepStarted() | TestStepFinished():
                test_case = self.find_test_case_by(element)
            case _:
                raise _unsupported("find_pickle_by", element)
        if test_case is None:
            return None
        return self._repository.pickle_by_id.get(test_case.pickle_id)

    def find_pickle_step_by(self, test_step: TestStep) -> PickleStep | None:
        if not test_step.pickle_step_id:
            return None
        return self._repository.pickle_step_by_id.get(test_step.pickle_step_id)

    def find_step_by(self, pickle_step: PickleStep) -> Step | None:
        """The Gherkin step a pickle step was compiled from.

        Raises:
            InvariantViolationError: if the pickle step has no ast node ids.
        """
        if not pickle_step.ast_node_ids:
            raise _invariant_violation(
                "PickleStep has no ast node ids",
                pickle_step_id=pickle_step.id,
            )
        return self._repository.step_by_id.get(pickle_step.ast_node_ids[0])

    def find_step_definitions_by(self, test_step: TestStep) -> list[StepDefinition]:
        step_definition_by_id = self._repository.step_definition_by_id
        return [
            step_definition_by_id[step_definition_id]
            for step_definition_id in test_step.step_definition_ids or ()
            if step_definition_id in step_definition_by_id
        ]

    def find_unambiguous_step_definition_by(self, test_step: TestStep) -> StepDefinition | None:
        """The step definition of a test step matched by exactly one."""
        step_definition_ids = test_step.step_definition_ids
        if not step_definition_ids or len(step_definition_ids) != 1:
            return None
        return self._repository.step_definition_by_id.get(step_definition_ids[0])

    def find_suggestions_by(self, element: PickleStep | Pickle) -> list[Suggestion]:
        match element:
            case PickleStep():
                return list(self._repository.suggestions_by_pickle_step_id.get(element.id, ()))
            case Pickle():
                return [
                    suggestion
                    for pickle_step in element.steps
                    for suggestion in self.find_suggestions_by(pickle_step)
                ]
            case _:
                raise _unsupported("find_suggestions_by", element)

    # ------------------------------------------------------------------
    # Lineage
    # ------------------------------------------------------------------

    def find_lineage_by(self, element: LineageElement) -> Lineage | None:
        """The lineage of a Gherkin document element, pickle or attempt.

        Pickles are resolved through their deepest (last) ast node id;
        attempts through their TestCase and Pickle.
        Features are found by identity first and by value only on a miss.

        Raises:
            InvariantViolationError: if a pickle has no ast node ids, or a
                TestCaseFinished references an attempt that was never started.
        """
        repository = self._repository
        match element:
            case GherkinDocument():
                if element.uri is None:
                    return None
                return repository.lineage_by_uri.get(element.uri)
            case Feature():
                lineage = repository.lineage_by_feature.get(id(element))
                if lineage is not None:
                    return lineage
                # An equal copy of an ingested feature.
                return next(
                    (
                        candidate
                        for candidate in repository.lineage_by_feature.values()
                        if candidate.feature == element
                    ),
                    None,
                )
            case Rule() | Scenario() | Examples() | TableRow():
                return repository.lineage_by_id.get(element.id)
            case Pickle():
                if not element.ast_node_ids:
                    raise _invariant_violation(
                        "Pickle has no ast node ids",
                        pickle_id=element.id,
                        uri=element.uri,
                    )
                return repository.lineage_by_id.get(element.ast_node_ids[-1])
            case TestCaseStarted() | TestCaseFinished():
                pickle = self.find_pickle_by(element)
                if pickle is None:
                    return None
                return self.find_lineage_by(pickle)
            case _:
                raise _unsupported("find_lineage_by", element)

    def find_feature_by(self, element: TestCaseStarted | TestCaseFinished) -> Feature | None:
        lineage = self.find_lineage_by(element)
        if lineage is None:
            return None
        return lineage.feature

    def find_location_of(self, pickle: Pickle) -> Location | None:
        """Where a pickle was generated: its example row, else its scenario."""
        lineage = self.find_lineage_by(pickle)
        if lineage is None:
            return None
        if lineage.example is not None:
            return lineage.example.location
        if lineage.scenario is not None:
            return lineage.scenario.location
        return None

    def find_name_of(
        self,
        element: GherkinDocument | Feature | Rule | Scenario | Examples | TableRow | Pickle,
        naming_strategy: NamingStrategy,
    ) -> str | None:
        """Name an element with ``naming_strategy``.

        A pickle without a lineage is named by its own name; any other
        element without a lineage has no name.
        """
        match element:
            case Pickle():
                lineage = self.find_lineage_by(element)
                if lineage is None:
                    return element.name
                return naming_strategy.reduce(lineage, element)
            case GherkinDocument() | Feature() | Rule() | Scenario() | Examples() | TableRow():
                lineage = self.find_lineage_by(element)
                if lineage is None:
                    return None
                return naming_strategy.reduce(lineage)
            case _:
                raise _unsupported("find_name_of", element)


__all__ = ["Query", "OrderBy", "LineageElement"]
