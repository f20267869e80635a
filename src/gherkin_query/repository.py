"""
In-memory, write-only store of test-run messages.

The repository is effectively a small in-memory database. It is updated one
envelope at a time through :meth:`Repository.update` and read through
:class:`~gherkin_query.query.Query`.

Manifesto:
    - **One mutator:** ``update`` is the only way in; indices are never
      reordered or pruned
    - **No validation:** dangling references are stored as-is and surface as
      "not found" when queried
    - **Opt-in memory:** documents, hooks, step definitions, suggestions,
      attachments and undefined parameter types are only kept when their
      feature is enabled

Architecture:
    ::

        Envelope ──► Repository.update ──match kind──► index
                                                       │
            id -> entity (overwrite)                   │   parent id -> [entity] (append)
            ──────────────────────                     │   ───────────────────────────
            test_case_started_by_id                    │   test_steps_started_by_test_case_started_id
            test_case_finished_by_test_case_started_id │   test_steps_finished_by_test_case_started_id
            pickle_by_id, pickle_step_by_id            │   attachments_by_test_case_started_id
            test_case_by_id, test_step_by_id           │   attachments_by_test_run_hook_started_id
            step_by_id, hook_by_id                     │   suggestions_by_pickle_step_id
            step_definition_by_id                      │   undefined_parameter_types
            test_run_hook_started_by_id                │
            lineage_by_id / _by_uri / _by_feature      │

Concurrency:
    ``update`` must be serialized by the caller. Queries running while
    envelopes are still being ingested see a partial snapshot.

Examples:
    >>> repository = (
    ...     Repository.builder()
    ...     .feature(RepositoryFeature.INCLUDE_GHERKIN_DOCUMENTS, True)
    ...     .build()
    ... )
    >>> for envelope in envelopes:
    ...     repository.update(envelope)

Tags:
    repository, index, in-memory, read-model, gherkin-query

Doc-Types:
    - API Reference
"""

from __future__ import annotations

from collections import defaultdict
from enum import Enum
from typing import TYPE_CHECKING

from gherkin_query.core.errors import ConfigError, UnsupportedMessageError
from gherkin_query.core.logging import get_logger
from gherkin_query.lineage import Lineage, build_lineages
from gherkin_query.messages import (
    Attachment,
    Envelope,
    Feature,
    GherkinDocument,
    Hook,
    Meta,
    Pickle,
    PickleStep,
    Step,
    StepDefinition,
    Suggestion,
    TestCase,
    TestCaseFinished,
    TestCaseStarted,
    TestRunFinished,
    TestRunHookFinished,
    TestRunHookStarted,
    TestRunStarted,
    TestStep,
    TestStepFinished,
    TestStepStarted,
    UndefinedParameterType,
)

if TYPE_CHECKING:
    from gherkin_query.core.settings import QuerySettings

logger = get_logger(__name__)


class RepositoryFeature(str, Enum):
    """Optional indices. Disable any of them to reduce memory usage."""

    INCLUDE_ATTACHMENTS = "INCLUDE_ATTACHMENTS"
    INCLUDE_GHERKIN_DOCUMENTS = "INCLUDE_GHERKIN_DOCUMENTS"
    INCLUDE_HOOKS = "INCLUDE_HOOKS"
    INCLUDE_STEP_DEFINITIONS = "INCLUDE_STEP_DEFINITIONS"
    INCLUDE_SUGGESTIONS = "INCLUDE_SUGGESTIONS"
    INCLUDE_UNDEFINED_PARAMETER_TYPES = "INCLUDE_UNDEFINED_PARAMETER_TYPES"


_FEATURE_BY_SETTING = {
    "include_attachments": RepositoryFeature.INCLUDE_ATTACHMENTS,
    "include_gherkin_documents": RepositoryFeature.INCLUDE_GHERKIN_DOCUMENTS,
    "include_hooks": RepositoryFeature.INCLUDE_HOOKS,
    "include_step_definitions": RepositoryFeature.INCLUDE_STEP_DEFINITIONS,
    "include_suggestions": RepositoryFeature.INCLUDE_SUGGESTIONS,
    "include_undefined_parameter_types": RepositoryFeature.INCLUDE_UNDEFINED_PARAMETER_TYPES,
}


class RepositoryBuilder:
    """Toggles features, then builds a :class:`Repository`."""

    def __init__(self) -> None:
        self._features: set[RepositoryFeature] = set()

    def feature(self, feature: RepositoryFeature, enabled: bool = True) -> RepositoryBuilder:
        try:
            feature = RepositoryFeature(feature)
        except ValueError as exc:
            raise ConfigError(f"Unknown repository feature: {feature!r}", cause=exc) from exc
        if enabled:
            self._features.add(feature)
        else:
            self._features.discard(feature)
        return self

    def build(self) -> Repository:
        return Repository(frozenset(self._features))


class Repository:
    """Indices over every message of one test run.

    Build with :meth:`builder` or :meth:`from_settings`. The index
    attributes are read by :class:`~gherkin_query.query.Query`; nothing but
    :meth:`update` writes them.
    """

    def __init__(self, features: frozenset[RepositoryFeature] = frozenset()) -> None:
        self._features = frozenset(features)

        self.test_case_started_by_id: dict[str, TestCaseStarted] = {}
        self.test_case_finished_by_test_case_started_id: dict[str, TestCaseFinished] = {}
        self.test_steps_started_by_test_case_started_id: defaultdict[str, list[TestStepStarted]] = defaultdict(list)
        self.test_steps_finished_by_test_case_started_id: defaultdict[str, list[TestStepFinished]] = defaultdict(list)
        self.test_run_hook_started_by_id: dict[str, TestRunHookStarted] = {}
        self.test_run_hook_finished_by_test_run_hook_started_id: dict[str, TestRunHookFinished] = {}
        self.pickle_by_id: dict[str, Pickle] = {}
        self.pickle_step_by_id: dict[str, PickleStep] = {}
        self.test_case_by_id: dict[str, TestCase] = {}
        self.test_step_by_id: dict[str, TestStep] = {}
        self.step_by_id: dict[str, Step] = {}
        self.hook_by_id: dict[str, Hook] = {}
        self.step_definition_by_id: dict[str, StepDefinition] = {}
        self.attachments_by_test_case_started_id: defaultdict[str, list[Attachment]] = defaultdict(list)
        self.attachments_by_test_run_hook_started_id: defaultdict[str, list[Attachment]] = defaultdict(list)
        self.suggestions_by_pickle_step_id: defaultdict[str, list[Suggestion]] = defaultdict(list)
        self.undefined_parameter_types: list[UndefinedParameterType] = []
        self.lineage_by_id: dict[str, Lineage] = {}
        self.lineage_by_uri: dict[str, Lineage] = {}
        # Keyed by id(feature); each lineage holds its feature, so the id stays valid.
        self.lineage_by_feature: dict[int, Lineage] = {}

        self.meta: Meta | None = None
        self.test_run_started: TestRunStarted | None = None
        self.test_run_finished: TestRunFinished | None = None

    @staticmethod
    def builder() -> RepositoryBuilder:
        return RepositoryBuilder()

    @classmethod
    def from_settings(cls, settings: QuerySettings) -> Repository:
        """Build a repository whose features follow the ``include_*`` settings."""
        builder = cls.builder()
        for name, feature in _FEATURE_BY_SETTING.items():
            builder.feature(feature, getattr(settings, name))
        return builder.build()

    @property
    def features(self) -> frozenset[RepositoryFeature]:
        return self._features

    def is_enabled(self, feature: RepositoryFeature) -> bool:
        return feature in self._features

    def update(self, envelope: Envelope) -> None:
        """Index the message carried by *envelope*.

        Raises:
            UnsupportedMessageError: if *envelope* is not an :class:`Envelope`
                or carries an unknown message kind.
        """
        if not isinstance(envelope, Envelope):
            raise UnsupportedMessageError(
                f"Expected an Envelope, got {type(envelope).__name__}"
            )

        match envelope.message:
            case Meta() as meta:
                self.meta = meta
            case GherkinDocument() as document:
                if self._gated(RepositoryFeature.INCLUDE_GHERKIN_DOCUMENTS, envelope):
                    self._update_gherkin_document(document)
            case Pickle() as pickle:
                self._update_pickle(pickle)
            case Hook() as hook:
                if self._gated(RepositoryFeature.INCLUDE_HOOKS, envelope):
                    self.hook_by_id[hook.id] = hook
            case StepDefinition() as step_definition:
                if self._gated(RepositoryFeature.INCLUDE_STEP_DEFINITIONS, envelope):
                    self.step_definition_by_id[step_definition.id] = step_definition
            case TestRunStarted() as test_run_started:
                self.test_run_started = test_run_started
            case TestRunHookStarted() as test_run_hook_started:
                self.test_run_hook_started_by_id[test_run_hook_started.id] = test_run_hook_started
            case TestRunHookFinished() as test_run_hook_finished:
                self.test_run_hook_finished_by_test_run_hook_started_id[
                    test_run_hook_finished.test_run_hook_started_id
                ] = test_run_hook_finished
            case TestCase() as test_case:
                self._update_test_case(test_case)
            case TestCaseStarted() as test_case_started:
                self.test_case_started_by_id[test_case_started.id] = test_case_started
            case TestStepStarted() as test_step_started:
                self.test_steps_started_by_test_case_started_id[
                    test_step_started.test_case_started_id
                ].append(test_step_started)
            case Attachment() as attachment:
                if self._gated(RepositoryFeature.INCLUDE_ATTACHMENTS, envelope):
                    self._update_attachment(attachment)
            case TestStepFinished() as test_step_finished:
                self.test_steps_finished_by_test_case_started_id[
                    test_step_finished.test_case_started_id
                ].append(test_step_finished)
            case TestCaseFinished() as test_case_finished:
                self.test_case_finished_by_test_case_started_id[
                    test_case_finished.test_case_started_id
                ] = test_case_finished
            case TestRunFinished() as test_run_finished:
                self.test_run_finished = test_run_finished
            case Suggestion() as suggestion:
                if self._gated(RepositoryFeature.INCLUDE_SUGGESTIONS, envelope):
                    self.suggestions_by_pickle_step_id[suggestion.pickle_step_id].append(suggestion)
            case UndefinedParameterType() as undefined_parameter_type:
                if self._gated(RepositoryFeature.INCLUDE_UNDEFINED_PARAMETER_TYPES, envelope):
                    self.undefined_parameter_types.append(undefined_parameter_type)
            case unknown:
                raise UnsupportedMessageError(
                    f"Envelope carries an unsupported message: {type(unknown).__name__}"
                )

    def _gated(self, feature: RepositoryFeature, envelope: Envelope) -> bool:
        if feature in self._features:
            return True
        logger.debug("message_skipped", kind=envelope.kind, feature=feature.value)
        return False

    def _update_gherkin_document(self, document: GherkinDocument) -> None:
        lineages = build_lineages(document)
        replaced = self.lineage_by_uri.get(document.uri)
        if replaced is not None and replaced.feature is not None:
            self.lineage_by_feature.pop(id(replaced.feature), None)
        self.lineage_by_uri.update(lineages.by_uri)
        if document.feature is not None and lineages.feature is not None:
            self.lineage_by_feature[id(document.feature)] = lineages.feature
        self.lineage_by_id.update(lineages.by_id)
        if document.feature is not None:
            self._update_feature(document.feature)
        logger.debug(
            "gherkin_document_indexed",
            uri=document.uri,
            lineages=len(lineages),
        )

    def _update_feature(self, feature: Feature) -> None:
        for feature_child in feature.children:
            if feature_child.background is not None:
                self._update_steps(feature_child.background.steps)
            if feature_child.scenario is not None:
                self._update_steps(feature_child.scenario.steps)
            if feature_child.rule is not None:
                for rule_child in feature_child.rule.children:
                    if rule_child.background is not None:
                        self._update_steps(rule_child.background.steps)
                    if rule_child.scenario is not None:
                        self._update_steps(rule_child.scenario.steps)

    def _update_steps(self, steps: tuple[Step, ...]) -> None:
        for step in steps:
            self.step_by_id[step.id] = step

    def _update_pickle(self, pickle: Pickle) -> None:
        self.pickle_by_id[pickle.id] = pickle
        for pickle_step in pickle.steps:
            self.pickle_step_by_id[pickle_step.id] = pickle_step

    def _update_test_case(self, test_case: TestCase) -> None:
        self.test_case_by_id[test_case.id] = test_case
        for test_step in test_case.test_steps:
            self.test_step_by_id[test_step.id] = test_step

    def _update_attachment(self, attachment: Attachment) -> None:
        if attachment.test_case_started_id is not None:
            self.attachments_by_test_case_started_id[attachment.test_case_started_id].append(attachment)
        if attachment.test_run_hook_started_id is not None:
            self.attachments_by_test_run_hook_started_id[attachment.test_run_hook_started_id].append(
                attachment
            )


__all__ = ["Repository", "RepositoryBuilder", "RepositoryFeature"]
