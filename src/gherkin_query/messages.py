"""
Message value types consumed by the repository.

Every message kind of a Gherkin test run (documents, pickles, test cases,
attempts, step events, hooks, attachments, ...) is an immutable, slotted
dataclass. Sequences are tuples so messages are hashable and can be shared
freely between indices and lineages.

Decoding these values from NDJSON (or any other wire format) happens
elsewhere; this module only defines the decoded shape.

Manifesto:
    - **Immutable:** messages never change after ingestion
    - **Closed union:** :class:`Envelope` wraps exactly one known message kind
    - **Exact time:** timestamps and durations keep nanosecond precision

Architecture:
    ::

        Envelope(message)
          ├── Meta, TestRunStarted, TestRunFinished
          ├── GherkinDocument ── Feature ── FeatureChild ── Rule/Background/Scenario
          │                                    Scenario ── Step, Examples ── TableRow
          ├── Pickle ── PickleStep
          ├── TestCase ── TestStep
          ├── TestCaseStarted / TestCaseFinished
          ├── TestStepStarted / TestStepFinished ── TestStepResult
          ├── TestRunHookStarted / TestRunHookFinished
          └── Hook, StepDefinition, Attachment, Suggestion, UndefinedParameterType

Tags:
    messages, gherkin, value-objects, envelope, gherkin-query

Doc-Types:
    - API Reference
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from enum import Enum

from gherkin_query.core.errors import UnsupportedMessageError

_NANOS_PER_SECOND = 1_000_000_000


def _normalise(value: Duration | Timestamp) -> None:
    """Fold whole seconds out of ``nanos`` so it lies in ``[0, 1e9)``."""
    if 0 <= value.nanos < _NANOS_PER_SECOND:
        return
    carry, nanos = divmod(value.nanos, _NANOS_PER_SECOND)
    object.__setattr__(value, "seconds", value.seconds + carry)
    object.__setattr__(value, "nanos", nanos)


# ---------------------------------------------------------------------------
# Time
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Duration:
    """A signed span of time with nanosecond precision.

    ``nanos`` is always normalised into ``[0, 1e9)``; a negative duration
    carries its sign in ``seconds``.
    """

    seconds: int
    nanos: int = 0

    def __post_init__(self) -> None:
        _normalise(self)

    @classmethod
    def from_nanos(cls, total: int) -> Duration:
        seconds, nanos = divmod(total, _NANOS_PER_SECOND)
        return cls(seconds=seconds, nanos=nanos)

    @property
    def total_nanos(self) -> int:
        return self.seconds * _NANOS_PER_SECOND + self.nanos

    def to_timedelta(self) -> timedelta:
        """Convert to :class:`datetime.timedelta` (truncated to microseconds)."""
        return timedelta(seconds=self.seconds, microseconds=self.nanos // 1000)


@dataclass(frozen=True, slots=True, order=True)
class Timestamp:
    """Seconds and nanoseconds since the Unix epoch.

    Timestamps order lexicographically by ``(seconds, nanos)``. ``nanos`` is
    folded into ``[0, 1e9)`` on construction, so that order is chronological.

    Examples:
        >>> Timestamp(10, 500) - Timestamp(9, 0)
        Duration(seconds=1, nanos=500)
    """

    seconds: int
    nanos: int = 0

    def __post_init__(self) -> None:
        _normalise(self)

    @classmethod
    def from_datetime(cls, value: datetime) -> Timestamp:
        delta = value - datetime(1970, 1, 1, tzinfo=UTC)
        total = (delta.days * 86_400 + delta.seconds) * _NANOS_PER_SECOND
        return cls.from_nanos(total + delta.microseconds * 1000)

    @classmethod
    def from_nanos(cls, total: int) -> Timestamp:
        seconds, nanos = divmod(total, _NANOS_PER_SECOND)
        return cls(seconds=seconds, nanos=nanos)

    @property
    def total_nanos(self) -> int:
        return self.seconds * _NANOS_PER_SECOND + self.nanos

    def to_datetime(self) -> datetime:
        """Convert to an aware UTC datetime (truncated to microseconds)."""
        return datetime.fromtimestamp(self.seconds, tz=UTC) + timedelta(
            microseconds=self.nanos // 1000
        )

    def __sub__(self, other: Timestamp) -> Duration:
        if not isinstance(other, Timestamp):
            return NotImplemented
        return Duration.from_nanos(self.total_nanos - other.total_nanos)


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class TestStepResultStatus(str, Enum):
    """Outcome of a test step.

    Members are declared alphabetically; use :attr:`severity` to compare
    them. The severity order is
    UNKNOWN < PASSED < SKIPPED < PENDING < UNDEFINED < AMBIGUOUS < FAILED.
    """

    __test__ = False

    AMBIGUOUS = "AMBIGUOUS"
    FAILED = "FAILED"
    PASSED = "PASSED"
    PENDING = "PENDING"
    SKIPPED = "SKIPPED"
    UNDEFINED = "UNDEFINED"
    UNKNOWN = "UNKNOWN"

    @property
    def severity(self) -> int:
        return _SEVERITY[self]


_SEVERITY = {
    status: ordinal
    for ordinal, status in enumerate(
        (
            TestStepResultStatus.UNKNOWN,
            TestStepResultStatus.PASSED,
            TestStepResultStatus.SKIPPED,
            TestStepResultStatus.PENDING,
            TestStepResultStatus.UNDEFINED,
            TestStepResultStatus.AMBIGUOUS,
            TestStepResultStatus.FAILED,
        )
    )
}


class StepKeywordType(str, Enum):
    UNKNOWN = "Unknown"
    CONTEXT = "Context"
    ACTION = "Action"
    OUTCOME = "Outcome"
    CONJUNCTION = "Conjunction"


class PickleStepType(str, Enum):
    UNKNOWN = "Unknown"
    CONTEXT = "Context"
    ACTION = "Action"
    OUTCOME = "Outcome"


class HookType(str, Enum):
    BEFORE_TEST_RUN = "BEFORE_TEST_RUN"
    AFTER_TEST_RUN = "AFTER_TEST_RUN"
    BEFORE_TEST_CASE = "BEFORE_TEST_CASE"
    AFTER_TEST_CASE = "AFTER_TEST_CASE"
    BEFORE_TEST_STEP = "BEFORE_TEST_STEP"
    AFTER_TEST_STEP = "AFTER_TEST_STEP"


class AttachmentContentEncoding(str, Enum):
    IDENTITY = "IDENTITY"
    BASE64 = "BASE64"


class StepDefinitionPatternType(str, Enum):
    CUCUMBER_EXPRESSION = "CUCUMBER_EXPRESSION"
    REGULAR_EXPRESSION = "REGULAR_EXPRESSION"


# ---------------------------------------------------------------------------
# Shared structures
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Location:
    line: int
    column: int | None = None


@dataclass(frozen=True, slots=True)
class SourceReference:
    uri: str | None = None
    location: Location | None = None


@dataclass(frozen=True, slots=True)
class Product:
    name: str
    version: str | None = None


# ---------------------------------------------------------------------------
# Gherkin AST
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Comment:
    location: Location
    text: str


@dataclass(frozen=True, slots=True)
class Tag:
    location: Location
    name: str
    id: str


@dataclass(frozen=True, slots=True)
class Step:
    id: str
    location: Location
    keyword: str
    text: str
    keyword_type: StepKeywordType | None = None


@dataclass(frozen=True, slots=True)
class TableCell:
    location: Location
    value: str


@dataclass(frozen=True, slots=True)
class TableRow:
    id: str
    location: Location
    cells: tuple[TableCell, ...] = ()


@dataclass(frozen=True, slots=True)
class Examples:
    id: str
    location: Location
    keyword: str = "Examples"
    name: str = ""
    description: str = ""
    tags: tuple[Tag, ...] = ()
    table_header: TableRow | None = None
    table_body: tuple[TableRow, ...] = ()


@dataclass(frozen=True, slots=True)
class Scenario:
    id: str
    location: Location
    keyword: str = "Scenario"
    name: str = ""
    description: str = ""
    tags: tuple[Tag, ...] = ()
    steps: tuple[Step, ...] = ()
    examples: tuple[Examples, ...] = ()


@dataclass(frozen=True, slots=True)
class Background:
    id: str
    location: Location
    keyword: str = "Background"
    name: str = ""
    description: str = ""
    steps: tuple[Step, ...] = ()


@dataclass(frozen=True, slots=True)
class RuleChild:
    """Exactly one of ``background`` or ``scenario`` is set."""

    background: Background | None = None
    scenario: Scenario | None = None


@dataclass(frozen=True, slots=True)
class Rule:
    id: str
    location: Location
    keyword: str = "Rule"
    name: str = ""
    description: str = ""
    tags: tuple[Tag, ...] = ()
    children: tuple[RuleChild, ...] = ()


@dataclass(frozen=True, slots=True)
class FeatureChild:
    """Exactly one of ``background``, ``scenario`` or ``rule`` is set."""

    background: Background | None = None
    scenario: Scenario | None = None
    rule: Rule | None = None


@dataclass(frozen=True, slots=True)
class Feature:
    location: Location
    language: str = "en"
    keyword: str = "Feature"
    name: str = ""
    description: str = ""
    tags: tuple[Tag, ...] = ()
    children: tuple[FeatureChild, ...] = ()


@dataclass(frozen=True, slots=True)
class GherkinDocument:
    uri: str | None = None
    feature: Feature | None = None
    comments: tuple[Comment, ...] = ()


# ---------------------------------------------------------------------------
# Pickles
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class PickleTag:
    name: str
    ast_node_id: str


@dataclass(frozen=True, slots=True)
class PickleStep:
    id: str
    ast_node_ids: tuple[str, ...]
    text: str
    type: PickleStepType | None = None


@dataclass(frozen=True, slots=True)
class Pickle:
    """A compiled scenario (or one outline row) ready for execution.

    ``ast_node_ids`` runs root to leaf; its last element is the Scenario or
    TableRow the pickle was generated from.
    """

    id: str
    uri: str
    name: str
    ast_node_ids: tuple[str, ...]
    language: str = "en"
    steps: tuple[PickleStep, ...] = ()
    tags: tuple[PickleTag, ...] = ()
    location: Location | None = None


# ---------------------------------------------------------------------------
# Glue
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class StepDefinitionPattern:
    source: str
    type: StepDefinitionPatternType = StepDefinitionPatternType.CUCUMBER_EXPRESSION


@dataclass(frozen=True, slots=True)
class StepDefinition:
    id: str
    pattern: StepDefinitionPattern
    source_reference: SourceReference = SourceReference()


@dataclass(frozen=True, slots=True)
class Hook:
    id: str
    source_reference: SourceReference = SourceReference()
    name: str | None = None
    tag_expression: str | None = None
    type: HookType | None = None


@dataclass(frozen=True, slots=True)
class Snippet:
    language: str
    code: str


@dataclass(frozen=True, slots=True)
class Suggestion:
    id: str
    pickle_step_id: str
    snippets: tuple[Snippet, ...] = ()


@dataclass(frozen=True, slots=True)
class UndefinedParameterType:
    expression: str
    name: str


# ---------------------------------------------------------------------------
# Execution
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Meta:
    protocol_version: str
    implementation: Product
    runtime: Product
    os: Product
    cpu: Product


@dataclass(frozen=True, slots=True)
class TestRunStarted:
    __test__ = False

    timestamp: Timestamp
    id: str | None = None


@dataclass(frozen=True, slots=True)
class TestRunFinished:
    __test__ = False

    success: bool
    timestamp: Timestamp
    message: str | None = None
    test_run_started_id: str | None = None


@dataclass(frozen=True, slots=True)
class TestStep:
    """A step of a test case; references either a pickle step or a hook."""

    __test__ = False

    id: str
    pickle_step_id: str | None = None
    hook_id: str | None = None
    step_definition_ids: tuple[str, ...] | None = None


@dataclass(frozen=True, slots=True)
class TestCase:
    __test__ = False

    id: str
    pickle_id: str
    test_steps: tuple[TestStep, ...] = ()
    test_run_started_id: str | None = None


@dataclass(frozen=True, slots=True)
class TestCaseStarted:
    """One execution attempt of a test case."""

    __test__ = False

    id: str
    test_case_id: str
    timestamp: Timestamp
    attempt: int = 0
    worker_id: str | None = None


@dataclass(frozen=True, slots=True)
class TestCaseFinished:
    __test__ = False

    test_case_started_id: str
    timestamp: Timestamp
    will_be_retried: bool = False


@dataclass(frozen=True, slots=True)
class TestStepResult:
    __test__ = False

    status: TestStepResultStatus
    duration: Duration = Duration(0)
    message: str | None = None


@dataclass(frozen=True, slots=True)
class TestStepStarted:
    __test__ = False

    test_case_started_id: str
    test_step_id: str
    timestamp: Timestamp


@dataclass(frozen=True, slots=True)
class TestStepFinished:
    __test__ = False

    test_case_started_id: str
    test_step_id: str
    test_step_result: TestStepResult
    timestamp: Timestamp


@dataclass(frozen=True, slots=True)
class TestRunHookStarted:
    __test__ = False

    id: str
    hook_id: str
    timestamp: Timestamp
    test_run_started_id: str | None = None


@dataclass(frozen=True, slots=True)
class TestRunHookFinished:
    __test__ = False

    test_run_hook_started_id: str
    result: TestStepResult
    timestamp: Timestamp


@dataclass(frozen=True, slots=True)
class Attachment:
    body: str
    media_type: str
    content_encoding: AttachmentContentEncoding = AttachmentContentEncoding.IDENTITY
    file_name: str | None = None
    test_case_started_id: str | None = None
    test_step_id: str | None = None
    test_run_hook_started_id: str | None = None
    url: str | None = None


# ---------------------------------------------------------------------------
# Envelope
# ---------------------------------------------------------------------------

type Message = (
    Meta
    | GherkinDocument
    | Pickle
    | Hook
    | StepDefinition
    | TestRunStarted
    | TestRunHookStarted
    | TestRunHookFinished
    | TestCase
    | TestCaseStarted
    | TestStepStarted
    | Attachment
    | TestStepFinished
    | TestCaseFinished
    | TestRunFinished
    | Suggestion
    | UndefinedParameterType
)

ENVELOPE_KINDS: dict[type, str] = {
    Meta: "meta",
    GherkinDocument: "gherkin_document",
    Pickle: "pickle",
    Hook: "hook",
    StepDefinition: "step_definition",
    TestRunStarted: "test_run_started",
    TestRunHookStarted: "test_run_hook_started",
    TestRunHookFinished: "test_run_hook_finished",
    TestCase: "test_case",
    TestCaseStarted: "test_case_started",
    TestStepStarted: "test_step_started",
    Attachment: "attachment",
    TestStepFinished: "test_step_finished",
    TestCaseFinished: "test_case_finished",
    TestRunFinished: "test_run_finished",
    Suggestion: "suggestion",
    UndefinedParameterType: "undefined_parameter_type",
}


@dataclass(frozen=True, slots=True)
class Envelope:
    """One message of the ingested stream.

    Examples:
        >>> envelope = Envelope.of(TestRunStarted(timestamp=Timestamp(0)))
        >>> envelope.kind
        'test_run_started'
    """

    message: Message

    def __post_init__(self) -> None:
        if type(self.message) not in ENVELOPE_KINDS:
            raise UnsupportedMessageError(
                f"Envelope can not carry {type(self.message).__name__}"
            )

    @classmethod
    def of(cls, message: Message) -> Envelope:
        return cls(message=message)

    @property
    def kind(self) -> str:
        return ENVELOPE_KINDS[type(self.message)]


__all__ = [
    "Attachment",
    "AttachmentContentEncoding",
    "Background",
    "Comment",
    "Duration",
    "ENVELOPE_KINDS",
    "Envelope",
    "Examples",
    "Feature",
    "FeatureChild",
    "GherkinDocument",
    "Hook",
    "HookType",
    "Location",
    "Message",
    "Meta",
    "Pickle",
    "PickleStep",
    "PickleStepType",
    "PickleTag",
    "Product",
    "Rule",
    "RuleChild",
    "Scenario",
    "Snippet",
    "SourceReference",
    "Step",
    "StepDefinition",
    "StepDefinitionPattern",
    "StepDefinitionPatternType",
    "StepKeywordType",
    "Suggestion",
    "TableCell",
    "TableRow",
    "Tag",
    "TestCase",
    "TestCaseFinished",
    "TestCaseStarted",
    "TestRunFinished",
    "TestRunHookFinished",
    "TestRunHookStarted",
    "TestRunStarted",
    "TestStep",
    "TestStepFinished",
    "TestStepResult",
    "TestStepResultStatus",
    "TestStepStarted",
    "Timestamp",
    "UndefinedParameterType",
]
