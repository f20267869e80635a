"""
Ancestor lineages of Gherkin document elements.

A :class:`Lineage` is an immutable snapshot of every ancestor of one element
of a Gherkin document: the document, its feature, the enclosing rule, the
most recent backgrounds, the scenario, the examples block and the example
row. Lineages are built once per document by :func:`build_lineages` and
looked up by element id afterwards.

Messages do not carry parent references, so questions such as "which feature
does this pickle belong to?" or "what is the display name of this example
row?" are answered from the lineage instead of from a tree of nodes.

Manifesto:
    - **Copy and extend:** each child lineage is its parent with one more
      field set, so siblings share their Document/Feature references
    - **Built once:** lineages never change after the document is ingested
    - **Index positions:** examples and rows carry their 0-based position

Architecture:
    ::

        GherkinDocument            -> Lineage(document)                  [uri]
          Feature                  -> + feature                          [.feature]
            Background             -> + background          (context only)
            Rule                   -> + rule                             [rule.id]
              Background           -> + rule_background     (context only)
              Scenario             -> + scenario                         [scenario.id]
                Examples[i]        -> + examples, examples_index=i       [examples.id]
                  TableRow[j]      -> + example, example_index=j         [row.id]

Tags:
    lineage, gherkin, ast, ancestors, gherkin-query

Doc-Types:
    - API Reference
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace

from gherkin_query.core.errors import InvariantViolationError
from gherkin_query.messages import (
    Background,
    Examples,
    Feature,
    GherkinDocument,
    Rule,
    Scenario,
    TableRow,
)


@dataclass(frozen=True, slots=True)
class Lineage:
    """All ancestors of a Gherkin document element or pickle.

    Attributes:
        document: The document the element belongs to.
        feature: The feature, unless the lineage is the document's own.
        rule: The enclosing rule, if any.
        background: The feature background preceding the element, if any.
        rule_background: The rule background preceding the element, if any.
        scenario: The scenario (outline), if any.
        examples: The examples block, if any.
        examples_index: 0-based position of ``examples`` in its scenario.
        example: The example row, if any.
        example_index: 0-based position of ``example`` in its examples table.
    """

    document: GherkinDocument
    feature: Feature | None = None
    rule: Rule | None = None
    background: Background | None = None
    rule_background: Background | None = None
    scenario: Scenario | None = None
    examples: Examples | None = None
    examples_index: int | None = None
    example: TableRow | None = None
    example_index: int | None = None

    def with_feature(self, feature: Feature) -> Lineage:
        return Lineage(document=self.document, feature=feature)

    def with_background(self, background: Background) -> Lineage:
        return replace(self, background=background)

    def with_rule(self, rule: Rule) -> Lineage:
        return replace(self, rule=rule, rule_background=None)

    def with_rule_background(self, background: Background) -> Lineage:
        return replace(self, rule_background=background)

    def with_scenario(self, scenario: Scenario) -> Lineage:
        return replace(self, scenario=scenario)

    def with_examples(self, examples: Examples, index: int) -> Lineage:
        return replace(self, examples=examples, examples_index=index)

    def with_example(self, example: TableRow, index: int) -> Lineage:
        return replace(self, example=example, example_index=index)


@dataclass(slots=True)
class DocumentLineages:
    """The lineages of one document, split by how they are looked up."""

    by_uri: dict[str, Lineage] = field(default_factory=dict)
    feature: Lineage | None = None
    by_id: dict[str, Lineage] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.by_uri) + int(self.feature is not None) + len(self.by_id)


def build_lineages(document: GherkinDocument) -> DocumentLineages:
    """Walk *document* once, in document order, and collect every lineage.

    Rules, scenarios, examples and example rows are keyed by their id. The
    document itself is keyed by its uri. A document has at most one feature,
    so its lineage is kept on its own.

    Raises:
        InvariantViolationError: if the document has no uri.
    """
    if document.uri is None:
        raise InvariantViolationError("GherkinDocument.uri must not be None")

    lineages = DocumentLineages()
    root = Lineage(document=document)
    lineages.by_uri[document.uri] = root
    if document.feature is not None:
        _visit_feature(document.feature, root, lineages)
    return lineages


def _visit_feature(feature: Feature, parent: Lineage, lineages: DocumentLineages) -> None:
    context = parent.with_feature(feature)
    lineages.feature = context
    for child in feature.children:
        if child.background is not None:
            context = context.with_background(child.background)
        if child.scenario is not None:
            _visit_scenario(child.scenario, context, lineages)
        if child.rule is not None:
            _visit_rule(child.rule, context, lineages)


def _visit_rule(rule: Rule, parent: Lineage, lineages: DocumentLineages) -> None:
    context = parent.with_rule(rule)
    lineages.by_id[rule.id] = context
    for child in rule.children:
        if child.background is not None:
            context = context.with_rule_background(child.background)
        if child.scenario is not None:
            _visit_scenario(child.scenario, context, lineages)


def _visit_scenario(scenario: Scenario, parent: Lineage, lineages: DocumentLineages) -> None:
    context = parent.with_scenario(scenario)
    lineages.by_id[scenario.id] = context
    for examples_index, examples in enumerate(scenario.examples):
        examples_context = context.with_examples(examples, examples_index)
        lineages.by_id[examples.id] = examples_context
        for example_index, example in enumerate(examples.table_body):
            lineages.by_id[example.id] = examples_context.with_example(example, example_index)


__all__ = ["Lineage", "DocumentLineages", "build_lineages"]
