"""
shapelint.validators.rules — SPARQL-based rule constraints (sh:sparql).

Every ``$this`` in a rule's SELECT query is replaced by the focus node, the
bound query is handed to a QueryExecutor, and each returned row becomes one
result. Query failures are raised as QueryError, never reported as "no
violation": the engine turns them into engine errors for the unit.
"""

from __future__ import annotations

import logging
import re
from typing import Optional

from rdflib import URIRef
from rdflib.namespace import SH

from shapelint.graph import term_to_sparql
from shapelint.model import RuleConstraint, Term, ValidationResult
from shapelint.query import QueryExecutor, RDFLibQueryExecutor

logger = logging.getLogger(__name__)

DEFAULT_MESSAGE = "Rule constraint violated"
RULE_CONSTRAINT_COMPONENT = SH.SPARQLConstraintComponent

_THIS = re.compile(r"\$this\b")
_SELECT_THIS = re.compile(
    r"(SELECT\s+(?:DISTINCT\s+|REDUCED\s+)?)\$this\b", re.IGNORECASE
)
_GROUP_OPEN = re.compile(r"(?:WHERE\s*)?\{", re.IGNORECASE)


def validate(
    graph,
    focus_node: Term,
    constraints,
    executor: Optional[QueryExecutor] = None,
) -> list[ValidationResult]:
    if not constraints:
        return []
    if executor is None:
        executor = RDFLibQueryExecutor()

    results = []
    for constraint in constraints:
        results.extend(_validate_constraint(graph, focus_node, constraint, executor))
    return results


def _validate_constraint(
    graph,
    focus_node: Term,
    constraint: RuleConstraint,
    executor: QueryExecutor,
) -> list[ValidationResult]:
    query = bind_query(constraint, focus_node)
    logger.debug("Rule query for %s:\n%s", focus_node, query)

    rows = executor.execute(graph, query)

    return [
        ValidationResult(
            focus_node=focus_node,
            path=None,
            source_shape=constraint.source_shape_id,
            severity=constraint.severity,
            message=constraint.message if constraint.message is not None else DEFAULT_MESSAGE,
            details=dict(row),
        )
        for row in rows
    ]


def bind_query(constraint: RuleConstraint, focus_node: Term) -> str:
    """Substitute the focus node for every ``$this`` in the rule's query.

    SPARQL does not allow a constant in the projection, so every
    ``SELECT $this`` (outer query and subqueries alike) becomes
    ``SELECT ?this`` and ``?this`` is bound to the focus IRI at the start of
    that SELECT's WHERE group.
    """
    query = constraint.query_template
    focus = term_to_sparql(focus_node)

    if isinstance(focus_node, URIRef):
        # Last match first, so earlier offsets stay valid.
        for select in reversed(list(_SELECT_THIS.finditer(query))):
            query = query[: select.start()] + select.group(1) + "?this" + query[select.end():]
            group = _GROUP_OPEN.search(query, select.start())
            if group is not None:
                query = (
                    query[: group.end()]
                    + f" BIND({focus} AS ?this) ."
                    + query[group.end():]
                )

    query = _THIS.sub(lambda _: focus, query)

    if constraint.prefixes:
        declarations = "".join(
            f"PREFIX {prefix}: <{namespace}>\n"
            for prefix, namespace in constraint.prefixes.items()
        )
        query = declarations + query

    return query
