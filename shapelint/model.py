"""
shapelint.model — Shapes, constraints and validation results.

Shapes are built once (by shacl_reader or by hand) before a run starts and
are never mutated afterwards. Results and reports are produced by the engine
and handed to whatever formats or serializes them.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Optional, Union

from rdflib import BNode, Literal, URIRef
from rdflib.term import Identifier


Term = Union[URIRef, BNode, Literal]
ShapeId = Union[URIRef, BNode, str]
Number = Union[int, float, Decimal]


# ─── Severity ────────────────────────────────────────────────────────


class Severity(str, Enum):
    VIOLATION = "violation"
    WARNING = "warning"
    INFO = "info"
    ENGINE_ERROR = "engine_error"


# ─── Shapes ──────────────────────────────────────────────────────────


@dataclass(frozen=True)
class PropertyShape:
    """Constraints on the values reachable from a focus node via ``path``.

    Every optional field left as None (or ``in_list`` left empty) means that
    constraint kind is not checked at all.
    """

    id: ShapeId
    path: URIRef
    min_count: Optional[int] = None
    max_count: Optional[int] = None
    datatype: Optional[URIRef] = None
    class_: Optional[URIRef] = None
    pattern: Optional[re.Pattern] = None
    min_length: Optional[int] = None
    in_list: tuple = ()
    has_value: Optional[Term] = None
    max_inclusive: Optional[Number] = None
    qualified_class: Optional[URIRef] = None
    qualified_min_count: Optional[int] = None
    message: Optional[str] = None
    severity: Severity = Severity.VIOLATION

    def __post_init__(self):
        object.__setattr__(self, "in_list", tuple(self.in_list))
        for name in ("min_count", "max_count", "min_length", "qualified_min_count"):
            value = getattr(self, name)
            if value is not None and value < 0:
                raise ValueError(f"{name} must be non-negative, got {value}")


@dataclass(frozen=True)
class RuleConstraint:
    """A SPARQL SELECT rule evaluated once per focus node.

    ``query_template`` holds one or more ``$this`` placeholders. Every row the
    bound query returns is one violation.
    """

    source_shape_id: ShapeId
    query_template: str
    message: Optional[str] = None
    prefixes: dict[str, str] = field(default_factory=dict)
    severity: Severity = Severity.VIOLATION


@dataclass(frozen=True)
class NodeShape:
    id: ShapeId
    target_classes: tuple = ()
    property_shapes: tuple = ()
    rule_constraints: tuple = ()

    def __post_init__(self):
        object.__setattr__(self, "target_classes", tuple(self.target_classes))
        object.__setattr__(self, "property_shapes", tuple(self.property_shapes))
        object.__setattr__(self, "rule_constraints", tuple(self.rule_constraints))


# ─── Report types ────────────────────────────────────────────────────


@dataclass(frozen=True)
class ValidationResult:
    focus_node: Optional[Term]
    path: Optional[URIRef]
    source_shape: ShapeId
    severity: Severity
    message: str
    details: dict[str, Any] = field(default_factory=dict, hash=False)

    def to_dict(self) -> dict:
        return {
            "focus_node": _render(self.focus_node),
            "path": _render(self.path),
            "source_shape": _render(self.source_shape),
            "severity": self.severity.value,
            "message": self.message,
            "details": {k: _render(v) for k, v in self.details.items()},
        }


@dataclass
class ValidationReport:
    results: list[ValidationResult] = field(default_factory=list)

    @property
    def conforms(self) -> bool:
        return not any(r.severity == Severity.VIOLATION for r in self.results)

    @property
    def complete(self) -> bool:
        """True when every unit was fully evaluated (no engine errors)."""
        return not self.engine_errors()

    @property
    def inconclusive(self) -> bool:
        """No violations were found, but some units could not be evaluated."""
        return self.conforms and not self.complete

    def violations(self) -> list[ValidationResult]:
        return self._by_severity(Severity.VIOLATION)

    def warnings(self) -> list[ValidationResult]:
        return self._by_severity(Severity.WARNING)

    def infos(self) -> list[ValidationResult]:
        return self._by_severity(Severity.INFO)

    def engine_errors(self) -> list[ValidationResult]:
        return self._by_severity(Severity.ENGINE_ERROR)

    def _by_severity(self, severity: Severity) -> list[ValidationResult]:
        return [r for r in self.results if r.severity == severity]

    @property
    def summary(self) -> dict:
        return {
            "violations": len(self.violations()),
            "warnings": len(self.warnings()),
            "info": len(self.infos()),
            "engine_errors": len(self.engine_errors()),
            "results_total": len(self.results),
        }

    def to_dict(self) -> dict:
        return {
            "conforms": self.conforms,
            "complete": self.complete,
            "summary": self.summary,
            "results": [r.to_dict() for r in self.results],
        }

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)

    def print_table(self) -> str:
        """Format report as a human-readable table."""
        lines = ["shapelint validation report", ""]

        if self.inconclusive:
            status = "? INCONCLUSIVE (some focus nodes could not be evaluated)"
        elif self.conforms:
            status = "✓ CONFORMS"
        else:
            status = "✗ DOES NOT CONFORM"
        lines.append(f"  {status}")

        s = self.summary
        lines.append(
            f"  {s['violations']} violations  {s['warnings']} warnings  "
            f"{s['info']} info  {s['engine_errors']} engine errors"
        )
        lines.append("")

        if self.results:
            lines.append("  RESULTS:")
            lines.append("")
            icons = {"violation": "✗", "warning": "⚠", "info": "ℹ", "engine_error": "!"}
            for r in self.results:
                icon = icons.get(r.severity.value, "?")
                lines.append(f"  {icon} [{r.severity.value.upper()}] {_render(r.source_shape)}")
                lines.append(f"    {r.message}")
                if r.focus_node is not None:
                    path = f"  path={_render(r.path)}" if r.path is not None else ""
                    lines.append(f"      → {_render(r.focus_node)}{path}")
                lines.append("")

        return "\n".join(lines)


def _render(value: Any) -> Any:
    """Render a details value for JSON output; terms use N-Triples syntax."""
    if isinstance(value, Identifier):
        return value.n3()
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (list, tuple)):
        return [_render(v) for v in value]
    return value
