"""
shapelint.validators.cardinality — sh:minCount / sh:maxCount.
"""

from __future__ import annotations

from rdflib.namespace import SH

from shapelint.model import PropertyShape, Term, ValidationResult
from shapelint.validators.helpers import build_violation, get_values


def validate(graph, focus_node: Term, shape: PropertyShape) -> list[ValidationResult]:
    if shape.min_count is None and shape.max_count is None:
        return []

    count = len(get_values(graph, focus_node, shape))
    results = []

    if shape.min_count is not None and count < shape.min_count:
        results.append(build_violation(
            focus_node,
            shape,
            f"Property has too few values (expected at least {shape.min_count}, found {count})",
            {
                "constraint_component": SH.MinCountConstraintComponent,
                "actual_count": count,
                "min_count": shape.min_count,
            },
        ))

    if shape.max_count is not None and count > shape.max_count:
        results.append(build_violation(
            focus_node,
            shape,
            f"Property has too many values (expected at most {shape.max_count}, found {count})",
            {
                "constraint_component": SH.MaxCountConstraintComponent,
                "actual_count": count,
                "max_count": shape.max_count,
            },
        ))

    return results
