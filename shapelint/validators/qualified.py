"""
shapelint.validators.qualified — sh:qualifiedValueShape [ sh:class C ] with
sh:qualifiedMinCount.

Only values explicitly typed C are counted. Nested qualified shapes are not
supported.
"""

from __future__ import annotations

from rdflib.namespace import SH

from shapelint.model import PropertyShape, Term, ValidationResult
from shapelint.validators.helpers import build_violation, get_values, is_instance_of


def validate(graph, focus_node: Term, shape: PropertyShape) -> list[ValidationResult]:
    if shape.qualified_class is None or shape.qualified_min_count is None:
        return []

    values = get_values(graph, focus_node, shape)
    qualified = [v for v in values if is_instance_of(graph, v, shape.qualified_class)]

    if len(qualified) >= shape.qualified_min_count:
        return []

    return [build_violation(
        focus_node,
        shape,
        (
            f"Property has too few values of required type (expected at least "
            f"{shape.qualified_min_count} instances of <{shape.qualified_class}>, "
            f"found {len(qualified)})"
        ),
        {
            "constraint_component": SH.QualifiedMinCountConstraintComponent,
            "qualified_count": len(qualified),
            "qualified_min_count": shape.qualified_min_count,
            "qualified_class": shape.qualified_class,
            "total_values": len(values),
        },
    )]
