"""
shapelint.validators.strings — sh:pattern / sh:minLength.

Patterns arrive precompiled on the shape and must match the whole lexical
form. IRIs and blank nodes have no lexical form and always fail.
"""

from __future__ import annotations

from rdflib.namespace import SH

from shapelint.model import PropertyShape, Term, ValidationResult
from shapelint.validators.helpers import build_violation, extract_string, get_values


def validate(graph, focus_node: Term, shape: PropertyShape) -> list[ValidationResult]:
    if shape.pattern is None and shape.min_length is None:
        return []

    values = get_values(graph, focus_node, shape)
    return _check_pattern(focus_node, shape, values) + _check_min_length(
        focus_node, shape, values
    )


def _check_pattern(focus_node, shape: PropertyShape, values) -> list[ValidationResult]:
    if shape.pattern is None:
        return []

    results = []
    for value in values:
        text = extract_string(value)
        if text is not None and shape.pattern.fullmatch(text):
            continue
        if text is None:
            message = f"Value is not a literal and cannot match pattern {shape.pattern.pattern!r}"
        else:
            message = f"Value does not match required pattern {shape.pattern.pattern!r}"
        results.append(build_violation(
            focus_node,
            shape,
            message,
            {
                "constraint_component": SH.PatternConstraintComponent,
                "pattern": shape.pattern.pattern,
                "value": value,
            },
        ))
    return results


def _check_min_length(focus_node, shape: PropertyShape, values) -> list[ValidationResult]:
    if shape.min_length is None:
        return []

    results = []
    for value in values:
        text = extract_string(value)
        if text is not None and len(text) >= shape.min_length:
            continue
        details = {
            "constraint_component": SH.MinLengthConstraintComponent,
            "min_length": shape.min_length,
            "value": value,
        }
        if text is None:
            message = "Value is not a literal and has no length"
        else:
            details["actual_length"] = len(text)
            message = (
                f"Value is too short (expected at least {shape.min_length} "
                f"characters, found {len(text)})"
            )
        results.append(build_violation(focus_node, shape, message, details))
    return results
