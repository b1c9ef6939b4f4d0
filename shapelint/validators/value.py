"""
shapelint.validators.value — sh:in / sh:hasValue / sh:maxInclusive.
"""

from __future__ import annotations

from rdflib.namespace import SH

from shapelint.graph import terms_equal
from shapelint.model import PropertyShape, Term, ValidationResult
from shapelint.validators.helpers import (
    build_violation,
    extract_number,
    get_values,
    to_decimal,
)


def validate(graph, focus_node: Term, shape: PropertyShape) -> list[ValidationResult]:
    if not shape.in_list and shape.has_value is None and shape.max_inclusive is None:
        return []

    values = get_values(graph, focus_node, shape)
    return (
        _check_in(focus_node, shape, values)
        + _check_has_value(focus_node, shape, values)
        + _check_max_inclusive(focus_node, shape, values)
    )


def _check_in(focus_node, shape: PropertyShape, values) -> list[ValidationResult]:
    if not shape.in_list:
        return []

    results = []
    for value in values:
        if any(terms_equal(value, allowed) for allowed in shape.in_list):
            continue
        results.append(build_violation(
            focus_node,
            shape,
            "Value is not one of the allowed values",
            {
                "constraint_component": SH.InConstraintComponent,
                "value": value,
            },
        ))
    return results


def _check_has_value(focus_node, shape: PropertyShape, values) -> list[ValidationResult]:
    # One result at most: the required value is missing from the whole set.
    if shape.has_value is None:
        return []
    if any(terms_equal(value, shape.has_value) for value in values):
        return []
    return [build_violation(
        focus_node,
        shape,
        f"Required value {shape.has_value.n3()} is missing",
        {
            "constraint_component": SH.HasValueConstraintComponent,
            "required_value": shape.has_value,
        },
    )]


def _check_max_inclusive(focus_node, shape: PropertyShape, values) -> list[ValidationResult]:
    if shape.max_inclusive is None:
        return []

    bound = to_decimal(shape.max_inclusive)
    results = []
    for value in values:
        number = extract_number(value)
        if number is not None and number <= bound:
            continue
        if number is None:
            message = f"Value is not numeric (expected a number <= {shape.max_inclusive})"
        else:
            message = (
                f"Value exceeds maximum (expected <= {shape.max_inclusive}, found {value})"
            )
        results.append(build_violation(
            focus_node,
            shape,
            message,
            {
                "constraint_component": SH.MaxInclusiveConstraintComponent,
                "max_inclusive": shape.max_inclusive,
                "value": value,
            },
        ))
    return results
