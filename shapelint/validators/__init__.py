"""
shapelint.validators — Constraint validators for property shapes.

Each validator checks one family of constraints for one focus node and
one property shape.
"""

from __future__ import annotations

from typing import Protocol

from shapelint.model import PropertyShape, Term, ValidationResult
from shapelint.validators import cardinality, qualified, strings, value, value_type


class PropertyValidator(Protocol):
    """Interface that every property-shape validator must implement."""

    def __call__(
        self, graph, focus_node: Term, shape: PropertyShape
    ) -> list[ValidationResult]:
        """Check one property shape for one focus node.

        MUST be free of side effects and MUST return [] when none of the
        constraint fields it handles are set on the shape.
        """
        ...


# Fixed dispatch order; results of a property shape follow this order.
PROPERTY_VALIDATORS: tuple[PropertyValidator, ...] = (
    cardinality.validate,
    value_type.validate,
    strings.validate,
    value.validate,
    qualified.validate,
)


def validate_property_shape(graph, focus_node: Term, shape: PropertyShape) -> list[ValidationResult]:
    results: list[ValidationResult] = []
    for validator in PROPERTY_VALIDATORS:
        results.extend(validator(graph, focus_node, shape))
    return results
