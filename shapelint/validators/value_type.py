"""
shapelint.validators.value_type — sh:datatype / sh:class.

Class membership is explicit rdf:type only. No rdfs:subClassOf reasoning.
"""

from __future__ import annotations

from rdflib import Literal
from rdflib.namespace import SH

from shapelint.graph import literal_datatype
from shapelint.model import PropertyShape, Term, ValidationResult
from shapelint.validators.helpers import build_violation, get_values, is_instance_of


def validate(graph, focus_node: Term, shape: PropertyShape) -> list[ValidationResult]:
    if shape.datatype is None and shape.class_ is None:
        return []

    values = get_values(graph, focus_node, shape)
    return _check_datatype(focus_node, shape, values) + _check_class(
        graph, focus_node, shape, values
    )


def _check_datatype(focus_node, shape: PropertyShape, values) -> list[ValidationResult]:
    if shape.datatype is None:
        return []

    results = []
    for value in values:
        if isinstance(value, Literal) and literal_datatype(value) == shape.datatype:
            continue
        results.append(build_violation(
            focus_node,
            shape,
            f"Value does not have required datatype <{shape.datatype}>",
            {
                "constraint_component": SH.DatatypeConstraintComponent,
                "datatype": shape.datatype,
                "value": value,
            },
        ))
    return results


def _check_class(graph, focus_node, shape: PropertyShape, values) -> list[ValidationResult]:
    if shape.class_ is None:
        return []

    results = []
    for value in values:
        if is_instance_of(graph, value, shape.class_):
            continue
        results.append(build_violation(
            focus_node,
            shape,
            f"Value is not an instance of class <{shape.class_}>",
            {
                "constraint_component": SH.ClassConstraintComponent,
                "class": shape.class_,
                "value": value,
            },
        ))
    return results
