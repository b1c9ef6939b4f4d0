"""
shapelint.validators.helpers — Shared helpers for the constraint validators.
"""

from __future__ import annotations

import re
from decimal import Decimal, InvalidOperation
from typing import Optional

from rdflib import Literal, URIRef
from rdflib.namespace import RDF

from shapelint.model import PropertyShape, Term, ValidationResult


# xsd:integer / xsd:decimal / xsd:double lexical forms
_NUMERIC_LEXICAL = re.compile(
    r"[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?|[+-]?INF"
)


def get_values(graph, focus_node: Term, shape: PropertyShape) -> list[Term]:
    return list(graph.get_values(focus_node, shape.path))


def build_violation(
    focus_node: Term,
    shape: PropertyShape,
    default_message: str,
    details: dict,
) -> ValidationResult:
    """Build a result for a property shape; shape.message wins if set."""
    return ValidationResult(
        focus_node=focus_node,
        path=shape.path,
        source_shape=shape.id,
        severity=shape.severity,
        message=shape.message if shape.message is not None else default_message,
        details=details,
    )


def extract_string(term: Term) -> Optional[str]:
    """Lexical form of a literal, None for IRIs and blank nodes."""
    if isinstance(term, Literal):
        return str(term)
    return None


def extract_number(term: Term) -> Optional[Decimal]:
    """Parse a literal's lexical form as a number.

    Returns None for non-literals and lexical forms that are not numeric.
    The datatype is not consulted.
    """
    lexical = extract_string(term)
    if lexical is None or not _NUMERIC_LEXICAL.fullmatch(lexical.strip()):
        return None
    try:
        return Decimal(lexical.strip())
    except InvalidOperation:
        return None


def is_instance_of(graph, term: Term, class_iri: URIRef) -> bool:
    """Explicit rdf:type membership only; literals are never instances."""
    if isinstance(term, Literal):
        return False
    return graph.has_triple(term, RDF.type, class_iri)


def to_decimal(bound) -> Decimal:
    if isinstance(bound, Decimal):
        return bound
    return Decimal(str(bound))
