"""
shapelint.shacl_reader — Read SHACL/Turtle shapes into NodeShape objects.

Takes a SHACL schema in Turtle syntax (or an already parsed rdflib.Graph),
walks the graph, and materializes immutable NodeShape / PropertyShape /
RuleConstraint objects for the engine. Regex patterns are compiled here,
once, so validators never recompile them.
"""

from __future__ import annotations

import re
import warnings
from decimal import Decimal
from typing import Optional, Union

from rdflib import Graph, Literal as RDFLiteral, RDF, RDFS, URIRef
from rdflib.collection import Collection
from rdflib.namespace import OWL, SH

from shapelint.model import NodeShape, PropertyShape, RuleConstraint, Severity


class ShapeError(ValueError):
    """A shape in the schema is malformed."""


# sh:flags characters -> re flags
_REGEX_FLAGS = {
    "i": re.IGNORECASE,
    "m": re.MULTILINE,
    "s": re.DOTALL,
    "x": re.VERBOSE,
}


def parse_shapes(
    source: Union[str, Graph],
    format: str = "turtle",
) -> list[NodeShape]:
    """Parse a SHACL schema (Turtle text or rdflib.Graph) into NodeShapes."""

    if isinstance(source, Graph):
        g = source
    else:
        g = Graph()
        g.parse(data=source, format=format)

    shapes: list[NodeShape] = []
    seen: set = set()
    for shape_node in g.subjects(RDF.type, SH.NodeShape):
        if shape_node in seen:
            continue
        seen.add(shape_node)
        shapes.append(_parse_node_shape(g, shape_node))

    return shapes


# ── Node shapes ──────────────────────────────────────────────────


def _parse_node_shape(g: Graph, shape_node) -> NodeShape:
    target_classes: list[URIRef] = []
    for target_class in g.objects(shape_node, SH.targetClass):
        if isinstance(target_class, URIRef):
            target_classes.append(target_class)
        else:
            warnings.warn(
                f"sh:targetClass {target_class!r} in shape {shape_node} is not an IRI, skipping."
            )

    # Implicit class target: the shape is itself a class
    if isinstance(shape_node, URIRef) and _is_class(g, shape_node):
        if shape_node not in target_classes:
            target_classes.append(shape_node)

    property_shapes = []
    for prop_node in _ordered_property_nodes(g, shape_node):
        prop_shape = _parse_property_shape(g, prop_node, shape_node)
        if prop_shape is not None:
            property_shapes.append(prop_shape)

    severity = _shacl_severity(g.value(shape_node, SH.severity))
    rule_constraints = [
        _parse_rule_constraint(g, sparql_node, shape_node, severity)
        for sparql_node in g.objects(shape_node, SH.sparql)
    ]

    return NodeShape(
        id=shape_node,
        target_classes=target_classes,
        property_shapes=property_shapes,
        rule_constraints=rule_constraints,
    )


def _is_class(g: Graph, node) -> bool:
    return (node, RDF.type, RDFS.Class) in g or (node, RDF.type, OWL.Class) in g


def _ordered_property_nodes(g: Graph, shape_node) -> list:
    """sh:property nodes ordered by sh:order; unordered ones keep discovery order."""
    prop_nodes = list(g.objects(shape_node, SH.property))

    def sort_key(item):
        index, node = item
        order = g.value(node, SH.order)
        if order is None:
            return (1, 0, index)
        return (0, float(order.toPython()), index)

    return [node for _, node in sorted(enumerate(prop_nodes), key=sort_key)]


# ── Property shapes ──────────────────────────────────────────────


def _parse_property_shape(g: Graph, prop_node, shape_node) -> Optional[PropertyShape]:
    """Process a single sh:property node into a PropertyShape."""

    path = g.value(prop_node, SH.path)
    if path is None:
        raise ShapeError(f"Property shape {prop_node} in {shape_node} has no sh:path")
    if not isinstance(path, URIRef):
        warnings.warn(
            f"Complex sh:path in shape {shape_node} is not yet supported, skipping."
        )
        return None

    qualified_class, qualified_min_count = _parse_qualified(g, prop_node, shape_node)

    return PropertyShape(
        id=prop_node,
        path=path,
        min_count=_optional_int(g, prop_node, SH.minCount),
        max_count=_optional_int(g, prop_node, SH.maxCount),
        datatype=_optional_iri(g, prop_node, SH.datatype),
        class_=_optional_iri(g, prop_node, SH["class"]),
        pattern=_compile_pattern(g, prop_node),
        min_length=_optional_int(g, prop_node, SH.minLength),
        in_list=_extract_rdf_list(g, g.value(prop_node, SH["in"])),
        has_value=g.value(prop_node, SH.hasValue),
        max_inclusive=_optional_number(g, prop_node, SH.maxInclusive),
        qualified_class=qualified_class,
        qualified_min_count=qualified_min_count,
        message=_optional_str(g, prop_node, SH.message),
        severity=_shacl_severity(g.value(prop_node, SH.severity)),
    )


def _parse_qualified(g: Graph, prop_node, shape_node):
    """sh:qualifiedValueShape [ sh:class C ] + sh:qualifiedMinCount."""
    qvs = g.value(prop_node, SH.qualifiedValueShape)
    q_min = _optional_int(g, prop_node, SH.qualifiedMinCount)
    if qvs is None:
        return None, q_min

    inner_class = g.value(qvs, SH["class"])
    if inner_class is None or not isinstance(inner_class, URIRef):
        warnings.warn(
            f"sh:qualifiedValueShape in {shape_node}: "
            "only a single sh:class filter is supported, skipping."
        )
        return None, q_min
    return inner_class, q_min


def _compile_pattern(g: Graph, prop_node) -> Optional[re.Pattern]:
    sh_pattern = g.value(prop_node, SH.pattern)
    if sh_pattern is None:
        return None

    flags = 0
    sh_flags = g.value(prop_node, SH.flags)
    if sh_flags is not None:
        for ch in str(sh_flags):
            if ch not in _REGEX_FLAGS:
                warnings.warn(f"Unsupported sh:flags character {ch!r}, ignoring.")
                continue
            flags |= _REGEX_FLAGS[ch]

    try:
        return re.compile(str(sh_pattern), flags)
    except re.error as e:
        raise ShapeError(f"Invalid sh:pattern {str(sh_pattern)!r}: {e}") from e


# ── Rule constraints ─────────────────────────────────────────────


def _parse_rule_constraint(
    g: Graph, sparql_node, shape_node, severity: Severity
) -> RuleConstraint:
    select = g.value(sparql_node, SH.select)
    if select is None:
        raise ShapeError(f"sh:sparql constraint on {shape_node} has no sh:select")

    return RuleConstraint(
        source_shape_id=shape_node,
        query_template=str(select),
        message=_optional_str(g, sparql_node, SH.message),
        prefixes=_extract_prefixes(g, sparql_node),
        severity=severity,
    )


def _extract_prefixes(g: Graph, sparql_node) -> dict[str, str]:
    """Collect sh:declare entries reachable through sh:prefixes."""
    prefixes: dict[str, str] = {}
    for prefixes_node in g.objects(sparql_node, SH.prefixes):
        for declaration in g.objects(prefixes_node, SH.declare):
            prefix = g.value(declaration, SH.prefix)
            namespace = g.value(declaration, SH["namespace"])
            if prefix is None or namespace is None:
                warnings.warn(f"Incomplete sh:declare in {prefixes_node}, skipping.")
                continue
            prefixes[str(prefix)] = str(namespace)
    return prefixes


# ── Helpers ──────────────────────────────────────────────────────


def _extract_rdf_list(g: Graph, list_node) -> tuple:
    """Extract the terms of an RDF list (for sh:in); terms are kept as-is."""
    if list_node is None:
        return ()
    return tuple(Collection(g, list_node))


def _optional_iri(g: Graph, node, predicate) -> Optional[URIRef]:
    value = g.value(node, predicate)
    if value is None:
        return None
    if not isinstance(value, URIRef):
        raise ShapeError(f"Expected an IRI for {predicate} on {node}, got {value!r}")
    return value


def _optional_int(g: Graph, node, predicate) -> Optional[int]:
    value = g.value(node, predicate)
    if value is None:
        return None
    python_value = value.toPython() if isinstance(value, RDFLiteral) else None
    if isinstance(python_value, bool) or not isinstance(python_value, int) or python_value < 0:
        raise ShapeError(
            f"Expected a non-negative integer for {predicate} on {node}, got {value!r}"
        )
    return python_value


def _optional_number(g: Graph, node, predicate):
    value = g.value(node, predicate)
    if value is None:
        return None
    python_value = value.toPython() if isinstance(value, RDFLiteral) else None
    if isinstance(python_value, bool) or not isinstance(python_value, (int, float, Decimal)):
        raise ShapeError(f"Expected a number for {predicate} on {node}, got {value!r}")
    return python_value


def _optional_str(g: Graph, node, predicate) -> Optional[str]:
    value = g.value(node, predicate)
    return str(value) if value is not None else None


def _shacl_severity(sev_iri) -> Severity:
    """Map SHACL severity IRI to shapelint Severity enum."""
    if sev_iri is None:
        return Severity.VIOLATION  # SHACL default
    sev_str = str(sev_iri)
    if sev_str == str(SH.Warning):
        return Severity.WARNING
    if sev_str == str(SH.Info):
        return Severity.INFO
    return Severity.VIOLATION
