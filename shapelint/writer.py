"""
shapelint.writer — Serialize a ValidationReport as a SHACL report graph.
"""

from __future__ import annotations

from rdflib import BNode, Graph, Literal, URIRef
from rdflib.namespace import RDF, SH, XSD
from rdflib.term import Identifier

from shapelint.model import Severity, ValidationReport, ValidationResult
from shapelint.validators.rules import RULE_CONSTRAINT_COMPONENT

# SHACL has no severity for results the engine could not evaluate.
ENGINE_ERROR = URIRef("urn:shapelint:EngineError")

_SEVERITY_IRIS = {
    Severity.VIOLATION: SH.Violation,
    Severity.WARNING: SH.Warning,
    Severity.INFO: SH.Info,
    Severity.ENGINE_ERROR: ENGINE_ERROR,
}


def report_to_graph(report: ValidationReport) -> Graph:
    g = Graph()
    g.bind("sh", SH)

    report_node = BNode()
    g.add((report_node, RDF.type, SH.ValidationReport))
    g.add((report_node, SH.conforms, Literal(report.conforms, datatype=XSD.boolean)))

    for result in report.results:
        result_node = BNode()
        g.add((report_node, SH.result, result_node))
        _add_result(g, result_node, result)

    return g


def report_to_turtle(report: ValidationReport) -> str:
    return report_to_graph(report).serialize(format="turtle")


def _add_result(g: Graph, node: BNode, result: ValidationResult):
    g.add((node, RDF.type, SH.ValidationResult))
    # Shape-level engine errors have no focus node.
    if result.focus_node is not None:
        g.add((node, SH.focusNode, result.focus_node))
    g.add((node, SH.resultSeverity, _SEVERITY_IRIS[result.severity]))
    g.add((node, SH.resultMessage, Literal(result.message)))
    g.add((node, SH.sourceShape, _as_term(result.source_shape)))

    if result.path is not None:
        g.add((node, SH.resultPath, result.path))

    component = result.details.get("constraint_component")
    if component is None and result.path is None and result.severity != Severity.ENGINE_ERROR:
        component = RULE_CONSTRAINT_COMPONENT
    if component is not None:
        g.add((node, SH.sourceConstraintComponent, component))

    value = result.details.get("value")
    if isinstance(value, Identifier):
        g.add((node, SH.value, value))


def _as_term(shape_id) -> Identifier:
    if isinstance(shape_id, Identifier):
        return shape_id
    return Literal(str(shape_id))
