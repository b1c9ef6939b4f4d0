"""
shapelint.graph — Read-only graph interface consumed by the validators.

The engine only ever reads the data graph. Any object implementing the Graph
protocol can be validated; RDFGraph adapts an rdflib.Graph.
"""

from __future__ import annotations

from typing import Protocol

from rdflib import BNode, Graph as RDFLibGraph, Literal, URIRef
from rdflib.namespace import RDF, XSD

from shapelint.model import Term


class Graph(Protocol):
    """Interface that every data graph must implement.

    Implementations must tolerate concurrent reads from several threads.
    """

    def get_values(self, subject: Term, predicate: URIRef) -> list[Term]:
        """All objects of (subject, predicate, ?o), duplicates preserved."""
        ...

    def has_triple(self, subject: Term, predicate: URIRef, obj: Term) -> bool:
        ...

    def subjects(self, predicate: URIRef, obj: Term) -> list[Term]:
        """All subjects of (?s, predicate, obj) in discovery order."""
        ...


class RDFGraph:
    """Graph protocol over an in-memory rdflib.Graph."""

    def __init__(self, graph: RDFLibGraph):
        self.rdflib_graph = graph

    def get_values(self, subject: Term, predicate: URIRef) -> list[Term]:
        if isinstance(subject, Literal):
            return []
        return list(self.rdflib_graph.objects(subject, predicate))

    def has_triple(self, subject: Term, predicate: URIRef, obj: Term) -> bool:
        if isinstance(subject, Literal):
            return False
        return (subject, predicate, obj) in self.rdflib_graph

    def subjects(self, predicate: URIRef, obj: Term) -> list[Term]:
        return list(self.rdflib_graph.subjects(predicate, obj))

    def __len__(self) -> int:
        return len(self.rdflib_graph)


def as_graph(graph) -> Graph:
    """Wrap a bare rdflib.Graph; pass anything else through unchanged."""
    if isinstance(graph, RDFLibGraph):
        return RDFGraph(graph)
    return graph


# ─── Term helpers ────────────────────────────────────────────────────


def literal_datatype(literal: Literal) -> URIRef:
    """Effective datatype of a literal.

    rdflib leaves the datatype of plain literals unset; in RDF 1.1 those are
    xsd:string, or rdf:langString when a language tag is present.
    """
    if literal.datatype is not None:
        return literal.datatype
    if literal.language:
        return RDF.langString
    return XSD.string


def terms_equal(a: Term, b: Term) -> bool:
    """Structural term equality.

    IRIs and blank nodes compare by their string, literals by lexical form,
    effective datatype and language tag. Lexical forms are never parsed.
    """
    if isinstance(a, Literal) or isinstance(b, Literal):
        if not (isinstance(a, Literal) and isinstance(b, Literal)):
            return False
        return (
            str(a) == str(b)
            and literal_datatype(a) == literal_datatype(b)
            and (a.language or None) == (b.language or None)
        )
    for kind in (URIRef, BNode):
        if isinstance(a, kind):
            return isinstance(b, kind) and str(a) == str(b)
    return False


def term_to_sparql(term: Term) -> str:
    """Canonical SPARQL form of a focus node: <iri> or _:label."""
    if isinstance(term, URIRef):
        return f"<{term}>"
    if isinstance(term, BNode):
        return f"_:{term}"
    return term.n3()
