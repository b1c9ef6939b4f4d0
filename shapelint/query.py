"""
shapelint.query — Query execution for rule constraints.

Each executor runs a fully bound SPARQL SELECT query against the data graph
and returns one binding row per solution.
"""

from __future__ import annotations

from typing import Protocol

from shapelint.model import Term


BindingRow = dict[str, Term]


class QueryError(Exception):
    """A rule query could not be executed."""

    def __init__(self, message: str, query: str = ""):
        super().__init__(message)
        self.query = query


class QueryExecutor(Protocol):
    """Interface that every query executor must implement."""

    def execute(self, graph, query: str) -> list[BindingRow]:
        """Execute a SELECT query and return its solutions.

        Each row maps a variable name (without the leading '?') to its bound
        term; unbound variables are left out. Zero rows = no violation.

        Raises QueryError when the query cannot be parsed or evaluated.
        """
        ...


class RDFLibQueryExecutor:
    """Run rule queries with rdflib's SPARQL engine."""

    name = "rdflib"

    def execute(self, graph, query: str) -> list[BindingRow]:
        target = getattr(graph, "rdflib_graph", graph)
        if not hasattr(target, "query"):
            raise QueryError(
                f"{type(graph).__name__} does not support SPARQL queries", query
            )

        try:
            result = target.query(query)
            if result.type != "SELECT":
                raise QueryError(
                    f"Rule queries must be SELECT queries, got {result.type}", query
                )
            variables = [str(v) for v in (result.vars or [])]
            rows = []
            for row in result:
                bound = row.asdict()
                rows.append({name: bound[name] for name in variables if name in bound})
            return rows
        except QueryError:
            raise
        except Exception as e:
            raise QueryError(f"Query execution failed: {e}", query) from e
