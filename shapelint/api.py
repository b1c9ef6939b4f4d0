"""
shapelint.api — One-call validation from a shapes graph or Turtle files.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Union

from rdflib import Graph

from shapelint.engine import ValidationOptions, run
from shapelint.model import ValidationReport
from shapelint.query import QueryExecutor
from shapelint.shacl_reader import parse_shapes

logger = logging.getLogger(__name__)


class FileReadError(Exception):
    """A data or shapes file could not be read or parsed as Turtle."""

    def __init__(self, kind: str, path: Union[str, Path], reason: BaseException):
        super().__init__(f"Failed to read {kind} file {path}: {reason}")
        # "data" or "shapes"
        self.kind = kind
        self.path = Path(path)
        self.reason = reason


def validate(
    data_graph,
    shapes_source: Union[str, Graph],
    options: Optional[ValidationOptions] = None,
    *,
    query_executor: Optional[QueryExecutor] = None,
    **option_overrides,
) -> ValidationReport:
    """Read shapes from Turtle text or an rdflib.Graph and validate ``data_graph``.

    Raises ShapeError for malformed shapes and ConfigurationError for bad
    options; everything else ends up in the report.
    """
    shapes = parse_shapes(shapes_source)
    logger.debug("Read %d node shapes", len(shapes))
    return run(
        data_graph,
        shapes,
        options,
        query_executor=query_executor,
        **option_overrides,
    )


def validate_file(
    data_path: Union[str, Path],
    shapes_path: Union[str, Path],
    options: Optional[ValidationOptions] = None,
    *,
    query_executor: Optional[QueryExecutor] = None,
    **option_overrides,
) -> ValidationReport:
    """Validate a Turtle data file against a Turtle shapes file.

    Raises FileReadError naming which of the two files failed.
    """
    data_graph = _read_turtle(data_path, "data")
    shapes_graph = _read_turtle(shapes_path, "shapes")
    return validate(
        data_graph,
        shapes_graph,
        options,
        query_executor=query_executor,
        **option_overrides,
    )


def _read_turtle(path: Union[str, Path], kind: str) -> Graph:
    g = Graph()
    try:
        g.parse(Path(path), format="turtle")
    except Exception as e:
        # OSError or any rdflib parser error
        raise FileReadError(kind, path, e) from e
    return g
