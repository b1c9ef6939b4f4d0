"""
shapelint.engine — Validate a data graph against a list of node shapes.

The engine selects focus nodes for every node shape, validates each
(node shape, focus node) pair as an independent unit, and aggregates all
unit results into one ValidationReport.

Units run inline (sequential) or on a bounded thread pool (parallel). A unit
that raises or exceeds its timeout yields a single engine_error result;
sibling units are never affected and the run still returns a report.
"""

from __future__ import annotations

import logging
import os
import time
from concurrent.futures import FIRST_COMPLETED, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from threading import Event
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from rdflib.namespace import RDF

from shapelint.graph import Graph, as_graph
from shapelint.model import (
    NodeShape,
    Severity,
    Term,
    ValidationReport,
    ValidationResult,
)
from shapelint.query import QueryError, QueryExecutor, RDFLibQueryExecutor
from shapelint.validators import rules, validate_property_shape

logger = logging.getLogger(__name__)


# ─── Options & errors ────────────────────────────────────────────────


class ConfigurationError(ValueError):
    """Invalid run options or shapes; raised before any unit is dispatched."""


class UnitTimeout(Exception):
    """A unit ran longer than the configured per-unit timeout."""


class ValidationOptions(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    parallel: bool = False
    # Ignored in sequential mode.
    max_concurrency: int = Field(default_factory=lambda: os.cpu_count() or 1, gt=0)
    # Seconds per unit, measured from the moment the unit starts running.
    timeout: Optional[float] = Field(default=None, gt=0)


def resolve_options(options: Optional[ValidationOptions] = None, **overrides) -> ValidationOptions:
    try:
        if options is None:
            return ValidationOptions(**overrides)
        if overrides:
            return ValidationOptions(**{**options.model_dump(), **overrides})
        return options
    except ValidationError as e:
        raise ConfigurationError(f"Invalid validation options: {e}") from e


# ─── Units ───────────────────────────────────────────────────────────


@dataclass
class Unit:
    """One (node shape, focus node) pair and its cancellation state.

    A unit whose focus nodes could not be selected has no focus node and
    carries the selection ``failure`` instead; it is never dispatched.
    """

    index: int
    node_shape: NodeShape
    focus_node: Optional[Term]
    timeout: Optional[float] = None
    started_at: Optional[float] = None
    failure: Optional[BaseException] = None
    _cancelled: Event = field(default_factory=Event)

    def start(self):
        self.started_at = time.monotonic()

    def cancel(self):
        self._cancelled.set()

    def expired(self) -> bool:
        if self.timeout is None or self.started_at is None:
            return False
        return time.monotonic() - self.started_at > self.timeout

    def check(self):
        """Raise UnitTimeout if the unit was cancelled or ran out of time."""
        if self._cancelled.is_set() or self.expired():
            raise UnitTimeout(f"Unit exceeded timeout of {self.timeout}s")


# ─── Target selection & dispatch ─────────────────────────────────────


def select_focus_nodes(graph: Graph, node_shape: NodeShape) -> list[Term]:
    """Explicit instances of any target class, de-duplicated, in discovery order."""
    focus_nodes: dict[Term, None] = {}
    for target_class in node_shape.target_classes:
        for subject in graph.subjects(RDF.type, target_class):
            focus_nodes.setdefault(subject, None)
    return list(focus_nodes)


def validate_focus_node(
    graph: Graph,
    focus_node: Term,
    node_shape: NodeShape,
    query_executor: Optional[QueryExecutor] = None,
    checkpoint=None,
) -> list[ValidationResult]:
    """Run every property shape, then the rule constraints, for one focus node."""
    results: list[ValidationResult] = []
    for property_shape in node_shape.property_shapes:
        if checkpoint is not None:
            checkpoint()
        results.extend(validate_property_shape(graph, focus_node, property_shape))

    if checkpoint is not None:
        checkpoint()
    results.extend(
        rules.validate(graph, focus_node, node_shape.rule_constraints, query_executor)
    )
    if checkpoint is not None:
        checkpoint()
    return results


def engine_error(unit: Unit, error: BaseException) -> ValidationResult:
    if unit.focus_node is None:
        message = f"Focus nodes could not be selected for this shape: {error}"
    else:
        message = f"Validation could not be completed for this focus node: {error}"
    return ValidationResult(
        focus_node=unit.focus_node,
        path=None,
        source_shape=unit.node_shape.id,
        severity=Severity.ENGINE_ERROR,
        message=message,
        details={
            "error_type": type(error).__name__,
            "error": str(error),
        },
    )


# ─── Engine ──────────────────────────────────────────────────────────


class ValidationEngine:
    def __init__(
        self,
        options: Optional[ValidationOptions] = None,
        query_executor: Optional[QueryExecutor] = None,
    ):
        self.options = options or ValidationOptions()
        self.query_executor = query_executor or RDFLibQueryExecutor()

    def run(self, data_graph, shapes) -> ValidationReport:
        shapes = list(shapes)
        for shape in shapes:
            if not isinstance(shape, NodeShape):
                raise ConfigurationError(
                    f"Expected NodeShape instances, got {type(shape).__name__}"
                )

        graph = as_graph(data_graph)
        units = self._plan_units(graph, shapes)
        logger.debug(
            "Dispatching %d units for %d shapes (parallel=%s)",
            len(units), len(shapes), self.options.parallel,
        )

        if self.options.parallel and units:
            unit_results = self._run_parallel(graph, units)
        else:
            unit_results = [self._evaluate_unit(graph, unit) for unit in units]

        report = ValidationReport(
            results=[r for results in unit_results for r in results]
        )
        if report.engine_errors():
            logger.warning(
                "%d of %d units could not be fully evaluated",
                len(report.engine_errors()), len(units),
            )
        return report

    def _plan_units(self, graph: Graph, shapes: list[NodeShape]) -> list[Unit]:
        units: list[Unit] = []
        for node_shape in shapes:
            try:
                focus_nodes = select_focus_nodes(graph, node_shape)
            except Exception as e:
                logger.warning(
                    "Target selection failed for %s: %s", node_shape.id, e, exc_info=True
                )
                units.append(Unit(
                    index=len(units),
                    node_shape=node_shape,
                    focus_node=None,
                    failure=e,
                ))
                continue
            logger.debug("Shape %s: %d focus nodes", node_shape.id, len(focus_nodes))
            for focus_node in focus_nodes:
                units.append(Unit(
                    index=len(units),
                    node_shape=node_shape,
                    focus_node=focus_node,
                    timeout=self.options.timeout,
                ))
        return units

    def _evaluate_unit(self, graph: Graph, unit: Unit) -> list[ValidationResult]:
        if unit.failure is not None:
            return [engine_error(unit, unit.failure)]
        unit.start()
        try:
            return validate_focus_node(
                graph,
                unit.focus_node,
                unit.node_shape,
                self.query_executor,
                checkpoint=unit.check,
            )
        except UnitTimeout as e:
            logger.warning("Unit %s / %s timed out", unit.node_shape.id, unit.focus_node)
            return [engine_error(unit, e)]
        except QueryError as e:
            logger.warning(
                "Rule query failed for %s / %s: %s", unit.node_shape.id, unit.focus_node, e
            )
            return [engine_error(unit, e)]
        except Exception as e:
            logger.warning(
                "Unit %s / %s failed: %s", unit.node_shape.id, unit.focus_node, e,
                exc_info=True,
            )
            return [engine_error(unit, e)]

    def _run_parallel(self, graph: Graph, units: list[Unit]) -> list[list[ValidationResult]]:
        results: list[Optional[list[ValidationResult]]] = [None] * len(units)
        timeout = self.options.timeout
        poll = None if timeout is None else min(timeout / 4, 0.05)

        for unit in units:
            if unit.failure is not None:
                results[unit.index] = self._evaluate_unit(graph, unit)

        with ThreadPoolExecutor(
            max_workers=self.options.max_concurrency,
            thread_name_prefix="shapelint",
        ) as pool:
            futures = {
                pool.submit(self._evaluate_unit, graph, unit): unit
                for unit in units
                if unit.failure is None
            }
            pending = set(futures)
            while pending:
                done, pending = wait(pending, timeout=poll, return_when=FIRST_COMPLETED)
                for future in done:
                    unit = futures[future]
                    results[unit.index] = future.result()

                if timeout is None:
                    continue
                for future in list(pending):
                    unit = futures[future]
                    if future.done():
                        # Finished since wait() returned; keep its real results.
                        pending.discard(future)
                        results[unit.index] = future.result()
                    elif unit.expired():
                        # The worker stops at its next checkpoint; its late
                        # results are discarded.
                        unit.cancel()
                        pending.discard(future)
                        logger.warning(
                            "Unit %s / %s timed out", unit.node_shape.id, unit.focus_node
                        )
                        results[unit.index] = [
                            engine_error(unit, UnitTimeout(f"Unit exceeded timeout of {timeout}s"))
                        ]

        return [r or [] for r in results]


# ─── Entry point ─────────────────────────────────────────────────────


def run(
    data_graph,
    shapes,
    options: Optional[ValidationOptions] = None,
    *,
    query_executor: Optional[QueryExecutor] = None,
    **option_overrides,
) -> ValidationReport:
    """Validate ``data_graph`` against ``shapes`` and return the report.

    ``data_graph`` is any Graph implementation or a bare rdflib.Graph.
    Options may be passed as a ValidationOptions or as keywords
    (parallel=, max_concurrency=, timeout=).

    Raises ConfigurationError for invalid options or shapes. Every other
    failure is reported as an engine_error result inside the report.
    """
    resolved = resolve_options(options, **option_overrides)
    engine = ValidationEngine(resolved, query_executor)
    return engine.run(data_graph, shapes)
