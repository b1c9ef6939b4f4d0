"""
Test the orchestrator: target selection, dispatch, execution modes,
per-unit timeouts, and engine-error isolation.
"""

import time
from collections import Counter

import pytest
from rdflib import Graph, Literal
from rdflib.namespace import RDF, XSD

from shapelint import ConfigurationError, ValidationOptions, engine, run
from shapelint.engine import select_focus_nodes
from shapelint.graph import RDFGraph
from shapelint.model import NodeShape, PropertyShape, RuleConstraint, Severity
from shapelint.query import QueryError
from shapelint.shacl_reader import parse_shapes

from conftest import EX


def name_shape(**fields):
    return NodeShape(
        id=EX.S,
        target_classes=[EX.Person],
        property_shapes=[PropertyShape(id=EX.S_name, path=EX.name, min_count=1, **fields)],
    )


def people_graph(count=2, with_name=(0,)):
    g = Graph()
    for i in range(count):
        node = EX[f"n{i + 1}"]
        g.add((node, RDF.type, EX.Person))
        if i in with_name:
            g.add((node, EX.name, Literal(f"Person {i + 1}")))
    return g


class FailingGraph(RDFGraph):
    """Raises for one focus node, reads normally for every other."""

    def __init__(self, graph, bad_node):
        super().__init__(graph)
        self.bad_node = bad_node

    def get_values(self, subject, predicate):
        if subject == self.bad_node:
            raise RuntimeError("storage unavailable")
        return super().get_values(subject, predicate)


class BrokenTargets(RDFGraph):
    """Raises when selecting instances of EX.Broken."""

    def subjects(self, predicate, obj):
        if obj == EX.Broken:
            raise RuntimeError("index unavailable")
        return super().subjects(predicate, obj)


class SlowExecutor:
    def __init__(self, delay):
        self.delay = delay

    def execute(self, graph, query):
        time.sleep(self.delay)
        return []


class BrokenExecutor:
    def execute(self, graph, query):
        raise QueryError("unsupported query", query)


# ── End to end ───────────────────────────────────────────────────


def test_missing_name_is_one_violation():
    """n1 has a name, n2 does not: exactly one min_count violation for n2."""
    report = run(people_graph(), [name_shape()])

    assert report.conforms is False
    assert len(report.results) == 1
    [result] = report.results
    assert result.focus_node == EX.n2
    assert result.path == EX.name
    assert result.source_shape == EX.S_name
    assert result.severity == Severity.VIOLATION
    assert result.details["actual_count"] == 0


def test_no_focus_nodes_conforms():
    g = Graph()
    g.add((EX.x, RDF.type, EX.Animal))
    report = run(g, [name_shape()])
    assert report.conforms is True
    assert report.results == []


def test_no_shapes_conforms():
    report = run(people_graph(), [])
    assert report.conforms is True
    assert report.complete is True


def test_accepts_graph_protocol_objects():
    report = run(RDFGraph(people_graph()), [name_shape()])
    assert len(report.violations()) == 1


def test_run_is_idempotent():
    g = people_graph(count=4, with_name=(1, 3))
    shapes = [name_shape()]
    first = run(g, shapes)
    second = run(g, shapes)
    assert first.results == second.results
    assert Counter(first.results) == Counter(second.results)
    assert first.conforms == second.conforms


def test_results_are_hashable():
    """Results with equal fields hash alike, so reports compare as multisets."""
    report = run(people_graph(count=3, with_name=()), [name_shape()])
    counts = Counter(report.results)
    assert sum(counts.values()) == 3
    assert len(set(report.results)) == 3


# ── Target selection ─────────────────────────────────────────────


def test_focus_nodes_deduplicated_across_target_classes():
    g = Graph()
    g.add((EX.n1, RDF.type, EX.Person))
    g.add((EX.n1, RDF.type, EX.Employee))
    g.add((EX.n2, RDF.type, EX.Employee))
    shape = NodeShape(id=EX.S, target_classes=[EX.Person, EX.Employee])

    assert select_focus_nodes(RDFGraph(g), shape) == [EX.n1, EX.n2]

    report = run(g, [NodeShape(
        id=EX.S,
        target_classes=[EX.Person, EX.Employee],
        property_shapes=[PropertyShape(id=EX.S_name, path=EX.name, min_count=1)],
    )])
    assert Counter(r.focus_node for r in report.results) == {EX.n1: 1, EX.n2: 1}


def test_empty_target_classes_selects_nothing():
    shape = NodeShape(
        id=EX.S,
        property_shapes=[PropertyShape(id=EX.S_name, path=EX.name, min_count=1)],
    )
    report = run(people_graph(), [shape])
    assert report.results == []


def test_results_grouped_by_unit_in_order():
    """Results follow shape order, then focus node order, then property shape order."""
    g = people_graph(count=2, with_name=())
    shape = NodeShape(
        id=EX.S,
        target_classes=[EX.Person],
        property_shapes=[
            PropertyShape(id=EX.S_name, path=EX.name, min_count=1),
            PropertyShape(id=EX.S_email, path=EX.email, min_count=1),
        ],
    )
    report = run(g, [shape])
    focus_nodes = select_focus_nodes(RDFGraph(g), shape)

    expected = [(n, s) for n in focus_nodes for s in (EX.S_name, EX.S_email)]
    assert [(r.focus_node, r.source_shape) for r in report.results] == expected


def test_property_results_precede_rule_results():
    g = people_graph(count=1, with_name=())
    shape = NodeShape(
        id=EX.S,
        target_classes=[EX.Person],
        property_shapes=[PropertyShape(id=EX.S_name, path=EX.name, min_count=1)],
        rule_constraints=[RuleConstraint(
            source_shape_id=EX.S,
            query_template="SELECT $this WHERE { $this a ?type }",
        )],
    )
    report = run(g, [shape])
    assert [r.path for r in report.results] == [EX.name, None]


# ── Execution modes ──────────────────────────────────────────────


def test_parallel_matches_sequential():
    g = people_graph(count=12, with_name=(0, 3, 5, 8))
    g.add((EX.n1, EX.name, Literal("duplicate")))
    shapes = [
        name_shape(max_count=1, datatype=XSD.string),
        NodeShape(
            id=EX.T,
            target_classes=[EX.Person],
            property_shapes=[PropertyShape(id=EX.T_age, path=EX.age, min_count=1)],
        ),
    ]

    sequential = run(g, shapes, parallel=False)
    parallel = run(g, shapes, parallel=True, max_concurrency=4)

    assert Counter(sequential.results) == Counter(parallel.results)
    assert sequential.conforms == parallel.conforms


def test_parallel_preserves_unit_order():
    g = people_graph(count=8, with_name=())
    sequential = run(g, [name_shape()])
    parallel = run(g, [name_shape()], parallel=True, max_concurrency=3)
    assert [r.focus_node for r in parallel.results] == [r.focus_node for r in sequential.results]


def test_single_worker_parallel():
    report = run(people_graph(), [name_shape()], parallel=True, max_concurrency=1)
    assert len(report.violations()) == 1


# ── Options ──────────────────────────────────────────────────────


@pytest.mark.parametrize("overrides", [
    {"max_concurrency": 0},
    {"max_concurrency": -2},
    {"timeout": 0},
    {"timeout": -1.5},
    {"retries": 3},
])
def test_invalid_options_rejected(overrides):
    with pytest.raises(ConfigurationError):
        run(people_graph(), [name_shape()], **overrides)


def test_options_object_and_overrides():
    options = ValidationOptions(parallel=True, max_concurrency=2)
    report = run(people_graph(), [name_shape()], options, max_concurrency=1)
    assert len(report.violations()) == 1

    with pytest.raises(ConfigurationError):
        run(people_graph(), [name_shape()], options, timeout=0)


def test_non_node_shape_rejected():
    with pytest.raises(ConfigurationError):
        run(people_graph(), [PropertyShape(id=EX.P, path=EX.name, min_count=1)])


# ── Engine errors ────────────────────────────────────────────────


@pytest.mark.parametrize("parallel", [False, True])
def test_failing_unit_is_isolated(parallel):
    g = people_graph(count=3, with_name=(0,))
    report = run(FailingGraph(g, EX.n2), [name_shape()], parallel=parallel)

    [error] = report.engine_errors()
    assert error.focus_node == EX.n2
    assert error.source_shape == EX.S
    assert error.path is None
    assert error.details["error_type"] == "RuntimeError"

    # n3 is still validated; n1 conforms
    assert [r.focus_node for r in report.violations()] == [EX.n3]
    assert report.complete is False


@pytest.mark.parametrize("parallel", [False, True])
def test_target_selection_failure_is_isolated(parallel):
    """A shape whose focus nodes cannot be selected yields one engine error; other shapes still run."""
    g = people_graph(count=2, with_name=(0,))
    shapes = [NodeShape(id=EX.Bad, target_classes=[EX.Broken]), name_shape()]
    report = run(BrokenTargets(g), shapes, parallel=parallel)

    first, second = report.results
    assert first.severity == Severity.ENGINE_ERROR
    assert first.source_shape == EX.Bad
    assert first.focus_node is None
    assert first.path is None
    assert first.details == {"error_type": "RuntimeError", "error": "index unavailable"}

    assert second.severity == Severity.VIOLATION
    assert second.focus_node == EX.n2
    assert report.conforms is False
    assert report.complete is False


def test_unit_finished_before_expiry_sweep_keeps_results(monkeypatch):
    """A unit that completes after wait() returns but before the sweep is not timed out."""
    real_wait = engine.wait

    def late_wait(futures, timeout=None, return_when=None):
        real_wait(futures)
        return set(), set(futures)

    monkeypatch.setattr(engine, "wait", late_wait)
    monkeypatch.setattr(engine.Unit, "expired", lambda self: True)
    monkeypatch.setattr(engine.Unit, "check", lambda self: None)

    report = run(people_graph(count=2, with_name=(0,)), [name_shape()], parallel=True, timeout=5)
    assert report.engine_errors() == []
    assert [r.focus_node for r in report.violations()] == [EX.n2]


def test_engine_errors_do_not_fail_conformance():
    g = people_graph(count=2, with_name=(0, 1))
    report = run(FailingGraph(g, EX.n2), [name_shape()])

    assert report.conforms is True
    assert report.inconclusive is True
    assert len(report.engine_errors()) == 1


@pytest.mark.parametrize("parallel", [False, True])
def test_unit_timeout(parallel):
    g = people_graph(count=1, with_name=(0,))
    shape = NodeShape(
        id=EX.S,
        target_classes=[EX.Person],
        rule_constraints=[RuleConstraint(
            source_shape_id=EX.S,
            query_template="SELECT $this WHERE { $this ?p ?o }",
        )],
    )
    report = run(g, [shape], parallel=parallel, timeout=0.05, query_executor=SlowExecutor(0.3))

    [error] = report.results
    assert error.severity == Severity.ENGINE_ERROR
    assert error.focus_node == EX.n1
    assert error.details["error_type"] == "UnitTimeout"


def test_timeout_leaves_fast_units_alone():
    g = people_graph(count=3, with_name=())
    report = run(g, [name_shape()], parallel=True, timeout=5)
    assert len(report.violations()) == 3
    assert report.engine_errors() == []


def test_query_error_becomes_engine_error():
    g = people_graph(count=2, with_name=(0,))
    shape = NodeShape(
        id=EX.S,
        target_classes=[EX.Person],
        property_shapes=[PropertyShape(id=EX.S_name, path=EX.name, min_count=1)],
        rule_constraints=[RuleConstraint(
            source_shape_id=EX.S,
            query_template="SELECT $this WHERE { $this ?p ?o }",
        )],
    )
    report = run(g, [shape], query_executor=BrokenExecutor())

    # the failing unit's partial property results are dropped
    assert [r.severity for r in report.results] == [Severity.ENGINE_ERROR] * 2
    assert {r.details["error_type"] for r in report.results} == {"QueryError"}


# ── Example files ────────────────────────────────────────────────


@pytest.mark.parametrize("parallel", [False, True])
def test_people_example(people_shacl, people_data, parallel):
    shapes = parse_shapes(people_shacl)
    report = run(people_data, shapes, parallel=parallel)

    assert report.conforms is False
    assert report.complete is True
    assert report.summary["violations"] == 8
    assert report.summary["warnings"] == 1

    by_node = Counter(r.focus_node for r in report.violations())
    assert by_node == {EX.bob: 3, EX.carol: 2, EX.solo: 3}
    assert [r.focus_node for r in report.warnings()] == [EX.carol]

    [rule_result] = [r for r in report.results if r.path is None]
    assert rule_result.focus_node == EX.solo
    assert rule_result.message == "Team lead must be a member of the team"
    assert rule_result.details == {"this": EX.solo, "lead": EX.alice}
