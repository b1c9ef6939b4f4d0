import pytest
from rdflib import Graph, Namespace

from shapelint.graph import RDFGraph


EX = Namespace("http://example.org/people#")


@pytest.fixture
def examples_dir(request):
    return request.config.rootpath / "examples"


@pytest.fixture
def people_shacl(examples_dir):
    return (examples_dir / "people.shacl.ttl").read_text()


@pytest.fixture
def people_data(examples_dir):
    g = Graph()
    g.parse(examples_dir / "people.data.ttl", format="turtle")
    return g


@pytest.fixture
def make_graph():
    """Build an RDFGraph from (s, p, o) tuples."""

    def _make(*triples):
        g = Graph()
        for triple in triples:
            g.add(triple)
        return RDFGraph(g)

    return _make
