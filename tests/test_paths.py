import pytest

from mindtree.errors import PathAmbiguous, PathNotFound
from mindtree.graph import NodeGraph
from mindtree.models import NodeKind
from mindtree.mutations import InsertMode, MutationEngine
from mindtree.paths import (
    ResolutionStatus,
    list_paths,
    node_path,
    parse_segment,
    resolve,
    resolve_input,
)


@pytest.mark.parametrize(
    ("segment", "expected"),
    [
        ("Tasks", (None, "Tasks")),
        ("  Tasks ", (None, "Tasks")),
        ("3345: do this", (3345, "do this")),
        ("12:", (12, "")),
        ("12:no-space", (None, "12:no-space")),
        ("v2: draft", (None, "v2: draft")),
    ],
)
def test_parse_segment(segment: str, expected: tuple) -> None:
    assert parse_segment(segment) == expected


def test_resolve_by_text(graph: NodeGraph) -> None:
    assert resolve(graph, "/").id == 1
    assert resolve(graph, "").id == 1
    assert resolve(graph, "/Tasks/On-going/write report").id == 4
    assert resolve(graph, "//Tasks/ On-going /").id == 3


def test_resolve_id_prefix_is_authoritative(graph: NodeGraph) -> None:
    assert resolve(graph, "/Tasks/3: On-going").id == 3
    # The text after the id is not checked.
    assert resolve(graph, "/Tasks/3: stale name").id == 3


def test_resolve_id_must_be_a_child(graph: NodeGraph) -> None:
    with pytest.raises(PathNotFound) as exc_info:
        resolve(graph, "/Tasks/4: write report")
    assert exc_info.value.segment == "4: write report"


def test_resolve_not_found(graph: NodeGraph) -> None:
    with pytest.raises(PathNotFound):
        resolve(graph, "/Tasks/Someday")


def test_resolve_ambiguous_lists_candidates(graph: NodeGraph) -> None:
    MutationEngine(graph).insert(1, InsertMode.BOTTOM, "Tasks")

    with pytest.raises(PathAmbiguous) as exc_info:
        resolve(graph, "/Tasks/Done")
    assert exc_info.value.candidates == [2, 7]

    # Disambiguated by id.
    assert resolve(graph, "/2: Tasks/Done").id == 5


def test_resolve_does_not_mutate(graph: NodeGraph) -> None:
    before = {n.id: (n.text, list(n.children)) for n in graph}
    with pytest.raises(PathNotFound):
        resolve(graph, "/Nope")
    assert {n.id: (n.text, list(n.children)) for n in graph} == before


@pytest.mark.parametrize("raw", [None, "", "   "])
def test_empty_input_is_cancelled(graph: NodeGraph, raw: str | None) -> None:
    resolution = resolve_input(graph, raw)

    assert resolution.status is ResolutionStatus.CANCELLED
    assert resolution.cancelled
    assert not resolution.ok
    assert resolution.node is None


def test_resolve_input_outcomes(graph: NodeGraph) -> None:
    ok = resolve_input(graph, " /Links ")
    assert ok.ok
    assert ok.node.id == 6
    assert ok.path == "/Links"

    missing = resolve_input(graph, "/Nope")
    assert missing.status is ResolutionStatus.NOT_FOUND
    assert isinstance(missing.error, PathNotFound)

    MutationEngine(graph).insert(1, InsertMode.TOP, "Links")
    ambiguous = resolve_input(graph, "/Links")
    assert ambiguous.status is ResolutionStatus.AMBIGUOUS
    assert isinstance(ambiguous.error, PathAmbiguous)


def test_node_path(graph: NodeGraph) -> None:
    assert node_path(graph, 1) == "/"
    assert node_path(graph, 4) == "/Tasks/On-going/write report"
    assert node_path(graph, 4, with_ids=True) == "/2: Tasks/3: On-going/4: write report"


def test_list_paths(graph: NodeGraph) -> None:
    assert list_paths(graph) == [
        "/",
        "/Tasks",
        "/Tasks/On-going",
        "/Tasks/On-going/write report",
        "/Tasks/Done",
        "/Links",
    ]
    assert list_paths(graph, 2) == ["/", "/On-going", "/On-going/write report", "/Done"]


def test_list_paths_by_kind(graph: NodeGraph) -> None:
    MutationEngine(graph).set_url(6, "https://example.org")

    assert list_paths(graph, kind=NodeKind.URL) == ["/Links"]
    assert list_paths(graph, kind=NodeKind.DATA) == []


def test_listed_paths_resolve_back(graph: NodeGraph) -> None:
    for path in list_paths(graph, with_ids=True):
        node = resolve(graph, path)
        assert node_path(graph, node.id, with_ids=True) == path
