"""Slash-path addressing into a NodeGraph.

    /                         the root
    /Tasks/On-going           match children by exact (trimmed) text
    /Tasks/On-going/3345: x   ``<id>: `` prefix; the id is authoritative and
                              the text after the colon is not checked

Empty segments (leading, trailing or doubled ``/``) are ignored. Resolution
never mutates the graph.

Node text may not contain ``/`` (inserts and renames reject it). Text that
itself looks like an id prefix, such as ``12: x``, parses as one, so such a
node is only reachable through its own ``<id>: `` segment.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING

from mindtree.errors import PathAmbiguous, PathError, PathNotFound

if TYPE_CHECKING:
    from mindtree.graph import NodeGraph
    from mindtree.models import Node, NodeKind

_ID_PREFIX_RE = re.compile(r"^(\d+):(?:\s(.*))?$", re.DOTALL)


def split_path(path: str) -> list[str]:
    return [seg.strip() for seg in path.split("/") if seg.strip()]


def parse_segment(segment: str) -> tuple[int | None, str]:
    """Split ``"3345: do this"`` into ``(3345, "do this")``; plain text gives ``(None, text)``."""
    segment = segment.strip()
    m = _ID_PREFIX_RE.match(segment)
    if m is None:
        return None, segment
    return int(m.group(1)), (m.group(2) or "").strip()


def format_segment(node: Node) -> str:
    return f"{node.id}: {node.text}"


def _match_child(graph: NodeGraph, parent: Node, segment: str, path: str) -> Node:
    node_id, text = parse_segment(segment)
    if node_id is not None:
        if node_id in parent.children:
            return graph.nodes[node_id]
        raise PathNotFound(path, segment)

    matches = [c for c in graph.children_of(parent.id) if c.text == text]
    if not matches:
        raise PathNotFound(path, segment)
    if len(matches) > 1:
        raise PathAmbiguous(path, segment, [m.id for m in matches])
    return matches[0]


def resolve(graph: NodeGraph, path: str) -> Node:
    """Resolve path to a node. Raises PathNotFound or PathAmbiguous."""
    node = graph.root
    for segment in split_path(path):
        node = _match_child(graph, node, segment, path)
    return node


# ---------------------------------------------------------------------------
# Interactive boundary
# ---------------------------------------------------------------------------


class ResolutionStatus(StrEnum):
    RESOLVED = "resolved"
    NOT_FOUND = "not-found"
    AMBIGUOUS = "ambiguous"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class Resolution:
    """Outcome of resolving user-entered path input."""

    status: ResolutionStatus
    path: str | None = None
    node: Node | None = None
    error: PathError | None = None

    @property
    def ok(self) -> bool:
        return self.status is ResolutionStatus.RESOLVED

    @property
    def cancelled(self) -> bool:
        return self.status is ResolutionStatus.CANCELLED


def resolve_input(graph: NodeGraph, raw: str | None) -> Resolution:
    """Resolve interactive input. Empty input (or no input at all) is a cancellation."""
    if raw is None or not raw.strip():
        return Resolution(ResolutionStatus.CANCELLED)

    path = raw.strip()
    try:
        node = resolve(graph, path)
    except PathAmbiguous as exc:
        return Resolution(ResolutionStatus.AMBIGUOUS, path=path, error=exc)
    except PathNotFound as exc:
        return Resolution(ResolutionStatus.NOT_FOUND, path=path, error=exc)
    return Resolution(ResolutionStatus.RESOLVED, path=path, node=node)


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------


def node_path(graph: NodeGraph, node_id: int, *, with_ids: bool = False) -> str:
    """Absolute path of a node, e.g. ``/Tasks/On-going``."""
    node = graph.get(node_id)
    chain = [node, *graph.ancestors_of(node_id)][:-1]
    if not chain:
        return "/"
    segments = [format_segment(n) if with_ids else n.text for n in reversed(chain)]
    return "/" + "/".join(segments)


def list_paths(
    graph: NodeGraph,
    start: int | None = None,
    *,
    kind: NodeKind | None = None,
    with_ids: bool = False,
) -> list[str]:
    """List ``/`` and every path below start in pre-order, relative to start.

    With kind set, only nodes of that kind are listed (and ``/`` is omitted).
    """
    start_id = graph.root_id if start is None else start
    paths: list[str] = [] if kind is not None else ["/"]
    prefixes: dict[int, str] = {start_id: ""}
    for node in graph.descendants_of(start_id):
        segment = format_segment(node) if with_ids else node.text
        path = f"{prefixes[node.parent]}/{segment}"  # type: ignore[index]
        prefixes[node.id] = path
        if kind is None or node.kind is kind:
            paths.append(path)
    return paths
