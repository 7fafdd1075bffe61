"""NodeGraph: arena of nodes keyed by stable integer ids.

Parent/child relations are stored as ids, never as object references, so
re-parenting is a relink of two id lists and cycle checks are a bounded walk
up ``parent`` ids.

The structural edits here (``add``, ``attach_child``, ``detach_child``,
``discard_subtree``) do not enforce any invariant. MutationEngine validates
before calling them; the codec validates after building a graph with
``check_invariants``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from mindtree.models import Node, payload_matches

if TYPE_CHECKING:
    from collections.abc import Iterator


class NodeGraph:
    def __init__(self, root: Node, next_id: int | None = None) -> None:
        self.nodes: dict[int, Node] = {root.id: root}
        self.root_id = root.id
        self.next_id = max(next_id or 0, root.id + 1)

    @classmethod
    def new(cls, text: str, icon: str = "") -> NodeGraph:
        """Create a graph holding a single root node with id 1."""
        return cls(Node(id=1, text=text.strip(), icon=icon.strip()))

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    @property
    def root(self) -> Node:
        return self.nodes[self.root_id]

    def __len__(self) -> int:
        return len(self.nodes)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self.nodes

    def __iter__(self) -> Iterator[Node]:
        for node, _ in self.walk():
            yield node

    def get(self, node_id: int) -> Node:
        try:
            return self.nodes[node_id]
        except KeyError:
            msg = f"no node with id {node_id}"
            raise KeyError(msg) from None

    def find(self, node_id: int) -> Node | None:
        return self.nodes.get(node_id)

    def children_of(self, node_id: int) -> list[Node]:
        return [self.nodes[c] for c in self.get(node_id).children]

    def parent_of(self, node_id: int) -> Node | None:
        parent = self.get(node_id).parent
        return None if parent is None else self.nodes[parent]

    def ancestors_of(self, node_id: int) -> Iterator[Node]:
        """Yield ancestors nearest first. Stops after len(graph) steps on a corrupt cycle."""
        current = self.get(node_id).parent
        steps = 0
        while current is not None and steps < len(self.nodes):
            node = self.nodes.get(current)
            if node is None:
                return
            yield node
            current = node.parent
            steps += 1

    def descendants_of(self, node_id: int) -> Iterator[Node]:
        """Yield all descendants in pre-order, excluding node_id itself."""
        walker = self.walk(node_id)
        next(walker)
        for node, _ in walker:
            yield node

    def walk(self, start: int | None = None) -> Iterator[tuple[Node, int]]:
        """Pre-order traversal yielding (node, depth); depth of start is 0."""
        start_id = self.root_id if start is None else start
        stack = [(self.get(start_id), 0)]
        while stack:
            node, depth = stack.pop()
            yield node, depth
            stack.extend((self.nodes[c], depth + 1) for c in reversed(node.children))

    def index_in_parent(self, node_id: int) -> int | None:
        parent = self.parent_of(node_id)
        if parent is None:
            return None
        return parent.children.index(node_id)

    def is_descendant(self, node_id: int, of: int) -> bool:
        """True if node_id lies strictly below ``of``."""
        return any(a.id == of for a in self.ancestors_of(node_id))

    def node_at_line(self, line: int) -> Node | None:
        """Return the node shown on a 0-indexed visual line.

        The root is line 0; children of collapsed nodes are not shown.
        """
        if line < 0:
            return None
        stack = [self.root]
        while stack:
            node = stack.pop()
            if line == 0:
                return node
            line -= 1
            if node.expanded:
                stack.extend(self.nodes[c] for c in reversed(node.children))
        return None

    # ------------------------------------------------------------------
    # Structural edits (no validation)
    # ------------------------------------------------------------------

    def allocate_id(self) -> int:
        node_id = self.next_id
        self.next_id += 1
        return node_id

    def add(self, node: Node) -> None:
        """Register a detached node in the arena."""
        self.nodes[node.id] = node
        if node.id >= self.next_id:
            self.next_id = node.id + 1

    def attach_child(self, parent_id: int, child_id: int, index: int | None = None) -> None:
        parent = self.nodes[parent_id]
        child = self.nodes[child_id]
        if index is None:
            parent.children.append(child_id)
        else:
            parent.children.insert(index, child_id)
        child.parent = parent_id

    def detach_child(self, parent_id: int, child_id: int) -> int:
        """Remove child_id from its parent's list; return the index it had."""
        parent = self.nodes[parent_id]
        index = parent.children.index(child_id)
        del parent.children[index]
        self.nodes[child_id].parent = None
        return index

    def discard_subtree(self, node_id: int) -> list[int]:
        """Drop node_id and all its descendants from the arena. Returns dropped ids."""
        dropped = [n.id for n, _ in self.walk(node_id)]
        for nid in dropped:
            del self.nodes[nid]
        return dropped


def check_invariants(graph: NodeGraph) -> list[str]:
    """Return a description of every invariant the graph violates (empty if sound)."""
    problems: list[str] = []
    nodes = graph.nodes

    if graph.root_id not in nodes:
        return [f"root {graph.root_id} is missing"]
    if graph.root.parent is not None:
        problems.append(f"root {graph.root_id} has a parent")

    seen: dict[int, int] = {}
    for node_id, node in nodes.items():
        if node.id != node_id:
            problems.append(f"node stored under id {node_id} claims id {node.id}")
        if node_id >= graph.next_id:
            problems.append(f"node id {node_id} is not below next_id {graph.next_id}")
        if not node.text.strip():
            problems.append(f"node {node_id} has empty text")
        elif node.text != node.text.strip():
            problems.append(f"node {node_id} text is not trimmed")
        if not payload_matches(node.kind, node.payload):
            problems.append(f"node {node_id} of kind {node.kind} has a mismatched payload")
        for child_id in node.children:
            child = nodes.get(child_id)
            if child is None:
                problems.append(f"node {node_id} lists unknown child {child_id}")
                continue
            if child.parent != node_id:
                problems.append(f"node {child_id} is listed under {node_id} but its parent is {child.parent}")
            seen[child_id] = seen.get(child_id, 0) + 1

    for child_id, count in seen.items():
        if count > 1:
            problems.append(f"node {child_id} appears {count} times in child lists")

    for node_id, node in nodes.items():
        if node_id == graph.root_id:
            continue
        if node.parent is None:
            problems.append(f"node {node_id} has no parent")
        elif node_id not in seen:
            problems.append(f"node {node_id} is missing from the child list of {node.parent}")

    # Every node must reach the root without revisiting itself.
    for node_id in nodes:
        visited = {node_id}
        current = nodes[node_id].parent
        while current is not None:
            if current in visited:
                problems.append(f"node {node_id} is its own ancestor")
                break
            visited.add(current)
            parent = nodes.get(current)
            if parent is None:
                problems.append(f"node {node_id} has unknown ancestor {current}")
                break
            current = parent.parent

    return problems
