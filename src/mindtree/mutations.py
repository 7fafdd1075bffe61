"""MutationEngine: the only writer of a NodeGraph's structure.

Each operation checks everything it needs before touching the graph, so a
rejected operation raises and leaves the graph exactly as it was.

Positions:
    top / bottom     first / last child of the anchor
    before / after   sibling immediately before / after the anchor
"""

from __future__ import annotations

import logging
from enum import StrEnum
from typing import TYPE_CHECKING

from mindtree.errors import (
    CannotDeleteRoot,
    CannotMoveRoot,
    CycleDetected,
    EmptyText,
    NoParent,
    ValidationError,
)
from mindtree.models import ContentType, DataPayload, Node, NodeKind, UrlPayload, payload_matches

if TYPE_CHECKING:
    from pathlib import Path

    from mindtree.data import DataFileStore
    from mindtree.graph import NodeGraph
    from mindtree.models import Payload

logger = logging.getLogger("mindtree.mutations")


class Side(StrEnum):
    BEFORE = "before"
    AFTER = "after"


class ChildPosition(StrEnum):
    TOP = "top"
    BOTTOM = "bottom"


class InsertMode(StrEnum):
    TOP = "top"
    BOTTOM = "bottom"
    BEFORE = "before"
    AFTER = "after"

    @property
    def is_sibling(self) -> bool:
        return self in (InsertMode.BEFORE, InsertMode.AFTER)


def _clean_text(text: str) -> str:
    cleaned = text.strip()
    if not cleaned:
        raise EmptyText
    if "/" in cleaned:
        msg = f'node text cannot contain "/": {cleaned!r}'
        raise ValidationError(msg)
    return cleaned


def _check_payload(node_id: int | None, kind: NodeKind, payload: Payload | None) -> None:
    if not payload_matches(kind, payload):
        what = "a new node" if node_id is None else f"node {node_id}"
        msg = f"{what} of kind {kind} cannot carry payload {payload!r}"
        raise ValidationError(msg)


class MutationEngine:
    """Insert, rename, move, delete and re-type nodes of one graph."""

    def __init__(self, graph: NodeGraph, data_store: DataFileStore | None = None) -> None:
        self.graph = graph
        self.data_store = data_store

    # ------------------------------------------------------------------
    # Insert
    # ------------------------------------------------------------------

    def insert_adjacent(
        self,
        anchor: int,
        side: Side,
        text: str,
        icon: str = "",
        kind: NodeKind = NodeKind.INTERNAL,
        payload: Payload | None = None,
    ) -> Node:
        """Create a sibling right before or after anchor."""
        parent = self.graph.parent_of(anchor)
        if parent is None:
            raise NoParent(anchor)
        text = _clean_text(text)
        _check_payload(None, kind, payload)

        index = parent.children.index(anchor) + (1 if Side(side) is Side.AFTER else 0)
        return self._create(parent.id, index, text, icon, kind, payload)

    def insert_child(
        self,
        anchor: int,
        position: ChildPosition,
        text: str,
        icon: str = "",
        kind: NodeKind = NodeKind.INTERNAL,
        payload: Payload | None = None,
    ) -> Node:
        """Create the first or last child of anchor."""
        parent = self.graph.get(anchor)
        text = _clean_text(text)
        _check_payload(None, kind, payload)

        index = 0 if ChildPosition(position) is ChildPosition.TOP else len(parent.children)
        return self._create(parent.id, index, text, icon, kind, payload)

    def insert(
        self,
        anchor: int,
        mode: InsertMode,
        text: str,
        icon: str = "",
        kind: NodeKind = NodeKind.INTERNAL,
        payload: Payload | None = None,
    ) -> Node:
        mode = InsertMode(mode)
        if mode.is_sibling:
            return self.insert_adjacent(anchor, Side(mode.value), text, icon, kind, payload)
        return self.insert_child(anchor, ChildPosition(mode.value), text, icon, kind, payload)

    def insert_with_data(
        self,
        anchor: int,
        mode: InsertMode,
        text: str,
        icon: str = "",
        content_type: ContentType = ContentType.MARKDOWN,
        *,
        use_template: bool = True,
    ) -> tuple[Node, Path]:
        """Insert a ``data`` node and create its backing file in one step.

        Returns the node and the absolute path to hand to an external opener.
        The template is rendered before the graph is touched; the insertion is
        undone, id counter included, if the file cannot be written.
        """
        if self.data_store is None:
            msg = "no data store configured for this tree"
            raise ValidationError(msg)
        content_type = ContentType(content_type)
        text = _clean_text(text)
        contents = self.data_store.initial_contents(text, content_type, use_template=use_template)
        next_id = self.graph.next_id
        payload = self.data_store.payload_for(next_id, content_type)
        path = self.data_store.resolve(payload)
        node = self.insert(anchor, mode, text, icon, NodeKind.DATA, payload)

        try:
            self.data_store.write_new(path, contents)
        except OSError:
            self._remove(node.id)
            self.graph.next_id = next_id
            raise
        return node, path

    def _create(
        self,
        parent_id: int,
        index: int,
        text: str,
        icon: str,
        kind: NodeKind,
        payload: Payload | None,
    ) -> Node:
        node = Node(
            id=self.graph.allocate_id(),
            text=text,
            icon=icon.strip(),
            kind=NodeKind(kind),
            payload=payload,
        )
        self.graph.add(node)
        self.graph.attach_child(parent_id, node.id, index)
        logger.debug("inserted node %d under %d at %d", node.id, parent_id, index)
        return node

    # ------------------------------------------------------------------
    # Edit in place
    # ------------------------------------------------------------------

    def rename(self, target: int, new_text: str) -> Node:
        node = self.graph.get(target)
        node.text = _clean_text(new_text)
        return node

    def set_icon(self, target: int, icon: str) -> Node:
        node = self.graph.get(target)
        node.icon = icon.strip()
        return node

    def set_expanded(self, target: int, expanded: bool) -> Node:
        node = self.graph.get(target)
        node.expanded = expanded
        return node

    def toggle_expanded(self, target: int) -> Node:
        node = self.graph.get(target)
        node.expanded = not node.expanded
        return node

    # ------------------------------------------------------------------
    # Kind and payload
    # ------------------------------------------------------------------

    def convert_kind(self, target: int, kind: NodeKind, payload: Payload | None = None) -> Node:
        """Change a node's kind; the previous payload is dropped."""
        node = self.graph.get(target)
        kind = NodeKind(kind)
        _check_payload(target, kind, payload)
        node.kind = kind
        node.payload = payload
        logger.debug("node %d is now %s", target, kind)
        return node

    def set_data(self, target: int, path: str, content_type: ContentType = ContentType.MARKDOWN) -> Node:
        return self.convert_kind(target, NodeKind.DATA, DataPayload(path, ContentType(content_type)))

    def set_url(self, target: int, link: str) -> Node:
        return self.convert_kind(target, NodeKind.URL, UrlPayload(link))

    def clear_payload(self, target: int) -> Node:
        return self.convert_kind(target, NodeKind.INTERNAL)

    # ------------------------------------------------------------------
    # Delete / move
    # ------------------------------------------------------------------

    def delete(self, target: int) -> list[int]:
        """Remove target and its whole subtree. Returns the removed ids.

        Callers gate this behind a user confirmation; the engine does not ask.
        """
        node = self.graph.get(target)
        if node.is_root:
            raise CannotDeleteRoot
        removed = self._remove(target)
        logger.info("deleted node %d (%d nodes removed)", target, len(removed))
        return removed

    def _remove(self, target: int) -> list[int]:
        parent = self.graph.get(target).parent
        if parent is not None:
            self.graph.detach_child(parent, target)
        return self.graph.discard_subtree(target)

    def move(self, target: int, destination: int, mode: InsertMode) -> Node:
        """Re-parent target relative to destination, keeping its subtree intact."""
        mode = InsertMode(mode)
        node = self.graph.get(target)
        dest = self.graph.get(destination)
        if node.is_root:
            raise CannotMoveRoot
        if destination == target or self.graph.is_descendant(destination, of=target):
            raise CycleDetected(target, destination)
        if mode.is_sibling and dest.is_root:
            raise NoParent(destination)

        old_parent = node.parent
        self.graph.detach_child(old_parent, target)  # type: ignore[arg-type]

        if mode is InsertMode.TOP:
            new_parent, index = destination, 0
        elif mode is InsertMode.BOTTOM:
            new_parent, index = destination, len(dest.children)
        else:
            new_parent = dest.parent
            siblings = self.graph.get(new_parent).children  # type: ignore[arg-type]
            index = siblings.index(destination) + (1 if mode is InsertMode.AFTER else 0)

        self.graph.attach_child(new_parent, target, index)  # type: ignore[arg-type]
        logger.debug("moved node %d from %s to %s (%s %d)", target, old_parent, new_parent, mode, destination)
        return node
