"""TreeCodec: JSON tree documents <-> Tree, with schema migration.

Version 2 (current, the only shape ever written):

    {
      "version": 2,
      "category": "global",            # global | local-project | global-project
      "next_id": 7,                    # id high-water mark, ids are never reused
      "root": {
        "id": 1, "text": "Mind", "kind": "internal",
        "icon": "",                    # optional, written only when set
        "expanded": true,              # optional, written only when true
        "payload": {...},              # data: {"path", "content_type"}; url: {"link"}
        "children": [ ...same shape, in display order... ]
      }
    }

Version 1 (legacy, read only): the tree document is itself the root node,
``type`` is 0 (global) or 1 (local), nodes carry ``contents: [{"text": ...}]``,
``is_expanded``, an optional free-form node ``type`` and an optional ``data``
object, and have no ids. Decoding upgrades it to version 2 before building the
graph; nothing above this module ever sees a version 1 shape.
"""

from __future__ import annotations

import itertools
import json
import logging
from typing import TYPE_CHECKING, Any

from mindtree.errors import ParseError, ValidationError
from mindtree.graph import NodeGraph, check_invariants
from mindtree.models import (
    CURRENT_VERSION,
    ContentType,
    DataPayload,
    Node,
    NodeKind,
    Tree,
    TreeCategory,
    UrlPayload,
)

if TYPE_CHECKING:
    from collections.abc import Callable

    from mindtree.models import Payload

logger = logging.getLogger("mindtree.codec")


# ---------------------------------------------------------------------------
# Decode
# ---------------------------------------------------------------------------


def decode(data: bytes | str) -> Tree:
    """Decode a persisted document. Raises ParseError or ValidationError."""
    try:
        doc = json.loads(data)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        msg = f"malformed tree document: {exc}"
        raise ParseError(msg) from exc
    return from_document(doc)


def from_document(doc: Any) -> Tree:
    if not isinstance(doc, dict):
        msg = "tree document must be a JSON object"
        raise ParseError(msg)

    version = doc.get("version", 1)
    if not _is_int(version) or version < 1:
        msg = f"invalid schema version: {version!r}"
        raise ParseError(msg)
    if version > CURRENT_VERSION:
        msg = f"unsupported schema version {version} (this build reads up to {CURRENT_VERSION})"
        raise ParseError(msg)

    while version < CURRENT_VERSION:
        doc = _UPGRADES[version](doc)
        logger.info("upgraded tree document from version %d to %d", version, doc["version"])
        version = doc["version"]

    return _build(doc)


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _expect(raw: dict[str, Any], key: str, kind: type, default: Any = ...) -> Any:
    if key not in raw:
        if default is ...:
            msg = f"node record is missing {key!r}"
            raise ParseError(msg)
        return default
    value = raw[key]
    ok = _is_int(value) if kind is int else isinstance(value, kind)
    if not ok:
        msg = f"field {key!r} must be {kind.__name__}, got {type(value).__name__}"
        raise ParseError(msg)
    return value


def _parse_payload(raw: Any) -> Payload | None:
    if raw is None:
        return None
    if not isinstance(raw, dict):
        msg = "payload must be an object"
        raise ParseError(msg)
    try:
        if "path" in raw:
            if not isinstance(raw["path"], str):
                msg = "payload path must be a string"
                raise ParseError(msg)
            return DataPayload.from_dict(raw)
        if "link" in raw:
            if not isinstance(raw["link"], str):
                msg = "payload link must be a string"
                raise ParseError(msg)
            return UrlPayload.from_dict(raw)
    except ValueError as exc:
        msg = f"invalid payload: {exc}"
        raise ParseError(msg) from exc
    msg = f"payload has neither 'path' nor 'link': {raw!r}"
    raise ParseError(msg)


def _parse_node(raw: Any) -> tuple[Node, list[Any]]:
    """Parse one node record; returns the node (unlinked) and its raw children."""
    if not isinstance(raw, dict):
        msg = "node record must be an object"
        raise ParseError(msg)
    node_id = _expect(raw, "id", int)
    if node_id < 1:
        msg = f"node id must be positive, got {node_id}"
        raise ParseError(msg)
    try:
        kind = NodeKind(_expect(raw, "kind", str))
    except ValueError as exc:
        msg = f"node {node_id}: unknown kind {raw['kind']!r}"
        raise ParseError(msg) from exc
    node = Node(
        id=node_id,
        text=_expect(raw, "text", str),
        icon=_expect(raw, "icon", str, ""),
        kind=kind,
        payload=_parse_payload(raw.get("payload")),
        expanded=_expect(raw, "expanded", bool, False),
    )
    return node, _expect(raw, "children", list, [])


def _build(doc: dict[str, Any]) -> Tree:
    try:
        category = TreeCategory(doc.get("category", TreeCategory.GLOBAL))
    except ValueError as exc:
        msg = f"unknown tree category {doc.get('category')!r}"
        raise ParseError(msg) from exc
    next_id = _expect(doc, "next_id", int, 0)

    root, raw_children = _parse_node(doc.get("root"))
    graph = NodeGraph(root, next_id)
    problems: list[str] = []

    stack: list[tuple[int, list[Any]]] = [(root.id, raw_children)]
    while stack:
        parent_id, raws = stack.pop()
        for raw in raws:
            node, grand_children = _parse_node(raw)
            if node.id in graph:
                problems.append(f"duplicate node id {node.id}")
                continue
            graph.add(node)
            graph.attach_child(parent_id, node.id)
            stack.append((node.id, grand_children))

    problems.extend(check_invariants(graph))
    if problems:
        raise ValidationError(problems)
    return Tree(graph=graph, category=category, version=CURRENT_VERSION)


# ---------------------------------------------------------------------------
# Migrations
# ---------------------------------------------------------------------------

_LEGACY_TREE_TYPES = {0: TreeCategory.GLOBAL, 1: TreeCategory.LOCAL_PROJECT}

_LEGACY_NODE_TYPES = {
    "": NodeKind.INTERNAL,
    "internal": NodeKind.INTERNAL,
    "node": NodeKind.INTERNAL,
    "text": NodeKind.INTERNAL,
    "file": NodeKind.DATA,
    "data": NodeKind.DATA,
    "link": NodeKind.URL,
    "url": NodeKind.URL,
    "uri": NodeKind.URL,
}

_EXTENSION_TYPES = {ct.extension: ct for ct in ContentType}


def _legacy_payload(raw: Any) -> dict[str, Any] | None:
    if raw is None:
        return None
    if isinstance(raw, str):
        raw = {"file": raw}
    if not isinstance(raw, dict):
        msg = "legacy node data must be an object"
        raise ParseError(msg)
    if isinstance(raw.get("file"), str):
        path = raw["file"]
        suffix = path[path.rfind(".") :].lower() if "." in path else ""
        content_type = _EXTENSION_TYPES.get(suffix, ContentType.MARKDOWN)
        return {"path": path, "content_type": str(content_type)}
    for key in ("link", "url", "uri"):
        if isinstance(raw.get(key), str):
            return {"link": raw[key]}
    msg = f"unrecognised legacy node data: {raw!r}"
    raise ParseError(msg)


def _upgrade_v1_node(raw: Any) -> tuple[dict[str, Any], list[Any]]:
    if not isinstance(raw, dict):
        msg = "node record must be an object"
        raise ParseError(msg)
    contents = raw.get("contents")
    if not isinstance(contents, list) or not contents:
        msg = "legacy node record has no contents"
        raise ParseError(msg)
    last = contents[-1]
    if not isinstance(last, dict) or not isinstance(last.get("text"), str):
        msg = "legacy contents entry must be an object with a text string"
        raise ParseError(msg)

    payload = _legacy_payload(raw.get("data"))
    legacy_type = raw.get("type", "")
    legacy_type = legacy_type.strip().lower() if isinstance(legacy_type, str) else ""
    kind = _LEGACY_NODE_TYPES.get(legacy_type, NodeKind.INTERNAL)
    if payload is not None:
        kind = NodeKind.DATA if "path" in payload else NodeKind.URL
    elif kind is not NodeKind.INTERNAL:
        logger.warning("legacy %r node without data; loading it as internal", legacy_type)
        kind = NodeKind.INTERNAL

    node: dict[str, Any] = {
        "id": 0,
        "text": last["text"].strip(),
        "kind": str(kind),
        "children": [],
    }
    icon = _expect(raw, "icon", str, "").strip()
    if icon:
        node["icon"] = icon
    if _expect(raw, "is_expanded", bool, False):
        node["expanded"] = True
    if payload is not None:
        node["payload"] = payload
    return node, _expect(raw, "children", list, [])


def _upgrade_v1(doc: dict[str, Any]) -> dict[str, Any]:
    """Flatten ``contents`` into ``text``, normalise types, assign pre-order ids from 1."""
    tree_type = doc.get("type", 0)
    if not _is_int(tree_type) or tree_type not in _LEGACY_TREE_TYPES:
        msg = f"unknown legacy tree type {tree_type!r}"
        raise ParseError(msg)

    root, raw_children = _upgrade_v1_node(doc)
    stack: list[tuple[dict[str, Any], list[Any]]] = [(root, raw_children)]
    while stack:
        parent, raws = stack.pop()
        for raw in raws:
            child, grand_children = _upgrade_v1_node(raw)
            parent["children"].append(child)
            stack.append((child, grand_children))

    # ids in pre-order, starting at 1 for the root
    counter = itertools.count(1)
    walk = [root]
    while walk:
        node = walk.pop()
        node["id"] = next(counter)
        walk.extend(reversed(node["children"]))

    return {
        "version": 2,
        "category": str(_LEGACY_TREE_TYPES[tree_type]),
        "next_id": next(counter),
        "root": root,
    }


_UPGRADES: dict[int, Callable[[dict[str, Any]], dict[str, Any]]] = {
    1: _upgrade_v1,
}


# ---------------------------------------------------------------------------
# Encode
# ---------------------------------------------------------------------------


def _node_document(node: Node) -> dict[str, Any]:
    d: dict[str, Any] = {"id": node.id, "text": node.text}
    if node.icon:
        d["icon"] = node.icon
    d["kind"] = str(node.kind)
    if node.expanded:
        d["expanded"] = True
    if node.payload is not None:
        d["payload"] = node.payload.to_dict()
    d["children"] = []
    return d


def to_document(tree: Tree) -> dict[str, Any]:
    graph = tree.graph
    root = _node_document(graph.root)
    stack = [(graph.root, root)]
    while stack:
        node, doc = stack.pop()
        for child in graph.children_of(node.id):
            child_doc = _node_document(child)
            doc["children"].append(child_doc)
            stack.append((child, child_doc))
    return {
        "version": CURRENT_VERSION,
        "category": str(tree.category),
        "next_id": graph.next_id,
        "root": root,
    }


def encode(tree: Tree) -> bytes:
    """Encode a tree in the current schema version."""
    return (json.dumps(to_document(tree), indent=2, ensure_ascii=False) + "\n").encode()
