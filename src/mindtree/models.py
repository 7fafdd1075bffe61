"""Data models for the tree engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from mindtree.graph import NodeGraph
    from mindtree.selector import TreeLocation

CURRENT_VERSION = 2


class NodeKind(StrEnum):
    INTERNAL = "internal"
    DATA = "data"
    URL = "url"


class ContentType(StrEnum):
    MARKDOWN = "markdown"
    TEXT = "text"
    ORG = "org"
    JSON = "json"

    @property
    def extension(self) -> str:
        return _EXTENSIONS[self]


_EXTENSIONS = {
    ContentType.MARKDOWN: ".md",
    ContentType.TEXT: ".txt",
    ContentType.ORG: ".org",
    ContentType.JSON: ".json",
}


class TreeCategory(StrEnum):
    GLOBAL = "global"
    LOCAL_PROJECT = "local-project"
    GLOBAL_PROJECT = "global-project"


@dataclass(frozen=True)
class DataPayload:
    """File attached to a ``data`` node; path is relative to the tree's storage root."""

    path: str
    content_type: ContentType = ContentType.MARKDOWN

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> DataPayload:
        return cls(
            path=d["path"],
            content_type=ContentType(d.get("content_type", ContentType.MARKDOWN)),
        )

    def to_dict(self) -> dict[str, Any]:
        return {"path": self.path, "content_type": str(self.content_type)}


@dataclass(frozen=True)
class UrlPayload:
    """Link attached to a ``url`` node. Stored verbatim, never validated."""

    link: str

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> UrlPayload:
        return cls(link=d["link"])

    def to_dict(self) -> dict[str, Any]:
        return {"link": self.link}


Payload = DataPayload | UrlPayload

PAYLOAD_TYPES: dict[NodeKind, type | None] = {
    NodeKind.INTERNAL: None,
    NodeKind.DATA: DataPayload,
    NodeKind.URL: UrlPayload,
}


def payload_matches(kind: NodeKind, payload: Payload | None) -> bool:
    """True when payload is the one (or the absence) that kind requires."""
    expected = PAYLOAD_TYPES[kind]
    if expected is None:
        return payload is None
    return isinstance(payload, expected)


@dataclass
class Node:
    """A single tree element. Relations are ids into the owning NodeGraph."""

    id: int
    text: str
    icon: str = ""
    kind: NodeKind = NodeKind.INTERNAL
    payload: Payload | None = None
    expanded: bool = False
    parent: int | None = None
    children: list[int] = field(default_factory=list)

    @property
    def is_root(self) -> bool:
        return self.parent is None

    @property
    def has_data(self) -> bool:
        return self.kind is not NodeKind.INTERNAL


@dataclass
class Tree:
    """A rooted NodeGraph plus its storage metadata."""

    graph: NodeGraph
    category: TreeCategory = TreeCategory.GLOBAL
    version: int = CURRENT_VERSION
    location: TreeLocation | None = None

    @property
    def root(self) -> Node:
        return self.graph.root
