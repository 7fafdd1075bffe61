"""Files and links attached to ``data`` / ``url`` nodes.

Layout, relative to a tree's storage root (the directory holding its tree file):

    tree.json
    data/
        <id>.md        # backing file of node <id> (extension from content type)

Payload paths are stored relative to the storage root (``data/12.md``) so a
tree directory can be moved without rewriting it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import TYPE_CHECKING

from mindtree.errors import ValidationError
from mindtree.models import ContentType, DataPayload, NodeKind, UrlPayload

if TYPE_CHECKING:
    from mindtree.models import Node

logger = logging.getLogger("mindtree.data")

DEFAULT_DATA_DIR = "data"

DEFAULT_TEMPLATES: dict[ContentType, str] = {
    ContentType.MARKDOWN: "# {text}\n",
    ContentType.TEXT: "",
    ContentType.ORG: "#+TITLE: {text}\n",
    ContentType.JSON: "{{}}\n",
}


def sanitize_name(name: str) -> str:
    """Reduce text to a filesystem-friendly slug (spaces, dots and slashes become ``-``)."""
    out = []
    for c in name.strip():
        if c in " ./\\":
            out.append("-")
        elif (c.isascii() and c.isalnum()) or c in "-_":
            out.append(c)
    return "".join(out)


@dataclass(frozen=True)
class OpenTarget:
    """What an external opener should be handed for a node."""

    kind: NodeKind
    path: Path | None = None
    url: str | None = None

    @property
    def target(self) -> str:
        return str(self.path) if self.path is not None else self.url or ""


class DataFileStore:
    """Creates and resolves backing files under one tree's storage root."""

    def __init__(
        self,
        storage_root: Path | str,
        data_dir: str = DEFAULT_DATA_DIR,
        templates: dict[ContentType, str] | None = None,
    ) -> None:
        self.storage_root = Path(storage_root)
        self.data_dir = data_dir
        self.templates = {**DEFAULT_TEMPLATES, **(templates or {})}

    def file_name(self, node_id: int, content_type: ContentType = ContentType.MARKDOWN) -> str:
        return f"{node_id}{content_type.extension}"

    def relative_path(self, node_id: int, content_type: ContentType = ContentType.MARKDOWN) -> str:
        return str(PurePosixPath(self.data_dir) / self.file_name(node_id, content_type))

    def payload_for(self, node_id: int, content_type: ContentType = ContentType.MARKDOWN) -> DataPayload:
        return DataPayload(path=self.relative_path(node_id, content_type), content_type=content_type)

    def resolve(self, payload: DataPayload) -> Path:
        """Absolute path of a payload. Raises ValidationError if it escapes the storage root."""
        rel = PurePosixPath(payload.path)
        if rel.is_absolute() or not payload.path.strip():
            msg = f"data path must be relative to the tree storage root: {payload.path!r}"
            raise ValidationError(msg)
        root = self.storage_root.resolve()
        full = (root / rel).resolve()
        if not full.is_relative_to(root):
            msg = f"data path escapes the tree storage root: {payload.path!r}"
            raise ValidationError(msg)
        return full

    def render_template(self, text: str, content_type: ContentType) -> str:
        """Fill the content type's template. A broken template raises ValidationError."""
        template = self.templates.get(content_type, "")
        try:
            return template.format(text=text, slug=sanitize_name(text))
        except (KeyError, IndexError, ValueError) as exc:
            msg = f"invalid template for {content_type}: {template!r} ({exc!r})"
            raise ValidationError(msg) from exc

    def initial_contents(self, text: str, content_type: ContentType, *, use_template: bool = True) -> str:
        return self.render_template(text, content_type) if use_template else ""

    def create_file(
        self,
        node_id: int,
        text: str,
        content_type: ContentType = ContentType.MARKDOWN,
        *,
        use_template: bool = True,
    ) -> Path:
        """Create the backing file for node_id. An existing file is left untouched."""
        path = self.resolve(self.payload_for(node_id, content_type))
        if path.exists():
            return path
        return self.write_new(path, self.initial_contents(text, content_type, use_template=use_template))

    def ensure_file(self, node: Node, *, use_template: bool = True) -> Path:
        """Absolute path of a data node's file, creating it if it does not exist yet."""
        if not isinstance(node.payload, DataPayload):
            msg = f"node {node.id} has no file attached"
            raise ValidationError(msg)
        path = self.resolve(node.payload)
        if path.exists():
            return path
        contents = self.initial_contents(node.text, node.payload.content_type, use_template=use_template)
        return self.write_new(path, contents)

    def locate(self, node: Node) -> OpenTarget | None:
        """Like open_target, but never creates anything on disk."""
        if isinstance(node.payload, DataPayload):
            return OpenTarget(NodeKind.DATA, path=self.resolve(node.payload))
        if isinstance(node.payload, UrlPayload):
            return OpenTarget(NodeKind.URL, url=node.payload.link)
        return None

    def open_target(self, node: Node) -> OpenTarget | None:
        """Resolve what to hand an external opener; None for nodes without data.

        The backing file of a data node is created if it is missing.
        """
        if isinstance(node.payload, DataPayload):
            return OpenTarget(NodeKind.DATA, path=self.ensure_file(node))
        if isinstance(node.payload, UrlPayload):
            return OpenTarget(NodeKind.URL, url=node.payload.link)
        return None

    def write_new(self, path: Path, contents: str) -> Path:
        """Write contents to path unless a file is already there."""
        if path.exists():
            return path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(contents)
        logger.info("created data file %s", path)
        return path
