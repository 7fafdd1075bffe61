"""TreeStore: load, save and create persisted trees.

    selector = TreeSelector("~/.local/share/mind")
    store = TreeStore(selector)
    loaded = store.open(Path.cwd())
    MutationEngine(loaded.tree.graph).rename(3, "done")
    store.save(loaded)

Concurrency is optimistic. A LoadedTree remembers the (mtime_ns, size) marker
of the file it was read from. ``check_fresh`` and ``save`` raise StaleRead if
the marker no longer matches, so another process's write is never silently
overwritten. Saves go through a temp file and a rename, so the tree file is
always either the old or the new document. No locks are taken.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from mindtree import codec
from mindtree.atomic import write_atomic
from mindtree.data import DEFAULT_DATA_DIR, DataFileStore
from mindtree.errors import StaleRead, TreeNotFound
from mindtree.graph import NodeGraph
from mindtree.models import Tree, TreeCategory
from mindtree.selector import TreeLocation

if TYPE_CHECKING:
    from mindtree.models import ContentType
    from mindtree.selector import TreeSelector

logger = logging.getLogger("mindtree.store")

FileMarker = tuple[int, int]


def file_marker(path: Path) -> FileMarker | None:
    try:
        st = path.stat()
    except FileNotFoundError:
        return None
    return st.st_mtime_ns, st.st_size


@dataclass
class LoadedTree:
    tree: Tree
    location: TreeLocation
    marker: FileMarker | None = None    # None: not on disk when loaded

    @property
    def path(self) -> Path:
        return self.location.path


class TreeStore:
    def __init__(
        self,
        selector: TreeSelector,
        root_text: str = "Mind",
        root_icon: str = "",
        data_dir: str = DEFAULT_DATA_DIR,
        templates: dict[ContentType, str] | None = None,
    ) -> None:
        self.selector = selector
        self.root_text = root_text
        self.root_icon = root_icon
        self.data_dir = data_dir
        self.templates = templates

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def open(self, cwd: Path | str) -> LoadedTree:
        """Select the tree that applies to cwd and load it."""
        return self.load(self.selector.select(cwd))

    def load(self, location: TreeLocation) -> LoadedTree:
        """Read and decode the tree at location.

        A missing global tree is created in memory (persisted on first save);
        any other missing tree raises TreeNotFound.
        """
        path = location.path
        marker = file_marker(path)
        if marker is None:
            if location.category is not TreeCategory.GLOBAL:
                raise TreeNotFound(path)
            logger.info("no global tree at %s; starting a new one", path)
            return LoadedTree(self._new_tree(location, self.root_text, self.root_icon), location, None)

        tree = codec.decode(path.read_bytes())
        tree.category = location.category
        tree.location = location
        logger.debug("loaded %s tree from %s (%d nodes)", location.category, path, len(tree.graph))
        return LoadedTree(tree, location, marker)

    def load_file(self, path: Path | str) -> LoadedTree:
        """Load an explicit tree file; its category comes from the document."""
        path = Path(path).expanduser().resolve()
        if not path.is_file():
            raise TreeNotFound(path)
        tree = codec.decode(path.read_bytes())
        location = TreeLocation(tree.category, path)
        tree.location = location
        return LoadedTree(tree, location, file_marker(path))

    def check_fresh(self, loaded: LoadedTree) -> None:
        """Raise StaleRead if the file changed on disk since loaded was read."""
        current = file_marker(loaded.path)
        if current != loaded.marker:
            logger.warning("%s changed on disk (%s -> %s)", loaded.path, loaded.marker, current)
            raise StaleRead(loaded.path)

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    def save(self, loaded: LoadedTree, *, force: bool = False) -> None:
        """Atomically persist loaded.tree. Raises StaleRead unless force is set."""
        if not force:
            self.check_fresh(loaded)
        write_atomic(loaded.path, codec.encode(loaded.tree))
        loaded.marker = file_marker(loaded.path)
        logger.info("saved %s tree to %s", loaded.location.category, loaded.path)

    def create(self, location: TreeLocation, root_text: str | None = None, root_icon: str | None = None) -> LoadedTree:
        """Explicitly create and persist a new tree. Raises FileExistsError if one exists."""
        if location.exists:
            msg = f"a tree already exists at {location.path}"
            raise FileExistsError(msg)
        tree = self._new_tree(
            location,
            root_text if root_text is not None else self.root_text,
            root_icon if root_icon is not None else self.root_icon,
        )
        loaded = LoadedTree(tree, location, None)
        self.save(loaded)
        return loaded

    def data_store(self, loaded: LoadedTree) -> DataFileStore:
        return DataFileStore(loaded.location.storage_root, self.data_dir, self.templates)

    def _new_tree(self, location: TreeLocation, root_text: str, root_icon: str) -> Tree:
        text = root_text.strip() or self.root_text
        return Tree(graph=NodeGraph.new(text, root_icon), category=location.category, location=location)
