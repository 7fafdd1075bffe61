"""TreeSelector: which persisted tree applies to a working directory.

Global storage layout (``global_root``, default ``~/.local/share/mind``):

    tree.json                   # global (main) tree
    data/                       # data files of the global tree
    projects.json               # exact working dir -> project tree file
    projects/
        <name>-<hash>/
            tree.json           # a global-project tree
            data/

Local project tree, inside a project directory:

    <cwd>/.mind/
        tree.json
        data/

Selection order for a working directory: local tree (marker directory in that
exact directory, parents are not searched), then a global-project mapping
(exact string match of the resolved directory), then the global tree. Only the
global tree may be missing on disk; a marker or mapping that points at a
missing file is reported as TreeNotFound.
"""

from __future__ import annotations

import hashlib
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from mindtree.atomic import write_atomic
from mindtree.data import sanitize_name
from mindtree.errors import ParseError, TreeNotFound
from mindtree.models import TreeCategory

logger = logging.getLogger("mindtree.selector")

DEFAULT_LOCAL_MARKER = ".mind"
DEFAULT_TREE_FILE = "tree.json"
DEFAULT_PROJECTS_FILE = "projects.json"
_PROJECTS_DIR = "projects"


@dataclass(frozen=True)
class TreeLocation:
    category: TreeCategory
    path: Path                        # tree file
    working_dir: str | None = None    # project trees only

    @property
    def storage_root(self) -> Path:
        return self.path.parent

    @property
    def exists(self) -> bool:
        return self.path.is_file()


def normalize_cwd(cwd: Path | str) -> str:
    """Canonical string form of a working directory, used as the mapping key."""
    return str(Path(cwd).expanduser().resolve())


class TreeSelector:
    def __init__(
        self,
        global_root: Path | str,
        local_marker: str = DEFAULT_LOCAL_MARKER,
        tree_file: str = DEFAULT_TREE_FILE,
        projects_file: str = DEFAULT_PROJECTS_FILE,
    ) -> None:
        self.global_root = Path(global_root).expanduser()
        self.local_marker = local_marker
        self.tree_file = tree_file
        self.projects_file = projects_file

    # ------------------------------------------------------------------
    # Locations
    # ------------------------------------------------------------------

    @property
    def projects_path(self) -> Path:
        return self.global_root / self.projects_file

    def global_location(self) -> TreeLocation:
        return TreeLocation(TreeCategory.GLOBAL, self.global_root / self.tree_file)

    def local_location(self, cwd: Path | str) -> TreeLocation:
        """Where the local tree of cwd lives (whether or not it exists)."""
        directory = normalize_cwd(cwd)
        return TreeLocation(
            TreeCategory.LOCAL_PROJECT,
            Path(directory) / self.local_marker / self.tree_file,
            working_dir=directory,
        )

    def has_local_marker(self, cwd: Path | str) -> bool:
        return (Path(normalize_cwd(cwd)) / self.local_marker).is_dir()

    def project_mappings(self) -> dict[str, str]:
        """Working dir -> tree file (relative to global_root). Empty if none registered."""
        path = self.projects_path
        if not path.exists():
            return {}
        try:
            raw: Any = json.loads(path.read_text())
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            msg = f"malformed project mapping {path}: {exc}"
            raise ParseError(msg) from exc
        projects = raw.get("projects") if isinstance(raw, dict) else None
        if not isinstance(projects, dict) or not all(
            isinstance(k, str) and isinstance(v, str) for k, v in projects.items()
        ):
            msg = f"malformed project mapping {path}: expected {{'projects': {{dir: file}}}}"
            raise ParseError(msg)
        return projects

    def project_location(self, cwd: Path | str) -> TreeLocation | None:
        """The global-project tree mapped to exactly cwd, if any."""
        directory = normalize_cwd(cwd)
        rel = self.project_mappings().get(directory)
        if rel is None:
            return None
        return TreeLocation(TreeCategory.GLOBAL_PROJECT, self.global_root / rel, working_dir=directory)

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------

    def select(self, cwd: Path | str) -> TreeLocation:
        """Pick the tree for cwd: local, then global project, then global."""
        if self.has_local_marker(cwd):
            location = self.local_location(cwd)
            if not location.exists:
                raise TreeNotFound(location.path, "local tree marker present but no tree persisted")
            logger.debug("selected local tree %s", location.path)
            return location

        location = self.project_location(cwd)
        if location is not None:
            if not location.exists:
                raise TreeNotFound(location.path, "project tree registered but not persisted")
            logger.debug("selected project tree %s", location.path)
            return location

        return self.global_location()

    def locate(self, category: TreeCategory, cwd: Path | str) -> TreeLocation:
        """Explicitly select a category. Local and project trees must exist."""
        category = TreeCategory(category)
        if category is TreeCategory.GLOBAL:
            return self.global_location()
        if category is TreeCategory.LOCAL_PROJECT:
            location = self.local_location(cwd)
        else:
            found = self.project_location(cwd)
            if found is None:
                raise TreeNotFound(normalize_cwd(cwd), "no project tree registered")
            location = found
        if not location.exists:
            raise TreeNotFound(location.path)
        return location

    def list_trees(self, cwd: Path | str) -> list[TreeLocation]:
        """Every tree reachable from cwd: global, local (if marked) and all project trees."""
        trees = [self.global_location()]
        if self.has_local_marker(cwd):
            trees.append(self.local_location(cwd))
        for directory, rel in sorted(self.project_mappings().items()):
            trees.append(TreeLocation(TreeCategory.GLOBAL_PROJECT, self.global_root / rel, working_dir=directory))
        return trees

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def project_key(self, cwd: Path | str) -> str:
        directory = normalize_cwd(cwd)
        digest = hashlib.sha1(directory.encode(), usedforsecurity=False).hexdigest()[:12]
        name = sanitize_name(Path(directory).name) or "root"
        return f"{name}-{digest}"

    def register_project(self, cwd: Path | str) -> TreeLocation:
        """Map cwd to a project tree file next to the global tree. Idempotent."""
        directory = normalize_cwd(cwd)
        mappings = self.project_mappings()
        rel = mappings.get(directory)
        if rel is None:
            rel = f"{_PROJECTS_DIR}/{self.project_key(directory)}/{self.tree_file}"
            mappings[directory] = rel
            payload = json.dumps({"version": 1, "projects": mappings}, indent=2, sort_keys=True) + "\n"
            write_atomic(self.projects_path, payload.encode())
            logger.info("registered project tree for %s at %s", directory, rel)
        return TreeLocation(TreeCategory.GLOBAL_PROJECT, self.global_root / rel, working_dir=directory)
