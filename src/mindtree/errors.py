"""Error kinds raised by the tree engine.

Every engine operation either returns a value or raises one of these; none
leaves the in-memory graph half-mutated. Interactive cancellation is not an
error and has no class here: see ``mindtree.paths.ResolutionStatus``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pathlib import Path


class MindError(Exception):
    """Base class for all engine errors."""


# ---------------------------------------------------------------------------
# Persistence
# ---------------------------------------------------------------------------


class ParseError(MindError):
    """Persisted bytes are not a well-formed tree document."""


class ValidationError(MindError):
    """A structure violates the tree invariants."""

    def __init__(self, problems: list[str] | str) -> None:
        self.problems = [problems] if isinstance(problems, str) else list(problems)
        super().__init__("; ".join(self.problems))


class TreeNotFound(MindError):
    """A local or project tree is referenced but does not exist."""

    def __init__(self, location: Path | str, reason: str = "no tree persisted") -> None:
        self.location = location
        super().__init__(f"{reason} at {location}")


class StaleRead(MindError):
    """The tree file changed on disk since it was loaded."""

    def __init__(self, path: Path | str) -> None:
        self.path = path
        super().__init__(f"{path} changed on disk since it was loaded; reload and retry")


# ---------------------------------------------------------------------------
# Path resolution
# ---------------------------------------------------------------------------


class PathError(MindError):
    def __init__(self, path: str, message: str) -> None:
        self.path = path
        super().__init__(message)


class PathNotFound(PathError):
    def __init__(self, path: str, segment: str | None = None) -> None:
        self.segment = segment
        detail = f" (no match for {segment!r})" if segment is not None else ""
        super().__init__(path, f"path not found: {path}{detail}")


class PathAmbiguous(PathError):
    def __init__(self, path: str, segment: str, candidates: list[int]) -> None:
        self.segment = segment
        self.candidates = candidates
        ids = ", ".join(str(c) for c in candidates)
        super().__init__(
            path,
            f"ambiguous path: {path} ({segment!r} matches nodes {ids}; prefix the segment with '<id>: ')",
        )


# ---------------------------------------------------------------------------
# Mutations
# ---------------------------------------------------------------------------


class MutationError(MindError):
    """A mutation was rejected; the graph is unchanged."""


class CycleDetected(MutationError):
    def __init__(self, target: int, destination: int) -> None:
        self.target = target
        self.destination = destination
        super().__init__(f"cannot move node {target} under itself or its descendant {destination}")


class CannotMoveRoot(MutationError):
    def __init__(self) -> None:
        super().__init__("cannot move the root node")


class CannotDeleteRoot(MutationError):
    def __init__(self) -> None:
        super().__init__("cannot delete the root node")


class EmptyText(MutationError):
    def __init__(self) -> None:
        super().__init__("node text cannot be empty")


class NoParent(MutationError):
    def __init__(self, node_id: int) -> None:
        self.node_id = node_id
        super().__init__(f"node {node_id} has no parent; it has no siblings")
