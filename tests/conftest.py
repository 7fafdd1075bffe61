from pathlib import Path

import pytest

from mindtree.graph import NodeGraph
from mindtree.mutations import InsertMode, MutationEngine
from mindtree.selector import TreeSelector
from mindtree.store import TreeStore


@pytest.fixture
def graph() -> NodeGraph:
    """
    1 Mind
    ├── 2 Tasks
    │   ├── 3 On-going
    │   │   └── 4 write report
    │   └── 5 Done
    └── 6 Links
    """
    g = NodeGraph.new("Mind")
    engine = MutationEngine(g)
    engine.insert(1, InsertMode.BOTTOM, "Tasks")
    engine.insert(2, InsertMode.BOTTOM, "On-going")
    engine.insert(3, InsertMode.BOTTOM, "write report")
    engine.insert(2, InsertMode.BOTTOM, "Done")
    engine.insert(1, InsertMode.BOTTOM, "Links")
    return g


@pytest.fixture
def global_root(tmp_path: Path) -> Path:
    return tmp_path / "share" / "mind"


@pytest.fixture
def selector(global_root: Path) -> TreeSelector:
    return TreeSelector(global_root)


@pytest.fixture
def store(selector: TreeSelector) -> TreeStore:
    return TreeStore(selector)


@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    d = tmp_path / "work" / "project"
    d.mkdir(parents=True)
    return d
