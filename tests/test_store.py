import json
from pathlib import Path

import pytest

from mindtree import codec
from mindtree.errors import ParseError, StaleRead, TreeNotFound
from mindtree.models import TreeCategory
from mindtree.mutations import InsertMode, MutationEngine
from mindtree.selector import TreeSelector
from mindtree.store import TreeStore


def test_missing_global_tree_is_created_in_memory(store: TreeStore, project_dir: Path, global_root: Path) -> None:
    loaded = store.open(project_dir)

    assert loaded.tree.category is TreeCategory.GLOBAL
    assert loaded.tree.root.text == "Mind"
    assert loaded.marker is None
    assert not (global_root / "tree.json").exists()


def test_save_persists_and_reloads(store: TreeStore, project_dir: Path, global_root: Path) -> None:
    loaded = store.open(project_dir)
    MutationEngine(loaded.tree.graph).insert(1, InsertMode.BOTTOM, "Tasks")

    store.save(loaded)

    assert (global_root / "tree.json").is_file()
    assert not list(global_root.glob(".*.tmp"))
    again = store.open(project_dir)
    assert again.tree.graph.nodes == loaded.tree.graph.nodes
    assert again.marker == loaded.marker


def test_written_document_is_current_version(store: TreeStore, project_dir: Path, global_root: Path) -> None:
    store.save(store.open(project_dir))

    doc = json.loads((global_root / "tree.json").read_text())

    assert doc["version"] == 2
    assert doc["category"] == "global"
    assert doc["next_id"] == 2


def test_legacy_file_is_upgraded_on_load_and_saved_as_v2(store: TreeStore, project_dir: Path, global_root: Path) -> None:
    global_root.mkdir(parents=True)
    path = global_root / "tree.json"
    path.write_text(json.dumps({"type": 0, "contents": [{"text": "Old"}], "children": [{"contents": [{"text": "a"}]}]}))

    loaded = store.open(project_dir)
    store.save(loaded)

    doc = json.loads(path.read_text())
    assert doc["version"] == 2
    assert doc["root"]["children"][0] == {"id": 2, "text": "a", "kind": "internal", "children": []}


def test_concurrent_write_is_detected(store: TreeStore, project_dir: Path, global_root: Path) -> None:
    first = store.open(project_dir)
    store.save(first)
    second = store.open(project_dir)

    # Another process writes a different tree.
    MutationEngine(second.tree.graph).insert(1, InsertMode.BOTTOM, "from elsewhere")
    store.save(second)

    MutationEngine(first.tree.graph).insert(1, InsertMode.BOTTOM, "mine")
    with pytest.raises(StaleRead):
        store.save(first)

    reloaded = store.open(project_dir)
    assert [c.text for c in reloaded.tree.graph.children_of(1)] == ["from elsewhere"]


def test_force_save_overwrites(store: TreeStore, project_dir: Path, global_root: Path) -> None:
    loaded = store.open(project_dir)
    store.save(loaded)
    (global_root / "tree.json").write_text(codec.encode(loaded.tree).decode() + "\n\n")

    with pytest.raises(StaleRead):
        store.check_fresh(loaded)
    store.save(loaded, force=True)
    store.check_fresh(loaded)


def test_missing_local_tree_is_not_created_implicitly(store: TreeStore, project_dir: Path) -> None:
    location = store.selector.local_location(project_dir)

    with pytest.raises(TreeNotFound):
        store.load(location)
    assert not location.path.exists()


def test_create_local_tree(store: TreeStore, project_dir: Path) -> None:
    location = store.selector.local_location(project_dir)

    created = store.create(location, root_text="project")

    assert location.exists
    loaded = store.open(project_dir)
    assert loaded.tree.category is TreeCategory.LOCAL_PROJECT
    assert loaded.tree.root.text == "project"
    assert loaded.marker == created.marker
    with pytest.raises(FileExistsError):
        store.create(location)


def test_project_tree_round_trip(store: TreeStore, project_dir: Path) -> None:
    location = store.selector.register_project(project_dir)
    store.create(location)

    loaded = store.open(project_dir)

    assert loaded.tree.category is TreeCategory.GLOBAL_PROJECT
    assert loaded.path == location.path
    assert store.data_store(loaded).storage_root == location.path.parent


def test_corrupt_file_is_a_parse_error(store: TreeStore, project_dir: Path, global_root: Path) -> None:
    global_root.mkdir(parents=True)
    (global_root / "tree.json").write_text("{oops")

    with pytest.raises(ParseError):
        store.open(project_dir)


def test_load_file(store: TreeStore, tmp_path: Path) -> None:
    selector = TreeSelector(tmp_path / "elsewhere")
    other = TreeStore(selector)
    location = selector.global_location()
    other.create(location, root_text="Elsewhere")

    loaded = store.load_file(location.path)

    assert loaded.tree.root.text == "Elsewhere"
    assert loaded.path == location.path.resolve()
    with pytest.raises(TreeNotFound):
        store.load_file(tmp_path / "missing.json")


def test_root_settings_apply_to_new_trees(global_root: Path, project_dir: Path) -> None:
    store = TreeStore(TreeSelector(global_root), root_text="Brain", root_icon="*")

    loaded = store.open(project_dir)

    assert loaded.tree.root.text == "Brain"
    assert loaded.tree.root.icon == "*"
