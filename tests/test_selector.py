import json
from pathlib import Path

import pytest

from mindtree.errors import ParseError, TreeNotFound
from mindtree.models import TreeCategory
from mindtree.selector import TreeSelector, normalize_cwd


def _touch_tree(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("{}")


def test_defaults_to_global(selector: TreeSelector, project_dir: Path, global_root: Path) -> None:
    location = selector.select(project_dir)

    assert location.category is TreeCategory.GLOBAL
    assert location.path == global_root / "tree.json"
    assert location.storage_root == global_root


def test_local_marker_wins(selector: TreeSelector, project_dir: Path) -> None:
    _touch_tree(selector.register_project(project_dir).path)
    _touch_tree(project_dir / ".mind" / "tree.json")

    location = selector.select(project_dir)

    assert location.category is TreeCategory.LOCAL_PROJECT
    assert location.path == Path(normalize_cwd(project_dir)) / ".mind" / "tree.json"
    assert location.working_dir == normalize_cwd(project_dir)


def test_project_mapping_is_used_without_marker(selector: TreeSelector, project_dir: Path) -> None:
    registered = selector.register_project(project_dir)
    _touch_tree(registered.path)

    location = selector.select(project_dir)

    assert location == registered
    assert location.category is TreeCategory.GLOBAL_PROJECT


def test_project_mapping_requires_exact_directory(selector: TreeSelector, project_dir: Path) -> None:
    _touch_tree(selector.register_project(project_dir).path)
    sub = project_dir / "src"
    sub.mkdir()

    assert selector.select(sub).category is TreeCategory.GLOBAL


def test_marker_in_ancestor_is_ignored(selector: TreeSelector, project_dir: Path) -> None:
    _touch_tree(project_dir / ".mind" / "tree.json")
    sub = project_dir / "src"
    sub.mkdir()

    assert selector.select(sub).category is TreeCategory.GLOBAL


def test_project_mapping_beats_marker_in_ancestor(selector: TreeSelector, project_dir: Path) -> None:
    sub = project_dir / "src"
    sub.mkdir()
    _touch_tree(selector.register_project(sub).path)
    _touch_tree(project_dir / ".mind" / "tree.json")

    location = selector.select(sub)

    assert location.category is TreeCategory.GLOBAL_PROJECT
    assert location.working_dir == normalize_cwd(sub)


def test_marker_without_tree_is_not_found(selector: TreeSelector, project_dir: Path) -> None:
    (project_dir / ".mind").mkdir()

    with pytest.raises(TreeNotFound):
        selector.select(project_dir)


def test_mapping_without_tree_is_not_found(selector: TreeSelector, project_dir: Path) -> None:
    selector.register_project(project_dir)

    with pytest.raises(TreeNotFound):
        selector.select(project_dir)


def test_register_project_is_idempotent(selector: TreeSelector, project_dir: Path) -> None:
    first = selector.register_project(project_dir)
    second = selector.register_project(project_dir)

    assert first == second
    assert first.path.name == "tree.json"
    assert first.path.parent.name.startswith("project-")
    raw = json.loads(selector.projects_path.read_text())
    assert raw["version"] == 1
    assert list(raw["projects"]) == [normalize_cwd(project_dir)]


def test_locate_explicit_categories(selector: TreeSelector, project_dir: Path) -> None:
    assert selector.locate(TreeCategory.GLOBAL, project_dir) == selector.global_location()

    with pytest.raises(TreeNotFound):
        selector.locate(TreeCategory.LOCAL_PROJECT, project_dir)
    with pytest.raises(TreeNotFound):
        selector.locate(TreeCategory.GLOBAL_PROJECT, project_dir)

    _touch_tree(project_dir / ".mind" / "tree.json")
    assert selector.locate(TreeCategory.LOCAL_PROJECT, project_dir).category is TreeCategory.LOCAL_PROJECT


def test_list_trees(selector: TreeSelector, project_dir: Path, tmp_path: Path) -> None:
    other = tmp_path / "other"
    other.mkdir()
    selector.register_project(other)
    _touch_tree(project_dir / ".mind" / "tree.json")

    trees = selector.list_trees(project_dir)

    assert [t.category for t in trees] == [
        TreeCategory.GLOBAL,
        TreeCategory.LOCAL_PROJECT,
        TreeCategory.GLOBAL_PROJECT,
    ]
    assert trees[2].working_dir == normalize_cwd(other)


def test_malformed_mapping_file(selector: TreeSelector, project_dir: Path) -> None:
    selector.projects_path.parent.mkdir(parents=True)
    selector.projects_path.write_text('{"projects": ["not", "a", "map"]}')

    with pytest.raises(ParseError):
        selector.select(project_dir)


def test_custom_marker(global_root: Path, project_dir: Path) -> None:
    selector = TreeSelector(global_root, local_marker=".notes")
    _touch_tree(project_dir / ".notes" / "tree.json")

    assert selector.select(project_dir).category is TreeCategory.LOCAL_PROJECT
