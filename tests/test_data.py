from pathlib import Path

import pytest

from mindtree.data import DataFileStore, sanitize_name
from mindtree.errors import ValidationError
from mindtree.models import ContentType, DataPayload, Node, NodeKind, UrlPayload


@pytest.fixture
def data_store(tmp_path: Path) -> DataFileStore:
    return DataFileStore(tmp_path / "tree")


def test_sanitize_name() -> None:
    assert sanitize_name(" My notes/v1.2 ") == "My-notes-v1-2"
    assert sanitize_name("été!") == "t"


def test_relative_paths_follow_content_type(data_store: DataFileStore) -> None:
    assert data_store.relative_path(12) == "data/12.md"
    assert data_store.relative_path(12, ContentType.ORG) == "data/12.org"
    assert data_store.payload_for(3, ContentType.JSON) == DataPayload("data/3.json", ContentType.JSON)


def test_create_file_uses_template(data_store: DataFileStore) -> None:
    path = data_store.create_file(4, "Weekly review")

    assert path == (data_store.storage_root / "data" / "4.md").resolve()
    assert path.read_text() == "# Weekly review\n"


def test_json_template_renders_literal_braces(data_store: DataFileStore) -> None:
    path = data_store.create_file(4, "config", ContentType.JSON)

    assert path.read_text() == "{}\n"


def test_custom_templates_override_defaults(tmp_path: Path) -> None:
    data_store = DataFileStore(tmp_path, templates={ContentType.TEXT: "{slug}: {text}\n"})

    path = data_store.create_file(2, "to do", ContentType.TEXT)

    assert path.read_text() == "to-do: to do\n"
    assert data_store.render_template("x", ContentType.MARKDOWN) == "# x\n"


def test_create_file_never_clobbers(data_store: DataFileStore) -> None:
    path = data_store.create_file(4, "first")
    path.write_text("edited by hand")

    again = data_store.create_file(4, "second")

    assert again == path
    assert path.read_text() == "edited by hand"


@pytest.mark.parametrize("bad", ["../outside.md", "data/../../escape.md", "/etc/passwd", "  "])
def test_resolve_rejects_paths_outside_storage_root(data_store: DataFileStore, bad: str) -> None:
    with pytest.raises(ValidationError):
        data_store.resolve(DataPayload(bad))


def test_open_target(data_store: DataFileStore) -> None:
    internal = Node(id=2, text="plain")
    link = Node(id=3, text="docs", kind=NodeKind.URL, payload=UrlPayload("https://example.org"))
    data = Node(id=4, text="notes", kind=NodeKind.DATA, payload=data_store.payload_for(4))

    assert data_store.open_target(internal) is None
    assert data_store.open_target(link).target == "https://example.org"

    target = data_store.open_target(data)
    assert target.kind is NodeKind.DATA
    assert target.path.read_text() == "# notes\n"


def test_ensure_file_requires_data_node(data_store: DataFileStore) -> None:
    with pytest.raises(ValidationError):
        data_store.ensure_file(Node(id=2, text="plain"))


def test_broken_template_is_a_validation_error(tmp_path: Path) -> None:
    data_store = DataFileStore(tmp_path, templates={ContentType.ORG: "#+DATE: {date}\n"})

    with pytest.raises(ValidationError, match="invalid template for org"):
        data_store.create_file(2, "notes", ContentType.ORG)
    assert not (tmp_path / "data").exists()


def test_locate_does_not_create_files(data_store: DataFileStore) -> None:
    data = Node(id=4, text="notes", kind=NodeKind.DATA, payload=data_store.payload_for(4))

    target = data_store.locate(data)

    assert target.path == (data_store.storage_root / "data" / "4.md").resolve()
    assert not target.path.exists()
    assert data_store.locate(Node(id=2, text="plain")) is None
