from pathlib import Path

import pytest

from mindtree.config import MindConfig, default_config_path, init_config, load_config
from mindtree.models import ContentType


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.delenv("MIND_CONFIG", raising=False)
    monkeypatch.delenv("EDITOR", raising=False)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))


def test_missing_file_gives_defaults(tmp_path: Path) -> None:
    cfg = load_config()

    assert cfg.path is None
    assert cfg.persistence.global_root == tmp_path / "data" / "mind"
    assert cfg.persistence.data_dir == "data"
    assert cfg.persistence.local_marker == ".mind"
    assert cfg.tree.root_text == "Mind"
    assert cfg.data.content_type is ContentType.MARKDOWN
    assert cfg.data.use_template is True
    assert cfg.edit.resolved_editor() is None
    assert cfg.interactive.fuzzy_term_program is None


def test_config_path_lookup(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    assert default_config_path() == tmp_path / "config" / "mind" / "config.toml"

    monkeypatch.setenv("MIND_CONFIG", str(tmp_path / "custom.toml"))
    assert default_config_path() == tmp_path / "custom.toml"


def test_load_all_sections(tmp_path: Path) -> None:
    path = tmp_path / "config.toml"
    path.write_text(
        """
[persistence]
global_root = "%s"
data_dir = "files"
local_marker = ".notes"

[tree]
root_text = "Brain"
root_icon = "*"

[data]
content_type = "org"
use_template = false

[data.templates]
org = "#+TITLE: {text}"

[edit]
editor = "nano"

[interactive]
fuzzy_term_program = "fzf"
fuzzy_term_prompt_opt = "--prompt"
"""
        % (tmp_path / "store")
    )

    cfg = load_config(path)

    assert cfg.path == path
    assert cfg.persistence.global_root == tmp_path / "store"
    assert cfg.persistence.data_dir == "files"
    assert cfg.persistence.local_marker == ".notes"
    assert (cfg.tree.root_text, cfg.tree.root_icon) == ("Brain", "*")
    assert cfg.data.content_type is ContentType.ORG
    assert cfg.data.use_template is False
    assert cfg.data.templates == {ContentType.ORG: "#+TITLE: {text}"}
    assert cfg.edit.resolved_editor() == "nano"
    assert cfg.interactive.fuzzy_term_program == "fzf"
    assert cfg.interactive.fuzzy_term_prompt_opt == "--prompt"


def test_editor_falls_back_to_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("EDITOR", "vim")

    assert load_config().edit.resolved_editor() == "vim"


def test_malformed_file_falls_back_to_defaults(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    path = tmp_path / "config.toml"
    path.write_text("[tree\nroot_text = ")

    cfg = load_config(path)

    assert cfg == MindConfig()
    assert "using defaults" in caplog.text


def test_unknown_content_type_falls_back_to_markdown(tmp_path: Path) -> None:
    path = tmp_path / "config.toml"
    path.write_text('[data]\ncontent_type = "docx"\n')

    assert load_config(path).data.content_type is ContentType.MARKDOWN


def test_init_config_writes_loadable_defaults(tmp_path: Path) -> None:
    path = init_config(tmp_path / "mind" / "config.toml")

    cfg = load_config(path)
    assert cfg.tree.root_text == "Mind"
    assert cfg.data.content_type is ContentType.MARKDOWN

    with pytest.raises(FileExistsError):
        init_config(path)
