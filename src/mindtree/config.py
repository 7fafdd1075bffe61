"""MindConfig: process-wide configuration, loaded once at startup.

Looked up at ``$MIND_CONFIG``, else ``$XDG_CONFIG_HOME/mind/config.toml``
(``~/.config/mind/config.toml``). A missing file means built-in defaults.

config.toml example:

    [persistence]
    # global_root = "~/.local/share/mind"   # default: $XDG_DATA_HOME/mind
    # data_dir = "data"                     # per-tree data subdirectory
    # local_marker = ".mind"                # local tree directory in a project

    [tree]
    root_text = "Mind"
    root_icon = ""

    [data]
    content_type = "markdown"               # markdown | text | org | json
    use_template = true

    [data.templates]                        # {text} is replaced by the node text
    # org = "#+TITLE: {text}"

    [edit]
    # editor = "nvim"                       # default: $EDITOR

    [interactive]
    # fuzzy_term_program = "fzf"
    # fuzzy_term_prompt_opt = "--prompt"
"""

from __future__ import annotations

import logging
import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from mindtree.data import DEFAULT_DATA_DIR
from mindtree.models import ContentType
from mindtree.selector import DEFAULT_LOCAL_MARKER

logger = logging.getLogger("mindtree.config")

_CONFIG_ENV = "MIND_CONFIG"
_APP_DIR = "mind"
_CONFIG_FILENAME = "config.toml"


def _xdg_dir(env: str, fallback: str) -> Path:
    value = os.environ.get(env, "")
    return Path(value) if value else Path.home() / fallback


def default_config_path() -> Path:
    override = os.environ.get(_CONFIG_ENV)
    if override:
        return Path(override).expanduser()
    return _xdg_dir("XDG_CONFIG_HOME", ".config") / _APP_DIR / _CONFIG_FILENAME


def default_global_root() -> Path:
    return _xdg_dir("XDG_DATA_HOME", ".local/share") / _APP_DIR


@dataclass
class PersistenceConfig:
    global_root: Path = field(default_factory=default_global_root)
    data_dir: str = DEFAULT_DATA_DIR
    local_marker: str = DEFAULT_LOCAL_MARKER


@dataclass
class TreeConfig:
    root_text: str = "Mind"
    root_icon: str = ""


@dataclass
class DataConfig:
    content_type: ContentType = ContentType.MARKDOWN
    use_template: bool = True
    templates: dict[ContentType, str] = field(default_factory=dict)


@dataclass
class EditConfig:
    editor: str | None = None

    def resolved_editor(self) -> str | None:
        return self.editor or os.environ.get("EDITOR") or None


@dataclass
class InteractiveConfig:
    fuzzy_term_program: str | None = None
    fuzzy_term_prompt_opt: str | None = None


@dataclass
class MindConfig:
    """Resolved configuration."""

    path: Path | None = None          # file it was read from, None for defaults
    persistence: PersistenceConfig = field(default_factory=PersistenceConfig)
    tree: TreeConfig = field(default_factory=TreeConfig)
    data: DataConfig = field(default_factory=DataConfig)
    edit: EditConfig = field(default_factory=EditConfig)
    interactive: InteractiveConfig = field(default_factory=InteractiveConfig)


def _content_type(value: Any, where: str) -> ContentType:
    try:
        return ContentType(value)
    except ValueError:
        logger.warning("unknown content type %r in %s; using markdown", value, where)
        return ContentType.MARKDOWN


def _optional_str(value: Any) -> str | None:
    return str(value) if value else None


def load_config(path: Path | str | None = None) -> MindConfig:
    """Load config.toml. Missing or unreadable configuration falls back to defaults."""
    config_path = Path(path).expanduser() if path else default_config_path()

    raw: dict[str, Any] = {}
    if config_path.exists():
        try:
            with config_path.open("rb") as f:
                raw = tomllib.load(f)
        except (OSError, tomllib.TOMLDecodeError) as exc:
            logger.warning("error while reading configuration %s: %s; using defaults", config_path, exc)
            return MindConfig()
    else:
        logger.debug("no configuration at %s; using defaults", config_path)
        return MindConfig()

    p_section = raw.get("persistence", {})
    t_section = raw.get("tree", {})
    d_section = raw.get("data", {})
    e_section = raw.get("edit", {})
    i_section = raw.get("interactive", {})

    global_root = p_section.get("global_root")
    templates = {
        _content_type(k, "[data.templates]"): str(v)
        for k, v in d_section.get("templates", {}).items()
    }

    return MindConfig(
        path=config_path,
        persistence=PersistenceConfig(
            global_root=Path(global_root).expanduser() if global_root else default_global_root(),
            data_dir=str(p_section.get("data_dir", DEFAULT_DATA_DIR)),
            local_marker=str(p_section.get("local_marker", DEFAULT_LOCAL_MARKER)),
        ),
        tree=TreeConfig(
            root_text=str(t_section.get("root_text", "Mind")),
            root_icon=str(t_section.get("root_icon", "")),
        ),
        data=DataConfig(
            content_type=_content_type(d_section.get("content_type", "markdown"), "[data]"),
            use_template=bool(d_section.get("use_template", True)),
            templates=templates,
        ),
        edit=EditConfig(editor=_optional_str(e_section.get("editor"))),
        interactive=InteractiveConfig(
            fuzzy_term_program=_optional_str(i_section.get("fuzzy_term_program")),
            fuzzy_term_prompt_opt=_optional_str(i_section.get("fuzzy_term_prompt_opt")),
        ),
    )


def init_config(path: Path | None = None) -> Path:
    """Write a commented default config.toml. Raises if one already exists."""
    config_path = path or default_config_path()
    if config_path.exists():
        msg = f"config already exists at {config_path}"
        raise FileExistsError(msg)

    content = """\
[persistence]
# global_root = "~/.local/share/mind"   # default: $XDG_DATA_HOME/mind
# data_dir = "data"
# local_marker = ".mind"

[tree]
root_text = "Mind"
root_icon = ""

[data]
content_type = "markdown"   # markdown | text | org | json
use_template = true

# [data.templates]
# markdown = "# {text}\\n"

# [edit]
# editor = "nvim"           # default: $EDITOR

# [interactive]
# fuzzy_term_program = "fzf"
# fuzzy_term_prompt_opt = "--prompt"
"""
    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_text(content)
    return config_path
