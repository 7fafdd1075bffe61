"""mind CLI — organize notes and tasks in persisted trees.

Commands:
    mind init [NAME]            create the global, --local or --cwd tree
    mind ls                     list every tree reachable from here
    mind show                   render a (sub)tree
    mind paths                  print node paths
    mind resolve PATH           resolve a path to a node
    mind insert -s PATH -n TEXT insert a node (--file / --uri attach data)
    mind remove -s PATH         delete a node and its subtree (asks first)
    mind rename / icon / move   edit nodes
    mind get / set              read or attach node data
    mind toggle -s PATH         expand / collapse a node

Tree selection: by default the local tree of the current directory, else its
registered project tree, else the global tree. --local / --cwd / --path force
a specific one.
"""

from __future__ import annotations

import contextlib
import logging
import subprocess
from pathlib import Path
from typing import TYPE_CHECKING

import click

from mindtree.config import MindConfig, init_config, load_config
from mindtree.errors import MindError, StaleRead, TreeNotFound
from mindtree.models import ContentType, NodeKind, TreeCategory, UrlPayload
from mindtree.mutations import InsertMode, MutationEngine
from mindtree.paths import ResolutionStatus, list_paths, node_path, resolve_input
from mindtree.selector import TreeSelector, normalize_cwd
from mindtree.store import LoadedTree, TreeStore

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator

    from mindtree.data import OpenTarget
    from mindtree.graph import NodeGraph
    from mindtree.models import Node

logger = logging.getLogger("mindtree.cli")

INSERT_MODES = [m.value for m in InsertMode]
CONTENT_TYPES = [c.value for c in ContentType]

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


@contextlib.contextmanager
def _boundary() -> Iterator[None]:
    """Turn engine and I/O failures into a non-zero exit with a readable message."""
    try:
        yield
    except StaleRead as exc:
        raise click.ClickException(f"{exc}\n  Re-run the command to apply it to the current tree.") from exc
    except (MindError, OSError) as exc:
        raise click.ClickException(str(exc)) from exc


def _init_logging(verbose: int, log_file: Path | None) -> None:
    if not verbose and log_file is None:
        return
    level = {0: logging.WARNING, 1: logging.INFO}.get(verbose, logging.DEBUG)
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
        filename=str(log_file) if log_file else None,
    )
    logger.info("logging initialized (level=%s)", logging.getLevelName(level))


def _cfg() -> MindConfig:
    return click.get_current_context().find_object(MindConfig) or load_config()


def _make_store(cfg: MindConfig) -> TreeStore:
    selector = TreeSelector(cfg.persistence.global_root, local_marker=cfg.persistence.local_marker)
    return TreeStore(
        selector,
        root_text=cfg.tree.root_text,
        root_icon=cfg.tree.root_icon,
        data_dir=cfg.persistence.data_dir,
        templates=cfg.data.templates,
    )


def _open_tree(cfg: MindConfig, local: bool, cwd_tree: bool, path: Path | None) -> tuple[TreeStore, LoadedTree]:
    store = _make_store(cfg)
    cwd = Path.cwd()
    with _boundary():
        if path is not None:
            return store, store.load_file(path)
        if local:
            location = store.selector.locate(TreeCategory.LOCAL_PROJECT, cwd)
        elif cwd_tree:
            location = store.selector.locate(TreeCategory.GLOBAL_PROJECT, cwd)
        else:
            location = store.selector.select(cwd)
        return store, store.load(location)


def _pick_path(cfg: MindConfig, graph: NodeGraph, prompt: str) -> str:
    """Ask the user for a path: fuzzy program if configured, else a plain prompt.

    Returns "" when the user aborts.
    """
    program = cfg.interactive.fuzzy_term_program
    if not program:
        return click.prompt(prompt, default="", show_default=False)

    cmd = [program]
    if cfg.interactive.fuzzy_term_prompt_opt:
        cmd.extend([cfg.interactive.fuzzy_term_prompt_opt, f"{prompt}> "])
    try:
        result = subprocess.run(
            cmd,
            input="\n".join(list_paths(graph, with_ids=True)),
            capture_output=True,
            text=True,
            check=False,
        )
    except OSError as exc:
        raise click.ClickException(f"cannot run fuzzy program {program!r}: {exc}") from exc
    if result.returncode != 0:
        return ""
    return result.stdout.strip()


def _cancelled(what: str = "nothing to do") -> None:
    click.echo(f"cancelled: {what}", err=True)


def _select(
    cfg: MindConfig,
    graph: NodeGraph,
    source: str | None,
    interactive: bool,
    prompt: str = "path",
    *,
    required: bool = True,
) -> Node | None:
    """Resolve the node a command operates on. None means the user cancelled."""
    if source is None:
        if interactive:
            source = _pick_path(cfg, graph, prompt)
        elif required:
            raise click.UsageError("missing node selection; pass --source PATH or --interactive")
        else:
            return graph.root

    resolution = resolve_input(graph, source)
    if resolution.status is ResolutionStatus.CANCELLED:
        _cancelled("no path entered")
        return None
    if not resolution.ok:
        raise click.ClickException(str(resolution.error))
    return resolution.node


def _save(store: TreeStore, loaded: LoadedTree) -> None:
    with _boundary():
        store.save(loaded)


def _describe(graph: NodeGraph, node: Node) -> str:
    return f"{node.id}  {node_path(graph, node.id)}"


def _open(cfg: MindConfig, target: OpenTarget) -> None:
    if target.kind is NodeKind.URL:
        logger.info("opening URL %s", target.url)
        click.launch(target.target)
    else:
        logger.info("opening %s", target.path)
        click.edit(filename=target.target, editor=cfg.edit.resolved_editor())


def tree_options(f: Callable[..., None]) -> Callable[..., None]:
    """Options shared by every command that works on one tree."""
    f = click.option("--interactive", "-i", is_flag=True, help="Prompt for paths that are not given")(f)
    f = click.option(
        "--path", "-p", "tree_path", default=None,
        type=click.Path(dir_okay=False, path_type=Path), help="Use the tree stored in this file",
    )(f)
    f = click.option("--cwd", "-c", "cwd_tree", is_flag=True, help="Use the project tree registered for this directory")(f)
    return click.option("--local", "-l", is_flag=True, help="Use the local tree of this directory")(f)


# ---------------------------------------------------------------------------
# Root group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(package_name="mindtree")
@click.option("--verbose", "-v", count=True, help="Log more (-v info, -vv debug)")
@click.option("--log-file", type=click.Path(dir_okay=False, path_type=Path), default=None, help="Write logs here")
@click.option(
    "--config", "config_path", type=click.Path(dir_okay=False, path_type=Path),
    default=None, envvar="MIND_CONFIG", help="Configuration file",
)
@click.pass_context
def cli(ctx: click.Context, verbose: int, log_file: Path | None, config_path: Path | None) -> None:
    """Organize your thoughts in a tree-like structure."""
    _init_logging(verbose, log_file)
    ctx.obj = load_config(config_path)


# ---------------------------------------------------------------------------
# mind init / mind init-config
# ---------------------------------------------------------------------------


@cli.command()
@click.argument("name", required=False)
@click.option("--local", "-l", is_flag=True, help="Create a local tree in this directory")
@click.option("--cwd", "-c", "cwd_tree", is_flag=True, help="Create a project tree for this directory")
@click.option("--icon", default=None, help="Icon of the root node")
def init(name: str | None, local: bool, cwd_tree: bool, icon: str | None) -> None:
    """Create a tree. Global by default; --local or --cwd for project trees."""
    if local and cwd_tree:
        raise click.UsageError("--local and --cwd are mutually exclusive")
    cfg = _cfg()
    store = _make_store(cfg)
    cwd = Path.cwd()

    with _boundary():
        if local:
            location = store.selector.local_location(cwd)
        elif cwd_tree:
            location = store.selector.register_project(cwd)
        else:
            location = store.selector.global_location()

        if location.exists:
            click.echo(f"{location.category} tree already exists at {location.path}; skipping init")
            return
        default_name = Path(normalize_cwd(cwd)).name if (local or cwd_tree) else None
        store.create(location, root_text=name or default_name, root_icon=icon)

    click.echo(f"Created {location.category} tree at {location.path}")


@cli.command("init-config")
def init_config_cmd() -> None:
    """Write a commented default config.toml."""
    cfg = _cfg()
    try:
        path = init_config(cfg.path)
    except FileExistsError as exc:
        raise click.ClickException(str(exc)) from exc
    click.echo(f"Created {path}")


# ---------------------------------------------------------------------------
# mind ls / show / paths / resolve
# ---------------------------------------------------------------------------


@cli.command("ls")
def list_trees() -> None:
    """List all known trees: global, local and project trees."""
    from rich.console import Console
    from rich.markup import escape
    from rich.table import Table

    cfg = _cfg()
    store = _make_store(cfg)
    cwd = Path.cwd()

    with _boundary():
        trees = store.selector.list_trees(cwd)
        try:
            selected = store.selector.select(cwd).path
        except TreeNotFound:
            selected = None

    table = Table(title="mind trees", show_header=True, header_style="bold")
    table.add_column("", no_wrap=True)
    table.add_column("Category", style="dim", no_wrap=True)
    table.add_column("Directory")
    table.add_column("Tree file")
    table.add_column("Status", justify="right")
    for location in trees:
        status = "[green]ok[/green]" if location.exists else "[red]missing[/red]"
        if location.category is TreeCategory.GLOBAL and not location.exists:
            status = "[dim]not created yet[/dim]"
        table.add_row(
            "*" if location.path == selected else "",
            str(location.category),
            escape(location.working_dir or "-"),
            escape(str(location.path)),
            status,
        )
    Console().print(table)


@cli.command()
@tree_options
@click.option("--source", "-s", default=None, help="Subtree to show (default: root)")
@click.option("--ids", is_flag=True, help="Show node ids")
def show(local: bool, cwd_tree: bool, tree_path: Path | None, interactive: bool, source: str | None, ids: bool) -> None:
    """Render a tree (or a subtree) with indent guides."""
    from rich.console import Console
    from rich.markup import escape
    from rich.tree import Tree as RichTree

    cfg = _cfg()
    _, loaded = _open_tree(cfg, local, cwd_tree, tree_path)
    graph = loaded.tree.graph
    start = _select(cfg, graph, source, interactive, "show", required=False)
    if start is None:
        return

    def label(node: Node) -> str:
        parts = []
        if ids:
            parts.append(f"[dim]{node.id}:[/dim]")
        if node.icon:
            parts.append(escape(node.icon))
        parts.append(escape(node.text))
        if node.kind is NodeKind.DATA:
            parts.append("[cyan]\\[file][/cyan]")
        elif node.kind is NodeKind.URL:
            parts.append("[blue]\\[link][/blue]")
        return " ".join(parts)

    rendered = RichTree(label(start))
    branches = {start.id: rendered}
    for node in graph.descendants_of(start.id):
        branches[node.id] = branches[node.parent].add(label(node))  # type: ignore[index]
    Console().print(rendered)


@cli.command()
@tree_options
@click.option("--source", "-s", default=None, help="List paths below this node (default: root)")
@click.option("--file", "-f", "only_files", is_flag=True, help="Only file nodes")
@click.option("--uri", "-u", "only_uris", is_flag=True, help="Only URI nodes")
@click.option("--ids", is_flag=True, help="Prefix segments with node ids")
def paths(
    local: bool,
    cwd_tree: bool,
    tree_path: Path | None,
    interactive: bool,
    source: str | None,
    only_files: bool,
    only_uris: bool,
    ids: bool,
) -> None:
    """Print every path of a tree (or below a node)."""
    if only_files and only_uris:
        raise click.UsageError("--file and --uri are mutually exclusive")
    cfg = _cfg()
    _, loaded = _open_tree(cfg, local, cwd_tree, tree_path)
    graph = loaded.tree.graph
    start = _select(cfg, graph, source, interactive, "paths", required=False)
    if start is None:
        return
    kind = NodeKind.DATA if only_files else NodeKind.URL if only_uris else None
    for path in list_paths(graph, start.id, kind=kind, with_ids=ids):
        click.echo(path)


@cli.command("resolve")
@tree_options
@click.argument("path", required=False)
def resolve_cmd(local: bool, cwd_tree: bool, tree_path: Path | None, interactive: bool, path: str | None) -> None:
    """Resolve PATH and print the node id and its canonical path.

    \b
    mind resolve /Tasks/On-going
    mind resolve "/Tasks/On-going/3345: do this"
    """
    cfg = _cfg()
    _, loaded = _open_tree(cfg, local, cwd_tree, tree_path)
    graph = loaded.tree.graph
    if path is None:
        if not interactive:
            raise click.UsageError("missing PATH; pass it or use --interactive")
        path = _pick_path(cfg, graph, "resolve")
    resolution = resolve_input(graph, path)

    if resolution.status is ResolutionStatus.CANCELLED:
        _cancelled("no path entered")
        return
    if resolution.status is ResolutionStatus.AMBIGUOUS:
        candidates = resolution.error.candidates  # type: ignore[union-attr]
        lines = [str(resolution.error), *(f"  {node_path(graph, c, with_ids=True)}" for c in candidates)]
        raise click.ClickException("\n".join(lines))
    if not resolution.ok:
        raise click.ClickException(str(resolution.error))
    click.echo(_describe(graph, resolution.node))  # type: ignore[arg-type]


# ---------------------------------------------------------------------------
# mind insert / remove / rename / icon / move / toggle
# ---------------------------------------------------------------------------


@cli.command()
@tree_options
@click.option("--source", "-s", default=None, help="Anchor node path")
@click.option("--mode", "-m", default="bottom", type=click.Choice(INSERT_MODES), show_default=True)
@click.option("--name", "-n", default=None, help="Text of the new node")
@click.option("--icon", default="", help="Icon of the new node")
@click.option("--file", "-f", "with_file", is_flag=True, help="Attach a new data file")
@click.option("--content-type", default=None, type=click.Choice(CONTENT_TYPES), help="Data file type")
@click.option("--uri", "-u", default=None, help="Attach a link")
@click.option("--open", "-o", "open_after", is_flag=True, help="Open the attached data afterwards")
def insert(
    local: bool,
    cwd_tree: bool,
    tree_path: Path | None,
    interactive: bool,
    source: str | None,
    mode: str,
    name: str | None,
    icon: str,
    with_file: bool,
    content_type: str | None,
    uri: str | None,
    open_after: bool,
) -> None:
    """Insert a node relative to an anchor.

    \b
    mind insert -s /Tasks -n "write report"
    mind insert -s /Tasks/report -m after -n "review" --file --open
    mind insert -s /Links -n docs --uri https://example.org
    """
    if with_file and uri is not None:
        raise click.UsageError("--file and --uri are mutually exclusive")
    cfg = _cfg()
    store, loaded = _open_tree(cfg, local, cwd_tree, tree_path)
    graph = loaded.tree.graph
    anchor = _select(cfg, graph, source, interactive, "insert at")
    if anchor is None:
        return
    if name is None:
        if not interactive:
            raise click.UsageError("missing --name")
        name = click.prompt("name", default="", show_default=False)
        if not name.strip():
            _cancelled("no name entered")
            return

    engine = MutationEngine(graph, store.data_store(loaded))
    target: OpenTarget | None = None
    with _boundary():
        if with_file:
            ctype = ContentType(content_type) if content_type else cfg.data.content_type
            node, file_path = engine.insert_with_data(
                anchor.id, InsertMode(mode), name, icon, ctype, use_template=cfg.data.use_template
            )
            click.echo(str(file_path))
        elif uri is not None:
            node = engine.insert(anchor.id, InsertMode(mode), name, icon, NodeKind.URL, UrlPayload(uri))
        else:
            node = engine.insert(anchor.id, InsertMode(mode), name, icon)
        _save(store, loaded)
        if open_after:
            target = engine.data_store.open_target(node)  # type: ignore[union-attr]

    click.echo(_describe(graph, node))
    if target is not None:
        _open(cfg, target)


cli.add_command(insert, name="ins")


@cli.command()
@tree_options
@click.option("--source", "-s", default=None, help="Node to delete")
@click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation")
def remove(local: bool, cwd_tree: bool, tree_path: Path | None, interactive: bool, source: str | None, yes: bool) -> None:
    """Delete a node and its entire subtree."""
    cfg = _cfg()
    store, loaded = _open_tree(cfg, local, cwd_tree, tree_path)
    graph = loaded.tree.graph
    node = _select(cfg, graph, source, interactive, "delete")
    if node is None:
        return

    descendants = sum(1 for _ in graph.descendants_of(node.id))
    question = f"delete {node_path(graph, node.id)}"
    if descendants:
        question += f" and its {descendants} descendant(s)"
    if not yes and not click.confirm(question + "?", default=False):
        _cancelled("node kept")
        return

    engine = MutationEngine(graph)
    with _boundary():
        removed = engine.delete(node.id)
        _save(store, loaded)
    click.echo(f"Deleted {len(removed)} node(s)")


cli.add_command(remove, name="rm")


@cli.command()
@tree_options
@click.option("--source", "-s", default=None, help="Node to rename")
@click.option("--name", "-n", "new", default=None, help="New text")
def rename(local: bool, cwd_tree: bool, tree_path: Path | None, interactive: bool, source: str | None, new: str | None) -> None:
    """Rename a node."""
    cfg = _cfg()
    store, loaded = _open_tree(cfg, local, cwd_tree, tree_path)
    graph = loaded.tree.graph
    node = _select(cfg, graph, source, interactive, "rename")
    if node is None:
        return
    if new is None:
        if not interactive:
            raise click.UsageError("missing --name")
        new = click.prompt("new name", default="", show_default=False)
        if not new.strip():
            _cancelled("no name entered")
            return

    with _boundary():
        MutationEngine(graph).rename(node.id, new)
        _save(store, loaded)
    click.echo(_describe(graph, node))


@cli.command()
@tree_options
@click.option("--source", "-s", default=None, help="Node to change")
@click.option("--text", "-t", "icon", default="", help="New icon (empty clears it)")
def icon(local: bool, cwd_tree: bool, tree_path: Path | None, interactive: bool, source: str | None, icon: str) -> None:
    """Change the icon of a node."""
    cfg = _cfg()
    store, loaded = _open_tree(cfg, local, cwd_tree, tree_path)
    graph = loaded.tree.graph
    node = _select(cfg, graph, source, interactive, "icon")
    if node is None:
        return
    with _boundary():
        MutationEngine(graph).set_icon(node.id, icon)
        _save(store, loaded)
    click.echo(_describe(graph, node))


@cli.command()
@tree_options
@click.option("--source", "-s", default=None, help="Node to move")
@click.option("--dest", "-d", default=None, help="Destination node")
@click.option("--mode", "-m", default="bottom", type=click.Choice(INSERT_MODES), show_default=True)
def move(
    local: bool,
    cwd_tree: bool,
    tree_path: Path | None,
    interactive: bool,
    source: str | None,
    dest: str | None,
    mode: str,
) -> None:
    """Move a node (with its subtree) relative to a destination node.

    \b
    top / bottom     become the first / last child of --dest
    before / after   become the sibling right before / after --dest
    """
    cfg = _cfg()
    store, loaded = _open_tree(cfg, local, cwd_tree, tree_path)
    graph = loaded.tree.graph
    node = _select(cfg, graph, source, interactive, "move")
    if node is None:
        return
    destination = _select(cfg, graph, dest, interactive, "to")
    if destination is None:
        return

    with _boundary():
        MutationEngine(graph).move(node.id, destination.id, InsertMode(mode))
        _save(store, loaded)
    click.echo(_describe(graph, node))


cli.add_command(move, name="mv")


@cli.command()
@tree_options
@click.option("--source", "-s", default=None, help="Node to expand or collapse")
def toggle(local: bool, cwd_tree: bool, tree_path: Path | None, interactive: bool, source: str | None) -> None:
    """Expand or collapse a node."""
    cfg = _cfg()
    store, loaded = _open_tree(cfg, local, cwd_tree, tree_path)
    graph = loaded.tree.graph
    node = _select(cfg, graph, source, interactive, "toggle")
    if node is None:
        return
    with _boundary():
        MutationEngine(graph).toggle_expanded(node.id)
        _save(store, loaded)
    click.echo(f"{'expanded' if node.expanded else 'collapsed'} {node_path(graph, node.id)}")


# ---------------------------------------------------------------------------
# mind get / set
# ---------------------------------------------------------------------------


@cli.command()
@tree_options
@click.option("--source", "-s", default=None, help="Node to read")
@click.option("--open", "-o", "open_after", is_flag=True, help="Open the file or link")
def get(local: bool, cwd_tree: bool, tree_path: Path | None, interactive: bool, source: str | None, open_after: bool) -> None:
    """Print the file path or link attached to a node."""
    cfg = _cfg()
    store, loaded = _open_tree(cfg, local, cwd_tree, tree_path)
    node = _select(cfg, loaded.tree.graph, source, interactive, "get")
    if node is None:
        return
    data_store = store.data_store(loaded)
    with _boundary():
        target = data_store.open_target(node) if open_after else data_store.locate(node)
    if target is None:
        raise click.ClickException(f"node {node.id} has no data attached")
    click.echo(target.target)
    if open_after:
        _open(cfg, target)


@cli.command("set")
@tree_options
@click.option("--source", "-s", default=None, help="Node to change")
@click.option("--file", "-f", "with_file", is_flag=True, help="Attach a data file")
@click.option("--content-type", default=None, type=click.Choice(CONTENT_TYPES), help="Data file type")
@click.option("--uri", "-u", default=None, help="Attach a link")
@click.option("--clear", is_flag=True, help="Detach any data")
@click.option("--open", "-o", "open_after", is_flag=True, help="Open the attached data afterwards")
def set_cmd(
    local: bool,
    cwd_tree: bool,
    tree_path: Path | None,
    interactive: bool,
    source: str | None,
    with_file: bool,
    content_type: str | None,
    uri: str | None,
    clear: bool,
    open_after: bool,
) -> None:
    """Attach a data file or a link to a node, or detach it."""
    if sum((with_file, uri is not None, clear)) != 1:
        raise click.UsageError("pass exactly one of --file, --uri or --clear")
    cfg = _cfg()
    store, loaded = _open_tree(cfg, local, cwd_tree, tree_path)
    graph = loaded.tree.graph
    node = _select(cfg, graph, source, interactive, "set")
    if node is None:
        return

    data_store = store.data_store(loaded)
    engine = MutationEngine(graph, data_store)
    with _boundary():
        if with_file:
            ctype = ContentType(content_type) if content_type else cfg.data.content_type
            engine.set_data(node.id, data_store.relative_path(node.id, ctype), ctype)
            data_store.ensure_file(node, use_template=cfg.data.use_template)
        elif uri is not None:
            engine.set_url(node.id, uri)
        else:
            engine.clear_payload(node.id)
        _save(store, loaded)
        target = data_store.open_target(node)

    click.echo(target.target if target is not None else f"cleared data of node {node.id}")
    if open_after and target is not None:
        _open(cfg, target)


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main() -> None:
    cli(standalone_mode=True)


if __name__ == "__main__":
    main()
