"""Persisted trees of notes, tasks and links, addressed by slash paths.

Layout of one tree (global root, project directory or ``<cwd>/.mind``):
    tree.json             # the whole tree, one JSON document (version 2)
    data/
        <id>.md           # backing file of data node <id>

tree.json:
    {"version":2, "category":"global", "next_id":N,
     "root":{"id":1, "text":..., "icon":..., "kind":"internal", "expanded":true,
             "payload":{...}, "children":[...]}}

Version 1 documents are upgraded on load. Saves are atomic (temp file + rename);
concurrent writers are detected through the file's (mtime, size) and rejected
with StaleRead instead of being overwritten.
"""

from mindtree.config import MindConfig, init_config, load_config
from mindtree.graph import NodeGraph
from mindtree.models import ContentType, Node, NodeKind, Tree, TreeCategory
from mindtree.mutations import InsertMode, MutationEngine
from mindtree.selector import TreeSelector
from mindtree.store import TreeStore

__all__ = [
    "ContentType",
    "InsertMode",
    "MindConfig",
    "MutationEngine",
    "Node",
    "NodeGraph",
    "NodeKind",
    "Tree",
    "TreeCategory",
    "TreeSelector",
    "TreeStore",
    "init_config",
    "load_config",
]
