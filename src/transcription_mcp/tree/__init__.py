"""Pure tree engines: ordering, status rollup, cloning, mutations, assembly."""

from .assembly import build_tree, check_invariants
from .clone import COPY_SUFFIX, clone_subtree, fresh_id_mapper
from .markdown import parse_bloc_drafts, render_markdown
from .mutations import Mutation, StoreWrite
from .ordering import assign_positions, insert_at
from .rollup import needs_update, rollup_status

__all__ = [
    "COPY_SUFFIX",
    "Mutation",
    "StoreWrite",
    "assign_positions",
    "build_tree",
    "check_invariants",
    "clone_subtree",
    "fresh_id_mapper",
    "insert_at",
    "needs_update",
    "parse_bloc_drafts",
    "render_markdown",
    "rollup_status",
]
