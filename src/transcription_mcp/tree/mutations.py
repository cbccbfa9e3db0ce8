"""Structural operations over a transcription tree.

Every function here applies its change to the tree *in place* and
synchronously, then returns a :class:`Mutation` describing what the store
must be told, in order, and which containers need a status rollup once the
store has accepted it. Nothing in this module performs I/O.

Write ordering follows the store's foreign keys: a parent row is always
inserted before its children, and the moved/inserted row is written before
the bulk position upsert of its siblings.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field
from typing import Any, Literal

from ..models import (
    Bloc,
    BlocKind,
    Document,
    EntityLevel,
    Section,
    Status,
    TranscriptionTree,
    TreeInvariantError,
)
from .clone import clone_subtree, fresh_id_mapper
from .ordering import assign_positions, insert_at

IdFactory = Callable[[], str]

# Fields a caller may change through update_node, per level.
EDITABLE_FIELDS: dict[EntityLevel, frozenset[str]] = {
    EntityLevel.DOCUMENT: frozenset({"title", "status"}),
    EntityLevel.SECTION: frozenset({"title", "status"}),
    EntityLevel.BLOC: frozenset({"content", "kind", "status"}),
}

_PARENT_LEVEL = {
    EntityLevel.BLOC: EntityLevel.SECTION,
    EntityLevel.SECTION: EntityLevel.DOCUMENT,
}


@dataclass
class StoreWrite:
    """One remote write: a single-row insert/update/delete or a bulk upsert."""

    op: Literal["insert", "update", "delete", "upsert"]
    level: EntityLevel
    rows: list[dict[str, Any]] = field(default_factory=list)
    node_id: str | None = None
    fields: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def insert(cls, level: EntityLevel, nodes: Iterable[Any]) -> StoreWrite:
        return cls("insert", level, rows=[n.to_row() for n in nodes])

    @classmethod
    def upsert_positions(cls, level: EntityLevel, nodes: Iterable[Any]) -> StoreWrite:
        return cls("upsert", level, rows=[n.to_row() for n in nodes])

    @classmethod
    def update(cls, level: EntityLevel, node_id: str, fields: dict[str, Any]) -> StoreWrite:
        return cls("update", level, node_id=node_id, fields=fields)

    @classmethod
    def delete(cls, level: EntityLevel, node_id: str) -> StoreWrite:
        return cls("delete", level, node_id=node_id)

    def describe(self) -> str:
        if self.op in ("insert", "upsert"):
            return f"{self.op} {len(self.rows)} row(s) into {self.level.table}"
        return f"{self.op} {self.level.table} id={self.node_id}"


@dataclass
class Mutation:
    """Result of an optimistic tree change."""

    description: str
    writes: list[StoreWrite] = field(default_factory=list)
    # Containers whose status must be recomputed, bottom-up.
    rollup: list[tuple[EntityLevel, str]] = field(default_factory=list)
    focus: str | None = None
    node_id: str | None = None


def _with_positions(write_list: list[StoreWrite], level: EntityLevel, siblings: Sequence[Any], skip: str | None = None) -> None:
    others = [n for n in siblings if n.id != skip]
    if others:
        write_list.append(StoreWrite.upsert_positions(level, others))


def _locate(tree: TranscriptionTree, level: EntityLevel, node_id: str) -> tuple[str, list[Any], Any]:
    """Return (parent id, live sibling list, node) for a node of ``level``."""
    if level is EntityLevel.DOCUMENT:
        return tree.owner_id, tree.documents, tree.document(node_id)
    if level is EntityLevel.SECTION:
        doc, section = tree.section(node_id)
        return doc.id, doc.sections, section
    _, section, bloc = tree.bloc(node_id)
    return section.id, section.blocs, bloc


def _parent_rollup(level: EntityLevel, parent_id: str) -> list[tuple[EntityLevel, str]]:
    parent_level = _PARENT_LEVEL.get(level)
    return [(parent_level, parent_id)] if parent_level is not None else []


# --------------------------------------------------------------------------
# Add
# --------------------------------------------------------------------------


def add_document(tree: TranscriptionTree, mint: IdFactory, title: str = "", index: int | None = None) -> Mutation:
    """Insert a Document seeded with one empty Section holding one empty Bloc."""
    doc = Document(id=mint(), owner_id=tree.owner_id, title=title, status=Status.DRAFT)
    section = Section(id=mint(), document_id=doc.id, position=1, status=Status.DRAFT)
    bloc = Bloc(id=mint(), section_id=section.id, position=1, status=Status.DRAFT)
    section.blocs = [bloc]
    doc.sections = [section]

    tree.documents = insert_at(tree.documents, doc, index)

    writes = [StoreWrite.insert(EntityLevel.DOCUMENT, [doc])]
    _with_positions(writes, EntityLevel.DOCUMENT, tree.documents, skip=doc.id)
    writes.append(StoreWrite.insert(EntityLevel.SECTION, [section]))
    writes.append(StoreWrite.insert(EntityLevel.BLOC, [bloc]))
    return Mutation(f"add document {doc.id}", writes, focus=bloc.id, node_id=doc.id)


def add_section(
    tree: TranscriptionTree,
    mint: IdFactory,
    document_id: str,
    with_initial_bloc: bool = True,
    title: str = "",
    index: int | None = None,
) -> Mutation:
    doc = tree.document(document_id)
    section = Section(id=mint(), document_id=doc.id, title=title, status=Status.DRAFT)
    bloc = None
    if with_initial_bloc:
        bloc = Bloc(id=mint(), section_id=section.id, position=1, status=Status.DRAFT)
        section.blocs = [bloc]

    doc.sections = insert_at(doc.sections, section, index)

    writes = [StoreWrite.insert(EntityLevel.SECTION, [section])]
    _with_positions(writes, EntityLevel.SECTION, doc.sections, skip=section.id)
    if bloc is not None:
        writes.append(StoreWrite.insert(EntityLevel.BLOC, [bloc]))
    return Mutation(
        f"add section {section.id}",
        writes,
        rollup=[(EntityLevel.DOCUMENT, doc.id)],
        focus=bloc.id if bloc is not None else None,
        node_id=section.id,
    )


def add_blocs(
    tree: TranscriptionTree,
    mint: IdFactory,
    section_id: str,
    drafts: Sequence[tuple[BlocKind, str]],
    index: int | None = None,
) -> Mutation:
    """Insert consecutive Blocs built from ``(kind, content)`` drafts at ``index``."""
    if not drafts:
        raise TreeInvariantError("add_blocs needs at least one bloc")
    _, section = tree.section(section_id)
    new_blocs = [
        Bloc(id=mint(), section_id=section.id, kind=kind, content=content, status=Status.DRAFT)
        for kind, content in drafts
    ]

    if index is None or index > len(section.blocs):
        index = len(section.blocs)
    index = max(index, 0)
    section.blocs = assign_positions([*section.blocs[:index], *new_blocs, *section.blocs[index:]])

    new_ids = {b.id for b in new_blocs}
    writes = [StoreWrite.insert(EntityLevel.BLOC, new_blocs)]
    others = [b for b in section.blocs if b.id not in new_ids]
    if others:
        writes.append(StoreWrite.upsert_positions(EntityLevel.BLOC, others))
    return Mutation(
        f"add {len(new_blocs)} bloc(s) to section {section.id}",
        writes,
        rollup=[(EntityLevel.SECTION, section.id)],
        focus=new_blocs[-1].id,
        node_id=new_blocs[0].id,
    )


def add_bloc(
    tree: TranscriptionTree,
    mint: IdFactory,
    section_id: str,
    content: str = "",
    index: int | None = None,
    kind: BlocKind = BlocKind.TEXT,
) -> Mutation:
    mutation = add_blocs(tree, mint, section_id, [(kind, content)], index)
    mutation.description = f"add bloc {mutation.node_id}"
    return mutation


# --------------------------------------------------------------------------
# Delete / duplicate
# --------------------------------------------------------------------------


def delete_node(tree: TranscriptionTree, level: EntityLevel, node_id: str) -> Mutation:
    """Remove a node (and its subtree) and re-index the remaining siblings."""
    parent_id, siblings, _ = _locate(tree, level, node_id)
    remaining = assign_positions(n for n in siblings if n.id != node_id)
    tree.set_children_of(level, parent_id, remaining)

    writes = [StoreWrite.delete(level, node_id)]
    _with_positions(writes, level, remaining)
    return Mutation(
        f"delete {level.value[:-1]} {node_id}",
        writes,
        rollup=_parent_rollup(level, parent_id),
        node_id=node_id,
    )


def duplicate_node(tree: TranscriptionTree, mint: IdFactory, level: EntityLevel, node_id: str) -> Mutation:
    """Clone a node's whole subtree and insert the clone right after it."""
    parent_id, siblings, original = _locate(tree, level, node_id)
    index = next(i for i, n in enumerate(siblings) if n.id == node_id)
    clone = clone_subtree(original, fresh_id_mapper(mint))
    updated = insert_at(siblings, clone, index + 1)
    tree.set_children_of(level, parent_id, updated)

    writes = [StoreWrite.insert(level, [clone])]
    _with_positions(writes, level, updated, skip=clone.id)
    if isinstance(clone, Document):
        if clone.sections:
            writes.append(StoreWrite.insert(EntityLevel.SECTION, clone.sections))
        blocs = [b for s in clone.sections for b in s.blocs]
        if blocs:
            writes.append(StoreWrite.insert(EntityLevel.BLOC, blocs))
    elif isinstance(clone, Section) and clone.blocs:
        writes.append(StoreWrite.insert(EntityLevel.BLOC, clone.blocs))

    return Mutation(
        f"duplicate {level.value[:-1]} {node_id} as {clone.id}",
        writes,
        rollup=_parent_rollup(level, parent_id),
        focus=clone.id if isinstance(clone, Bloc) else None,
        node_id=clone.id,
    )


# --------------------------------------------------------------------------
# Move / reorder
# --------------------------------------------------------------------------


def move_bloc(tree: TranscriptionTree, bloc_id: str, to_section_id: str, index: int | None = None) -> Mutation:
    """Move a Bloc to ``index`` in another (or the same) Section."""
    _, source, bloc = tree.bloc(bloc_id)
    _, target = tree.section(to_section_id)

    source.blocs = assign_positions(b for b in source.blocs if b.id != bloc_id)
    bloc.set_parent(target.id)
    target.blocs = insert_at(target.blocs, bloc, index)

    writes = [StoreWrite.update(EntityLevel.BLOC, bloc.id, {"section_id": target.id})]
    rollup = [(EntityLevel.SECTION, source.id)]
    if source is target:
        writes.append(StoreWrite.upsert_positions(EntityLevel.BLOC, target.blocs))
    else:
        writes.append(StoreWrite.upsert_positions(EntityLevel.BLOC, [*target.blocs, *source.blocs]))
        rollup.append((EntityLevel.SECTION, target.id))
    return Mutation(
        f"move bloc {bloc_id} from section {source.id} to {target.id}",
        writes,
        rollup=rollup,
        focus=bloc.id,
        node_id=bloc.id,
    )


def reorder(tree: TranscriptionTree, level: EntityLevel, parent_id: str, new_order: Sequence[str]) -> Mutation:
    """Re-index the children of ``parent_id`` following ``new_order``.

    ``new_order`` must be a permutation of the current children's ids.
    """
    siblings = tree.children_of(level, parent_id)
    by_id = {n.id: n for n in siblings}
    if len(new_order) != len(siblings) or set(new_order) != set(by_id):
        raise TreeInvariantError(
            f"Reorder of {level.value} under {parent_id} is not a permutation of its children"
        )
    reordered = assign_positions(by_id[node_id] for node_id in new_order)
    tree.set_children_of(level, parent_id, reordered)
    return Mutation(
        f"reorder {level.value} of {parent_id}",
        [StoreWrite.upsert_positions(level, reordered)],
    )


# --------------------------------------------------------------------------
# Field updates
# --------------------------------------------------------------------------


def _wire_value(value: Any) -> Any:
    return value.value if hasattr(value, "value") else value


def update_node(tree: TranscriptionTree, level: EntityLevel, node_id: str, **changes: Any) -> Mutation:
    """Change editable fields of one node in place.

    Setting a Bloc's content to blank text clears its status; giving content
    to a Bloc whose status is unset makes it a draft again.
    """
    unknown = set(changes) - EDITABLE_FIELDS[level]
    if unknown:
        raise TreeInvariantError(f"Fields {sorted(unknown)} cannot be edited on {level.value}")

    parent_id, _, node = _locate(tree, level, node_id)

    if level is EntityLevel.BLOC and "content" in changes and "status" not in changes:
        if not changes["content"].strip():
            changes["status"] = None
        elif node.status is None:
            changes["status"] = Status.DRAFT

    if "status" in changes and changes["status"] is not None:
        changes["status"] = Status(changes["status"])
    if "kind" in changes:
        changes["kind"] = BlocKind(changes["kind"])

    columns: dict[str, Any] = {}
    for name, value in changes.items():
        setattr(node, name, value)
        alias = type(node).model_fields[name].alias or name
        columns[alias] = _wire_value(value)

    mutation = Mutation(f"update {level.value[:-1]} {node_id} ({', '.join(sorted(changes))})", node_id=node_id)
    if columns:
        mutation.writes.append(StoreWrite.update(level, node_id, columns))
    if "status" in changes:
        mutation.rollup = _parent_rollup(level, parent_id)
    return mutation
