"""Editing session for the transcription tree of one acte.

The session is the single writer of its in-memory tree. Every public
operation runs in two steps:

1. Optimistic apply: the tree engine mutates the tree synchronously, so the
   change is visible before any await.
2. Persist: the resulting store writes are sent in order. If one fails, the
   remaining writes are dropped and the whole tree is reloaded from the store
   (reconciliation). If all succeed, the status rollup runs for the affected
   containers.

There is no rollback and no retry: reloading is the only compensation, and
it may visibly undo the attempted change.
"""

import uuid
from collections.abc import Callable, Sequence
from typing import Any, Protocol

from pydantic import ValidationError

from ..models import (
    BlocKind,
    EntityLevel,
    RemoteStoreError,
    Status,
    TranscriptionTree,
    TreeInvariantError,
    TreeLoadError,
)
from ..tree import assembly, mutations
from ..tree.markdown import parse_bloc_drafts, render_markdown
from ..tree.mutations import Mutation, StoreWrite
from ..tree.rollup import needs_update
from .api_client_core import _ClientLogger


class TranscriptionStore(Protocol):
    """What the session needs from the remote store."""

    async def insert(self, level: EntityLevel, rows: list[dict[str, Any]]) -> None: ...

    async def update(self, level: EntityLevel, node_id: str, fields: dict[str, Any]) -> None: ...

    async def delete(self, level: EntityLevel, node_id: str) -> None: ...

    async def upsert(self, level: EntityLevel, rows: list[dict[str, Any]]) -> None: ...

    async def fetch_document_rows(self, owner_id: str) -> list[dict[str, Any]]: ...

    async def fetch_annotation_rows(self, owner_id: str) -> list[dict[str, Any]]: ...


def _new_id() -> str:
    return str(uuid.uuid4())


class TranscriptionSession:
    """Optimistic editor state for one acte, synchronized with the store."""

    def __init__(self, store: TranscriptionStore, id_factory: Callable[[], str] = _new_id):
        self.store = store
        self._new_id = id_factory
        self.owner_id: str | None = None
        self.tree: TranscriptionTree | None = None
        self.loading = False
        self.error: str | None = None
        self.sync_error: str | None = None
        self.focused_bloc_id: str | None = None
        self._sync_log = _ClientLogger("SYNC")
        self._loader_log = _ClientLogger("LOADER")
        self._rollup_log = _ClientLogger("ROLLUP")

    # ------------------------------------------------------------------
    # Loading / reconciliation
    # ------------------------------------------------------------------

    async def load(self, owner_id: str) -> TranscriptionTree:
        """Fetch the full tree of ``owner_id`` and replace the local one.

        Raises:
            TreeLoadError: the store could not be read, or returned rows the
                models reject. ``error`` keeps the message and the previous
                tree is left untouched.
        """
        self.loading = True
        self.error = None
        try:
            document_rows = await self.store.fetch_document_rows(owner_id)
            annotation_rows = await self.store.fetch_annotation_rows(owner_id)
            tree = assembly.build_tree(owner_id, document_rows, annotation_rows)
        except (RemoteStoreError, ValidationError) as err:
            self.error = str(err)
            self._loader_log.error(f"Loading acte {owner_id} failed: {err}")
            raise TreeLoadError(owner_id, err) from err
        finally:
            self.loading = False

        problems = assembly.check_invariants(tree)
        if problems:
            self._loader_log.warning(f"acte {owner_id} loaded with {len(problems)} inconsistency(ies): {problems}")

        self.owner_id = owner_id
        self.tree = tree
        if self.focused_bloc_id is not None and not tree.has_bloc(self.focused_bloc_id):
            self.focused_bloc_id = None
        self._loader_log.info(f"Loaded acte {owner_id}: {len(tree.documents)} document(s)")
        return tree

    async def reconcile(self) -> bool:
        """Replace the optimistic tree with the store's version.

        Returns False when the reload itself failed; the failure stays
        visible through ``error``.
        """
        if self.owner_id is None:
            return False
        self._sync_log.info(f"Reconciling acte {self.owner_id} from store")
        try:
            await self.load(self.owner_id)
        except TreeLoadError as err:
            self._sync_log.error(f"Reconciliation of acte {self.owner_id} failed: {err}")
            return False
        return True

    def _tree(self) -> TranscriptionTree:
        if self.tree is None:
            raise TreeInvariantError("No transcription loaded; call load() first")
        return self.tree

    # ------------------------------------------------------------------
    # Write runner
    # ------------------------------------------------------------------

    async def _apply(self, write: StoreWrite) -> None:
        if write.op == "insert":
            await self.store.insert(write.level, write.rows)
        elif write.op == "upsert":
            await self.store.upsert(write.level, write.rows)
        elif write.op == "update":
            await self.store.update(write.level, write.node_id, write.fields)
        elif write.op == "delete":
            await self.store.delete(write.level, write.node_id)
        else:
            raise TreeInvariantError(f"Unknown store operation {write.op!r}")

    async def _persist(self, description: str, writes: Sequence[StoreWrite]) -> bool:
        """Send writes in order; on the first failure reconcile and stop."""
        for write in writes:
            try:
                await self._apply(write)
            except RemoteStoreError as err:
                self.sync_error = f"{write.describe()}: {err}"
                self._sync_log.error(f"{description}: {write.describe()} failed: {err}")
                await self.reconcile()
                return False
        return True

    async def _commit(self, mutation: Mutation) -> bool:
        """Publish focus changes, persist the writes, then roll statuses up."""
        self.sync_error = None
        if mutation.focus is not None:
            self.focused_bloc_id = mutation.focus
        elif self.focused_bloc_id is not None and not self._tree().has_bloc(self.focused_bloc_id):
            self.focused_bloc_id = None

        if not await self._persist(mutation.description, mutation.writes):
            return False
        for level, container_id in mutation.rollup:
            if not await self._recompute(level, container_id):
                return False
        return True

    # ------------------------------------------------------------------
    # Status rollup
    # ------------------------------------------------------------------

    async def _recompute(self, level: EntityLevel, container_id: str) -> bool:
        """Recompute one container's status and walk up while it changes.

        Returns False if a status write failed (the tree was reconciled).
        """
        tree = self._tree()
        if level is EntityLevel.SECTION:
            doc, container = tree.section(container_id)
            parent: tuple[EntityLevel, str] | None = (EntityLevel.DOCUMENT, doc.id)
        elif level is EntityLevel.DOCUMENT:
            container = tree.document(container_id)
            parent = None
        else:
            raise TreeInvariantError("Blocs have no children to roll up")

        new_status = needs_update(container.status, [child.status for child in container.get_children()])
        if new_status is None:
            return True

        self._rollup_log.info(
            f"{level.value[:-1]} {container_id}: {container.status and container.status.value} -> {new_status.value}"
        )
        container.status = new_status
        write = StoreWrite.update(level, container_id, {"statut": new_status.value})
        if not await self._persist(f"rollup {level.value[:-1]} {container_id}", [write]):
            return False
        if parent is not None:
            return await self._recompute(*parent)
        return True

    async def recompute_section_status(self, section_id: str) -> bool:
        return await self._recompute(EntityLevel.SECTION, section_id)

    async def recompute_document_status(self, document_id: str) -> bool:
        return await self._recompute(EntityLevel.DOCUMENT, document_id)

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    async def add_document(self, title: str = "", index: int | None = None) -> str:
        """Add a Document (with one empty Section and Bloc); return its id."""
        mutation = mutations.add_document(self._tree(), self._new_id, title, index)
        await self._commit(mutation)
        return mutation.node_id

    async def delete_document(self, document_id: str) -> None:
        await self._commit(mutations.delete_node(self._tree(), EntityLevel.DOCUMENT, document_id))

    async def duplicate_document(self, document_id: str) -> str:
        mutation = mutations.duplicate_node(self._tree(), self._new_id, EntityLevel.DOCUMENT, document_id)
        await self._commit(mutation)
        return mutation.node_id

    async def update_document(self, document_id: str, **fields: Any) -> None:
        """Patch a Document's title and/or status."""
        await self._commit(mutations.update_node(self._tree(), EntityLevel.DOCUMENT, document_id, **fields))

    async def update_document_title(self, document_id: str, title: str) -> None:
        await self.update_document(document_id, title=title)

    async def set_document_status(self, document_id: str, status: Status) -> None:
        await self.update_document(document_id, status=status)

    # ------------------------------------------------------------------
    # Sections
    # ------------------------------------------------------------------

    async def add_section(
        self,
        document_id: str,
        with_initial_bloc: bool = True,
        title: str = "",
        index: int | None = None,
    ) -> str:
        mutation = mutations.add_section(self._tree(), self._new_id, document_id, with_initial_bloc, title, index)
        await self._commit(mutation)
        return mutation.node_id

    async def delete_section(self, section_id: str) -> None:
        await self._commit(mutations.delete_node(self._tree(), EntityLevel.SECTION, section_id))

    async def duplicate_section(self, section_id: str) -> str:
        mutation = mutations.duplicate_node(self._tree(), self._new_id, EntityLevel.SECTION, section_id)
        await self._commit(mutation)
        return mutation.node_id

    async def update_section(self, section_id: str, **fields: Any) -> None:
        """Patch a Section's title and/or status in one commit."""
        await self._commit(mutations.update_node(self._tree(), EntityLevel.SECTION, section_id, **fields))

    async def update_section_title(self, section_id: str, title: str) -> None:
        await self._commit(mutations.update_node(self._tree(), EntityLevel.SECTION, section_id, title=title))

    async def set_section_status(self, section_id: str, status: Status) -> None:
        await self._commit(mutations.update_node(self._tree(), EntityLevel.SECTION, section_id, status=status))

    # ------------------------------------------------------------------
    # Blocs
    # ------------------------------------------------------------------

    async def add_bloc(
        self,
        section_id: str,
        content: str = "",
        index: int | None = None,
        kind: BlocKind = BlocKind.TEXT,
    ) -> str:
        """Insert a Bloc at ``index`` (default: end) and focus it."""
        mutation = mutations.add_bloc(self._tree(), self._new_id, section_id, content, index, kind)
        await self._commit(mutation)
        return mutation.node_id

    async def add_blocs_from_markdown(self, section_id: str, text: str, index: int | None = None) -> list[str]:
        """Split Markdown into Blocs and insert them consecutively at ``index``."""
        drafts = parse_bloc_drafts(text)
        if not drafts:
            return []
        mutation = mutations.add_blocs(self._tree(), self._new_id, section_id, drafts, index)
        new_ids = [row["id"] for row in mutation.writes[0].rows]
        await self._commit(mutation)
        return new_ids

    async def delete_bloc(self, bloc_id: str) -> None:
        await self._commit(mutations.delete_node(self._tree(), EntityLevel.BLOC, bloc_id))

    async def duplicate_bloc(self, bloc_id: str) -> str:
        mutation = mutations.duplicate_node(self._tree(), self._new_id, EntityLevel.BLOC, bloc_id)
        await self._commit(mutation)
        return mutation.node_id

    async def move_bloc(self, bloc_id: str, to_section_id: str, index: int | None = None) -> None:
        await self._commit(mutations.move_bloc(self._tree(), bloc_id, to_section_id, index))

    async def update_bloc(self, bloc_id: str, **fields: Any) -> None:
        """Patch a Bloc's content, kind and/or status in one commit.

        An explicit ``status`` wins over the status implied by the content.
        """
        await self._commit(mutations.update_node(self._tree(), EntityLevel.BLOC, bloc_id, **fields))

    async def update_bloc_content(self, bloc_id: str, content: str) -> None:
        await self._commit(mutations.update_node(self._tree(), EntityLevel.BLOC, bloc_id, content=content))

    async def update_bloc_kind(self, bloc_id: str, kind: BlocKind) -> None:
        await self._commit(mutations.update_node(self._tree(), EntityLevel.BLOC, bloc_id, kind=kind))

    async def set_bloc_status(self, bloc_id: str, status: Status) -> None:
        await self._commit(mutations.update_node(self._tree(), EntityLevel.BLOC, bloc_id, status=status))

    # ------------------------------------------------------------------
    # Ordering, focus, export
    # ------------------------------------------------------------------

    async def reorder(self, level: EntityLevel, parent_id: str, new_order: Sequence[str]) -> None:
        """Apply a full permutation of ``parent_id``'s children.

        ``parent_id`` is the acte id for Documents, a Document id for
        Sections and a Section id for Blocs.
        """
        await self._commit(mutations.reorder(self._tree(), EntityLevel(level), parent_id, new_order))

    def focus_bloc(self, bloc_id: str | None) -> None:
        if bloc_id is not None and not self._tree().has_bloc(bloc_id):
            raise TreeInvariantError(f"Bloc {bloc_id} not found for acte {self.owner_id}")
        self.focused_bloc_id = bloc_id

    def export_markdown(self) -> str:
        return render_markdown(self._tree())

    def snapshot(self) -> dict[str, Any]:
        """JSON-able view of the session state for collaborators."""
        return {
            "acte_id": self.owner_id,
            "loading": self.loading,
            "error": self.error,
            "sync_error": self.sync_error,
            "focused_bloc_id": self.focused_bloc_id,
            "documents": [
                doc.model_dump(mode="json", by_alias=True) for doc in (self.tree.documents if self.tree is not None else [])
            ],
        }
