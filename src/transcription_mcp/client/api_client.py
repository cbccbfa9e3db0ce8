"""Transcription store client - tree-level reads and per-level writes."""

from typing import Any

from ..models import EntityLevel
from .api_client_core import TranscriptionStoreCore, _ClientLogger

ENTITIES_TABLE = "transcription_entites"
MENTIONS_TABLE = "transcription_entites_mentions"

# One round trip for the whole tree: documents with their sections and blocs.
TREE_SELECT = "*,sections:transcription_sections(*,blocs:transcription_blocs(*))"


class TranscriptionStoreClient(TranscriptionStoreCore):
    """Store client speaking in tree levels rather than table names.

    This is the object the editing session writes through. Each write method
    maps to exactly one HTTP request.
    """

    async def insert(self, level: EntityLevel, rows: list[dict[str, Any]]) -> None:
        await self.insert_rows(level.table, rows)

    async def update(self, level: EntityLevel, node_id: str, fields: dict[str, Any]) -> None:
        await self.update_row(level.table, node_id, fields)

    async def delete(self, level: EntityLevel, node_id: str) -> None:
        await self.delete_row(level.table, node_id)

    async def upsert(self, level: EntityLevel, rows: list[dict[str, Any]]) -> None:
        await self.upsert_rows(level.table, rows)

    async def fetch_document_rows(self, owner_id: str) -> list[dict[str, Any]]:
        """Return the Documents of an acte with embedded Sections and Blocs."""
        return await self.select_rows(
            EntityLevel.DOCUMENT.table,
            {"select": TREE_SELECT, "acte_id": f"eq.{owner_id}"},
        )

    async def fetch_annotation_rows(self, owner_id: str) -> list[dict[str, Any]]:
        """Return the mention spans of every entity recorded for an acte.

        Two reads: the acte's entity ids, then the mentions of those entities.
        """
        entities = await self.select_rows(
            ENTITIES_TABLE,
            {"select": "id", "acte_id": f"eq.{owner_id}", "source_table": "eq.actes"},
        )
        entity_ids = [row["id"] for row in entities if row.get("id")]
        if not entity_ids:
            return []
        mentions = await self.select_rows(
            MENTIONS_TABLE,
            {"select": "*", "entite_id": f"in.({','.join(entity_ids)})"},
        )
        _ClientLogger("LOADER").debug(
            f"acte {owner_id}: {len(mentions)} mention(s) across {len(entity_ids)} entit(ies)"
        )
        return mentions
