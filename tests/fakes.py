"""In-memory stand-in for the remote store, with failure injection."""

import copy
import itertools

from transcription_mcp.models import EntityLevel, NetworkError, NodeNotFoundError

ACTE_ID = "acte-1"


class FakeStore:
    """Keeps one dict of rows per level and answers like the store client.

    ``fail_next(op, level)`` makes the next matching write raise a
    NetworkError without touching the rows. ``fail_fetch`` makes every load
    fail.
    """

    def __init__(self, documents=(), sections=(), blocs=(), mentions=()):
        self.rows = {
            EntityLevel.DOCUMENT: {r["id"]: dict(r) for r in documents},
            EntityLevel.SECTION: {r["id"]: dict(r) for r in sections},
            EntityLevel.BLOC: {r["id"]: dict(r) for r in blocs},
        }
        self.mentions = [dict(m) for m in mentions]
        self.calls = []
        self.fetch_count = 0
        self.fail_fetch = False
        self._failures = []

    def fail_next(self, op, level=None):
        self._failures.append((op, level))

    def _maybe_fail(self, op, level):
        for failure in self._failures:
            if failure[0] == op and failure[1] in (None, level):
                self._failures.remove(failure)
                raise NetworkError(f"injected failure on {op} {level.value}")

    def row(self, level, node_id):
        return self.rows[level][node_id]

    # Writes

    async def insert(self, level, rows):
        self.calls.append(("insert", level, [r["id"] for r in rows]))
        self._maybe_fail("insert", level)
        for r in rows:
            self.rows[level][r["id"]] = dict(r)

    async def upsert(self, level, rows):
        self.calls.append(("upsert", level, [r["id"] for r in rows]))
        self._maybe_fail("upsert", level)
        for r in rows:
            self.rows[level].setdefault(r["id"], {}).update(r)

    async def update(self, level, node_id, fields):
        self.calls.append(("update", level, node_id, dict(fields)))
        self._maybe_fail("update", level)
        if node_id not in self.rows[level]:
            raise NodeNotFoundError(node_id)
        self.rows[level][node_id].update(fields)

    async def delete(self, level, node_id):
        self.calls.append(("delete", level, node_id))
        self._maybe_fail("delete", level)
        if self.rows[level].pop(node_id, None) is None:
            raise NodeNotFoundError(node_id)
        # ON DELETE CASCADE
        if level is EntityLevel.DOCUMENT:
            for section_id in [s["id"] for s in self.rows[EntityLevel.SECTION].values() if s["document_id"] == node_id]:
                await self._cascade_section(section_id)
        elif level is EntityLevel.SECTION:
            self._drop_blocs(node_id)

    async def _cascade_section(self, section_id):
        self.rows[EntityLevel.SECTION].pop(section_id, None)
        self._drop_blocs(section_id)

    def _drop_blocs(self, section_id):
        for bloc_id in [b["id"] for b in self.rows[EntityLevel.BLOC].values() if b["section_id"] == section_id]:
            del self.rows[EntityLevel.BLOC][bloc_id]

    # Reads

    async def fetch_document_rows(self, owner_id):
        self.fetch_count += 1
        if self.fail_fetch:
            raise NetworkError("injected fetch failure")
        documents = []
        for doc in self.rows[EntityLevel.DOCUMENT].values():
            if doc["acte_id"] != owner_id:
                continue
            doc = copy.deepcopy(doc)
            doc["sections"] = []
            for section in self.rows[EntityLevel.SECTION].values():
                if section["document_id"] != doc["id"]:
                    continue
                section = copy.deepcopy(section)
                section["blocs"] = [
                    copy.deepcopy(b) for b in self.rows[EntityLevel.BLOC].values() if b["section_id"] == section["id"]
                ]
                doc["sections"].append(section)
            documents.append(doc)
        return documents

    async def fetch_annotation_rows(self, owner_id):
        return copy.deepcopy(self.mentions)


def sample_store():
    """One acte with one Document D1 holding S1 (B1, B2) and S2 (B3)."""
    return FakeStore(
        documents=[
            {"id": "D1", "acte_id": ACTE_ID, "titre": "Registre", "ordre": 1, "statut": "brouillon"},
        ],
        sections=[
            {"id": "S1", "document_id": "D1", "titre": "Folio 1", "ordre": 1, "statut": "brouillon"},
            {"id": "S2", "document_id": "D1", "titre": "Folio 2", "ordre": 2, "statut": "en cours de transcription"},
        ],
        blocs=[
            {"id": "B1", "section_id": "S1", "type": "texte", "contenu": "alpha", "ordre": 1, "statut": "brouillon"},
            {"id": "B2", "section_id": "S1", "type": "texte", "contenu": "beta", "ordre": 2, "statut": "brouillon"},
            {
                "id": "B3",
                "section_id": "S2",
                "type": "texte",
                "contenu": "gamma",
                "ordre": 1,
                "statut": "en cours de transcription",
            },
        ],
        mentions=[
            {"id": "M1", "entite_id": "E1", "bloc_id": "B1", "start": 0, "end": 5, "preview": "alpha"},
        ],
    )


def sample_rows():
    """Nested document rows equivalent to ``sample_store()``."""
    store = sample_store()
    documents = []
    for doc in store.rows[EntityLevel.DOCUMENT].values():
        doc = dict(doc)
        doc["sections"] = []
        for section in store.rows[EntityLevel.SECTION].values():
            section = dict(section)
            section["blocs"] = [dict(b) for b in store.rows[EntityLevel.BLOC].values() if b["section_id"] == section["id"]]
            doc["sections"].append(section)
        documents.append(doc)
    return documents


def counter_ids(prefix="new"):
    """Deterministic id factory: new-1, new-2, ..."""
    counter = itertools.count(1)
    return lambda: f"{prefix}-{next(counter)}"
