"""Rebuild a transcription tree from store rows.

Mirrors the hierarchy-building pass used for flat exports: link children
to parents, then sort every sibling group by its stored position so every
traversal sees siblings in editor order.
"""

from collections import defaultdict
from collections.abc import Iterable, Mapping
from typing import Any

from ..models import Annotation, Bloc, Document, Section, TranscriptionTree
from .ordering import positions_are_dense


def _by_position(rows: Iterable[Mapping[str, Any]]) -> list[Mapping[str, Any]]:
    return sorted(rows, key=lambda r: (r.get("ordre") or 0))


def build_tree(
    owner_id: str,
    document_rows: Iterable[Mapping[str, Any]],
    annotation_rows: Iterable[Mapping[str, Any]] = (),
) -> TranscriptionTree:
    """Assemble Documents → Sections → Blocs from nested rows.

    ``document_rows`` are ``transcription_documents`` rows with embedded
    ``sections`` and, inside those, ``blocs``. Parent pointers are taken from
    the container a row is nested in. Annotations are attached by ``bloc_id``;
    those pointing at unknown Blocs are ignored.
    """
    annotations: dict[str, list[Annotation]] = defaultdict(list)
    for row in annotation_rows:
        annotation = Annotation.model_validate(row)
        annotations[annotation.bloc_id].append(annotation)

    documents: list[Document] = []
    for doc_row in _by_position(document_rows):
        doc_fields = {k: v for k, v in doc_row.items() if k != "sections"}
        doc_fields["acte_id"] = owner_id
        document = Document.model_validate(doc_fields)

        sections: list[Section] = []
        for section_row in _by_position(doc_row.get("sections") or []):
            section_fields = {k: v for k, v in section_row.items() if k != "blocs"}
            section_fields["document_id"] = document.id
            section = Section.model_validate(section_fields)

            blocs: list[Bloc] = []
            for bloc_row in _by_position(section_row.get("blocs") or []):
                bloc_fields = dict(bloc_row)
                bloc_fields["section_id"] = section.id
                bloc_fields["mentions"] = annotations.get(bloc_row["id"], [])
                blocs.append(Bloc.model_validate(bloc_fields))
            section.blocs = blocs
            sections.append(section)
        document.sections = sections
        documents.append(document)

    return TranscriptionTree(owner_id=owner_id, documents=documents)


def check_invariants(tree: TranscriptionTree) -> list[str]:
    """List every violated structural invariant (empty when the tree is sound).

    Checks dense 1..N positions in every sibling list, parent pointers that
    match the holding container, and globally unique ids.
    """
    problems: list[str] = []
    seen: set[str] = set()

    def _check(container: str, parent_id: str, nodes: list[Any]) -> None:
        if not positions_are_dense(nodes):
            positions = sorted(n.position for n in nodes)
            problems.append(f"{container}: positions {positions} are not 1..{len(nodes)}")
        for node in nodes:
            if node.parent_id != parent_id:
                problems.append(f"{node.level.value} {node.id}: parent {node.parent_id} != {parent_id}")
            if node.id in seen:
                problems.append(f"{node.level.value} {node.id}: duplicate id")
            seen.add(node.id)

    _check(f"acte {tree.owner_id}", tree.owner_id, tree.documents)
    for doc in tree.documents:
        _check(f"document {doc.id}", doc.id, doc.sections)
        for section in doc.sections:
            _check(f"section {section.id}", section.id, section.blocs)
    return problems
