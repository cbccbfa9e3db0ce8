"""Markdown export and import of transcription content.

Export walks the tree the way the outline exporter walks nodes: Document
titles become ``#`` headings, Section titles ``##`` headings, and each Bloc
is rendered according to its kind. The result is normalized by mdformat.

Import goes the other way for pasted text: markdown-it-py tokens are turned
into ``(kind, content)`` drafts that can be inserted as Blocs.
"""

from __future__ import annotations

import mdformat
from markdown_it import MarkdownIt

from ..models import Bloc, BlocKind, TranscriptionTree

UNTITLED = "(untitled)"


def _render_bloc(bloc: Bloc) -> list[str]:
    text = bloc.content.strip()
    if not text:
        return []
    if bloc.kind is BlocKind.HEADING:
        return [f"### {' '.join(text.split())}", ""]
    if bloc.kind is BlocKind.BULLET_LIST:
        return [f"- {line.strip()}" for line in text.splitlines() if line.strip()] + [""]
    if bloc.kind is BlocKind.NUMBERED_LIST:
        items = [line.strip() for line in text.splitlines() if line.strip()]
        return [f"{i}. {item}" for i, item in enumerate(items, start=1)] + [""]
    return [text, ""]


def render_markdown(tree: TranscriptionTree) -> str:
    """Render every Document of the tree, in position order, as Markdown."""
    lines: list[str] = []
    for doc in tree.documents:
        lines.append(f"# {doc.title.strip() or UNTITLED}")
        lines.append("")
        for section in doc.sections:
            if section.title.strip():
                lines.append(f"## {section.title.strip()}")
                lines.append("")
            for bloc in section.blocs:
                lines.extend(_render_bloc(bloc))
    return mdformat.text("\n".join(lines))


def parse_bloc_drafts(text: str) -> list[tuple[BlocKind, str]]:
    """Split Markdown into Bloc drafts, in document order.

    Headings of any level become heading Blocs, each bullet or ordered list
    becomes one list Bloc (one item per line), and every other block
    (paragraphs, quotes, code) becomes a text Bloc.
    """
    tokens = MarkdownIt("commonmark").parse(text)
    drafts: list[tuple[BlocKind, str]] = []
    list_kind: BlocKind | None = None
    list_items: list[str] = []
    depth = 0

    i = 0
    while i < len(tokens):
        token = tokens[i]
        if token.type in ("bullet_list_open", "ordered_list_open"):
            if depth == 0:
                list_kind = BlocKind.BULLET_LIST if token.type == "bullet_list_open" else BlocKind.NUMBERED_LIST
                list_items = []
            depth += 1
        elif token.type in ("bullet_list_close", "ordered_list_close"):
            depth -= 1
            if depth == 0 and list_kind is not None:
                if list_items:
                    drafts.append((list_kind, "\n".join(list_items)))
                list_kind = None
        elif token.type == "inline" and depth > 0:
            if token.content.strip():
                list_items.append(token.content.strip())
        elif token.type == "heading_open":
            content = tokens[i + 1].content if i + 1 < len(tokens) else ""
            if content.strip():
                drafts.append((BlocKind.HEADING, content.strip()))
            i += 1
        elif token.type == "inline" and token.content.strip():
            drafts.append((BlocKind.TEXT, token.content.strip()))
        elif token.type in ("fence", "code_block") and token.content.strip():
            drafts.append((BlocKind.TEXT, token.content.rstrip("\n")))
        i += 1
    return drafts
