"""Transcription MCP server implementation using FastMCP."""

import logging
from contextlib import asynccontextmanager
from typing import Any, Literal

from fastmcp import FastMCP

from .client import AdaptiveRateLimiter, TranscriptionSession, TranscriptionStoreClient
from .config import ServerConfig, setup_logging
from .models import BlocKind, EntityLevel, Status

logger = logging.getLogger(__name__)

# Global client instance
_client: TranscriptionStoreClient | None = None
_rate_limiter: AdaptiveRateLimiter | None = None

# One editing session per acte, created on first use
_sessions: dict[str, TranscriptionSession] = {}

StatusValue = Literal["brouillon", "en cours de transcription", "transcrit"]
KindValue = Literal["texte", "titre", "liste-à-puces", "liste-numérotée"]
LevelValue = Literal["documents", "sections", "blocs"]


def get_client() -> TranscriptionStoreClient:
    """Get the global store client instance."""
    if _client is None:
        raise RuntimeError("Transcription store client not initialized. Server not started properly.")
    return _client


async def get_session(acte_id: str) -> TranscriptionSession:
    """Return the session of ``acte_id``, loading its tree on first use."""
    session = _sessions.get(acte_id)
    if session is None:
        session = TranscriptionSession(get_client())
        _sessions[acte_id] = session
    if session.tree is None:
        await session.load(acte_id)
    return session


def _result(session: TranscriptionSession, **extra: Any) -> dict:
    return {
        "success": session.sync_error is None,
        "acte_id": session.owner_id,
        "sync_error": session.sync_error,
        "error": session.error,
        "focused_bloc_id": session.focused_bloc_id,
        **extra,
    }


@asynccontextmanager
async def lifespan(_app: FastMCP):  # type: ignore[no-untyped-def]
    """Manage server lifecycle."""
    global _client, _rate_limiter

    logger.info("Starting Transcription MCP server")

    config = ServerConfig()  # type: ignore[call-arg]
    api_config = config.get_api_config()

    _rate_limiter = AdaptiveRateLimiter(
        initial_rate=config.rate_limit,
        min_rate=config.rate_limit_min,
        max_rate=config.rate_limit_max,
    )
    _client = TranscriptionStoreClient(api_config, rate_limiter=_rate_limiter)

    logger.info(f"Store client initialized with base URL: {api_config.base_url}")

    yield

    logger.info("Shutting down Transcription MCP server")
    _sessions.clear()
    if _client:
        await _client.close()
        _client = None
    _rate_limiter = None


# Initialize FastMCP server
mcp = FastMCP(
    "Transcription MCP Server",
    version="0.1.0",
    instructions="MCP server for editing the transcription tree (documents, sections, blocs) of an acte",
    lifespan=lifespan,
)


# --------------------------------------------------------------------------
# Loading and reading
# --------------------------------------------------------------------------


@mcp.tool(name="transcription_load", description="(Re)load the transcription tree of an acte from the store")
async def load_tree(acte_id: str) -> dict:
    """Fetch the full tree of an acte, replacing any cached copy.

    Args:
        acte_id: Owning record whose Documents are loaded

    Returns:
        Session snapshot with the whole tree
    """
    session = _sessions.get(acte_id) or TranscriptionSession(get_client())
    _sessions[acte_id] = session
    await session.load(acte_id)
    return session.snapshot()


@mcp.tool(name="transcription_tree", description="Return the cached transcription tree of an acte")
async def get_tree(acte_id: str) -> dict:
    session = await get_session(acte_id)
    return session.snapshot()


@mcp.tool(name="transcription_export_markdown", description="Render an acte's transcription as Markdown")
async def export_markdown(acte_id: str) -> dict:
    session = await get_session(acte_id)
    return _result(session, markdown=session.export_markdown())


@mcp.tool(name="transcription_focus_bloc", description="Set (or clear with null) the focused bloc")
async def focus_bloc(acte_id: str, bloc_id: str | None = None) -> dict:
    session = await get_session(acte_id)
    session.focus_bloc(bloc_id)
    return _result(session)


# --------------------------------------------------------------------------
# Documents
# --------------------------------------------------------------------------


@mcp.tool(
    name="transcription_add_document",
    description="Add a document (seeded with one empty section and bloc) at a position",
)
async def add_document(acte_id: str, title: str = "", index: int | None = None) -> dict:
    """Add a Document.

    Args:
        acte_id: Owning record
        title: Document title
        index: 0-based insertion index among the acte's documents (default: end)
    """
    session = await get_session(acte_id)
    document_id = await session.add_document(title=title, index=index)
    return _result(session, document_id=document_id)


@mcp.tool(name="transcription_delete_document", description="Delete a document with its sections and blocs")
async def delete_document(acte_id: str, document_id: str) -> dict:
    session = await get_session(acte_id)
    await session.delete_document(document_id)
    return _result(session)


@mcp.tool(name="transcription_duplicate_document", description="Deep-copy a document right after itself")
async def duplicate_document(acte_id: str, document_id: str) -> dict:
    session = await get_session(acte_id)
    clone_id = await session.duplicate_document(document_id)
    return _result(session, document_id=clone_id)


@mcp.tool(name="transcription_update_document", description="Change a document's title and/or status")
async def update_document(
    acte_id: str,
    document_id: str,
    title: str | None = None,
    status: StatusValue | None = None,
) -> dict:
    session = await get_session(acte_id)
    fields: dict[str, Any] = {}
    if title is not None:
        fields["title"] = title
    if status is not None:
        fields["status"] = Status(status)
    if fields:
        await session.update_document(document_id, **fields)
    return _result(session)


# --------------------------------------------------------------------------
# Sections
# --------------------------------------------------------------------------


@mcp.tool(name="transcription_add_section", description="Add a section to a document")
async def add_section(
    acte_id: str,
    document_id: str,
    title: str = "",
    index: int | None = None,
    with_initial_bloc: bool = True,
) -> dict:
    session = await get_session(acte_id)
    section_id = await session.add_section(document_id, with_initial_bloc=with_initial_bloc, title=title, index=index)
    return _result(session, section_id=section_id)


@mcp.tool(name="transcription_delete_section", description="Delete a section with its blocs")
async def delete_section(acte_id: str, section_id: str) -> dict:
    session = await get_session(acte_id)
    await session.delete_section(section_id)
    return _result(session)


@mcp.tool(name="transcription_duplicate_section", description="Deep-copy a section right after itself")
async def duplicate_section(acte_id: str, section_id: str) -> dict:
    session = await get_session(acte_id)
    clone_id = await session.duplicate_section(section_id)
    return _result(session, section_id=clone_id)


@mcp.tool(name="transcription_update_section", description="Change a section's title and/or status")
async def update_section(
    acte_id: str,
    section_id: str,
    title: str | None = None,
    status: StatusValue | None = None,
) -> dict:
    session = await get_session(acte_id)
    fields: dict[str, Any] = {}
    if title is not None:
        fields["title"] = title
    if status is not None:
        fields["status"] = Status(status)
    if fields:
        await session.update_section(section_id, **fields)
    return _result(session)


# --------------------------------------------------------------------------
# Blocs
# --------------------------------------------------------------------------


@mcp.tool(name="transcription_add_bloc", description="Add a bloc to a section and focus it")
async def add_bloc(
    acte_id: str,
    section_id: str,
    content: str = "",
    kind: KindValue = "texte",
    index: int | None = None,
) -> dict:
    session = await get_session(acte_id)
    bloc_id = await session.add_bloc(section_id, content=content, index=index, kind=BlocKind(kind))
    return _result(session, bloc_id=bloc_id)


@mcp.tool(
    name="transcription_import_markdown",
    description="Split Markdown into blocs (headings, lists, paragraphs) and insert them into a section",
)
async def import_markdown(acte_id: str, section_id: str, markdown: str, index: int | None = None) -> dict:
    session = await get_session(acte_id)
    bloc_ids = await session.add_blocs_from_markdown(section_id, markdown, index=index)
    return _result(session, bloc_ids=bloc_ids)


@mcp.tool(name="transcription_delete_bloc", description="Delete a bloc")
async def delete_bloc(acte_id: str, bloc_id: str) -> dict:
    session = await get_session(acte_id)
    await session.delete_bloc(bloc_id)
    return _result(session)


@mcp.tool(name="transcription_duplicate_bloc", description="Copy a bloc right after itself")
async def duplicate_bloc(acte_id: str, bloc_id: str) -> dict:
    session = await get_session(acte_id)
    clone_id = await session.duplicate_bloc(bloc_id)
    return _result(session, bloc_id=clone_id)


@mcp.tool(name="transcription_move_bloc", description="Move a bloc to a position in a (possibly different) section")
async def move_bloc(acte_id: str, bloc_id: str, to_section_id: str, index: int | None = None) -> dict:
    session = await get_session(acte_id)
    await session.move_bloc(bloc_id, to_section_id, index)
    return _result(session)


@mcp.tool(name="transcription_update_bloc", description="Change a bloc's content, kind and/or status")
async def update_bloc(
    acte_id: str,
    bloc_id: str,
    content: str | None = None,
    kind: KindValue | None = None,
    status: StatusValue | None = None,
) -> dict:
    """Update a Bloc.

    Clearing the content also clears the status; giving content to a bloc
    without status makes it a draft.
    """
    session = await get_session(acte_id)
    fields: dict[str, Any] = {}
    if content is not None:
        fields["content"] = content
    if kind is not None:
        fields["kind"] = BlocKind(kind)
    if status is not None:
        fields["status"] = Status(status)
    if fields:
        await session.update_bloc(bloc_id, **fields)
    return _result(session)


# --------------------------------------------------------------------------
# Ordering
# --------------------------------------------------------------------------


@mcp.tool(name="transcription_reorder", description="Apply a full new order to the children of a container")
async def reorder(acte_id: str, level: LevelValue, parent_id: str, new_order: list[str]) -> dict:
    """Reorder siblings.

    Args:
        acte_id: Owning record
        level: Level of the reordered nodes
        parent_id: acte id for documents, document id for sections, section id for blocs
        new_order: Every child id exactly once, in the new order
    """
    session = await get_session(acte_id)
    await session.reorder(EntityLevel(level), parent_id, new_order)
    return _result(session)


def main() -> None:
    """Run the server on the stdio transport."""
    setup_logging(ServerConfig().log_level)  # type: ignore[call-arg]
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
