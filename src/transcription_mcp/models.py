"""Data models for transcription trees, the remote store and its errors."""

from collections.abc import Iterator
from enum import Enum
from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict, Field, SecretStr, field_validator


class Status(str, Enum):
    """Completion status shared by Documents, Sections and Blocs.

    Values are the wire values stored in the ``statut`` columns. ``None`` is
    used for the unset status (a Bloc without content).
    """

    DRAFT = "brouillon"
    IN_PROGRESS = "en cours de transcription"
    DONE = "transcrit"


class BlocKind(str, Enum):
    """Rendering kind of a Bloc (``type`` column)."""

    TEXT = "texte"
    HEADING = "titre"
    BULLET_LIST = "liste-à-puces"
    NUMBERED_LIST = "liste-numérotée"


class EntityLevel(str, Enum):
    """The three levels of a transcription tree."""

    DOCUMENT = "documents"
    SECTION = "sections"
    BLOC = "blocs"

    @property
    def table(self) -> str:
        return f"transcription_{self.value}"

    @property
    def parent_column(self) -> str:
        return _PARENT_COLUMNS[self]


_PARENT_COLUMNS = {
    EntityLevel.DOCUMENT: "acte_id",
    EntityLevel.SECTION: "document_id",
    EntityLevel.BLOC: "section_id",
}


class APIConfiguration(BaseModel):
    """Connection settings for the remote store (Supabase REST endpoint)."""

    base_url: str
    api_key: SecretStr
    timeout: float = 30.0


# --------------------------------------------------------------------------
# Tree entities
# --------------------------------------------------------------------------


class Annotation(BaseModel):
    """A mention span attached to a Bloc by the annotation collaborator.

    Opaque from the tree's point of view: loaded with the tree, never
    written by it. Unknown columns are kept as extra fields.
    """

    model_config = ConfigDict(extra="allow", frozen=True)

    id: str
    bloc_id: str
    entite_id: str | None = None
    start: int | None = None
    end: int | None = None
    preview: str | None = None


class _TreeNode(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    level: ClassVar[EntityLevel]
    parent_field: ClassVar[str]
    child_field: ClassVar[str | None] = None
    row_exclude: ClassVar[set[str]] = set()

    @property
    def parent_id(self) -> str:
        return getattr(self, self.parent_field)

    def set_parent(self, parent_id: str) -> None:
        setattr(self, self.parent_field, parent_id)

    def get_children(self) -> list[Any]:
        if self.child_field is None:
            return []
        return getattr(self, self.child_field)

    def set_children(self, children: list[Any]) -> None:
        if self.child_field is None:
            raise TreeInvariantError(f"{self.level.value} nodes have no children")
        setattr(self, self.child_field, children)

    def to_row(self) -> dict[str, Any]:
        """Serialize to a store row (wire column names, no nested children)."""
        return self.model_dump(mode="json", by_alias=True, exclude=self.row_exclude)


class Bloc(_TreeNode):
    level: ClassVar[EntityLevel] = EntityLevel.BLOC
    parent_field: ClassVar[str] = "section_id"
    row_exclude: ClassVar[set[str]] = {"annotations"}

    id: str
    section_id: str
    kind: BlocKind = Field(default=BlocKind.TEXT, alias="type")
    content: str = Field(default="", alias="contenu")
    position: int = Field(default=0, alias="ordre")
    status: Status | None = Field(default=None, alias="statut")
    annotations: list[Annotation] = Field(default_factory=list, alias="mentions")

    @field_validator("content", mode="before")
    @classmethod
    def _null_content(cls, value: Any) -> Any:
        return "" if value is None else value


class Section(_TreeNode):
    level: ClassVar[EntityLevel] = EntityLevel.SECTION
    parent_field: ClassVar[str] = "document_id"
    child_field: ClassVar[str | None] = "blocs"
    row_exclude: ClassVar[set[str]] = {"blocs"}

    id: str
    document_id: str
    title: str = Field(default="", alias="titre")
    position: int = Field(default=0, alias="ordre")
    status: Status | None = Field(default=None, alias="statut")
    blocs: list[Bloc] = Field(default_factory=list)

    @field_validator("title", mode="before")
    @classmethod
    def _null_title(cls, value: Any) -> Any:
        return "" if value is None else value


class Document(_TreeNode):
    level: ClassVar[EntityLevel] = EntityLevel.DOCUMENT
    parent_field: ClassVar[str] = "owner_id"
    child_field: ClassVar[str | None] = "sections"
    row_exclude: ClassVar[set[str]] = {"sections"}

    id: str
    owner_id: str = Field(alias="acte_id")
    title: str = Field(default="", alias="titre")
    position: int = Field(default=0, alias="ordre")
    status: Status | None = Field(default=None, alias="statut")
    sections: list[Section] = Field(default_factory=list)

    @field_validator("title", mode="before")
    @classmethod
    def _null_title(cls, value: Any) -> Any:
        return "" if value is None else value


TreeNode = Document | Section | Bloc


class TranscriptionTree(BaseModel):
    """All Documents of one owning record (acte), with lookup helpers.

    Lookups raise TreeInvariantError when an id is not where the tree says it
    should be: callers only ask for ids they obtained from this tree.
    """

    owner_id: str
    documents: list[Document] = Field(default_factory=list)

    def document(self, document_id: str) -> Document:
        for doc in self.documents:
            if doc.id == document_id:
                return doc
        raise TreeInvariantError(f"Document {document_id} not found for acte {self.owner_id}")

    def section(self, section_id: str) -> tuple[Document, Section]:
        for doc in self.documents:
            for section in doc.sections:
                if section.id == section_id:
                    return doc, section
        raise TreeInvariantError(f"Section {section_id} not found for acte {self.owner_id}")

    def bloc(self, bloc_id: str) -> tuple[Document, Section, Bloc]:
        for doc in self.documents:
            for section in doc.sections:
                for bloc in section.blocs:
                    if bloc.id == bloc_id:
                        return doc, section, bloc
        raise TreeInvariantError(f"Bloc {bloc_id} not found for acte {self.owner_id}")

    def node(self, level: EntityLevel, node_id: str) -> TreeNode:
        if level is EntityLevel.DOCUMENT:
            return self.document(node_id)
        if level is EntityLevel.SECTION:
            return self.section(node_id)[1]
        return self.bloc(node_id)[2]

    def children_of(self, level: EntityLevel, parent_id: str) -> list[Any]:
        """Return the live sibling list holding nodes of ``level`` under ``parent_id``."""
        if level is EntityLevel.DOCUMENT:
            if parent_id != self.owner_id:
                raise TreeInvariantError(
                    f"Documents of acte {parent_id} are not loaded (current acte {self.owner_id})"
                )
            return self.documents
        if level is EntityLevel.SECTION:
            return self.document(parent_id).sections
        return self.section(parent_id)[1].blocs

    def set_children_of(self, level: EntityLevel, parent_id: str, children: list[Any]) -> None:
        if level is EntityLevel.DOCUMENT:
            self.children_of(level, parent_id)
            self.documents = children
        elif level is EntityLevel.SECTION:
            self.document(parent_id).sections = children
        else:
            self.section(parent_id)[1].blocs = children

    def has_bloc(self, bloc_id: str) -> bool:
        return any(bloc.id == bloc_id for bloc in self.iter_blocs())

    def iter_blocs(self) -> Iterator[Bloc]:
        for doc in self.documents:
            for section in doc.sections:
                yield from section.blocs


# --------------------------------------------------------------------------
# Errors
# --------------------------------------------------------------------------


class TranscriptionError(Exception):
    """Base class for every error raised by this package."""


class RemoteStoreError(TranscriptionError):
    """A request to the remote store failed."""


class NetworkError(RemoteStoreError):
    """Transport failure or server-side (5xx) error."""


class AuthenticationError(RemoteStoreError):
    """The store refused the API key."""


class StoreRejectedError(RemoteStoreError):
    """The store rejected the request (constraint violation, bad payload...)."""

    def __init__(self, status_code: int, message: str = "Request rejected by store"):
        self.status_code = status_code
        super().__init__(f"{message} (HTTP {status_code})")


class NodeNotFoundError(RemoteStoreError):
    def __init__(self, node_id: str | None = None, message: str = "Resource not found"):
        self.node_id = node_id
        super().__init__(f"{message}: {node_id}" if node_id else message)


class RateLimitError(RemoteStoreError):
    def __init__(self, retry_after: float | None = None):
        self.retry_after = retry_after
        detail = f" (retry after {retry_after}s)" if retry_after is not None else ""
        super().__init__(f"Rate limited by store{detail}")


class TimeoutError(RemoteStoreError):  # noqa: A001
    def __init__(self, operation: str):
        self.operation = operation
        super().__init__(f"Timed out during {operation}")


class TreeInvariantError(TranscriptionError):
    """A structural invariant of the tree does not hold.

    Fatal: the tree's own bookkeeping is wrong, so the operation is never
    retried or reconciled.
    """


class TreeLoadError(TranscriptionError):
    """The tree of an owning record could not be fetched from the store."""

    def __init__(self, owner_id: str, cause: BaseException | None = None):
        self.owner_id = owner_id
        self.cause = cause
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"Failed to load transcription of acte {owner_id}{detail}")
