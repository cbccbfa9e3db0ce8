"""Transcription tree editor: documents, sections and blocs of an acte."""

from .client import TranscriptionSession, TranscriptionStoreClient
from .models import (
    Annotation,
    Bloc,
    BlocKind,
    Document,
    EntityLevel,
    Section,
    Status,
    TranscriptionError,
    TranscriptionTree,
)

__version__ = "0.1.0"

__all__ = [
    "Annotation",
    "Bloc",
    "BlocKind",
    "Document",
    "EntityLevel",
    "Section",
    "Status",
    "TranscriptionError",
    "TranscriptionSession",
    "TranscriptionStoreClient",
    "TranscriptionTree",
]
