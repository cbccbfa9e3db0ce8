"""Remote store client and editing session."""

from .api_client import TranscriptionStoreClient
from .api_client_core import TranscriptionStoreCore, log_event
from .rate_limiter import AdaptiveRateLimiter
from .session import TranscriptionSession, TranscriptionStore

__all__ = [
    "AdaptiveRateLimiter",
    "TranscriptionSession",
    "TranscriptionStore",
    "TranscriptionStoreClient",
    "TranscriptionStoreCore",
    "log_event",
]
