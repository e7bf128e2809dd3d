"""Error taxonomy for worship-sound.

Search failures are converted into tagged outcomes by the orchestrator;
these exceptions are raised by the collaborators underneath it and by
callers who prefer exceptions over outcomes.
"""

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    """Kind of failure carried by a ``Failed`` search outcome."""

    TRANSPORT = "transport"
    DECODING = "decoding"
    INVALID_QUERY = "invalid_query"


class WorshipSoundError(Exception):
    """Base class for all worship-sound errors."""


class SearchServiceError(WorshipSoundError):
    """Error talking to the remote track search service."""

    kind = ErrorKind.TRANSPORT

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class TransportError(SearchServiceError):
    """Network failure, timeout, non-2xx status or service-reported error."""

    kind = ErrorKind.TRANSPORT


class DecodingError(SearchServiceError):
    """The service answered but the body could not be decoded."""

    kind = ErrorKind.DECODING


class InvalidQueryError(WorshipSoundError):
    """An empty or blank query was given where one is required."""

    kind = ErrorKind.INVALID_QUERY


class NoSpiritualResultsError(WorshipSoundError):
    """A valid response classified to nothing, even after the fallback attempt."""


class PlaybackResourceError(WorshipSoundError):
    """A preview could not be fetched, decoded or played."""


ERRORS_BY_KIND = {
    ErrorKind.TRANSPORT: TransportError,
    ErrorKind.DECODING: DecodingError,
    ErrorKind.INVALID_QUERY: InvalidQueryError,
}
