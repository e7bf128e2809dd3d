"""Deezer search API client for worship-sound.

Talks to the public Deezer ``/search`` endpoint and converts its JSON
payload into Track models. Failures are raised as TransportError or
DecodingError so the search orchestrator can report them.
"""

from typing import List, Optional

import httpx
from pydantic import BaseModel, Field, ValidationError

from worship_sound.app.errors import DecodingError, TransportError
from worship_sound.app.logging_config import get_logger
from worship_sound.app.models import SearchPage, Track

logger = get_logger(__name__)

DEFAULT_BASE_URL = "https://api.deezer.com"


class DeezerArtist(BaseModel):
    """Artist object nested in a Deezer track."""

    name: Optional[str] = None


class DeezerAlbum(BaseModel):
    """Album object nested in a Deezer track."""

    title: Optional[str] = None
    cover_medium: Optional[str] = None


class DeezerTrack(BaseModel):
    """A track entry of a Deezer search response."""

    id: int
    title: Optional[str] = None
    duration: Optional[int] = None
    preview: Optional[str] = None
    artist: Optional[DeezerArtist] = None
    album: Optional[DeezerAlbum] = None

    def to_track(self) -> Track:
        """Convert to the service-independent Track model."""
        return Track(
            id=self.id,
            title=self.title or "",
            artist_name=(self.artist.name or "") if self.artist else "",
            album_title=(self.album.title or "") if self.album else "",
            duration_seconds=self.duration or 0,
            preview_uri=self.preview or None,
            cover_uri=(self.album.cover_medium or None) if self.album else None,
        )


class DeezerErrorBody(BaseModel):
    """Error object Deezer returns with HTTP 200 (quota, bad parameter...)."""

    type: str = ""
    message: str = ""
    code: Optional[int] = None


class DeezerSearchResponse(BaseModel):
    """Response from ``GET /search``."""

    data: List[DeezerTrack] = Field(default_factory=list)
    total: int = 0
    next: Optional[str] = None
    prev: Optional[str] = None
    error: Optional[DeezerErrorBody] = None


class DeezerClient:
    """Async HTTP client for the Deezer track search API.

    Attributes:
        base_url: API base URL
        timeout: Request timeout in seconds
    """

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the Deezer client.

        Args:
            base_url: API base URL (e.g., "https://api.deezer.com")
            timeout: Request timeout in seconds
            transport: Optional httpx transport, used to stub the network
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    async def search(self, query: str, limit: int = 25, offset: int = 0) -> SearchPage:
        """Search tracks.

        Args:
            query: Free text query
            limit: Number of results to return (service max is 100)
            offset: Starting index for pagination

        Returns:
            SearchPage with the converted tracks and the reported total

        Raises:
            TransportError: On connection failure, timeout, non-2xx status or
                an error payload from the service
            DecodingError: If the body is not the expected JSON shape
        """
        url = f"{self.base_url}/search"
        params = {"q": query, "limit": limit, "index": offset}

        logger.info(f"Searching Deezer: q={query!r} limit={limit} index={offset}")

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.get(url, params=params)
                response.raise_for_status()
                payload = response.json()
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            logger.error(f"Deezer returned error status: {status}")
            raise TransportError(f"Search failed (HTTP {status})", status_code=status) from e
        except httpx.TimeoutException as e:
            logger.error("Deezer request timed out")
            raise TransportError("Search request timed out") from e
        except httpx.RequestError as e:
            logger.error(f"Deezer request failed: {e}")
            raise TransportError(f"Network error: {e}") from e
        except ValueError as e:
            logger.error(f"Deezer returned a non-JSON body: {e}")
            raise DecodingError(f"Malformed response body: {e}") from e

        try:
            body = DeezerSearchResponse.model_validate(payload)
        except ValidationError as e:
            logger.error(f"Unexpected Deezer response shape: {e}")
            raise DecodingError(f"Unexpected response shape: {e}") from e

        if body.error is not None:
            logger.error(f"Deezer error payload: {body.error.type} {body.error.message}")
            raise TransportError(
                f"Search service error: {body.error.message or body.error.type}",
                status_code=body.error.code,
            )

        tracks = [item.to_track() for item in body.data]
        logger.debug(f"Deezer returned {len(tracks)} tracks (total={body.total})")
        return SearchPage(tracks=tracks, total=body.total)
