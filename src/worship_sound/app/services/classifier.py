"""Spiritual content classifier for worship-sound.

Decides from text metadata alone whether a track is worship, gospel or
christian music and how strongly. All functions are pure: no I/O, no
exceptions for any string input, identical inputs give identical outputs.
"""

import unicodedata
from typing import Iterable, Optional, Sequence

from worship_sound.app.models import Track

SPIRITUAL_KEYWORDS: tuple[str, ...] = (
    # Primary spiritual terms
    "gospel", "worship", "christian", "spiritual", "praise", "hymn",
    "jesus", "christ", "god", "lord", "holy", "church", "prayer",
    "blessed", "faith", "salvation", "hallelujah", "alleluia", "amen",
    # Religious concepts
    "divine", "sacred", "sanctuary", "temple", "grace", "mercy",
    "forgiveness", "redemption", "resurrection", "cross", "heaven",
    "angel", "miracle", "glory", "eternal", "spirit", "soul",
    # Worship related
    "sing", "rejoice", "celebrate", "proclaim", "testify", "witness",
    "fellowship", "congregation", "ministry", "pastor", "priest",
    # Indonesian
    "rohani", "pujian", "ibadah", "kristiani", "kristen", "yesus",
    "tuhan", "doa", "gereja", "injil", "kasih", "iman", "berkat",
)

SPIRITUAL_ARTISTS: tuple[str, ...] = (
    # International
    "hillsong", "bethel", "elevation", "planetshakers", "jesus culture",
    "chris tomlin", "casting crowns", "mercyme", "skillet", "switchfoot",
    "third day", "newsboys", "kutless", "thousand foot krutch", "tobymac",
    "lecrae", "lauren daigle", "for king and country", "we came as romans",
    "august burns red", "as i lay dying", "demon hunter", "underoath",
    # Indonesian
    "true worshippers", "symphony worship", "jpcc worship", "gms",
    "nikita", "franky sihombing", "giving my best", "agnus dei",
    "the overtunes", "sidney mohede", "sari simorangkir", "dewi sandra",
)

TRENDING_QUERIES: tuple[str, ...] = (
    "gospel worship", "christian praise", "spiritual hymn",
    "jesus worship", "christ praise", "holy spirit",
    "worship songs", "praise and worship", "christian music",
    "gospel music", "contemporary christian", "church songs",
    "hillsong worship", "bethel music", "elevation worship",
    "worship instrumental", "praise team", "christian rock",
    "rohani kristen", "lagu pujian", "musik worship",
    "lagu gereja", "praise indonesia", "worship indonesia",
)

# Used by the search fallback; "{query}" is the user's original query
FALLBACK_TEMPLATES: tuple[str, ...] = (
    "gospel {query}",
    "worship {query}",
    "christian {query}",
    "{query} praise",
    "{query} hymn",
)

QUERY_SUFFIX = " worship christian gospel spiritual"
DEFAULT_QUERY = "worship christian gospel spiritual praise"

TITLE_POINTS, TITLE_CAP = 10, 40
ARTIST_POINTS, ARTIST_CAP = 5, 30
ALBUM_POINTS, ALBUM_CAP = 5, 30
MAX_SCORE = 100


def normalize_text(text: Optional[str]) -> str:
    """Normalize text for matching: NFKC, casefolded, stripped.

    ``None`` normalizes to the empty string.
    """
    if not text:
        return ""
    return unicodedata.normalize("NFKC", text).casefold().strip()


class SpiritualClassifier:
    """Keyword and artist based spiritual music classifier.

    Attributes:
        keywords: Normalized keyword set matched against every field
        artists: Normalized allow-list of worship-associated artists
    """

    def __init__(
        self,
        keywords: Iterable[str] = SPIRITUAL_KEYWORDS,
        artists: Iterable[str] = SPIRITUAL_ARTISTS,
    ):
        # dict.fromkeys keeps order and drops duplicates so counts stay distinct
        self.keywords: tuple[str, ...] = tuple(dict.fromkeys(normalize_text(k) for k in keywords if k))
        self.artists: tuple[str, ...] = tuple(dict.fromkeys(normalize_text(a) for a in artists if a))

    def count_spiritual_keywords(self, text: Optional[str]) -> int:
        """Count distinct keywords occurring in text.

        Args:
            text: Text to analyze (may be None)

        Returns:
            Number of distinct keywords found as substrings
        """
        normalized = normalize_text(text)
        if not normalized:
            return 0
        return sum(1 for keyword in self.keywords if keyword in normalized)

    def contains_spiritual_keywords(self, text: Optional[str]) -> bool:
        """Check if text contains at least one spiritual keyword."""
        normalized = normalize_text(text)
        if not normalized:
            return False
        return any(keyword in normalized for keyword in self.keywords)

    def is_spiritual_artist(self, artist_name: Optional[str]) -> bool:
        """Check if an artist is on the worship allow-list.

        Matching is bidirectional: the artist name contains a listed name,
        or a listed name contains the artist name. Blank names never match.
        """
        artist = normalize_text(artist_name)
        if not artist:
            return False
        return any(listed in artist or artist in listed for listed in self.artists)

    def is_spiritual_song(self, track: Optional[Track]) -> bool:
        """Check if a track is spiritual music.

        True if the title, artist (keyword or allow-list) or album matches,
        regardless of the numeric score.
        """
        if track is None:
            return False
        if self.contains_spiritual_keywords(track.title):
            return True
        if self.contains_spiritual_keywords(track.artist_name) or self.is_spiritual_artist(track.artist_name):
            return True
        return self.contains_spiritual_keywords(track.album_title)

    def calculate_spiritual_score(self, track: Optional[Track]) -> int:
        """Calculate a 0-100 spiritual score for a track.

        Title hits are worth 10 points each (max 40). An allow-listed artist
        is worth 30, otherwise artist hits are worth 5 each (max 30). Album
        hits are worth 5 each (max 30).

        Args:
            track: Track to score (None scores 0)

        Returns:
            Integer score in [0, 100]
        """
        if track is None:
            return 0

        title_score = min(TITLE_CAP, TITLE_POINTS * self.count_spiritual_keywords(track.title))

        if self.is_spiritual_artist(track.artist_name):
            artist_score = ARTIST_CAP
        else:
            artist_score = min(ARTIST_CAP, ARTIST_POINTS * self.count_spiritual_keywords(track.artist_name))

        album_score = min(ALBUM_CAP, ALBUM_POINTS * self.count_spiritual_keywords(track.album_title))

        return min(MAX_SCORE, title_score + artist_score + album_score)

    def filter_spiritual_songs(self, tracks: Optional[Sequence[Track]]) -> list[Track]:
        """Keep only spiritual tracks, preserving input order."""
        if not tracks:
            return []
        return [track for track in tracks if self.is_spiritual_song(track)]

    def enhance_query(self, query: Optional[str]) -> str:
        """Add spiritual context to a search query.

        Queries that already mention a spiritual keyword are returned as is.
        A blank query becomes a generic worship query.
        """
        if not query or not query.strip():
            return DEFAULT_QUERY
        if self.contains_spiritual_keywords(query):
            return query
        return query + QUERY_SUFFIX
