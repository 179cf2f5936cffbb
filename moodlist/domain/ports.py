from __future__ import annotations

from typing import Dict, Iterable, List, Protocol

from .entities import PlaylistHandle, SearchQuery, TopArtist, TopTrack, Track


class TokenProvider(Protocol):
    """Port delivering a valid bearer token on demand.

    The core never inspects or refreshes the token; expiry is signalled by raising
    NotAuthenticated.
    """

    def get_valid_access_token(self) -> str:
        """Return an access token or raise NotAuthenticated."""


class TrackCatalog(Protocol):
    """Port for searching the streaming catalog."""

    def search(self, query: SearchQuery) -> List[Track]:
        """Return tracks matching the query, raising SearchError on failure."""

    def artist_genres(self, artist_ids: Iterable[str]) -> Dict[str, List[str]]:
        """Return known genre tags keyed by artist id."""


class ListeningHistoryProvider(Protocol):
    """Port exposing the user's listening history."""

    def get_top_artists(self, limit: int = 5) -> List[TopArtist]:
        """Return the user's top artists with their genres."""

    def get_top_tracks(self, limit: int = 5) -> List[TopTrack]:
        """Return the user's top tracks."""


class PlaylistStore(Protocol):
    """Port creating and populating playlists."""

    def current_user_id(self) -> str:
        """Return the owner id for new playlists."""

    def create_playlist(self, owner_id: str, name: str, description: str, public: bool = False) -> PlaylistHandle:
        """Create an empty playlist."""

    def add_tracks(self, playlist: PlaylistHandle, track_uris: List[str]) -> None:
        """Append tracks to the playlist, raising WriteError on failure."""
