from typing import Any, Dict, Iterable, List, Optional
import logging

import requests
import spotipy
from spotipy.exceptions import SpotifyException

from moodlist.domain.entities import ArtistRef, PlaylistHandle, SearchQuery, TopArtist, TopTrack, Track
from moodlist.domain.errors import NotAuthenticated, RateLimited, SearchError, WriteError
from moodlist.domain.ports import TokenProvider

logger = logging.getLogger(__name__)

SEARCH_PAGE_SIZE = 50
ARTISTS_PAGE_SIZE = 50


def build_search_query(query: SearchQuery) -> str:
    """Build the Spotify search string for a query descriptor."""
    parts = []
    if query.artist:
        parts.append(f'artist:"{query.artist}"')
    if query.genre:
        parts.append(f'genre:"{query.genre}"')
    if query.free_text:
        parts.append(query.free_text)
    return ' '.join(parts) or 'popular'


class SpotifyProvider:
    """Spotify implementation of the catalog, listening-history and playlist ports."""

    def __init__(self,
                 token_provider: TokenProvider,
                 market: Optional[str] = None,
                 time_range: str = 'short_term',
                 requests_timeout: int = 10):
        """Initialize Spotify provider.

        Args:
            token_provider: Source of a valid access token for every call
            market: Optional ISO country code passed to search
            time_range: Time range for top artists and tracks
            requests_timeout: HTTP timeout in seconds
        """
        self.token_provider = token_provider
        self.market = market
        self.time_range = time_range
        self.requests_timeout = requests_timeout
        self._token: Optional[str] = None
        self._client: Optional[spotipy.Spotify] = None

    def _get_client(self) -> spotipy.Spotify:
        """Return a client for the current token, rebuilding it when the token changed."""
        token = self.token_provider.get_valid_access_token()
        if self._client is None or token != self._token:
            self._client = spotipy.Spotify(auth=token, requests_timeout=self.requests_timeout)
            self._token = token
        return self._client

    def _translate_error(self, error: Exception, operation: str, write: bool = False) -> Exception:
        """Map spotipy and transport errors onto domain errors."""
        failure = WriteError if write else SearchError

        if isinstance(error, SpotifyException):
            if error.http_status == 401:
                return NotAuthenticated(f"Spotify rejected the access token during {operation}")
            if error.http_status == 429 and not write:
                headers = error.headers or {}
                retry_after = int(headers.get('Retry-After', 1))
                return RateLimited(retry_after_ms=retry_after * 1000,
                                   message=f"Rate limited during {operation}")
            return failure(f"Spotify {operation} failed ({error.http_status}): {error.msg}")

        if isinstance(error, requests.exceptions.RequestException):
            return failure(f"Network error during {operation}: {error}")

        return failure(f"Unexpected error during {operation}: {error}")

    def _track_to_domain(self, spotify_track: Dict[str, Any]) -> Optional[Track]:
        """Convert a Spotify track object to a domain Track.

        Returns:
            Track or None when the payload has no id
        """
        track_id = spotify_track.get('id')
        if not track_id:
            return None

        artists = tuple(
            ArtistRef(name=artist.get('name', ''), id=artist.get('id'))
            for artist in spotify_track.get('artists') or []
            if artist.get('name')
        )
        album = spotify_track.get('album') or {}

        return Track(
            id=track_id,
            name=spotify_track.get('name', ''),
            artists=artists,
            album=album.get('name', ''),
            popularity=spotify_track.get('popularity'),
            duration_ms=spotify_track.get('duration_ms', 0),
            preview_url=spotify_track.get('preview_url'),
            uri=spotify_track.get('uri') or f"spotify:track:{track_id}",
        )

    # TrackCatalog

    def search(self, query: SearchQuery) -> List[Track]:
        """Search tracks, paging with offsets when the limit exceeds one page.

        Raises:
            NotAuthenticated: on HTTP 401
            RateLimited: on HTTP 429
            SearchError: on any other failure
        """
        q = build_search_query(query)
        tracks: List[Track] = []
        offset = 0

        try:
            client = self._get_client()
            while offset < query.limit:
                page_size = min(SEARCH_PAGE_SIZE, query.limit - offset)
                kwargs: Dict[str, Any] = {'q': q, 'type': 'track', 'limit': page_size, 'offset': offset}
                if self.market:
                    kwargs['market'] = self.market
                response = client.search(**kwargs) or {}
                items = (response.get('tracks') or {}).get('items') or []

                for item in items:
                    track = self._track_to_domain(item) if item else None
                    if track:
                        tracks.append(track)

                if len(items) < page_size:
                    break
                offset += page_size
        except NotAuthenticated:
            raise
        except Exception as e:
            raise self._translate_error(e, f"search '{q}'") from e

        logger.debug(f"Spotify search '{q}' returned {len(tracks)} tracks")
        return tracks

    def artist_genres(self, artist_ids: Iterable[str]) -> Dict[str, List[str]]:
        """Look up genre tags for artists in pages of 50."""
        ids = [artist_id for artist_id in artist_ids if artist_id]
        genres: Dict[str, List[str]] = {}

        try:
            client = self._get_client()
            for i in range(0, len(ids), ARTISTS_PAGE_SIZE):
                response = client.artists(ids[i:i + ARTISTS_PAGE_SIZE]) or {}
                for artist in response.get('artists') or []:
                    if artist and artist.get('id'):
                        genres[artist['id']] = list(artist.get('genres') or [])
        except NotAuthenticated:
            raise
        except Exception as e:
            raise self._translate_error(e, "artist lookup") from e

        return genres

    # ListeningHistoryProvider

    def get_top_artists(self, limit: int = 5) -> List[TopArtist]:
        try:
            response = self._get_client().current_user_top_artists(limit=limit, time_range=self.time_range) or {}
        except NotAuthenticated:
            raise
        except Exception as e:
            raise self._translate_error(e, "top artists") from e

        return [
            TopArtist(id=item.get('id', ''), name=item.get('name', ''), genres=tuple(item.get('genres') or ()))
            for item in response.get('items') or []
        ]

    def get_top_tracks(self, limit: int = 5) -> List[TopTrack]:
        try:
            response = self._get_client().current_user_top_tracks(limit=limit, time_range=self.time_range) or {}
        except NotAuthenticated:
            raise
        except Exception as e:
            raise self._translate_error(e, "top tracks") from e

        return [TopTrack(id=item['id']) for item in response.get('items') or [] if item.get('id')]

    # PlaylistStore

    def current_user_id(self) -> str:
        try:
            return self._get_client().current_user()['id']
        except NotAuthenticated:
            raise
        except Exception as e:
            raise self._translate_error(e, "current user lookup", write=True) from e

    def create_playlist(self, owner_id: str, name: str, description: str, public: bool = False) -> PlaylistHandle:
        """Create an empty playlist owned by ``owner_id``.

        Raises:
            NotAuthenticated: on HTTP 401
            WriteError: on any other failure
        """
        try:
            result = self._get_client().user_playlist_create(
                owner_id,
                name,
                public=public,
                description=description,
            )
        except NotAuthenticated:
            raise
        except Exception as e:
            raise self._translate_error(e, f"create playlist '{name}'", write=True) from e

        images = result.get('images') or []
        return PlaylistHandle(
            id=result['id'],
            name=result.get('name', name),
            url=(result.get('external_urls') or {}).get('spotify'),
            image_url=images[0].get('url') if images else None,
        )

    def add_tracks(self, playlist: PlaylistHandle, track_uris: List[str]) -> None:
        """Append up to 100 tracks to a playlist."""
        if not track_uris:
            return
        if len(track_uris) > 100:
            raise WriteError(f"Spotify accepts at most 100 tracks per request, got {len(track_uris)}")

        try:
            self._get_client().playlist_add_items(playlist.id, track_uris)
        except NotAuthenticated:
            raise
        except Exception as e:
            raise self._translate_error(e, f"add tracks to {playlist.id}", write=True) from e
