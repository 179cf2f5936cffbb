from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


@dataclass(frozen=True)
class ArtistRef:
    """Artist credit attached to a catalog track."""

    name: str
    id: Optional[str] = None


@dataclass(frozen=True)
class Track:
    """Domain entity representing a catalog track snapshot returned by search."""

    id: str
    name: str = ""
    artists: Tuple[ArtistRef, ...] = ()
    album: str = ""
    popularity: Optional[int] = None
    duration_ms: int = 0
    preview_url: Optional[str] = None
    uri: Optional[str] = None

    def __post_init__(self):
        if not isinstance(self.artists, tuple):
            object.__setattr__(self, 'artists', tuple(self.artists or ()))

    @property
    def artist_names(self) -> List[str]:
        return [a.name for a in self.artists if a.name]

    def has_artist(self, name: str) -> bool:
        """Case-insensitive exact match against the credited artists."""
        wanted = (name or "").lower()
        return any(a.name.lower() == wanted for a in self.artists if a.name)


@dataclass(frozen=True)
class TopArtist:
    """Artist from the user's listening history."""

    id: str
    name: str
    genres: Tuple[str, ...] = ()

    def __post_init__(self):
        if not isinstance(self.genres, tuple):
            object.__setattr__(self, 'genres', tuple(self.genres or ()))


@dataclass(frozen=True)
class TopTrack:
    """Track from the user's listening history. Only the identifier is used."""

    id: str


@dataclass(frozen=True)
class ListeningHistory:
    """Snapshot of the user's top artists and tracks."""

    top_artists: Tuple[TopArtist, ...] = ()
    top_tracks: Tuple[TopTrack, ...] = ()

    @property
    def top_artist_names(self) -> List[str]:
        return [a.name for a in self.top_artists if a.name]

    def genres_by_artist(self) -> Dict[str, List[str]]:
        """Map artist id and lowercased name to their genre tags."""
        lookup: Dict[str, List[str]] = {}
        for artist in self.top_artists:
            if artist.id:
                lookup[artist.id] = list(artist.genres)
            if artist.name:
                lookup.setdefault(artist.name.lower(), list(artist.genres))
        return lookup


class ArtistMode(str, Enum):
    """How the artist side of the quiz was answered."""

    CUSTOM = "custom"
    FAVORITES = "favorites"
    RANDOM_FROM_GENRE = "random_from_genre"


@dataclass(frozen=True)
class GenerationDirective:
    """Normalized quiz answers driving one generation request."""

    mood: str
    target_genres: Tuple[str, ...] = ()
    target_artists: Tuple[str, ...] = ()
    artist_mode: ArtistMode = ArtistMode.FAVORITES
    intensity_key: str = "medio"
    intensity_multiplier: float = 1.0
    playlist_name: Optional[str] = None
    description: Optional[str] = None

    @property
    def use_custom_genres(self) -> bool:
        return len(self.target_genres) > 0

    @property
    def use_custom_artists(self) -> bool:
        return self.artist_mode == ArtistMode.CUSTOM and len(self.target_artists) > 0

    @property
    def use_random_artists(self) -> bool:
        return self.artist_mode == ArtistMode.RANDOM_FROM_GENRE

    def to_dict(self) -> Dict[str, Any]:
        return {
            'mood': self.mood,
            'target_genres': list(self.target_genres),
            'target_artists': list(self.target_artists),
            'artist_mode': self.artist_mode.value,
            'intensity_key': self.intensity_key,
            'intensity_multiplier': self.intensity_multiplier,
            'playlist_name': self.playlist_name,
            'description': self.description,
        }


@dataclass(frozen=True)
class ResolvedTargets:
    """Genres and artists actually used for search and scoring."""

    genres: Tuple[str, ...] = ()
    artists: Tuple[str, ...] = ()
    favorite_names: Tuple[str, ...] = ()


@dataclass(frozen=True)
class Seeds:
    """Seed identifiers recorded with the playlist metadata."""

    track_ids: Tuple[str, ...] = ()
    artist_ids: Tuple[str, ...] = ()
    genres: Tuple[str, ...] = ()

    @property
    def total(self) -> int:
        return len(self.track_ids) + len(self.artist_ids) + len(self.genres)


@dataclass(frozen=True)
class SearchQuery:
    """Request descriptor for the track catalog."""

    artist: Optional[str] = None
    genre: Optional[str] = None
    free_text: Optional[str] = None
    limit: int = 50

    def describe(self) -> str:
        parts = []
        if self.artist:
            parts.append(f"artist={self.artist}")
        if self.genre:
            parts.append(f"genre={self.genre}")
        if self.free_text:
            parts.append(f"text={self.free_text}")
        return ", ".join(parts) or "popular"


@dataclass
class ScoredCandidate:
    """Track annotated with its relevance score during one generation."""

    track: Track
    score: float
    matched_requested_artist: bool = False
    matched_requested_genre: bool = False
    matched_mood_genre: bool = False
    genre_matches: int = 0


@dataclass(frozen=True)
class GenerationParameters:
    """Everything the persistence collaborator needs besides the tracks."""

    directive: GenerationDirective
    name: str
    description: str
    public: bool = False
    resolved_genres: Tuple[str, ...] = ()
    resolved_artists: Tuple[str, ...] = ()
    unsatisfiable_artists: Tuple[str, ...] = ()
    search_plan: Tuple[str, ...] = ()
    audio_features: Dict[str, Optional[float]] = field(default_factory=dict)
    seeds: Seeds = field(default_factory=Seeds)
    generated_at: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            **self.directive.to_dict(),
            'name': self.name,
            'description': self.description,
            'public': self.public,
            'resolved_genres': list(self.resolved_genres),
            'resolved_artists': list(self.resolved_artists),
            'unsatisfiable_artists': list(self.unsatisfiable_artists),
            'search_plan': list(self.search_plan),
            'audio_features': dict(self.audio_features),
            'seed_tracks': list(self.seeds.track_ids),
            'seed_artists': list(self.seeds.artist_ids),
            'seed_genres': list(self.seeds.genres),
            'generated_at': self.generated_at.isoformat(),
        }


@dataclass(frozen=True)
class GenerationResult:
    """Final, ordered playlist content plus generation parameters."""

    ordered_tracks: Tuple[Track, ...]
    parameters: GenerationParameters

    @property
    def track_uris(self) -> List[str]:
        return [t.uri for t in self.ordered_tracks if t.uri]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'parameters': self.parameters.to_dict(),
            'track_count': len(self.ordered_tracks),
            'tracks': [
                {
                    'id': t.id,
                    'name': t.name,
                    'artists': ", ".join(t.artist_names),
                    'album': t.album,
                    'popularity': t.popularity,
                    'duration_ms': t.duration_ms,
                    'preview_url': t.preview_url,
                    'uri': t.uri,
                }
                for t in self.ordered_tracks
            ],
        }


@dataclass(frozen=True)
class PlaylistHandle:
    """Playlist created by the persistence collaborator."""

    id: str
    name: str
    url: Optional[str] = None
    image_url: Optional[str] = None


@dataclass(frozen=True)
class PublishedPlaylist:
    """Result of creating and populating a playlist."""

    handle: PlaylistHandle
    track_count: int
    result: GenerationResult

    def to_dict(self) -> Dict[str, Any]:
        return {
            'playlist': {
                'id': self.handle.id,
                'name': self.handle.name,
                'url': self.handle.url,
                'image_url': self.handle.image_url,
                'track_count': self.track_count,
            },
            **self.result.to_dict(),
        }
