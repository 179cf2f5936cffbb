import logging
from dataclasses import dataclass
from typing import Dict, List, Mapping, Sequence, Tuple

from moodlist.crosscutting.config import GenerationSettings
from moodlist.domain.entities import GenerationDirective, ResolvedTargets, Track
from moodlist.domain.errors import ArtistsUnsatisfiable, NoCandidates
from moodlist.domain.genres import matches_flexible


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FilterSettings:
    """Popularity thresholds applied after constraint filtering."""

    strict_popularity_floor: int = 50
    relaxed_popularity_floor: int = 40
    strict_floor_min_tracks: int = 30
    popular_candidate_cap: int = 60
    candidate_cap: int = 50
    playlist_size: int = 30
    min_tracks_per_artist: int = 3

    @classmethod
    def from_settings(cls, settings: GenerationSettings) -> 'FilterSettings':
        return cls(
            strict_popularity_floor=settings.strict_popularity_floor,
            relaxed_popularity_floor=settings.relaxed_popularity_floor,
            strict_floor_min_tracks=settings.strict_floor_min_tracks,
            popular_candidate_cap=settings.popular_candidate_cap,
            candidate_cap=settings.candidate_cap,
            playlist_size=settings.playlist_size,
            min_tracks_per_artist=settings.min_tracks_per_artist,
        )


@dataclass(frozen=True)
class FilterOutcome:
    tracks: Tuple[Track, ...]
    unsatisfiable_artists: Tuple[str, ...] = ()


def artist_genres_for(track: Track, genres_by_artist: Mapping[str, Sequence[str]]) -> List[str]:
    """Collect known genre tags for every credited artist, looked up by id then name."""
    genres: List[str] = []
    for artist in track.artists:
        known = None
        if artist.id:
            known = genres_by_artist.get(artist.id)
        if known is None and artist.name:
            known = genres_by_artist.get(artist.name.lower())
        if known:
            genres.extend(known)
    return genres


def _popularity(track: Track) -> int:
    return track.popularity or 0


class ConstraintFilter:
    """Applies artist constraints, the soft genre preference and popularity shaping."""

    def __init__(self, settings: FilterSettings = FilterSettings()):
        self.settings = settings

    def apply(self,
              candidates: Sequence[Track],
              directive: GenerationDirective,
              targets: ResolvedTargets,
              genres_by_artist: Mapping[str, Sequence[str]]) -> FilterOutcome:
        """Narrow the aggregated candidates.

        Args:
            candidates: Unique tracks from the aggregator
            directive: Processed quiz answers
            targets: Resolved genres and artists
            genres_by_artist: Genre tags keyed by artist id and lowercased name

        Returns:
            FilterOutcome with the surviving tracks and artists that had no tracks

        Raises:
            ArtistsUnsatisfiable: if none of the requested artists has a track
            NoCandidates: if nothing survives
        """
        tracks = list(candidates)
        unsatisfiable: List[str] = []

        if directive.use_custom_artists:
            tracks, unsatisfiable = self._partition_by_artist(tracks, targets.artists)

        if directive.use_custom_genres and not directive.use_custom_artists and not directive.use_random_artists:
            tracks = self._prefer_genres(tracks, targets.genres, genres_by_artist)

        if directive.use_custom_artists:
            satisfiable = [a for a in targets.artists if a not in unsatisfiable]
            tracks = self._cap_per_artist(tracks, satisfiable)
        elif directive.use_random_artists and directive.use_custom_genres:
            tracks = self._popular_only(tracks)
        else:
            tracks = sorted(tracks, key=_popularity, reverse=True)[:self.settings.candidate_cap]

        if not tracks:
            raise NoCandidates("No tracks match your selection")

        logger.info(f"{len(tracks)} candidates left after filtering")
        return FilterOutcome(tracks=tuple(tracks), unsatisfiable_artists=tuple(unsatisfiable))

    def _partition_by_artist(self, tracks: List[Track], artists: Sequence[str]) -> Tuple[List[Track], List[str]]:
        by_artist: Dict[str, List[Track]] = {artist: [] for artist in artists}
        for track in tracks:
            for artist in artists:
                if track.has_artist(artist):
                    by_artist[artist].append(track)

        unsatisfiable = [artist for artist, matched in by_artist.items() if not matched]
        if unsatisfiable and len(unsatisfiable) == len(by_artist):
            raise ArtistsUnsatisfiable(unsatisfiable)
        if unsatisfiable:
            logger.warning(f"No tracks found for artists: {', '.join(unsatisfiable)}. Continuing without them")

        satisfiable = [artist for artist in artists if artist not in unsatisfiable]
        kept = [t for t in tracks if any(t.has_artist(artist) for artist in satisfiable)]
        return kept, unsatisfiable

    def _prefer_genres(self, tracks: List[Track], genres: Sequence[str],
                       genres_by_artist: Mapping[str, Sequence[str]]) -> List[Track]:
        preferred = [
            track for track in tracks
            if any(matches_flexible(g, genres) for g in artist_genres_for(track, genres_by_artist))
        ]
        if preferred:
            logger.debug(f"Genre preference kept {len(preferred)} of {len(tracks)} tracks")
            return preferred
        logger.info("No candidate matched the chosen genres, keeping all tracks")
        return tracks

    def _popular_only(self, tracks: List[Track]) -> List[Track]:
        s = self.settings
        strict = [t for t in tracks if _popularity(t) >= s.strict_popularity_floor]
        if len(strict) >= s.strict_floor_min_tracks:
            pool = strict
        else:
            logger.info(f"Only {len(strict)} tracks with popularity >= {s.strict_popularity_floor}, "
                        f"relaxing to {s.relaxed_popularity_floor}")
            pool = [t for t in tracks if _popularity(t) >= s.relaxed_popularity_floor]
        return sorted(pool, key=_popularity, reverse=True)[:s.popular_candidate_cap]

    def _cap_per_artist(self, tracks: List[Track], artists: Sequence[str]) -> List[Track]:
        """Keep each requested artist's most popular tracks so no artist is capped away."""
        s = self.settings
        n = max(1, len(artists))
        per_artist = max(s.min_tracks_per_artist, s.playlist_size // n, s.candidate_cap // n)

        kept_ids = set()
        for artist in artists:
            credited = sorted((t for t in tracks if t.has_artist(artist)), key=_popularity, reverse=True)
            kept_ids.update(t.id for t in credited[:per_artist])

        kept = [t for t in tracks if t.id in kept_ids]
        return sorted(kept, key=_popularity, reverse=True)
