import logging
import random
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from moodlist.domain.entities import ScoredCandidate, Track
from moodlist.domain.errors import ArtistsUnsatisfiable, QuotaViolation


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SelectionOutcome:
    tracks: Tuple[Track, ...]


class QuotaSelector:
    """Picks the final playlist, guaranteeing every requested artist a share."""

    def __init__(self, playlist_size: int = 30, min_tracks_per_artist: int = 3,
                 rng: Optional[random.Random] = None):
        """Initialize selector.

        Args:
            playlist_size: Maximum number of tracks in the playlist
            min_tracks_per_artist: Lower bound of the per-artist quota
            rng: Random source used to shuffle the final order
        """
        self.playlist_size = playlist_size
        self.min_tracks_per_artist = min_tracks_per_artist
        self.rng = rng or random.Random()

    def quota_for(self, artist_count: int) -> int:
        return max(self.min_tracks_per_artist, self.playlist_size // max(1, artist_count))

    def select(self, ranked: Sequence[ScoredCandidate],
               requested_artists: Sequence[str] = ()) -> SelectionOutcome:
        """Select the playlist from candidates sorted by score descending.

        Args:
            ranked: Scored candidates, best first
            requested_artists: Artists that must each appear at least once

        Returns:
            SelectionOutcome with the shuffled tracks

        Raises:
            ArtistsUnsatisfiable: if no requested artist has a scored track
            QuotaViolation: if some requested artist has no scored track or is missing from the result
        """
        if not requested_artists:
            chosen = list(ranked[:self.playlist_size])
            tracks = [c.track for c in chosen]
            self.rng.shuffle(tracks)
            return SelectionOutcome(tracks=tuple(tracks))

        by_artist = self._assign(ranked, requested_artists)
        uncredited = [artist for artist in requested_artists
                      if not any(c.track.has_artist(artist) for c in ranked)]
        if len(uncredited) == len(requested_artists):
            raise ArtistsUnsatisfiable(uncredited)
        if uncredited:
            raise QuotaViolation(uncredited)

        available = [artist for artist in requested_artists if by_artist[artist]]
        quota = self.quota_for(len(requested_artists))
        logger.info(f"Quota of {quota} tracks for each of {len(available)} artists")

        selection: List[ScoredCandidate] = []
        selected_ids = set()
        for artist in available:
            for candidate in by_artist[artist][:quota]:
                selection.append(candidate)
                selected_ids.add(candidate.track.id)

        # Artists credited only on tracks assigned to an earlier artist
        for artist in requested_artists:
            if not any(c.track.has_artist(artist) for c in selection):
                best = next(c for c in ranked if c.track.has_artist(artist))
                selection.append(best)
                selected_ids.add(best.track.id)

        if len(selection) < self.playlist_size:
            for candidate in ranked:
                if len(selection) >= self.playlist_size:
                    break
                if candidate.track.id not in selected_ids:
                    selection.append(candidate)
                    selected_ids.add(candidate.track.id)

        if len(selection) > self.playlist_size:
            selection = sorted(selection, key=lambda c: c.score, reverse=True)[:self.playlist_size]

        tracks = [c.track for c in selection]
        self.rng.shuffle(tracks)

        missing = [artist for artist in requested_artists if not any(t.has_artist(artist) for t in tracks)]
        if missing:
            raise QuotaViolation(missing)

        return SelectionOutcome(tracks=tuple(tracks))

    def _assign(self, ranked: Sequence[ScoredCandidate],
                requested_artists: Sequence[str]) -> Dict[str, List[ScoredCandidate]]:
        """Group candidates under the first requested artist they credit."""
        by_artist: Dict[str, List[ScoredCandidate]] = {artist: [] for artist in requested_artists}
        seen_ids = set()
        for candidate in ranked:
            if candidate.track.id in seen_ids:
                continue
            for artist in requested_artists:
                if candidate.track.has_artist(artist):
                    by_artist[artist].append(candidate)
                    seen_ids.add(candidate.track.id)
                    break
        return by_artist
