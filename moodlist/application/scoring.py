import logging
from dataclasses import dataclass
from typing import List, Mapping, Sequence

from moodlist.crosscutting.config import GenerationSettings
from moodlist.domain.entities import ArtistMode, GenerationDirective, ResolvedTargets, ScoredCandidate, Track
from moodlist.domain.genres import matches_flexible, matches_substring
from moodlist.domain.moods import MOOD_FALLBACK_GENRES, Mood, parse_mood
from moodlist.application.filtering import artist_genres_for


logger = logging.getLogger(__name__)

DEFAULT_POPULARITY = 50


@dataclass(frozen=True)
class ScoringWeights:
    """Weights of the relevance score. Artist and genre weights are scaled by intensity."""

    popularity: float = 0.1
    quiz_artist: float = 50.0
    quiz_artist_boost: float = 3.0
    favorite_artist: float = 25.0
    quiz_genre: float = 30.0
    custom_genre_boost: float = 1.5
    mood_genre: float = 15.0
    min_score: float = 10.0
    min_survivors: int = 20
    fallback_keep: int = 50

    @classmethod
    def from_settings(cls, settings: GenerationSettings) -> 'ScoringWeights':
        return cls(
            min_score=settings.min_score,
            min_survivors=settings.min_scored_survivors,
            fallback_keep=settings.fallback_keep,
        )


def _distinct(values: Sequence[str]) -> List[str]:
    seen = set()
    ordered = []
    for value in values:
        key = value.lower()
        if key not in seen:
            seen.add(key)
            ordered.append(value)
    return ordered


class ScoringEngine:
    """Scores filtered candidates by popularity, requested artists and genres."""

    def __init__(self, weights: ScoringWeights = ScoringWeights()):
        self.weights = weights

    def score_track(self,
                    track: Track,
                    directive: GenerationDirective,
                    targets: ResolvedTargets,
                    genres_by_artist: Mapping[str, Sequence[str]]) -> ScoredCandidate:
        """Score a single track.

        Args:
            track: Candidate track
            directive: Processed quiz answers
            targets: Resolved genres and artists
            genres_by_artist: Genre tags keyed by artist id and lowercased name

        Returns:
            ScoredCandidate with the score and the matches that produced it
        """
        w = self.weights
        intensity = directive.intensity_multiplier

        popularity = track.popularity if track.popularity is not None else DEFAULT_POPULARITY
        score = popularity * w.popularity

        matched_artist = any(track.has_artist(artist) for artist in targets.artists)
        if matched_artist:
            if directive.artist_mode == ArtistMode.CUSTOM:
                score += w.quiz_artist * w.quiz_artist_boost * intensity
            elif directive.artist_mode == ArtistMode.FAVORITES:
                score += w.favorite_artist * intensity

        track_genres = _distinct(artist_genres_for(track, genres_by_artist))

        quiz_matches = [g for g in track_genres if matches_flexible(g, targets.genres)] if targets.genres else []
        genre_bonus = 0.0
        if quiz_matches:
            genre_bonus = len(quiz_matches) * w.quiz_genre * intensity
            if directive.use_custom_genres:
                genre_bonus *= w.custom_genre_boost
            score += genre_bonus

        mood_genres = MOOD_FALLBACK_GENRES[parse_mood(directive.mood) or Mood.HAPPY]
        mood_matches = [g for g in track_genres if matches_substring(g, mood_genres)]
        if mood_matches and genre_bonus == 0:
            score += len(mood_matches) * w.mood_genre * intensity

        return ScoredCandidate(
            track=track,
            score=score,
            matched_requested_artist=matched_artist,
            matched_requested_genre=bool(quiz_matches),
            matched_mood_genre=bool(mood_matches) and not quiz_matches,
            genre_matches=len(quiz_matches),
        )

    def score(self,
              tracks: Sequence[Track],
              directive: GenerationDirective,
              targets: ResolvedTargets,
              genres_by_artist: Mapping[str, Sequence[str]]) -> List[ScoredCandidate]:
        """Score all tracks, drop low scorers and sort by score descending.

        When fewer than ``min_survivors`` tracks clear ``min_score`` the floor is
        ignored and the top ``fallback_keep`` tracks are kept instead.
        """
        w = self.weights
        scored = [self.score_track(t, directive, targets, genres_by_artist) for t in tracks]

        survivors = [c for c in scored if c.score >= w.min_score]
        if len(survivors) < w.min_survivors:
            logger.info(f"Only {len(survivors)} tracks scored >= {w.min_score}, keeping top {w.fallback_keep}")
            survivors = sorted(scored, key=lambda c: c.score, reverse=True)[:w.fallback_keep]

        ranked = sorted(survivors, key=lambda c: c.score, reverse=True)
        if ranked:
            logger.debug(f"Top score {ranked[0].score:.1f} ({ranked[0].track.name}), "
                         f"lowest kept {ranked[-1].score:.1f}")
        return ranked
