from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from moodlist.domain.entities import ArtistMode, GenerationDirective
from moodlist.domain.moods import Mood, RECOMMENDED_GENRES, parse_mood


RANDOM = 'random'
RANDOM_ARTISTS = 'random_artists'
DEFAULT_INTENSITY = 'medio'
MAX_SELECTIONS = 5


@dataclass(frozen=True)
class IntensityLevel:
    label: str
    multiplier: float
    description: str


INTENSITY_LEVELS: Dict[str, IntensityLevel] = {
    'muy_bajo': IntensityLevel('Very soft', 0.5, 'A light touch of the mood'),
    'bajo': IntensityLevel('Soft', 0.75, 'Mood present but subtle'),
    'medio': IntensityLevel('Moderate', 1.0, 'Balanced (recommended)'),
    'alto': IntensityLevel('Intense', 1.5, 'Strongly marked mood'),
    'muy_alto': IntensityLevel('Extreme', 2.0, 'Maximum mood intensity'),
}

INTENSITY_ALIASES: Dict[str, str] = {
    # Labels shown in the quiz
    'muy_suave': 'muy_bajo',
    'suave': 'bajo',
    'moderado': 'medio',
    'intenso': 'alto',
    'extremo': 'muy_alto',
    # English keys
    'very_low': 'muy_bajo',
    'low': 'bajo',
    'medium': 'medio',
    'high': 'alto',
    'very_high': 'muy_alto',
}


@dataclass(frozen=True)
class QuizValidation:
    valid: bool
    errors: Tuple[str, ...] = ()


def resolve_intensity(key: Any) -> Optional[str]:
    """Return the canonical intensity key for a key or alias, or None."""
    if not isinstance(key, str):
        return None
    normalized = key.strip().lower().replace(' ', '_').replace('-', '_')
    if normalized in INTENSITY_LEVELS:
        return normalized
    return INTENSITY_ALIASES.get(normalized)


def intensity_multiplier(key: Any) -> float:
    canonical = resolve_intensity(key) or DEFAULT_INTENSITY
    return INTENSITY_LEVELS[canonical].multiplier


def _is_choice_list(value: Any) -> bool:
    return isinstance(value, (list, tuple))


def validate_quiz_answers(answers: Mapping[str, Any], max_selections: int = MAX_SELECTIONS) -> QuizValidation:
    """Check raw quiz answers before any generation work is done.

    Missing genres or artists count as "random". The result depends only on the
    input, so repeated calls agree.
    """
    errors: List[str] = []

    if parse_mood(answers.get('mood')) is None:
        errors.append('Choose a valid mood: ' + ', '.join(m.value for m in Mood))

    genres = answers.get('genres')
    if genres and genres != RANDOM:
        if not _is_choice_list(genres) or not _unique(genres, len(genres)):
            errors.append('Select at least one music genre')
        elif len(genres) > max_selections:
            errors.append(f'You can select at most {max_selections} genres')
    elif _is_choice_list(genres):
        errors.append('Select at least one music genre')

    artists = answers.get('artists')
    if artists and artists not in (RANDOM, RANDOM_ARTISTS):
        if not _is_choice_list(artists) or not _unique(artists, len(artists)):
            errors.append('Add at least one artist')
        elif len(artists) > max_selections:
            errors.append(f'You can add at most {max_selections} artists')
    elif _is_choice_list(artists):
        errors.append('Add at least one artist')

    if resolve_intensity(answers.get('intensity')) is None:
        errors.append('Select a valid intensity')

    return QuizValidation(valid=not errors, errors=tuple(errors))


def _unique(values: Sequence[Any], limit: int) -> Tuple[str, ...]:
    seen = set()
    ordered: List[str] = []
    for value in values:
        if not isinstance(value, str):
            continue
        cleaned = value.strip()
        if not cleaned or cleaned.lower() in seen:
            continue
        seen.add(cleaned.lower())
        ordered.append(cleaned)
    return tuple(ordered[:limit])


def process_quiz_answers(answers: Mapping[str, Any],
                         top_artist_names: Sequence[str],
                         max_selections: int = MAX_SELECTIONS) -> GenerationDirective:
    """Turn validated quiz answers into a GenerationDirective."""
    mood = parse_mood(answers.get('mood'))
    intensity_key = resolve_intensity(answers.get('intensity')) or DEFAULT_INTENSITY

    genres = answers.get('genres')
    if genres == RANDOM or not _is_choice_list(genres):
        target_genres: Tuple[str, ...] = ()
    else:
        target_genres = _unique(genres, max_selections)

    artists = answers.get('artists')
    if artists == RANDOM_ARTISTS:
        artist_mode = ArtistMode.RANDOM_FROM_GENRE
        target_artists: Tuple[str, ...] = ()
    elif _is_choice_list(artists) and _unique(artists, max_selections):
        artist_mode = ArtistMode.CUSTOM
        target_artists = _unique(artists, max_selections)
    else:
        artist_mode = ArtistMode.FAVORITES
        target_artists = _unique(top_artist_names, max_selections)

    return GenerationDirective(
        mood=mood.value if mood else str(answers.get('mood') or ''),
        target_genres=target_genres,
        target_artists=target_artists,
        artist_mode=artist_mode,
        intensity_key=intensity_key,
        intensity_multiplier=INTENSITY_LEVELS[intensity_key].multiplier,
        playlist_name=(answers.get('playlistName') or answers.get('playlist_name') or None),
        description=(answers.get('description') or None),
    )


def recommended_genres_for_mood(mood: Any) -> List[str]:
    """Genre suggestions for the quiz. Unknown moods get the happy list."""
    parsed = parse_mood(mood) or Mood.HAPPY
    return list(RECOMMENDED_GENRES[parsed])
