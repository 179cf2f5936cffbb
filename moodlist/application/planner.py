import logging
from typing import List, Optional, Sequence

from moodlist.domain.entities import (
    GenerationDirective,
    ListeningHistory,
    ResolvedTargets,
    SearchQuery,
    Seeds,
    TopArtist,
)
from moodlist.domain.errors import NoSeeds
from moodlist.domain.moods import DEFAULT_ARTISTS, DEFAULT_SEED_GENRES, MOOD_FALLBACK_GENRES, Mood, parse_mood


logger = logging.getLogger(__name__)

MAX_SEED_TRACKS = 2
MAX_SEED_ARTISTS = 2
MAX_HISTORY_GENRES = 5
MAX_PLANNED_ARTISTS = 5
MAX_PLANNED_GENRES = 5
MAX_COMBINED = 2

CUSTOM_ARTIST_LIMIT = 100
GENRE_LIMIT = 50
COMBINED_LIMIT = 30


def _mood_or_default(mood: str) -> Mood:
    return parse_mood(mood) or Mood.HAPPY


def collect_seeds(history: ListeningHistory, mood: str) -> Seeds:
    """Pick seeds from listening history, falling back to the mood's genres.

    Args:
        history: User's top artists and tracks
        mood: Mood identifier

    Returns:
        Seeds with up to two track ids and two artist ids, or default genres

    Raises:
        NoSeeds: if neither history nor the mood table provide anything
    """
    track_ids = tuple(t.id for t in history.top_tracks if t.id)[:MAX_SEED_TRACKS]
    artist_ids = tuple(a.id for a in history.top_artists if a.id)[:MAX_SEED_ARTISTS]

    if track_ids or artist_ids:
        return Seeds(track_ids=track_ids, artist_ids=artist_ids)

    genres = tuple(DEFAULT_SEED_GENRES.get(_mood_or_default(mood), ()))
    if not genres:
        raise NoSeeds("No listening history and no default genres for this mood")

    logger.info(f"No listening history, using default seed genres for {mood}: {list(genres)}")
    return Seeds(genres=genres)


def _history_genres(top_artists: Sequence[TopArtist], limit: int) -> List[str]:
    seen = set()
    genres: List[str] = []
    for artist in top_artists:
        for genre in artist.genres:
            if genre and genre not in seen:
                seen.add(genre)
                genres.append(genre)
    return genres[:limit]


def resolve_targets(directive: GenerationDirective, top_artists: Sequence[TopArtist]) -> ResolvedTargets:
    """Compute the genres and artists used for search and scoring."""
    mood = _mood_or_default(directive.mood)

    if directive.use_custom_genres:
        genres = list(directive.target_genres)
    elif directive.use_random_artists:
        genres = list(MOOD_FALLBACK_GENRES[mood])
    else:
        genres = _history_genres(top_artists, MAX_HISTORY_GENRES)

    favorite_names: List[str] = []
    if directive.use_custom_artists:
        artists = list(directive.target_artists)
    elif directive.use_random_artists:
        artists = []
    else:
        favorite_names = list(directive.target_artists)
        artists = favorite_names or list(DEFAULT_ARTISTS[mood])

    return ResolvedTargets(genres=tuple(genres), artists=tuple(artists), favorite_names=tuple(favorite_names))


def plan_searches(directive: GenerationDirective, targets: ResolvedTargets) -> List[SearchQuery]:
    """Build the list of catalog queries for one generation.

    Custom artists are searched one by one with a large limit and the chosen genres
    are left to scoring. Custom genres alone get three query variants each. In every
    other case a mix of artist, genre and artist-plus-genre queries is used.

    Args:
        directive: Processed quiz answers
        targets: Resolved genres and artists

    Returns:
        Ordered list of queries

    Raises:
        NoSeeds: if no query could be planned
    """
    queries: List[SearchQuery] = []

    if directive.use_custom_artists:
        for artist in targets.artists:
            queries.append(SearchQuery(artist=artist, limit=CUSTOM_ARTIST_LIMIT))
        if directive.use_custom_genres:
            logger.info(f"Custom genres {list(targets.genres)} deferred to scoring")

    elif directive.use_custom_genres:
        for genre in targets.genres:
            queries.append(SearchQuery(genre=genre, limit=GENRE_LIMIT))
            queries.append(SearchQuery(free_text=f"{genre} top hits", limit=GENRE_LIMIT))
            queries.append(SearchQuery(free_text=f"popular {genre}", limit=GENRE_LIMIT))

    else:
        artists = list(targets.artists)[:MAX_PLANNED_ARTISTS]
        genres = list(targets.genres)[:MAX_PLANNED_GENRES]
        for artist in artists:
            queries.append(SearchQuery(artist=artist, limit=GENRE_LIMIT))
        for genre in genres:
            queries.append(SearchQuery(genre=genre, limit=GENRE_LIMIT))
        for artist in artists[:MAX_COMBINED]:
            for genre in genres[:MAX_COMBINED]:
                queries.append(SearchQuery(artist=artist, genre=genre, limit=COMBINED_LIMIT))

    if not queries:
        raise NoSeeds("Nothing to search for: no artists or genres could be resolved")

    logger.debug(f"Planned {len(queries)} searches: {[q.describe() for q in queries]}")
    return queries


def describe_plan(queries: Sequence[SearchQuery], limit: Optional[int] = None) -> List[str]:
    """Human-readable summary of planned queries for logs and dry runs."""
    shown = queries if limit is None else queries[:limit]
    return [f"{q.describe()} (limit {q.limit})" for q in shown]
