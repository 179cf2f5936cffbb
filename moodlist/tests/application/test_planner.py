import pytest

from moodlist.application.planner import collect_seeds, describe_plan, plan_searches, resolve_targets
from moodlist.domain.entities import (
    ArtistMode,
    GenerationDirective,
    ListeningHistory,
    ResolvedTargets,
    SearchQuery,
    TopArtist,
    TopTrack,
)
from moodlist.domain.errors import NoSeeds
from moodlist.domain.moods import DEFAULT_ARTISTS, DEFAULT_SEED_GENRES, MOOD_FALLBACK_GENRES, Mood


class TestCollectSeeds:
    """Tests for seed collection."""

    def test_uses_two_tracks_and_two_artists(self):
        history = ListeningHistory(
            top_artists=(TopArtist('a1', 'A'), TopArtist('a2', 'B'), TopArtist('a3', 'C')),
            top_tracks=(TopTrack('t1'), TopTrack('t2'), TopTrack('t3')),
        )
        seeds = collect_seeds(history, 'happy')
        assert seeds.track_ids == ('t1', 't2')
        assert seeds.artist_ids == ('a1', 'a2')
        assert seeds.genres == ()

    def test_falls_back_to_mood_seed_genres(self):
        seeds = collect_seeds(ListeningHistory(), 'relaxed')
        assert seeds.genres == tuple(DEFAULT_SEED_GENRES[Mood.RELAXED])
        assert seeds.total == len(DEFAULT_SEED_GENRES[Mood.RELAXED])

    def test_no_seeds_when_mood_table_is_empty(self, monkeypatch):
        monkeypatch.setitem(DEFAULT_SEED_GENRES, Mood.SAD, [])
        with pytest.raises(NoSeeds):
            collect_seeds(ListeningHistory(), 'sad')


class TestResolveTargets:
    """Tests for genre and artist resolution."""

    def setup_method(self):
        self.top_artists = [
            TopArtist('a1', 'Fav One', ('indie rock', 'indie')),
            TopArtist('a2', 'Fav Two', ('indie', 'dream pop', 'shoegaze', 'folk', 'lo-fi')),
        ]

    def test_custom_genres_and_artists(self):
        directive = GenerationDirective(mood='happy', target_genres=('pop',), target_artists=('Queen',),
                                        artist_mode=ArtistMode.CUSTOM)
        targets = resolve_targets(directive, self.top_artists)
        assert targets.genres == ('pop',)
        assert targets.artists == ('Queen',)
        assert targets.favorite_names == ()

    def test_random_artists_uses_mood_fallback_genres(self):
        directive = GenerationDirective(mood='motivated', artist_mode=ArtistMode.RANDOM_FROM_GENRE)
        targets = resolve_targets(directive, self.top_artists)
        assert targets.genres == tuple(MOOD_FALLBACK_GENRES[Mood.MOTIVATED])
        assert targets.artists == ()

    def test_favorites_use_history_genres_capped_at_five(self):
        directive = GenerationDirective(mood='sad', target_artists=('Fav One', 'Fav Two'),
                                        artist_mode=ArtistMode.FAVORITES)
        targets = resolve_targets(directive, self.top_artists)
        assert targets.genres == ('indie rock', 'indie', 'dream pop', 'shoegaze', 'folk')
        assert targets.artists == ('Fav One', 'Fav Two')
        assert targets.favorite_names == ('Fav One', 'Fav Two')

    def test_favorites_without_history_use_default_artists(self):
        directive = GenerationDirective(mood='sad', artist_mode=ArtistMode.FAVORITES)
        targets = resolve_targets(directive, [])
        assert targets.artists == tuple(DEFAULT_ARTISTS[Mood.SAD])
        assert targets.genres == ()


class TestPlanSearches:
    """Tests for the search decision table."""

    def test_custom_artists_one_query_each(self):
        directive = GenerationDirective(mood='happy', target_genres=('rock',), target_artists=('Queen', 'ABBA'),
                                        artist_mode=ArtistMode.CUSTOM)
        targets = ResolvedTargets(genres=('rock',), artists=('Queen', 'ABBA'))
        queries = plan_searches(directive, targets)
        assert queries == [SearchQuery(artist='Queen', limit=100), SearchQuery(artist='ABBA', limit=100)]

    def test_custom_genres_three_variants(self):
        directive = GenerationDirective(mood='happy', target_genres=('pop',), artist_mode=ArtistMode.FAVORITES)
        queries = plan_searches(directive, ResolvedTargets(genres=('pop',), artists=('X',)))
        assert queries == [
            SearchQuery(genre='pop', limit=50),
            SearchQuery(free_text='pop top hits', limit=50),
            SearchQuery(free_text='popular pop', limit=50),
        ]

    def test_mixed_plan_with_combinations(self):
        directive = GenerationDirective(mood='happy', artist_mode=ArtistMode.FAVORITES)
        targets = ResolvedTargets(genres=('g1', 'g2', 'g3'), artists=('A1', 'A2', 'A3', 'A4', 'A5', 'A6'))
        queries = plan_searches(directive, targets)

        artist_only = [q for q in queries if q.artist and not q.genre]
        genre_only = [q for q in queries if q.genre and not q.artist]
        combined = [q for q in queries if q.artist and q.genre]

        assert len(artist_only) == 5
        assert len(genre_only) == 3
        assert len(combined) == 4
        assert all(q.limit == 30 for q in combined)
        assert {(q.artist, q.genre) for q in combined} == {
            ('A1', 'g1'), ('A1', 'g2'), ('A2', 'g1'), ('A2', 'g2'),
        }

    def test_empty_plan_raises_no_seeds(self):
        directive = GenerationDirective(mood='happy', artist_mode=ArtistMode.RANDOM_FROM_GENRE)
        with pytest.raises(NoSeeds):
            plan_searches(directive, ResolvedTargets())

    def test_describe_plan(self):
        lines = describe_plan([SearchQuery(artist='Queen', limit=100), SearchQuery()])
        assert lines == ['artist=Queen (limit 100)', 'popular (limit 50)']
