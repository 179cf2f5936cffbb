import random
import threading
from collections import Counter
from datetime import datetime

import pytest

from moodlist.application.pipeline import PlaylistGenerator
from moodlist.crosscutting.config import GenerationSettings
from moodlist.crosscutting.metrics import MetricsCollector
from moodlist.domain.entities import ArtistMode, TopArtist, TopTrack
from moodlist.domain.errors import (
    ArtistsUnsatisfiable,
    GenerationCancelled,
    InvalidQuizAnswers,
    NotAuthenticated,
    SearchError,
)
from moodlist.tests.fakes import FakeCatalog, FakeHistory, artist_catalog, make_tracks


def _history_with_favorites():
    genres = [('metal', 'rock'), ('rock',), ('hip hop', 'rap'), ('metal',), ('rap',)]
    artists = [TopArtist(f"fav-{i}", f"Fav {i}", genres[i]) for i in range(5)]
    tracks = [TopTrack(f"top-{i}") for i in range(5)]
    return FakeHistory(artists, tracks)


def _artist_counts(result):
    return Counter(t.artist_names[0] for t in result.ordered_tracks)


class TestPlaylistGenerator:
    """End-to-end tests of the generation pipeline with fake collaborators."""

    def setup_method(self):
        self.clock = lambda: datetime(2024, 5, 1)
        self.metrics = MetricsCollector('req-test')

    def _generator(self, catalog, history=None, settings=None, seed=3):
        return PlaylistGenerator(catalog, history or FakeHistory(), settings=settings,
                                 rng=random.Random(seed), clock=self.clock)

    def test_favorites_mode_fills_playlist(self):
        history = _history_with_favorites()

        def search(query):
            if query.artist:
                index = query.artist.split()[-1]
                suffix = f"-{query.genre}" if query.genre else ''
                return make_tracks(f"{query.artist}{suffix}-", query.artist, 10, artist_id=f"fav-{index}")
            return make_tracks(f"g-{query.genre}-", f"Band {query.genre}", 10)

        catalog = FakeCatalog(default=search)
        result = self._generator(catalog, history).generate_playlist(
            {'mood': 'motivated', 'genres': 'random', 'artists': 'random', 'intensity': 'medio'},
            metrics=self.metrics,
        )

        assert len(result.ordered_tracks) == 30
        assert len({t.id for t in result.ordered_tracks}) == 30
        assert result.parameters.directive.artist_mode == ArtistMode.FAVORITES
        assert result.parameters.seeds.track_ids == ('top-0', 'top-1')
        assert result.parameters.resolved_genres == ('metal', 'rock', 'hip hop', 'rap')
        assert self.metrics.get_metrics().queries_planned == len(catalog.queries)

    def test_three_custom_artists_share_the_playlist(self):
        catalog = artist_catalog({
            'Artist A': make_tracks('a', 'Artist A', 12),
            'Artist B': make_tracks('b', 'Artist B', 12),
            'Artist C': make_tracks('c', 'Artist C', 12),
        })
        result = self._generator(catalog).generate_playlist({
            'mood': 'happy', 'genres': ['pop', 'dance'],
            'artists': ['Artist A', 'Artist B', 'Artist C'], 'intensity': 'alto',
        })

        counts = _artist_counts(result)
        assert len(result.ordered_tracks) == 30
        assert counts == {'Artist A': 10, 'Artist B': 10, 'Artist C': 10}
        assert [q.limit for q in catalog.queries] == [100, 100, 100]
        assert result.parameters.directive.intensity_multiplier == 1.5

    def test_less_popular_artist_keeps_its_quota(self):
        catalog = artist_catalog({
            'Artist A': make_tracks('a', 'Artist A', 40, popularity=90),
            'Artist B': make_tracks('b', 'Artist B', 40, popularity=85),
            'Artist C': make_tracks('c', 'Artist C', 10, popularity=20),
        })
        result = self._generator(catalog).generate_playlist({
            'mood': 'happy', 'genres': ['pop', 'dance'],
            'artists': ['Artist A', 'Artist B', 'Artist C'], 'intensity': 'alto',
        })

        assert _artist_counts(result) == {'Artist A': 10, 'Artist B': 10, 'Artist C': 10}
        assert result.parameters.unsatisfiable_artists == ()

    def test_missing_artist_is_skipped_with_adjusted_quota(self):
        catalog = artist_catalog({
            'Artist A': make_tracks('a', 'Artist A', 12),
            'Artist B': make_tracks('b', 'Artist B', 20),
        })
        result = self._generator(catalog).generate_playlist({
            'mood': 'happy', 'genres': ['pop', 'dance'],
            'artists': ['Artist A', 'Artist B', 'Artist C'], 'intensity': 'alto',
        }, metrics=self.metrics)

        counts = _artist_counts(result)
        assert len(result.ordered_tracks) == 30
        assert set(counts) == {'Artist A', 'Artist B'}
        assert counts['Artist A'] == 12
        assert counts['Artist B'] == 18
        assert result.parameters.unsatisfiable_artists == ('Artist C',)
        assert self.metrics.get_metrics().unsatisfiable_artists == ['Artist C']

    def test_no_requested_artist_found_raises(self):
        catalog = artist_catalog({})
        with pytest.raises(ArtistsUnsatisfiable) as exc_info:
            self._generator(catalog).generate_playlist({
                'mood': 'happy', 'genres': ['pop'],
                'artists': ['Artist A', 'Artist B', 'Artist C'], 'intensity': 'alto',
            })
        assert exc_info.value.artists == ['Artist A', 'Artist B', 'Artist C']

    def test_invalid_answers_fail_before_any_call(self):
        history = FakeHistory()
        catalog = FakeCatalog()
        with pytest.raises(InvalidQuizAnswers) as exc_info:
            self._generator(catalog, history).generate_playlist({'mood': 'angry', 'intensity': 'medio'})

        assert exc_info.value.errors
        assert history.calls == []
        assert catalog.queries == []

    def test_history_failure_degrades_to_defaults(self):
        history = FakeHistory(error=SearchError('history down'))
        catalog = FakeCatalog(default=lambda q: make_tracks(f"{q.describe()}-", q.artist or 'Band', 10))

        result = self._generator(catalog, history).generate_playlist(
            {'mood': 'sad', 'genres': 'random', 'artists': 'random', 'intensity': 'medio'}
        )

        assert result.parameters.resolved_artists == ('Adele', 'Billie Eilish', 'Sam Smith')
        assert result.parameters.seeds.genres == ('acoustic', 'indie')
        assert result.ordered_tracks

    def test_not_authenticated_from_history_propagates(self):
        history = FakeHistory(error=NotAuthenticated('expired'))
        with pytest.raises(NotAuthenticated):
            self._generator(FakeCatalog(), history).generate_playlist({'mood': 'sad', 'intensity': 'medio'})

    def test_cancel_event_abandons_run(self):
        event = threading.Event()
        event.set()
        with pytest.raises(GenerationCancelled):
            self._generator(FakeCatalog()).generate_playlist(
                {'mood': 'happy', 'genres': ['pop'], 'intensity': 'medio'}, cancel_event=event
            )

    def test_genre_enrichment_uses_catalog(self):
        settings = GenerationSettings(enrich_artist_genres=True)
        catalog = FakeCatalog(
            default=lambda q: make_tracks(f"{q.describe()}-", 'Rocker', 10, artist_id='rocker'),
            genres={'rocker': ['grunge']},
        )

        result = self._generator(catalog, settings=settings).generate_playlist(
            {'mood': 'motivated', 'genres': ['rock'], 'artists': 'random_artists', 'intensity': 'medio'}
        )

        assert catalog.genre_lookups == [['rocker']]
        assert result.ordered_tracks

    def test_same_seed_gives_same_order(self):
        tracks = {'Artist A': make_tracks('a', 'Artist A', 40)}
        answers = {'mood': 'happy', 'artists': ['Artist A'], 'intensity': 'medio'}

        first = self._generator(artist_catalog(tracks), seed=11).generate_playlist(answers)
        second = self._generator(artist_catalog(tracks), seed=11).generate_playlist(answers)

        assert [t.id for t in first.ordered_tracks] == [t.id for t in second.ordered_tracks]

    def test_metrics_record_stages_and_counts(self):
        catalog = artist_catalog({'Artist A': make_tracks('a', 'Artist A', 12)})
        self._generator(catalog).generate_playlist(
            {'mood': 'happy', 'artists': ['Artist A'], 'intensity': 'medio'}, metrics=self.metrics
        )

        metrics = self.metrics.get_metrics()
        assert metrics.mood == 'happy'
        assert metrics.candidates_found == 12
        assert metrics.tracks_selected == 12
        assert {'validate', 'history', 'plan', 'search', 'filter', 'score', 'select', 'assemble'} <= set(
            metrics.stage_durations_ms)
        assert metrics.end_time is not None
