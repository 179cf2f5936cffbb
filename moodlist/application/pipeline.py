import logging
import random
import threading
import uuid
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from moodlist.application.aggregator import CandidateAggregator
from moodlist.application.assembler import PlaylistAssembler
from moodlist.application.filtering import ConstraintFilter, FilterSettings
from moodlist.application.planner import collect_seeds, describe_plan, plan_searches, resolve_targets
from moodlist.application.quiz import process_quiz_answers, validate_quiz_answers
from moodlist.application.scoring import ScoringEngine, ScoringWeights
from moodlist.application.selection import QuotaSelector
from moodlist.crosscutting.config import GenerationSettings
from moodlist.crosscutting.logging import (
    CorrelationContext,
    log_error,
    log_generation_complete,
    log_generation_start,
)
from moodlist.crosscutting.metrics import MetricsCollector
from moodlist.domain.entities import (
    GenerationResult,
    ListeningHistory,
    PublishedPlaylist,
    Track,
)
from moodlist.domain.errors import (
    ArtistsUnsatisfiable,
    InvalidQuizAnswers,
    NoCandidates,
    NotAuthenticated,
    SearchError,
)
from moodlist.domain.ports import ListeningHistoryProvider, PlaylistStore, TrackCatalog


logger = logging.getLogger(__name__)


class PlaylistGenerator:
    """Runs the whole generation pipeline from quiz answers to an ordered track list."""

    def __init__(self,
                 catalog: TrackCatalog,
                 history: ListeningHistoryProvider,
                 settings: Optional[GenerationSettings] = None,
                 rng: Optional[random.Random] = None,
                 clock: Callable[[], datetime] = datetime.now):
        """Initialize generator.

        Args:
            catalog: Track catalog used for searches and artist genre lookups
            history: Listening-history provider
            settings: Pipeline thresholds, defaults when omitted
            rng: Random source for the final shuffle
            clock: Time source for default playlist names
        """
        self.catalog = catalog
        self.history = history
        self.settings = settings or GenerationSettings()
        self.aggregator = CandidateAggregator(catalog, max_workers=self.settings.search_workers)
        self.filter = ConstraintFilter(FilterSettings.from_settings(self.settings))
        self.scoring = ScoringEngine(ScoringWeights.from_settings(self.settings))
        self.selector = QuotaSelector(
            playlist_size=self.settings.playlist_size,
            min_tracks_per_artist=self.settings.min_tracks_per_artist,
            rng=rng,
        )
        self.assembler = PlaylistAssembler(clock=clock)

    def generate_playlist(self,
                          answers: Mapping[str, Any],
                          metrics: Optional[MetricsCollector] = None,
                          cancel_event: Optional[threading.Event] = None) -> GenerationResult:
        """Generate a playlist for the given quiz answers.

        Args:
            answers: Raw quiz answers (mood, genres, artists, intensity, optional name/description)
            metrics: Optional collector for counters and stage timings
            cancel_event: Set by the caller to abandon the run during search

        Returns:
            GenerationResult with at most ``playlist_size`` unique tracks

        Raises:
            InvalidQuizAnswers: before any collaborator call when answers are invalid
            GenerationError: for any other fatal condition
            NotAuthenticated: when the catalog rejects the token
        """
        request_id = metrics.metrics.request_id if metrics else uuid.uuid4().hex[:8]
        mood = str(answers.get('mood') or '')

        with CorrelationContext(request_id=request_id, mood=mood):
            log_generation_start(logger, request_id, mood,
                                 genres=answers.get('genres'), artists=answers.get('artists'),
                                 intensity=answers.get('intensity'))
            if metrics:
                metrics.start()
                metrics.set_mood(mood)
            try:
                result = self._run(answers, metrics, cancel_event)
            except Exception as e:
                log_error(logger, 'Playlist generation failed', e)
                raise
            finally:
                if metrics:
                    metrics.finish()

            log_generation_complete(logger, request_id, result.parameters.directive.mood,
                                    len(result.ordered_tracks), name=result.parameters.name)
            return result

    def _run(self, answers: Mapping[str, Any], metrics: Optional[MetricsCollector],
             cancel_event: Optional[threading.Event]) -> GenerationResult:
        with self._stage('validate', metrics):
            validation = validate_quiz_answers(answers, self.settings.max_quiz_selections)
            if not validation.valid:
                raise InvalidQuizAnswers(validation.errors)

        with self._stage('history', metrics):
            history = self._fetch_history()

        with self._stage('plan', metrics):
            directive = process_quiz_answers(answers, history.top_artist_names, self.settings.max_quiz_selections)
            seeds = collect_seeds(history, directive.mood)
            targets = resolve_targets(directive, history.top_artists)
            queries = plan_searches(directive, targets)
            if metrics:
                metrics.record_queries_planned(len(queries))
            logger.info(f"Mode: artists={directive.artist_mode.value}, custom genres={directive.use_custom_genres}, "
                        f"intensity={directive.intensity_key} (x{directive.intensity_multiplier}), "
                        f"{len(queries)} searches")
            logger.debug(f"Planned searches: {describe_plan(queries, limit=5)}")

        with self._stage('search', metrics):
            try:
                candidates = self.aggregator.aggregate(queries, metrics=metrics, cancel_event=cancel_event)
            except NoCandidates as e:
                if directive.use_custom_artists:
                    raise ArtistsUnsatisfiable(targets.artists) from e
                raise

        genres_by_artist = history.genres_by_artist()
        if self.settings.enrich_artist_genres:
            with self._stage('enrich', metrics):
                genres_by_artist.update(self._lookup_artist_genres(candidates, genres_by_artist))

        with self._stage('filter', metrics):
            outcome = self.filter.apply(candidates, directive, targets, genres_by_artist)

        with self._stage('score', metrics):
            ranked = self.scoring.score(outcome.tracks, directive, targets, genres_by_artist)

        with self._stage('select', metrics):
            requested = targets.artists if directive.use_custom_artists else ()
            requested = [a for a in requested if a not in outcome.unsatisfiable_artists]
            selection = self.selector.select(ranked, requested)

        unsatisfiable = list(outcome.unsatisfiable_artists)

        with self._stage('assemble', metrics):
            result = self.assembler.assemble(selection.tracks, directive, targets, seeds, unsatisfiable,
                                             search_plan=describe_plan(queries))

        if metrics:
            metrics.record_candidates(found=len(candidates), filtered=len(outcome.tracks), scored=len(ranked))
            metrics.record_selected(len(result.ordered_tracks))
            metrics.record_unsatisfiable(unsatisfiable)

        return result

    def _fetch_history(self) -> ListeningHistory:
        """Read top artists and tracks. Provider failures degrade to an empty history."""
        limit = self.settings.history_limit
        try:
            top_artists = self.history.get_top_artists(limit=limit)
            top_tracks = self.history.get_top_tracks(limit=limit)
        except NotAuthenticated:
            raise
        except SearchError as e:
            logger.warning(f"Could not read listening history, continuing without it: {e}")
            return ListeningHistory()

        logger.info(f"Listening history: {len(top_artists)} top artists, {len(top_tracks)} top tracks")
        return ListeningHistory(top_artists=tuple(top_artists), top_tracks=tuple(top_tracks))

    def _lookup_artist_genres(self, candidates: Sequence[Track],
                              known: Mapping[str, List[str]]) -> Dict[str, List[str]]:
        artist_ids: List[str] = []
        for track in candidates:
            for artist in track.artists:
                if artist.id and artist.id not in known and artist.id not in artist_ids:
                    artist_ids.append(artist.id)
        if not artist_ids:
            return {}
        try:
            found = self.catalog.artist_genres(artist_ids)
        except SearchError as e:
            logger.warning(f"Artist genre lookup failed, scoring with history genres only: {e}")
            return {}
        logger.debug(f"Looked up genres for {len(found)} of {len(artist_ids)} artists")
        return dict(found)

    @contextmanager
    def _stage(self, name: str, metrics: Optional[MetricsCollector]):
        with CorrelationContext(stage=name):
            if metrics:
                with metrics.stage(name):
                    yield
            else:
                yield


class PlaylistPublisher:
    """Creates the generated playlist through the persistence port."""

    def __init__(self, store: PlaylistStore, batch_size: int = 100):
        """Initialize publisher.

        Args:
            store: Playlist persistence port
            batch_size: Maximum number of tracks per add call
        """
        self.store = store
        self.batch_size = batch_size

    def split_into_batches(self, track_uris: List[str]) -> List[List[str]]:
        """Split track URIs into batches of at most ``batch_size``."""
        return [track_uris[i:i + self.batch_size] for i in range(0, len(track_uris), self.batch_size)]

    def publish(self, result: GenerationResult) -> PublishedPlaylist:
        """Create the playlist and add its tracks.

        Args:
            result: Generation result to persist

        Returns:
            PublishedPlaylist with the created handle

        Raises:
            WriteError: if any persistence call fails
        """
        params = result.parameters
        uris = result.track_uris
        skipped = len(result.ordered_tracks) - len(uris)
        if skipped:
            logger.warning(f"Skipping {skipped} tracks without a URI")

        with CorrelationContext(stage='publish'):
            owner_id = self.store.current_user_id()
            handle = self.store.create_playlist(owner_id, params.name, params.description, public=params.public)
            logger.info(f"Created playlist '{handle.name}' ({handle.id})")

            for index, batch in enumerate(self.split_into_batches(uris)):
                self.store.add_tracks(handle, batch)
                logger.debug(f"Added batch {index} with {len(batch)} tracks")

        logger.info(f"Published {len(uris)} tracks to playlist {handle.id}")
        return PublishedPlaylist(handle=handle, track_count=len(uris), result=result)
