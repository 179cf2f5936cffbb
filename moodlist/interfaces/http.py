import os
import logging
import uuid
from typing import Any, Callable, Dict, Optional
from datetime import datetime
from flask import Flask, request, jsonify

from moodlist.application.pipeline import PlaylistGenerator, PlaylistPublisher
from moodlist.application.quiz import INTENSITY_LEVELS, recommended_genres_for_mood, validate_quiz_answers
from moodlist.crosscutting.config import GenerationSettings
from moodlist.crosscutting.logging import CorrelationContext
from moodlist.crosscutting.metrics import MetricsCollector
from moodlist.domain.errors import (
    GenerationError,
    InvalidQuizAnswers,
    NotAuthenticated,
    SearchError,
    WriteError,
)
from moodlist.domain.moods import GENRE_CATEGORIES, MOOD_DESCRIPTIONS, POPULAR_GENRES, Mood
from moodlist.domain.ports import TokenProvider
from moodlist.infrastructure.providers.spotify import SpotifyProvider
from moodlist.infrastructure.session import StaticTokenProvider, StoredTokenProvider


ProviderFactory = Callable[[TokenProvider, GenerationSettings], Any]


def _parse_flag(value: Any) -> Optional[bool]:
    """Read a JSON boolean, also accepting 0/1 and "true"/"false" strings. None if unrecognised."""
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ('1', 'true', 'yes', 'on'):
            return True
        if lowered in ('', '0', 'false', 'no', 'off'):
            return False
    if value is None:
        return False
    return None


def _default_provider_factory(token_provider: TokenProvider, settings: GenerationSettings) -> SpotifyProvider:
    return SpotifyProvider(token_provider, market=settings.market, time_range=settings.history_time_range)


class HTTPServer:
    """HTTP server exposing quiz validation and playlist generation."""

    def __init__(self, host: str = 'localhost', port: int = 3000, debug: bool = False,
                 provider_factory: Optional[ProviderFactory] = None,
                 settings: Optional[GenerationSettings] = None):
        """Initialize HTTP server."""
        self.host = host
        self.port = port
        self.debug = debug
        self.app = Flask(__name__)
        self.logger = logging.getLogger(__name__)
        self.provider_factory = provider_factory or _default_provider_factory
        self.settings = settings or GenerationSettings.from_env()

        # Version info
        self.version = "0.1.0"
        self.commit = os.getenv('GIT_COMMIT', 'unknown')

        self._setup_routes()

    def _token_provider(self) -> TokenProvider:
        """Use the request's bearer token when present, else the stored session."""
        header = request.headers.get('Authorization', '')
        if header.lower().startswith('bearer '):
            return StaticTokenProvider(header[7:].strip())
        return StoredTokenProvider()

    def _error_response(self, error: Exception):
        """Map a generation failure onto an HTTP response."""
        if isinstance(error, InvalidQuizAnswers):
            return jsonify({'error': 'invalid_quiz_answers', 'details': error.errors}), 400
        if isinstance(error, NotAuthenticated):
            return jsonify({'error': 'not_authenticated', 'details': str(error)}), 401
        if isinstance(error, GenerationError):
            return jsonify({'error': error.code, 'details': str(error)}), 422
        if isinstance(error, (SearchError, WriteError)):
            return jsonify({'error': 'upstream_failure', 'details': str(error)}), 502
        self.logger.error(f"Unexpected error: {error}", exc_info=error)
        return jsonify({'error': 'Internal server error', 'details': str(error)}), 500

    def _setup_routes(self) -> None:
        """Setup Flask routes."""

        @self.app.route('/health', methods=['GET'])
        def health_check():
            """Health check endpoint."""
            return jsonify({
                'status': 'healthy',
                'version': self.version,
                'commit': self.commit,
                'timestamp': datetime.now().isoformat()
            }), 200

        @self.app.route('/catalog/genres', methods=['GET'])
        def genre_catalog():
            """Genre catalogue for the quiz, with suggestions for an optional mood."""
            mood = request.args.get('mood')
            payload: Dict[str, Any] = {
                'categories': GENRE_CATEGORIES,
                'popular': POPULAR_GENRES,
                'moods': {m.value: MOOD_DESCRIPTIONS[m] for m in Mood},
                'intensities': {key: level.multiplier for key, level in INTENSITY_LEVELS.items()},
            }
            if mood:
                payload['recommended'] = recommended_genres_for_mood(mood)
            return jsonify(payload), 200

        @self.app.route('/quiz/validate', methods=['POST'])
        def validate_quiz():
            """Validate quiz answers without touching Spotify."""
            answers = request.get_json(silent=True)
            if not isinstance(answers, dict):
                return jsonify({'error': 'Request body must be a JSON object'}), 400
            validation = validate_quiz_answers(answers, self.settings.max_quiz_selections)
            return jsonify({'valid': validation.valid, 'errors': list(validation.errors)}), 200

        @self.app.route('/playlists/generate', methods=['POST'])
        def generate_playlist():
            """Generate a playlist and create it unless dry_run is set."""
            answers = request.get_json(silent=True)
            if not isinstance(answers, dict):
                return jsonify({'error': 'Request body must be a JSON object'}), 400

            dry_run = _parse_flag(answers.pop('dry_run', False))
            if dry_run is None:
                return jsonify({'error': 'dry_run must be a boolean'}), 400
            request_id = request.headers.get('X-Request-Id') or uuid.uuid4().hex[:8]
            metrics = MetricsCollector(request_id)

            with CorrelationContext(request_id=request_id):
                try:
                    provider = self.provider_factory(self._token_provider(), self.settings)
                    generator = PlaylistGenerator(provider, provider, settings=self.settings)
                    result = generator.generate_playlist(answers, metrics=metrics)

                    if dry_run:
                        payload = result.to_dict()
                        payload['dry_run'] = True
                        status = 200
                    else:
                        publisher = PlaylistPublisher(provider, batch_size=self.settings.publish_batch_size)
                        payload = publisher.publish(result).to_dict()
                        status = 201
                except Exception as e:
                    return self._error_response(e)

            payload['request_id'] = request_id
            payload['metrics'] = metrics.to_dict()
            return jsonify(payload), status

        @self.app.route('/', methods=['GET'])
        def root():
            """Root endpoint with basic info."""
            return jsonify({
                'service': 'moodlist HTTP Interface',
                'version': self.version,
                'endpoints': {
                    'health': '/health',
                    'genres': '/catalog/genres',
                    'validate': '/quiz/validate',
                    'generate': '/playlists/generate'
                }
            }), 200

    def run(self) -> None:
        """Run the HTTP server."""
        self.logger.info(f"Starting moodlist HTTP server on {self.host}:{self.port}")
        self.app.run(
            host=self.host,
            port=self.port,
            debug=self.debug
        )


def create_app(provider_factory: Optional[ProviderFactory] = None,
               settings: Optional[GenerationSettings] = None) -> Flask:
    """Create Flask app for testing."""
    server = HTTPServer(provider_factory=provider_factory, settings=settings)
    return server.app


if __name__ == '__main__':
    server = HTTPServer()
    server.run()
