import argparse
import json
import logging
import random
import signal
import sys
import threading
import time
import uuid
from typing import Any, Callable, Dict, List, Optional

from dotenv import load_dotenv

from moodlist.application.pipeline import PlaylistGenerator, PlaylistPublisher
from moodlist.application.quiz import INTENSITY_LEVELS, recommended_genres_for_mood, validate_quiz_answers
from moodlist.crosscutting.config import ConfigError, GenerationSettings, get_secret_manager
from moodlist.crosscutting.logging import setup_logging
from moodlist.crosscutting.metrics import MetricsCollector
from moodlist.domain.errors import GenerationError, NotAuthenticated, SearchError, WriteError
from moodlist.domain.moods import GENRE_CATEGORIES, MOOD_DESCRIPTIONS, Mood
from moodlist.infrastructure.providers.spotify import SpotifyProvider
from moodlist.infrastructure.session import StoredTokenProvider


LOG_LEVELS = ['DEBUG', 'INFO', 'WARNING', 'ERROR']


class CLI:
    """Command Line Interface for moodlist."""

    def __init__(self, provider_factory: Optional[Callable[[GenerationSettings], Any]] = None):
        """Initialize CLI.

        Args:
            provider_factory: Builds the Spotify provider from settings; replaced in tests
        """
        self.parser = self._create_parser()
        self.provider_factory = provider_factory or self._create_provider
        self._cancel_event = threading.Event()
        self._start_time = None

    def _create_parser(self) -> argparse.ArgumentParser:
        """Create argument parser."""
        parser = argparse.ArgumentParser(
            prog='moodlist',
            description='Generate mood-based Spotify playlists'
        )
        subparsers = parser.add_subparsers(dest='command', help='Available commands')

        generate_parser = subparsers.add_parser('generate', help='Generate a playlist')
        self._add_quiz_arguments(generate_parser)
        generate_parser.add_argument('--name', help='Custom playlist name')
        generate_parser.add_argument('--description', help='Custom playlist description')
        generate_parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Generate the track list without creating the playlist'
        )
        generate_parser.add_argument(
            '--seed',
            type=int,
            default=None,
            help='Random seed for a reproducible track order'
        )
        generate_parser.add_argument('--metrics-file', help='Write generation metrics as JSON to this file')
        generate_parser.add_argument(
            '--json-logs',
            action='store_true',
            help='Emit structured JSON log lines'
        )

        validate_parser = subparsers.add_parser('validate', help='Validate quiz answers without generating')
        self._add_quiz_arguments(validate_parser)

        genres_parser = subparsers.add_parser('genres', help='List genre suggestions')
        genres_parser.add_argument('--mood', help='Show recommended genres for this mood')
        genres_parser.add_argument('--log-level', choices=LOG_LEVELS, default='WARNING', help='Set logging level')

        moods_parser = subparsers.add_parser('moods', help='List supported moods and intensities')
        moods_parser.add_argument('--log-level', choices=LOG_LEVELS, default='WARNING', help='Set logging level')

        config_parser = subparsers.add_parser('config', help='Show or change stored Spotify credentials')
        token_group = config_parser.add_mutually_exclusive_group()
        token_group.add_argument('--set-token', metavar='TOKEN', help='Store a Spotify access token')
        token_group.add_argument('--clear-tokens', action='store_true', help='Delete stored tokens')
        config_parser.add_argument(
            '--expires-in',
            type=int,
            default=None,
            help='Lifetime of the token given with --set-token, in seconds'
        )
        config_parser.add_argument('--log-level', choices=LOG_LEVELS, default='WARNING', help='Set logging level')

        return parser

    def _add_quiz_arguments(self, parser: argparse.ArgumentParser) -> None:
        parser.add_argument(
            '--mood',
            required=True,
            help='Mood: happy, sad, motivated or relaxed'
        )
        parser.add_argument(
            '--genres',
            nargs='+',
            default=None,
            help='Up to 5 genres, or "random" to use your listening history (default)'
        )
        parser.add_argument(
            '--artists',
            nargs='+',
            default=None,
            help='Up to 5 artists, "random" for your favourites (default) or "random_artists"'
        )
        parser.add_argument(
            '--intensity',
            default='medio',
            help='Mood intensity: muy_bajo, bajo, medio, alto, muy_alto (default: medio)'
        )
        parser.add_argument('--log-level', choices=LOG_LEVELS, default='INFO', help='Set logging level')

    def _build_answers(self, args: argparse.Namespace) -> Dict[str, Any]:
        """Translate parsed arguments into quiz answers."""
        answers: Dict[str, Any] = {
            'mood': args.mood,
            'intensity': args.intensity,
        }

        if not args.genres or args.genres == ['random']:
            answers['genres'] = 'random'
        else:
            answers['genres'] = list(args.genres)

        if not args.artists or args.artists == ['random']:
            answers['artists'] = 'random'
        elif args.artists == ['random_artists']:
            answers['artists'] = 'random_artists'
        else:
            answers['artists'] = list(args.artists)

        if getattr(args, 'name', None):
            answers['playlistName'] = args.name
        if getattr(args, 'description', None):
            answers['description'] = args.description
        return answers

    def _setup_logging(self, level: str, json_logs: bool = False, request_id: Optional[str] = None) -> None:
        """Setup logging configuration."""
        setup_logging(level=level, structured=json_logs, request_id=request_id)

    def _create_provider(self, settings: GenerationSettings) -> SpotifyProvider:
        """Create the Spotify provider backed by stored tokens."""
        return SpotifyProvider(
            StoredTokenProvider(),
            market=settings.market,
            time_range=settings.history_time_range,
        )

    def _setup_signal_handlers(self) -> None:
        """Cancel the running generation on the first signal, exit on the second."""
        def signal_handler(signum, frame):
            logger = logging.getLogger(__name__)
            if self._cancel_event.is_set():
                logger.warning(f"Received signal {signum} again, exiting")
                sys.exit(130)
            logger.warning(f"Received signal {signum}, cancelling generation...")
            self._cancel_event.set()

        signal.signal(signal.SIGINT, signal_handler)
        signal.signal(signal.SIGTERM, signal_handler)

    def _generate(self, args: argparse.Namespace) -> int:
        """Generate and optionally publish a playlist."""
        logger = logging.getLogger(__name__)
        request_id = uuid.uuid4().hex[:8]
        self._setup_logging(args.log_level, args.json_logs, request_id)

        settings = GenerationSettings.from_env()
        provider = self.provider_factory(settings)
        rng = random.Random(args.seed) if args.seed is not None else None
        generator = PlaylistGenerator(provider, provider, settings=settings, rng=rng)
        metrics = MetricsCollector(request_id)

        try:
            result = generator.generate_playlist(self._build_answers(args), metrics=metrics,
                                                 cancel_event=self._cancel_event)
            if args.dry_run:
                logger.info(f"DRY-RUN: would create '{result.parameters.name}' "
                            f"with {len(result.ordered_tracks)} tracks")
                output = result.to_dict()
                output['dry_run'] = True
            else:
                publisher = PlaylistPublisher(provider, batch_size=settings.publish_batch_size)
                output = publisher.publish(result).to_dict()
        finally:
            if args.metrics_file:
                metrics.save_to_file(args.metrics_file)
                logger.info(f"Metrics saved to {args.metrics_file}")

        print(json.dumps(output, indent=2, ensure_ascii=False))
        metrics.print_summary()
        return 0

    def _validate(self, args: argparse.Namespace) -> int:
        """Validate quiz answers and print the outcome."""
        self._setup_logging(args.log_level)
        validation = validate_quiz_answers(self._build_answers(args))
        if validation.valid:
            print("Quiz answers are valid")
            return 0
        print("Quiz answers are invalid:")
        for error in validation.errors:
            print(f"  - {error}")
        return 1

    def _list_genres(self, args: argparse.Namespace) -> int:
        """Print recommended genres for a mood, or the full catalogue."""
        if args.mood:
            print(f"Recommended genres for {args.mood}: {', '.join(recommended_genres_for_mood(args.mood))}")
            return 0
        for category, genres in GENRE_CATEGORIES.items():
            print(f"{category}: {', '.join(genres)}")
        return 0

    def _list_moods(self, args: argparse.Namespace) -> int:
        """Print supported moods and intensity levels."""
        print("Moods:")
        for mood in Mood:
            print(f"  {mood.value:<10} {MOOD_DESCRIPTIONS[mood]}")
        print("Intensities:")
        for key, level in INTENSITY_LEVELS.items():
            print(f"  {key:<10} x{level.multiplier:<5} {level.label}")
        return 0

    def _config(self, args: argparse.Namespace) -> int:
        """Store or clear the Spotify token, then print the configuration summary."""
        self._setup_logging(args.log_level)
        logger = logging.getLogger(__name__)
        manager = get_secret_manager()

        if args.expires_in is not None and not args.set_token:
            print("Error: --expires-in requires --set-token", file=sys.stderr)
            return 1
        if args.set_token:
            expires_at = time.time() + args.expires_in if args.expires_in is not None else None
            manager.save_spotify_tokens(args.set_token, expires_at=expires_at)
            logger.info(f"Stored Spotify token in {manager.tokens_file}")
        elif args.clear_tokens:
            manager.clear_tokens()
            logger.info(f"Cleared tokens in {manager.tokens_file}")

        print(json.dumps(manager.get_config_summary(), indent=2, ensure_ascii=False))
        return 0

    def _cleanup_resources(self) -> None:
        """Log execution time."""
        logger = logging.getLogger(__name__)
        if self._start_time:
            duration = time.time() - self._start_time
            logger.info(f"CLI execution time: {duration:.2f}s")

    def run(self, argv: Optional[List[str]] = None) -> None:
        """Run the CLI."""
        self._start_time = time.time()
        args = self.parser.parse_args(argv)

        if not args.command:
            self.parser.print_help()
            sys.exit(1)

        logger = logging.getLogger(__name__)
        exit_code = 1
        try:
            if args.command == 'generate':
                self._setup_signal_handlers()
                exit_code = self._generate(args)
            elif args.command == 'validate':
                exit_code = self._validate(args)
            elif args.command == 'genres':
                exit_code = self._list_genres(args)
            elif args.command == 'moods':
                exit_code = self._list_moods(args)
            elif args.command == 'config':
                exit_code = self._config(args)
            else:
                self.parser.print_help()
        except NotAuthenticated as e:
            logger.error(f"Not authenticated: {e}")
            print(f"Error: {e}", file=sys.stderr)
            exit_code = 2
        except (GenerationError, ConfigError) as e:
            logger.error(f"Generation failed: {e}")
            print(f"Error: {e}", file=sys.stderr)
            exit_code = 1
        except (SearchError, WriteError) as e:
            logger.error(f"Spotify request failed: {e}")
            print(f"Error: {e}", file=sys.stderr)
            exit_code = 3
        finally:
            self._cleanup_resources()

        sys.exit(exit_code)


def main():
    """Main entry point."""
    load_dotenv()
    cli = CLI()
    cli.run()


if __name__ == '__main__':
    main()
