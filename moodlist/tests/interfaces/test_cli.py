import argparse
import json
from unittest.mock import patch

import pytest

from moodlist.crosscutting.config import SecretManager
from moodlist.domain.errors import NotAuthenticated
from moodlist.interfaces.cli import CLI
from moodlist.tests.fakes import FakeHistory, FakeProvider, FakeStore, artist_catalog, make_tracks


def _json_output(out: str) -> dict:
    """Parse the JSON document printed before the metrics summary."""
    return json.loads(out.split('\n=== Generation Metrics')[0])


class TestCLI:
    """Tests for CLI functionality."""

    def setup_method(self):
        self.provider = FakeProvider(catalog=artist_catalog({'Artist A': make_tracks('a', 'Artist A', 40)}))
        self.cli = CLI(provider_factory=lambda settings: self.provider)
        patcher_signals = patch.object(CLI, '_setup_signal_handlers')
        patcher_logging = patch('moodlist.interfaces.cli.setup_logging')
        self.patchers = [patcher_signals, patcher_logging]
        for p in self.patchers:
            p.start()

    def teardown_method(self):
        for p in self.patchers:
            p.stop()

    def _run(self, argv):
        with pytest.raises(SystemExit) as exc_info:
            self.cli.run(argv)
        return exc_info.value.code

    def test_generate_parser(self):
        args = self.cli.parser.parse_args([
            'generate', '--mood', 'happy', '--genres', 'pop', 'rock', '--artists', 'Artist A',
            '--intensity', 'alto', '--dry-run', '--seed', '5'
        ])
        assert isinstance(args, argparse.Namespace)
        assert args.command == 'generate'
        assert args.genres == ['pop', 'rock']
        assert args.dry_run is True
        assert args.seed == 5

    def test_mood_is_required(self):
        with pytest.raises(SystemExit):
            self.cli.parser.parse_args(['generate'])

    @pytest.mark.parametrize("argv,genres,artists", [
        ([], 'random', 'random'),
        (['--genres', 'random', '--artists', 'random'], 'random', 'random'),
        (['--artists', 'random_artists'], 'random', 'random_artists'),
        (['--genres', 'pop', '--artists', 'A', 'B'], ['pop'], ['A', 'B']),
    ])
    def test_build_answers(self, argv, genres, artists):
        args = self.cli.parser.parse_args(['validate', '--mood', 'sad'] + argv)
        answers = self.cli._build_answers(args)
        assert answers['genres'] == genres
        assert answers['artists'] == artists
        assert answers['intensity'] == 'medio'

    def test_build_answers_custom_name(self):
        args = self.cli.parser.parse_args(['generate', '--mood', 'sad', '--name', 'Rain', '--description', 'd'])
        answers = self.cli._build_answers(args)
        assert answers['playlistName'] == 'Rain'
        assert answers['description'] == 'd'

    def test_generate_dry_run_prints_tracks(self, capsys):
        code = self._run(['generate', '--mood', 'happy', '--artists', 'Artist A', '--dry-run', '--seed', '1'])

        output = _json_output(capsys.readouterr().out)
        assert code == 0
        assert output['dry_run'] is True
        assert output['track_count'] == 30
        assert self.provider.store.created == []
        assert output['parameters']['search_plan'] == ['artist=Artist A (limit 100)']

    def test_generate_publishes_playlist(self, capsys):
        code = self._run(['generate', '--mood', 'happy', '--artists', 'Artist A', '--name', 'Mine'])

        output = _json_output(capsys.readouterr().out)
        assert code == 0
        assert output['playlist']['id'] == 'pl-1'
        assert output['playlist']['track_count'] == 30
        assert self.provider.store.created[0]['name'] == 'Mine'

    def test_generate_writes_metrics_file(self, tmp_path):
        metrics_file = tmp_path / 'metrics.json'
        code = self._run(['generate', '--mood', 'happy', '--artists', 'Artist A', '--dry-run',
                          '--metrics-file', str(metrics_file)])
        assert code == 0
        assert json.loads(metrics_file.read_text())['tracks_selected'] == 30

    def test_invalid_answers_exit_1(self, capsys):
        code = self._run(['generate', '--mood', 'angry', '--dry-run'])
        assert code == 1
        assert 'Invalid quiz answers' in capsys.readouterr().err

    def test_not_authenticated_exit_2(self):
        self.provider.history = FakeHistory(error=NotAuthenticated('expired'))
        assert self._run(['generate', '--mood', 'happy', '--dry-run']) == 2

    def test_write_failure_exit_3(self):
        self.provider.store = FakeStore(fail_on_batch=0)
        assert self._run(['generate', '--mood', 'happy', '--artists', 'Artist A']) == 3

    def test_validate_command(self, capsys):
        assert self._run(['validate', '--mood', 'happy', '--genres', 'pop']) == 0
        assert 'valid' in capsys.readouterr().out

        assert self._run(['validate', '--mood', 'happy', '--intensity', 'extreme']) == 1
        assert 'intensity' in capsys.readouterr().out.lower()

    def test_genres_command(self, capsys):
        assert self._run(['genres', '--mood', 'sad']) == 0
        assert capsys.readouterr().out.startswith('Recommended genres for sad:')

    def test_moods_command(self, capsys):
        assert self._run(['moods']) == 0
        out = capsys.readouterr().out
        assert 'happy' in out
        assert 'muy_alto' in out

    def test_config_command_sets_and_clears_token(self, capsys, tmp_path):
        manager = SecretManager(str(tmp_path))
        with patch('moodlist.interfaces.cli.get_secret_manager', return_value=manager):
            assert self._run(['config', '--set-token', 'token-value-123', '--expires-in', '3600']) == 0
            summary = json.loads(capsys.readouterr().out)
            assert summary['has_spotify_tokens'] is True
            assert summary['token_expires_at'] is not None
            assert manager.get_spotify_tokens()['access_token'] == 'token-value-123'

            assert self._run(['config', '--clear-tokens']) == 0
            assert json.loads(capsys.readouterr().out)['has_spotify_tokens'] is False
            assert not manager.tokens_file.exists()

    def test_config_expires_in_needs_token(self, capsys, tmp_path):
        with patch('moodlist.interfaces.cli.get_secret_manager', return_value=SecretManager(str(tmp_path))):
            assert self._run(['config', '--expires-in', '60']) == 1
        assert '--set-token' in capsys.readouterr().err

    def test_no_command_prints_help(self):
        assert self._run([]) == 1
