import pytest

from moodlist.application.quiz import (
    INTENSITY_LEVELS,
    intensity_multiplier,
    process_quiz_answers,
    recommended_genres_for_mood,
    resolve_intensity,
    validate_quiz_answers,
)
from moodlist.domain.entities import ArtistMode
from moodlist.domain.moods import RECOMMENDED_GENRES, Mood


class TestValidateQuizAnswers:
    """Tests for quiz answer validation."""

    def setup_method(self):
        self.answers = {
            'mood': 'happy',
            'genres': ['pop', 'rock'],
            'artists': ['Queen'],
            'intensity': 'medio',
        }

    def test_valid_answers(self):
        result = validate_quiz_answers(self.answers)
        assert result.valid is True
        assert result.errors == ()

    def test_random_choices_are_valid(self):
        self.answers.update({'genres': 'random', 'artists': 'random_artists'})
        assert validate_quiz_answers(self.answers).valid

        self.answers['artists'] = 'random'
        assert validate_quiz_answers(self.answers).valid

    def test_missing_genres_and_artists_count_as_random(self):
        del self.answers['genres']
        del self.answers['artists']
        assert validate_quiz_answers(self.answers).valid

    def test_too_many_genres(self):
        self.answers['genres'] = ['a', 'b', 'c', 'd', 'e', 'f']
        result = validate_quiz_answers(self.answers)
        assert not result.valid
        assert any('genres' in e for e in result.errors)

    def test_empty_artist_list(self):
        self.answers['artists'] = []
        result = validate_quiz_answers(self.answers)
        assert not result.valid
        assert 'Add at least one artist' in result.errors

    @pytest.mark.parametrize("field,value", [
        ('artists', ['  ']),
        ('artists', [None, 3]),
        ('genres', ['', ' ']),
    ])
    def test_lists_without_usable_entries_are_invalid(self, field, value):
        self.answers[field] = value
        result = validate_quiz_answers(self.answers)
        assert result.valid is False
        assert len(result.errors) == 1

    def test_blank_entries_next_to_real_ones_are_accepted(self):
        self.answers['artists'] = [' ', 'Queen']
        assert validate_quiz_answers(self.answers).valid
        directive = process_quiz_answers(self.answers, ['Fav'])
        assert directive.artist_mode == ArtistMode.CUSTOM
        assert directive.target_artists == ('Queen',)

    def test_unknown_mood_and_intensity(self):
        self.answers.update({'mood': 'angry', 'intensity': 'loud'})
        result = validate_quiz_answers(self.answers)
        assert not result.valid
        assert len(result.errors) == 2

    def test_intensity_aliases_are_valid(self):
        for alias in ['muy_suave', 'suave', 'moderado', 'intenso', 'extremo', 'very_high', 'low']:
            self.answers['intensity'] = alias
            assert validate_quiz_answers(self.answers).valid, alias

    def test_validation_is_idempotent(self):
        self.answers['genres'] = []
        first = validate_quiz_answers(self.answers)
        second = validate_quiz_answers(self.answers)
        assert first == second


class TestProcessQuizAnswers:
    """Tests for quiz answer processing."""

    def test_custom_artists_and_genres(self):
        directive = process_quiz_answers({
            'mood': 'feliz',
            'genres': ['pop', 'Pop', 'rock'],
            'artists': ['Queen', 'ABBA'],
            'intensity': 'alto',
        }, top_artist_names=['Someone'])

        assert directive.mood == 'happy'
        assert directive.target_genres == ('pop', 'rock')
        assert directive.target_artists == ('Queen', 'ABBA')
        assert directive.artist_mode == ArtistMode.CUSTOM
        assert directive.use_custom_artists
        assert directive.intensity_multiplier == 1.5

    def test_random_artists_uses_favorites(self):
        directive = process_quiz_answers(
            {'mood': 'sad', 'genres': 'random', 'artists': 'random', 'intensity': 'medio'},
            top_artist_names=['A', 'B', 'C', 'D', 'E', 'F'],
        )
        assert directive.artist_mode == ArtistMode.FAVORITES
        assert directive.target_artists == ('A', 'B', 'C', 'D', 'E')
        assert directive.target_genres == ()
        assert not directive.use_custom_artists
        assert not directive.use_custom_genres

    def test_random_from_genre(self):
        directive = process_quiz_answers(
            {'mood': 'relaxed', 'genres': ['jazz'], 'artists': 'random_artists', 'intensity': 'bajo'},
            top_artist_names=['A'],
        )
        assert directive.artist_mode == ArtistMode.RANDOM_FROM_GENRE
        assert directive.target_artists == ()
        assert directive.use_random_artists
        assert directive.intensity_multiplier == 0.75

    def test_unknown_intensity_defaults_to_medium(self):
        directive = process_quiz_answers({'mood': 'happy', 'intensity': 'nope'}, top_artist_names=[])
        assert directive.intensity_key == 'medio'
        assert directive.intensity_multiplier == 1.0

    def test_custom_name_and_description(self):
        directive = process_quiz_answers(
            {'mood': 'happy', 'playlistName': 'Mine', 'description': 'Desc'}, top_artist_names=[]
        )
        assert directive.playlist_name == 'Mine'
        assert directive.description == 'Desc'


@pytest.mark.parametrize("key,expected", [
    ('muy_bajo', 0.5),
    ('muy_suave', 0.5),
    ('bajo', 0.75),
    ('MODERADO', 1.0),
    ('alto', 1.5),
    ('very-high', 2.0),
])
def test_intensity_multiplier(key, expected):
    assert intensity_multiplier(key) == expected


def test_resolve_intensity_rejects_non_strings():
    assert resolve_intensity(None) is None
    assert resolve_intensity(1.5) is None
    assert set(INTENSITY_LEVELS) == {'muy_bajo', 'bajo', 'medio', 'alto', 'muy_alto'}


def test_recommended_genres_default_to_happy():
    assert recommended_genres_for_mood('relajado') == RECOMMENDED_GENRES[Mood.RELAXED]
    assert recommended_genres_for_mood('unknown') == RECOMMENDED_GENRES[Mood.HAPPY]
