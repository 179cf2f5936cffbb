from __future__ import annotations

from enum import Enum
from typing import Dict, List, Optional


class Mood(str, Enum):
    HAPPY = "happy"
    SAD = "sad"
    MOTIVATED = "motivated"
    RELAXED = "relaxed"


_MOOD_ALIASES = {
    "feliz": Mood.HAPPY,
    "triste": Mood.SAD,
    "motivado": Mood.MOTIVATED,
    "relajado": Mood.RELAXED,
}


def parse_mood(value: Optional[str]) -> Optional[Mood]:
    """Resolve an English or Spanish mood identifier, case-insensitively."""
    if not value or not isinstance(value, str):
        return None
    key = value.strip().lower()
    try:
        return Mood(key)
    except ValueError:
        return _MOOD_ALIASES.get(key)


# Audio-feature targets per mood. Stored with the playlist as metadata only.
MOOD_AUDIO_TARGETS: Dict[Mood, Dict[str, float]] = {
    Mood.HAPPY: {
        'valence': 0.8,
        'energy': 0.7,
        'danceability': 0.7,
    },
    Mood.SAD: {
        'valence': 0.3,
        'acousticness': 0.7,
        'energy': 0.4,
    },
    Mood.MOTIVATED: {
        'energy': 0.9,
        'tempo': 140,
        'valence': 0.7,
    },
    Mood.RELAXED: {
        'valence': 0.5,
        'acousticness': 0.8,
        'energy': 0.3,
        'instrumentalness': 0.5,
    },
}

AUDIO_FEATURE_KEYS = ('valence', 'energy', 'acousticness', 'danceability', 'tempo', 'instrumentalness')

# Used when both genres and artists are random, and as the scoring fallback.
MOOD_FALLBACK_GENRES: Dict[Mood, List[str]] = {
    Mood.HAPPY: ['pop', 'dance', 'latin', 'reggaeton', 'disco', 'funk'],
    Mood.SAD: ['indie', 'alternative', 'acoustic', 'ballad', 'soul'],
    Mood.MOTIVATED: ['rock', 'hip-hop', 'electronic', 'metal', 'edm', 'trap'],
    Mood.RELAXED: ['jazz', 'acoustic', 'ambient', 'lofi', 'classical', 'chill'],
}

DEFAULT_SEED_GENRES: Dict[Mood, List[str]] = {
    Mood.HAPPY: ['pop', 'dance'],
    Mood.SAD: ['acoustic', 'indie'],
    Mood.MOTIVATED: ['rock', 'workout'],
    Mood.RELAXED: ['ambient', 'chill'],
}

# Used in favorites mode when the user has no listening history.
DEFAULT_ARTISTS: Dict[Mood, List[str]] = {
    Mood.HAPPY: ['Dua Lipa', 'Bruno Mars', 'The Weeknd'],
    Mood.SAD: ['Adele', 'Billie Eilish', 'Sam Smith'],
    Mood.MOTIVATED: ['Eminem', 'Imagine Dragons', 'Queen'],
    Mood.RELAXED: ['Norah Jones', 'Ed Sheeran', 'John Mayer'],
}

RECOMMENDED_GENRES: Dict[Mood, List[str]] = {
    Mood.HAPPY: ['pop', 'dance', 'latin', 'reggaeton', 'funk', 'disco'],
    Mood.SAD: ['indie', 'alternative', 'acoustic', 'soul', 'r-n-b', 'blues'],
    Mood.MOTIVATED: ['rock', 'hip-hop', 'electronic', 'metal', 'edm', 'trap'],
    Mood.RELAXED: ['jazz', 'ambient', 'lofi', 'classical', 'bossa-nova', 'chill'],
}

MOOD_PLAYLIST_INFO: Dict[Mood, Dict[str, str]] = {
    Mood.HAPPY: {
        'name_prefix': '😊 Happy Vibes',
        'description': 'Cheerful, upbeat music picked to lift your mood. Enjoy!',
    },
    Mood.SAD: {
        'name_prefix': '💙 Reflective Moments',
        'description': 'Emotional, melancholic songs to keep you company while you look inward.',
    },
    Mood.MOTIVATED: {
        'name_prefix': '🔥 Pure Energy',
        'description': 'High-energy, motivating music to give it everything. Go for it!',
    },
    Mood.RELAXED: {
        'name_prefix': '🌙 Total Relax',
        'description': 'Calm, relaxing music to unplug and find your inner peace.',
    },
}

MOOD_DESCRIPTIONS: Dict[Mood, str] = {
    Mood.HAPPY: 'Cheerful, positive music to celebrate',
    Mood.SAD: 'Melancholic songs to reflect',
    Mood.MOTIVATED: 'Energetic rhythms to conquer the day',
    Mood.RELAXED: 'Calm music to switch off',
}

# Quiz prompt catalogue
GENRE_CATEGORIES: Dict[str, List[str]] = {
    'pop': ['pop', 'k-pop', 'j-pop', 'synth-pop', 'dance-pop', 'indie-pop'],
    'rock': ['rock', 'alternative', 'indie', 'punk', 'grunge', 'hard-rock', 'progressive-rock'],
    'electronic': ['electronic', 'edm', 'house', 'techno', 'dubstep', 'trance', 'drum-and-bass'],
    'hiphop': ['hip-hop', 'rap', 'trap', 'r-n-b', 'soul'],
    'latin': ['latin', 'reggaeton', 'salsa', 'bachata', 'cumbia', 'banda', 'corridos'],
    'jazz': ['jazz', 'blues', 'bossa-nova', 'smooth-jazz', 'jazz-fusion'],
    'classical': ['classical', 'piano', 'orchestra', 'opera', 'chamber'],
    'ambient': ['ambient', 'chill', 'lofi', 'downtempo', 'chillout'],
    'metal': ['metal', 'heavy-metal', 'death-metal', 'metalcore', 'progressive-metal'],
    'country': ['country', 'folk', 'bluegrass', 'americana'],
    'world': ['world-music', 'afrobeat', 'reggae', 'ska', 'flamenco'],
}

POPULAR_GENRES: List[str] = [
    'pop', 'rock', 'hip-hop', 'electronic', 'latin',
    'indie', 'r-n-b', 'jazz', 'reggaeton', 'alternative',
]
