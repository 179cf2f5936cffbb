from __future__ import annotations

import re
from typing import Dict, Iterable, List, Set


_SEPARATOR_PATTERN = re.compile(r"[\s_]+")
_MULTIDASH_PATTERN = re.compile(r"-{2,}")

# Parent genre -> family. A subgenre listed under several parents resolves to the first one.
GENRE_FAMILY_MAP: Dict[str, List[str]] = {
    'rock': ['rock', 'hard-rock', 'soft-rock', 'classic-rock', 'alternative-rock', 'indie-rock',
             'progressive-rock', 'punk-rock', 'garage-rock', 'folk-rock', 'psychedelic-rock',
             'grunge', 'alternative', 'indie', 'punk', 'emo', 'post-punk', 'new-wave'],
    'metal': ['metal', 'heavy-metal', 'death-metal', 'black-metal', 'thrash-metal', 'doom-metal',
              'power-metal', 'progressive-metal', 'metalcore', 'deathcore', 'nu-metal', 'industrial-metal'],
    'pop': ['pop', 'dance-pop', 'synth-pop', 'electro-pop', 'indie-pop', 'art-pop', 'chamber-pop',
            'k-pop', 'j-pop', 'c-pop', 'europop', 'latin-pop', 'pop-rock', 'power-pop'],
    'hip-hop': ['hip-hop', 'rap', 'trap', 'gangsta-rap', 'conscious-hip-hop', 'alternative-hip-hop',
                'east-coast-hip-hop', 'west-coast-hip-hop', 'southern-hip-hop', 'boom-bap'],
    'electronic': ['electronic', 'edm', 'house', 'techno', 'trance', 'dubstep', 'drum-and-bass',
                   'electro', 'ambient', 'downtempo', 'idm', 'breakbeat', 'jungle', 'garage'],
    'r-n-b': ['r-n-b', 'rnb', 'soul', 'neo-soul', 'funk', 'motown', 'contemporary-r-n-b'],
    'jazz': ['jazz', 'smooth-jazz', 'jazz-fusion', 'bebop', 'swing', 'cool-jazz', 'free-jazz',
             'latin-jazz', 'vocal-jazz', 'contemporary-jazz', 'bossa-nova'],
    'latin': ['latin', 'reggaeton', 'salsa', 'bachata', 'merengue', 'cumbia', 'banda', 'corridos',
              'mariachi', 'duranguense', 'regional-mexican', 'latin-pop', 'latin-urban'],
    'country': ['country', 'alt-country', 'country-rock', 'bluegrass', 'honky-tonk', 'nashville-sound'],
    'folk': ['folk', 'folk-rock', 'indie-folk', 'contemporary-folk', 'americana', 'singer-songwriter'],
    'reggae': ['reggae', 'dancehall', 'dub', 'ska', 'rocksteady', 'reggae-fusion'],
    'blues': ['blues', 'electric-blues', 'chicago-blues', 'delta-blues', 'blues-rock'],
    'classical': ['classical', 'baroque', 'romantic', 'opera', 'symphony', 'chamber', 'piano',
                  'orchestral', 'contemporary-classical'],
    'ambient': ['ambient', 'chillout', 'downtempo', 'lofi', 'chillwave', 'vaporwave'],
    'indie': ['indie', 'indie-rock', 'indie-pop', 'indie-folk', 'alternative'],
    'punk': ['punk', 'punk-rock', 'pop-punk', 'hardcore', 'post-punk', 'skate-punk', 'ska-punk'],
    'soul': ['soul', 'neo-soul', 'northern-soul', 'southern-soul', 'motown', 'gospel'],
    'world': ['world-music', 'afrobeat', 'reggae', 'ska', 'flamenco', 'fado', 'bossa-nova'],
}


def normalize_genre(genre: str) -> str:
    """Lowercase a genre tag and use dashes so "Indie Rock" and "indie-rock" compare equal."""
    value = (genre or "").strip().lower()
    value = value.replace("&", "-n-")
    value = _SEPARATOR_PATTERN.sub("-", value)
    value = _MULTIDASH_PATTERN.sub("-", value)
    return value.strip("-")


def expand_to_family(genre: str) -> Set[str]:
    """Return the full family of related genres for a coarse or nested genre.

    A parent key returns its own family. A subgenre returns the family of the first
    parent listing it, so "grunge" also recalls "rock" and "alternative". Anything
    else returns the normalized genre alone.
    """
    key = normalize_genre(genre)
    if key in GENRE_FAMILY_MAP:
        return set(GENRE_FAMILY_MAP[key])

    for subgenres in GENRE_FAMILY_MAP.values():
        if key in subgenres:
            return set(subgenres)

    return {key}


def _three_way_match(candidate: str, target: str) -> bool:
    return candidate == target or target in candidate or candidate in target


def matches_substring(candidate_genre: str, genres: Iterable[str]) -> bool:
    """Match a genre tag against a list by equality or containment in either direction."""
    candidate = normalize_genre(candidate_genre)
    if not candidate:
        return False
    for genre in genres:
        target = normalize_genre(genre)
        if target and _three_way_match(candidate, target):
            return True
    return False


def matches_flexible(candidate_genre: str, target_genres: Iterable[str]) -> bool:
    """Match a genre tag against the expanded families of the target genres.

    Over-matching is accepted: "indie-folk" matches a search for "indie".
    """
    expanded: Set[str] = set()
    for target in target_genres:
        expanded.update(expand_to_family(target))
    return matches_substring(candidate_genre, expanded)
