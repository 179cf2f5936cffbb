import logging
from datetime import datetime
from typing import Callable, Dict, List, Optional, Sequence

from moodlist.domain.entities import (
    GenerationDirective,
    GenerationParameters,
    GenerationResult,
    ResolvedTargets,
    Seeds,
    Track,
)
from moodlist.domain.moods import AUDIO_FEATURE_KEYS, MOOD_AUDIO_TARGETS, MOOD_PLAYLIST_INFO, Mood, parse_mood


logger = logging.getLogger(__name__)


def audio_feature_targets(mood: str) -> Dict[str, Optional[float]]:
    """Audio-feature targets for a mood, with None for features the mood leaves open."""
    targets = MOOD_AUDIO_TARGETS[parse_mood(mood) or Mood.HAPPY]
    return {key: targets.get(key) for key in AUDIO_FEATURE_KEYS}


def default_playlist_name(mood: str, when: datetime) -> str:
    prefix = MOOD_PLAYLIST_INFO[parse_mood(mood) or Mood.HAPPY]['name_prefix']
    return f"{prefix} - {when.strftime('%d/%m/%Y')}"


class PlaylistAssembler:
    """Builds the GenerationResult handed to the persistence collaborator."""

    def __init__(self, clock: Callable[[], datetime] = datetime.now, public: bool = False):
        self.clock = clock
        self.public = public

    def assemble(self,
                 tracks: Sequence[Track],
                 directive: GenerationDirective,
                 targets: ResolvedTargets,
                 seeds: Seeds,
                 unsatisfiable_artists: Sequence[str] = (),
                 search_plan: Sequence[str] = ()) -> GenerationResult:
        """Deduplicate the final tracks and attach name, description and metadata."""
        unique: List[Track] = []
        seen_ids = set()
        for track in tracks:
            if track.id in seen_ids:
                logger.warning(f"Dropping duplicate track {track.id} from final playlist")
                continue
            seen_ids.add(track.id)
            unique.append(track)

        now = self.clock()
        mood = parse_mood(directive.mood) or Mood.HAPPY

        parameters = GenerationParameters(
            directive=directive,
            name=directive.playlist_name or default_playlist_name(directive.mood, now),
            description=directive.description or MOOD_PLAYLIST_INFO[mood]['description'],
            public=self.public,
            resolved_genres=tuple(targets.genres),
            resolved_artists=tuple(targets.artists),
            unsatisfiable_artists=tuple(unsatisfiable_artists),
            search_plan=tuple(search_plan),
            audio_features=audio_feature_targets(directive.mood),
            seeds=seeds,
            generated_at=now,
        )
        return GenerationResult(ordered_tracks=tuple(unique), parameters=parameters)
