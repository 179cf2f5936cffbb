from typing import Iterable, List, Optional


class GenerationError(Exception):
    """Fatal playlist generation failure surfaced to the caller."""

    code = "generation_error"


class InvalidQuizAnswers(GenerationError):
    """Quiz answers failed validation. Nothing was requested from the catalog."""

    code = "invalid_quiz_answers"

    def __init__(self, errors: Iterable[str], message: Optional[str] = None) -> None:
        self.errors: List[str] = list(errors)
        super().__init__(message or "Invalid quiz answers: " + "; ".join(self.errors))


class NoSeeds(GenerationError):
    """No listening-history seeds and no fallback genres were available."""

    code = "no_seeds"


class NoCandidates(GenerationError):
    """All searches failed or returned nothing usable."""

    code = "no_candidates"


class ArtistsUnsatisfiable(GenerationError):
    """Requested artists yielded no tracks at all."""

    code = "artists_unsatisfiable"

    def __init__(self, artists: Iterable[str], message: Optional[str] = None) -> None:
        self.artists: List[str] = list(artists)
        super().__init__(
            message or "No tracks found for any of the selected artists: " + ", ".join(self.artists)
        )


class QuotaViolation(GenerationError):
    """Final playlist is missing a guaranteed artist."""

    code = "quota_violation"

    def __init__(self, missing_artists: Iterable[str]) -> None:
        self.missing_artists: List[str] = list(missing_artists)
        super().__init__("Could not include tracks from: " + ", ".join(self.missing_artists))


class GenerationCancelled(GenerationError):
    """Generation was abandoned by the caller before completion."""

    code = "cancelled"


class NotAuthenticated(Exception):
    """No valid access token is available. The user must sign in again."""


class SearchError(Exception):
    """A single catalog query failed."""


class RateLimited(SearchError):
    """Catalog query was rate limited. Includes suggested wait time in milliseconds."""

    def __init__(self, retry_after_ms: int, message: str = "Rate limited") -> None:
        super().__init__(message)
        self.retry_after_ms = retry_after_ms


class WriteError(Exception):
    """Playlist persistence failed."""
