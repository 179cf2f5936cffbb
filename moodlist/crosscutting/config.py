import os
import json
from dataclasses import dataclass, fields
from typing import Dict, Any, Mapping, Optional
from pathlib import Path

from dotenv import dotenv_values


class ConfigError(Exception):
    """Configuration error."""
    pass


class SecretManager:
    """Manages Spotify tokens and client configuration."""

    def __init__(self, config_dir: Optional[str] = None):
        """Initialize secret manager."""
        self.config_dir = Path(config_dir) if config_dir else Path.home() / '.moodlist'
        self.config_dir.mkdir(parents=True, exist_ok=True)

        self.tokens_file = self.config_dir / 'tokens.json'
        self.env_file = self.config_dir / '.env'

    def get_spotify_scopes(self) -> list:
        """Get the Spotify scopes needed to read history and write playlists."""
        return [
            'user-top-read',              # Top artists and tracks
            'playlist-modify-public',     # Create/modify public playlists
            'playlist-modify-private',    # Create/modify private playlists
        ]

    def load_tokens(self) -> Dict[str, Any]:
        """Load tokens from tokens.json file."""
        if not self.tokens_file.exists():
            return {}

        try:
            with open(self.tokens_file, 'r') as f:
                return json.load(f)
        except (json.JSONDecodeError, IOError) as e:
            raise ConfigError(f"Failed to load tokens from {self.tokens_file}: {e}")

    def save_tokens(self, tokens: Dict[str, Any]) -> None:
        """Merge tokens into tokens.json file."""
        existing_tokens = self.load_tokens()
        existing_tokens.update(tokens)
        try:
            with open(self.tokens_file, 'w') as f:
                json.dump(existing_tokens, f, indent=2, ensure_ascii=False)
        except IOError as e:
            raise ConfigError(f"Failed to save tokens to {self.tokens_file}: {e}")

    def get_spotify_tokens(self) -> Optional[Dict[str, Any]]:
        """Get Spotify tokens from tokens.json, falling back to SPOTIFY_ACCESS_TOKEN."""
        tokens = self.load_tokens().get('spotify')
        if tokens and tokens.get('access_token'):
            return tokens

        access_token = os.getenv('SPOTIFY_ACCESS_TOKEN') or self.load_env_vars().get('SPOTIFY_ACCESS_TOKEN')
        if access_token:
            return {'access_token': access_token}
        return None

    def save_spotify_tokens(self, access_token: str, expires_at: Optional[float] = None) -> None:
        """Save Spotify access token and its expiry (epoch seconds)."""
        payload: Dict[str, Any] = {'access_token': access_token}
        if expires_at is not None:
            payload['expires_at'] = expires_at
        self.save_tokens({'spotify': payload})

    def load_env_vars(self) -> Dict[str, str]:
        """Load variables from the .env file in the config directory."""
        if not self.env_file.exists():
            return {}
        try:
            return {k: v for k, v in dotenv_values(self.env_file).items() if v is not None}
        except OSError as e:
            raise ConfigError(f"Failed to load .env file {self.env_file}: {e}")

    def validate_configuration(self) -> Dict[str, bool]:
        """Validate that all required configuration is present."""
        spotify_tokens = self.get_spotify_tokens()

        return {
            'tokens_file': self.tokens_file.exists(),
            'env_file': self.env_file.exists(),
            'spotify_tokens': bool(spotify_tokens and spotify_tokens.get('access_token')),
        }

    def get_config_summary(self) -> Dict[str, Any]:
        """Get configuration summary (without sensitive data)."""
        validation = self.validate_configuration()
        spotify_tokens = self.get_spotify_tokens() or {}

        return {
            'config_dir': str(self.config_dir),
            'tokens_file': str(self.tokens_file),
            'env_file': str(self.env_file),
            'validation': validation,
            'spotify_scopes': self.get_spotify_scopes(),
            'has_spotify_tokens': validation['spotify_tokens'],
            'token_expires_at': spotify_tokens.get('expires_at'),
        }

    def clear_tokens(self) -> None:
        """Clear all stored tokens."""
        if self.tokens_file.exists():
            self.tokens_file.unlink()


@dataclass(frozen=True)
class GenerationSettings:
    """Tunable constants of the generation pipeline.

    Every field can be overridden with a ``MOODLIST_<FIELD>`` environment variable,
    e.g. ``MOODLIST_PLAYLIST_SIZE=25``.
    """

    playlist_size: int = 30
    min_tracks_per_artist: int = 3
    max_quiz_selections: int = 5
    strict_popularity_floor: int = 50
    relaxed_popularity_floor: int = 40
    strict_floor_min_tracks: int = 30
    popular_candidate_cap: int = 60
    candidate_cap: int = 50
    min_score: float = 10.0
    min_scored_survivors: int = 20
    fallback_keep: int = 50
    search_workers: int = 4
    history_limit: int = 5
    history_time_range: str = 'short_term'
    market: Optional[str] = None
    enrich_artist_genres: bool = False
    publish_batch_size: int = 100

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> 'GenerationSettings':
        """Build settings from ``MOODLIST_*`` variables, keeping defaults for the rest."""
        env = os.environ if env is None else env
        overrides: Dict[str, Any] = {}

        for f in fields(cls):
            raw = env.get(f"MOODLIST_{f.name.upper()}")
            if raw is None or str(raw).strip() == '':
                continue
            overrides[f.name] = _coerce(f.name, f.default, raw)

        settings = cls(**overrides)
        settings.validate()
        return settings

    def validate(self) -> None:
        """Raise ConfigError for inconsistent values."""
        if self.playlist_size <= 0:
            raise ConfigError("playlist_size must be positive")
        if self.min_tracks_per_artist <= 0:
            raise ConfigError("min_tracks_per_artist must be positive")
        if self.relaxed_popularity_floor > self.strict_popularity_floor:
            raise ConfigError("relaxed_popularity_floor cannot exceed strict_popularity_floor")
        if self.search_workers <= 0:
            raise ConfigError("search_workers must be positive")
        if self.publish_batch_size <= 0 or self.publish_batch_size > 100:
            raise ConfigError("publish_batch_size must be between 1 and 100")
        if self.history_time_range not in ('short_term', 'medium_term', 'long_term'):
            raise ConfigError(f"Unsupported history_time_range: {self.history_time_range}")


def _coerce(name: str, default: Any, raw: str) -> Any:
    value = str(raw).strip()
    try:
        if isinstance(default, bool):
            if value.lower() in ('1', 'true', 'yes', 'on'):
                return True
            if value.lower() in ('0', 'false', 'no', 'off'):
                return False
            raise ValueError(value)
        if isinstance(default, int):
            return int(value)
        if isinstance(default, float):
            return float(value)
    except ValueError:
        raise ConfigError(f"Invalid value for MOODLIST_{name.upper()}: {raw!r}")
    return value


# Global instance
secret_manager: Optional[SecretManager] = None


def get_secret_manager() -> SecretManager:
    """Get global secret manager instance, creating it on first use."""
    global secret_manager
    if secret_manager is None:
        secret_manager = SecretManager()
    return secret_manager
