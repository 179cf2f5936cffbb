import logging
import time
from typing import Callable, Optional

from moodlist.crosscutting.config import ConfigError, SecretManager, get_secret_manager
from moodlist.domain.errors import NotAuthenticated

logger = logging.getLogger(__name__)

# Tokens this close to expiry are treated as expired
EXPIRY_MARGIN_SEC = 60


class StoredTokenProvider:
    """Token provider backed by the secret manager.

    Reads the access token saved in ``tokens.json`` or the ``SPOTIFY_ACCESS_TOKEN``
    environment variable. Tokens are never refreshed here; an expired or missing
    token raises NotAuthenticated so the caller can ask the user to sign in again.
    """

    def __init__(self, secret_manager: Optional[SecretManager] = None,
                 clock: Callable[[], float] = time.time):
        self.secret_manager = secret_manager or get_secret_manager()
        self.clock = clock

    def get_valid_access_token(self) -> str:
        try:
            tokens = self.secret_manager.get_spotify_tokens()
        except ConfigError as e:
            raise NotAuthenticated(f"Could not read stored tokens: {e}") from e

        if not tokens or not tokens.get('access_token'):
            raise NotAuthenticated("No Spotify access token found. Sign in again.")

        expires_at = tokens.get('expires_at')
        if expires_at is not None and float(expires_at) - EXPIRY_MARGIN_SEC <= self.clock():
            logger.warning("Stored Spotify access token has expired")
            raise NotAuthenticated("Spotify session expired. Sign in again.")

        return tokens['access_token']


class StaticTokenProvider:
    """Token provider returning a fixed token, for scripts and tests."""

    def __init__(self, access_token: str):
        self.access_token = access_token

    def get_valid_access_token(self) -> str:
        if not self.access_token:
            raise NotAuthenticated("No access token configured")
        return self.access_token
