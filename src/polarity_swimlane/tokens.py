"""Bearer token cache keyed by Swimlane credentials."""

import hashlib

from .logging import get_context_logger

logger = get_context_logger(__name__)


class AccessTokenCache:
    """Maps a credential key to a Swimlane access token.

    There is no expiry timer. A token lives until a request using it is
    answered with 401, at which point the caller evicts it.
    """

    def __init__(self):
        self._tokens: dict[str, str] = {}

    @staticmethod
    def key_for(url: str, username: str, password: str) -> str:
        """Stable cache key for a set of credentials."""
        return hashlib.sha1(f"{url}{username}{password}".encode("utf-8")).hexdigest()

    def get(self, key: str) -> str | None:
        return self._tokens.get(key)

    def set(self, key: str, token: str) -> None:
        self._tokens[key] = token

    def evict(self, key: str) -> bool:
        """Drop a token. Returns True if one was cached."""
        if self._tokens.pop(key, None) is not None:
            logger.debug("Evicted cached access token")
            return True
        return False

    def __contains__(self, key: str) -> bool:
        return key in self._tokens

    def __len__(self) -> int:
        return len(self._tokens)
