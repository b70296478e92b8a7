"""
Client session state: the access/refresh token pair and the signed-in user.

The state object is handed to ApiClient explicitly; where the tokens are
persisted is decided by the TokenStore it wraps.
"""

import json
import logging
import os
from pathlib import Path
from typing import NamedTuple, Protocol

from app.client.config import ClientSettings, get_client_settings
from app.schemas.auth import UserOut

logger = logging.getLogger(__name__)


class StoredTokens(NamedTuple):
    access_token: str
    refresh_token: str | None


class TokenStore(Protocol):
    """Persistence for the token pair (memory, file, keyring...)."""

    def load(self) -> StoredTokens | None: ...

    def save(self, tokens: StoredTokens) -> None: ...

    def clear(self) -> None: ...


class MemoryTokenStore:
    """Keeps tokens for the lifetime of the process only."""

    def __init__(self, tokens: StoredTokens | None = None) -> None:
        self._tokens = tokens

    def load(self) -> StoredTokens | None:
        return self._tokens

    def save(self, tokens: StoredTokens) -> None:
        self._tokens = tokens

    def clear(self) -> None:
        self._tokens = None


class FileTokenStore:
    """Persists tokens as JSON in a file readable only by the owner (0600)."""

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path).expanduser()

    def load(self) -> StoredTokens | None:
        if not self.path.exists():
            return None
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning("Ignoring unreadable token file %s: %s", self.path, e)
            return None
        access = data.get("access_token") if isinstance(data, dict) else None
        if not access:
            return None
        return StoredTokens(access_token=access, refresh_token=data.get("refresh_token"))

    def save(self, tokens: StoredTokens) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(self.path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(tokens._asdict(), f, indent=2)
        self.path.chmod(0o600)
        logger.debug("Tokens saved to %s", self.path)

    def clear(self) -> None:
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass


def default_token_store(settings: ClientSettings | None = None) -> TokenStore:
    """FileTokenStore at TASKIFY_TOKEN_FILE when configured, otherwise memory only."""
    settings = settings or get_client_settings()
    if settings.TOKEN_FILE is not None:
        return FileTokenStore(settings.TOKEN_FILE)
    return MemoryTokenStore()


class SessionState:
    """In-process view of the current session, backed by a TokenStore."""

    def __init__(self, store: TokenStore | None = None) -> None:
        self.store: TokenStore = store if store is not None else default_token_store()
        self.user: UserOut | None = None
        stored = self.store.load()
        self.access_token: str | None = stored.access_token if stored else None
        self.refresh_token: str | None = stored.refresh_token if stored else None

    def set_tokens(self, access_token: str, refresh_token: str | None) -> None:
        self.access_token = access_token
        self.refresh_token = refresh_token
        self.store.save(StoredTokens(access_token=access_token, refresh_token=refresh_token))

    def clear(self) -> None:
        """Drop tokens and user, locally and in the store."""
        self.access_token = None
        self.refresh_token = None
        self.user = None
        self.store.clear()
