"""
Client-held authentication session.

The store keeps the bearer token and the cached user profile. Both fields
change together: ``set()`` and ``clear()`` touch token and user in one step,
and a user is only ever cached while a token is present.
"""

import logging
from dataclasses import dataclass
from http.cookies import CookieError, SimpleCookie
from typing import Any, Dict, Optional, Tuple

logger = logging.getLogger(__name__)

TOKEN_COOKIE_NAME = "access_token"
TOKEN_COOKIE_MAX_AGE = 60 * 60 * 24 * 7  # 7 days


@dataclass(frozen=True)
class CookieSettings:
    """Attributes of the persisted token cookie."""
    name: str = TOKEN_COOKIE_NAME
    max_age: int = TOKEN_COOKIE_MAX_AGE
    same_site: str = "Strict"
    http_only: bool = False  # read back by client code
    secure: bool = False


class SessionStore:
    """
    Holds the current bearer token and cached user record.

    One instance is shared by the API client pipeline and the auth service.
    Mutations are synchronous, so within one event loop they never interleave.
    """

    def __init__(self, cookie_settings: Optional[CookieSettings] = None):
        self._token: Optional[str] = None
        self._user: Optional[Dict[str, Any]] = None
        self.cookie_settings = cookie_settings or CookieSettings()

    def __repr__(self) -> str:
        state = "authenticated" if self._token else "anonymous"
        return f"SessionStore({state})"

    @property
    def token(self) -> Optional[str]:
        return self._token

    @property
    def user(self) -> Optional[Dict[str, Any]]:
        return self._user

    @property
    def is_authenticated(self) -> bool:
        return bool(self._token)

    def snapshot(self) -> Tuple[Optional[str], Optional[Dict[str, Any]]]:
        """Return ``(token, user)`` as one consistent pair."""
        return self._token, self._user

    def set(self, token: str, user: Optional[Dict[str, Any]]) -> None:
        """
        Replace the whole session.

        Args:
            token: Bearer token (must be a non-empty string)
            user: User record for the token
        """
        if not token or not isinstance(token, str):
            raise ValueError("Session token must be a non-empty string")
        self._token, self._user = token, user

    def set_user(self, user: Optional[Dict[str, Any]]) -> bool:
        """
        Update the cached user of the current session.

        Args:
            user: User record

        Returns:
            True if stored, False if the session was cleared meanwhile
        """
        if not self._token:
            logger.debug("Session cleared before profile arrived, dropping user update")
            return False
        self._user = user
        return True

    def clear(self) -> None:
        """Drop token and user together."""
        self._token, self._user = None, None

    def to_set_cookie(self) -> str:
        """
        Render the ``Set-Cookie`` value persisting the token.

        An anonymous session renders an expiring cookie that deletes the
        stored token.

        Returns:
            Cookie header value
        """
        settings = self.cookie_settings
        cookie = SimpleCookie()
        cookie[settings.name] = self._token or ""
        morsel = cookie[settings.name]
        morsel["path"] = "/"
        morsel["max-age"] = settings.max_age if self._token else 0
        morsel["samesite"] = settings.same_site
        if settings.secure:
            morsel["secure"] = True
        if settings.http_only:
            morsel["httponly"] = True
        return morsel.OutputString()

    def restore_from_cookie(self, cookie_header: str) -> bool:
        """
        Restore the token from a ``Cookie`` header.

        The user record is not persisted; it stays empty until the profile
        is fetched again.

        Args:
            cookie_header: Raw cookie header string

        Returns:
            True if a token was found and restored
        """
        cookie = SimpleCookie()
        try:
            cookie.load(cookie_header)
        except CookieError as e:
            logger.warning(f"Ignoring malformed cookie header: {e}")
            return False

        morsel = cookie.get(self.cookie_settings.name)
        if morsel is None or not morsel.value:
            return False
        self.set(morsel.value, None)
        return True
