"""Login, registration and profile workflow."""

import logging
from typing import Any, Dict, Optional, Tuple

import httpx

from subground.api.client import ApiClient
from subground.api.error_handler import DecryptionError, ResponseError
from subground.auth.navigation import LOGIN_PATH, Navigator
from subground.auth.session import SessionStore

logger = logging.getLogger(__name__)

LOGIN_ENDPOINT = '/auth/login'
REGISTER_ENDPOINT = '/auth/register'
PROFILE_ENDPOINT = '/auth/profile'


class AuthService:
    """
    Authentication workflow on top of the API client.

    Request and response bodies of the auth endpoints travel as encrypted
    envelopes. Logout is purely local: tokens are stateless, so nothing is
    revoked server-side.
    """

    def __init__(
        self,
        client: ApiClient,
        session: Optional[SessionStore] = None,
        navigator: Optional[Navigator] = None
    ):
        """
        Args:
            client: API client
            session: Session store (defaults to the client's own store)
            navigator: Navigation callable (defaults to the client's)
        """
        self.client = client
        self.session = session if session is not None else client.session
        self.navigator = navigator or client.navigator

        if self.session is not client.session:
            logger.warning("AuthService and ApiClient use different session stores")

    @property
    def user(self) -> Optional[Dict[str, Any]]:
        return self.session.user

    @property
    def is_authenticated(self) -> bool:
        return self.session.is_authenticated

    def _open(self, response: httpx.Response) -> Any:
        try:
            body = response.json()
        except ValueError:
            raise DecryptionError("response body is not JSON") from None
        return self.client.codec.decrypt_response(body)

    def _parse_auth_response(self, data: Any, context: str) -> Tuple[str, Dict[str, Any]]:
        if not isinstance(data, dict):
            raise ResponseError(f"Malformed auth response [{context}]: expected an object")

        token = data.get('accessToken')
        user = data.get('user')
        if not isinstance(token, str) or not token:
            raise ResponseError(f"Malformed auth response [{context}]: missing accessToken")
        if not isinstance(user, dict):
            raise ResponseError(f"Malformed auth response [{context}]: missing user")
        return token, user

    async def _authenticate(self, endpoint: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        envelope = self.client.codec.encrypt_request(payload)
        response = await self.client.post(endpoint, json=envelope)
        token, user = self._parse_auth_response(self._open(response), endpoint)
        self.session.set(token, user)
        logger.info(f"Authenticated as user {user.get('idx', '?')}")
        return user

    async def login(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """
        Log in with email and password.

        Args:
            payload: {'email': ..., 'password': ...}

        Returns:
            Authenticated user record
        """
        return await self._authenticate(LOGIN_ENDPOINT, payload)

    async def register(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """
        Register a new account and log in with it.

        Args:
            payload: {'email', 'password', 'name', optional 'phone', 'birthDate'}

        Returns:
            Authenticated user record
        """
        return await self._authenticate(REGISTER_ENDPOINT, payload)

    async def fetch_profile(self) -> Optional[Dict[str, Any]]:
        """
        Refresh the cached user profile.

        Returns:
            User record, or None without any request when not logged in
        """
        if not self.session.token:
            return None

        response = await self.client.get(PROFILE_ENDPOINT)
        user = self._open(response)
        if not isinstance(user, dict):
            raise ResponseError(f"Malformed profile response [{PROFILE_ENDPOINT}]: expected an object")
        self.session.set_user(user)
        return user

    async def logout(self) -> None:
        """Drop the local session and go back to the login page."""
        self.session.clear()
        self.navigator(LOGIN_PATH)
