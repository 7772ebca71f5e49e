"""Subculture Ground API client implementation."""

import logging
import threading
from typing import Any, Dict, Optional

import httpx

from subground.api.envelope import EnvelopeCodec
from subground.api.error_handler import NetworkError, error_for_response
from subground.api.interceptors import InterceptorPipeline, OutgoingRequest, build_pipeline
from subground.auth.navigation import Navigator, log_navigation
from subground.auth.session import CookieSettings, SessionStore
from subground.config.loader import (
    get_api_base_url,
    get_config_value,
    get_encryption_key,
    is_production,
    load_config,
)

logger = logging.getLogger(__name__)

DEFAULT_HEADERS = {'Content-Type': 'application/json'}


class ApiClient:
    """
    Client for the Subculture Ground API.

    Every call runs through the interceptor pipeline: request stages before
    sending, the response stages on success, the error stages on failure.
    Use get_api_client() to obtain the shared instance.
    """

    def __init__(
        self,
        config: Dict[str, Any],
        session: SessionStore,
        navigator: Optional[Navigator] = None,
        client: Optional[httpx.AsyncClient] = None
    ):
        """
        Initialize API client.

        Args:
            config: Configuration dictionary
            session: Session store shared with the auth service
            navigator: Callable receiving the login route after a 401
            client: Optional httpx.AsyncClient (one is created if omitted)
        """
        self.base_url = get_api_base_url(config).rstrip('/')
        self.production = is_production(config)
        self.session = session
        self.navigator = navigator or log_navigation
        self.codec = EnvelopeCodec(get_encryption_key(config))

        request_timeout = get_config_value(config, 'api.request_timeout', 30)
        self._timeout = httpx.Timeout(
            connect=5.0,
            read=request_timeout,
            write=5.0,
            pool=5.0
        )
        self._default_headers = dict(DEFAULT_HEADERS)
        self._owns_http = client is None
        self._http = client or self._new_http_client()

        self.pipeline: InterceptorPipeline = build_pipeline(
            session,
            navigator=self.navigator,
            production=self.production,
        )

        logger.debug(
            f"API client ready: base_url={self.base_url}, "
            f"stages={self.pipeline.stage_names}"
        )

    def _new_http_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self._timeout, follow_redirects=False)

    def _open_http_client(self, label: str) -> httpx.AsyncClient:
        """
        Return a usable connection pool.

        A pool this client created is reopened after aclose(); an injected
        pool that was closed by its owner cannot be.
        """
        if self._http.is_closed:
            if not self._owns_http:
                raise NetworkError(f"Network error [{label}]: HTTP client is closed")
            logger.debug("Reopening API client connection pool")
            self._http = self._new_http_client()
        return self._http

    @property
    def default_headers(self) -> Dict[str, str]:
        return dict(self._default_headers)

    def url_for(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    async def request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        content: Any = None,
        files: Any = None,
        data: Any = None,
        params: Any = None
    ) -> httpx.Response:
        """
        Send one request through the pipeline.

        Args:
            method: HTTP method
            path: Path relative to the base URL (e.g. '/auth/login')
            json: JSON body
            content: Raw body (str or bytes)
            files: Multipart files
            data: Form fields
            params: Query parameters

        Returns:
            httpx.Response (status < 400)

        Raises:
            NetworkError: On transport failure
            AuthError: On HTTP 401, after the session was invalidated
            ResponseError: On any other HTTP error status
        """
        outgoing = OutgoingRequest(
            method=method.upper(),
            path=path,
            headers=self.default_headers,
            json=json,
            content=content,
            files=files,
            data=data,
            params=params,
        )
        outgoing = self.pipeline.on_request(outgoing)
        http = self._open_http_client(outgoing.label)

        try:
            response = await http.request(
                outgoing.method,
                self.url_for(outgoing.path),
                headers=outgoing.headers,
                json=outgoing.json,
                content=outgoing.content,
                files=outgoing.files,
                data=outgoing.data,
                params=outgoing.params,
                timeout=self._timeout,
            )
        except httpx.TransportError as e:
            logger.warning(f"{outgoing.label} failed: network error ({type(e).__name__})")
            error = NetworkError(f"Network error [{outgoing.label}]: {e}")
            error.__cause__ = e
            self.pipeline.on_error(error)

        if response.is_error:
            self.pipeline.on_error(error_for_response(response, context=outgoing.label))

        return self.pipeline.on_response(response, outgoing)

    async def get(self, path: str, **kwargs) -> httpx.Response:
        return await self.request('GET', path, **kwargs)

    async def post(self, path: str, **kwargs) -> httpx.Response:
        return await self.request('POST', path, **kwargs)

    async def put(self, path: str, **kwargs) -> httpx.Response:
        return await self.request('PUT', path, **kwargs)

    async def delete(self, path: str, **kwargs) -> httpx.Response:
        return await self.request('DELETE', path, **kwargs)

    async def aclose(self) -> None:
        """
        Close the underlying connection pool.

        The client itself stays usable: the next request opens a new pool
        (bound to the running event loop) if this client created the old one.
        """
        if not self._http.is_closed:
            await self._http.aclose()
            logger.debug("API client connection pool closed")


_instance: Optional[ApiClient] = None
_instance_lock = threading.Lock()


def get_api_client(
    config: Optional[Dict[str, Any]] = None,
    session: Optional[SessionStore] = None,
    navigator: Optional[Navigator] = None
) -> ApiClient:
    """
    Return the process-wide API client, creating it on first use.

    Arguments only matter for the first call. The client is never
    reconfigured afterwards.

    Args:
        config: Configuration dictionary (default: load_config())
        session: Session store (default: a new SessionStore)
        navigator: Navigation callable for 401 handling

    Returns:
        Shared ApiClient
    """
    global _instance

    if _instance is None:
        with _instance_lock:
            if _instance is None:
                if config is None:
                    config = load_config()
                if session is None:
                    session = SessionStore(CookieSettings(secure=is_production(config)))
                _instance = ApiClient(config, session, navigator=navigator)
                return _instance

    if config is not None or session is not None or navigator is not None:
        logger.warning("API client already created, ignoring new configuration")
    return _instance
