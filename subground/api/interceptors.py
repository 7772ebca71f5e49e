"""
Interceptor pipeline wrapped around every API call.

Stages are plain named callables composed once, in a fixed order, when the
client is built:

- request stages receive ``(request, session)`` and return the request
- response stages receive ``(response, request, session)`` and return the response
- error stages receive ``(error, session)``; the pipeline re-raises the
  original error after running them
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, NoReturn, Optional, Tuple

import httpx

from subground.api.error_handler import is_auth_failure
from subground.auth.navigation import LOGIN_PATH, Navigator, log_navigation
from subground.auth.session import SessionStore

logger = logging.getLogger(__name__)

PASSWORD_FIELD = "password"
PASSWORD_MASK = "***"
ACCESS_TOKEN_FIELD = "accessToken"
TOKEN_PREFIX_LENGTH = 10


@dataclass
class OutgoingRequest:
    """Request as seen by the request stages, before httpx builds it."""
    method: str
    path: str
    headers: Dict[str, str] = field(default_factory=dict)
    json: Any = None
    content: Any = None
    files: Any = None
    data: Any = None
    params: Any = None

    @property
    def is_binary(self) -> bool:
        """True for multipart uploads and raw byte bodies."""
        return self.files is not None or isinstance(self.content, (bytes, bytearray))

    @property
    def label(self) -> str:
        return f"{self.method} {self.path}"


@dataclass(frozen=True)
class Stage:
    """A named pipeline step."""
    name: str
    handler: Callable


def _remove_header(headers: Dict[str, str], name: str) -> None:
    for key in [k for k in headers if k.lower() == name.lower()]:
        del headers[key]


def _json_body(request: OutgoingRequest) -> Optional[Dict[str, Any]]:
    """Return the request body as a mapping, if it is one."""
    if request.json is not None:
        body = request.json
    elif isinstance(request.content, str):
        try:
            body = json.loads(request.content)
        except ValueError:
            return None
    else:
        return None
    return body if isinstance(body, dict) else None


def mask_password(body: Dict[str, Any]) -> Dict[str, Any]:
    """Copy of a body with the password replaced by a fixed mask."""
    return {**body, PASSWORD_FIELD: PASSWORD_MASK}


def mask_access_token(body: Dict[str, Any]) -> Dict[str, Any]:
    """Copy of a body with the access token cut to a short prefix."""
    token = str(body[ACCESS_TOKEN_FIELD])
    return {**body, ACCESS_TOKEN_FIELD: f"{token[:TOKEN_PREFIX_LENGTH]}..."}


# ============================================================================
# Request stages
# ============================================================================

def attach_bearer_token(request: OutgoingRequest, session: SessionStore) -> OutgoingRequest:
    """Add ``Authorization: Bearer <token>`` while the session holds a token."""
    token = session.token
    if token:
        request.headers["Authorization"] = f"Bearer {token}"
    return request


def drop_json_content_type(request: OutgoingRequest, session: SessionStore) -> OutgoingRequest:
    """Let httpx pick the content type (and boundary) for binary bodies."""
    if request.is_binary:
        _remove_header(request.headers, "Content-Type")
    return request


def log_redacted_request(request: OutgoingRequest, session: SessionStore) -> OutgoingRequest:
    """Log bodies carrying a password, with the password masked."""
    if request.is_binary or not logger.isEnabledFor(logging.DEBUG):
        return request

    body = _json_body(request)
    if body and body.get(PASSWORD_FIELD):
        logger.debug(f"[API Request] {request.label} {mask_password(body)}")
    return request


# ============================================================================
# Response stages
# ============================================================================

def log_masked_response(
    response: httpx.Response,
    request: OutgoingRequest,
    session: SessionStore
) -> httpx.Response:
    """Log bodies carrying an access token, with the token truncated."""
    if not logger.isEnabledFor(logging.DEBUG):
        return response

    try:
        body = response.json()
    except ValueError:
        return response

    if isinstance(body, dict) and isinstance(body.get(ACCESS_TOKEN_FIELD), str):
        logger.debug(f"[API Response] {request.label} {mask_access_token(body)}")
    return response


# ============================================================================
# Error stages
# ============================================================================

def _sent_bearer_token(error: Exception) -> Optional[str]:
    """Bearer token the failed request carried, if any."""
    response = getattr(error, 'response', None)
    if response is None:
        return None
    try:
        header = response.request.headers.get('Authorization', '')
    except RuntimeError:
        # Response built without a request
        return None
    if not header.startswith('Bearer '):
        return None
    return header[len('Bearer '):]


def make_session_invalidation(navigator: Navigator) -> Callable[[Exception, SessionStore], None]:
    """
    Build the 401 handler.

    Every 401 clears the session and requests the login route, except one
    answering a bearer token the session no longer holds. That 401 was
    already handled (or the user logged in again meanwhile), so a burst of
    concurrent 401s for the same token invalidates the session exactly once.
    """
    def invalidate_session(error: Exception, session: SessionStore) -> None:
        if not is_auth_failure(error):
            return
        sent_token = _sent_bearer_token(error)
        if sent_token is not None and sent_token != session.token:
            logger.debug("401 for a token no longer held, session left as is")
            return
        logger.info("Request rejected (HTTP 401), clearing session")
        session.clear()
        navigator(LOGIN_PATH)

    return invalidate_session


class InterceptorPipeline:
    """Statically ordered request, response and error stages."""

    def __init__(
        self,
        session: SessionStore,
        request_stages: Tuple[Stage, ...] = (),
        response_stages: Tuple[Stage, ...] = (),
        error_stages: Tuple[Stage, ...] = ()
    ):
        self.session = session
        self.request_stages = tuple(request_stages)
        self.response_stages = tuple(response_stages)
        self.error_stages = tuple(error_stages)

    @property
    def stage_names(self) -> Dict[str, Tuple[str, ...]]:
        return {
            "request": tuple(s.name for s in self.request_stages),
            "response": tuple(s.name for s in self.response_stages),
            "error": tuple(s.name for s in self.error_stages),
        }

    def on_request(self, request: OutgoingRequest) -> OutgoingRequest:
        for stage in self.request_stages:
            request = stage.handler(request, self.session)
        return request

    def on_response(self, response: httpx.Response, request: OutgoingRequest) -> httpx.Response:
        for stage in self.response_stages:
            response = stage.handler(response, request, self.session)
        return response

    def on_error(self, error: Exception) -> NoReturn:
        """Run the error stages, then re-raise the original error."""
        for stage in self.error_stages:
            stage.handler(error, self.session)
        raise error


def build_pipeline(
    session: SessionStore,
    navigator: Optional[Navigator] = None,
    production: bool = False
) -> InterceptorPipeline:
    """
    Compose the standard pipeline.

    Diagnostic logging stages are left out entirely in production.

    Args:
        session: Shared session store
        navigator: Callable receiving the login route on 401
        production: Production build flag

    Returns:
        InterceptorPipeline
    """
    request_stages = [
        Stage("auth_header", attach_bearer_token),
        Stage("content_type", drop_json_content_type),
    ]
    response_stages = []
    if not production:
        request_stages.append(Stage("redacted_request_log", log_redacted_request))
        response_stages.append(Stage("masked_token_log", log_masked_response))

    error_stages = [
        Stage("session_invalidation", make_session_invalidation(navigator or log_navigation)),
    ]

    return InterceptorPipeline(
        session,
        request_stages=tuple(request_stages),
        response_stages=tuple(response_stages),
        error_stages=tuple(error_stages),
    )
