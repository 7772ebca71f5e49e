import logging

import httpx
import pytest

from subground.api.error_handler import AuthError, NetworkError, ResponseError
from subground.api.interceptors import (
    OutgoingRequest,
    attach_bearer_token,
    build_pipeline,
    drop_json_content_type,
    log_masked_response,
    log_redacted_request,
    mask_access_token,
    mask_password,
)
from subground.auth.navigation import RecordingNavigator
from subground.auth.session import SessionStore

INTERCEPTOR_LOGGER = "subground.api.interceptors"


def _request(**kwargs) -> OutgoingRequest:
    kwargs.setdefault("headers", {"Content-Type": "application/json"})
    return OutgoingRequest(method="POST", path="/auth/login", **kwargs)


@pytest.mark.unit
def test_mask_helpers_copy_instead_of_mutating():
    body = {"email": "a@b.com", "password": "hunter2"}
    assert mask_password(body) == {"email": "a@b.com", "password": "***"}
    assert body["password"] == "hunter2"

    tokens = {"accessToken": "abcdefghijklmnop"}
    assert mask_access_token(tokens) == {"accessToken": "abcdefghij..."}
    assert tokens["accessToken"] == "abcdefghijklmnop"


@pytest.mark.unit
def test_attach_bearer_token_only_with_session():
    session = SessionStore()
    assert "Authorization" not in attach_bearer_token(_request(), session).headers

    session.set("tok123", {"idx": 1})
    assert attach_bearer_token(_request(), session).headers["Authorization"] == "Bearer tok123"


@pytest.mark.unit
def test_drop_json_content_type_for_binary_bodies():
    session = SessionStore()
    multipart = drop_json_content_type(_request(files={"image": ("a.png", b"\x89PNG")}), session)
    assert "Content-Type" not in multipart.headers

    raw = drop_json_content_type(_request(headers={"content-type": "application/json"}, content=b"\x00"), session)
    assert raw.headers == {}

    plain = drop_json_content_type(_request(json={"a": 1}), session)
    assert plain.headers["Content-Type"] == "application/json"


@pytest.mark.unit
def test_redacted_request_log_masks_password(caplog):
    caplog.set_level(logging.DEBUG, logger=INTERCEPTOR_LOGGER)
    log_redacted_request(_request(json={"email": "a@b.com", "password": "hunter2"}), SessionStore())

    assert len(caplog.records) == 1
    message = caplog.records[0].getMessage()
    assert "POST /auth/login" in message
    assert "***" in message
    assert "hunter2" not in message


@pytest.mark.unit
def test_redacted_request_log_parses_text_bodies(caplog):
    caplog.set_level(logging.DEBUG, logger=INTERCEPTOR_LOGGER)
    log_redacted_request(_request(content='{"password": "hunter2"}'), SessionStore())
    assert "hunter2" not in caplog.text
    assert "***" in caplog.text


@pytest.mark.unit
@pytest.mark.parametrize(
    "kwargs",
    [
        {"json": {"email": "a@b.com"}},
        {"json": {"encrypted": "QUJD"}},
        {"json": {"password": ""}},
        {"json": ["password"]},
        {"content": "not json"},
        {"files": {"f": ("a.txt", b"password")}},
    ],
)
def test_redacted_request_log_skips_bodies_without_password(caplog, kwargs):
    caplog.set_level(logging.DEBUG, logger=INTERCEPTOR_LOGGER)
    log_redacted_request(_request(**kwargs), SessionStore())
    assert caplog.records == []


@pytest.mark.unit
def test_masked_response_log(caplog):
    caplog.set_level(logging.DEBUG, logger=INTERCEPTOR_LOGGER)
    response = httpx.Response(200, json={"accessToken": "abcdefghijklmnop", "user": {"idx": 1}})

    returned = log_masked_response(response, _request(), SessionStore())

    assert returned is response
    assert "abcdefghij..." in caplog.text
    assert "abcdefghijklmnop" not in caplog.text


@pytest.mark.unit
@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(200, json={"encrypted": "QUJD"}),
        httpx.Response(200, json=[{"accessToken": "x"}]),
        httpx.Response(204),
        httpx.Response(200, text="<html>"),
    ],
)
def test_masked_response_log_ignores_other_bodies(caplog, response):
    caplog.set_level(logging.DEBUG, logger=INTERCEPTOR_LOGGER)
    assert log_masked_response(response, _request(), SessionStore()) is response
    assert caplog.records == []


@pytest.mark.unit
def test_pipeline_stage_order():
    pipeline = build_pipeline(SessionStore())
    assert pipeline.stage_names == {
        "request": ("auth_header", "content_type", "redacted_request_log"),
        "response": ("masked_token_log",),
        "error": ("session_invalidation",),
    }


@pytest.mark.unit
def test_production_pipeline_has_no_diagnostic_stages(caplog):
    caplog.set_level(logging.DEBUG, logger=INTERCEPTOR_LOGGER)
    pipeline = build_pipeline(SessionStore(), production=True)

    assert pipeline.stage_names["request"] == ("auth_header", "content_type")
    assert pipeline.stage_names["response"] == ()

    pipeline.on_request(_request(json={"password": "hunter2"}))
    pipeline.on_response(httpx.Response(200, json={"accessToken": "abcdefghijklmnop"}), _request())
    assert caplog.records == []


@pytest.mark.unit
def test_error_stage_invalidates_session_and_reraises_same_error():
    session = SessionStore()
    session.set("tok123", {"idx": 1})
    navigator = RecordingNavigator()
    pipeline = build_pipeline(session, navigator=navigator)
    error = AuthError("Authentication required", status_code=401)

    with pytest.raises(AuthError) as exc_info:
        pipeline.on_error(error)

    assert exc_info.value is error
    assert session.snapshot() == (None, None)
    assert navigator.history == ["/auth/login"]


@pytest.mark.unit
@pytest.mark.parametrize(
    "error",
    [ResponseError("Forbidden", status_code=403), ResponseError("Boom", status_code=500), NetworkError("down")],
)
def test_error_stage_leaves_session_for_other_errors(error):
    session = SessionStore()
    session.set("tok123", {"idx": 1})
    navigator = RecordingNavigator()
    pipeline = build_pipeline(session, navigator=navigator)

    with pytest.raises(type(error)) as exc_info:
        pipeline.on_error(error)

    assert exc_info.value is error
    assert session.token == "tok123"
    assert navigator.history == []


def _rejected(token=None):
    headers = {"Authorization": f"Bearer {token}"} if token else {}
    request = httpx.Request("GET", "http://api.test/events", headers=headers)
    response = httpx.Response(401, request=request)
    return AuthError("Authentication required", status_code=401, response=response)


@pytest.mark.unit
def test_error_stage_runs_once_per_token():
    session = SessionStore()
    session.set("tok123", {"idx": 1})
    navigator = RecordingNavigator()
    pipeline = build_pipeline(session, navigator=navigator)

    for _ in range(3):
        with pytest.raises(AuthError):
            pipeline.on_error(_rejected("tok123"))

    assert session.snapshot() == (None, None)
    assert navigator.history == ["/auth/login"]


@pytest.mark.unit
def test_error_stage_ignores_401_for_replaced_token():
    session = SessionStore()
    session.set("new-token", {"idx": 1})
    navigator = RecordingNavigator()
    pipeline = build_pipeline(session, navigator=navigator)

    with pytest.raises(AuthError):
        pipeline.on_error(_rejected("old-token"))

    assert session.token == "new-token"
    assert navigator.history == []


@pytest.mark.unit
def test_error_stage_handles_anonymous_401():
    session = SessionStore()
    navigator = RecordingNavigator()
    pipeline = build_pipeline(session, navigator=navigator)

    with pytest.raises(AuthError):
        pipeline.on_error(_rejected())

    assert session.snapshot() == (None, None)
    assert navigator.history == ["/auth/login"]
