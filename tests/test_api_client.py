"""
Тесты APIClient: Bearer токен, конверт ответа, классификация ошибок и
однократный принудительный выход при параллельных 401.
"""

import asyncio

import httpx
import pytest

from pds_client.constants import (
    MSG_CLIENT_ERROR,
    MSG_FORBIDDEN,
    MSG_LOGGED_OUT,
    MSG_MALFORMED_RESPONSE,
    MSG_NETWORK_ERROR,
    MSG_NOT_FOUND,
    MSG_SERVER_ERROR,
    MSG_SESSION_EXPIRED,
)
from pds_client.core import SessionStatus
from pds_client.exceptions import (
    ClientError,
    Forbidden,
    InvalidCredentials,
    MalformedResponse,
    NetworkUnreachable,
    NotFound,
    ServerError,
    Unauthorized,
    ValidationFailed,
)
from pds_client.models import Credentials

from .conftest import ALICE, json_response, request_json


def me_or(handler):
    """/users/me отдаёт профиль, остальные пути обрабатывает handler."""

    async def wrapped(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/users/me"):
            return json_response(200, ALICE)
        result = handler(request)
        if asyncio.iscoroutine(result):
            result = await result
        return result

    return wrapped


async def authenticated_app(make_app, handler, token="stored-1"):
    app = make_app(me_or(handler), stored_token=token)
    await app.start()
    assert app.session_manager.status is SessionStatus.AUTHENTICATED
    return app


# ══════════════════════════════════════════════════════════════════════════════
# ЗАПРОСЫ
# ══════════════════════════════════════════════════════════════════════════════


class TestRequest:
    """Формирование запроса и декодирование ответа."""

    @pytest.mark.asyncio
    async def test_bearer_token_attached(self, make_app):
        seen = []

        def handler(request):
            seen.append(request)
            return json_response(200, {"items": []})

        app = await authenticated_app(make_app, handler)
        result = await app.api_client.request("GET", "/messages")

        assert result == {"items": []}
        assert seen[0].headers["Authorization"] == "Bearer stored-1"
        assert seen[0].headers["Accept"] == "application/json"
        assert str(seen[0].url) == "http://api.test/api/messages"

    @pytest.mark.asyncio
    async def test_no_token_no_authorization_header(self, make_app):
        seen = []

        def handler(request):
            seen.append(request)
            return json_response(200, {"status": "UP"})

        app = make_app(handler)
        await app.start()
        await app.api_client.request("GET", "/health", session_bound=False)

        assert "Authorization" not in seen[0].headers

    @pytest.mark.asyncio
    async def test_token_read_at_dispatch(self, make_app):
        """Токен берётся из сессии в момент отправки, а не при создании клиента."""
        seen = []

        def handler(request):
            if request.url.path.endswith("/users/login"):
                return json_response(200, {"token": "fresh", "user": ALICE})
            seen.append(request.headers.get("Authorization"))
            return json_response(200, {})

        app = make_app(handler)
        await app.start()
        await app.api_client.request("GET", "/balance", session_bound=False)
        await app.session_manager.login("alice", "pw")
        await app.api_client.request("GET", "/balance")

        assert seen == [None, "Bearer fresh"]

    @pytest.mark.asyncio
    async def test_envelope_unwrapped_and_query_sent(self, make_app):
        seen = []

        def handler(request):
            seen.append(request)
            return json_response(200, {"success": True, "data": [1, 2], "timestamp": "now"})

        app = await authenticated_app(make_app, handler)
        result = await app.api_client.request("GET", "/messages", query={"page": 2})

        assert result == [1, 2]
        assert seen[0].url.params["page"] == "2"

    @pytest.mark.asyncio
    async def test_payload_with_extra_keys_is_not_unwrapped(self, make_app):
        payload = {"data": [1], "total": 1}
        app = await authenticated_app(make_app, lambda request: json_response(200, payload))

        assert await app.api_client.request("GET", "/messages") == payload

    @pytest.mark.asyncio
    async def test_no_content_returns_none(self, make_app):
        app = await authenticated_app(make_app, lambda request: httpx.Response(204))
        assert await app.api_client.request("DELETE", "/messages/1") is None

    @pytest.mark.asyncio
    async def test_non_json_success_is_malformed(self, make_app, notifier):
        app = await authenticated_app(make_app, lambda request: httpx.Response(200, text="<html>"))

        with pytest.raises(MalformedResponse):
            await app.api_client.request("GET", "/messages")
        assert notifier.messages == [("error", MSG_MALFORMED_RESPONSE)]

    @pytest.mark.asyncio
    async def test_body_sent_as_json(self, make_app):
        seen = []

        def handler(request):
            seen.append(request)
            return json_response(201, {"id": 3})

        app = await authenticated_app(make_app, handler)
        await app.api_client.request("post", "/messages", body={"text": "hi"})

        assert seen[0].method == "POST"
        assert seen[0].headers["Content-Type"] == "application/json"
        assert request_json(seen[0]) == {"text": "hi"}


# ══════════════════════════════════════════════════════════════════════════════
# КЛАССИФИКАЦИЯ ОШИБОК
# ══════════════════════════════════════════════════════════════════════════════


class TestErrorClassification:
    """Каждая ошибка превращается в одно исключение и одно уведомление."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "status,payload,exc_type,message",
        [
            (403, None, Forbidden, MSG_FORBIDDEN),
            (404, {"message": "No such thing"}, NotFound, MSG_NOT_FOUND),
            (500, None, ServerError, MSG_SERVER_ERROR),
            (503, {"message": "down"}, ServerError, MSG_SERVER_ERROR),
            (400, None, ClientError, MSG_CLIENT_ERROR),
            (409, {"message": "Already exists"}, ClientError, "Already exists"),
            (302, None, MalformedResponse, MSG_MALFORMED_RESPONSE),
        ],
    )
    async def test_status_classified(self, make_app, notifier, navigator, status, payload, exc_type, message):
        app = await authenticated_app(make_app, lambda request: json_response(status, payload))

        with pytest.raises(exc_type) as exc_info:
            await app.api_client.request("GET", "/messages")

        assert exc_info.value.status_code == status
        assert notifier.messages == [("error", message)]
        assert navigator.redirects == []
        assert app.session_manager.status is SessionStatus.AUTHENTICATED

    @pytest.mark.asyncio
    async def test_notify_false_suppresses_default_notification(self, make_app, notifier):
        app = await authenticated_app(make_app, lambda request: json_response(500))

        with pytest.raises(ServerError):
            await app.api_client.request("GET", "/messages", notify=False)
        assert notifier.messages == []

    @pytest.mark.asyncio
    async def test_network_failure(self, make_app, notifier):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        app = await authenticated_app(make_app, handler)

        with pytest.raises(NetworkUnreachable) as exc_info:
            await app.api_client.request("GET", "/messages")
        assert exc_info.value.status_code is None
        assert notifier.messages == [("error", MSG_NETWORK_ERROR)]
        assert app.session_manager.status is SessionStatus.AUTHENTICATED

    @pytest.mark.asyncio
    async def test_check_health(self, make_app, notifier):
        responses = [json_response(200, {"status": "UP"}), json_response(503)]
        app = make_app(lambda request: responses.pop(0))

        assert await app.api_client.check_health() == {"status": "UP"}
        assert await app.api_client.check_health() is None
        assert notifier.messages == []


# ══════════════════════════════════════════════════════════════════════════════
# 401 И ПРИНУДИТЕЛЬНЫЙ ВЫХОД
# ══════════════════════════════════════════════════════════════════════════════


class TestUnauthorized:
    """Обработка 401."""

    @pytest.mark.asyncio
    async def test_single_401_forces_logout(self, make_app, store, notifier, navigator):
        app = await authenticated_app(make_app, lambda request: json_response(401))

        with pytest.raises(Unauthorized):
            await app.api_client.request("GET", "/messages")

        assert app.session_manager.status is SessionStatus.ANONYMOUS
        assert app.session_manager.token is None
        assert store.removals == ["token"]
        assert navigator.redirects == [("/login", True)]
        assert notifier.messages == [("error", MSG_SESSION_EXPIRED)]

    @pytest.mark.asyncio
    async def test_concurrent_401s_collapse_to_one_logout(self, make_app, store, notifier, navigator):
        """Три параллельных запроса получают 401: один выход, один редирект, одно уведомление."""
        arrived = []
        all_in_flight = asyncio.Event()

        async def handler(request):
            arrived.append(request)
            if len(arrived) == 3:
                all_in_flight.set()
            await all_in_flight.wait()
            return json_response(401)

        app = await authenticated_app(make_app, handler)
        epoch = app.session_manager.epoch

        results = await asyncio.gather(
            app.api_client.request("GET", "/messages"),
            app.api_client.request("GET", "/balance"),
            app.api_client.request("GET", "/community"),
            return_exceptions=True,
        )

        assert all(isinstance(result, Unauthorized) for result in results)
        assert all(r.headers["Authorization"] == "Bearer stored-1" for r in arrived)
        assert app.session_manager.status is SessionStatus.ANONYMOUS
        assert app.session_manager.epoch == epoch + 1
        assert store.removals == ["token"]
        assert navigator.redirects == [("/login", True)]
        assert notifier.messages == [("error", MSG_SESSION_EXPIRED)]

    @pytest.mark.asyncio
    async def test_401_from_previous_epoch_is_ignored(self, make_app, store, notifier, navigator):
        arrived = asyncio.Event()
        release = asyncio.Event()

        async def handler(request):
            arrived.set()
            await release.wait()
            return json_response(401)

        app = await authenticated_app(make_app, handler)
        task = asyncio.create_task(app.api_client.request("GET", "/messages"))
        await arrived.wait()
        app.session_manager.logout()
        release.set()

        with pytest.raises(Unauthorized):
            await task
        assert navigator.redirects == []
        assert store.removals == ["token"]
        assert notifier.messages == [("info", MSG_LOGGED_OUT)]

    @pytest.mark.asyncio
    async def test_next_session_can_expire_again(self, make_app, navigator):
        def handler(request):
            if request.url.path.endswith("/users/login"):
                return json_response(200, {"token": "t2", "user": ALICE})
            return json_response(401)

        app = await authenticated_app(make_app, handler)
        with pytest.raises(Unauthorized):
            await app.api_client.request("GET", "/messages")
        assert await app.session_manager.login("alice", "pw") is True
        with pytest.raises(Unauthorized):
            await app.api_client.request("GET", "/messages")

        assert navigator.redirects == [("/login", True), ("/login", True)]
        assert app.session_manager.status is SessionStatus.ANONYMOUS

    @pytest.mark.asyncio
    async def test_401_without_token_is_silent(self, make_app, store, notifier, navigator):
        app = make_app(lambda request: json_response(401))
        await app.start()

        with pytest.raises(Unauthorized):
            await app.api_client.request("GET", "/messages")

        assert notifier.messages == []
        assert navigator.redirects == []
        assert store.removals == []

    @pytest.mark.asyncio
    async def test_401_not_session_bound_is_reported_only(self, make_app, store, notifier, navigator):
        app = await authenticated_app(make_app, lambda request: json_response(401))

        with pytest.raises(Unauthorized):
            await app.api_client.request("GET", "/messages", session_bound=False)

        assert app.session_manager.status is SessionStatus.AUTHENTICATED
        assert navigator.redirects == []
        assert store.removals == []
        assert notifier.messages == [("error", MSG_SESSION_EXPIRED)]


# ══════════════════════════════════════════════════════════════════════════════
# ВОЗМОЖНОСТИ
# ══════════════════════════════════════════════════════════════════════════════


class TestCapabilities:
    """login / register / fetch_current_user / logout_remote."""

    @pytest.mark.asyncio
    async def test_login_401_is_invalid_credentials_without_side_effects(
        self, make_app, store, notifier, navigator
    ):
        app = await authenticated_app(make_app, lambda request: json_response(401))

        with pytest.raises(InvalidCredentials):
            await app.api_client.login(Credentials(username="bob", password="nope"))

        assert app.session_manager.status is SessionStatus.AUTHENTICATED
        assert store.removals == []
        assert navigator.redirects == []
        assert notifier.messages == []

    @pytest.mark.asyncio
    async def test_login_field_errors_become_validation_failed(self, make_app):
        body = {"success": False, "message": "Validation failed", "errors": {"username": "Username is required"}}
        app = make_app(lambda request: json_response(400, body))

        with pytest.raises(ValidationFailed) as exc_info:
            await app.api_client.login(Credentials(username="x", password="y"))
        assert exc_info.value.field_errors == {"username": "Username is required"}

    @pytest.mark.asyncio
    async def test_login_malformed_result(self, make_app, notifier):
        app = make_app(lambda request: json_response(200, {"token": "t1"}))

        with pytest.raises(MalformedResponse):
            await app.api_client.login(Credentials(username="alice", password="pw"))
        assert notifier.messages == []

    @pytest.mark.asyncio
    async def test_fetch_current_user_maps_user_role(self, make_app):
        app = await authenticated_app(make_app, lambda request: json_response(404))

        user = await app.api_client.fetch_current_user()

        assert user.username == "alice"
        assert user.role.value == "MEMBER"
        assert user.freedom_score == 75

    @pytest.mark.asyncio
    async def test_logout_remote_sends_token(self, make_app):
        seen = []

        def handler(request):
            seen.append((request.method, request.headers.get("Authorization")))
            return json_response(200, {"success": True, "message": "Logged out"})

        app = await authenticated_app(make_app, handler)
        await app.api_client.logout_remote()

        assert seen == [("POST", "Bearer stored-1")]
