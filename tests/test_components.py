"""
Тесты адаптеров Streamlit и форматтеров логов (st подменяется через mock).
"""

import json
import logging
from unittest.mock import MagicMock, patch

import pytest

from pds_client.components import StreamlitNavigator, StreamlitNotifier
from pds_client.constants import SESSION_PENDING_MESSAGES, SESSION_ROUTE
from pds_client.core.storage import BrowserCredentialStore
from pds_client.logging_config import ColoredFormatter, JSONFormatter, TokenRedactingFilter


@pytest.fixture
def fake_st():
    st = MagicMock()
    st.session_state = {}
    st.query_params = {}
    st.context.cookies = {}
    return st


class TestStreamlitNotifier:
    """Очередь уведомлений в session_state."""

    def test_notify_and_render(self, fake_st):
        with patch("pds_client.components.st", fake_st):
            notifier = StreamlitNotifier()
            notifier.notify("success", "Welcome back, alice!")
            notifier.notify("error", "Server error. Please try again later.")
            notifier.notify("info", "Logged out successfully")
            notifier.render()

        fake_st.success.assert_called_once_with("Welcome back, alice!")
        fake_st.error.assert_called_once_with("Server error. Please try again later.")
        fake_st.info.assert_called_once_with("Logged out successfully")
        assert fake_st.session_state[SESSION_PENDING_MESSAGES] == []

    def test_unknown_level(self, fake_st):
        with patch("pds_client.components.st", fake_st):
            with pytest.raises(ValueError):
                StreamlitNotifier().notify("warning", "hmm")


class TestStreamlitNavigator:
    """Текущий маршрут в session_state и URL."""

    def test_redirect_updates_route(self, fake_st):
        with patch("pds_client.components.st", fake_st):
            navigator = StreamlitNavigator()
            navigator.redirect("/login", replace=True)

            assert navigator.current_path() == "/login"
        assert fake_st.session_state[SESSION_ROUTE] == "/login"
        assert fake_st.query_params["route"] == "/login"

    def test_current_path_from_url_or_default(self, fake_st):
        with patch("pds_client.components.st", fake_st):
            navigator = StreamlitNavigator()
            assert navigator.current_path(default="/dashboard") == "/dashboard"
            assert navigator.current_path() == "/"
            fake_st.query_params["route"] = "/profile"
            assert navigator.current_path(default="/dashboard") == "/profile"


class TestBrowserCredentialStore:
    """Токен в cookie браузера."""

    def test_get_reads_cookie_once(self, fake_st):
        fake_st.context.cookies = {"token": "cookie-token"}
        with patch("pds_client.core.storage.st", fake_st):
            store = BrowserCredentialStore("token")
            assert store.get("token") == "cookie-token"
            fake_st.context.cookies = {}
            assert store.get("token") == "cookie-token"

    def test_missing_cookie(self, fake_st):
        with patch("pds_client.core.storage.st", fake_st):
            assert BrowserCredentialStore("token").get("token") is None

    def test_set_and_remove_write_cookie(self, fake_st):
        html = MagicMock()
        with patch("pds_client.core.storage.st", fake_st), patch(
            "pds_client.core.storage.components.html", html
        ):
            store = BrowserCredentialStore("token")
            store.set("token", "t1")
            assert store.get("token") == "t1"
            store.remove("token")
            assert store.get("token") is None

        assert html.call_count == 2
        set_script, remove_script = (call.args[0] for call in html.call_args_list)
        assert "token=t1" in set_script
        assert "max-age=86400" in set_script
        assert "max-age=0" in remove_script

    def test_other_keys_rejected(self, fake_st):
        with patch("pds_client.core.storage.st", fake_st):
            with pytest.raises(KeyError):
                BrowserCredentialStore("token").get("refresh")


class TestFormatters:
    """Форматтеры логов."""

    def make_record(self, **extra):
        record = logging.LogRecord("pds_client.api_client", logging.WARNING, __file__, 10, "[API] %s", ("boom",), None)
        for key, value in extra.items():
            setattr(record, key, value)
        return record

    def test_json_formatter_includes_extra(self):
        data = json.loads(JSONFormatter().format(self.make_record(epoch=3)))

        assert data["level"] == "WARNING"
        assert data["logger"] == "pds_client.api_client"
        assert data["message"] == "[API] boom"
        assert data["epoch"] == 3
        assert data["location"].endswith(":10")
        assert "msg" not in data
        assert "args" not in data

    def test_colored_formatter_does_not_mutate_record(self):
        record = self.make_record()
        output = ColoredFormatter("%(levelname)s %(message)s").format(record)

        assert "\033[33m" in output
        assert record.levelname == "WARNING"

    def test_bearer_tokens_redacted(self):
        record = logging.LogRecord(
            "pds_client.api_client", logging.INFO, __file__, 1, "headers: %s", ("Authorization: Bearer abc.def-123",), None
        )

        assert TokenRedactingFilter().filter(record) is True
        assert record.getMessage() == "headers: Authorization: Bearer ***"
