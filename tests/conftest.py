"""
Общие фикстуры тестов: записывающие коллабораторы и сборка клиента
поверх httpx.MockTransport.
"""

import json
from typing import Any, Callable, Dict, List, Optional, Tuple

import httpx
import pytest

from pds_client.config import Settings
from pds_client.core import AppBootstrap, InMemoryCredentialStore, create_app

API_URL = "http://api.test/api"


class RecordingNotifier:
    """Запоминает все уведомления."""

    def __init__(self) -> None:
        self.messages: List[Tuple[str, str]] = []

    def notify(self, level: str, message: str) -> None:
        self.messages.append((level, message))

    def levels(self) -> List[str]:
        return [level for level, _ in self.messages]


class RecordingNavigator:
    """Запоминает все перенаправления."""

    def __init__(self) -> None:
        self.redirects: List[Tuple[str, bool]] = []

    def redirect(self, path: str, replace: bool = False) -> None:
        self.redirects.append((path, replace))


class RecordingStore(InMemoryCredentialStore):
    """Хранилище в памяти со счётчиками записей."""

    def __init__(self, initial: Optional[Dict[str, str]] = None) -> None:
        super().__init__(initial)
        self.sets: List[Tuple[str, str]] = []
        self.removals: List[str] = []

    def set(self, key: str, value: str) -> None:
        self.sets.append((key, value))
        super().set(key, value)

    def remove(self, key: str) -> None:
        self.removals.append(key)
        super().remove(key)


def json_response(status_code: int, payload: Any = None) -> httpx.Response:
    if payload is None:
        return httpx.Response(status_code)
    return httpx.Response(status_code, json=payload)


def request_json(request: httpx.Request) -> Any:
    return json.loads(request.content) if request.content else None


ALICE = {
    "id": 1,
    "username": "alice",
    "email": "alice@example.com",
    "firstName": "Alice",
    "lastName": "Liddell",
    "role": "MEMBER",
    "freedomScore": 75,
    "securityScore": 80,
    "reputationScore": 90,
    "isActive": True,
}


@pytest.fixture
def settings() -> Settings:
    return Settings(api_url=API_URL, api_timeout=5.0)


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def navigator() -> RecordingNavigator:
    return RecordingNavigator()


@pytest.fixture
def store() -> RecordingStore:
    return RecordingStore()


@pytest.fixture
def make_app(
    settings: Settings,
    notifier: RecordingNotifier,
    navigator: RecordingNavigator,
    store: RecordingStore,
) -> Callable[..., AppBootstrap]:
    """
    Фабрика клиента: handler получает httpx.Request и возвращает
    httpx.Response (может быть корутиной).
    """

    def factory(handler: Callable[[httpx.Request], Any], stored_token: Optional[str] = None) -> AppBootstrap:
        if stored_token is not None:
            store.set(settings.token_storage_key, stored_token)
            store.sets.clear()
        return create_app(
            store,
            notifier,
            navigator,
            settings=settings,
            transport=httpx.MockTransport(handler),
        )

    return factory
