"""Запуск клиента: сборка зависимостей и однократное восстановление сессии."""

import asyncio
import logging
from typing import Optional

import httpx

from pds_client.api_client import APIClient
from pds_client.components import Navigator, Notifier
from pds_client.config import Settings, get_settings
from pds_client.core.auth import Decision, RouteTable
from pds_client.core.session import Session, SessionManager, SessionStatus
from pds_client.core.storage import CredentialStore
from pds_client.models import UserProfile

logger = logging.getLogger(__name__)


class BootstrapPendingError(RuntimeError):
    """Профиль запрошен до завершения восстановления сессии."""


class AppBootstrap:
    """
    Гарантирует, что SessionManager.bootstrap() выполняется ровно один раз
    и до первого настоящего решения о навигации.

    Example:
        app = create_app(store, notifier, navigator)
        decision = await app.guard("/dashboard")
    """

    def __init__(self, session_manager: SessionManager, routes: Optional[RouteTable] = None) -> None:
        self.session_manager = session_manager
        self.routes = routes or RouteTable()
        self._task: Optional["asyncio.Future[SessionStatus]"] = None
        self._finished = False

    @property
    def api_client(self) -> APIClient:
        return self.session_manager.api_client

    @property
    def ready(self) -> bool:
        return self._finished and self.session_manager.status is not SessionStatus.BOOTSTRAPPING

    async def start(self) -> Session:
        """
        Запускает восстановление сессии (один раз на экземпляр).

        Параллельные вызовы ждут одну и ту же задачу.
        """
        if self._finished:
            return self.session_manager.session

        if self._task is None:
            logger.info("[BOOTSTRAP] Starting session bootstrap")
            self._task = asyncio.ensure_future(self.session_manager.bootstrap())

        await self._task
        self._finished = True
        return self.session_manager.session

    def decide(self, path: str) -> Decision:
        """Решение для пути по текущему снимку (Pending до окончания запуска)."""
        return self.routes.resolve(self.session_manager.session, path)

    async def guard(self, path: str) -> Decision:
        """Дожидается восстановления сессии и принимает решение для пути."""
        await self.start()
        return self.decide(path)

    def user(self) -> Optional[UserProfile]:
        """
        Текущий пользователь для компонентов страниц.

        Raises:
            BootstrapPendingError: Сессия ещё восстанавливается
        """
        if self.session_manager.status is SessionStatus.BOOTSTRAPPING:
            raise BootstrapPendingError("Session is still bootstrapping")
        return self.session_manager.current_user()


def create_app(
    store: CredentialStore,
    notifier: Notifier,
    navigator: Navigator,
    settings: Optional[Settings] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> AppBootstrap:
    """
    Собирает клиент API, менеджер сессии и таблицу маршрутов.

    Args:
        store: Хранилище токена
        notifier: Уведомления
        navigator: Навигация
        settings: Настройки (по умолчанию get_settings())
        transport: Транспорт httpx (для тестов)

    Returns:
        Готовый к запуску AppBootstrap
    """
    settings = settings or get_settings()
    api_client = APIClient(
        notifier,
        navigator,
        base_url=settings.api_url,
        timeout=settings.api_timeout,
        login_route=settings.login_route,
        transport=transport,
    )
    session_manager = SessionManager(
        api_client,
        store,
        notifier,
        storage_key=settings.token_storage_key,
    )
    api_client.bind_session(session_manager)
    routes = RouteTable(login_route=settings.login_route, landing_route=settings.landing_route)
    return AppBootstrap(session_manager, routes)
