"""Централизованный API клиент: единственная точка сетевых вызовов."""

import logging
from typing import Any, Dict, Mapping, Optional, Protocol, Type, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from pds_client.components import Navigator, Notifier
from pds_client.config import get_settings
from pds_client.constants import (
    ENDPOINT_HEALTH,
    ENDPOINT_USERS_LOGIN,
    ENDPOINT_USERS_LOGOUT,
    ENDPOINT_USERS_ME,
    ENDPOINT_USERS_REGISTER,
    HEALTH_CHECK_TIMEOUT,
    HTTP_NO_CONTENT,
    LEVEL_ERROR,
)
from pds_client.exceptions import (
    ApiError,
    ClientError,
    InvalidCredentials,
    MalformedResponse,
    NetworkUnreachable,
    Unauthorized,
    ValidationFailed,
    classify_status,
    field_errors_of,
)
from pds_client.models import Credentials, LoginResult, RegistrationDraft, UserProfile

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

# Ключи конверта {"success": ..., "data": ...}, в который сервер заворачивает ответы
_ENVELOPE_KEYS = frozenset({"data", "success", "message", "timestamp"})


class SessionSource(Protocol):
    """То, что клиенту API нужно знать о сессии."""

    @property
    def token(self) -> Optional[str]:
        ...

    @property
    def epoch(self) -> int:
        ...

    def force_logout(self) -> bool:
        ...


class APIClient:
    """
    Клиент backend API.

    Подставляет Bearer токен текущей сессии, классифицирует ошибки и
    запускает принудительный выход при 401 не более одного раза за epoch.
    """

    def __init__(
        self,
        notifier: Notifier,
        navigator: Navigator,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        login_route: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """
        Инициализация API клиента.

        Args:
            notifier: Получатель уведомлений об ошибках
            navigator: Навигация (перенаправление на вход при 401)
            base_url: Базовый URL API (по умолчанию из конфигурации)
            timeout: Таймаут транспорта в секундах
            login_route: Маршрут страницы входа
            transport: Транспорт httpx (для тестов)
        """
        settings = get_settings()
        self.base_url = (base_url or settings.api_url).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.api_timeout
        self.login_route = login_route or settings.login_route
        self._notifier = notifier
        self._navigator = navigator
        self._transport = transport
        self._session: Optional[SessionSource] = None
        self._last_forced_epoch: Optional[int] = None

    def bind_session(self, session: SessionSource) -> None:
        """Подключить источник токена и принудительного выхода."""
        self._session = session

    def _get_headers(self, token: Optional[str]) -> Dict[str, str]:
        """Получить заголовки для запроса"""
        headers = {"Content-Type": "application/json", "Accept": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    def _decode(self, response: httpx.Response) -> Any:
        """
        Декодирует тело ответа.

        Raises:
            MalformedResponse: Успешный ответ содержит не JSON
        """
        if response.status_code == HTTP_NO_CONTENT or not response.content:
            return None
        try:
            payload = response.json()
        except ValueError as e:
            if response.is_success:
                raise MalformedResponse(details={"reason": str(e)}) from e
            return None

        if (
            response.is_success
            and isinstance(payload, dict)
            and "data" in payload
            and set(payload) <= _ENVELOPE_KEYS
        ):
            return payload["data"]
        return payload

    async def request(
        self,
        method: str,
        path: str,
        *,
        body: Any = None,
        query: Optional[Mapping[str, Any]] = None,
        session_bound: bool = True,
        notify: bool = True,
        timeout: Optional[float] = None,
    ) -> Any:
        """
        Выполнить запрос к API.

        Args:
            method: HTTP метод
            path: Путь относительно base_url
            body: Тело запроса (JSON)
            query: Параметры строки запроса
            session_bound: 401 означает истечение текущей сессии
            notify: Отправлять уведомление об ошибке по умолчанию
            timeout: Таймаут для этого запроса

        Returns:
            Декодированный ответ (без конверта data)

        Raises:
            ApiError: Классифицированная ошибка запроса
        """
        token = self._session.token if self._session else None
        epoch = self._session.epoch if self._session else 0
        method = method.upper()

        try:
            async with httpx.AsyncClient(
                base_url=self.base_url,
                timeout=timeout if timeout is not None else self.timeout,
                transport=self._transport,
            ) as client:
                response = await client.request(
                    method,
                    path,
                    json=body,
                    params=dict(query) if query else None,
                    headers=self._get_headers(token),
                )
        except httpx.HTTPError as e:
            logger.error(f"[API] {method} {path} failed, no response: {e!r}")
            error = NetworkUnreachable(details={"reason": str(e)})
            self._report(error, notify)
            raise error from e

        try:
            payload = self._decode(response)
        except MalformedResponse as error:
            logger.error(f"[API] {method} {path} returned malformed payload")
            self._report(error, notify)
            raise

        if response.is_success:
            return payload

        error = classify_status(response.status_code, payload)
        logger.warning(
            f"[API] {method} {path} failed with status {response.status_code}: {error.error_code}"
        )
        if isinstance(error, Unauthorized) and session_bound:
            if token is not None:
                self._expire_session(epoch)
        else:
            self._report(error, notify)
        raise error

    def _report(self, error: ApiError, notify: bool) -> None:
        if notify:
            self._notifier.notify(LEVEL_ERROR, error.message)

    def _expire_session(self, epoch: int) -> None:
        """Принудительный выход, редирект и одно уведомление на epoch."""
        session = self._session
        if session is None or session.epoch != epoch or self._last_forced_epoch == epoch:
            logger.info(f"[API] 401 from epoch {epoch} already handled, skipping side effects")
            return

        self._last_forced_epoch = epoch
        if session.force_logout():
            logger.warning(f"[API] Session expired at epoch {epoch}, redirecting to login")
            self._navigator.redirect(self.login_route, replace=True)

    def _parse(self, model: Type[ModelT], payload: Any, notify: bool) -> ModelT:
        try:
            return model.model_validate(payload)
        except ValidationError as e:
            logger.error(f"[API] Failed to parse {model.__name__}: {e.error_count()} errors")
            error = MalformedResponse(details={"model": model.__name__})
            self._report(error, notify)
            raise error from e

    # ----- возможности backend -----

    async def login(self, credentials: Credentials) -> LoginResult:
        """
        Вход пользователя.

        Raises:
            InvalidCredentials: Неверное имя пользователя или пароль
            ValidationFailed: Сервер отклонил данные формы
            ApiError: Прочие ошибки
        """
        try:
            payload = await self.request(
                "POST",
                ENDPOINT_USERS_LOGIN,
                body=credentials.to_payload(),
                session_bound=False,
                notify=False,
            )
        except Unauthorized as e:
            raise InvalidCredentials() from e
        except ClientError as e:
            _raise_field_errors(e)
            raise
        return self._parse(LoginResult, payload, notify=False)

    async def register(self, draft: RegistrationDraft) -> Any:
        """
        Регистрация нового пользователя.

        Returns:
            Подтверждение сервера (созданный пользователь)
        """
        try:
            return await self.request(
                "POST",
                ENDPOINT_USERS_REGISTER,
                body=draft.to_payload(),
                session_bound=False,
                notify=False,
            )
        except ClientError as e:
            _raise_field_errors(e)
            raise

    async def fetch_current_user(self, session_bound: bool = True, notify: bool = True) -> UserProfile:
        """Профиль текущего пользователя (нужен токен)."""
        payload = await self.request("GET", ENDPOINT_USERS_ME, session_bound=session_bound, notify=notify)
        return self._parse(UserProfile, payload, notify=notify)

    async def logout_remote(self) -> None:
        """Инвалидация токена на сервере (best-effort)."""
        await self.request("POST", ENDPOINT_USERS_LOGOUT, session_bound=False, notify=False)

    async def check_health(self) -> Optional[Dict[str, Any]]:
        """
        Проверка состояния API.

        Returns:
            Статус сервисов или None если API недоступен
        """
        try:
            return await self.request(
                "GET",
                ENDPOINT_HEALTH,
                session_bound=False,
                notify=False,
                timeout=HEALTH_CHECK_TIMEOUT,
            )
        except ApiError as e:
            logger.error(f"Health check failed: {e.error_code}")
            return None


def _raise_field_errors(error: ClientError) -> None:
    """ClientError с ошибками полей превращается в ValidationFailed."""
    fields = field_errors_of(error)
    if fields:
        raise ValidationFailed(
            field_errors=fields,
            message=error.message,
            status_code=error.status_code,
        ) from error
