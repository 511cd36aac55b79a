"""
Состояние сессии клиента и его единственный владелец SessionManager.

Сессия проходит состояния BOOTSTRAPPING -> AUTHENTICATED | ANONYMOUS.
Каждое завершение сессии увеличивает epoch; асинхронные результаты,
полученные под старым epoch, отбрасываются.
"""

import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, List, Mapping, Optional, Union

from pds_client.components import Notifier
from pds_client.constants import (
    LEVEL_ERROR,
    LEVEL_INFO,
    LEVEL_SUCCESS,
    MSG_INVALID_CREDENTIALS,
    MSG_LOGGED_OUT,
    MSG_LOGIN_FAILED,
    MSG_LOGIN_INTERRUPTED,
    MSG_LOGIN_SUCCESS,
    MSG_REGISTER_FAILED,
    MSG_REGISTER_SUCCESS,
    MSG_SESSION_EXPIRED,
    STORAGE_TOKEN_KEY,
)
from pds_client.core.storage import CredentialStore
from pds_client.exceptions import ApiError, AppException, InvalidCredentials, ValidationFailed
from pds_client.models import Credentials, RegistrationDraft, Role, UserProfile, parse_form

if TYPE_CHECKING:
    from pds_client.api_client import APIClient

logger = logging.getLogger(__name__)

SessionListener = Callable[["Session"], None]


class SessionStatus(str, Enum):
    """Статус сессии"""

    BOOTSTRAPPING = "Bootstrapping"
    AUTHENTICATED = "Authenticated"
    ANONYMOUS = "Anonymous"


@dataclass(frozen=True)
class Session:
    """
    Снимок сессии клиента.

    Attributes:
        status: Статус сессии
        token: Bearer токен (только в BOOTSTRAPPING и AUTHENTICATED)
        user: Профиль пользователя (только в AUTHENTICATED)
        epoch: Номер поколения сессии
    """

    status: SessionStatus = SessionStatus.BOOTSTRAPPING
    token: Optional[str] = None
    user: Optional[UserProfile] = None
    epoch: int = 0

    def __post_init__(self):
        """Проверка инвариантов сессии."""
        if self.status is SessionStatus.ANONYMOUS and self.token is not None:
            raise ValueError("Anonymous session cannot carry a token")
        if (self.user is not None) != (self.status is SessionStatus.AUTHENTICATED):
            raise ValueError("user must be set if and only if the session is authenticated")
        if self.status is SessionStatus.AUTHENTICATED and not self.token:
            raise ValueError("Authenticated session requires a token")
        if self.epoch < 0:
            raise ValueError(f"epoch must be >= 0, got {self.epoch}")

    @property
    def is_authenticated(self) -> bool:
        return self.status is SessionStatus.AUTHENTICATED

    @property
    def is_pending(self) -> bool:
        return self.status is SessionStatus.BOOTSTRAPPING

    def has_role(self, minimum: Union[Role, str]) -> bool:
        """True если пользователь аутентифицирован и его роль не ниже minimum."""
        if not self.is_authenticated or self.user is None:
            return False
        return self.user.role.rank >= Role(minimum).rank

    def has_exact_role(self, role: Union[Role, str]) -> bool:
        """True если пользователь аутентифицирован и его роль ровно role."""
        if not self.is_authenticated or self.user is None:
            return False
        return self.user.role is Role(role)


class SessionManager:
    """
    Единственный владелец и писатель состояния сессии и хранилища токена.

    Example:
        manager = SessionManager(api_client, store, notifier)
        api_client.bind_session(manager)
        await manager.bootstrap()
        if await manager.login("alice", "secret"):
            user = manager.current_user()
    """

    def __init__(
        self,
        api_client: "APIClient",
        store: CredentialStore,
        notifier: Notifier,
        storage_key: str = STORAGE_TOKEN_KEY,
    ) -> None:
        """
        Args:
            api_client: Клиент API (возможности login/register/me/logout)
            store: Хранилище токена
            notifier: Получатель пользовательских уведомлений
            storage_key: Ключ токена в хранилище
        """
        self._api = api_client
        self._store = store
        self._notifier = notifier
        self._storage_key = storage_key
        self._session = Session()
        self._listeners: List[SessionListener] = []

    # ----- состояние -----

    @property
    def api_client(self) -> "APIClient":
        return self._api

    @property
    def session(self) -> Session:
        return self._session

    @property
    def status(self) -> SessionStatus:
        return self._session.status

    @property
    def token(self) -> Optional[str]:
        return self._session.token

    @property
    def epoch(self) -> int:
        return self._session.epoch

    def current_user(self) -> Optional[UserProfile]:
        return self._session.user

    def has_role(self, minimum: Union[Role, str]) -> bool:
        return self._session.has_role(minimum)

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        """
        Подписка на изменения сессии.

        Returns:
            Функция отписки
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _transition(self, **changes: Any) -> Session:
        previous = self._session
        self._session = replace(previous, **changes)
        logger.debug(
            f"[SESSION] {previous.status.value} -> {self._session.status.value} "
            f"(epoch {previous.epoch} -> {self._session.epoch})"
        )
        for listener in list(self._listeners):
            listener(self._session)
        return self._session

    def _is_stale(self, epoch: int, token: Optional[str] = None) -> bool:
        if self._session.epoch != epoch:
            return True
        return token is not None and self._session.token != token

    # ----- операции -----

    async def bootstrap(self) -> SessionStatus:
        """
        Восстанавливает сессию из сохранённого токена.

        Returns:
            Статус сессии после восстановления
        """
        token = self._store.get(self._storage_key)
        if not token:
            logger.info("[BOOTSTRAP] No stored token, session is anonymous")
            self._transition(status=SessionStatus.ANONYMOUS, token=None, user=None)
            return self.status

        epoch = self._session.epoch + 1
        self._transition(status=SessionStatus.BOOTSTRAPPING, token=token, user=None, epoch=epoch)
        logger.info(f"[BOOTSTRAP] Found stored token (len={len(token)}), fetching profile")

        try:
            user = await self._api.fetch_current_user(session_bound=False, notify=False)
        except ApiError as e:
            if self._is_stale(epoch, token):
                logger.info(f"[BOOTSTRAP] Discarding stale failure from epoch {epoch}")
                return self.status
            logger.warning(f"[BOOTSTRAP] Profile fetch failed: {e.error_code}, clearing token")
            self._store.remove(self._storage_key)
            self._transition(
                status=SessionStatus.ANONYMOUS,
                token=None,
                user=None,
                epoch=self._session.epoch + 1,
            )
            self._notifier.notify(LEVEL_ERROR, e.message)
            return self.status

        if self._is_stale(epoch, token):
            logger.info(f"[BOOTSTRAP] Discarding stale profile from epoch {epoch}")
            return self.status

        self._transition(status=SessionStatus.AUTHENTICATED, user=user)
        logger.info(f"[BOOTSTRAP] Session restored for user: {user.username}")
        return self.status

    async def login(self, identifier: str, secret: str) -> bool:
        """
        Вход пользователя. Не выбрасывает исключений.

        Returns:
            True при успешном входе
        """
        epoch = self._session.epoch
        try:
            credentials = parse_form(Credentials, {"username": identifier, "password": secret})
            result = await self._api.login(credentials)
        except InvalidCredentials as e:
            logger.info(f"[LOGIN] Invalid credentials for: {identifier}")
            self._notifier.notify(LEVEL_ERROR, e.message or MSG_INVALID_CREDENTIALS)
            return False
        except AppException as e:
            logger.warning(f"[LOGIN] Login failed for {identifier}: {e.error_code}")
            self._notifier.notify(LEVEL_ERROR, _failure_message(e, MSG_LOGIN_FAILED))
            return False

        if self._is_stale(epoch):
            logger.warning(
                f"[LOGIN] Discarding login result for {identifier}: "
                f"epoch moved {epoch} -> {self._session.epoch}"
            )
            self._notifier.notify(LEVEL_INFO, MSG_LOGIN_INTERRUPTED)
            return False

        self._store.set(self._storage_key, result.token)
        self._transition(status=SessionStatus.AUTHENTICATED, token=result.token, user=result.user)
        logger.info(f"[LOGIN] User logged in: {result.user.username}")
        self._notifier.notify(
            LEVEL_SUCCESS, MSG_LOGIN_SUCCESS.format(username=result.user.display_name)
        )
        return True

    async def register(self, draft: Union[RegistrationDraft, Mapping[str, Any]]) -> bool:
        """
        Регистрация. Состояние сессии не меняется (регистрация не означает вход).

        Returns:
            True при успешной регистрации
        """
        try:
            profile = parse_form(RegistrationDraft, draft)
            await self._api.register(profile)
        except AppException as e:
            logger.warning(f"[REGISTER] Registration failed: {e.error_code}")
            self._notifier.notify(LEVEL_ERROR, _failure_message(e, MSG_REGISTER_FAILED))
            return False

        logger.info(f"[REGISTER] Account created: {profile.username}")
        self._notifier.notify(LEVEL_SUCCESS, MSG_REGISTER_SUCCESS)
        return True

    def logout(self) -> bool:
        """
        Выход из системы. Повторный вызов ничего не делает.

        Returns:
            True если состояние изменилось
        """
        return self._end_session(LEVEL_INFO, MSG_LOGGED_OUT, reason="logout")

    def force_logout(self) -> bool:
        """
        Принудительный выход после 401 от сервера ("сессия истекла").

        Returns:
            True если состояние изменилось
        """
        return self._end_session(LEVEL_ERROR, MSG_SESSION_EXPIRED, reason="expired")

    def _end_session(self, level: str, message: str, reason: str) -> bool:
        if self._session.status is SessionStatus.ANONYMOUS and self._session.token is None:
            logger.debug(f"[LOGOUT] Already anonymous, ignoring ({reason})")
            return False

        self._store.remove(self._storage_key)
        self._transition(
            status=SessionStatus.ANONYMOUS,
            token=None,
            user=None,
            epoch=self._session.epoch + 1,
        )
        logger.info(f"[LOGOUT] Session ended ({reason}), epoch={self._session.epoch}")
        self._notifier.notify(level, message)
        return True

    async def sign_out(self) -> bool:
        """
        Выход с попыткой инвалидировать токен на сервере.

        Ошибка сервера не мешает локальному выходу.
        """
        if self._session.token:
            try:
                await self._api.logout_remote()
            except ApiError as e:
                logger.info(f"[LOGOUT] Server-side logout failed ({e.error_code}), continuing")
        return self.logout()

    async def refresh_user(self) -> Optional[UserProfile]:
        """
        Перезагружает профиль текущего пользователя.

        401 обрабатывается клиентом API как истечение сессии.
        """
        if not self._session.is_authenticated:
            return None

        epoch, token = self._session.epoch, self._session.token
        try:
            user = await self._api.fetch_current_user()
        except ApiError as e:
            logger.warning(f"[REFRESH] Profile refresh failed: {e.error_code}")
            return None

        if self._is_stale(epoch, token):
            logger.info(f"[REFRESH] Discarding stale profile from epoch {epoch}")
            return None

        self._transition(user=user)
        return user


def _failure_message(error: AppException, fallback: str) -> str:
    """Сообщение для пользователя: первая ошибка поля или текст ошибки."""
    if isinstance(error, ValidationFailed) and error.field_errors:
        field, message = next(iter(error.field_errors.items()))
        return f"{fallback}: {field}: {message}"
    return error.message or fallback
