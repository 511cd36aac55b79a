"""Хранилище токена сессии: контракт get/set/remove и реализации."""

import json
import logging
from typing import Dict, Optional, Protocol

import streamlit as st
import streamlit.components.v1 as components

from pds_client.constants import (
    SESSION_STORED_TOKEN,
    SESSION_STORED_TOKEN_LOADED,
    STORAGE_TOKEN_KEY,
)

logger = logging.getLogger(__name__)

# Срок жизни cookie с токеном (сервер выдаёт токен на 24 часа)
TOKEN_COOKIE_MAX_AGE_SECONDS = 24 * 60 * 60


class CredentialStore(Protocol):
    """Долговременное хранилище ключ/значение, переживающее перезагрузку страницы."""

    def get(self, key: str) -> Optional[str]:
        ...

    def set(self, key: str, value: str) -> None:
        ...

    def remove(self, key: str) -> None:
        ...


class InMemoryCredentialStore:
    """Хранилище в памяти процесса (тесты, CLI, серверный рендеринг)."""

    def __init__(self, initial: Optional[Dict[str, str]] = None) -> None:
        self._values: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._values.get(key)

    def set(self, key: str, value: str) -> None:
        self._values[key] = value

    def remove(self, key: str) -> None:
        self._values.pop(key, None)


class BrowserCredentialStore:
    """
    Токен в cookie браузера, записываемой через JavaScript компонент Streamlit.

    Браузер отправляет cookie при открытии websocket сессии, поэтому
    после перезагрузки страницы токен читается из st.context.cookies.
    Значение кэшируется в st.session_state: запись через компонент
    применяется в браузере асинхронно, а повторные прогоны скрипта
    должны видеть его сразу.
    """

    def __init__(self, storage_key: str = STORAGE_TOKEN_KEY) -> None:
        """
        Args:
            storage_key: Имя cookie, под которым лежит токен
        """
        self.storage_key = storage_key

    def _check_key(self, key: str) -> None:
        if key != self.storage_key:
            raise KeyError(f"Unsupported credential key: {key!r}")

    def _write_cookie(self, value: str, max_age: int) -> None:
        cookie = f"{self.storage_key}={value}; path=/; max-age={max_age}; SameSite=Strict"
        script_html = f"""
        <script>
            window.parent.document.cookie = {json.dumps(cookie)};
        </script>
        """
        components.html(script_html, height=0)

    def get(self, key: str) -> Optional[str]:
        """
        Получить токен: из кэша session_state или из cookie запроса.

        Returns:
            Токен или None если токен не найден
        """
        self._check_key(key)
        if st.session_state.get(SESSION_STORED_TOKEN_LOADED, False):
            return st.session_state.get(SESSION_STORED_TOKEN)

        token = st.context.cookies.get(self.storage_key) or None
        if token:
            logger.info(f"[GET_TOKEN] Loaded token from cookie, length: {len(token)}")
        else:
            logger.info("[GET_TOKEN] No token cookie")

        st.session_state[SESSION_STORED_TOKEN] = token
        st.session_state[SESSION_STORED_TOKEN_LOADED] = True
        return token

    def set(self, key: str, value: str) -> None:
        """Сохранить токен в cookie."""
        self._check_key(key)
        self._write_cookie(value, TOKEN_COOKIE_MAX_AGE_SECONDS)
        st.session_state[SESSION_STORED_TOKEN] = value
        st.session_state[SESSION_STORED_TOKEN_LOADED] = True
        logger.info(f"[SAVE_TOKEN] Token saved, length: {len(value)}")

    def remove(self, key: str) -> None:
        """Удалить токен из cookie."""
        self._check_key(key)
        self._write_cookie("", 0)
        st.session_state[SESSION_STORED_TOKEN] = None
        st.session_state[SESSION_STORED_TOKEN_LOADED] = True
        logger.info("[REMOVE_TOKEN] Token removed")
