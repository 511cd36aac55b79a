"""Внешние коллабораторы ядра: уведомления и навигация, плюс реализации для Streamlit."""

import logging
from typing import List, Optional, Protocol, Tuple

import streamlit as st

from pds_client.constants import (
    LEVEL_ERROR,
    LEVEL_INFO,
    LEVEL_SUCCESS,
    ROUTE_ROOT,
    SESSION_PENDING_MESSAGES,
    SESSION_ROUTE,
)

logger = logging.getLogger(__name__)

NOTIFICATION_LEVELS = (LEVEL_SUCCESS, LEVEL_ERROR, LEVEL_INFO)


class Notifier(Protocol):
    """Показывает пользователю сообщения об успехе и ошибках."""

    def notify(self, level: str, message: str) -> None:
        ...


class Navigator(Protocol):
    """Переход на другой маршрут приложения."""

    def redirect(self, path: str, replace: bool = False) -> None:
        ...


class StreamlitNotifier:
    """
    Очередь уведомлений в st.session_state.

    Уведомление может появиться посреди прогона, за которым следует
    перенаправление, поэтому сообщения копятся в session_state и
    выводятся в начале следующего прогона через render().
    """

    def notify(self, level: str, message: str) -> None:
        if level not in NOTIFICATION_LEVELS:
            raise ValueError(f"Unknown notification level: {level!r}")
        pending: List[Tuple[str, str]] = st.session_state.setdefault(SESSION_PENDING_MESSAGES, [])
        pending.append((level, message))
        logger.debug(f"[NOTIFY] {level}: {message}")

    def render(self) -> None:
        """Отображает и очищает накопленные уведомления."""
        pending = st.session_state.get(SESSION_PENDING_MESSAGES) or []
        st.session_state[SESSION_PENDING_MESSAGES] = []
        for level, message in pending:
            if level == LEVEL_SUCCESS:
                st.success(message)
            elif level == LEVEL_ERROR:
                st.error(message)
            else:
                st.info(message)


class StreamlitNavigator:
    """Маршрут хранится в st.session_state и в параметре URL ?route=."""

    def redirect(self, path: str, replace: bool = False) -> None:
        # Streamlit не ведёт историю переходов, replace только логируется
        logger.info(f"[NAVIGATE] Redirect to {path} (replace={replace})")
        st.session_state[SESSION_ROUTE] = path
        st.query_params["route"] = path

    def current_path(self, default: Optional[str] = None) -> str:
        """Текущий маршрут: из session_state, затем из URL."""
        path = st.session_state.get(SESSION_ROUTE) or st.query_params.get("route")
        return path or default or ROUTE_ROOT
