"""Модуль core: сессия, проверка доступа, хранилище токена и запуск."""

from pds_client.core.auth import (
    ROUTES,
    Allow,
    Decision,
    Pending,
    Redirect,
    RoleRequirement,
    Route,
    RouteTable,
    at_least,
    decide,
    exactly,
)
from pds_client.core.bootstrap import AppBootstrap, BootstrapPendingError, create_app
from pds_client.core.session import Session, SessionManager, SessionStatus
from pds_client.core.storage import BrowserCredentialStore, CredentialStore, InMemoryCredentialStore

__all__ = [
    # auth
    "ROUTES",
    "Allow",
    "Decision",
    "Pending",
    "Redirect",
    "RoleRequirement",
    "Route",
    "RouteTable",
    "at_least",
    "decide",
    "exactly",
    # bootstrap
    "AppBootstrap",
    "BootstrapPendingError",
    "create_app",
    # session
    "Session",
    "SessionManager",
    "SessionStatus",
    # storage
    "BrowserCredentialStore",
    "CredentialStore",
    "InMemoryCredentialStore",
]
