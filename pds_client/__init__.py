"""Клиентское ядро сессии и контроля доступа."""

from pds_client.api_client import APIClient
from pds_client.exceptions import (
    ApiError,
    AppException,
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
from pds_client.models import Role, UserProfile

__all__ = [
    "APIClient",
    "ApiError",
    "AppException",
    "ClientError",
    "Forbidden",
    "InvalidCredentials",
    "MalformedResponse",
    "NetworkUnreachable",
    "NotFound",
    "Role",
    "ServerError",
    "Unauthorized",
    "UserProfile",
    "ValidationFailed",
]
