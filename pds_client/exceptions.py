"""
Классифицированные ошибки клиента.

Каждый неуспешный вызов API превращается ровно в одно исключение
из иерархии ApiError. InvalidCredentials и ValidationFailed описывают
ошибки форм входа и регистрации.
"""

from typing import Any, Dict, Optional

from pds_client.constants import (
    HTTP_BAD_REQUEST,
    HTTP_FORBIDDEN,
    HTTP_INTERNAL_SERVER_ERROR,
    HTTP_NOT_FOUND,
    HTTP_UNAUTHORIZED,
    MSG_CLIENT_ERROR,
    MSG_FORBIDDEN,
    MSG_INVALID_CREDENTIALS,
    MSG_MALFORMED_RESPONSE,
    MSG_NETWORK_ERROR,
    MSG_NOT_FOUND,
    MSG_SERVER_ERROR,
    MSG_SESSION_EXPIRED,
    MSG_VALIDATION_FAILED,
)


class AppException(Exception):
    """Базовое исключение клиента с поддержкой HTTP статус кодов"""

    status_code: Optional[int] = None
    error_code: str = "INTERNAL_ERROR"
    default_message: str = MSG_SERVER_ERROR

    def __init__(
        self,
        message: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        status_code: Optional[int] = None,
    ):
        self.message = message or self.default_message
        self.details = details or {}
        if status_code:
            self.status_code = status_code
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Сериализация исключения в словарь (для логов и UI)"""
        return {
            "error": self.error_code,
            "message": self.message,
            "status_code": self.status_code,
            "details": self.details,
        }


class InvalidCredentials(AppException):
    """Неверные учетные данные при входе"""

    status_code = HTTP_UNAUTHORIZED
    error_code = "INVALID_CREDENTIALS"
    default_message = MSG_INVALID_CREDENTIALS


class ValidationFailed(AppException):
    """Ошибка валидации данных формы (локальная или от сервера)"""

    status_code = HTTP_BAD_REQUEST
    error_code = "VALIDATION_FAILED"
    default_message = MSG_VALIDATION_FAILED

    def __init__(
        self,
        field_errors: Optional[Dict[str, str]] = None,
        message: Optional[str] = None,
        status_code: Optional[int] = None,
    ):
        self.field_errors = dict(field_errors or {})
        super().__init__(
            message=message,
            details={"field_errors": self.field_errors},
            status_code=status_code,
        )


# Transport taxonomy
class ApiError(AppException):
    """Ошибка вызова API, классифицированная по ответу сервера"""

    error_code = "API_ERROR"


class Unauthorized(ApiError):
    """Токен отсутствует, невалиден или истёк (401)"""

    status_code = HTTP_UNAUTHORIZED
    error_code = "UNAUTHORIZED"
    default_message = MSG_SESSION_EXPIRED


class Forbidden(ApiError):
    """Недостаточно прав для валидной сессии (403)"""

    status_code = HTTP_FORBIDDEN
    error_code = "FORBIDDEN"
    default_message = MSG_FORBIDDEN


class NotFound(ApiError):
    """Ресурс не найден (404)"""

    status_code = HTTP_NOT_FOUND
    error_code = "NOT_FOUND"
    default_message = MSG_NOT_FOUND


class ClientError(ApiError):
    """Прочие 4xx; message содержит сообщение сервера, если оно было"""

    status_code = HTTP_BAD_REQUEST
    error_code = "CLIENT_ERROR"
    default_message = MSG_CLIENT_ERROR


class ServerError(ApiError):
    """Ошибка сервера (5xx)"""

    status_code = HTTP_INTERNAL_SERVER_ERROR
    error_code = "SERVER_ERROR"
    default_message = MSG_SERVER_ERROR


class MalformedResponse(ServerError):
    """Ответ сервера не удалось разобрать"""

    error_code = "MALFORMED_RESPONSE"
    default_message = MSG_MALFORMED_RESPONSE


class NetworkUnreachable(ApiError):
    """Ответ не получен (сеть, DNS, таймаут транспорта)"""

    status_code = None
    error_code = "NETWORK_UNREACHABLE"
    default_message = MSG_NETWORK_ERROR


def _server_message(payload: Any) -> Optional[str]:
    if isinstance(payload, dict):
        message = payload.get("message")
        if isinstance(message, str) and message.strip():
            return message
    return None


def classify_status(status_code: int, payload: Any = None) -> ApiError:
    """
    Классифицирует неуспешный HTTP ответ.

    Args:
        status_code: HTTP статус ответа
        payload: Декодированное тело ответа (если есть)

    Returns:
        Исключение из таксономии ApiError (не выбрасывается)
    """
    message = _server_message(payload)

    if status_code == HTTP_UNAUTHORIZED:
        return Unauthorized(status_code=status_code)
    if status_code == HTTP_FORBIDDEN:
        return Forbidden(status_code=status_code)
    if status_code == HTTP_NOT_FOUND:
        return NotFound(status_code=status_code)
    if status_code >= HTTP_INTERNAL_SERVER_ERROR:
        return ServerError(status_code=status_code)
    # 1xx/3xx: httpx не следует редиректам, ответ прокси не является ответом API
    if status_code < HTTP_BAD_REQUEST:
        return MalformedResponse(status_code=status_code)

    error = ClientError(message=message, status_code=status_code)
    errors = payload.get("errors") if isinstance(payload, dict) else None
    if isinstance(errors, dict) and errors:
        error.details["field_errors"] = {str(k): str(v) for k, v in errors.items()}
    return error


def field_errors_of(error: ApiError) -> Optional[Dict[str, str]]:
    """Возвращает ошибки полей из ответа сервера на валидацию, если они есть"""
    return error.details.get("field_errors") if isinstance(error, ClientError) else None
