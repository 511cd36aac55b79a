"""
Модели пользователя, ролей и форм авторизации
"""

import re
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator
from pydantic.alias_generators import to_camel

from pds_client.exceptions import ValidationFailed

EMAIL_PATTERN = r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$"


class Role(str, Enum):
    """
    Роль пользователя.

    Порядок рангов: MEMBER < MODERATOR < ADMIN. Сервер называет
    обычного участника "USER", это имя принимается как MEMBER.
    """

    MEMBER = "MEMBER"
    MODERATOR = "MODERATOR"
    ADMIN = "ADMIN"

    @classmethod
    def _missing_(cls, value: object) -> Optional["Role"]:
        if isinstance(value, str):
            normalized = value.strip().upper()
            if normalized == "USER":
                return cls.MEMBER
            for member in cls:
                if member.value == normalized:
                    return member
        return None

    @property
    def rank(self) -> int:
        return _ROLE_RANKS[self]


_ROLE_RANKS: Dict[Role, int] = {
    Role.MEMBER: 0,
    Role.MODERATOR: 1,
    Role.ADMIN: 2,
}


def rank(role: Union[Role, str]) -> int:
    """Ранг роли для проверок "не ниже"."""
    return Role(role).rank


class UserProfile(BaseModel):
    """
    Профиль текущего пользователя.

    Поля профиля и рейтингов передаются как есть, клиент их не интерпретирует.

    Attributes:
        id: Идентификатор пользователя
        username: Имя пользователя (отображаемое имя)
        role: Роль пользователя
        email: Email
        first_name: Имя
        last_name: Фамилия
        freedom_score: Рейтинг свободы
        security_score: Рейтинг безопасности
        reputation_score: Рейтинг репутации
        is_active: Флаг активности аккаунта
        created_at: Дата создания аккаунта
        last_login_at: Дата последнего входа
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        frozen=True,
    )

    id: Optional[int] = None
    username: str = Field(..., min_length=1)
    role: Role = Role.MEMBER
    email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    freedom_score: Optional[int] = None
    security_score: Optional[int] = None
    reputation_score: Optional[int] = None
    is_active: Optional[bool] = None
    created_at: Optional[datetime] = None
    last_login_at: Optional[datetime] = None

    @field_validator("role", mode="before")
    @classmethod
    def normalize_role(cls, v: Any) -> Any:
        if isinstance(v, str):
            return Role(v)
        return v

    @property
    def display_name(self) -> str:
        return self.username


class LoginResult(BaseModel):
    """Ответ сервера на успешный вход"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    token: str = Field(..., min_length=1)
    user: UserProfile
    expires_at: Optional[datetime] = None


class Credentials(BaseModel):
    """Данные формы входа"""

    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)

    @field_validator("username")
    @classmethod
    def strip_username(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Username is required")
        return v

    def to_payload(self) -> Dict[str, str]:
        return {"username": self.username, "password": self.password}


class RegistrationDraft(BaseModel):
    """
    Черновик профиля для регистрации.

    Ограничения совпадают с серверной валидацией: имя пользователя
    3-50 символов, пароль 8-255, имя и фамилия до 50 символов.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    username: str = Field(..., min_length=3, max_length=50)
    email: str = Field(..., max_length=100)
    password: str = Field(..., min_length=8, max_length=255)
    confirm_password: Optional[str] = None
    first_name: str = Field(..., min_length=1, max_length=50)
    last_name: str = Field(..., min_length=1, max_length=50)

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        """Простая валидация email через регулярное выражение"""
        if not re.match(EMAIL_PATTERN, v.strip()):
            raise ValueError("Email must be valid")
        return v.strip()

    @model_validator(mode="after")
    def passwords_match(self) -> "RegistrationDraft":
        if self.confirm_password is not None and self.confirm_password != self.password:
            raise ValueError("Passwords do not match")
        return self

    def to_payload(self) -> Dict[str, Any]:
        """Тело запроса регистрации (без подтверждения пароля)"""
        return self.model_dump(by_alias=True, exclude={"confirm_password"})


def field_errors(exc: ValidationError) -> Dict[str, str]:
    """
    Преобразует ошибки pydantic в словарь {поле: сообщение}.

    Ошибки уровня модели (например, несовпадение паролей) попадают
    под ключ confirmPassword.
    """
    errors: Dict[str, str] = {}
    for error in exc.errors():
        location = error.get("loc") or ()
        field = str(location[0]) if location else "confirmPassword"
        message = str(error.get("msg", "Invalid value"))
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        errors.setdefault(field, message)
    return errors


def parse_form(model: type, data: Union[BaseModel, Mapping[str, Any]]) -> Any:
    """
    Валидирует данные формы.

    Raises:
        ValidationFailed: Данные не прошли валидацию
    """
    if isinstance(data, model):
        return data
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise ValidationFailed(field_errors=field_errors(e)) from e
