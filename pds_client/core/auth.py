"""
Проверка доступа к маршрутам.

decide() - чистая функция над снимком сессии: пока сессия
восстанавливается, результат Pending (ни защищённого контента, ни
редиректа), анонимный пользователь уходит на вход, пользователь без
нужной роли - на стартовую страницу.
"""

from dataclasses import dataclass
from typing import List, Optional, Sequence, Union

from pds_client.constants import (
    ROUTE_ADMIN,
    ROUTE_BALANCE,
    ROUTE_COMMUNITY,
    ROUTE_DASHBOARD,
    ROUTE_LOGIN,
    ROUTE_MESSAGES,
    ROUTE_MODERATION,
    ROUTE_PROFILE,
    ROUTE_REGISTER,
)
from pds_client.core.session import Session, SessionStatus
from pds_client.models import Role


@dataclass(frozen=True)
class Allow:
    """Доступ разрешён"""


@dataclass(frozen=True)
class Pending:
    """Сессия ещё восстанавливается, решение откладывается"""


@dataclass(frozen=True)
class Redirect:
    """Перенаправление на другой маршрут"""

    path: str
    replace: bool = True


Decision = Union[Allow, Pending, Redirect]


@dataclass(frozen=True)
class RoleRequirement:
    """
    Требование к роли.

    Attributes:
        role: Требуемая роль
        exact: True - роль должна совпадать, False - роль не ниже требуемой
    """

    role: Role
    exact: bool = False

    def is_satisfied_by(self, session: Session) -> bool:
        if self.exact:
            return session.has_exact_role(self.role)
        return session.has_role(self.role)


def at_least(role: Union[Role, str]) -> RoleRequirement:
    """Требование "роль не ниже role" (маршруты модераторов)."""
    return RoleRequirement(Role(role))


def exactly(role: Union[Role, str]) -> RoleRequirement:
    """Требование "роль ровно role" (панель администратора)."""
    return RoleRequirement(Role(role), exact=True)


def decide(
    session: Session,
    required: Optional[Union[RoleRequirement, Role, str]] = None,
    login_route: str = ROUTE_LOGIN,
    fallback_route: str = ROUTE_DASHBOARD,
) -> Decision:
    """
    Решение о доступе к защищённому маршруту.

    Args:
        session: Снимок сессии
        required: Требование к роли; роль без обёртки означает at_least(роль)
        login_route: Куда отправлять анонимного пользователя
        fallback_route: Куда отправлять пользователя без нужной роли

    Returns:
        Allow, Pending или Redirect
    """
    if session.status is SessionStatus.BOOTSTRAPPING:
        return Pending()
    if session.status is SessionStatus.ANONYMOUS:
        return Redirect(login_route)

    if required is not None:
        requirement = required if isinstance(required, RoleRequirement) else at_least(required)
        if not requirement.is_satisfied_by(session):
            return Redirect(fallback_route)

    return Allow()


@dataclass(frozen=True)
class Route:
    """Маршрут приложения"""

    path: str
    title: str
    requirement: Optional[RoleRequirement] = None
    public: bool = False


ROUTES: Sequence[Route] = (
    Route(ROUTE_LOGIN, "Login", public=True),
    Route(ROUTE_REGISTER, "Register", public=True),
    Route(ROUTE_DASHBOARD, "Dashboard"),
    Route(ROUTE_MESSAGES, "Messages"),
    Route(ROUTE_COMMUNITY, "Community"),
    Route(ROUTE_BALANCE, "Balance"),
    Route(ROUTE_PROFILE, "Profile"),
    Route(ROUTE_MODERATION, "Moderation", requirement=at_least(Role.MODERATOR)),
    Route(ROUTE_ADMIN, "Admin Panel", requirement=exactly(Role.ADMIN)),
)


class RouteTable:
    """Таблица маршрутов: поиск маршрута по пути и решение о доступе."""

    def __init__(
        self,
        routes: Sequence[Route] = ROUTES,
        login_route: str = ROUTE_LOGIN,
        landing_route: str = ROUTE_DASHBOARD,
    ) -> None:
        self.routes = tuple(routes)
        self.login_route = login_route
        self.landing_route = landing_route
        self._by_path = {route.path: route for route in self.routes}

    def find(self, path: str) -> Optional[Route]:
        normalized = "/" + path.strip().strip("/") if path.strip("/ ") else "/"
        return self._by_path.get(normalized)

    def resolve(self, session: Session, path: str) -> Decision:
        """
        Решение для перехода на path.

        Корень и неизвестные пути ведут на стартовую страницу.
        Аутентифицированный пользователь со страниц входа и регистрации
        тоже уходит на стартовую страницу.
        """
        route = self.find(path)
        if route is None:
            return Redirect(self.landing_route)

        if route.public:
            if session.status is SessionStatus.BOOTSTRAPPING:
                return Pending()
            if session.status is SessionStatus.AUTHENTICATED:
                return Redirect(self.landing_route)
            return Allow()

        return decide(
            session,
            route.requirement,
            login_route=self.login_route,
            fallback_route=self.landing_route,
        )

    def visible_routes(self, session: Session) -> List[Route]:
        """Пункты меню навигации, доступные текущему пользователю."""
        if not session.is_authenticated:
            return []
        return [
            route
            for route in self.routes
            if not route.public
            and (route.requirement is None or route.requirement.is_satisfied_by(session))
        ]
