"""
Authorization Engine - role-based permission decisions

The engine answers one question: does this principal hold these
permissions? It resolves the principal's active role assignments to roles
on every call (nothing is cached, so a role edit takes effect on the next
check) and asks each role whether a held permission matches.

The engine itself only returns booleans. `enforce` and the
`require_permissions` / `require_any_permission` decorators are the
enforcement boundary that turns a "no" into AuthorizationDenied.
"""

from enum import Enum
from functools import wraps
from typing import Any, Callable, Iterable, TypeVar

from bookbuyback.access.models import Role
from bookbuyback.access.permissions import Permission
from bookbuyback.access.repositories import RoleAssignmentRepository, RoleRepository
from bookbuyback.kernel.errors import AuthorizationDenied, ValidationError
from bookbuyback.kernel.logging import get_logger
from bookbuyback.kernel.metrics import authorization_decisions_total
from bookbuyback.kernel.time import RealTimeProvider, TimeProvider

logger = get_logger(__name__)

R = TypeVar("R")

PermissionInput = Permission | str


class AuthorizationMode(str, Enum):
    """How a list of required permissions is combined"""

    ALL = "all"
    ANY = "any"


def _required(permissions: PermissionInput | Iterable[PermissionInput]) -> list[Permission]:
    """Normalize a required-permission argument and reject wildcards"""
    if isinstance(permissions, (str, Permission)):
        permissions = [permissions]
    parsed = [Permission.parse(p) for p in permissions]
    if not parsed:
        raise ValidationError("At least one required permission must be given")
    for p in parsed:
        if p.is_wildcard:
            raise ValidationError(f'Required permission cannot contain a wildcard: "{p}"')
    return parsed


class AuthorizationEngine:
    """
    Resolves permission checks against role assignments

    Example:
        >>> engine = AuthorizationEngine(role_repo, assignment_repo)
        >>> engine.user_has_permission("user-1", Permission.parse("orders:read"))
        True
    """

    def __init__(
        self,
        roles: RoleRepository,
        assignments: RoleAssignmentRepository,
        time_provider: TimeProvider | None = None,
    ) -> None:
        self.roles = roles
        self.assignments = assignments
        self.time_provider = time_provider or RealTimeProvider()

    def get_user_roles(self, user_id: str) -> list[Role]:
        """Roles behind the user's active (unexpired) assignments"""
        role_ids = self.assignments.find_role_ids_for_user(user_id, self.time_provider.now())
        if not role_ids:
            return []
        return self.roles.find_by_ids(role_ids)

    def get_user_permissions(self, user_id: str) -> list[Permission]:
        """All permissions held through any role, without duplicates"""
        seen: dict[str, Permission] = {}
        for role in self.get_user_roles(user_id):
            for permission in role.permissions:
                seen.setdefault(permission.value, permission)
        return list(seen.values())

    def user_has_permission(self, user_id: str, permission: PermissionInput) -> bool:
        """
        True if any of the user's roles holds a permission matching `permission`

        Raises:
            ValidationError: If `permission` is malformed or contains a wildcard
        """
        (required,) = _required(permission)
        return self._holds(self.get_user_roles(user_id), required)

    def missing_permissions(
        self,
        user_id: str,
        permissions: PermissionInput | Iterable[PermissionInput],
    ) -> list[Permission]:
        """Required permissions the user does not hold"""
        required = _required(permissions)
        roles = self.get_user_roles(user_id)
        return [p for p in required if not self._holds(roles, p)]

    def is_authorized(
        self,
        user_id: str,
        permissions: PermissionInput | Iterable[PermissionInput],
        mode: AuthorizationMode | str = AuthorizationMode.ALL,
    ) -> bool:
        """
        Yes/no decision for a permission or a list of permissions

        Args:
            user_id: Principal being checked
            permissions: One permission or several
            mode: "all" requires every permission, "any" requires one

        Returns:
            True if the principal is allowed
        """
        allowed, _ = self._decide(user_id, permissions, mode)
        return allowed

    def enforce(
        self,
        user_id: str,
        permissions: PermissionInput | Iterable[PermissionInput],
        mode: AuthorizationMode | str = AuthorizationMode.ALL,
    ) -> None:
        """
        Raise unless `is_authorized` allows the request

        Raises:
            AuthorizationDenied: Naming the missing permission(s)
        """
        allowed, missing = self._decide(user_id, permissions, mode)
        if allowed:
            return
        logger.info(
            "Authorization denied",
            user_id=user_id,
            missing=[p.value for p in missing],
        )
        raise AuthorizationDenied(user_id, [p.value for p in missing])

    def _decide(
        self,
        user_id: str,
        permissions: PermissionInput | Iterable[PermissionInput],
        mode: AuthorizationMode | str,
    ) -> tuple[bool, list[Permission]]:
        """The decision and the unheld permissions, from one read of the user's roles"""
        mode = AuthorizationMode(mode)
        required = _required(permissions)
        roles = self.get_user_roles(user_id)
        missing = [p for p in required if not self._holds(roles, p)]
        if mode == AuthorizationMode.ALL:
            allowed = not missing
        else:
            allowed = len(missing) < len(required)

        decision = "allow" if allowed else "deny"
        authorization_decisions_total.labels(mode=mode.value, decision=decision).inc()
        logger.debug(
            "Authorization decision",
            user_id=user_id,
            permissions=[p.value for p in required],
            mode=mode.value,
            decision=decision,
        )
        return allowed, missing

    @staticmethod
    def _holds(roles: list[Role], required: Permission) -> bool:
        return any(role.has_permission(required) for role in roles)


def _guard(
    permissions: tuple[PermissionInput, ...],
    mode: AuthorizationMode,
) -> Callable[[Callable[..., R]], Callable[..., R]]:
    required = _required(permissions)

    def decorator(func: Callable[..., R]) -> Callable[..., R]:
        @wraps(func)
        def wrapper(self: Any, actor_id: str, *args: Any, **kwargs: Any) -> R:
            self.authorization.enforce(actor_id, required, mode)
            return func(self, actor_id, *args, **kwargs)

        return wrapper

    return decorator


def require_permissions(*permissions: PermissionInput) -> Callable[[Callable[..., R]], Callable[..., R]]:
    """
    Guard a method so the calling principal must hold every permission

    The decorated method must be defined on an object exposing an
    `authorization` AuthorizationEngine and take the acting principal id as
    its first argument after self.

    Example:
        @require_permissions(Permissions.ORDERS_CANCEL)
        def cancel_order(self, actor_id: str, order_id: str, reason: str) -> Order:
            ...
    """
    return _guard(permissions, AuthorizationMode.ALL)


def require_any_permission(*permissions: PermissionInput) -> Callable[[Callable[..., R]], Callable[..., R]]:
    """Like require_permissions, but holding one of the permissions is enough"""
    return _guard(permissions, AuthorizationMode.ANY)
