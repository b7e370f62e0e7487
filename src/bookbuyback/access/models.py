"""
Access Domain Models - principals, roles and role assignments

Roles bundle permissions and say which kinds of principal they may be
given to. System roles are seeded at start-up and can never be edited;
ordinary roles are edited only through their own methods, each of which
returns the updated role.
"""

from datetime import datetime
from enum import Enum
from typing import Iterable

from pydantic import BaseModel, Field

from bookbuyback.access.permissions import Permission
from bookbuyback.kernel.errors import ValidationError
from bookbuyback.kernel.ids import generate_id
from bookbuyback.kernel.time import resolve_now

SYSTEM_ROLE_LOCKED = "Cannot modify system role"


class PrincipalKind(str, Enum):
    """Kinds of principal a role can be applicable to"""

    CONSUMER = "consumer"
    EMPLOYEE = "employee"
    BUSINESS_PARTNER = "business_partner"


class Principal(BaseModel):
    """
    Someone who can act on the system

    Only the identity and kind matter to authorization; profiles, credentials
    and OAuth links live with the user-management layer.
    """

    principal_id: str
    kind: PrincipalKind
    display_name: str | None = None

    model_config = {"frozen": True}


def _dedupe(permissions: Iterable[Permission]) -> tuple[Permission, ...]:
    seen: dict[str, Permission] = {}
    for p in permissions:
        seen.setdefault(p.value, p)
    return tuple(seen.values())


def _clean_name(name: str) -> str:
    cleaned = (name or "").strip()
    if not cleaned:
        raise ValidationError("Role name cannot be empty")
    return cleaned


def _clean_description(description: str | None) -> str | None:
    if description is None:
        return None
    return description.strip()


def _require_kinds(kinds: Iterable[PrincipalKind]) -> frozenset[PrincipalKind]:
    kinds = frozenset(kinds)
    if not kinds:
        raise ValidationError("Role must be applicable to at least one user type")
    return kinds


class Role(BaseModel):
    """
    Named set of permissions

    Attributes:
        role_id: Unique identifier (stable, well-known ids for system roles)
        name: Trimmed, non-empty display name
        description: Optional free text
        permissions: Held permissions, no duplicates
        applicable_user_types: Principal kinds this role may be assigned to
        is_system: System roles reject every mutation
        created_at: Creation time
        updated_at: Last mutation time
    """

    role_id: str
    name: str = Field(..., min_length=1)
    description: str | None = None
    permissions: tuple[Permission, ...] = ()
    applicable_user_types: frozenset[PrincipalKind] = frozenset()
    is_system: bool = False
    created_at: datetime
    updated_at: datetime

    model_config = {"frozen": True}

    # Factories

    @classmethod
    def create(
        cls,
        *,
        name: str,
        permissions: Iterable[Permission] = (),
        applicable_user_types: Iterable[PrincipalKind],
        description: str | None = None,
        now: datetime | None = None,
    ) -> "Role":
        """
        Create an ordinary (editable) role

        Raises:
            ValidationError: If the name is blank or no principal kind is given
        """
        cleaned = _clean_name(name)
        kinds = _require_kinds(applicable_user_types)
        ts = resolve_now(now)
        return cls(
            role_id=generate_id("role"),
            name=cleaned,
            description=_clean_description(description),
            permissions=_dedupe(permissions),
            applicable_user_types=kinds,
            is_system=False,
            created_at=ts,
            updated_at=ts,
        )

    @classmethod
    def create_system(
        cls,
        *,
        role_id: str,
        name: str,
        permissions: Iterable[Permission],
        applicable_user_types: Iterable[PrincipalKind],
        description: str | None = None,
        now: datetime | None = None,
    ) -> "Role":
        """
        Create a non-editable, non-deletable system role with a fixed id

        Raises:
            ValidationError: If the name is blank or no principal kind is given
        """
        cleaned = _clean_name(name)
        kinds = _require_kinds(applicable_user_types)
        ts = resolve_now(now)
        return cls(
            role_id=role_id,
            name=cleaned,
            description=_clean_description(description),
            permissions=_dedupe(permissions),
            applicable_user_types=kinds,
            is_system=True,
            created_at=ts,
            updated_at=ts,
        )

    @classmethod
    def reconstruct(cls, **props: object) -> "Role":
        """Rebuild a role from stored fields without re-running creation rules"""
        return cls.model_validate(props)

    # Queries

    def has_permission(self, required: Permission) -> bool:
        """True if any held permission matches `required`"""
        return any(p.matches(required) for p in self.permissions)

    def is_applicable_to(self, kind: PrincipalKind) -> bool:
        return kind in self.applicable_user_types

    @property
    def permission_values(self) -> list[str]:
        return [p.value for p in self.permissions]

    # Mutations (each returns the updated role)

    def _guard_mutable(self) -> None:
        if self.is_system:
            raise ValidationError(SYSTEM_ROLE_LOCKED)

    def update_name(self, name: str, now: datetime | None = None) -> "Role":
        self._guard_mutable()
        return self.model_copy(update={"name": _clean_name(name), "updated_at": resolve_now(now)})

    def update_description(self, description: str | None, now: datetime | None = None) -> "Role":
        self._guard_mutable()
        return self.model_copy(
            update={
                "description": _clean_description(description),
                "updated_at": resolve_now(now),
            }
        )

    def update_permissions(self, permissions: Iterable[Permission], now: datetime | None = None) -> "Role":
        self._guard_mutable()
        return self.model_copy(
            update={"permissions": _dedupe(permissions), "updated_at": resolve_now(now)}
        )

    def add_permission(self, permission: Permission, now: datetime | None = None) -> "Role":
        """Add a permission; adding one already held is a no-op"""
        self._guard_mutable()
        if permission in self.permissions:
            return self
        return self.model_copy(
            update={
                "permissions": self.permissions + (permission,),
                "updated_at": resolve_now(now),
            }
        )

    def remove_permission(self, permission: Permission, now: datetime | None = None) -> "Role":
        self._guard_mutable()
        return self.model_copy(
            update={
                "permissions": tuple(p for p in self.permissions if p != permission),
                "updated_at": resolve_now(now),
            }
        )


class RoleAssignment(BaseModel):
    """
    Grant of one role to one principal

    An expired assignment stays on record but grants nothing.
    """

    assignment_id: str
    user_id: str
    role_id: str
    assigned_at: datetime
    assigned_by: str | None = None
    expires_at: datetime | None = None
    scope: str | None = None

    model_config = {"frozen": True}

    @classmethod
    def create(
        cls,
        *,
        user_id: str,
        role_id: str,
        assigned_by: str | None = None,
        expires_at: datetime | None = None,
        scope: str | None = None,
        now: datetime | None = None,
    ) -> "RoleAssignment":
        return cls(
            assignment_id=generate_id("ra"),
            user_id=user_id,
            role_id=role_id,
            assigned_at=resolve_now(now),
            assigned_by=assigned_by,
            expires_at=expires_at,
            scope=scope,
        )

    def is_expired(self, now: datetime) -> bool:
        if self.expires_at is None:
            return False
        return now > self.expires_at

    def is_active(self, now: datetime) -> bool:
        return not self.is_expired(now)
