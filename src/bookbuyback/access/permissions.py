"""
Permission value type

A permission is a `resource:action` capability token such as
"orders:read". Either half may be the wildcard "*", which only has an
effect on the *held* side of a match: a role holding "orders:*" satisfies
a requirement for "orders:cancel", never the other way round.

Permissions are parsed and validated once, at the boundary, so matching
never sees a malformed string.
"""

import re
from typing import Any

from pydantic import BaseModel, Field, model_validator

from bookbuyback.kernel.errors import ValidationError

WILDCARD = "*"

PERMISSION_PATTERN = re.compile(r"^[a-z_*]+:[a-z_*]+$")
_PART_PATTERN = r"^[a-z_*]+$"


def _split(value: str) -> tuple[str, str]:
    """Normalize and validate a raw permission string"""
    if not isinstance(value, str):
        raise ValidationError("Permission must be a string")
    normalized = value.strip().lower()
    if not normalized:
        raise ValidationError("Permission cannot be empty")
    if not PERMISSION_PATTERN.match(normalized):
        raise ValidationError(
            f'Permission must be in format "resource:action" (e.g., "listings:read"), got "{value}"'
        )
    resource, action = normalized.split(":")
    return resource, action


class Permission(BaseModel):
    """
    Immutable resource:action capability

    Equality is exact (`orders:*` != `orders:read`); use `matches` for
    authorization checks.
    """

    resource: str = Field(..., pattern=_PART_PATTERN)
    action: str = Field(..., pattern=_PART_PATTERN)

    model_config = {"frozen": True}

    @model_validator(mode="before")
    @classmethod
    def _accept_string(cls, data: Any) -> Any:
        # Lets Role.reconstruct and friends validate stored "resource:action" strings
        if isinstance(data, str):
            try:
                resource, action = _split(data)
            except ValidationError as e:
                raise ValueError(str(e)) from e
            return {"resource": resource, "action": action}
        return data

    @classmethod
    def parse(cls, value: "str | Permission") -> "Permission":
        """
        Build a Permission from its canonical string

        Args:
            value: "resource:action"; surrounding whitespace and case are normalized

        Raises:
            ValidationError: If empty or not in resource:action shape
        """
        if isinstance(value, Permission):
            return value
        resource, action = _split(value)
        return cls(resource=resource, action=action)

    @property
    def value(self) -> str:
        """Canonical "resource:action" string"""
        return f"{self.resource}:{self.action}"

    @property
    def is_wildcard(self) -> bool:
        return self.resource == WILDCARD or self.action == WILDCARD

    def matches(self, required: "Permission") -> bool:
        """
        True if holding this permission satisfies `required`

        Only this (held) permission's wildcards are honoured.
        """
        if self.resource != required.resource and self.resource != WILDCARD:
            return False
        if self.action != required.action and self.action != WILDCARD:
            return False
        return True

    def __str__(self) -> str:
        return self.value


def parse_permissions(values: "list[str | Permission] | tuple[str | Permission, ...]") -> list[Permission]:
    """Parse several permission strings, failing on the first malformed one"""
    return [Permission.parse(v) for v in values]


class Permissions:
    """Well-known permissions used by the system roles and service guards"""

    LISTINGS_READ = Permission.parse("listings:read")
    LISTINGS_WRITE = Permission.parse("listings:write")
    LISTINGS_DELETE = Permission.parse("listings:delete")

    USERS_READ = Permission.parse("users:read")
    USERS_WRITE = Permission.parse("users:write")
    USERS_DELETE = Permission.parse("users:delete")

    ORDERS_READ = Permission.parse("orders:read")
    ORDERS_WRITE = Permission.parse("orders:write")
    ORDERS_CANCEL = Permission.parse("orders:cancel")

    APPRAISALS_READ = Permission.parse("appraisals:read")
    APPRAISALS_WRITE = Permission.parse("appraisals:write")

    FULFILLMENT_READ = Permission.parse("fulfillment:read")
    FULFILLMENT_WRITE = Permission.parse("fulfillment:write")

    PURCHASE_REQUESTS_READ = Permission.parse("purchase_requests:read")
    PURCHASE_REQUESTS_WRITE = Permission.parse("purchase_requests:write")

    REPORTS_READ = Permission.parse("reports:read")

    ROLES_READ = Permission.parse("roles:read")
    ROLES_WRITE = Permission.parse("roles:write")

    ADMIN_ALL = Permission.parse("admin:*")
