"""
Access context - permissions, roles and authorization decisions
"""

from bookbuyback.access.engine import (
    AuthorizationEngine,
    AuthorizationMode,
    require_any_permission,
    require_permissions,
)
from bookbuyback.access.models import Principal, PrincipalKind, Role, RoleAssignment
from bookbuyback.access.permissions import Permission, Permissions, parse_permissions
from bookbuyback.access.repositories import (
    InMemoryPrincipalDirectory,
    InMemoryRoleAssignmentRepository,
    InMemoryRoleRepository,
)
from bookbuyback.access.services import RoleService
from bookbuyback.access.system_roles import SystemRoleIds, build_system_roles, get_system_role

__all__ = [
    "Permission",
    "Permissions",
    "parse_permissions",
    "Principal",
    "PrincipalKind",
    "Role",
    "RoleAssignment",
    "SystemRoleIds",
    "build_system_roles",
    "get_system_role",
    "InMemoryRoleRepository",
    "InMemoryRoleAssignmentRepository",
    "InMemoryPrincipalDirectory",
    "AuthorizationEngine",
    "AuthorizationMode",
    "require_permissions",
    "require_any_permission",
    "RoleService",
]
