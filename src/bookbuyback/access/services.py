"""
Role Service - role administration and role assignment

Follows the same shape as every other service: load, change through the
entity's own methods, save, then publish.
"""

from datetime import datetime
from typing import Iterable

from bookbuyback.access.events import (
    USER_ROLE_ASSIGNED,
    USER_ROLE_REMOVED,
    UserRoleAssigned,
    UserRoleRemoved,
)
from bookbuyback.access.models import PrincipalKind, Role, RoleAssignment
from bookbuyback.access.permissions import Permission, parse_permissions
from bookbuyback.access.repositories import (
    PrincipalDirectory,
    RoleAssignmentRepository,
    RoleRepository,
)
from bookbuyback.kernel.bus import EventBus
from bookbuyback.kernel.errors import (
    DuplicateRoleName,
    PrincipalNotFound,
    RoleNotFound,
    ValidationError,
)
from bookbuyback.kernel.events import create_event
from bookbuyback.kernel.logging import LogOperation, get_logger
from bookbuyback.kernel.metrics import track_command_duration
from bookbuyback.kernel.time import RealTimeProvider, TimeProvider

logger = get_logger(__name__)


class RoleService:
    """Creates, edits, deletes and assigns roles"""

    def __init__(
        self,
        roles: RoleRepository,
        assignments: RoleAssignmentRepository,
        principals: PrincipalDirectory,
        bus: EventBus,
        time_provider: TimeProvider | None = None,
    ) -> None:
        self.roles = roles
        self.assignments = assignments
        self.principals = principals
        self.bus = bus
        self.time_provider = time_provider or RealTimeProvider()

    # Queries

    def get_role(self, role_id: str) -> Role:
        """
        Raises:
            RoleNotFound: If no role has this id
        """
        role = self.roles.find_by_id(role_id)
        if role is None:
            raise RoleNotFound(role_id)
        return role

    def find_role_by_name(self, name: str) -> Role | None:
        return self.roles.find_by_name(name)

    def list_roles(self) -> list[Role]:
        return self.roles.find_all()

    def get_user_assignments(self, user_id: str) -> list[RoleAssignment]:
        return self.assignments.find_by_user(user_id)

    # Role administration

    @track_command_duration("create_role")
    def create_role(
        self,
        *,
        name: str,
        permissions: Iterable[str | Permission],
        applicable_user_types: Iterable[PrincipalKind | str],
        description: str | None = None,
    ) -> Role:
        """
        Create an ordinary role

        Raises:
            DuplicateRoleName: If a role with the same name exists (case-insensitive)
            ValidationError: For a blank name, malformed permission or no user type
        """
        if self.roles.find_by_name(name or "") is not None:
            raise DuplicateRoleName(name.strip())

        with LogOperation(logger, "create_role", role_name=name):
            role = Role.create(
                name=name,
                description=description,
                permissions=parse_permissions(list(permissions)),
                applicable_user_types=[PrincipalKind(k) for k in applicable_user_types],
                now=self.time_provider.now(),
            )
            self.roles.save(role)
        return role

    @track_command_duration("update_role")
    def update_role(
        self,
        role_id: str,
        *,
        name: str | None = None,
        description: str | None = None,
        permissions: Iterable[str | Permission] | None = None,
    ) -> Role:
        """
        Apply the given changes to a role; omitted fields stay as they are

        Raises:
            RoleNotFound: If the role does not exist
            ValidationError: If the role is a system role or the input is invalid
            DuplicateRoleName: If renaming onto another role's name
        """
        role = self.get_role(role_id)
        now = self.time_provider.now()

        with LogOperation(logger, "update_role", role_id=role_id):
            if name is not None:
                existing = self.roles.find_by_name(name)
                if existing is not None and existing.role_id != role_id:
                    raise DuplicateRoleName(name.strip())
                role = role.update_name(name, now=now)
            if description is not None:
                role = role.update_description(description, now=now)
            if permissions is not None:
                role = role.update_permissions(parse_permissions(list(permissions)), now=now)
            self.roles.save(role)
        return role

    def add_permission(self, role_id: str, permission: str | Permission) -> Role:
        role = self.get_role(role_id).add_permission(
            Permission.parse(permission), now=self.time_provider.now()
        )
        self.roles.save(role)
        return role

    def remove_permission(self, role_id: str, permission: str | Permission) -> Role:
        role = self.get_role(role_id).remove_permission(
            Permission.parse(permission), now=self.time_provider.now()
        )
        self.roles.save(role)
        return role

    @track_command_duration("delete_role")
    def delete_role(self, role_id: str) -> None:
        """
        Delete an ordinary role

        Raises:
            RoleNotFound: If the role does not exist
            ValidationError: If the role is a system role
        """
        role = self.get_role(role_id)
        if role.is_system:
            raise ValidationError("Cannot delete system role")
        self.roles.delete(role_id)
        logger.info("Role deleted", role_id=role_id, role_name=role.name)

    # Assignment

    @track_command_duration("assign_role")
    def assign_role(
        self,
        user_id: str,
        role_id: str,
        *,
        assigned_by: str | None = None,
        expires_at: datetime | None = None,
        scope: str | None = None,
    ) -> RoleAssignment:
        """
        Grant a role to a principal, replacing an earlier grant of the same role

        Raises:
            PrincipalNotFound: If the principal is unknown
            RoleNotFound: If the role is unknown
            ValidationError: If the role is not applicable to the principal's kind
        """
        principal = self.principals.find_by_id(user_id)
        if principal is None:
            raise PrincipalNotFound(user_id)
        role = self.get_role(role_id)
        if not role.is_applicable_to(principal.kind):
            raise ValidationError(
                f'Role "{role.name}" is not applicable to user type "{principal.kind.value}"'
            )

        now = self.time_provider.now()
        assignment = RoleAssignment.create(
            user_id=user_id,
            role_id=role_id,
            assigned_by=assigned_by,
            expires_at=expires_at,
            scope=scope,
            now=now,
        )
        self.assignments.save(assignment)

        self.bus.publish(
            create_event(
                event_type=USER_ROLE_ASSIGNED,
                aggregate_id=user_id,
                aggregate_type="principal",
                occurred_at=now,
                actor_id=assigned_by,
                payload=UserRoleAssigned(
                    user_id=user_id,
                    role_id=role.role_id,
                    role_name=role.name,
                    assigned_by=assigned_by,
                    expires_at=expires_at,
                    scope=scope,
                ),
            )
        )
        logger.info("Role assigned", user_id=user_id, role_id=role_id)
        return assignment

    @track_command_duration("remove_role")
    def remove_role(self, user_id: str, role_id: str, *, removed_by: str | None = None) -> None:
        """
        Take a role away from a principal

        Raises:
            PrincipalNotFound: If the principal is unknown
            RoleNotFound: If the role is unknown
            ValidationError: If the principal does not have the role
        """
        if self.principals.find_by_id(user_id) is None:
            raise PrincipalNotFound(user_id)
        role = self.get_role(role_id)
        assignment = self.assignments.find_by_user_and_role(user_id, role_id)
        now = self.time_provider.now()
        if assignment is None or not assignment.is_active(now):
            raise ValidationError("User does not have this role")

        self.assignments.delete(assignment.assignment_id)

        self.bus.publish(
            create_event(
                event_type=USER_ROLE_REMOVED,
                aggregate_id=user_id,
                aggregate_type="principal",
                occurred_at=now,
                actor_id=removed_by,
                payload=UserRoleRemoved(
                    user_id=user_id,
                    role_id=role.role_id,
                    role_name=role.name,
                    removed_by=removed_by,
                ),
            )
        )
        logger.info("Role removed", user_id=user_id, role_id=role_id)
