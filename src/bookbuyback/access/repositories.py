"""
Access repositories - roles, role assignments and principals
"""

from datetime import datetime
from typing import Protocol

from bookbuyback.access.models import Principal, Role, RoleAssignment
from bookbuyback.access.system_roles import build_system_roles
from bookbuyback.kernel.repository import InMemoryRepository


class RoleRepository(Protocol):
    def save(self, role: Role) -> None: ...

    def find_by_id(self, role_id: str) -> Role | None: ...

    def find_by_ids(self, role_ids: list[str] | set[str]) -> list[Role]: ...

    def find_by_name(self, name: str) -> Role | None: ...

    def find_all(self) -> list[Role]: ...

    def delete(self, role_id: str) -> bool: ...


class RoleAssignmentRepository(Protocol):
    def save(self, assignment: RoleAssignment) -> None: ...

    def find_by_user(self, user_id: str) -> list[RoleAssignment]: ...

    def find_by_user_and_role(self, user_id: str, role_id: str) -> RoleAssignment | None: ...

    def find_role_ids_for_user(self, user_id: str, now: datetime | None = None) -> set[str]: ...

    def delete(self, assignment_id: str) -> bool: ...


class PrincipalDirectory(Protocol):
    def find_by_id(self, principal_id: str) -> Principal | None: ...


class InMemoryRoleRepository(InMemoryRepository[Role]):
    """Role store seeded with the system roles unless told otherwise"""

    id_attribute = "role_id"

    def __init__(self, seed_system_roles: bool = True) -> None:
        super().__init__()
        if seed_system_roles:
            for role in build_system_roles():
                self.save(role)

    def find_by_name(self, name: str) -> Role | None:
        """Case-insensitive, whitespace-insensitive name lookup"""
        wanted = name.strip().lower()
        matches = self._select(lambda r: r.name.lower() == wanted)
        return matches[0] if matches else None


class InMemoryRoleAssignmentRepository(InMemoryRepository[RoleAssignment]):
    id_attribute = "assignment_id"

    def save(self, assignment: RoleAssignment) -> None:
        # One assignment per (user, role): re-assigning replaces the old grant
        with self._lock:
            existing = self.find_by_user_and_role(assignment.user_id, assignment.role_id)
            if existing is not None and existing.assignment_id != assignment.assignment_id:
                self.delete(existing.assignment_id)
            super().save(assignment)

    def find_by_user(self, user_id: str) -> list[RoleAssignment]:
        return self._select(lambda a: a.user_id == user_id)

    def find_by_user_and_role(self, user_id: str, role_id: str) -> RoleAssignment | None:
        matches = self._select(lambda a: a.user_id == user_id and a.role_id == role_id)
        return matches[0] if matches else None

    def find_role_ids_for_user(self, user_id: str, now: datetime | None = None) -> set[str]:
        """Role ids granted to `user_id`; assignments expired at `now` are skipped"""
        return {
            a.role_id
            for a in self.find_by_user(user_id)
            if now is None or a.is_active(now)
        }


class InMemoryPrincipalDirectory(InMemoryRepository[Principal]):
    id_attribute = "principal_id"
