"""
Access Events - role assignment facts

Role assignments are the only access changes other contexts care about
(notifications, audit). Role edits themselves are administrative and are
only logged.
"""

from datetime import datetime

from pydantic import BaseModel


USER_ROLE_ASSIGNED = "UserRoleAssigned"
USER_ROLE_REMOVED = "UserRoleRemoved"


class UserRoleAssigned(BaseModel):
    """A role was granted to a principal (replacing any earlier grant of it)"""

    user_id: str
    role_id: str
    role_name: str
    assigned_by: str | None = None
    expires_at: datetime | None = None
    scope: str | None = None


class UserRoleRemoved(BaseModel):
    """A role was taken away from a principal"""

    user_id: str
    role_id: str
    role_name: str
    removed_by: str | None = None
