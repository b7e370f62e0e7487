"""
System roles seeded at process start

These roles cannot be edited or deleted. Their ids are stable so role
assignments can refer to them across restarts.
"""

from bookbuyback.access.models import PrincipalKind, Role
from bookbuyback.access.permissions import parse_permissions


class SystemRoleIds:
    BUYER = "system-role-buyer"
    SELLER = "system-role-seller"
    PARTNER = "system-role-partner"
    APPRAISER = "system-role-appraiser"
    WAREHOUSE_OPERATOR = "system-role-warehouse-operator"
    CUSTOMER_SUPPORT = "system-role-customer-support"
    ADMIN = "system-role-admin"


_DEFINITIONS: list[dict] = [
    {
        "role_id": SystemRoleIds.BUYER,
        "name": "Buyer",
        "description": "Can browse and purchase books",
        "permissions": ["listings:read", "orders:read", "orders:write"],
        "applicable_user_types": [PrincipalKind.CONSUMER],
    },
    {
        "role_id": SystemRoleIds.SELLER,
        "name": "Seller",
        "description": "Can sell books to the buyback service",
        "permissions": [
            "listings:read",
            "purchase_requests:read",
            "purchase_requests:write",
        ],
        "applicable_user_types": [PrincipalKind.CONSUMER],
    },
    {
        "role_id": SystemRoleIds.PARTNER,
        "name": "Business Partner",
        "description": "Business partner with bulk operations",
        "permissions": [
            "listings:read",
            "orders:read",
            "orders:write",
            "purchase_requests:read",
            "purchase_requests:write",
            "reports:read",
        ],
        "applicable_user_types": [PrincipalKind.BUSINESS_PARTNER],
    },
    {
        "role_id": SystemRoleIds.APPRAISER,
        "name": "Appraiser",
        "description": "Can appraise books",
        "permissions": [
            "appraisals:read",
            "appraisals:write",
            "purchase_requests:read",
            "listings:read",
        ],
        "applicable_user_types": [PrincipalKind.EMPLOYEE],
    },
    {
        "role_id": SystemRoleIds.WAREHOUSE_OPERATOR,
        "name": "Warehouse Operator",
        "description": "Manages warehouse operations",
        "permissions": [
            "orders:read",
            "fulfillment:read",
            "fulfillment:write",
            "listings:read",
        ],
        "applicable_user_types": [PrincipalKind.EMPLOYEE],
    },
    {
        "role_id": SystemRoleIds.CUSTOMER_SUPPORT,
        "name": "Customer Support",
        "description": "Handles customer inquiries",
        "permissions": [
            "users:read",
            "orders:read",
            "orders:cancel",
            "purchase_requests:read",
            "listings:read",
        ],
        "applicable_user_types": [PrincipalKind.EMPLOYEE],
    },
    {
        "role_id": SystemRoleIds.ADMIN,
        "name": "Administrator",
        "description": "Full system access",
        "permissions": [
            "admin:*",
            "users:read",
            "users:write",
            "users:delete",
            "roles:read",
            "roles:write",
            "listings:*",
            "orders:*",
            "appraisals:*",
            "fulfillment:*",
            "purchase_requests:*",
            "reports:*",
        ],
        "applicable_user_types": [PrincipalKind.EMPLOYEE],
    },
]


def build_system_roles() -> list[Role]:
    """Fresh instances of every system role"""
    return [
        Role.create_system(
            role_id=d["role_id"],
            name=d["name"],
            description=d["description"],
            permissions=parse_permissions(d["permissions"]),
            applicable_user_types=d["applicable_user_types"],
        )
        for d in _DEFINITIONS
    ]


def get_system_role(role_id: str) -> Role | None:
    for role in build_system_roles():
        if role.role_id == role_id:
            return role
    return None
