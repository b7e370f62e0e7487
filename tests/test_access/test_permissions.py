"""
Tests for the Permission value type

Permissions are parsed once at the boundary; after that, matching is pure
string comparison plus held-side wildcards.
"""

import pytest

from bookbuyback.access.permissions import Permission, Permissions, parse_permissions
from bookbuyback.kernel.errors import ValidationError

CONCRETE = [
    "listings:read",
    "listings:write",
    "orders:read",
    "orders:write",
    "orders:cancel",
    "appraisals:write",
    "fulfillment:read",
    "purchase_requests:write",
    "reports:read",
    "roles:write",
    "users:delete",
]


def test_parse_round_trips_canonical_string() -> None:
    """Test parse then value gives the same canonical string"""
    for raw in CONCRETE + ["orders:*", "*:*", "admin:*"]:
        assert Permission.parse(raw).value == raw


def test_parse_normalizes_case_and_whitespace() -> None:
    """Test surrounding whitespace and upper case are accepted"""
    permission = Permission.parse("  Orders:READ ")

    assert permission.resource == "orders"
    assert permission.action == "read"
    assert str(permission) == "orders:read"


@pytest.mark.parametrize("raw", ["orders", "orders:", ":read", "orders:read:extra", "or ders:read", "orders-read"])
def test_parse_rejects_malformed(raw: str) -> None:
    """Test strings outside resource:action shape fail"""
    with pytest.raises(ValidationError, match='Permission must be in format "resource:action"'):
        Permission.parse(raw)


def test_parse_rejects_empty() -> None:
    """Test empty and blank strings fail"""
    with pytest.raises(ValidationError, match="Permission cannot be empty"):
        Permission.parse("")
    with pytest.raises(ValidationError, match="Permission cannot be empty"):
        Permission.parse("   ")


def test_exact_match() -> None:
    """Test a concrete permission matches only itself"""
    read = Permission.parse("orders:read")

    assert read.matches(Permission.parse("orders:read"))
    assert not read.matches(Permission.parse("orders:write"))
    assert not read.matches(Permission.parse("listings:read"))


def test_action_wildcard_matches_every_action_of_resource() -> None:
    """Test resource:* covers that resource only"""
    orders_all = Permission.parse("orders:*")

    assert orders_all.matches(Permission.parse("orders:read"))
    assert orders_all.matches(Permission.parse("orders:cancel"))
    assert not orders_all.matches(Permission.parse("listings:read"))


def test_full_wildcard_matches_every_concrete_permission() -> None:
    """Test *:* matches everything"""
    everything = Permission.parse("*:*")

    for raw in CONCRETE:
        assert everything.matches(Permission.parse(raw))


def test_wildcard_only_counts_on_held_side() -> None:
    """Test holding a concrete permission never satisfies a wildcard requirement"""
    assert not Permission.parse("orders:read").matches(Permission.parse("orders:*"))


def test_equality_is_exact() -> None:
    """Test orders:* is not equal to orders:read"""
    assert Permission.parse("orders:*") != Permission.parse("orders:read")
    assert Permission.parse("orders:read") == Permission.parse("ORDERS:read")
    assert Permission.parse("orders:*").is_wildcard
    assert not Permissions.ORDERS_READ.is_wildcard


def test_parse_permissions_fails_on_first_bad_value() -> None:
    """Test bulk parsing is all-or-nothing"""
    assert [p.value for p in parse_permissions(["orders:read", "listings:read"])] == [
        "orders:read",
        "listings:read",
    ]
    with pytest.raises(ValidationError):
        parse_permissions(["orders:read", "broken"])


def test_well_known_constants() -> None:
    """Test the constants hold the expected values"""
    assert Permissions.ORDERS_CANCEL.value == "orders:cancel"
    assert Permissions.ADMIN_ALL.value == "admin:*"
    assert Permissions.PURCHASE_REQUESTS_WRITE.value == "purchase_requests:write"
