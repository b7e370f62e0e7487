"""
CLI Integration Tests

Runs each command through typer's CliRunner against a fresh in-memory
system.
"""

import json

from typer.testing import CliRunner

from bookbuyback.access.system_roles import SystemRoleIds
from bookbuyback.app import BuybackApp
from bookbuyback.cli.main import app, run_demo

runner = CliRunner()


def test_roles_list():
    """Test every built-in role is listed"""
    result = runner.invoke(app, ["roles", "list"])

    assert result.exit_code == 0
    assert "Roles (7):" in result.stdout
    assert f"{SystemRoleIds.ADMIN.value}: Administrator" in result.stdout


def test_roles_list_json():
    """Test JSON output is parseable"""
    result = runner.invoke(app, ["roles", "list", "--json"])

    assert result.exit_code == 0
    roles = {r["role_id"]: r for r in json.loads(result.stdout)}
    assert roles[SystemRoleIds.BUYER.value]["permissions"] == [
        "listings:read",
        "orders:read",
        "orders:write",
    ]
    assert all(r["is_system"] for r in roles.values())


def test_roles_show_by_id_and_name():
    """Test a role can be found either way"""
    by_id = runner.invoke(app, ["roles", "show", SystemRoleIds.CUSTOMER_SUPPORT.value])
    by_name = runner.invoke(app, ["roles", "show", "Customer Support", "--json"])

    assert by_id.exit_code == 0
    assert "Customer Support (system-role-customer-support)" in by_id.stdout
    assert "    - orders:cancel" in by_id.stdout
    assert by_name.exit_code == 0
    assert json.loads(by_name.stdout)["applicable_user_types"] == ["employee"]


def test_roles_show_unknown():
    """Test a missing role is an error"""
    result = runner.invoke(app, ["roles", "show", "Librarian"])

    assert result.exit_code == 1
    assert "Error: Role not found: Librarian" in result.output


def test_permission_check_allowed_through_wildcard():
    """Test orders:* on the admin role covers orders:write"""
    result = runner.invoke(
        app,
        ["permission", "check", "--role", SystemRoleIds.ADMIN.value, "--permission", "orders:write"],
    )

    assert result.exit_code == 0
    assert "✓ Allowed (all): orders:write" in result.stdout


def test_permission_check_denied_names_missing():
    """Test a denial lists what is missing"""
    result = runner.invoke(
        app,
        [
            "permission",
            "check",
            "--role",
            SystemRoleIds.BUYER.value,
            "--permission",
            "orders:read",
            "--permission",
            "appraisals:write",
        ],
    )

    assert result.exit_code == 1
    assert "✗ Denied (all): missing appraisals:write" in result.stdout


def test_permission_check_any():
    """Test --any needs only one permission"""
    result = runner.invoke(
        app,
        [
            "permission",
            "check",
            "--role",
            "Buyer",
            "--permission",
            "appraisals:write",
            "--permission",
            "orders:write",
            "--any",
        ],
    )

    assert result.exit_code == 0
    assert "✓ Allowed (any)" in result.stdout


def test_permission_check_rejects_wildcard_requirement():
    """Test a wildcard cannot be asked for"""
    result = runner.invoke(
        app,
        ["permission", "check", "--role", "Buyer", "--permission", "orders:*"],
    )

    assert result.exit_code == 1
    assert "wildcard" in result.output


def test_permission_check_incompatible_roles():
    """Test roles for different user types cannot be combined"""
    result = runner.invoke(
        app,
        ["permission", "check", "--role", "Buyer", "--role", "Appraiser", "--permission", "orders:read"],
    )

    assert result.exit_code == 1
    assert "No single user type" in result.output


def test_policy_show_reads_environment(monkeypatch):
    """Test BOOKBUYBACK_* overrides reach the policy"""
    monkeypatch.setenv("BOOKBUYBACK_LISTING_HOLD_MINUTES", "30")
    monkeypatch.setenv("BOOKBUYBACK_STORE_CREDIT_BONUS", "0.15")

    result = runner.invoke(app, ["policy", "show", "--json"])

    assert result.exit_code == 0
    policy = json.loads(result.stdout)
    assert policy["listing_hold_minutes"] == 30
    assert policy["checkout_timeout_minutes"] == 15
    assert policy["store_credit_bonus"] == "0.15"


def test_policy_show_text():
    """Test the human-readable summary"""
    result = runner.invoke(app, ["policy", "show"])

    assert result.exit_code == 0
    assert "Listing hold: 15 min" in result.stdout
    assert "Store credit bonus: 10%" in result.stdout


def test_demo_json():
    """Test the demo drives a box all the way through"""
    result = runner.invoke(app, ["demo", "--json"])

    assert result.exit_code == 0
    summary = json.loads(result.stdout)
    assert summary["purchase_request"]["status"] == "completed"
    assert summary["purchase_request"]["offer"] == "18.00"
    assert sorted(l["price"] for l in summary["listings"]) == ["19.20", "9.00"]
    assert summary["order"]["status"] == "completed"
    assert summary["order"]["total"] == "28.20"
    assert summary["shipment"]["status"] == "delivered"
    assert "appraisal.completed" in summary["events"]


def test_demo_text():
    """Test the demo's summary lines"""
    result = runner.invoke(app, ["demo"])

    assert result.exit_code == 0
    assert "(offer 18.00)" in result.stdout
    assert "(total 28.20)" in result.stdout
    assert "Tracking: https://toi.kuronekoyamato.co.jp" in result.stdout


def test_run_demo_leaves_event_log_on_the_system():
    """Test run_demo works against a caller-supplied system"""
    system = BuybackApp()

    summary = run_demo(system)

    assert len(system.event_log.events()) == len(summary["events"])
