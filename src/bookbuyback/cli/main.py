"""
Book Buyback CLI

Command-line interface for inspecting roles and policy, checking
permissions, and running an end-to-end buyback demo against an in-memory
system.

Usage:
    bookbuyback roles list
    bookbuyback roles show system-role-admin
    bookbuyback permission check --role system-role-buyer --permission orders:write
    bookbuyback policy show --json
    bookbuyback demo
"""

import json
from typing import Optional

import typer
from typing_extensions import Annotated

from bookbuyback.access.engine import AuthorizationMode
from bookbuyback.access.models import Principal, PrincipalKind, Role
from bookbuyback.access.system_roles import SystemRoleIds
from bookbuyback.app import BuybackApp
from bookbuyback.fulfillment.models import Address
from bookbuyback.intake.models import Customer, CustomerAddress
from bookbuyback.kernel.errors import BuybackError
from bookbuyback.kernel.logging import configure_logging
from bookbuyback.kernel.settings import BuybackPolicy

# Logs go to stderr so JSON output on stdout stays parseable
configure_logging(json_output=False, log_level="WARNING")

app = typer.Typer(
    name="bookbuyback",
    help="Book Buyback - used-book buyback and resale backend",
    add_completion=False,
)

roles_app = typer.Typer(help="Role inspection commands")
permission_app = typer.Typer(help="Permission checks")
policy_app = typer.Typer(help="Business policy commands")

app.add_typer(roles_app, name="roles")
app.add_typer(permission_app, name="permission")
app.add_typer(policy_app, name="policy")


def _role_dict(role: Role) -> dict:
    return {
        "role_id": role.role_id,
        "name": role.name,
        "description": role.description,
        "permissions": role.permission_values,
        "applicable_user_types": sorted(k.value for k in role.applicable_user_types),
        "is_system": role.is_system,
    }


def _find_role(system: BuybackApp, role: str) -> Role:
    found = system.role_repository.find_by_id(role) or system.roles.find_role_by_name(role)
    if found is None:
        typer.echo(f"Error: Role not found: {role}", err=True)
        raise typer.Exit(1)
    return found


# Role commands


@roles_app.command("list")
def roles_list(
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """List the built-in roles"""
    roles = BuybackApp().roles.list_roles()

    if json_output:
        typer.echo(json.dumps([_role_dict(r) for r in roles], indent=2))
        return

    typer.echo(f"Roles ({len(roles)}):")
    for role in roles:
        typer.echo(f"  {role.role_id}: {role.name} ({len(role.permissions)} permissions)")


@roles_app.command("show")
def roles_show(
    role: Annotated[str, typer.Argument(help="Role id or name")],
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """Show one role and its permissions"""
    found = _find_role(BuybackApp(), role)

    if json_output:
        typer.echo(json.dumps(_role_dict(found), indent=2))
        return

    typer.echo(f"{found.name} ({found.role_id})")
    if found.description:
        typer.echo(f"  Description: {found.description}")
    typer.echo(f"  System role: {'yes' if found.is_system else 'no'}")
    typer.echo(
        "  User types: " + ", ".join(sorted(k.value for k in found.applicable_user_types))
    )
    typer.echo("  Permissions:")
    for value in found.permission_values:
        typer.echo(f"    - {value}")


# Permission commands


@permission_app.command("check")
def permission_check(
    role: Annotated[
        list[str],
        typer.Option("--role", help="Role id or name held by the principal (repeatable)"),
    ],
    permission: Annotated[
        list[str],
        typer.Option("--permission", help="Required permission, e.g. orders:read (repeatable)"),
    ],
    any_of: Annotated[
        bool,
        typer.Option("--any", help="Allow if any one permission is held"),
    ] = False,
) -> None:
    """Decide whether a principal holding the given roles is authorized"""
    system = BuybackApp()
    roles = [_find_role(system, r) for r in role]

    principal_id = "cli-principal"
    # A principal kind every requested role applies to
    kinds = set(PrincipalKind)
    for r in roles:
        kinds &= set(r.applicable_user_types)
    if not kinds:
        typer.echo("Error: No single user type can hold all of these roles", err=True)
        raise typer.Exit(1)
    system.register_principal(Principal(principal_id=principal_id, kind=sorted(kinds)[0]))

    mode = AuthorizationMode.ANY if any_of else AuthorizationMode.ALL
    try:
        for r in roles:
            system.roles.assign_role(principal_id, r.role_id, assigned_by="cli")
        allowed = system.authorization.is_authorized(principal_id, permission, mode)
    except BuybackError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)

    if allowed:
        typer.echo(f"✓ Allowed ({mode.value}): {', '.join(permission)}")
        return

    missing = system.authorization.missing_permissions(principal_id, permission)
    typer.echo(f"✗ Denied ({mode.value}): missing {', '.join(p.value for p in missing)}")
    raise typer.Exit(1)


# Policy commands


@policy_app.command("show")
def policy_show(
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """Show the effective policy (defaults plus BOOKBUYBACK_* overrides)"""
    policy = BuybackPolicy.from_env()

    if json_output:
        typer.echo(json.dumps(policy.model_dump(mode="json"), indent=2))
        return

    typer.echo(f"Buyback Policy v{policy.policy_version}")
    typer.echo(f"  Listing hold: {policy.listing_hold_minutes} min")
    typer.echo(f"  Checkout timeout: {policy.checkout_timeout_minutes} min")
    typer.echo(f"  Store credit bonus: {policy.store_credit_bonus:.0%}")
    typer.echo(f"  Estimate per book: {policy.estimate_base_price_per_book}")
    typer.echo("  Appraisal multipliers:")
    for condition, multiplier in policy.appraisal_condition_multipliers.items():
        typer.echo(f"    {condition}: {multiplier}")
    typer.echo("  Listing markups:")
    for condition, markup in policy.listing_markup_by_condition.items():
        typer.echo(f"    {condition}: {markup:.0%}")


# Demo


def run_demo(system: BuybackApp) -> dict:
    """
    Drive one box of books from seller to buyer

    Returns:
        Summary of the entities the run produced
    """
    principals = {
        "seller": (PrincipalKind.CONSUMER, SystemRoleIds.SELLER),
        "appraiser": (PrincipalKind.EMPLOYEE, SystemRoleIds.APPRAISER),
        "buyer": (PrincipalKind.CONSUMER, SystemRoleIds.BUYER),
        "warehouse": (PrincipalKind.EMPLOYEE, SystemRoleIds.WAREHOUSE_OPERATOR),
    }
    for principal_id, (kind, role_id) in principals.items():
        system.register_principal(Principal(principal_id=principal_id, kind=kind))
        system.roles.assign_role(principal_id, role_id, assigned_by="demo")

    customer = Customer.create(
        email="seller@example.com",
        name="Hanako Sato",
        phone="090-0000-0000",
        address=CustomerAddress(
            postal_code="150-0001",
            prefecture="Tokyo",
            city="Shibuya",
            street="1-2-3 Jingumae",
        ),
    )
    request = system.create_purchase_request(
        "seller", customer, quantity=10, category="fiction", condition="good"
    )
    request = system.submit_purchase_request("seller", request.request_id)
    system.receive_purchase_request("appraiser", request.request_id)

    appraisal = system.start_appraisal("appraiser", request.request_id)
    system.appraise_book("appraiser", appraisal.appraisal_id, "978-0-13-468599-1", "good")
    system.appraise_book("appraiser", appraisal.appraisal_id, "978-0-201-63361-0", "excellent")
    appraisal = system.complete_appraisal("appraiser", appraisal.appraisal_id)

    request = system.get_purchase_request("seller", request.request_id)
    request = system.accept_offer("seller", request.request_id, "ach")

    listings = system.search_listings("buyer").items
    order = system.create_order(
        "buyer",
        Address.create(
            name="Taro Yamada",
            street1="4-5-6 Umeda",
            city="Osaka",
            state="Osaka",
            postal_code="530-0001",
        ),
        [listing.listing_id for listing in listings],
    )
    system.checkout("buyer", order.order_id)
    order = system.pay_order("buyer", order.order_id, "credit_card", "txn-demo-0001")

    shipment = system.get_shipment_for_order("warehouse", order.order_id)
    system.start_picking("warehouse", shipment.shipment_id)
    system.pack_shipment("warehouse", shipment.shipment_id)
    system.dispatch_shipment("warehouse", shipment.shipment_id, "yamato", "1234-5678-9012")
    system.mark_shipment_in_transit("warehouse", shipment.shipment_id)
    shipment = system.mark_shipment_delivered("warehouse", shipment.shipment_id)
    order = system.get_order("buyer", order.order_id)

    return {
        "purchase_request": {
            "request_id": request.request_id,
            "status": request.status.value,
            "offer": str(appraisal.total_offer),
        },
        "listings": [
            {
                "listing_id": listing.listing_id,
                "title": listing.book.title,
                "price": str(listing.listing_price.amount),
            }
            for listing in listings
        ],
        "order": {
            "order_id": order.order_id,
            "status": order.status.value,
            "total": str(order.total.amount),
        },
        "shipment": {
            "shipment_id": shipment.shipment_id,
            "status": shipment.status.value,
            "tracking_url": shipment.tracking_url,
        },
        "events": [e.event_type for e in system.event_log.events()],
    }


@app.command()
def demo(
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
    metrics_port: Annotated[
        Optional[int],
        typer.Option("--metrics-port", help="Expose Prometheus metrics on this port"),
    ] = None,
) -> None:
    """Run a complete buyback and resale flow in memory"""
    if metrics_port is not None:
        from bookbuyback.kernel.metrics import start_metrics_server

        start_metrics_server(port=metrics_port)

    try:
        summary = run_demo(BuybackApp(policy=BuybackPolicy.from_env()))
    except BuybackError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)

    if json_output:
        typer.echo(json.dumps(summary, indent=2))
        return

    pr = summary["purchase_request"]
    typer.echo(f"✓ Purchase request {pr['request_id']}: {pr['status']} (offer {pr['offer']})")
    typer.echo(f"✓ Listed {len(summary['listings'])} books:")
    for listing in summary["listings"]:
        typer.echo(f"    {listing['title']} @ {listing['price']}")
    order = summary["order"]
    typer.echo(f"✓ Order {order['order_id']}: {order['status']} (total {order['total']})")
    shipment = summary["shipment"]
    typer.echo(f"✓ Shipment {shipment['shipment_id']}: {shipment['status']}")
    typer.echo(f"  Tracking: {shipment['tracking_url']}")
    typer.echo(f"  Events published: {len(summary['events'])}")


def main() -> None:
    """Main entry point"""
    app()


if __name__ == "__main__":
    main()
