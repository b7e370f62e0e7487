"""
BuybackApp - main façade

Wires every bounded context onto one EventBus and exposes the commands a
user-facing surface would call. This is where authorization is enforced:
every guarded method takes the acting principal id first and checks it
against the role tables before touching a service. The services
themselves stay unguarded so event subscribers can call them.

Example:
    >>> app = BuybackApp()
    >>> app.register_principal(Principal(principal_id="alice", kind="consumer"))
    >>> app.roles.assign_role("alice", SystemRoleIds.SELLER)
    >>> request = app.create_purchase_request("alice", customer, quantity=20,
    ...                                       category="fiction", condition="good")
    >>> app.submit_purchase_request("alice", request.request_id)
"""

from pydantic import BaseModel

from bookbuyback.access.engine import AuthorizationEngine, require_any_permission, require_permissions
from bookbuyback.access.events import USER_ROLE_ASSIGNED, USER_ROLE_REMOVED
from bookbuyback.access.models import Principal, Role, RoleAssignment
from bookbuyback.access.permissions import Permissions
from bookbuyback.access.repositories import (
    InMemoryPrincipalDirectory,
    InMemoryRoleAssignmentRepository,
    InMemoryRoleRepository,
)
from bookbuyback.access.services import RoleService
from bookbuyback.appraisal.events import APPRAISAL_COMPLETED
from bookbuyback.appraisal.lookup import BookLookupService, StaticBookLookupService
from bookbuyback.appraisal.models import Appraisal, AppraisalStatus, Condition
from bookbuyback.appraisal.repositories import InMemoryAppraisalRepository
from bookbuyback.appraisal.services import AppraisalService
from bookbuyback.fulfillment.events import (
    SHIPMENT_DELIVERED,
    SHIPMENT_DISPATCHED,
    SHIPMENT_EVENT_TYPES,
)
from bookbuyback.fulfillment.models import Address, Shipment
from bookbuyback.fulfillment.repositories import InMemoryShipmentRepository
from bookbuyback.fulfillment.services import FulfillmentService
from bookbuyback.fulfillment.tracking import Carrier
from bookbuyback.intake.carrier import CarrierAdapter, MockCarrierAdapter
from bookbuyback.intake.events import PURCHASE_REQUEST_ACCEPTED, PURCHASE_REQUEST_EVENT_TYPES
from bookbuyback.intake.models import Customer, PaymentMethod, PurchaseRequest, PurchaseRequestStatus
from bookbuyback.intake.repositories import InMemoryPurchaseRequestRepository
from bookbuyback.intake.services import PurchaseRequestService
from bookbuyback.kernel.bus import EventBus
from bookbuyback.kernel.event_log import EventLog
from bookbuyback.kernel.errors import InvariantViolation
from bookbuyback.kernel.events import DomainEvent
from bookbuyback.kernel.logging import get_logger
from bookbuyback.kernel.settings import BuybackPolicy
from bookbuyback.kernel.time import RealTimeProvider, TimeProvider
from bookbuyback.listing.events import LISTING_EVENT_TYPES
from bookbuyback.listing.models import Listing
from bookbuyback.listing.pricing import PricingService
from bookbuyback.listing.repositories import InMemoryListingRepository, SearchCriteria, SearchResult
from bookbuyback.listing.services import ListingService
from bookbuyback.orders.events import ORDER_CONFIRMED, ORDER_EVENT_TYPES
from bookbuyback.orders.listings import LocalListingClient
from bookbuyback.orders.models import Order, OrderPaymentMethod, OrderStatus
from bookbuyback.orders.repositories import InMemoryOrderRepository
from bookbuyback.orders.services import OrderService

logger = get_logger(__name__)

ALL_EVENT_TYPES = [
    APPRAISAL_COMPLETED,
    USER_ROLE_ASSIGNED,
    USER_ROLE_REMOVED,
    *PURCHASE_REQUEST_EVENT_TYPES,
    *LISTING_EVENT_TYPES,
    *ORDER_EVENT_TYPES,
    *SHIPMENT_EVENT_TYPES,
]

# The seller agreed to the offer, so the books are ours to resell
_PURCHASED = {PurchaseRequestStatus.ACCEPTED, PurchaseRequestStatus.COMPLETED}


class SweepResult(BaseModel):
    """Outcome of one pass over time-based expiries"""

    expired_holds_released: int
    expired_checkouts_cancelled: int


class BuybackApp:
    """
    Used-book buyback main façade

    Provides a unified API over:
    - Roles, permissions and principals
    - Purchase requests (sellers sending books in)
    - Appraisal of received books
    - Resale listings and buyer orders
    - Warehouse fulfillment
    """

    def __init__(
        self,
        policy: BuybackPolicy | None = None,
        time_provider: TimeProvider | None = None,
        book_lookup: BookLookupService | None = None,
        carrier: CarrierAdapter | None = None,
    ) -> None:
        """
        Args:
            policy: Business parameters (defaults if None)
            time_provider: Clock (real time if None)
            book_lookup: ISBN catalogue (built-in static catalogue if None)
            carrier: Inbound label carrier (mock carrier if None)
        """
        self.policy = policy or BuybackPolicy()
        self.time_provider = time_provider or RealTimeProvider()

        # Infrastructure
        self.bus = EventBus(max_publish_depth=self.policy.max_publish_depth)
        self.event_log = EventLog()
        self.event_log.attach(self.bus, ALL_EVENT_TYPES)

        # Access control
        self.principals = InMemoryPrincipalDirectory()
        self.role_repository = InMemoryRoleRepository()
        self.assignment_repository = InMemoryRoleAssignmentRepository()
        self.authorization = AuthorizationEngine(
            self.role_repository, self.assignment_repository, self.time_provider
        )
        self.roles = RoleService(
            self.role_repository,
            self.assignment_repository,
            self.principals,
            self.bus,
            self.time_provider,
        )

        # Bounded contexts
        self.appraisal_repository = InMemoryAppraisalRepository()
        self.appraisals = AppraisalService(
            self.appraisal_repository,
            self.bus,
            book_lookup or StaticBookLookupService(),
            self.time_provider,
            self.policy,
        )
        self.purchase_requests = PurchaseRequestService(
            InMemoryPurchaseRequestRepository(),
            self.bus,
            carrier or MockCarrierAdapter(self.time_provider),
            time_provider=self.time_provider,
            policy=self.policy,
        )
        pricing = PricingService(self.policy)
        self.listings = ListingService(
            InMemoryListingRepository(),
            self.bus,
            pricing,
            self.time_provider,
            self.policy,
        )
        self.orders = OrderService(
            InMemoryOrderRepository(),
            LocalListingClient(self.listings),
            self.bus,
            pricing,
            self.time_provider,
            self.policy,
        )
        self.fulfillment = FulfillmentService(
            InMemoryShipmentRepository(), self.bus, self.time_provider
        )

        self._subscribe_handlers()

    def _subscribe_handlers(self) -> None:
        """Cross-context reactions"""
        self.bus.subscribe(APPRAISAL_COMPLETED, self.purchase_requests.handle_appraisal_completed)
        self.bus.subscribe(APPRAISAL_COMPLETED, self._list_on_appraisal)
        self.bus.subscribe(PURCHASE_REQUEST_ACCEPTED, self._list_on_acceptance)
        self.bus.subscribe(ORDER_CONFIRMED, self._create_shipment_for_order)
        self.bus.subscribe(SHIPMENT_DISPATCHED, self._mark_order_shipped)
        self.bus.subscribe(SHIPMENT_DELIVERED, self._mark_order_delivered)

    def _list_on_appraisal(self, event: DomainEvent) -> None:
        self._list_purchased_books(event.payload["purchase_request_id"])

    def _list_on_acceptance(self, event: DomainEvent) -> None:
        self._list_purchased_books(event.payload["request_id"])

    def _list_purchased_books(self, request_id: str) -> None:
        """
        Put a box's appraised books on sale once the seller has agreed

        An offer inside the estimate is accepted on the spot; anything else
        waits for the seller, and a rejected box is returned unlisted.
        """
        request = self.purchase_requests.get(request_id)
        if request.status not in _PURCHASED:
            logger.info(
                "Listing deferred until the seller decides",
                purchase_request_id=request_id,
                status=request.status.value,
            )
            return
        for appraisal in self.appraisal_repository.find_by_purchase_request_id(request_id):
            if appraisal.status == AppraisalStatus.COMPLETED:
                self.listings.handle_appraisal_completed(
                    appraisal.appraisal_id, request_id, appraisal.books
                )

    def _create_shipment_for_order(self, event: DomainEvent) -> None:
        self.fulfillment.create_shipment(
            event.payload["order_id"],
            Address.model_validate(event.payload["shipping_address"]),
        )

    def _mark_order_shipped(self, event: DomainEvent) -> None:
        self.orders.mark_shipped(
            event.payload["order_id"],
            event.payload["carrier"],
            event.payload["tracking_number"],
        )

    def _mark_order_delivered(self, event: DomainEvent) -> None:
        self.orders.mark_delivered(event.payload["order_id"])

    # Principals and roles

    def register_principal(self, principal: Principal) -> Principal:
        """Add a principal to the directory so roles can be assigned to it"""
        self.principals.save(principal)
        return principal

    @require_permissions(Permissions.ROLES_READ)
    def list_roles(self, actor_id: str) -> list[Role]:
        return self.roles.list_roles()

    @require_permissions(Permissions.ROLES_WRITE)
    def create_role(
        self,
        actor_id: str,
        name: str,
        permissions: list[str],
        applicable_user_types: list[str],
        description: str | None = None,
    ) -> Role:
        return self.roles.create_role(
            name=name,
            permissions=permissions,
            applicable_user_types=applicable_user_types,
            description=description,
        )

    @require_permissions(Permissions.ROLES_WRITE)
    def add_role_permission(self, actor_id: str, role_id: str, permission: str) -> Role:
        return self.roles.add_permission(role_id, permission)

    @require_permissions(Permissions.USERS_WRITE)
    def assign_role(self, actor_id: str, user_id: str, role_id: str) -> RoleAssignment:
        return self.roles.assign_role(user_id, role_id, assigned_by=actor_id)

    @require_permissions(Permissions.USERS_WRITE)
    def remove_role(self, actor_id: str, user_id: str, role_id: str) -> None:
        self.roles.remove_role(user_id, role_id, removed_by=actor_id)

    # Purchase requests

    @require_permissions(Permissions.PURCHASE_REQUESTS_WRITE)
    def create_purchase_request(
        self,
        actor_id: str,
        customer: Customer,
        *,
        quantity: int,
        category: str,
        condition: str,
        pickup_date: str | None = None,
        pickup_time_slot: str | None = None,
    ) -> PurchaseRequest:
        return self.purchase_requests.create(
            customer,
            quantity=quantity,
            category=category,
            condition=condition,
            pickup_date=pickup_date,
            pickup_time_slot=pickup_time_slot,
        )

    @require_permissions(Permissions.PURCHASE_REQUESTS_READ)
    def get_purchase_request(self, actor_id: str, request_id: str) -> PurchaseRequest:
        return self.purchase_requests.get(request_id)

    @require_permissions(Permissions.PURCHASE_REQUESTS_WRITE)
    def submit_purchase_request(self, actor_id: str, request_id: str) -> PurchaseRequest:
        return self.purchase_requests.submit(request_id)

    @require_any_permission(Permissions.FULFILLMENT_WRITE, Permissions.APPRAISALS_WRITE)
    def receive_purchase_request(self, actor_id: str, request_id: str) -> PurchaseRequest:
        return self.purchase_requests.mark_received(request_id)

    @require_permissions(Permissions.PURCHASE_REQUESTS_WRITE)
    def accept_offer(
        self, actor_id: str, request_id: str, payment_method: PaymentMethod | str
    ) -> PurchaseRequest:
        return self.purchase_requests.accept_offer(request_id, payment_method)

    @require_permissions(Permissions.PURCHASE_REQUESTS_WRITE)
    def reject_offer(self, actor_id: str, request_id: str) -> PurchaseRequest:
        return self.purchase_requests.reject_offer(request_id)

    # Appraisal

    @require_permissions(Permissions.APPRAISALS_WRITE)
    def start_appraisal(self, actor_id: str, purchase_request_id: str) -> Appraisal:
        self.purchase_requests.get(purchase_request_id)
        return self.appraisals.create(purchase_request_id)

    @require_permissions(Permissions.APPRAISALS_WRITE)
    def appraise_book(
        self, actor_id: str, appraisal_id: str, isbn: str, condition: Condition | str
    ) -> Appraisal:
        return self.appraisals.add_book(appraisal_id, isbn, condition)

    @require_permissions(Permissions.APPRAISALS_WRITE)
    def remove_appraised_book(self, actor_id: str, appraisal_id: str, isbn: str) -> Appraisal:
        return self.appraisals.remove_book(appraisal_id, isbn)

    @require_permissions(Permissions.APPRAISALS_WRITE)
    def complete_appraisal(self, actor_id: str, appraisal_id: str) -> Appraisal:
        return self.appraisals.complete(appraisal_id, actor_id=actor_id)

    # Listings

    @require_permissions(Permissions.LISTINGS_READ)
    def search_listings(
        self, actor_id: str, criteria: SearchCriteria | None = None
    ) -> SearchResult[Listing]:
        return self.listings.search(criteria)

    @require_permissions(Permissions.LISTINGS_WRITE)
    def withdraw_listing(self, actor_id: str, listing_id: str, reason: str | None = None) -> Listing:
        return self.listings.withdraw(listing_id, reason)

    # Orders

    @require_permissions(Permissions.ORDERS_WRITE)
    def create_order(
        self,
        actor_id: str,
        shipping_address: Address,
        listing_ids: list[str] | None = None,
    ) -> Order:
        """Open an order for the acting principal, optionally filling it"""
        order = self.orders.create(actor_id, shipping_address)
        for listing_id in listing_ids or []:
            order = self.orders.add_line_item(order.order_id, listing_id)
        return order

    @require_permissions(Permissions.ORDERS_READ)
    def get_order(self, actor_id: str, order_id: str) -> Order:
        return self.orders.get(order_id)

    @require_permissions(Permissions.ORDERS_WRITE)
    def add_to_order(self, actor_id: str, order_id: str, listing_id: str) -> Order:
        return self.orders.add_line_item(order_id, listing_id)

    @require_permissions(Permissions.ORDERS_WRITE)
    def checkout(self, actor_id: str, order_id: str) -> Order:
        return self.orders.checkout(order_id)

    @require_permissions(Permissions.ORDERS_WRITE)
    def pay_order(
        self,
        actor_id: str,
        order_id: str,
        method: OrderPaymentMethod | str,
        transaction_id: str,
    ) -> Order:
        return self.orders.process_payment(order_id, method, transaction_id)

    @require_any_permission(Permissions.ORDERS_CANCEL, Permissions.ORDERS_WRITE)
    def cancel_order(self, actor_id: str, order_id: str, reason: str | None = None) -> Order:
        return self.orders.cancel(order_id, reason)

    # Fulfillment

    @require_permissions(Permissions.FULFILLMENT_READ)
    def get_shipment_for_order(self, actor_id: str, order_id: str) -> Shipment | None:
        return self.fulfillment.get_by_order_id(order_id)

    def _require_live_order(self, shipment_id: str) -> None:
        """
        Raises:
            ShipmentNotFound: If the shipment does not exist
            InvariantViolation: If its order was cancelled after confirmation
        """
        shipment = self.fulfillment.get(shipment_id)
        if self.orders.get(shipment.order_id).status == OrderStatus.CANCELLED:
            raise InvariantViolation(
                f"Order {shipment.order_id} was cancelled; shipment {shipment_id} must not leave"
            )

    @require_permissions(Permissions.FULFILLMENT_WRITE)
    def start_picking(self, actor_id: str, shipment_id: str) -> Shipment:
        self._require_live_order(shipment_id)
        return self.fulfillment.start_picking(shipment_id)

    @require_permissions(Permissions.FULFILLMENT_WRITE)
    def pack_shipment(self, actor_id: str, shipment_id: str) -> Shipment:
        self._require_live_order(shipment_id)
        return self.fulfillment.mark_packed(shipment_id)

    @require_permissions(Permissions.FULFILLMENT_WRITE)
    def dispatch_shipment(
        self, actor_id: str, shipment_id: str, carrier: Carrier | str, tracking_number: str
    ) -> Shipment:
        self._require_live_order(shipment_id)
        return self.fulfillment.dispatch(shipment_id, carrier, tracking_number)

    @require_permissions(Permissions.FULFILLMENT_WRITE)
    def mark_shipment_in_transit(self, actor_id: str, shipment_id: str) -> Shipment:
        return self.fulfillment.update_in_transit(shipment_id)

    @require_permissions(Permissions.FULFILLMENT_WRITE)
    def mark_shipment_delivered(self, actor_id: str, shipment_id: str) -> Shipment:
        return self.fulfillment.mark_delivered(shipment_id)

    # Time-based expiry

    def sweep_expired(self) -> SweepResult:
        """
        Release lapsed listing holds and cancel stale checkouts

        Meant to be run periodically by a scheduler.
        """
        cancelled = self.orders.release_expired_checkouts()
        released = self.listings.release_expired_holds()
        result = SweepResult(
            expired_holds_released=released,
            expired_checkouts_cancelled=cancelled,
        )
        logger.info("Expiry sweep finished", **result.model_dump())
        return result
