"""
Pytest configuration and shared fixtures

Every fixture builds fresh in-memory state, so no test can see another
test's entities, subscriptions or role assignments.

Fun fact: The name "conftest" comes from pytest's configuration testing
framework. Files named conftest.py are automatically discovered and their
fixtures are available to all tests in the same directory and subdirectories!
"""

from datetime import datetime, timezone

import pytest

from bookbuyback.access.engine import AuthorizationEngine
from bookbuyback.access.repositories import (
    InMemoryPrincipalDirectory,
    InMemoryRoleAssignmentRepository,
    InMemoryRoleRepository,
)
from bookbuyback.access.services import RoleService
from bookbuyback.app import BuybackApp
from bookbuyback.appraisal.lookup import StaticBookLookupService
from bookbuyback.appraisal.repositories import InMemoryAppraisalRepository
from bookbuyback.appraisal.services import AppraisalService
from bookbuyback.fulfillment.repositories import InMemoryShipmentRepository
from bookbuyback.fulfillment.services import FulfillmentService
from bookbuyback.intake.carrier import MockCarrierAdapter
from bookbuyback.intake.repositories import InMemoryPurchaseRequestRepository
from bookbuyback.intake.services import PurchaseRequestService
from bookbuyback.kernel.bus import EventBus
from bookbuyback.kernel.event_log import EventLog
from bookbuyback.kernel.settings import BuybackPolicy
from bookbuyback.kernel.time import TestTimeProvider
from bookbuyback.listing.repositories import InMemoryListingRepository
from bookbuyback.listing.services import ListingService
from bookbuyback.orders.listings import LocalListingClient
from bookbuyback.orders.repositories import InMemoryOrderRepository
from bookbuyback.orders.services import OrderService


@pytest.fixture
def test_time() -> TestTimeProvider:
    """
    Provide a controllable time provider for deterministic tests

    Default time: 2025-01-15 12:00:00 UTC
    """
    return TestTimeProvider(datetime(2025, 1, 15, 12, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def policy() -> BuybackPolicy:
    """Default production price book"""
    return BuybackPolicy()


@pytest.fixture
def bus(policy: BuybackPolicy) -> EventBus:
    return EventBus(max_publish_depth=policy.max_publish_depth)


@pytest.fixture
def event_log(bus: EventBus) -> EventLog:
    """
    Event log attached to every event type the services publish

    Tests assert on what was published by reading this log.
    """
    from bookbuyback.app import ALL_EVENT_TYPES

    log = EventLog()
    log.attach(bus, ALL_EVENT_TYPES)
    return log


# =============================================================================
# Access Fixtures
# =============================================================================


@pytest.fixture
def role_repository() -> InMemoryRoleRepository:
    """Role store seeded with the seven system roles"""
    return InMemoryRoleRepository()


@pytest.fixture
def assignment_repository() -> InMemoryRoleAssignmentRepository:
    return InMemoryRoleAssignmentRepository()


@pytest.fixture
def principals() -> InMemoryPrincipalDirectory:
    return InMemoryPrincipalDirectory()


@pytest.fixture
def authorization(role_repository, assignment_repository, test_time) -> AuthorizationEngine:
    return AuthorizationEngine(role_repository, assignment_repository, test_time)


@pytest.fixture
def role_service(role_repository, assignment_repository, principals, bus, test_time) -> RoleService:
    return RoleService(role_repository, assignment_repository, principals, bus, test_time)


# =============================================================================
# Bounded Context Fixtures
# =============================================================================


@pytest.fixture
def book_lookup() -> StaticBookLookupService:
    """Catalogue with Clean Code (10.00) and Design Patterns (15.00)"""
    return StaticBookLookupService()


@pytest.fixture
def appraisal_service(bus, book_lookup, test_time, policy) -> AppraisalService:
    return AppraisalService(InMemoryAppraisalRepository(), bus, book_lookup, test_time, policy)


@pytest.fixture
def carrier(test_time) -> MockCarrierAdapter:
    return MockCarrierAdapter(test_time)


@pytest.fixture
def purchase_request_service(bus, carrier, test_time, policy) -> PurchaseRequestService:
    return PurchaseRequestService(
        InMemoryPurchaseRequestRepository(),
        bus,
        carrier,
        time_provider=test_time,
        policy=policy,
    )


@pytest.fixture
def fulfillment_service(bus, test_time) -> FulfillmentService:
    return FulfillmentService(InMemoryShipmentRepository(), bus, test_time)


@pytest.fixture
def listing_repository() -> InMemoryListingRepository:
    return InMemoryListingRepository()


@pytest.fixture
def listing_service(listing_repository, bus, test_time, policy) -> ListingService:
    return ListingService(listing_repository, bus, time_provider=test_time, policy=policy)


@pytest.fixture
def order_service(listing_service, bus, test_time, policy) -> OrderService:
    return OrderService(
        InMemoryOrderRepository(),
        LocalListingClient(listing_service),
        bus,
        time_provider=test_time,
        policy=policy,
    )


@pytest.fixture
def app(test_time) -> BuybackApp:
    """Fully wired system on a controllable clock"""
    return BuybackApp(time_provider=test_time)
