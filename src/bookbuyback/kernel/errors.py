"""
Custom exceptions for bookbuyback

A small, typed hierarchy so callers can branch on the kind of failure
(bad input, illegal transition, missing aggregate, denied access) without
matching on message strings.
"""


class BuybackError(Exception):
    """Base exception for all bookbuyback errors"""

    pass


class ValidationError(BuybackError):
    """
    Raised when a constructor or factory receives malformed input

    Examples: empty role name, malformed permission string, negative money.
    Never retried - the caller has to fix the input.
    """

    pass


class DomainError(BuybackError):
    """Base class for violations of domain rules on an existing entity"""

    pass


class InvalidTransition(DomainError):
    """
    Raised when a lifecycle transition is attempted from a status that
    does not permit it

    The message always names the current status so the caller can tell
    where the entity actually is.
    """

    def __init__(self, entity: str, action: str, current_status: str) -> None:
        self.entity = entity
        self.action = action
        self.current_status = current_status
        super().__init__(f"Cannot {action}: current status is {current_status}")


class InvariantViolation(DomainError):
    """
    Raised when a structural rule of an entity would be broken

    Example: completing an appraisal that owns no books.
    """

    pass


class NotFoundError(BuybackError):
    """Raised by services when a referenced aggregate does not exist"""

    entity = "Entity"

    def __init__(self, entity_id: str) -> None:
        self.entity_id = entity_id
        super().__init__(f"{self.entity} {entity_id} not found")


class AppraisalNotFound(NotFoundError):
    entity = "Appraisal"


class BookNotFound(NotFoundError):
    entity = "Book"


class ShipmentNotFound(NotFoundError):
    entity = "Shipment"


class PurchaseRequestNotFound(NotFoundError):
    entity = "Purchase request"


class OrderNotFound(NotFoundError):
    entity = "Order"


class ListingNotFound(NotFoundError):
    entity = "Listing"


class RoleNotFound(NotFoundError):
    entity = "Role"


class PrincipalNotFound(NotFoundError):
    entity = "Principal"


class DuplicateRoleName(ValidationError):
    """Raised when a role name is already taken (case-insensitive)"""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Role with name '{name}' already exists")


class AuthorizationDenied(BuybackError):
    """
    Raised at the enforcement boundary when a principal lacks a permission

    The authorization engine itself only answers yes/no; this exception is
    the 403-equivalent produced by the guards that act on that answer.
    """

    def __init__(self, principal_id: str, missing: list[str]) -> None:
        self.principal_id = principal_id
        self.missing = missing
        if len(missing) == 1:
            detail = f'missing permission "{missing[0]}"'
        else:
            detail = "insufficient permissions"
        super().__init__(f"Forbidden: {detail}")


class EventCycleDetected(BuybackError):
    """Raised when nested event publishing exceeds the configured depth"""

    def __init__(self, event_type: str, depth: int) -> None:
        self.event_type = event_type
        self.depth = depth
        super().__init__(
            f"Publishing {event_type} exceeded maximum nested publish depth {depth} - "
            "a subscriber is probably re-publishing into its own chain"
        )


class HoldNotOwned(DomainError):
    """Raised when an order acts on a listing reserved by someone else"""

    def __init__(self, listing_id: str, order_id: str, holder: str | None) -> None:
        self.listing_id = listing_id
        self.order_id = order_id
        self.holder = holder
        super().__init__(f"Listing {listing_id} is not held by order {order_id}")
