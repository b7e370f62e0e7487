"""
Inbound carrier adapter - prepaid labels for sellers' boxes

The carrier is an external system. Calls go through the service, which
retries transient failures; the adapter itself never retries.
"""

from datetime import datetime
from typing import Protocol

from pydantic import BaseModel

from bookbuyback.intake.models import CustomerAddress
from bookbuyback.kernel.time import RealTimeProvider, TimeProvider

MOCK_LABEL_URL = "https://mock-carrier.example.com/labels/{tracking_number}.pdf"


class ShippingLabel(BaseModel):
    tracking_number: str
    label_url: str
    carrier: str

    model_config = {"frozen": True}


class TrackingEvent(BaseModel):
    status: str  # label_created | in_transit | out_for_delivery | delivered
    timestamp: datetime
    location: str | None = None


class CarrierAdapter(Protocol):
    def generate_label(self, address: CustomerAddress) -> ShippingLabel: ...

    def get_tracking_status(self, tracking_number: str) -> list[TrackingEvent]: ...

    def schedule_return(self, tracking_number: str) -> ShippingLabel: ...


class MockCarrierAdapter:
    """Deterministic carrier used by the demo and the tests"""

    def __init__(self, time_provider: TimeProvider | None = None) -> None:
        self.time_provider = time_provider or RealTimeProvider()
        self._sequence = 0

    def _label(self, tracking_number: str) -> ShippingLabel:
        return ShippingLabel(
            tracking_number=tracking_number,
            label_url=MOCK_LABEL_URL.format(tracking_number=tracking_number),
            carrier="mock",
        )

    def generate_label(self, address: CustomerAddress) -> ShippingLabel:
        self._sequence += 1
        stamp = int(self.time_provider.now().timestamp() * 1000)
        return self._label(f"MOCK{stamp}{self._sequence:04d}")

    def get_tracking_status(self, tracking_number: str) -> list[TrackingEvent]:
        return [TrackingEvent(status="label_created", timestamp=self.time_provider.now())]

    def schedule_return(self, tracking_number: str) -> ShippingLabel:
        return self._label(f"RET{tracking_number}")
