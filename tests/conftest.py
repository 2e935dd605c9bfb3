"""Shared fixtures for the ticketing pipeline tests.

Every stage is wired to in-memory collaborators; visibility timeouts and
dedup windows run on a manually advanced clock.
"""

import pytest

from services.detector.router import ViolationRouter
from services.detector.detector_service import ViolationDetectorService
from services.enricher.enricher_service import VehicleEnricherService
from services.notifier.notifier_service import TicketNotifierService
from shared.collaborators import (
    InMemoryChannel,
    InMemoryDeadLetterSink,
    InMemoryEventBus,
    InMemoryFifoQueue,
    InMemoryObjectStore,
    InMemoryVehicleRegistry,
    StaticTextDetector,
)
from shared.schemas.violation import Owner, VehicleRecord, ViolationEvent
from shared.utils.dedup_window import DedupWindow

BUCKET = "violation-captures"


class FakeClock:
    """Monotonic clock advanced by hand."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def vehicle_record():
    return VehicleRecord(
        plate="3ABC123",
        make="Toyota",
        model="Camry",
        color="Blue",
        owner=Owner(name="J Doe", contact="j@x.com"),
    )


@pytest.fixture
def violation_event():
    return ViolationEvent(
        plate="3ABC123",
        violation_type="no_stop",
        timestamp="2024-05-01T10:00:00Z",
        location="Main St and 116th AVE intersection, Bellevue",
        image_key="capture-001.jpg",
    )


@pytest.fixture
def capture_metadata():
    return {
        "violation": "no_stop",
        "time": "2024-05-01T10:00:00Z",
        "location": "Main St and 116th AVE intersection, Bellevue",
    }


@pytest.fixture
def violations_queue(clock):
    return InMemoryFifoQueue("violations.fifo", visibility_timeout=30, clock=clock)


@pytest.fixture
def enriched_queue(clock):
    return InMemoryFifoQueue("enriched.fifo", visibility_timeout=30, clock=clock)


@pytest.fixture
def dead_letters():
    return InMemoryDeadLetterSink()


@pytest.fixture
def event_bus():
    return InMemoryEventBus()


@pytest.fixture
def channel():
    return InMemoryChannel()


@pytest.fixture
def registry(vehicle_record):
    return InMemoryVehicleRegistry([vehicle_record])


@pytest.fixture
def object_store():
    return InMemoryObjectStore()


@pytest.fixture
def text_detector():
    return StaticTextDetector()


@pytest.fixture
def router(violations_queue, event_bus):
    return ViolationRouter(violations_queue, event_bus)


@pytest.fixture
def detector(object_store, text_detector, router):
    return ViolationDetectorService(object_store, text_detector, router)


@pytest.fixture
def enricher(violations_queue, enriched_queue, registry, dead_letters):
    return VehicleEnricherService(
        violations_queue,
        enriched_queue,
        registry,
        dead_letter_sink=dead_letters,
        wait_time_seconds=0,
        max_receive_count=3,
    )


@pytest.fixture
def notifier(enriched_queue, channel, dead_letters, clock):
    return TicketNotifierService(
        enriched_queue,
        channel,
        dead_letter_sink=dead_letters,
        duplicate_window=DedupWindow(window_seconds=3600, clock=clock),
        wait_time_seconds=0,
        max_receive_count=3,
    )


def storage_notification(*keys, bucket=BUCKET):
    """Build an S3-style storage notification for the given object keys."""
    return {
        "Records": [
            {"s3": {"bucket": {"name": bucket}, "object": {"key": key}}}
            for key in keys
        ]
    }


@pytest.fixture
def make_notification():
    return storage_notification
