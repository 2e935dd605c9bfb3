"""Collaborator interfaces and adapters for the ticketing pipeline"""

from .base import (
    DeadLetterSink,
    EventBus,
    MessageQueue,
    NotificationChannel,
    ObjectStore,
    QueueMessage,
    TextDetector,
    VehicleRegistry,
)
from .dead_letter import InMemoryDeadLetterSink, LogDeadLetterSink, QueueDeadLetterSink
from .memory import (
    InMemoryChannel,
    InMemoryEventBus,
    InMemoryFifoQueue,
    InMemoryObjectStore,
    StaticTextDetector,
)
from .registry import InMemoryVehicleRegistry, XmlVehicleRegistry

__all__ = [
    'DeadLetterSink', 'EventBus', 'MessageQueue', 'NotificationChannel', 'ObjectStore',
    'QueueMessage', 'TextDetector', 'VehicleRegistry',
    'InMemoryDeadLetterSink', 'LogDeadLetterSink', 'QueueDeadLetterSink',
    'InMemoryChannel', 'InMemoryEventBus', 'InMemoryFifoQueue', 'InMemoryObjectStore',
    'StaticTextDetector', 'InMemoryVehicleRegistry', 'XmlVehicleRegistry',
]
