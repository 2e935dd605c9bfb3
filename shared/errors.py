"""
Ticketing Pipeline Errors
Exception hierarchy shared by every pipeline stage
"""

from typing import Optional


class TicketingError(Exception):
    """Base class for all pipeline errors"""


class PayloadValidationError(TicketingError):
    """
    Trigger payload or image metadata is malformed

    Always fatal to the invocation that received it (e.g. a storage
    notification without records, or an image missing its violation metadata).
    """


class LookupMiss(TicketingError):
    """Plate is not present in the vehicle registry"""

    def __init__(self, plate: str):
        super().__init__(f"No vehicle registered for plate {plate!r}")
        self.plate = plate


class UnknownViolationTypeError(TicketingError):
    """Violation type has no entry in the fine schedule"""

    def __init__(self, violation_type: str):
        super().__init__(f"No fine defined for violation type {violation_type!r}")
        self.violation_type = violation_type


class CollaboratorError(TicketingError):
    """
    A call to an external collaborator failed

    Queues, event bus, registry, object store, text detector and
    notification channel adapters wrap their client errors in this type.
    Workers treat it as transient and leave the message for redelivery.
    """

    def __init__(self, collaborator: str, message: str, cause: Optional[BaseException] = None):
        super().__init__(f"{collaborator}: {message}")
        self.collaborator = collaborator
        self.cause = cause
