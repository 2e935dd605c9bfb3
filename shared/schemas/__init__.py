"""Pipeline record schemas"""

from .violation import (
    CapturedImage,
    Classification,
    DeadLetterErrorType,
    DeadLetterRecord,
    EnrichedViolation,
    NotificationMessage,
    Owner,
    ProcessingOutcome,
    TextDetection,
    VehicleRecord,
    ViolationEvent,
    ViolationMetadata,
)

__all__ = [
    "CapturedImage", "Classification", "DeadLetterErrorType", "DeadLetterRecord",
    "EnrichedViolation", "NotificationMessage", "Owner", "ProcessingOutcome",
    "TextDetection", "VehicleRecord", "ViolationEvent", "ViolationMetadata",
]
