"""
Violation Schema Definitions
Pydantic models for the records that flow between the ticketing stages
"""

import re
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from shared.utils.dedup import content_dedup_id

# Jurisdiction plate grammar: one digit, three letters, three digits (e.g. 3ABC123)
PLATE_GRAMMAR = re.compile(r'^[0-9][A-Z]{3}[0-9]{3}$')


def parse_timestamp(value: str) -> datetime:
    """
    Parse an ISO 8601 timestamp, accepting the trailing 'Z' UTC designator

    Naive timestamps are taken to be UTC.
    """
    text = value.strip()
    if text.endswith(('Z', 'z')):
        text = text[:-1] + '+00:00'
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class TextDetection(BaseModel):
    """One token returned by the text detector, in detector order"""
    text: str
    confidence: float = 0.0  # Reported by the detector, never consulted by the classifier


class ViolationMetadata(BaseModel):
    """Violation details attached to an image at capture time"""
    model_config = ConfigDict(frozen=True)

    violation_type: str = Field(..., min_length=1)
    timestamp: str = Field(..., description="ISO 8601 capture time, kept verbatim")
    location: str

    @field_validator('timestamp')
    @classmethod
    def validate_timestamp(cls, v):
        parse_timestamp(v)
        return v


class CapturedImage(BaseModel):
    """Stored image plus the metadata written by the capture helper"""
    model_config = ConfigDict(frozen=True)

    bucket: str
    key: str
    metadata: ViolationMetadata
    data: bytes = b''


class Classification(BaseModel):
    """Jurisdiction classification derived from a detection result"""
    model_config = ConfigDict(frozen=True)

    plate_number: str = ''
    is_in_jurisdiction: bool = False

    @model_validator(mode='after')
    def validate_jurisdiction_plate(self):
        """An in-jurisdiction result always carries a grammar-valid plate"""
        if self.is_in_jurisdiction and not PLATE_GRAMMAR.match(self.plate_number):
            raise ValueError(
                f"In-jurisdiction classification requires a plate matching "
                f"{PLATE_GRAMMAR.pattern}, got {self.plate_number!r}"
            )
        return self


class ViolationEvent(BaseModel):
    """
    Plate-and-violation event built by the router

    This is the unit of work carried on the violations queue (in jurisdiction)
    or on the event bus (out of jurisdiction, where the plate may be empty).
    """
    model_config = ConfigDict(frozen=True)

    plate: str = ''
    violation_type: str = Field(..., min_length=1)
    timestamp: str
    location: str
    image_key: str

    @field_validator('timestamp')
    @classmethod
    def validate_timestamp(cls, v):
        parse_timestamp(v)
        return v

    @classmethod
    def from_classification(
        cls,
        classification: Classification,
        metadata: ViolationMetadata,
        image_key: str,
    ) -> 'ViolationEvent':
        return cls(
            plate=classification.plate_number,
            violation_type=metadata.violation_type,
            timestamp=metadata.timestamp,
            location=metadata.location,
            image_key=image_key,
        )

    def dedup_id(self) -> str:
        """
        Deterministic deduplication id derived from the violation content

        Identical content always yields the same id, so a retried invocation
        is suppressed by the queue's deduplication window.
        """
        return content_dedup_id(
            self.plate,
            self.violation_type,
            self.timestamp,
            self.location,
            self.image_key,
        )

    def occurred_at(self) -> datetime:
        return parse_timestamp(self.timestamp)


class Owner(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    contact: str


class VehicleRecord(BaseModel):
    """Registry entry for one vehicle (read-only reference data)"""
    model_config = ConfigDict(frozen=True)

    plate: str
    make: str
    model: str
    color: str
    owner: Owner


class EnrichedViolation(ViolationEvent):
    """
    Violation event augmented with vehicle and owner data

    Only exists when a registry record was found for the event's plate.
    """
    make: str
    model: str
    color: str
    owner: Owner

    @classmethod
    def from_parts(cls, event: ViolationEvent, record: VehicleRecord) -> 'EnrichedViolation':
        """Merge registry fields with violation fields (violation fields win on collision)"""
        merged = record.model_dump()
        merged.update(event.model_dump())
        return cls(**merged)

    def vehicle_description(self) -> str:
        return f"{self.color} {self.make} {self.model}"


class NotificationMessage(BaseModel):
    """Plain-text notice addressed to a vehicle owner"""
    model_config = ConfigDict(frozen=True)

    recipient_contact: str
    body: str
    subject: Optional[str] = None


class DeadLetterErrorType(str, Enum):
    NOT_FOUND = 'NOT_FOUND'
    UNKNOWN_VIOLATION_TYPE = 'UNKNOWN_VIOLATION_TYPE'
    MALFORMED_MESSAGE = 'MALFORMED_MESSAGE'
    MAX_RECEIVES_EXCEEDED = 'MAX_RECEIVES_EXCEEDED'


class DeadLetterRecord(BaseModel):
    """Envelope for a message that a stage could not turn into output"""
    dlq_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    stage: str
    source_queue: str
    error_type: DeadLetterErrorType
    error_message: str
    original_message: str
    receive_count: int = 1


class ProcessingOutcome(str, Enum):
    """Tagged result of one poll iteration of a queue worker"""
    PUBLISHED = 'published'
    NOT_FOUND = 'not_found'
    UNKNOWN_VIOLATION_TYPE = 'unknown_violation_type'
    MALFORMED = 'malformed'
    DEAD_LETTERED = 'dead_lettered'
    DUPLICATE = 'duplicate'
    RETRY = 'retry'
    EMPTY = 'empty'
