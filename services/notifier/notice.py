"""
Ticket notice formatting
"""

from datetime import datetime
from zoneinfo import ZoneInfo

from shared.schemas.violation import EnrichedViolation, NotificationMessage

# Notices render every violation time in one reference zone, not the violation's local zone
REFERENCE_TIME_ZONE = 'America/Los_Angeles'

NOTICE_SUBJECT = 'Traffic violation notice'

NOTICE_TEMPLATE = (
    "Hello {owner_name},\n"
    "Your vehicle was involved in a traffic violation. "
    "Please pay the specified ticket amount by 30 days:\n"
    "Vehicle: {vehicle}\n"
    "License plate: {plate}\n"
    "Date: {date}\n"
    "Violation address: {location}\n"
    "Violation type: {violation_type}\n"
    "Ticket amount: ${amount}"
)


def render_timestamp(moment: datetime, time_zone: str = REFERENCE_TIME_ZONE) -> str:
    """Render as e.g. '5/1/2024, 3:00:00 AM' in the given zone"""
    local = moment.astimezone(ZoneInfo(time_zone))
    hour = local.hour % 12 or 12
    meridiem = 'AM' if local.hour < 12 else 'PM'
    return (
        f"{local.month}/{local.day}/{local.year}, "
        f"{hour}:{local.minute:02d}:{local.second:02d} {meridiem}"
    )


def format_notice(
    violation: EnrichedViolation,
    amount: int,
    time_zone: str = REFERENCE_TIME_ZONE,
) -> NotificationMessage:
    """Build the owner notice for an enriched violation and its fine"""
    body = NOTICE_TEMPLATE.format(
        owner_name=violation.owner.name,
        vehicle=violation.vehicle_description(),
        plate=violation.plate,
        date=render_timestamp(violation.occurred_at(), time_zone),
        location=violation.location,
        violation_type=violation.violation_type,
        amount=amount,
    )
    return NotificationMessage(
        recipient_contact=violation.owner.contact,
        body=body,
        subject=NOTICE_SUBJECT,
    )
