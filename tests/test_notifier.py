"""Tests for fines, notice formatting and the notification stage."""

import pytest

from services.notifier.fines import FineSchedule
from services.notifier.notice import NOTICE_SUBJECT, format_notice, render_timestamp
from shared.errors import UnknownViolationTypeError
from shared.schemas.violation import (
    DeadLetterErrorType,
    EnrichedViolation,
    ProcessingOutcome,
    parse_timestamp,
)

EXPECTED_NOTICE = (
    "Hello J Doe,\n"
    "Your vehicle was involved in a traffic violation. Please pay the specified ticket amount by 30 days:\n"
    "Vehicle: Blue Toyota Camry\n"
    "License plate: 3ABC123\n"
    "Date: 5/1/2024, 3:00:00 AM\n"
    "Violation address: Main St and 116th AVE intersection, Bellevue\n"
    "Violation type: no_stop\n"
    "Ticket amount: $300"
)


@pytest.fixture
def enriched(violation_event, vehicle_record):
    return EnrichedViolation.from_parts(violation_event, vehicle_record)


def enqueue(queue, violation, dedup_id=None):
    queue.send(violation.model_dump_json(), group_id="ticketing", dedup_id=dedup_id or violation.dedup_id())


class TestFineSchedule:
    @pytest.mark.parametrize("violation_type, amount", [
        ("no_stop", 300),
        ("no_full_stop_on_right", 75),
        ("no_right_on_red", 125),
    ])
    def test_default_amounts(self, violation_type, amount):
        assert FineSchedule().amount_for(violation_type) == amount

    def test_unknown_type_raises(self):
        with pytest.raises(UnknownViolationTypeError) as exc_info:
            FineSchedule().amount_for("jaywalking")

        assert exc_info.value.violation_type == "jaywalking"

    def test_custom_schedule(self):
        schedule = FineSchedule({"speeding": 200})

        assert schedule.amount_for("speeding") == 200
        assert "no_stop" not in schedule
        assert schedule.violation_types() == ["speeding"]

    @pytest.mark.parametrize("fines", [{}, {"no_stop": -1}])
    def test_invalid_schedule(self, fines):
        with pytest.raises(ValueError):
            FineSchedule(fines)


class TestRenderTimestamp:
    @pytest.mark.parametrize("timestamp, rendered", [
        ("2024-05-01T10:00:00Z", "5/1/2024, 3:00:00 AM"),       # PDT
        ("2024-01-15T22:30:05Z", "1/15/2024, 2:30:05 PM"),      # PST
        ("2024-01-01T08:00:00Z", "1/1/2024, 12:00:00 AM"),
        ("2024-07-04T19:05:09.123Z", "7/4/2024, 12:05:09 PM"),
    ])
    def test_reference_zone(self, timestamp, rendered):
        assert render_timestamp(parse_timestamp(timestamp)) == rendered

    def test_other_zone(self):
        assert render_timestamp(parse_timestamp("2024-05-01T10:00:00Z"), "UTC") == "5/1/2024, 10:00:00 AM"


class TestFormatNotice:
    def test_exact_body(self, enriched):
        notice = format_notice(enriched, 300)

        assert notice.body == EXPECTED_NOTICE
        assert notice.recipient_contact == "j@x.com"
        assert notice.subject == NOTICE_SUBJECT


class TestNotifierService:
    def test_publishes_notice(self, notifier, enriched_queue, enriched, channel, dead_letters):
        enqueue(enriched_queue, enriched)

        assert notifier.poll_once() is ProcessingOutcome.PUBLISHED

        [notice] = channel.messages
        assert notice.body == EXPECTED_NOTICE
        assert len(enriched_queue) == 0
        assert dead_letters.records == []

    @pytest.mark.parametrize("violation_type, amount", [
        ("no_full_stop_on_right", 75),
        ("no_right_on_red", 125),
    ])
    def test_amount_follows_violation_type(self, notifier, enriched_queue, enriched, channel, violation_type, amount):
        violation = EnrichedViolation(**{**enriched.model_dump(), "violation_type": violation_type})
        enqueue(enriched_queue, violation)

        notifier.poll_once()

        assert channel.messages[0].body.endswith(f"Ticket amount: ${amount}")

    def test_unknown_violation_type(self, notifier, enriched_queue, enriched, channel, dead_letters):
        violation = EnrichedViolation(**{**enriched.model_dump(), "violation_type": "jaywalking"})
        enqueue(enriched_queue, violation)

        assert notifier.poll_once() is ProcessingOutcome.UNKNOWN_VIOLATION_TYPE

        assert channel.messages == []
        assert len(enriched_queue) == 0
        [record] = dead_letters.records
        assert record.error_type is DeadLetterErrorType.UNKNOWN_VIOLATION_TYPE
        assert record.stage == "notifier"

    def test_publish_failure_is_retried(self, notifier, enriched_queue, enriched, channel, clock):
        channel.fail_next = 1
        enqueue(enriched_queue, enriched)

        assert notifier.poll_once() is ProcessingOutcome.RETRY
        assert len(enriched_queue) == 1
        assert channel.messages == []

        clock.advance(31)

        assert notifier.poll_once() is ProcessingOutcome.PUBLISHED
        assert len(channel.messages) == 1
        assert len(enriched_queue) == 0

    def test_redelivered_notice_is_not_sent_twice(self, notifier, enriched_queue, enriched, channel, clock):
        enqueue(enriched_queue, enriched)
        notifier.poll_once()

        # Past the queue's dedup window, inside the notifier's duplicate window
        clock.advance(301)
        enqueue(enriched_queue, enriched)

        assert notifier.poll_once() is ProcessingOutcome.DUPLICATE
        assert len(channel.messages) == 1
        assert len(enriched_queue) == 0

    def test_notice_sent_again_after_duplicate_window(self, notifier, enriched_queue, enriched, channel, clock):
        enqueue(enriched_queue, enriched)
        notifier.poll_once()

        clock.advance(3601)
        enqueue(enriched_queue, enriched)

        assert notifier.poll_once() is ProcessingOutcome.PUBLISHED
        assert len(channel.messages) == 2

    def test_malformed_message(self, notifier, enriched_queue, violation_event, dead_letters):
        # A plain violation event lacks the vehicle fields
        enriched_queue.send(violation_event.model_dump_json(), group_id="ticketing", dedup_id="x")

        assert notifier.poll_once() is ProcessingOutcome.MALFORMED
        assert dead_letters.records[0].error_type is DeadLetterErrorType.MALFORMED_MESSAGE

    def test_without_duplicate_window(self, enriched_queue, channel, enriched, clock):
        from services.notifier.notifier_service import TicketNotifierService

        notifier = TicketNotifierService(enriched_queue, channel, wait_time_seconds=0)
        enqueue(enriched_queue, enriched)
        notifier.poll_once()
        clock.advance(301)
        enqueue(enriched_queue, enriched)

        assert notifier.poll_once() is ProcessingOutcome.PUBLISHED
        assert len(channel.messages) == 2