"""Tests for the enrichment stage."""

import pytest

from services.enricher.enricher_service import VehicleEnricherService
from shared.collaborators.base import VehicleRegistry
from shared.collaborators.memory import InMemoryFifoQueue
from shared.errors import CollaboratorError
from shared.schemas.violation import (
    DeadLetterErrorType,
    EnrichedViolation,
    ProcessingOutcome,
    ViolationEvent,
)


class UnavailableRegistry(VehicleRegistry):
    def lookup(self, plate):
        raise CollaboratorError("vehicle-registry", "Cannot read data/dmv_database.xml")


class RejectingQueue(InMemoryFifoQueue):
    def send(self, body, group_id, dedup_id):
        raise CollaboratorError(self.name, "send_message failed")


def enqueue(queue, event: ViolationEvent):
    queue.send(event.model_dump_json(), group_id="ticketing", dedup_id=event.dedup_id())


class TestRegisteredPlate:
    def test_publishes_enriched_violation(self, enricher, violations_queue, enriched_queue, violation_event, dead_letters):
        enqueue(violations_queue, violation_event)

        assert enricher.poll_once() is ProcessingOutcome.PUBLISHED

        assert len(violations_queue) == 0
        [body] = enriched_queue.bodies()
        enriched = EnrichedViolation.model_validate_json(body)
        assert enriched.plate == "3ABC123"
        assert enriched.violation_type == "no_stop"
        assert enriched.timestamp == "2024-05-01T10:00:00Z"
        assert enriched.make == "Toyota"
        assert enriched.owner.contact == "j@x.com"
        assert dead_letters.records == []

    def test_output_uses_content_dedup_id(self, enricher, violations_queue, enriched_queue, violation_event):
        # Same violation arriving twice under different message ids yields one enriched message
        enqueue(violations_queue, violation_event)
        violations_queue.send(violation_event.model_dump_json(), group_id="ticketing", dedup_id="replayed")
        enricher.poll_once()
        enricher.poll_once()

        assert len(violations_queue) == 0
        assert len(enriched_queue) == 1


class TestUnregisteredPlate:
    def test_not_found_is_dead_lettered(self, enricher, violations_queue, enriched_queue, violation_event, dead_letters):
        event = ViolationEvent(**{**violation_event.model_dump(), "plate": "7XYZ456"})
        enqueue(violations_queue, event)

        assert enricher.poll_once() is ProcessingOutcome.NOT_FOUND

        assert len(violations_queue) == 0
        assert len(enriched_queue) == 0
        [record] = dead_letters.records
        assert record.error_type is DeadLetterErrorType.NOT_FOUND
        assert record.stage == "enricher"
        assert record.source_queue == "violations.fifo"
        assert record.original_message == event.model_dump_json()
        assert "7XYZ456" in record.error_message


class TestTransientFailures:
    def test_registry_failure_leaves_message(self, enricher, violations_queue, enriched_queue, registry, violation_event, clock):
        enricher.registry = UnavailableRegistry()
        enqueue(violations_queue, violation_event)

        assert enricher.poll_once() is ProcessingOutcome.RETRY
        assert len(violations_queue) == 1
        assert len(enriched_queue) == 0

        enricher.registry = registry
        clock.advance(31)

        assert enricher.poll_once() is ProcessingOutcome.PUBLISHED
        assert len(violations_queue) == 0
        assert len(enriched_queue) == 1

    def test_publish_failure_leaves_message(self, violations_queue, registry, violation_event, dead_letters):
        enricher = VehicleEnricherService(
            violations_queue,
            RejectingQueue("enriched.fifo"),
            registry,
            dead_letter_sink=dead_letters,
            wait_time_seconds=0,
        )
        enqueue(violations_queue, violation_event)

        assert enricher.poll_once() is ProcessingOutcome.RETRY
        assert len(violations_queue) == 1
        assert dead_letters.records == []

    def test_exhausted_message_is_dead_lettered(self, enricher, violations_queue, violation_event, dead_letters, clock):
        enricher.registry = UnavailableRegistry()
        enqueue(violations_queue, violation_event)

        outcomes = []
        for _ in range(4):
            outcomes.append(enricher.poll_once())
            clock.advance(31)

        assert outcomes == [ProcessingOutcome.RETRY] * 3 + [ProcessingOutcome.DEAD_LETTERED]
        assert len(violations_queue) == 0
        [record] = dead_letters.records
        assert record.error_type is DeadLetterErrorType.MAX_RECEIVES_EXCEEDED
        assert record.receive_count == 4


class TestMalformedMessages:
    @pytest.mark.parametrize("body", ["not json", '{"plate": "3ABC123"}'])
    def test_malformed_body_is_dead_lettered(self, enricher, violations_queue, dead_letters, body):
        violations_queue.send(body, group_id="ticketing", dedup_id="bad")

        assert enricher.poll_once() is ProcessingOutcome.MALFORMED

        assert len(violations_queue) == 0
        assert dead_letters.records[0].error_type is DeadLetterErrorType.MALFORMED_MESSAGE
        assert dead_letters.records[0].original_message == body


def test_empty_queue(enricher):
    assert enricher.poll_once() is ProcessingOutcome.EMPTY
    assert enricher.get_stats()["empty"] == 1


def test_stats_count_outcomes(enricher, violations_queue, violation_event):
    enqueue(violations_queue, violation_event)
    enricher.poll_once()

    assert enricher.get_stats()["published"] == 1
