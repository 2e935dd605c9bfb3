#!/usr/bin/env python3
"""
Violation Detector Service
Triggered per newly stored image: reads the capture metadata, detects text,
classifies the plate for jurisdiction and routes the resulting violation
"""

import sys
from dataclasses import dataclass
from typing import Any, Dict, List, Optional
from urllib.parse import unquote_plus

from loguru import logger
from prometheus_client import start_http_server

from services.detector.router import Route, ViolationRouter
from shared.collaborators.base import ObjectStore, TextDetector
from shared.config import TicketingConfig, load_config
from shared.errors import PayloadValidationError
from shared.schemas.violation import Classification, ViolationEvent
from shared.utils.log_setup import configure_logging
from shared.utils.plate_validator import PlateValidator


@dataclass(frozen=True)
class DetectionOutcome:
    """Result of processing one stored image"""
    image_key: str
    classification: Classification
    event: ViolationEvent
    route: Route


class ViolationDetectorService:
    """
    Detector/classifier stage

    Each invocation is independent: no state is shared between images.
    """

    def __init__(
        self,
        object_store: ObjectStore,
        text_detector: TextDetector,
        router: ViolationRouter,
        validator: Optional[PlateValidator] = None,
    ):
        self.object_store = object_store
        self.text_detector = text_detector
        self.router = router
        self.validator = validator or PlateValidator()

    def handle_notification(self, notification: Dict[str, Any]) -> List[DetectionOutcome]:
        """
        Process an S3-style storage notification

        Args:
            notification: {"Records": [{"s3": {"bucket": {"name"}, "object": {"key"}}}, ...]}

        Returns:
            One DetectionOutcome per record

        Raises:
            PayloadValidationError: If the notification has no usable records
            CollaboratorError: If a collaborator call fails
        """
        records = notification.get('Records') if isinstance(notification, dict) else None
        if not records:
            raise PayloadValidationError("No storage event records found")

        outcomes = []
        for record in records:
            bucket, key = self._object_location(record)
            try:
                outcomes.append(self.process_image(bucket, key))
            except Exception:
                logger.error(f"Error processing file: {key}")
                raise
        return outcomes

    def process_image(self, bucket: str, key: str) -> DetectionOutcome:
        """Classify one stored image and route its violation"""
        image = self.object_store.get_image(bucket, key)
        detections = self.text_detector.detect_text(image)
        classification = self.validator.classify(detections)

        logger.info(
            f"🔍 {key}: {len(detections)} text detections, "
            f"plate={classification.plate_number or '-'}, "
            f"in_jurisdiction={classification.is_in_jurisdiction}"
        )

        event = ViolationEvent.from_classification(classification, image.metadata, key)
        route = self.router.dispatch(classification, event)
        return DetectionOutcome(image_key=key, classification=classification, event=event, route=route)

    def close(self):
        """Flush and release the event bus client"""
        self.router.event_bus.close()

    @staticmethod
    def _object_location(record: Dict[str, Any]):
        try:
            s3 = record['s3']
            bucket = s3['bucket']['name']
            raw_key = s3['object']['key']
        except (KeyError, TypeError) as e:
            raise PayloadValidationError(f"Malformed storage event record: missing {e}") from e
        # Object keys arrive URL-encoded with '+' for spaces
        return bucket, unquote_plus(raw_key)


def build_detector(config: TicketingConfig) -> ViolationDetectorService:
    """Wire the detector with the deployment's collaborators"""
    from shared.factory import build_event_bus, build_object_store, build_queue, build_text_detector

    router = ViolationRouter(
        violations_queue=build_queue(config.queues.violations_url, config),
        event_bus=build_event_bus(config),
        message_group_id=config.queues.message_group_id,
        event_source=config.event_bus.source,
        detail_type=config.event_bus.detail_type,
    )
    return ViolationDetectorService(
        object_store=build_object_store(config),
        text_detector=build_text_detector(config),
        router=router,
    )


def main():
    """
    Listen for new captures on the MinIO bucket and process each one

    A failed invocation is logged and the listener moves on to the next
    notification; the capture can be replayed by re-uploading it.
    """
    config = load_config()
    configure_logging(config.log_level, stage='detector')

    logger.info("=" * 70)
    logger.info("Traffic Violation Detector")
    logger.info("=" * 70)
    logger.info(f"Bucket: {config.object_store.bucket} @ {config.object_store.endpoint}")
    logger.info(f"Violations Queue: {config.queues.violations_url}")
    logger.info(f"Event Bus: {config.event_bus.backend}:{config.event_bus.name}")
    logger.info("=" * 70)

    if config.metrics_port:
        start_http_server(config.metrics_port)
        logger.success(f"✅ Prometheus metrics server started at http://localhost:{config.metrics_port}/metrics")

    detector = None
    try:
        detector = build_detector(config)
        with detector.object_store.listen_for_uploads(config.object_store.bucket) as notifications:
            for notification in notifications:
                try:
                    detector.handle_notification(notification)
                except Exception as e:
                    logger.error(f"Invocation failed: {e}")
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
    except Exception as e:
        logger.error(f"Detector failed: {e}")
        sys.exit(1)
    finally:
        if detector is not None:
            detector.close()


if __name__ == "__main__":
    main()
