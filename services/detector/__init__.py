"""
Detector Service Package

Triggered per newly stored capture: detects text, classifies the plate for
jurisdiction and routes the violation.

Main Components:
- ViolationDetectorService: storage-notification handler
- ViolationRouter: violations queue (in jurisdiction) or event bus (otherwise)

Usage:
    from services.detector import ViolationDetectorService, ViolationRouter

    router = ViolationRouter(violations_queue, event_bus)
    detector = ViolationDetectorService(object_store, text_detector, router)
    detector.handle_notification({"Records": [...]})
"""

from .detector_service import DetectionOutcome, ViolationDetectorService
from .router import Route, ViolationRouter

__all__ = ["DetectionOutcome", "ViolationDetectorService", "Route", "ViolationRouter"]
