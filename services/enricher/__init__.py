"""Enricher Service - registry lookup for queued violations"""

from .enricher_service import VehicleEnricherService

__all__ = ["VehicleEnricherService"]
