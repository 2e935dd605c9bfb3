"""Notifier Service - fines and owner notices"""

from .fines import FineSchedule
from .notice import format_notice
from .notifier_service import TicketNotifierService

__all__ = ["FineSchedule", "format_notice", "TicketNotifierService"]
