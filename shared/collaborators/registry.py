"""
Vehicle Registry Adapters
Indexed plate lookup over the DMV XML database, plus an in-memory registry
"""

import os
import threading
import time
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Callable, Dict, Iterable, Optional, Tuple, Union

from loguru import logger

from shared.collaborators.base import VehicleRegistry
from shared.errors import CollaboratorError
from shared.schemas.violation import Owner, VehicleRecord


class XmlVehicleRegistry(VehicleRegistry):
    """
    Registry backed by a DMV XML file

    Expected layout:

        <dmv>
          <vehicle plate="3ABC123">
            <make>Toyota</make><model>Camry</model><color>Blue</color>
            <owner><name>J Doe</name><contact>j@x.com</contact></owner>
          </vehicle>
        </dmv>

    Records are indexed by plate. Every lookup observes the latest file
    contents: the file's modification time and size are checked on each
    lookup and the index is rebuilt when they change. With
    max_staleness_seconds > 0 the check is skipped for that long after the
    previous one, bounding how stale a lookup can be.
    """

    def __init__(
        self,
        path: Union[str, Path],
        max_staleness_seconds: float = 0.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.path = Path(path)
        self.max_staleness_seconds = max_staleness_seconds
        self._clock = clock
        self._lock = threading.Lock()

        self._index: Dict[str, VehicleRecord] = {}
        self._signature: Optional[Tuple[int, int]] = None  # (mtime_ns, size) of the indexed file
        self._last_check: Optional[float] = None

        self.reload_count = 0

    def lookup(self, plate: str) -> Optional[VehicleRecord]:
        with self._lock:
            self._refresh_if_needed()
            return self._index.get(plate)

    def __len__(self) -> int:
        with self._lock:
            self._refresh_if_needed()
            return len(self._index)

    def _refresh_if_needed(self):
        now = self._clock()
        if (
            self.max_staleness_seconds > 0
            and self._last_check is not None
            and now - self._last_check < self.max_staleness_seconds
        ):
            return

        try:
            stat = os.stat(self.path)
        except OSError as e:
            raise CollaboratorError('vehicle-registry', f"Cannot read {self.path}: {e}", e) from e

        signature = (stat.st_mtime_ns, stat.st_size)
        if signature != self._signature:
            self._index = self._load_index()
            self._signature = signature
            self.reload_count += 1
            logger.info(f"📇 Loaded {len(self._index)} vehicles from {self.path}")
        self._last_check = now

    def _load_index(self) -> Dict[str, VehicleRecord]:
        try:
            tree = ET.parse(self.path)
        except (ET.ParseError, OSError) as e:
            raise CollaboratorError('vehicle-registry', f"Cannot parse {self.path}: {e}", e) from e

        index = {}
        for element in tree.getroot().iter('vehicle'):
            record = self._parse_vehicle(element)
            if record is None:
                continue
            if record.plate in index:
                # First entry for a plate wins
                logger.warning(f"Duplicate registry entry for plate {record.plate} in {self.path}, ignoring")
                continue
            index[record.plate] = record
        return index

    @staticmethod
    def _parse_vehicle(element: ET.Element) -> Optional[VehicleRecord]:
        plate = (element.get('plate') or '').strip()
        owner = element.find('owner')
        try:
            return VehicleRecord(
                plate=plate,
                make=_child_text(element, 'make'),
                model=_child_text(element, 'model'),
                color=_child_text(element, 'color'),
                owner=Owner(
                    name=_child_text(owner, 'name'),
                    contact=_child_text(owner, 'contact'),
                ),
            )
        except (ValueError, AttributeError) as e:
            logger.warning(f"Skipping malformed registry entry for plate {plate!r}: {e}")
            return None


def _child_text(element: ET.Element, tag: str) -> str:
    child = element.find(tag)
    if child is None or child.text is None:
        raise ValueError(f"missing <{tag}>")
    return child.text.strip()


class InMemoryVehicleRegistry(VehicleRegistry):
    """Dict-backed registry"""

    def __init__(self, records: Iterable[VehicleRecord] = ()):
        self._index = {record.plate: record for record in records}
        self.lookups = 0

    def add(self, record: VehicleRecord):
        self._index[record.plate] = record

    def lookup(self, plate: str) -> Optional[VehicleRecord]:
        self.lookups += 1
        return self._index.get(plate)
