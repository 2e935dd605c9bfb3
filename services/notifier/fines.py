"""
Fine Schedule
Static mapping of violation type to ticket amount
"""

from types import MappingProxyType
from typing import List, Mapping, Optional

from shared.config import DEFAULT_FINES
from shared.errors import UnknownViolationTypeError


class FineSchedule:
    """
    Ticket amounts per violation type

    A violation type missing from the schedule is a schema gap:
    amount_for() raises instead of returning a default.
    """

    def __init__(self, fines: Optional[Mapping[str, int]] = None):
        fines = dict(DEFAULT_FINES if fines is None else fines)
        if not fines:
            raise ValueError("Fine schedule must not be empty")
        for violation_type, amount in fines.items():
            if amount < 0:
                raise ValueError(f"Fine for {violation_type} must be non-negative, got {amount}")
        self._fines = MappingProxyType(fines)

    def amount_for(self, violation_type: str) -> int:
        """
        Look up the fine for a violation type

        Raises:
            UnknownViolationTypeError: If the type has no entry
        """
        try:
            return self._fines[violation_type]
        except KeyError:
            raise UnknownViolationTypeError(violation_type) from None

    def violation_types(self) -> List[str]:
        return list(self._fines)

    def __contains__(self, violation_type: str) -> bool:
        return violation_type in self._fines

    def __repr__(self) -> str:
        return f"FineSchedule({dict(self._fines)!r})"
