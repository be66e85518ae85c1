"""
Contracts for the external collaborators, plus the small adapters the engine
ships with.

- ``DataStore`` / ``AppointmentSource``: async read interfaces implemented by
  the persistence and ingestion collaborators.
- ``SnapshotCache``: read-through TTL cache over any ``DataStore``.
- ``StoreAppointmentSource``: turns a civil date into a local-day window.
- ``JsonSnapshotStore``: a file-backed store (CLI runs and tests).
"""

import asyncio
import json
import logging
import time
from datetime import date as date_type, datetime, time as time_type
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol, Tuple, Type, Union
from zoneinfo import ZoneInfo

from pydantic import BaseModel, ValidationError

from office_models import AppointmentRecord, AssignmentRule, ClientPreference, ClinicianProfile, Office
from . import config
from .errors import DataStoreError

logger = logging.getLogger(__name__)


class DataStore(Protocol):
    async def get_offices(self) -> List[Office]: ...

    async def get_assignment_rules(self) -> List[AssignmentRule]: ...

    async def get_clinicians(self) -> List[ClinicianProfile]: ...

    async def get_client_preferences(self) -> List[ClientPreference]: ...

    async def get_appointments(self, start: datetime, end: datetime) -> List[AppointmentRecord]: ...


class AppointmentSource(Protocol):
    async def get_appointments_for_day(self, day: date_type) -> List[AppointmentRecord]: ...


def day_window(day: date_type, timezone: Optional[str] = None) -> Tuple[datetime, datetime]:
    """``[day 00:00, day 23:59:59]`` in the practice's local civil day."""
    tz = ZoneInfo(timezone or config.PRACTICE_TIMEZONE)
    start = datetime.combine(day, time_type(0, 0, 0), tzinfo=tz)
    end = datetime.combine(day, time_type(23, 59, 59), tzinfo=tz)
    return start, end


class StoreAppointmentSource:
    """Appointment source backed by ``DataStore.get_appointments``."""

    def __init__(self, store: DataStore, timezone: Optional[str] = None):
        self.store = store
        self.timezone = timezone or config.PRACTICE_TIMEZONE

    async def get_appointments_for_day(self, day: date_type) -> List[AppointmentRecord]:
        start, end = day_window(day, self.timezone)
        return await self.store.get_appointments(start, end)


class SnapshotCache:
    """
    Read-through cache over a ``DataStore``.
    Roster-type reads are cached for ``ttl_seconds``; appointment reads are
    keyed by their window. Failures are never cached.
    """

    def __init__(self, store: DataStore, ttl_seconds: Optional[int] = None, clock=time.monotonic):
        ttl = config.CACHE_TTL_SECONDS if ttl_seconds is None else ttl_seconds
        if not config.MIN_CACHE_TTL_SECONDS <= ttl <= config.MAX_CACHE_TTL_SECONDS:
            raise ValueError(
                f"Cache TTL must be between {config.MIN_CACHE_TTL_SECONDS} and "
                f"{config.MAX_CACHE_TTL_SECONDS} seconds"
            )
        self.store = store
        self.ttl_seconds = ttl
        self._clock = clock
        self._entries: Dict[Any, Tuple[float, Any]] = {}
        self._locks: Dict[Any, asyncio.Lock] = {}

    async def _cached(self, key, loader):
        now = self._clock()
        hit = self._entries.get(key)
        if hit and now < hit[0]:
            logger.debug(f"Cache HIT: {key}")
            return hit[1]

        lock = self._locks.setdefault(key, asyncio.Lock())
        async with lock:
            hit = self._entries.get(key)
            if hit and self._clock() < hit[0]:
                return hit[1]
            logger.debug(f"Cache MISS: {key}")
            value = await loader()
            self._entries[key] = (self._clock() + self.ttl_seconds, value)
            return value

    def invalidate(self, key=None) -> None:
        if key is None:
            self._entries.clear()
        else:
            self._entries.pop(key, None)

    async def get_offices(self) -> List[Office]:
        return await self._cached("offices", self.store.get_offices)

    async def get_assignment_rules(self) -> List[AssignmentRule]:
        return await self._cached("rules", self.store.get_assignment_rules)

    async def get_clinicians(self) -> List[ClinicianProfile]:
        return await self._cached("clinicians", self.store.get_clinicians)

    async def get_client_preferences(self) -> List[ClientPreference]:
        return await self._cached("preferences", self.store.get_client_preferences)

    async def get_appointments(self, start: datetime, end: datetime) -> List[AppointmentRecord]:
        return await self._cached(
            ("appointments", start.isoformat(), end.isoformat()),
            lambda: self.store.get_appointments(start, end)
        )


class JsonSnapshotStore:
    """
    ``DataStore`` over a single JSON document:

        {"offices": [...], "rules": [...], "clinicians": [...],
         "preferences": [...], "appointments": [...]}

    Records use the wire (camelCase) field names.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self._data: Optional[Dict[str, Any]] = None

    def _load(self) -> Dict[str, Any]:
        if self._data is None:
            try:
                with open(self.path, 'r') as f:
                    self._data = json.load(f)
            except (OSError, json.JSONDecodeError) as e:
                raise DataStoreError(f"Cannot read snapshot {self.path}: {e}") from e
            logger.info(f"Loaded snapshot from {self.path}")
        return self._data

    def _records(self, key: str, model: Type[BaseModel]) -> List[Any]:
        try:
            return [model.model_validate(item) for item in self._load().get(key, [])]
        except ValidationError as e:
            raise DataStoreError(f"Invalid {key} in snapshot {self.path}: {e}") from e

    async def get_offices(self) -> List[Office]:
        return self._records("offices", Office)

    async def get_assignment_rules(self) -> List[AssignmentRule]:
        return self._records("rules", AssignmentRule)

    async def get_clinicians(self) -> List[ClinicianProfile]:
        return self._records("clinicians", ClinicianProfile)

    async def get_client_preferences(self) -> List[ClientPreference]:
        return self._records("preferences", ClientPreference)

    async def get_appointments(self, start: datetime, end: datetime) -> List[AppointmentRecord]:
        appointments = self._records("appointments", AppointmentRecord)
        return [a for a in appointments if start <= a.start_time <= end]
