"""
Client-held cache of a provider's day availability, keyed by date.

Every mutation is synchronous and swaps in a complete new map, so an observer
sees either the state before a batch or the state after it, never a mix.
Each successful mutation is mirrored to a per-provider JSON file so a cold
start can show the last known calendar before the network answers.
"""
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Union

from app.schemas.availability import DayAvailability, TimeSlot

logger = logging.getLogger(__name__)

Listener = Callable[[List[str]], None]


class AvailabilityCache:
    """Durable provider-scoped mirror of the store."""

    def __init__(self, cache_dir: Union[str, Path], provider_id: int):
        self.path = Path(cache_dir) / f"availability_{provider_id}.json"

    def load(self) -> List[DayAvailability]:
        if not self.path.exists():
            return []
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
            return [DayAvailability(**item) for item in raw]
        except (OSError, ValueError, TypeError) as e:
            # ValidationError and JSONDecodeError are both ValueErrors
            logger.warning(f"Ignoring unreadable availability cache {self.path}: {e}")
            return []

    def save(self, days: Iterable[DayAvailability]) -> None:
        payload = json.dumps([day.to_payload() for day in days])
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(payload)
            os.replace(tmp_path, self.path)
        except OSError:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

    def clear(self) -> None:
        if self.path.exists():
            self.path.unlink()


def normalize_day(day: DayAvailability) -> DayAvailability:
    """Copy of a record with sorted slots, coherent availability and no derived flags."""
    return DayAvailability(
        date=day.date,
        isAvailable=day.isAvailable,
        timeSlots=[
            TimeSlot(
                id=slot.id,
                start=slot.start,
                end=slot.end,
                availableServices=list(slot.availableServices),
            )
            for slot in day.timeSlots
        ],
    )


class AvailabilityStore:
    def __init__(self, provider_id: int, cache: Optional[AvailabilityCache] = None):
        self.provider_id = provider_id
        self.cache = cache
        self._days: Dict[str, DayAvailability] = {}
        self._revisions: Dict[str, int] = {}
        self._listeners: List[Listener] = []
        if cache is not None:
            self.seed_from_cache()

    def __len__(self) -> int:
        return len(self._days)

    def __contains__(self, date: str) -> bool:
        return date in self._days

    def get(self, date: str) -> Optional[DayAvailability]:
        return self._days.get(date)

    def dates(self) -> List[str]:
        return sorted(self._days)

    def days(self, start: Optional[str] = None, end: Optional[str] = None) -> List[DayAvailability]:
        """Records ordered by date, optionally limited to an inclusive key range."""
        return [
            self._days[key]
            for key in sorted(self._days)
            if (start is None or key >= start) and (end is None or key <= end)
        ]

    def revision(self, date: str) -> int:
        """Number of local writes applied to a date so far."""
        return self._revisions.get(date, 0)

    def revisions(self) -> Dict[str, int]:
        return dict(self._revisions)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener called with the changed dates after every mutation."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def upsert(self, day: DayAvailability) -> None:
        """Replace the record for ``day.date``; no field-level merge."""
        self._commit(self._merged([day]), [day.date])

    def upsert_batch(self, days: Iterable[DayAvailability]) -> None:
        days = list(days)
        if not days:
            return
        self._commit(self._merged(days), [day.date for day in days])

    def replace_all(self, days: Iterable[DayAvailability]) -> None:
        """Drop everything and load ``days`` in one step."""
        days = list(days)
        changed = sorted(set(self._days) | {day.date for day in days})
        fresh = {day.date: normalize_day(day) for day in days}
        self._commit(fresh, changed)

    def replace_range(self, start: str, end: str, days: Iterable[DayAvailability]) -> None:
        """Replace every record inside the inclusive key range; days outside it stay cached."""
        fresh = {day.date: normalize_day(day) for day in days}
        inside = {key for key in self._days if start <= key <= end}
        merged = {key: day for key, day in self._days.items() if key not in inside}
        merged.update(fresh)
        self._commit(merged, sorted(inside | set(fresh)))

    def discard(self, date: str) -> None:
        if date not in self._days:
            return
        remaining = dict(self._days)
        del remaining[date]
        self._commit(remaining, [date])

    def clear(self) -> None:
        changed = sorted(self._days)
        self._commit({}, changed)

    def seed_from_cache(self) -> int:
        """Load the durable cache without writing it back. Returns the number of days loaded."""
        if self.cache is None:
            return 0
        cached = self.cache.load()
        self._days = {day.date: normalize_day(day) for day in cached}
        if cached:
            logger.info(f"Seeded provider {self.provider_id} availability with {len(cached)} cached days")
        return len(cached)

    def restore_from_cache(self) -> int:
        """Re-seed an empty store from the cache after a failed fetch."""
        if self._days:
            return len(self._days)
        loaded = self.seed_from_cache()
        if loaded:
            self._notify(self.dates())
        return loaded

    def _merged(self, days: Iterable[DayAvailability]) -> Dict[str, DayAvailability]:
        merged = dict(self._days)
        for day in days:
            merged[day.date] = normalize_day(day)
        return merged

    def _commit(self, days: Dict[str, DayAvailability], changed: List[str]) -> None:
        self._days = days
        for date in changed:
            self._revisions[date] = self._revisions.get(date, 0) + 1
        self._persist()
        self._notify(changed)

    def _persist(self) -> None:
        if self.cache is None:
            return
        try:
            self.cache.save(self.days())
        except OSError as e:
            logger.warning(f"Could not write availability cache for provider {self.provider_id}: {e}")

    def _notify(self, changed: List[str]) -> None:
        for listener in list(self._listeners):
            listener(changed)
