"""
Sync controller: the one place where local edits meet the remote store.

Saves are optimistic. The store is updated first and the request follows;
a newer save for the same date cancels the older task, and the cancelled
save resolves as ABORTED without ever touching the store again. Deletes go
the other way round: the remote store answers first and only then is the
slot dropped locally.
"""
import asyncio
import logging
from contextlib import suppress
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence, Set, Tuple, Union

from pydantic import ValidationError

from app.core.config import settings
from app.schemas.availability import DayAvailability, TimeSlot, durable_slot_id, is_temp_slot_id
from app.schemas.booking import BookingRecord
from app.schemas.package import ServicePackage
from app.scheduling.client import AvailabilityClient
from app.scheduling.errors import (
    InvalidRange, NetworkFailure, PastDate, ServerRejected, SlotNotFound, SlotsStillPresent, SyncError
)
from app.scheduling.presets import (
    PRESETS, BatchSummary, DayPredicate, TimeWindow, cleared_days, generate_recurring
)
from app.scheduling.reconcile import reconcile
from app.scheduling.store import AvailabilityCache, AvailabilityStore, normalize_day
from app.scheduling.validation import check_services, validate_new_slot
from app.utils.dates import date_key, month_bounds, normalize_date, parse_date, year_bounds

logger = logging.getLogger(__name__)

CACHED_DATA_NOTICE = "Showing saved availability; the latest changes could not be loaded."

DateLike = Union[str, date]


class SaveState(str, Enum):
    IDLE = "idle"
    SAVING = "saving"
    COMMITTED = "committed"
    ABORTED = "aborted"
    FAILED = "failed"


class DeleteState(str, Enum):
    PRESENT = "present"
    DELETING = "deleting"
    REMOVED = "removed"
    RESTORED_ON_ERROR = "restored_on_error"


class FetchMode(str, Enum):
    SILENT = "silent"
    LOUD = "loud"


@dataclass
class SaveOutcome:
    date: str
    state: SaveState
    error: Optional[SyncError] = None
    warning: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.state == SaveState.COMMITTED


@dataclass
class DeleteOutcome:
    date: str
    slot_id: str
    state: DeleteState
    remaining: Optional[int] = None
    error: Optional[SyncError] = None


@dataclass
class FetchResult:
    days: int = 0
    from_cache: bool = False
    reconciled: bool = False
    # Dates left alone because a local edit landed while the fetch was in flight
    skipped: List[str] = field(default_factory=list)
    error: Optional[SyncError] = None


@dataclass(frozen=True)
class ViewRange:
    """A month view, or the whole year when ``month`` is None."""
    year: int
    month: Optional[int] = None

    @classmethod
    def for_month(cls, year: int, month: int) -> "ViewRange":
        month_bounds(year, month)  # rejects month 0 and 13
        return cls(year, month)

    @classmethod
    def for_year(cls, year: int) -> "ViewRange":
        return cls(year)

    @classmethod
    def containing(cls, day: date) -> "ViewRange":
        return cls(day.year, day.month)

    @property
    def is_year_view(self) -> bool:
        return self.month is None

    @property
    def bounds(self) -> Tuple[date, date]:
        if self.month is None:
            return year_bounds(self.year)
        return month_bounds(self.year, self.month)

    @property
    def start(self) -> str:
        return date_key(self.bounds[0])

    @property
    def end(self) -> str:
        return date_key(self.bounds[1])

    def contains(self, key: str) -> bool:
        return self.start <= key <= self.end

    def next(self) -> "ViewRange":
        if self.month is None:
            return ViewRange(self.year + 1)
        if self.month == 12:
            return ViewRange(self.year + 1, 1)
        return ViewRange(self.year, self.month + 1)

    def previous(self) -> "ViewRange":
        if self.month is None:
            return ViewRange(self.year - 1)
        if self.month == 1:
            return ViewRange(self.year - 1, 12)
        return ViewRange(self.year, self.month - 1)


class SyncController:
    """
    Owns one provider session: its store, in-flight saves, bookings,
    packages, selected day and background refresh.
    """

    def __init__(
        self,
        provider_id: int,
        client: AvailabilityClient,
        store: Optional[AvailabilityStore] = None,
        *,
        view: Optional[ViewRange] = None,
        cache_dir: Optional[Union[str, Path]] = None,
        refresh_interval: Optional[float] = None,
        request_timeout: Optional[float] = None,
        max_batch_size: Optional[int] = None,
        rollback_on_rejection: Optional[bool] = None,
        today: Optional[Callable[[], date]] = None,
    ):
        self.provider_id = provider_id
        self.client = client
        self.cache_dir = cache_dir
        self.store = store if store is not None else self._new_store(provider_id)
        self._today = today or date.today
        self.view = view or ViewRange.containing(self._today())

        self.refresh_interval = refresh_interval or settings.SYNC_REFRESH_INTERVAL_SECONDS
        self.request_timeout = request_timeout or settings.SYNC_REQUEST_TIMEOUT_SECONDS
        self.max_batch_size = max_batch_size or settings.MAX_BATCH_SIZE
        if rollback_on_rejection is None:
            rollback_on_rejection = settings.ROLLBACK_ON_REJECTION
        self.rollback_on_rejection = rollback_on_rejection

        self._refresh_task: Optional[asyncio.Task] = None
        self._reset_session()

    def _new_store(self, provider_id: int) -> AvailabilityStore:
        cache = AvailabilityCache(self.cache_dir, provider_id) if self.cache_dir else None
        return AvailabilityStore(provider_id, cache)

    def _reset_session(self) -> None:
        self._bookings: Optional[List[BookingRecord]] = None
        self._packages: List[ServicePackage] = []
        self._selected_date: Optional[str] = None
        self._loading = False
        self._notice: Optional[str] = None
        self._last_error: Optional[SyncError] = None
        self._save_tasks: Dict[str, asyncio.Task] = {}
        self._save_generations: Dict[str, int] = {}
        self._save_states: Dict[str, SaveState] = {}
        self._delete_states: Dict[Tuple[str, str], DeleteState] = {}

    # --- read side -------------------------------------------------------

    @property
    def loading(self) -> bool:
        """True only while a loud fetch is running."""
        return self._loading

    @property
    def notice(self) -> Optional[str]:
        return self._notice

    @property
    def last_error(self) -> Optional[SyncError]:
        return self._last_error

    @property
    def selected_date(self) -> Optional[str]:
        return self._selected_date

    @property
    def packages(self) -> List[ServicePackage]:
        return list(self._packages)

    @property
    def bookings(self) -> Optional[List[BookingRecord]]:
        return None if self._bookings is None else list(self._bookings)

    def days(self, start: Optional[str] = None, end: Optional[str] = None) -> List[DayAvailability]:
        """Store records annotated with the last known bookings."""
        days = self.store.days(start, end)
        if self._bookings is None:
            return [normalize_day(day) for day in days]
        return reconcile(days, self._bookings)

    def visible_days(self) -> List[DayAvailability]:
        return self.days(self.view.start, self.view.end)

    def day(self, value: DateLike) -> Optional[DayAvailability]:
        key = self._key(value)
        found = self.days(key, key)
        return found[0] if found else None

    def save_state(self, value: DateLike) -> SaveState:
        return self._save_states.get(self._key(value), SaveState.IDLE)

    def delete_state(self, value: DateLike, slot_id: str) -> DeleteState:
        return self._delete_states.get((self._key(value), slot_id), DeleteState.PRESENT)

    def has_pending_save(self, value: DateLike) -> bool:
        task = self._save_tasks.get(self._key(value))
        return task is not None and not task.done()

    # --- fetching --------------------------------------------------------

    async def load_packages(self) -> List[ServicePackage]:
        try:
            self._packages = await self.client.fetch_packages(self.provider_id, timeout=self.request_timeout)
        except SyncError as e:
            logger.warning(f"Could not load packages for provider {self.provider_id}: {e}")
            self._packages = []
            self._last_error = e
        return self.packages

    async def fetch(self, mode: FetchMode = FetchMode.SILENT, view: Optional[ViewRange] = None) -> FetchResult:
        """
        Pull the view's availability and the provider's bookings.

        A loud fetch replaces everything inside the view and drives the
        loading flag. A silent fetch merges by date and leaves alone any date
        whose save was in flight when the fetch started or when it merges, and
        any date with a local write made after the fetch started.
        On a network failure the store falls back to the durable cache and
        nothing already shown is cleared.
        """
        view = view or self.view
        loud = mode == FetchMode.LOUD
        baseline = self.store.revisions()
        # Saves in flight now were issued before the remote snapshot was read
        pending = {key for key in self._save_tasks if self.has_pending_save(key)}
        if loud:
            self._loading = True
        try:
            try:
                days = await self.client.fetch_availability(
                    self.provider_id, view.start, view.end, timeout=self.request_timeout
                )
            except NetworkFailure as e:
                restored = self.store.restore_from_cache()
                self._notice = CACHED_DATA_NOTICE
                self._last_error = e
                logger.warning(
                    f"Availability fetch for provider {self.provider_id} failed, showing {restored} cached days: {e}"
                )
                return FetchResult(days=restored, from_cache=True, error=e)
            except ServerRejected as e:
                self._last_error = e
                logger.warning(f"Availability fetch for provider {self.provider_id} rejected: {e}")
                return FetchResult(error=e)

            bookings = await self._fetch_bookings()

            if loud:
                skipped: List[str] = []
                self.store.replace_range(view.start, view.end, days)
            else:
                skipped = [day.date for day in days if self._edited_since(day.date, baseline, pending)]
                self.store.upsert_batch([day for day in days if day.date not in skipped])
                if skipped:
                    logger.debug(f"Silent fetch kept local edits for {', '.join(skipped)}")

            self._bookings = bookings
            self._notice = None
            return FetchResult(days=len(days), reconciled=bookings is not None, skipped=skipped)
        finally:
            if loud:
                self._loading = False

    async def _fetch_bookings(self) -> Optional[List[BookingRecord]]:
        try:
            return await self.client.fetch_bookings(self.provider_id, timeout=self.request_timeout)
        except SyncError as e:
            # Availability is still usable without booking annotations
            logger.warning(f"Could not load bookings for provider {self.provider_id}: {e}")
            return None

    def _edited_since(self, key: str, baseline: Dict[str, int], pending: Set[str]) -> bool:
        if key in pending or self.has_pending_save(key):
            return True
        return self.store.revision(key) != baseline.get(key, 0)

    # --- saving ----------------------------------------------------------

    async def save_day(self, day: DayAvailability) -> SaveOutcome:
        """
        Apply ``day`` to the store, then send it.

        Only the most recent save for a date is authoritative. Any save it
        supersedes resolves as ABORTED, whatever its request did.
        """
        key = day.date
        previous = self.store.get(key)
        self.store.upsert(day)
        written = self.store.revision(key)

        generation = self._save_generations.get(key, 0) + 1
        self._save_generations[key] = generation

        prior = self._save_tasks.get(key)
        if prior is not None and not prior.done():
            logger.debug(f"Save for {key} superseded by a newer edit")
            prior.cancel()

        task = asyncio.create_task(self.client.save_day(self.provider_id, self.store.get(key)))
        self._save_tasks[key] = task
        self._save_states[key] = SaveState.SAVING

        try:
            await asyncio.wait({task})
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            if self._save_tasks.get(key) is task:
                del self._save_tasks[key]

        current = self._save_generations.get(key) == generation
        error = None if task.cancelled() else task.exception()

        if task.cancelled() or not current:
            if current:
                self._save_states[key] = SaveState.ABORTED
            return SaveOutcome(key, SaveState.ABORTED)

        if error is None:
            self._save_states[key] = SaveState.COMMITTED
            return SaveOutcome(key, SaveState.COMMITTED)

        self._save_states[key] = SaveState.FAILED
        if not isinstance(error, SyncError):
            raise error

        self._last_error = error
        logger.warning(f"Saving availability for {key} failed: {error}")
        # Only undo our own write; a later batch or delete may have replaced it
        if (self.rollback_on_rejection and isinstance(error, ServerRejected)
                and self.store.revision(key) == written):
            if previous is None:
                self.store.discard(key)
            else:
                self.store.upsert(previous)
        return SaveOutcome(key, SaveState.FAILED, error=error)

    async def add_slot(
        self,
        value: DateLike,
        start: str,
        end: str,
        services: Sequence[int] = (),
    ) -> SaveOutcome:
        """Validate a new slot against the day and save the day with it."""
        key = self._editable_key(value)
        try:
            candidate = TimeSlot(start=start, end=end, availableServices=list(services))
        except ValidationError as e:
            raise InvalidRange(str(start), str(end)) from e

        existing = self.store.get(key)
        check = validate_new_slot(existing, candidate, self._packages)

        slots = list(existing.timeSlots) if existing else []
        outcome = await self.save_day(DayAvailability(date=key, isAvailable=True, timeSlots=slots + [candidate]))
        outcome.warning = check.warning
        return outcome

    async def toggle_day(self, value: DateLike) -> SaveOutcome:
        key = self._editable_key(value)
        existing = self.store.get(key) or DayAvailability.empty(key)
        if existing.isAvailable and existing.timeSlots:
            raise SlotsStillPresent(key, len(existing.timeSlots))
        return await self.save_day(DayAvailability(
            date=key,
            isAvailable=not existing.isAvailable,
            timeSlots=list(existing.timeSlots),
        ))

    async def remove_slot(self, value: DateLike, slot_id: str) -> DeleteOutcome:
        """
        Delete a slot remotely, then locally.

        On failure the local slot is left in place and a silent re-fetch
        resynchronises the store.
        """
        key = self._key(value)
        existing = self.store.get(key)
        slot = next((s for s in existing.timeSlots if s.id == slot_id), None) if existing else None
        if slot is None:
            raise SlotNotFound(key, slot_id)

        remote_id = slot.id
        if is_temp_slot_id(remote_id):
            remote_id = durable_slot_id(self.provider_id, key, slot.start, slot.end)

        marker = (key, slot_id)
        self._delete_states[marker] = DeleteState.DELETING
        try:
            response = await self.client.delete_slot(self.provider_id, key, remote_id)
        except SyncError as e:
            self._delete_states[marker] = DeleteState.RESTORED_ON_ERROR
            self._last_error = e
            logger.warning(f"Deleting slot {slot_id} on {key} failed, resynchronising: {e}")
            await self.fetch(FetchMode.SILENT)
            return DeleteOutcome(key, slot_id, DeleteState.RESTORED_ON_ERROR, error=e)

        current = self.store.get(key) or existing
        self.store.upsert(DayAvailability(
            date=key,
            isAvailable=current.isAvailable,
            timeSlots=[s for s in current.timeSlots if s.id != slot_id],
        ))
        self._delete_states[marker] = DeleteState.REMOVED
        return DeleteOutcome(key, slot_id, DeleteState.REMOVED, remaining=response.remainingSlots)

    # --- batches ---------------------------------------------------------

    async def apply_preset(
        self,
        year: int,
        predicate: Union[str, DayPredicate],
        window: TimeWindow,
        services: Sequence[int],
    ) -> BatchSummary:
        """Set every matching future date of ``year`` to the single ``window`` slot."""
        if isinstance(predicate, str):
            predicate = PRESETS[predicate]
        window.validate()
        warning = check_services(services, self._packages)
        if warning:
            logger.info(f"Provider {self.provider_id}: {warning}")

        days = generate_recurring(year, predicate, window, services, today=self._today())
        return await self._submit_batch(days)

    async def clear_all(self) -> BatchSummary:
        """Close every known day from today on."""
        return await self._submit_batch(cleared_days(self.store.days(), today=self._today()))

    async def _submit_batch(self, days: List[DayAvailability]) -> BatchSummary:
        summary = BatchSummary(attempted=len(days), succeeded=0)
        if not days:
            return summary

        # One store update for the whole batch
        self.store.upsert_batch(days)

        for offset in range(0, len(days), self.max_batch_size):
            chunk = days[offset:offset + self.max_batch_size]
            try:
                response = await self.client.save_batch(self.provider_id, chunk)
            except SyncError as e:
                self._last_error = e
                summary.add_failure(chunk, e)
                continue
            summary.add_response(response)

        if summary.is_partial:
            self._last_error = summary.as_error()
            logger.warning(f"Batch save for provider {self.provider_id}: {summary.message()}")
        else:
            logger.info(f"Batch save for provider {self.provider_id}: {summary.message()}")
        return summary

    # --- navigation ------------------------------------------------------

    def select_day(self, value: DateLike) -> str:
        key = self._key(value)
        self._selected_date = key
        return key

    def clear_selection(self) -> None:
        self._selected_date = None

    async def set_view(self, view: ViewRange) -> FetchResult:
        """Switch the visible range; days already loaded outside it stay cached."""
        self.view = view
        return await self.fetch(FetchMode.SILENT, view)

    async def next_page(self) -> FetchResult:
        return await self.set_view(self.view.next())

    async def previous_page(self) -> FetchResult:
        return await self.set_view(self.view.previous())

    async def show_year(self) -> FetchResult:
        return await self.set_view(ViewRange.for_year(self.view.year))

    async def show_month(self, month: int) -> FetchResult:
        return await self.set_view(ViewRange.for_month(self.view.year, month))

    # --- background refresh ----------------------------------------------

    def start(self) -> None:
        if self._refresh_task is None or self._refresh_task.done():
            self._refresh_task = asyncio.create_task(self._refresh_loop())

    async def stop(self) -> None:
        task, self._refresh_task = self._refresh_task, None
        if task is None:
            return
        task.cancel()
        with suppress(asyncio.CancelledError):
            await task

    @property
    def refreshing(self) -> bool:
        return self._refresh_task is not None and not self._refresh_task.done()

    async def _refresh_loop(self) -> None:
        # Two requests per fetch, each bounded by the request timeout
        bound = self.request_timeout * 2
        while True:
            await asyncio.sleep(self.refresh_interval)
            try:
                await asyncio.wait_for(self.fetch(FetchMode.SILENT), timeout=bound)
            except asyncio.TimeoutError:
                restored = self.store.restore_from_cache()
                self._notice = CACHED_DATA_NOTICE
                logger.warning(
                    f"Background refresh for provider {self.provider_id} timed out after {bound}s, "
                    f"showing {restored} cached days"
                )
            except Exception as e:
                logger.error(f"Background refresh for provider {self.provider_id} failed: {str(e)}", exc_info=True)

    # --- session ---------------------------------------------------------

    async def close(self) -> None:
        """Stop the refresh loop and abort every save still in flight."""
        await self.stop()
        pending = [task for task in self._save_tasks.values() if not task.done()]
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        self._save_tasks.clear()

    async def switch_provider(self, provider_id: int) -> None:
        """
        Tear the current session down and start one for ``provider_id``.

        The new store is seeded from that provider's cache. Listeners on the
        old store are not carried over.
        """
        await self.close()
        logger.info(f"Switching availability session from provider {self.provider_id} to {provider_id}")
        self.provider_id = provider_id
        self.store = self._new_store(provider_id)
        self._reset_session()

    # --- helpers ---------------------------------------------------------

    def _key(self, value: DateLike) -> str:
        if isinstance(value, date):
            return date_key(value)
        key = normalize_date(value)
        if key is None:
            raise ValueError(f"Invalid date format: {value!r}. Use YYYY-MM-DD")
        return key

    def _editable_key(self, value: DateLike) -> str:
        key = self._key(value)
        if parse_date(key) < self._today():
            raise PastDate(key)
        return key


def build_controller(
    provider_id: int,
    client: Optional[AvailabilityClient] = None,
    cache_dir: Optional[Union[str, Path]] = None,
    **options,
) -> SyncController:
    """Controller wired from settings with a durable per-provider cache."""
    return SyncController(
        provider_id,
        client or AvailabilityClient(),
        cache_dir=cache_dir or settings.AVAILABILITY_CACHE_DIR,
        **options,
    )
