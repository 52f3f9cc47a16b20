"""HTTP client for the availability API used by the scheduling core."""
import logging
from typing import Any, Dict, List, Optional, Type, TypeVar, Union

import httpx
from pydantic import BaseModel

from app.core.config import settings
from app.schemas.availability import BatchSaveResponse, DayAvailability, DeleteSlotResponse
from app.schemas.booking import BookingRecord
from app.schemas.package import ServicePackage
from app.scheduling.errors import NetworkFailure, ServerRejected, SyncTimeout

logger = logging.getLogger(__name__)

NO_CACHE_HEADERS = {
    "Cache-Control": "no-cache, no-store, must-revalidate",
    "Pragma": "no-cache",
}

TimeoutValue = Union[float, httpx.Timeout, None]
ModelT = TypeVar("ModelT", bound=BaseModel)


def _error_detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:100] or response.reason_phrase
    if isinstance(body, dict):
        detail = body.get("detail") or body.get("error") or body.get("details")
        if detail:
            return str(detail)
    return response.reason_phrase


def _parse_list(model: Type[ModelT], data: Dict[str, Any], key: str) -> List[ModelT]:
    items = data.get(key)
    if not isinstance(items, list):
        raise NetworkFailure(f"Unexpected response from server: missing {key} list")
    try:
        return [model(**item) for item in items]
    except (ValueError, TypeError) as exc:
        raise NetworkFailure(f"Unexpected {key} record from server: {exc}") from exc


def _parse_one(model: Type[ModelT], data: Any) -> ModelT:
    try:
        return model(**data)
    except (ValueError, TypeError) as exc:
        raise NetworkFailure(f"Unexpected response from server: {exc}") from exc


class AvailabilityClient:
    """
    Thin async wrapper over the availability endpoints.

    Every transport problem leaves this class as one of the scheduling sync
    errors: timeouts as SyncTimeout, other transport errors and 5xx answers
    as NetworkFailure, 4xx answers as ServerRejected.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        http: Optional[httpx.AsyncClient] = None,
    ):
        self.http = http or httpx.AsyncClient(
            base_url=base_url or settings.API_BASE_URL,
            timeout=timeout or settings.SYNC_REQUEST_TIMEOUT_SECONDS,
            headers=NO_CACHE_HEADERS,
        )

    async def aclose(self) -> None:
        await self.http.aclose()

    async def call(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None,
        timeout: TimeoutValue = None,
    ) -> Dict[str, Any]:
        kwargs: Dict[str, Any] = {"params": params, "json": json}
        if timeout is not None:
            kwargs["timeout"] = timeout
        try:
            response = await self.http.request(method, path, **kwargs)
        except httpx.TimeoutException as exc:
            raise SyncTimeout(f"Request to {path} timed out") from exc
        except httpx.HTTPError as exc:
            raise NetworkFailure(f"Request to {path} failed: {exc}") from exc

        if response.status_code >= 500:
            raise NetworkFailure(
                f"Server error {response.status_code} from {path}: {_error_detail(response)}",
                status_code=response.status_code,
            )
        if response.status_code >= 400:
            raise ServerRejected(response.status_code, _error_detail(response))

        try:
            return response.json()
        except ValueError as exc:
            raise NetworkFailure(f"Invalid JSON from {path}", status_code=response.status_code) from exc

    async def fetch_availability(
        self,
        provider_id: int,
        start_date: str,
        end_date: str,
        timeout: TimeoutValue = None,
    ) -> List[DayAvailability]:
        data = await self.call(
            "GET",
            "/availability",
            params={"providerId": provider_id, "startDate": start_date, "endDate": end_date},
            timeout=timeout,
        )
        return _parse_list(DayAvailability, data, "availability")

    async def fetch_bookings(self, provider_id: int, timeout: TimeoutValue = None) -> List[BookingRecord]:
        data = await self.call("GET", "/bookings", params={"providerId": provider_id}, timeout=timeout)
        return _parse_list(BookingRecord, data, "bookings")

    async def fetch_packages(self, provider_id: int, timeout: TimeoutValue = None) -> List[ServicePackage]:
        data = await self.call("GET", "/packages", params={"providerId": provider_id}, timeout=timeout)
        return _parse_list(ServicePackage, data, "packages")

    async def save_day(self, provider_id: int, day: DayAvailability) -> DayAvailability:
        data = await self.call(
            "POST",
            "/availability",
            json={"providerId": provider_id, "availability": day.to_payload()},
        )
        return _parse_one(DayAvailability, data.get("availability", day.to_payload()))

    async def save_batch(self, provider_id: int, days: List[DayAvailability]) -> BatchSaveResponse:
        data = await self.call(
            "POST",
            "/availability/batch",
            json={"providerId": provider_id, "availabilityBatch": [day.to_payload() for day in days]},
        )
        return _parse_one(BatchSaveResponse, data)

    async def delete_slot(self, provider_id: int, date: str, slot_id: str) -> DeleteSlotResponse:
        data = await self.call(
            "DELETE",
            "/availability/timeslot",
            params={"slotId": slot_id, "providerId": provider_id, "date": date},
        )
        return _parse_one(DeleteSlotResponse, data)
