from __future__ import annotations

import logging
from typing import Any, Optional, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from ..errors import ApiError, MissingCredentialError
from ..schemas import Booking, Mentor, Slot

logger = logging.getLogger(__name__)

AVAILABLE_SLOTS_PATH = "/api/mentor/available-slots"
ALL_AVAILABLE_SLOTS_PATH = "/api/mentor/all-available-slots"
BOOKINGS_PATH = "/api/mentee/bookings"
BOOK_SLOT_PATH = "/api/mentee/book-slot"

ModelT = TypeVar("ModelT", bound=BaseModel)


class MentorApiClient:
    """Thin async client for the remote mentor/mentee REST API.

    Every call opens its own ``httpx.AsyncClient``; nothing is cached between
    calls. Transport failures, non-2xx responses and unreadable bodies are
    raised as ``ApiError``. Calls that need a credential raise
    ``MissingCredentialError`` before touching the network.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 10,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    async def _request(
        self,
        method: str,
        path: str,
        *,
        token: Optional[str] = None,
        params: Optional[dict] = None,
        payload: Optional[dict] = None,
    ) -> Any:
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.request(
                    method,
                    f"{self.base_url}{path}",
                    params=params,
                    json=payload,
                    headers=headers,
                )
                response.raise_for_status()
                return response.json()
        except httpx.HTTPStatusError as exc:
            raise ApiError(
                f"{method} {path} returned {exc.response.status_code}",
                status_code=exc.response.status_code,
            ) from exc
        except httpx.HTTPError as exc:
            raise ApiError(f"{method} {path} failed: {exc}") from exc
        except ValueError as exc:
            raise ApiError(f"{method} {path} returned a non-JSON body") from exc

    @staticmethod
    def _parse_list(data: Any, model: type[ModelT], path: str) -> list[ModelT]:
        if not isinstance(data, list):
            raise ApiError(f"{path} returned {type(data).__name__}, expected a list")
        items: list[ModelT] = []
        for raw in data:
            try:
                items.append(model.model_validate(raw))
            except ValidationError as exc:
                logger.warning("Skipping malformed %s record from %s: %s", model.__name__, path, exc)
        return items

    async def list_available_slots(self, day: str) -> list[Slot]:
        data = await self._request("GET", AVAILABLE_SLOTS_PATH, params={"date": day})
        return self._parse_list(data, Slot, AVAILABLE_SLOTS_PATH)

    async def list_all_available_slots(self) -> list[Mentor]:
        data = await self._request("GET", ALL_AVAILABLE_SLOTS_PATH)
        return self._parse_list(data, Mentor, ALL_AVAILABLE_SLOTS_PATH)

    async def list_my_bookings(self, token: Optional[str]) -> list[Booking]:
        if not token:
            raise MissingCredentialError()
        data = await self._request("GET", BOOKINGS_PATH, token=token)
        return self._parse_list(data, Booking, BOOKINGS_PATH)

    async def create_booking(self, token: Optional[str], mentor_id: str, slot: str) -> Booking:
        if not token:
            raise MissingCredentialError()
        data = await self._request(
            "POST",
            BOOK_SLOT_PATH,
            token=token,
            payload={"mentorId": mentor_id, "slot": slot},
        )
        if not isinstance(data, dict):
            raise ApiError(f"{BOOK_SLOT_PATH} returned {type(data).__name__}, expected an object")
        try:
            return Booking.model_validate(data)
        except ValidationError as exc:
            raise ApiError(f"{BOOK_SLOT_PATH} returned an unreadable booking") from exc
