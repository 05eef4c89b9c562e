import json
from typing import Any, Dict, List, Optional

import httpx
import pytest

from mentee_portal.api.client import MentorApiClient
from mentee_portal.auth import AuthSession, TokenFileAuthProvider

TOKEN = "token-123"
BASE_URL = "https://api.test"


def slot_record(
    slot_id: str,
    mentor_id: Optional[str],
    start: str,
    end: str,
    mentor_name: str = "Ada",
    day: Optional[str] = None,
) -> Dict[str, Any]:
    record: Dict[str, Any] = {"_id": slot_id, "startTime": start, "endTime": end}
    if mentor_id is not None:
        record["mentorId"] = {"_id": mentor_id, "name": mentor_name, "prefix": "Dr."}
    if day is not None:
        record["day"] = day
    return record


class FakeApi:
    """In-process stand-in for the remote REST API, served through httpx.MockTransport."""

    def __init__(self) -> None:
        self.slots_by_day: Dict[str, List[Dict[str, Any]]] = {}
        self.mentors: List[Dict[str, Any]] = []
        self.bookings: List[Dict[str, Any]] = []
        self.failing_days: set = set()
        self.fail_booking = False
        self.fail_bookings_read = False
        self.requests: List[httpx.Request] = []
        self._next_id = 1

    def paths(self) -> List[str]:
        return [request.url.path for request in self.requests]

    def _authorized(self, request: httpx.Request) -> bool:
        return request.headers.get("Authorization") == f"Bearer {TOKEN}"

    def _find_slot(self, mentor_id: str, descriptor: str) -> Optional[Dict[str, Any]]:
        for day, records in self.slots_by_day.items():
            for record in records:
                mentor = record.get("mentorId") or {}
                if mentor.get("_id") != mentor_id:
                    continue
                if f"{record['startTime']} - {record['endTime']}" == descriptor:
                    return {**record, "day": record.get("day", day)}
        return None

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if path == "/api/mentor/available-slots":
            day = request.url.params.get("date")
            if day in self.failing_days:
                return httpx.Response(503, json={"message": "unavailable"})
            return httpx.Response(200, json=self.slots_by_day.get(day, []))
        if path == "/api/mentor/all-available-slots":
            return httpx.Response(200, json=self.mentors)
        if path == "/api/mentee/bookings":
            if not self._authorized(request):
                return httpx.Response(401, json={"message": "unauthorized"})
            if self.fail_bookings_read:
                return httpx.Response(503, json={"message": "unavailable"})
            return httpx.Response(200, json=self.bookings)
        if path == "/api/mentee/book-slot":
            if not self._authorized(request):
                return httpx.Response(401, json={"message": "unauthorized"})
            if self.fail_booking:
                return httpx.Response(500, json={"message": "booking failed"})
            body = json.loads(request.content)
            slot = self._find_slot(body["mentorId"], body["slot"])
            if slot is None:
                return httpx.Response(404, json={"message": "slot not found"})
            booking = {
                "_id": f"booking-{self._next_id}",
                "mentorId": slot["mentorId"],
                "day": slot["day"],
                "startTime": slot["startTime"],
                "endTime": slot["endTime"],
                "menteeName": "Sam",
            }
            self._next_id += 1
            self.bookings.append(booking)
            return httpx.Response(201, json=booking)
        return httpx.Response(404, json={"message": "not found"})


@pytest.fixture
def fake_api() -> FakeApi:
    return FakeApi()


@pytest.fixture
def api_client(fake_api: FakeApi) -> MentorApiClient:
    return MentorApiClient(BASE_URL, timeout=5, transport=httpx.MockTransport(fake_api.handler))


@pytest.fixture
def session_file(tmp_path):
    return tmp_path / "session.json"


@pytest.fixture
def signed_in_auth(session_file) -> AuthSession:
    session_file.write_text(json.dumps({"token": TOKEN, "user": {"name": "Sam"}}), encoding="utf-8")
    return AuthSession(TokenFileAuthProvider(session_file))


@pytest.fixture
def signed_out_auth(session_file) -> AuthSession:
    return AuthSession(TokenFileAuthProvider(session_file))
