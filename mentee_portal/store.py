from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Callable, Dict, Optional, Tuple

from .schemas import WEEKDAYS, AvailabilityIndex, Booking

if TYPE_CHECKING:
    from .dashboard import DashboardView


def empty_index() -> AvailabilityIndex:
    return {day: [] for day in WEEKDAYS}


@dataclass(frozen=True)
class DashboardState:
    """Everything a dashboard renders. Replaced as a whole, never edited in place."""

    index: AvailabilityIndex = field(default_factory=empty_index)
    bookings: Tuple[Booking, ...] = ()
    booked_ids: frozenset = frozenset()
    selected_day: Optional[str] = None
    last_booking: Optional[Booking] = None
    is_booked: bool = False
    availability_loaded: bool = False
    bookings_loaded: bool = False
    login_required: bool = False


@dataclass
class DashboardSession:
    session_id: str
    view: "DashboardView"
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class InMemoryStore:
    def __init__(self) -> None:
        self.sessions: Dict[str, DashboardSession] = {}

    def create_session(self, view_factory: Callable[[], "DashboardView"]) -> DashboardSession:
        session_id = uuid.uuid4().hex
        session = DashboardSession(session_id=session_id, view=view_factory())
        self.sessions[session_id] = session
        return session

    def get_session(self, session_id: str) -> Optional[DashboardSession]:
        return self.sessions.get(session_id)

    def remove_session(self, session_id: str) -> Optional[DashboardSession]:
        return self.sessions.pop(session_id, None)


store = InMemoryStore()
