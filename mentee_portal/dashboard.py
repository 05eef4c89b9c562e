from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from typing import List, Optional

from .api.client import MentorApiClient
from .auth import AuthSession, SessionStatus
from .errors import ApiError, MissingCredentialError
from .schemas import (
    MENTOR_UNAVAILABLE,
    WEEKDAYS,
    Booking,
    BookingItem,
    DashboardPage,
    DaySection,
    Mentor,
    MentorCard,
    Notice,
    SessionPanel,
    SlotButton,
    User,
)
from .store import DashboardState
from .tools.availability import aggregate_slots, fetch_all_availability, fetch_availability, find_slot, weekday_for
from .tools.bookings import booked_slot_ids, fetch_bookings, submit_booking

logger = logging.getLogger(__name__)

STRATEGY_PER_DAY = "per_day"
STRATEGY_ALL = "all"


class DashboardView:
    """Mentee dashboard: availability by weekday, booking and booking history.

    State lives in a frozen ``DashboardState`` swapped wholesale after each
    await. Each mount bumps a generation counter; a response that comes back
    after ``unmount`` or for an older generation is dropped. Bookings fetches
    are numbered too, so a list requested before a newer one was applied (or
    before a booking or sign-out) never overwrites it.
    """

    def __init__(
        self,
        client: MentorApiClient,
        auth: AuthSession,
        *,
        strategy: str = STRATEGY_PER_DAY,
        login_path: str = "/login",
    ) -> None:
        if strategy not in (STRATEGY_PER_DAY, STRATEGY_ALL):
            raise ValueError(f"unknown availability strategy {strategy!r}")
        self.client = client
        self.auth = auth
        self.strategy = strategy
        self.login_path = login_path
        self.state = DashboardState()
        self.notices: List[Notice] = []
        self.mounted = False
        self._generation = 0
        self._bookings_seq = 0
        self._bookings_floor = 0

    # lifecycle

    async def mount(self) -> None:
        self._generation += 1
        self.mounted = True
        self.state = DashboardState()
        if self.auth.status is SessionStatus.LOADING:
            self.auth.restore()
        tasks = [self.load_availability()]
        if self.auth.credential:
            tasks.append(self.refresh_bookings())
        await asyncio.gather(*tasks)

    def unmount(self) -> None:
        self.mounted = False

    def _apply(self, generation: int, **changes) -> bool:
        if not self.mounted or generation != self._generation:
            logger.debug("Discarding late update for a torn-down dashboard: %s", sorted(changes))
            return False
        self.state = replace(self.state, **changes)
        return True

    def _next_bookings_seq(self) -> int:
        self._bookings_seq += 1
        return self._bookings_seq

    def _invalidate_pending_bookings(self) -> None:
        # Any bookings fetch issued before this point carries a stale list.
        self._bookings_floor = self._next_bookings_seq()

    def notify(self, message: str, level: str = "info") -> None:
        self.notices.append(Notice(level=level, message=message))

    def _prompt_login(self, message: str) -> None:
        self.notify(message, level="warning")
        self._apply(self._generation, login_required=True)

    # fetches

    async def load_availability(self) -> None:
        generation = self._generation
        if self.strategy == STRATEGY_ALL:
            slots = await fetch_all_availability(self.client)
        else:
            slots = await fetch_availability(self.client)
        index = aggregate_slots(slots)
        booked_ids = (
            booked_slot_ids(self.state.bookings, index)
            if self.state.bookings_loaded
            else self.state.booked_ids
        )
        self._apply(generation, index=index, booked_ids=booked_ids, availability_loaded=True)

    async def refresh_bookings(self) -> None:
        generation = self._generation
        seq = self._next_bookings_seq()
        try:
            bookings = await fetch_bookings(self.client, self.auth.credential)
        except MissingCredentialError as exc:
            self._prompt_login(str(exc))
            return
        except ApiError as exc:
            logger.warning("Error fetching bookings: %s", exc)
            return
        if seq < self._bookings_floor:
            logger.debug("Discarding bookings fetch %d, superseded by %d", seq, self._bookings_floor)
            return
        applied = self._apply(
            generation,
            bookings=tuple(bookings),
            booked_ids=booked_slot_ids(bookings, self.state.index),
            bookings_loaded=True,
        )
        if applied:
            self._bookings_floor = seq

    # actions

    async def book(self, slot_key: str) -> Optional[Booking]:
        generation = self._generation
        slot = find_slot(self.state.index, slot_key)
        if slot is None or not slot.mentor_id:
            self.notify("That slot is no longer available.", level="warning")
            return None
        if slot.key in self.state.booked_ids:
            self.notify("You have already booked this slot.", level="warning")
            return None
        try:
            booking, _ = await submit_booking(
                self.client,
                self.auth.credential,
                mentor_id=slot.mentor_id,
                slot_descriptor=slot.descriptor,
                slot_id=slot.key,
                booked_ids=self.state.booked_ids,
            )
        except MissingCredentialError as exc:
            self._prompt_login(str(exc))
            return None
        except ApiError as exc:
            logger.error("Error booking session %s: %s", slot.key, exc)
            self.notify("Failed to book session. Please login again.", level="error")
            return None

        applied = self._apply(
            generation,
            last_booking=booking,
            is_booked=True,
            booked_ids=self.state.booked_ids | {slot.key},
        )
        if applied:
            self._invalidate_pending_bookings()
            await self.refresh_bookings()
            self.notify("Session booked successfully!")
        return booking

    def select_date(self, value: Optional[str]) -> Optional[str]:
        if value is None:
            self._apply(self._generation, selected_day=None)
            return None
        try:
            day = weekday_for(value)
        except ValueError:
            self.notify(f"Could not read a date from {value!r}.", level="warning")
            return self.state.selected_day
        self._apply(self._generation, selected_day=day)
        return day

    async def sign_in(self, token: str, user: User) -> None:
        self.auth.sign_in(token, user)
        self._apply(self._generation, login_required=False)
        await self.refresh_bookings()

    def sign_out(self) -> None:
        self.auth.sign_out()
        self._invalidate_pending_bookings()
        self._apply(
            self._generation,
            bookings=(),
            booked_ids=frozenset(),
            bookings_loaded=False,
            last_booking=None,
            is_booked=False,
        )

    # rendering

    def render(self, drain_notices: bool = True) -> DashboardPage:
        state = self.state
        days = [state.selected_day] if state.selected_day else list(WEEKDAYS)
        has_availability = any(state.index.get(day) for day in WEEKDAYS)
        notices = list(self.notices)
        if drain_notices:
            self.notices = []

        bookings = [
            BookingItem(
                booking_id=booking.id,
                mentor_label=booking.mentor_label,
                when=", ".join(part for part in (booking.day, booking.start_time or booking.slot) if part),
            )
            for booking in state.bookings
        ]
        return DashboardPage(
            session=self._session_panel(),
            redirect=self.login_path if self.auth.confirmed_absent or state.login_required else None,
            loading=self.auth.status is SessionStatus.LOADING or not state.availability_loaded,
            selected_day=state.selected_day,
            days=[self._day_section(day) for day in days],
            availability_message=None if has_availability else "No available mentors at the moment.",
            bookings=bookings,
            bookings_message=None if bookings else "No bookings yet.",
            last_booking=state.last_booking,
            is_booked=state.is_booked,
            notices=notices,
        )

    def _session_panel(self) -> SessionPanel:
        status = self.auth.status
        if status is SessionStatus.SIGNED_IN:
            user = self.auth.user
            name = user.name if user else None
            return SessionPanel(
                status=status.value,
                user=user,
                greeting=f"Welcome, {name}!" if name else "Welcome!",
                action="sign_out",
            )
        return SessionPanel(
            status=status.value,
            greeting="Welcome!",
            action="sign_in" if status is SessionStatus.SIGNED_OUT else None,
        )

    def _day_section(self, day: str) -> DaySection:
        mentors = self.state.index.get(day, [])
        return DaySection(
            day=day,
            mentors=[self._mentor_card(mentor) for mentor in mentors],
            empty_message=None if mentors else f"No available mentors for {day}.",
        )

    def _mentor_card(self, mentor: Mentor) -> MentorCard:
        booked_ids = self.state.booked_ids
        label = mentor.name or MENTOR_UNAVAILABLE
        if mentor.name and mentor.prefix:
            label = f"{mentor.prefix} {mentor.name}"
        buttons = []
        for slot in mentor.slots:
            booked = slot.key in booked_ids
            buttons.append(
                SlotButton(
                    slot_id=slot.key,
                    label=slot.descriptor,
                    booked=booked,
                    disabled=booked,
                    action="Booked" if booked else "Book",
                )
            )
        return MentorCard(mentor_id=mentor.id or "", label=label, slots=buttons)
