from __future__ import annotations

import logging
from typing import AbstractSet, Iterable, Optional

from ..api.client import MentorApiClient
from ..errors import MissingCredentialError
from ..schemas import AvailabilityIndex, Booking, Slot
from .availability import iter_slots, normalize_day

logger = logging.getLogger(__name__)


async def fetch_bookings(client: MentorApiClient, credential: Optional[str]) -> list[Booking]:
    if not credential:
        raise MissingCredentialError()
    bookings = await client.list_my_bookings(credential)
    logger.info("Fetched %d bookings", len(bookings))
    return bookings


def _norm(value: Optional[str]) -> str:
    return " ".join((value or "").split()).lower()


def _when(day: Optional[str], start: str, end: str) -> tuple:
    return (normalize_day(day) or _norm(day), _norm(start), _norm(end))


def _booking_signature(booking: Booking) -> Optional[tuple]:
    # A booking carrying a mentor id matches on that id alone; the name is
    # only used when no id came back.
    mentor = booking.mentor
    if mentor is None:
        return None
    when = _when(booking.day, booking.start_time, booking.end_time)
    if mentor.id:
        return ("id", mentor.id) + when
    if mentor.name:
        return ("name", _norm(mentor.name)) + when
    return None


def _slot_signatures(slot: Slot) -> set[tuple]:
    when = _when(slot.day, slot.start_time, slot.end_time)
    keys: set[tuple] = set()
    if slot.mentor is not None:
        if slot.mentor.id:
            keys.add(("id", slot.mentor.id) + when)
        if slot.mentor.name:
            keys.add(("name", _norm(slot.mentor.name)) + when)
    return keys


def booked_slot_ids(bookings: Iterable[Booking], index: AvailabilityIndex) -> frozenset[str]:
    """Map bookings onto the slot keys used by the availability index.

    An explicit ``slotId`` on a booking is taken as-is. Otherwise the booking
    is matched against indexed slots by mentor id, day, start and end. Only a
    booking whose mentor has no id falls back to matching on mentor name.
    Booking ids are never added.
    """
    explicit: set[str] = set()
    wanted: set[tuple] = set()
    for booking in bookings:
        if booking.slot_id:
            explicit.add(booking.slot_id)
            continue
        signature = _booking_signature(booking)
        if signature is not None:
            wanted.add(signature)

    matched = {slot.key for slot in iter_slots(index) if wanted & _slot_signatures(slot)}
    return frozenset(explicit | matched)


async def submit_booking(
    client: MentorApiClient,
    credential: Optional[str],
    *,
    mentor_id: str,
    slot_descriptor: str,
    slot_id: str,
    booked_ids: AbstractSet[str] = frozenset(),
) -> tuple[Booking, frozenset[str]]:
    """Create a booking and return it with the optimistically grown booked set.

    No duplicate check happens here; concurrent double bookings are the
    server's to reject.
    """
    if not credential:
        raise MissingCredentialError()
    booking = await client.create_booking(credential, mentor_id, slot_descriptor)
    logger.info("Booked %s with mentor %s (%s)", slot_descriptor, mentor_id, booking.id)
    return booking, frozenset(booked_ids) | {slot_id}
