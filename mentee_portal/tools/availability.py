from __future__ import annotations

import asyncio
import logging
from typing import Iterable, Optional, Sequence

from dateutil import parser as date_parser

from ..api.client import MentorApiClient
from ..errors import ApiError
from ..schemas import WEEKDAYS, AvailabilityIndex, Mentor, MentorRef, Slot

logger = logging.getLogger(__name__)

_WEEKDAY_LOOKUP = {day.lower(): day for day in WEEKDAYS}


def normalize_day(value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    return _WEEKDAY_LOOKUP.get(value.strip().lower())


def weekday_for(value: str) -> str:
    """Resolve a weekday name or any parseable date string to a canonical weekday."""
    day = normalize_day(value)
    if day:
        return day
    try:
        parsed = date_parser.parse(value)
    except (ValueError, OverflowError) as exc:
        raise ValueError(f"could not read a date from {value!r}") from exc
    return WEEKDAYS[parsed.weekday()]


def _tag_day(slot: Slot, day: str) -> Slot:
    if slot.day:
        return slot
    return slot.model_copy(update={"day": day})


async def fetch_availability(
    client: MentorApiClient, days: Sequence[str] = WEEKDAYS
) -> list[Slot]:
    # All-settled: a failing day contributes nothing and never cancels the others.
    results = await asyncio.gather(
        *(client.list_available_slots(day) for day in days),
        return_exceptions=True,
    )
    slots: list[Slot] = []
    for day, result in zip(days, results):
        if isinstance(result, ApiError):
            logger.warning("Availability for %s unavailable: %s", day, result)
            continue
        if isinstance(result, BaseException):
            raise result
        for slot in result:
            if not slot.mentor_id:
                logger.debug("Dropping slot %s on %s without a mentor reference", slot.id, day)
                continue
            slots.append(_tag_day(slot, day))
    logger.info("Fetched %d slots across %d days", len(slots), len(days))
    return slots


def flatten_mentors(mentors: Iterable[Mentor]) -> list[Slot]:
    """Turn mentor-with-nested-slots records into flat slots carrying their mentor."""
    slots: list[Slot] = []
    for mentor in mentors:
        ref: Optional[MentorRef] = mentor.ref() if mentor.id else None
        for slot in mentor.slots:
            if slot.mentor_id is None and ref is not None:
                slot = slot.model_copy(update={"mentor": ref})
            slots.append(slot)
    return slots


async def fetch_all_availability(client: MentorApiClient) -> list[Slot]:
    try:
        mentors = await client.list_all_available_slots()
    except ApiError as exc:
        logger.warning("Availability for all mentors unavailable: %s", exc)
        return []
    return [slot for slot in flatten_mentors(mentors) if slot.mentor_id]


def aggregate_slots(slots: Iterable[Slot]) -> AvailabilityIndex:
    """Group slots into weekday -> mentors -> slots.

    Weekdays always come out in canonical Monday..Sunday order. Mentors and
    their slots keep the order they arrived in; a mentor seen several times on
    one day becomes a single entry with the slot lists merged. Slots without a
    mentor id or with an unrecognised day are left out.
    """
    grouped: dict[str, dict[str, tuple[MentorRef, list[Slot]]]] = {day: {} for day in WEEKDAYS}
    for slot in slots:
        day = normalize_day(slot.day)
        if day is None or slot.mentor is None or not slot.mentor.id:
            continue
        mentors = grouped[day]
        if slot.mentor.id not in mentors:
            mentors[slot.mentor.id] = (slot.mentor, [])
        mentors[slot.mentor.id][1].append(slot if slot.day == day else slot.model_copy(update={"day": day}))

    return {
        day: [
            Mentor(id=ref.id, name=ref.name, prefix=ref.prefix, slots=day_slots)
            for ref, day_slots in grouped[day].values()
        ]
        for day in WEEKDAYS
    }


def find_slot(index: AvailabilityIndex, slot_key: str) -> Optional[Slot]:
    for mentors in index.values():
        for mentor in mentors:
            for slot in mentor.slots:
                if slot.key == slot_key:
                    return slot
    return None


def iter_slots(index: AvailabilityIndex) -> Iterable[Slot]:
    for day in WEEKDAYS:
        for mentor in index.get(day, []):
            yield from mentor.slots
