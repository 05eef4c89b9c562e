from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

WEEKDAYS = (
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
    "Sunday",
)

UNKNOWN_MENTOR = "Unknown Mentor"
MENTOR_UNAVAILABLE = "Mentor information unavailable"


def split_time_range(value: str) -> tuple[str, str]:
    for separator in (" - ", "–", "-"):
        if separator in value:
            start, _, end = value.partition(separator)
            return start.strip(), end.strip()
    return value.strip(), ""


def format_slot_descriptor(start_time: str, end_time: str) -> str:
    if not end_time:
        return start_time
    return f"{start_time} - {end_time}"


def _coerce_mentor(value: Any) -> Any:
    # Some endpoints return the mentor as a bare id instead of a populated document.
    if isinstance(value, (str, int)):
        return {"id": str(value)}
    return value


def _merge_mentor_name(data: Dict[str, Any]) -> Dict[str, Any]:
    # Older records carry the mentor as a bare ``mentorId`` next to a flat ``mentorName``.
    mentor_name = data.pop("mentorName", None)
    mentor = data.get("mentorId", data.get("mentor"))
    if mentor_name and (mentor is None or isinstance(mentor, (str, int))):
        data.pop("mentorId", None)
        data["mentor"] = {"id": None if mentor is None else str(mentor), "name": mentor_name}
    return data


class MentorRef(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, coerce_numbers_to_str=True)

    id: Optional[str] = Field(default=None, validation_alias=AliasChoices("_id", "id"))
    name: Optional[str] = None
    prefix: Optional[str] = None

    @property
    def label(self) -> str:
        if not self.name:
            return UNKNOWN_MENTOR
        return f"{self.prefix} {self.name}" if self.prefix else self.name


class Slot(BaseModel):
    """A single bookable window offered by one mentor on one weekday."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, coerce_numbers_to_str=True)

    id: Optional[str] = Field(default=None, validation_alias=AliasChoices("_id", "id", "slotId"))
    day: Optional[str] = Field(default=None, validation_alias=AliasChoices("day", "date"))
    start_time: str = Field(default="", validation_alias=AliasChoices("startTime", "start_time"))
    end_time: str = Field(default="", validation_alias=AliasChoices("endTime", "end_time"))
    time: Optional[str] = None
    mentor: Optional[MentorRef] = Field(default=None, validation_alias=AliasChoices("mentorId", "mentor"))

    @model_validator(mode="before")
    @classmethod
    def _normalize_payload(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        raw_time = data.get("time")
        if raw_time and not (data.get("startTime") or data.get("start_time")):
            data["start_time"], data["end_time"] = split_time_range(str(raw_time))
        return _merge_mentor_name(data)

    @field_validator("mentor", mode="before")
    @classmethod
    def _mentor_from_id(cls, value: Any) -> Any:
        return _coerce_mentor(value)

    @property
    def mentor_id(self) -> Optional[str]:
        return self.mentor.id if self.mentor else None

    @property
    def descriptor(self) -> str:
        if self.time:
            return self.time
        return format_slot_descriptor(self.start_time, self.end_time)

    @property
    def key(self) -> str:
        return self.id or f"{self.mentor_id}:{self.day}:{self.descriptor}"


class Mentor(BaseModel):
    model_config = ConfigDict(populate_by_name=True, coerce_numbers_to_str=True)

    id: Optional[str] = Field(default=None, validation_alias=AliasChoices("_id", "id"))
    name: Optional[str] = None
    prefix: Optional[str] = None
    slots: List[Slot] = Field(default_factory=list)

    def ref(self) -> MentorRef:
        return MentorRef(id=self.id, name=self.name, prefix=self.prefix)


AvailabilityIndex = Dict[str, List[Mentor]]


class Booking(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, coerce_numbers_to_str=True)

    id: Optional[str] = Field(default=None, validation_alias=AliasChoices("_id", "id"))
    mentor: Optional[MentorRef] = Field(default=None, validation_alias=AliasChoices("mentorId", "mentor"))
    day: Optional[str] = None
    start_time: str = Field(default="", validation_alias=AliasChoices("startTime", "start_time"))
    end_time: str = Field(default="", validation_alias=AliasChoices("endTime", "end_time"))
    slot: Optional[str] = None
    slot_id: Optional[str] = Field(default=None, validation_alias=AliasChoices("slotId", "slot_id"))
    mentee_name: Optional[str] = Field(default=None, validation_alias=AliasChoices("menteeName", "mentee_name"))

    @model_validator(mode="before")
    @classmethod
    def _normalize_payload(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        if data.get("slot") and not (data.get("startTime") or data.get("start_time")):
            data["start_time"], data["end_time"] = split_time_range(str(data["slot"]))
        return _merge_mentor_name(data)

    @field_validator("mentor", mode="before")
    @classmethod
    def _mentor_from_id(cls, value: Any) -> Any:
        return _coerce_mentor(value)

    @property
    def mentor_label(self) -> str:
        return self.mentor.label if self.mentor else UNKNOWN_MENTOR


class User(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    profile_pic: Optional[str] = Field(default=None, validation_alias=AliasChoices("profilePic", "profile_pic"))


class Notice(BaseModel):
    level: str = "info"
    message: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class SlotButton(BaseModel):
    slot_id: str
    label: str
    booked: bool = False
    disabled: bool = False
    action: str = "Book"


class MentorCard(BaseModel):
    mentor_id: str
    label: str
    slots: List[SlotButton]


class DaySection(BaseModel):
    day: str
    mentors: List[MentorCard]
    empty_message: Optional[str] = None


class BookingItem(BaseModel):
    booking_id: Optional[str]
    mentor_label: str
    when: str


class SessionPanel(BaseModel):
    status: str
    user: Optional[User] = None
    greeting: str
    action: Optional[str] = None


class DashboardPage(BaseModel):
    session: SessionPanel
    redirect: Optional[str] = None
    loading: bool = False
    selected_day: Optional[str] = None
    days: List[DaySection]
    availability_message: Optional[str] = None
    bookings: List[BookingItem]
    bookings_message: Optional[str] = None
    last_booking: Optional[Booking] = None
    is_booked: bool = False
    notices: List[Notice] = Field(default_factory=list)


class SessionStartResponse(BaseModel):
    session_id: str
    ws_url: str
    page: DashboardPage


class DateSelection(BaseModel):
    date: Optional[str] = None


class BookRequest(BaseModel):
    slot_id: str


class SignInRequest(BaseModel):
    token: str
    user: User = Field(default_factory=User)
