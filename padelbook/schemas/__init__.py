"""Pydantic schemas for API serialisation."""

from datetime import date, datetime, time

from pydantic import AwareDatetime, BaseModel, ConfigDict, Field

from padelbook.core.config import settings
from padelbook.services.composition import CompositionMode

# --- Member ---


class MemberBrief(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    first_name: str
    last_name: str


class MemberOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    first_name: str
    last_name: str
    role: str
    ticket_balance: int
    is_blocked: bool


class CoOccupantOut(BaseModel):
    name: str
    role: str
    starts_at: datetime


class QuotaOut(BaseModel):
    allowed: bool
    active_count: int
    max_active: int
    reason: str | None = None
    co_occupants: list[CoOccupantOut] = []


class MeOut(BaseModel):
    member: MemberOut
    quota: QuotaOut


# --- Court ---


class CourtOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    number: int
    name: str
    is_active: bool


class CourtUpdate(BaseModel):
    name: str | None = None
    is_active: bool | None = None


class SlotOut(BaseModel):
    start: datetime
    end: datetime
    label: str  # "HH:MM"
    duration_minutes: int
    is_past: bool
    is_blocked: bool
    is_booked: bool
    is_available: bool


class DaySlotsOut(BaseModel):
    court_id: int
    court_name: str
    date: date
    slots: list[SlotOut]


class AvailabilityOut(BaseModel):
    court_id: int
    start: datetime
    duration_minutes: int
    is_available: bool


# --- Reservation ---


class ReservationCreate(BaseModel):
    court_id: int
    starts_at: AwareDatetime
    duration_minutes: int = Field(90, gt=0, le=settings.max_reservation_minutes)
    mode: CompositionMode | None = None
    ticket_count: int = 0
    member_ids: list[int]


class AdminReservationCreate(ReservationCreate):
    organizer_id: int
    skip_date_check: bool = False
    skip_quota_check: bool = False
    skip_availability_check: bool = False


class CompositionUpdate(BaseModel):
    ticket_count: int
    member_ids: list[int]


class TicketReplacement(BaseModel):
    """Replace every ticket with real participants: the full list of 4, organizer included."""

    member_ids: list[int]


class ParticipantOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    member_id: int
    member: MemberBrief


class ReservationOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    court_id: int
    organizer_id: int
    starts_at: datetime
    ends_at: datetime
    duration_minutes: int
    status: str
    tickets_consumed: int
    uses_tickets: bool
    cancelled_at: datetime | None
    cancellation_reason: str | None
    participants: list[ParticipantOut]
    created_at: datetime


class CancellationOut(BaseModel):
    reservation: ReservationOut
    outcome: str
    tickets_restored: int


# --- Time blocks ---


class TimeBlockIn(BaseModel):
    court_id: int | None = None
    block_date: date
    start_time: time
    end_time: time
    reason: str | None = Field(default=None, max_length=500)


class TimeBlockUpdate(BaseModel):
    court_id: int | None = None
    block_date: date | None = None
    start_time: time | None = None
    end_time: time | None = None
    reason: str | None = Field(default=None, max_length=500)
    is_active: bool | None = None


class TimeBlockOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    court_id: int | None
    block_date: date
    start_time: time
    end_time: time
    reason: str | None
    is_active: bool


# --- Tickets ---


class TicketGrant(BaseModel):
    amount: int = Field(..., description="Positive to grant, negative to withdraw")
    description: str = "Granted by administrator"


class TicketTransactionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    amount: int
    balance_after: int
    transaction_type: str
    reservation_id: int | None
    description: str | None
    created_at: datetime


class TicketLedgerOut(BaseModel):
    member_id: int
    balance: int
    transactions: list[TicketTransactionOut]


# --- Quota correction ---


class QuotaCorrectionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    member_id: int
    name: str
    active_count: int
    kept: list[int]
    cancelled: list[int]
    withdrawn: list[int]
