"""Reservation, participant link and time-block models.

A reservation occupies one court for a contiguous window and always accounts
for 4 player slots: real participants (organizer included) plus consumed
tickets.
"""

import enum
from datetime import date, datetime, time

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    Enum,
    ForeignKey,
    Index,
    String,
    Text,
    Time,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from padelbook.models.base import Base, TimestampMixin, UTCDateTime
from padelbook.models.member import Court, Member


class ReservationStatus(enum.StrEnum):
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


class Reservation(TimestampMixin, Base):
    __tablename__ = "reservations"

    id: Mapped[int] = mapped_column(primary_key=True)
    organizer_id: Mapped[int] = mapped_column(ForeignKey("members.id"), nullable=False)
    court_id: Mapped[int] = mapped_column(ForeignKey("courts.id"), nullable=False)

    # When
    starts_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    ends_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    duration_minutes: Mapped[int] = mapped_column(nullable=False)

    # Status
    status: Mapped[ReservationStatus] = mapped_column(
        Enum(ReservationStatus, name="reservation_status", values_callable=lambda e: [x.value for x in e]),
        default=ReservationStatus.CONFIRMED,
        nullable=False,
    )
    cancelled_at: Mapped[datetime | None] = mapped_column(UTCDateTime)
    cancellation_reason: Mapped[str | None] = mapped_column(Text)

    # Tickets standing in for missing players
    tickets_consumed: Mapped[int] = mapped_column(default=0, nullable=False)

    # Relationships
    organizer: Mapped["Member"] = relationship(lazy="selectin")
    court: Mapped["Court"] = relationship(lazy="selectin")
    participants: Mapped[list["ReservationParticipant"]] = relationship(
        back_populates="reservation",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="ReservationParticipant.id",
    )

    __table_args__ = (
        CheckConstraint("tickets_consumed BETWEEN 0 AND 3", name="ck_reservations_tickets_range"),
        # Storage-level backstop against double-booking the same start on one court.
        # Overlaps are prevented by the availability re-check under the court row lock.
        Index(
            "ix_reservations_no_double",
            "court_id",
            "starts_at",
            unique=True,
            postgresql_where=text("status = 'confirmed'"),
            sqlite_where=text("status = 'confirmed'"),
        ),
        Index("ix_reservations_court_start", "court_id", "starts_at"),
        Index("ix_reservations_organizer", "organizer_id", "starts_at"),
    )

    @property
    def uses_tickets(self) -> bool:
        return self.tickets_consumed > 0

    @property
    def is_confirmed(self) -> bool:
        return self.status == ReservationStatus.CONFIRMED

    @property
    def member_ids(self) -> list[int]:
        return [p.member_id for p in self.participants]

    def __repr__(self) -> str:
        return f"<Reservation {self.starts_at.isoformat()} +{self.duration_minutes}m court={self.court_id}>"


class ReservationParticipant(Base):
    """A member filling one of the reservation's player slots."""

    __tablename__ = "reservation_participants"

    id: Mapped[int] = mapped_column(primary_key=True)
    reservation_id: Mapped[int] = mapped_column(ForeignKey("reservations.id", ondelete="CASCADE"), nullable=False)
    member_id: Mapped[int] = mapped_column(ForeignKey("members.id"), nullable=False)

    reservation: Mapped["Reservation"] = relationship(back_populates="participants")
    member: Mapped["Member"] = relationship(lazy="selectin")

    __table_args__ = (
        UniqueConstraint("reservation_id", "member_id", name="uq_participant_reservation_member"),
        Index("ix_participants_member", "member_id"),
    )

    def __repr__(self) -> str:
        return f"<ReservationParticipant reservation={self.reservation_id} member={self.member_id}>"


class TimeBlock(TimestampMixin, Base):
    """An administrative closure of a time range, on one court or on all courts."""

    __tablename__ = "time_blocks"

    id: Mapped[int] = mapped_column(primary_key=True)
    court_id: Mapped[int | None] = mapped_column(ForeignKey("courts.id"))  # None = every court
    block_date: Mapped[date] = mapped_column(Date, nullable=False)
    start_time: Mapped[time] = mapped_column(Time, nullable=False)
    end_time: Mapped[time] = mapped_column(Time, nullable=False)
    reason: Mapped[str | None] = mapped_column(String(500))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    court: Mapped["Court | None"] = relationship(lazy="selectin")

    __table_args__ = (Index("ix_time_blocks_date", "block_date", "court_id"),)

    def __repr__(self) -> str:
        scope = f"court={self.court_id}" if self.court_id else "all courts"
        return f"<TimeBlock {self.block_date} {self.start_time}-{self.end_time} {scope}>"
