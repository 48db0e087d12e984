"""Ticket transaction model: the ledger behind Member.ticket_balance."""

import enum
from typing import TYPE_CHECKING

from sqlalchemy import Enum, ForeignKey, Index, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from padelbook.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from padelbook.models.member import Member
    from padelbook.models.reservation import Reservation


class TicketTransactionType(enum.StrEnum):
    GRANT = "grant"
    RESERVATION_DEBIT = "reservation_debit"
    CANCELLATION_RESTORE = "cancellation_restore"
    COMPOSITION_CHANGE = "composition_change"
    ADMIN_ADJUSTMENT = "admin_adjustment"


class TicketTransaction(TimestampMixin, Base):
    """A single ticket movement: positive means tickets in, negative means tickets out."""

    __tablename__ = "ticket_transactions"

    id: Mapped[int] = mapped_column(primary_key=True)
    member_id: Mapped[int] = mapped_column(ForeignKey("members.id"), nullable=False)
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    balance_after: Mapped[int] = mapped_column(Integer, nullable=False)
    transaction_type: Mapped[TicketTransactionType] = mapped_column(
        Enum(TicketTransactionType, name="ticket_transaction_type", values_callable=lambda e: [x.value for x in e]),
        nullable=False,
    )
    reservation_id: Mapped[int | None] = mapped_column(ForeignKey("reservations.id"))
    description: Mapped[str] = mapped_column(Text, nullable=False)

    # Relationships
    member: Mapped["Member"] = relationship(lazy="raise")
    reservation: Mapped["Reservation | None"] = relationship(lazy="raise")

    __table_args__ = (Index("ix_ticket_txn_member", "member_id"),)

    def __repr__(self) -> str:
        return f"<TicketTransaction {self.transaction_type.value} {self.amount} member={self.member_id}>"
