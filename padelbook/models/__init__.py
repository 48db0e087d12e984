"""ORM models.

Importing this package registers every table on Base.metadata, which the seed
script and the tests use for create_all.
"""

from padelbook.models.base import Base
from padelbook.models.member import Court, Member, MemberRole
from padelbook.models.reservation import Reservation, ReservationParticipant, ReservationStatus, TimeBlock
from padelbook.models.ticket import TicketTransaction, TicketTransactionType

__all__ = [
    "Base",
    "Member",
    "MemberRole",
    "Court",
    "Reservation",
    "ReservationParticipant",
    "ReservationStatus",
    "TimeBlock",
    "TicketTransaction",
    "TicketTransactionType",
]
