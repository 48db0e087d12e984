"""Member and court models.

Member = a person of the closed membership, linked to the identity provider by
external_key. Court = one bookable padel court.
"""

import enum

from sqlalchemy import Boolean, CheckConstraint, Enum, String
from sqlalchemy.orm import Mapped, mapped_column

from padelbook.models.base import Base, TimestampMixin


class MemberRole(enum.StrEnum):
    """Roles within the facility."""

    MEMBER = "member"
    ADMIN = "admin"
    SUPERADMIN = "superadmin"


class Member(TimestampMixin, Base):
    __tablename__ = "members"

    id: Mapped[int] = mapped_column(primary_key=True)
    external_key: Mapped[str] = mapped_column(String(254), unique=True, nullable=False, index=True)
    email: Mapped[str] = mapped_column(String(254), unique=True, nullable=False)
    role: Mapped[MemberRole] = mapped_column(
        Enum(MemberRole, name="member_role", values_callable=lambda e: [x.value for x in e]),
        default=MemberRole.MEMBER,
        nullable=False,
    )

    # Profile
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)

    # Booking rights
    ticket_balance: Mapped[int] = mapped_column(default=0, nullable=False)
    is_blocked: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    __table_args__ = (CheckConstraint("ticket_balance >= 0", name="ck_members_ticket_balance_non_negative"),)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    @property
    def is_admin(self) -> bool:
        return self.role in (MemberRole.ADMIN, MemberRole.SUPERADMIN)

    @property
    def is_suspended(self) -> bool:
        """Blocked members lose booking rights. Administrators are never suspended."""
        return self.is_blocked and not self.is_admin

    def __repr__(self) -> str:
        return f"<Member {self.email}>"


class Court(TimestampMixin, Base):
    """A padel court. Inactive means under maintenance: nobody can book it."""

    __tablename__ = "courts"

    id: Mapped[int] = mapped_column(primary_key=True)
    number: Mapped[int] = mapped_column(unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def __repr__(self) -> str:
        return f"<Court {self.number} {self.name}>"
