"""Reservation composition: who fills the 4 player slots.

Either 4 real participants, or 1 to 3 tickets plus `4 - tickets`
participants. The organizer is always one of the participants. The two
shapes are separate types and their constructors reject anything else, so an
invalid composition cannot exist past this module.
"""

import enum
from collections.abc import Sequence
from dataclasses import dataclass

from padelbook.core.config import settings
from padelbook.core.errors import InvalidComposition


class CompositionMode(enum.StrEnum):
    PARTICIPANTS = "participants"
    TICKETS = "tickets"


def _check_members(member_ids: tuple[int, ...], expected: int) -> None:
    if len(member_ids) != expected:
        raise InvalidComposition(f"Exactly {expected} participant(s) required, got {len(member_ids)}.")
    if len(set(member_ids)) != len(member_ids):
        raise InvalidComposition("Each participant can only be selected once.")


@dataclass(frozen=True)
class FullComposition:
    """All slots filled by participants, no tickets."""

    member_ids: tuple[int, ...]

    def __post_init__(self):
        _check_members(self.member_ids, settings.slots_per_reservation)

    @property
    def ticket_count(self) -> int:
        return 0

    @property
    def mode(self) -> CompositionMode:
        return CompositionMode.PARTICIPANTS


@dataclass(frozen=True)
class TicketComposition:
    """Some slots covered by the organizer's tickets."""

    ticket_count: int
    member_ids: tuple[int, ...]

    def __post_init__(self):
        if not 1 <= self.ticket_count <= settings.max_tickets_per_reservation:
            raise InvalidComposition(
                f"Use between 1 and {settings.max_tickets_per_reservation} tickets, or 4 participants."
            )
        _check_members(self.member_ids, settings.slots_per_reservation - self.ticket_count)

    @property
    def mode(self) -> CompositionMode:
        return CompositionMode.TICKETS


Composition = FullComposition | TicketComposition


def build_composition(ticket_count: int, member_ids: Sequence[int], mode: CompositionMode | None = None) -> Composition:
    """Build the variant matching the request. `mode`, when given, must agree with the ticket count."""
    ids = tuple(member_ids)
    if mode is None:
        mode = CompositionMode.TICKETS if ticket_count > 0 else CompositionMode.PARTICIPANTS

    if mode == CompositionMode.PARTICIPANTS:
        if ticket_count != 0:
            raise InvalidComposition("A participants-only reservation cannot use tickets.")
        return FullComposition(ids)
    return TicketComposition(ticket_count, ids)


def require_organizer(composition: Composition, organizer_id: int) -> None:
    if organizer_id not in composition.member_ids:
        raise InvalidComposition("The organizer must be one of the participants.")
