"""Seat selection reducer.

Seats and group size are updated together by one function per action,
so the number of selected seats always equals the group size.
"""

from __future__ import annotations

from wellness.models.form import SeatInfo

SEAT_COUNT = 4


def initial_seats(group_size: int = 1, name: str = "") -> list[SeatInfo]:
    seats = [SeatInfo(id=i) for i in range(1, SEAT_COUNT + 1)]
    return set_group_size(seats, group_size, name)


def selected_count(seats: list[SeatInfo]) -> int:
    return sum(1 for s in seats if s.selected)


def set_group_size(seats: list[SeatInfo], group_size: int, name: str = "") -> list[SeatInfo]:
    """Select exactly the first ``group_size`` seats by id.

    Deselected seats lose any error flag. The first seat is named after
    the booker if it has no name yet.
    """
    if not 1 <= group_size <= SEAT_COUNT:
        raise ValueError(f"Group size must be between 1 and {SEAT_COUNT}, got {group_size}")

    result = []
    for seat in sorted(seats, key=lambda s: s.id):
        selected = seat.id <= group_size
        result.append(seat.model_copy(update={
            "selected": selected,
            "error": seat.error if selected else False,
        }))
    return name_first_seat(result, name)


def name_first_seat(seats: list[SeatInfo], name: str) -> list[SeatInfo]:
    """Give the lowest-numbered selected seat the booker's name if it has none.

    The selection itself is left as is.
    """
    first = min((s for s in seats if s.selected), key=lambda s: s.id, default=None)
    if first is None or first.name or not name:
        return list(seats)
    return [
        seat.model_copy(update={"name": name}) if seat.id == first.id else seat
        for seat in seats
    ]


def toggle_seat(seats: list[SeatInfo], seat_id: int, name: str = "") -> list[SeatInfo]:
    """Flip one seat's selection.

    A newly selected empty seat is named after the booker. Deselecting the
    only selected seat is ignored so a booking always has one seat.
    """
    if not any(s.id == seat_id for s in seats):
        raise ValueError(f"Unknown seat {seat_id}")

    result = []
    for seat in seats:
        if seat.id != seat_id:
            result.append(seat)
        elif seat.selected:
            result.append(seat.model_copy(update={"selected": False, "error": False}))
        else:
            result.append(seat.model_copy(update={
                "selected": True,
                "name": seat.name or name,
            }))

    if selected_count(result) == 0:
        return list(seats)
    return result


def rename_seat(seats: list[SeatInfo], seat_id: int, name: str) -> list[SeatInfo]:
    """Set a seat's occupant name; a flagged seat with a real name is cleared."""
    if not any(s.id == seat_id for s in seats):
        raise ValueError(f"Unknown seat {seat_id}")
    return [
        seat.model_copy(update={
            "name": name,
            "error": seat.error and not name.strip(),
        }) if seat.id == seat_id else seat
        for seat in seats
    ]


def flag_unnamed(seats: list[SeatInfo]) -> tuple[list[SeatInfo], list[int]]:
    """Mark every selected seat without a name. Returns (seats, flagged ids)."""
    flagged = [s.id for s in seats if s.selected and not s.name.strip()]
    return [
        seat.model_copy(update={"error": seat.id in flagged}) for seat in seats
    ], flagged
