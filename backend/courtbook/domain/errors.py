"""Domain errors raised by the reservation core.

Every failure leaving the core is a `ReservationError` carrying a
machine-readable `kind` and a user-safe `message`.
"""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import Any, Sequence


class ErrorKind(StrEnum):
    OUT_OF_WINDOW = "out_of_window"
    INVALID_DURATION = "invalid_duration"
    SLOT_CONFLICT = "slot_conflict"
    DAILY_LIMIT_EXCEEDED = "daily_limit_exceeded"
    WEEKLY_LIMIT_EXCEEDED = "weekly_limit_exceeded"
    NOT_A_PARTICIPANT = "not_a_participant"
    ALREADY_ENDED = "already_ended"
    NOT_FOUND = "not_found"
    STORE_UNAVAILABLE = "store_unavailable"


class ReservationError(Exception):
    """Base domain error with kind and user-safe message."""

    kind: ErrorKind
    retryable: bool = False

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return f"{self.kind.value}: {self.message}"

    def as_dict(self) -> dict[str, Any]:
        return {"kind": self.kind.value, "message": self.message}


class OutOfWindowError(ReservationError):
    kind = ErrorKind.OUT_OF_WINDOW

    def __init__(self, window_days: int, message: str | None = None) -> None:
        super().__init__(message or f"Reservations are only available for the next {window_days} days.")
        self.window_days = window_days


class InvalidDurationError(ReservationError):
    kind = ErrorKind.INVALID_DURATION

    def __init__(self, minutes: int) -> None:
        hours, rest = divmod(minutes, 60)
        super().__init__(f"A reservation must last exactly {hours}h{rest:02d}.")
        self.minutes = minutes


class SlotConflictError(ReservationError):
    """Raised when the candidate interval overlaps an existing reservation."""

    kind = ErrorKind.SLOT_CONFLICT

    def __init__(
        self,
        *,
        reservation_id: int,
        participants: Sequence[str],
        starts_at: datetime,
        ends_at: datetime,
    ) -> None:
        names = " and ".join(participants) or "Someone"
        verb = "is" if len(participants) <= 1 else "are"
        super().__init__(
            f"{names} {verb} playing from {starts_at:%H:%M} to {ends_at:%H:%M}, try another time."
        )
        self.reservation_id = reservation_id
        self.participants = list(participants)
        self.starts_at = starts_at
        self.ends_at = ends_at

    def as_dict(self) -> dict[str, Any]:
        payload = super().as_dict()
        payload["conflicting_reservation"] = {
            "reservation_id": self.reservation_id,
            "participants": self.participants,
            "starts_at": self.starts_at.isoformat(),
            "ends_at": self.ends_at.isoformat(),
        }
        return payload


class DailyLimitExceededError(ReservationError):
    kind = ErrorKind.DAILY_LIMIT_EXCEEDED

    def __init__(self, limit: int) -> None:
        super().__init__(
            f"You already have a reservation on this day. Maximum of {limit} reservation(s) per day."
        )
        self.limit = limit

    def as_dict(self) -> dict[str, Any]:
        return {**super().as_dict(), "limit": self.limit}


class WeeklyLimitExceededError(ReservationError):
    kind = ErrorKind.WEEKLY_LIMIT_EXCEEDED

    def __init__(self, limit: int) -> None:
        super().__init__(f"You have reached the limit of {limit} reservations per week.")
        self.limit = limit

    def as_dict(self) -> dict[str, Any]:
        return {**super().as_dict(), "limit": self.limit}


class NotAParticipantError(ReservationError):
    kind = ErrorKind.NOT_A_PARTICIPANT

    def __init__(self, action: str = "change") -> None:
        super().__init__(f"Only participants of the reservation can {action} it.")


class AlreadyEndedError(ReservationError):
    kind = ErrorKind.ALREADY_ENDED

    def __init__(self, action: str = "changed") -> None:
        super().__init__(f"Reservations that have already ended cannot be {action}.")


class NotFoundError(ReservationError):
    kind = ErrorKind.NOT_FOUND


class ReservationNotFoundError(NotFoundError):
    def __init__(self, reservation_id: int) -> None:
        super().__init__("Reservation not found.")
        self.reservation_id = reservation_id


class UnknownUserError(NotFoundError):
    def __init__(self, user_ids: Sequence[int]) -> None:
        super().__init__("Some participants are not registered users.")
        self.user_ids = list(user_ids)

    def as_dict(self) -> dict[str, Any]:
        return {**super().as_dict(), "user_ids": self.user_ids}


class StoreUnavailableError(ReservationError):
    """The persistence layer failed or is not configured. Safe to retry after backoff."""

    kind = ErrorKind.STORE_UNAVAILABLE
    retryable = True

    def __init__(self, message: str = "The reservation store is unavailable.") -> None:
        super().__init__(message)

    def as_dict(self) -> dict[str, Any]:
        return {**super().as_dict(), "retryable": self.retryable}
