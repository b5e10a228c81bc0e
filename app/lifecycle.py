from datetime import datetime, timezone

from app.exceptions import InvalidStatusTransition
from app.models import Booking, BookingStatus

VALID_TRANSITIONS: dict[BookingStatus, set[BookingStatus]] = {
    BookingStatus.PENDING: {
        BookingStatus.CONFIRMED,
        BookingStatus.CANCELLED,
        BookingStatus.NO_SHOW,
    },
    BookingStatus.CONFIRMED: {
        BookingStatus.IN_PROGRESS,
        BookingStatus.CANCELLED,
        BookingStatus.NO_SHOW,
    },
    BookingStatus.IN_PROGRESS: {BookingStatus.COMPLETED},
    BookingStatus.COMPLETED: set(),
    BookingStatus.CANCELLED: set(),
    BookingStatus.NO_SHOW: set(),
}

# Reaching one of these statuses stamps the matching column; nothing is ever cleared
STATUS_TIMESTAMPS: dict[BookingStatus, str] = {
    BookingStatus.CONFIRMED: "confirmed_at",
    BookingStatus.IN_PROGRESS: "started_at",
    BookingStatus.COMPLETED: "completed_at",
}


def allowed_transitions(status: BookingStatus) -> list[str]:
    return sorted(s.value for s in VALID_TRANSITIONS.get(status, set()))


def assert_transition(old_status: BookingStatus, new_status: BookingStatus) -> None:
    if new_status not in VALID_TRANSITIONS.get(old_status, set()):
        raise InvalidStatusTransition(
            old_status, new_status, allowed_transitions(old_status)
        )


def apply_status(booking: Booking, new_status: BookingStatus) -> list[str]:
    """
    Validate and apply `new_status` to an in-memory booking.

    Returns the field names that changed so callers can pass them to
    `save(update_fields=...)`.
    """
    assert_transition(booking.status, new_status)
    booking.status = new_status
    changed = ["status"]
    stamp = STATUS_TIMESTAMPS.get(new_status)
    if stamp is not None:
        setattr(booking, stamp, datetime.now(timezone.utc))
        changed.append(stamp)
    return changed
