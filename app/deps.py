from dataclasses import dataclass, field
from urllib.parse import unquote
from uuid import UUID

from fastapi import Depends, Header, HTTPException, status

from app.scopes import BookingScope, ServiceScope

# Any of these lets a caller change any booking
STAFF_WRITE_SCOPES: tuple[str, ...] = (
    BookingScope.MANAGE,
    BookingScope.ADMIN,
    BookingScope.ADMIN_WRITE,
)

# Any of these lets a caller see every booking and the reports
STAFF_READ_SCOPES: tuple[str, ...] = (*STAFF_WRITE_SCOPES, BookingScope.ADMIN_READ)


@dataclass
class CurrentUser:
    id: UUID
    username: str
    scopes: list[str] = field(default_factory=list)

    def has_any(self, *scopes: str) -> bool:
        return any(s in self.scopes for s in scopes)

    @property
    def sees_all_bookings(self) -> bool:
        return self.has_any(*STAFF_READ_SCOPES)

    @property
    def is_staff(self) -> bool:
        return self.has_any(*STAFF_WRITE_SCOPES)


def _identity_from_headers(user_id: str, username: str, scopes: str) -> CurrentUser:
    try:
        uid = UUID(user_id)
    except (ValueError, TypeError):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid user identity from gateway",
        ) from None
    return CurrentUser(id=uid, username=unquote(username), scopes=scopes.split())


def get_current_user(
    x_user_id: str = Header(...),
    x_username: str = Header(...),
    x_user_scopes: str = Header(default=""),
) -> CurrentUser:
    """
    Identity injected by the API gateway once it has verified the caller's
    token. Headers are trusted as-is; scopes are space separated.
    """
    return _identity_from_headers(x_user_id, x_username, x_user_scopes)


def get_optional_user(
    x_user_id: str | None = Header(default=None),
    x_username: str = Header(default=""),
    x_user_scopes: str = Header(default=""),
) -> CurrentUser | None:
    """Public routes: anonymous callers get None."""
    if x_user_id is None:
        return None
    return _identity_from_headers(x_user_id, x_username, x_user_scopes)


def require_scopes(*required: str):
    """Dependency factory: the caller must hold every scope in `required`."""

    async def _dep(current_user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        missing = [s for s in required if s not in current_user.scopes]
        if missing:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Missing required scopes: {', '.join(missing)}",
            )
        return current_user

    return _dep


def require_any_scope(*accepted: str):
    """Dependency factory: the caller must hold at least one of `accepted`."""

    async def _dep(current_user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        if not current_user.has_any(*accepted):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Requires one of: {', '.join(accepted)}",
            )
        return current_user

    return _dep


# ---------------------------------------------------------------------------
# Pre-built scope dependencies
# ---------------------------------------------------------------------------

can_manage_services = require_scopes(ServiceScope.MANAGE)

# staff desk: confirm / start / complete / assign / edit
can_manage_booking = require_any_scope(*STAFF_WRITE_SCOPES)

# reports: customer lookup / calendar / stats
can_view_all_bookings = require_any_scope(*STAFF_READ_SCOPES)

# customers (own bookings) or staff (everything)
can_read_or_manage_booking = require_any_scope(BookingScope.READ, *STAFF_READ_SCOPES)
