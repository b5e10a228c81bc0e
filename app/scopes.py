from enum import StrEnum


class BookingScope(StrEnum):
    # Customer scopes
    READ = "bookings:read"  # view own bookings
    CANCEL = "bookings:cancel"  # cancel own booking

    # Staff scopes
    MANAGE = "bookings:manage"  # confirm / start / complete / assign / edit any booking

    # Admin scopes
    ADMIN = "admin:bookings"
    ADMIN_READ = "admin:bookings:read"
    ADMIN_WRITE = "admin:bookings:write"


class ServiceScope(StrEnum):
    MANAGE = "services:manage"  # create / edit / deactivate catalog entries


BOOKING_SCOPE_DESCRIPTIONS: dict[str, str] = {
    BookingScope.READ: "View your own bookings.",
    BookingScope.CANCEL: "Cancel your own pending or confirmed booking.",
    BookingScope.MANAGE: "Confirm, start, complete, assign and edit any booking (staff).",
    BookingScope.ADMIN_READ: "Read any booking and booking statistics (admin).",
    BookingScope.ADMIN_WRITE: "Modify any booking status (admin).",
    ServiceScope.MANAGE: "Create, edit and deactivate services in the catalog.",
}
