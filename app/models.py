from enum import StrEnum

from tortoise import fields
from tortoise.models import Model


class ServiceCategory(StrEnum):
    INSTALLATION = "installation"
    REPAIR = "repair"
    MAINTENANCE = "maintenance"
    EMERGENCY = "emergency"


class ServiceType(StrEnum):
    LOCK_INSTALLATION = "lock_installation"
    LOCK_REPAIR = "lock_repair"
    LOCK_MAINTENANCE = "lock_maintenance"
    EMERGENCY_SERVICE = "emergency_service"


class BookingStatus(StrEnum):
    PENDING = "pending"  # just created, awaiting staff confirmation
    CONFIRMED = "confirmed"  # staff accepted
    IN_PROGRESS = "in_progress"  # technician on site
    COMPLETED = "completed"  # job done
    CANCELLED = "cancelled"  # cancelled by customer or staff
    NO_SHOW = "no_show"  # customer wasn't there


class BookingPriority(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    EMERGENCY = "emergency"


class TimestampedModel(Model):
    created_at = fields.DatetimeField(auto_now_add=True)
    updated_at = fields.DatetimeField(auto_now=True)

    class Meta:  # type: ignore
        abstract = True


class Service(TimestampedModel):
    id = fields.UUIDField(primary_key=True)

    name = fields.CharField(max_length=255, unique=True)
    description = fields.TextField()
    category = fields.CharEnumField(ServiceCategory)

    base_price = fields.DecimalField(max_digits=10, decimal_places=2)
    estimated_duration = fields.IntField()  # minutes

    is_active = fields.BooleanField(default=True)
    is_available_for_booking = fields.BooleanField(default=True)
    requirements = fields.JSONField(null=True)

    class Meta:  # type: ignore
        table = "services"
        ordering = ["name"]


class Booking(TimestampedModel):
    id = fields.UUIDField(primary_key=True)

    user_id = fields.UUIDField(null=True)  # owning account, if booked while logged in

    service: fields.ForeignKeyRelation[Service] = fields.ForeignKeyField(
        "models.Service", related_name="bookings", on_delete=fields.RESTRICT
    )
    service_name = fields.CharField(max_length=255)  # display snapshot at booking time
    service_type = fields.CharEnumField(ServiceType)

    booking_date = fields.DateField()
    booking_time = fields.CharField(max_length=5)  # "HH:MM", facility local time
    duration = fields.IntField()  # minutes, snapshot of service.estimated_duration

    status = fields.CharEnumField(BookingStatus, default=BookingStatus.PENDING)
    priority = fields.CharEnumField(BookingPriority, default=BookingPriority.MEDIUM)

    customer_name = fields.CharField(max_length=255)
    customer_phone = fields.CharField(max_length=50)
    customer_email = fields.CharField(max_length=255)
    service_address = fields.TextField()
    service_description = fields.TextField(null=True)
    special_instructions = fields.TextField(null=True)

    estimated_cost = fields.DecimalField(max_digits=10, decimal_places=2, null=True)
    actual_cost = fields.DecimalField(max_digits=10, decimal_places=2, null=True)
    assigned_technician = fields.CharField(max_length=255, null=True)
    notes = fields.TextField(null=True)

    confirmed_at = fields.DatetimeField(null=True)
    started_at = fields.DatetimeField(null=True)
    completed_at = fields.DatetimeField(null=True)

    class Meta:  # type: ignore
        table = "bookings"
        ordering = ["-booking_date", "-booking_time"]
