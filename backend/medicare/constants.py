from enum import Enum


class Role(str, Enum):
    """System roles for RBAC."""
    ADMIN = "admin"
    DOCTOR = "doctor"
    PATIENT = "patient"


class AppointmentStatus(str, Enum):
    PENDING = "Pending"
    CONFIRMED = "Confirmed"
    REJECTED = "Rejected"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"


class BedStatus(str, Enum):
    AVAILABLE = "Available"
    OCCUPIED = "Occupied"
    RESERVED = "Reserved"
    MAINTENANCE = "Maintenance"


class BedBookingStatus(str, Enum):
    CONFIRMED = "Confirmed"
    ADMITTED = "Admitted"
    DISCHARGED = "Discharged"
    CANCELLED = "Cancelled"


class WardType(str, Enum):
    GENERAL = "General"
    ICU = "ICU"
    EMERGENCY = "Emergency"
    PEDIATRIC = "Pediatric"
    MATERNITY = "Maternity"


class VisitType(str, Enum):
    CONSULTATION = "Consultation"
    FOLLOW_UP = "Follow-up"
    LAB_TEST = "Lab Test"
    SURGERY = "Surgery"
    EMERGENCY = "Emergency"
    ROUTINE_CHECKUP = "Routine Checkup"


class RecordStatus(str, Enum):
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"
    PENDING = "Pending"


# Appointments in these states occupy their (doctor, date, slot)
SLOT_HOLDING_STATUSES = frozenset({AppointmentStatus.PENDING, AppointmentStatus.CONFIRMED})

# A patient may hold at most one booking in these states
ACTIVE_BED_BOOKING_STATUSES = frozenset({BedBookingStatus.CONFIRMED, BedBookingStatus.ADMITTED})

# Fixed calendar, independent of locale: date.weekday() indexes into it
WEEKDAYS = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")

MAX_REASON_LENGTH = 500
MIN_PASSWORD_LENGTH = 6
