"""
Enumerations shared by models, schemas, and services.
"""
import enum


class Region(str, enum.Enum):
    """Market regions with their own pricing and working hours."""
    BISHKEK = "bishkek"
    OSH = "osh"
    JALAL_ABAD = "jalal_abad"
    KARAKOL = "karakol"
    OTHER = "other"


class Language(str, enum.Enum):
    """Supported message languages."""
    RU = "ru"
    KY = "ky"


class PaymentMethod(str, enum.Enum):
    """Local payment methods."""
    CASH_ON_MEETING = "cash_on_meeting"
    OPTIMA_BANK = "optima_bank"
    DEMIR_BANK = "demir_bank"
    O_MONEY = "o_money"
    MEGA_PAY = "mega_pay"
    CRYPTO_USDT = "crypto_usdt"


class PaymentStatus(str, enum.Enum):
    """Payment status enumeration."""
    PENDING_MEETING = "pending_meeting"
    PENDING_CRYPTO = "pending_crypto"
    PENDING_PAYMENT = "pending_payment"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"


class Urgency(str, enum.Enum):
    """How soon the client needs the service."""
    NORMAL = "normal"
    URGENT = "urgent"
    ASAP = "asap"


class BookingStatus(str, enum.Enum):
    """
    Booking status state machine.
    pending → confirmed → in_progress → completed, or → cancelled from any non-terminal state.
    """
    PENDING = "pending"
    CONFIRMED = "confirmed"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (BookingStatus.COMPLETED, BookingStatus.CANCELLED)

    def can_transition_to(self, target: "BookingStatus") -> bool:
        """Whether moving from this status to ``target`` keeps the lifecycle monotonic."""
        if self.is_terminal:
            return False
        if target is BookingStatus.CANCELLED:
            return True
        return _FORWARD.get(self) is target


_FORWARD = {
    BookingStatus.PENDING: BookingStatus.CONFIRMED,
    BookingStatus.CONFIRMED: BookingStatus.IN_PROGRESS,
    BookingStatus.IN_PROGRESS: BookingStatus.COMPLETED,
}


class NotificationPriority(str, enum.Enum):
    """Notification urgency, mapped to a transport priority class."""
    NORMAL = "normal"
    HIGH = "high"


class ReminderKind(str, enum.Enum):
    """Kinds of follow-up SMS that can be triggered for a booking."""
    BOOKING = "booking"
    REMINDER = "reminder"
    PAYMENT = "payment"
