"""Status and type vocabularies stored as plain strings in the database"""


class UserRole:
    OWNER = "OWNER"
    ADMIN = "ADMIN"
    CLEANER = "CLEANER"
    CLIENT = "CLIENT"

    STAFF = (OWNER, ADMIN)
    ALL = (OWNER, ADMIN, CLEANER, CLIENT)


class BookingStatus:
    SCHEDULED = "SCHEDULED"
    CLEANER_COMPLETED = "CLEANER_COMPLETED"  # Waiting for admin approval
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    NO_SHOW = "NO_SHOW"

    ALL = (SCHEDULED, CLEANER_COMPLETED, COMPLETED, CANCELLED, NO_SHOW)
    # Terminal states: no assignment or lifecycle action is allowed afterwards
    CLOSED = (COMPLETED, CANCELLED, NO_SHOW)


class ServiceType:
    STANDARD = "STANDARD"
    DEEP = "DEEP"
    MOVE_OUT = "MOVE_OUT"
    POST_CONSTRUCTION = "POST_CONSTRUCTION"
    OFFICE = "OFFICE"

    ALL = (STANDARD, DEEP, MOVE_OUT, POST_CONSTRUCTION, OFFICE)


class RecurrenceFrequency:
    WEEKLY = "WEEKLY"
    BIWEEKLY = "BIWEEKLY"
    MONTHLY = "MONTHLY"

    ALL = (WEEKLY, BIWEEKLY, MONTHLY)


class PaymentMethod:
    CASH = "CASH"
    CHECK = "CHECK"
    CARD = "CARD"
    BANK_TRANSFER = "BANK_TRANSFER"
    OTHER = "OTHER"

    ALL = (CASH, CHECK, CARD, BANK_TRANSFER, OTHER)


class PaymentStatus:
    PENDING = "PENDING"
    PAID = "PAID"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"


class InvoiceStatus:
    DRAFT = "DRAFT"
    SENT = "SENT"
    PARTIALLY_PAID = "PARTIALLY_PAID"
    PAID = "PAID"
    OVERDUE = "OVERDUE"
    CANCELLED = "CANCELLED"

    OUTSTANDING = (SENT, PARTIALLY_PAID, OVERDUE)


class CreditType:
    REFERRAL_EARNED = "REFERRAL_EARNED"
    MANUAL = "MANUAL"
    REDEEMED = "REDEEMED"
    EXPIRED = "EXPIRED"


class CreditStatus:
    ACTIVE = "ACTIVE"
    USED = "USED"
    EXPIRED = "EXPIRED"


class TimeOffType:
    VACATION = "VACATION"
    SICK = "SICK"
    PERSONAL = "PERSONAL"
    OTHER = "OTHER"

    ALL = (VACATION, SICK, PERSONAL, OTHER)


class TimeOffStatus:
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    DENIED = "DENIED"


class MessageChannel:
    SMS = "SMS"
    EMAIL = "EMAIL"
    BOTH = "BOTH"  # campaigns only

    CAMPAIGN = (SMS, EMAIL, BOTH)


class MessageType:
    ON_MY_WAY = "ON_MY_WAY"
    REMINDER = "REMINDER"
    CONFIRMATION = "CONFIRMATION"
    COMPLETION = "COMPLETION"
    REVIEW_REQUEST = "REVIEW_REQUEST"
    CAMPAIGN = "CAMPAIGN"
    INVOICE = "INVOICE"
    CUSTOM = "CUSTOM"


class MessageStatus:
    PENDING = "PENDING"
    SENT = "SENT"
    FAILED = "FAILED"


class CampaignStatus:
    DRAFT = "DRAFT"
    SCHEDULED = "SCHEDULED"
    SENDING = "SENDING"
    SENT = "SENT"
    FAILED = "FAILED"

    EDITABLE = (DRAFT, SCHEDULED)


class ProspectStatus:
    NEW = "NEW"
    CONTACTED = "CONTACTED"
    QUALIFIED = "QUALIFIED"
    CONVERTED = "CONVERTED"
    LOST = "LOST"

    ALL = (NEW, CONTACTED, QUALIFIED, CONVERTED, LOST)
