"""Global enums — must match DB CHECK constraints exactly."""

from enum import Enum


class IntentStatus(str, Enum):
    PENDING_PAYMENT = "pending_payment"
    PAID = "paid"
    ACTIVATED = "activated"
    COMPLETED = "completed"
    FAILED = "failed"


class PaymentStatus(str, Enum):
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class FulfillmentOutcome(str, Enum):
    ACTIVATED = "ACTIVATED"                  # artifacts minted and recorded now
    ALREADY_FULFILLED = "ALREADY_FULFILLED"  # guard hit: records already exist
    DEFERRED = "DEFERRED"                    # activation_time still in the future
    SKIPPED = "SKIPPED"                      # intent not in 'paid'
    RETRY_PENDING = "RETRY_PENDING"          # attempt failed, intent left at 'paid'
    ABANDONED = "ABANDONED"                  # attempts exhausted, intent moved to 'failed'
    IN_PROGRESS = "IN_PROGRESS"              # another worker holds the intent lock
    CONFLICT = "CONFLICT"                    # status moved during minting; nothing recorded
