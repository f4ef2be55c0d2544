"""Core enums used across modules."""

from enum import StrEnum


class RoleEnum(StrEnum):
    """System roles."""

    LEARNER = "learner"
    TEACHER = "teacher"
    ADMIN = "admin"


class LearnerStatusEnum(StrEnum):
    """Learner relationship status."""

    TRIAL = "trial"
    ACTIVE = "active"
    PAUSED = "paused"
    CHURNED = "churned"


class PackageStatusEnum(StrEnum):
    """Hour package lifecycle status."""

    ACTIVE = "active"
    PAUSED = "paused"
    EXPIRED = "expired"
    COMPLETED = "completed"


class BillingTypeEnum(StrEnum):
    """How a session's hours are accounted."""

    TRIAL = "trial"
    CREDIT = "credit"
    ONE_OFF = "one_off"


class SessionStatusEnum(StrEnum):
    """Session instance status."""

    SCHEDULED = "scheduled"
    RESCHEDULED = "rescheduled"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


ACTIVE_SESSION_STATUSES = frozenset({SessionStatusEnum.SCHEDULED, SessionStatusEnum.RESCHEDULED})


class ApprovalTypeEnum(StrEnum):
    """Kinds of deferred decisions."""

    NEW_STUDENT_BOOKING = "new_student_booking"
    PAUSE_REQUEST = "pause_request"
    RESCHEDULE = "reschedule"
    CANCELLATION = "cancellation"


class ApprovalStatusEnum(StrEnum):
    """Approval request status."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class ApprovalDecisionEnum(StrEnum):
    """Resolution submitted by the counter-party."""

    APPROVE = "approve"
    REJECT = "reject"


class GateDecisionEnum(StrEnum):
    """Scheduling gate verdict for a requested action."""

    IMMEDIATE = "immediate"
    DEFERRED = "deferred"


class GateOutcomeEnum(StrEnum):
    """What happened to a gated action from the caller's point of view."""

    APPLIED = "applied"
    PENDING_APPROVAL = "pending_approval"


class AlertLevelEnum(StrEnum):
    """Alert tiers, most urgent first."""

    RED = "red"
    YELLOW = "yellow"
    BLUE = "blue"


class NotificationStatusEnum(StrEnum):
    """Notification delivery status."""

    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"


class OutboxStatusEnum(StrEnum):
    """Outbox event status for integration publishing."""

    PENDING = "pending"
    PROCESSED = "processed"
    FAILED = "failed"
