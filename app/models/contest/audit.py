from enum import Enum


class AuditAction(str, Enum):
    """Audit action types"""
    # Contest actions
    CONTEST_CREATED = "contest_created"
    CONTEST_UPDATED = "contest_updated"
    CONTEST_DELETED = "contest_deleted"
    CONTEST_CONFIRMED = "contest_confirmed"
    CONTEST_REJECTED = "contest_rejected"
    CONTEST_ENDED = "contest_ended"

    # Submission actions
    SUBMISSION_CREATED = "submission_created"
    WINNER_DECLARED = "winner_declared"

    # Payment actions
    PAYMENT_RECEIVED = "payment_received"

    # Reconciliation
    PARTICIPANTS_RECONCILED = "participants_reconciled"
    WINNER_RECONCILED = "winner_reconciled"
