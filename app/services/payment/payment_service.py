"""
Payment Service
Bridges gateway checkout sessions into exactly-once local enrollment
"""
import os
import logging
from datetime import datetime
from typing import Optional, Dict, Any, List
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import DuplicateKeyError
from dotenv import load_dotenv

from app.core.exceptions import (
    ConflictError,
    GatewayError,
    NotFoundError,
    PaymentIncompleteError,
    ValidationError,
)
from app.models.contest.audit import AuditAction
from app.models.contest.contest import ContestStatus
from app.services.auth.permissions import require
from app.services.contest.audit import AuditService
from app.services.contest.contest import ContestService
from app.services.payment.gateways.base import BasePaymentGateway
from app.utils.serializers import parse_object_id

load_dotenv()

logger = logging.getLogger(__name__)

SITE_DOMAIN = os.getenv("SITE_DOMAIN", "http://localhost:5173").rstrip("/")
CURRENCY = os.getenv("STRIPE_CURRENCY", "usd")

# Metadata keys written on checkout and read back on verification.
# Sessions opened by earlier clients used camelCase keys.
CONTEST_ID_KEYS = ("contest_id", "contestId")
USER_EMAIL_KEYS = ("user_email", "userEmail")


def to_minor_units(price: float) -> int:
    """Convert a major-unit price to integer minor units (cents)"""
    return int(round(float(price) * 100))


class PaymentService:
    """
    Service for entry-fee payments.

    A Payment document is the enrollment record: at most one per
    (contest_id, user_email). verify() may be called any number of times for
    the same session; only the first call that finds no Payment writes one
    and increments the contest's participant counter.
    """

    def __init__(self, db: AsyncIOMotorDatabase, gateway: Optional[BasePaymentGateway] = None):
        self.db = db
        self.gateway = gateway
        self.payments = db.payments
        self.contests = db.contests
        self.contest_service = ContestService(db)
        self.audit_service = AuditService(db)

    async def create_checkout(
        self,
        contest_name: str,
        price_minor_units: int,
        contest_id: str,
        user_email: str
    ) -> Dict[str, Any]:
        """
        Open a gateway checkout session for one contest entry.

        (contest_id, user_email) travel as session metadata and come back
        unchanged on verification.

        Raises:
            ValidationError: negative price or missing payer
            GatewayError: the gateway call failed (not retried)
        """
        if price_minor_units is None or price_minor_units < 0:
            raise ValidationError("Price must be zero or positive")
        if not user_email:
            raise ValidationError("User email is required")

        session = await self.gateway.create_checkout_session(
            product_name=contest_name,
            unit_amount=price_minor_units,
            currency=CURRENCY,
            success_url=f"{SITE_DOMAIN}/dashboard/payment-success?session_id={{CHECKOUT_SESSION_ID}}",
            cancel_url=f"{SITE_DOMAIN}/payment-cancel",
            metadata={"contest_id": contest_id, "user_email": user_email},
            customer_email=user_email
        )

        logger.info("[OK] Checkout session %s opened for %s on contest %s", session.session_id, user_email, contest_id)
        return {"url": session.url, "session_id": session.session_id}

    async def create_checkout_for_contest(self, contest_id: str, user: dict) -> Dict[str, Any]:
        """Open checkout for a stored contest, taking name and price from the contest"""
        contest = await self.contest_service.get_contest(contest_id)
        if contest["status"] != ContestStatus.CONFIRMED.value:
            raise ConflictError("Contest is not open for registration")

        existing = await self.payments.find_one({"contest_id": contest_id, "user_email": user["email"]})
        if existing:
            raise ConflictError("Already registered")

        return await self.create_checkout(
            contest_name=contest.get("name") or "Contest entry",
            price_minor_units=to_minor_units(contest.get("price", 0)),
            contest_id=contest_id,
            user_email=user["email"]
        )

    @staticmethod
    def _metadata_value(metadata: Dict[str, str], keys) -> Optional[str]:
        for key in keys:
            if metadata.get(key):
                return metadata[key]
        return None

    async def verify(self, session_id: str) -> Dict[str, Any]:
        """
        Reconcile a checkout session with local state.

        Steps:
        1. Retrieve the session; anything but "paid" raises
           PaymentIncompleteError before any local write.
        2. Read (contest_id, user_email) from the echoed metadata.
        3. An existing Payment for the pair means a retried verify: report
           already_registered and write nothing.
        4. Insert the Payment, then increment participants. A crash between
           the two leaves an under-count that reconciliation repairs.

        Returns:
            {"already_registered": bool, "payment": dict}
        """
        if not session_id:
            raise ValidationError("Session id is required")

        settlement = await self.gateway.retrieve_session(session_id)
        if not settlement.is_paid:
            logger.info("[INFO] Session %s not paid (status=%s)", session_id, settlement.status.value)
            raise PaymentIncompleteError()

        contest_id = self._metadata_value(settlement.metadata, CONTEST_ID_KEYS)
        user_email = self._metadata_value(settlement.metadata, USER_EMAIL_KEYS)
        if not contest_id or not user_email:
            logger.error("[ERROR] Session %s is missing enrollment metadata", session_id)
            raise GatewayError("Checkout session is missing contest or user metadata")
        try:
            contest_oid = parse_object_id(contest_id, "Contest")
        except NotFoundError:
            raise GatewayError("Checkout session references a malformed contest id")

        # Idempotency fast path
        existing = await self.payments.find_one({"contest_id": contest_id, "user_email": user_email})
        if existing:
            return {"already_registered": True, "payment": existing}

        payment = {
            "contest_id": contest_id,
            "user_email": user_email,
            "amount": settlement.amount if settlement.amount is not None else 0.0,
            "currency": settlement.currency or CURRENCY,
            "session_id": settlement.session_id,
            "gateway": self.gateway.gateway_id,
            "created_at": datetime.utcnow()
        }

        try:
            result = await self.payments.insert_one(payment)
        except DuplicateKeyError:
            # A concurrent verify for the same pair won the insert
            existing = await self.payments.find_one({"contest_id": contest_id, "user_email": user_email})
            return {"already_registered": True, "payment": existing}
        payment["_id"] = result.inserted_id

        # Insert first, then count: partial failure under-counts, never over-counts
        update = await self.contests.update_one(
            {"_id": contest_oid},
            {"$inc": {"participants": 1}}
        )
        if update.matched_count == 0:
            logger.warning("[WARN] Payment %s recorded for missing contest %s", payment["_id"], contest_id)

        logger.info("[OK] Enrollment recorded: %s in contest %s (%.2f)", user_email, contest_id, payment["amount"])
        await self.audit_service.log_action(
            contest_id=contest_id,
            action=AuditAction.PAYMENT_RECEIVED,
            actor_email=user_email,
            entity_type="payment",
            entity_id=str(payment["_id"]),
            metadata={"amount": payment["amount"], "session_id": payment["session_id"]}
        )

        return {"already_registered": False, "payment": payment}

    async def participated_contests(self, user_email: str, actor: Optional[dict] = None) -> List[Dict]:
        """Contests the user paid for, derived from the Payment set"""
        if actor is not None:
            require(actor, "payment.view", user_email)

        cursor = self.payments.find({"user_email": user_email}, {"contest_id": 1}).sort("created_at", 1)
        payments = await cursor.to_list(length=None)

        # One user may hold several payments for a contest in legacy data
        object_ids = []
        seen = set()
        for payment in payments:
            contest_id = payment.get("contest_id")
            if not contest_id or contest_id in seen:
                continue
            seen.add(contest_id)
            try:
                object_ids.append(parse_object_id(contest_id, "Contest"))
            except NotFoundError:
                logger.warning("[WARN] Skipping malformed contest id %r in payments of %s", contest_id, user_email)

        if not object_ids:
            return []

        return await self.contests.find({"_id": {"$in": object_ids}}).to_list(length=None)

    async def payments_for_user(self, user_email: str, actor: Optional[dict] = None) -> List[Dict]:
        """A user's payment records, newest first"""
        if actor is not None:
            require(actor, "payment.view", user_email)

        cursor = self.payments.find({"user_email": user_email}).sort("created_at", -1)
        return await cursor.to_list(length=None)
