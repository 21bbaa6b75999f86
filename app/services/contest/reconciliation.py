"""
Reconciliation Service

Recomputes derived state from source-of-truth records to heal the partial
failure windows of settlement (payment inserted, counter not incremented)
and winner resolution (submission marked, contest not closed).

Every pass is idempotent and safe to run at any time. Contests with a payment
younger than SETTLEMENT_GRACE_SECONDS are left alone by the participant
recount: their settlement may still be between insert and increment.
"""
import os
import logging
from datetime import datetime, timedelta
from motor.motor_asyncio import AsyncIOMotorDatabase
from typing import Any, Dict, Optional

from app.core.exceptions import ConflictError, NotFoundError
from app.models.contest.audit import AuditAction
from app.models.contest.contest import ContestStatus
from app.services.contest.audit import AuditService
from app.services.contest.contest import ContestService
from app.utils.serializers import parse_object_id

logger = logging.getLogger(__name__)

SYSTEM_ACTOR = "system:reconciliation"
SETTLEMENT_GRACE_SECONDS = int(os.getenv("SETTLEMENT_GRACE_SECONDS", "60"))


class ReconciliationService:

    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db
        self.contests = db.contests
        self.payments = db.payments
        self.submissions = db.submissions
        self.contest_service = ContestService(db)
        self.audit_service = AuditService(db)

    async def _enrollment_counts(self, contest_id: Optional[str] = None) -> Dict[str, int]:
        """Distinct enrolled users per contest, from the payments collection"""
        pipeline = []
        if contest_id:
            pipeline.append({"$match": {"contest_id": contest_id}})
        pipeline += [
            {"$group": {"_id": {"contest_id": "$contest_id", "user_email": "$user_email"}}},
            {"$group": {"_id": "$_id.contest_id", "count": {"$sum": 1}}},
        ]
        rows = await self.payments.aggregate(pipeline).to_list(length=None)
        return {row["_id"]: row["count"] for row in rows}

    async def _settling_contests(self, grace_seconds: int) -> set:
        """Contests with a payment recent enough that its increment may be pending"""
        cutoff = datetime.utcnow() - timedelta(seconds=grace_seconds)
        cursor = self.payments.find({"created_at": {"$gte": cutoff}}, {"contest_id": 1})
        return {payment.get("contest_id") for payment in await cursor.to_list(length=None)}

    async def reconcile_participants(
        self,
        contest_id: Optional[str] = None,
        grace_seconds: int = SETTLEMENT_GRACE_SECONDS
    ) -> Dict[str, Any]:
        """
        Set contests.participants to the number of distinct paying users.

        Args:
            contest_id: Limit the pass to one contest (default: all contests)
            grace_seconds: Skip contests paid into within this many seconds
        """
        results = {"processed": 0, "corrected": [], "skipped": []}

        # Count first: a payment inserted before the count is then seen as settling
        counts = await self._enrollment_counts(contest_id)
        settling = await self._settling_contests(grace_seconds)

        query = {}
        if contest_id:
            query["_id"] = parse_object_id(contest_id, "Contest")
        contests = await self.contests.find(query, {"participants": 1}).to_list(length=None)
        if contest_id and not contests:
            raise NotFoundError("Contest not found")

        for contest in contests:
            results["processed"] += 1
            key = str(contest["_id"])
            if key in settling:
                results["skipped"].append(key)
                continue
            expected = counts.get(key, 0)
            current = contest.get("participants", 0)

            if current == expected:
                continue

            await self.contests.update_one(
                {"_id": contest["_id"]},
                {"$set": {"participants": expected}}
            )
            results["corrected"].append({"contest_id": key, "before": current, "after": expected})
            logger.warning("[RECONCILE] Contest %s participants %s -> %s", key, current, expected)
            await self.audit_service.log_action(
                contest_id=key,
                action=AuditAction.PARTICIPANTS_RECONCILED,
                actor_email=SYSTEM_ACTOR,
                entity_type="contest",
                entity_id=key,
                changes={"participants": {"before": current, "after": expected}}
            )

        return results

    async def reconcile_winners(self) -> Dict[str, Any]:
        """
        Make Contest.status == ended agree with exactly one winning submission.

        - A winning submission on a still-confirmed contest closes that contest.
        - A winning submission that is not the recorded winner of an ended
          contest is unmarked.
        - The recorded winner of an ended contest is marked.
        """
        results = {"closed": [], "unmarked": [], "marked": []}

        winners = await self.submissions.find({"is_winner": True}).sort("_id", 1).to_list(length=None)
        for submission in winners:
            submission_id = str(submission["_id"])
            contest_id = submission.get("contest_id")
            try:
                contest = await self.contest_service.get_contest(contest_id)
            except NotFoundError:
                logger.warning("[RECONCILE] Winning submission %s references missing contest %s", submission_id, contest_id)
                continue

            if contest["status"] == ContestStatus.CONFIRMED.value:
                try:
                    await self.contest_service.close_contest(
                        contest_id,
                        winner_email=submission["user_email"],
                        winner_submission_id=submission_id,
                        actor_email=SYSTEM_ACTOR
                    )
                    results["closed"].append(contest_id)
                    logger.warning("[RECONCILE] Closed contest %s with winner %s", contest_id, submission_id)
                    continue
                except ConflictError:
                    contest = await self.contest_service.get_contest(contest_id)

            if contest["status"] == ContestStatus.ENDED.value and contest.get("winner_submission_id") != submission_id:
                await self.submissions.update_one(
                    {"_id": submission["_id"]},
                    {"$set": {"is_winner": False}}
                )
                results["unmarked"].append(submission_id)
                logger.warning("[RECONCILE] Unmarked stray winner %s in contest %s", submission_id, contest_id)

        ended = await self.contests.find({
            "status": ContestStatus.ENDED.value,
            "winner_submission_id": {"$ne": None}
        }).to_list(length=None)
        for contest in ended:
            try:
                winner_oid = parse_object_id(contest["winner_submission_id"], "Submission")
            except NotFoundError:
                continue
            update = await self.submissions.update_one(
                {"_id": winner_oid, "is_winner": {"$ne": True}},
                {"$set": {"is_winner": True}}
            )
            if update.modified_count:
                results["marked"].append(contest["winner_submission_id"])
                await self.audit_service.log_action(
                    contest_id=str(contest["_id"]),
                    action=AuditAction.WINNER_RECONCILED,
                    actor_email=SYSTEM_ACTOR,
                    entity_type="submission",
                    entity_id=contest["winner_submission_id"]
                )

        return results