import logging
from motor.motor_asyncio import AsyncIOMotorDatabase
from typing import Dict
from datetime import datetime

from app.core.exceptions import ConflictError, NotFoundError
from app.models.contest.audit import AuditAction
from app.models.contest.contest import ContestStatus
from app.services.auth.permissions import require
from app.services.contest.audit import AuditService
from app.services.contest.contest import ContestService
from app.utils.serializers import parse_object_id

logger = logging.getLogger(__name__)


class WinnerService:
    """
    Winner resolution.

    Marks the chosen submission first and closes the contest second. A crash
    between the two leaves a winning submission on a confirmed contest, which
    ReconciliationService.reconcile_winners() completes later.
    """

    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db
        self.submissions = db.submissions
        self.contest_service = ContestService(db)
        self.audit_service = AuditService(db)

    async def declare_winner(self, contest_id: str, submission_id: str, actor: dict) -> Dict:
        """
        Promote one submission to winner and end the contest.

        Raises:
            NotFoundError: submission missing or not part of this contest
            AuthorizationError: actor is neither the contest creator nor an admin
            ConflictError: contest is not confirmed, or another winner won the race
        """
        submission = await self.submissions.find_one({"_id": parse_object_id(submission_id, "Submission")})
        if not submission or submission.get("contest_id") != contest_id:
            raise NotFoundError("Submission not found")

        contest = await self.contest_service.get_contest(contest_id)
        require(actor, "winner.declare", contest, message="Only the contest creator or an admin can declare a winner")

        if contest["status"] != ContestStatus.CONFIRMED.value:
            raise ConflictError("Contest is not open for winner declaration")

        await self.submissions.update_one(
            {"_id": submission["_id"]},
            {"$set": {"is_winner": True, "winner_declared_at": datetime.utcnow()}}
        )

        try:
            closed = await self.contest_service.close_contest(
                contest_id,
                winner_email=submission["user_email"],
                winner_submission_id=submission_id,
                actor_email=actor["email"]
            )
        except ConflictError:
            # Another declaration ended the contest first. Undo our mark unless
            # that declaration picked this same submission.
            current = await self.db.contests.find_one({"_id": contest["_id"]}, {"winner_submission_id": 1})
            if not current or current.get("winner_submission_id") != submission_id:
                await self.submissions.update_one(
                    {"_id": submission["_id"]},
                    {"$set": {"is_winner": False}, "$unset": {"winner_declared_at": ""}}
                )
            raise

        logger.info("[OK] Winner declared for contest %s: %s", contest_id, submission["user_email"])
        await self.audit_service.log_action(
            contest_id=contest_id,
            action=AuditAction.WINNER_DECLARED,
            actor_email=actor["email"],
            entity_type="submission",
            entity_id=submission_id,
            metadata={"winner_email": submission["user_email"]}
        )

        submission["is_winner"] = True
        return {"contest": closed, "submission": submission}
