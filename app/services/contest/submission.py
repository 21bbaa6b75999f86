import logging
from motor.motor_asyncio import AsyncIOMotorDatabase
from typing import List, Dict, Union
from datetime import datetime
from pymongo.errors import DuplicateKeyError

from app.core.exceptions import AuthorizationError, ConflictError, DuplicateSubmissionError
from app.models.contest.audit import AuditAction
from app.models.contest.contest import ContestStatus
from app.models.contest.submission import SubmissionCreate
from app.services.auth.permissions import require
from app.services.contest.audit import AuditService
from app.services.contest.contest import ContestService
from app.utils.serializers import parse_model

logger = logging.getLogger(__name__)


class SubmissionService:
    """Service for contest submission operations"""

    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db
        self.submissions = db.submissions
        self.payments = db.payments
        self.contest_service = ContestService(db)
        self.audit_service = AuditService(db)

    async def submit(
        self,
        contest_id: str,
        user_email: str,
        submission_data: Union[SubmissionCreate, dict]
    ) -> Dict:
        """
        Create the user's submission for a contest.

        - Contest must be confirmed
        - User must be enrolled (hold a payment for the contest)
        - One submission per user per contest
        """
        data = parse_model(SubmissionCreate, submission_data)

        contest = await self.contest_service.get_contest(contest_id)
        if contest["status"] != ContestStatus.CONFIRMED.value:
            raise ConflictError("Contest is not accepting submissions")

        enrolled = await self.payments.find_one({"contest_id": contest_id, "user_email": user_email})
        if not enrolled:
            raise AuthorizationError("Register for the contest before submitting")

        # Fast path with a clear message; the unique index catches races
        existing = await self.submissions.find_one({"contest_id": contest_id, "user_email": user_email})
        if existing:
            raise DuplicateSubmissionError()

        submission = {
            "contest_id": contest_id,
            "user_email": user_email,
            "submission_link": data.submission_link,
            "is_winner": False,
            "created_at": datetime.utcnow()
        }

        try:
            result = await self.submissions.insert_one(submission)
        except DuplicateKeyError:
            raise DuplicateSubmissionError()
        submission["_id"] = result.inserted_id

        logger.info("[OK] Submission %s by %s for contest %s", result.inserted_id, user_email, contest_id)
        await self.audit_service.log_action(
            contest_id=contest_id,
            action=AuditAction.SUBMISSION_CREATED,
            actor_email=user_email,
            entity_type="submission",
            entity_id=str(result.inserted_id)
        )

        return submission

    async def list_by_contest(self, contest_id: str, actor: dict) -> List[Dict]:
        """All submissions of a contest in creation order (creator or admin)"""
        contest = await self.contest_service.get_contest(contest_id)
        require(actor, "submission.list", contest, message="Only the contest creator or an admin can view submissions")

        cursor = self.submissions.find({"contest_id": contest_id}).sort([("created_at", 1), ("_id", 1)])
        return await cursor.to_list(length=None)
