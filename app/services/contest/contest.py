import logging
from motor.motor_asyncio import AsyncIOMotorDatabase
from typing import Optional, Dict, Union
from datetime import datetime
from pymongo import ReturnDocument

from app.core.exceptions import ConflictError, NotFoundError, ValidationError
from app.models.auth.user import UserRole
from app.models.contest.contest import (
    ContestStatus,
    ContestCreate,
    ContestUpdate,
    ALLOWED_TRANSITIONS,
    PROTECTED_FIELDS,
)
from app.models.contest.audit import AuditAction
from app.services.auth.permissions import require
from app.services.contest.audit import AuditService
from app.utils.serializers import parse_model, parse_object_id

logger = logging.getLogger(__name__)


class ContestService:
    """
    Contest lifecycle engine.

    Every status change is a single conditional write whose predicate
    includes the expected current status, so two concurrent requests for the
    same transition cannot both succeed: the loser matches nothing and gets
    ConflictError.
    """

    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db
        self.contests = db.contests
        self.audit_service = AuditService(db)

    async def get_contest(self, contest_id: str) -> Dict:
        """Get contest by ID"""
        contest = await self.contests.find_one({"_id": parse_object_id(contest_id, "Contest")})
        if not contest:
            raise NotFoundError("Contest not found")
        return contest

    async def _raise_for_missed_write(self, contest_id: str, message: str):
        """A conditional write matched nothing: tell apart missing from already changed"""
        exists = await self.contests.find_one({"_id": parse_object_id(contest_id, "Contest")}, {"_id": 1})
        if not exists:
            raise NotFoundError("Contest not found")
        raise ConflictError(message)

    async def create_contest(
        self,
        contest_data: Union[ContestCreate, dict],
        actor: dict
    ) -> Dict:
        """Create a new contest in PENDING status"""
        require(actor, "contest.create", message="Only creators can create contests")
        data = parse_model(ContestCreate, contest_data)

        now = datetime.utcnow()
        contest = {
            **data.model_dump(),
            "creator_email": actor["email"],
            "participants": 0,
            "status": ContestStatus.PENDING.value,  # Always starts as pending
            "created_at": now,
            "updated_at": now
        }

        result = await self.contests.insert_one(contest)
        contest["_id"] = result.inserted_id
        contest_id = str(result.inserted_id)

        logger.info("[OK] Contest %s created by %s", contest_id, actor["email"])
        await self.audit_service.log_action(
            contest_id=contest_id,
            action=AuditAction.CONTEST_CREATED,
            actor_email=actor["email"],
            entity_type="contest",
            entity_id=contest_id,
            metadata={"name": data.name, "price": data.price, "prize_money": data.prize_money}
        )

        return contest

    async def transition(
        self,
        contest_id: str,
        target: Optional[Union[ContestStatus, str]],
        actor: dict
    ) -> Dict:
        """
        Review a pending contest: PENDING -> CONFIRMED or PENDING -> REJECTED.

        Raises:
            ValidationError: target missing or not a review target
            NotFoundError: no such contest
            ConflictError: contest is no longer pending
        """
        require(actor, "contest.transition", message="Only admins can review contests")

        if not target:
            raise ValidationError("Status is required")
        try:
            target_status = ContestStatus(target)
        except ValueError:
            raise ValidationError(f"Invalid status: {target}")
        if target_status not in ALLOWED_TRANSITIONS[ContestStatus.PENDING]:
            raise ValidationError(f"Contest cannot be moved to {target_status.value} by review")

        contest = await self.contests.find_one_and_update(
            {"_id": parse_object_id(contest_id, "Contest"), "status": ContestStatus.PENDING.value},
            {"$set": {"status": target_status.value, "updated_at": datetime.utcnow()}},
            return_document=ReturnDocument.AFTER
        )

        if contest is None:
            await self._raise_for_missed_write(contest_id, "Contest not found or already updated")

        logger.info("[OK] Contest %s %s by %s", contest_id, target_status.value, actor["email"])
        await self.audit_service.log_action(
            contest_id=contest_id,
            action=(
                AuditAction.CONTEST_CONFIRMED
                if target_status == ContestStatus.CONFIRMED
                else AuditAction.CONTEST_REJECTED
            ),
            actor_email=actor["email"],
            entity_type="contest",
            entity_id=contest_id,
            changes={"status": target_status.value}
        )

        return contest

    async def edit_contest(
        self,
        contest_id: str,
        patch: Union[ContestUpdate, dict],
        actor: dict
    ) -> Dict:
        """Edit contest fields (owner creator or admin, only in PENDING status)"""
        if isinstance(patch, dict):
            blocked = sorted(set(patch) & PROTECTED_FIELDS)
            if blocked:
                raise ValidationError(f"Cannot edit fields: {', '.join(blocked)}")
        update_data = parse_model(ContestUpdate, patch)

        contest = await self.get_contest(contest_id)
        require(actor, "contest.edit", contest, message="Only the contest creator or an admin can edit")

        if contest["status"] != ContestStatus.PENDING.value:
            raise ConflictError("Only pending contests can be edited")

        update_dict = update_data.model_dump(exclude_unset=True)
        if not update_dict:
            raise ValidationError("No fields to update")

        update_dict["updated_at"] = datetime.utcnow()

        updated = await self.contests.find_one_and_update(
            {"_id": contest["_id"], "status": ContestStatus.PENDING.value},
            {"$set": update_dict},
            return_document=ReturnDocument.AFTER
        )

        if updated is None:
            await self._raise_for_missed_write(contest_id, "Contest is no longer pending")

        await self.audit_service.log_action(
            contest_id=contest_id,
            action=AuditAction.CONTEST_UPDATED,
            actor_email=actor["email"],
            entity_type="contest",
            entity_id=contest_id,
            changes={k: v for k, v in update_dict.items() if k != "updated_at"}
        )

        return updated

    async def delete_contest(self, contest_id: str, actor: dict) -> bool:
        """
        Delete a contest.
        Creators may delete their own contest while it is PENDING; admins may
        delete any contest.
        """
        contest = await self.get_contest(contest_id)
        require(actor, "contest.delete", contest, message="Only pending contests can be deleted by their creator")

        query = {"_id": contest["_id"]}
        if actor.get("role") != UserRole.ADMIN.value:
            query["status"] = ContestStatus.PENDING.value

        result = await self.contests.delete_one(query)
        if result.deleted_count == 0:
            raise NotFoundError("Contest not found")

        logger.info("[OK] Contest %s deleted by %s", contest_id, actor["email"])
        await self.audit_service.log_action(
            contest_id=contest_id,
            action=AuditAction.CONTEST_DELETED,
            actor_email=actor["email"],
            entity_type="contest",
            entity_id=contest_id,
            metadata={"status": contest["status"]}
        )

        return True

    async def close_contest(
        self,
        contest_id: str,
        winner_email: str,
        winner_submission_id: str,
        actor_email: str
    ) -> Dict:
        """
        CONFIRMED -> ENDED with the winner recorded.
        Called only by winner resolution and reconciliation.
        """
        now = datetime.utcnow()
        contest = await self.contests.find_one_and_update(
            {"_id": parse_object_id(contest_id, "Contest"), "status": ContestStatus.CONFIRMED.value},
            {"$set": {
                "status": ContestStatus.ENDED.value,
                "winner_email": winner_email,
                "winner_submission_id": winner_submission_id,
                "ended_at": now,
                "updated_at": now
            }},
            return_document=ReturnDocument.AFTER
        )

        if contest is None:
            await self._raise_for_missed_write(contest_id, "Contest is not open for winner declaration")

        logger.info("[OK] Contest %s ended, winner %s", contest_id, winner_email)
        await self.audit_service.log_action(
            contest_id=contest_id,
            action=AuditAction.CONTEST_ENDED,
            actor_email=actor_email,
            entity_type="contest",
            entity_id=contest_id,
            changes={
                "status": ContestStatus.ENDED.value,
                "winner_email": winner_email,
                "winner_submission_id": winner_submission_id
            }
        )

        return contest
