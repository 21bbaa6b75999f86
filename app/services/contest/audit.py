import logging
from motor.motor_asyncio import AsyncIOMotorDatabase
from typing import Optional, Dict, Any, List
from datetime import datetime
from pymongo.errors import PyMongoError
from app.models.contest.audit import AuditAction

logger = logging.getLogger(__name__)


class AuditService:
    """Service for audit trail logging"""

    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db
        self.audit_log = db.contest_audit_log

    async def log_action(
        self,
        contest_id: str,
        action: AuditAction,
        actor_email: str,
        entity_type: str,
        entity_id: Optional[str] = None,
        changes: Optional[Dict[str, Any]] = None,
        metadata: Optional[Dict[str, Any]] = None
    ) -> bool:
        """
        Log an audit trail entry.
        Best-effort: the audited write has already happened, so a failure here
        is logged and reported as False rather than raised.
        """
        try:
            audit_entry = {
                "contest_id": contest_id,
                "action": action.value,
                "actor_email": actor_email,
                "entity_type": entity_type,
                "entity_id": entity_id,
                "changes": changes,
                "metadata": metadata,
                "timestamp": datetime.utcnow()
            }

            await self.audit_log.insert_one(audit_entry)
            return True

        except PyMongoError as e:
            logger.warning("[WARN] Error logging audit %s for contest %s: %s", action.value, contest_id, e)
            return False

    async def get_contest_history(
        self,
        contest_id: str,
        limit: int = 100
    ) -> List[Dict]:
        """Get audit history for a contest, newest first"""
        return await self.audit_log.find({
            "contest_id": contest_id
        }).sort("timestamp", -1).limit(limit).to_list(length=limit)
