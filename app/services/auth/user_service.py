import logging
from motor.motor_asyncio import AsyncIOMotorDatabase
from typing import Optional, Dict, Tuple
from datetime import datetime
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from app.core.exceptions import NotFoundError, ValidationError
from app.models.auth.user import UserRole
from app.services.auth.permissions import require

logger = logging.getLogger(__name__)


class UserService:
    """Service for user registration and role management"""

    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db
        self.users_collection = db.users

    async def get_user_by_email(self, email: str) -> Optional[Dict]:
        """Get user by email"""
        return await self.users_collection.find_one({"email": email})

    async def register(
        self,
        email: str,
        name: Optional[str] = None,
        photo_url: Optional[str] = None
    ) -> Tuple[Dict, bool]:
        """
        Register a user with the default role.

        Returns:
            (user, created) - created is False when the email already exists
        """
        if not email:
            raise ValidationError("Email is required")

        existing = await self.get_user_by_email(email)
        if existing:
            return existing, False

        user = {
            "email": email,
            "name": name,
            "photo_url": photo_url,
            "role": UserRole.USER.value,
            "created_at": datetime.utcnow()
        }

        try:
            result = await self.users_collection.insert_one(user)
        except DuplicateKeyError:
            # Concurrent registration of the same email
            return await self.get_user_by_email(email), False

        user["_id"] = result.inserted_id
        logger.info("[OK] Registered user %s", email)
        return user, True

    async def get_role(self, email: str) -> str:
        """Get a user's role"""
        user = await self.get_user_by_email(email)
        if not user:
            raise NotFoundError("User not found")
        return user.get("role") or UserRole.USER.value

    async def set_role(self, actor: dict, email: str, role: Optional[str]) -> Dict:
        """Change a user's role (admin only)"""
        require(actor, "user.set_role")

        if not role:
            raise ValidationError("Role is required")
        try:
            role_value = UserRole(role).value
        except ValueError:
            raise ValidationError(f"Invalid role: {role}")

        user = await self.users_collection.find_one_and_update(
            {"email": email},
            {"$set": {"role": role_value}},
            return_document=ReturnDocument.AFTER
        )
        if not user:
            raise NotFoundError("User not found")

        logger.info("[OK] %s changed role of %s to %s", actor.get("email"), email, role_value)
        return user
