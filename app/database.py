import os
import logging
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from typing import Optional
from dotenv import load_dotenv
from pymongo import ASCENDING, DESCENDING
from pymongo.errors import PyMongoError

from app.core.exceptions import StoreError

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)

MONGODB_URL = os.getenv("MONGODB_URL", "mongodb://localhost:27017")
DATABASE_NAME = os.getenv("DATABASE_NAME", "contest_hub")
MONGODB_TIMEOUT_MS = int(os.getenv("MONGODB_TIMEOUT_MS", "5000"))


class Database:
    """
    Process-wide MongoDB handle.

    Acquired once by connect_db() during application startup and released by
    close_db() on shutdown. Request handlers never touch the client directly;
    they receive the database through the get_database dependency.
    """
    client: Optional[AsyncIOMotorClient] = None
    database_name: str = DATABASE_NAME

    @classmethod
    async def connect_db(
        cls,
        client: Optional[AsyncIOMotorClient] = None,
        database_name: Optional[str] = None
    ):
        """Connect to MongoDB (or adopt an already built client)"""
        if database_name:
            cls.database_name = database_name
        cls.client = client or AsyncIOMotorClient(
            MONGODB_URL,
            serverSelectionTimeoutMS=MONGODB_TIMEOUT_MS
        )
        logger.info("[OK] Connected to MongoDB database '%s'", cls.database_name)

        # Create indexes
        await cls.create_indexes()

    @classmethod
    async def create_indexes(cls):
        """Create database indexes"""
        await create_indexes(cls.get_db())

    @classmethod
    async def close_db(cls):
        """Close MongoDB connection"""
        if cls.client:
            cls.client.close()
            cls.client = None
            logger.info("[OK] Disconnected from MongoDB")

    @classmethod
    def get_db(cls) -> Optional[AsyncIOMotorDatabase]:
        """Get database instance"""
        if cls.client is None:
            return None
        return cls.client[cls.database_name]


async def create_indexes(db: AsyncIOMotorDatabase):
    """
    Create the indexes the core relies on.

    The unique (contest_id, user_email) indexes are the store-level guard
    against duplicate enrollment and duplicate submission races.
    """
    index_specs = [
        ("users", [("email", ASCENDING)], {"unique": True}),
        ("contests", [("status", ASCENDING)], {}),
        ("contests", [("creator_email", ASCENDING)], {}),
        ("payments", [("contest_id", ASCENDING), ("user_email", ASCENDING)], {"unique": True}),
        ("payments", [("user_email", ASCENDING), ("created_at", DESCENDING)], {}),
        ("submissions", [("contest_id", ASCENDING), ("user_email", ASCENDING)], {"unique": True}),
        ("submissions", [("is_winner", ASCENDING)], {}),
        ("contest_audit_log", [("contest_id", ASCENDING), ("timestamp", DESCENDING)], {}),
    ]

    for collection, keys, options in index_specs:
        try:
            await db[collection].create_index(keys, **options)
            logger.debug("[OK] Created index on %s %s", collection, keys)
        except PyMongoError as e:
            logger.warning("[WARN] Index on %s %s may already exist: %s", collection, keys, e)


async def get_database() -> AsyncIOMotorDatabase:
    """Dependency to get database"""
    db = Database.get_db()
    if db is None:
        raise StoreError("Database is not connected")
    return db
