from motor.motor_asyncio import AsyncIOMotorClient
from pymongo import ASCENDING, DESCENDING
from app.config.setting import settings
from app.shared.gateway import (
    BILLS,
    LENDEN,
    NOMINEES,
    TRANSACTION_COLLECTIONS,
)
import logging

logger = logging.getLogger(__name__)


class MongoDB:
    def __init__(self, uri: str, db_name: str, timeout_seconds: float):
        self.uri = uri
        self.client = None
        self.db = None
        self.db_name = db_name
        self.timeout_seconds = timeout_seconds

    async def init_db(self):
        self.client = AsyncIOMotorClient(
            self.uri,
            serverSelectionTimeoutMS=int(self.timeout_seconds * 1000),
            tz_aware=False,
        )
        self.db = self.client[self.db_name]
        await self.client.admin.command("ping")
        logger.info(f"Connected to MongoDB database '{self.db_name}'")

    async def ensure_indexes(self):
        for collection in TRANSACTION_COLLECTIONS:
            await self.db[collection].create_index([("nomineeId", ASCENDING), ("date", DESCENDING)])
            await self.db[collection].create_index([("updatedAt", DESCENDING)])
        await self.db[NOMINEES].create_index([("name", ASCENDING)])
        await self.db[LENDEN].create_index([("name", ASCENDING), ("date", DESCENDING)])
        await self.db[BILLS].create_index([("buyerId", ASCENDING)])
        logger.info("MongoDB indexes ensured")

    def close(self):
        if self.client is not None:
            self.client.close()
            logger.info("MongoDB connection closed")


mongodb = MongoDB(
    uri=settings.mongo_uri,
    db_name=settings.mongo_db_name,
    timeout_seconds=settings.storage_timeout_seconds,
)
