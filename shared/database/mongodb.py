"""
MongoDB Client
==============

Async MongoDB client using Motor for warranty, claim and member documents.

Version: 0.1.0
"""

import time
from typing import Any

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING

from shared.config import settings
from shared.logging import get_logger

logger = get_logger(__name__)


class MongoDBClient:
    """
    Async MongoDB client wrapper.

    Manages client lifecycle and provides database access.
    """

    _client: AsyncIOMotorClient | None = None  # type: ignore[type-arg]

    @classmethod
    def get_client(cls) -> AsyncIOMotorClient:  # type: ignore[type-arg]
        """Get or create the async client."""
        if cls._client is None:
            timeout_ms = settings.mongodb.timeout_ms
            cls._client = AsyncIOMotorClient(
                settings.mongodb.uri,
                maxPoolSize=50,
                minPoolSize=5,
                serverSelectionTimeoutMS=timeout_ms,
                connectTimeoutMS=timeout_ms,
                socketTimeoutMS=timeout_ms * 2,
                tz_aware=True,
            )
            logger.info(
                "mongodb_client_created",
                host=settings.mongodb.host,
                database=settings.mongodb.db,
            )
        return cls._client

    @classmethod
    def get_database(cls, name: str | None = None) -> AsyncIOMotorDatabase:  # type: ignore[type-arg]
        """
        Get a database instance.

        Args:
            name: Database name (default from settings)
        """
        client = cls.get_client()
        db_name = name or settings.mongodb.db
        return client[db_name]

    @classmethod
    async def close(cls) -> None:
        """Close the client and release all connections."""
        if cls._client is not None:
            cls._client.close()
            cls._client = None
            logger.info("mongodb_client_closed")

    @classmethod
    async def health_check(cls) -> dict[str, Any]:
        """
        Check database health.

        Returns:
            dict with status and latency
        """
        try:
            start = time.perf_counter()
            client = cls.get_client()
            result = await client.admin.command("ping")
            latency_ms = (time.perf_counter() - start) * 1000

            return {
                "status": "healthy" if result.get("ok") == 1 else "unhealthy",
                "latency_ms": round(latency_ms, 2),
            }
        except Exception as e:
            logger.error("mongodb_health_check_failed", error=str(e))
            return {
                "status": "unhealthy",
                "error": str(e),
            }

    @classmethod
    async def create_indexes(cls) -> None:
        """
        Create indexes for all collections.

        Unique indexes are the final arbiter for generated identifiers and
        natural keys; application-level checks only give nicer messages.
        """
        db = cls.get_database()

        # Warranties
        await db.warranties.create_index("policy_number", unique=True)
        await db.warranties.create_index(
            "device.serial",
            unique=True,
            partialFilterExpression={"device.serial": {"$type": "string"}},
        )
        await db.warranties.create_index("device.imei")
        await db.warranties.create_index("member_id")
        await db.warranties.create_index("approval_status")
        await db.warranties.create_index([("created_at", DESCENDING)])

        # Claims
        await db.claims.create_index("claim_id", unique=True)
        await db.claims.create_index([("warranty_id", ASCENDING), ("created_at", DESCENDING)])
        await db.claims.create_index("status")

        # Reference records
        await db.members.create_index("member_id", unique=True)
        await db.members.create_index("phone", unique=True)
        await db.members.create_index(
            "citizen_id",
            unique=True,
            partialFilterExpression={"citizen_id": {"$type": "string"}},
        )
        await db.shops.create_index("shop_id", unique=True)
        await db.staff.create_index("staff_id", unique=True)
        await db.staff.create_index("username", unique=True)

        logger.info("mongodb_indexes_created")


async def get_mongodb() -> AsyncIOMotorDatabase:  # type: ignore[type-arg]
    """
    Dependency that provides the MongoDB database.

    Usage:
        @app.get("/warranties")
        async def warranties(db: AsyncIOMotorDatabase = Depends(get_mongodb)):
            cursor = db.warranties.find({})
            return await cursor.to_list(100)
    """
    return MongoDBClient.get_database()
