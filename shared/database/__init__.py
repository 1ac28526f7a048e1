"""
Database Module
===============

Async clients for the EasyCare data stores.

Clients:
- MongoDB (motor) for warranties, claims and reference records
- Kafka (aiokafka) for domain events

Usage:
    from shared.database import MongoDBClient, get_mongodb

    # In FastAPI
    @app.get("/example")
    async def example(db: AsyncIOMotorDatabase = Depends(get_mongodb)):
        return await db.warranties.count_documents({})
"""

from shared.database.kafka import KafkaClient
from shared.database.mongodb import MongoDBClient, get_mongodb


__all__ = [
    # MongoDB
    "get_mongodb",
    "MongoDBClient",
    # Kafka
    "KafkaClient",
]
