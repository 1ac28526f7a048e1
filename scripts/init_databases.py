#!/usr/bin/env python3
"""
Database Initialization Script
==============================

Initialize the EasyCare MongoDB database (collections and unique indexes),
verify the Kafka event broker and optionally seed reference records.

Usage:
    python scripts/init_databases.py
    python scripts/init_databases.py --mongodb-only
    python scripts/init_databases.py --mongodb-only --seed

Version: 0.1.0
"""

import argparse
import asyncio
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from shared.logging import get_logger, setup_logging

setup_logging(log_level="INFO", json_logs=False, service_name="init-db")
logger = get_logger(__name__)

SEED_SHOP = ("สำนักงานใหญ่", "Bangkok")
SEED_ADMIN = ("Administrator", "admin")


async def init_mongodb() -> bool:
    """Initialize MongoDB with collections and unique indexes."""
    from shared.database.mongodb import MongoDBClient

    logger.info("mongodb_initializing")

    try:
        client = MongoDBClient.get_client()
        await MongoDBClient.create_indexes()

        info = await client.server_info()
        logger.info("mongodb_initialized", version=info["version"])
        return True

    except Exception as e:
        logger.error("mongodb_initialization_failed", error=str(e))
        return False


async def init_kafka() -> bool:
    """Verify the Kafka broker behind the notification sink."""
    from shared.config import settings
    from shared.database.kafka import KafkaClient

    logger.info("kafka_initializing", topic=settings.kafka.events_topic)

    try:
        health = await KafkaClient.health_check()
        if health.get("status") == "healthy":
            logger.info("kafka_connected", brokers=health["brokers"])
            return True

        logger.error("kafka_health_check_failed", error=health.get("error"))
        return False

    except Exception as e:
        logger.error("kafka_initialization_failed", error=str(e))
        return False

    finally:
        await KafkaClient.close()


async def seed_data() -> bool:
    """Seed a head-office shop and an admin staff record when missing."""
    from services.warranty.errors import ValidationError
    from services.warranty.models import StaffRole
    from services.warranty.repository import MongoRepository
    from services.warranty.services import ShopRegistry, StaffRegistry
    from shared.database.mongodb import MongoDBClient

    logger.info("seeding_reference_data")

    try:
        repository = MongoRepository(MongoDBClient.get_database())

        shops = ShopRegistry(repository)
        if not await shops.list_all():
            shop = await shops.create(*SEED_SHOP)
            logger.info("seed_shop_created", shop_id=shop.shop_id)

        staff = StaffRegistry(repository)
        try:
            admin = await staff.create(*SEED_ADMIN, role=StaffRole.ADMIN)
            logger.info("seed_admin_created", staff_id=admin.staff_id)
        except ValidationError:
            logger.info("seed_admin_exists", username=SEED_ADMIN[1])

        return True

    except Exception as e:
        logger.error("seeding_failed", error=str(e))
        return False


async def main(args: argparse.Namespace) -> int:
    """Main initialization function."""
    from shared.database.mongodb import MongoDBClient

    logger.info("easycare_database_initialization")

    results = {}

    if args.all or args.mongodb_only:
        results["MongoDB"] = await init_mongodb()

    if args.all:
        results["Kafka"] = await init_kafka()

    if args.seed:
        results["Seed Data"] = await seed_data()

    await MongoDBClient.close()

    failed = [name for name, success in results.items() if not success]
    for name, success in results.items():
        logger.info("initialization_result", component=name, ok=success)

    if failed:
        logger.error("initialization_failed", components=failed)
        return 1

    logger.info("initialization_complete")
    return 0


def parse_args() -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Initialize EasyCare databases",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "--mongodb-only",
        action="store_true",
        help="Initialize only MongoDB",
    )
    parser.add_argument(
        "--seed",
        action="store_true",
        help="Seed a head-office shop and an admin staff record",
    )

    args = parser.parse_args()

    # If no specific store is selected, init all
    args.all = not args.mongodb_only

    return args


if __name__ == "__main__":
    args = parse_args()
    exit_code = asyncio.run(main(args))
    sys.exit(exit_code)
