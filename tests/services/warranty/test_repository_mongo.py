"""Tests for the MongoDB repository against a mocked Motor database."""

from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock

import pytest
from pymongo.errors import DuplicateKeyError as MongoDuplicateKeyError

from services.warranty.errors import DuplicateKeyError
from services.warranty.repository import MongoRepository, SearchFilter, WarrantyQuery


NOW = datetime(2025, 1, 15, tzinfo=UTC)


@pytest.fixture
def collection() -> MagicMock:
    coll = MagicMock()
    coll.insert_one = AsyncMock()
    coll.find_one = AsyncMock(return_value=None)
    coll.find_one_and_update = AsyncMock(return_value=None)
    cursor = MagicMock()
    cursor.__aiter__.return_value = []
    coll.find.return_value.sort.return_value = cursor
    return coll


@pytest.fixture
def mongo_repository(collection: MagicMock) -> MongoRepository:
    db = MagicMock()
    db.__getitem__.return_value = collection
    db.warranties = collection
    db.claims = collection
    return MongoRepository(db)


class TestDuplicateKeys:
    """Tests for translating index violations."""

    @pytest.mark.asyncio
    async def test_names_the_indexed_field(
        self,
        mongo_repository: MongoRepository,
        collection: MagicMock,
        contract_factory,
    ) -> None:
        collection.insert_one.side_effect = MongoDuplicateKeyError(
            "E11000 duplicate key error",
            11000,
            {"keyPattern": {"policy_number": 1}, "keyValue": {"policy_number": "1234567"}},
        )

        with pytest.raises(DuplicateKeyError) as exc_info:
            await mongo_repository.insert_warranty(contract_factory())

        assert exc_info.value.field == "policy_number"

    @pytest.mark.asyncio
    async def test_update_violation(self, mongo_repository: MongoRepository, collection: MagicMock) -> None:
        collection.find_one_and_update.side_effect = MongoDuplicateKeyError(
            "E11000", 11000, {"keyPattern": {"phone": 1}}
        )

        with pytest.raises(DuplicateKeyError) as exc_info:
            await mongo_repository.update_member("m1", {"phone": "0811111111"})

        assert exc_info.value.field == "phone"


class TestQueries:
    """Tests for the filters sent to MongoDB."""

    @pytest.mark.asyncio
    async def test_search_is_escaped_and_case_insensitive(
        self,
        mongo_repository: MongoRepository,
        collection: MagicMock,
    ) -> None:
        await mongo_repository.list_warranties(WarrantyQuery(filter=SearchFilter(search="a+b")))

        match = collection.find.call_args.args[0]
        assert {"policy_number": {"$regex": r"a\+b", "$options": "i"}} in match["$or"]

    @pytest.mark.asyncio
    async def test_active_filter(self, mongo_repository: MongoRepository, collection: MagicMock) -> None:
        """Test unexpired means the end date is not in the past, or missing."""
        await mongo_repository.list_warranties(WarrantyQuery(
            approval_status="approved",
            claim_status="normal",
            expired=False,
            now=NOW,
        ))

        match = collection.find.call_args.args[0]
        assert match["approval_status"] == "approved"
        assert match["claim_status"] == "normal"
        assert match["warranty_dates.end"] == {"$not": {"$lt": NOW}}

    @pytest.mark.asyncio
    async def test_expired_filter(self, mongo_repository: MongoRepository, collection: MagicMock) -> None:
        await mongo_repository.list_warranties(WarrantyQuery(expired=True, now=NOW))

        assert collection.find.call_args.args[0]["warranty_dates.end"] == {"$lt": NOW}

    @pytest.mark.asyncio
    async def test_sum_claim_costs(self, mongo_repository: MongoRepository, collection: MagicMock) -> None:
        collection.aggregate.return_value.to_list = AsyncMock(return_value=[{"total_used": 300}])

        assert await mongo_repository.sum_claim_costs("w1") == 300

        pipeline = collection.aggregate.call_args.args[0]
        assert pipeline[0] == {"$match": {"warranty_id": "w1"}}

    @pytest.mark.asyncio
    async def test_sum_without_claims(self, mongo_repository: MongoRepository, collection: MagicMock) -> None:
        collection.aggregate.return_value.to_list = AsyncMock(return_value=[])

        assert await mongo_repository.sum_claim_costs("w1") == 0
