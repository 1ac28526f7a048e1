"""Tests for claim tracking, listings and the customer portal."""

import pytest

from services.warranty.errors import NotFoundError, ValidationError
from services.warranty.models import Claim, ReturnMethod, WarrantyContract
from services.warranty.repository import SearchFilter
from services.warranty.services import (
    ClaimCompletion,
    ClaimTracker,
    ClaimWorkflow,
    MemberRegistry,
    ProgressUpdate,
    WarrantyLedger,
)


def _claim(contract: WarrantyContract, **overrides) -> Claim:
    data = {"warranty_id": contract.id, "symptoms": "No power", "staff_name": "Somchai"}
    data.update(overrides)
    return Claim(**data)


class TestTrack:
    """Tests for public tracking by claim id."""

    @pytest.mark.asyncio
    async def test_track(
        self,
        tracker: ClaimTracker,
        workflow: ClaimWorkflow,
        approved_contract: WarrantyContract,
        clock,
    ) -> None:
        """Test tracking shows limits and updates newest first."""
        claim = await workflow.open_claim(_claim(approved_contract))
        await workflow.add_update(claim.id, ProgressUpdate(title="Diagnosed"))
        clock.advance(hours=2)
        await workflow.add_update(
            claim.id,
            ProgressUpdate(title="Board replaced", cost=300, evidence_images=["https://img/r.jpg"]),
        )

        result = await tracker.track(claim.claim_id)

        assert result["claim_id"] == claim.claim_id
        assert result["device_model"] == "iPhone 15"
        assert result["total_cost"] == 300
        # 10,000 device, one installment paid: 10% of 7,000
        assert result["coverage_limit"] == 700
        assert result["remaining_balance"] == 400
        assert [u["title"] for u in result["updates"]] == ["Board replaced", "Diagnosed"]
        assert "warranty_id" not in result
        assert result["timestamp"] == clock.now.isoformat()

    @pytest.mark.asyncio
    async def test_unknown_claim(self, tracker: ClaimTracker) -> None:
        with pytest.raises(NotFoundError):
            await tracker.track("SML000000")


class TestListings:
    """Tests for claim listings."""

    @pytest.mark.asyncio
    async def test_pending_flags_overdue(
        self,
        tracker: ClaimTracker,
        workflow: ClaimWorkflow,
        approved_contract: WarrantyContract,
        clock,
    ) -> None:
        quiet = await workflow.open_claim(_claim(approved_contract))
        clock.advance(days=2)
        busy = await workflow.open_claim(_claim(approved_contract))
        clock.advance(days=4)

        pending = {c["claim_id"]: c for c in await tracker.pending()}

        assert pending[quiet.claim_id]["is_overdue"] is True
        assert pending[quiet.claim_id]["days_overdue"] == 6
        assert pending[busy.claim_id]["is_overdue"] is False
        assert pending[busy.claim_id]["days_overdue"] == 0

    @pytest.mark.asyncio
    async def test_pending_excludes_completed(
        self,
        tracker: ClaimTracker,
        workflow: ClaimWorkflow,
        approved_contract: WarrantyContract,
    ) -> None:
        claim = await workflow.open_claim(_claim(approved_contract))
        await workflow.complete(claim.id, ClaimCompletion(return_method=ReturnMethod.PICKUP))

        assert await tracker.pending() == []
        assert len(await tracker.list_all()) == 1

    @pytest.mark.asyncio
    async def test_device_backfilled(
        self,
        tracker: ClaimTracker,
        workflow: ClaimWorkflow,
        approved_contract: WarrantyContract,
    ) -> None:
        """Test imei, serial and color come from the contract when missing."""
        claim = await workflow.open_claim(_claim(approved_contract))

        view = (await tracker.get(claim.id)).as_dict()

        assert view["imei"] == approved_contract.device.imei
        assert view["serial_number"] == approved_contract.device.serial
        assert view["color"] == "Blue"

    @pytest.mark.asyncio
    async def test_claim_values_win_over_backfill(
        self,
        tracker: ClaimTracker,
        workflow: ClaimWorkflow,
        approved_contract: WarrantyContract,
    ) -> None:
        claim = await workflow.open_claim(_claim(approved_contract, color="Red"))

        assert (await tracker.get(claim.id)).as_dict()["color"] == "Red"

    @pytest.mark.asyncio
    async def test_search(
        self,
        tracker: ClaimTracker,
        workflow: ClaimWorkflow,
        approved_contract: WarrantyContract,
    ) -> None:
        claim = await workflow.open_claim(_claim(approved_contract))

        found = await tracker.list_all(SearchFilter(search=claim.claim_id.lower()))
        missing = await tracker.list_all(SearchFilter(search="nobody"))

        assert [v.claim.id for v in found] == [claim.id]
        assert missing == []

    @pytest.mark.asyncio
    async def test_history_and_latest(
        self,
        tracker: ClaimTracker,
        workflow: ClaimWorkflow,
        approved_contract: WarrantyContract,
        clock,
    ) -> None:
        first = await workflow.open_claim(_claim(approved_contract))
        clock.advance(minutes=30)
        second = await workflow.open_claim(_claim(approved_contract))

        history = await tracker.history(approved_contract.id)
        latest = await tracker.latest(approved_contract.id)

        assert [v.claim.id for v in history] == [second.id, first.id]
        assert latest.claim.id == second.id

    @pytest.mark.asyncio
    async def test_latest_without_claims(
        self,
        tracker: ClaimTracker,
        approved_contract: WarrantyContract,
    ) -> None:
        with pytest.raises(NotFoundError):
            await tracker.latest(approved_contract.id)

    @pytest.mark.asyncio
    async def test_get_unknown(self, tracker: ClaimTracker) -> None:
        with pytest.raises(NotFoundError):
            await tracker.get("missing")


class TestCustomerPortal:
    """Tests for the member self-service view."""

    @pytest.mark.asyncio
    async def test_portal(
        self,
        tracker: ClaimTracker,
        workflow: ClaimWorkflow,
        ledger: WarrantyLedger,
        members: MemberRegistry,
        contract_factory,
        sample_member_data: dict,
    ) -> None:
        member = await members.create(sample_member_data)
        contract = await ledger.register(contract_factory(member_id=member.member_id))
        contract = await ledger.approve(contract.id, approver="Manager A")
        claim = await workflow.open_claim(_claim(contract, device_model="old name"))
        await workflow.add_update(
            claim.id,
            ProgressUpdate(cost=250, evidence_images=["https://img/e.jpg"]),
        )
        await ledger.register(contract_factory(member_id="SMC999999"))

        portal = await tracker.customer_portal(member.citizen_id, member.member_id)

        assert portal.member.id == member.id
        assert [w["id"] for w in portal.warranties] == [contract.id]
        assert portal.warranties[0]["total_claim_amount"] == 250
        assert len(portal.claims) == 1
        assert portal.claims[0]["device_model"] == "iPhone 15"
        assert portal.claims[0]["color"] == "Blue"

    @pytest.mark.asyncio
    async def test_mismatched_credentials(
        self,
        tracker: ClaimTracker,
        members: MemberRegistry,
        sample_member_data: dict,
    ) -> None:
        member = await members.create(sample_member_data)

        with pytest.raises(NotFoundError):
            await tracker.customer_portal("3100500098765", member.member_id)

    @pytest.mark.asyncio
    @pytest.mark.parametrize(("citizen_id", "member_id"), [("", "SMC100001"), ("1103700012345", "")])
    async def test_credentials_required(self, tracker: ClaimTracker, citizen_id: str, member_id: str) -> None:
        with pytest.raises(ValidationError):
            await tracker.customer_portal(citizen_id, member_id)
