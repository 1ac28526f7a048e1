"""
Warranty Service API Tests
==========================

End-to-end route tests against in-memory storage and notifications.
"""

from typing import Any

import pytest
from httpx import AsyncClient

from services.warranty.dependencies import get_container
from services.warranty.notifications import Events


async def _register(client: AsyncClient, data: dict[str, Any]) -> dict[str, Any]:
    response = await client.post("/api/v1/warranties", json=data)
    assert response.status_code == 201
    return response.json()["data"]


async def _approved(client: AsyncClient, data: dict[str, Any]) -> dict[str, Any]:
    warranty = await _register(client, data)
    response = await client.put(
        f"/api/v1/warranties/{warranty['id']}/approve",
        json={"approver": "Manager A"},
    )
    assert response.status_code == 200
    return response.json()["data"]


class TestHealthEndpoints:
    """Tests for health check endpoints."""

    @pytest.mark.asyncio
    async def test_health_check(self, warranty_client: AsyncClient) -> None:
        """Test health endpoint returns healthy status."""
        response = await warranty_client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["service"] == "warranty"
        assert data["components"]["storage"]["backend"] == "memory"

    @pytest.mark.asyncio
    async def test_root(self, warranty_client: AsyncClient) -> None:
        response = await warranty_client.get("/")
        assert response.status_code == 200
        assert response.json()["service"] == "EasyCare Warranty Service"


class TestWarrantyEndpoints:
    """Tests for contract routes."""

    @pytest.mark.asyncio
    async def test_register_and_get(
        self,
        warranty_client: AsyncClient,
        sample_warranty_data: dict[str, Any],
        sink,
    ) -> None:
        """Test registration returns a pending contract with derived limits on read."""
        created = await _register(warranty_client, sample_warranty_data)

        assert created["approval_status"] == "pending"
        assert len(created["policy_number"]) == 7

        response = await warranty_client.get(f"/api/v1/warranties/{created['id']}")
        assert response.status_code == 200
        view = response.json()
        assert view["max_limit"] == 14000
        assert view["current_limit"] == 14000
        assert view["remaining_limit"] == 14000
        assert view["customer"]["id"] == "SMC200002"

    @pytest.mark.asyncio
    async def test_register_requires_member(
        self,
        warranty_client: AsyncClient,
        sample_warranty_data: dict[str, Any],
    ) -> None:
        sample_warranty_data.pop("member_id")
        response = await warranty_client.post("/api/v1/warranties", json=sample_warranty_data)
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_duplicate_serial_is_400(
        self,
        warranty_client: AsyncClient,
        sample_warranty_data: dict[str, Any],
    ) -> None:
        await _register(warranty_client, sample_warranty_data)

        response = await warranty_client.post("/api/v1/warranties", json=sample_warranty_data)

        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert body["error_code"] == "validation_error"

    @pytest.mark.asyncio
    async def test_unknown_warranty_is_404(self, warranty_client: AsyncClient) -> None:
        response = await warranty_client.get("/api/v1/warranties/missing")
        assert response.status_code == 404
        assert response.json()["error_code"] == "not_found"

    @pytest.mark.asyncio
    async def test_second_decision_is_409(
        self,
        warranty_client: AsyncClient,
        sample_warranty_data: dict[str, Any],
    ) -> None:
        warranty = await _approved(warranty_client, sample_warranty_data)

        response = await warranty_client.put(
            f"/api/v1/warranties/{warranty['id']}/reject",
            json={"reason": "late", "reject_by": "Manager B"},
        )

        assert response.status_code == 409
        assert response.json()["error_code"] == "business_rule_violation"

    @pytest.mark.asyncio
    async def test_pending_listing_and_count(
        self,
        warranty_client: AsyncClient,
        sample_warranty_data: dict[str, Any],
    ) -> None:
        created = await _register(warranty_client, sample_warranty_data)

        count = await warranty_client.get("/api/v1/warranties/pending-count")
        pending = await warranty_client.get("/api/v1/warranties/pending")
        active = await warranty_client.get("/api/v1/warranties/active")

        assert count.json() == {"count": 1}
        assert [w["id"] for w in pending.json()] == [created["id"]]
        assert active.json() == []

    @pytest.mark.asyncio
    async def test_status_filter(
        self,
        warranty_client: AsyncClient,
        sample_warranty_data: dict[str, Any],
    ) -> None:
        warranty = await _approved(warranty_client, sample_warranty_data)

        active = await warranty_client.get("/api/v1/warranties", params={"status": "active"})
        invalid = await warranty_client.get("/api/v1/warranties", params={"status": "bogus"})

        assert [w["id"] for w in active.json()] == [warranty["id"]]
        assert invalid.status_code == 422

    @pytest.mark.asyncio
    async def test_check_duplicate(
        self,
        warranty_client: AsyncClient,
        sample_warranty_data: dict[str, Any],
    ) -> None:
        created = await _register(warranty_client, sample_warranty_data)
        serial = sample_warranty_data["device"]["serial"]

        taken = await warranty_client.get(
            "/api/v1/warranties/check-duplicate",
            params={"type": "serial", "value": serial},
        )
        own = await warranty_client.get(
            "/api/v1/warranties/check-duplicate",
            params={"type": "serial", "value": serial, "excludeId": created["id"]},
        )
        bad_type = await warranty_client.get(
            "/api/v1/warranties/check-duplicate",
            params={"type": "color", "value": "Black"},
        )

        assert taken.json() == {"exists": True}
        assert own.json() == {"exists": False}
        assert bad_type.status_code == 400

    @pytest.mark.asyncio
    async def test_installment_payment(
        self,
        warranty_client: AsyncClient,
        sample_warranty_data: dict[str, Any],
    ) -> None:
        sample_warranty_data["payment"] = {
            "method": "Installment",
            "schedule": [
                {"installment_no": 1, "amount": 1700, "status": "Paid"},
                {"installment_no": 2, "amount": 1700},
                {"installment_no": 3, "amount": 1590},
            ],
        }
        created = await _register(warranty_client, sample_warranty_data)

        response = await warranty_client.patch(
            f"/api/v1/warranties/{created['id']}/payment",
            json={"installment_no": 2, "paid_cash": 1700},
        )

        assert response.status_code == 200
        assert response.json()["data"]["installments_paid"] == 2
        view = (await warranty_client.get(f"/api/v1/warranties/{created['id']}")).json()
        assert view["current_limit"] == 4200

    @pytest.mark.asyncio
    async def test_update_and_delete(
        self,
        warranty_client: AsyncClient,
        sample_warranty_data: dict[str, Any],
    ) -> None:
        created = await _register(warranty_client, sample_warranty_data)

        updated = await warranty_client.put(
            f"/api/v1/warranties/{created['id']}",
            json={"shop_name": "Central World"},
        )
        deleted = await warranty_client.delete(f"/api/v1/warranties/{created['id']}")
        missing = await warranty_client.delete(f"/api/v1/warranties/{created['id']}")

        assert updated.json()["data"]["shop_name"] == "Central World"
        assert deleted.status_code == 200
        assert missing.status_code == 404

    @pytest.mark.asyncio
    async def test_approval_event(
        self,
        warranty_client: AsyncClient,
        sample_warranty_data: dict[str, Any],
        sink,
    ) -> None:
        created = await _register(warranty_client, sample_warranty_data)

        await get_container().notifier.drain()
        assert sink.named(Events.APPROVAL_NEEDED)[0]["customerName"] == "Malee Srisuk"
        assert sink.named(Events.APPROVAL_NEEDED)[0]["warrantyId"] == created["id"]


class TestClaimEndpoints:
    """Tests for claim routes."""

    @pytest.mark.asyncio
    async def test_claim_lifecycle(
        self,
        warranty_client: AsyncClient,
        sample_warranty_data: dict[str, Any],
    ) -> None:
        """Test intake, a costed update, completion and public tracking."""
        warranty = await _approved(warranty_client, sample_warranty_data)

        opened = await warranty_client.post(
            "/api/v1/claims",
            json={"warranty_id": warranty["id"], "symptoms": "Cracked screen", "return_method": "pickup"},
        )
        assert opened.status_code == 201
        claim = opened.json()["data"]
        assert claim["claim_id"].startswith("SML")

        rejected = await warranty_client.post(
            f"/api/v1/claims/{claim['id']}/updates",
            json={"title": "Parts", "cost": 5},
        )
        assert rejected.status_code == 409

        updated = await warranty_client.post(
            f"/api/v1/claims/{claim['id']}/updates",
            json={"title": "Screen replaced", "cost": 2500, "evidence_images": ["https://img/r.jpg"]},
        )
        assert updated.status_code == 200
        assert updated.json()["data"]["total_cost"] == 2500
        assert updated.json()["data"]["updates"][0]["step"] == 2

        view = (await warranty_client.get(f"/api/v1/warranties/{warranty['id']}")).json()
        assert view["used_coverage"] == 2500
        assert view["remaining_limit"] == 11500
        assert view["claim_status"] == "pending"

        completed = await warranty_client.post(
            f"/api/v1/claims/{claim['id']}/complete",
            json={"return_method": "pickup", "pickup_branch": "Siam", "device_images": ["https://img/d.jpg"]},
        )
        assert completed.status_code == 200
        assert completed.json()["data"]["status"] == "รับเครื่องแล้ว"

        tracked = await warranty_client.get(f"/api/v1/public/track/{claim['claim_id']}")
        assert tracked.status_code == 200
        data = tracked.json()["data"]
        assert data["total_cost"] == 2500
        assert data["remaining_balance"] == 11500
        assert data["updates"][0]["title"].startswith("ปิดงานเคลม")

    @pytest.mark.asyncio
    async def test_claim_on_pending_contract_is_409(
        self,
        warranty_client: AsyncClient,
        sample_warranty_data: dict[str, Any],
    ) -> None:
        warranty = await _register(warranty_client, sample_warranty_data)

        response = await warranty_client.post("/api/v1/claims", json={"warranty_id": warranty["id"]})

        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_delivery_needs_address_type(
        self,
        warranty_client: AsyncClient,
        sample_warranty_data: dict[str, Any],
    ) -> None:
        warranty = await _approved(warranty_client, sample_warranty_data)
        claim = (await warranty_client.post(
            "/api/v1/claims", json={"warranty_id": warranty["id"]}
        )).json()["data"]

        response = await warranty_client.post(
            f"/api/v1/claims/{claim['id']}/complete",
            json={"return_method": "delivery"},
        )

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_listings(
        self,
        warranty_client: AsyncClient,
        sample_warranty_data: dict[str, Any],
    ) -> None:
        warranty = await _approved(warranty_client, sample_warranty_data)
        claim = (await warranty_client.post(
            "/api/v1/claims", json={"warranty_id": warranty["id"]}
        )).json()["data"]

        pending = (await warranty_client.get("/api/v1/claims/pending")).json()
        history = (await warranty_client.get(f"/api/v1/claims/history/{warranty['id']}")).json()
        latest = (await warranty_client.get(f"/api/v1/claims/warranty/{warranty['id']}")).json()
        single = (await warranty_client.get(f"/api/v1/claims/{claim['id']}")).json()

        assert pending[0]["is_overdue"] is False
        assert pending[0]["imei"] == "356789012345678"
        assert [c["id"] for c in history] == [claim["id"]]
        assert latest["data"]["id"] == claim["id"]
        assert single["color"] == "Black"

    @pytest.mark.asyncio
    async def test_unknown_claim_is_404(self, warranty_client: AsyncClient) -> None:
        assert (await warranty_client.get("/api/v1/claims/missing")).status_code == 404
        assert (await warranty_client.get("/api/v1/public/track/SML000000")).status_code == 404


class TestReferenceEndpoints:
    """Tests for members, shops, staff and the customer portal."""

    @pytest.mark.asyncio
    async def test_member_and_portal(
        self,
        warranty_client: AsyncClient,
        sample_member_data: dict[str, Any],
        sample_warranty_data: dict[str, Any],
    ) -> None:
        created = await warranty_client.post("/api/v1/members", json=sample_member_data)
        assert created.status_code == 201
        member = created.json()["data"]
        assert member["phone"] == "0899999999"

        sample_warranty_data["member_id"] = member["member_id"]
        await _register(warranty_client, sample_warranty_data)

        portal = await warranty_client.post(
            "/api/v1/public/customer/portal",
            json={"citizen_id": sample_member_data["citizen_id"], "member_id": member["member_id"]},
        )
        denied = await warranty_client.post(
            "/api/v1/public/customer/portal",
            json={"citizen_id": "0000000000000", "member_id": member["member_id"]},
        )

        assert portal.status_code == 200
        assert len(portal.json()["data"]["warranties"]) == 1
        assert denied.status_code == 404

    @pytest.mark.asyncio
    async def test_duplicate_member_phone_is_400(
        self,
        warranty_client: AsyncClient,
        sample_member_data: dict[str, Any],
    ) -> None:
        await warranty_client.post("/api/v1/members", json=sample_member_data)
        sample_member_data["citizen_id"] = None

        response = await warranty_client.post("/api/v1/members", json=sample_member_data)

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_member_lookup(
        self,
        warranty_client: AsyncClient,
        sample_member_data: dict[str, Any],
    ) -> None:
        await warranty_client.post("/api/v1/members", json=sample_member_data)

        found = await warranty_client.get("/api/v1/members/lookup", params={"query": "0899"})

        assert [m["first_name"] for m in found.json()] == ["Malee"]

    @pytest.mark.asyncio
    async def test_shops_and_staff(self, warranty_client: AsyncClient) -> None:
        shop = await warranty_client.post("/api/v1/shops", json={"shop_name": "Siam", "location": "Bangkok"})
        staff = await warranty_client.post(
            "/api/v1/staff",
            json={"staff_name": "Anan", "username": "anan", "role": "approver"},
        )
        duplicate = await warranty_client.post(
            "/api/v1/staff",
            json={"staff_name": "Anan 2", "username": "anan"},
        )

        assert shop.status_code == 201
        assert shop.json()["data"]["shop_id"].startswith("SMP")
        assert staff.json()["data"]["staff_position"] == "ผู้อนุมัติ"
        assert duplicate.status_code == 400
        assert len((await warranty_client.get("/api/v1/staff")).json()) == 1
