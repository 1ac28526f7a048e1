"""
Test Configuration
==================

Pytest fixtures for EasyCare tests.
"""

import os
import uuid
from collections.abc import AsyncGenerator, Callable
from datetime import UTC, datetime, timedelta
from typing import Any

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

# Set test environment
os.environ["ENVIRONMENT"] = "testing"
os.environ["STORAGE_BACKEND"] = "memory"
os.environ["NOTIFICATION_BACKEND"] = "memory"

from services.warranty.models import (  # noqa: E402
    CustomerInfo,
    DeviceInfo,
    Installment,
    PackageInfo,
    PaymentInfo,
    PaymentStatus,
    WarrantyContract,
    WarrantyDates,
)
from services.warranty.notifications import (  # noqa: E402
    InMemoryNotificationSink,
    NotificationDispatcher,
)
from services.warranty.repository import InMemoryRepository  # noqa: E402
from services.warranty.services import (  # noqa: E402
    ClaimTracker,
    ClaimWorkflow,
    CoverageReconciler,
    MemberRegistry,
    ShopRegistry,
    StaffRegistry,
    WarrantyLedger,
)


class FrozenClock:
    """A clock that only moves when told to."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


def make_contract(**overrides: Any) -> WarrantyContract:
    """A contract on a 10,000 device, first of three installments paid."""
    data: dict[str, Any] = {
        "member_id": "SMC100001",
        "shop_name": "Central Plaza",
        "protection_type": "Full Care",
        "staff_name": "Somchai",
        "device_price": 10000,
        "customer": CustomerInfo(first_name="Suda", last_name="Jaidee", phone="0812345678"),
        "device": DeviceInfo(
            type="phone",
            model="iPhone 15",
            color="Blue",
            capacity="128GB",
            serial=f"SN{uuid.uuid4().hex[:10].upper()}",
            imei=f"35{uuid.uuid4().int % 10**13:013d}",
        ),
        "package": PackageInfo(plan="12 months", price=2990),
        "warranty_dates": WarrantyDates(
            start=datetime(2025, 1, 1, tzinfo=UTC),
            end=datetime(2026, 1, 1, tzinfo=UTC),
        ),
        "payment": PaymentInfo(
            method="Installment",
            schedule=[
                Installment(installment_no=1, amount=1000, status=PaymentStatus.PAID),
                Installment(installment_no=2, amount=1000),
                Installment(installment_no=3, amount=990),
            ],
        ),
    }
    data.update(overrides)
    return WarrantyContract(**data)


@pytest.fixture(scope="session")
def anyio_backend() -> str:
    """Use asyncio backend for async tests."""
    return "asyncio"


@pytest.fixture
def clock() -> FrozenClock:
    """Fixed clock inside the sample contracts' coverage period."""
    return FrozenClock(datetime(2025, 1, 15, 9, 0, tzinfo=UTC))


@pytest.fixture
def contract_factory() -> Callable[..., WarrantyContract]:
    """Build unsaved contracts with overridable fields."""
    return make_contract


@pytest.fixture
def repository() -> InMemoryRepository:
    return InMemoryRepository()


@pytest.fixture
def sink() -> InMemoryNotificationSink:
    return InMemoryNotificationSink()


@pytest.fixture
def notifier(sink: InMemoryNotificationSink) -> NotificationDispatcher:
    return NotificationDispatcher(sink, timeout_seconds=0.5)


@pytest.fixture
def ledger(
    repository: InMemoryRepository,
    notifier: NotificationDispatcher,
    clock: FrozenClock,
) -> WarrantyLedger:
    return WarrantyLedger(repository, notifier, id_attempts=10, clock=clock)


@pytest.fixture
def reconciler(repository: InMemoryRepository) -> CoverageReconciler:
    return CoverageReconciler(repository)


@pytest.fixture
def workflow(
    repository: InMemoryRepository,
    ledger: WarrantyLedger,
    reconciler: CoverageReconciler,
    notifier: NotificationDispatcher,
    clock: FrozenClock,
) -> ClaimWorkflow:
    return ClaimWorkflow(repository, ledger, reconciler, notifier, id_attempts=10, clock=clock)


@pytest.fixture
def tracker(repository: InMemoryRepository, clock: FrozenClock) -> ClaimTracker:
    return ClaimTracker(repository, overdue_after_days=5, clock=clock)


@pytest.fixture
def members(repository: InMemoryRepository, clock: FrozenClock) -> MemberRegistry:
    return MemberRegistry(repository, id_attempts=10, clock=clock)


@pytest.fixture
def shops(repository: InMemoryRepository, clock: FrozenClock) -> ShopRegistry:
    return ShopRegistry(repository, id_attempts=10, clock=clock)


@pytest.fixture
def staff(repository: InMemoryRepository, clock: FrozenClock) -> StaffRegistry:
    return StaffRegistry(repository, id_attempts=10, clock=clock)


@pytest_asyncio.fixture
async def approved_contract(ledger: WarrantyLedger) -> WarrantyContract:
    """A registered and approved contract, ready for claims."""
    contract = await ledger.register(make_contract())
    return await ledger.approve(contract.id, approver="Manager A")


@pytest_asyncio.fixture
async def warranty_client(
    repository: InMemoryRepository,
    sink: InMemoryNotificationSink,
) -> AsyncGenerator[AsyncClient, None]:
    """Create test client for the Warranty Service on in-memory backends."""
    from shared.config import get_settings
    from services.warranty.dependencies import build_container, set_container
    from services.warranty.main import app

    container = build_container(get_settings(), repository=repository, sink=sink)
    set_container(container)

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as client:
        yield client

    await container.notifier.drain()
    set_container(None)


@pytest.fixture
def sample_warranty_data() -> dict[str, Any]:
    """Registration payload for a fully paid contract."""
    return {
        "member_id": "SMC200002",
        "shop_name": "Siam Square",
        "protection_type": "Screen Care",
        "staff_name": "Anan",
        "device_price": 20000,
        "customer": {"first_name": "Malee", "last_name": "Srisuk", "phone": "0899999999"},
        "device": {
            "type": "phone",
            "model": "Galaxy S24",
            "color": "Black",
            "serial": f"SN{uuid.uuid4().hex[:10].upper()}",
            "imei": "356789012345678",
        },
        "package": {"plan": "24 months", "price": 4990},
        "warranty_dates": {"start": "2025-01-01T00:00:00Z", "end": "2099-01-01T00:00:00Z"},
        "payment": {"method": "Cash", "status": "Paid"},
    }


@pytest.fixture
def sample_member_data() -> dict[str, Any]:
    """Member payload with a formatted phone number."""
    return {
        "citizen_id": "1103700012345",
        "prefix": "Ms.",
        "first_name": "Malee",
        "last_name": "Srisuk",
        "phone": "089-999-9999",
        "postal_code": "10330",
        "address": "Pathum Wan, Bangkok",
    }
