"""
Service Container
=================

Wires the repository, notification sink and services from settings, and
exposes them to routes through FastAPI dependencies.

Version: 0.1.0
"""

from __future__ import annotations

from dataclasses import dataclass

from shared.config.settings import NotificationBackend, Settings, StorageBackend
from shared.database.mongodb import MongoDBClient
from shared.logging import get_logger

from services.warranty.notifications import (
    InMemoryNotificationSink,
    KafkaNotificationSink,
    NotificationDispatcher,
    NotificationSink,
)
from services.warranty.repository import InMemoryRepository, MongoRepository, WarrantyRepository
from services.warranty.services import (
    ClaimTracker,
    ClaimWorkflow,
    CoverageReconciler,
    MemberRegistry,
    ShopRegistry,
    StaffRegistry,
    WarrantyLedger,
)


logger = get_logger(__name__)


@dataclass
class ServiceContainer:
    """Everything a request handler needs."""

    repository: WarrantyRepository
    sink: NotificationSink
    notifier: NotificationDispatcher
    ledger: WarrantyLedger
    reconciler: CoverageReconciler
    workflow: ClaimWorkflow
    tracker: ClaimTracker
    members: MemberRegistry
    shops: ShopRegistry
    staff: StaffRegistry


def build_container(
    settings: Settings,
    repository: WarrantyRepository | None = None,
    sink: NotificationSink | None = None,
) -> ServiceContainer:
    """
    Build the service graph.

    Args:
        settings: Application settings
        repository: Storage override; chosen from settings when omitted
        sink: Notification sink override; chosen from settings when omitted
    """
    if repository is None:
        if settings.storage_backend == StorageBackend.MONGODB:
            repository = MongoRepository(MongoDBClient.get_database())
        else:
            repository = InMemoryRepository()

    if sink is None:
        if settings.notification_backend == NotificationBackend.KAFKA:
            sink = KafkaNotificationSink(settings.kafka.events_topic)
        else:
            sink = InMemoryNotificationSink()

    coverage = settings.coverage
    attempts = coverage.id_generation_attempts
    notifier = NotificationDispatcher(sink, timeout_seconds=coverage.notification_timeout_seconds)
    ledger = WarrantyLedger(repository, notifier, id_attempts=attempts)
    reconciler = CoverageReconciler(repository)

    logger.info(
        "service_container_built",
        repository=type(repository).__name__,
        sink=type(sink).__name__,
    )

    return ServiceContainer(
        repository=repository,
        sink=sink,
        notifier=notifier,
        ledger=ledger,
        reconciler=reconciler,
        workflow=ClaimWorkflow(repository, ledger, reconciler, notifier, id_attempts=attempts),
        tracker=ClaimTracker(repository, overdue_after_days=coverage.overdue_after_days),
        members=MemberRegistry(repository, id_attempts=attempts),
        shops=ShopRegistry(repository, id_attempts=attempts),
        staff=StaffRegistry(repository, id_attempts=attempts),
    )


_container: ServiceContainer | None = None


def set_container(container: ServiceContainer | None) -> None:
    global _container
    _container = container


def get_container() -> ServiceContainer:
    """
    Dependency that provides the service container.

    Usage:
        @router.get("/warranties")
        async def warranties(services: ServiceContainer = Depends(get_container)):
            return await services.ledger.list_views()
    """
    if _container is None:
        raise RuntimeError("Service container not initialized")
    return _container
