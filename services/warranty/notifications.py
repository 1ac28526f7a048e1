"""
Notification Sink
=================

One-way delivery of domain events to downstream real-time displays.

Transitions hand events to a `NotificationDispatcher`, which runs the sink
call as a detached task bounded by a timeout. A sink that fails or hangs is
logged and otherwise ignored; it never fails the transition that emitted.

Version: 0.1.0
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Protocol

from shared.database.kafka import KafkaClient
from shared.logging import get_logger


logger = get_logger(__name__)


class Events:
    """Event names understood by the front-office display."""

    APPROVAL_NEEDED = "urgent_approval_needed"
    CLAIM_UPDATED = "claimUpdate"


class NotificationSink(Protocol):
    """Protocol for a domain event sink."""

    async def emit(self, event_name: str, payload: dict[str, Any]) -> None:
        """Deliver one event."""
        ...


@dataclass
class RecordedEvent:
    """An event captured by the in-memory sink."""

    name: str
    payload: dict[str, Any]


@dataclass
class InMemoryNotificationSink:
    """Keeps emitted events in a list; used in development and tests."""

    events: list[RecordedEvent] = field(default_factory=list)

    async def emit(self, event_name: str, payload: dict[str, Any]) -> None:
        self.events.append(RecordedEvent(name=event_name, payload=dict(payload)))

    def named(self, event_name: str) -> list[dict[str, Any]]:
        return [e.payload for e in self.events if e.name == event_name]


class KafkaNotificationSink:
    """Publishes events to a Kafka topic keyed by event name."""

    def __init__(self, topic: str) -> None:
        self.topic = topic

    async def emit(self, event_name: str, payload: dict[str, Any]) -> None:
        await KafkaClient.publish(
            self.topic,
            {"event": event_name, "payload": payload},
            key=event_name,
        )


class NotificationDispatcher:
    """Fire-and-forget front end for a `NotificationSink`."""

    def __init__(self, sink: NotificationSink, timeout_seconds: float = 5.0) -> None:
        self.sink = sink
        self.timeout_seconds = timeout_seconds
        self._pending: set[asyncio.Task[None]] = set()

    def fire(self, event_name: str, payload: dict[str, Any]) -> None:
        """Schedule delivery and return immediately."""
        task = asyncio.get_running_loop().create_task(self._deliver(event_name, payload))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _deliver(self, event_name: str, payload: dict[str, Any]) -> None:
        try:
            await asyncio.wait_for(
                self.sink.emit(event_name, payload),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.warning(
                "notification_timed_out",
                event_name=event_name,
                timeout_seconds=self.timeout_seconds,
            )
        except Exception as e:
            logger.warning(
                "notification_failed",
                event_name=event_name,
                error=str(e),
                error_type=type(e).__name__,
            )

    async def drain(self) -> None:
        """Wait for every in-flight delivery (shutdown and tests)."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
