"""Contracts for publishing domain events in-process.

The outbox relay publishes rebuilt events on an ``IEventBus``; each
bounded context subscribes its ``IEventHandler`` implementations at start-up.
"""

from __future__ import annotations

from typing import Generic, Iterable, Protocol, Type, TypeVar

from shared.domain.events import DomainEvent

EventT = TypeVar("EventT", bound=DomainEvent, contravariant=True)


class IEventHandler(Protocol, Generic[EventT]):
    def handle(self, event: EventT) -> None: ...


class IEventBus(Protocol):
    def subscribe(
        self, event_class: Type[EventT], handler: IEventHandler[EventT]
    ) -> None: ...

    def publish(self, event: DomainEvent) -> None:
        """Deliver ``event`` to every handler subscribed to its exact class."""

    def publish_all(self, events: Iterable[DomainEvent]) -> None: ...
