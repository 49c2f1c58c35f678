"""Publish/subscribe channel for audit, counter and policy events."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field

from bastion.core.models import AuditReport, ErrorCount, PolicyState

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Event:
    """Base class for everything published on the bus."""


@dataclass(frozen=True)
class AuditStarted(Event):
    checkers: tuple[str, ...] = ()
    total_files: int = 0


@dataclass(frozen=True)
class CheckerFinished(Event):
    checker: str = ""
    issue_count: int = 0
    duration_seconds: float = 0.0


@dataclass(frozen=True)
class AuditFinished(Event):
    report: AuditReport | None = None


@dataclass(frozen=True)
class CountsChanged(Event):
    current: ErrorCount = field(default_factory=ErrorCount)
    previous: ErrorCount | None = None


@dataclass(frozen=True)
class SuspiciousZero(Event):
    """Every count was zero right after a tool failed."""

    failed_tools: tuple[str, ...] = ()


@dataclass(frozen=True)
class DiagnosticsChanged(Event):
    """The editor's diagnostics for one or more files changed."""

    files: tuple[str, ...] = ()


@dataclass(frozen=True)
class PolicyTransition(Event):
    state: PolicyState = field(default_factory=PolicyState)


Handler = Callable[[Event], None]


class Subscription:
    """Handle returned by :meth:`EventBus.subscribe`."""

    def __init__(self, bus: EventBus, event_type: type[Event], handler: Handler) -> None:
        self._bus = bus
        self.event_type = event_type
        self.handler = handler
        self.active = True

    def unsubscribe(self) -> None:
        """Stop receiving events. Safe to call more than once."""
        if self.active:
            self.active = False
            self._bus._remove(self)


class EventBus:
    """Synchronous observer list with explicit unsubscribe.

    Handlers run in subscription order. A failing handler is logged and does
    not stop delivery to the others.
    """

    def __init__(self) -> None:
        self._subscriptions: list[Subscription] = []

    def subscribe(self, handler: Handler, event_type: type[Event] = Event) -> Subscription:
        subscription = Subscription(self, event_type, handler)
        self._subscriptions.append(subscription)
        return subscription

    def publish(self, event: Event) -> None:
        for subscription in list(self._subscriptions):
            if not subscription.active or not isinstance(event, subscription.event_type):
                continue
            try:
                subscription.handler(event)
            except Exception:
                logger.exception(f"Event handler failed for {type(event).__name__}")

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    def _remove(self, subscription: Subscription) -> None:
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)
