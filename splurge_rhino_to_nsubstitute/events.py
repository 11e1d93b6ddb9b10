"""Events published while a migration runs.

Pipeline components publish frozen event dataclasses to an
``EventBus``. Subscribers register per event type; the bus copies the
handler list under a lock and invokes handlers outside it, so a slow
or failing handler never blocks a publisher.

Copyright (c) 2025 Jim Schilling
This software is released under the MIT License.
"""

import logging
import threading
from abc import ABC, abstractmethod
from collections import defaultdict
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, TypeVar

from .context import PipelineContext
from .result import Result

T = TypeVar("T")
EventHandler = Callable[[Any], None]


@dataclass(frozen=True)
class BaseEvent:
    """Fields shared by every event."""

    timestamp: float
    run_id: str

    def __post_init__(self) -> None:
        if self.timestamp < 0:
            raise ValueError("Timestamp cannot be negative")


@dataclass(frozen=True)
class PipelineStartedEvent(BaseEvent):
    context: PipelineContext


@dataclass(frozen=True)
class PipelineCompletedEvent(BaseEvent):
    context: PipelineContext
    final_result: Result[Any]
    duration_ms: float


@dataclass(frozen=True)
class JobStartedEvent(BaseEvent):
    context: PipelineContext
    job_name: str
    job_type: str
    task_count: int


@dataclass(frozen=True)
class JobCompletedEvent(BaseEvent):
    context: PipelineContext
    job_name: str
    job_type: str
    final_result: Result[Any]
    duration_ms: float


@dataclass(frozen=True)
class TaskStartedEvent(BaseEvent):
    context: PipelineContext
    task_name: str
    step_count: int


@dataclass(frozen=True)
class TaskCompletedEvent(BaseEvent):
    context: PipelineContext
    task_name: str
    final_result: Result[Any]


@dataclass(frozen=True)
class StepStartedEvent(BaseEvent):
    context: PipelineContext
    step_name: str
    step_type: str


@dataclass(frozen=True)
class StepCompletedEvent(BaseEvent):
    context: PipelineContext
    step_name: str
    step_type: str
    result: Result[Any]
    duration_ms: float


@dataclass(frozen=True)
class TransformationCompletedEvent(BaseEvent):
    """Fired after a module was rewritten.

    Attributes:
        statistics: Number of rewritten nodes per pattern tag.
        uses_exception_extensions: The output calls ``Throws``.
        uses_received_extensions: The output calls ``Received`` or
            ``DidNotReceive``.
    """

    context: PipelineContext
    statistics: dict[str, int] = field(default_factory=dict)
    uses_exception_extensions: bool = False
    uses_received_extensions: bool = False


@dataclass(frozen=True)
class ErrorEvent(BaseEvent):
    """Fired when a component fails with an exception."""

    context: PipelineContext
    error: Exception
    error_type: str
    component: str


class EventBus:
    """Thread-safe publish/subscribe dispatcher keyed by event type."""

    def __init__(self) -> None:
        self._subscribers: dict[type, list[EventHandler]] = defaultdict(list)
        self._lock = threading.Lock()
        self._logger = logging.getLogger(__name__)

    def subscribe(self, event_type: type[T], handler: Callable[[T], None]) -> None:
        """Register ``handler`` for events whose concrete type is ``event_type``."""
        with self._lock:
            self._subscribers[event_type].append(handler)
            self._logger.debug(f"Subscribed handler {handler} to {event_type.__name__}")

    def unsubscribe(self, event_type: type[T], handler: Callable[[T], None]) -> None:
        with self._lock:
            if handler in self._subscribers.get(event_type, []):
                self._subscribers[event_type].remove(handler)
                self._logger.debug(f"Unsubscribed handler {handler} from {event_type.__name__}")

    def publish(self, event: Any) -> None:
        """Deliver ``event`` to the handlers registered for its type.

        Handler exceptions are logged and do not stop delivery to the
        remaining handlers.

        Args:
            event: Event instance to publish.
        """
        event_type = type(event)
        with self._lock:
            handlers = list(self._subscribers.get(event_type, []))

        for handler in handlers:
            try:
                handler(event)
            except Exception as e:
                self._logger.error(f"Event handler error for {event_type.__name__}: {e}", exc_info=True)

    def clear_subscribers(self, event_type: type[T] | None = None) -> None:
        """Remove the handlers of ``event_type``, or all handlers when omitted."""
        with self._lock:
            if event_type:
                self._subscribers[event_type].clear()
            else:
                self._subscribers.clear()

    def get_subscriber_count(self, event_type: type[T]) -> int:
        with self._lock:
            return len(self._subscribers.get(event_type, []))


class EventSubscriber(ABC):
    """Base class for objects that register a fixed set of handlers."""

    def __init__(self, event_bus: EventBus) -> None:
        self.event_bus = event_bus
        self._setup_subscriptions()

    @abstractmethod
    def _subscriptions(self) -> list[tuple[type, EventHandler]]:
        """Return the ``(event_type, handler)`` pairs to register."""

    def _setup_subscriptions(self) -> None:
        for event_type, handler in self._subscriptions():
            self.event_bus.subscribe(event_type, handler)

    def unsubscribe_all(self) -> None:
        for event_type, handler in self._subscriptions():
            self.event_bus.unsubscribe(event_type, handler)


class LoggingSubscriber(EventSubscriber):
    """Write pipeline events to the ``logging`` module."""

    def __init__(self, event_bus: EventBus) -> None:
        self._logger = logging.getLogger(f"{__name__}.LoggingSubscriber")
        super().__init__(event_bus)

    def _subscriptions(self) -> list[tuple[type, EventHandler]]:
        return [
            (PipelineStartedEvent, self._on_pipeline_started),
            (PipelineCompletedEvent, self._on_pipeline_completed),
            (StepStartedEvent, self._on_step_started),
            (StepCompletedEvent, self._on_step_completed),
            (TransformationCompletedEvent, self._on_transformation_completed),
            (ErrorEvent, self._on_error),
        ]

    def _on_pipeline_started(self, event: PipelineStartedEvent) -> None:
        self._logger.info(
            f"Pipeline started: {event.context.source_file} -> {event.context.target_file} (run_id: {event.run_id})"
        )

    def _on_pipeline_completed(self, event: PipelineCompletedEvent) -> None:
        status = "SUCCESS" if event.final_result.is_success() else event.final_result.status.value.upper()
        self._logger.info(f"Pipeline completed in {event.duration_ms:.2f}ms: {status}")

    def _on_step_started(self, event: StepStartedEvent) -> None:
        self._logger.debug(f"Step started: {event.step_name} ({event.step_type})")

    def _on_step_completed(self, event: StepCompletedEvent) -> None:
        status = event.result.status.value.upper()
        self._logger.debug(f"Step completed in {event.duration_ms:.2f}ms: {event.step_name} ({status})")

    def _on_transformation_completed(self, event: TransformationCompletedEvent) -> None:
        total = sum(event.statistics.values())
        self._logger.info(f"Rewrote {total} Rhino Mocks node(s) in {event.context.source_file}")
        for tag, count in sorted(event.statistics.items()):
            self._logger.debug(f"  {tag}: {count}")

    def _on_error(self, event: ErrorEvent) -> None:
        self._logger.error(f"Error in {event.component} ({event.error_type}): {event.error}")
