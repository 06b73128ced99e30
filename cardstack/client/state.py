"""Observable state container shared by the client stores."""

from __future__ import annotations

import itertools
import time
import uuid
from collections.abc import Callable
from dataclasses import replace
from typing import Any, Generic, TypeVar

from cardstack.core.logging_config import get_logger

logger = get_logger(__name__)

S = TypeVar("S")

Subscriber = Callable[[Any], None]
Notifier = Callable[[str], None]

_temp_counter = itertools.count(1)


def temp_id() -> str:
    """Placeholder id for an optimistically inserted deck or collection."""
    return f"temp-{time.time_ns()}-{next(_temp_counter)}"


def loading_id() -> str:
    """Placeholder id for the assistant reply while a message is in flight."""
    return f"loading-{uuid.uuid4()}"


def is_placeholder_id(entity_id: str) -> bool:
    return entity_id.startswith(("temp-", "loading-"))


class StateContainer(Generic[S]):
    """Holds an immutable state snapshot and notifies subscribers on change.

    State objects are frozen dataclasses; every transition builds a new one
    with ``dataclasses.replace`` so a snapshot taken before a mutation stays
    valid for rollback.

    Args:
        state_factory: Builds the initial state; called again by ``reset``.
        notifier: Optional callback for user-visible failure notices.
    """

    def __init__(self, state_factory: Callable[[], S], notifier: Notifier | None = None) -> None:
        self._state_factory = state_factory
        self._state = state_factory()
        self._subscribers: list[Subscriber] = []
        self._notifier = notifier

    @property
    def state(self) -> S:
        return self._state

    def subscribe(self, subscriber: Subscriber) -> Callable[[], None]:
        """Register a callback invoked with the new state after each change.

        Returns:
            A function that removes the subscription.
        """
        self._subscribers.append(subscriber)

        def unsubscribe() -> None:
            if subscriber in self._subscribers:
                self._subscribers.remove(subscriber)

        return unsubscribe

    def set_state(self, **changes: Any) -> None:
        self._state = replace(self._state, **changes)
        for subscriber in list(self._subscribers):
            subscriber(self._state)

    def reset(self) -> None:
        """Return to the initial state."""
        self._state = self._state_factory()
        for subscriber in list(self._subscribers):
            subscriber(self._state)

    def _report_failure(self, message: str, error: Exception) -> None:
        """Log a failed request and surface a transient notice."""
        logger.warning(
            message,
            extra={
                "extra_data": {
                    "store": type(self).__name__,
                    "error": str(error),
                    "status_code": getattr(error, "status_code", None),
                }
            },
        )
        if self._notifier is not None:
            self._notifier(message)
