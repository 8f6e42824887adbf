from __future__ import annotations

import logging
from collections import deque
from dataclasses import asdict, dataclass
from typing import Any, Callable, Deque, Dict, List, Optional, Union

logger = logging.getLogger("raffle.events")

DEFAULT_MAX_EVENTS = 1000


@dataclass(frozen=True)
class Entered:
    identity: str


@dataclass(frozen=True)
class RandomnessRequested:
    request_id: int


@dataclass(frozen=True)
class WinnerPicked:
    identity: str


RaffleEvent = Union[Entered, RandomnessRequested, WinnerPicked]


def event_to_dict(event: RaffleEvent) -> Dict[str, Any]:
    payload = asdict(event)
    if "request_id" in payload:
        payload["request_id"] = str(payload["request_id"])
    payload["event"] = type(event).__name__
    return payload


class EventLog:
    """Records emitted events in order and fans them out to subscribers.

    Only the most recent ``max_events`` are kept; ``None`` keeps everything.
    """

    def __init__(self, max_events: Optional[int] = DEFAULT_MAX_EVENTS) -> None:
        self._events: Deque[RaffleEvent] = deque(maxlen=max_events)
        self._subscribers: List[Callable[[RaffleEvent], None]] = []

    def subscribe(self, callback: Callable[[RaffleEvent], None]) -> None:
        self._subscribers.append(callback)

    def emit(self, event: RaffleEvent) -> None:
        self._events.append(event)
        for callback in self._subscribers:
            try:
                callback(event)
            except Exception:
                # Observers never get to undo a committed transition.
                logger.exception("Event subscriber failed for %s", event)

    @property
    def events(self) -> List[RaffleEvent]:
        return list(self._events)

    def of_type(self, event_type: type) -> List[RaffleEvent]:
        return [event for event in self._events if isinstance(event, event_type)]
