"""Message-passing boundary between a run's background task and its callers."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from enum import Enum
from queue import Empty, Queue
from typing import Iterator, List, Optional

from ..models.results import ProgressSnapshot

LOGGER = logging.getLogger(__name__)


class CommandKind(str, Enum):
    PAUSE = "pause"
    RESUME = "resume"
    STEP = "step"
    STOP = "stop"


@dataclass(frozen=True)
class Command:
    kind: CommandKind
    steps: int = 0


class ControlChannel:
    """FIFO queue of control commands consumed at iteration boundaries."""

    def __init__(self) -> None:
        self._queue: "Queue[Command]" = Queue()

    def send(self, command: Command) -> None:
        self._queue.put(command)

    def receive(self, *, block: bool = False, timeout: Optional[float] = None) -> List[Command]:
        """Return every pending command in send order.

        With ``block=True`` waits for at least one command (or ``timeout``).
        """
        commands: List[Command] = []
        if block:
            try:
                commands.append(self._queue.get(timeout=timeout))
            except Empty:
                return commands
        while True:
            try:
                commands.append(self._queue.get_nowait())
            except Empty:
                break
        return commands


_CLOSED = object()


class ProgressSubscription:
    """Lazy, live iterator over the snapshots published after it was created.

    Iteration ends once the run terminates or the subscription is closed.
    """

    def __init__(self, channel: "ProgressChannel") -> None:
        self._channel = channel
        self._queue: Queue = Queue()
        self._closed = False

    def _deliver(self, item: object) -> None:
        if self._closed:
            return
        self._queue.put(item)

    @property
    def closed(self) -> bool:
        return self._closed

    def get(self, timeout: Optional[float] = None) -> Optional[ProgressSnapshot]:
        """Next snapshot, or ``None`` when the stream ended or ``timeout`` elapsed."""
        if self._closed:
            return None
        try:
            item = self._queue.get(timeout=timeout)
        except Empty:
            return None
        # close() may race a publish that copied the subscriber list first.
        if item is _CLOSED or self._closed:
            self._closed = True
            return None
        return item

    def drain(self) -> List[ProgressSnapshot]:
        updates: List[ProgressSnapshot] = []
        while not self._closed:
            try:
                item = self._queue.get_nowait()
            except Empty:
                break
            if item is _CLOSED:
                self._closed = True
                break
            updates.append(item)
        return updates

    def close(self) -> None:
        """Disconnect from the channel, dropping undelivered snapshots; the run is unaffected."""
        if self._closed:
            return
        self._closed = True
        self._channel.unsubscribe(self)
        self._queue.put(_CLOSED)

    def __iter__(self) -> Iterator[ProgressSnapshot]:
        while True:
            snapshot = self.get()
            if snapshot is None:
                return
            yield snapshot

    def __enter__(self) -> "ProgressSubscription":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


class ProgressChannel:
    """Fan-out of progress snapshots to any number of subscribers."""

    def __init__(self) -> None:
        self._subscribers: List[ProgressSubscription] = []
        self._lock = threading.Lock()
        self._closed = False
        self._latest: Optional[ProgressSnapshot] = None

    @property
    def latest(self) -> Optional[ProgressSnapshot]:
        with self._lock:
            return self._latest

    def subscribe(self) -> ProgressSubscription:
        subscription = ProgressSubscription(self)
        with self._lock:
            if self._closed:
                subscription._deliver(_CLOSED)
            else:
                self._subscribers.append(subscription)
        return subscription

    def unsubscribe(self, subscription: ProgressSubscription) -> None:
        with self._lock:
            if subscription in self._subscribers:
                self._subscribers.remove(subscription)

    def publish(self, snapshot: ProgressSnapshot) -> None:
        with self._lock:
            self._latest = snapshot
            subscribers = list(self._subscribers)
        for subscription in subscribers:
            subscription._deliver(snapshot)

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
            subscribers = list(self._subscribers)
            self._subscribers.clear()
        for subscription in subscribers:
            subscription._deliver(_CLOSED)
        LOGGER.debug("Progress channel closed for %d subscriber(s)", len(subscribers))


__all__ = [
    "Command",
    "CommandKind",
    "ControlChannel",
    "ProgressChannel",
    "ProgressSubscription",
]
