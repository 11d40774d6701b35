"""
Backend registry — the shared state behind the status server.

The registry maps each backend to its in-flight requests (per reporting
proxy) and its recent completed history. One writer (the ingestor) calls
apply() for every decoded update while any number of HTTP handlers call
snapshot(). Both take the same lock for their whole duration, so a
reader never sees a request half-way between in-flight and completed,
or a history list mid-trim. snapshot() copies everything under the lock
and leaves serialization to the caller.

Backends are created on first sight and never removed. A backend that
stops reporting simply keeps its last known state for the life of the
process.
"""

from __future__ import annotations

import enum
import threading
import time
from typing import Callable, Dict, List, Optional

from backendstatus.models import (
    HISTORY_SIZE,
    KIND_FINISHED,
    KIND_STARTED,
    BackendSnapshot,
    BackendState,
    InFlightRequest,
    Update,
    WorldSnapshot,
)


class ApplyResult(enum.Enum):
    """What apply() did with an update."""

    STARTED = "started"
    COMPLETED = "completed"
    DUPLICATE = "duplicate"  # id reused while still open, both dropped
    UNKNOWN_ID = "unknown_id"  # finish with no matching start
    UNKNOWN_KIND = "unknown_kind"

    @property
    def accepted(self) -> bool:
        return self in (ApplyResult.STARTED, ApplyResult.COMPLETED)


class Registry:
    """
    In-memory registry of backend state.

    Args:
        history_size: Completed requests kept per backend.
        clock: Returns the current time in ns since epoch.
    """

    def __init__(
        self,
        history_size: int = HISTORY_SIZE,
        clock: Callable[[], int] = time.time_ns,
    ) -> None:
        self.history_size = history_size
        self._clock = clock
        self._lock = threading.Lock()
        self._backends: Dict[str, BackendState] = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._backends)

    def _backend(self, name: str) -> BackendState:
        state = self._backends.get(name)
        if state is None:
            state = BackendState(backend=name, history_size=self.history_size)
            self._backends[name] = state
        return state

    def apply(self, update: Update, sender: str) -> ApplyResult:
        """
        Apply one update reported by `sender` ("ip:port" of the proxy).

        A started update whose id is already open for this backend and
        sender removes the open request and is itself dropped: there is
        no way to tell which one a later finish would belong to.
        """
        with self._lock:
            backend = self._backend(update.backend)
            requests = backend.sender_requests(sender)

            if update.kind == KIND_STARTED:
                if update.request_id in requests:
                    del requests[update.request_id]
                    return ApplyResult.DUPLICATE
                requests[update.request_id] = InFlightRequest(
                    request_id=update.request_id,
                    uri=update.uri,
                    started_at=self._clock(),
                )
                return ApplyResult.STARTED

            if update.kind == KIND_FINISHED:
                request = requests.pop(update.request_id, None)
                if request is None:
                    return ApplyResult.UNKNOWN_ID
                # deque(maxlen) drops the oldest entry from the right
                backend.completed.appendleft(
                    request.complete(update.elapsed, update.status)
                )
                return ApplyResult.COMPLETED

            return ApplyResult.UNKNOWN_KIND

    def snapshot(self) -> WorldSnapshot:
        """Return a consistent copy of every backend."""
        with self._lock:
            backends = {
                name: BackendSnapshot.capture(state)
                for name, state in self._backends.items()
            }
            return WorldSnapshot(captured_at=self._clock(), backends=backends)

    # ── Read helpers ─────────────────────────────────────

    def backend_ids(self) -> List[str]:
        with self._lock:
            return list(self._backends)

    def in_flight_count(self, backend: str, sender: Optional[str] = None) -> int:
        """Open requests for a backend, optionally for one sender only."""
        with self._lock:
            state = self._backends.get(backend)
            if state is None:
                return 0
            if sender is not None:
                return len(state.in_flight.get(sender, {}))
            return sum(len(r) for r in state.in_flight.values())

    def completed_count(self, backend: str) -> int:
        with self._lock:
            state = self._backends.get(backend)
            return len(state.completed) if state else 0
