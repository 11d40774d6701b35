"""
Data models for the backend status server.

Defines the wire update, the per-request records kept for each backend,
and the immutable snapshot handed to the HTTP publisher.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from typing import Any, Deque, Dict, List, Optional

# Update kind codes, as sent by the proxy plugin in the "C" field
KIND_STARTED = 1
KIND_FINISHED = 2

# Number of completed requests retained per backend
HISTORY_SIZE = 500

# Largest datagram accepted; anything bigger is dropped
MAX_DATAGRAM = 4096


@dataclass(frozen=True)
class Update:
    """
    A single status update decoded from one datagram.

    Attributes:
        request_id: Id of the request, unique only per backend and sender.
        backend: The monitored backend in "ip:port" form.
        kind: KIND_STARTED, KIND_FINISHED, or anything the sender invents.
        elapsed: Seconds the request took (finished only).
        status: Response status code (finished only). May be a sentinel
            value from the proxy rather than a real backend code.
        uri: Request uri including query string (started only).
    """

    request_id: int
    backend: str
    kind: int
    elapsed: float = 0.0
    status: int = 0
    uri: str = ""


@dataclass
class InFlightRequest:
    """A request whose start has been reported but not its completion."""

    request_id: int
    uri: str
    started_at: int  # ns since epoch

    def complete(self, elapsed: float, status: int) -> CompletedRequest:
        return CompletedRequest(
            request_id=self.request_id,
            uri=self.uri,
            started_at=self.started_at,
            elapsed=elapsed,
            status=status,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "Id": str(self.request_id),
            "Uri": self.uri,
            "Time": 0.0,
            "StartTime": self.started_at,
            "ResponseCode": 0,
        }


@dataclass(frozen=True)
class CompletedRequest:
    """A finished request kept in a backend's recent history."""

    request_id: int
    uri: str
    started_at: int
    elapsed: float
    status: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "Id": str(self.request_id),
            "Uri": self.uri,
            "Time": self.elapsed,
            "StartTime": self.started_at,
            "ResponseCode": self.status,
        }


@dataclass
class BackendState:
    """
    Live state for one monitored backend.

    In-flight requests are grouped by the address of the proxy that
    reported them, since request ids are only unique per sender.
    Completed requests are kept newest first.
    """

    backend: str
    history_size: int = HISTORY_SIZE
    in_flight: Dict[str, Dict[int, InFlightRequest]] = field(default_factory=dict)
    completed: Deque[CompletedRequest] = field(init=False)

    def __post_init__(self) -> None:
        self.completed = deque(maxlen=self.history_size)

    def sender_requests(self, sender: str) -> Dict[int, InFlightRequest]:
        requests = self.in_flight.get(sender)
        if requests is None:
            requests = {}
            self.in_flight[sender] = requests
        return requests


@dataclass(frozen=True)
class BackendSnapshot:
    """Read-only copy of a BackendState."""

    backend: str
    in_flight: Dict[str, List[InFlightRequest]]
    completed: List[CompletedRequest]

    @classmethod
    def capture(cls, state: BackendState) -> BackendSnapshot:
        # InFlightRequest is mutable, so copy each record as well
        in_flight = {
            sender: [
                InFlightRequest(r.request_id, r.uri, r.started_at)
                for r in requests.values()
            ]
            for sender, requests in state.in_flight.items()
        }
        return cls(
            backend=state.backend,
            in_flight=in_flight,
            completed=list(state.completed),
        )

    @property
    def in_flight_count(self) -> int:
        return sum(len(requests) for requests in self.in_flight.values())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "Ipport": self.backend,
            "Completed": [r.to_dict() for r in self.completed],
            "InFlight": {
                sender: {str(r.request_id): r.to_dict() for r in requests}
                for sender, requests in self.in_flight.items()
            },
        }


@dataclass(frozen=True)
class WorldSnapshot:
    """Every backend as of a single instant."""

    captured_at: int  # ns since epoch
    backends: Dict[str, BackendSnapshot] = field(default_factory=dict)

    def get(self, backend: str) -> Optional[BackendSnapshot]:
        return self.backends.get(backend)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "CurrentTime": self.captured_at,
            "World": {name: b.to_dict() for name, b in self.backends.items()},
        }


@dataclass
class ServerSettings:
    """Runtime settings for the server process."""

    listen: str = "127.0.0.1:9463"
    serve: str = "127.0.0.1:9464"
    log_level: str = "INFO"
