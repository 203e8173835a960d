# storage/observation_store.py
import json
import time
from dataclasses import dataclass, asdict
from threading import Lock

from orchestrator.errors import ObservationReadError


@dataclass(frozen=True)
class Observation:
    region: str
    context_id: str
    price: float
    latency: int
    observed_at: float = 0.0

    def __post_init__(self):
        if self.price < 0:
            raise ValueError(f"price must be non-negative, got {self.price}")
        if self.latency < 0:
            raise ValueError(f"latency must be non-negative, got {self.latency}")

    def to_json(self):
        return json.dumps(asdict(self))

    @classmethod
    def from_json(cls, raw, key=None):
        try:
            if isinstance(raw, bytes):
                raw = raw.decode("utf-8")
            data = json.loads(raw)
            return cls(
                region=data["region"],
                context_id=data["context_id"],
                price=float(data["price"]),
                latency=int(data["latency"]),
                observed_at=float(data.get("observed_at", 0.0)),
            )
        except (ValueError, KeyError, TypeError) as e:
            raise ObservationReadError(f"Undecodable observation at {key}: {e}") from e


class ObservationStore:
    """
    Keyed store with expiry. Implementations raise ObservationUnavailable when
    the backend cannot be reached and ObservationReadError for a bad key.
    """

    def get(self, key):
        """Returns (observation, found)."""
        raise NotImplementedError

    def set(self, key, observation, ttl):
        raise NotImplementedError


class InMemoryObservationStore(ObservationStore):
    """
    Process-local store. Entries hold serialized observations so decode
    behaviour matches the remote backends.
    """

    def __init__(self, clock=time.monotonic):
        self.clock = clock
        self.lock = Lock()
        self._data = {}

    def get(self, key):
        with self.lock:
            entry = self._data.get(key)
            if entry is None:
                return None, False
            payload, expires_at = entry
            if self.clock() >= expires_at:
                del self._data[key]
                return None, False
        return Observation.from_json(payload, key=key), True

    def set(self, key, observation, ttl):
        if ttl <= 0:
            raise ValueError("ttl must be positive")
        with self.lock:
            self._data[key] = (observation.to_json(), self.clock() + ttl)

    def put_raw(self, key, payload, ttl):
        with self.lock:
            self._data[key] = (payload, self.clock() + ttl)
