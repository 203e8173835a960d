# storage/redis_store.py
import redis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError, TimeoutError as RedisTimeoutError

from orchestrator.errors import ObservationReadError, ObservationUnavailable, ObservationWriteError
from storage.observation_store import Observation, ObservationStore


class RedisObservationStore(ObservationStore):
    """
    Redis-backed observation store. Values are JSON strings written with a
    millisecond expiry, so Redis drops them on its own.
    """

    def __init__(self, url="redis://localhost:6379/0", client=None, socket_timeout=2.0):
        self.url = url
        self.client = client or redis.Redis.from_url(
            url,
            socket_timeout=socket_timeout,
            socket_connect_timeout=socket_timeout,
        )

    def get(self, key):
        try:
            raw = self.client.get(key)
        except (RedisConnectionError, RedisTimeoutError) as e:
            raise ObservationUnavailable(f"Redis get failed ({self.url}): {e}") from e
        except RedisError as e:
            raise ObservationReadError(f"Redis get failed for {key}: {e}") from e
        if raw is None:
            return None, False
        return Observation.from_json(raw, key=key), True

    def set(self, key, observation, ttl):
        try:
            self.client.set(key, observation.to_json(), px=int(ttl * 1000))
        except (RedisConnectionError, RedisTimeoutError) as e:
            raise ObservationUnavailable(f"Redis set failed ({self.url}): {e}") from e
        except RedisError as e:
            raise ObservationWriteError(f"Redis set failed for {key}: {e}") from e
