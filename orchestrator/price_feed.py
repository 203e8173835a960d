# orchestrator/price_feed.py
import logging
import random
import threading
import time

from orchestrator.errors import ObservationReadError
from storage.observation_store import Observation

log = logging.getLogger("orchestrator.price_feed")

KEY_PREFIX = "price:"
DEFAULT_PRICE = 0.05
DEFAULT_LATENCY_MS = 50

# Synthetic generation policy
BASE_PRICE_MIN = 0.04
BASE_PRICE_SPAN = 0.02
BASE_LATENCY_MIN = 20
BASE_LATENCY_SPAN = 60
DROP_PROBABILITY = 0.15
DROP_FACTOR = 0.3
LATENCY_SPIKE_PROBABILITY = 0.10
LATENCY_SPIKE_MIN = 150
LATENCY_SPIKE_SPAN = 150


def observation_key(region):
    return KEY_PREFIX + region


class PriceFeed:
    """
    Keeps one fresh observation per configured region in the store.

    run_sampling() writes a synthetic price/latency sample for every region
    each interval; get_observations() reads them back, substituting a default
    for regions whose entry is missing, expired or unreadable.
    """

    def __init__(self, registry, store, interval=3.0, ttl=10.0, rng=None, clock=time.time):
        if ttl <= interval:
            raise ValueError(f"observation ttl ({ttl}s) must exceed sampling interval ({interval}s)")
        self.registry = registry
        self.store = store
        self.interval = interval
        self.ttl = ttl
        self.rng = rng or random.Random()
        self.clock = clock

    def synthesize(self, region, context_id):
        price = BASE_PRICE_MIN + self.rng.random() * BASE_PRICE_SPAN
        latency = BASE_LATENCY_MIN + self.rng.randrange(BASE_LATENCY_SPAN)

        # Rare sharp drop: the arbitrage opportunity
        if self.rng.random() < DROP_PROBABILITY:
            price *= DROP_FACTOR

        # Drawn independently of the drop
        if self.rng.random() < LATENCY_SPIKE_PROBABILITY:
            latency = LATENCY_SPIKE_MIN + self.rng.randrange(LATENCY_SPIKE_SPAN)

        return Observation(
            region=region,
            context_id=context_id,
            price=price,
            latency=latency,
            observed_at=self.clock(),
        )

    def sample_once(self):
        written = 0
        for region, context_id in self.registry.items():
            obs = self.synthesize(region, context_id)
            try:
                self.store.set(observation_key(region), obs, self.ttl)
                written += 1
            except Exception as e:
                log.warning("Observation write failed for %s: %s", region, e)
        log.debug("Sampled %d/%d regions", written, len(self.registry))
        return written

    def run_sampling(self, stop_event):
        self.sample_once()
        while not stop_event.wait(self.interval):
            self.sample_once()
        log.info("Price sampling stopped")

    def start(self, stop_event):
        thread = threading.Thread(
            target=self.run_sampling,
            args=(stop_event,),
            name="price-feed",
            daemon=True,
        )
        thread.start()
        return thread

    def default_observation(self, region, context_id):
        return Observation(region=region, context_id=context_id, price=DEFAULT_PRICE, latency=DEFAULT_LATENCY_MS)

    def get_observations(self):
        """
        Latest observation per region, in configuration order.
        ObservationUnavailable from the store propagates; per-key problems do not.
        """
        results = []
        for region, context_id in self.registry.items():
            try:
                obs, found = self.store.get(observation_key(region))
                if found and obs.region != region:
                    raise ObservationReadError(f"{observation_key(region)} holds an observation for {obs.region}")
            except ObservationReadError as e:
                log.warning("Using default observation for %s: %s", region, e)
                obs, found = None, False
            if not found:
                obs = self.default_observation(region, context_id)
            results.append(obs)
        return results
