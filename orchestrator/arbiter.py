# orchestrator/arbiter.py
import logging
from dataclasses import dataclass

from orchestrator.decision_engine import CostModel, DryRunVerdict, evaluate
from orchestrator.errors import ConfigurationError
from orchestrator.migrator import MigrationRequest, MigrationResult

log = logging.getLogger("orchestrator.arbiter")


@dataclass(frozen=True)
class ArbitrageOutcome:
    source_region: str
    target_region: str
    verdict: DryRunVerdict
    result: MigrationResult | None = None

    @property
    def migrated(self):
        return self.result is not None


class RegionArbiter:
    """
    The two operations callers use: read current observations, and
    dry-run then (if admitted) migrate between two regions.
    """

    def __init__(self, registry, feed, migrator, cost_model=None):
        self.registry = registry
        self.feed = feed
        self.migrator = migrator
        self.cost_model = cost_model or CostModel()

    def get_current_observations(self):
        return self.feed.get_observations()

    def _resolve(self, region):
        context_id, found = self.registry.resolve(region)
        if not found:
            raise ConfigurationError(f"Unknown region {region}")
        return context_id

    def evaluate_and_migrate(self, source_region, target_region, cancel=None, execute=True):
        if source_region == target_region:
            raise ConfigurationError(f"Cannot migrate {source_region} onto itself")
        source_ctx = self._resolve(source_region)
        target_ctx = self._resolve(target_region)

        # Keyed by configured region, in the order the feed returns them
        observations = dict(zip(self.registry.regions(), self.feed.get_observations()))
        source, target = observations[source_region], observations[target_region]

        log.info("Performing DryRun: %s (%s) -> %s (%s)", source_region, source_ctx, target_region, target_ctx)
        verdict = evaluate(source, target, self.cost_model)
        log.info(
            "DryRun %s | egress=$%.2f savings=$%.2f | %s",
            "ADMITTED" if verdict.admitted else "VETOED",
            verdict.egress_cost,
            verdict.projected_savings,
            verdict.reason,
        )

        if not verdict.admitted or not execute:
            return ArbitrageOutcome(source_region, target_region, verdict)

        result = self.migrator.migrate(MigrationRequest(source_ctx, target_ctx), cancel=cancel)
        return ArbitrageOutcome(source_region, target_region, verdict, result)
