# orchestrator/decision_engine.py
import yaml
from dataclasses import dataclass


@dataclass(frozen=True)
class CostModel:
    transfer_volume_gb: float = 500.0
    egress_cost_per_gb: float = 0.09
    replica_count: int = 50
    horizon_hours: float = 24.0
    max_latency_ms: int | None = None

    @classmethod
    def from_policy(cls, path):
        with open(path) as f:
            policy = yaml.safe_load(f) or {}

        egress = policy.get("egress", {})
        projection = policy.get("projection", {})
        defaults = cls()
        return cls(
            transfer_volume_gb=float(egress.get("transfer_volume_gb", defaults.transfer_volume_gb)),
            egress_cost_per_gb=float(egress.get("cost_per_gb", defaults.egress_cost_per_gb)),
            replica_count=int(projection.get("replica_count", defaults.replica_count)),
            horizon_hours=float(projection.get("horizon_hours", defaults.horizon_hours)),
            max_latency_ms=policy.get("max_latency_ms", defaults.max_latency_ms),
        )


@dataclass(frozen=True)
class DryRunVerdict:
    admitted: bool
    egress_cost: float
    projected_savings: float
    reason: str


def evaluate(source, target, params=CostModel()):
    """
    Weigh the one-off egress cost of moving state against the savings the
    cheaper target would yield over the horizon. Break-even is vetoed.
    """
    egress_cost = params.transfer_volume_gb * params.egress_cost_per_gb
    projected_savings = (source.price - target.price) * params.replica_count * params.horizon_hours
    horizon = f"{params.horizon_hours:g}h"

    if projected_savings > egress_cost:
        return DryRunVerdict(
            True,
            egress_cost,
            projected_savings,
            f"projected {horizon} savings (${projected_savings:.2f}) exceed egress cost (${egress_cost:.2f})",
        )

    return DryRunVerdict(
        False,
        egress_cost,
        projected_savings,
        f"vetoed: egress cost (${egress_cost:.2f}) is not below projected {horizon} savings (${projected_savings:.2f})",
    )


def pick_target(observations, current_region, max_latency_ms=None):
    """
    Cheapest region other than current_region within the latency ceiling.
    None when the current region is already the cheapest candidate.
    """
    current = next((o for o in observations if o.region == current_region), None)
    if current is None:
        return None

    candidates = [
        o for o in observations
        if o.region == current_region or max_latency_ms is None or o.latency <= max_latency_ms
    ]
    # Ties keep us where we are
    cheapest = min(candidates, key=lambda o: (o.price, o.region != current_region))

    if cheapest.region == current_region:
        return None
    return cheapest
