import argparse
import sys

from orchestrator.cluster_client import build_cluster_clients
from orchestrator.config_loader import load_runtime_config
from orchestrator.errors import OrchestratorError
from orchestrator.region_registry import RegionRegistry, deployment_name


def scale(region, replicas, cfg):
    registry = RegionRegistry.from_config(cfg)
    context_id, found = registry.resolve(region)
    if not found:
        raise SystemExit(f"Unknown region {region}; known: {', '.join(registry.regions())}")

    client = build_cluster_clients(registry, cfg)[context_id]
    name = deployment_name(context_id, cfg["deployment_prefix"])
    namespace = cfg["namespace"]

    before = client.get_replicas(namespace, name)
    client.set_replicas(namespace, name, replicas)
    print(f"✅ {context_id} {namespace}/{name}: {before} -> {replicas} replicas")
    return before


def main():
    parser = argparse.ArgumentParser(
        description="Set the replica count of one region's deployment (cleanup after a failed scale-down)."
    )
    parser.add_argument("--region", required=True, help="Region whose deployment to scale")
    parser.add_argument("--replicas", type=int, default=0, help="Replica count (default: 0)")
    parser.add_argument("--config", default=None, help="Runtime config path (default config/runtime.yaml)")
    args = parser.parse_args()

    try:
        scale(args.region, args.replicas, load_runtime_config(args.config))
    except OrchestratorError as e:
        print(f"❌ Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
