# orchestrator/main.py
import argparse
import json
import logging
import logging.config
import sys
import threading
import time
import yaml
from dataclasses import asdict

from orchestrator.arbiter import RegionArbiter
from orchestrator.cluster_client import build_cluster_clients
from orchestrator.config_loader import load_runtime_config
from orchestrator.decision_engine import CostModel, pick_target
from orchestrator.errors import ConfigurationError, MigrationError, ObservationUnavailable, OrchestratorError, ScaleUpFailed
from orchestrator.migrator import Migrator
from orchestrator.price_feed import PriceFeed
from orchestrator.region_registry import RegionRegistry
from orchestrator.utils import retry
from storage.observation_store import InMemoryObservationStore

EXIT_FAILED = 1
EXIT_VETOED = 2
EXIT_OPERATOR = 3


def load_logging_config(path="config/logging.yaml"):
    try:
        with open(path) as f:
            cfg = yaml.safe_load(f)
        logging.config.dictConfig(cfg)
    except (OSError, ValueError, yaml.YAMLError):
        logging.basicConfig(
            level=logging.INFO,
            format='{"time":"%(asctime)s","level":"%(levelname)s","name":"%(name)s","msg":"%(message)s"}',
        )


def build_store(cfg):
    backend = cfg.get("store_backend")
    if backend == "redis":
        from storage.redis_store import RedisObservationStore
        return RedisObservationStore(cfg["redis_url"])
    if backend == "dynamo":
        if not cfg.get("dynamodb_table"):
            raise ConfigurationError("store_backend=dynamo requires dynamodb_table")
        from storage.dynamo_store import DynamoObservationStore
        return DynamoObservationStore(cfg["dynamodb_table"], region_name=cfg.get("dynamodb_region"))
    if backend == "memory":
        return InMemoryObservationStore()
    raise ConfigurationError(f"Unknown store_backend {backend!r}")


def build_arbiter(cfg, policy_path):
    registry = RegionRegistry.from_config(cfg)
    feed = PriceFeed(
        registry,
        build_store(cfg),
        interval=cfg["sampling_interval"],
        ttl=cfg["observation_ttl"],
    )
    migrator = Migrator(
        registry,
        build_cluster_clients(registry, cfg),
        namespace=cfg["namespace"],
        deployment_prefix=cfg["deployment_prefix"],
        active_replicas=cfg["active_replicas"],
        settle_seconds=cfg["settle_seconds"],
    )
    cost_model = CostModel.from_policy(policy_path) if policy_path else CostModel()
    return RegionArbiter(registry, feed, migrator, cost_model)


def cmd_prices(arbiter, args):
    arbiter.feed.sample_once()
    observations = arbiter.get_current_observations()
    print(json.dumps([asdict(o) for o in observations], indent=2))
    return 0


def cmd_migrate(arbiter, args):
    log = logging.getLogger("orchestrator.main")
    arbiter.feed.sample_once()

    outcome = retry(
        lambda: arbiter.evaluate_and_migrate(args.source, args.target, execute=args.execute),
        retries=args.retries,
        delay=args.retry_delay,
        retry_on=(ScaleUpFailed,),
    )
    print(json.dumps(
        {
            "source": outcome.source_region,
            "target": outcome.target_region,
            "verdict": asdict(outcome.verdict),
            "result": asdict(outcome.result) if outcome.result else None,
        },
        indent=2,
    ))
    if not outcome.verdict.admitted:
        return EXIT_VETOED
    if not args.execute:
        log.info("Migration admitted (dry-run). Use --execute to run it.")
    return 0


def cmd_watch(arbiter, args):
    log = logging.getLogger("orchestrator.main")
    current_region = args.current_region
    if not arbiter.registry.resolve(current_region)[1]:
        raise ConfigurationError(f"Unknown region {current_region}")

    stop = threading.Event()
    arbiter.feed.start(stop)

    last_migration_ts = None
    log.info(
        "Starting watch loop | region=%s interval=%ss migrate=%s",
        current_region,
        args.interval,
        args.migrate,
    )

    try:
        while True:
            now = time.time()
            try:
                observations = arbiter.get_current_observations()
            except ObservationUnavailable as e:
                log.warning("Observation store unavailable; retrying in %ss: %s", args.interval, e)
                if stop.wait(args.interval):
                    break
                continue
            log.info("Prices: %s", {o.region: round(o.price, 5) for o in observations})

            target = pick_target(observations, current_region, arbiter.cost_model.max_latency_ms)
            if target is None:
                log.info("Region %s is already the cheapest eligible region", current_region)
            elif last_migration_ts and (now - last_migration_ts) < args.cooldown_seconds:
                log.info("Cooldown active; skipping (remaining %ss)", int(args.cooldown_seconds - (now - last_migration_ts)))
            else:
                outcome = retry(
                    lambda: arbiter.evaluate_and_migrate(current_region, target.region, cancel=stop, execute=args.migrate),
                    retries=args.retries,
                    delay=args.retry_delay,
                    retry_on=(ScaleUpFailed,),
                )
                if outcome.migrated:
                    current_region = outcome.target_region
                    last_migration_ts = time.time()
                    log.info("Workload now in %s", current_region)
                elif outcome.verdict.admitted:
                    log.info("Migration to %s suggested (dry-run). Use --migrate to execute.", target.region)

            if stop.wait(args.interval):
                break
    except KeyboardInterrupt:
        log.info("Interrupted; stopping")
    finally:
        stop.set()
    return 0


def main(argv=None):
    parser = argparse.ArgumentParser(description="Region arbitrage: observe prices, dry-run, and migrate workloads between cluster contexts.")
    parser.add_argument("--config", default=None, help="Runtime config path (default config/runtime.yaml)")
    parser.add_argument("--policy", default="orchestrator/cost_model.yaml", help="Cost model policy path")
    parser.add_argument("--logging-config", default="config/logging.yaml", help="Logging dictConfig YAML")

    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("prices", help="Sample once and print current observations")

    migrate = subparsers.add_parser("migrate", help="Dry-run a migration and optionally execute it")
    migrate.add_argument("--source", required=True, help="Source region")
    migrate.add_argument("--target", required=True, help="Target region")
    migrate.add_argument("--execute", action="store_true", help="Execute when the dry-run admits the migration")
    migrate.add_argument("--retries", type=int, default=1, help="Attempts on scale-up failure (default 1)")
    migrate.add_argument("--retry-delay", type=float, default=5.0)

    watch = subparsers.add_parser("watch", help="Poll -> decide -> (optional) migrate loop")
    watch.add_argument("--current-region", required=True, help="Region the workload runs in now")
    watch.add_argument("--interval", type=float, default=3.0, help="Decision interval seconds (default 3)")
    watch.add_argument("--migrate", action="store_true", help="Migrate when the dry-run admits it")
    watch.add_argument("--cooldown-seconds", type=int, default=300, help="Min seconds between migrations (default 300)")
    watch.add_argument("--retries", type=int, default=1, help="Attempts on scale-up failure (default 1)")
    watch.add_argument("--retry-delay", type=float, default=5.0)

    args = parser.parse_args(argv)

    load_logging_config(args.logging_config)
    log = logging.getLogger("orchestrator.main")

    commands = {"prices": cmd_prices, "migrate": cmd_migrate, "watch": cmd_watch}
    try:
        arbiter = build_arbiter(load_runtime_config(args.config), args.policy)
        return commands[args.command](arbiter, args)
    except MigrationError as e:
        log.error("Migration failed at %s: %s", e.phase.value if e.phase else "start", e)
        return EXIT_OPERATOR if e.requires_operator else EXIT_FAILED
    except OrchestratorError as e:
        log.error("%s", e)
        return EXIT_FAILED


if __name__ == "__main__":
    sys.exit(main())
