# orchestrator/config_loader.py
import os
import yaml
from pathlib import Path

RUNTIME_CONFIG_PATH = Path("config/runtime.yaml")


def _env_float(name, cfg, key, default):
    raw = os.getenv(name)
    if raw is None:
        raw = cfg.get(key)
    return float(raw) if raw is not None else default


def _env_int(name, cfg, key, default):
    raw = os.getenv(name)
    if raw is None:
        raw = cfg.get(key)
    return int(raw) if raw is not None else default


def load_runtime_config(path=None):
    """
    Loads runtime configuration for orchestrator components.
    Priority:
      1) Environment variables
      2) config/runtime.yaml (if present)
      3) Built-in defaults
    """
    cfg = {}
    path = Path(path) if path else RUNTIME_CONFIG_PATH

    # Load from file if it exists
    if path.exists():
        with open(path) as f:
            cfg = yaml.safe_load(f) or {}

    # Env vars take precedence
    store_backend = os.getenv("STORE_BACKEND") or cfg.get("store_backend") or "memory"
    redis_url = os.getenv("REDIS_URL") or cfg.get("redis_url") or "redis://localhost:6379/0"
    dynamodb_table = os.getenv("DYNAMO_TABLE") or cfg.get("dynamodb_table")
    dynamodb_region = os.getenv("DYNAMO_REGION") or cfg.get("dynamodb_region")
    cluster_mode = os.getenv("CLUSTER_MODE") or cfg.get("cluster_mode") or "auto"
    kubeconfig = os.getenv("KUBECONFIG") or cfg.get("kubeconfig")
    shared_context = os.getenv("SHARED_KUBE_CONTEXT") or cfg.get("shared_context")
    namespace = os.getenv("NAMESPACE") or cfg.get("namespace") or "default"
    deployment_prefix = os.getenv("DEPLOYMENT_PREFIX") or cfg.get("deployment_prefix") or "arbitrage"

    return {
        "regions": cfg.get("regions"),
        "store_backend": store_backend.lower(),
        "redis_url": redis_url,
        "dynamodb_table": dynamodb_table,
        "dynamodb_region": dynamodb_region,
        "cluster_mode": cluster_mode.lower(),
        "kubeconfig": kubeconfig,
        "shared_context": shared_context,
        "namespace": namespace,
        "deployment_prefix": deployment_prefix,
        "active_replicas": _env_int("ACTIVE_REPLICAS", cfg, "active_replicas", 3),
        "settle_seconds": _env_float("SETTLE_SECONDS", cfg, "settle_seconds", 1.0),
        "sampling_interval": _env_float("SAMPLING_INTERVAL", cfg, "sampling_interval", 3.0),
        "observation_ttl": _env_float("OBSERVATION_TTL", cfg, "observation_ttl", 10.0),
        "request_timeout": _env_float("REQUEST_TIMEOUT", cfg, "request_timeout", 10.0),
        "raw": cfg,
    }
