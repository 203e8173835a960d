import os
import tempfile
import unittest
from unittest.mock import patch

from orchestrator.config_loader import load_runtime_config

ENV_KEYS = [
    "STORE_BACKEND", "REDIS_URL", "DYNAMO_TABLE", "DYNAMO_REGION", "CLUSTER_MODE", "KUBECONFIG",
    "SHARED_KUBE_CONTEXT", "NAMESPACE", "DEPLOYMENT_PREFIX", "ACTIVE_REPLICAS", "SETTLE_SECONDS",
    "SAMPLING_INTERVAL", "OBSERVATION_TTL", "REQUEST_TIMEOUT",
]


class TestLoadRuntimeConfig(unittest.TestCase):
    def setUp(self):
        env = patch.dict(os.environ, {}, clear=False)
        env.start()
        self.addCleanup(env.stop)
        for key in ENV_KEYS:
            os.environ.pop(key, None)

        self.temp_file = tempfile.NamedTemporaryFile(mode="w", delete=False, suffix=".yaml")
        self.temp_file.write(
            "regions:\n"
            "  - region: A\n"
            "    context_id: ctx-a\n"
            "store_backend: Redis\n"
            "namespace: workloads\n"
            "settle_seconds: 5\n"
        )
        self.temp_file.close()
        self.addCleanup(os.unlink, self.temp_file.name)

    def test_defaults_without_file(self):
        cfg = load_runtime_config("/nonexistent/runtime.yaml")
        self.assertEqual(cfg["store_backend"], "memory")
        self.assertEqual(cfg["cluster_mode"], "auto")
        self.assertEqual(cfg["namespace"], "default")
        self.assertEqual(cfg["deployment_prefix"], "arbitrage")
        self.assertEqual(cfg["active_replicas"], 3)
        self.assertEqual(cfg["sampling_interval"], 3.0)
        self.assertEqual(cfg["observation_ttl"], 10.0)
        self.assertIsNone(cfg["regions"])

    def test_file_values(self):
        cfg = load_runtime_config(self.temp_file.name)
        self.assertEqual(cfg["regions"], [{"region": "A", "context_id": "ctx-a"}])
        self.assertEqual(cfg["store_backend"], "redis")
        self.assertEqual(cfg["namespace"], "workloads")
        self.assertEqual(cfg["settle_seconds"], 5.0)

    def test_env_takes_precedence(self):
        os.environ["NAMESPACE"] = "prod"
        os.environ["SETTLE_SECONDS"] = "2.5"
        cfg = load_runtime_config(self.temp_file.name)
        self.assertEqual(cfg["namespace"], "prod")
        self.assertEqual(cfg["settle_seconds"], 2.5)


if __name__ == '__main__':
    unittest.main()
