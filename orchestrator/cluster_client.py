# orchestrator/cluster_client.py
import logging
import os
from threading import Lock

from kubernetes import client as k8s_client
from kubernetes import config as k8s_config
from kubernetes.client.rest import ApiException
from kubernetes.config.config_exception import ConfigException
from urllib3.exceptions import HTTPError

from orchestrator.errors import ClusterCallError, ConfigurationError

log = logging.getLogger("orchestrator.cluster_client")


class ClusterResourceClient:
    """
    Scales deployments inside one cluster context. Calls are bounded; a call
    that exceeds its timeout raises instead of hanging.
    """

    simulated = False

    def __init__(self, context_id):
        self.context_id = context_id

    def set_replicas(self, namespace, name, count):
        raise NotImplementedError

    def get_replicas(self, namespace, name):
        raise NotImplementedError


class KubernetesClusterClient(ClusterResourceClient):
    def __init__(self, context_id, api_client, request_timeout=10.0):
        super().__init__(context_id)
        self.apps = k8s_client.AppsV1Api(api_client)
        self.request_timeout = request_timeout

    def set_replicas(self, namespace, name, count):
        body = {"spec": {"replicas": count}}
        try:
            self.apps.patch_namespaced_deployment_scale(
                name,
                namespace,
                body,
                _request_timeout=self.request_timeout,
            )
        except ApiException as e:
            raise ClusterCallError(
                f"[{self.context_id}] scale {namespace}/{name} to {count} failed: {e.status} {e.reason}"
            ) from e
        except HTTPError as e:
            raise ClusterCallError(f"[{self.context_id}] scale {namespace}/{name} to {count} failed: {e}") from e

    def get_replicas(self, namespace, name):
        try:
            scale = self.apps.read_namespaced_deployment_scale(
                name,
                namespace,
                _request_timeout=self.request_timeout,
            )
        except ApiException as e:
            raise ClusterCallError(f"[{self.context_id}] read scale {namespace}/{name} failed: {e.status} {e.reason}") from e
        except HTTPError as e:
            raise ClusterCallError(f"[{self.context_id}] read scale {namespace}/{name} failed: {e}") from e
        return (scale.spec.replicas or 0) if scale.spec else 0


class SimulatedClusterClient(ClusterResourceClient):
    """
    Offline stand-in used when no cluster is configured. Tracks replica counts
    in memory and logs every call so simulated runs are never mistaken for real ones.
    """

    simulated = True

    def __init__(self, context_id, initial_replicas=0):
        super().__init__(context_id)
        self.initial_replicas = initial_replicas
        self.replicas = {}
        self.lock = Lock()

    def set_replicas(self, namespace, name, count):
        with self.lock:
            self.replicas[(namespace, name)] = count
        log.warning("SIMULATED [%s] scaled %s/%s to %d replicas", self.context_id, namespace, name, count)

    def get_replicas(self, namespace, name):
        with self.lock:
            return self.replicas.get((namespace, name), self.initial_replicas)


def _default_kubeconfig():
    path = os.getenv("KUBECONFIG")
    if path:
        return path
    return os.path.join(os.path.expanduser("~"), ".kube", "config")


def _api_client(kubeconfig, kube_context):
    if kubeconfig:
        return k8s_config.new_client_from_config(config_file=kubeconfig, context=kube_context)
    # In-cluster: every context is served by the cluster we run in
    k8s_config.load_incluster_config()
    return k8s_client.ApiClient()


def _live_clients(registry, kubeconfig, shared_context, request_timeout):
    api_clients = {}
    clients = {}
    for context_id in registry.context_ids():
        kube_context = shared_context or context_id
        if kube_context not in api_clients:
            try:
                api_clients[kube_context] = _api_client(kubeconfig, kube_context)
            except ConfigException as e:
                raise ConfigurationError(f"Cannot load kube context {kube_context} for {context_id}: {e}") from e
        clients[context_id] = KubernetesClusterClient(
            context_id,
            api_clients[kube_context],
            request_timeout=request_timeout,
        )
    return clients


def build_cluster_clients(registry, cfg):
    """
    One client per registered context. cluster_mode picks the implementation:
      live       kubeconfig (or in-cluster config); failures are fatal
      simulated  in-memory clients
      auto       live when a kubeconfig or in-cluster environment exists, else simulated
    """
    mode = (cfg.get("cluster_mode") or "auto").lower()
    kubeconfig = os.path.expanduser(cfg.get("kubeconfig") or _default_kubeconfig())
    shared_context = cfg.get("shared_context")
    request_timeout = float(cfg.get("request_timeout") or 10.0)

    if mode not in ("live", "simulated", "auto"):
        raise ConfigurationError(f"Unknown cluster_mode {mode!r}")

    in_cluster = bool(os.getenv("KUBERNETES_SERVICE_HOST"))
    has_kubeconfig = os.path.exists(kubeconfig)

    if mode == "auto":
        if has_kubeconfig or in_cluster:
            mode = "live"
        else:
            log.warning("No kubeconfig at %s and not in-cluster; cluster calls will be SIMULATED", kubeconfig)
            mode = "simulated"

    if mode == "simulated":
        return {ctx: SimulatedClusterClient(ctx) for ctx in registry.context_ids()}

    if not has_kubeconfig and not in_cluster:
        raise ConfigurationError(f"cluster_mode=live but no kubeconfig at {kubeconfig}")

    clients = _live_clients(
        registry,
        kubeconfig if has_kubeconfig else None,
        shared_context,
        request_timeout,
    )
    log.info("Connected to Kubernetes contexts: %s", ", ".join(clients))
    return clients
