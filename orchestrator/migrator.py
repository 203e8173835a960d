# orchestrator/migrator.py
import logging
import time
from contextlib import ExitStack, contextmanager
from dataclasses import dataclass
from enum import Enum
from threading import Lock

from orchestrator.errors import (
    ConfigurationError,
    MigrationCancelled,
    ScaleDownFailed,
    ScaleUpFailed,
)
from orchestrator.region_registry import deployment_name

log = logging.getLogger("orchestrator.migrator")

ACTIVE_REPLICAS = 3
SETTLE_SECONDS = 1.0


class MigrationPhase(str, Enum):
    SCALE_UP_STARTED = "ScaleUpStarted"
    SCALE_UP_DONE = "ScaleUpDone"
    SETTLE_STARTED = "SettleStarted"
    SCALE_DOWN_STARTED = "ScaleDownStarted"
    COMPLETED = "Completed"
    FAILED = "Failed"


@dataclass(frozen=True)
class MigrationRequest:
    source_context: str
    target_context: str

    def __post_init__(self):
        if self.source_context == self.target_context:
            raise ConfigurationError(f"Source and target context are both {self.source_context}")


@dataclass(frozen=True)
class MigrationResult:
    source_context: str
    target_context: str
    source_deployment: str
    target_deployment: str
    target_already_active: bool
    simulated: bool


class ContextLocks:
    """One lock per cluster context, created on first use."""

    def __init__(self):
        self.lock = Lock()
        self._locks = {}

    def _get(self, context_id):
        with self.lock:
            if context_id not in self._locks:
                self._locks[context_id] = Lock()
            return self._locks[context_id]

    @contextmanager
    def hold(self, *context_ids):
        # Sorted acquisition so two migrations over the same pair cannot deadlock
        with ExitStack() as stack:
            for context_id in sorted(set(context_ids)):
                stack.enter_context(self._get(context_id))
            yield


class Migrator:
    """
    Moves a workload between two cluster contexts:

      1. scale the target deployment up to active_replicas
      2. settle for settle_seconds (aborts if cancelled)
      3. scale the source deployment down to 0

    A failure in step 1 leaves everything as it was (ScaleUpFailed, safe to retry).
    A failure in step 3 leaves both sides running (ScaleDownFailed, needs an operator).
    Nothing is retried here; that is the caller's call.
    """

    def __init__(
        self,
        registry,
        clients,
        namespace="default",
        deployment_prefix="arbitrage",
        active_replicas=ACTIVE_REPLICAS,
        settle_seconds=SETTLE_SECONDS,
        sleep=time.sleep,
    ):
        self.registry = registry
        self.clients = clients
        self.namespace = namespace
        self.deployment_prefix = deployment_prefix
        self.active_replicas = active_replicas
        self.settle_seconds = settle_seconds
        self.sleep = sleep
        self.locks = ContextLocks()
        self.subscribers = []

    def subscribe(self, callback):
        """callback(phase: MigrationPhase, detail: dict), called synchronously at each phase boundary."""
        self.subscribers.append(callback)

    def _notify(self, phase, **detail):
        for callback in list(self.subscribers):
            try:
                callback(phase, detail)
            except Exception:
                log.exception("Phase subscriber %r failed on %s", callback, phase.value)

    def _client_for(self, context_id):
        if not self.registry.has_context(context_id):
            raise ConfigurationError(f"Context {context_id} is not registered")
        client = self.clients.get(context_id)
        if client is None:
            raise ConfigurationError(f"No cluster client for context {context_id}")
        return client

    def _settle(self, cancel):
        """
        Wait for the target to take traffic. Returns True if cancelled meanwhile.
        A readiness probe against the target would replace this fixed delay.
        """
        if cancel is None:
            self.sleep(self.settle_seconds)
            return False
        return cancel.wait(self.settle_seconds)

    def _target_already_active(self, client, name):
        try:
            return client.get_replicas(self.namespace, name) == self.active_replicas
        except NotImplementedError:
            return False

    def migrate(self, request, cancel=None):
        src, tgt = request.source_context, request.target_context
        source_client = self._client_for(src)
        target_client = self._client_for(tgt)
        source_dep = deployment_name(src, self.deployment_prefix)
        target_dep = deployment_name(tgt, self.deployment_prefix)

        if cancel is not None and cancel.is_set():
            raise MigrationCancelled(
                f"Migration {src} -> {tgt} cancelled before start",
                None, src, tgt, target_scaled_up=False,
            )

        with self.locks.hold(src, tgt):
            # Cancelled while queued behind another migration on the same context
            if cancel is not None and cancel.is_set():
                raise MigrationCancelled(
                    f"Migration {src} -> {tgt} cancelled before start",
                    None, src, tgt, target_scaled_up=False,
                )

            simulated = source_client.simulated and target_client.simulated
            if simulated:
                log.warning("Migration %s -> %s running against SIMULATED clusters", src, tgt)
            log.info("Executing migration across contexts: %s -> %s", src, tgt)

            # ==========================================
            # STEP 1: SCALE UP (TARGET)
            # ==========================================
            self._notify(MigrationPhase.SCALE_UP_STARTED, context=tgt, deployment=target_dep)
            try:
                already_active = self._target_already_active(target_client, target_dep)
                if already_active:
                    log.info("Target %s/%s already at %d replicas; skipping scale-up", tgt, target_dep, self.active_replicas)
                else:
                    target_client.set_replicas(self.namespace, target_dep, self.active_replicas)
            except Exception as e:
                log.error("Scale-up of %s/%s failed; source untouched: %s", tgt, target_dep, e)
                self._notify(MigrationPhase.FAILED, at=MigrationPhase.SCALE_UP_STARTED.value, context=tgt, error=str(e))
                raise ScaleUpFailed(
                    f"Scale-up of {target_dep} in {tgt} failed: {e}",
                    MigrationPhase.SCALE_UP_STARTED, src, tgt, deployment=target_dep,
                ) from e
            self._notify(MigrationPhase.SCALE_UP_DONE, context=tgt, deployment=target_dep, replicas=self.active_replicas)
            log.info("Scaled up target deployment %s/%s to %d", tgt, target_dep, self.active_replicas)

            # ==========================================
            # STEP 2: SETTLE
            # ==========================================
            if cancel is not None and cancel.is_set():
                self._cancelled(src, tgt, MigrationPhase.SCALE_UP_DONE)
            self._notify(MigrationPhase.SETTLE_STARTED, context=tgt, seconds=self.settle_seconds)
            if self._settle(cancel):
                self._cancelled(src, tgt, MigrationPhase.SETTLE_STARTED)

            # ==========================================
            # STEP 3: SCALE DOWN (SOURCE)
            # ==========================================
            self._notify(MigrationPhase.SCALE_DOWN_STARTED, context=src, deployment=source_dep)
            try:
                source_client.set_replicas(self.namespace, source_dep, 0)
            except Exception as e:
                log.error(
                    "Scale-down of %s/%s failed; %s and %s are BOTH active, operator cleanup required: %s",
                    src, source_dep, src, tgt, e,
                )
                self._notify(
                    MigrationPhase.FAILED,
                    at=MigrationPhase.SCALE_DOWN_STARTED.value,
                    context=src,
                    error=str(e),
                    dual_active=True,
                )
                raise ScaleDownFailed(
                    f"Scale-down of {source_dep} in {src} failed after {target_dep} in {tgt} was scaled up: {e}",
                    MigrationPhase.SCALE_DOWN_STARTED, src, tgt, deployment=source_dep,
                ) from e
            log.info("Scaled down source deployment %s/%s", src, source_dep)

            self._notify(MigrationPhase.COMPLETED, source=src, target=tgt, simulated=simulated)

        return MigrationResult(
            source_context=src,
            target_context=tgt,
            source_deployment=source_dep,
            target_deployment=target_dep,
            target_already_active=already_active,
            simulated=simulated,
        )

    def _cancelled(self, src, tgt, phase):
        log.warning("Migration %s -> %s cancelled at %s; target already scaled up, source left running", src, tgt, phase.value)
        self._notify(MigrationPhase.FAILED, at=phase.value, context=src, cancelled=True)
        raise MigrationCancelled(
            f"Migration {src} -> {tgt} cancelled at {phase.value}, target already scaled up",
            phase, src, tgt, target_scaled_up=True,
        )
