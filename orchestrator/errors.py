# orchestrator/errors.py


class OrchestratorError(RuntimeError):
    pass


class ConfigurationError(OrchestratorError):
    """Unresolved region/context mapping or invalid settings. Raised before any resource call."""


class ObservationUnavailable(OrchestratorError):
    """The observation store itself is unreachable."""


class ObservationReadError(OrchestratorError):
    """A single key could not be read or decoded. Callers fall back to defaults."""


class ObservationWriteError(OrchestratorError):
    """A single key could not be written. The sampler skips it until the next tick."""


class ClusterCallError(OrchestratorError):
    pass


class MigrationError(OrchestratorError):
    retriable = False
    requires_operator = False

    def __init__(self, message, phase, source_context, target_context, deployment=None):
        super().__init__(message)
        self.phase = phase
        self.source_context = source_context
        self.target_context = target_context
        self.deployment = deployment


class ScaleUpFailed(MigrationError):
    # Source untouched; the whole migration can be retried.
    retriable = True


class ScaleDownFailed(MigrationError):
    # Target already active, source still up: dual-active.
    requires_operator = True


class MigrationCancelled(MigrationError):
    def __init__(self, message, phase, source_context, target_context, target_scaled_up, deployment=None):
        super().__init__(message, phase, source_context, target_context, deployment=deployment)
        self.target_scaled_up = target_scaled_up
        self.retriable = not target_scaled_up
        self.requires_operator = target_scaled_up
