# orchestrator/region_registry.py
from types import MappingProxyType

from orchestrator.errors import ConfigurationError

CONTEXT_PREFIX = "ctx-"

DEFAULT_REGIONS = [
    {"region": "US-East", "context_id": "ctx-us-east"},
    {"region": "US-West", "context_id": "ctx-us-west"},
    {"region": "EU-West", "context_id": "ctx-eu-west"},
    {"region": "AP-South", "context_id": "ctx-ap-south"},
    {"region": "AP-Northeast", "context_id": "ctx-ap-northeast"},
]


def deployment_name(context_id: str, prefix: str) -> str:
    """
    Deployment backing a context, e.g. ctx-US-East -> <prefix>-us-east.
    """
    suffix = context_id[len(CONTEXT_PREFIX):] if context_id.startswith(CONTEXT_PREFIX) else context_id
    return f"{prefix}-{suffix.lower()}"


class RegionRegistry:
    """
    Static region -> cluster context mapping, built once at startup.
    Iteration order is the configuration order.
    """

    def __init__(self, entries):
        by_region = {}
        by_context = {}
        for entry in entries:
            region = entry.get("region")
            context_id = entry.get("context_id")
            if not region or not context_id:
                raise ConfigurationError(f"Region entry needs region and context_id: {entry!r}")
            if region in by_region:
                raise ConfigurationError(f"Duplicate region {region}")
            if context_id in by_context:
                raise ConfigurationError(f"Context {context_id} mapped to both {by_context[context_id]} and {region}")
            by_region[region] = context_id
            by_context[context_id] = region

        if not by_region:
            raise ConfigurationError("No regions configured")

        self._by_region = MappingProxyType(by_region)
        self._by_context = MappingProxyType(by_context)

    @classmethod
    def from_config(cls, cfg):
        entries = cfg.get("regions") or DEFAULT_REGIONS
        return cls(entries)

    def resolve(self, region):
        context_id = self._by_region.get(region)
        return context_id, context_id is not None

    def region_for(self, context_id):
        return self._by_context.get(context_id)

    def has_context(self, context_id):
        return context_id in self._by_context

    def regions(self):
        return list(self._by_region)

    def context_ids(self):
        return list(self._by_context)

    def items(self):
        return list(self._by_region.items())

    def __len__(self):
        return len(self._by_region)
