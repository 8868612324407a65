"""AI policy monitor package namespace."""

from importlib import import_module
from typing import Any

_EXPORTS = {
    "PolicyDatabase": "src.policy_monitor.database",
    "PolicyGateway": "src.policy_monitor.gateway",
    "PolicyProcessor": "src.policy_monitor.processor",
    "ExtractionEngine": "src.policy_monitor.extraction",
    "SourceAggregator": "src.policy_monitor.collector_manager",
    "MonitorSettings": "src.policy_monitor.config",
    "SourcesConfig": "src.policy_monitor.config",
    "normalize_record": "src.policy_monitor.normalization",
    "build_processor": "src.policy_monitor.runner",
    "create_app": "src.policy_monitor.api",
}

__all__ = sorted(_EXPORTS)


def __getattr__(name: str) -> Any:
    if name in _EXPORTS:
        module = import_module(_EXPORTS[name])
        return getattr(module, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


def __dir__() -> list[str]:
    return sorted(__all__)
