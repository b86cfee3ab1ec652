"""Top-level package for minibus."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from .bus import Bus, Subscription, Unsubscriber, create_bus
from .exceptions import ConfigValidationError, InvalidArgumentError, MinibusError
from .registry import BusRegistry, default_registry, get_bus, is_bus

if TYPE_CHECKING:
    from .config import ensure_config_dir, load_config
    from .logging_utils import JsonFormatter, configure_logging

__all__ = [
    "Bus",
    "BusRegistry",
    "ConfigValidationError",
    "InvalidArgumentError",
    "JsonFormatter",
    "MinibusError",
    "Subscription",
    "Unsubscriber",
    "configure_logging",
    "create_bus",
    "default_registry",
    "ensure_config_dir",
    "get_bus",
    "is_bus",
    "load_config",
]


def __getattr__(name: str) -> Any:
    """Lazily import config and logging helpers so pydantic loads only on use."""
    if name in {"ensure_config_dir", "load_config"}:
        from .config import ensure_config_dir, load_config

        return {"ensure_config_dir": ensure_config_dir, "load_config": load_config}[name]
    if name in {"JsonFormatter", "configure_logging"}:
        from .logging_utils import JsonFormatter, configure_logging

        return {"JsonFormatter": JsonFormatter, "configure_logging": configure_logging}[
            name
        ]
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
