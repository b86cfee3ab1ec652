"""Named bus instances with get-or-create semantics."""

from __future__ import annotations

import logging
from typing import Any

from .bus import Bus, create_bus
from .exceptions import InvalidArgumentError

LOGGER = logging.getLogger(__name__)

DEFAULT_BUS_NAME = "global"


def is_bus(obj: Any) -> bool:
    """Return True when ``obj`` is a :class:`Bus` instance."""
    return isinstance(obj, Bus)


class BusRegistry:
    """Cache one :class:`Bus` per name for the lifetime of the registry.

    Registries are independent of each other, so tests can create their own
    instead of sharing the process-wide one returned by ``default_registry()``.
    """

    def __init__(self, default_name: str = DEFAULT_BUS_NAME) -> None:
        if not isinstance(default_name, str) or not default_name.strip():
            raise InvalidArgumentError("default bus name must be a non-empty string")
        self.default_name = default_name.strip()
        self._buses: dict[str, Any] = {}

    @classmethod
    def from_config(cls, config: dict[str, Any]) -> BusRegistry:
        """Build a registry from a loaded config mapping."""
        registry_config = config.get("registry", {})
        return cls(default_name=registry_config.get("default_name", DEFAULT_BUS_NAME))

    def get(self, name: str | None = None) -> Bus:
        """Return the bus registered under ``name``, creating it when needed."""
        bus_name = self.default_name if name is None else name
        if not isinstance(bus_name, str):
            raise InvalidArgumentError(
                f"bus name must be a string, got {type(bus_name).__name__}"
            )
        bus = self._buses.get(bus_name)
        if not is_bus(bus):
            if bus is not None:
                LOGGER.warning(
                    "registry.entry.replaced",
                    extra={
                        "event": "registry.entry.replaced",
                        "bus": bus_name,
                        "found_type": type(bus).__name__,
                    },
                )
            bus = create_bus(name=bus_name)
            self._buses[bus_name] = bus
            LOGGER.debug(
                "registry.bus.created",
                extra={"event": "registry.bus.created", "bus": bus_name},
            )
        return bus

    __getitem__ = get

    def __contains__(self, name: object) -> bool:
        return is_bus(self._buses.get(name)) if isinstance(name, str) else False

    def __len__(self) -> int:
        return len(self._buses)

    def names(self) -> list[str]:
        return list(self._buses)

    def discard(self, name: str) -> Bus | None:
        """Forget the bus registered under ``name`` and return it, if any."""
        bus = self._buses.pop(name, None)
        return bus if is_bus(bus) else None

    def clear(self) -> None:
        self._buses.clear()


_DEFAULT_REGISTRY: BusRegistry | None = None


def default_registry() -> BusRegistry:
    """Return the process-wide registry used by :func:`get_bus`.

    Built on first use from the user config, so ``[registry] default_name``
    decides which bus ``get_bus()`` returns without an argument.
    """
    global _DEFAULT_REGISTRY
    if _DEFAULT_REGISTRY is None:
        from .config import load_config

        _DEFAULT_REGISTRY = BusRegistry.from_config(load_config())
        LOGGER.debug(
            "registry.default.created",
            extra={
                "event": "registry.default.created",
                "default_name": _DEFAULT_REGISTRY.default_name,
            },
        )
    return _DEFAULT_REGISTRY


def get_bus(name: str | None = None) -> Bus:
    """Get or create a named bus from the process-wide registry."""
    return default_registry().get(name)
