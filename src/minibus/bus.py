"""Synchronous in-process publish/subscribe bus.

Usage:
    bus = create_bus()

    def on_ready(*args):
        print("ready", args)

    handle = bus.subscribe("app.ready", on_ready)
    bus.emit("app.ready", 1, 2)
    handle.unsubscribe()

    # Late subscribers to a deferred channel are invoked immediately.
    bus.defer("app.booted")
    bus.subscribe_once("app.booted", lambda: print("already booted"))
"""

from __future__ import annotations

from collections.abc import Callable, Iterator
from dataclasses import dataclass
import logging
from typing import Any

from .exceptions import InvalidArgumentError

LOGGER = logging.getLogger(__name__)

MinibusCallback = Callable[..., Any]


@dataclass
class Subscription:
    """A callback registered on one channel, with its one-shot flag."""

    callback: MinibusCallback
    once: bool = False


class Unsubscriber:
    """Handle returned by :meth:`Bus.subscribe`.

    Removes the bound callback from the bound channel when called. Calling it
    more than once, or after the bus was cleared, does nothing.
    """

    __slots__ = ("_bus", "_channel", "_callback")

    def __init__(
        self,
        bus: Bus | None,
        channel: str,
        callback: MinibusCallback | None,
    ) -> None:
        self._bus = bus
        self._channel = channel
        self._callback = callback

    @classmethod
    def noop(cls, channel: str) -> Unsubscriber:
        """Return a handle that is not bound to any stored subscription."""
        return cls(None, channel, None)

    @property
    def channel(self) -> str:
        return self._channel

    def unsubscribe(self) -> bool:
        """Remove the subscription; return True when something was removed."""
        if self._bus is None or self._callback is None:
            return False
        return self._bus._remove(self._channel, self._callback)

    __call__ = unsubscribe

    def __enter__(self) -> Unsubscriber:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.unsubscribe()

    def __repr__(self) -> str:
        state = "bound" if self._bus is not None else "noop"
        return f"<Unsubscriber channel={self._channel!r} {state}>"


def _require_channel(channel: Any) -> None:
    if not isinstance(channel, str):
        raise InvalidArgumentError(
            f"channel name must be a string, got {type(channel).__name__}"
        )


def _require_hashable(callback: MinibusCallback) -> None:
    try:
        hash(callback)
    except TypeError as exc:
        raise InvalidArgumentError("callback must be hashable") from exc


class Bus:
    """Route named channel events to registered callbacks.

    Callbacks run inline on the caller's stack in subscription order. A
    callback returning exactly ``False`` stops delivery to the callbacks after
    it. Exceptions raised by callbacks are not caught.
    """

    def __init__(self, name: str | None = None) -> None:
        self.name = name
        # channel -> {callback: Subscription}; dict order is subscription order.
        # Keys compare by equality, so the same bound method is one entry.
        self._subscriptions: dict[str, dict[MinibusCallback, Subscription]] = {}
        self._deferred: set[str] = set()

    def __repr__(self) -> str:
        return (
            f"<Bus name={self.name!r} channels={len(self._subscriptions)} "
            f"deferred={len(self._deferred)}>"
        )

    def __len__(self) -> int:
        return sum(len(subs) for subs in self._subscriptions.values())

    def __contains__(self, channel: object) -> bool:
        return isinstance(channel, str) and not self.is_channel_empty(channel)

    # ------------------------------------------------------------------
    # Subscription management
    # ------------------------------------------------------------------

    def subscribe(
        self,
        channel: str,
        callback: MinibusCallback,
        once: bool = False,
    ) -> Unsubscriber:
        """Register ``callback`` on ``channel`` and return its unsubscriber.

        When the channel has been deferred the callback is invoked right away
        with no arguments. A one-shot subscription is consumed by that call and
        never stored; the returned handle is then a no-op.
        """
        _require_channel(channel)
        if not callable(callback):
            raise InvalidArgumentError("callback is not a valid function")
        _require_hashable(callback)

        subs = self._subscriptions.setdefault(channel, {})

        if channel in self._deferred:
            LOGGER.debug(
                "bus.deferred.replay",
                extra={
                    "event": "bus.deferred.replay",
                    "bus": self.name,
                    "channel": channel,
                    "once": once,
                },
            )
            callback()
            if once:
                return Unsubscriber.noop(channel)
            # The replayed callback may have cleared the bus.
            subs = self._subscriptions.setdefault(channel, {})

        existing = subs.get(callback)
        if existing is not None:
            existing.once = once
        else:
            subs[callback] = Subscription(callback=callback, once=once)
        LOGGER.debug(
            "bus.subscribe",
            extra={
                "event": "bus.subscribe",
                "bus": self.name,
                "channel": channel,
                "once": once,
                "duplicate": existing is not None,
            },
        )
        return Unsubscriber(self, channel, callback)

    def subscribe_once(self, channel: str, callback: MinibusCallback) -> Unsubscriber:
        """Register a callback that is removed after its first invocation."""
        return self.subscribe(channel, callback, once=True)

    def on(
        self, channel: str, once: bool = False
    ) -> Callable[[MinibusCallback], MinibusCallback]:
        """Decorator form of :meth:`subscribe`; returns the function unchanged."""
        _require_channel(channel)

        def decorator(callback: MinibusCallback) -> MinibusCallback:
            self.subscribe(channel, callback, once=once)
            return callback

        return decorator

    def _remove(self, channel: str, callback: MinibusCallback) -> bool:
        subs = self._subscriptions.get(channel)
        if subs is None:
            return False
        removed = subs.pop(callback, None)
        if removed is None:
            return False
        LOGGER.debug(
            "bus.unsubscribe",
            extra={"event": "bus.unsubscribe", "bus": self.name, "channel": channel},
        )
        return True

    # ------------------------------------------------------------------
    # Delivery
    # ------------------------------------------------------------------

    def emit(self, channel: str, *args: Any, **kwargs: Any) -> None:
        """Invoke every live callback on ``channel`` with the given arguments."""
        if self.is_channel_empty(channel):
            return

        snapshot = list(self._subscriptions[channel].values())
        for subscription in snapshot:
            callback = subscription.callback
            live = self._subscriptions.get(channel)
            # Skip entries removed by an earlier callback in this emission.
            if live is None or live.get(callback) is not subscription:
                continue

            propagate = callback(*args, **kwargs)

            if subscription.once:
                live = self._subscriptions.get(channel)
                if live is not None and live.get(callback) is subscription:
                    self._remove(channel, callback)
            if propagate is False:
                LOGGER.debug(
                    "bus.emit.stopped",
                    extra={
                        "event": "bus.emit.stopped",
                        "bus": self.name,
                        "channel": channel,
                    },
                )
                break

    def defer(self, channel: str, *args: Any, **kwargs: Any) -> None:
        """Mark ``channel`` as deferred and notify its current subscribers.

        Every later subscriber to a deferred channel is invoked once at
        subscription time. Arguments cannot be forwarded.
        """
        if args or kwargs:
            raise InvalidArgumentError("defer does not support passing extra arguments")
        _require_channel(channel)

        if channel not in self._deferred:
            self._deferred.add(channel)
            LOGGER.debug(
                "bus.defer",
                extra={"event": "bus.defer", "bus": self.name, "channel": channel},
            )
        self.emit(channel)

    # ------------------------------------------------------------------
    # Bulk operations and queries
    # ------------------------------------------------------------------

    def clear_subscriptions(self) -> None:
        """Drop every subscription. Deferred channels stay deferred."""
        self._subscriptions = {}
        LOGGER.debug(
            "bus.clear.subscriptions",
            extra={"event": "bus.clear.subscriptions", "bus": self.name},
        )

    def clear_deferred(self) -> None:
        """Forget which channels were deferred."""
        self._deferred = set()
        LOGGER.debug(
            "bus.clear.deferred",
            extra={"event": "bus.clear.deferred", "bus": self.name},
        )

    def reset(self) -> None:
        """Drop subscriptions and deferred markers."""
        self.clear_subscriptions()
        self.clear_deferred()

    def is_channel_empty(self, channel: str) -> bool:
        _require_channel(channel)
        subs = self._subscriptions.get(channel)
        return subs is None or len(subs) == 0

    def is_deferred(self, channel: str) -> bool:
        _require_channel(channel)
        return channel in self._deferred

    @property
    def channels(self) -> tuple[str, ...]:
        """Channels that currently have at least one subscriber."""
        return tuple(name for name, subs in self._subscriptions.items() if subs)

    @property
    def deferred_channels(self) -> frozenset[str]:
        return frozenset(self._deferred)

    def subscribers(self, channel: str) -> tuple[MinibusCallback, ...]:
        """Return the callbacks on ``channel`` in delivery order."""
        _require_channel(channel)
        subs = self._subscriptions.get(channel, {})
        return tuple(sub.callback for sub in subs.values())

    def iter_subscriptions(self) -> Iterator[tuple[str, Subscription]]:
        """Yield ``(channel, subscription)`` pairs from a snapshot."""
        for channel, subs in list(self._subscriptions.items()):
            for subscription in list(subs.values()):
                yield channel, subscription


def create_bus(name: str | None = None) -> Bus:
    """Create an independent bus with no subscriptions and no deferred channels."""
    return Bus(name=name)
