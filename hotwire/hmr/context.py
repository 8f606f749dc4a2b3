"""
Hot Module Context

The per-module handle granted to application code. A context moves
through pending -> running -> upgrade and lets the module register
start/stop callbacks and carry a value over to its replacement.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional, Union


class ModuleState(str, Enum):
    """Lifecycle states of a hot module."""

    PENDING = "pending"
    RUNNING = "running"
    UPGRADE = "upgrade"


@dataclass
class PendingUpdate:
    """
    Carry-over record shared by a context and its runtime graph entry.

    ``keep()`` writes ``meta`` here; the graph copies it into the next
    context minted for the same module id.
    """

    state: ModuleState = ModuleState.PENDING
    meta: Any = None


def defer(callback: Callable[..., Any], *args: Any) -> None:
    """Run ``callback`` after the current unit of work on the running loop."""
    asyncio.get_running_loop().call_soon(callback, *args)


class HotModuleContext:
    """
    Lifecycle token for one evaluation of a hot module.

    Transitions are never applied synchronously: ``invalidate()`` schedules
    them on the next loop iteration and every handler is itself deferred,
    so code inspecting the context inside the triggering call still sees
    the previous state. Exceptions raised by handlers are not caught and
    reach the event loop's exception handler.

    Example:
        hmr = graph.create("app.views", version)
        hmr.on("stop", server.close)
        hmr.keep({"sessions": sessions})
    """

    def __init__(
        self,
        module_id: Optional[str] = None,
        meta: Any = None,
        update: Union[ModuleState, PendingUpdate, None] = None,
    ):
        self._id = module_id
        self._meta = meta
        self._handlers: dict[Callable[[], Any], Callable[[], None]] = {}
        self._update: Optional[PendingUpdate] = None
        self._state: Optional[ModuleState] = None

        if isinstance(update, PendingUpdate):
            self._update = update
            self._state = update.state
        else:
            self._state = update

    def _transition(self) -> None:
        update = self._update
        if update is None:
            return

        self._state = update.state
        if update.state is ModuleState.UPGRADE:
            self._update = None

        for handler in list(self._handlers.values()):
            defer(handler)

    @property
    def id(self) -> Optional[str]:
        return self._id

    @property
    def meta(self) -> Any:
        """Value carried over from the module this context replaced."""
        return self._meta

    @property
    def state(self) -> ModuleState:
        return self._state or ModuleState.RUNNING

    @property
    def ready(self) -> bool:
        return self.state is not ModuleState.UPGRADE

    @property
    def static(self) -> bool:
        """True when nothing can ever replace this context."""
        return self._update is None

    def on(self, event: str, listener: Callable[[], Any]) -> bool:
        """
        Subscribe to a lifecycle event.

        Args:
            event: "start" (fires once the module is running) or
                "stop" (fires once the module has been replaced)
            listener: Zero-argument callable

        Returns:
            True if the listener was registered
        """
        handlers = self._handlers

        if event == "start":
            def handler() -> None:
                if listener in handlers:
                    state = self.state
                    if state is not ModuleState.PENDING:
                        handlers.pop(listener, None)

                    if state is ModuleState.RUNNING:
                        listener()

        elif event == "stop":
            if self.static:
                return False

            def handler() -> None:
                if listener in handlers and self.state is ModuleState.UPGRADE:
                    handlers.pop(listener, None)
                    listener()

        else:
            return False

        handlers[listener] = handler

        if self.state is not ModuleState.PENDING:
            defer(handler)

        return True

    def off(self, listener: Callable[[], Any]) -> bool:
        """Remove a listener registered with ``on()``."""
        return self._handlers.pop(listener, None) is not None

    def keep(self, meta: Any) -> bool:
        """
        Hand ``meta`` to the context that will replace this one.

        Returns False on a static context, where no replacement can occur.
        """
        update = self._update
        if update is None:
            return False

        update.meta = meta
        return True

    def invalidate(self) -> None:
        """Schedule the transition to the state recorded in the pending update."""
        defer(self._transition)

    def __str__(self) -> str:
        return self.state.value

    def __repr__(self) -> str:
        return f"HotModuleContext(id={self._id!r}, state={self.state.value!r})"
