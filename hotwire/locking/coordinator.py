"""
Lock Coordinator

Turns "a directory's generation marker changed" into an awaitable token
stream. Any number of callers can wait on the same directory; exactly one
watchdog watch exists per directory.
"""

from __future__ import annotations

import asyncio
import json
import os
from functools import partial
from pathlib import Path
from typing import Any, Callable, Optional

import structlog
from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

logger = structlog.get_logger(__name__)

MARKER_FILE = "lock.json"


def read_token(path: str) -> Optional[str]:
    """
    Read the generation token from a marker file.

    Missing, unreadable or malformed files yield None.
    """
    try:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return None

    if isinstance(data, dict):
        token = data.get("token")
        if isinstance(token, str):
            return token

    return None


class _DirectoryState:
    """Last observed token of one directory plus the futures handed to waiters."""

    def __init__(self, path: str, loop: asyncio.AbstractEventLoop):
        self.path = path
        self.marker = os.path.join(path, MARKER_FILE)
        self.value = ""
        self.next: asyncio.Future[str] = loop.create_future()
        self.last = self.next

        # None: no read loop running; True: another pass is required
        self.pending: Optional[bool] = None
        self.task: Optional[asyncio.Task] = None
        self.watch: Any = None


class LockCoordinator:
    """
    Shares one filesystem watch per directory between all waiters.

    Example:
        coordinator = LockCoordinator()
        token = await coordinator.watch("dist/assets")          # current token
        token = await coordinator.watch("dist/assets", token)   # next rebuild
    """

    def __init__(self):
        self._states: dict[str, _DirectoryState] = {}
        self._observer: Optional[Observer] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def directories(self) -> tuple[str, ...]:
        return tuple(self._states)

    async def watch(self, directory: str | os.PathLike[str], token: str = "") -> str:
        """
        Wait for the generation token of ``directory``.

        Args:
            directory: Directory holding the marker file
            token: Token the caller already has; "" requests the current one

        Returns:
            The current token if ``token`` is stale, otherwise the next one.
            "" once the coordinator has been closed.
        """
        if self._closed:
            return ""

        path = os.path.abspath(directory)
        state = self._states.get(path) or self._observe(path)

        if token and state.value == token:
            future = state.next
        else:
            future = state.last

        # Shielded so a cancelled waiter never cancels the shared future
        return await asyncio.shield(future)

    def _observe(self, path: str) -> _DirectoryState:
        loop = asyncio.get_running_loop()
        if self._loop is None:
            self._loop = loop

        state = _DirectoryState(path, loop)
        self._states[path] = state

        os.makedirs(path, exist_ok=True)

        if self._observer is None:
            self._observer = Observer()
            self._observer.daemon = True
            self._observer.start()

        state.watch = self._observer.schedule(
            _MarkerChangeHandler(partial(self._update, state), loop),
            path,
            recursive=False,
        )

        logger.debug("Watching generation marker", directory=path)

        self._update(state)
        return state

    def _update(self, state: _DirectoryState) -> None:
        """Request a read pass; coalesces with a pass already in flight."""
        if self._closed:
            return

        if state.pending is None:
            state.pending = True
            state.task = asyncio.get_running_loop().create_task(self._read_loop(state))

        state.pending = True

    async def _read_loop(self, state: _DirectoryState) -> None:
        loop = asyncio.get_running_loop()
        try:
            while state.pending:
                state.pending = False

                token = await loop.run_in_executor(None, read_token, state.marker) or ""
                if self._closed:
                    return

                if not state.pending and state.value != token:
                    if token:
                        state.next.set_result(token)
                        state.value = token
                        state.last = state.next
                        state.next = loop.create_future()
                        logger.debug("Generation token changed", directory=state.path, token=token)
                    else:
                        state.value = ""
                        state.last = state.next
        finally:
            state.pending = None
            state.task = None

    def close(self) -> None:
        """
        Stop all watches. Irreversible: later ``watch()`` calls return "".
        """
        if self._closed:
            return

        self._closed = True

        if self._observer is not None:
            self._observer.unschedule_all()
            self._observer.stop()
            if self._observer.is_alive():
                self._observer.join()
            self._observer = None

        for state in self._states.values():
            if state.task is not None:
                state.task.cancel()
            for future in (state.last, state.next):
                if not future.done():
                    future.set_result("")

        self._states.clear()
        logger.debug("Lock coordinator closed")


class _MarkerChangeHandler(FileSystemEventHandler):
    """Watchdog handler forwarding marker changes onto the event loop."""

    def __init__(self, on_change: Callable[[], None], loop: asyncio.AbstractEventLoop):
        self.on_change = on_change
        self._loop = loop

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            return

        names = {os.path.basename(os.fsdecode(event.src_path))}
        dest_path = getattr(event, "dest_path", "")
        if dest_path:
            names.add(os.path.basename(os.fsdecode(dest_path)))

        if MARKER_FILE in names:
            try:
                self._loop.call_soon_threadsafe(self.on_change)
            except RuntimeError:
                # Loop already closed
                pass
