"""
Watch/Reload Coordinator -- hot reload of converted assets.

A watchdog observer thread forwards every filesystem notification to the
event loop with ``call_soon_threadsafe``; nothing else runs on that
thread. One consumer task drains the resulting queue:

1. Debounce: collect paths until no notification arrived for
   ``debounce_ms``.
2. Classify: each path is offered to every converter's ``owns()``; paths
   nobody owns are ignored.
3. Reload: each affected kind is reloaded through its converter.

Reloads are serialized per kind. A notification for a kind whose reload is
in flight sets a pending flag instead of starting a second reload; when
the running reload finishes it runs exactly once more. A failing reload is
logged and the state keeps its previous value for that kind.
"""

import asyncio
from collections.abc import Iterable, Sequence
from pathlib import Path
from typing import Any

import structlog
from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer
from watchdog.observers.api import BaseObserver

from ..assets.base import AssetConverter, WatchTarget
from ..assets.discovery import AssetKind
from .state import PluginState

logger = structlog.get_logger()

# Notifications that cannot change file contents
_IGNORED_EVENT_TYPES = frozenset({"opened", "closed_no_write"})


class _ChangeForwarder(FileSystemEventHandler):
    """Runs on the observer thread; hands paths to the loop and returns."""

    def __init__(self, handle: "WatchHandle", loop: asyncio.AbstractEventLoop) -> None:
        self._handle = handle
        self._loop = loop

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.event_type in _IGNORED_EVENT_TYPES:
            return
        paths = [event.src_path]
        dest = getattr(event, "dest_path", "")
        if dest:
            paths.append(dest)
        for raw in paths:
            path = Path(raw.decode() if isinstance(raw, bytes) else raw)
            try:
                self._loop.call_soon_threadsafe(self._handle.notify, path)
            except RuntimeError:
                # Loop already closed; nothing left to reload
                return


async def run_converter(converter: AssetConverter, state: PluginState, log: Any = None) -> int | None:
    """Reload one kind, logging instead of raising.

    Returns:
        Number of converted assets, or None when the reload failed and the
        state kept its previous value.
    """
    log = log or logger
    try:
        count = await converter.reload(state)
    except Exception as e:
        log.error("reload.failed", kind=converter.kind.value, error=str(e), error_type=type(e).__name__)
        return None
    log.info("reload.completed", kind=converter.kind.value, count=count)
    return count


def merge_watch_targets(targets: Iterable[WatchTarget]) -> list[WatchTarget]:
    """One target per directory; recursive wins over non-recursive."""
    merged: dict[Path, bool] = {}
    for target in targets:
        key = target.path.resolve()
        merged[key] = merged.get(key, False) or target.recursive
    return [WatchTarget(path=path, recursive=recursive) for path, recursive in merged.items()]


class WatchHandle:
    """Running watcher bound to one plugin state.

    Created with start_watching(); stopped with close().
    """

    def __init__(
        self,
        state: PluginState,
        converters: Sequence[AssetConverter],
        debounce_ms: int = 500,
    ) -> None:
        self.state = state
        self.converters = {converter.kind: converter for converter in converters}
        self.debounce = debounce_ms / 1000.0
        self.log = logger.bind(component="watcher")

        self._queue: asyncio.Queue[Path | None] = asyncio.Queue()
        self._running: dict[AssetKind, asyncio.Task[None]] = {}
        self._pending: set[AssetKind] = set()
        self._observer: BaseObserver | None = None
        self._consumer: asyncio.Task[None] | None = None
        self._closed = False
        self.reload_counts: dict[AssetKind, int] = {kind: 0 for kind in self.converters}

    @property
    def targets(self) -> list[WatchTarget]:
        return merge_watch_targets(
            target
            for converter in self.converters.values()
            for target in converter.watch_targets(self.state.roots)
        )

    def start(self) -> None:
        """Start the observer thread and the consumer task."""
        loop = asyncio.get_running_loop()
        targets = self.targets

        observer = Observer()
        handler = _ChangeForwarder(self, loop)
        for target in targets:
            observer.schedule(handler, str(target.path), recursive=target.recursive)
        observer.daemon = True
        observer.start()
        self._observer = observer

        self._consumer = loop.create_task(self._consume())
        self.log.info(
            "watcher.started",
            kinds=[kind.value for kind in self.converters],
            paths=[str(target.path) for target in targets],
        )

    def notify(self, path: Path) -> None:
        """Queue one changed path. Must be called on the loop's thread."""
        if not self._closed:
            self._queue.put_nowait(path)

    def classify(self, paths: Iterable[Path]) -> list[AssetKind]:
        """Asset kinds affected by a batch of paths, in converter order."""
        batch = list(paths)
        return [
            kind
            for kind, converter in self.converters.items()
            if any(converter.owns(path, self.state.roots) for path in batch)
        ]

    async def _consume(self) -> None:
        closing = False
        while not closing:
            first = await self._queue.get()
            if first is None:
                break
            batch = {first}

            while True:
                try:
                    path = await asyncio.wait_for(self._queue.get(), timeout=self.debounce)
                except asyncio.TimeoutError:
                    break
                if path is None:
                    closing = True
                    break
                batch.add(path)

            kinds = self.classify(batch)
            self.log.debug("watcher.changes", paths=len(batch), kinds=[k.value for k in kinds])
            for kind in kinds:
                self.schedule_reload(kind)

    def schedule_reload(self, kind: AssetKind) -> None:
        """Start a reload of ``kind`` or fold the request into the running one."""
        if kind in self._running:
            self._pending.add(kind)
            self.log.debug("reload.coalesced", kind=kind.value)
            return
        self._running[kind] = asyncio.get_running_loop().create_task(self._run_reloads(kind))

    async def _run_reloads(self, kind: AssetKind) -> None:
        try:
            while True:
                self._pending.discard(kind)
                await self.reload(kind)
                if kind not in self._pending:
                    break
        finally:
            del self._running[kind]

    async def reload(self, kind: AssetKind) -> None:
        """Run one reload of ``kind``. Failures are logged, never raised."""
        self.reload_counts[kind] += 1
        await run_converter(self.converters[kind], self.state, self.log)

    async def wait_idle(self) -> None:
        """Wait until no reload is running or pending."""
        while self._running:
            await asyncio.gather(*list(self._running.values()))

    async def close(self) -> None:
        """Stop observing. A reload already running is awaited, not cancelled."""
        if self._closed:
            return
        self._closed = True

        if self._observer is not None:
            self._observer.stop()
            await asyncio.to_thread(self._observer.join)
            self._observer = None

        if self._consumer is not None:
            self._queue.put_nowait(None)
            await self._consumer
            self._consumer = None

        await self.wait_idle()
        self.log.info("watcher.stopped")


def start_watching(
    state: PluginState,
    converters: Sequence[AssetConverter],
    debounce_ms: int | None = None,
) -> WatchHandle:
    """Start a watcher for ``converters`` and record it on the state."""
    handle = WatchHandle(
        state,
        converters,
        debounce_ms=state.config.debounce_ms if debounce_ms is None else debounce_ms,
    )
    handle.start()
    state.watcher = handle
    return handle
