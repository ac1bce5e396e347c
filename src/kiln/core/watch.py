"""
Watching a flow's sources and reflowing when they change.

The WatchController subscribes to change notifications for a flow's
configured paths and runs the whole flow again whenever one of them changes.
Every path starts out JUST_SUBSCRIBED: the watch backend announces each file
that already exists when the subscription starts, and that first
notification only moves the path to ARMED. Every notification after that
triggers a full reflow; the flow always recollects all of its paths, not just
the one that changed.

Reflows of one flow never overlap. Each change event still gets its own
reflow, but they queue behind the flow's run lock.

The default backend uses watchdog. Its observer thread hands events to the
event loop with `call_soon_threadsafe`, so the controller itself only ever
runs on the loop.
"""
import asyncio
import os
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Callable, Dict, Iterable, List, Optional, Set

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from kiln.messages import get_logger

if TYPE_CHECKING:
    from .flow.flow import Flow

WatchCallback = Callable[[str, str], None]

# watchdog event types -> change kinds reported to the controller
EVENT_KINDS = {
    "created": "add",
    "modified": "change",
    "deleted": "unlink",
}
IGNORED_EVENTS = ("opened", "closed", "closed_no_write")
REMOVAL_KINDS = ("unlink", "unlinkDir")


class WatchState(Enum):
    UNARMED = "unarmed"
    ARMED = "armed"
    REFLOWING = "reflowing"


class PathState(Enum):
    JUST_SUBSCRIBED = "just_subscribed"
    ARMED = "armed"


class _ChangeHandler(FileSystemEventHandler):
    """Translate watchdog events into (kind, path) notifications."""

    def __init__(self, callback: WatchCallback, only: Optional[Set[str]] = None):
        super().__init__()
        self.callback = callback
        self.only = only

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.event_type in IGNORED_EVENTS:
            return
        # a child changing also modifies its directory
        if event.is_directory and event.event_type == "modified":
            return

        src_path = os.fsdecode(event.src_path)
        if event.event_type == "moved":
            dest_path = os.fsdecode(event.dest_path)
            self._emit("unlinkDir" if event.is_directory else "unlink", src_path)
            self._emit("addDir" if event.is_directory else "add", dest_path)
            return

        kind = EVENT_KINDS.get(event.event_type, event.event_type)
        if event.is_directory and kind in ("add", "unlink"):
            kind = f"{kind}Dir"
        self._emit(kind, src_path)

    def _emit(self, kind: str, path: str) -> None:
        if self.only is not None and path not in self.only:
            return
        self.callback(kind, path)


class WatchdogSubscription:
    """A running watchdog observer for one flow."""

    def __init__(self, observer: Observer):
        self.observer = observer

    def stop(self) -> None:
        self.observer.stop()
        if self.observer.is_alive():
            self.observer.join(timeout=5)


class WatchdogBackend:
    """
    Watch backend built on watchdog.

    Directories are watched recursively. Files are watched through their
    parent directory, filtered down to the file itself. With `emit_initial`
    (the default) an `add`/`addDir` notification is sent for everything that
    already exists under the watched paths.
    """

    def __init__(self, emit_initial: bool = True):
        self.emit_initial = emit_initial

    def subscribe(
        self, paths: Iterable[Path], callback: WatchCallback
    ) -> WatchdogSubscription:
        observer = Observer()
        files_by_parent: Dict[str, Set[str]] = {}
        paths = [Path(p) for p in paths]

        for path in paths:
            if path.is_dir():
                observer.schedule(_ChangeHandler(callback), str(path), recursive=True)
            else:
                files_by_parent.setdefault(str(path.parent), set()).add(str(path))

        for parent, files in files_by_parent.items():
            observer.schedule(
                _ChangeHandler(callback, only=files), parent, recursive=False
            )

        observer.start()

        if self.emit_initial:
            for path in paths:
                self._emit_existing(path, callback)

        return WatchdogSubscription(observer)

    def _emit_existing(self, path: Path, callback: WatchCallback) -> None:
        if path.is_file():
            callback("add", str(path))
            return
        callback("addDir", str(path))
        for dirpath, dirnames, filenames in os.walk(path):
            dirnames.sort()
            for dirname in dirnames:
                callback("addDir", os.path.join(dirpath, dirname))
            for filename in sorted(filenames):
                callback("add", os.path.join(dirpath, filename))


class WatchController:
    """
    Reflows a flow when its watched sources change.

    States: UNARMED (no subscription) -> ARMED (waiting for changes) ->
    REFLOWING (one or more reflows pending) -> ARMED.
    """

    def __init__(self, flow: "Flow", backend=None):
        self.flow = flow
        self.backend = backend or WatchdogBackend()
        self.state = WatchState.UNARMED
        self.paths: Dict[str, PathState] = {}
        self.subscription = None
        self.reflows = 0
        self.failures = 0
        self._pending = 0
        self._tasks: Set[asyncio.Task] = set()
        self.logger = get_logger(f"kiln.flow.{flow.name}.watch")

    def arm(self) -> List[Path]:
        """
        Subscribe to changes for the flow's configured paths.

        Must be called from a running event loop.

        Raises:
            InvalidPathError: If a path is neither a file nor a directory
        """
        if self.state is not WatchState.UNARMED:
            return [Path(p) for p in self.paths]

        watch_paths = self.flow.home.watch_paths()
        loop = asyncio.get_running_loop()

        def threadsafe_notify(kind: str, path: str) -> None:
            if not loop.is_closed():
                loop.call_soon_threadsafe(self.notify, kind, path)

        self.paths = {str(p): PathState.JUST_SUBSCRIBED for p in watch_paths}
        self.subscription = self.backend.subscribe(watch_paths, threadsafe_notify)
        self.state = WatchState.ARMED
        self.logger.info(f"Watching {len(watch_paths)} paths")
        return watch_paths

    def notify(self, kind: str, path: str) -> Optional[asyncio.Task]:
        """
        Handle one change notification.

        Returns:
            The scheduled reflow task, or None if the event was swallowed
        """
        if self.state is WatchState.UNARMED:
            return None

        key = str(path)
        state = self.paths.get(key, PathState.JUST_SUBSCRIBED)
        if kind in REMOVAL_KINDS:
            self._forget(key)
        elif state is PathState.JUST_SUBSCRIBED:
            self.paths[key] = PathState.ARMED

        if state is PathState.JUST_SUBSCRIBED:
            self.logger.debug(f"Ignoring initial {kind} for {key}")
            return None

        self.logger.info(f"{kind} {self.logger.path(key)}, reflowing")
        self._pending += 1
        self.state = WatchState.REFLOWING
        task = asyncio.get_running_loop().create_task(
            self._reflow(), name=f"reflow_{self.flow.name}"
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def _forget(self, key: str) -> None:
        """Drop a removed path, and everything below it, from the path states."""
        prefix = key.rstrip(os.sep) + os.sep
        for known in [p for p in self.paths if p == key or p.startswith(prefix)]:
            del self.paths[known]

    async def _reflow(self) -> None:
        try:
            await self.flow.run()
            self.reflows += 1
        except Exception as e:
            # the next change gets a fresh attempt
            self.failures += 1
            self.logger.error(f"Reflow failed: {e}")
        finally:
            self._pending -= 1
            if self._pending == 0 and self.state is WatchState.REFLOWING:
                self.state = WatchState.ARMED

    async def drain(self) -> None:
        """Wait for every scheduled reflow to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def stop(self) -> None:
        """Unsubscribe and return to UNARMED."""
        if self.subscription is not None:
            self.subscription.stop()
            self.subscription = None
        self.paths = {}
        self.state = WatchState.UNARMED
        self.logger.debug("Stopped watching")
