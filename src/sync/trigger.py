"""Decide when a sync pass runs.

A watchdog observer thread turns filesystem events into notify() calls on a
RebuildCoordinator. The coordinator owns a queue and a single worker thread.
The worker holds the debounce deadline and runs every pass itself, so two
passes can never overlap. Events that land while a pass is running wait in
the queue and open a new debounce window once it finishes.
"""
import logging
import os
import queue
import threading
import time

from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable, Optional

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from sync.tree import sync_tree
from utils.config import SyncConfig
from utils.dataModels import DEFAULT_DEBOUNCE_MS
from utils.errors import ConfigurationError

logger = logging.getLogger(__name__)

_CHANGE = "change"
_RUN_NOW = "run-now"
_STOP = "stop"


class RebuildCoordinator:
    def __init__(self, rebuild: Callable[[], object], debounce_ms: int = DEFAULT_DEBOUNCE_MS):
        self.rebuild = rebuild
        self.debounce = debounce_ms / 1000.0
        self.passes = 0
        self._events: "queue.Queue[tuple]" = queue.Queue()
        self._thread: Optional[threading.Thread] = None
        self._running = threading.Event()

    # Producer side (any thread)
    def notify(self, path: Optional[str] = None) -> None:
        self._events.put((_CHANGE, path))

    def request_now(self) -> None:
        self._events.put((_RUN_NOW, None))

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            logger.warning("Rebuild coordinator already running")
            return
        self._thread = threading.Thread(target=self._loop, name="rebuild-coordinator", daemon=True)
        self._thread.start()

    def stop(self, timeout: Optional[float] = None) -> None:
        if self._thread is None:
            return
        self._events.put((_STOP, None))
        self._thread.join(timeout)
        self._thread = None

    @property
    def busy(self) -> bool:
        return self._running.is_set()

    # Consumer side (coordinator thread only)
    def _run_pass(self) -> None:
        self._running.set()
        try:
            self.rebuild()
        except Exception as e:
            logger.error("Rebuild pass failed: %s", e, exc_info=True)
        finally:
            self.passes += 1
            self._running.clear()

    def _loop(self) -> None:
        deadline: Optional[float] = None
        while True:
            timeout = None if deadline is None else max(0.0, deadline - time.monotonic())
            try:
                kind, path = self._events.get(timeout=timeout)
            except queue.Empty:
                deadline = None
                self._run_pass()
                continue

            if kind == _STOP:
                return
            if kind == _RUN_NOW:
                deadline = None
                self._run_pass()
                continue
            logger.debug("Change at %s; rebuild in %dms", path, self.debounce * 1000)
            deadline = time.monotonic() + self.debounce


class ChangeHandler(FileSystemEventHandler):
    """Forwards events to the coordinator, minus our own output and noise dirs."""

    def __init__(self, coordinator: RebuildCoordinator, ignore_prefixes: Iterable[str],
                 ignore_names: Iterable[str] = ()):
        super().__init__()
        self.coordinator = coordinator
        self.ignore_prefixes = [os.path.abspath(p) + os.sep for p in ignore_prefixes]
        self.ignore_names = set(ignore_names)

    def should_ignore(self, path) -> bool:
        if isinstance(path, bytes):
            path = os.fsdecode(path)
        p = os.path.abspath(path)
        if any((p + os.sep).startswith(pref) for pref in self.ignore_prefixes):
            return True
        return any(part in self.ignore_names for part in Path(p).parts)

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.event_type in ("opened", "closed_no_write"):
            return
        # A child create/delete already reports the change; the parent dir
        # "modified" event also fires when our own pass creates the mirror
        if event.is_directory and event.event_type == "modified":
            return
        paths = [event.src_path]
        dest = getattr(event, "dest_path", "")
        if dest:
            paths.append(dest)
        relevant = [p for p in paths if not self.should_ignore(p)]
        if relevant:
            self.coordinator.notify(os.fsdecode(relevant[0]))


def build_pass(config: SyncConfig, passphrase: str) -> Callable[[], object]:
    def _pass():
        return sync_tree(
            config.source_dir,
            config.mirror_dir,
            passphrase,
            config.iterations,
            prune=config.prune,
            max_workers=config.max_workers,
        )
    return _pass


@dataclass
class Watch:
    coordinator: RebuildCoordinator
    observer: Observer

    def stop(self) -> None:
        self.observer.stop()
        self.observer.join()
        self.coordinator.stop()
        logger.info("Stopped watching")


def check_passphrase(config: SyncConfig, passphrase: str) -> bool:
    """False (after a warning) when no passphrase is set, unless the config demands one."""
    if passphrase:
        return True
    msg = f"{config.passphrase_env} not set; skipping encryption."
    if config.fail_on_missing_passphrase:
        raise ConfigurationError(msg)
    logger.warning(msg)
    return False


def start_watch(config: SyncConfig, passphrase: str) -> Optional[Watch]:
    if not check_passphrase(config, passphrase):
        return None

    coordinator = RebuildCoordinator(build_pass(config, passphrase), config.debounce_ms)
    coordinator.start()
    coordinator.request_now()

    watch_root = config.watch_root
    watch_root.mkdir(parents=True, exist_ok=True)
    handler = ChangeHandler(coordinator, config.ignore_prefixes(), config.ignore_dirs)
    observer = Observer()
    try:
        observer.schedule(handler, str(watch_root), recursive=True)
        observer.start()
    except Exception:
        coordinator.stop()
        raise
    logger.info("Watching %s (debounce=%dms)", watch_root, config.debounce_ms)
    return Watch(coordinator=coordinator, observer=observer)
