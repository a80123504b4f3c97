"""Screens for the diskdive TUI."""

import logging
import subprocess
from functools import partial

from textual import events
from textual.app import ComposeResult
from textual.screen import Screen
from textual.widgets import Header

from diskdive.cache import ScanCache
from diskdive.config import Settings
from diskdive.deleter import delete_path
from diskdive.errors import DiskDiveError
from diskdive.external import open_external
from diskdive.navigation import (
    DeleteFinished,
    Effect,
    Key,
    KeyPressed,
    MeasureOverview,
    Message,
    NavigationModel,
    OpenExternal,
    OverviewMeasured,
    Quit,
    RunDelete,
    RunScan,
    ScanFinished,
    ScheduleTick,
    StoreSize,
    Tick,
)
from diskdive.sizing import SizeResolver
from diskdive.store import CacheStore
from diskdive.tui.widgets import BrowserView

logger = logging.getLogger(__name__)

KEYMAP = {
    "up": Key.UP,
    "k": Key.UP,
    "down": Key.DOWN,
    "j": Key.DOWN,
    "enter": Key.ENTER,
    "right": Key.ENTER,
    "left": Key.BACK,
    "b": Key.BACK,
    "r": Key.REFRESH,
    "l": Key.TOGGLE_LARGE,
    "o": Key.OPEN,
    "f": Key.REVEAL,
    "F": Key.REVEAL,
    "delete": Key.DELETE,
    "backspace": Key.DELETE,
    "escape": Key.CANCEL,
    "q": Key.QUIT,
    "ctrl+c": Key.QUIT,
}


def key_for(name: str) -> Key:
    return KEYMAP.get(name, Key.OTHER)


class BrowserScreen(Screen):
    """
    Main browsing screen.

    Feeds key presses and background results into the navigation model and
    carries out the effects it returns. Blocking work always runs in thread
    workers and reports back through ``call_from_thread``.
    """

    def __init__(
        self,
        model: NavigationModel,
        cache: ScanCache,
        store: CacheStore,
        resolver: SizeResolver,
        settings: Settings,
    ):
        super().__init__()
        self.model = model
        self.cache = cache
        self.store = store
        self.resolver = resolver
        self.settings = settings

    def compose(self) -> ComposeResult:
        yield Header()
        yield BrowserView(self.model, id="browser")

    def on_mount(self) -> None:
        self._run_effects(self.model.start())
        self._refresh_view()

    def on_key(self, event: events.Key) -> None:
        event.stop()
        event.prevent_default()
        self.update_model(KeyPressed(key_for(event.key)))

    def update_model(self, message: Message) -> None:
        """Apply one message to the model on the UI thread."""
        effects = self.model.update(message)
        self._refresh_view()
        self._run_effects(effects)

    def _refresh_view(self) -> None:
        self.query_one(BrowserView).refresh()

    def _post_result(self, message: Message) -> None:
        """Hand a result from a worker thread back to the UI thread."""
        self.app.call_from_thread(self.update_model, message)

    # -------------------------------------------------------------------------
    # Effects
    # -------------------------------------------------------------------------

    def _run_effects(self, effects: list[Effect]) -> None:
        for effect in effects:
            if isinstance(effect, RunScan):
                self.run_worker(partial(self._scan_path, effect), thread=True, group="scan")
            elif isinstance(effect, MeasureOverview):
                self.run_worker(partial(self._measure_shortcut, effect), thread=True, group="overview")
            elif isinstance(effect, RunDelete):
                self.run_worker(partial(self._delete_target, effect), thread=True, group="delete")
            elif isinstance(effect, StoreSize):
                self.run_worker(partial(self._store_size, effect), thread=True, group="store")
            elif isinstance(effect, OpenExternal):
                self.run_worker(partial(self._open_external, effect), thread=True, group="open")
            elif isinstance(effect, ScheduleTick):
                self.set_timer(self.settings.tick_interval, partial(self.update_model, Tick()))
            elif isinstance(effect, Quit):
                self.app.exit()

    def _scan_path(self, effect: RunScan) -> None:
        if effect.invalidate:
            self.cache.invalidate(effect.invalidate)
        try:
            result = self.cache.get(effect.path, self.model.state.progress)
        except (DiskDiveError, OSError) as e:
            logger.warning("Scan of %s failed: %s", effect.path, e)
            self._post_result(ScanFinished(effect.path, error=str(e)))
            return
        self._post_result(ScanFinished(effect.path, result=result))

    def _measure_shortcut(self, effect: MeasureOverview) -> None:
        if effect.invalidate:
            self.cache.invalidate([effect.path])
        try:
            size = self.resolver.measure(effect.path)
        except DiskDiveError as e:
            logger.info("Could not measure %s: %s", effect.path, e)
            self._post_result(OverviewMeasured(effect.path, error=str(e)))
            return
        self._post_result(OverviewMeasured(effect.path, size=size))

    def _delete_target(self, effect: RunDelete) -> None:
        result = delete_path(effect.path, self.model.state.delete_count)
        if result.success:
            logger.info("Deleted %s (%d items)", effect.path, result.items_deleted)
        else:
            logger.warning("Delete of %s failed: %s", effect.path, result.error)
        self._post_result(DeleteFinished(effect.path, count=result.items_deleted, error=result.error))

    def _store_size(self, effect: StoreSize) -> None:
        try:
            self.store.save_size(effect.path, effect.size)
        except OSError as e:
            logger.debug("Could not store size for %s: %s", effect.path, e)

    def _open_external(self, effect: OpenExternal) -> None:
        try:
            open_external(effect.path, reveal=effect.reveal, timeout=self.settings.open_timeout)
        except (OSError, subprocess.TimeoutExpired) as e:
            logger.debug("Could not open %s: %s", effect.path, e)
