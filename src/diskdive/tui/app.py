"""Main TUI application for diskdive."""

from textual.app import App

from diskdive.cache import ScanCache
from diskdive.config import Settings
from diskdive.navigation import NavigationModel
from diskdive.overview import OverviewScheduler
from diskdive.scanner import ConcurrentScanner
from diskdive.sizing import SizeResolver
from diskdive.store import CacheStore
from diskdive.tui.screens import BrowserScreen


class DiskDiveApp(App):
    """Interactive disk usage browser."""

    TITLE = "diskdive"
    SUB_TITLE = "Interactive Disk Usage"

    def __init__(self, path: str | None = None, settings: Settings | None = None):
        super().__init__()
        self.settings = settings or Settings()
        self.store = CacheStore(self.settings.cache_dir, size_ttl=self.settings.overview_size_ttl)
        self.cache = ScanCache(ConcurrentScanner(self.settings), self.store)
        self.resolver = SizeResolver(self.store, self.settings)
        scheduler = OverviewScheduler(
            batch_size=self.settings.overview_batch,
            lookup=self.store.load_size,
        )
        self.model = NavigationModel(path, self.settings, scheduler)

    def on_mount(self) -> None:
        """Called when the app is mounted."""
        self.push_screen(
            BrowserScreen(self.model, self.cache, self.store, self.resolver, self.settings)
        )

    def on_unmount(self) -> None:
        # Let queued cache writes land before the process exits
        self.cache.flush()


def run_tui(path: str | None = None, settings: Settings | None = None) -> None:
    """Run the interactive TUI.

    Args:
        path: Directory to open, or None to start in the overview
        settings: Runtime settings, defaults when omitted
    """
    app = DiskDiveApp(path=path, settings=settings)
    app.run()
