"""Tests for the navigation state machine."""

import pytest

from diskdive.config import Settings
from diskdive.models import PENDING_SIZE, Entry, FileRecord, ScanResult
from diskdive.navigation import (
    OVERVIEW_PATH,
    DeleteFinished,
    Key,
    KeyPressed,
    MeasureOverview,
    Mode,
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
from diskdive.overview import OverviewScheduler

SHORTCUTS = [
    Entry(name="Home", path="/s/home", size=PENDING_SIZE, is_dir=True),
    Entry(name="Apps", path="/s/apps", size=PENDING_SIZE, is_dir=True),
    Entry(name="Lib", path="/s/lib", size=PENDING_SIZE, is_dir=True),
]

RESULT = ScanResult(
    entries=(
        Entry(name="docs", path="/data/docs", size=600, is_dir=True),
        Entry(name="movies", path="/data/movies", size=300, is_dir=True),
        Entry(name="a.bin", path="/data/a.bin", size=100),
    ),
    large_files=(FileRecord(name="film.mkv", path="/data/movies/film.mkv", size=200),),
    total_size=1000,
)

DOCS = ScanResult(
    entries=(Entry(name="report.pdf", path="/data/docs/report.pdf", size=600),),
    total_size=600,
)


def make_model(path="/data"):
    settings = Settings(entry_viewport=3, large_viewport=2, use_du=False, use_spotlight=False)
    return NavigationModel(
        path, settings, OverviewScheduler(batch_size=2), shortcuts=lambda: list(SHORTCUTS)
    )


def press(model, key):
    return model.update(KeyPressed(key))


@pytest.fixture
def model():
    model = make_model()
    model.start()
    model.update(ScanFinished("/data", RESULT))
    return model


def _scan_effect(effects):
    scans = [e for e in effects if isinstance(e, RunScan)]
    assert len(scans) == 1
    return scans[0]


class TestScanning:
    def test_start_scans_path(self):
        model = make_model()
        assert model.start() == [RunScan("/data"), ScheduleTick()]
        assert model.state.mode is Mode.SCANNING

    def test_scan_finished(self):
        model = make_model()
        model.start()

        effects = model.update(ScanFinished("/data", RESULT))

        assert effects == [StoreSize("/data", 1000)]
        assert model.state.mode is Mode.BROWSING
        assert [e.name for e in model.state.entries] == ["docs", "movies", "a.bin"]
        assert model.state.total_size == 1000
        assert "/data" in model.state.snapshots

    def test_stale_result_is_ignored(self):
        model = make_model()
        model.start()

        assert model.update(ScanFinished("/elsewhere", RESULT)) == []
        assert model.state.mode is Mode.SCANNING
        assert model.state.entries == []

    def test_scan_error(self):
        model = make_model()
        model.start()

        effects = model.update(ScanFinished("/data", error="cannot read /data"))

        assert effects == []
        assert model.state.mode is Mode.BROWSING
        assert model.state.entries == []
        assert model.state.status.startswith("Scan failed")

    def test_empty_result_stores_nothing(self):
        model = make_model()
        model.start()
        assert model.update(ScanFinished("/data", ScanResult())) == []


class TestSelection:
    def test_viewport_follows_selection(self):
        model = make_model()
        model.start()
        entries = tuple(
            Entry(name=f"e{i}", path=f"/data/e{i}", size=100 - i) for i in range(5)
        )
        model.update(ScanFinished("/data", ScanResult(entries=entries, total_size=490)))

        for _ in range(6):
            press(model, Key.DOWN)
        assert (model.state.selected, model.state.offset) == (4, 2)

        for _ in range(6):
            press(model, Key.UP)
        assert (model.state.selected, model.state.offset) == (0, 0)

    def test_empty_list(self):
        model = make_model()
        model.start()
        model.update(ScanFinished("/data", ScanResult()))

        press(model, Key.DOWN)
        assert (model.state.selected, model.state.offset) == (0, 0)
        assert press(model, Key.ENTER) == []


class TestHistory:
    def test_enter_directory(self, model):
        effects = press(model, Key.ENTER)

        assert _scan_effect(effects).path == "/data/docs"
        assert model.state.path == "/data/docs"
        assert model.state.mode is Mode.SCANNING
        assert len(model.state.history) == 1
        assert model.state.entries == []

    def test_enter_file_only_sets_status(self, model):
        press(model, Key.DOWN)
        press(model, Key.DOWN)

        assert press(model, Key.ENTER) == []
        assert model.state.path == "/data"
        assert model.state.status == "File: a.bin (100 B)"

    def test_back_restores_clean_frame(self, model):
        press(model, Key.DOWN)
        press(model, Key.ENTER)
        model.update(ScanFinished("/data/movies", DOCS))

        effects = press(model, Key.BACK)

        assert effects == []
        assert model.state.path == "/data"
        assert model.state.selected == 1
        assert model.state.total_size == 1000
        assert [e.name for e in model.state.entries] == ["docs", "movies", "a.bin"]

    def test_back_rescans_dirty_frame(self, model):
        press(model, Key.ENTER)
        model.state.history[-1].dirty = True

        effects = press(model, Key.BACK)

        assert _scan_effect(effects).path == "/data"
        assert model.state.mode is Mode.SCANNING

    def test_reenter_uses_clean_snapshot(self, model):
        press(model, Key.ENTER)
        model.update(ScanFinished("/data/docs", DOCS))
        press(model, Key.BACK)

        effects = press(model, Key.ENTER)

        assert effects == []
        assert model.state.status.startswith("Cached view")
        assert model.state.total_size == 600

    def test_refresh_rescans_current_path(self, model):
        effects = press(model, Key.REFRESH)

        assert _scan_effect(effects) == RunScan("/data")
        assert model.state.status == "Refreshing..."
        assert model.state.mode is Mode.SCANNING

    def test_back_at_top_switches_to_overview(self, model):
        effects = press(model, Key.BACK)

        assert model.state.mode is Mode.OVERVIEW
        assert model.state.path == OVERVIEW_PATH
        assert [e for e in effects if isinstance(e, MeasureOverview)]


class TestDelete:
    def test_delete_flow(self, model):
        press(model, Key.DOWN)

        assert press(model, Key.DELETE) == []
        assert model.state.mode is Mode.DELETE_CONFIRM

        effects = press(model, Key.DELETE)
        assert RunDelete("/data/movies") in effects
        assert model.state.mode is Mode.DELETING

        effects = model.update(DeleteFinished("/data/movies", count=3))

        assert model.state.total_size == 700
        assert [e.name for e in model.state.entries] == ["docs", "a.bin"]
        assert model.state.large_files == []
        scan = _scan_effect(effects)
        assert scan.path == "/data"
        assert "/data/movies" in scan.invalidate
        assert "/data" in scan.invalidate
        assert model.state.mode is Mode.SCANNING
        assert model.state.status == "Deleted 3 items"

    def test_other_key_cancels(self, model):
        press(model, Key.DELETE)

        assert press(model, Key.DOWN) == []
        assert model.state.mode is Mode.BROWSING
        assert model.state.status == "Cancelled"
        assert model.state.selected == 0
        assert model.state.delete_target is None

    def test_total_never_negative(self):
        model = make_model()
        model.start()
        entries = (Entry(name="x", path="/data/x", size=500),)
        model.update(ScanFinished("/data", ScanResult(entries=entries, total_size=100)))

        press(model, Key.DELETE)
        press(model, Key.DELETE)
        model.update(DeleteFinished("/data/x", count=1))

        assert model.state.total_size == 0

    def test_marks_history_dirty(self, model):
        press(model, Key.ENTER)
        model.update(ScanFinished("/data/docs", DOCS))
        press(model, Key.DELETE)
        press(model, Key.DELETE)

        model.update(DeleteFinished("/data/docs/report.pdf", count=1))

        assert all(frame.dirty for frame in model.state.history)
        assert all(frame.dirty for frame in model.state.snapshots.values())
        model.update(ScanFinished("/data/docs", ScanResult()))
        assert _scan_effect(press(model, Key.BACK)).path == "/data"

    def test_failure_keeps_view(self, model):
        press(model, Key.DOWN)
        press(model, Key.DELETE)
        press(model, Key.DELETE)

        effects = model.update(DeleteFinished("/data/movies", error="Permission denied"))

        assert effects == []
        assert model.state.mode is Mode.BROWSING
        assert model.state.total_size == 1000
        assert model.state.status == "Failed to delete movies: Permission denied"

    def test_large_file_delete_shrinks_parent(self, model):
        press(model, Key.TOGGLE_LARGE)
        press(model, Key.DELETE)
        assert model.state.delete_target.path == "/data/movies/film.mkv"
        press(model, Key.DELETE)

        model.update(DeleteFinished("/data/movies/film.mkv", count=1))

        sizes = {e.name: e.size for e in model.state.entries}
        assert sizes["movies"] == 100
        assert model.state.total_size == 800
        assert model.state.large_files == []

    def test_keys_ignored_while_deleting(self, model):
        press(model, Key.DELETE)
        press(model, Key.DELETE)

        assert press(model, Key.DOWN) == []
        assert press(model, Key.ENTER) == []
        assert model.state.mode is Mode.DELETING
        assert press(model, Key.QUIT) == [Quit()]

    def test_no_delete_in_overview(self):
        model = make_model(None)
        model.start()

        press(model, Key.DELETE)
        assert model.state.mode is Mode.OVERVIEW


class TestLargeFilesAndExternal:
    def test_toggle_resets_selection(self, model):
        model.state.large_selected = 5
        press(model, Key.TOGGLE_LARGE)

        assert model.state.mode is Mode.BROWSING_LARGE_FILES
        assert model.state.large_selected == 0
        assert [e.name for e in model.state.entries] == ["docs", "movies", "a.bin"]

    def test_cancel_closes_large_view_then_quits(self, model):
        press(model, Key.TOGGLE_LARGE)

        assert press(model, Key.CANCEL) == []
        assert model.state.mode is Mode.BROWSING
        assert press(model, Key.CANCEL) == [Quit()]

    def test_quit(self, model):
        assert press(model, Key.QUIT) == [Quit()]

    def test_enter_disabled_in_large_view(self, model):
        press(model, Key.TOGGLE_LARGE)
        assert press(model, Key.ENTER) == []
        assert model.state.path == "/data"

    def test_open_and_reveal(self, model):
        assert press(model, Key.OPEN) == [OpenExternal("/data/docs", reveal=False)]
        press(model, Key.TOGGLE_LARGE)
        assert press(model, Key.REVEAL) == [OpenExternal("/data/movies/film.mkv", reveal=True)]

    def test_other_key_is_ignored(self, model):
        assert press(model, Key.OTHER) == []


class TestTick:
    def test_tick_chain_while_scanning(self):
        model = make_model()
        model.start()

        assert model.update(Tick()) == [ScheduleTick()]
        assert model.state.spinner == 1

    def test_tick_chain_stops_when_idle(self, model):
        assert model.update(Tick()) == []
        assert model.state.ticking is False
        assert ScheduleTick() in press(model, Key.REFRESH)

    def test_tick_reports_delete_progress(self, model):
        press(model, Key.DELETE)
        press(model, Key.DELETE)
        model.state.delete_count.set(1234)

        assert model.update(Tick()) == [ScheduleTick()]
        assert model.state.status == "Deleting... 1,234 items removed"


class TestOverview:
    def test_start_schedules_first_batch(self):
        model = make_model(None)
        effects = model.start()

        assert effects == [MeasureOverview("/s/home"), MeasureOverview("/s/apps"), ScheduleTick()]
        assert model.state.mode is Mode.OVERVIEW
        assert model.state.total_size == 0

    def test_measurements_fill_in(self):
        model = make_model(None)
        model.start()

        assert model.update(OverviewMeasured("/s/home", 100)) == [MeasureOverview("/s/lib")]
        model.update(OverviewMeasured("/s/apps", 50))
        assert model.update(OverviewMeasured("/s/lib", 25)) == []

        assert [e.size for e in model.state.entries] == [100, 50, 25]
        assert model.state.total_size == 175
        assert model.state.status == "Ready"

    def test_failed_measurement_is_zero(self):
        model = make_model(None)
        model.start()

        model.update(OverviewMeasured("/s/home", error="denied"))

        assert model.state.entries[0].size == 0
        assert model.state.status.startswith("Unable to measure")

    def test_enter_and_back_without_history(self):
        model = make_model(None)
        model.start()
        for path, size in [("/s/home", 100), ("/s/apps", 50), ("/s/lib", 25)]:
            model.update(OverviewMeasured(path, size))

        effects = press(model, Key.ENTER)
        assert _scan_effect(effects).path == "/s/home"
        assert model.state.history == []

        model.update(ScanFinished("/s/home", ScanResult(total_size=555)))
        assert press(model, Key.BACK) == []
        assert model.state.mode is Mode.OVERVIEW
        assert model.state.entries[0].size == 555

    def test_late_measurement_outside_overview(self):
        model = make_model(None)
        model.start()
        press(model, Key.ENTER)

        assert model.update(OverviewMeasured("/s/apps", 70)) == []
        assert model.scheduler.sizes["/s/apps"] == 70

    def test_scan_result_ignored_in_overview(self):
        model = make_model(None)
        model.start()
        assert model.update(ScanFinished(OVERVIEW_PATH, RESULT)) == []
        assert len(model.state.entries) == 3

    def test_refresh_remeasures(self):
        model = make_model(None)
        model.start()
        for path, size in [("/s/home", 100), ("/s/apps", 50), ("/s/lib", 25)]:
            model.update(OverviewMeasured(path, size))

        effects = press(model, Key.REFRESH)

        assert MeasureOverview("/s/home", invalidate=True) in effects
        assert all(e.is_pending for e in model.state.entries)
        assert model.state.total_size == 0
