import zipfile
from io import BytesIO

import pytest

from aero_browser.config import Settings
from aero_browser.snapshot import sample_records
from aero_browser.store import LoadStatus, RecordStore, StoreState
from aero_common.errors import SourceFetchError

from conftest import HEADER


def _fetcher(payloads, calls=None):
    def fetch(source):
        if calls is not None:
            calls.append(source)
        if source not in payloads:
            raise SourceFetchError(f"Fetch failed: {source} (404)")
        return payloads[source]

    return fetch


def test_initial_state_is_idle():
    store = RecordStore(["companies2.xlsx"], fetcher=_fetcher({}))
    assert store.status is LoadStatus.IDLE
    assert store.records == ()
    assert store.error is None
    assert store.last_sheet_name is None


def test_load_transitions_through_loading_to_ready(xlsx_bytes, directory_rows):
    store = RecordStore(
        ["companies2.xlsx", "companies.xlsx"],
        fetcher=_fetcher({"companies.xlsx": xlsx_bytes({"Directory": directory_rows})}),
    )
    seen = []
    store.subscribe(lambda state: seen.append(state.status))

    assert store.load() is True

    assert seen == [LoadStatus.LOADING, LoadStatus.READY]
    assert store.status is LoadStatus.READY
    assert store.last_sheet_name == "Directory"
    assert store.state.source == "companies.xlsx"
    assert [r.name for r in store.records] == ["Acme Space", "Orbit Works", "Skyline Aero"]


def test_load_is_ignored_while_loading(xlsx_bytes, directory_rows):
    payload = xlsx_bytes({"Directory": directory_rows})
    calls = []
    nested_results = []
    store = None

    def fetch(source):
        calls.append(source)
        nested_results.append(store.load())
        nested_results.append(store.reload())
        assert store.status is LoadStatus.LOADING
        return payload

    store = RecordStore(["companies2.xlsx"], fetcher=fetch)
    ready_updates = []
    store.subscribe(lambda state: ready_updates.append(state) if state.status is LoadStatus.READY else None)

    assert store.load() is True

    assert nested_results == [False, False]
    assert calls == ["companies2.xlsx"]
    assert len(ready_updates) == 1
    assert len(store.records) == 3


def test_listener_may_call_back_into_store(xlsx_bytes, directory_rows):
    store = RecordStore(["a.xlsx"], fetcher=_fetcher({"a.xlsx": xlsx_bytes({"Directory": directory_rows})}))
    answers = []

    def listener(state):
        if state.status is LoadStatus.LOADING:
            answers.append(store.load())

    store.subscribe(listener)
    store.load()
    assert answers == [False]
    assert store.status is LoadStatus.READY


def test_reload_replaces_records_entirely(xlsx_bytes, directory_rows):
    payloads = {"companies.xlsx": xlsx_bytes({"Directory": directory_rows})}
    store = RecordStore(["companies.xlsx"], fetcher=_fetcher(payloads))
    store.load()
    assert len(store.records) == 3

    payloads["companies.xlsx"] = xlsx_bytes({"Directory": [directory_rows[0], directory_rows[3]]})
    store.reload()

    assert store.status is LoadStatus.READY
    assert [r.id for r in store.records] == ["skyline-aero"]


def test_failure_clears_records_and_sets_error(xlsx_bytes, directory_rows):
    payloads = {"companies.xlsx": xlsx_bytes({"Directory": directory_rows})}
    store = RecordStore(["companies.xlsx"], fetcher=_fetcher(payloads))
    store.load()
    assert store.records

    payloads.clear()
    assert store.reload() is True

    assert store.status is LoadStatus.ERROR
    assert store.records == ()
    assert store.last_sheet_name is None
    assert "No usable data source" in store.error
    assert "companies.xlsx" in store.error


def test_unexpected_errors_never_escape_load():
    def broken(source):
        raise RuntimeError("disk on fire")

    store = RecordStore(["companies.xlsx"], fetcher=broken)
    assert store.load() is True
    assert store.status is LoadStatus.ERROR
    assert "No usable data source" in store.error
    assert "disk on fire" in store.error

    broken_store = RecordStore(["companies.xlsx"], fetcher=lambda source: None)
    broken_store.load()
    assert broken_store.status is LoadStatus.ERROR


def test_failing_listener_neither_escapes_nor_wedges_the_store(xlsx_bytes, directory_rows):
    store = RecordStore(["a.xlsx"], fetcher=_fetcher({"a.xlsx": xlsx_bytes({"Directory": directory_rows})}))
    seen = []

    def listener(state):
        seen.append(state.status)
        if len(seen) == 1:
            raise RuntimeError("ui glitch")

    store.subscribe(listener)

    assert store.load() is True
    assert store.status is LoadStatus.READY
    assert store.reload() is True
    assert seen == [LoadStatus.LOADING, LoadStatus.READY, LoadStatus.LOADING, LoadStatus.READY]


def test_broken_candidate_falls_through_to_next_source(xlsx_bytes, directory_rows):
    buffer = BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        archive.writestr("[Content_Types].xml", "<Types><unclosed>")
    payloads = {"bad.xlsx": buffer.getvalue(), "good.xlsx": xlsx_bytes({"Directory": directory_rows})}
    store = RecordStore(["bad.xlsx", "good.xlsx"], fetcher=_fetcher(payloads))

    store.load()

    assert store.status is LoadStatus.READY
    assert store.state.source == "good.xlsx"


def test_store_uses_used_range_sheet(xlsx_bytes, directory_rows):
    payload = xlsx_bytes({"Notes": [["Read me", "first"], ["nothing", "here"]], "Data": directory_rows})
    store = RecordStore(["a.xlsx"], fetcher=_fetcher({"a.xlsx": payload}))

    store.load()

    assert store.status is LoadStatus.ERROR
    assert "Notes" in store.error


def test_load_upload_tries_every_sheet(xlsx_bytes, directory_rows):
    payload = xlsx_bytes({"Notes": [["Read me", "first"], ["nothing", "here"]], "Data": directory_rows})
    store = RecordStore([], fetcher=_fetcher({}))

    assert store.load_upload(payload, "upload.xlsx") is True

    assert store.status is LoadStatus.READY
    assert store.last_sheet_name == "Data"
    assert store.state.source == "upload.xlsx"


def test_load_upload_bad_bytes_sets_error():
    store = RecordStore([])
    store.load_upload(b"zip? no", "upload.xlsx")
    assert store.status is LoadStatus.ERROR
    assert "upload.xlsx" in store.error


def test_replace_records_and_unsubscribe():
    store = RecordStore([])
    seen = []
    unsubscribe = store.subscribe(seen.append)

    store.replace_records(sample_records(), sheet_name="sample")
    assert [r.name for r in store.records] == ["Munich Aerospace Lab", "SkyTech GmbH"]
    assert store.last_sheet_name == "sample"

    unsubscribe()
    store.replace_records([])
    assert len(seen) == 2
    assert all(isinstance(state, StoreState) for state in seen)
    assert store.records == ()
    assert store.status is LoadStatus.READY


def test_state_is_immutable():
    store = RecordStore([])
    with pytest.raises(AttributeError):
        store.state.status = LoadStatus.READY


def test_from_settings_uses_candidate_order(tmp_path, write_xlsx):
    fallback = write_xlsx("companies.xlsx", {"Sheet1": [HEADER, ["Acme Space", 48.1, 11.5, "Space"]]})
    settings = Settings(
        data_file=str(tmp_path / "companies2.xlsx"),
        fallback_sources=[str(fallback)],
        snapshot_path=tmp_path / "snapshot.json",
        alias_config=tmp_path / "aliases.yaml",
        bundled_source="",
    )

    store = RecordStore.from_settings(settings)
    assert store.sources == [str(tmp_path / "companies2.xlsx"), str(fallback)]

    store.load()
    assert store.status is LoadStatus.READY
    assert store.state.source == str(fallback)
