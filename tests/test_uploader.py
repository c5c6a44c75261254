import re
import threading
import time

import pytest

from repoimport.ingestion import CandidateEntry
from repoimport.services import BulkUploader
from repoimport.services.uploader import storage_name, unique_public_id
from repoimport.storage import StoredObject


def _entries(count: int) -> list[CandidateEntry]:
    return [
        CandidateEntry(
            raw_path=f"repo-main/dir/file{i}.txt",
            normalized_path=f"dir/file{i}.txt",
            size_bytes=5,
            content=b"hello",
        )
        for i in range(count)
    ]


@pytest.mark.parametrize(
    "filename, expected",
    [
        ("app.js", "app"),
        ("my file (1).tar.gz", "my_file__1__tar"),
        ("Makefile", "Makefile"),
        ("naïve.md", "na_ve"),
        (".gitignore", ""),
    ],
)
def test_storage_name(filename: str, expected: str) -> None:
    assert storage_name(filename) == expected


def test_storage_name_truncates() -> None:
    assert len(storage_name("a" * 250 + ".txt")) == 100


def test_unique_public_id_shape() -> None:
    first = unique_public_id("app.js")
    assert re.fullmatch(r"\d+-\d+-app", first)


def test_upload_all_success(memory_store) -> None:
    report = BulkUploader(memory_store, batch_size=10).upload_all(_entries(23), folder="uploads")
    assert report.failed_count == 0
    assert len(report.files) == 23
    assert len(memory_store.objects) == 23
    uploaded = report.files[0]
    assert uploaded.storage_key.startswith("uploads/")
    assert uploaded.content_url.startswith("https://cdn.test/uploads/")
    assert uploaded.mime_type == "text/plain"
    assert {item.relative_path for item in report.files} == {f"dir/file{i}.txt" for i in range(23)}


def test_partial_failures_do_not_abort(memory_store) -> None:
    memory_store.fail = lambda public_id: public_id.endswith(("-file3", "-file17"))
    progress_calls = []
    report = BulkUploader(memory_store, batch_size=10).upload_all(
        _entries(20), folder="uploads", progress=lambda done, total: progress_calls.append((done, total))
    )
    assert len(report.files) == 18
    assert sorted(report.failed_paths) == ["dir/file17.txt", "dir/file3.txt"]
    assert progress_calls == [(0, 20), (10, 20), (20, 20)]


def test_every_upload_failing_yields_empty_report(failing_store) -> None:
    report = BulkUploader(failing_store).upload_all(_entries(7), folder="uploads")
    assert report.files == []
    assert report.failed_count == 7


def test_empty_input(memory_store) -> None:
    report = BulkUploader(memory_store).upload_all([], folder="uploads")
    assert report.files == [] and report.failed_count == 0


class _TrackingStore:
    """Records how many uploads run at once."""

    def __init__(self) -> None:
        self.active = 0
        self.peak = 0
        self.lock = threading.Lock()

    def upload(self, data: bytes, public_id: str, folder: str, resource_type: str = "raw") -> StoredObject:
        with self.lock:
            self.active += 1
            self.peak = max(self.peak, self.active)
        time.sleep(0.01)
        with self.lock:
            self.active -= 1
        return StoredObject(public_id=f"{folder}/{public_id}", secure_url="https://cdn.test/x")


def test_concurrency_bounded_by_batch_size() -> None:
    store = _TrackingStore()
    report = BulkUploader(store, batch_size=4).upload_all(_entries(13), folder="uploads")
    assert len(report.files) == 13
    assert 1 <= store.peak <= 4


class _OrderingStore:
    """Logs start and finish per file; first-batch uploads wait for each other."""

    def __init__(self, first_batch: int) -> None:
        self.first_batch = first_batch
        self.events: list[tuple[str, int]] = []
        self.lock = threading.Lock()
        self.first_batch_started = 0
        self.gate = threading.Event()

    def upload(self, data: bytes, public_id: str, folder: str, resource_type: str = "raw") -> StoredObject:
        index = int(public_id.rsplit("-file", 1)[1])
        with self.lock:
            self.events.append(("start", index))
            if index < self.first_batch:
                self.first_batch_started += 1
                if self.first_batch_started == self.first_batch:
                    self.gate.set()
        if index < self.first_batch:
            self.gate.wait(timeout=5)
            time.sleep(0.01 * (index + 1))
        with self.lock:
            self.events.append(("finish", index))
        return StoredObject(public_id=f"{folder}/{public_id}", secure_url="https://cdn.test/x")


def test_next_batch_starts_only_after_previous_batch_finished() -> None:
    store = _OrderingStore(first_batch=4)
    report = BulkUploader(store, batch_size=4).upload_all(_entries(8), folder="uploads")

    assert len(report.files) == 8
    assert store.gate.is_set()
    first_finishes = [pos for pos, (kind, index) in enumerate(store.events) if kind == "finish" and index < 4]
    second_starts = [pos for pos, (kind, index) in enumerate(store.events) if kind == "start" and index >= 4]
    assert len(first_finishes) == 4 and len(second_starts) == 4
    assert max(first_finishes) < min(second_starts)
