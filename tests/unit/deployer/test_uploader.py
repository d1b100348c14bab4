"""Tests for concurrent file uploads."""

import threading
import time
from pathlib import Path
from typing import List

from site_deploy.deployer.file_scanner import FileInfo
from site_deploy.deployer.uploader import UploadStatus, upload_files


def make_files(count: int) -> List[FileInfo]:
    return [
        FileInfo(
            absolute_path=Path(f"/site/f{i}.html"),
            key=f"f{i}.html",
            size=1,
            hash=str(i),
            content_type="text/html",
            should_gzip=True,
        )
        for i in range(count)
    ]


class TestUploadFiles:
    """Tests for upload_files."""

    def test_results_in_input_order(self) -> None:
        """Test that results line up with the input regardless of completion order."""
        files = make_files(5)

        def upload(file: FileInfo) -> None:
            time.sleep(0.01 * (5 - int(file.hash)))

        results = upload_files(files, upload, max_workers=5)

        assert [r.key for r in results] == [f.key for f in files]
        assert all(r.status == UploadStatus.UPLOADED for r in results)

    def test_failures_do_not_abort_batch(self) -> None:
        """Test that one failing file is recorded while the others upload."""
        uploaded = []
        lock = threading.Lock()

        def upload(file: FileInfo) -> None:
            if file.key == "f1.html":
                raise RuntimeError("boom")
            with lock:
                uploaded.append(file.key)

        results = upload_files(make_files(3), upload, max_workers=2)

        assert sorted(uploaded) == ["f0.html", "f2.html"]
        assert results[1].status == UploadStatus.FAILED
        assert str(results[1].error) == "boom"
        assert not results[1].is_success()

    def test_concurrency_is_bounded(self) -> None:
        """Test that no more than max_workers uploads run at once."""
        active = 0
        peak = 0
        lock = threading.Lock()

        def upload(file: FileInfo) -> None:
            nonlocal active, peak
            with lock:
                active += 1
                peak = max(peak, active)
            time.sleep(0.01)
            with lock:
                active -= 1

        upload_files(make_files(12), upload, max_workers=3)

        assert peak <= 3

    def test_progress_callback(self) -> None:
        """Test that progress is reported once per file with a running count."""
        seen = []

        upload_files(
            make_files(3),
            lambda file: None,
            progress_callback=lambda completed, total, result: seen.append((completed, total)),
        )

        assert sorted(seen) == [(1, 3), (2, 3), (3, 3)]

    def test_dry_run_does_not_upload(self) -> None:
        """Test that dry runs report success without calling upload."""
        called = []

        results = upload_files(make_files(2), called.append, dry_run=True)

        assert called == []
        assert all(r.dry_run and r.is_success() for r in results)

    def test_empty_input(self) -> None:
        """Test that nothing to upload returns an empty list."""
        assert upload_files([], lambda file: None) == []
