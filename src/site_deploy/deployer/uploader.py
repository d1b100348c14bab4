"""Bounded-concurrency file uploads."""

import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional, Sequence

from site_deploy.utils.logging import get_logger

from .file_scanner import FileInfo

logger = get_logger(__name__)

DEFAULT_MAX_WORKERS = 10


class UploadStatus(Enum):
    """Outcome of one file upload."""
    UPLOADED = "uploaded"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class UploadResult:
    """Result of uploading a single file."""

    file: FileInfo
    status: UploadStatus
    error: Optional[Exception] = None
    duration: float = 0.0  # seconds
    dry_run: bool = False

    @property
    def key(self) -> str:
        return self.file.key

    def is_success(self) -> bool:
        """Check if the file is present remotely after this upload."""
        return self.status == UploadStatus.UPLOADED


# Called on the submitting thread as (completed, total, result)
UploadProgressCallback = Callable[[int, int, UploadResult], None]


def _upload_one(upload: Callable[[FileInfo], None], file: FileInfo) -> UploadResult:
    start = time.monotonic()
    try:
        upload(file)
    except Exception as e:
        logger.error(f"Failed to upload {file.key}: {e}")
        return UploadResult(
            file=file,
            status=UploadStatus.FAILED,
            error=e,
            duration=time.monotonic() - start
        )
    return UploadResult(
        file=file,
        status=UploadStatus.UPLOADED,
        duration=time.monotonic() - start
    )


def upload_files(
    files: Sequence[FileInfo],
    upload: Callable[[FileInfo], None],
    max_workers: int = DEFAULT_MAX_WORKERS,
    dry_run: bool = False,
    progress_callback: Optional[UploadProgressCallback] = None
) -> List[UploadResult]:
    """Upload files with at most ``max_workers`` uploads in flight.

    A failing file never aborts the batch; its error is recorded in its
    result. The function returns only after every upload has resolved.

    Args:
        files: Files to upload
        upload: Uploads one file, raising on failure
        max_workers: Upload pool width
        dry_run: Report every file as uploaded without calling ``upload``
        progress_callback: Optional per-file completion callback

    Returns:
        One result per file, in input order
    """
    total = len(files)
    results: Dict[str, UploadResult] = {}

    if dry_run:
        for completed, file in enumerate(files, 1):
            result = UploadResult(file=file, status=UploadStatus.UPLOADED, dry_run=True)
            results[file.key] = result
            if progress_callback:
                progress_callback(completed, total, result)
        return [results[file.key] for file in files]

    if total == 0:
        return []

    with ThreadPoolExecutor(max_workers=max(1, max_workers)) as executor:
        futures = {executor.submit(_upload_one, upload, file): file for file in files}

        for completed, future in enumerate(as_completed(futures), 1):
            result = future.result()
            results[result.key] = result
            if progress_callback:
                progress_callback(completed, total, result)

    failed = sum(1 for r in results.values() if not r.is_success())
    logger.info(f"Uploaded {total - failed}/{total} files ({failed} failed)")
    return [results[file.key] for file in files]
