"""Build directory scanning and content hashing."""

import fnmatch
import hashlib
import mimetypes
import os
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence, Union

from site_deploy.utils.logging import get_logger

logger = get_logger(__name__)

# Text-like assets that are uploaded gzip-encoded
GZIPPABLE_EXTENSIONS = {
    ".html",
    ".htm",
    ".css",
    ".js",
    ".mjs",
    ".json",
    ".xml",
    ".svg",
    ".txt",
    ".md",
    ".csv",
    ".ts",
    ".tsx",
    ".jsx",
}

DEFAULT_CONTENT_TYPE = "application/octet-stream"

_HASH_CHUNK_SIZE = 64 * 1024


@dataclass(frozen=True)
class FileInfo:
    """A local file prepared for upload."""

    absolute_path: Path
    key: str  # object key: forward slashes, no leading slash
    size: int
    hash: str
    content_type: str
    should_gzip: bool


def calculate_file_hash(path: Union[str, Path]) -> str:
    """Compute the SHA-256 hex digest of a file's content."""
    digest = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(_HASH_CHUNK_SIZE), b""):
            digest.update(chunk)
    return digest.hexdigest()


def path_to_key(relative_path: Union[str, Path]) -> str:
    """Convert a relative path to an object key."""
    key = str(relative_path).replace(os.sep, "/").replace("\\", "/")
    return key.lstrip("/")


def get_content_type(path: Union[str, Path]) -> str:
    """Guess the Content-Type for a file name."""
    content_type, _ = mimetypes.guess_type(str(path))
    return content_type or DEFAULT_CONTENT_TYPE


def should_gzip(path: Union[str, Path]) -> bool:
    """Check whether a file type benefits from gzip encoding."""
    return Path(path).suffix.lower() in GZIPPABLE_EXTENSIONS


def is_excluded(key: str, patterns: Sequence[str]) -> bool:
    """Check a key against glob exclude patterns.

    A pattern matches the full key, or the file name when the pattern has
    no slash (so ``*.map`` excludes maps in every directory).
    """
    name = key.rsplit("/", 1)[-1]
    for pattern in patterns:
        if fnmatch.fnmatchcase(key, pattern):
            return True
        if "/" not in pattern and fnmatch.fnmatchcase(name, pattern):
            return True
        # "dir/**" excludes everything below dir
        if pattern.endswith("/**") and key.startswith(pattern[:-2]):
            return True
    return False


def scan_files(
    build_dir: Union[str, Path],
    exclude: Optional[Sequence[str]] = None,
) -> List[FileInfo]:
    """Scan a build directory and hash every file in it.

    Hidden files are included. Symlinked directories are not followed.

    Args:
        build_dir: Directory containing the built site
        exclude: Glob patterns of keys to skip

    Returns:
        FileInfo for each file, sorted by key

    Raises:
        FileNotFoundError: If build_dir does not exist or is not a directory
    """
    root = Path(build_dir)
    if not root.is_dir():
        raise FileNotFoundError(f"Build directory not found: {root}")

    patterns = list(exclude or [])
    files: List[FileInfo] = []

    for dirpath, _dirnames, filenames in os.walk(root):
        for filename in filenames:
            absolute_path = Path(dirpath) / filename
            if not absolute_path.is_file():
                continue

            key = path_to_key(absolute_path.relative_to(root))
            if is_excluded(key, patterns):
                continue

            files.append(
                FileInfo(
                    absolute_path=absolute_path,
                    key=key,
                    size=absolute_path.stat().st_size,
                    hash=calculate_file_hash(absolute_path),
                    content_type=get_content_type(filename),
                    should_gzip=should_gzip(filename),
                )
            )

    files.sort(key=lambda f: f.key)
    logger.info(f"Scanned {len(files)} files in {root}")
    return files
