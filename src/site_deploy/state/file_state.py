"""File change detection against the deployed file hash map."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from site_deploy.deployer.file_scanner import FileInfo

from .models import DeploymentState


class ChangeStatus(Enum):
    """Classification of a path relative to the last deployment."""

    ADDED = "added"
    MODIFIED = "modified"
    UNCHANGED = "unchanged"
    DELETED = "deleted"


@dataclass(frozen=True)
class FileChange:
    """A classified path. For deleted paths ``hash`` is the last deployed hash."""

    path: str
    hash: str
    status: ChangeStatus
    previous_hash: Optional[str] = None


@dataclass
class FileChanges:
    """Classification of every path in the manifest and the previous map."""

    added: List[FileChange] = field(default_factory=list)
    modified: List[FileChange] = field(default_factory=list)
    unchanged: List[FileChange] = field(default_factory=list)
    deleted: List[FileChange] = field(default_factory=list)

    @property
    def total_changes(self) -> int:
        """Number of paths that need remote work; unchanged paths are excluded."""
        return len(self.added) + len(self.modified) + len(self.deleted)

    def paths(self, status: ChangeStatus) -> List[str]:
        """Paths with the given status."""
        return [change.path for change in getattr(self, status.value)]


@dataclass(frozen=True)
class IncrementalStats:
    """Counts describing an incremental deploy."""

    needs_upload: int
    can_skip: int
    needs_delete: int

    @property
    def total(self) -> int:
        return self.needs_upload + self.can_skip


def compare_file_hashes(
    current_files: Sequence[FileInfo],
    previous_hashes: Mapping[str, str],
) -> FileChanges:
    """
    Classify the current manifest against the previously deployed hashes.

    Args:
        current_files: Files found in the build directory
        previous_hashes: Path to hash map from the last deployment

    Returns:
        FileChanges in which every path of both inputs appears exactly once
    """
    changes = FileChanges()
    current_paths = set()

    for file in current_files:
        current_paths.add(file.key)
        previous_hash = previous_hashes.get(file.key)

        if file.key not in previous_hashes:
            changes.added.append(FileChange(file.key, file.hash, ChangeStatus.ADDED))
        elif previous_hash != file.hash:
            changes.modified.append(
                FileChange(file.key, file.hash, ChangeStatus.MODIFIED, previous_hash)
            )
        else:
            changes.unchanged.append(
                FileChange(file.key, file.hash, ChangeStatus.UNCHANGED, previous_hash)
            )

    for path, previous_hash in previous_hashes.items():
        if path not in current_paths:
            changes.deleted.append(
                FileChange(path, previous_hash, ChangeStatus.DELETED, previous_hash)
            )

    return changes


def get_files_to_upload(
    current_files: Sequence[FileInfo], changes: FileChanges
) -> List[FileInfo]:
    """
    Select the files that are new or modified.

    Args:
        current_files: Files found in the build directory
        changes: Classification produced by compare_file_hashes

    Returns:
        Files from the manifest whose path is added or modified, in manifest order
    """
    upload_paths = {change.path for change in changes.added}
    upload_paths.update(change.path for change in changes.modified)
    return [file for file in current_files if file.key in upload_paths]


def get_incremental_stats(changes: FileChanges) -> IncrementalStats:
    """Summarize how much work an incremental deploy needs."""
    return IncrementalStats(
        needs_upload=len(changes.added) + len(changes.modified),
        can_skip=len(changes.unchanged),
        needs_delete=len(changes.deleted),
    )


def has_changes(changes: FileChanges) -> bool:
    """Check whether anything needs to be uploaded or deleted."""
    return changes.total_changes > 0


def create_file_hash_map(files: Iterable[FileInfo]) -> Dict[str, str]:
    """Build a path to hash map from scanned files."""
    return {file.key: file.hash for file in files}


def update_file_hashes(state: DeploymentState, files: Iterable[FileInfo]) -> DeploymentState:
    """Replace the tracked hashes with those of the given files."""
    return state.model_copy(update={"files": create_file_hash_map(files)}, deep=True)


def merge_file_hashes(state: DeploymentState, updates: Mapping[str, str]) -> DeploymentState:
    """Overlay new hashes onto the tracked ones."""
    files = dict(state.files)
    files.update(updates)
    return state.model_copy(update={"files": files}, deep=True)


def remove_deleted_files(state: DeploymentState, paths: Iterable[str]) -> DeploymentState:
    """Stop tracking the given paths."""
    removed = set(paths)
    files = {path: digest for path, digest in state.files.items() if path not in removed}
    return state.model_copy(update={"files": files}, deep=True)


def format_file_changes(changes: FileChanges) -> str:
    """Render a short human-readable summary of a classification."""
    lines = []
    for status, symbol in (
        (ChangeStatus.ADDED, "+"),
        (ChangeStatus.MODIFIED, "~"),
        (ChangeStatus.DELETED, "-"),
    ):
        entries = getattr(changes, status.value)
        if entries:
            lines.append(f"{status.value.capitalize()} ({len(entries)}):")
            lines.extend(f"  {symbol} {change.path}" for change in entries)

    if changes.unchanged:
        lines.append(f"Unchanged: {len(changes.unchanged)}")

    if not lines:
        return "No files"
    return "\n".join(lines)
