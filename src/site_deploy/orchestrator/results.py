"""Result types and progress observer for deploy and teardown runs."""

from typing import Dict, List, Optional
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

from site_deploy.aws.base import DiscoveredResource, ResourceOutcome
from site_deploy.deployer.uploader import UploadResult
from site_deploy.state.file_state import FileChanges
from site_deploy.state.models import DeploymentState
from site_deploy.utils.errors import DeploymentError


class ExecutionStatus(Enum):
    """Status of execution."""
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ResourceExecutionResult:
    """Result of one resource lifecycle step."""

    resource_id: str
    status: ExecutionStatus
    outcome: Optional[ResourceOutcome] = None
    message: Optional[str] = None
    error: Optional[DeploymentError] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    duration: float = 0.0  # seconds

    def is_success(self) -> bool:
        """Check if execution was successful."""
        return self.status == ExecutionStatus.SUCCESS

    def is_failed(self) -> bool:
        """Check if execution failed."""
        return self.status == ExecutionStatus.FAILED


@dataclass
class RunResult:
    """Fields shared by deploy and teardown results."""

    status: ExecutionStatus
    resource_results: Dict[str, ResourceExecutionResult] = field(default_factory=dict)
    state: Optional[DeploymentState] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    duration: float = 0.0  # seconds
    error: Optional[DeploymentError] = None

    def is_success(self) -> bool:
        """Check if the run was successful."""
        return self.status == ExecutionStatus.SUCCESS

    def is_failed(self) -> bool:
        """Check if the run failed."""
        return self.status == ExecutionStatus.FAILED

    def finish(self, status: ExecutionStatus) -> None:
        """Record the final status and timing."""
        self.status = status
        self.end_time = utcnow()
        if self.start_time:
            self.duration = (self.end_time - self.start_time).total_seconds()


@dataclass
class DeploymentResult(RunResult):
    """Complete deployment execution result."""

    changes: Optional[FileChanges] = None
    upload_results: List[UploadResult] = field(default_factory=list)
    skipped_files: List[str] = field(default_factory=list)
    deleted_files: List[str] = field(default_factory=list)
    delete_error: Optional[DeploymentError] = None
    invalidation_id: Optional[str] = None
    dry_run: bool = False

    @property
    def no_changes(self) -> bool:
        """True when the run short-circuited because nothing changed."""
        return (
            self.changes is not None
            and self.changes.total_changes == 0
            and not self.upload_results
        )

    @property
    def uploaded_files(self) -> List[str]:
        return [r.key for r in self.upload_results if r.is_success()]

    @property
    def failed_uploads(self) -> List[UploadResult]:
        return [r for r in self.upload_results if not r.is_success()]


@dataclass
class DestructionResult(RunResult):
    """Result of an ordered teardown."""

    removed: List[str] = field(default_factory=list)
    kept: List[str] = field(default_factory=list)
    failed_resource: Optional[str] = None
    state_deleted: bool = False


@dataclass
class DiscoveryResult:
    """Managed resources found in the account, by kind."""

    s3: List[DiscoveredResource] = field(default_factory=list)
    cloudfront: List[DiscoveredResource] = field(default_factory=list)
    acm: List[DiscoveredResource] = field(default_factory=list)
    route53: List[DiscoveredResource] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.s3) + len(self.cloudfront) + len(self.acm) + len(self.route53)

    @property
    def has_resources(self) -> bool:
        return self.total > 0



class DeploymentObserver:
    """Receives progress notifications from the orchestrator.

    Subclasses override the hooks they care about; the defaults do nothing.
    ``on_retry`` may be called from upload worker threads.
    """

    def on_resource(self, resource_id: str, status: ExecutionStatus, message: Optional[str]) -> None:
        """A resource lifecycle step started or finished."""

    def on_changes(self, changes: FileChanges) -> None:
        """Local files were classified against the last deployment."""

    def on_file_uploaded(self, completed: int, total: int, result: UploadResult) -> None:
        """One upload resolved (successfully or not)."""

    def on_retry(self, operation: str, attempt: int, error: Exception, delay: float) -> None:
        """A remote call failed and will be retried after ``delay`` seconds."""
