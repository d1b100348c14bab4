"""Deployment state: models, persistence, file and resource tracking."""

from .models import (
    STATE_VERSION,
    ACMResourceState,
    CloudFrontResourceState,
    DeploymentState,
    DnsRecord,
    ResourcesState,
    Route53ResourceState,
    S3ResourceState,
)
from .manager import StateManager, get_state_file_name
from .migration import migrate_state
from .file_state import (
    ChangeStatus,
    FileChange,
    FileChanges,
    IncrementalStats,
    compare_file_hashes,
    get_files_to_upload,
    get_incremental_stats,
)
from .resource_state import (
    ResourceKind,
    has_any_resource,
    format_resource_summary,
    validate_resource_state,
)

__all__ = [
    "STATE_VERSION",
    "ACMResourceState",
    "CloudFrontResourceState",
    "DeploymentState",
    "DnsRecord",
    "ResourcesState",
    "Route53ResourceState",
    "S3ResourceState",
    "StateManager",
    "get_state_file_name",
    "migrate_state",
    "ChangeStatus",
    "FileChange",
    "FileChanges",
    "IncrementalStats",
    "compare_file_hashes",
    "get_files_to_upload",
    "get_incremental_stats",
    "ResourceKind",
    "has_any_resource",
    "format_resource_summary",
    "validate_resource_state",
]
