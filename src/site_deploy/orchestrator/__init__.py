"""Deploy and teardown orchestration."""

from .orchestrator import DeploymentOrchestrator, TEARDOWN_ORDER, invalidation_paths
from .results import (
    DeploymentObserver,
    DeploymentResult,
    DestructionResult,
    DiscoveryResult,
    ExecutionStatus,
    ResourceExecutionResult,
    RunResult,
)

__all__ = [
    'DeploymentOrchestrator',
    'TEARDOWN_ORDER',
    'invalidation_paths',
    'DeploymentObserver',
    'DeploymentResult',
    'DestructionResult',
    'DiscoveryResult',
    'ExecutionStatus',
    'ResourceExecutionResult',
    'RunResult',
]
