"""
E2E Batch Orchestrator

Brings up each batch of UI components on deterministic ports, runs the
browser test suite against them, reclaims the ports and merges the
per-batch reports.
"""

from .errors import (
    OrchestratorError,
    ConfigError,
    StartupTimeout,
    PrematureExit,
    ServiceUnavailable,
    TestExecutorError,
    TestFailure,
    UnknownBatch,
    PortReclaimDegraded,
    ReportMergeSkipped,
)
from .config import OrchestratorConfig, load_config
from .topology import Batch, build_topology, discover_topology, resolve_batch
from .ports import assign_ports, all_ports
from .port_reclaim import PortReclaimer, PortRegistry
from .merger import merge_results
from .summary import summarize_results
from .scheduler import BatchScheduler, create_scheduler

__version__ = "1.0.0"

__all__ = [
    "OrchestratorError",
    "ConfigError",
    "StartupTimeout",
    "PrematureExit",
    "ServiceUnavailable",
    "TestExecutorError",
    "TestFailure",
    "UnknownBatch",
    "PortReclaimDegraded",
    "ReportMergeSkipped",
    "OrchestratorConfig",
    "load_config",
    "Batch",
    "build_topology",
    "discover_topology",
    "resolve_batch",
    "assign_ports",
    "all_ports",
    "PortReclaimer",
    "PortRegistry",
    "merge_results",
    "summarize_results",
    "BatchScheduler",
    "create_scheduler",
]
