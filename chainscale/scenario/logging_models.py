"""
Logging models for scenario orchestration.

Entries carry the deployment identifier so logs from parallel runs can
be told apart.
"""

from chainscale.logging.models import Entry, LogLevel


class DeployerDebug(Entry, kw_only=True):
    backend: str
    deployment_id: str
    level: LogLevel = LogLevel.DEBUG


class DeployerInfo(Entry, kw_only=True):
    backend: str
    deployment_id: str
    level: LogLevel = LogLevel.INFO


class DeployerError(Entry, kw_only=True):
    backend: str
    deployment_id: str
    level: LogLevel = LogLevel.ERROR


class ReadinessDebug(Entry, kw_only=True):
    node: str
    attempt: int
    level: LogLevel = LogLevel.DEBUG


class ReadinessWarning(Entry, kw_only=True):
    node: str
    attempt: int
    level: LogLevel = LogLevel.WARN


class RunnerInfo(Entry, kw_only=True):
    deployment_id: str
    level: LogLevel = LogLevel.INFO


class RunnerWarning(Entry, kw_only=True):
    deployment_id: str
    level: LogLevel = LogLevel.WARN


class RunnerError(Entry, kw_only=True):
    deployment_id: str
    level: LogLevel = LogLevel.ERROR


class WorkloadDebug(Entry, kw_only=True):
    workload: str
    level: LogLevel = LogLevel.DEBUG


class WorkloadInfo(Entry, kw_only=True):
    workload: str
    level: LogLevel = LogLevel.INFO


class WorkloadWarning(Entry, kw_only=True):
    workload: str
    level: LogLevel = LogLevel.WARN


class WorkloadError(Entry, kw_only=True):
    workload: str
    level: LogLevel = LogLevel.ERROR


class ExpectationInfo(Entry, kw_only=True):
    expectation: str
    level: LogLevel = LogLevel.INFO


class ExpectationWarning(Entry, kw_only=True):
    expectation: str
    level: LogLevel = LogLevel.WARN


class BlockFeedDebug(Entry, kw_only=True):
    processed: int
    level: LogLevel = LogLevel.DEBUG


class BlockFeedError(Entry, kw_only=True):
    error: str
    level: LogLevel = LogLevel.ERROR


class CleanupWarning(Entry, kw_only=True):
    step: str
    level: LogLevel = LogLevel.WARN
