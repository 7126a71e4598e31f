"""
Deployment backends.

- local: node binaries as host processes
- compose: a docker compose stack with a Prometheus sidecar
- k8s: Deployments and Services in a dedicated namespace
"""

from .commands import (
    CommandFailedError as CommandFailedError,
    CommandResult as CommandResult,
    CommandRunner as CommandRunner,
    CommandTimeoutError as CommandTimeoutError,
)
