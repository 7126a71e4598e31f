from .deployer import ComposeDeployer as ComposeDeployer
from .descriptor import (
    compose_project_name as compose_project_name,
    render_compose as render_compose,
    render_prometheus_config as render_prometheus_config,
)
from .errors import (
    ComposeUnavailableError as ComposeUnavailableError,
    PortDiscoveryError as PortDiscoveryError,
)
from .lifecycle import (
    ComposeCommands as ComposeCommands,
    ComposeNodeLifecycle as ComposeNodeLifecycle,
)
