from .deployer import K8sDeployer as K8sDeployer
from .errors import (
    RolloutError as RolloutError,
    UnsupportedTopologyError as UnsupportedTopologyError,
)
from .manifests import (
    namespace_name as namespace_name,
    render_manifests as render_manifests,
)
