from chainscale.errors import ChainscaleError


class UnsupportedTopologyError(ChainscaleError):
    """Raised before provisioning for topologies the backend cannot run."""

    pass


class RolloutError(ChainscaleError):
    def __init__(self, deployment: str, message: str) -> None:
        super().__init__(f"rollout of {deployment} failed: {message}")
        self.deployment = deployment
