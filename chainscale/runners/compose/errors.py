from chainscale.errors import ChainscaleError


class ComposeUnavailableError(ChainscaleError):
    """Raised when docker or the compose plugin cannot be invoked."""

    pass


class PortDiscoveryError(ChainscaleError):
    def __init__(self, service: str, port: int, output: str) -> None:
        super().__init__(
            f"could not discover host port for {service}:{port} from {output!r}"
        )
        self.service = service
        self.port = port
