from chainscale.errors import ChainscaleError


class ApiClientError(ChainscaleError):
    """
    Raised when a node API call fails: transport failure, non-2xx status,
    or a payload that does not decode into the expected model.
    """

    def __init__(
        self,
        node: str,
        path: str,
        message: str,
        status_code: int | None = None,
        retryable: bool = False,
    ) -> None:
        super().__init__(f"{node} {path}: {message}")
        self.node = node
        self.path = path
        self.status_code = status_code
        self.retryable = retryable


class NoReachableNodeError(ChainscaleError):
    """Raised when a fan-out request fails against every node."""

    def __init__(self, operation: str, errors: list[Exception]) -> None:
        details = "; ".join(str(err) for err in errors) or "no clients"
        super().__init__(f"{operation} failed on every node: {details}")
        self.operation = operation
        self.errors = errors


def is_retryable(exc: Exception) -> bool:
    return isinstance(exc, ApiClientError) and exc.retryable
