class ChainscaleError(Exception):
    """Base class for errors raised by the framework."""

    pass
