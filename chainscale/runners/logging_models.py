from chainscale.logging.models import Entry, LogLevel


class CommandDebug(Entry, kw_only=True):
    command: str
    level: LogLevel = LogLevel.DEBUG


class CommandWarning(Entry, kw_only=True):
    command: str
    return_code: int | None = None
    level: LogLevel = LogLevel.WARN


class ProcessWarning(Entry, kw_only=True):
    node: str
    level: LogLevel = LogLevel.WARN
