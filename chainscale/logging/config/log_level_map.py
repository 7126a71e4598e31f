from typing import Dict

from chainscale.logging.models import LogLevel


class LogLevelMap:
    """Severity rank of each level, in declaration order of LogLevel."""

    def __init__(self) -> None:
        self._levels: Dict[LogLevel, int] = {
            level: rank for rank, level in enumerate(LogLevel)
        }

    def __getitem__(self, level: LogLevel) -> int:
        return self._levels[level]
