from __future__ import annotations

from typing import Callable, Dict, Literal, Union

from pydantic import BaseModel, StrictBool, StrictFloat, StrictInt, StrictStr

from chainscale.logging import LoggingConfig

from .time_parser import parse_duration

PrimaryType = Union[str, int, float, bytes, bool]


def _to_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


class Env(BaseModel):
    """
    Recognized configuration options.

    Values are resolved once by the caller (see ``load_env``) and handed
    to the builder and deployers. Nothing under ``chainscale`` reads the
    process environment on its own.
    """

    CHAINSCALE_RUN_DURATION: StrictStr = "60s"
    CHAINSCALE_VALIDATORS: StrictInt = 1
    CHAINSCALE_EXECUTORS: StrictInt = 1
    CHAINSCALE_WALLETS: StrictInt = 1000

    CHAINSCALE_TX_RATE: StrictInt = 5
    CHAINSCALE_TX_USERS: StrictInt | None = 500

    CHAINSCALE_DA_CHANNEL_RATE: StrictInt = 1
    CHAINSCALE_DA_BLOB_RATE: StrictInt = 1
    CHAINSCALE_DA_HEADROOM_PERCENT: StrictInt = 20

    CHAINSCALE_NODE_CONTROL: StrictBool = False
    CHAINSCALE_CHAOS_MIN_DELAY: StrictStr = "10s"
    CHAINSCALE_CHAOS_MAX_DELAY: StrictStr = "30s"
    CHAINSCALE_CHAOS_TARGET_COOLDOWN: StrictStr = "60s"

    CHAINSCALE_NODE_IMAGE: StrictStr = "chainscale-node:local"
    CHAINSCALE_NODE_BINARY: StrictStr = "chain-node"
    CHAINSCALE_EXECUTOR_BINARY: StrictStr | None = None
    CHAINSCALE_PROMETHEUS_IMAGE: StrictStr = "prom/prometheus:v2.53.0"

    CHAINSCALE_READINESS_TIMEOUT: StrictStr = "60s"
    CHAINSCALE_READINESS_POLL_INTERVAL: StrictStr = "1s"
    CHAINSCALE_PROBE_TIMEOUT: StrictStr = "30s"
    CHAINSCALE_K8S_ROLLOUT_TIMEOUT: StrictStr = "180s"
    CHAINSCALE_PRESERVE_DEPLOYMENT: StrictBool = False
    CHAINSCALE_CONTROL_GRACE_PERIOD: StrictFloat = 5.0

    CHAINSCALE_LOG_LEVEL: Literal["trace", "debug", "info", "warn", "error", "critical", "fatal"] = "info"
    CHAINSCALE_LOG_OUTPUT: Literal["stdout", "stderr"] = "stderr"
    CHAINSCALE_LOGS_DIRECTORY: StrictStr | None = None

    @classmethod
    def types_map(cls) -> Dict[str, Callable[[str], PrimaryType]]:
        return {
            "CHAINSCALE_RUN_DURATION": str,
            "CHAINSCALE_VALIDATORS": int,
            "CHAINSCALE_EXECUTORS": int,
            "CHAINSCALE_WALLETS": int,
            "CHAINSCALE_TX_RATE": int,
            "CHAINSCALE_TX_USERS": int,
            "CHAINSCALE_DA_CHANNEL_RATE": int,
            "CHAINSCALE_DA_BLOB_RATE": int,
            "CHAINSCALE_DA_HEADROOM_PERCENT": int,
            "CHAINSCALE_NODE_CONTROL": _to_bool,
            "CHAINSCALE_CHAOS_MIN_DELAY": str,
            "CHAINSCALE_CHAOS_MAX_DELAY": str,
            "CHAINSCALE_CHAOS_TARGET_COOLDOWN": str,
            "CHAINSCALE_NODE_IMAGE": str,
            "CHAINSCALE_NODE_BINARY": str,
            "CHAINSCALE_EXECUTOR_BINARY": str,
            "CHAINSCALE_PROMETHEUS_IMAGE": str,
            "CHAINSCALE_READINESS_TIMEOUT": str,
            "CHAINSCALE_READINESS_POLL_INTERVAL": str,
            "CHAINSCALE_PROBE_TIMEOUT": str,
            "CHAINSCALE_K8S_ROLLOUT_TIMEOUT": str,
            "CHAINSCALE_PRESERVE_DEPLOYMENT": _to_bool,
            "CHAINSCALE_CONTROL_GRACE_PERIOD": float,
            "CHAINSCALE_LOG_LEVEL": str,
            "CHAINSCALE_LOG_OUTPUT": str,
            "CHAINSCALE_LOGS_DIRECTORY": str,
        }

    @property
    def run_duration(self) -> float:
        return parse_duration(self.CHAINSCALE_RUN_DURATION)

    @property
    def chaos_min_delay(self) -> float:
        return parse_duration(self.CHAINSCALE_CHAOS_MIN_DELAY)

    @property
    def chaos_max_delay(self) -> float:
        return parse_duration(self.CHAINSCALE_CHAOS_MAX_DELAY)

    @property
    def chaos_target_cooldown(self) -> float:
        return parse_duration(self.CHAINSCALE_CHAOS_TARGET_COOLDOWN)

    @property
    def readiness_timeout(self) -> float:
        return parse_duration(self.CHAINSCALE_READINESS_TIMEOUT)

    @property
    def readiness_poll_interval(self) -> float:
        return parse_duration(self.CHAINSCALE_READINESS_POLL_INTERVAL)

    @property
    def probe_timeout(self) -> float:
        return parse_duration(self.CHAINSCALE_PROBE_TIMEOUT)

    @property
    def k8s_rollout_timeout(self) -> float:
        return parse_duration(self.CHAINSCALE_K8S_ROLLOUT_TIMEOUT)

    def configure_logging(self) -> None:
        LoggingConfig().update(
            log_directory=self.CHAINSCALE_LOGS_DIRECTORY,
            log_level=self.CHAINSCALE_LOG_LEVEL,
            log_output=self.CHAINSCALE_LOG_OUTPUT,
        )
