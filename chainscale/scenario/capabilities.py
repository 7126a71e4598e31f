from enum import Enum


class Capability(Enum):
    NODE_CONTROL = "node_control"
    TELEMETRY = "telemetry"
