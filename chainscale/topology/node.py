from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class NodeRole(Enum):
    VALIDATOR = "validator"
    EXECUTOR = "executor"


@dataclass(frozen=True, slots=True)
class NodeId:
    role: NodeRole
    index: int

    @property
    def label(self) -> str:
        return f"{self.role.value}-{self.index}"

    @classmethod
    def validator(cls, index: int) -> NodeId:
        return cls(NodeRole.VALIDATOR, index)

    @classmethod
    def executor(cls, index: int) -> NodeId:
        return cls(NodeRole.EXECUTOR, index)

    @classmethod
    def parse(cls, label: str) -> NodeId:
        role, _, index = label.rpartition("-")
        return cls(NodeRole(role), int(index))

    def __str__(self) -> str:
        return self.label
