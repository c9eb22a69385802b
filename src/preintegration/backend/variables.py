"""Optimizer variables describing an IMU state.

Every IMU state is represented to the external optimizer by five variables,
one per ``VariableKind``. A variable's identity is derived from its kind, the
source tag and the state timestamp, so every bundle that mentions the same
state refers to the same logical variables.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from enum import Enum

import numpy as np

_NAMESPACE = uuid.uuid5(uuid.NAMESPACE_URL, "preintegration/variables")


class VariableKind(Enum):
    """Closed set of variable kinds making up an IMU state.

    Each member carries its label, the number of stored scalars and the
    dimension of its tangent space.
    """

    ORIENTATION = ("orientation", 4, 3)
    POSITION = ("position", 3, 3)
    VELOCITY = ("velocity", 3, 3)
    GYRO_BIAS = ("gyro_bias", 3, 3)
    ACCEL_BIAS = ("accel_bias", 3, 3)

    def __init__(self, label: str, size: int, tangent_size: int) -> None:
        self.label = label
        self.size = size
        self.tangent_size = tangent_size


# Order of the variables in constraint means and covariances
STATE_KINDS: tuple[VariableKind, ...] = (
    VariableKind.ORIENTATION,
    VariableKind.POSITION,
    VariableKind.VELOCITY,
    VariableKind.GYRO_BIAS,
    VariableKind.ACCEL_BIAS,
)

STATE_SIZE = sum(kind.size for kind in STATE_KINDS)  # 16
STATE_TANGENT_SIZE = sum(kind.tangent_size for kind in STATE_KINDS)  # 15

# Read-only mapping from variable identity to solved value
Solution = Mapping[uuid.UUID, np.ndarray]


def variable_uuid(kind: VariableKind, source: str, stamp_ns: int) -> uuid.UUID:
    """Deterministic identity for the variable of ``kind`` at ``stamp_ns``."""
    return uuid.uuid5(_NAMESPACE, f"{kind.label}/{source}/{int(stamp_ns)}")


@dataclass(frozen=True, eq=False)
class Variable:
    """Snapshot of one optimizer variable.

    Attributes:
        kind: Which part of the IMU state this variable holds
        uuid: Identity shared by every snapshot of the same variable
        stamp_ns: Timestamp of the owning state
        source: Source tag of the owning state
        value: Read-only copy of the current estimate
    """

    kind: VariableKind
    uuid: uuid.UUID
    stamp_ns: int
    source: str
    value: np.ndarray

    def __post_init__(self) -> None:
        """Copy the value and check its size against the kind."""
        value = np.array(self.value, dtype=np.float64).flatten()
        if value.shape != (self.kind.size,):
            raise ValueError(
                f"{self.kind.label} variable needs {self.kind.size} values, "
                f"got {value.shape}"
            )
        value.setflags(write=False)
        object.__setattr__(self, "value", value)

    @classmethod
    def create(
        cls, kind: VariableKind, source: str, stamp_ns: int, value: np.ndarray
    ) -> Variable:
        """Create a variable with its deterministic identity."""
        return cls(
            kind=kind,
            uuid=variable_uuid(kind, source, stamp_ns),
            stamp_ns=int(stamp_ns),
            source=source,
            value=value,
        )


def solution_from_variables(variables: Iterable[Variable]) -> dict[uuid.UUID, np.ndarray]:
    """Build a solution mapping from variable snapshots.

    Useful for feeding values from a bundle straight back as if an optimizer
    had returned them unchanged.
    """
    return {var.uuid: np.array(var.value) for var in variables}
