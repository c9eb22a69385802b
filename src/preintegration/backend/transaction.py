"""Bundles of variables and constraints handed to the external optimizer.

The builder only packages values; it performs no numerical work besides
assembling means. Variables are deduplicated by identity so that a state
shared by successive bundles is recognized as the same logical variables.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING
from uuid import UUID

import numpy as np

from .constraints import ConstraintKind, ImuStateConstraint
from .variables import STATE_TANGENT_SIZE, Variable, VariableKind

if TYPE_CHECKING:
    from ..imu.delta import ImuDelta
    from ..imu.state import ImuState


@dataclass(frozen=True, eq=False)
class ImuBias:
    """Gyroscope and accelerometer bias pair carried into the next interval."""

    gyro: np.ndarray
    accel: np.ndarray

    def __post_init__(self) -> None:
        """Copy into read-only (3,) vectors."""
        for name in ("gyro", "accel"):
            value = np.array(getattr(self, name), dtype=np.float64).flatten()
            if value.shape != (3,):
                raise ValueError(f"{name} bias must be (3,), got {value.shape}")
            value.setflags(write=False)
            object.__setattr__(self, name, value)

    @classmethod
    def from_state(cls, state: ImuState) -> ImuBias:
        """Bias estimate held by ``state``."""
        return cls(gyro=state.gyro_bias, accel=state.accel_bias)


@dataclass
class ImuTransaction:
    """New variables and constraints to submit to the optimizer together.

    Attributes:
        stamp_ns: Timestamp of the newest state in the bundle
        source: Source tag of the producer
        added_variables: Variables introduced by this bundle
        added_constraints: Constraints introduced by this bundle
        carry_over_bias: Bias estimate the next interval starts from
    """

    stamp_ns: int
    source: str
    added_variables: list[Variable] = field(default_factory=list)
    added_constraints: list[ImuStateConstraint] = field(default_factory=list)
    carry_over_bias: ImuBias | None = None

    def variables_of_kind(self, kind: VariableKind) -> list[Variable]:
        """Added variables of one kind, in insertion order."""
        return [var for var in self.added_variables if var.kind is kind]

    def constraints_of_kind(self, kind: ConstraintKind) -> list[ImuStateConstraint]:
        """Added constraints of one kind, in insertion order."""
        return [c for c in self.added_constraints if c.kind is kind]

    def variable_uuids(self) -> list[UUID]:
        """Identities of all added variables."""
        return [var.uuid for var in self.added_variables]

    @property
    def num_states(self) -> int:
        """Number of complete IMU states introduced."""
        return len(self.variables_of_kind(VariableKind.ORIENTATION))

    def is_empty(self) -> bool:
        """True if nothing was added."""
        return not self.added_variables and not self.added_constraints


class ImuTransactionBuilder:
    """Accumulates states and constraints, then builds an ``ImuTransaction``."""

    def __init__(self, source: str) -> None:
        """Initialize builder.

        Args:
            source: Source tag recorded on every constraint
        """
        self._source = source
        self._variables: dict[UUID, Variable] = {}
        self._constraints: list[ImuStateConstraint] = []

    def add_state(self, state: ImuState) -> None:
        """Add the five variables of ``state``; repeated identities are kept once."""
        for var in state.variables():
            self._variables.setdefault(var.uuid, var)

    def add_relative_constraint(
        self, start: ImuState, end: ImuState, delta: ImuDelta
    ) -> ImuStateConstraint:
        """Constrain ``end`` relative to ``start`` by a preintegrated delta."""
        constraint = ImuStateConstraint(
            kind=ConstraintKind.RELATIVE,
            source=self._source,
            variables=tuple(start.uuids() + end.uuids()),
            mean=delta.mean(),
            covariance=delta.covariance,
        )
        self._constraints.append(constraint)
        return constraint

    def add_absolute_prior(
        self, state: ImuState, covariance: np.ndarray | float = 1e-9
    ) -> ImuStateConstraint:
        """Pin ``state`` to its current value.

        Args:
            state: State to constrain
            covariance: 15x15 covariance, or a scalar for a scaled identity
        """
        if np.isscalar(covariance):
            covariance = np.eye(STATE_TANGENT_SIZE) * float(covariance)
        constraint = ImuStateConstraint(
            kind=ConstraintKind.ABSOLUTE,
            source=self._source,
            variables=tuple(state.uuids()),
            mean=state.as_vector(),
            covariance=covariance,
        )
        self._constraints.append(constraint)
        return constraint

    def build(self, stamp_ns: int, carry_over_bias: ImuBias | None = None) -> ImuTransaction:
        """Create the transaction and reset the builder."""
        transaction = ImuTransaction(
            stamp_ns=int(stamp_ns),
            source=self._source,
            added_variables=list(self._variables.values()),
            added_constraints=list(self._constraints),
            carry_over_bias=carry_over_bias,
        )
        self._variables = {}
        self._constraints = []
        return transaction
