"""Constraints on IMU state variables submitted to the optimizer."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from uuid import UUID

import numpy as np

from .variables import STATE_KINDS, STATE_SIZE, STATE_TANGENT_SIZE


class ConstraintKind(Enum):
    """Closed set of constraint kinds.

    Each member carries the number of IMU states it connects.
    """

    RELATIVE = ("relative", 2)
    ABSOLUTE = ("absolute", 1)

    def __init__(self, label: str, num_states: int) -> None:
        self.label = label
        self.num_states = num_states

    @property
    def num_variables(self) -> int:
        """Number of variables referenced by a constraint of this kind."""
        return self.num_states * len(STATE_KINDS)


@dataclass(frozen=True, eq=False)
class ImuStateConstraint:
    """Constraint over one (absolute) or two (relative) full IMU states.

    ``variables`` lists the identities in the order
    [q, p, v, bg, ba] of the first state, then those of the second state for
    a relative constraint. ``mean`` is the 16-vector [q, p, v, bg, ba]: for a
    relative constraint the measured change between the states, for an
    absolute one the prior value. ``covariance`` is expressed on the
    15-dimensional tangent space [dtheta, dp, dv, dbg, dba].
    """

    kind: ConstraintKind
    source: str
    variables: tuple[UUID, ...]
    mean: np.ndarray
    covariance: np.ndarray

    def __post_init__(self) -> None:
        """Validate sizes, copy arrays and make them read-only."""
        variables = tuple(self.variables)
        if len(variables) != self.kind.num_variables:
            raise ValueError(
                f"{self.kind.label} constraint needs {self.kind.num_variables} "
                f"variables, got {len(variables)}"
            )
        object.__setattr__(self, "variables", variables)

        mean = np.array(self.mean, dtype=np.float64).flatten()
        if mean.shape != (STATE_SIZE,):
            raise ValueError(f"Constraint mean must be ({STATE_SIZE},), got {mean.shape}")

        covariance = np.array(self.covariance, dtype=np.float64)
        expected = (STATE_TANGENT_SIZE, STATE_TANGENT_SIZE)
        if covariance.shape != expected:
            raise ValueError(f"Constraint covariance must be {expected}, got {covariance.shape}")
        if not np.allclose(covariance, covariance.T, rtol=1e-9, atol=1e-12):
            raise ValueError("Constraint covariance must be symmetric")

        mean.setflags(write=False)
        covariance.setflags(write=False)
        object.__setattr__(self, "mean", mean)
        object.__setattr__(self, "covariance", covariance)

    def state_variables(self, index: int) -> tuple[UUID, ...]:
        """Identities of the ``index``-th state connected by this constraint."""
        if not 0 <= index < self.kind.num_states:
            raise IndexError(f"{self.kind.label} constraint has no state {index}")
        n = len(STATE_KINDS)
        return self.variables[index * n:(index + 1) * n]
