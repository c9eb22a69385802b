"""Kinematic and bias state of the IMU at a timestamp."""

from __future__ import annotations

from uuid import UUID

import numpy as np

from ..backend.variables import STATE_KINDS, Solution, Variable, VariableKind
from ..config import DEFAULT_SOURCE
from ..lie import quat_normalize, quat_to_rotation
from ..pose import SE3


def _coerce(args: tuple, size: int, name: str) -> np.ndarray:
    """Accept either ``size`` scalars or one array-like of length ``size``."""
    if len(args) == 1:
        value = np.array(args[0], dtype=np.float64).flatten()
    elif len(args) == size:
        value = np.array(args, dtype=np.float64)
    else:
        raise TypeError(
            f"{name} expects {size} scalars or one sequence of {size}, got {len(args)} arguments"
        )
    if value.shape != (size,):
        raise ValueError(f"{name} must have {size} components, got {value.shape}")
    return value


class ImuState:
    """Orientation, position, velocity and biases of the IMU at a timestamp.

    The orientation is the unit quaternion q_WORLD_IMU [w, x, y, z]; it is
    renormalized whenever it is set. Position and velocity are expressed in
    the world frame. Each part of the state is exposed to the optimizer as a
    ``Variable`` whose identity depends only on (kind, source, timestamp).

    Getters return copies. A state is mutated only through its setters or by
    ``update`` with an optimizer solution.
    """

    def __init__(
        self,
        timestamp_ns: int,
        orientation: np.ndarray | None = None,
        position: np.ndarray | None = None,
        velocity: np.ndarray | None = None,
        gyro_bias: np.ndarray | None = None,
        accel_bias: np.ndarray | None = None,
        source: str = DEFAULT_SOURCE,
    ) -> None:
        """Initialize state; omitted parts default to identity / zero.

        Args:
            timestamp_ns: State timestamp in nanoseconds
            orientation: Quaternion [w, x, y, z] (default: identity)
            position: Position in world frame (default: zeros)
            velocity: Velocity in world frame (default: zeros)
            gyro_bias: Gyroscope bias in rad/s (default: zeros)
            accel_bias: Accelerometer bias in m/s² (default: zeros)
            source: Source tag used for variable identities
        """
        self._timestamp_ns = int(timestamp_ns)
        self._source = source
        self._updates = 0

        self._orientation = np.array([1.0, 0.0, 0.0, 0.0])
        self._position = np.zeros(3)
        self._velocity = np.zeros(3)
        self._gyro_bias = np.zeros(3)
        self._accel_bias = np.zeros(3)

        if orientation is not None:
            self.set_orientation(orientation)
        if position is not None:
            self.set_position(position)
        if velocity is not None:
            self.set_velocity(velocity)
        if gyro_bias is not None:
            self.set_gyro_bias(gyro_bias)
        if accel_bias is not None:
            self.set_accel_bias(accel_bias)

    # ------------------------------------------------------------------
    # Metadata
    # ------------------------------------------------------------------

    @property
    def timestamp_ns(self) -> int:
        """State timestamp in nanoseconds."""
        return self._timestamp_ns

    @property
    def timestamp(self) -> float:
        """State timestamp in seconds."""
        return self._timestamp_ns * 1e-9

    @property
    def source(self) -> str:
        """Source tag used for variable identities."""
        return self._source

    @property
    def update_count(self) -> int:
        """Number of successful optimizer updates applied to this state."""
        return self._updates

    # ------------------------------------------------------------------
    # Vector / quaternion getters
    # ------------------------------------------------------------------

    @property
    def orientation(self) -> np.ndarray:
        """Quaternion q_WORLD_IMU [w, x, y, z]."""
        return self._orientation.copy()

    @property
    def rotation(self) -> np.ndarray:
        """Rotation matrix R_WORLD_IMU."""
        return quat_to_rotation(self._orientation)

    @property
    def position(self) -> np.ndarray:
        """Position in world frame."""
        return self._position.copy()

    @property
    def velocity(self) -> np.ndarray:
        """Velocity in world frame."""
        return self._velocity.copy()

    @property
    def gyro_bias(self) -> np.ndarray:
        """Gyroscope bias (rad/s)."""
        return self._gyro_bias.copy()

    @property
    def accel_bias(self) -> np.ndarray:
        """Accelerometer bias (m/s²)."""
        return self._accel_bias.copy()

    # ------------------------------------------------------------------
    # Setters: each accepts N scalars or one array-like
    # ------------------------------------------------------------------

    def set_orientation(self, *args) -> None:
        """Set orientation from (w, x, y, z) or a 4-element array."""
        self._orientation = quat_normalize(_coerce(args, 4, "orientation"))

    def set_position(self, *args) -> None:
        """Set position from (x, y, z) or a 3-element array."""
        self._position = _coerce(args, 3, "position")

    def set_velocity(self, *args) -> None:
        """Set velocity from (x, y, z) or a 3-element array."""
        self._velocity = _coerce(args, 3, "velocity")

    def set_gyro_bias(self, *args) -> None:
        """Set gyroscope bias from (x, y, z) or a 3-element array."""
        self._gyro_bias = _coerce(args, 3, "gyro_bias")

    def set_accel_bias(self, *args) -> None:
        """Set accelerometer bias from (x, y, z) or a 3-element array."""
        self._accel_bias = _coerce(args, 3, "accel_bias")

    # ------------------------------------------------------------------
    # Optimizer variables
    # ------------------------------------------------------------------

    def _value_of(self, kind: VariableKind) -> np.ndarray:
        values = {
            VariableKind.ORIENTATION: self._orientation,
            VariableKind.POSITION: self._position,
            VariableKind.VELOCITY: self._velocity,
            VariableKind.GYRO_BIAS: self._gyro_bias,
            VariableKind.ACCEL_BIAS: self._accel_bias,
        }
        return values[kind]

    def variable(self, kind: VariableKind) -> Variable:
        """Snapshot of one optimizer variable of this state."""
        return Variable.create(kind, self._source, self._timestamp_ns, self._value_of(kind))

    @property
    def orientation_variable(self) -> Variable:
        return self.variable(VariableKind.ORIENTATION)

    @property
    def position_variable(self) -> Variable:
        return self.variable(VariableKind.POSITION)

    @property
    def velocity_variable(self) -> Variable:
        return self.variable(VariableKind.VELOCITY)

    @property
    def gyro_bias_variable(self) -> Variable:
        return self.variable(VariableKind.GYRO_BIAS)

    @property
    def accel_bias_variable(self) -> Variable:
        return self.variable(VariableKind.ACCEL_BIAS)

    def variables(self) -> list[Variable]:
        """All five variables in constraint order."""
        return [self.variable(kind) for kind in STATE_KINDS]

    def uuids(self) -> list[UUID]:
        """Identities of the five variables in constraint order."""
        return [var.uuid for var in self.variables()]

    def as_vector(self) -> np.ndarray:
        """State as the 16-vector [q, p, v, bg, ba]."""
        return np.concatenate([self._value_of(kind) for kind in STATE_KINDS])

    def update(self, solution: Solution) -> bool:
        """Overwrite this state with values from an optimizer solution.

        Args:
            solution: Mapping from variable identity to solved value

        Returns:
            True if all five variables were found and applied; False (with the
            state left untouched) otherwise
        """
        uuids = self.uuids()
        if not all(uid in solution for uid in uuids):
            return False

        values = [np.asarray(solution[uid], dtype=np.float64) for uid in uuids]
        orientation = quat_normalize(values[0])
        position, velocity, gyro_bias, accel_bias = (
            _coerce((v,), 3, kind.label) for v, kind in zip(values[1:], STATE_KINDS[1:])
        )

        self._orientation = orientation
        self._position = position
        self._velocity = velocity
        self._gyro_bias = gyro_bias
        self._accel_bias = accel_bias
        self._updates += 1
        return True

    # ------------------------------------------------------------------
    # Convenience
    # ------------------------------------------------------------------

    def to_pose(self) -> SE3:
        """Pose T_WORLD_IMU."""
        return SE3(rotation=self.rotation, translation=self._position)

    def copy(self) -> ImuState:
        """Independent copy, including the update counter."""
        other = ImuState(
            self._timestamp_ns,
            orientation=self._orientation,
            position=self._position,
            velocity=self._velocity,
            gyro_bias=self._gyro_bias,
            accel_bias=self._accel_bias,
            source=self._source,
        )
        other._updates = self._updates
        return other

    def describe(self) -> str:
        """Multi-line human readable summary."""
        fmt = np.array2string
        return "\n".join([
            f"ImuState at {self.timestamp:.9f} s ({self._source}):",
            f"  updates:     {self._updates}",
            f"  orientation: {fmt(self._orientation, precision=6)}",
            f"  position:    {fmt(self._position, precision=6)}",
            f"  velocity:    {fmt(self._velocity, precision=6)}",
            f"  gyro bias:   {fmt(self._gyro_bias, precision=6)}",
            f"  accel bias:  {fmt(self._accel_bias, precision=6)}",
        ])

    def __repr__(self) -> str:
        """Return string representation."""
        p = self._position
        return (
            f"ImuState(t={self.timestamp:.3f}, "
            f"position=[{p[0]:.3f}, {p[1]:.3f}, {p[2]:.3f}], updates={self._updates})"
        )
