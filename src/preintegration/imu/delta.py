"""Preintegrated relative motion between two timestamps."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from ..backend.variables import STATE_SIZE, STATE_TANGENT_SIZE
from ..lie import quat_exp, quat_multiply, quat_normalize

# Row blocks of the error state [dtheta, dp, dv, dbg, dba]
ROT = slice(0, 3)
POS = slice(3, 6)
VEL = slice(6, 9)
BG = slice(9, 12)
BA = slice(12, 15)


def _readonly(value: np.ndarray, shape: tuple[int, ...], name: str) -> np.ndarray:
    arr = np.array(value, dtype=np.float64)
    if arr.shape != shape:
        raise ValueError(f"{name} must have shape {shape}, got {arr.shape}")
    arr.setflags(write=False)
    return arr


def initial_bias_jacobian() -> np.ndarray:
    """Jacobian of the error state w.r.t. the bias correction at interval start."""
    J = np.zeros((STATE_TANGENT_SIZE, 6))
    J[BG, 0:3] = np.eye(3)
    J[BA, 3:6] = np.eye(3)
    return J


@dataclass(frozen=True, eq=False)
class ImuDelta:
    """Relative motion accumulated over a contiguous run of samples.

    The delta is expressed in the IMU frame at ``start_ns`` and excludes
    gravity, so it can be applied to any base state by ``predict_state``.
    Biases are those used for integration; ``jacobian_bias`` gives the
    first-order sensitivity of [dtheta, dp, dv] to changes in them
    (columns 0:3 gyro bias, 3:6 accel bias).

    Attributes:
        start_ns: Interval start in nanoseconds
        end_ns: Interval end in nanoseconds
        delta_q: Relative rotation quaternion [w, x, y, z]
        delta_p: Relative translation
        delta_v: Relative velocity change
        covariance: 15x15 covariance of [dtheta, dp, dv, dbg, dba]
        jacobian_bias: 15x6 sensitivity to the bias linearization point
        gyro_bias: Gyroscope bias used for integration
        accel_bias: Accelerometer bias used for integration
        num_samples: Number of samples integrated
    """

    start_ns: int
    end_ns: int
    delta_q: np.ndarray
    delta_p: np.ndarray
    delta_v: np.ndarray
    covariance: np.ndarray
    jacobian_bias: np.ndarray
    gyro_bias: np.ndarray
    accel_bias: np.ndarray
    num_samples: int = 0

    def __post_init__(self) -> None:
        """Copy arrays and check shapes."""
        if self.end_ns < self.start_ns:
            raise ValueError(f"Delta ends ({self.end_ns}) before it starts ({self.start_ns})")
        object.__setattr__(self, "start_ns", int(self.start_ns))
        object.__setattr__(self, "end_ns", int(self.end_ns))
        object.__setattr__(
            self, "delta_q", _readonly(quat_normalize(self.delta_q), (4,), "delta_q")
        )
        for name, shape in (
            ("delta_p", (3,)),
            ("delta_v", (3,)),
            ("covariance", (STATE_TANGENT_SIZE, STATE_TANGENT_SIZE)),
            ("jacobian_bias", (STATE_TANGENT_SIZE, 6)),
            ("gyro_bias", (3,)),
            ("accel_bias", (3,)),
        ):
            object.__setattr__(self, name, _readonly(getattr(self, name), shape, name))

    @classmethod
    def identity(
        cls,
        start_ns: int,
        gyro_bias: np.ndarray | None = None,
        accel_bias: np.ndarray | None = None,
    ) -> ImuDelta:
        """Zero-length delta: no motion, zero covariance."""
        return cls(
            start_ns=start_ns,
            end_ns=start_ns,
            delta_q=np.array([1.0, 0.0, 0.0, 0.0]),
            delta_p=np.zeros(3),
            delta_v=np.zeros(3),
            covariance=np.zeros((STATE_TANGENT_SIZE, STATE_TANGENT_SIZE)),
            jacobian_bias=initial_bias_jacobian(),
            gyro_bias=np.zeros(3) if gyro_bias is None else gyro_bias,
            accel_bias=np.zeros(3) if accel_bias is None else accel_bias,
        )

    @property
    def duration_ns(self) -> int:
        """Interval length in nanoseconds."""
        return self.end_ns - self.start_ns

    @property
    def dt(self) -> float:
        """Interval length in seconds."""
        return self.duration_ns * 1e-9

    @property
    def dq_dbg(self) -> np.ndarray:
        return self.jacobian_bias[ROT, 0:3]

    @property
    def dp_dbg(self) -> np.ndarray:
        return self.jacobian_bias[POS, 0:3]

    @property
    def dp_dba(self) -> np.ndarray:
        return self.jacobian_bias[POS, 3:6]

    @property
    def dv_dbg(self) -> np.ndarray:
        return self.jacobian_bias[VEL, 0:3]

    @property
    def dv_dba(self) -> np.ndarray:
        return self.jacobian_bias[VEL, 3:6]

    def corrected(self, gyro_bias: np.ndarray, accel_bias: np.ndarray) -> ImuDelta:
        """Repair the delta for new bias estimates without re-integrating.

        Applies the first-order correction

            dq' = dq ⊗ Exp(J_q_bg δbg)
            dp' = dp + J_p_bg δbg + J_p_ba δba
            dv' = dv + J_v_bg δbg + J_v_ba δba

        where δb is the difference between the new biases and the ones the
        delta was integrated with.

        Returns:
            New delta linearized at the given biases (``self`` if unchanged)
        """
        gyro_bias = np.asarray(gyro_bias, dtype=np.float64).flatten()
        accel_bias = np.asarray(accel_bias, dtype=np.float64).flatten()
        db = np.concatenate([gyro_bias - self.gyro_bias, accel_bias - self.accel_bias])
        if not np.any(db):
            return self

        J = self.jacobian_bias
        delta_q = quat_multiply(self.delta_q, quat_exp(J[ROT] @ db))
        return ImuDelta(
            start_ns=self.start_ns,
            end_ns=self.end_ns,
            delta_q=delta_q,
            delta_p=self.delta_p + J[POS] @ db,
            delta_v=self.delta_v + J[VEL] @ db,
            covariance=self.covariance,
            jacobian_bias=self.jacobian_bias,
            gyro_bias=gyro_bias,
            accel_bias=accel_bias,
            num_samples=self.num_samples,
        )

    def mean(self) -> np.ndarray:
        """16-d constraint mean [dq, dp, dv, dbg, dba]; bias deltas are zero."""
        mean = np.zeros(STATE_SIZE)
        mean[0:4] = self.delta_q
        mean[4:7] = self.delta_p
        mean[7:10] = self.delta_v
        return mean

    def __repr__(self) -> str:
        """Return string representation."""
        return (
            f"ImuDelta(dt={self.dt:.3f}s, samples={self.num_samples}, "
            f"dp=[{self.delta_p[0]:.3f}, {self.delta_p[1]:.3f}, {self.delta_p[2]:.3f}])"
        )
