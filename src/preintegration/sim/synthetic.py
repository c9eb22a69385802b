"""Analytic trajectory with exact IMU measurements and ground-truth deltas.

The body rotates at a constant rate about a fixed axis while translating
along a sum of sinusoids, so orientation, velocity and acceleration are
known in closed form at any time. Accelerometer readings follow the
specific-force model

    f_b = R_WORLD_IMUᵀ (a_world - g_world)

i.e. a resting IMU reads +g along its up axis.
"""

from __future__ import annotations

import numpy as np

from ..backend.variables import STATE_TANGENT_SIZE
from ..config import DEFAULT_SOURCE
from ..imu.delta import ImuDelta, initial_bias_jacobian
from ..imu.sample import ImuSample
from ..imu.state import ImuState
from ..lie import quat_conjugate, quat_exp, quat_multiply, quat_normalize, quat_to_rotation
from ..pose import SE3


class SyntheticTrajectory:
    """Smooth ground-truth trajectory for testing and demos.

    Orientation: q(t) = q0 ⊗ Exp(ω_b t), with constant body rate ω_b.
    Position:    p(t) = p0 + A ∘ sin(w t + φ), element-wise per axis.

    Example usage:
        traj = SyntheticTrajectory()
        samples = traj.generate_samples(0, 20 * 10**9, rate_hz=100.0)
        truth = traj.state(10**9)
    """

    def __init__(
        self,
        angular_velocity: np.ndarray | None = None,
        amplitude: np.ndarray | None = None,
        frequency: np.ndarray | None = None,
        phase: np.ndarray | None = None,
        initial_orientation: np.ndarray | None = None,
        initial_position: np.ndarray | None = None,
        gravity_magnitude: float = 9.81,
        start_ns: int = 0,
    ) -> None:
        """Initialize trajectory.

        Args:
            angular_velocity: Constant body rate in rad/s
            amplitude: Per-axis amplitude of the translation (m)
            frequency: Per-axis angular frequency of the translation (rad/s)
            phase: Per-axis phase of the translation (rad)
            initial_orientation: q_WORLD_IMU at ``start_ns`` [w, x, y, z]
            initial_position: Offset of the translation (m)
            gravity_magnitude: Gravity along -z (m/s²)
            start_ns: Time origin of the trajectory in nanoseconds
        """
        def vec(value: np.ndarray | None, default: list[float]) -> np.ndarray:
            return np.array(default if value is None else value, dtype=np.float64).flatten()

        self._omega = vec(angular_velocity, [0.05, -0.03, 0.2])
        self._amplitude = vec(amplitude, [1.0, 0.8, 0.5])
        self._frequency = vec(frequency, [0.3, 0.25, 0.2])
        self._phase = vec(phase, [0.0, 0.5, 1.0])
        self._q0 = quat_normalize(vec(initial_orientation, [1.0, 0.0, 0.0, 0.0]))
        self._p0 = vec(initial_position, [0.0, 0.0, 0.0])
        self._gravity = np.array([0.0, 0.0, -gravity_magnitude])
        self._start_ns = int(start_ns)

    def _seconds(self, timestamp_ns: int | float) -> float:
        return (timestamp_ns - self._start_ns) * 1e-9

    @property
    def gravity(self) -> np.ndarray:
        """Gravity vector in the world frame."""
        return self._gravity.copy()

    # ------------------------------------------------------------------
    # Closed-form kinematics
    # ------------------------------------------------------------------

    def orientation(self, timestamp_ns: int | float) -> np.ndarray:
        """q_WORLD_IMU [w, x, y, z]."""
        t = self._seconds(timestamp_ns)
        return quat_normalize(quat_multiply(self._q0, quat_exp(self._omega * t)))

    def rotation(self, timestamp_ns: int | float) -> np.ndarray:
        """R_WORLD_IMU."""
        return quat_to_rotation(self.orientation(timestamp_ns))

    def position(self, timestamp_ns: int | float) -> np.ndarray:
        """Position in the world frame."""
        t = self._seconds(timestamp_ns)
        return self._p0 + self._amplitude * np.sin(self._frequency * t + self._phase)

    def velocity(self, timestamp_ns: int | float) -> np.ndarray:
        """Velocity in the world frame."""
        t = self._seconds(timestamp_ns)
        return self._amplitude * self._frequency * np.cos(self._frequency * t + self._phase)

    def acceleration(self, timestamp_ns: int | float) -> np.ndarray:
        """Kinematic acceleration in the world frame (gravity excluded)."""
        t = self._seconds(timestamp_ns)
        w = self._frequency
        return -self._amplitude * w * w * np.sin(w * t + self._phase)

    def angular_velocity_body(self, timestamp_ns: int | float) -> np.ndarray:
        """Body-frame angular velocity (constant)."""
        return self._omega.copy()

    def specific_force_body(self, timestamp_ns: int | float) -> np.ndarray:
        """Ideal accelerometer reading f_b = Rᵀ (a - g)."""
        R = self.rotation(timestamp_ns)
        return R.T @ (self.acceleration(timestamp_ns) - self._gravity)

    def state(self, timestamp_ns: int, source: str = DEFAULT_SOURCE) -> ImuState:
        """Ground-truth state with zero biases."""
        return ImuState(
            timestamp_ns,
            orientation=self.orientation(timestamp_ns),
            position=self.position(timestamp_ns),
            velocity=self.velocity(timestamp_ns),
            source=source,
        )

    def pose(self, timestamp_ns: int) -> SE3:
        """Ground-truth T_WORLD_IMU."""
        return SE3(rotation=self.rotation(timestamp_ns), translation=self.position(timestamp_ns))

    # ------------------------------------------------------------------
    # Measurements
    # ------------------------------------------------------------------

    def relative_delta(self, start_ns: int, end_ns: int) -> ImuDelta:
        """Exact preintegrated delta between two times.

        Inverts the prediction equations, so applying the result to the
        ground-truth state at ``start_ns`` reproduces the state at ``end_ns``:

            dq = q_iᴴ ⊗ q_j
            dv = R_iᵀ (v_j - v_i - g dt)
            dp = R_iᵀ (p_j - p_i - v_i dt - ½ g dt²)
        """
        dt = (end_ns - start_ns) * 1e-9
        q_i = self.orientation(start_ns)
        R_i = quat_to_rotation(q_i)
        p_i, v_i = self.position(start_ns), self.velocity(start_ns)
        p_j, v_j = self.position(end_ns), self.velocity(end_ns)
        g = self._gravity

        return ImuDelta(
            start_ns=start_ns,
            end_ns=end_ns,
            delta_q=quat_multiply(quat_conjugate(q_i), self.orientation(end_ns)),
            delta_p=R_i.T @ (p_j - p_i - v_i * dt - 0.5 * g * dt * dt),
            delta_v=R_i.T @ (v_j - v_i - g * dt),
            covariance=np.zeros((STATE_TANGENT_SIZE, STATE_TANGENT_SIZE)),
            jacobian_bias=initial_bias_jacobian(),
            gyro_bias=np.zeros(3),
            accel_bias=np.zeros(3),
        )

    def generate_samples(
        self,
        start_ns: int,
        end_ns: int,
        rate_hz: float = 100.0,
        gyro_bias: np.ndarray | None = None,
        accel_bias: np.ndarray | None = None,
    ) -> list[ImuSample]:
        """Noise-free samples on a regular grid over [start_ns, end_ns].

        Each sample holds the rates at the midpoint of the interval it
        covers under zero-order hold, which makes the integrated rotation
        exact for this trajectory.

        Args:
            start_ns: First sample time
            end_ns: Last sample time (included if on the grid)
            rate_hz: Sampling rate
            gyro_bias: Constant bias added to the gyroscope readings
            accel_bias: Constant bias added to the accelerometer readings

        Returns:
            Samples in chronological order
        """
        period_ns = int(round(1e9 / rate_hz))
        if period_ns <= 0:
            raise ValueError(f"rate_hz too high: {rate_hz}")
        bg = np.zeros(3) if gyro_bias is None else np.asarray(gyro_bias, dtype=np.float64)
        ba = np.zeros(3) if accel_bias is None else np.asarray(accel_bias, dtype=np.float64)

        samples = []
        for t in range(int(start_ns), int(end_ns) + 1, period_ns):
            t_mid = t + 0.5 * period_ns
            samples.append(
                ImuSample(
                    timestamp_ns=t,
                    angular_velocity=self.angular_velocity_body(t_mid) + bg,
                    linear_acceleration=self.specific_force_body(t_mid) + ba,
                )
            )
        return samples
