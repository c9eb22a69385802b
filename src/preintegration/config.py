"""Configuration objects for the preintegration engine.

Both objects are immutable and passed explicitly into the engine at
construction. Noise values follow the EuRoC ``sensor.yaml`` convention of
continuous-time densities.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

import numpy as np
import yaml

from .errors import NumericalError
from .pose import SE3

DEFAULT_SOURCE = "IMU_PREINTEGRATION"

# EuRoC ADIS16448 values, used when a sensor.yaml omits a key
_EUROC_DEFAULTS = {
    "gyroscope_noise_density": 1.6968e-04,
    "gyroscope_random_walk": 1.9393e-05,
    "accelerometer_noise_density": 2.0000e-3,
    "accelerometer_random_walk": 3.0000e-3,
    "rate_hz": 200.0,
}


def _per_axis(value: float | np.ndarray, name: str) -> np.ndarray:
    arr = np.array(value, dtype=np.float64)
    if arr.ndim == 0:
        arr = np.full(3, float(arr))
    arr = arr.flatten()
    if arr.shape != (3,):
        raise ValueError(f"{name} must be a scalar or 3-vector, got shape {arr.shape}")
    if not np.all(np.isfinite(arr)) or np.any(arr < 0):
        raise ValueError(f"{name} must be finite and non-negative, got {arr}")
    arr.setflags(write=False)
    return arr


def _load_yaml(path: str | Path) -> dict[str, Any]:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Sensor file not found: {path}")
    with open(path, "r") as f:
        data = yaml.safe_load(f)
    if not isinstance(data, dict):
        raise ValueError(f"Invalid sensor file: {path}")
    return data


@dataclass(frozen=True, eq=False)
class ImuParams:
    """IMU noise model and engine settings.

    Attributes:
        gyro_noise_density: Gyroscope white noise (rad/s/√Hz), scalar or per axis
        accel_noise_density: Accelerometer white noise (m/s²/√Hz)
        gyro_random_walk: Gyroscope bias random walk (rad/s²/√Hz)
        accel_random_walk: Accelerometer bias random walk (m/s³/√Hz)
        gravity_magnitude: Magnitude of gravity (m/s²), applied along -z
        source: Tag used to derive variable identities
        prior_noise: Diagonal covariance of the absolute prior on an epoch start
        max_buffer_duration_s: Bound on the time span of buffered samples
        window_size: Number of registered states retained for solution updates
        lag_duration_s: States older than this behind the newest are evicted
        rate_hz: Nominal sample rate, informational
    """

    gyro_noise_density: float | np.ndarray = 1.6968e-04
    accel_noise_density: float | np.ndarray = 2.0000e-3
    gyro_random_walk: float | np.ndarray = 1.9393e-05
    accel_random_walk: float | np.ndarray = 3.0000e-3
    gravity_magnitude: float = 9.81
    source: str = DEFAULT_SOURCE
    prior_noise: float = 1e-9
    max_buffer_duration_s: float | None = None
    window_size: int = 10
    lag_duration_s: float | None = None
    rate_hz: float = 200.0

    def __post_init__(self) -> None:
        """Coerce densities to per-axis arrays and validate settings."""
        for name in (
            "gyro_noise_density",
            "accel_noise_density",
            "gyro_random_walk",
            "accel_random_walk",
        ):
            object.__setattr__(self, name, _per_axis(getattr(self, name), name))

        if not np.isfinite(self.gravity_magnitude) or self.gravity_magnitude <= 0:
            raise ValueError(f"gravity_magnitude must be positive, got {self.gravity_magnitude}")
        if self.prior_noise <= 0:
            raise ValueError(f"prior_noise must be positive, got {self.prior_noise}")
        if self.window_size < 2:
            raise ValueError(f"window_size must be at least 2, got {self.window_size}")
        if self.max_buffer_duration_s is not None and self.max_buffer_duration_s <= 0:
            raise ValueError("max_buffer_duration_s must be positive")
        if self.lag_duration_s is not None and self.lag_duration_s <= 0:
            raise ValueError("lag_duration_s must be positive")
        if not self.source:
            raise ValueError("source must be a non-empty string")

    @classmethod
    def zero_noise(cls, **overrides: Any) -> ImuParams:
        """Parameters with all noise densities set to zero."""
        values: dict[str, Any] = {
            "gyro_noise_density": 0.0,
            "accel_noise_density": 0.0,
            "gyro_random_walk": 0.0,
            "accel_random_walk": 0.0,
        }
        values.update(overrides)
        return cls(**values)

    @classmethod
    def from_yaml(cls, yaml_path: str | Path, **overrides: Any) -> ImuParams:
        """Load noise parameters from an EuRoC-style ``sensor.yaml``.

        Args:
            yaml_path: Path to sensor.yaml
            **overrides: Fields that take precedence over the file

        Returns:
            ImuParams

        Raises:
            FileNotFoundError: If file doesn't exist
            ValueError: If file format is invalid
        """
        data = _load_yaml(yaml_path)

        def get(key: str) -> Any:
            return data.get(key, _EUROC_DEFAULTS[key])

        values: dict[str, Any] = {
            "gyro_noise_density": get("gyroscope_noise_density"),
            "gyro_random_walk": get("gyroscope_random_walk"),
            "accel_noise_density": get("accelerometer_noise_density"),
            "accel_random_walk": get("accelerometer_random_walk"),
            "rate_hz": float(get("rate_hz")),
        }
        if "gravity_magnitude" in data:
            values["gravity_magnitude"] = float(data["gravity_magnitude"])
        if "source" in data:
            values["source"] = str(data["source"])
        values.update(overrides)
        return cls(**values)

    def with_updates(self, **changes: Any) -> ImuParams:
        """Return a copy with some fields replaced."""
        return replace(self, **changes)

    @property
    def gravity(self) -> np.ndarray:
        """Gravity vector in the world frame."""
        return np.array([0.0, 0.0, -self.gravity_magnitude])

    @property
    def is_noise_free(self) -> bool:
        """True if every noise density is zero."""
        return not any(
            np.any(v)
            for v in (
                self.gyro_noise_density,
                self.accel_noise_density,
                self.gyro_random_walk,
                self.accel_random_walk,
            )
        )

    def noise_covariance(self, dt: float) -> np.ndarray:
        """Discrete noise covariance for one integration step of ``dt`` seconds.

        Ordering is [gyro, accel, gyro bias walk, accel bias walk].

        Raises:
            NumericalError: If ``dt`` is not positive while noise is nonzero
        """
        if dt <= 0:
            if self.is_noise_free:
                return np.zeros((12, 12))
            raise NumericalError(
                f"Cannot discretize nonzero noise over a step of {dt} s"
            )
        diag = np.concatenate([
            self.gyro_noise_density**2 / dt,
            self.accel_noise_density**2 / dt,
            self.gyro_random_walk**2 * dt,
            self.accel_random_walk**2 * dt,
        ])
        return np.diag(diag)


@dataclass(frozen=True, eq=False)
class ImuExtrinsics:
    """Rigid transform between the IMU and the platform body frame.

    Attributes:
        T_body_imu: 4x4 transform mapping IMU-frame points into the body frame
        frame_id: Name of the IMU frame
    """

    T_body_imu: np.ndarray = field(default_factory=lambda: np.eye(4))
    frame_id: str = "imu"

    def __post_init__(self) -> None:
        """Validate the transform."""
        T = np.array(self.T_body_imu, dtype=np.float64)
        if T.shape != (4, 4):
            raise ValueError(f"T_body_imu must be 4x4, got {T.shape}")
        R = T[:3, :3]
        if not np.allclose(R @ R.T, np.eye(3), atol=1e-6):
            raise ValueError("T_body_imu rotation block is not orthonormal")
        T.setflags(write=False)
        object.__setattr__(self, "T_body_imu", T)

    @classmethod
    def from_yaml(cls, yaml_path: str | Path) -> ImuExtrinsics:
        """Load ``T_BS`` from an EuRoC ``sensor.yaml``; identity if absent."""
        data = _load_yaml(yaml_path)
        T_BS_data = (data.get("T_BS") or {}).get("data")
        if T_BS_data is None:
            return cls()
        if len(T_BS_data) != 16:
            raise ValueError(f"Invalid T_BS transform in {yaml_path}")
        return cls(
            T_body_imu=np.array(T_BS_data, dtype=np.float64).reshape(4, 4),
            frame_id=str(data.get("sensor_type", "imu")).lower(),
        )

    @property
    def imu_to_body(self) -> SE3:
        """T_BODY_IMU as an SE3."""
        return SE3.from_matrix(self.T_body_imu)

    @property
    def body_to_imu(self) -> SE3:
        """T_IMU_BODY as an SE3."""
        return self.imu_to_body.inverse()
