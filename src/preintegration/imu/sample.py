"""Raw inertial sample."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np


def _frozen_vector(value: np.ndarray, name: str) -> np.ndarray:
    arr = np.array(value, dtype=np.float64).flatten()
    if arr.shape != (3,):
        raise ValueError(f"{name} must be (3,), got {arr.shape}")
    arr.setflags(write=False)
    return arr


@dataclass(frozen=True, eq=False)
class ImuSample:
    """Single IMU measurement at a given timestamp.

    A sample is treated as a zero-order hold: its values apply from its
    timestamp until the timestamp of the next sample.

    Attributes:
        timestamp_ns: Measurement timestamp in nanoseconds
        angular_velocity: Angular velocity (wx, wy, wz) in rad/s
        linear_acceleration: Specific force (ax, ay, az) in m/s²
    """

    timestamp_ns: int
    angular_velocity: np.ndarray  # (3,) rad/s
    linear_acceleration: np.ndarray  # (3,) m/s²

    def __post_init__(self) -> None:
        """Copy arrays into read-only (3,) vectors."""
        object.__setattr__(self, "timestamp_ns", int(self.timestamp_ns))
        object.__setattr__(
            self, "angular_velocity",
            _frozen_vector(self.angular_velocity, "angular_velocity"),
        )
        object.__setattr__(
            self, "linear_acceleration",
            _frozen_vector(self.linear_acceleration, "linear_acceleration"),
        )

    @property
    def timestamp(self) -> float:
        """Timestamp in seconds."""
        return self.timestamp_ns * 1e-9

    @property
    def is_finite(self) -> bool:
        """True if every component is finite."""
        return bool(
            np.all(np.isfinite(self.angular_velocity))
            and np.all(np.isfinite(self.linear_acceleration))
        )
