"""I/O utilities for IMU datasets and trajectories."""

from .imu_reader import ImuReader
from .trajectory import TrajectoryWriter, load_trajectory

__all__ = [
    "ImuReader",
    "TrajectoryWriter",
    "load_trajectory",
]
