"""Synthetic trajectories with exact IMU measurements."""

from .synthetic import SyntheticTrajectory

__all__ = ["SyntheticTrajectory"]
