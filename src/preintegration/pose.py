"""SE(3) pose representation for rigid body transformations."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from .lie import quat_to_rotation, rotation_to_quat


@dataclass
class SE3:
    """Rigid body transformation (rotation + translation) in SE(3).

    Poses returned by the preintegration engine are T_WORLD_IMU (or
    T_WORLD_BODY): they map points from the sensor frame to the world frame:

        p_world = R @ p_sensor + t

    Attributes:
        rotation: 3x3 orthonormal rotation matrix (det = +1)
        translation: 3D translation vector
    """

    rotation: np.ndarray  # 3x3 rotation matrix
    translation: np.ndarray  # (3,) translation vector

    def __post_init__(self) -> None:
        """Validate and normalize inputs."""
        self.rotation = np.asarray(self.rotation, dtype=np.float64)
        self.translation = np.asarray(self.translation, dtype=np.float64).flatten()

        if self.rotation.shape != (3, 3):
            raise ValueError(f"Rotation must be 3x3, got {self.rotation.shape}")
        if self.translation.shape != (3,):
            raise ValueError(
                f"Translation must be (3,), got {self.translation.shape}"
            )

    @classmethod
    def identity(cls) -> SE3:
        """Create identity transformation (no rotation, no translation)."""
        return cls(rotation=np.eye(3), translation=np.zeros(3))

    @classmethod
    def from_matrix(cls, T: np.ndarray) -> SE3:
        """Create SE3 from 4x4 homogeneous transformation matrix.

        Args:
            T: 4x4 transformation matrix of the form:
               [[R  t]
                [0  1]]

        Returns:
            SE3 transformation
        """
        T = np.asarray(T)
        if T.shape != (4, 4):
            raise ValueError(f"Transform must be 4x4, got {T.shape}")

        return cls(rotation=T[:3, :3], translation=T[:3, 3])

    @classmethod
    def from_quaternion(cls, quaternion: np.ndarray, translation: np.ndarray) -> SE3:
        """Create SE3 from a Hamilton quaternion [w, x, y, z] and translation."""
        return cls(
            rotation=quat_to_rotation(quaternion),
            translation=np.asarray(translation).flatten(),
        )

    def to_matrix(self) -> np.ndarray:
        """Convert to 4x4 homogeneous transformation matrix [[R, t], [0, 1]]."""
        T = np.eye(4, dtype=np.float64)
        T[:3, :3] = self.rotation
        T[:3, 3] = self.translation
        return T

    def to_quaternion(self) -> np.ndarray:
        """Return the rotation as a quaternion [w, x, y, z] with w >= 0."""
        return rotation_to_quat(self.rotation)

    def inverse(self) -> SE3:
        """Compute the inverse transformation [R^T, -R^T @ t]."""
        R_inv = self.rotation.T
        return SE3(rotation=R_inv, translation=-R_inv @ self.translation)

    def compose(self, other: SE3) -> SE3:
        """Compose with another transformation: self @ other.

        Example:
            T_WORLD_IMU.compose(T_IMU_BODY) gives T_WORLD_BODY
        """
        R = self.rotation @ other.rotation
        t = self.rotation @ other.translation + self.translation
        return SE3(rotation=R, translation=t)

    def transform_point(self, point: np.ndarray) -> np.ndarray:
        """Transform a single point from the local frame to the world frame."""
        point = np.asarray(point).flatten()
        return self.rotation @ point + self.translation

    @property
    def position(self) -> np.ndarray:
        """Return the sensor origin in world coordinates."""
        return self.translation.copy()

    def __repr__(self) -> str:
        """Return string representation."""
        pos = self.position
        return f"SE3(position=[{pos[0]:.3f}, {pos[1]:.3f}, {pos[2]:.3f}])"

    def __matmul__(self, other: SE3) -> SE3:
        """Matrix multiplication operator for composition: T1 @ T2."""
        return self.compose(other)
