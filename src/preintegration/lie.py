"""Rotation helpers on SO(3) and unit quaternions.

Quaternions are Hamilton, scalar first ``[w, x, y, z]``. Rotation vectors
(axis * angle) live in the tangent space so(3).
"""

from __future__ import annotations

import cv2
import numpy as np
from scipy.spatial.transform import Rotation

from .errors import NumericalError

_SMALL_ANGLE = 1e-10


def skew(v: np.ndarray) -> np.ndarray:
    """Create skew-symmetric matrix from vector.

    Args:
        v: 3D vector

    Returns:
        3x3 skew-symmetric matrix [v]x
    """
    return np.array([
        [0.0, -v[2], v[1]],
        [v[2], 0.0, -v[0]],
        [-v[1], v[0], 0.0],
    ])


def exp_so3(phi: np.ndarray) -> np.ndarray:
    """Exponential map from so(3) to SO(3) (Rodrigues formula).

    Args:
        phi: Rotation vector (3,)

    Returns:
        3x3 rotation matrix
    """
    phi = np.asarray(phi, dtype=np.float64)
    theta = np.linalg.norm(phi)
    if theta < _SMALL_ANGLE:
        # First-order approximation for small angles: R ≈ I + [phi]x
        return np.eye(3) + skew(phi)

    K = skew(phi / theta)
    return np.eye(3) + np.sin(theta) * K + (1 - np.cos(theta)) * (K @ K)


def log_so3(R: np.ndarray) -> np.ndarray:
    """Logarithm map from SO(3) to so(3).

    Args:
        R: 3x3 rotation matrix

    Returns:
        Rotation vector (3,)
    """
    rvec, _ = cv2.Rodrigues(np.ascontiguousarray(R, dtype=np.float64))
    return rvec.flatten()


def right_jacobian_so3(phi: np.ndarray) -> np.ndarray:
    """Right Jacobian of SO(3).

    Maps a perturbation of the rotation vector to the induced right
    perturbation of the rotation: Exp(phi + d) ≈ Exp(phi) Exp(Jr(phi) d).
    """
    phi = np.asarray(phi, dtype=np.float64)
    theta = np.linalg.norm(phi)
    K = skew(phi)
    if theta < 1e-6:
        return np.eye(3) - 0.5 * K
    theta2 = theta * theta
    return (
        np.eye(3)
        - (1 - np.cos(theta)) / theta2 * K
        + (theta - np.sin(theta)) / (theta2 * theta) * (K @ K)
    )


def quat_normalize(q: np.ndarray) -> np.ndarray:
    """Return ``q`` scaled to unit norm.

    Raises:
        NumericalError: If ``q`` is non-finite or has (near) zero norm
    """
    q = np.asarray(q, dtype=np.float64).flatten()
    if q.shape != (4,):
        raise ValueError(f"Quaternion must have 4 components, got {q.shape}")
    norm = np.linalg.norm(q)
    if not np.isfinite(norm) or norm < 1e-12:
        raise NumericalError(f"Cannot normalize quaternion {q}")
    return q / norm


def quat_multiply(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    """Hamilton product a ⊗ b."""
    aw, ax, ay, az = a
    bw, bx, by, bz = b
    return np.array([
        aw * bw - ax * bx - ay * by - az * bz,
        aw * bx + ax * bw + ay * bz - az * by,
        aw * by - ax * bz + ay * bw + az * bx,
        aw * bz + ax * by - ay * bx + az * bw,
    ])


def quat_conjugate(q: np.ndarray) -> np.ndarray:
    """Conjugate (inverse for unit quaternions)."""
    return np.array([q[0], -q[1], -q[2], -q[3]], dtype=np.float64)


def quat_exp(phi: np.ndarray) -> np.ndarray:
    """Unit quaternion for the rotation vector ``phi``."""
    phi = np.asarray(phi, dtype=np.float64)
    theta = np.linalg.norm(phi)
    if theta < _SMALL_ANGLE:
        q = np.array([1.0, 0.5 * phi[0], 0.5 * phi[1], 0.5 * phi[2]])
        return q / np.linalg.norm(q)
    half = 0.5 * theta
    xyz = np.sin(half) / theta * phi
    return np.array([np.cos(half), xyz[0], xyz[1], xyz[2]])


def quat_to_rotation(q: np.ndarray) -> np.ndarray:
    """Convert a quaternion [w, x, y, z] to a 3x3 rotation matrix."""
    qw, qx, qy, qz = quat_normalize(q)
    return np.array(
        [
            [
                1 - 2 * qy * qy - 2 * qz * qz,
                2 * qx * qy - 2 * qz * qw,
                2 * qx * qz + 2 * qy * qw,
            ],
            [
                2 * qx * qy + 2 * qz * qw,
                1 - 2 * qx * qx - 2 * qz * qz,
                2 * qy * qz - 2 * qx * qw,
            ],
            [
                2 * qx * qz - 2 * qy * qw,
                2 * qy * qz + 2 * qx * qw,
                1 - 2 * qx * qx - 2 * qy * qy,
            ],
        ],
        dtype=np.float64,
    )


def rotation_to_quat(R: np.ndarray) -> np.ndarray:
    """Convert a rotation matrix to a quaternion [w, x, y, z] with w >= 0."""
    x, y, z, w = Rotation.from_matrix(np.asarray(R, dtype=np.float64)).as_quat()
    q = np.array([w, x, y, z])
    if q[0] < 0:
        q = -q
    return q


def canonical_quat(q: np.ndarray) -> np.ndarray:
    """Return the representative of ``±q`` with a non-negative scalar part."""
    q = quat_normalize(q)
    return -q if q[0] < 0 else q
