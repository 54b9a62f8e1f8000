"""Quaternion and TRS helpers (xyzw convention, column-vector matrices)."""

import logging

import numpy as np

log = logging.getLogger(__name__)

IDENTITY_QUAT_XYZW = (0.0, 0.0, 0.0, 1.0)


def normalize_quaternion(q) -> np.ndarray:
    """Scale an xyzw quaternion to unit length.

    Component-wise curve evaluation does not keep quaternions on the unit
    sphere, and a non-unit rotation turns into shear/scale once composed into
    a matrix. A zero quaternion carries no rotation at all and maps to
    identity.
    """
    q = np.asarray(q, dtype=np.float64)
    norm = np.sqrt((q ** 2).sum())
    if norm == 0.0 or not np.isfinite(norm):
        log.warning(f"Degenerate quaternion {q.tolist()}, using identity")
        return np.array(IDENTITY_QUAT_XYZW, dtype=np.float64)
    return q / norm


def quat_xyzw_to_mat3(q) -> np.ndarray:
    """Convert a unit quaternion (xyzw) to a 3x3 rotation matrix."""
    x, y, z, w = q
    return np.array([
        [1 - 2*(y*y + z*z), 2*(x*y - w*z),     2*(x*z + w*y)],
        [2*(x*y + w*z),     1 - 2*(x*x + z*z), 2*(y*z - w*x)],
        [2*(x*z - w*y),     2*(y*z + w*x),     1 - 2*(x*x + y*y)],
    ], dtype=np.float64)


def trs_to_mat4(t, r_xyzw, s=(1.0, 1.0, 1.0)) -> np.ndarray:
    """Build a 4x4 matrix from translation, rotation (xyzw), scale.

    The result is T * R * S, translation in the last column.
    """
    m = np.eye(4, dtype=np.float64)
    m[:3, :3] = quat_xyzw_to_mat3(r_xyzw) * np.asarray(s, dtype=np.float64)
    m[:3, 3] = t
    return m


def rigid_matrix(translation, rotation_xyzw) -> np.ndarray:
    """Local bone matrix: normalized rotation, given translation, unit scale."""
    return trs_to_mat4(translation, normalize_quaternion(rotation_xyzw))


def to_column_major(matrices: np.ndarray) -> np.ndarray:
    """Flatten (..., 4, 4) row-major matrices into (..., 16) column-major rows."""
    m = np.asarray(matrices)
    return np.swapaxes(m, -1, -2).reshape(m.shape[:-2] + (16,))


def from_column_major(flat) -> np.ndarray:
    """Inverse of :func:`to_column_major` for (..., 16) input."""
    flat = np.asarray(flat, dtype=np.float64)
    return np.swapaxes(flat.reshape(flat.shape[:-1] + (4, 4)), -1, -2)
