"""Mesh utility helpers.

Scaling, per-triangle normals, dihedral opening angles and edge-length
statistics shared by the constraint classifier, the pipeline and the
tests.
"""

from __future__ import annotations

from typing import Optional, Tuple
import math
import numpy as np

from ..data_types import ArrayLike, InvalidParameterError, as_point
from .dmesh import DynamicMesh


# ---------------------------------------------------------------------------
# Geometry helpers
# ---------------------------------------------------------------------------

def compute_triangle_normals(vertices: np.ndarray, triangles: np.ndarray) -> np.ndarray:
    """Compute per-triangle normals (unit length)."""
    v0 = vertices[triangles[:, 0]]
    v1 = vertices[triangles[:, 1]]
    v2 = vertices[triangles[:, 2]]
    normals = np.cross(v1 - v0, v2 - v0)
    norms = np.linalg.norm(normals, axis=1, keepdims=True) + 1e-12
    normals /= norms
    return normals


def scale_mesh(mesh: DynamicMesh, scale: ArrayLike, origin: Optional[ArrayLike] = None) -> DynamicMesh:
    """Scale every vertex of *mesh* in place about *origin* and return it.

    Parameters
    ----------
    scale
        Three positive per-axis factors.
    origin
        Fixed point of the transform; the world origin when omitted.
    """
    factors = np.asarray(scale, dtype=np.float64).reshape(-1)
    if factors.shape != (3,) or np.any(factors <= 0.0) or not np.all(np.isfinite(factors)):
        raise InvalidParameterError("scale", tuple(np.atleast_1d(scale)), "expected three positive factors")
    center = np.zeros(3) if origin is None else as_point(origin)
    for vid in mesh.vertex_indices():
        mesh.set_vertex(vid, center + (mesh.get_vertex(vid) - center) * factors)
    return mesh


def opening_angle_deg(mesh: DynamicMesh, a: int, b: int) -> float:
    """Angle in degrees between the normals of the two triangles sharing edge a-b.

    Boundary edges have no second triangle and report ``math.inf``.
    """
    tris = mesh.edge_triangles(a, b)
    if len(tris) != 2:
        return math.inf
    n0 = mesh.triangle_normal(tris[0])
    n1 = mesh.triangle_normal(tris[1])
    cos_angle = float(np.clip(np.dot(n0, n1), -1.0, 1.0))
    return math.degrees(math.acos(cos_angle))


def edge_lengths(mesh: DynamicMesh) -> np.ndarray:
    """Lengths of all edges in sorted edge-key order."""
    keys = mesh.edges()
    if not keys:
        return np.zeros(0)
    pairs = np.asarray(keys, dtype=np.int64)
    positions = mesh.positions()
    return np.linalg.norm(positions[pairs[:, 0]] - positions[pairs[:, 1]], axis=1)


def edge_length_range(mesh: DynamicMesh) -> Tuple[float, float]:
    """Return ``(shortest, longest)`` edge length of *mesh*."""
    lengths = edge_lengths(mesh)
    if lengths.size == 0:
        return 0.0, 0.0
    return float(lengths.min()), float(lengths.max())
