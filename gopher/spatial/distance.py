"""
点-三角形距離計算モジュール

点から三角形群への最近接点を完全ベクトル化で計算します。
ボロノイ領域判定（頂点・エッジ・面）を配列演算で一括処理し、
退化三角形はエッジ線分への投影で扱います。
"""

from typing import Tuple
import numpy as np

from ..constants import DISTANCE_EPSILON
from ..data_types import ArrayLike, MeshTopologyError, as_point
from ..mesh.dmesh import DynamicMesh
from .. import get_logger

logger = get_logger(__name__)


def closest_points_on_triangles(
    point: np.ndarray,
    v0: np.ndarray,
    v1: np.ndarray,
    v2: np.ndarray
) -> Tuple[np.ndarray, np.ndarray]:
    """
    点から各三角形への最近接点を計算

    Args:
        point: 検査点 (3,)
        v0, v1, v2: 三角形の頂点 (M, 3)

    Returns:
        (最近接点 (M, 3), 距離の二乗 (M,))
    """
    p = np.asarray(point, dtype=np.float64)
    ab = v1 - v0
    ac = v2 - v0
    ap = p - v0
    bp = p - v1
    cp = p - v2

    d1 = np.einsum('ij,ij->i', ab, ap)
    d2 = np.einsum('ij,ij->i', ac, ap)
    d3 = np.einsum('ij,ij->i', ab, bp)
    d4 = np.einsum('ij,ij->i', ac, bp)
    d5 = np.einsum('ij,ij->i', ab, cp)
    d6 = np.einsum('ij,ij->i', ac, cp)

    va = d3 * d6 - d5 * d4
    vb = d5 * d2 - d1 * d6
    vc = d1 * d4 - d3 * d2

    with np.errstate(divide='ignore', invalid='ignore'):
        # 面内部（デフォルト）
        denom = 1.0 / (va + vb + vc)
        v = vb * denom
        w = vc * denom
        closest = v0 + ab * v[:, None] + ac * w[:, None]

        # 優先度の低い領域から順に上書き
        bc_mask = (va <= 0.0) & ((d4 - d3) >= 0.0) & ((d5 - d6) >= 0.0)
        t_bc = (d4 - d3) / ((d4 - d3) + (d5 - d6))
        closest = np.where(bc_mask[:, None], v1 + (v2 - v1) * t_bc[:, None], closest)

        ac_mask = (vb <= 0.0) & (d2 >= 0.0) & (d6 <= 0.0)
        t_ac = d2 / (d2 - d6)
        closest = np.where(ac_mask[:, None], v0 + ac * t_ac[:, None], closest)

        c_mask = (d6 >= 0.0) & (d5 <= d6)
        closest = np.where(c_mask[:, None], v2, closest)

        ab_mask = (vc <= 0.0) & (d1 >= 0.0) & (d3 <= 0.0)
        t_ab = d1 / (d1 - d3)
        closest = np.where(ab_mask[:, None], v0 + ab * t_ab[:, None], closest)

        b_mask = (d3 >= 0.0) & (d4 <= d3)
        closest = np.where(b_mask[:, None], v1, closest)

        a_mask = (d1 <= 0.0) & (d2 <= 0.0)
        closest = np.where(a_mask[:, None], v0, closest)

    # 退化三角形: 3辺への投影の最近点
    bad = ~np.all(np.isfinite(closest), axis=1)
    if np.any(bad):
        closest[bad] = _closest_on_edges(p, v0[bad], v1[bad], v2[bad])

    diff = closest - p
    return closest, np.einsum('ij,ij->i', diff, diff)


def _closest_on_segment(p: np.ndarray, a: np.ndarray, b: np.ndarray) -> np.ndarray:
    ab = b - a
    length_sq = np.maximum(np.einsum('ij,ij->i', ab, ab), DISTANCE_EPSILON)
    t = np.clip(np.einsum('ij,ij->i', p - a, ab) / length_sq, 0.0, 1.0)
    return a + ab * t[:, None]


def _closest_on_edges(p: np.ndarray, v0: np.ndarray, v1: np.ndarray, v2: np.ndarray) -> np.ndarray:
    candidates = np.stack([
        _closest_on_segment(p, v0, v1),
        _closest_on_segment(p, v1, v2),
        _closest_on_segment(p, v2, v0)
    ], axis=1)
    dist_sq = np.sum((candidates - p) ** 2, axis=2)
    best = np.argmin(dist_sq, axis=1)
    return candidates[np.arange(len(best)), best]


def point_triangle_distance(point: ArrayLike, triangle_vertices: ArrayLike) -> float:
    """
    点と単一三角形の最短距離

    Args:
        point: 検査点 (3,)
        triangle_vertices: 三角形頂点 (3, 3)

    Returns:
        最短距離
    """
    tri = np.asarray(triangle_vertices, dtype=np.float64).reshape(3, 3)
    _, dist_sq = closest_points_on_triangles(as_point(point), tri[None, 0], tri[None, 1], tri[None, 2])
    return float(np.sqrt(dist_sq[0]))


def find_nearest_triangle_linear(mesh: DynamicMesh, point: ArrayLike) -> int:
    """
    全三角形の線形探索で最近傍三角形を検索

    同距離の場合は最小の三角形IDを返します。

    Args:
        mesh: 検索対象メッシュ
        point: 検索点

    Returns:
        三角形ID
    """
    p = as_point(point)
    tids = mesh.triangle_indices()
    if not tids:
        raise MeshTopologyError("Mesh has no triangles")
    positions = mesh.positions()
    tris = np.array([mesh.get_triangle(t) for t in tids], dtype=np.int64)
    _, dist_sq = closest_points_on_triangles(
        p, positions[tris[:, 0]], positions[tris[:, 1]], positions[tris[:, 2]]
    )
    # argmin は最初の最小値（= 最小ID）を返す
    return tids[int(np.argmin(dist_sq))]
