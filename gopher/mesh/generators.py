#!/usr/bin/env python3
"""
プリミティブメッシュ生成

単位寸法のキャップ付き円柱メッシュを生成する機能を提供します。
側面 → 底面キャップ → 上面キャップの順に三角形を並べ、
生成直後の向きは内向きです（make_capped_cylinder で外向きに反転）。
"""

import math
import time
from typing import List, Tuple
import numpy as np

from ..constants import DEFAULT_CYLINDER_SLICES, MIN_CYLINDER_SLICES
from ..data_types import InvalidParameterError
from .. import get_logger
from .dmesh import DynamicMesh

logger = get_logger(__name__)


class CappedCylinderGenerator:
    """キャップ付き円柱ジェネレータ"""

    def __init__(
        self,
        slices: int = DEFAULT_CYLINDER_SLICES,   # 周方向分割数
        no_shared_vertices: bool = False,        # 継ぎ目・キャップ頂点を複製するか
        base_radius: float = 1.0,
        top_radius: float = 1.0,
        height: float = 1.0
    ):
        """
        初期化

        Args:
            slices: 周方向分割数（3以上）
            no_shared_vertices: True なら側面とキャップで頂点を共有しない
            base_radius: 底面半径
            top_radius: 上面半径
            height: 高さ（Y方向）

        Raises:
            InvalidParameterError: 分割数が3未満、または寸法が正でない
        """
        if isinstance(slices, bool) or not isinstance(slices, (int, np.integer)) or slices < MIN_CYLINDER_SLICES:
            raise InvalidParameterError("slices", slices, f"must be an integer >= {MIN_CYLINDER_SLICES}")
        for name, value in (("base_radius", base_radius), ("top_radius", top_radius), ("height", height)):
            if not value > 0.0:
                raise InvalidParameterError(name, value, "must be positive")

        self.slices = int(slices)
        self.no_shared_vertices = no_shared_vertices
        self.base_radius = float(base_radius)
        self.top_radius = float(top_radius)
        self.height = float(height)

        # パフォーマンス統計
        self.stats = {
            'total_generations': 0,
            'total_time_ms': 0.0,
            'last_num_vertices': 0,
            'last_num_triangles': 0
        }

    def generate(self) -> DynamicMesh:
        """
        円柱メッシュを生成

        Returns:
            IDが0から詰めて割り当てられた内向きメッシュ
        """
        start_time = time.perf_counter()

        if self.no_shared_vertices:
            vertices, triangles = self._build_unshared()
        else:
            vertices, triangles = self._build_shared()

        mesh = DynamicMesh.from_arrays(vertices, triangles)

        elapsed_ms = (time.perf_counter() - start_time) * 1000
        self.stats['total_generations'] += 1
        self.stats['total_time_ms'] += elapsed_ms
        self.stats['last_num_vertices'] = mesh.vertex_count
        self.stats['last_num_triangles'] = mesh.triangle_count
        logger.debug(
            f"Cylinder generated: slices={self.slices}, "
            f"V={mesh.vertex_count}, T={mesh.triangle_count}, {elapsed_ms:.2f}ms"
        )
        return mesh

    def _ring(self, radius: float, y: float, count: int) -> np.ndarray:
        """周方向の頂点リングを作成（count > slices なら継ぎ目を複製）"""
        delta = 2.0 * math.pi / self.slices
        angles = np.arange(count) * delta
        return np.column_stack([
            radius * np.cos(angles),
            np.full(count, y),
            radius * np.sin(angles)
        ])

    def _build_shared(self) -> Tuple[np.ndarray, List[Tuple[int, int, int]]]:
        """継ぎ目・キャップで頂点を共有するレイアウト (2k+2 頂点)"""
        k = self.slices
        bottom = self._ring(self.base_radius, 0.0, k)
        top = self._ring(self.top_radius, self.height, k)
        centers = np.array([[0.0, 0.0, 0.0], [0.0, self.height, 0.0]])
        vertices = np.vstack([bottom, top, centers])

        bottom_center, top_center = 2 * k, 2 * k + 1
        triangles = []
        for i in range(k):
            j = (i + 1) % k
            triangles.append((i, j, k + j))
            triangles.append((i, k + j, k + i))
        for i in range(k):
            triangles.append((bottom_center, (i + 1) % k, i))
        for i in range(k):
            triangles.append((top_center, k + i, k + (i + 1) % k))
        return vertices, triangles

    def _build_unshared(self) -> Tuple[np.ndarray, List[Tuple[int, int, int]]]:
        """側面とキャップが独立したレイアウト (4k+4 頂点)"""
        k = self.slices
        side_bottom = self._ring(self.base_radius, 0.0, k + 1)
        side_top = self._ring(self.top_radius, self.height, k + 1)
        cap_bottom = self._ring(self.base_radius, 0.0, k)
        cap_top = self._ring(self.top_radius, self.height, k)
        vertices = np.vstack([
            side_bottom,
            side_top,
            cap_bottom, [[0.0, 0.0, 0.0]],
            cap_top, [[0.0, self.height, 0.0]]
        ])

        top_offset = k + 1
        bottom_cap = 2 * (k + 1)
        bottom_center = bottom_cap + k
        top_cap = bottom_center + 1
        top_center = top_cap + k

        triangles = []
        for i in range(k):
            triangles.append((i, i + 1, top_offset + i + 1))
            triangles.append((i, top_offset + i + 1, top_offset + i))
        for i in range(k):
            triangles.append((bottom_center, bottom_cap + (i + 1) % k, bottom_cap + i))
        for i in range(k):
            triangles.append((top_center, top_cap + i, top_cap + (i + 1) % k))
        return vertices, triangles

    def get_performance_stats(self) -> dict:
        """パフォーマンス統計取得"""
        return self.stats.copy()

    def reset_stats(self):
        """統計リセット"""
        self.stats = {
            'total_generations': 0,
            'total_time_ms': 0.0,
            'last_num_vertices': 0,
            'last_num_triangles': 0
        }


# 便利関数

def make_capped_cylinder(
    no_shared_vertices: bool = False,
    slices: int = DEFAULT_CYLINDER_SLICES,
    hole: bool = False
) -> DynamicMesh:
    """
    外向き法線のキャップ付き円柱を生成（簡単なインターフェース）

    Args:
        no_shared_vertices: 継ぎ目・キャップ頂点を複製するか
        slices: 周方向分割数（3以上）
        hole: 三角形0を削除して開いたメッシュにするか

    Returns:
        円柱メッシュ
    """
    generator = CappedCylinderGenerator(slices=slices, no_shared_vertices=no_shared_vertices)
    mesh = generator.generate()
    mesh.reverse_orientation()
    if hole:
        mesh.remove_triangle(0)
    return mesh
