#!/usr/bin/env python3
"""
空間インデックス

メッシュ三角形に対するBVH（Bounding Volume Hierarchy）を提供します。
最近接点クエリはリメッシュ時の投影ターゲットとして使われるため、
同距離の場合は最小の三角形IDを返す決定的な探索を行います。
"""

import heapq
import itertools
import time
from dataclasses import dataclass
from typing import List, Optional, Tuple
import numpy as np
from scipy.spatial import cKDTree

from ..constants import MAX_TRIANGLES_PER_LEAF, SPATIAL_INDEX_MAX_DEPTH
from ..data_types import ArrayLike, InvalidParameterError, SpatialIndexNotBuiltError, as_point
from ..mesh.dmesh import DynamicMesh
from .. import get_logger
from .distance import closest_points_on_triangles

logger = get_logger(__name__)


@dataclass
class BoundingBox:
    """軸並行バウンディングボックス"""
    min_point: np.ndarray      # 最小点 (3,)
    max_point: np.ndarray      # 最大点 (3,)

    def distance_sq(self, point: np.ndarray) -> float:
        """点からボックスまでの距離の二乗（内部なら0）"""
        closest_point = np.clip(point, self.min_point, self.max_point)
        diff = point - closest_point
        return float(np.dot(diff, diff))

    def intersects_sphere(self, center: np.ndarray, radius: float) -> bool:
        """球と交差するかチェック"""
        return self.distance_sq(center) <= radius * radius

    @staticmethod
    def from_points(points: np.ndarray) -> 'BoundingBox':
        """点群からバウンディングボックスを作成"""
        return BoundingBox(np.min(points, axis=0), np.max(points, axis=0))


@dataclass
class BVHNode:
    """BVHノード"""
    bounding_box: BoundingBox
    triangle_indices: Optional[np.ndarray] = None  # リーフノードの三角形（内部配列の行番号）
    left_child: Optional['BVHNode'] = None
    right_child: Optional['BVHNode'] = None

    @property
    def is_leaf(self) -> bool:
        """リーフノードかどうか"""
        return self.triangle_indices is not None

    @property
    def num_triangles(self) -> int:
        """含まれる三角形数"""
        return len(self.triangle_indices) if self.triangle_indices is not None else 0


@dataclass
class NearestPointResult:
    """最近接点クエリの結果"""
    point: np.ndarray          # 最近接点 (3,)
    triangle_id: int           # 最近傍三角形ID
    distance_sq: float         # 距離の二乗

    @property
    def distance(self) -> float:
        return float(np.sqrt(self.distance_sq))


class MeshAABBTree:
    """
    メッシュ三角形のBVH

    構築時にメッシュのコピーから三角形座標を取り出して保持するため、
    構築後に元メッシュを編集してもクエリ結果は変わりません。
    """

    def __init__(
        self,
        mesh: DynamicMesh,
        max_triangles_per_leaf: int = MAX_TRIANGLES_PER_LEAF,  # リーフノードあたりの最大三角形数
        max_depth: int = SPATIAL_INDEX_MAX_DEPTH,               # 最大深度
        auto_build: bool = False
    ):
        """
        初期化

        Args:
            mesh: 対象メッシュ（コピーして保持）
            max_triangles_per_leaf: リーフノードあたりの最大三角形数
            max_depth: 最大深度
            auto_build: True なら即座に build() する
        """
        if max_triangles_per_leaf < 1:
            raise InvalidParameterError("max_triangles_per_leaf", max_triangles_per_leaf, "must be >= 1")
        self.mesh = mesh.copy()
        self.max_triangles_per_leaf = max_triangles_per_leaf
        self.max_depth = max_depth

        # インデックス構造
        self.root_node: Optional[BVHNode] = None
        self.kdtree: Optional[cKDTree] = None
        self._built = False
        self._triangle_ids = np.zeros(0, dtype=np.int64)
        self._v0 = self._v1 = self._v2 = np.zeros((0, 3))
        self._centers = np.zeros((0, 3))

        # パフォーマンス統計
        self.stats = {
            'build_time_ms': 0.0,
            'num_nodes': 0,
            'max_depth_reached': 0,
            'total_queries': 0,
            'total_query_time_ms': 0.0,
            'average_query_time_ms': 0.0
        }

        if auto_build:
            self.build()

    @property
    def is_built(self) -> bool:
        return self._built

    def build(self) -> 'MeshAABBTree':
        """インデックスを構築"""
        start_time = time.perf_counter()

        tids = self.mesh.triangle_indices()
        positions = self.mesh.positions()
        tris = np.array([self.mesh.get_triangle(t) for t in tids], dtype=np.int64).reshape(-1, 3)

        self._triangle_ids = np.asarray(tids, dtype=np.int64)
        self._v0 = positions[tris[:, 0]]
        self._v1 = positions[tris[:, 1]]
        self._v2 = positions[tris[:, 2]]
        self._centers = (self._v0 + self._v1 + self._v2) / 3.0
        for array in (self._triangle_ids, self._v0, self._v1, self._v2, self._centers):
            array.setflags(write=False)

        self.stats['num_nodes'] = 0
        self.stats['max_depth_reached'] = 0
        if len(tids) > 0:
            self._tri_min = np.minimum(np.minimum(self._v0, self._v1), self._v2)
            self._tri_max = np.maximum(np.maximum(self._v0, self._v1), self._v2)
            self.root_node = self._build_bvh_recursive(np.arange(len(tids)), 0)
            self.kdtree = cKDTree(self._centers)
        else:
            self.root_node = None
            self.kdtree = None

        self._built = True
        self.stats['build_time_ms'] = (time.perf_counter() - start_time) * 1000
        logger.debug(
            f"BVH built: {len(tids)} triangles, {self.stats['num_nodes']} nodes, "
            f"depth {self.stats['max_depth_reached']}, {self.stats['build_time_ms']:.2f}ms"
        )
        return self

    def _build_bvh_recursive(self, rows: np.ndarray, depth: int) -> BVHNode:
        """BVHを再帰的に構築"""
        self.stats['num_nodes'] += 1
        self.stats['max_depth_reached'] = max(self.stats['max_depth_reached'], depth)

        bounding_box = BoundingBox(
            self._tri_min[rows].min(axis=0),
            self._tri_max[rows].max(axis=0)
        )

        # リーフノードの条件
        if len(rows) <= self.max_triangles_per_leaf or depth >= self.max_depth:
            return BVHNode(bounding_box=bounding_box, triangle_indices=rows)

        left_rows, right_rows = self._split_triangles(rows)
        return BVHNode(
            bounding_box=bounding_box,
            left_child=self._build_bvh_recursive(left_rows, depth + 1),
            right_child=self._build_bvh_recursive(right_rows, depth + 1)
        )

    def _split_triangles(self, rows: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """重心の最長軸で中央値分割（両側が必ず非空）"""
        centers = self._centers[rows]
        split_axis = int(np.argmax(centers.max(axis=0) - centers.min(axis=0)))
        order = np.argsort(centers[:, split_axis], kind='stable')
        half = len(rows) // 2
        return rows[order[:half]], rows[order[half:]]

    # ------------------------------
    #  クエリ
    # ------------------------------
    def find_nearest(self, point: ArrayLike) -> NearestPointResult:
        """
        最近接点を検索

        Args:
            point: 検索点

        Returns:
            最近接点・三角形ID・距離の二乗

        Raises:
            SpatialIndexNotBuiltError: build() 前の呼び出し
            ValueError: 三角形が存在しない
        """
        self._check_built()
        if self.root_node is None:
            raise ValueError("Spatial index contains no triangles")
        start_time = time.perf_counter()

        p = as_point(point)
        best_point, best_row, best_dist = self._seed(p)

        counter = itertools.count()
        heap = [(self.root_node.bounding_box.distance_sq(p), next(counter), self.root_node)]
        while heap:
            box_dist, _, node = heapq.heappop(heap)
            if box_dist > best_dist:
                break
            if node.is_leaf:
                rows = node.triangle_indices
                closest, dist_sq = closest_points_on_triangles(p, self._v0[rows], self._v1[rows], self._v2[rows])
                for i in range(len(rows)):
                    row = int(rows[i])
                    # 三角形IDは行番号順に昇順なので行番号で比較できる
                    if dist_sq[i] < best_dist or (dist_sq[i] == best_dist and row < best_row):
                        best_point, best_row, best_dist = closest[i], row, float(dist_sq[i])
            else:
                for child in (node.left_child, node.right_child):
                    child_dist = child.bounding_box.distance_sq(p)
                    if child_dist <= best_dist:
                        heapq.heappush(heap, (child_dist, next(counter), child))

        self._update_query_stats((time.perf_counter() - start_time) * 1000)
        return NearestPointResult(
            point=np.array(best_point, dtype=np.float64),
            triangle_id=int(self._triangle_ids[best_row]),
            distance_sq=best_dist
        )

    def _seed(self, p: np.ndarray) -> Tuple[np.ndarray, int, float]:
        """重心が最も近い三角形で探索上限を初期化"""
        _, row = self.kdtree.query(p)
        row = int(row)
        closest, dist_sq = closest_points_on_triangles(
            p, self._v0[row:row + 1], self._v1[row:row + 1], self._v2[row:row + 1]
        )
        return closest[0], row, float(dist_sq[0])

    def nearest_point(self, point: ArrayLike) -> np.ndarray:
        """メッシュ表面上の最近接点"""
        return self.find_nearest(point).point

    def nearest_triangle(self, point: ArrayLike) -> int:
        """最近傍三角形ID"""
        return self.find_nearest(point).triangle_id

    def query_sphere(self, center: ArrayLike, radius: float) -> List[int]:
        """
        球と交差する三角形を検索

        Args:
            center: 球の中心
            radius: 球の半径

        Returns:
            三角形IDの昇順リスト
        """
        self._check_built()
        start_time = time.perf_counter()
        c = as_point(center)
        result: List[int] = []
        if self.root_node is not None:
            stack = [self.root_node]
            while stack:
                node = stack.pop()
                if not node.bounding_box.intersects_sphere(c, radius):
                    continue
                if node.is_leaf:
                    rows = node.triangle_indices
                    _, dist_sq = closest_points_on_triangles(c, self._v0[rows], self._v1[rows], self._v2[rows])
                    result.extend(int(self._triangle_ids[r]) for r in rows[dist_sq <= radius * radius])
                else:
                    stack.append(node.left_child)
                    stack.append(node.right_child)

        self._update_query_stats((time.perf_counter() - start_time) * 1000)
        return sorted(result)

    def _check_built(self) -> None:
        if not self._built:
            raise SpatialIndexNotBuiltError("MeshAABBTree.build() must be called before querying")

    def _update_query_stats(self, query_time_ms: float):
        """クエリ統計を更新"""
        self.stats['total_queries'] += 1
        self.stats['total_query_time_ms'] += query_time_ms
        self.stats['average_query_time_ms'] = (
            self.stats['total_query_time_ms'] / self.stats['total_queries']
        )

    def get_performance_stats(self) -> dict:
        """パフォーマンス統計取得"""
        return self.stats.copy()

    def reset_stats(self):
        """クエリ統計リセット（構築統計は保持）"""
        self.stats['total_queries'] = 0
        self.stats['total_query_time_ms'] = 0.0
        self.stats['average_query_time_ms'] = 0.0
