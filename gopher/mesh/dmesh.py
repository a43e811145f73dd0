#!/usr/bin/env python3
"""
動的三角形メッシュ

頂点・三角形をIDで管理するアリーナ型メッシュ構造を提供します。
削除されたIDはフリーリストで再利用され、頂点→三角形、エッジ→三角形の
隣接関係を増分的に保持することで、リメッシュの局所編集
（分割・反転・縮約）をO(1)の隣接クエリで実行できます。
"""

import heapq
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Set, Tuple
import numpy as np

from ..constants import (
    DEGENERATE_AREA_EPSILON,
    INITIAL_TRIANGLE_CAPACITY,
    INITIAL_VERTEX_CAPACITY,
)
from ..data_types import ArrayLike, EdgeKey, MeshTopologyError, as_point, edge_key


@dataclass
class TriangleMesh:
    """密配列による三角形メッシュ（外部への出力形式）"""
    vertices: np.ndarray       # 頂点座標 (N, 3)
    triangles: np.ndarray      # 三角形インデックス (M, 3)
    vertex_ids: Optional[np.ndarray] = None    # 元の頂点ID (N,)
    triangle_ids: Optional[np.ndarray] = None  # 元の三角形ID (M,)

    @property
    def num_vertices(self) -> int:
        """頂点数を取得"""
        return len(self.vertices)

    @property
    def num_triangles(self) -> int:
        """三角形数を取得"""
        return len(self.triangles)

    def get_bounds(self) -> Tuple[np.ndarray, np.ndarray]:
        """バウンディングボックスを取得"""
        min_bounds = np.min(self.vertices, axis=0)
        max_bounds = np.max(self.vertices, axis=0)
        return min_bounds, max_bounds

    def get_triangle_areas(self) -> np.ndarray:
        """三角形の面積を計算"""
        v0 = self.vertices[self.triangles[:, 0]]
        v1 = self.vertices[self.triangles[:, 1]]
        v2 = self.vertices[self.triangles[:, 2]]
        cross = np.cross(v1 - v0, v2 - v0)
        return np.linalg.norm(cross, axis=1) / 2.0

    def get_triangle_normals(self) -> np.ndarray:
        """単位三角形法線を計算"""
        v0 = self.vertices[self.triangles[:, 0]]
        v1 = self.vertices[self.triangles[:, 1]]
        v2 = self.vertices[self.triangles[:, 2]]
        normals = np.cross(v1 - v0, v2 - v0)
        norms = np.linalg.norm(normals, axis=1, keepdims=True) + 1e-12
        return normals / norms


@dataclass
class EdgeSplitInfo:
    """エッジ分割の結果"""
    new_vertex: int
    a: int
    b: int
    opposite: Tuple[int, ...]
    new_triangles: Tuple[int, ...]


@dataclass
class EdgeFlipInfo:
    """エッジ反転の結果（a-b が c-d に置き換わる）"""
    a: int
    b: int
    c: int
    d: int
    triangles: Tuple[int, int]


@dataclass
class EdgeCollapseInfo:
    """エッジ縮約の結果"""
    kept: int
    removed: int
    opposite: Tuple[int, ...]
    removed_triangles: Tuple[int, ...]
    modified_triangles: Tuple[int, ...] = field(default_factory=tuple)


class DynamicMesh:
    """
    IDアリーナ型の多様体三角形メッシュ

    頂点と三角形は整数IDで参照され、削除時は有効フラグを落として
    IDをフリーリストへ戻します。エッジは実体を持たず、
    頂点ペア (min, max) をキーに隣接三角形リストを保持します。
    """

    def __init__(self, vertex_capacity: int = INITIAL_VERTEX_CAPACITY,
                 triangle_capacity: int = INITIAL_TRIANGLE_CAPACITY):
        self._vertices = np.zeros((max(vertex_capacity, 1), 3), dtype=np.float64)
        self._vertex_valid = np.zeros(max(vertex_capacity, 1), dtype=bool)
        self._vertex_triangles: List[Set[int]] = []
        self._max_vertex_id = 0
        self._free_vertices: List[int] = []

        self._triangles = np.full((max(triangle_capacity, 1), 3), -1, dtype=np.int64)
        self._triangle_valid = np.zeros(max(triangle_capacity, 1), dtype=bool)
        self._max_triangle_id = 0
        self._free_triangles: List[int] = []

        self._edges: Dict[EdgeKey, List[int]] = {}

    # ------------------------------------------------------------------
    # 構築
    # ------------------------------------------------------------------
    @classmethod
    def from_arrays(cls, vertices: ArrayLike, triangles: ArrayLike) -> 'DynamicMesh':
        """
        密配列からメッシュを構築

        Args:
            vertices: 頂点座標 (N, 3)
            triangles: 三角形インデックス (M, 3)

        Returns:
            IDが0から詰めて割り当てられたメッシュ
        """
        vertices = np.asarray(vertices, dtype=np.float64)
        triangles = np.asarray(triangles, dtype=np.int64)
        mesh = cls(vertex_capacity=len(vertices), triangle_capacity=len(triangles))
        for position in vertices:
            mesh.append_vertex(position)
        for tri in triangles:
            mesh.append_triangle(int(tri[0]), int(tri[1]), int(tri[2]))
        return mesh

    def copy(self) -> 'DynamicMesh':
        """隣接情報を含めた独立コピーを作成"""
        other = DynamicMesh.__new__(DynamicMesh)
        other._vertices = self._vertices.copy()
        other._vertex_valid = self._vertex_valid.copy()
        other._vertex_triangles = [set(tris) for tris in self._vertex_triangles]
        other._max_vertex_id = self._max_vertex_id
        other._free_vertices = list(self._free_vertices)
        other._triangles = self._triangles.copy()
        other._triangle_valid = self._triangle_valid.copy()
        other._max_triangle_id = self._max_triangle_id
        other._free_triangles = list(self._free_triangles)
        other._edges = {key: list(tris) for key, tris in self._edges.items()}
        return other

    def append_vertex(self, position: ArrayLike) -> int:
        """頂点を追加してIDを返す（削除済みIDを優先的に再利用）"""
        point = as_point(position)
        if self._free_vertices:
            vid = heapq.heappop(self._free_vertices)
        else:
            vid = self._max_vertex_id
            self._ensure_vertex_capacity(vid + 1)
            self._max_vertex_id += 1
            self._vertex_triangles.append(set())
        self._vertices[vid] = point
        self._vertex_valid[vid] = True
        self._vertex_triangles[vid] = set()
        return vid

    def append_triangle(self, a: int, b: int, c: int) -> int:
        """
        三角形を追加

        Args:
            a, b, c: 頂点ID（順序が向きを定義）

        Returns:
            三角形ID

        Raises:
            MeshTopologyError: 無効な頂点、重複頂点、非多様体エッジ、向きの不整合
        """
        for vid in (a, b, c):
            self._check_vertex(vid)
        if a == b or b == c or c == a:
            raise MeshTopologyError(f"Triangle ({a}, {b}, {c}) has repeated vertices")

        for u, v in ((a, b), (b, c), (c, a)):
            existing = self._edges.get(edge_key(u, v), [])
            if len(existing) >= 2:
                raise MeshTopologyError(f"Edge ({u}, {v}) would become non-manifold")
            if existing and self._has_directed_edge(existing[0], u, v):
                raise MeshTopologyError(
                    f"Edge ({u}, {v}) already used with the same orientation by triangle {existing[0]}",
                    existing[0],
                )

        return self._allocate_triangle((a, b, c))

    def remove_triangle(self, tid: int, remove_isolated_vertices: bool = True) -> None:
        """
        三角形を削除

        Args:
            tid: 三角形ID
            remove_isolated_vertices: 孤立した頂点も削除するか
        """
        self._check_triangle(tid)
        tri = self.get_triangle(tid)
        self._release_triangle(tid)
        if remove_isolated_vertices:
            for vid in tri:
                if not self._vertex_triangles[vid]:
                    self._release_vertex(vid)

    def remove_vertex(self, vid: int) -> None:
        """孤立頂点を削除"""
        self._check_vertex(vid)
        if self._vertex_triangles[vid]:
            raise MeshTopologyError(f"Vertex {vid} still has incident triangles", vid)
        self._release_vertex(vid)

    def reverse_orientation(self) -> None:
        """全三角形の向きを反転"""
        valid = self._triangle_valid[:self._max_triangle_id]
        rows = self._triangles[:self._max_triangle_id]
        rows[valid] = rows[valid][:, [0, 2, 1]]

    # ------------------------------------------------------------------
    # 要素クエリ
    # ------------------------------------------------------------------
    @property
    def vertex_count(self) -> int:
        """有効頂点数"""
        return int(np.count_nonzero(self._vertex_valid[:self._max_vertex_id]))

    @property
    def triangle_count(self) -> int:
        """有効三角形数"""
        return int(np.count_nonzero(self._triangle_valid[:self._max_triangle_id]))

    @property
    def edge_count(self) -> int:
        """エッジ数"""
        return len(self._edges)

    @property
    def max_vertex_id(self) -> int:
        """割り当て済み頂点IDの上限（排他的）"""
        return self._max_vertex_id

    @property
    def max_triangle_id(self) -> int:
        """割り当て済み三角形IDの上限（排他的）"""
        return self._max_triangle_id

    def is_vertex(self, vid: int) -> bool:
        return 0 <= vid < self._max_vertex_id and bool(self._vertex_valid[vid])

    def is_triangle(self, tid: int) -> bool:
        return 0 <= tid < self._max_triangle_id and bool(self._triangle_valid[tid])

    def get_vertex(self, vid: int) -> np.ndarray:
        """頂点座標のコピーを取得"""
        self._check_vertex(vid)
        return self._vertices[vid].copy()

    def set_vertex(self, vid: int, position: ArrayLike) -> None:
        """頂点座標を更新"""
        self._check_vertex(vid)
        self._vertices[vid] = as_point(position)

    def get_triangle(self, tid: int) -> Tuple[int, int, int]:
        """三角形の頂点IDを取得"""
        self._check_triangle(tid)
        a, b, c = self._triangles[tid]
        return int(a), int(b), int(c)

    def vertex_indices(self) -> List[int]:
        """有効頂点IDの昇順リスト"""
        return [int(v) for v in np.flatnonzero(self._vertex_valid[:self._max_vertex_id])]

    def triangle_indices(self) -> List[int]:
        """有効三角形IDの昇順リスト"""
        return [int(t) for t in np.flatnonzero(self._triangle_valid[:self._max_triangle_id])]

    def iter_vertices(self) -> Iterator[Tuple[int, np.ndarray]]:
        """(頂点ID, 座標) を読み取り専用で列挙"""
        for vid in self.vertex_indices():
            position = self._vertices[vid].copy()
            position.setflags(write=False)
            yield vid, position

    def iter_triangles(self) -> Iterator[Tuple[int, Tuple[int, int, int]]]:
        """(三角形ID, 頂点ID三つ組) を列挙"""
        for tid in self.triangle_indices():
            yield tid, self.get_triangle(tid)

    def positions(self) -> np.ndarray:
        """頂点ID順の座標配列のコピー (max_vertex_id, 3)"""
        return self._vertices[:self._max_vertex_id].copy()

    def get_bounds(self) -> Tuple[np.ndarray, np.ndarray]:
        """有効頂点のバウンディングボックス"""
        valid = self._vertex_valid[:self._max_vertex_id]
        if not np.any(valid):
            raise MeshTopologyError("Mesh has no vertices")
        points = self._vertices[:self._max_vertex_id][valid]
        return points.min(axis=0), points.max(axis=0)

    def triangle_normal(self, tid: int) -> np.ndarray:
        """単位三角形法線（退化三角形ではゼロベクトル）"""
        a, b, c = self.get_triangle(tid)
        return _unit_normal(self._vertices[a], self._vertices[b], self._vertices[c])

    def triangle_centroid(self, tid: int) -> np.ndarray:
        a, b, c = self.get_triangle(tid)
        return (self._vertices[a] + self._vertices[b] + self._vertices[c]) / 3.0

    def triangle_area(self, tid: int) -> float:
        a, b, c = self.get_triangle(tid)
        pa = self._vertices[a]
        return 0.5 * float(np.linalg.norm(np.cross(self._vertices[b] - pa, self._vertices[c] - pa)))

    # ------------------------------------------------------------------
    # 隣接クエリ
    # ------------------------------------------------------------------
    def edges(self) -> List[EdgeKey]:
        """全エッジキーをソート順で取得"""
        return sorted(self._edges.keys())

    def boundary_edges(self) -> List[EdgeKey]:
        """境界エッジ（隣接三角形が1つ）をソート順で取得"""
        return sorted(key for key, tris in self._edges.items() if len(tris) == 1)

    def has_edge(self, a: int, b: int) -> bool:
        return edge_key(a, b) in self._edges

    def edge_triangles(self, a: int, b: int) -> Tuple[int, ...]:
        """エッジに隣接する三角形ID"""
        tris = self._edges.get(edge_key(a, b))
        if tris is None:
            raise MeshTopologyError(f"Edge ({a}, {b}) does not exist")
        return tuple(tris)

    def edge_opposite_vertices(self, a: int, b: int) -> Tuple[int, ...]:
        """エッジの対頂点（隣接三角形ごとに1つ）"""
        opposite = []
        for tid in self.edge_triangles(a, b):
            for vid in self._triangles[tid]:
                if vid != a and vid != b:
                    opposite.append(int(vid))
                    break
        return tuple(opposite)

    def oriented_triangle(self, tid: int, a: int, b: int) -> Tuple[int, int, int]:
        """三角形を (u, w, c) に回転（u→w がエッジ a-b の向き、c が対頂点）"""
        self._check_triangle(tid)
        tri = [int(v) for v in self._triangles[tid]]
        for i in range(3):
            u, w, c = tri[i], tri[(i + 1) % 3], tri[(i + 2) % 3]
            if (u == a and w == b) or (u == b and w == a):
                return u, w, c
        raise MeshTopologyError(f"Triangle {tid} does not contain edge ({a}, {b})", tid)

    def edge_length(self, a: int, b: int) -> float:
        return float(np.linalg.norm(self._vertices[a] - self._vertices[b]))

    def is_boundary_edge(self, a: int, b: int) -> bool:
        return len(self.edge_triangles(a, b)) == 1

    def is_boundary_vertex(self, vid: int) -> bool:
        self._check_vertex(vid)
        for tid in self._vertex_triangles[vid]:
            for other in self._triangles[tid]:
                if other != vid and len(self._edges[edge_key(vid, int(other))]) == 1:
                    return True
        return False

    def vertex_triangles(self, vid: int) -> List[int]:
        """頂点に隣接する三角形IDの昇順リスト"""
        self._check_vertex(vid)
        return sorted(self._vertex_triangles[vid])

    def vertex_neighbors(self, vid: int) -> List[int]:
        """1-ring 近傍頂点の昇順リスト"""
        self._check_vertex(vid)
        neighbors: Set[int] = set()
        for tid in self._vertex_triangles[vid]:
            neighbors.update(int(v) for v in self._triangles[tid])
        neighbors.discard(vid)
        return sorted(neighbors)

    def valence(self, vid: int) -> int:
        return len(self.vertex_neighbors(vid))

    # ------------------------------------------------------------------
    # 局所編集
    # ------------------------------------------------------------------
    def split_edge(self, a: int, b: int, t: float = 0.5) -> EdgeSplitInfo:
        """
        エッジを分割

        a-b 上の補間点に新頂点を挿入し、隣接三角形をそれぞれ2つに分けます。

        Args:
            a, b: エッジ端点
            t: a からの補間パラメータ

        Returns:
            分割情報
        """
        tris = self.edge_triangles(a, b)
        position = (1.0 - t) * self._vertices[a] + t * self._vertices[b]
        new_vertex = self.append_vertex(position)

        opposite = []
        new_triangles = []
        for tid in tris:
            u, w, c = self.oriented_triangle(tid, a, b)
            self._unlink_triangle(tid)
            self._triangles[tid] = (u, new_vertex, c)
            self._link_triangle(tid)
            new_triangles.append(self._allocate_triangle((new_vertex, w, c)))
            opposite.append(c)

        return EdgeSplitInfo(
            new_vertex=new_vertex,
            a=a,
            b=b,
            opposite=tuple(opposite),
            new_triangles=tuple(new_triangles),
        )

    def can_flip(self, a: int, b: int) -> bool:
        """トポロジー的に反転可能か（内部エッジ、対角エッジが未存在）"""
        tris = self._edges.get(edge_key(a, b))
        if tris is None or len(tris) != 2:
            return False
        c, d = self.edge_opposite_vertices(a, b)
        return c != d and not self.has_edge(c, d)

    def flip_edge(self, a: int, b: int) -> EdgeFlipInfo:
        """
        内部エッジ a-b を対角 c-d に反転

        Raises:
            MeshTopologyError: 反転不可能なエッジ
        """
        if not self.can_flip(a, b):
            raise MeshTopologyError(f"Edge ({a}, {b}) cannot be flipped")
        t0, t1 = self._edges[edge_key(a, b)]
        u, w, c = self.oriented_triangle(t0, a, b)
        _, _, d = self.oriented_triangle(t1, a, b)

        self._unlink_triangle(t0)
        self._unlink_triangle(t1)
        self._triangles[t0] = (c, u, d)
        self._triangles[t1] = (d, w, c)
        self._link_triangle(t0)
        self._link_triangle(t1)
        return EdgeFlipInfo(a=a, b=b, c=c, d=d, triangles=(t0, t1))

    def can_collapse(self, keep: int, remove: int) -> bool:
        """
        エッジ縮約のトポロジー判定

        リンク条件（両端点の共通近傍が対頂点と一致）、
        両端が境界頂点の内部エッジ、縮約後に次数が不足する対頂点を検査します。
        """
        key = edge_key(keep, remove)
        tris = self._edges.get(key)
        if tris is None:
            return False
        opposite = self.edge_opposite_vertices(keep, remove)
        common = set(self.vertex_neighbors(keep)) & set(self.vertex_neighbors(remove))
        if common != set(opposite):
            return False

        interior = len(tris) == 2
        if interior and self.is_boundary_vertex(keep) and self.is_boundary_vertex(remove):
            return False

        for vid in opposite:
            min_valence = 2 if self.is_boundary_vertex(vid) else 3
            if self.valence(vid) - 1 < min_valence:
                return False
        return True

    def collapse_edge(self, keep: int, remove: int,
                      position: Optional[ArrayLike] = None) -> EdgeCollapseInfo:
        """
        エッジを縮約して remove を keep に統合

        Args:
            keep: 残す頂点
            remove: 削除する頂点
            position: 統合後の座標（Noneなら keep の現在位置）

        Returns:
            縮約情報

        Raises:
            MeshTopologyError: 縮約不可能なエッジ
        """
        if not self.can_collapse(keep, remove):
            raise MeshTopologyError(f"Edge ({keep}, {remove}) cannot be collapsed")
        new_position = self._vertices[keep].copy() if position is None else as_point(position)

        opposite = self.edge_opposite_vertices(keep, remove)
        removed_triangles = self.edge_triangles(keep, remove)
        for tid in removed_triangles:
            self._release_triangle(tid)

        modified = sorted(self._vertex_triangles[remove])
        for tid in modified:
            tri = [keep if int(v) == remove else int(v) for v in self._triangles[tid]]
            self._unlink_triangle(tid)
            self._triangles[tid] = tri
            self._link_triangle(tid)

        self._release_vertex(remove)
        self._vertices[keep] = new_position
        return EdgeCollapseInfo(
            kept=keep,
            removed=remove,
            opposite=opposite,
            removed_triangles=removed_triangles,
            modified_triangles=tuple(modified),
        )

    # ------------------------------------------------------------------
    # 出力・検証
    # ------------------------------------------------------------------
    def to_triangle_mesh(self) -> TriangleMesh:
        """有効要素のみを詰めた TriangleMesh に変換"""
        vertex_ids = np.flatnonzero(self._vertex_valid[:self._max_vertex_id])
        triangle_ids = np.flatnonzero(self._triangle_valid[:self._max_triangle_id])
        remap = np.full(self._max_vertex_id, -1, dtype=np.int64)
        remap[vertex_ids] = np.arange(len(vertex_ids))
        triangles = remap[self._triangles[triangle_ids]] if len(triangle_ids) else np.zeros((0, 3), dtype=np.int64)
        return TriangleMesh(
            vertices=self._vertices[vertex_ids].copy(),
            triangles=triangles.reshape(-1, 3),
            vertex_ids=vertex_ids,
            triangle_ids=triangle_ids,
        )

    def check_validity(self) -> bool:
        """
        隣接情報と不変条件を検証

        Raises:
            MeshTopologyError: 不変条件違反
        """
        directed: Set[Tuple[int, int]] = set()
        edge_refs: Dict[EdgeKey, List[int]] = {}
        vertex_refs: Dict[int, Set[int]] = {}
        for tid in self.triangle_indices():
            tri = self.get_triangle(tid)
            if len(set(tri)) != 3:
                raise MeshTopologyError(f"Triangle {tid} has repeated vertices", tid)
            for i in range(3):
                u, v = tri[i], tri[(i + 1) % 3]
                if not self.is_vertex(u):
                    raise MeshTopologyError(f"Triangle {tid} references invalid vertex {u}", tid)
                if (u, v) in directed:
                    raise MeshTopologyError(f"Directed edge ({u}, {v}) used twice", tid)
                directed.add((u, v))
                edge_refs.setdefault(edge_key(u, v), []).append(tid)
                vertex_refs.setdefault(u, set()).add(tid)

        if set(edge_refs) != set(self._edges):
            raise MeshTopologyError("Edge map out of sync with triangles")
        for key, tris in edge_refs.items():
            if sorted(tris) != sorted(self._edges[key]) or len(tris) > 2:
                raise MeshTopologyError(f"Edge {key} adjacency is inconsistent")
        for vid in self.vertex_indices():
            if vertex_refs.get(vid, set()) != self._vertex_triangles[vid]:
                raise MeshTopologyError(f"Vertex {vid} adjacency is inconsistent", vid)
        return True

    # ------------------------------------------------------------------
    # 内部処理
    # ------------------------------------------------------------------
    def _check_vertex(self, vid: int) -> None:
        if not self.is_vertex(vid):
            raise MeshTopologyError(f"Invalid vertex id {vid}", vid)

    def _check_triangle(self, tid: int) -> None:
        if not self.is_triangle(tid):
            raise MeshTopologyError(f"Invalid triangle id {tid}", tid)

    def _ensure_vertex_capacity(self, size: int) -> None:
        capacity = len(self._vertex_valid)
        if size <= capacity:
            return
        new_capacity = max(size, capacity * 2)
        vertices = np.zeros((new_capacity, 3), dtype=np.float64)
        vertices[:capacity] = self._vertices
        valid = np.zeros(new_capacity, dtype=bool)
        valid[:capacity] = self._vertex_valid
        self._vertices, self._vertex_valid = vertices, valid

    def _ensure_triangle_capacity(self, size: int) -> None:
        capacity = len(self._triangle_valid)
        if size <= capacity:
            return
        new_capacity = max(size, capacity * 2)
        triangles = np.full((new_capacity, 3), -1, dtype=np.int64)
        triangles[:capacity] = self._triangles
        valid = np.zeros(new_capacity, dtype=bool)
        valid[:capacity] = self._triangle_valid
        self._triangles, self._triangle_valid = triangles, valid

    def _allocate_triangle(self, tri: Tuple[int, int, int]) -> int:
        if self._free_triangles:
            tid = heapq.heappop(self._free_triangles)
        else:
            tid = self._max_triangle_id
            self._ensure_triangle_capacity(tid + 1)
            self._max_triangle_id += 1
        self._triangles[tid] = tri
        self._triangle_valid[tid] = True
        self._link_triangle(tid)
        return tid

    def _release_triangle(self, tid: int) -> None:
        self._unlink_triangle(tid)
        self._triangles[tid] = -1
        self._triangle_valid[tid] = False
        heapq.heappush(self._free_triangles, tid)

    def _release_vertex(self, vid: int) -> None:
        self._vertex_valid[vid] = False
        self._vertex_triangles[vid] = set()
        heapq.heappush(self._free_vertices, vid)

    def _link_triangle(self, tid: int) -> None:
        a, b, c = (int(v) for v in self._triangles[tid])
        for u, v in ((a, b), (b, c), (c, a)):
            self._edges.setdefault(edge_key(u, v), []).append(tid)
        for vid in (a, b, c):
            self._vertex_triangles[vid].add(tid)

    def _unlink_triangle(self, tid: int) -> None:
        a, b, c = (int(v) for v in self._triangles[tid])
        for u, v in ((a, b), (b, c), (c, a)):
            key = edge_key(u, v)
            tris = self._edges[key]
            tris.remove(tid)
            if not tris:
                del self._edges[key]
        for vid in (a, b, c):
            self._vertex_triangles[vid].discard(tid)

    def _has_directed_edge(self, tid: int, u: int, v: int) -> bool:
        tri = self._triangles[tid]
        return any(tri[i] == u and tri[(i + 1) % 3] == v for i in range(3))


def _unit_normal(p0: np.ndarray, p1: np.ndarray, p2: np.ndarray) -> np.ndarray:
    normal = np.cross(p1 - p0, p2 - p0)
    norm = np.linalg.norm(normal)
    if norm < DEGENERATE_AREA_EPSILON:
        return np.zeros(3)
    return normal / norm
