#!/usr/bin/env python3
"""
ラプラシアンメッシュ変形

一様ラプラシアン座標（頂点位置 − 1-ring 平均）を保存しつつ、
指定頂点を目標位置へ引き寄せる重み付き最小二乗問題を解きます。

    min |L x − δ|² + Σ w_i² |x_i − t_i|²

正規方程式 (LᵀL + W²) x = Lᵀδ + W² t を scipy.sparse で組み立て、
initialize() で一度だけLU分解し、solve() ではX/Y/Zの3列を後退代入します。
"""

import time
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple
import numpy as np
from scipy import sparse
from scipy.sparse.linalg import splu

from ..data_types import ArrayLike, InvalidParameterError, IsolatedVertexError, MeshTopologyError, as_point
from ..mesh.dmesh import DynamicMesh
from .. import get_logger

logger = get_logger(__name__)


@dataclass
class DeformationConstraint:
    """変形制約（weight 0 はピンなし）"""
    position: np.ndarray
    weight: float
    force_to_target: bool = False


class LaplacianMeshDeformer:
    """制約付きラプラシアン変形ソルバー"""

    def __init__(self, mesh: DynamicMesh):
        """
        初期化

        Args:
            mesh: 変形対象メッシュ（solve() では読み取りのみ）
        """
        self.mesh = mesh
        self._constraints: Dict[int, DeformationConstraint] = {}

        # 分解済みシステム
        self._initialized = False
        self._topology_key: Optional[Tuple[int, int, int]] = None
        self._vertex_ids = np.zeros(0, dtype=np.int64)
        self._positions = np.zeros((0, 3))
        self._rhs_base = np.zeros((0, 3))
        self._pin_weights_sq = np.zeros(0)
        self._pin_targets = np.zeros((0, 3))
        self._solver = None

        # パフォーマンス統計
        self.stats = {
            'num_vertices': 0,
            'num_pinned': 0,
            'matrix_nnz': 0,
            'initialize_time_ms': 0.0,
            'total_solves': 0,
            'last_solve_time_ms': 0.0
        }

    # ------------------------------------------------------------------
    # 制約
    # ------------------------------------------------------------------
    def set_constraint(self, vid: int, position: ArrayLike, weight: float,
                       force_to_target: bool = False) -> None:
        """
        頂点制約を設定

        Args:
            vid: 頂点ID
            position: 目標位置
            weight: 重み（0以上、0ならラプラシアン行のみ）
            force_to_target: 解の後に目標位置へ強制移動するか

        Raises:
            MeshTopologyError: 無効な頂点ID
            InvalidParameterError: 負または非有限の重み
        """
        if not self.mesh.is_vertex(vid):
            raise MeshTopologyError(f"Invalid vertex id {vid}", vid)
        weight = float(weight)
        if not np.isfinite(weight) or weight < 0.0:
            raise InvalidParameterError("weight", weight, "must be a finite non-negative number")
        self._constraints[vid] = DeformationConstraint(as_point(position), weight, force_to_target)
        self._initialized = False

    def clear_constraints(self) -> None:
        self._constraints.clear()
        self._initialized = False

    def is_constrained(self, vid: int) -> bool:
        """ピン（weight > 0）または強制移動の対象か"""
        constraint = self._constraints.get(vid)
        return constraint is not None and (constraint.weight > 0.0 or constraint.force_to_target)

    def constrained_vertices(self) -> List[int]:
        return sorted(vid for vid in self._constraints if self.is_constrained(vid))

    # ------------------------------------------------------------------
    # 解法
    # ------------------------------------------------------------------
    def _current_topology_key(self) -> Tuple[int, int, int]:
        return self.mesh.max_vertex_id, self.mesh.vertex_count, self.mesh.triangle_count

    def initialize(self) -> None:
        """
        ラプラシアン行列を組み立てて正規方程式を分解

        Raises:
            IsolatedVertexError: 隣接エッジを持たない頂点がある
            MeshTopologyError: 制約頂点が削除済み
        """
        start_time = time.perf_counter()
        mesh = self.mesh
        vertex_ids = np.asarray(mesh.vertex_indices(), dtype=np.int64)
        n = len(vertex_ids)
        index = np.full(mesh.max_vertex_id, -1, dtype=np.int64)
        index[vertex_ids] = np.arange(n)

        rows: List[int] = []
        cols: List[int] = []
        vals: List[float] = []
        for i, vid in enumerate(vertex_ids):
            neighbors = mesh.vertex_neighbors(int(vid))
            if not neighbors:
                raise IsolatedVertexError(int(vid))
            rows.append(i)
            cols.append(i)
            vals.append(1.0)
            w = -1.0 / len(neighbors)
            for nb in neighbors:
                rows.append(i)
                cols.append(int(index[nb]))
                vals.append(w)
        laplacian = sparse.csr_matrix((vals, (rows, cols)), shape=(n, n))

        positions = mesh.positions()[vertex_ids]
        delta = laplacian @ positions

        weights_sq = np.zeros(n)
        targets = np.zeros((n, 3))
        for vid, constraint in self._constraints.items():
            if not mesh.is_vertex(vid):
                raise MeshTopologyError(f"Constrained vertex {vid} no longer exists", vid)
            if constraint.weight > 0.0:
                weights_sq[index[vid]] = constraint.weight ** 2
                targets[index[vid]] = constraint.position

        system = (laplacian.T @ laplacian + sparse.diags(weights_sq)).tocsc()
        self._rhs_base = laplacian.T @ delta
        self._solver = splu(system) if np.any(weights_sq > 0.0) else None

        self._vertex_ids = vertex_ids
        self._positions = positions
        self._pin_weights_sq = weights_sq
        self._pin_targets = targets
        self._topology_key = self._current_topology_key()
        self._initialized = True

        self.stats['num_vertices'] = n
        self.stats['num_pinned'] = int(np.count_nonzero(weights_sq))
        self.stats['matrix_nnz'] = int(system.nnz)
        self.stats['initialize_time_ms'] = (time.perf_counter() - start_time) * 1000
        logger.debug(
            f"Laplacian system initialized: n={n}, pinned={self.stats['num_pinned']}, "
            f"nnz={system.nnz}, {self.stats['initialize_time_ms']:.2f}ms"
        )

    def solve(self) -> np.ndarray:
        """
        変形後の頂点位置を計算

        Returns:
            頂点ID順の座標配列 (max_vertex_id, 3)。削除済みIDの行は0
        """
        if not self._initialized or self._topology_key != self._current_topology_key():
            self.initialize()
        start_time = time.perf_counter()

        if self._solver is None:
            # ピンなし: 元の位置がラプラシアン残差0の解
            logger.debug("No pinned vertices; returning Laplacian-preserving positions")
            solution = self._positions.copy()
        else:
            rhs = self._rhs_base + self._pin_weights_sq[:, None] * self._pin_targets
            solution = np.column_stack([self._solver.solve(np.ascontiguousarray(rhs[:, k])) for k in range(3)])

        result = np.zeros((self.mesh.max_vertex_id, 3))
        result[self._vertex_ids] = solution
        for vid, constraint in self._constraints.items():
            if constraint.force_to_target:
                result[vid] = constraint.position

        self.stats['total_solves'] += 1
        self.stats['last_solve_time_ms'] = (time.perf_counter() - start_time) * 1000
        return result

    def solve_and_update_mesh(self) -> np.ndarray:
        """解を計算してメッシュへ書き戻す"""
        result = self.solve()
        for vid in self._vertex_ids:
            self.mesh.set_vertex(int(vid), result[vid])
        return result

    def get_performance_stats(self) -> dict:
        """パフォーマンス統計取得"""
        return self.stats.copy()
