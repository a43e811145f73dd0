#!/usr/bin/env python3
"""
制約付きリメッシャー

エッジ分割・縮約・反転と接線方向スムージングを繰り返し、
メッシュのエッジ長を [min_edge_length, max_edge_length] に近づけます。
各編集は制約セットとトポロジー判定を通過した場合のみ実行され、
許可されない編集はスキップとして統計に計上されます。
"""

import math
import time
from collections import deque
from typing import Dict, List, Optional, Set, Tuple
import numpy as np

from ..constants import (
    BASE_MAX_EDGE_LENGTH,
    BASE_MIN_EDGE_LENGTH,
    BOUNDARY_TARGET_VALENCE,
    DEFAULT_SMOOTH_SPEED,
    DEGENERATE_AREA_EPSILON,
    INTERIOR_TARGET_VALENCE,
    MAX_SPLITS_PER_TRIANGLE,
    NO_GROUP_ID,
)
from ..data_types import EdgeKey, InvalidParameterError, edge_key
from ..mesh.dmesh import DynamicMesh
from ..spatial.target import MeshProjectionTarget
from .. import get_logger
from .constraints import EdgeConstraint, MeshConstraints, VertexConstraint

logger = get_logger(__name__)


def _empty_pass_stats() -> Dict[str, int]:
    return {
        'splits': 0,
        'collapses': 0,
        'flips': 0,
        'smoothed': 0,
        'projected': 0,
        'skipped_splits': 0,
        'skipped_collapses': 0,
        'skipped_flips': 0,
    }


class Remesher:
    """
    制約付きインクリメンタルリメッシャー

    1パス = 分割 → 縮約 → 反転 → スムージング → 投影。
    エッジはキーのソート順で処理されるため結果は決定的です。
    """

    def __init__(
        self,
        mesh: DynamicMesh,
        constraints: Optional[MeshConstraints] = None,
        target: Optional[MeshProjectionTarget] = None
    ):
        """
        初期化

        Args:
            mesh: 編集対象メッシュ（直接書き換える）
            constraints: 外部制約セット
            target: 投影ターゲット
        """
        self.mesh = mesh
        self.constraints = constraints if constraints is not None else MeshConstraints()
        self.target = target

        # パラメータ
        self.min_edge_length = BASE_MIN_EDGE_LENGTH
        self.max_edge_length = BASE_MAX_EDGE_LENGTH
        self.smooth_speed = DEFAULT_SMOOTH_SPEED
        self.enable_flips = True
        self.enable_splits = True
        self.enable_collapses = True
        self.enable_smoothing = True
        self.enable_projection = True

        self._precomputed = False
        self._mesh_is_closed = False

        # パフォーマンス統計
        self.stats = {
            'total_passes': 0,
            'total_time_ms': 0.0,
            'last_pass_time_ms': 0.0,
            **_empty_pass_stats()
        }
        self.last_pass_stats = _empty_pass_stats()

    # ------------------------------------------------------------------
    # 設定
    # ------------------------------------------------------------------
    def set_external_constraints(self, constraints: MeshConstraints) -> None:
        self.constraints = constraints
        self._precomputed = False

    def set_projection_target(self, target: Optional[MeshProjectionTarget]) -> None:
        self.target = target

    def set_edge_length_range(self, min_edge_length: float, max_edge_length: float) -> None:
        """エッジ長の目標範囲を設定"""
        self.min_edge_length = float(min_edge_length)
        self.max_edge_length = float(max_edge_length)
        self._validate_parameters()

    def precompute(self) -> None:
        """
        パス実行前の準備

        メッシュが閉じているかを記録し、削除済み要素を指す制約を取り除きます。
        """
        self._mesh_is_closed = not self.mesh.boundary_edges()

        stale_vertices = [vid for vid, _ in self.constraints.vertex_constraints()
                          if not self.mesh.is_vertex(vid)]
        for vid in stale_vertices:
            self.constraints.clear_vertex_constraint(vid)
        stale_edges = [key for key, _ in self.constraints.edge_constraints()
                       if not self.mesh.has_edge(*key)]
        for key in stale_edges:
            self.constraints.clear_edge_constraint(*key)
        if stale_vertices or stale_edges:
            logger.warning(
                f"Dropped {len(stale_vertices)} vertex and {len(stale_edges)} edge constraints "
                f"referencing missing elements"
            )

        self._precomputed = True
        logger.debug(
            f"Remesher precomputed: closed={self._mesh_is_closed}, "
            f"V={self.mesh.vertex_count}, T={self.mesh.triangle_count}"
        )

    def _validate_parameters(self) -> None:
        if not self.min_edge_length > 0.0:
            raise InvalidParameterError("min_edge_length", self.min_edge_length, "must be positive")
        if not self.max_edge_length > self.min_edge_length:
            raise InvalidParameterError(
                "max_edge_length", self.max_edge_length,
                f"must be greater than min_edge_length={self.min_edge_length}"
            )
        if not 0.0 <= self.smooth_speed <= 1.0:
            raise InvalidParameterError("smooth_speed", self.smooth_speed, "must be within [0, 1]")

    # ------------------------------------------------------------------
    # パス実行
    # ------------------------------------------------------------------
    def remesh(self, passes: int) -> dict:
        """
        指定回数のパスを実行

        Args:
            passes: パス数（0以上）

        Returns:
            累積統計
        """
        if isinstance(passes, bool) or not isinstance(passes, (int, np.integer)) or passes < 0:
            raise InvalidParameterError("passes", passes, "must be a non-negative integer")
        for _ in range(int(passes)):
            self.basic_remesh_pass()
        logger.info(
            f"Remesh finished: {passes} passes, V={self.mesh.vertex_count}, "
            f"T={self.mesh.triangle_count}, {self.stats['total_time_ms']:.1f}ms total"
        )
        return self.get_performance_stats()

    def basic_remesh_pass(self) -> Dict[str, int]:
        """
        1パス実行

        Returns:
            このパスの編集・スキップ数
        """
        self._validate_parameters()
        if not self._precomputed:
            self.precompute()
        start_time = time.perf_counter()
        self.last_pass_stats = _empty_pass_stats()

        if self.enable_splits:
            self._split_sweep()
        if self.enable_collapses:
            self._collapse_sweep()
        if self.enable_flips:
            self._flip_sweep()
        if self.enable_smoothing and self.smooth_speed > 0.0:
            self._smooth_vertices()
        if self.enable_projection and self.target is not None:
            self._project_vertices()

        elapsed_ms = (time.perf_counter() - start_time) * 1000
        self.stats['total_passes'] += 1
        self.stats['total_time_ms'] += elapsed_ms
        self.stats['last_pass_time_ms'] = elapsed_ms
        for key, value in self.last_pass_stats.items():
            self.stats[key] += value

        logger.debug(f"Remesh pass {self.stats['total_passes']}: {self.last_pass_stats}, {elapsed_ms:.1f}ms")
        return dict(self.last_pass_stats)

    # ------------------------------------------------------------------
    # 分割
    # ------------------------------------------------------------------
    def _split_sweep(self) -> None:
        """長すぎるエッジをキューで中点分割"""
        mesh = self.mesh
        queue = deque(key for key in mesh.edges() if mesh.edge_length(*key) > self.max_edge_length)
        split_limit = MAX_SPLITS_PER_TRIANGLE * max(mesh.triangle_count, 1)

        while queue:
            a, b = queue.popleft()
            if not mesh.has_edge(a, b) or mesh.edge_length(a, b) <= self.max_edge_length:
                continue
            constraint = self.constraints.get_edge_constraint(a, b)
            if not constraint.can_split:
                self.last_pass_stats['skipped_splits'] += 1
                continue
            if self.last_pass_stats['splits'] >= split_limit:
                logger.warning(f"Split limit {split_limit} reached; {len(queue) + 1} edges left for the next pass")
                break

            new_vertex, new_edges = self._split_edge(a, b, constraint)
            self.last_pass_stats['splits'] += 1
            for key in new_edges:
                if mesh.edge_length(*key) > self.max_edge_length:
                    queue.append(key)

    def _split_edge(self, a: int, b: int, constraint: EdgeConstraint) -> Tuple[int, List[EdgeKey]]:
        """エッジを分割し、制約を新しいエッジ・頂点へ引き継ぐ"""
        constrained = self.constraints.has_edge_constraint(a, b)
        info = self.mesh.split_edge(a, b)
        m = info.new_vertex

        if constrained:
            self.constraints.clear_edge_constraint(a, b)
            self.constraints.set_or_update_edge_constraint(a, m, constraint)
            self.constraints.set_or_update_edge_constraint(m, b, constraint)
            if self.target is not None:
                self.mesh.set_vertex(m, self.target.project(self.mesh.get_vertex(m)))

            ca = self.constraints.get_vertex_constraint(a)
            cb = self.constraints.get_vertex_constraint(b)
            if ca.fixed and cb.fixed and ca.group_id == cb.group_id:
                self.constraints.set_or_update_vertex_constraint(m, VertexConstraint(True, ca.group_id))

        new_edges = [edge_key(a, m), edge_key(m, b)] + [edge_key(m, c) for c in info.opposite]
        return m, new_edges

    # ------------------------------------------------------------------
    # 縮約
    # ------------------------------------------------------------------
    def _collapse_sweep(self) -> None:
        """短すぎるエッジを縮約"""
        mesh = self.mesh
        queue = deque(key for key in mesh.edges() if mesh.edge_length(*key) < self.min_edge_length)

        while queue:
            a, b = queue.popleft()
            if not mesh.has_edge(a, b) or mesh.edge_length(a, b) >= self.min_edge_length:
                continue
            plan = self._plan_collapse(a, b)
            if plan is None:
                self.last_pass_stats['skipped_collapses'] += 1
                continue

            keep, remove, position = plan
            self._collapse_edge(keep, remove, position)
            self.last_pass_stats['collapses'] += 1
            for n in mesh.vertex_neighbors(keep):
                if mesh.edge_length(keep, n) < self.min_edge_length:
                    queue.append(edge_key(keep, n))

    def _plan_collapse(self, a: int, b: int) -> Optional[Tuple[int, int, np.ndarray]]:
        """
        縮約の可否と残す頂点・統合位置を決定

        候補位置のうち周囲のエッジが最大長以内に収まるものを優先します。
        どの候補でも最大長を超える場合は、超過が最小エッジ長以内の候補を
        採用し、長いエッジは次のパスの分割に任せます。

        Returns:
            (残す頂点, 削除する頂点, 統合位置)、縮約不可なら None
        """
        mesh = self.mesh
        if not self.constraints.can_collapse(a, b):
            return None

        ca = self.constraints.get_vertex_constraint(a)
        cb = self.constraints.get_vertex_constraint(b)
        if ca.group_id != NO_GROUP_ID and cb.group_id != NO_GROUP_ID and ca.group_id != cb.group_id:
            return None
        if not mesh.can_collapse(a, b):
            return None

        pa, pb = mesh.get_vertex(a), mesh.get_vertex(b)
        if ca.fixed and cb.fixed:
            # 同じグループの制約エッジに沿った縮約のみ許可
            if ca.group_id == NO_GROUP_ID or ca.group_id != cb.group_id:
                return None
            if not self.constraints.has_edge_constraint(a, b):
                return None
            candidates = [(a, b, pa), (b, a, pb)]
        elif ca.fixed:
            candidates = [(a, b, pa)]
        elif cb.fixed:
            candidates = [(b, a, pb)]
        else:
            a_boundary = self._is_boundary_vertex(a)
            b_boundary = self._is_boundary_vertex(b)
            if a_boundary and not b_boundary:
                candidates = [(a, b, pa)]
            elif b_boundary and not a_boundary:
                candidates = [(b, a, pb)]
            else:
                candidates = [(a, b, 0.5 * (pa + pb)), (a, b, pa), (b, a, pb)]

        best = None
        best_length = math.inf
        for keep, remove, position in candidates:
            if self._collapse_flips_normals(keep, remove, position):
                continue
            longest = self._longest_collapsed_edge(keep, remove, position)
            if longest <= self.max_edge_length:
                return keep, remove, position
            if longest < best_length:
                best, best_length = (keep, remove, position), longest

        if best is None or best_length > self.max_edge_length + self.min_edge_length:
            return None
        return best

    def _longest_collapsed_edge(self, keep: int, remove: int, position: np.ndarray) -> float:
        mesh = self.mesh
        neighbors = set(mesh.vertex_neighbors(keep)) | set(mesh.vertex_neighbors(remove))
        neighbors -= {keep, remove}
        return max((float(np.linalg.norm(mesh.get_vertex(n) - position)) for n in neighbors), default=0.0)

    def _collapse_flips_normals(self, keep: int, remove: int, position: np.ndarray) -> bool:
        """縮約後に残る三角形の法線が反転・退化するか"""
        mesh = self.mesh
        removed = set(mesh.edge_triangles(keep, remove))
        affected: Set[int] = set(mesh.vertex_triangles(keep)) | set(mesh.vertex_triangles(remove))
        for tid in sorted(affected - removed):
            tri = mesh.get_triangle(tid)
            old = [mesh.get_vertex(v) for v in tri]
            new = [position if v in (keep, remove) else p for v, p in zip(tri, old)]
            n_old = np.cross(old[1] - old[0], old[2] - old[0])
            n_new = np.cross(new[1] - new[0], new[2] - new[0])
            if np.linalg.norm(n_new) < DEGENERATE_AREA_EPSILON:
                return True
            if np.dot(n_old, n_new) <= 0.0:
                return True
        return False

    def _collapse_edge(self, keep: int, remove: int, position: np.ndarray) -> None:
        """縮約を実行し、削除頂点の制約を残す頂点へ移す"""
        constraints = self.constraints
        moved_edges: Dict[int, EdgeConstraint] = {}
        for n in self.mesh.vertex_neighbors(remove):
            if n != keep and constraints.has_edge_constraint(remove, n):
                moved_edges[n] = constraints.get_edge_constraint(remove, n)
                constraints.clear_edge_constraint(remove, n)
        constraints.clear_edge_constraint(keep, remove)

        removed_constraint = constraints.get_vertex_constraint(remove)
        constraints.clear_vertex_constraint(remove)

        self.mesh.collapse_edge(keep, remove, position)

        for n, constraint in moved_edges.items():
            if constraints.has_edge_constraint(keep, n):
                constraint = constraints.get_edge_constraint(keep, n).merged(constraint)
            constraints.set_or_update_edge_constraint(keep, n, constraint)
        if not constraints.has_vertex_constraint(keep) and not removed_constraint.is_unconstrained:
            constraints.set_or_update_vertex_constraint(keep, removed_constraint)

    # ------------------------------------------------------------------
    # 反転
    # ------------------------------------------------------------------
    def _flip_sweep(self) -> None:
        """次数偏差が改善する内部エッジを反転"""
        mesh = self.mesh
        for a, b in mesh.edges():
            if not mesh.has_edge(a, b) or not mesh.can_flip(a, b):
                continue
            if not self.constraints.can_flip(a, b):
                self.last_pass_stats['skipped_flips'] += 1
                continue

            c, d = mesh.edge_opposite_vertices(a, b)
            if not self._flip_improves_valence(a, b, c, d):
                continue
            new_length = mesh.edge_length(c, d)
            if new_length > self.max_edge_length or new_length < self.min_edge_length:
                continue
            if self._flip_inverts_triangles(a, b):
                self.last_pass_stats['skipped_flips'] += 1
                continue

            # 削除されるエッジの制約レコードは破棄
            self.constraints.clear_edge_constraint(a, b)
            mesh.flip_edge(a, b)
            self.last_pass_stats['flips'] += 1

    def _target_valence(self, vid: int) -> int:
        return BOUNDARY_TARGET_VALENCE if self._is_boundary_vertex(vid) else INTERIOR_TARGET_VALENCE

    def _flip_improves_valence(self, a: int, b: int, c: int, d: int) -> bool:
        mesh = self.mesh
        valences = {v: mesh.valence(v) for v in (a, b, c, d)}
        targets = {v: self._target_valence(v) for v in (a, b, c, d)}
        before = sum(abs(valences[v] - targets[v]) for v in (a, b, c, d))
        after = (
            abs(valences[a] - 1 - targets[a]) + abs(valences[b] - 1 - targets[b])
            + abs(valences[c] + 1 - targets[c]) + abs(valences[d] + 1 - targets[d])
        )
        return after < before

    def _flip_inverts_triangles(self, a: int, b: int) -> bool:
        """反転後の2三角形が元の面の向きと逆、または退化するか"""
        mesh = self.mesh
        t0, t1 = mesh.edge_triangles(a, b)
        reference = mesh.triangle_normal(t0) + mesh.triangle_normal(t1)

        u, w, c = mesh.oriented_triangle(t0, a, b)
        _, _, d = mesh.oriented_triangle(t1, a, b)
        pc, pu, pd, pw = (mesh.get_vertex(v) for v in (c, u, d, w))
        for p0, p1, p2 in ((pc, pu, pd), (pd, pw, pc)):
            normal = np.cross(p1 - p0, p2 - p0)
            if np.linalg.norm(normal) < DEGENERATE_AREA_EPSILON or np.dot(normal, reference) <= 0.0:
                return True
        return False

    # ------------------------------------------------------------------
    # スムージング・投影
    # ------------------------------------------------------------------
    def _is_free(self, vid: int) -> bool:
        return not self.constraints.is_fixed(vid)

    def _is_boundary_vertex(self, vid: int) -> bool:
        if self._mesh_is_closed:
            return False
        return self.mesh.is_boundary_vertex(vid)

    def _smooth_vertices(self) -> None:
        """自由な内部頂点を1-ring重心へ smooth_speed の割合だけ移動"""
        mesh = self.mesh
        positions = mesh.positions()
        updates: Dict[int, np.ndarray] = {}
        for vid in mesh.vertex_indices():
            if not self._is_free(vid) or self._is_boundary_vertex(vid):
                continue
            neighbors = mesh.vertex_neighbors(vid)
            if not neighbors:
                continue
            centroid = positions[neighbors].mean(axis=0)
            updates[vid] = positions[vid] + self.smooth_speed * (centroid - positions[vid])

        for vid, position in updates.items():
            mesh.set_vertex(vid, position)
        self.last_pass_stats['smoothed'] += len(updates)

    def _project_vertices(self) -> None:
        """自由頂点をターゲット表面へ投影"""
        mesh = self.mesh
        count = 0
        for vid in mesh.vertex_indices():
            if not self._is_free(vid):
                continue
            mesh.set_vertex(vid, self.target.project(mesh.get_vertex(vid)))
            count += 1
        self.last_pass_stats['projected'] += count

    def get_performance_stats(self) -> dict:
        """パフォーマンス統計取得"""
        return self.stats.copy()

    def reset_stats(self):
        """統計リセット"""
        self.stats = {
            'total_passes': 0,
            'total_time_ms': 0.0,
            'last_pass_time_ms': 0.0,
            **_empty_pass_stats()
        }
        self.last_pass_stats = _empty_pass_stats()
