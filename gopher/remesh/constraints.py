#!/usr/bin/env python3
"""
リメッシュ制約

エッジごとの編集許可フラグ（反転・分割・縮約）と頂点ごとの固定フラグ・
グループIDを保持する制約セット、および二面角による鋭角エッジ分類を提供します。
"""

from dataclasses import dataclass
from enum import IntFlag
from typing import Callable, Dict, Iterator, List, Optional, Tuple
import time
import numpy as np

from ..constants import (
    GROUP_PLANE_AXIS,
    GROUP_PLANE_OFFSET,
    LOWER_GROUP_ID,
    NO_GROUP_ID,
    SHARP_EDGE_ANGLE_DEG,
    UPPER_GROUP_ID,
)
from ..data_types import EdgeKey, InvalidParameterError, edge_key
from ..mesh.dmesh import DynamicMesh
from ..mesh.utils import opening_angle_deg
from .. import get_logger

logger = get_logger(__name__)


class EdgeRefineFlags(IntFlag):
    """エッジ編集の禁止フラグ"""
    NONE = 0
    NO_FLIP = 1
    NO_SPLIT = 2
    NO_COLLAPSE = 4
    FULLY_CONSTRAINED = NO_FLIP | NO_SPLIT | NO_COLLAPSE


@dataclass(frozen=True)
class EdgeConstraint:
    """エッジ制約"""
    flags: EdgeRefineFlags = EdgeRefineFlags.NONE

    @property
    def can_flip(self) -> bool:
        return not self.flags & EdgeRefineFlags.NO_FLIP

    @property
    def can_split(self) -> bool:
        return not self.flags & EdgeRefineFlags.NO_SPLIT

    @property
    def can_collapse(self) -> bool:
        return not self.flags & EdgeRefineFlags.NO_COLLAPSE

    @property
    def is_unconstrained(self) -> bool:
        return self.flags == EdgeRefineFlags.NONE

    def merged(self, other: 'EdgeConstraint') -> 'EdgeConstraint':
        """フラグの論理和"""
        return EdgeConstraint(EdgeRefineFlags(self.flags | other.flags))


@dataclass(frozen=True)
class VertexConstraint:
    """頂点制約（固定フラグとグループID、0はグループなし）"""
    fixed: bool = False
    group_id: int = NO_GROUP_ID

    @property
    def is_unconstrained(self) -> bool:
        return not self.fixed and self.group_id == NO_GROUP_ID


UNCONSTRAINED_EDGE = EdgeConstraint()
UNCONSTRAINED_VERTEX = VertexConstraint()


class MeshConstraints:
    """
    メッシュ制約セット

    エッジは頂点ペアのキー、頂点はIDで制約レコードを引きます。
    レコードのないエッジ・頂点は制約なしとして扱います。
    """

    def __init__(self):
        self._edges: Dict[EdgeKey, EdgeConstraint] = {}
        self._vertices: Dict[int, VertexConstraint] = {}

    # エッジ制約
    def set_or_update_edge_constraint(self, a: int, b: int, constraint: EdgeConstraint) -> None:
        self._edges[edge_key(a, b)] = constraint

    def get_edge_constraint(self, a: int, b: int) -> EdgeConstraint:
        return self._edges.get(edge_key(a, b), UNCONSTRAINED_EDGE)

    def has_edge_constraint(self, a: int, b: int) -> bool:
        return edge_key(a, b) in self._edges

    def clear_edge_constraint(self, a: int, b: int) -> None:
        self._edges.pop(edge_key(a, b), None)

    def edge_constraints(self) -> Iterator[Tuple[EdgeKey, EdgeConstraint]]:
        """(エッジキー, 制約) をキー順に列挙"""
        for key in sorted(self._edges):
            yield key, self._edges[key]

    # 頂点制約
    def set_or_update_vertex_constraint(self, vid: int, constraint: VertexConstraint) -> None:
        self._vertices[vid] = constraint

    def get_vertex_constraint(self, vid: int) -> VertexConstraint:
        return self._vertices.get(vid, UNCONSTRAINED_VERTEX)

    def has_vertex_constraint(self, vid: int) -> bool:
        return vid in self._vertices

    def clear_vertex_constraint(self, vid: int) -> None:
        self._vertices.pop(vid, None)

    def vertex_constraints(self) -> Iterator[Tuple[int, VertexConstraint]]:
        """(頂点ID, 制約) をID順に列挙"""
        for vid in sorted(self._vertices):
            yield vid, self._vertices[vid]

    def is_fixed(self, vid: int) -> bool:
        return self.get_vertex_constraint(vid).fixed

    def fixed_vertices(self) -> List[int]:
        return sorted(vid for vid, c in self._vertices.items() if c.fixed)

    # 編集許可
    def can_flip(self, a: int, b: int) -> bool:
        return self.get_edge_constraint(a, b).can_flip

    def can_split(self, a: int, b: int) -> bool:
        return self.get_edge_constraint(a, b).can_split

    def can_collapse(self, a: int, b: int) -> bool:
        return self.get_edge_constraint(a, b).can_collapse

    @property
    def num_edge_constraints(self) -> int:
        return len(self._edges)

    @property
    def num_vertex_constraints(self) -> int:
        return len(self._vertices)

    def clear(self) -> None:
        self._edges.clear()
        self._vertices.clear()

    def copy(self) -> 'MeshConstraints':
        other = MeshConstraints()
        other._edges = dict(self._edges)
        other._vertices = dict(self._vertices)
        return other

    def remapped(self, vertex_map: Dict[int, int]) -> 'MeshConstraints':
        """頂点IDを付け替えた制約セット（対応のない頂点の制約は破棄）"""
        other = MeshConstraints()
        for (a, b), constraint in self._edges.items():
            if a in vertex_map and b in vertex_map:
                other.set_or_update_edge_constraint(vertex_map[a], vertex_map[b], constraint)
        for vid, constraint in self._vertices.items():
            if vid in vertex_map:
                other.set_or_update_vertex_constraint(vertex_map[vid], constraint)
        return other

    def __eq__(self, other) -> bool:
        if not isinstance(other, MeshConstraints):
            return NotImplemented
        return self._edges == other._edges and self._vertices == other._vertices

    def __repr__(self) -> str:
        return f"MeshConstraints(edges={len(self._edges)}, vertices={len(self._vertices)})"


def plane_group_fn(axis: int = GROUP_PLANE_AXIS,
                   offset: float = GROUP_PLANE_OFFSET,
                   upper_group: int = UPPER_GROUP_ID,
                   lower_group: int = LOWER_GROUP_ID) -> Callable[[np.ndarray], int]:
    """
    平面の上下でグループIDを決める関数を作成

    Args:
        axis: 判定する座標軸 (0=X, 1=Y, 2=Z)
        offset: 平面位置
        upper_group: offset より大きい側のグループID
        lower_group: それ以外のグループID
    """
    if axis not in (0, 1, 2):
        raise InvalidParameterError("axis", axis, "must be 0, 1 or 2")

    def group_of(position: np.ndarray) -> int:
        return upper_group if position[axis] > offset else lower_group

    return group_of


def classify_sharp_edges(
    mesh: DynamicMesh,
    threshold_deg: float = SHARP_EDGE_ANGLE_DEG,
    group_fn: Optional[Callable[[np.ndarray], int]] = None,
    flags: EdgeRefineFlags = EdgeRefineFlags.NO_FLIP,
    constraints: Optional[MeshConstraints] = None
) -> MeshConstraints:
    """
    二面角で鋭角エッジを分類して制約を設定

    開き角が閾値を超えるエッジ（境界エッジは常に）に flags を設定し、
    両端点を固定頂点として group_fn のグループIDを割り当てます。

    Args:
        mesh: 対象メッシュ
        threshold_deg: 鋭角判定の閾値（度）
        group_fn: 頂点座標からグループIDを返す関数（Noneなら Y > 1 で 1、それ以外 2）
        flags: 鋭角エッジに設定するフラグ
        constraints: 追記先の制約セット（Noneなら新規作成）

    Returns:
        制約セット
    """
    if not threshold_deg >= 0.0:
        raise InvalidParameterError("threshold_deg", threshold_deg, "must be non-negative")
    start_time = time.perf_counter()
    group_of = group_fn if group_fn is not None else plane_group_fn()
    result = constraints if constraints is not None else MeshConstraints()
    edge_constraint = EdgeConstraint(EdgeRefineFlags(flags))

    num_sharp = 0
    for a, b in mesh.edges():
        if opening_angle_deg(mesh, a, b) > threshold_deg:
            result.set_or_update_edge_constraint(a, b, edge_constraint)
            for vid in (a, b):
                result.set_or_update_vertex_constraint(
                    vid, VertexConstraint(True, int(group_of(mesh.get_vertex(vid))))
                )
            num_sharp += 1

    elapsed_ms = (time.perf_counter() - start_time) * 1000
    logger.debug(
        f"Sharp edge classification: {num_sharp}/{mesh.edge_count} edges, "
        f"{result.num_vertex_constraints} fixed vertices, {elapsed_ms:.2f}ms"
    )
    return result
