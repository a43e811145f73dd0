"""
メッシュモジュール

動的三角形メッシュ（IDアリーナ）、キャップ付き円柱の生成、
メッシュユーティリティを提供します。
"""

from .dmesh import (
    TriangleMesh,
    DynamicMesh,
    EdgeSplitInfo,
    EdgeFlipInfo,
    EdgeCollapseInfo,
)
from .generators import CappedCylinderGenerator, make_capped_cylinder
from .utils import (
    compute_triangle_normals,
    scale_mesh,
    opening_angle_deg,
    edge_lengths,
    edge_length_range,
)

__all__ = [
    # データ構造
    'TriangleMesh',
    'DynamicMesh',
    'EdgeSplitInfo',
    'EdgeFlipInfo',
    'EdgeCollapseInfo',

    # 生成
    'CappedCylinderGenerator',
    'make_capped_cylinder',

    # ユーティリティ
    'compute_triangle_normals',
    'scale_mesh',
    'opening_angle_deg',
    'edge_lengths',
    'edge_length_range',
]
