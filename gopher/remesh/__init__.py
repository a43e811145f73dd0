"""
リメッシュモジュール

エッジ・頂点制約の管理、鋭角エッジ分類、
制約付きインクリメンタルリメッシャーを提供します。
"""

from .constraints import (
    EdgeRefineFlags,
    EdgeConstraint,
    VertexConstraint,
    MeshConstraints,
    plane_group_fn,
    classify_sharp_edges,
)
from .remesher import Remesher

__all__ = [
    'EdgeRefineFlags',
    'EdgeConstraint',
    'VertexConstraint',
    'MeshConstraints',
    'plane_group_fn',
    'classify_sharp_edges',
    'Remesher',
]
