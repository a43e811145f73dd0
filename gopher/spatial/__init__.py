"""
空間検索モジュール

メッシュ三角形のBVH、点-三角形距離計算、
リメッシュ用の投影ターゲットを提供します。
"""

from .distance import (
    closest_points_on_triangles,
    point_triangle_distance,
    find_nearest_triangle_linear,
)
from .index import BoundingBox, BVHNode, NearestPointResult, MeshAABBTree
from .target import MeshProjectionTarget

__all__ = [
    'closest_points_on_triangles',
    'point_triangle_distance',
    'find_nearest_triangle_linear',
    'BoundingBox',
    'BVHNode',
    'NearestPointResult',
    'MeshAABBTree',
    'MeshProjectionTarget',
]
