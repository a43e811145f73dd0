#!/usr/bin/env python3
"""
共通定数・設定値

パイプライン全体で使用される定数や閾値を一元管理し、
モジュール間の循環依存を解消します。
"""

from typing import Final, Tuple

# =============================================================================
# 数値精度・許容誤差
# =============================================================================

DISTANCE_EPSILON: Final[float] = 1e-12
DEGENERATE_AREA_EPSILON: Final[float] = 1e-14

# =============================================================================
# メッシュ生成関連
# =============================================================================

MIN_CYLINDER_SLICES: Final[int] = 3
DEFAULT_CYLINDER_SLICES: Final[int] = 16
REMESH_SOURCE_SLICES: Final[int] = 128       # リメッシュ元の円柱分割数
DEFAULT_CYLINDER_SCALE: Final[Tuple[float, float, float]] = (1.0, 2.0, 1.0)

# 配列の初期容量
INITIAL_VERTEX_CAPACITY: Final[int] = 64
INITIAL_TRIANGLE_CAPACITY: Final[int] = 128

# =============================================================================
# 空間インデックス関連
# =============================================================================

MAX_TRIANGLES_PER_LEAF: Final[int] = 10
SPATIAL_INDEX_MAX_DEPTH: Final[int] = 32

# =============================================================================
# 制約分類関連
# =============================================================================

SHARP_EDGE_ANGLE_DEG: Final[float] = 30.0
GROUP_PLANE_AXIS: Final[int] = 1             # Y軸
GROUP_PLANE_OFFSET: Final[float] = 1.0
UPPER_GROUP_ID: Final[int] = 1
LOWER_GROUP_ID: Final[int] = 2
NO_GROUP_ID: Final[int] = 0

# =============================================================================
# リメッシュ関連
# =============================================================================

BASE_MIN_EDGE_LENGTH: Final[float] = 0.1
BASE_MAX_EDGE_LENGTH: Final[float] = 0.2
DEFAULT_SMOOTH_SPEED: Final[float] = 0.5
DEFAULT_REMESH_PASSES: Final[int] = 20
INTERIOR_TARGET_VALENCE: Final[int] = 6
BOUNDARY_TARGET_VALENCE: Final[int] = 4

# 1パスあたりの分割上限（三角形数に対する倍率）
MAX_SPLITS_PER_TRIANGLE: Final[int] = 8

# =============================================================================
# 変形関連
# =============================================================================

DEFAULT_PIN_WEIGHT: Final[float] = 10.0
BOTTOM_PIN_TOLERANCE: Final[float] = 0.01
HANDLE_QUERY_POINT: Final[Tuple[float, float, float]] = (2.0, 5.0, 2.0)
HANDLE_OFFSET: Final[Tuple[float, float, float]] = (0.5, 0.5, 0.5)
