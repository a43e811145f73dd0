#!/usr/bin/env python3
"""
共通型定義

パイプライン全体で使用される型エイリアスと例外を一元管理し、
モジュール間の循環依存を解消します。
"""

from typing import List, Optional, Tuple, Union
import numpy as np

# 型エイリアス
ArrayLike = Union[np.ndarray, List, Tuple]
EdgeKey = Tuple[int, int]


def edge_key(a: int, b: int) -> EdgeKey:
    """頂点ペアから向きに依存しないエッジキーを作成"""
    return (a, b) if a < b else (b, a)


def as_point(value: ArrayLike) -> np.ndarray:
    """3D座標を float64 の (3,) 配列に変換"""
    point = np.asarray(value, dtype=np.float64).reshape(-1)
    if point.shape != (3,):
        raise InvalidParameterError("point", value, "expected three coordinates")
    return point


# =============================================================================
# 例外定義
# =============================================================================

class InvalidParameterError(ValueError):
    """生成・リメッシュ・変形パラメータの入力検証エラー"""

    def __init__(self, name: str, value, reason: str = ""):
        self.name = name
        self.value = value
        message = f"Invalid parameter {name}={value!r}"
        if reason:
            message += f": {reason}"
        super().__init__(message)


class MeshTopologyError(ValueError):
    """無効または削除済みの頂点・三角形に対する操作"""

    def __init__(self, message: str, element_id: Optional[int] = None):
        self.element_id = element_id
        super().__init__(message)


class IsolatedVertexError(MeshTopologyError):
    """変形ソルバーに入力された孤立頂点"""

    def __init__(self, vertex_id: int):
        super().__init__(f"Vertex {vertex_id} has no incident edges", vertex_id)


class SpatialIndexNotBuiltError(RuntimeError):
    """build() 前の空間クエリ"""
