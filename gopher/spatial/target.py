#!/usr/bin/env python3
"""
投影ターゲット

リメッシュ中の頂点を元形状の表面へ引き戻すための投影ターゲットです。
"""

from typing import Optional
import numpy as np

from ..data_types import ArrayLike
from ..mesh.dmesh import DynamicMesh
from .index import MeshAABBTree


class MeshProjectionTarget:
    """メッシュ表面への最近接点投影"""

    def __init__(self, mesh: DynamicMesh, spatial: Optional[MeshAABBTree] = None):
        """
        初期化

        Args:
            mesh: ターゲット形状（参照のみ、編集しないこと）
            spatial: 構築済みBVH（Noneなら mesh から構築）
        """
        self.mesh = mesh
        self.spatial = spatial if spatial is not None else MeshAABBTree(mesh).build()

    @classmethod
    def from_mesh(cls, mesh: DynamicMesh) -> 'MeshProjectionTarget':
        """メッシュのコピーからターゲットとBVHを作成"""
        frozen = mesh.copy()
        return cls(frozen, MeshAABBTree(frozen).build())

    def project(self, point: ArrayLike) -> np.ndarray:
        """点をターゲット表面へ投影"""
        return self.spatial.nearest_point(point)

    def nearest_triangle(self, point: ArrayLike) -> int:
        return self.spatial.nearest_triangle(point)
