"""
変形モジュール

制約付きラプラシアンメッシュ変形を提供します。
"""

from .laplacian import DeformationConstraint, LaplacianMeshDeformer

__all__ = [
    'DeformationConstraint',
    'LaplacianMeshDeformer',
]
