#!/usr/bin/env python3
"""
空間インデックスのテスト

点-三角形最近接点、BVH最近接点クエリ（線形探索との一致、同距離時の
三角形ID規則）、球クエリ、投影ターゲットをテストします。
"""

import unittest
import numpy as np

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from gopher.data_types import SpatialIndexNotBuiltError
from gopher.mesh import make_capped_cylinder, scale_mesh
from gopher.spatial import (
    MeshAABBTree, MeshProjectionTarget,
    closest_points_on_triangles, point_triangle_distance, find_nearest_triangle_linear
)


def brute_force_distance_sq(mesh, point) -> float:
    tids = mesh.triangle_indices()
    positions = mesh.positions()
    tris = np.array([mesh.get_triangle(t) for t in tids])
    _, dist_sq = closest_points_on_triangles(
        np.asarray(point, dtype=float), positions[tris[:, 0]], positions[tris[:, 1]], positions[tris[:, 2]]
    )
    return float(dist_sq.min())


class TestPointTriangleDistance(unittest.TestCase):
    """点-三角形距離テスト"""

    def setUp(self):
        self.v0 = np.array([[0.0, 0.0, 0.0]])
        self.v1 = np.array([[1.0, 0.0, 0.0]])
        self.v2 = np.array([[0.0, 1.0, 0.0]])

    def closest(self, point):
        closest, dist_sq = closest_points_on_triangles(np.asarray(point, dtype=float), self.v0, self.v1, self.v2)
        return closest[0], dist_sq[0]

    def test_face_region(self):
        """面内部"""
        point, dist_sq = self.closest([0.25, 0.25, 1.0])
        np.testing.assert_allclose(point, [0.25, 0.25, 0.0], atol=1e-12)
        self.assertAlmostEqual(dist_sq, 1.0)

    def test_vertex_regions(self):
        """頂点領域"""
        point, dist_sq = self.closest([-1.0, -1.0, 0.0])
        np.testing.assert_allclose(point, [0.0, 0.0, 0.0])
        self.assertAlmostEqual(dist_sq, 2.0)
        point, _ = self.closest([2.0, -1.0, 0.0])
        np.testing.assert_allclose(point, [1.0, 0.0, 0.0])
        point, _ = self.closest([-0.5, 3.0, 0.0])
        np.testing.assert_allclose(point, [0.0, 1.0, 0.0])

    def test_edge_regions(self):
        """エッジ領域"""
        point, _ = self.closest([0.5, -1.0, 0.0])
        np.testing.assert_allclose(point, [0.5, 0.0, 0.0], atol=1e-12)
        point, _ = self.closest([1.0, 1.0, 0.0])
        np.testing.assert_allclose(point, [0.5, 0.5, 0.0], atol=1e-12)
        point, _ = self.closest([-1.0, 0.5, 2.0])
        np.testing.assert_allclose(point, [0.0, 0.5, 0.0], atol=1e-12)

    def test_degenerate_triangle(self):
        """退化三角形"""
        closest, dist_sq = closest_points_on_triangles(
            np.array([1.0, 1.0, 0.0]),
            np.array([[0.0, 0.0, 0.0]]), np.array([[1.0, 0.0, 0.0]]), np.array([[2.0, 0.0, 0.0]])
        )
        self.assertTrue(np.all(np.isfinite(closest)))
        self.assertAlmostEqual(dist_sq[0], 1.0)

    def test_single_triangle_distance(self):
        """単一三角形の距離"""
        tri = [[0, 0, 0], [1, 0, 0], [0, 1, 0]]
        self.assertAlmostEqual(point_triangle_distance([0.2, 0.2, -3.0], tri), 3.0)


class TestMeshAABBTree(unittest.TestCase):
    """BVHテスト"""

    def setUp(self):
        self.mesh = scale_mesh(make_capped_cylinder(False, 16), (1.0, 2.0, 1.0))
        self.tree = MeshAABBTree(self.mesh).build()

    def test_query_before_build(self):
        """build() 前のクエリ"""
        tree = MeshAABBTree(self.mesh)
        self.assertFalse(tree.is_built)
        with self.assertRaises(SpatialIndexNotBuiltError):
            tree.nearest_point([0.0, 0.0, 0.0])
        with self.assertRaises(SpatialIndexNotBuiltError):
            tree.nearest_triangle([0.0, 0.0, 0.0])
        with self.assertRaises(SpatialIndexNotBuiltError):
            tree.query_sphere([0.0, 0.0, 0.0], 1.0)

    def test_build_stats(self):
        """構築統計"""
        stats = self.tree.get_performance_stats()
        self.assertGreater(stats['num_nodes'], 1)
        self.assertGreater(stats['max_depth_reached'], 0)

    def test_matches_brute_force(self):
        """線形探索との一致"""
        rng = np.random.default_rng(7)
        points = rng.uniform(-3.0, 3.0, size=(200, 3))
        for point in points:
            result = self.tree.find_nearest(point)
            expected = brute_force_distance_sq(self.mesh, point)
            self.assertAlmostEqual(result.distance_sq, expected, places=10)
            # 返された点は返された三角形上にある
            a, b, c = self.mesh.get_triangle(result.triangle_id)
            _, on_tri = closest_points_on_triangles(
                result.point, self.mesh.positions()[[a]], self.mesh.positions()[[b]], self.mesh.positions()[[c]]
            )
            self.assertLess(on_tri[0], 1e-18 + 1e-12)
        self.assertEqual(self.tree.stats['total_queries'], len(points))

    def test_agrees_with_linear_search(self):
        """線形探索と同じ三角形"""
        for point in ([2.0, 5.0, 2.0], [0.0, -4.0, 0.3], [3.0, 1.1, 0.2], [0.1, 1.0, 0.05]):
            with self.subTest(point=point):
                self.assertEqual(self.tree.nearest_triangle(point), find_nearest_triangle_linear(self.mesh, point))

    def test_tie_breaks_to_lowest_triangle_id(self):
        """同距離なら最小の三角形ID"""
        # 上面中心の真上: 上面キャップの全三角形が同じ距離
        result = self.tree.find_nearest([0.0, 5.0, 0.0])
        np.testing.assert_allclose(result.point, [0.0, 2.0, 0.0])
        self.assertAlmostEqual(result.distance, 3.0)
        self.assertEqual(result.triangle_id, 3 * 16)
        self.assertEqual(find_nearest_triangle_linear(self.mesh, [0.0, 5.0, 0.0]), 3 * 16)

    def test_snapshot_is_frozen(self):
        """構築後のメッシュ編集は影響しない"""
        before = self.tree.find_nearest([2.0, 1.0, 0.0])
        for vid in self.mesh.vertex_indices():
            self.mesh.set_vertex(vid, self.mesh.get_vertex(vid) * 3.0)
        after = self.tree.find_nearest([2.0, 1.0, 0.0])
        np.testing.assert_allclose(after.point, before.point)
        self.assertEqual(after.triangle_id, before.triangle_id)

    def test_query_sphere(self):
        """球クエリ"""
        # 底面中心の真下、半径1: 底面キャップ三角形のみ
        hits = self.tree.query_sphere([0.0, -1.0, 0.0], 1.0)
        self.assertEqual(hits, list(range(2 * 16, 3 * 16)))
        self.assertEqual(self.tree.query_sphere([0.0, -10.0, 0.0], 1.0), [])

    def test_leaf_size(self):
        """リーフサイズを変えても結果は同じ"""
        tree = MeshAABBTree(self.mesh, max_triangles_per_leaf=1).build()
        for point in ([0.3, 0.7, 2.0], [-1.5, 1.0, -0.2]):
            np.testing.assert_allclose(tree.nearest_point(point), self.tree.nearest_point(point))


class TestProjectionTarget(unittest.TestCase):
    """投影ターゲットテスト"""

    def test_project_onto_side(self):
        """側面への投影"""
        mesh = scale_mesh(make_capped_cylinder(False, 16), (1.0, 2.0, 1.0))
        target = MeshProjectionTarget.from_mesh(mesh)
        np.testing.assert_allclose(target.project([2.0, 0.5, 0.0]), [1.0, 0.5, 0.0], atol=1e-12)
        # 表面上の点は動かない
        on_surface = mesh.get_vertex(3)
        np.testing.assert_allclose(target.project(on_surface), on_surface, atol=1e-12)

    def test_target_owns_copy(self):
        """ターゲットはコピーを保持"""
        mesh = make_capped_cylinder(False, 8)
        target = MeshProjectionTarget.from_mesh(mesh)
        self.assertIsNot(target.mesh, mesh)
        mesh.split_edge(0, 1)
        self.assertEqual(target.mesh.triangle_count, 32)
        self.assertIsInstance(target.nearest_triangle([0.0, 3.0, 0.0]), int)


if __name__ == '__main__':
    unittest.main()
