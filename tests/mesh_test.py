#!/usr/bin/env python3
"""
動的メッシュのテスト

IDアリーナの追加・削除・ID再利用、隣接クエリ、
局所編集（分割・反転・縮約）とメッシュユーティリティをテストします。
"""

import unittest
import math
import numpy as np

# テスト対象モジュール
import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from gopher.data_types import InvalidParameterError, MeshTopologyError
from gopher.mesh import (
    DynamicMesh, TriangleMesh, make_capped_cylinder,
    scale_mesh, opening_angle_deg, edge_length_range, compute_triangle_normals
)


def make_hexagon_fan() -> DynamicMesh:
    """中心0と外周1..6からなる平面六角形ファン"""
    mesh = DynamicMesh()
    mesh.append_vertex((0.0, 0.0, 0.0))
    for i in range(6):
        angle = i * math.pi / 3.0
        mesh.append_vertex((math.cos(angle), math.sin(angle), 0.0))
    for i in range(6):
        mesh.append_triangle(0, 1 + i, 1 + (i + 1) % 6)
    return mesh


def make_square() -> DynamicMesh:
    """対角線 0-2 を共有する2三角形の正方形"""
    return DynamicMesh.from_arrays(
        [[0, 0, 0], [1, 0, 0], [1, 1, 0], [0, 1, 0]],
        [[0, 1, 2], [0, 2, 3]]
    )


class TestDynamicMeshConstruction(unittest.TestCase):
    """構築・削除テスト"""

    def test_single_triangle(self):
        """単一三角形"""
        mesh = DynamicMesh.from_arrays([[0, 0, 0], [1, 0, 0], [0, 1, 0]], [[0, 1, 2]])
        self.assertEqual(mesh.vertex_count, 3)
        self.assertEqual(mesh.triangle_count, 1)
        self.assertEqual(mesh.edge_count, 3)
        self.assertEqual(len(mesh.boundary_edges()), 3)
        self.assertTrue(mesh.is_boundary_vertex(0))
        np.testing.assert_allclose(mesh.triangle_normal(0), [0, 0, 1])
        self.assertAlmostEqual(mesh.triangle_area(0), 0.5)
        self.assertTrue(mesh.check_validity())

    def test_invalid_triangles_rejected(self):
        """無効な三角形の追加"""
        mesh = make_square()
        with self.assertRaises(MeshTopologyError):
            mesh.append_triangle(0, 1, 99)
        with self.assertRaises(MeshTopologyError):
            mesh.append_triangle(0, 0, 1)
        # 0->1 は三角形0で同じ向きに使用済み
        extra = mesh.append_vertex((0.5, -1.0, 0.0))
        with self.assertRaises(MeshTopologyError):
            mesh.append_triangle(0, 1, extra)
        # 逆向きなら追加可能
        mesh.append_triangle(1, 0, extra)
        # 0-1 は既に2三角形で共有されている
        another = mesh.append_vertex((0.5, 2.0, 1.0))
        with self.assertRaises(MeshTopologyError):
            mesh.append_triangle(1, 0, another)
        self.assertTrue(mesh.check_validity())

    def test_id_recycling(self):
        """削除したIDの再利用"""
        mesh = make_square()
        mesh.remove_triangle(1)
        self.assertFalse(mesh.is_triangle(1))
        # 頂点3は孤立して削除される
        self.assertFalse(mesh.is_vertex(3))
        self.assertEqual(mesh.vertex_count, 3)
        self.assertEqual(mesh.max_vertex_id, 4)

        vid = mesh.append_vertex((0, 1, 0))
        self.assertEqual(vid, 3)
        tid = mesh.append_triangle(0, 2, 3)
        self.assertEqual(tid, 1)
        self.assertTrue(mesh.check_validity())

    def test_remove_keeps_isolated_vertices_on_request(self):
        """孤立頂点を残す削除"""
        mesh = make_square()
        mesh.remove_triangle(1, remove_isolated_vertices=False)
        self.assertTrue(mesh.is_vertex(3))
        self.assertEqual(mesh.vertex_neighbors(3), [])
        mesh.remove_vertex(3)
        self.assertFalse(mesh.is_vertex(3))
        with self.assertRaises(MeshTopologyError):
            mesh.remove_vertex(0)

    def test_invalid_ids(self):
        """無効IDへのアクセス"""
        mesh = make_square()
        with self.assertRaises(MeshTopologyError):
            mesh.get_vertex(10)
        with self.assertRaises(MeshTopologyError):
            mesh.get_triangle(-1)
        with self.assertRaises(MeshTopologyError):
            mesh.edge_triangles(1, 3)
        mesh.remove_triangle(0)
        with self.assertRaises(MeshTopologyError) as ctx:
            mesh.get_triangle(0)
        self.assertEqual(ctx.exception.element_id, 0)

    def test_copy_is_independent(self):
        """コピーの独立性"""
        mesh = make_capped_cylinder(False, 8)
        other = mesh.copy()
        other.set_vertex(0, (5.0, 5.0, 5.0))
        other.split_edge(*other.edges()[0])
        self.assertFalse(np.allclose(mesh.get_vertex(0), (5.0, 5.0, 5.0)))
        self.assertEqual(mesh.triangle_count, 32)
        self.assertEqual(other.triangle_count, 34)
        self.assertTrue(mesh.check_validity())
        self.assertTrue(other.check_validity())

    def test_reverse_orientation(self):
        """向きの反転"""
        mesh = make_square()
        before = mesh.triangle_normal(0)
        mesh.reverse_orientation()
        np.testing.assert_allclose(mesh.triangle_normal(0), -before)
        self.assertTrue(mesh.check_validity())


class TestDynamicMeshQueries(unittest.TestCase):
    """隣接クエリテスト"""

    def setUp(self):
        self.mesh = make_hexagon_fan()

    def test_neighbors_and_valence(self):
        """1-ring と次数"""
        self.assertEqual(self.mesh.vertex_neighbors(0), [1, 2, 3, 4, 5, 6])
        self.assertEqual(self.mesh.valence(0), 6)
        self.assertEqual(self.mesh.vertex_neighbors(1), [0, 2, 6])
        self.assertEqual(self.mesh.vertex_triangles(1), [0, 5])

    def test_boundary(self):
        """境界判定"""
        self.assertFalse(self.mesh.is_boundary_vertex(0))
        self.assertTrue(self.mesh.is_boundary_vertex(3))
        self.assertTrue(self.mesh.is_boundary_edge(1, 2))
        self.assertFalse(self.mesh.is_boundary_edge(0, 1))
        self.assertEqual(len(self.mesh.boundary_edges()), 6)

    def test_edge_queries(self):
        """エッジクエリ"""
        self.assertEqual(self.mesh.edge_count, 12)
        self.assertEqual(self.mesh.edges(), sorted(self.mesh.edges()))
        self.assertEqual(sorted(self.mesh.edge_opposite_vertices(0, 1)), [2, 6])
        self.assertAlmostEqual(self.mesh.edge_length(0, 4), 1.0)

    def test_iteration_is_read_only(self):
        """読み取り専用の列挙"""
        vids = []
        for vid, position in self.mesh.iter_vertices():
            vids.append(vid)
            with self.assertRaises(ValueError):
                position[0] = 1.0
        self.assertEqual(vids, list(range(7)))
        tris = dict(self.mesh.iter_triangles())
        self.assertEqual(tris[0], (0, 1, 2))

    def test_to_triangle_mesh_compacts(self):
        """密配列への変換"""
        self.mesh.remove_triangle(2)
        packed = self.mesh.to_triangle_mesh()
        self.assertIsInstance(packed, TriangleMesh)
        self.assertEqual(packed.num_triangles, 5)
        self.assertEqual(packed.num_vertices, 7)
        self.assertTrue(np.all(packed.triangles < packed.num_vertices))
        self.assertEqual(list(packed.triangle_ids), [0, 1, 3, 4, 5])
        np.testing.assert_allclose(packed.get_triangle_areas().sum(), 5 * math.sqrt(3) / 4)
        normals = packed.get_triangle_normals()
        np.testing.assert_allclose(normals[:, 2], np.ones(5))
        np.testing.assert_allclose(compute_triangle_normals(packed.vertices, packed.triangles), normals)


class TestLocalEdits(unittest.TestCase):
    """局所編集テスト"""

    def test_split_interior_edge(self):
        """内部エッジの分割"""
        mesh = make_square()
        info = mesh.split_edge(0, 2)
        self.assertEqual(info.new_vertex, 4)
        self.assertEqual(len(info.new_triangles), 2)
        self.assertEqual(mesh.vertex_count, 5)
        self.assertEqual(mesh.triangle_count, 4)
        np.testing.assert_allclose(mesh.get_vertex(4), [0.5, 0.5, 0.0])
        self.assertFalse(mesh.has_edge(0, 2))
        self.assertEqual(mesh.valence(4), 4)
        for tid in mesh.triangle_indices():
            self.assertGreater(mesh.triangle_normal(tid)[2], 0.0)
        self.assertTrue(mesh.check_validity())

    def test_split_boundary_edge(self):
        """境界エッジの分割"""
        mesh = make_square()
        info = mesh.split_edge(0, 1, 0.25)
        self.assertEqual(len(info.new_triangles), 1)
        np.testing.assert_allclose(mesh.get_vertex(info.new_vertex), [0.25, 0.0, 0.0])
        self.assertTrue(mesh.is_boundary_vertex(info.new_vertex))
        self.assertTrue(mesh.check_validity())

    def test_flip(self):
        """エッジ反転"""
        mesh = make_square()
        self.assertTrue(mesh.can_flip(0, 2))
        self.assertFalse(mesh.can_flip(0, 1))
        info = mesh.flip_edge(0, 2)
        self.assertEqual(sorted((info.c, info.d)), [1, 3])
        self.assertTrue(mesh.has_edge(1, 3))
        self.assertFalse(mesh.has_edge(0, 2))
        for tid in mesh.triangle_indices():
            self.assertGreater(mesh.triangle_normal(tid)[2], 0.0)
        self.assertTrue(mesh.check_validity())
        with self.assertRaises(MeshTopologyError):
            mesh.flip_edge(0, 1)

    def test_collapse(self):
        """エッジ縮約"""
        mesh = make_hexagon_fan()
        self.assertTrue(mesh.can_collapse(0, 1))
        info = mesh.collapse_edge(0, 1, position=(0.1, 0.0, 0.0))
        self.assertEqual(info.removed, 1)
        self.assertEqual(len(info.removed_triangles), 2)
        self.assertFalse(mesh.is_vertex(1))
        self.assertEqual(mesh.vertex_count, 6)
        self.assertEqual(mesh.triangle_count, 4)
        np.testing.assert_allclose(mesh.get_vertex(0), [0.1, 0.0, 0.0])
        self.assertTrue(mesh.has_edge(0, 2))
        self.assertTrue(mesh.check_validity())

    def test_collapse_rejected(self):
        """縮約不可能なエッジ"""
        mesh = make_hexagon_fan()
        # 両端が境界頂点の境界エッジは縮約可能だが、対頂点0の次数は十分
        self.assertTrue(mesh.can_collapse(1, 2))
        # 四面体では縮約すると次数が不足する
        tetra = DynamicMesh.from_arrays(
            [[0, 0, 0], [1, 0, 0], [0, 1, 0], [0, 0, 1]],
            [[0, 2, 1], [0, 1, 3], [1, 2, 3], [0, 3, 2]]
        )
        self.assertTrue(tetra.check_validity())
        self.assertFalse(tetra.can_collapse(0, 1))
        with self.assertRaises(MeshTopologyError):
            tetra.collapse_edge(0, 1)


class TestMeshUtils(unittest.TestCase):
    """メッシュユーティリティテスト"""

    def test_scale_mesh(self):
        """スケーリング"""
        mesh = scale_mesh(make_capped_cylinder(False, 16), (1.0, 2.0, 1.0))
        lo, hi = mesh.get_bounds()
        np.testing.assert_allclose(lo, [-1.0, 0.0, -1.0], atol=1e-12)
        np.testing.assert_allclose(hi, [1.0, 2.0, 1.0], atol=1e-12)

    def test_scale_mesh_invalid(self):
        """不正なスケール"""
        mesh = make_capped_cylinder(False, 8)
        with self.assertRaises(InvalidParameterError):
            scale_mesh(mesh, (1.0, 0.0, 1.0))
        with self.assertRaises(InvalidParameterError):
            scale_mesh(mesh, (1.0, 2.0))

    def test_opening_angle(self):
        """開き角"""
        mesh = make_capped_cylinder(False, 16)
        # 底面リング 0-1 は側面とキャップの境目
        self.assertAlmostEqual(opening_angle_deg(mesh, 0, 1), 90.0, places=6)
        # 側面の縦エッジは 360/16 度
        self.assertAlmostEqual(opening_angle_deg(mesh, 0, 16), 22.5, places=6)
        self.assertAlmostEqual(opening_angle_deg(make_square(), 0, 2), 0.0, places=6)
        self.assertEqual(opening_angle_deg(make_square(), 0, 1), math.inf)

    def test_edge_length_range(self):
        """エッジ長の範囲"""
        shortest, longest = edge_length_range(make_square())
        self.assertAlmostEqual(shortest, 1.0)
        self.assertAlmostEqual(longest, math.sqrt(2.0))
        self.assertEqual(edge_length_range(DynamicMesh()), (0.0, 0.0))


if __name__ == '__main__':
    unittest.main()
