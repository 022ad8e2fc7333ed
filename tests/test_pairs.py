import unittest

import numpy as np

from qem_simplify import Primitive
from qem_simplify.pairs import (Pair, build_pairs, collect_edge_pairs, collect_proximity_pairs,
                                find_seam_edges, list_vertices)
from mesh_fixtures import CUBE_FACES, make_cube_primitive


def mesh_edges(faces):
    return {tuple(sorted((f[i], f[(i + 1) % 3]))) for f in faces.tolist() for i in range(3)}


class TestListVertices(unittest.TestCase):
    def test_vertices_copy_every_attribute(self):
        uv = np.linspace(0, 1, 16, dtype=np.float32).reshape(8, 2)
        prim = make_cube_primitive(TEXCOORD_0=uv)
        vertices = list_vertices(prim)

        self.assertEqual(len(vertices), 8)
        self.assertEqual([v.index for v in vertices], list(range(8)))
        np.testing.assert_allclose(vertices[6].position, [1, 1, 1])
        np.testing.assert_allclose(vertices[3].attributes['TEXCOORD_0'], uv[3])
        self.assertFalse(vertices[0].quadric.any())
        self.assertEqual(vertices[0].pairs, [])
        self.assertFalse(vertices[0].is_absorbed)

        # Records are independent of the primitive's buffers
        vertices[0].position[0] = 5
        self.assertEqual(prim.get_attribute('POSITION').get_array()[0, 0], 0)


class TestEdgePairs(unittest.TestCase):
    def test_one_pair_per_edge(self):
        vertices = list_vertices(make_cube_primitive())
        added = collect_edge_pairs(vertices, CUBE_FACES)

        # 12 cube edges + 6 face diagonals
        self.assertEqual(added, 18)
        recorded = {(v.index, j) for v in vertices for j in v.pairs}
        self.assertEqual(recorded, mesh_edges(CUBE_FACES))

    def test_pairs_recorded_under_lower_index(self):
        vertices = list_vertices(make_cube_primitive())
        collect_edge_pairs(vertices, CUBE_FACES)
        for v in vertices:
            for j in v.pairs:
                self.assertLess(v.index, j)
        self.assertEqual(vertices[7].pairs, [])

    def test_repeated_call_adds_nothing(self):
        vertices = list_vertices(make_cube_primitive())
        collect_edge_pairs(vertices, CUBE_FACES)
        self.assertEqual(collect_edge_pairs(vertices, CUBE_FACES), 0)


class TestProximityPairs(unittest.TestCase):
    def setUp(self):
        positions = np.array([
            [0, 0, 0], [1, 0, 0], [0, 1, 0],
            [0, 0, 0.01], [1, 0, 0.01], [0, 1, 0.01],
        ], dtype=np.float32)
        self.faces = np.array([[0, 1, 2], [3, 4, 5]])
        self.prim = Primitive({'POSITION': positions}, indices=self.faces.reshape(-1))

    def test_zero_threshold_adds_nothing(self):
        vertices = list_vertices(self.prim)
        collect_edge_pairs(vertices, self.faces)
        self.assertEqual(collect_proximity_pairs(vertices, 0.0), 0)
        self.assertEqual(sum(len(v.pairs) for v in vertices), 6)

    def test_close_vertices_are_paired(self):
        vertices = list_vertices(self.prim)
        collect_edge_pairs(vertices, self.faces)
        self.assertEqual(collect_proximity_pairs(vertices, 0.05), 3)
        for i in range(3):
            self.assertIn(i + 3, vertices[i].pairs)

    def test_threshold_is_strict(self):
        vertices = list_vertices(self.prim)
        self.assertEqual(collect_proximity_pairs(vertices, 0.001), 0)

    def test_existing_edges_not_duplicated(self):
        vertices = list_vertices(self.prim)
        collect_edge_pairs(vertices, self.faces)
        # Threshold larger than every distance: 15 vertex pairs, 6 are edges
        self.assertEqual(collect_proximity_pairs(vertices, 10.0), 9)


class TestSeamsAndPairs(unittest.TestCase):
    def test_closed_mesh_has_no_seams(self):
        self.assertEqual(find_seam_edges(CUBE_FACES), set())

    def test_quad_boundary_is_seam(self):
        faces = np.array([[0, 1, 2], [0, 2, 3]])
        self.assertEqual(find_seam_edges(faces), {(0, 1), (1, 2), (2, 3), (0, 3)})

    def test_build_pairs_flags_seams(self):
        faces = np.array([[0, 1, 2], [0, 2, 3]])
        positions = np.array([[0, 0, 0], [1, 0, 0], [1, 1, 0], [0, 1, 0]], dtype=np.float32)
        vertices = list_vertices(Primitive({'POSITION': positions}, indices=faces.reshape(-1)))
        collect_edge_pairs(vertices, faces)

        pairs = build_pairs(vertices, find_seam_edges(faces))
        self.assertEqual(len(pairs), 5)
        seams = {tuple(p.vertices): p.is_seam for p in pairs}
        self.assertFalse(seams[(0, 2)])
        self.assertTrue(seams[(0, 1)])
        self.assertTrue(all(p.active and p.version == 0 for p in pairs))

    def test_pair_other(self):
        pair = Pair(vertices=[3, 8])
        self.assertEqual(pair.other(3), 8)
        self.assertEqual(pair.other(8), 3)


if __name__ == '__main__':
    unittest.main()
