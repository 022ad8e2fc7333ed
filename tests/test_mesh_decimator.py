import unittest

import numpy as np

from qem_simplify import MeshDecimator, Primitive, QuadricErrorMetrics
from qem_simplify.mesh_decimator import compute_target_count
from qem_simplify.pairs import list_vertices
from mesh_fixtures import (CUBE_FACES, CUBE_POSITIONS, count_degenerate, face_array,
                           make_cube_primitive, make_sphere_primitive)


def make_two_cubes(offset: float) -> Primitive:
    """Two unit cubes side by side, corners `offset` apart along x."""
    positions = np.vstack([CUBE_POSITIONS, CUBE_POSITIONS + [1 + offset, 0, 0]]).astype(np.float64)
    faces = np.vstack([CUBE_FACES, CUBE_FACES + 8])
    return Primitive({'POSITION': positions}, indices=faces.reshape(-1).astype(np.uint32))


class TestTargetCount(unittest.TestCase):
    def test_rounds_half_up(self):
        cases = {(8, 0.5): 4, (162, 0.25): 41, (3, 0.5): 2, (10, 0.125): 1, (8, 1.0): 8}
        for (n, ratio), expected in cases.items():
            with self.subTest(n=n, ratio=ratio):
                self.assertEqual(compute_target_count(n, ratio), expected)


class TestSingleCollapse(unittest.TestCase):
    def setUp(self):
        uv = np.arange(16, dtype=np.float32).reshape(8, 2)
        self.prim = make_cube_primitive(TEXCOORD_0=uv)
        self.original = self.prim.clone()
        self.decimator = MeshDecimator()
        # 8 * 0.875 = 7 vertices kept: exactly one collapse
        self.decimator.decimate(self.prim, target_ratio=0.875)
        self.history = self.decimator.get_collapse_history()

    def test_one_collapse(self):
        self.assertEqual(len(self.history), 1)

    def test_cheapest_edge_collapsed_first(self):
        qem = QuadricErrorMetrics()
        vertices = list_vertices(self.original)
        qem.accumulate_quadrics(vertices, CUBE_FACES)
        edges = {tuple(sorted((f[i], f[(i + 1) % 3]))) for f in CUBE_FACES.tolist() for i in range(3)}
        costs = [qem.merge(vertices[a], vertices[b])[1] for a, b in edges]
        self.assertAlmostEqual(self.history[0]['cost'], min(costs))

    def test_two_faces_removed(self):
        faces = face_array(self.prim)
        self.assertEqual(len(faces), 10)
        self.assertEqual(count_degenerate(faces), 0)

    def test_absorbed_vertex_no_longer_referenced(self):
        a, b = self.history[0]['pair']
        faces = face_array(self.prim)
        self.assertNotIn(b, faces)
        self.assertIn(a, faces)

    def test_survivor_takes_merge_result_attributes(self):
        a, _ = self.history[0]['pair']
        survivor = self.history[0]['survivor']
        for semantic in ('POSITION', 'TEXCOORD_0'):
            with self.subTest(semantic=semantic):
                np.testing.assert_allclose(
                    self.prim.get_attribute(semantic).get_element(a),
                    self.original.get_attribute(semantic).get_element(survivor))

    def test_vertex_buffers_not_pruned(self):
        self.assertEqual(self.prim.get_vertex_count(), 8)


class TestDecimate(unittest.TestCase):
    def test_cube_half(self):
        prim = make_cube_primitive()
        MeshDecimator().decimate(prim, target_ratio=0.5)

        faces = face_array(prim)
        self.assertLessEqual(len(np.unique(faces)), 4)
        self.assertLessEqual(len(faces), 12)
        self.assertEqual(count_degenerate(faces), 0)

    def test_sphere_reaches_target(self):
        prim = make_sphere_primitive(subdivisions=2)
        n = prim.get_vertex_count()
        original_faces = prim.get_face_count()

        decimator = MeshDecimator()
        decimator.decimate(prim, target_ratio=0.25)

        target_count = compute_target_count(n, 0.25)
        self.assertEqual(len(decimator.get_collapse_history()), n - target_count)

        faces = face_array(prim)
        self.assertLessEqual(len(np.unique(faces)), target_count)
        self.assertLess(len(faces), original_faces)
        self.assertEqual(count_degenerate(faces), 0)

    def test_quadrics_stay_symmetric_and_errors_non_negative(self):
        checked = []

        def check(a, b, result, cost, is_seam):
            for vertex in (a, b):
                np.testing.assert_array_equal(vertex.quadric, vertex.quadric.T)
            self.assertGreaterEqual(cost, 0.0)
            checked.append(cost)
            return cost

        prim = make_sphere_primitive(subdivisions=1)
        decimator = MeshDecimator(cost_hook=check)
        decimator.decimate(prim, target_ratio=0.3)

        self.assertTrue(checked)
        self.assertTrue(all(entry['cost'] >= 0 for entry in decimator.get_collapse_history()))
        self.assertTrue((decimator.get_vertex_errors() >= 0).all())

    def test_rerun_never_adds_faces(self):
        prim = make_sphere_primitive(subdivisions=2)
        MeshDecimator().decimate(prim, target_ratio=0.5)
        first = prim.get_face_count()

        for ratio in (0.5, 0.75, 1.0):
            with self.subTest(ratio=ratio):
                MeshDecimator().decimate(prim, target_ratio=ratio)
                self.assertLessEqual(prim.get_face_count(), first)
                first = prim.get_face_count()

    def test_full_target_leaves_faces_unchanged(self):
        prim = make_cube_primitive()
        decimator = MeshDecimator()
        decimator.decimate(prim, target_ratio=1.0)
        np.testing.assert_array_equal(face_array(prim), CUBE_FACES)
        self.assertEqual(decimator.get_collapse_history(), [])

    def test_input_degenerate_faces_removed(self):
        faces = np.vstack([CUBE_FACES, [[0, 0, 1]]])
        prim = Primitive({'POSITION': CUBE_POSITIONS.copy()}, indices=faces.reshape(-1))
        MeshDecimator().decimate(prim, target_ratio=1.0)
        np.testing.assert_array_equal(face_array(prim), CUBE_FACES)

    def test_index_dtype_preserved(self):
        prim = Primitive({'POSITION': CUBE_POSITIONS.copy()},
                         indices=CUBE_FACES.reshape(-1).astype(np.uint16))
        MeshDecimator().decimate(prim, target_ratio=0.5)
        self.assertEqual(prim.get_indices().get_array().dtype, np.uint16)

    def test_empty_primitive(self):
        prim = Primitive({'POSITION': CUBE_POSITIONS.copy()}, indices=np.zeros(0, dtype=np.uint32))
        decimator = MeshDecimator()
        decimator.decimate(prim, target_ratio=0.5)
        self.assertEqual(prim.get_face_count(), 0)
        self.assertEqual(decimator.get_collapse_history(), [])

    def test_invalid_target(self):
        for ratio in (0.0, -0.5, 1.5):
            with self.subTest(ratio=ratio):
                with self.assertRaises(ValueError):
                    MeshDecimator().decimate(make_cube_primitive(), target_ratio=ratio)

    def test_vertex_errors_measure_drift_from_original(self):
        prim = make_sphere_primitive(subdivisions=2)
        decimator = MeshDecimator()
        decimator.decimate(prim, target_ratio=0.25)

        errors = decimator.get_vertex_errors()
        self.assertEqual(len(errors), prim.get_vertex_count())
        self.assertTrue((errors >= 0).all())
        self.assertGreater(errors.max(), 1e-9)

        # The last survivor sits at the merge result under the summed quadric
        last = decimator.get_collapse_history()[-1]
        a, b = last['pair']
        self.assertAlmostEqual(errors[a], last['cost'])
        self.assertEqual(errors[b], errors[a])

    def test_vertex_errors_zero_without_collapse(self):
        decimator = MeshDecimator()
        decimator.decimate(make_cube_primitive(), target_ratio=1.0)
        np.testing.assert_allclose(decimator.get_vertex_errors(), 0, atol=1e-12)

    def test_vertex_errors_require_a_run(self):
        with self.assertRaises(ValueError):
            MeshDecimator().get_vertex_errors()

    def test_progress_callback(self):
        progress = []
        prim = make_sphere_primitive(subdivisions=2)
        MeshDecimator().decimate(prim, target_ratio=0.25, progress_callback=progress.append)

        self.assertTrue(progress)
        self.assertEqual(progress, sorted(progress))
        self.assertTrue(all(0 < p <= 1 for p in progress))


class TestDistanceThreshold(unittest.TestCase):
    def test_zero_threshold_only_collapses_edges(self):
        prim = make_two_cubes(offset=0.001)
        decimator = MeshDecimator(distance_threshold=0.0)
        decimator.decimate(prim, target_ratio=0.5)

        for entry in decimator.get_collapse_history():
            a, b = entry['pair']
            self.assertEqual(a < 8, b < 8)

    def test_close_vertices_merge_across_components(self):
        prim = make_two_cubes(offset=0.001)
        decimator = MeshDecimator(distance_threshold=0.01)
        # 16 * 0.9375 = 15 vertices kept: one collapse
        decimator.decimate(prim, target_ratio=0.9375)

        history = decimator.get_collapse_history()
        self.assertEqual(len(history), 1)
        a, b = history[0]['pair']
        self.assertNotEqual(a < 8, b < 8)
        # No face spans both endpoints, so no face is lost
        self.assertEqual(prim.get_face_count(), 24)


if __name__ == '__main__':
    unittest.main()
