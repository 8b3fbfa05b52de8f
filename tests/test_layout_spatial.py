"""Tests for the Barnes-Hut spatial index."""

import numpy as np
import pytest

from forcelayout.layout import ParticleArena, SpatialIndex
from forcelayout.layout.config import QUALITY_VIEW_ZONES


def make_grid(columns, rows, spacing=3.0):
    arena = ParticleArena()
    for i in range(columns):
        for j in range(rows):
            arena.allocate(f"n{i}_{j}", (i * spacing, j * spacing, 0.0))
    return arena


def root_aggregate(index):
    return index._center[0], float(index._mass[0])


class TestIndexConstruction:
    """Tests for building and maintaining the tree."""

    def test_empty_index(self):
        index = SpatialIndex(ParticleArena())
        index.rebuild()
        assert index.particle_count == 0
        assert index.cell_count == 1
        center, mass = root_aggregate(index)
        assert mass == 0.0

    def test_invalid_dimensions(self):
        with pytest.raises(ValueError):
            SpatialIndex(ParticleArena(), dimensions=4)

    def test_particle_count_matches_arena(self):
        arena = make_grid(10, 5)
        index = SpatialIndex(arena)
        index.rebuild()
        assert index.particle_count == len(arena) == 50

    def test_leaves_split_above_capacity(self):
        arena = make_grid(4, 4)
        index = SpatialIndex(arena, cell_capacity=4)
        index.rebuild()
        assert index.cell_count > 1
        assert index.depth() >= 1

    def test_root_aggregate_is_weighted_mean(self):
        arena = ParticleArena()
        arena.allocate("a", (0.0, 0.0, 0.0))
        b = arena.allocate("b", (4.0, 0.0, 0.0))
        arena.weights[b] = 3.0

        index = SpatialIndex(arena)
        index.rebuild()
        center, mass = root_aggregate(index)
        assert mass == pytest.approx(4.0)
        np.testing.assert_allclose(center, [3.0, 0.0, 0.0])

    def test_aggregate_mass_equals_total_weight(self):
        arena = make_grid(10, 5)
        for handle in arena.handles()[::3]:
            arena.weights[handle] = 2.0
        index = SpatialIndex(arena, cell_capacity=3)
        index.rebuild()

        _, mass = root_aggregate(index)
        assert mass == pytest.approx(float(arena.weights[arena.alive].sum()))

    def test_bounding_box(self):
        arena = make_grid(3, 2, spacing=2.0)
        index = SpatialIndex(arena)
        index.rebuild()
        np.testing.assert_allclose(index.low_point, [0.0, 0.0, 0.0])
        np.testing.assert_allclose(index.high_point, [4.0, 2.0, 0.0])

    def test_coincident_particles_stop_at_max_depth(self):
        arena = ParticleArena()
        for i in range(20):
            arena.allocate(i, (1.0, 1.0, 0.0))
        index = SpatialIndex(arena, cell_capacity=5, max_depth=3)
        index.rebuild()
        assert index.particle_count == 20
        assert index.depth() <= 3


class TestIndexUpdates:
    """Tests for incremental insert/remove/update."""

    def test_insert_inside_root(self):
        arena = make_grid(3, 3)
        index = SpatialIndex(arena)
        index.rebuild()

        handle = arena.allocate("new", (1.0, 1.0, 0.0))
        index.insert(handle)
        assert handle in index
        assert index.particle_count == 10

    def test_insert_outside_root_rebuilds(self):
        arena = make_grid(3, 3)
        index = SpatialIndex(arena)
        index.rebuild()

        handle = arena.allocate("far", (100.0, 100.0, 0.0))
        index.insert(handle)
        assert handle in index
        assert index.particle_count == 10
        np.testing.assert_allclose(index.high_point, [100.0, 100.0, 0.0])

    def test_insert_twice_is_noop(self):
        arena = make_grid(2, 2)
        index = SpatialIndex(arena)
        index.rebuild()
        index.insert(arena.handles()[0])
        assert index.particle_count == 4

    def test_remove_updates_aggregates(self):
        arena = make_grid(4, 4)
        index = SpatialIndex(arena, cell_capacity=2)
        index.rebuild()

        handle = arena.handle_of("n3_3")
        index.remove(handle)
        arena.release(handle)

        _, mass = root_aggregate(index)
        assert index.particle_count == 15
        assert handle not in index
        assert mass == pytest.approx(15.0)

    def test_remove_shrinks_bounding_box(self):
        arena = ParticleArena()
        arena.allocate("a", (0.0, 0.0, 0.0))
        arena.allocate("b", (2.0, 1.0, 0.0))
        far = arena.allocate("far", (100.0, 100.0, 0.0))
        index = SpatialIndex(arena)
        index.rebuild()

        index.remove(far)
        arena.release(far)
        np.testing.assert_allclose(index.low_point, [0.0, 0.0, 0.0])
        np.testing.assert_allclose(index.high_point, [2.0, 1.0, 0.0])

    def test_remove_last_particle_resets_bounding_box(self):
        arena = ParticleArena()
        handle = arena.allocate("a", (5.0, 5.0, 0.0))
        index = SpatialIndex(arena)
        index.rebuild()

        index.remove(handle)
        np.testing.assert_array_equal(index.high_point, [0.0, 0.0, 0.0])

    def test_update_after_move(self):
        arena = make_grid(3, 3)
        index = SpatialIndex(arena)
        index.rebuild()

        handle = arena.handle_of("n0_0")
        arena.positions[handle] = (50.0, 0.0, 0.0)
        index.update(handle)

        center, mass = root_aggregate(index)
        assert index.particle_count == 9
        assert mass == pytest.approx(9.0)
        expected = arena.positions[arena.alive].mean(axis=0)
        np.testing.assert_allclose(center, expected)


class TestRepulsion:
    """Tests for repulsion queries."""

    def test_exact_pair_force(self):
        arena = ParticleArena()
        a = arena.allocate("a", (0.0, 0.0, 0.0))
        arena.allocate("b", (2.0, 0.0, 0.0))
        index = SpatialIndex(arena, repulsion=0.024, min_distance=1.0)
        index.rebuild()

        result = index.exact_force_on(a)
        assert result.interactions == 1
        assert result.energy == pytest.approx(0.024 / 4)
        np.testing.assert_allclose(result.force, [-0.006, 0.0, 0.0])

    def test_short_distance_is_clamped(self):
        arena = ParticleArena()
        a = arena.allocate("a", (0.0, 0.0, 0.0))
        arena.allocate("b", (0.5, 0.0, 0.0))
        index = SpatialIndex(arena, repulsion=0.024, min_distance=1.0)
        index.rebuild()

        result = index.exact_force_on(a)
        assert result.energy == pytest.approx(0.024)

    @pytest.mark.parametrize("exact", [True, False])
    def test_coincident_particles_push_apart(self, exact):
        arena = ParticleArena()
        a = arena.allocate("a", (1.0, 1.0, 0.0))
        arena.allocate("b", (1.0, 1.0, 0.0))
        index = SpatialIndex(arena, repulsion=0.024, min_distance=1.0)
        index.rebuild()

        if exact:
            result = index.exact_force_on(a)
        else:
            result = index.force_on(a, view_zone=2.0, theta=0.7)

        assert result.interactions == 1
        assert result.energy == pytest.approx(0.024)
        assert np.linalg.norm(result.force) == pytest.approx(0.024)
        assert result.force[2] == 0.0

    @pytest.mark.parametrize("exact", [True, False])
    def test_coincident_push_uses_min_distance(self, exact):
        arena = ParticleArena()
        a = arena.allocate("a", (0.0, 0.0, 0.0))
        arena.allocate("b", (0.0, 0.0, 0.0))
        index = SpatialIndex(arena, repulsion=0.024, min_distance=0.5)
        index.rebuild()

        if exact:
            result = index.exact_force_on(a)
        else:
            result = index.force_on(a, view_zone=2.0, theta=0.7)
        assert result.energy == pytest.approx(0.024 / 0.25)

    def test_coincident_direction_follows_rng(self):
        forces = []
        for _ in range(2):
            arena = ParticleArena()
            a = arena.allocate("a", (0.0, 0.0, 0.0))
            arena.allocate("b", (0.0, 0.0, 0.0))
            index = SpatialIndex(arena, dimensions=3, rng=np.random.default_rng(5))
            index.rebuild()
            forces.append(index.exact_force_on(a).force)

        np.testing.assert_array_equal(forces[0], forces[1])
        assert forces[0][2] != 0.0

    def test_coincident_and_distinct_neighbours(self):
        arena = ParticleArena()
        a = arena.allocate("a", (0.0, 0.0, 0.0))
        arena.allocate("b", (0.0, 0.0, 0.0))
        arena.allocate("c", (2.0, 0.0, 0.0))
        index = SpatialIndex(arena, repulsion=0.024, min_distance=1.0)
        index.rebuild()

        result = index.exact_force_on(a)
        assert result.interactions == 2
        assert result.energy == pytest.approx(0.024 + 0.024 / 4)

    def test_weights_scale_force(self):
        arena = ParticleArena()
        a = arena.allocate("a", (0.0, 0.0, 0.0))
        b = arena.allocate("b", (2.0, 0.0, 0.0))
        index = SpatialIndex(arena)
        index.rebuild()
        light = index.exact_force_on(a).energy

        arena.weights[b] = 3.0
        index.rebuild()
        assert index.exact_force_on(a).energy == pytest.approx(3.0 * light)

    def test_large_view_zone_matches_exact(self):
        arena = make_grid(10, 5)
        index = SpatialIndex(arena, cell_capacity=4)
        index.rebuild()

        for handle in arena.handles()[::7]:
            exact = index.exact_force_on(handle)
            approx = index.force_on(handle, view_zone=1000.0, theta=0.7)
            np.testing.assert_allclose(approx.force, exact.force, atol=1e-12)
            assert approx.energy == pytest.approx(exact.energy)
            assert approx.interactions == exact.interactions == 49

    def test_small_view_zone_uses_aggregates(self):
        arena = make_grid(10, 5)
        index = SpatialIndex(arena, cell_capacity=4)
        index.rebuild()

        handle = arena.handle_of("n0_0")
        approx = index.force_on(handle, view_zone=1.0, theta=0.7)
        exact = index.exact_force_on(handle)

        assert approx.interactions < exact.interactions
        # Approximation keeps the overall direction
        assert np.dot(approx.force, exact.force) > 0

    @pytest.mark.parametrize("quality", [0, 1, 2, 3])
    def test_approximation_error_is_bounded(self, quality):
        arena = make_grid(10, 5)
        index = SpatialIndex(arena)
        index.rebuild()
        view_zone = QUALITY_VIEW_ZONES[quality]

        # Net force nearly cancels inside the grid, so the error is scaled
        # by the summed magnitudes of the exact pair forces
        for handle in arena.handles():
            exact = index.exact_force_on(handle)
            approx = index.force_on(handle, view_zone=view_zone, theta=0.7)
            error = np.linalg.norm(approx.force - exact.force) / exact.energy
            assert error < 0.25, f"{arena.ids[handle]}: relative error {error:.3f}"

    def test_three_dimensional_index(self):
        arena = ParticleArena()
        for i in range(3):
            for j in range(3):
                for k in range(3):
                    arena.allocate((i, j, k), (i * 2.0, j * 2.0, k * 2.0))
        index = SpatialIndex(arena, dimensions=3, cell_capacity=2)
        index.rebuild()

        handle = arena.handle_of((0, 0, 0))
        exact = index.exact_force_on(handle)
        approx = index.force_on(handle, view_zone=1000.0, theta=0.7)
        assert index.particle_count == 27
        np.testing.assert_allclose(approx.force, exact.force, atol=1e-12)
        assert exact.force[2] < 0.0
