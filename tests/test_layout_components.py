"""Tests for the particle arena and element classes."""

import numpy as np

from forcelayout.layout import EdgeSpring, NodeParticle, ParticleArena, Vector3D


class TestEdgeSpring:
    """Tests for EdgeSpring dataclass."""

    def test_defaults(self):
        edge = EdgeSpring("e", "a", "b")
        assert edge.weight == 1.0
        assert edge.ignored is False

    def test_is_loop(self):
        assert EdgeSpring("e", "a", "a").is_loop
        assert not EdgeSpring("e", "a", "b").is_loop


class TestParticleArena:
    """Tests for ParticleArena storage."""

    def test_allocate(self):
        arena = ParticleArena()
        handle = arena.allocate("a", (1.0, 2.0, 0.0))

        assert len(arena) == 1
        assert "a" in arena
        assert arena.handle_of("a") == handle
        assert arena.alive[handle]
        assert arena.weights[handle] == 1.0
        np.testing.assert_array_equal(arena.positions[handle], [1.0, 2.0, 0.0])

    def test_release_reuses_handle(self):
        arena = ParticleArena()
        first = arena.allocate("a", (0.0, 0.0, 0.0))
        arena.allocate("b", (1.0, 0.0, 0.0))

        arena.release(first)
        assert "a" not in arena
        assert len(arena) == 1
        assert not arena.alive[first]

        reused = arena.allocate("c", (2.0, 0.0, 0.0))
        assert reused == first
        assert arena.ids[reused] == "c"
        assert arena.weights[reused] == 1.0
        assert arena.edges[reused] == []

    def test_handles_are_stable_across_growth(self):
        arena = ParticleArena(capacity=2)
        handles = {f"n{i}": arena.allocate(f"n{i}", (float(i), 0.0, 0.0)) for i in range(10)}

        assert arena.capacity >= 10
        for node_id, handle in handles.items():
            assert arena.handle_of(node_id) == handle
            assert arena.positions[handle][0] == float(node_id[1:])

    def test_handles_lists_live_rows(self):
        arena = ParticleArena()
        a = arena.allocate("a", (0.0, 0.0, 0.0))
        b = arena.allocate("b", (0.0, 0.0, 0.0))
        c = arena.allocate("c", (0.0, 0.0, 0.0))
        arena.release(b)

        assert arena.handles() == [a, c]
        assert sorted(arena.node_ids()) == ["a", "c"]

    def test_clear(self):
        arena = ParticleArena()
        arena.allocate("a", (0.0, 0.0, 0.0))
        arena.allocate("b", (0.0, 0.0, 0.0))
        arena.clear()

        assert len(arena) == 0
        assert arena.handles() == []
        assert arena.allocate("c", (0.0, 0.0, 0.0)) == 0

    def test_edge_registration(self):
        arena = ParticleArena()
        handle = arena.allocate("a", (0.0, 0.0, 0.0))

        arena.register_edge(handle, "e1")
        arena.register_edge(handle, "e1")
        arena.register_edge(handle, "e2")
        assert arena.edges[handle] == ["e1", "e2"]

        arena.unregister_edge(handle, "e1")
        arena.unregister_edge(handle, "missing")
        assert arena.edges[handle] == ["e2"]

    def test_snapshot(self):
        arena = ParticleArena()
        handle = arena.allocate("a", (1.0, 2.0, 3.0))
        arena.weights[handle] = 2.5
        arena.frozen[handle] = True
        arena.register_edge(handle, "e1")

        snapshot = arena.snapshot(handle)
        assert isinstance(snapshot, NodeParticle)
        assert snapshot.id == "a"
        assert snapshot.position == Vector3D(1.0, 2.0, 3.0)
        assert snapshot.weight == 2.5
        assert snapshot.frozen is True
        assert snapshot.edges == ("e1",)

        # Snapshot does not follow later changes
        arena.positions[handle] = (9.0, 9.0, 9.0)
        assert snapshot.position == Vector3D(1.0, 2.0, 3.0)
