"""Tests for the triangular lattice builder."""

from __future__ import annotations

import logging
import math

import pytest

from blockgrid.boundary import Boundary
from blockgrid.geometry import distance, signed_area
from blockgrid.lattice import MIN_SPACING, build_lattice, edge_key


@pytest.fixture
def lattice():
    """The 900 × 600 area at spacing 120 used across the suite."""
    return build_lattice(900, 600, 120)


# ═══════════════════════════════════════════════════════════════════
# Shape and counts
# ═══════════════════════════════════════════════════════════════════


class TestDimensions:
    def test_counts(self, lattice):
        # 10 columns × 8 rows of cells, overscan included.
        assert lattice.column_count == 11
        assert lattice.row_count == 9
        assert len(lattice.vertices) == 99
        assert len(lattice.triangles) == 160
        assert len(lattice.edges) == 258

    def test_euler_characteristic(self, lattice):
        v, e, f = len(lattice.vertices), len(lattice.edges), len(lattice.triangles)
        assert v - e + f == 1

    def test_spacings(self, lattice):
        assert lattice.horizontal_spacing == 120
        assert lattice.vertical_spacing == pytest.approx(120 * math.sqrt(3) / 2)

    def test_overscan_origin(self, lattice):
        first = lattice.vertices[0].position
        assert first == (-120, pytest.approx(-120 * math.sqrt(3) / 2))

    def test_odd_rows_offset(self, lattice):
        row0 = [v for v in lattice.vertices if v.row == 0]
        row1 = [v for v in lattice.vertices if v.row == 1]
        assert row1[0].position[0] - row0[0].position[0] == pytest.approx(60)

    def test_minimum_grid_for_tiny_area(self):
        tiny = build_lattice(0, 0, 120)
        assert tiny.column_count == 3
        assert tiny.row_count == 3


class TestTriangles:
    def test_positive_winding(self, lattice):
        for tri in lattice.triangles:
            pts = [lattice.position(v) for v in tri.vertex_ids]
            assert signed_area(pts) > 0

    def test_equilateral(self, lattice):
        for edge in lattice.edges:
            a, b = edge.vertex_ids
            assert distance(lattice.position(a), lattice.position(b)) == pytest.approx(120)

    def test_edge_ids_follow_winding(self, lattice):
        for tri in lattice.triangles:
            for (a, b), eid in zip(tri.directed_edges(), tri.edge_ids):
                assert lattice.edges[eid].vertex_ids == edge_key(a, b)
                assert tri.id in lattice.edges[eid].triangle_ids

    def test_neighbors_sorted_and_symmetric(self, lattice):
        for tri in lattice.triangles:
            assert list(tri.neighbor_ids) == sorted(tri.neighbor_ids)
            assert len(tri.neighbor_ids) <= 3
            for nid in tri.neighbor_ids:
                assert tri.id in lattice.triangles[nid].neighbor_ids

    def test_centroid(self, lattice):
        tri = lattice.triangles[17]
        xs = [lattice.position(v)[0] for v in tri.vertex_ids]
        ys = [lattice.position(v)[1] for v in tri.vertex_ids]
        assert tri.centroid == pytest.approx((sum(xs) / 3, sum(ys) / 3))


class TestEdges:
    def test_canonical_and_unique(self, lattice):
        keys = [e.vertex_ids for e in lattice.edges]
        assert all(a < b for a, b in keys)
        assert len(set(keys)) == len(keys)

    def test_one_or_two_triangles(self, lattice):
        assert all(1 <= len(e.triangle_ids) <= 2 for e in lattice.edges)

    def test_edge_between(self, lattice):
        edge = lattice.edges[5]
        a, b = edge.vertex_ids
        assert lattice.edge_between(b, a) is edge
        assert lattice.edge_between(0, 98) is None

    def test_touches_boundary(self, lattice):
        for edge in lattice.edges:
            expected = len(edge.triangle_ids) == 1 or any(
                not lattice.triangles[t].inside_boundary for t in edge.triangle_ids
            )
            assert edge.touches_boundary == expected
        inner = [e for e in lattice.edges if not e.touches_boundary]
        assert inner, "a 900×600 area has fully interior edges"


# ═══════════════════════════════════════════════════════════════════
# Boundary flags
# ═══════════════════════════════════════════════════════════════════


class TestBoundaryFlags:
    def test_flags_match_containment(self, lattice):
        boundary = lattice.boundary
        for tri in lattice.triangles:
            assert tri.inside_boundary == boundary.contains(tri.centroid)
        for v in lattice.vertices:
            assert v.inside_boundary == boundary.contains(v.position)

    def test_overscan_triangles_excluded(self, lattice):
        active = lattice.active_triangle_ids()
        assert 0 < len(active) < len(lattice.triangles)

    def test_boundary_excluding_everything(self):
        far = Boundary.rectangle(10, 10, x=5000, y=5000)
        lat = build_lattice(900, 600, 120, far)
        assert len(lat.triangles) == 160
        assert lat.active_triangle_ids() == []
        assert lat.active_vertex_ids() == []
        assert lat.validate() == []

    def test_ellipse_has_fewer_active(self, lattice):
        ellipse = build_lattice(900, 600, 120, Boundary.ellipse(450, 300, 450, 300))
        assert len(ellipse.active_triangle_ids()) < len(lattice.active_triangle_ids())

    def test_command_list_accepted(self):
        cmds = Boundary.rectangle(300, 200).commands
        lat = build_lattice(300, 200, 60, cmds)
        assert lat.boundary.contains((10, 10))


# ═══════════════════════════════════════════════════════════════════
# Clamping, validation, determinism
# ═══════════════════════════════════════════════════════════════════


class TestClamping:
    def test_small_spacing_floored(self):
        lat = build_lattice(20, 20, 1)
        assert lat.horizontal_spacing == MIN_SPACING

    @pytest.mark.parametrize("bad", [0, -3, float("nan"), float("inf")])
    def test_invalid_spacing_warns(self, bad, caplog):
        with caplog.at_level(logging.WARNING, logger="blockgrid.lattice"):
            lat = build_lattice(20, 20, bad)
        assert lat.horizontal_spacing == MIN_SPACING
        assert "spacing" in caplog.text

    def test_negative_size_clamped(self, caplog):
        with caplog.at_level(logging.WARNING, logger="blockgrid.lattice"):
            lat = build_lattice(-50, 100, 50)
        assert lat.column_count == 3
        assert "width" in caplog.text


class TestValidation:
    def test_clean_lattice(self, lattice):
        assert lattice.validate() == []

    def test_repr(self, lattice):
        assert "triangles=160" in repr(lattice)


def test_lattice_json_determinism():
    a = build_lattice(900, 600, 120, Boundary.ellipse(450, 300, 450, 300))
    b = build_lattice(900, 600, 120, Boundary.ellipse(450, 300, 450, 300))
    assert a.to_json() == b.to_json()
