"""Tests for cluster outline tracing."""

from __future__ import annotations

import math
from collections import Counter

import pytest
from shapely.geometry import Point, Polygon
from shapely.validation import make_valid

from blockgrid.boundary import Boundary, is_point_in_boundary
from blockgrid.diagnostics import has_self_crossings
from blockgrid.geometry import is_collinear, signed_area
from blockgrid.lattice import Lattice, build_lattice
from blockgrid.models import Cluster
from blockgrid.random_source import Mulberry32
from blockgrid.regions import cluster_triangles, pair_triangles
from blockgrid.tracing import trace_cluster, trace_polygons, vertex_owners

TRI_AREA = math.sqrt(3) / 4 * 120 ** 2


@pytest.fixture
def lattice() -> Lattice:
    return build_lattice(900, 600, 120)


def _loop_area(loop) -> float:
    return signed_area(loop.points) + sum(signed_area(h) for h in loop.holes)


def _interior_vertex(lattice: Lattice) -> int:
    """A vertex whose full fan of six triangles lies inside the border."""
    fans = {}
    for tri in lattice.triangles:
        for vid in tri.vertex_ids:
            fans.setdefault(vid, []).append(tri)
    for vid in sorted(fans):
        fan = fans[vid]
        if len(fan) == 6 and all(t.inside_boundary for t in fan):
            return vid
    raise AssertionError("no interior vertex")


def _fan_by_angle(lattice: Lattice, vid: int):
    cx, cy = lattice.position(vid)
    fan = [t for t in lattice.triangles if vid in t.vertex_ids]
    return sorted(fan, key=lambda t: math.atan2(t.centroid[1] - cy, t.centroid[0] - cx))


# ═══════════════════════════════════════════════════════════════════
# Single clusters
# ═══════════════════════════════════════════════════════════════════


class TestTraceCluster:
    def test_single_triangle(self, lattice):
        tid = lattice.active_triangle_ids()[0]
        loop = trace_cluster(lattice, Cluster(id=0, triangle_ids=(tid,)))
        assert loop is not None
        assert loop.points[0] == loop.points[-1]
        assert loop.vertex_count == 3
        assert set(loop.vertex_ids) == set(lattice.triangles[tid].vertex_ids)
        assert signed_area(loop.points) == pytest.approx(TRI_AREA)
        assert loop.site == pytest.approx(lattice.triangles[tid].centroid)

    def test_diamond(self, lattice):
        tid = lattice.active_triangle_ids()[10]
        partner = next(
            n for n in lattice.triangles[tid].neighbor_ids
            if lattice.triangles[n].inside_boundary
        )
        loop = trace_cluster(lattice, Cluster(id=3, triangle_ids=tuple(sorted((tid, partner)))))
        assert loop.cluster_id == 3
        assert loop.vertex_count == 4
        assert signed_area(loop.points) == pytest.approx(2 * TRI_AREA)

    def test_hexagon_around_vertex(self, lattice):
        vid = _interior_vertex(lattice)
        fan = tuple(sorted(t.id for t in lattice.triangles if vid in t.vertex_ids))
        loop = trace_cluster(lattice, Cluster(id=0, triangle_ids=fan))
        assert loop.vertex_count == 6
        assert vid not in loop.vertex_ids
        assert signed_area(loop.points) == pytest.approx(6 * TRI_AREA)
        assert loop.site == pytest.approx(lattice.position(vid))

    def test_hole(self, lattice):
        vid = _interior_vertex(lattice)
        fan = {t.id for t in lattice.triangles if vid in t.vertex_ids}
        ring = {
            n for tid in fan for n in lattice.triangles[tid].neighbor_ids
            if n not in fan
        }
        # Grow the ring until it closes around the fan.
        outer = set()
        for tid in ring:
            outer.add(tid)
            for v in lattice.triangles[tid].vertex_ids:
                outer.update(t.id for t in lattice.triangles if v in t.vertex_ids)
        members = tuple(sorted(outer - fan))
        loop = trace_cluster(lattice, Cluster(id=0, triangle_ids=members))
        assert len(loop.holes) == 1
        hole = loop.holes[0]
        assert hole[0] == hole[-1]
        assert signed_area(hole) == pytest.approx(-6 * TRI_AREA)
        assert _loop_area(loop) == pytest.approx(len(members) * TRI_AREA)
        assert Polygon(loop.points, holes=list(loop.holes)).contains(Point(loop.site))

    def test_pinched_cluster_is_one_loop(self, lattice):
        vid = _interior_vertex(lattice)
        fan = _fan_by_angle(lattice, vid)
        a, b = fan[0].id, fan[3].id
        assert b not in lattice.triangles[a].neighbor_ids
        loop = trace_cluster(lattice, Cluster(id=0, triangle_ids=tuple(sorted((a, b)))))
        assert loop.holes == ()
        assert loop.vertex_count == 6
        assert Counter(loop.vertex_ids)[vid] == 2
        assert signed_area(loop.points) == pytest.approx(2 * TRI_AREA)
        assert not has_self_crossings(loop.points)

    def test_empty_cluster(self, lattice):
        assert trace_cluster(lattice, Cluster(id=0, triangle_ids=())) is None


# ═══════════════════════════════════════════════════════════════════
# Whole partitions
# ═══════════════════════════════════════════════════════════════════


class TestTracePolygons:
    def test_zero_probability(self, lattice):
        part = cluster_triangles(lattice, 0.0, Mulberry32(1))
        loops = trace_polygons(lattice, part)
        assert len(loops) == len(part.clusters)
        assert all(loop.vertex_count == 3 for loop in loops)

    def test_full_probability(self, lattice):
        part = cluster_triangles(lattice, 1.0, Mulberry32(1))
        loops = trace_polygons(lattice, part)
        assert len(loops) == 1
        assert _loop_area(loops[0]) == pytest.approx(part.clusters[0].size * TRI_AREA)
        assert not has_self_crossings(loops[0].points)

    @pytest.mark.parametrize("seed", [1, 7, 19])
    def test_area_matches_cluster_size(self, lattice, seed):
        part = cluster_triangles(lattice, 0.55, Mulberry32(seed))
        loops = trace_polygons(lattice, part)
        assert len(loops) == len(part.clusters)
        for loop in loops:
            size = part.clusters[loop.cluster_id].size
            assert signed_area(loop.points) > 0
            assert _loop_area(loop) == pytest.approx(size * TRI_AREA, rel=1e-9)

    def test_closed_rings(self, lattice):
        part = pair_triangles(lattice, 1.0, Mulberry32(2))
        for loop in trace_polygons(lattice, part):
            assert loop.points[0] == loop.points[-1]
            assert len(loop.points) == len(loop.vertex_ids) + 1
            for a, b in zip(loop.points, loop.points[1:]):
                assert a != b

    def test_collinear_vertices_only_at_junctions(self, lattice):
        part = cluster_triangles(lattice, 0.6, Mulberry32(5))
        owners = vertex_owners(lattice, part)
        for loop in trace_polygons(lattice, part):
            ids = loop.vertex_ids
            counts = Counter(ids)
            n = len(ids)
            for i, vid in enumerate(ids):
                prev_pos = lattice.position(ids[i - 1])
                next_pos = lattice.position(ids[(i + 1) % n])
                if is_collinear(prev_pos, lattice.position(vid), next_pos):
                    assert len(owners[vid]) >= 3 or counts[vid] > 1

    def test_sites_inside(self):
        lat = build_lattice(900, 600, 120, Boundary.ellipse(450, 300, 450, 300))
        part = cluster_triangles(lat, 0.5, Mulberry32(3))
        for loop in trace_polygons(lat, part):
            assert lat.boundary.contains(loop.site)
            assert is_point_in_boundary(loop.site, [loop.points[:-1]])

    def test_shared_vertices_between_neighbours(self, lattice):
        part = cluster_triangles(lattice, 0.5, Mulberry32(11))
        loops = {loop.cluster_id: loop for loop in trace_polygons(lattice, part)}
        for edge in lattice.edges:
            owners = part.edge_to_clusters[edge.id]
            if len(owners) != 2:
                continue
            a, b = owners
            shared = set(loops[a].vertex_ids) & set(loops[b].vertex_ids)
            # Neighbours agree on where their common run starts and ends.
            assert len(shared) >= 2

    def test_sites_inside_pieces(self):
        lattice = build_lattice(900, 600, 60, Boundary.ellipse(450, 300, 450, 300))
        part = cluster_triangles(lattice, 0.6, Mulberry32(2))
        for loop in trace_polygons(lattice, part):
            shape = make_valid(Polygon(loop.points, holes=list(loop.holes)))
            assert shape.contains(Point(loop.site)), loop.cluster_id
