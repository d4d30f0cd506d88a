from __future__ import annotations

import json

from blockgrid.config import DIAMONDS, GenerationConfig
from blockgrid.diagnostics import (
    check_adjacency_symmetry,
    diagnostics_report,
    has_self_crossings,
    lattice_stats,
    min_piece_signed_area,
    partition_stats,
)
from blockgrid.lattice import build_lattice
from blockgrid.pipeline import generate_topology


def test_lattice_stats():
    lattice = build_lattice(900, 600, 120)
    stats = lattice_stats(lattice)
    assert stats.vertices == 99
    assert stats.triangles == 160
    assert stats.edges == 258
    assert stats.active_triangles == len(lattice.active_triangle_ids())
    assert 0 < stats.boundary_edges < stats.edges


def test_adjacency_symmetry_clean():
    assert check_adjacency_symmetry(build_lattice(300, 200, 60)) == []


def test_partition_stats_pairwise():
    result = generate_topology(DIAMONDS)
    stats = partition_stats(result.partition)
    assert stats.paired_diamonds + stats.singles == stats.clusters
    assert 2 * stats.paired_diamonds + stats.singles == stats.assigned_triangles
    assert stats.removed_edges == stats.paired_diamonds
    assert stats.max_size <= 2


def test_partition_stats_flood_fill():
    result = generate_topology(GenerationConfig(merge_probability=0.0))
    stats = partition_stats(result.partition)
    assert stats.min_size == stats.max_size == 1
    assert stats.mean_size == 1.0
    assert stats.paired_diamonds == 0


def test_self_crossings():
    square = [(0, 0), (10, 0), (10, 10), (0, 10), (0, 0)]
    bowtie = [(0, 0), (10, 10), (10, 0), (0, 10), (0, 0)]
    assert not has_self_crossings(square)
    assert has_self_crossings(bowtie)


def test_pinched_ring_is_not_a_crossing():
    pinched = [(0, 0), (5, 5), (10, 0), (10, 10), (5, 5), (0, 10)]
    assert not has_self_crossings(pinched)


def test_min_piece_area_positive():
    result = generate_topology(GenerationConfig(seed=6))
    assert min_piece_signed_area(result.topology) > 0


def test_report_is_json_friendly():
    result = generate_topology(GenerationConfig(seed=2))
    report = diagnostics_report(result.lattice, result.partition, result.topology)
    assert report["lattice_errors"] == []
    assert report["topology"]["errors"] == []
    assert report["topology"]["pieces"] == len(result.topology.pieces)
    assert report["topology"]["self_crossing_pieces"] == []
    json.dumps(report)


def test_report_lattice_only():
    report = diagnostics_report(build_lattice(300, 200, 60))
    assert set(report) == {"lattice", "lattice_errors"}
