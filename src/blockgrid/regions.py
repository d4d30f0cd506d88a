"""Region growing — merging lattice triangles into blocks.

Two interchangeable strategies share one contract: a :class:`Lattice`, a
merge probability and a seeded random source go in, a :class:`Partition`
of the in-boundary triangles comes out.

Strategies
----------
- :func:`cluster_triangles` — probabilistic depth-first flood fill that
  produces variable-size, organic blocks.
- :func:`pair_triangles` — random pairwise merging into two-triangle
  diamonds; a more regular, lower-variance look.

Random draw order
-----------------
Both strategies draw from the source in a fixed order so that a seed
reproduces the same partition:

- flood fill: for every triangle popped from the stack, ``n - 1`` draws
  to shuffle its ``n`` in-boundary neighbours, then one draw per
  neighbour that is still unassigned at the time it is visited;
- pairwise: ``n - 1`` draws to shuffle the ``n`` in-boundary triangles,
  then, for every triangle still unpaired when reached, ``k - 1`` draws to
  shuffle its ``k`` available neighbours.

Out-of-boundary triangles never join a group and never consume draws.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence, Set, Tuple

from .lattice import Lattice
from .models import Cluster, Pair
from .random_source import CountingSource, RandomSource, clamp01, shuffle_in_place

logger = logging.getLogger(__name__)

#: Assignment value for triangles that belong to no group.
UNASSIGNED = -1


# ═══════════════════════════════════════════════════════════════════
# Data model
# ═══════════════════════════════════════════════════════════════════

@dataclass
class Partition:
    """Grouping of in-boundary triangles produced by a region grower.

    Parameters
    ----------
    strategy : str
        Name of the strategy that produced the partition.
    clusters : list[Cluster]
        Groups indexed by id.  For the pairwise strategy every pair is
        also a cluster with the same id.
    triangle_to_cluster : list[int]
        Owning cluster per triangle id, :data:`UNASSIGNED` for triangles
        outside the boundary.
    edge_to_clusters : list[tuple[int, ...]]
        Sorted cluster ids referencing each lattice edge.
    pairs : list[Pair]
        Pairwise strategy only.
    removed_edge_ids : list[int]
        Pairwise strategy only: lattice edges dissolved inside a diamond.
    merge_probability : float
        The probability actually used, after clamping.
    draw_count : int
        Number of values drawn from the random source.
    """

    strategy: str
    clusters: List[Cluster] = field(default_factory=list)
    triangle_to_cluster: List[int] = field(default_factory=list)
    edge_to_clusters: List[Tuple[int, ...]] = field(default_factory=list)
    pairs: List[Pair] = field(default_factory=list)
    removed_edge_ids: List[int] = field(default_factory=list)
    merge_probability: float = 0.0
    draw_count: int = 0

    def cluster_for_triangle(self, triangle_id: int) -> Optional[Cluster]:
        cid = self.triangle_to_cluster[triangle_id]
        return None if cid == UNASSIGNED else self.clusters[cid]

    def sizes(self) -> List[int]:
        return [c.size for c in self.clusters]

    def to_dict(self) -> dict:
        data = {
            "strategy": self.strategy,
            "merge_probability": self.merge_probability,
            "draw_count": self.draw_count,
            "clusters": [
                {
                    "id": c.id,
                    "triangles": list(c.triangle_ids),
                    "edges": list(c.edge_ids),
                }
                for c in self.clusters
            ],
            "triangle_to_cluster": list(self.triangle_to_cluster),
        }
        if self.pairs:
            data["pairs"] = [
                {
                    "id": p.id,
                    "triangles": list(p.triangle_ids),
                    "shared_edge": p.shared_edge_id,
                }
                for p in self.pairs
            ]
            data["removed_edges"] = list(self.removed_edge_ids)
        return data

    def __len__(self) -> int:
        return len(self.clusters)

    def __repr__(self) -> str:
        return f"Partition(strategy={self.strategy!r}, clusters={len(self.clusters)})"


# ═══════════════════════════════════════════════════════════════════
# Flood-fill clustering
# ═══════════════════════════════════════════════════════════════════

def cluster_triangles(
    lattice: Lattice,
    merge_probability: float,
    random: RandomSource,
) -> Partition:
    """Merge adjacent in-boundary triangles into organic clusters.

    Triangles are visited in ascending id order; each unassigned one seeds
    a cluster that grows depth-first.  Every in-boundary neighbour of a
    popped triangle is visited in shuffled order and, if still unassigned,
    joins the cluster when a draw falls below *merge_probability*.

    A probability of 0 yields one cluster per triangle; 1 yields one
    cluster per connected component of in-boundary triangles.
    """
    p = _clamp_probability(merge_probability)
    source = CountingSource(random)
    triangles = lattice.triangles

    assignments = [UNASSIGNED] * len(triangles)
    members_by_cluster: List[List[int]] = []

    for triangle in triangles:
        if not triangle.inside_boundary or assignments[triangle.id] != UNASSIGNED:
            continue

        cluster_id = len(members_by_cluster)
        assignments[triangle.id] = cluster_id
        stack = [triangle.id]
        members: List[int] = []

        while stack:
            current = stack.pop()
            members.append(current)

            neighbor_ids = [
                nid for nid in triangles[current].neighbor_ids
                if triangles[nid].inside_boundary
            ]
            shuffle_in_place(neighbor_ids, source)

            for nid in neighbor_ids:
                if assignments[nid] != UNASSIGNED:
                    continue
                if source.random() < p:
                    assignments[nid] = cluster_id
                    stack.append(nid)

        members_by_cluster.append(sorted(members))

    partition = _build_partition(
        "flood_fill", lattice, assignments, members_by_cluster, p, source.draws,
    )
    logger.debug(
        "Flood fill p=%.3f produced %d clusters from %d triangles (%d draws)",
        p, len(partition.clusters), sum(partition.sizes()), source.draws,
    )
    return partition


# ═══════════════════════════════════════════════════════════════════
# Pairwise merging
# ═══════════════════════════════════════════════════════════════════

def pair_triangles(
    lattice: Lattice,
    merge_probability: float,
    random: RandomSource,
) -> Partition:
    """Randomly pair adjacent in-boundary triangles into diamonds.

    In-boundary triangles are visited in shuffled order; each unpaired
    one shuffles its unpaired in-boundary neighbours and merges with the
    first.  Triangles with no available partner stay single.

    *merge_probability* is accepted for signature parity with
    :func:`cluster_triangles` and does not influence the result.
    """
    p = _clamp_probability(merge_probability)
    source = CountingSource(random)
    triangles = lattice.triangles

    assignments = [UNASSIGNED] * len(triangles)
    eligible = [t.id for t in triangles if t.inside_boundary]
    shuffle_in_place(eligible, source)

    pairs: List[Pair] = []
    removed_edge_ids: List[int] = []

    for tid in eligible:
        if assignments[tid] != UNASSIGNED:
            continue

        available = [
            nid for nid in triangles[tid].neighbor_ids
            if triangles[nid].inside_boundary and assignments[nid] == UNASSIGNED
        ]
        shuffle_in_place(available, source)

        pair_id = len(pairs)
        assignments[tid] = pair_id
        if available:
            partner = available[0]
            assignments[partner] = pair_id
            shared = _shared_edge_id(lattice, tid, partner)
            if shared is not None:
                removed_edge_ids.append(shared)
            pairs.append(Pair(
                id=pair_id,
                triangle_ids=(min(tid, partner), max(tid, partner)),
                shared_edge_id=shared,
            ))
        else:
            pairs.append(Pair(id=pair_id, triangle_ids=(tid,), shared_edge_id=None))

    removed_edge_ids.sort()
    partition = _build_partition(
        "pairwise",
        lattice,
        assignments,
        [list(pair.triangle_ids) for pair in pairs],
        p,
        source.draws,
    )
    partition.pairs = pairs
    partition.removed_edge_ids = removed_edge_ids
    logger.debug(
        "Pairing produced %d diamonds and %d singles (%d draws)",
        sum(1 for pair in pairs if not pair.is_single),
        sum(1 for pair in pairs if pair.is_single),
        source.draws,
    )
    return partition


# ═══════════════════════════════════════════════════════════════════
# Strategy registry and entry point
# ═══════════════════════════════════════════════════════════════════

RegionGrower = Callable[[Lattice, float, RandomSource], Partition]

REGION_GROWERS: Dict[str, RegionGrower] = {
    "flood_fill": cluster_triangles,
    "pairwise": pair_triangles,
}


def grow_regions(
    lattice: Lattice,
    merge_probability: float,
    random: RandomSource,
    strategy: str = "flood_fill",
) -> Partition:
    """Partition the in-boundary triangles of *lattice* with *strategy*."""
    try:
        grower = REGION_GROWERS[strategy]
    except KeyError:
        raise KeyError(
            f"Unknown region strategy {strategy!r}. "
            f"Available: {sorted(REGION_GROWERS)}"
        ) from None
    return grower(lattice, merge_probability, random)


# ═══════════════════════════════════════════════════════════════════
# Validation and adjacency
# ═══════════════════════════════════════════════════════════════════

@dataclass
class PartitionValidation:
    """Result of :func:`validate_partition`."""

    ok: bool
    errors: List[str] = field(default_factory=list)

    def __bool__(self) -> bool:
        return self.ok


def validate_partition(lattice: Lattice, partition: Partition) -> PartitionValidation:
    """Check that *partition* is an exact cover of the in-boundary triangles."""
    errors: List[str] = []
    triangles = lattice.triangles

    if len(partition.triangle_to_cluster) != len(triangles):
        errors.append(
            f"Assignment covers {len(partition.triangle_to_cluster)} triangles, "
            f"lattice has {len(triangles)}"
        )
        return PartitionValidation(ok=False, errors=errors)

    seen: Dict[int, int] = {}
    for cluster in partition.clusters:
        if not cluster.triangle_ids:
            errors.append(f"Cluster {cluster.id} is empty")
        for tid in cluster.triangle_ids:
            if tid in seen:
                errors.append(f"Triangle {tid} in both cluster {seen[tid]} and {cluster.id}")
                continue
            seen[tid] = cluster.id
            if not triangles[tid].inside_boundary:
                errors.append(f"Triangle {tid} is outside the boundary but in cluster {cluster.id}")
            if partition.triangle_to_cluster[tid] != cluster.id:
                errors.append(
                    f"Triangle {tid} maps to {partition.triangle_to_cluster[tid]} "
                    f"but is listed in cluster {cluster.id}"
                )

    missing = [t.id for t in triangles if t.inside_boundary and t.id not in seen]
    if missing:
        errors.append(
            f"Unassigned triangles ({len(missing)}): "
            + ", ".join(str(t) for t in missing[:5])
            + ("…" if len(missing) > 5 else "")
        )

    for pair in partition.pairs:
        if len(pair.triangle_ids) == 2:
            a, b = pair.triangle_ids
            if b not in triangles[a].neighbor_ids:
                errors.append(f"Pair {pair.id} triangles {a} and {b} are not adjacent")
            if pair.shared_edge_id is None:
                errors.append(f"Pair {pair.id} has no shared edge")
            elif not 0 <= pair.shared_edge_id < len(lattice.edges):
                errors.append(f"Pair {pair.id} shared edge {pair.shared_edge_id} does not exist")
            elif set(lattice.edges[pair.shared_edge_id].triangle_ids) != {a, b}:
                errors.append(
                    f"Pair {pair.id} shared edge {pair.shared_edge_id} is not between {a} and {b}"
                )
        elif pair.shared_edge_id is not None:
            errors.append(f"Single pair {pair.id} lists shared edge {pair.shared_edge_id}")

    return PartitionValidation(ok=not errors, errors=errors)


def cluster_adjacency(lattice: Lattice, partition: Partition) -> Dict[int, Set[int]]:
    """Return ``{cluster_id: {neighbouring cluster ids}}`` via shared edges."""
    result: Dict[int, Set[int]] = {c.id: set() for c in partition.clusters}
    for edge in lattice.edges:
        owners = partition.edge_to_clusters[edge.id]
        if len(owners) < 2:
            continue
        for cid in owners:
            result[cid].update(o for o in owners if o != cid)
    return result


# ═══════════════════════════════════════════════════════════════════
# Private helpers
# ═══════════════════════════════════════════════════════════════════

def _clamp_probability(value: float) -> float:
    clamped = clamp01(value)
    if clamped != value:
        logger.warning("Merge probability %r clamped to %s", value, clamped)
    return clamped


def _shared_edge_id(lattice: Lattice, a: int, b: int) -> Optional[int]:
    b_edges = set(lattice.triangles[b].edge_ids)
    for eid in lattice.triangles[a].edge_ids:
        if eid in b_edges:
            return eid
    return None


def _build_partition(
    strategy: str,
    lattice: Lattice,
    assignments: List[int],
    members_by_cluster: Sequence[Sequence[int]],
    merge_probability: float,
    draw_count: int,
) -> Partition:
    edge_to_clusters: List[Tuple[int, ...]] = []
    cluster_edges: List[List[int]] = [[] for _ in members_by_cluster]
    for edge in lattice.edges:
        owners = sorted({
            assignments[tid] for tid in edge.triangle_ids
            if assignments[tid] != UNASSIGNED
        })
        edge_to_clusters.append(tuple(owners))
        for cid in owners:
            cluster_edges[cid].append(edge.id)

    clusters = [
        Cluster(id=cid, triangle_ids=tuple(members), edge_ids=tuple(cluster_edges[cid]))
        for cid, members in enumerate(members_by_cluster)
    ]
    return Partition(
        strategy=strategy,
        clusters=clusters,
        triangle_to_cluster=list(assignments),
        edge_to_clusters=edge_to_clusters,
        merge_probability=merge_probability,
        draw_count=draw_count,
    )
