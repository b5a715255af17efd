"""
Clusters, cluster partitions and cluster nodes.

A Cluster grows while a partition is being built and is frozen once the
partition completes. ClusterNodes record agglomeration: each node joins two
or more earlier nodes (or wraps one leaf Cluster) at a merge distance.
"""

from collections import Counter
from dataclasses import dataclass, field
from typing import Callable, FrozenSet, Iterable, Iterator, List, Optional, Tuple, Union

from .config import ClusterSettings
from .linkage import Linkage
from .precision import DEFAULT_POLICY, PrecisionPolicy
from .sequences import Sequence

DistanceFunction = Callable[[Sequence, Sequence], float]


class Cluster:
    """A growable set of sequences plus the within-cluster distances it absorbed."""

    def __init__(self, sequences: Optional[Iterable[Sequence]] = None):
        self._members: List[Sequence] = []
        self._member_set = set()
        self.distances: List[float] = []
        self._frozen = False
        if sequences is not None:
            for seq in sequences:
                self.add(seq)

    def add(self, seq: Sequence) -> None:
        self._check_mutable()
        if seq in self._member_set:
            return
        self._members.append(seq)
        self._member_set.add(seq)

    def absorb(self, other: 'Cluster') -> None:
        """Take over every member and absorbed distance of another cluster."""
        self._check_mutable()
        for seq in other._members:
            self.add(seq)
        self.distances.extend(other.distances)

    def absorb_distance(self, distance: float) -> None:
        self._check_mutable()
        self.distances.append(distance)

    def freeze(self) -> None:
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def _check_mutable(self) -> None:
        if self._frozen:
            raise ValueError("Cluster belongs to a completed partition and cannot change")

    def __len__(self) -> int:
        return len(self._members)

    def __iter__(self) -> Iterator[Sequence]:
        return iter(self._members)

    def __contains__(self, seq: object) -> bool:
        return seq in self._member_set

    def count(self) -> int:
        return len(self._members)

    @property
    def members(self) -> Tuple[Sequence, ...]:
        return tuple(self._members)

    def member_key(self) -> FrozenSet[Sequence]:
        """Membership as a set; equal keys mean identical membership."""
        return frozenset(self._member_set)

    def species_counts(self) -> Counter:
        return Counter(seq.species_name for seq in self._members)

    def distance_summary(self, distance: DistanceFunction) -> Tuple[float, float, float]:
        """Smallest, mean and largest valid distance between distinct members.

        Each value is -1 if the cluster has no valid internal comparison.
        """
        values = []
        for i, outer in enumerate(self._members):
            for inner in self._members[i + 1:]:
                d = distance(outer, inner)
                if d >= 0:
                    values.append(d)
        if not values:
            return -1.0, -1.0, -1.0
        return min(values), sum(values) / len(values), max(values)

    def describe(self, distance: Optional[DistanceFunction] = None,
                 policy: PrecisionPolicy = DEFAULT_POLICY) -> str:
        """Human-readable summary of the species making up this cluster."""
        counts = self.species_counts()
        named = [(name if name is not None else "unidentified", n) for name, n in counts.most_common()]

        if len(named) == 0:
            text = "An empty cluster"
        elif len(named) == 1:
            text = f"A cluster of {len(self)} sequences from {named[0][0]}"
        elif len(named) == 2:
            text = (f"A cluster of {named[0][1]} sequence(s) from {named[0][0]} "
                    f"and {named[1][1]} sequence(s) from {named[1][0]}")
        else:
            others = len(self) - named[0][1] - named[1][1]
            text = (f"A cluster of {named[0][1]} sequence(s) from {named[0][0]}, "
                    f"{named[1][1]} sequence(s) from {named[1][0]}, "
                    f"and {others} other sequences from {len(named) - 2} species")

        if distance is not None and len(self) > 1:
            smallest, mean, largest = self.distance_summary(distance)
            if smallest < 0:
                text += " (no valid distances)"
            else:
                text += (f" (distances: {policy.percentage(smallest, 1)}%|"
                         f"{policy.percentage(mean, 1)}%|{policy.percentage(largest, 1)}%)")
        return text

    def __repr__(self) -> str:
        return f"Cluster(size={len(self)})"


def sort_by_size(clusters: Iterable[Cluster]) -> List[Cluster]:
    """Largest clusters first; stable for equal sizes."""
    return sorted(clusters, key=len, reverse=True)


@dataclass(frozen=True)
class ClusterPartition:
    """Disjoint clusters covering a corpus at one threshold and linkage.

    ``distance`` and ``settings`` are the corpus distance function and the
    settings the partition was built with; agglomeration reuses both.
    """

    clusters: Tuple[Cluster, ...]
    threshold: float
    linkage: Optional[Linkage] = None
    distance: Optional[DistanceFunction] = field(default=None, repr=False, compare=False)
    settings: Optional[ClusterSettings] = field(default=None, repr=False, compare=False)

    def __post_init__(self):
        for cluster in self.clusters:
            cluster.freeze()

    def __len__(self) -> int:
        return len(self.clusters)

    def __iter__(self) -> Iterator[Cluster]:
        return iter(self.clusters)

    def count(self) -> int:
        return len(self.clusters)

    def sequence_count(self) -> int:
        return sum(len(cluster) for cluster in self.clusters)

    def cluster_of(self, seq: Sequence) -> Optional[Cluster]:
        for cluster in self.clusters:
            if seq in cluster:
                return cluster
        return None

    def singletons(self) -> List[Cluster]:
        return [cluster for cluster in self.clusters if len(cluster) == 1]

    def member_sets(self) -> List[FrozenSet[Sequence]]:
        return [cluster.member_key() for cluster in self.clusters]

    def count_clusters_shared_with(self, other) -> int:
        from .stability import count_shared_clusters
        return count_shared_clusters(self, other)


Mergeable = Union[Cluster, 'ClusterNode']


class ClusterNode:
    """A merge event joining clusters or earlier nodes at a distance.

    Leaf nodes wrap exactly one Cluster from the starting partition.
    """

    def __init__(self, distance: float, children: Iterable[Mergeable], order: int = 0):
        self.distance = distance
        self.children: Tuple[Mergeable, ...] = tuple(children)
        self.order = order
        if not self.children:
            raise ValueError("A cluster node needs at least one child")
        members: List[Sequence] = []
        for child in self.children:
            members.extend(child.members)
        self._members = tuple(members)

    @classmethod
    def leaf(cls, cluster: Cluster, distance: float, order: int = 0) -> 'ClusterNode':
        return cls(distance, (cluster,), order)

    @property
    def is_leaf(self) -> bool:
        return len(self.children) == 1 and isinstance(self.children[0], Cluster)

    @property
    def cluster(self) -> Optional[Cluster]:
        """The wrapped Cluster for a leaf node, else None."""
        return self.children[0] if self.is_leaf else None

    @property
    def members(self) -> Tuple[Sequence, ...]:
        return self._members

    def member_key(self) -> FrozenSet[Sequence]:
        return frozenset(self._members)

    def __len__(self) -> int:
        return len(self._members)

    def __iter__(self) -> Iterator[Sequence]:
        return iter(self._members)

    def __contains__(self, seq: object) -> bool:
        return seq in self.member_key()

    def walk(self) -> Iterator[Tuple[Mergeable, 'ClusterNode']]:
        """Yield (child, parent) for every descendant, depth first."""
        for child in self.children:
            yield child, self
            if isinstance(child, ClusterNode):
                yield from child.walk()

    def leaf_clusters(self) -> List[Cluster]:
        """Clusters from the starting partition merged into this node."""
        if self.is_leaf:
            return [self.children[0]]
        leaves: List[Cluster] = []
        for child in self.children:
            if isinstance(child, ClusterNode):
                leaves.extend(child.leaf_clusters())
            else:
                leaves.append(child)
        return leaves

    def __repr__(self) -> str:
        kind = "leaf" if self.is_leaf else f"{len(self.children)} children"
        return f"ClusterNode(distance={self.distance:.5f}, {kind}, size={len(self)})"
