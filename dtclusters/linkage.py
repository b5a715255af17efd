"""
Linkage rules for deciding whether two clusters may merge.

A linkage rule reduces the valid pairwise distances between two member sets
to a single linkage distance: the minimum (single), the maximum (complete) or
the mean (average). Two clusters can link when they share at least one valid
pair and their linkage distance is at or below the threshold.
"""

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, Type

from .precision import DEFAULT_POLICY, PrecisionPolicy
from .sequences import Sequence

DistanceFunction = Callable[[Sequence, Sequence], float]


@dataclass(frozen=True)
class PairStats:
    """Summary of the valid distances between two member sets.

    Stats combine additively: the stats of (A + B) against C are the combined
    stats of A against C and B against C.
    """
    minimum: float = math.inf
    maximum: float = -math.inf
    total: float = 0.0
    count: int = 0

    @classmethod
    def between(cls, members_a: Iterable[Sequence], members_b: Iterable[Sequence],
                distance: DistanceFunction) -> 'PairStats':
        members_b = list(members_b)
        minimum, maximum, total, count = math.inf, -math.inf, 0.0, 0
        for a in members_a:
            for b in members_b:
                d = distance(a, b)
                if d < 0:
                    continue
                minimum = min(minimum, d)
                maximum = max(maximum, d)
                total += d
                count += 1
        return cls(minimum, maximum, total, count)

    def combine(self, other: 'PairStats') -> 'PairStats':
        return PairStats(
            minimum=min(self.minimum, other.minimum),
            maximum=max(self.maximum, other.maximum),
            total=self.total + other.total,
            count=self.count + other.count,
        )

    @property
    def valid(self) -> bool:
        return self.count > 0


class Linkage(ABC):
    """Base class for linkage rules."""

    name: str = ""

    @abstractmethod
    def from_stats(self, stats: PairStats) -> float:
        """Linkage distance for the given pair statistics (requires stats.valid)."""
        pass

    def pairwise_distance(self, members_a: Iterable[Sequence], members_b: Iterable[Sequence],
                          distance: DistanceFunction) -> float:
        """Linkage distance between two member sets, or -1 if no pair is valid."""
        return self.distance_from_stats(PairStats.between(members_a, members_b, distance))

    def distance_from_stats(self, stats: PairStats) -> float:
        if not stats.valid:
            return -1.0
        return self.from_stats(stats)

    def can_link(self, members_a: Iterable[Sequence], members_b: Iterable[Sequence],
                 threshold: float, distance: DistanceFunction,
                 policy: PrecisionPolicy = DEFAULT_POLICY) -> bool:
        """True when the two member sets qualify to merge at ``threshold``."""
        return self.stats_qualify(PairStats.between(members_a, members_b, distance), threshold, policy)

    def stats_qualify(self, stats: PairStats, threshold: float,
                      policy: PrecisionPolicy = DEFAULT_POLICY) -> bool:
        if not stats.valid:
            return False
        return policy.at_most(self.from_stats(stats), threshold)

    def __str__(self) -> str:
        return f"{self.name} linkage"

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"

    def __eq__(self, other) -> bool:
        return type(self) is type(other)

    def __hash__(self) -> int:
        return hash(type(self))


class SingleLinkage(Linkage):
    """Any one qualifying pairwise distance links the clusters."""
    name = "single"

    def from_stats(self, stats: PairStats) -> float:
        return stats.minimum


class CompleteLinkage(Linkage):
    """Every valid pairwise distance must qualify."""
    name = "complete"

    def from_stats(self, stats: PairStats) -> float:
        return stats.maximum


class AverageLinkage(Linkage):
    """The mean of the valid pairwise distances must qualify."""
    name = "average"

    def from_stats(self, stats: PairStats) -> float:
        return stats.total / stats.count


LINKAGES: Dict[str, Type[Linkage]] = {
    SingleLinkage.name: SingleLinkage,
    CompleteLinkage.name: CompleteLinkage,
    AverageLinkage.name: AverageLinkage,
}


def get_linkage(name: str) -> Linkage:
    """Look up a linkage rule by name ('single', 'complete' or 'average')."""
    try:
        return LINKAGES[name.lower()]()
    except KeyError:
        raise ValueError(f"Unknown linkage: {name!r}; expected one of {sorted(LINKAGES)}")
