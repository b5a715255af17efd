"""
Agglomeration of a completed partition as the threshold is relaxed.

Starting from the clusters of a ClusterPartition, the Agglomerator repeatedly
merges the two closest frontier nodes (by the partition's linkage rule) until
no pair is within the target threshold. Each merge is recorded as a
ClusterNode, so the walk produces a hierarchy that can be resumed later with a
higher target.
"""

import logging
from typing import Dict, Iterator, List, Optional, Tuple

from .clusters import ClusterNode, ClusterPartition, DistanceFunction
from .config import ClusterSettings, DEFAULT_SETTINGS
from .exceptions import AgglomeratorStateError, DelayAborted
from .linkage import Linkage, PairStats, SingleLinkage
from .progress import Aborted, Ok, Outcome, ProgressCallback, ensure_callback

logger = logging.getLogger(__name__)

PairKey = Tuple[int, int]


class Agglomerator:
    """
    Restartable distance walk over the clusters of a partition.

    The frontier starts as one leaf node per cluster, at the partition
    threshold. Node-to-node linkage distances are kept as PairStats and
    combined on merge, so members are only compared once.

    For library usage:
    - ``iter_merges`` yields merges lazily and stops when nothing qualifies
    - ``walk_to`` runs a whole walk with progress reporting and cancellation
    """

    def __init__(self,
                 partition: ClusterPartition,
                 linkage: Optional[Linkage] = None,
                 settings: Optional[ClusterSettings] = None,
                 distance: Optional[DistanceFunction] = None,
                 logger: Optional[logging.Logger] = None):
        """
        Initialize the walk.

        Args:
            partition: Completed partition to agglomerate
            linkage: Linkage rule for node distances; defaults to the partition's
            settings: Clustering settings (precision policy); defaults to the partition's
            distance: Distance function; defaults to the one the partition was built with
            logger: Optional logger instance for output; uses default logging if None
        """
        self.partition = partition
        self.linkage = linkage or partition.linkage or SingleLinkage()
        self.settings = settings or partition.settings or DEFAULT_SETTINGS
        self.distance = distance or partition.distance
        if self.distance is None:
            raise ValueError("Agglomeration needs a distance function; the partition has none")
        self.logger = logger or logging.getLogger(__name__)

        self._frontier: List[ClusterNode] = [
            ClusterNode.leaf(cluster, partition.threshold, order)
            for order, cluster in enumerate(partition.clusters)
        ]
        self._next_order = len(self._frontier)
        self._events: List[ClusterNode] = []
        self._threshold = partition.threshold
        self._stats: Optional[Dict[PairKey, PairStats]] = None
        self._aborted = False

    @property
    def frontier(self) -> List[ClusterNode]:
        """Nodes not yet merged, in partition order."""
        return list(self._frontier)

    @property
    def events(self) -> List[ClusterNode]:
        """Merge events so far, in the order they happened."""
        return list(self._events)

    @property
    def threshold(self) -> float:
        """Highest threshold walked so far."""
        return self._threshold

    @property
    def aborted(self) -> bool:
        return self._aborted

    def _check_usable(self) -> None:
        if self._aborted:
            raise AgglomeratorStateError("Agglomerator was aborted and can no longer be used")

    def _initialize_stats(self, callback: ProgressCallback) -> None:
        if self._stats is not None:
            return
        stats: Dict[PairKey, PairStats] = {}
        total = len(self._frontier)
        for i, node in enumerate(self._frontier):
            callback.delay(i, total)
            for other in self._frontier[i + 1:]:
                stats[(node.order, other.order)] = PairStats.between(node, other, self.distance)
        callback.delay(total, total)
        self._stats = stats
        self.logger.debug(f"Computed linkage statistics for {len(stats)} node pairs")

    def _closest_pair(self, to: float) -> Optional[Tuple[int, PairKey]]:
        """Closest qualifying pair as (fixed distance, key); ties go to the lowest key."""
        policy = self.settings.precision
        limit = policy.to_fixed(to)
        best: Optional[Tuple[int, PairKey]] = None
        for key, stats in self._stats.items():
            if not stats.valid:
                continue
            fixed = policy.to_fixed(self.linkage.from_stats(stats))
            if fixed > limit:
                continue
            candidate = (fixed, key)
            if best is None or candidate < best:
                best = candidate
        return best

    def _merge(self, key: PairKey) -> ClusterNode:
        first_order, second_order = key
        by_order = {node.order: node for node in self._frontier}
        first, second = by_order[first_order], by_order[second_order]

        merged_distance = self.linkage.from_stats(self._stats[key])
        node = ClusterNode(merged_distance, (first, second), self._next_order)
        self._next_order += 1

        # Fold both nodes' statistics into the new node
        for other in self._frontier:
            if other is first or other is second:
                continue
            combined = self._stats.pop(_key(first.order, other.order)).combine(
                self._stats.pop(_key(second.order, other.order))
            )
            self._stats[_key(node.order, other.order)] = combined
        del self._stats[key]

        position = self._frontier.index(first)
        self._frontier[position] = node
        self._frontier.remove(second)
        self._events.append(node)
        return node

    def iter_merges(self, to: float) -> Iterator[ClusterNode]:
        """
        Lazily merge frontier nodes until none are within ``to``.

        Targets at or below the current threshold yield nothing.

        Args:
            to: Target threshold

        Yields:
            One ClusterNode per merge, in merge order
        """
        self._check_usable()
        if self.settings.precision.compare(to, self._threshold) <= 0:
            return
        self._initialize_stats(ensure_callback(None))
        while True:
            best = self._closest_pair(to)
            if best is None:
                break
            yield self._merge(best[1])
        self._threshold = to

    def walk_to(self, to: float, callback: Optional[ProgressCallback] = None) -> Outcome:
        """
        Relax the threshold to ``to``, merging until no qualifying pair remains.

        A later call with a higher target continues from the current frontier.
        A target below the partition threshold is a no-op.

        Args:
            to: Target threshold
            callback: Progress callback, checked between merges

        Returns:
            Ok(frontier nodes at ``to``), or Aborted; after an abort the
            agglomerator cannot be used again

        Raises:
            AgglomeratorStateError: If a previous walk was aborted
        """
        self._check_usable()
        callback = ensure_callback(callback)
        start_count = len(self._frontier)

        if self.settings.precision.compare(to, self._threshold) <= 0:
            self.logger.debug(f"Walk to {to:.2%} is not above the current threshold "
                              f"{self._threshold:.2%}; nothing to merge")
            return Ok(self.frontier)

        self.logger.info(f"Walking {start_count} clusters from {self._threshold:.2%} to {to:.2%}")
        callback.begin()
        try:
            self._initialize_stats(callback)
            total = max(start_count - 1, 0)
            merges = 0
            callback.delay(merges, total)
            for node in self.iter_merges(to):
                merges += 1
                self.logger.debug(f"Merged {len(node)} sequences at {node.distance:.5f}")
                callback.delay(merges, total)
        except DelayAborted as e:
            self._aborted = True
            self.logger.info(f"Distance walk aborted: {e}")
            return Aborted(str(e))
        finally:
            callback.end()

        self.logger.info(f"{start_count} clusters at {self.partition.threshold:.2%} became "
                         f"{len(self._frontier)} clusters at {to:.2%}")
        return Ok(self.frontier)


def _key(a: int, b: int) -> PairKey:
    return (a, b) if a < b else (b, a)


def agglomerate_clusters(partition: ClusterPartition, to: float,
                         callback: Optional[ProgressCallback] = None,
                         settings: Optional[ClusterSettings] = None) -> Outcome:
    """Walk a partition to ``to`` in one call; see ``Agglomerator.walk_to``."""
    return Agglomerator(partition, settings=settings).walk_to(to, callback)
