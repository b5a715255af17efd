"""
Cluster stability: how many clusters keep exactly the same membership when
the threshold changes.
"""

import logging
from dataclasses import dataclass
from typing import FrozenSet, Iterable, List, Optional

from .clusters import ClusterPartition
from .config import ClusterSettings
from .engine import ClusterJob
from .exceptions import JobStateError
from .linkage import Linkage
from .progress import Ok, Outcome, ProgressCallback
from .sequences import Sequence, SequenceCorpus

logger = logging.getLogger(__name__)


def _member_sets(clusters) -> List[FrozenSet[Sequence]]:
    if isinstance(clusters, ClusterJob):
        if clusters.partition is None:
            raise JobStateError("Cluster job has not completed")
        clusters = clusters.partition
    if isinstance(clusters, ClusterPartition):
        clusters = clusters.clusters
    return [frozenset(cluster) for cluster in clusters]


def count_shared_clusters(first, second) -> int:
    """
    Count clusters with an identical member set on the other side.

    Membership is compared as a set of sequences, so two clusters built by
    different jobs match when they hold the same sequences regardless of
    member order or cluster identity.

    The side with more clusters is the one counted, so repeated clusters
    count once each: (c1, c3) against (c1, c1, c3) shares 3 in either
    direction. With equal counts, ``second`` is counted.

    Args:
        first: ClusterPartition, completed ClusterJob, or iterable of clusters
        second: Same kinds as ``first``

    Returns:
        Number of clusters on the larger side with an identical counterpart
        on the smaller side
    """
    bigger = _member_sets(second)
    smaller = _member_sets(first)
    if len(bigger) < len(smaller):
        bigger, smaller = smaller, bigger

    targets = set(smaller)
    return sum(1 for members in bigger if members in targets)


@dataclass(frozen=True)
class StabilityRow:
    """Clusters found at one threshold, and how many survive from the start."""
    threshold: float
    clusters: int
    shared: int


def stability_sweep(corpus: SequenceCorpus,
                    linkage: Optional[Linkage] = None,
                    start: float = 0.03,
                    stop: float = 0.10,
                    step: float = 0.005,
                    callback: Optional[ProgressCallback] = None,
                    settings: Optional[ClusterSettings] = None) -> Outcome:
    """
    Cluster at ``start`` and at each later step up to ``stop``, comparing each
    partition with the first.

    Thresholds are generated on the precision grid so repeated steps do not
    accumulate floating-point drift.

    Args:
        corpus: Sequences to cluster
        linkage: Linkage rule for every job (default single linkage)
        start: First threshold
        stop: Last threshold (inclusive)
        step: Threshold increment; must be positive
        callback: Progress callback shared by every job
        settings: Clustering settings; defaults to the corpus settings

    Returns:
        Ok(list of StabilityRow), or the Aborted outcome of the cancelled job
    """
    settings = settings or corpus.settings
    policy = settings.precision
    step_fixed = policy.to_fixed(step)
    if step_fixed <= 0:
        raise ValueError(f"Stability step must be positive, got {step}")

    start_fixed = policy.to_fixed(start)
    stop_fixed = policy.to_fixed(stop)

    original = ClusterJob(corpus, linkage, policy.from_fixed(start_fixed), settings)
    outcome = original.execute(callback)
    if not outcome.ok:
        return outcome
    rows = [StabilityRow(original.threshold, original.count(), original.count())]
    logger.info(f"{original.count()} clusters at {original.threshold:.2%}")

    current_fixed = start_fixed + step_fixed
    while current_fixed <= stop_fixed:
        current = ClusterJob(corpus, original.linkage, policy.from_fixed(current_fixed), settings)
        outcome = current.execute(callback)
        if not outcome.ok:
            return outcome
        shared = original.count_clusters_shared_with(current)
        rows.append(StabilityRow(current.threshold, current.count(), shared))
        logger.info(f"{current.count()} clusters at {current.threshold:.2%}, {shared} shared "
                    f"with {original.threshold:.2%}")
        current_fixed += step_fixed

    return Ok(rows)


def format_stability(rows: Iterable[StabilityRow]) -> str:
    """Tab-separated stability table with percentage thresholds."""
    lines = ["Threshold\tClusters\tShared clusters"]
    for row in rows:
        lines.append(f"{row.threshold * 100:.2f}\t{row.clusters}\t{row.shared}")
    return "\n".join(lines)
