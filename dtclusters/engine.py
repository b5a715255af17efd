"""
Threshold clustering of a sequence corpus.

A ClusterJob partitions a corpus into disjoint clusters: two clusters merge
whenever the linkage rule says their sequences are within the threshold of
each other. The job runs once; its partition is immutable afterwards.
"""

import logging
from enum import Enum
from typing import Dict, List, Optional

from .clusters import Cluster, ClusterPartition
from .config import ClusterSettings
from .exceptions import DelayAborted, JobStateError
from .linkage import Linkage, SingleLinkage
from .pairwise import DistributionMode, PairwiseDistance, PairwiseDistanceIndex
from .progress import Aborted, Ok, Outcome, ProgressCallback, ensure_callback
from .sequences import Sequence, SequenceCorpus

logger = logging.getLogger(__name__)

DEFAULT_THRESHOLD = 0.03


class JobState(Enum):
    UNEXECUTED = "unexecuted"
    EXECUTING = "executing"
    COMPLETED = "completed"
    ABORTED = "aborted"


class ClusterJob:
    """
    One clustering run over a corpus at a fixed threshold and linkage rule.

    For library usage:
    - Pass a ProgressCallback to ``execute`` to report progress or cancel
    - Pass a custom logger to integrate with your application's logging system
    """

    def __init__(self,
                 corpus: SequenceCorpus,
                 linkage: Optional[Linkage] = None,
                 threshold: float = DEFAULT_THRESHOLD,
                 settings: Optional[ClusterSettings] = None,
                 logger: Optional[logging.Logger] = None):
        """
        Initialize a clustering job.

        Args:
            corpus: Sequences to cluster; locked while the job executes
            linkage: Linkage rule deciding whether clusters merge (default single linkage)
            threshold: Largest linkage distance at which clusters merge (default 3%)
            settings: Clustering settings; defaults to the corpus settings
            logger: Optional logger instance for output; uses default logging if None
        """
        if threshold < 0:
            raise ValueError(f"Threshold cannot be negative, got {threshold}")
        self.corpus = corpus
        self.linkage = linkage if linkage is not None else SingleLinkage()
        self.threshold = threshold
        self.settings = settings or corpus.settings
        self.logger = logger or logging.getLogger(__name__)
        self._state = JobState.UNEXECUTED
        self._partition: Optional[ClusterPartition] = None

    @property
    def state(self) -> JobState:
        return self._state

    @property
    def partition(self) -> Optional[ClusterPartition]:
        """The completed partition, or None until the job completes."""
        return self._partition

    def execute(self, callback: Optional[ProgressCallback] = None) -> Outcome:
        """
        Partition the corpus.

        Args:
            callback: Progress callback; raising DelayAborted from it cancels the job

        Returns:
            Ok(ClusterPartition), or Aborted if the callback cancelled the job

        Raises:
            JobStateError: If the job has already been executed
        """
        if self._state is not JobState.UNEXECUTED:
            raise JobStateError(f"Cluster job has already been executed (state: {self._state.value})")

        self._state = JobState.EXECUTING
        callback = ensure_callback(callback)
        self.logger.info(f"Clustering {len(self.corpus)} sequences at {self.threshold:.2%} "
                         f"using {self.linkage}")
        try:
            with self.corpus.locked():
                built = PairwiseDistanceIndex.build(
                    self.corpus, DistributionMode.ALL_PAIRS, callback, self.settings
                )
                if not built.ok:
                    self._state = JobState.ABORTED
                    return built
                partition = self._partition_corpus(list(self.corpus), built.value, callback)
        except DelayAborted as e:
            self._state = JobState.ABORTED
            self.logger.info(f"Clustering aborted: {e}")
            return Aborted(str(e))
        except Exception:
            self._state = JobState.ABORTED
            raise

        self._partition = partition
        self._state = JobState.COMPLETED

        singletons = len(partition.singletons())
        self.logger.info(f"{len(partition) - singletons} clusters and {singletons} singletons "
                         f"at {self.threshold:.2%}")
        return Ok(partition)

    def _partition_corpus(self, ordered: List[Sequence], index: PairwiseDistanceIndex,
                          callback: ProgressCallback) -> ClusterPartition:
        policy = self.settings.precision
        distance = self.corpus.distance
        cluster_of: Dict[Sequence, Cluster] = {seq: Cluster([seq]) for seq in ordered}

        candidates = [entry for entry in index if policy.at_most(entry.distance, self.threshold)]
        total = len(ordered)

        callback.begin()
        try:
            passes = 0
            merged = True
            while merged:
                merged = False
                passes += 1
                # Progress counts sequences as the pass first reaches them
                processed = set()
                for entry in candidates:
                    for seq in (entry.seq_a, entry.seq_b):
                        if seq not in processed:
                            processed.add(seq)
                            callback.delay(len(processed), total)
                    if self._try_merge(entry, cluster_of, distance):
                        merged = True
                callback.delay(total, total)
                self.logger.debug(f"Clustering pass {passes} complete "
                                  f"({'merges made' if merged else 'no merges'})")
        finally:
            callback.end()

        clusters: List[Cluster] = []
        seen = set()
        for seq in ordered:
            cluster = cluster_of[seq]
            if id(cluster) not in seen:
                seen.add(id(cluster))
                clusters.append(cluster)

        return ClusterPartition(tuple(clusters), self.threshold, self.linkage, distance, self.settings)

    def _try_merge(self, entry: PairwiseDistance, cluster_of: Dict[Sequence, Cluster],
                   distance) -> bool:
        first = cluster_of[entry.seq_a]
        second = cluster_of[entry.seq_b]
        if first is second:
            return False
        if not self.linkage.can_link(first, second, self.threshold, distance, self.settings.precision):
            return False

        first.absorb(second)
        first.absorb_distance(entry.distance)
        for seq in second:
            cluster_of[seq] = first
        return True

    def get_clusters(self) -> List[Cluster]:
        """Clusters of the completed partition; empty until the job completes."""
        if self._partition is None:
            return []
        return list(self._partition.clusters)

    def count(self) -> int:
        """Number of clusters, or -1 if the job has not completed."""
        if self._partition is None:
            return -1
        return len(self._partition)

    def count_clusters_shared_with(self, other) -> int:
        """Number of this job's clusters whose membership also appears in ``other``.

        Raises:
            JobStateError: If this job has not completed
        """
        if self._partition is None:
            raise JobStateError("Cluster job has not completed")
        from .stability import count_shared_clusters
        return count_shared_clusters(self._partition, other)

    def __repr__(self) -> str:
        return (f"ClusterJob(threshold={self.threshold}, linkage={self.linkage.name}, "
                f"state={self._state.value})")
