"""
dtclusters: distance-threshold clustering of DNA barcodes

A Python package that partitions sequences into species-like clusters by
pairwise genetic distance, agglomerates them as the threshold is relaxed, and
measures how stable cluster membership is across thresholds.
"""

__version__ = "0.1.0"

from .precision import PrecisionPolicy
from .config import ClusterSettings
from .exceptions import (
    ClusteringError,
    DelayAborted,
    CorpusLockedError,
    JobStateError,
    AgglomeratorStateError
)
from .progress import Ok, Aborted, ProgressCallback, TqdmProgress
from .sequences import Sequence, SequenceCorpus
from .distances import (
    DistanceOracle,
    UncorrectedDistanceOracle,
    PrecomputedDistanceOracle
)
from .pairwise import DistributionMode, PairwiseDistance, PairwiseDistanceIndex
from .linkage import SingleLinkage, CompleteLinkage, AverageLinkage, get_linkage
from .clusters import Cluster, ClusterPartition, ClusterNode
from .engine import ClusterJob, JobState
from .agglomerate import Agglomerator, agglomerate_clusters
from .stability import count_shared_clusters, stability_sweep
from .utils import load_corpus_from_fasta, load_sequences_from_fasta, format_partition
from .analyze import (
    distribution_table,
    format_distribution,
    barcode_gap,
    create_distance_histogram
)

__all__ = [
    "PrecisionPolicy",
    "ClusterSettings",
    "ClusteringError",
    "DelayAborted",
    "CorpusLockedError",
    "JobStateError",
    "AgglomeratorStateError",
    "Ok",
    "Aborted",
    "ProgressCallback",
    "TqdmProgress",
    "Sequence",
    "SequenceCorpus",
    "DistanceOracle",
    "UncorrectedDistanceOracle",
    "PrecomputedDistanceOracle",
    "DistributionMode",
    "PairwiseDistance",
    "PairwiseDistanceIndex",
    "SingleLinkage",
    "CompleteLinkage",
    "AverageLinkage",
    "get_linkage",
    "Cluster",
    "ClusterPartition",
    "ClusterNode",
    "ClusterJob",
    "JobState",
    "Agglomerator",
    "agglomerate_clusters",
    "count_shared_clusters",
    "stability_sweep",
    "load_corpus_from_fasta",
    "load_sequences_from_fasta",
    "format_partition",
    "distribution_table",
    "format_distribution",
    "barcode_gap",
    "create_distance_histogram"
]
