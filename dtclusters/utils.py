"""
Loading and formatting helpers around the clustering core.
"""

import logging
from typing import List, Optional

from Bio import SeqIO

from .clusters import ClusterNode, ClusterPartition, DistanceFunction
from .config import ClusterSettings
from .precision import DEFAULT_POLICY, PrecisionPolicy
from .sequences import Sequence, SequenceCorpus


def load_sequences_from_fasta(fasta_path: str) -> List[Sequence]:
    """
    Load sequences from a FASTA file.

    The full header (ID + description) becomes the sequence name, so species
    names written after the ID are parsed.

    Args:
        fasta_path: Path to the FASTA file

    Returns:
        Sequences in file order
    """
    sequences = []
    try:
        for record in SeqIO.parse(fasta_path, "fasta"):
            name = record.description if record.description else record.id
            sequences.append(Sequence.create(name, str(record.seq)))
    except Exception as e:
        logging.error(f"Error reading FASTA file: {e}")
        raise

    symbolic = sum(1 for seq in sequences if seq.is_symbolic)
    if symbolic:
        logging.warning(f"{symbolic} sequences contain non-nucleotide symbols and will not be compared")
    return sequences


def load_corpus_from_fasta(fasta_path: str, settings: Optional[ClusterSettings] = None) -> SequenceCorpus:
    """Load a FASTA file into a corpus using the default distance oracle."""
    return SequenceCorpus(load_sequences_from_fasta(fasta_path), settings=settings)


def format_partition(partition: ClusterPartition,
                     distance: Optional[DistanceFunction] = None,
                     policy: PrecisionPolicy = DEFAULT_POLICY) -> str:
    """
    Format a partition for output.

    Args:
        partition: Completed partition
        distance: Optional distance function for per-cluster distance summaries
        policy: Precision policy for percentages

    Returns:
        Formatted string representation of the clusters
    """
    output_lines = []
    linkage = f", {partition.linkage}" if partition.linkage is not None else ""
    output_lines.append(f"{len(partition)} clusters at {policy.percentage(partition.threshold, 1.0)}%{linkage}")

    for i, cluster in enumerate(partition, 1):
        output_lines.append(f"Cluster {i} ({len(cluster)} sequences): {cluster.describe(distance, policy)}")
        for seq in cluster:
            output_lines.append(f"  - {seq.name}")

    return "\n".join(output_lines)


def format_walk(nodes: List[ClusterNode], policy: PrecisionPolicy = DEFAULT_POLICY) -> str:
    """Format the frontier of a distance walk, one merged cluster per block."""
    output_lines = []
    for i, node in enumerate(nodes, 1):
        if node.is_leaf:
            header = f"Cluster {i} ({len(node)} sequences): unchanged"
        else:
            header = (f"Cluster {i} ({len(node)} sequences): {len(node.leaf_clusters())} clusters "
                      f"merged, last at {policy.percentage(node.distance, 1.0)}%")
        output_lines.append(header)
        for seq in node:
            output_lines.append(f"  - {seq.name}")
    return "\n".join(output_lines)


def save_partition(partition: ClusterPartition, output_path: str, format: str = "tsv") -> None:
    """
    Save a partition to a file.

    Args:
        partition: Completed partition
        output_path: Destination file
        format: "tsv" (sequence name, cluster id) or "text"
    """
    if format == "tsv":
        with open(output_path, 'w') as f:
            f.write("sequence_id\tcluster_id\n")
            for cluster_id, cluster in enumerate(partition, 1):
                for seq in cluster:
                    f.write(f"{seq.name}\tcluster_{cluster_id}\n")
    elif format == "text":
        with open(output_path, 'w') as f:
            f.write(format_partition(partition))
    else:
        raise ValueError(f"Unknown output format: {format!r}")
    logging.debug(f"Wrote {len(partition)} clusters to {output_path}")
