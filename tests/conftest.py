"""
Shared fixtures: small corpora with known pairwise distances.
"""

import numpy as np
import pytest

from dtclusters.config import ClusterSettings
from dtclusters.distances import PrecomputedDistanceOracle
from dtclusters.sequences import Sequence, SequenceCorpus


def corpus_from_matrix(matrix, names=None, settings=None):
    """Corpus of placeholder sequences whose distances come from ``matrix``."""
    matrix = np.asarray(matrix, dtype=float)
    if names is None:
        names = [f"Aus bus {i}" for i in range(len(matrix))]
    sequences = [Sequence.create(name, "ACGT") for name in names]
    return SequenceCorpus(sequences, PrecomputedDistanceOracle(sequences, matrix), settings)


def corpus_from_positions(positions, names=None, settings=None):
    """Corpus whose distances are gaps between points on a line (in 1/1000 units)."""
    points = np.asarray(positions, dtype=float) / 1000
    matrix = np.abs(points[:, None] - points[None, :])
    return corpus_from_matrix(matrix, names, settings)


@pytest.fixture
def make_matrix_corpus():
    return corpus_from_matrix


@pytest.fixture
def make_line_corpus():
    return corpus_from_positions


@pytest.fixture
def loose_settings():
    """Settings that accept comparisons of short test sequences."""
    return ClusterSettings(minimum_overlap=0)
