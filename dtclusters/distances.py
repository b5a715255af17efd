"""Distance oracles: injected pairwise comparison functions."""

import logging
from abc import ABC, abstractmethod
from dataclasses import replace
from typing import Dict, List, Optional, Tuple

import numpy as np
from adjusted_identity import RAW_ADJUSTMENT_PARAMS, score_alignment

from .config import ClusterSettings, DEFAULT_SETTINGS
from .sequences import (
    EXTERNAL_GAP, INTERNAL_GAP, MISSING,
    Sequence, SymbolicSymbols, ValidSymbols,
)

logger = logging.getLogger(__name__)

INVALID_DISTANCE = -1.0


class DistanceOracle(ABC):
    """Abstract base class for distance oracles.

    An oracle returns a distance in [0, 1], or a negative value when the two
    sequences cannot be compared (for example, insufficient overlap).
    """

    @abstractmethod
    def distance(self, a: Sequence, b: Sequence) -> float:
        """Get distance between two sequences."""
        pass

    def __call__(self, a: Sequence, b: Sequence) -> float:
        return self.distance(a, b)


class UncorrectedDistanceOracle(DistanceOracle):
    """Uncorrected pairwise (p-)distance over aligned sequences.

    Columns with missing data or an external gap in either sequence, and
    columns where both sequences have an internal gap, are dropped before
    scoring. The remaining columns are scored with adjusted-identity's raw
    parameters: every substitution and every gap position against a base
    counts as one edit. Different ambiguity codes match through the bases
    they share unless ``ambiguous_bases_allowed`` is off; a plain base always
    matches an ambiguity code that includes it. Pairs with fewer than
    ``minimum_overlap`` scored positions are invalid.

    Results are cached per unordered pair.
    """

    def __init__(self, settings: Optional[ClusterSettings] = None):
        self.settings = settings or DEFAULT_SETTINGS
        self.adjustment_params = replace(
            RAW_ADJUSTMENT_PARAMS,
            handle_iupac_overlap=self.settings.ambiguous_bases_allowed
        )
        self._cache: Dict[Tuple[int, int], float] = {}

    def distance(self, a: Sequence, b: Sequence) -> float:
        if a is b:
            return 0.0

        cache_key = (min(id(a), id(b)), max(id(a), id(b)))
        cached = self._cache.get(cache_key)
        if cached is not None:
            return cached

        distance = self._compute(a, b)
        self._cache[cache_key] = distance
        return distance

    def _compute(self, a: Sequence, b: Sequence) -> float:
        if isinstance(a.data, SymbolicSymbols) or isinstance(b.data, SymbolicSymbols):
            return INVALID_DISTANCE
        if isinstance(a.data, ValidSymbols) and isinstance(b.data, ValidSymbols):
            seq1, seq2 = filter_comparable_columns(a.data.symbols, b.data.symbols)
            if not seq1:
                return INVALID_DISTANCE
            result = score_alignment(seq1, seq2, adjustment_params=self.adjustment_params)
            if result.scored_positions == 0 or result.scored_positions < self.settings.minimum_overlap:
                return INVALID_DISTANCE
            return result.mismatches / result.scored_positions
        raise TypeError(f"Unsupported sequence data: {type(a.data).__name__}, {type(b.data).__name__}")

    def clear_cache(self) -> None:
        logger.debug(f"Clearing {len(self._cache)} cached distances")
        self._cache.clear()

    def get_cache_stats(self) -> Dict[str, int]:
        return {'cached_distances': len(self._cache)}


def filter_comparable_columns(s1: str, s2: str) -> Tuple[str, str]:
    """Remove alignment columns that carry no information for scoring.

    Removes columns where:
    - Either sequence has missing data ('?') or an external gap ('_')
    - Both sequences have internal gaps ('-')

    Only the length of the shorter string is compared.

    Returns:
        Tuple of (cleaned_s1, cleaned_s2) ready for scoring
    """
    cleaned1 = []
    cleaned2 = []
    for ch1, ch2 in zip(s1, s2):
        if ch1 in (MISSING, EXTERNAL_GAP) or ch2 in (MISSING, EXTERNAL_GAP):
            continue
        if ch1 == INTERNAL_GAP and ch2 == INTERNAL_GAP:
            continue
        cleaned1.append(ch1)
        cleaned2.append(ch2)
    return ''.join(cleaned1), ''.join(cleaned2)


class PrecomputedDistanceOracle(DistanceOracle):
    """Distance oracle backed by a precomputed distance matrix.

    NaN or negative matrix entries are reported as invalid.
    """

    def __init__(self, sequences: List[Sequence], distance_matrix: np.ndarray):
        """Initialize with sequences and their symmetric distance matrix.

        Args:
            sequences: Sequences in matrix row order
            distance_matrix: n x n matrix of pairwise distances
        """
        distance_matrix = np.asarray(distance_matrix, dtype=float)
        if distance_matrix.shape != (len(sequences), len(sequences)):
            raise ValueError(
                f"Distance matrix shape {distance_matrix.shape} does not match "
                f"{len(sequences)} sequences"
            )
        self.distance_matrix = distance_matrix
        self._positions = {id(seq): idx for idx, seq in enumerate(sequences)}
        self._sequences = list(sequences)

    def distance(self, a: Sequence, b: Sequence) -> float:
        if a is b:
            return 0.0
        value = float(self.distance_matrix[self._positions[id(a)], self._positions[id(b)]])
        if np.isnan(value) or value < 0:
            return INVALID_DISTANCE
        return value
