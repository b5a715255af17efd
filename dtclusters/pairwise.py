"""
Sorted pairwise distance index.

The index computes every valid pairwise distance in a corpus under one of
three modes and answers range queries by binary search over fixed-precision
keys, so each query costs O(log n + k).
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterator, List, Optional, Sequence as SequenceType

import numpy as np

from .config import ClusterSettings, DEFAULT_SETTINGS
from .exceptions import DelayAborted
from .progress import Aborted, Ok, Outcome, ProgressCallback, ensure_callback
from .sequences import Sequence, SequenceCorpus

logger = logging.getLogger(__name__)


class DistributionMode(Enum):
    """Which pairs of sequences an index compares."""
    WITHIN_SPECIES = "within"
    ACROSS_SPECIES = "across"
    ALL_PAIRS = "all"


ComparisonPredicate = Callable[[Sequence, Sequence], bool]


def same_genus(a: Sequence, b: Sequence) -> bool:
    """Default across-species predicate: both sequences share a genus."""
    return a.genus == b.genus


@dataclass(frozen=True, eq=False)
class PairwiseDistance:
    """A distance between two referenced sequences."""
    seq_a: Sequence
    seq_b: Sequence
    distance: float

    def mentions(self, seq: Sequence) -> bool:
        return seq is self.seq_a or seq is self.seq_b


class PairwiseDistanceIndex:
    """Immutable, ascending list of valid pairwise distances.

    Build with ``PairwiseDistanceIndex.build``; rebuilding requires a new index.
    """

    def __init__(self, entries: List[PairwiseDistance], mode: DistributionMode,
                 sequence_count: int, settings: Optional[ClusterSettings] = None):
        self.settings = settings or DEFAULT_SETTINGS
        self.mode = mode
        self._sequence_count = sequence_count
        policy = self.settings.precision
        keyed = [(policy.to_fixed(entry.distance), entry) for entry in entries]
        # Stable sort keeps insertion order for distances identical at this precision
        keyed.sort(key=lambda pair: pair[0])
        self._entries = tuple(entry for _, entry in keyed)
        self._keys = np.fromiter((key for key, _ in keyed), dtype=np.int64, count=len(keyed))

    @classmethod
    def build(cls, corpus: SequenceCorpus,
              mode: DistributionMode = DistributionMode.WITHIN_SPECIES,
              callback: Optional[ProgressCallback] = None,
              settings: Optional[ClusterSettings] = None,
              predicate: ComparisonPredicate = same_genus) -> Outcome:
        """Compute and sort all valid pairwise distances in a corpus.

        The corpus is locked for the duration of the scan. Pairs with a
        negative (invalid) distance are skipped silently.

        Args:
            corpus: Sequences to compare
            mode: Which pairs to include
            callback: Progress callback, invoked once per query sequence
            settings: Settings for the index; defaults to the corpus settings
            predicate: For ACROSS_SPECIES, which differing-species pairs to compare

        Returns:
            Ok(index), or Aborted if the callback requested cancellation

        Raises:
            ValueError: If ``mode`` is not a DistributionMode
        """
        if not isinstance(mode, DistributionMode):
            raise ValueError(f"Unknown distribution mode: {mode!r}")

        callback = ensure_callback(callback)
        settings = settings or corpus.settings

        callback.begin()
        try:
            with corpus.locked():
                if mode is DistributionMode.WITHIN_SPECIES:
                    entries = _scan_within_species(corpus, callback)
                elif mode is DistributionMode.ACROSS_SPECIES:
                    entries = _scan_across_species(corpus, callback, predicate)
                else:
                    entries = _scan_all_pairs(corpus, callback)
                sequence_count = len(corpus)
        except DelayAborted as e:
            logger.info(f"Pairwise distance scan ({mode.value}) aborted: {e}")
            return Aborted(str(e))
        finally:
            callback.end()

        index = cls(entries, mode, sequence_count, settings)
        logger.debug(f"Built {mode.value} index: {len(index)} valid comparisons "
                     f"across {sequence_count} sequences")
        return Ok(index)

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[PairwiseDistance]:
        return iter(self._entries)

    def __getitem__(self, idx: int) -> PairwiseDistance:
        return self._entries[idx]

    @property
    def entries(self) -> SequenceType[PairwiseDistance]:
        return self._entries

    @property
    def distances(self) -> np.ndarray:
        """All valid distances, ascending."""
        return np.array([entry.distance for entry in self._entries], dtype=float)

    def count_sequences(self) -> int:
        """Number of sequences scanned to build this index."""
        return self._sequence_count

    def count_valid_comparisons(self) -> int:
        return len(self._entries)

    def count_zero(self) -> int:
        """Number of comparisons whose distance is identical to zero."""
        return int(np.searchsorted(self._keys, 0, side='right'))

    def count_one(self) -> int:
        """Number of comparisons whose distance is identical to one."""
        one = self.settings.precision.to_fixed(1.0)
        return len(self._keys) - int(np.searchsorted(self._keys, one, side='left'))

    def _bounds(self, lower: float, upper: float, include_lower: bool):
        policy = self.settings.precision
        return self._fixed_bounds(policy.to_fixed(lower), policy.to_fixed(upper), include_lower)

    def _fixed_bounds(self, lower: int, upper: int, include_lower: bool):
        side = 'left' if include_lower else 'right'
        start = int(np.searchsorted(self._keys, lower, side=side))
        end = int(np.searchsorted(self._keys, upper, side='right'))
        return start, max(start, end)

    def between_fixed(self, lower: int, upper: int, inclusive: bool = False) -> int:
        """Like ``between`` (or ``between_incl``) with bounds already in fixed form."""
        start, end = self._fixed_bounds(lower, upper, include_lower=inclusive)
        return end - start

    def between(self, lower: float, upper: float) -> int:
        """Count distances with lower < d <= upper.

        Half-open on the low end so that successive buckets tile without
        counting a shared boundary twice.
        """
        start, end = self._bounds(lower, upper, include_lower=False)
        return end - start

    def between_incl(self, lower: float, upper: float) -> int:
        """Count distances with lower <= d <= upper."""
        start, end = self._bounds(lower, upper, include_lower=True)
        return end - start

    def entries_between(self, lower: float, upper: float,
                        inclusive: bool = False) -> List[PairwiseDistance]:
        """Entries with lower < d <= upper (lower <= d <= upper if inclusive)."""
        start, end = self._bounds(lower, upper, include_lower=inclusive)
        return list(self._entries[start:end])

    def distances_between(self, lower: float, upper: float) -> List[float]:
        """All distances with lower <= d <= upper."""
        return [entry.distance for entry in self.entries_between(lower, upper, inclusive=True)]

    def minimum(self) -> float:
        """Smallest distance, or 0 if the index is empty."""
        return self._entries[0].distance if self._entries else 0.0

    def maximum(self) -> float:
        """Largest distance, or 0 if the index is empty."""
        return self._entries[-1].distance if self._entries else 0.0


def _scan_within_species(corpus: SequenceCorpus, callback: ProgressCallback) -> List[PairwiseDistance]:
    """Compare each sequence with the conspecifics that follow it.

    The scan walks a species-sorted copy of the corpus so that conspecifics
    form contiguous runs.
    """
    entries: List[PairwiseDistance] = []
    with corpus.sorted_by_species() as ordered:
        total = len(ordered)
        run_end = 0
        for idx, query in enumerate(ordered):
            callback.delay(idx, total)
            species = query.species_name
            if species is None:
                continue
            if run_end <= idx:
                run_end = idx + 1
                while run_end < total and ordered[run_end].species_name == species:
                    run_end += 1
            for other in ordered[idx + 1:run_end]:
                _push(entries, corpus, query, other)
        callback.delay(total, total)
    return entries


def _scan_across_species(corpus: SequenceCorpus, callback: ProgressCallback,
                         predicate: ComparisonPredicate) -> List[PairwiseDistance]:
    """Compare sequences of different species that satisfy ``predicate``.

    Each unordered pair is visited once, from the sequence whose species name
    sorts first.
    """
    entries: List[PairwiseDistance] = []
    ordered = list(corpus)
    total = len(ordered)
    for idx, query in enumerate(ordered):
        callback.delay(idx, total)
        query_species = query.species_name
        if query_species is None:
            continue
        for other in ordered:
            other_species = other.species_name
            if other is query or other_species is None:
                continue
            if query_species < other_species and predicate(query, other):
                _push(entries, corpus, query, other)
    callback.delay(total, total)
    return entries


def _scan_all_pairs(corpus: SequenceCorpus, callback: ProgressCallback) -> List[PairwiseDistance]:
    entries: List[PairwiseDistance] = []
    ordered = list(corpus)
    total = len(ordered)
    for idx, query in enumerate(ordered):
        callback.delay(idx, total)
        for other in ordered[idx + 1:]:
            _push(entries, corpus, query, other)
    callback.delay(total, total)
    return entries


def _push(entries: List[PairwiseDistance], corpus: SequenceCorpus,
          a: Sequence, b: Sequence) -> None:
    distance = corpus.distance(a, b)
    if distance < 0:
        return
    entries.append(PairwiseDistance(a, b, distance))
