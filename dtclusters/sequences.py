"""
Sequences and the lockable sequence corpus.

A Sequence carries its symbols as a tagged variant: ``ValidSymbols`` for IUPAC
nucleotide data and ``SymbolicSymbols`` for anything else (bracketed
annotations, RNA, free text). Length and distance operations dispatch on the
variant explicitly instead of relying on subclass substitution.
"""

import logging
import re
import threading
from collections import Counter
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Callable, Iterable, Iterator, List, Optional, Union

from adjusted_identity import IUPAC_CODES

from .config import ClusterSettings, DEFAULT_SETTINGS
from .exceptions import CorpusLockedError

logger = logging.getLogger(__name__)

INTERNAL_GAP = '-'
EXTERNAL_GAP = '_'
MISSING = '?'
NUCLEOTIDE_CODES = frozenset(code for code in IUPAC_CODES if code != INTERNAL_GAP)
VALID_SYMBOLS = NUCLEOTIDE_CODES | {INTERNAL_GAP, EXTERNAL_GAP, MISSING}
AMBIGUOUS_SYMBOLS = frozenset(code for code in NUCLEOTIDE_CODES if len(IUPAC_CODES[code]) > 1)

_TRINOMIAL = re.compile(r"([A-Z][a-z]+) ([a-z]+) ([a-z]+)\b")
_BINOMIAL = re.compile(r"([A-Z][a-z]+) ([a-z]+)\b")
_OPEN_NOMENCLATURE = re.compile(r"([A-Z][a-z]+) ([a-z]+)\.\b")
_GI = re.compile(r"gi\|(\d+)[|:]")
_FAMILY = re.compile(r"\(family:\s*([^\W\d_]+)\s*\)")


@dataclass(frozen=True)
class ValidSymbols:
    """Nucleotide symbols; terminal gaps stored as external gaps ('_')."""
    symbols: str

    @property
    def length(self) -> int:
        return len(self.symbols)

    @property
    def actual_length(self) -> int:
        """Number of positions holding a base (no gaps, no missing data)."""
        return sum(1 for ch in self.symbols if ch in NUCLEOTIDE_CODES)

    @property
    def ambiguous_count(self) -> int:
        return sum(1 for ch in self.symbols if ch in AMBIGUOUS_SYMBOLS)


@dataclass(frozen=True)
class SymbolicSymbols:
    """Arbitrary symbol data that cannot be compared base by base.

    Bracketed groups ('[...]' or '(...)') each occupy a single position.
    """
    symbols: str

    @property
    def length(self) -> int:
        count = 0
        closing = None
        for ch in self.symbols:
            if closing is not None:
                if ch == closing:
                    closing = None
                continue
            if ch == '[':
                closing = ']'
            elif ch == '(':
                closing = ')'
            count += 1
        return count

    @property
    def actual_length(self) -> int:
        return self.length

    @property
    def ambiguous_count(self) -> int:
        return 0


SequenceData = Union[ValidSymbols, SymbolicSymbols]


def normalize_symbols(symbols: str) -> Optional[str]:
    """Uppercase, strip whitespace and mark terminal gaps as external.

    Returns None if the result contains a non-nucleotide symbol.
    """
    cleaned = ''.join(symbols.split()).upper()
    if any(ch not in VALID_SYMBOLS for ch in cleaned):
        return None

    core = cleaned.strip(INTERNAL_GAP + EXTERNAL_GAP)
    if not core:
        return EXTERNAL_GAP * len(cleaned)
    leading = len(cleaned) - len(cleaned.lstrip(INTERNAL_GAP + EXTERNAL_GAP))
    trailing = len(cleaned) - len(cleaned.rstrip(INTERNAL_GAP + EXTERNAL_GAP))
    return EXTERNAL_GAP * leading + core + EXTERNAL_GAP * trailing


def make_sequence_data(symbols: str) -> SequenceData:
    """Pick the symbol variant for raw input."""
    normalized = normalize_symbols(symbols)
    if normalized is None:
        return SymbolicSymbols(symbols.strip())
    return ValidSymbols(normalized)


@dataclass(frozen=True)
class NameFields:
    """Taxonomic fields guessed from a sequence name."""
    genus: str = ""
    species: str = ""
    subspecies: str = ""
    gi: str = ""
    family: str = ""
    warning: bool = False


def parse_name(name: str) -> NameFields:
    """Guess genus, species, subspecies, GI and family from a sequence name.

    Examples:
        >>> parse_name("Rana temporaria gi|12345|").species
        'temporaria'
        >>> parse_name("unknown sample").warning
        True
    """
    genus = species = subspecies = ""
    warning = False

    match = _TRINOMIAL.search(name)
    if match:
        genus, species, subspecies = match.groups()
    else:
        match = _BINOMIAL.search(name)
        if match:
            genus, species = match.groups()
        else:
            match = _OPEN_NOMENCLATURE.search(name)
            if match:
                genus, species = match.groups()
                warning = True

    if not genus:
        warning = True

    gi_match = _GI.search(name)
    family_match = _FAMILY.search(name)

    return NameFields(
        genus=genus,
        species=species,
        subspecies=subspecies,
        gi=gi_match.group(1) if gi_match else "",
        family=family_match.group(1) if family_match else "",
        warning=warning,
    )


@dataclass(frozen=True, eq=False)
class Sequence:
    """A named sequence. Identity is by reference.

    Use ``Sequence.create(name, symbols)`` to build one from raw text; it never
    fails on unusual symbol data, falling back to ``SymbolicSymbols``.
    """

    name: str
    data: SequenceData
    fields: NameFields = field(init=False, repr=False)

    def __post_init__(self):
        clean_name = self.name.replace('\n', ' ').strip()
        object.__setattr__(self, 'name', clean_name)
        object.__setattr__(self, 'fields', parse_name(clean_name))

    @classmethod
    def create(cls, name: str, symbols: str) -> 'Sequence':
        return cls(name=name, data=make_sequence_data(symbols))

    @property
    def symbols(self) -> str:
        return self.data.symbols

    @property
    def is_symbolic(self) -> bool:
        return isinstance(self.data, SymbolicSymbols)

    @property
    def length(self) -> int:
        return self.data.length

    @property
    def actual_length(self) -> int:
        return self.data.actual_length

    @property
    def genus(self) -> str:
        return self.fields.genus

    @property
    def species_epithet(self) -> str:
        return self.fields.species

    @property
    def species_name(self) -> Optional[str]:
        """'Genus species', or None if no species could be parsed."""
        if not self.fields.genus or not self.fields.species:
            return None
        return f"{self.fields.genus} {self.fields.species}"

    @property
    def warning(self) -> bool:
        return self.fields.warning

    def same_symbols(self, other: 'Sequence') -> bool:
        """Exact symbol-content match."""
        return type(self.data) is type(other.data) and self.data.symbols == other.data.symbols

    def __repr__(self) -> str:
        kind = "symbolic" if self.is_symbolic else "dna"
        return f"Sequence({self.name!r}, {kind}, length={self.length})"


DistanceFunction = Callable[[Sequence, Sequence], float]


class SequenceCorpus:
    """An ordered, lockable collection of sequences with a distance oracle.

    ``locked()`` grants the calling thread exclusive use of the corpus for the
    duration of a ``with`` block. While it is held, mutators raise
    CorpusLockedError in the holding thread and block in other threads until
    the lock is released.
    """

    def __init__(self, sequences: Optional[Iterable[Sequence]] = None,
                 oracle: Optional[DistanceFunction] = None,
                 settings: Optional[ClusterSettings] = None):
        """Initialize the corpus.

        Args:
            sequences: Initial sequences, in order
            oracle: Callable returning the distance between two sequences
                (negative for "no valid comparison"); defaults to an
                uncorrected p-distance oracle built from ``settings``
            settings: Clustering settings; defaults to DEFAULT_SETTINGS
        """
        self.settings = settings or DEFAULT_SETTINGS
        if oracle is None:
            from .distances import UncorrectedDistanceOracle
            oracle = UncorrectedDistanceOracle(self.settings)
        self.oracle = oracle
        self._sequences: List[Sequence] = list(sequences) if sequences is not None else []
        self._lock = threading.RLock()
        self._lock_depth = 0

    def __len__(self) -> int:
        return len(self._sequences)

    def __iter__(self) -> Iterator[Sequence]:
        return iter(list(self._sequences))

    def __getitem__(self, index: int) -> Sequence:
        return self._sequences[index]

    def __contains__(self, seq: object) -> bool:
        return any(s is seq for s in self._sequences)

    def count(self) -> int:
        return len(self._sequences)

    def index_of(self, seq: Sequence) -> int:
        for idx, candidate in enumerate(self._sequences):
            if candidate is seq:
                return idx
        raise ValueError(f"{seq!r} is not in this corpus")

    def distance(self, a: Sequence, b: Sequence) -> float:
        """Distance between two sequences as reported by the oracle."""
        return self.oracle(a, b)

    @property
    def is_locked(self) -> bool:
        return self._lock_depth > 0

    @contextmanager
    def locked(self):
        """Hold the corpus exclusively for the duration of the block.

        Re-entrant for the holding thread; released on every exit path.
        """
        self._lock.acquire()
        self._lock_depth += 1
        try:
            yield self
        finally:
            self._lock_depth -= 1
            self._lock.release()

    @contextmanager
    def sorted_by_species(self):
        """Hold the corpus and yield its sequences ordered by species name.

        The yielded list is a copy; the stored order never changes, so
        readers that iterate the corpus during the scan see it unchanged.
        """
        with self.locked():
            ordered = sorted(self._sequences, key=_species_sort_key)
            logger.debug(f"Sorted {len(ordered)} sequences by species for the duration of a scan")
            yield ordered

    def add(self, seq: Sequence) -> None:
        with self._lock:
            self._check_unlocked()
            self._sequences.append(seq)

    def extend(self, sequences: Iterable[Sequence]) -> None:
        with self._lock:
            self._check_unlocked()
            self._sequences.extend(sequences)

    def remove(self, seq: Sequence) -> None:
        with self._lock:
            self._check_unlocked()
            del self._sequences[self.index_of(seq)]

    def sort_by(self, key: Callable[[Sequence], object]) -> None:
        """Permanently reorder the corpus (stable sort)."""
        with self._lock:
            self._check_unlocked()
            self._sequences.sort(key=key)

    def species_counts(self) -> Counter:
        """Number of sequences per species name (None for unparsed names)."""
        return Counter(seq.species_name for seq in self._sequences)

    def species_count(self) -> int:
        return sum(1 for name in self.species_counts() if name is not None)

    def _check_unlocked(self) -> None:
        if self._lock_depth > 0:
            raise CorpusLockedError("Corpus is locked for a running scan and cannot be modified")


def _species_sort_key(seq: Sequence):
    name = seq.species_name
    return (name is None, name or "")
