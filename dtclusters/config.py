"""Explicit configuration shared by every clustering component."""

from dataclasses import dataclass, field

from .precision import PrecisionPolicy

DEFAULT_MINIMUM_OVERLAP = 300


@dataclass(frozen=True)
class ClusterSettings:
    """Settings threaded into oracles, indices, jobs and agglomerators.

    Runs with different settings can coexist; nothing here is process-wide.

    Attributes:
        precision: Fixed-precision policy used for every distance comparison
        minimum_overlap: Minimum number of comparable positions two sequences
            must share before the distance oracle reports a valid distance
        ambiguous_bases_allowed: If False, two different ambiguity codes never
            match each other through the bases they share
    """

    precision: PrecisionPolicy = field(default_factory=PrecisionPolicy)
    minimum_overlap: int = DEFAULT_MINIMUM_OVERLAP
    ambiguous_bases_allowed: bool = True

    def __post_init__(self):
        if self.minimum_overlap < 0:
            raise ValueError(f"Minimum overlap cannot be negative, got {self.minimum_overlap}")


DEFAULT_SETTINGS = ClusterSettings()
