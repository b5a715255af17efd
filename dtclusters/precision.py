"""
Fixed-precision numeric comparisons for distance values.

Distances are compared after conversion to integers at a fixed resolution, so
that threshold tests such as "distance <= threshold" give the same answer on
every run and platform regardless of floating-point rounding.
"""

from dataclasses import dataclass

DEFAULT_RESOLUTION = 100000
_SNAP_TOLERANCE = 1e-6


@dataclass(frozen=True)
class PrecisionPolicy:
    """Converts doubles to integers at a configurable resolution.

    A resolution of 100000 means values are accurate to 1/100000.
    """

    resolution: int = DEFAULT_RESOLUTION

    def __post_init__(self):
        if self.resolution <= 0:
            raise ValueError(f"Resolution must be positive, got {self.resolution}")

    @classmethod
    def from_digits(cls, digits: int) -> 'PrecisionPolicy':
        """Create a policy accurate to the given number of decimal digits.

        Examples:
            >>> PrecisionPolicy.from_digits(4).resolution
            10000
        """
        return cls(resolution=10 ** digits)

    @property
    def accurate_to(self) -> float:
        """Smallest difference this policy can distinguish."""
        return 1 / self.resolution

    def to_fixed(self, d: float) -> int:
        """Multiply by the resolution and truncate toward zero.

        Products within rounding error of a grid point snap to it, so
        ``to_fixed(from_fixed(i)) == i`` for every integer i.
        """
        scaled = d * self.resolution
        nearest = round(scaled)
        if abs(scaled - nearest) < _SNAP_TOLERANCE:
            return int(nearest)
        return int(scaled)

    def from_fixed(self, i: int) -> float:
        return i / self.resolution

    def round_off(self, d: float) -> float:
        """Snap a value onto the resolution grid."""
        return self.from_fixed(self.to_fixed(d))

    def identical(self, d1: float, d2: float) -> bool:
        """Compare two values at the configured resolution."""
        return self.to_fixed(d1) == self.to_fixed(d2)

    def compare(self, d1: float, d2: float) -> int:
        """Return -1, 0 or 1 comparing fixed forms of d1 and d2."""
        f1, f2 = self.to_fixed(d1), self.to_fixed(d2)
        if f1 < f2:
            return -1
        if f1 > f2:
            return 1
        return 0

    def at_most(self, d: float, threshold: float) -> bool:
        """True when d <= threshold at the configured resolution."""
        return self.to_fixed(d) <= self.to_fixed(threshold)

    def percentage(self, x: float, y: float) -> float:
        """Percentage of x in y, truncated to two decimal places.

        Returns 0 when y is zero: x% of nothing is zero percent.

        Examples:
            >>> PrecisionPolicy().percentage(1, 3)
            33.33
            >>> PrecisionPolicy().percentage(5, 0)
            0
        """
        if y == 0:
            return 0
        return int(self.round_off(x / y) * 100 * 100) / 100


DEFAULT_POLICY = PrecisionPolicy()
