"""
Analysis of pairwise distance distributions.

This module turns PairwiseDistanceIndex instances into frequency tables,
barcode-gap summaries and histograms of within- and across-species distances.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

import numpy as np
import matplotlib.pyplot as plt

from .pairwise import PairwiseDistanceIndex

logger = logging.getLogger(__name__)

CUMULATIVE_FORWARD = "forward"
CUMULATIVE_BACKWARD = "backward"


@dataclass(frozen=True)
class DistributionRow:
    """One bucket of a distance distribution table; percentages are 0-100."""
    label: str
    frequency: int
    percentage: float
    cumulative: float


def distribution_table(index: PairwiseDistanceIndex,
                       start: float = 0.0,
                       stop: float = 0.1,
                       interval: float = 0.01,
                       cumulative: str = CUMULATIVE_FORWARD) -> List[DistributionRow]:
    """
    Bucket the distances of an index into a frequency table.

    The first bucket holds distances <= ``start``, then one bucket per
    ``interval`` (each covering lower < d <= upper) up to ``stop``, then a
    final bucket for distances > ``stop``. Every distance falls in exactly one
    bucket.

    Args:
        index: Distances to tabulate
        start: Upper bound of the first bucket
        stop: Upper bound of the last stepped bucket
        interval: Width of each stepped bucket; must be positive
        cumulative: "forward" accumulates from 0% upwards, "backward" from 100% downwards

    Returns:
        Table rows in ascending distance order
    """
    if cumulative not in (CUMULATIVE_FORWARD, CUMULATIVE_BACKWARD):
        raise ValueError(f"Unknown cumulative direction: {cumulative!r}")

    policy = index.settings.precision
    interval_fixed = policy.to_fixed(interval)
    if interval_fixed <= 0:
        raise ValueError(f"Interval must be positive, got {interval}")
    start_fixed = policy.to_fixed(start)
    stop_fixed = policy.to_fixed(stop)

    total = len(index)
    forward = cumulative == CUMULATIVE_FORWARD
    running = 0
    rows: List[DistributionRow] = []

    def add_row(label: str, frequency: int):
        nonlocal running
        running += frequency
        share = running / total if total else 0.0
        fraction = share if forward else 1.0 - share
        rows.append(DistributionRow(label, frequency,
                                    policy.percentage(frequency, total),
                                    policy.percentage(fraction, 1.0)))

    def label(fixed: int) -> str:
        return f"{fixed * 100 / policy.resolution:.2f}%"

    add_row(f"<= {label(start_fixed)}", index.between_fixed(0, start_fixed, inclusive=True))

    lower = start_fixed
    while lower < stop_fixed:
        upper = min(lower + interval_fixed, stop_fixed)
        add_row(f"{label(lower)} to {label(upper)}", index.between_fixed(lower, upper))
        lower = upper

    top = max(start_fixed, stop_fixed)
    add_row(f"> {label(top)}", total - index.between_fixed(0, top, inclusive=True))
    return rows


def format_distribution(rows: List[DistributionRow]) -> str:
    """Render a distribution table as tab-separated text."""
    lines = ["Distances\tFreq.\tPerc.\tCumulative"]
    for row in rows:
        lines.append(f"{row.label}\t{row.frequency}\t{row.percentage}\t{row.cumulative}")
    return "\n".join(lines)


def barcode_gap(within: PairwiseDistanceIndex,
                across: PairwiseDistanceIndex,
                percentile: float = 100) -> Dict[str, float]:
    """
    Compare within-species and across-species distances.

    With the default percentile of 100 this compares the largest
    within-species distance to the smallest across-species distance.

    Args:
        within: Within-species index
        across: Across-species index
        percentile: Within-species percentile; across uses 100 - percentile

    Returns:
        Dictionary with within/across thresholds, gap size and whether a gap exists
    """
    within_distances = within.distances
    across_distances = across.distances

    if len(within_distances) == 0 or len(across_distances) == 0:
        return {
            "within": np.nan,
            "across": np.nan,
            "gap_size": np.nan,
            "gap_exists": False,
        }

    within_threshold = float(np.percentile(within_distances, percentile))
    across_threshold = float(np.percentile(across_distances, 100 - percentile))
    gap_size = across_threshold - within_threshold

    return {
        "within": within_threshold,
        "across": across_threshold,
        "gap_size": gap_size,
        "gap_exists": within.settings.precision.compare(across_threshold, within_threshold) > 0,
    }


def create_distance_histogram(within: PairwiseDistanceIndex,
                              across: PairwiseDistanceIndex,
                              title: str = "Pairwise Distance Distribution",
                              bins: int = 50,
                              save_path: Optional[str] = None) -> plt.Figure:
    """
    Overlay histograms of within-species and across-species distances.

    Args:
        within: Within-species index
        across: Across-species index
        title: Title for the histogram
        bins: Number of histogram bins
        save_path: Optional path to save the figure

    Returns:
        matplotlib Figure object
    """
    fig, ax = plt.subplots(figsize=(12, 8))

    within_distances = within.distances
    across_distances = across.distances
    all_distances = np.concatenate([within_distances, across_distances])

    if len(all_distances) == 0:
        ax.text(0.5, 0.5, 'No distances available',
                ha='center', va='center', transform=ax.transAxes)
        ax.set_title(title)
        return fig

    bin_range = (all_distances.min(), all_distances.max())
    if bin_range[0] == bin_range[1]:
        bin_range = (bin_range[0], bin_range[0] + within.settings.precision.accurate_to)

    if len(within_distances) > 0:
        ax.hist(within_distances, bins=bins, alpha=0.6, range=bin_range, color='blue',
                label=f'Within species (n={len(within_distances):,})')

    if len(across_distances) > 0:
        ax.hist(across_distances, bins=bins, alpha=0.6, range=bin_range, color='red',
                label=f'Across species (n={len(across_distances):,})')

    ax.set_title(title)
    ax.set_xlabel("Distance")
    ax.set_ylabel("Frequency")
    ax.grid(True, alpha=0.3)
    ax.legend()

    plt.tight_layout()

    if save_path:
        fig.savefig(save_path, dpi=300, bbox_inches='tight')
        logger.info(f"Histogram saved to {save_path}")

    return fig
