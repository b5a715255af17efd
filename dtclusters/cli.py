"""
Command-line interface for dtclusters.
"""

import argparse
import logging
import signal
import sys
from contextlib import contextmanager
from pathlib import Path

from .agglomerate import Agglomerator
from .analyze import barcode_gap, create_distance_histogram, distribution_table, format_distribution
from .config import ClusterSettings, DEFAULT_MINIMUM_OVERLAP
from .engine import ClusterJob, DEFAULT_THRESHOLD
from .linkage import LINKAGES, get_linkage
from .pairwise import DistributionMode, PairwiseDistanceIndex
from .progress import TqdmProgress
from .stability import format_stability, stability_sweep
from .utils import format_partition, format_walk, load_corpus_from_fasta, save_partition


class OperationCancelled(Exception):
    """The user cancelled a long-running operation."""
    pass


def setup_logging(verbose: bool = False):
    """Configure logging based on verbosity level."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )


@contextmanager
def cancel_on_interrupt(callback: TqdmProgress):
    """Turn the first Ctrl+C into a cancellation request on ``callback``.

    A second Ctrl+C restores the previous handler and interrupts immediately.
    """
    def handle_interruption(signum, frame):
        if not callback.cancel_requested:
            logging.info("Interruption received (Ctrl+C). Cancelling current operation...")
            logging.info("Press Ctrl+C again to force exit")
            callback.request_cancel()
        else:
            logging.warning("Force exit requested.")
            signal.signal(signal.SIGINT, original_handler)
            raise KeyboardInterrupt

    original_handler = signal.signal(signal.SIGINT, handle_interruption)
    try:
        yield callback
    finally:
        signal.signal(signal.SIGINT, original_handler)


def _unwrap(outcome):
    if not outcome.ok:
        raise OperationCancelled(outcome.reason)
    return outcome.value


def _build_index(corpus, mode: DistributionMode, callback, settings) -> PairwiseDistanceIndex:
    callback.desc = f"Comparing ({mode.value} species)"
    return _unwrap(PairwiseDistanceIndex.build(corpus, mode, callback, settings))


def run_distribution(args, corpus, callback, settings):
    mode = DistributionMode(args.distribution)
    index = _build_index(corpus, mode, callback, settings)
    logging.info(f"{index.count_valid_comparisons()} valid comparisons "
                 f"({index.count_zero()} at 0%, {index.count_one()} at 100%)")
    rows = distribution_table(index, args.distribution_from, args.distribution_to,
                              args.distribution_step)
    print(format_distribution(rows))


def run_plot(args, corpus, callback, settings):
    within = _build_index(corpus, DistributionMode.WITHIN_SPECIES, callback, settings)
    across = _build_index(corpus, DistributionMode.ACROSS_SPECIES, callback, settings)
    gap = barcode_gap(within, across)
    if gap["gap_exists"]:
        logging.info(f"Barcode gap: largest within-species distance {gap['within']:.4f}, "
                     f"smallest across-species distance {gap['across']:.4f}")
    else:
        logging.info("No barcode gap between within-species and across-species distances")
    create_distance_histogram(within, across, save_path=args.plot)


def run_stability(args, corpus, linkage, callback, settings):
    callback.desc = "Clustering"
    rows = _unwrap(stability_sweep(corpus, linkage, args.threshold, args.stability_to,
                                   args.stability_step, callback, settings))
    print(f"# Cluster stability between {args.threshold:.2%} and {args.stability_to:.2%} "
          f"upon {len(corpus)} sequences")
    print(format_stability(rows))


def run_clustering(args, corpus, linkage, callback, settings):
    callback.desc = "Clustering"
    job = ClusterJob(corpus, linkage, args.threshold, settings)
    partition = _unwrap(job.execute(callback))

    if args.walk_to is None:
        print(format_partition(partition, corpus.distance, settings.precision))
    if args.output:
        save_partition(partition, args.output, args.format)
        logging.info(f"Clusters written to {args.output}")

    if args.walk_to is not None:
        callback.desc = "Agglomerating"
        callback.unit = " merges"
        agglomerator = Agglomerator(partition, settings=settings)
        nodes = _unwrap(agglomerator.walk_to(args.walk_to, callback))
        logging.info(f"Obtained {len(nodes)} clusters at {args.walk_to:.2%}")
        print(format_walk(nodes, settings.precision))


def main(argv=None):
    """Main entry point for the dtclusters CLI."""
    parser = argparse.ArgumentParser(
        description='dtclusters: threshold clustering of DNA barcodes by pairwise distance',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  dtclusters input.fasta                               # Single linkage clusters at 3%
  dtclusters input.fasta --threshold 0.02 --linkage complete
  dtclusters input.fasta --walk-to 0.05                # Agglomerate 3% clusters up to 5%
  dtclusters input.fasta --stability-to 0.10 --stability-step 0.005
  dtclusters input.fasta --distribution within --plot distances.png
        """
    )

    parser.add_argument('input',
                        help='Input FASTA file containing aligned DNA sequences')

    parser.add_argument('--threshold', type=float, default=DEFAULT_THRESHOLD,
                        help=f'Clustering threshold as a fraction (default: {DEFAULT_THRESHOLD})')
    parser.add_argument('--linkage', choices=sorted(LINKAGES), default='single',
                        help='Linkage rule (default: single)')
    parser.add_argument('--min-overlap', type=int, default=DEFAULT_MINIMUM_OVERLAP,
                        help=f'Minimum shared positions for a valid comparison '
                             f'(default: {DEFAULT_MINIMUM_OVERLAP})')
    parser.add_argument('--no-ambiguous-matches', action='store_true',
                        help='Do not let different ambiguity codes match through shared bases')

    parser.add_argument('--walk-to', type=float, metavar='THRESHOLD',
                        help='Agglomerate the clusters up to this threshold')
    parser.add_argument('--stability-to', type=float, metavar='THRESHOLD',
                        help='Report cluster stability from --threshold up to this threshold')
    parser.add_argument('--stability-step', type=float, default=0.005,
                        help='Threshold step for the stability report (default: 0.005)')

    parser.add_argument('--distribution', choices=[DistributionMode.WITHIN_SPECIES.value,
                                                   DistributionMode.ACROSS_SPECIES.value],
                        help='Print the distribution of within- or across-species distances')
    parser.add_argument('--distribution-from', type=float, default=0.0,
                        help='First bucket upper bound (default: 0.0)')
    parser.add_argument('--distribution-to', type=float, default=0.1,
                        help='Last bucket upper bound (default: 0.1)')
    parser.add_argument('--distribution-step', type=float, default=0.01,
                        help='Bucket width (default: 0.01)')
    parser.add_argument('--plot', metavar='PATH',
                        help='Save a histogram of within- and across-species distances')

    parser.add_argument('-o', '--output',
                        help='Write clusters to this file')
    parser.add_argument('--format', choices=['tsv', 'text'], default='tsv',
                        help='Output file format (default: tsv)')
    parser.add_argument('--no-progress', action='store_true',
                        help='Disable progress bars')
    parser.add_argument('-v', '--verbose', action='store_true',
                        help='Enable verbose logging')

    args = parser.parse_args(argv)

    setup_logging(args.verbose)

    try:
        input_path = Path(args.input)
        if not input_path.exists():
            logging.error(f"Input file not found: {args.input}")
            sys.exit(1)

        if args.walk_to is not None and args.stability_to is not None:
            logging.error("--walk-to and --stability-to cannot be combined")
            sys.exit(1)

        settings = ClusterSettings(minimum_overlap=args.min_overlap,
                                   ambiguous_bases_allowed=not args.no_ambiguous_matches)
        linkage = get_linkage(args.linkage)

        corpus = load_corpus_from_fasta(str(input_path), settings)
        logging.info(f"Loaded {len(corpus)} sequences from {corpus.species_count()} species "
                     f"({settings.minimum_overlap} bp minimum overlap)")

        callback = TqdmProgress(disable=args.no_progress)
        with cancel_on_interrupt(callback):
            if args.distribution or args.plot:
                if args.distribution:
                    run_distribution(args, corpus, callback, settings)
                if args.plot:
                    run_plot(args, corpus, callback, settings)
            elif args.stability_to is not None:
                run_stability(args, corpus, linkage, callback, settings)
            else:
                run_clustering(args, corpus, linkage, callback, settings)

        logging.debug("Done!")

    except OperationCancelled:
        logging.info("Operation cancelled")
        sys.exit(1)
    except KeyboardInterrupt:
        logging.info("Interrupted by user")
        sys.exit(1)
    except Exception as e:
        logging.error(f"Error: {e}")
        if args.verbose:
            import traceback
            traceback.print_exc()
        sys.exit(1)


if __name__ == '__main__':
    main()
