#!/usr/bin/env python3
"""
Command-line interface for gapmotif.

Scans one or more FASTA sources for a gapped IUPAC motif and writes the
matches as a tab-separated table.
"""

import argparse
import logging
import sys
from pathlib import Path

from gapmotif.finder import MotifFinder, find_and_write
from gapmotif.io import MotifWriter

logger = logging.getLogger("gapmotif")


def setup_logging(verbose: bool):
    """Setup logging configuration."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    if verbose:
        logging.getLogger("matplotlib").setLevel(logging.WARNING)


def create_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Find gapped IUPAC motifs (left anchor, gap, right anchor) in FASTA files",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
 Examples:
   gapmotif -i genome.fa -o hits.tsv --left ACGT --right ACGT --gap-min 0 --gap-max 3 -a 2

   # Motif from a YAML file, mismatch budget overridden on the command line
   zcat reads.fa.gz | gapmotif -i - -o - --config motif.yaml --err-right 1
         """,
    )
    parser.add_argument(
        "-i", "--input",
        nargs="+",
        required=True,
        help="FASTA files to scan ('-' for stdin, '.gz' files are decompressed)"
    )
    parser.add_argument(
        "-o", "--output",
        required=True,
        help="Output TSV file ('-' for stdout)"
    )
    parser.add_argument("--left", help="Left anchor (IUPAC)")
    parser.add_argument("--right", help="Right anchor (IUPAC)")
    parser.add_argument("--gap-min", type=int, help="Smallest gap between anchors")
    parser.add_argument("--gap-max", type=int, help="Largest gap between anchors")
    parser.add_argument("--err-left", type=int, help="Mismatches allowed in the left anchor (default: 0)")
    parser.add_argument("--err-right", type=int, help="Mismatches allowed in the right anchor (default: 0)")
    parser.add_argument(
        "-a", "--after",
        type=int,
        help="Extra bases reported after the right anchor (default: 0)"
    )
    parser.add_argument(
        "--config",
        type=Path,
        help="YAML file with 'params' and 'motif' sections; flags override it"
    )
    parser.add_argument("--plot", type=Path, help="Save a mismatch histogram to this image file")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    return parser


def build_finder(args: argparse.Namespace) -> MotifFinder:
    """Combine the optional YAML config with command-line overrides."""
    overrides = {
        "left": args.left,
        "right": args.right,
        "gap_min": args.gap_min,
        "gap_max": args.gap_max,
        "err_left": args.err_left,
        "err_right": args.err_right,
        "after": args.after,
    }
    text = args.config.read_text() if args.config else ""
    return MotifFinder.from_yaml(text, overrides)


def validate_finder(finder: MotifFinder) -> None:
    if not finder.left or not finder.right:
        sys.exit("Error: --left and --right must be non-empty")
    for name in ("gap_min", "gap_max", "err_left", "err_right", "after"):
        if getattr(finder, name) < 0:
            sys.exit(f"Error: {name.replace('_', '-')} must be >= 0")
    if finder.gap_min > finder.gap_max:
        sys.exit(f"Error: gap-min ({finder.gap_min}) is larger than gap-max ({finder.gap_max})")


def save_plot(finder: MotifFinder, path: Path) -> None:
    import matplotlib
    matplotlib.use("Agg")
    import matplotlib.pyplot as plt
    from gapmotif.plot import plot_mismatch_totals

    fig, ax = plt.subplots(figsize=(6, 4))
    plot_mismatch_totals(finder.scan_log["matches_by_mismatch"], ax)
    ax.set_title(str(finder.left) + " ... " + str(finder.right))
    fig.tight_layout()
    fig.savefig(path)
    plt.close(fig)


def main(argv=None):
    """Main CLI entry point."""
    args = create_arg_parser().parse_args(argv)
    setup_logging(args.verbose)

    if args.config and not args.config.exists():
        sys.exit(f"Error: Configuration file not found: {args.config}")

    try:
        finder = build_finder(args)
    except Exception as e:
        sys.exit(f"Error loading configuration: {e}")
    validate_finder(finder)
    logger.debug("%s", finder)

    # Output must be writable before any record is scanned
    try:
        writer = MotifWriter(args.output)
    except OSError as e:
        sys.exit(f"Error: cannot write output {args.output}: {e}")

    with writer:
        find_and_write(args.input, finder, writer)

    stats = finder.get_scan_log()
    logger.info("Records scanned: %d", stats["total_records"])
    logger.info("Records with matches: %d", stats["records_with_matches"])
    logger.info("Matches written: %d", stats["total_matches"])
    if stats["skipped_sources"]:
        logger.warning("Sources skipped: %d", stats["skipped_sources"])
    if stats["dropped_lines"]:
        logger.info("Sequence lines before first header (dropped): %d", stats["dropped_lines"])

    if args.plot:
        save_plot(finder, args.plot)
        logger.info("Mismatch histogram saved to %s", args.plot)


if __name__ == "__main__":
    main()
