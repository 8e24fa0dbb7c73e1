"""
Command-line interface for the index generator.
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from .errors import GeneratorError
from .extracts import CsvExtractSource, RawExtracts
from .generator import IndexGenerator
from .models import DEFAULT_BATCH_SIZE, DEFAULT_UMBRELLA_PREFIXES, GeneratorSettings
from .reporting import save_summary_json


logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Merge package ecosystem extracts into a single SQLite index"
    )

    parser.add_argument(
        "--extracts",
        required=True,
        help="Directory holding the raw extracts as <name>.csv files"
    )

    parser.add_argument(
        "--sqlite",
        default="./output/ecosystem-index.db",
        help="Path of the database to generate. Default: ./output/ecosystem-index.db"
    )

    parser.add_argument(
        "--batch-size",
        type=int,
        default=DEFAULT_BATCH_SIZE,
        help=f"Rows per commit during backfill passes. Default: {DEFAULT_BATCH_SIZE}"
    )

    parser.add_argument(
        "--umbrella-prefix",
        action="append",
        default=None,
        help="Distribution name prefix excluded from weight (repeatable). "
             f"Default: {', '.join(DEFAULT_UMBRELLA_PREFIXES)}"
    )

    parser.add_argument(
        "--keep-intermediate",
        action="store_true",
        help="Keep the t_* intermediate tables"
    )

    parser.add_argument(
        "--no-vacuum",
        action="store_true",
        help="Skip VACUUM at the end of the run"
    )

    parser.add_argument(
        "--summary-dir",
        default=None,
        help="Directory to write the run summary JSON to"
    )

    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging"
    )

    return parser


def _parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = _build_parser()
    args = parser.parse_args(argv)
    if args.batch_size < 1:
        parser.error("--batch-size must be at least 1")
    if not Path(args.extracts).is_dir():
        parser.error(f"--extracts directory not found: {args.extracts}")
    return args


def _settings_from_args(args: argparse.Namespace) -> GeneratorSettings:
    return GeneratorSettings(
        sqlite_path=Path(args.sqlite),
        batch_size=args.batch_size,
        umbrella_prefixes=tuple(args.umbrella_prefix or DEFAULT_UMBRELLA_PREFIXES),
        keep_intermediate=args.keep_intermediate,
        vacuum=not args.no_vacuum,
    )


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the CLI."""
    args = _parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="[%(asctime)s] %(levelname)s %(name)s: %(message)s",
    )

    settings = _settings_from_args(args)
    source = CsvExtractSource(Path(args.extracts))
    extracts = RawExtracts.from_source(source)

    try:
        generator = IndexGenerator.from_settings(extracts, settings, age_reporter=source)
        try:
            report = generator.run()
        finally:
            generator.store.close()
    except GeneratorError as e:
        print(f"\nError during index generation: {e}", file=sys.stderr)
        return 1

    print(f"Index written to: {settings.sqlite_path}")
    if args.summary_dir:
        summary_file = save_summary_json(report, Path(args.summary_dir), settings.sqlite_path.stem)
        print(f"Summary saved to: {summary_file}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
