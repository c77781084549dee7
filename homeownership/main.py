"""
Command-line entry point: harmonize CPS and SCF inputs (cached), build the
reconciled homeownership tables and write them as CSV files.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from .config import (
    DEFAULT_CPS_PATTERN,
    DEFAULT_SCF_PATTERN,
    SURVEY_YEARS,
    AgeScheme,
    PipelineConfig,
)
from .data_manager import export_results, load_payload

logger = logging.getLogger(__name__)

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]

SCHEME_CHOICES = {
    "primary": (AgeScheme.PRIMARY,),
    "alternative": (AgeScheme.ALTERNATIVE,),
    "both": (AgeScheme.PRIMARY, AgeScheme.ALTERNATIVE),
}


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Reconcile CPS and SCF homeownership rates by age group and year."
    )
    parser.add_argument("--cps-dir", type=Path, required=True, help="Directory of CPS files.")
    parser.add_argument("--scf-dir", type=Path, required=True, help="Directory of SCF files.")
    parser.add_argument(
        "--output-dir", type=Path, required=True, help="Directory for the CSV results."
    )
    parser.add_argument(
        "--cache-dir",
        type=Path,
        default=None,
        help="Directory for harmonized-table caches (default: resolved automatically).",
    )
    parser.add_argument(
        "--cps-pattern",
        default=DEFAULT_CPS_PATTERN,
        help=f"CPS file name pattern (default: '{DEFAULT_CPS_PATTERN}').",
    )
    parser.add_argument(
        "--scf-pattern",
        default=DEFAULT_SCF_PATTERN,
        help=f"SCF file name pattern (default: '{DEFAULT_SCF_PATTERN}').",
    )
    parser.add_argument(
        "--years",
        type=int,
        nargs="+",
        default=list(SURVEY_YEARS),
        help="Survey years to include (default: 1989-2022 triennial waves).",
    )
    parser.add_argument(
        "--scheme",
        choices=sorted(SCHEME_CHOICES),
        default="both",
        help="Age-group partition(s) to report (default: both).",
    )
    parser.add_argument(
        "--no-year-totals",
        action="store_true",
        help="Skip the all-ages tables keyed by year only.",
    )
    parser.add_argument(
        "--force-recompute",
        action="store_true",
        help="Ignore cached harmonized tables.",
    )
    parser.add_argument(
        "--log-level",
        type=str.upper,
        choices=LOG_LEVELS,
        default="INFO",
        help="Logging level (default: INFO).",
    )
    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> PipelineConfig:
    return PipelineConfig(
        cps_dir=args.cps_dir,
        scf_dir=args.scf_dir,
        output_dir=args.output_dir,
        cache_dir=args.cache_dir,
        years=tuple(sorted(set(args.years))),
        cps_pattern=args.cps_pattern,
        scf_pattern=args.scf_pattern,
        age_schemes=SCHEME_CHOICES[args.scheme],
        include_year_totals=not args.no_year_totals,
    )


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=args.log_level,
        format="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
    )
    config = build_config(args)

    try:
        payload = load_payload(config, force_recompute=args.force_recompute)
        written = export_results(payload, config.output_dir)
    except (KeyError, ValueError, OSError) as exc:
        logger.error("Pipeline aborted: %s", exc)
        return 1

    for path in written:
        logger.info("  - %s", path.name)
    return 0


if __name__ == "__main__":
    sys.exit(main())
