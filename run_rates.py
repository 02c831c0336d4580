#!/usr/bin/env python3
"""
run_rates.py - State Age-Standardized Mortality Rate Runner

Runs the complete rate computation from the two raw inputs:
1. Load and normalize the per-cause mortality extracts
2. Bin census population estimates and build the reference distribution
3. Compute crude and age-standardized rates (state and national)
4. Write the output tables (all or nothing)

Usage:
    python run_rates.py --config config.yaml

    python run_rates.py \\
        --mortality-dir data/mortality \\
        --population-file data/SC-EST2020-AGESEX-CIV.csv \\
        --output-dir output \\
        --reference-year 2019

Author: State Mortality Rates Project
Version: 1.0.0
"""

import argparse
import sys
import logging
from pathlib import Path
from typing import Optional, Dict, Any

# Set up logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def build_config(args: argparse.Namespace):
    """Configuration from a YAML file and/or command-line values."""
    from mortality_rates import PipelineConfig

    overrides: Dict[str, Any] = {
        'mortality_dir': args.mortality_dir,
        'population_file': args.population_file,
        'output_dir': args.output_dir,
        'reference_year': args.reference_year,
    }
    if args.excel:
        overrides['write_excel'] = True

    if args.config:
        return PipelineConfig.from_yaml(args.config, **overrides)
    return PipelineConfig(**{k: v for k, v in overrides.items() if v is not None})


def run_rates(args: argparse.Namespace) -> Optional[Dict[str, Any]]:
    """
    Run the pipeline and print a summary.

    Returns:
        Run summary, or None when the run failed (no files are written then)
    """
    from mortality_rates import MortalityRatesError, RatePipeline

    try:
        config = build_config(args)
    except (MortalityRatesError, ValueError) as exc:
        logger.error(f"Invalid configuration: {exc}")
        return None

    print("=" * 70)
    print("STATE AGE-STANDARDIZED MORTALITY RATES")
    print("=" * 70)
    print(f"Mortality:      {config.mortality_dir}")
    print(f"Population:     {config.population_file}")
    print(f"Output:         {config.output_dir}")
    print(f"Reference year: {config.reference_year}")
    print()

    pipeline = RatePipeline(config)
    try:
        result = pipeline.run()
        if not args.dry_run:
            written = pipeline.write(result)
    except (MortalityRatesError, ValueError) as exc:
        logger.error(f"Run aborted: {exc}")
        return None

    summary = result.get_summary()
    print()
    print(f"  States:           {summary['states']}")
    print(f"  Years:            {summary['years']}")
    print(f"  Causes:           {', '.join(summary['causes'])}")
    print(f"  Undefined CDRs:   {summary['undefined_cdr']}")
    print(f"  Elapsed:          {summary['elapsed_seconds']}s")
    if not args.dry_run:
        print()
        print("Files written:")
        for path in written:
            print(f"  - {path.name}")
    return summary


def main():
    parser = argparse.ArgumentParser(
        description='Compute state age-standardized mortality rates',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # From a configuration file
  python run_rates.py --config config.yaml

  # Command line mode
  python run_rates.py \\
      --mortality-dir data/mortality \\
      --population-file data/SC-EST2020-AGESEX-CIV.csv \\
      --output-dir output \\
      --reference-year 2019 \\
      --excel
"""
    )

    parser.add_argument('--config', '-c', type=Path, help='YAML configuration file')
    parser.add_argument('--mortality-dir', type=Path, help='Directory of per-cause extracts')
    parser.add_argument('--population-file', type=Path, help='Census population estimates CSV')
    parser.add_argument('--output-dir', type=Path, help='Directory for the output tables')
    parser.add_argument('--reference-year', type=int, help='Year of the standard population')
    parser.add_argument('--excel', action='store_true', help='Also write ASCDRTables.xlsx')
    parser.add_argument('--dry-run', action='store_true', help='Compute without writing files')
    parser.add_argument('--verbose', '-v', action='store_true', help='Debug logging')

    args = parser.parse_args()

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    if not args.config and (args.mortality_dir is None or args.population_file is None):
        print("ERROR: Give --config or both --mortality-dir and --population-file")
        print("Use --help for usage.")
        sys.exit(1)

    if run_rates(args) is None:
        sys.exit(1)


if __name__ == '__main__':
    main()
