#!/usr/bin/env python3
"""
Station EDA - Main Pipeline
============================

Orchestrates the exploratory analysis of one monitoring station's record.

Phases:
    1. Summary - Load, prepare and describe the observations
    2. Prepare - Preparation diagnostics (rejected rows, missing values)
    3. EDA - Figures for time series, seasonality, correlation, extremes and lags

Usage:
    # Run complete pipeline
    python main.py --data data/raw/station.csv

    # Run specific phase
    python main.py --data data/raw/station.csv --phase summary

    # Run with custom config
    python main.py --data data/raw/station.csv --config config/config.yaml
"""

import argparse
import logging
import sys
from pathlib import Path
from datetime import datetime
from typing import Dict, Any, Optional

import pandas as pd

# Add package root to path
sys.path.insert(0, str(Path(__file__).parent))

from station_eda.data_loader import (
    load_config, load_raw_data, iter_raw_chunks, validate_data, print_data_summary
)
from station_eda.preprocessing import prepare_pipeline, print_preparation_summary
from station_eda.eda import generate_eda_report, print_correlation_insights


def setup_logging(level: str = "INFO") -> None:
    """Configure logging for the pipeline."""
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(sys.stdout),
            logging.FileHandler(f'station_eda_{datetime.now().strftime("%Y%m%d_%H%M%S")}.log')
        ]
    )


def run_preparation(data_path: str, config: Dict[str, Any]) -> Dict[str, Any]:
    """
    Read the raw export and prepare the observations.

    Args:
        data_path: Path to the raw CSV export
        config: Configuration dictionary

    Returns:
        Preparation result dictionary
    """
    data_config = config.get('data', {})
    prep_config = config.get('preprocessing', {})
    header_lines = data_config.get('header_lines', 4)
    chunksize = data_config.get('chunksize')

    if chunksize:
        raw = iter_raw_chunks(data_path, header_lines=header_lines, chunksize=chunksize)
    else:
        raw = load_raw_data(data_path, header_lines=header_lines)

    return prepare_pipeline(
        raw,
        origin=data_config.get('origin', 'station'),
        date_format=data_config.get('date_format', '%d/%m/%Y'),
        boundaries=prep_config.get('interval_boundaries', [1900, 1940, 1980])
    )


def run_summary(observations: pd.DataFrame) -> Dict[str, Any]:
    """
    Execute Phase 1: describe and validate the prepared observations.

    Args:
        observations: Prepared observations

    Returns:
        Validation report dictionary
    """
    print("\n" + "=" * 70)
    print("PHASE 1: DATA SUMMARY")
    print("=" * 70)

    print_data_summary(observations)

    is_valid, validation_report = validate_data(observations, strict=False)
    if not is_valid:
        print("⚠️  Data validation warnings detected. Proceeding anyway...")

    return validation_report


def run_prepare_report(prep_result: Dict[str, Any]) -> Dict[str, Any]:
    """
    Execute Phase 2: report on the preparation step.

    Args:
        prep_result: Dictionary from prepare_pipeline

    Returns:
        The same preparation result
    """
    print("\n" + "=" * 70)
    print("PHASE 2: PREPARATION")
    print("=" * 70)

    print_preparation_summary(prep_result)

    rejected = prep_result['rejected']
    if len(rejected):
        print("First rejected rows:")
        print(rejected.head(10).to_string(index=False))

    return prep_result


def run_eda(observations: pd.DataFrame, config: Dict[str, Any]) -> Dict[str, Any]:
    """
    Execute Phase 3: Exploratory Data Analysis.

    Args:
        observations: Prepared observations
        config: Configuration dictionary

    Returns:
        EDA report dictionary
    """
    print("\n" + "=" * 70)
    print("PHASE 3: EXPLORATORY DATA ANALYSIS")
    print("=" * 70)

    output_dir = config.get('output', {}).get('figures_path', 'reports/figures/')
    threshold = config.get('analysis', {}).get('correlation_threshold', 0.5)

    report = generate_eda_report(observations, output_dir=output_dir, config=config, show_plots=False)

    if report["correlation_matrix"] is not None:
        print_correlation_insights(pd.DataFrame(report["correlation_matrix"]), threshold=threshold)

    print(f"\n✓ EDA complete. {len(report['figures'])} figures saved to {output_dir}")
    if report["skipped"]:
        print(f"  Skipped: {', '.join(report['skipped'])}")

    return report


def run_full_pipeline(
    data_path: str,
    config_path: str = "config/config.yaml",
    log_level: Optional[str] = None
) -> Dict[str, Any]:
    """
    Execute all phases.

    Args:
        data_path: Path to the raw CSV export
        config_path: Path to configuration file
        log_level: Overrides the configured logging level

    Returns:
        Dictionary containing all phase results
    """
    print("\n" + "=" * 70)
    print("STATION EDA PIPELINE")
    print(f"Started at: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    print("=" * 70)

    config = load_config(config_path)
    setup_logging(log_level or config.get('logging', {}).get('level', 'INFO'))

    print("\n📊 Loading data...")
    prep_result = run_preparation(data_path, config)
    observations = prep_result['observations']

    results = {
        'config': config,
        'data_shape': observations.shape,
        'preparation': prep_result
    }

    results['summary'] = run_summary(observations)
    run_prepare_report(prep_result)
    results['eda'] = run_eda(observations, config)

    print("\n" + "=" * 70)
    print("PIPELINE COMPLETE")
    print("=" * 70)
    print(f"  • Raw rows: {prep_result['n_input']}")
    print(f"  • Observations: {prep_result['n_output']} ({prep_result['n_rejected']} rejected)")
    print(f"  • Figures: {len(results['eda']['figures'])}")
    print(f"Completed at: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    print("=" * 70 + "\n")

    return results


def run_single_phase(
    phase: str,
    data_path: str,
    config_path: str = "config/config.yaml",
    log_level: Optional[str] = None
) -> Dict[str, Any]:
    """
    Execute a single phase of the pipeline.

    Args:
        phase: Phase to run ('summary', 'prepare', 'eda')
        data_path: Path to the raw CSV export
        config_path: Path to configuration file
        log_level: Overrides the configured logging level

    Returns:
        Phase result dictionary
    """
    config = load_config(config_path)
    setup_logging(log_level or config.get('logging', {}).get('level', 'INFO'))

    prep_result = run_preparation(data_path, config)
    observations = prep_result['observations']

    if phase == 'summary':
        return run_summary(observations)

    elif phase == 'prepare':
        return run_prepare_report(prep_result)

    elif phase == 'eda':
        return run_eda(observations, config)

    else:
        raise ValueError(f"Unknown phase: {phase}. Choose from: summary, prepare, eda")


def main():
    """Main entry point with argument parsing."""
    parser = argparse.ArgumentParser(
        description="Exploratory analysis of a monitoring station record",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py --data data/raw/station.csv
  python main.py --data data/raw/station.csv --phase eda
  python main.py --data data/raw/station.csv --config config/custom.yaml
        """
    )

    parser.add_argument(
        '--data', '-d',
        type=str,
        required=True,
        help='Path to the raw station CSV export'
    )

    parser.add_argument(
        '--config', '-c',
        type=str,
        default='config/config.yaml',
        help='Path to configuration file (default: config/config.yaml)'
    )

    parser.add_argument(
        '--phase', '-p',
        type=str,
        choices=['summary', 'prepare', 'eda', 'all'],
        default='all',
        help='Phase to run (default: all)'
    )

    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Enable debug logging'
    )

    args = parser.parse_args()

    if not Path(args.data).exists():
        print(f"Error: Data file not found: {args.data}")
        print("\nPlease place the station export in the specified location.")
        print("Expected format: 4 header lines, then '<HH:MM> <DD/MM/YYYY>',level,salinity,temperature")
        sys.exit(1)

    if not Path(args.config).exists():
        print(f"Error: Config file not found: {args.config}")
        sys.exit(1)

    log_level = 'DEBUG' if args.verbose else None

    try:
        if args.phase == 'all':
            run_full_pipeline(args.data, args.config, log_level=log_level)
        else:
            run_single_phase(args.phase, args.data, args.config, log_level=log_level)

        return 0

    except Exception as e:
        logging.error(f"Pipeline failed: {e}", exc_info=True)
        print(f"\n❌ Pipeline failed: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
