"""
Data Loader Module
==================

Handles configuration, raw CSV ingestion, and basic data quality checks.

Functions:
    - load_config: Load YAML configuration file
    - load_raw_data: Read the raw station export
    - iter_raw_chunks: Read the raw station export lazily, chunk by chunk
    - validate_data: Check quality of the prepared observations
    - get_data_summary: Generate basic statistics
"""

import os
import logging
from pathlib import Path
from typing import Dict, Any, Iterator, Tuple

import pandas as pd
import numpy as np
import yaml

from .preprocessing import RAW_COLUMNS, NUMERIC_COLUMNS

logger = logging.getLogger(__name__)

DEFAULT_HEADER_LINES = 4


def load_config(config_path: str = "config/config.yaml") -> Dict[str, Any]:
    """
    Load configuration from YAML file.

    Args:
        config_path: Path to the configuration file

    Returns:
        Dictionary containing configuration parameters

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If config file is malformed
    """
    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path, 'r') as f:
        config = yaml.safe_load(f) or {}

    logger.info(f"Loaded configuration from {config_path}")
    return config


def _read_csv_kwargs(header_lines: int) -> Dict[str, Any]:
    # Everything is read as text; typing happens in the preparer
    return dict(
        skiprows=header_lines,
        header=None,
        names=RAW_COLUMNS,
        usecols=list(range(len(RAW_COLUMNS))),
        dtype=str,
        keep_default_na=False,
        skipinitialspace=True,
    )


def _check_exists(file_path: Path) -> None:
    if not file_path.exists():
        raise FileNotFoundError(f"Data file not found: {file_path}")


def load_raw_data(
    file_path: str,
    header_lines: int = DEFAULT_HEADER_LINES
) -> pd.DataFrame:
    """
    Load the raw station export as text columns.

    The first ``header_lines`` lines are metadata and are skipped
    unconditionally. Columns are positional: timestamp, level,
    salinity, temperature.

    Args:
        file_path: Path to the CSV file
        header_lines: Number of leading lines to skip

    Returns:
        DataFrame of raw string fields

    Raises:
        FileNotFoundError: If data file doesn't exist
    """
    file_path = Path(file_path)
    _check_exists(file_path)

    df = pd.read_csv(file_path, **_read_csv_kwargs(header_lines))
    logger.info(f"Loaded raw data from {file_path}: {df.shape[0]} rows × {df.shape[1]} columns")

    return df


def iter_raw_chunks(
    file_path: str,
    header_lines: int = DEFAULT_HEADER_LINES,
    chunksize: int = 50_000
) -> Iterator[pd.DataFrame]:
    """
    Lazily read the raw station export in chunks.

    The iterator is finite and single-pass; call again to re-read the
    file from the start.

    Args:
        file_path: Path to the CSV file
        header_lines: Number of leading lines to skip
        chunksize: Rows per chunk

    Yields:
        DataFrames of raw string fields
    """
    file_path = Path(file_path)
    _check_exists(file_path)

    with pd.read_csv(file_path, chunksize=chunksize, **_read_csv_kwargs(header_lines)) as reader:
        for idx, chunk in enumerate(reader):
            logger.debug(f"Read chunk {idx} from {file_path}: {len(chunk)} rows")
            yield chunk


def validate_data(df: pd.DataFrame, strict: bool = False) -> Tuple[bool, Dict[str, Any]]:
    """
    Validate quality of the prepared observation table.

    Checks:
        - Missing measurement values
        - Duplicate dates
        - Ascending date order
        - Outliers (>4 std) per measurement

    Args:
        df: Prepared observations indexed by date
        strict: If True, raise errors on validation failure

    Returns:
        Tuple of (is_valid, validation_report)
    """
    report = {
        "total_rows": len(df),
        "total_columns": len(df.columns),
        "column_names": list(df.columns),
        "issues": []
    }

    measurements = [col for col in NUMERIC_COLUMNS if col in df.columns]

    # Check 1: Missing values
    missing_counts = df[measurements].isnull().sum()
    total_missing = int(missing_counts.sum())
    if total_missing > 0 and len(df) > 0:
        missing_pct = (total_missing / (len(df) * len(measurements))) * 100
        issue = f"Missing values: {total_missing} ({missing_pct:.2f}%)"
        report["issues"].append(issue)
        report["missing_by_column"] = missing_counts[missing_counts > 0].to_dict()
        logger.warning(issue)

    # Check 2: Duplicate dates
    duplicates = int(df.index.duplicated().sum())
    if duplicates > 0:
        issue = f"Duplicate dates found: {duplicates}"
        report["issues"].append(issue)
        logger.warning(issue)

    # Check 3: Ordering
    if not df.index.is_monotonic_increasing:
        issue = "Dates are not in ascending order"
        report["issues"].append(issue)
        logger.warning(issue)

    # Check 4: Outliers
    for col in measurements:
        col_std = df[col].std()
        col_mean = df[col].mean()
        if pd.isna(col_std) or col_std == 0:
            continue
        outliers = int(((df[col] - col_mean).abs() > 4 * col_std).sum())
        if outliers > 0:
            issue = f"Column '{col}' has {outliers} potential outliers (>4 std)"
            report["issues"].append(issue)
            logger.warning(issue)

    is_valid = len(report["issues"]) == 0
    report["is_valid"] = is_valid

    if strict and not is_valid:
        raise ValueError(f"Data validation failed: {report['issues']}")

    return is_valid, report


def get_data_summary(df: pd.DataFrame) -> Dict[str, Any]:
    """
    Generate summary statistics for the prepared observations.

    Args:
        df: Prepared observations indexed by date

    Returns:
        Dictionary containing summary statistics
    """
    summary = {
        "shape": df.shape,
        "columns": list(df.columns),
        "dtypes": df.dtypes.astype(str).to_dict(),
        "date_range": (df.index.min(), df.index.max()) if len(df) else None,
        "rows_per_interval": {},
        "statistics": {}
    }

    if 'interval_bucket' in df.columns:
        counts = df['interval_bucket'].value_counts(sort=False)
        summary["rows_per_interval"] = {str(k): int(v) for k, v in counts.items()}

    for col in df.select_dtypes(include=[np.number]).columns:
        series = df[col].dropna()
        if series.empty:
            continue
        summary["statistics"][col] = {
            "count": int(series.count()),
            "mean": float(series.mean()),
            "std": float(series.std()),
            "min": float(series.min()),
            "25%": float(series.quantile(0.25)),
            "50%": float(series.quantile(0.50)),
            "75%": float(series.quantile(0.75)),
            "max": float(series.max())
        }

    return summary


def print_data_summary(df: pd.DataFrame) -> None:
    """
    Print a formatted summary of the observations to console.

    Args:
        df: Prepared observations indexed by date
    """
    print("\n" + "=" * 60)
    print("DATASET SUMMARY")
    print("=" * 60)
    print(f"Shape: {df.shape[0]} rows × {df.shape[1]} columns")
    if len(df):
        print(f"Dates: {df.index.min().date()} to {df.index.max().date()}")
    print("\nColumn Information:")
    print("-" * 40)

    for col in df.columns:
        dtype = df[col].dtype
        non_null = df[col].count()
        null_pct = (1 - non_null / len(df)) * 100 if len(df) else 0.0
        print(f"  {col}: {dtype} | {non_null} non-null ({null_pct:.1f}% missing)")

    measurements = [col for col in NUMERIC_COLUMNS if col in df.columns]
    if len(df) and measurements:
        print("\nBasic Statistics:")
        print("-" * 40)
        print(df[measurements].describe().round(4).to_string())
    print("=" * 60 + "\n")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)

    try:
        config = load_config()
        print("Configuration loaded successfully!")
        print(f"Station: {config['data']['origin']}")
        print(f"Header lines: {config['data']['header_lines']}")
    except FileNotFoundError as e:
        print(f"Config not found: {e}")

    data_path = "data/raw/station.csv"
    if os.path.exists(data_path):
        raw = load_raw_data(data_path)
        print(raw.head())
    else:
        print(f"No data file found at {data_path}")
        print("Place the station export there to test the data loader.")
