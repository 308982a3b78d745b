"""
Data Preparation Module
========================

Turns the raw station export into a clean, date-indexed observation table.

Functions:
    - bucket_labels: Derive interval bucket names from boundary years
    - assign_interval_bucket: Map dates onto historical interval buckets
    - split_timestamp: Separate time-of-day and date components
    - prepare_pipeline: Full preparation with diagnostics
"""

import logging
from typing import Dict, Any, Tuple, Optional, List, Sequence, Union

import pandas as pd
import numpy as np

logger = logging.getLogger(__name__)

RAW_COLUMNS = ['timestamp', 'level', 'salinity', 'temperature']
NUMERIC_COLUMNS = ['level', 'salinity', 'temperature']
DEFAULT_BOUNDARIES = (1900, 1940, 1980)
DEFAULT_DATE_FORMAT = '%d/%m/%Y'

_DATE_PATTERN = r'\d{2}/\d{2}/\d{4}'
_TIMESTAMP_PATTERN = r'^\s*(?P<time>\S+)\s+(?P<date>.*?)\s*$'


def bucket_labels(boundaries: Sequence[int] = DEFAULT_BOUNDARIES) -> List[str]:
    """
    Build ordered bucket labels from boundary years.

    (1900, 1940, 1980) -> ['Before1900', '1900-1940', '1940-1980', '1980-Today']
    """
    boundaries = list(boundaries)
    if not boundaries:
        raise ValueError("At least one interval boundary is required")
    if sorted(set(boundaries)) != boundaries:
        raise ValueError(f"Interval boundaries must be strictly increasing: {boundaries}")

    labels = [f'Before{boundaries[0]}']
    for lower, upper in zip(boundaries[:-1], boundaries[1:]):
        labels.append(f'{lower}-{upper}')
    labels.append(f'{boundaries[-1]}-Today')
    return labels


def assign_interval_bucket(
    dates: Union[pd.DatetimeIndex, pd.Series],
    boundaries: Sequence[int] = DEFAULT_BOUNDARIES
) -> pd.Categorical:
    """
    Classify each date into a historical interval bucket.

    Buckets are half-open: a date equal to a boundary (Jan 1st of that
    year) belongs to the bucket that starts there.

    Args:
        dates: Dates to classify (must not contain NaT)
        boundaries: Strictly increasing boundary years

    Returns:
        Ordered Categorical aligned with ``dates``
    """
    labels = bucket_labels(boundaries)
    values = pd.DatetimeIndex(dates)

    if values.hasnans:
        raise ValueError("Cannot assign an interval bucket to a missing date")

    # Boundaries fall on Jan 1st, so comparing years is exact
    codes = np.searchsorted(np.asarray(boundaries), values.year.to_numpy(), side='right')
    return pd.Categorical.from_codes(codes, categories=labels, ordered=True)


def split_timestamp(timestamps: pd.Series) -> pd.DataFrame:
    """
    Split combined "<time> <date>" strings on the first whitespace run.

    Returns:
        DataFrame with ``time`` and ``date`` string columns; both are NaN
        where no separator was found.
    """
    return timestamps.fillna('').astype(str).str.extract(_TIMESTAMP_PATTERN).astype(object)


def _parse_time_of_day(parts: pd.Series) -> pd.Series:
    # "HH:MM" is padded to "HH:MM:00" so to_timedelta reads it as clock time
    padded = parts.where(parts.str.count(':') != 1, parts + ':00')
    return pd.to_timedelta(padded, errors='coerce')


class ObservationPreparer:
    """
    Preparation of raw station rows into typed observations.

    Splits and parses timestamps, coerces the numeric fields, tags the
    station origin and the interval bucket, and orders the result by
    date. Performs no I/O.
    """

    def __init__(
        self,
        origin: str,
        date_format: str = DEFAULT_DATE_FORMAT,
        boundaries: Sequence[int] = DEFAULT_BOUNDARIES
    ):
        """
        Initialize the preparer.

        Args:
            origin: Identifier of the monitoring station
            date_format: strptime pattern for the date component
            boundaries: Interval bucket boundary years
        """
        self.origin = origin
        self.date_format = date_format
        self.boundaries = tuple(boundaries)
        self.labels = bucket_labels(self.boundaries)

    def to_frame(self, raw: Any) -> pd.DataFrame:
        """
        Materialize raw input as a DataFrame with the four raw columns.

        Accepts a DataFrame, an iterable of DataFrame chunks, or an
        iterable of 4-field rows.
        """
        if isinstance(raw, pd.DataFrame):
            frame = raw
        else:
            items = list(raw)
            if items and all(isinstance(item, pd.DataFrame) for item in items):
                frame = pd.concat(items, ignore_index=True)
            else:
                frame = pd.DataFrame([list(row) for row in items], columns=RAW_COLUMNS)

        missing = [col for col in RAW_COLUMNS if col not in frame.columns]
        if missing:
            if frame.shape[1] != len(RAW_COLUMNS):
                raise ValueError(
                    f"Expected {len(RAW_COLUMNS)} raw columns, but found {frame.shape[1]}. "
                    f"Columns: {list(frame.columns)}"
                )
            frame = frame.set_axis(RAW_COLUMNS, axis=1)

        return frame[RAW_COLUMNS].reset_index(drop=True)

    def prepare(self, raw: Any) -> Tuple[pd.DataFrame, pd.DataFrame]:
        """
        Convert raw rows into the observation table.

        Rows whose timestamp has no separator or whose date does not
        parse are rejected. Empty or non-numeric measurements become NaN.

        Args:
            raw: Raw rows (see ``to_frame``)

        Returns:
            Tuple of (observations, rejected) where:
                observations: DataFrame indexed by ``date``
                rejected: Raw rows that failed, with ``position`` and ``reason``
        """
        frame = self.to_frame(raw)

        parts = split_timestamp(frame['timestamp'])
        no_separator = parts['date'].isna()

        date_text = parts['date'].fillna('')
        well_formed = date_text.str.fullmatch(_DATE_PATTERN)
        dates = pd.to_datetime(
            date_text.where(well_formed), format=self.date_format, errors='coerce'
        )
        bad_date = ~no_separator & dates.isna()
        valid = ~(no_separator | bad_date)

        rejected = frame.loc[~valid].copy()
        rejected.insert(0, 'position', rejected.index)
        rejected['reason'] = np.where(no_separator[~valid], 'no_separator', 'bad_date')
        rejected = rejected.reset_index(drop=True)

        kept = frame.loc[valid]
        observations = pd.DataFrame({
            'date': dates[valid].dt.normalize(),
            'time': _parse_time_of_day(parts.loc[valid, 'time']),
        })
        for col in NUMERIC_COLUMNS:
            values = kept[col].map(lambda v: v.strip() if isinstance(v, str) else v)
            observations[col] = pd.to_numeric(values, errors='coerce').astype('float64')

        observations['origin'] = self.origin
        observations['interval_bucket'] = assign_interval_bucket(
            observations['date'], self.boundaries
        )

        # Stable sort keeps input order among equal dates
        observations = (
            observations.sort_values('date', kind='stable')
            .set_index('date')
        )

        logger.info(
            f"Prepared {len(observations)} observations from {len(frame)} raw rows "
            f"({len(rejected)} rejected)"
        )

        return observations, rejected


def prepare_pipeline(
    raw: Any,
    origin: str,
    date_format: str = DEFAULT_DATE_FORMAT,
    boundaries: Sequence[int] = DEFAULT_BOUNDARIES
) -> Dict[str, Any]:
    """
    Complete preparation pipeline for the raw station export.

    Args:
        raw: Raw rows (DataFrame, DataFrame chunks, or row sequences)
        origin: Station identifier
        date_format: strptime pattern for the date component
        boundaries: Interval bucket boundary years

    Returns:
        Dictionary containing:
            - observations: Prepared, date-indexed DataFrame
            - rejected: Raw rows dropped as malformed
            - n_input, n_output, n_rejected: Row counts
            - missing_counts: NaN count per measurement column
            - date_range: (first, last) date or None when empty
            - preparer: The ObservationPreparer used
    """
    logger.info("=" * 60)
    logger.info("STARTING DATA PREPARATION")
    logger.info("=" * 60)

    preparer = ObservationPreparer(
        origin=origin,
        date_format=date_format,
        boundaries=boundaries
    )

    observations, rejected = preparer.prepare(raw)
    n_output = len(observations)
    n_rejected = len(rejected)

    if n_rejected:
        logger.warning(
            f"Dropped {n_rejected} malformed rows "
            f"({rejected['reason'].value_counts().to_dict()})"
        )

    missing_counts = observations[NUMERIC_COLUMNS].isna().sum().to_dict()
    date_range: Optional[Tuple[pd.Timestamp, pd.Timestamp]] = None
    if n_output:
        date_range = (observations.index.min(), observations.index.max())

    result = {
        'observations': observations,
        'rejected': rejected,
        'n_input': n_output + n_rejected,
        'n_output': n_output,
        'n_rejected': n_rejected,
        'missing_counts': missing_counts,
        'date_range': date_range,
        'preparer': preparer
    }

    logger.info("=" * 60)
    logger.info("PREPARATION COMPLETE")
    logger.info(f"  Observations: {n_output}")
    logger.info(f"  Rejected rows: {n_rejected}")
    logger.info(f"  Missing values: {missing_counts}")
    logger.info("=" * 60)

    return result


def print_preparation_summary(result: Dict[str, Any]) -> None:
    """
    Print a summary of the preparation results.

    Args:
        result: Dictionary from prepare_pipeline
    """
    print("\n" + "=" * 50)
    print("PREPARATION SUMMARY")
    print("=" * 50)
    print(f"Raw rows: {result['n_input']}")
    print(f"Observations: {result['n_output']}")
    print(f"Rejected rows: {result['n_rejected']}")
    if result['date_range'] is not None:
        first, last = result['date_range']
        print(f"Date range: {first.date()} to {last.date()}")
    print("\nMissing values:")
    for col, count in result['missing_counts'].items():
        print(f"  {col}: {count}")
    print("\nRows per interval:")
    counts = result['observations']['interval_bucket'].value_counts(sort=False)
    for label, count in counts.items():
        print(f"  {label}: {count}")
    print("=" * 50 + "\n")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')

    sample_rows = [
        ("00:00 01/01/1885", "1.20", "", "14.1"),
        ("00:00 31/12/1899", "1.25", "410", ""),
        ("not-a-time", "1.2", "3.4", "5.6"),
        ("00:00 01/01/1900", "1.31", "405", "15.0"),
        ("00:00 01/01/1980", "", "398", "16.2"),
    ]

    print("Testing preparation pipeline...")
    result = prepare_pipeline(sample_rows, origin="sample-station")
    print_preparation_summary(result)
    print(result['observations'])
