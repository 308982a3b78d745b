"""
Observation Views
=================

Read-only queries over the prepared observation table. Every function
takes the observations explicitly and returns a new object; the input
table is never modified.

Functions:
    - filter_date_range / filter_after_year: Row selection
    - time_series_view: Values over time
    - grouped_view: Aggregation by year, month or interval bucket
    - seasonal_view: Monthly profile per year, faceted by interval
    - scatter_view / correlation_matrix: Relationships between measurements
    - min_max_by_year: Yearly extremes
    - lag_difference / lag_view: Lag-N differences
    - seasonal_decomposition: Trend / seasonal / residual split
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, List, Optional

import pandas as pd
import numpy as np
from statsmodels.tsa.seasonal import DecomposeResult, seasonal_decompose

from .preprocessing import NUMERIC_COLUMNS

logger = logging.getLogger(__name__)

DEFAULT_LAG = 30
GROUP_KEYS = ('year', 'month', 'interval_bucket')
INCLUSIVE_OPTIONS = ('both', 'left', 'right', 'neither')


@dataclass
class RenderableSeries:
    """
    Structured output of a view, consumed by the plotting layer.

    ``group`` and ``facet`` are optional keys aligned with ``x``/``y``;
    ``highlight`` is an optional boolean mask.
    """
    name: str
    x: pd.Series
    y: pd.Series
    x_label: str = ''
    y_label: str = ''
    group: Optional[pd.Series] = None
    facet: Optional[pd.Series] = None
    highlight: Optional[pd.Series] = None

    def __len__(self) -> int:
        return len(self.y)

    @property
    def empty(self) -> bool:
        return len(self) == 0

    def to_frame(self) -> pd.DataFrame:
        """Return the view as a flat table with x, y and any optional keys."""
        data = {'x': self.x.to_numpy(), 'y': self.y.to_numpy()}
        for key in ('group', 'facet', 'highlight'):
            value = getattr(self, key)
            if value is not None:
                data[key] = value.to_numpy()
        return pd.DataFrame(data)


def _check_column(obs: pd.DataFrame, column: str) -> None:
    if column not in obs.columns:
        raise KeyError(f"Unknown column '{column}'. Available: {list(obs.columns)}")


def filter_date_range(
    obs: pd.DataFrame,
    start: Optional[Any] = None,
    end: Optional[Any] = None,
    inclusive: str = 'both'
) -> pd.DataFrame:
    """
    Select observations between two dates.

    Args:
        obs: Prepared observations indexed by date
        start: Lower bound (any value pandas can turn into a Timestamp)
        end: Upper bound
        inclusive: Which bounds are closed: 'both', 'left', 'right', 'neither'

    Returns:
        Copy of the selected rows
    """
    if inclusive not in INCLUSIVE_OPTIONS:
        raise ValueError(f"inclusive must be one of {INCLUSIVE_OPTIONS}, got '{inclusive}'")

    mask = np.ones(len(obs), dtype=bool)
    if start is not None:
        start = pd.Timestamp(start)
        if inclusive in ('both', 'left'):
            mask &= obs.index >= start
        else:
            mask &= obs.index > start
    if end is not None:
        end = pd.Timestamp(end)
        if inclusive in ('both', 'right'):
            mask &= obs.index <= end
        else:
            mask &= obs.index < end

    return obs.loc[mask].copy()


def filter_after_year(obs: pd.DataFrame, year: int) -> pd.DataFrame:
    """Select observations with year(date) > year."""
    return obs.loc[obs.index.year > year].copy()


def _select(
    obs: pd.DataFrame,
    start: Optional[Any] = None,
    end: Optional[Any] = None,
    inclusive: str = 'both',
    after_year: Optional[int] = None
) -> pd.DataFrame:
    if start is not None or end is not None:
        obs = filter_date_range(obs, start, end, inclusive)
    if after_year is not None:
        obs = filter_after_year(obs, after_year)
    return obs


def time_series_view(
    obs: pd.DataFrame,
    column: str,
    start: Optional[Any] = None,
    end: Optional[Any] = None,
    inclusive: str = 'both',
    after_year: Optional[int] = None
) -> RenderableSeries:
    """
    Values of one measurement over time, nulls removed.

    Args:
        obs: Prepared observations indexed by date
        column: Measurement column
        start, end, inclusive: Optional date-range filter
        after_year: Optional year threshold (year > after_year)

    Returns:
        RenderableSeries with x=date, y=value, group=interval_bucket
    """
    _check_column(obs, column)
    selected = _select(obs, start, end, inclusive, after_year)
    selected = selected.loc[selected[column].notna()]

    return RenderableSeries(
        name=f'{column} over time',
        x=pd.Series(selected.index, name='date'),
        y=selected[column].reset_index(drop=True),
        x_label='Date',
        y_label=column,
        group=selected['interval_bucket'].reset_index(drop=True)
    )


def _group_key(obs: pd.DataFrame, by: str) -> pd.Series:
    if by == 'year':
        return pd.Series(obs.index.year, index=obs.index, name='year')
    if by == 'month':
        return pd.Series(obs.index.month, index=obs.index, name='month')
    if by == 'interval_bucket':
        return obs['interval_bucket']
    raise ValueError(f"Unknown grouping key '{by}'. Choose from: {', '.join(GROUP_KEYS)}")


def grouped_view(
    obs: pd.DataFrame,
    column: str,
    by: str,
    agg: str = 'mean'
) -> pd.Series:
    """
    Aggregate one measurement by year, month or interval bucket.

    Groups without any non-null value are omitted.

    Args:
        obs: Prepared observations indexed by date
        column: Measurement column
        by: 'year', 'month' or 'interval_bucket'
        agg: Any pandas reduction name ('mean', 'min', 'max', ...)

    Returns:
        Series indexed by group key
    """
    _check_column(obs, column)
    key = _group_key(obs, by)
    values = obs[column]
    present = values.notna()

    return values[present].groupby(key[present], observed=True).agg(agg).rename(column)


def seasonal_view(
    obs: pd.DataFrame,
    column: str,
    after_year: Optional[int] = None
) -> RenderableSeries:
    """
    Monthly mean of a measurement for every year, faceted by interval.

    Args:
        obs: Prepared observations indexed by date
        column: Measurement column
        after_year: Optional year threshold

    Returns:
        RenderableSeries with x=month, y=mean, group=year, facet=interval_bucket
    """
    _check_column(obs, column)
    selected = _select(obs, after_year=after_year)
    selected = selected.loc[selected[column].notna()]

    monthly = (
        selected.groupby(
            [selected['interval_bucket'], selected.index.year.rename('year'),
             selected.index.month.rename('month')],
            observed=True
        )[column]
        .mean()
        .reset_index()
    )

    return RenderableSeries(
        name=f'Seasonal {column}',
        x=monthly['month'],
        y=monthly[column],
        x_label='Month',
        y_label=column,
        group=monthly['year'],
        facet=monthly['interval_bucket']
    )


def scatter_view(
    obs: pd.DataFrame,
    x: str,
    y: str,
    after_year: Optional[int] = None
) -> RenderableSeries:
    """
    Paired values of two measurements where both are present.

    Returns:
        RenderableSeries with group=interval_bucket
    """
    _check_column(obs, x)
    _check_column(obs, y)
    selected = _select(obs, after_year=after_year)
    selected = selected.loc[selected[x].notna() & selected[y].notna()]

    return RenderableSeries(
        name=f'{y} vs {x}',
        x=selected[x].reset_index(drop=True),
        y=selected[y].reset_index(drop=True),
        x_label=x,
        y_label=y,
        group=selected['interval_bucket'].reset_index(drop=True)
    )


def correlation_matrix(
    obs: pd.DataFrame,
    columns: Optional[List[str]] = None,
    method: str = 'pearson'
) -> pd.DataFrame:
    """Pairwise correlation of the measurement columns (nulls ignored pairwise)."""
    if columns is None:
        columns = [col for col in NUMERIC_COLUMNS if col in obs.columns]
    return obs[columns].corr(method=method)


def min_max_by_year(obs: pd.DataFrame, column: str = 'temperature') -> pd.DataFrame:
    """
    Yearly minimum and maximum of a measurement.

    Years in which the measurement is null throughout produce no row.

    Returns:
        DataFrame indexed by year with 'min' and 'max' columns
    """
    _check_column(obs, column)
    values = obs[column].dropna()
    summary = values.groupby(values.index.year).agg(['min', 'max'])
    summary.index.name = 'year'

    dropped = obs.index.year.nunique() - len(summary)
    if dropped:
        logger.info(f"Omitted {dropped} years without {column} values from min/max summary")

    return summary


def lag_difference(obs: pd.DataFrame, column: str, lag: int = DEFAULT_LAG) -> pd.Series:
    """
    Difference between each value and the value ``lag`` rows earlier.

    Computed on row position in the current order: gaps or duplicate
    dates are not compensated for. The first ``lag`` entries are null.

    Args:
        obs: Prepared observations in ascending date order
        column: Measurement column
        lag: Offset in rows (days for a daily record)

    Returns:
        Series aligned with ``obs``
    """
    _check_column(obs, column)
    if lag <= 0:
        raise ValueError(f"Lag must be a positive integer, got {lag}")

    return obs[column].diff(periods=lag).rename(f'{column}_lag{lag}')


def lag_view(
    obs: pd.DataFrame,
    column: str,
    lag: int = DEFAULT_LAG,
    highlight: Optional[Callable[[pd.Series], pd.Series]] = None
) -> RenderableSeries:
    """
    Lag-N differences of a measurement over time.

    Args:
        obs: Prepared observations in ascending date order
        column: Measurement column
        lag: Offset in rows
        highlight: Optional predicate mapping the differences to a boolean mask

    Returns:
        RenderableSeries with x=date, y=difference (undefined entries removed)
    """
    diffs = lag_difference(obs, column, lag)
    defined = diffs.notna().to_numpy()
    diffs = diffs[defined].reset_index(drop=True)

    mask = None
    if highlight is not None:
        mask = pd.Series(highlight(diffs), index=diffs.index).fillna(False).astype(bool)

    return RenderableSeries(
        name=f'{column} lag-{lag} difference',
        x=pd.Series(obs.index[defined], name='date'),
        y=diffs,
        x_label='Date',
        y_label=f'Δ{column} ({lag} rows)',
        group=obs['interval_bucket'][defined].reset_index(drop=True),
        highlight=mask
    )


def monthly_series(obs: pd.DataFrame, column: str) -> pd.Series:
    """Monthly mean of a measurement on a regular month-start index."""
    _check_column(obs, column)
    return obs[column].resample('MS').mean()


def seasonal_decomposition(
    obs: pd.DataFrame,
    column: str,
    period: int = 12,
    model: str = 'additive'
) -> DecomposeResult:
    """
    Split the monthly series into trend, seasonal and residual parts.

    Months without data are interpolated before decomposition; leading
    and trailing empty months are dropped.

    Raises:
        ValueError: If fewer than two full periods of data exist
    """
    series = monthly_series(obs, column)
    first, last = series.first_valid_index(), series.last_valid_index()
    if first is None:
        raise ValueError(f"No {column} values to decompose")

    series = series.loc[first:last].interpolate(method='time')
    if len(series) < 2 * period:
        raise ValueError(
            f"Need at least {2 * period} months of {column} data for decomposition, "
            f"got {len(series)}"
        )

    return seasonal_decompose(series, model=model, period=period)

