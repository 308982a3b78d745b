"""
Test Suite for Preprocessing Module
=====================================

Tests for the ObservationPreparer class and preparation functions.
"""

import pytest
import numpy as np
import pandas as pd

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

from station_eda.preprocessing import (
    ObservationPreparer,
    assign_interval_bucket,
    bucket_labels,
    prepare_pipeline,
    split_timestamp,
)


class TestIntervalBuckets:
    """Tests for interval bucket assignment."""

    def test_default_labels(self):
        """Test labels derived from the default boundaries."""
        assert bucket_labels() == ['Before1900', '1900-1940', '1940-1980', '1980-Today']

    def test_unsorted_boundaries_rejected(self):
        """Test that boundaries must increase."""
        with pytest.raises(ValueError, match="strictly increasing"):
            bucket_labels([1940, 1900])

    @pytest.mark.parametrize("date, expected", [
        ("1899-12-31", "Before1900"),
        ("1900-01-01", "1900-1940"),
        ("1939-12-31", "1900-1940"),
        ("1940-01-01", "1940-1980"),
        ("1979-12-31", "1940-1980"),
        ("1980-01-01", "1980-Today"),
    ])
    def test_boundary_exactness(self, date, expected):
        """Test that each boundary date opens the next bucket."""
        buckets = assign_interval_bucket(pd.to_datetime([date]))
        assert buckets[0] == expected

    def test_partition_is_monotonic(self):
        """Test every date gets one bucket and later dates never get earlier buckets."""
        dates = pd.date_range('1850-01-01', '2030-12-31', freq='7D')
        buckets = assign_interval_bucket(dates)

        assert len(buckets) == len(dates)
        assert not pd.isna(buckets).any()
        assert (np.diff(buckets.codes) >= 0).all()
        assert set(buckets.codes) == {0, 1, 2, 3}

    def test_buckets_are_ordered(self):
        """Test the categorical carries the historical order."""
        buckets = assign_interval_bucket(pd.to_datetime(['1990-06-01', '1850-06-01']))
        assert buckets.ordered
        assert buckets.codes[1] < buckets.codes[0]

    def test_missing_date_rejected(self):
        """Test that NaT cannot be classified."""
        with pytest.raises(ValueError, match="missing date"):
            assign_interval_bucket(pd.to_datetime(['1990-06-01', None]))


class TestSplitTimestamp:
    """Tests for timestamp splitting."""

    def test_split_on_first_whitespace(self):
        """Test time and date parts are separated."""
        parts = split_timestamp(pd.Series(['00:00 01/01/1885', '12:30   15/06/1950']))

        assert list(parts['time']) == ['00:00', '12:30']
        assert list(parts['date']) == ['01/01/1885', '15/06/1950']

    def test_no_separator(self):
        """Test that a timestamp without whitespace yields no parts."""
        parts = split_timestamp(pd.Series(['not-a-time']))

        assert pd.isna(parts.loc[0, 'time'])
        assert pd.isna(parts.loc[0, 'date'])


class TestObservationPreparer:
    """Tests for ObservationPreparer class."""

    @pytest.fixture
    def raw_rows(self):
        """Create raw rows in file order."""
        return [
            ("00:00 01/01/1885", "1.20", "410", "14.1"),
            ("00:00 02/01/1885", "1.22", "", "14.0"),
            ("00:00 03/01/1885", "1.25", "412", "13.8"),
            ("00:00 04/01/1885", "1.19", "409", "13.9"),
        ]

    @pytest.fixture
    def preparer(self):
        """Create a preparer instance."""
        return ObservationPreparer(origin="test-station")

    def test_init(self, preparer):
        """Test preparer initialization."""
        assert preparer.origin == "test-station"
        assert preparer.date_format == '%d/%m/%Y'
        assert preparer.boundaries == (1900, 1940, 1980)

    def test_output_columns(self, preparer, raw_rows):
        """Test the prepared table layout."""
        observations, rejected = preparer.prepare(raw_rows)

        assert observations.index.name == 'date'
        assert list(observations.columns) == [
            'time', 'level', 'salinity', 'temperature', 'origin', 'interval_bucket'
        ]
        assert len(observations) == 4
        assert rejected.empty
        assert (observations['origin'] == "test-station").all()
        assert (observations['interval_bucket'] == 'Before1900').all()

    def test_null_propagation(self, preparer, raw_rows):
        """Test an empty salinity field becomes NaN without dropping the row."""
        observations, _ = preparer.prepare(raw_rows)
        row = observations.loc[pd.Timestamp('1885-01-02')]

        assert np.isnan(row['salinity'])
        assert row['level'] == pytest.approx(1.22)
        assert row['temperature'] == pytest.approx(14.0)

    def test_non_numeric_becomes_null(self, preparer):
        """Test that garbage in a numeric field is coerced to NaN."""
        observations, rejected = preparer.prepare([("00:00 01/01/1950", "abc", " 7.5 ", "-")])

        assert rejected.empty
        assert np.isnan(observations['level'].iloc[0])
        assert observations['salinity'].iloc[0] == pytest.approx(7.5)
        assert np.isnan(observations['temperature'].iloc[0])

    def test_malformed_timestamp_dropped(self, preparer, raw_rows):
        """Test a row without separator is excluded and reported."""
        valid, _ = preparer.prepare(raw_rows)

        with_bad = raw_rows[:3] + [("not-a-time", "1.2", "3.4", "5.6")]
        observations, rejected = preparer.prepare(with_bad)

        assert len(observations) == len(valid) - 1
        assert len(rejected) == 1
        assert rejected.loc[0, 'reason'] == 'no_separator'
        assert rejected.loc[0, 'position'] == 3
        assert rejected.loc[0, 'timestamp'] == 'not-a-time'

    @pytest.mark.parametrize("timestamp", [
        "00:00 32/01/1900",
        "00:00 1/1/1900",
        "00:00 01-01-1900",
        "00:00 29/02/1900",
    ])
    def test_bad_date_dropped(self, preparer, timestamp):
        """Test dates outside the DD/MM/YYYY pattern or calendar are rejected."""
        observations, rejected = preparer.prepare([(timestamp, "1", "2", "3")])

        assert observations.empty
        assert list(rejected['reason']) == ['bad_date']

    def test_time_of_day_parsed(self, preparer):
        """Test the time component is kept as a duration since midnight."""
        observations, _ = preparer.prepare([
            ("12:30 01/01/1950", "1", "2", "3"),
            ("xx:yy 02/01/1950", "1", "2", "3"),
        ])

        assert observations['time'].iloc[0] == pd.Timedelta(hours=12, minutes=30)
        assert pd.isna(observations['time'].iloc[1])

    def test_sorted_with_stable_ties(self, preparer):
        """Test output is date-ordered, keeping duplicates in input order."""
        observations, _ = preparer.prepare([
            ("00:00 03/01/1950", "3.0", "", ""),
            ("00:00 01/01/1950", "1.0", "", ""),
            ("00:00 02/01/1950", "2.1", "", ""),
            ("06:00 02/01/1950", "2.2", "", ""),
        ])

        assert observations.index.is_monotonic_increasing
        assert list(observations['level']) == [1.0, 2.1, 2.2, 3.0]
        assert observations.index.duplicated().sum() == 1

    def test_dataframe_chunks(self, preparer, raw_rows):
        """Test that chunked DataFrame input is concatenated in order."""
        frame = pd.DataFrame(raw_rows, columns=['timestamp', 'level', 'salinity', 'temperature'])
        chunks = [frame.iloc[:2], frame.iloc[2:]]
        chunks[1] = chunks[1].copy()
        chunks[1].iloc[0, 0] = 'broken'

        observations, rejected = preparer.prepare(iter(chunks))

        assert len(observations) == 3
        assert rejected.loc[0, 'position'] == 2

    def test_wrong_column_count(self, preparer):
        """Test that input with the wrong shape is refused."""
        with pytest.raises(ValueError, match="Expected 4 raw columns"):
            preparer.prepare(pd.DataFrame({'a': ['x'], 'b': ['y']}))

    def test_custom_boundaries(self):
        """Test buckets follow configured boundaries."""
        preparer = ObservationPreparer(origin="s", boundaries=[1950])
        observations, _ = preparer.prepare([
            ("00:00 31/12/1949", "1", "", ""),
            ("00:00 01/01/1950", "1", "", ""),
        ])

        assert list(observations['interval_bucket'].astype(str)) == ['Before1950', '1950-Today']


class TestPreparePipeline:
    """Tests for the prepare_pipeline function."""

    @pytest.fixture
    def raw_data(self):
        """Create a raw export with one malformed row."""
        dates = pd.date_range('1939-12-30', periods=6, freq='D')
        frame = pd.DataFrame({
            'timestamp': ['00:00 ' + d.strftime('%d/%m/%Y') for d in dates],
            'level': ['1.1', '1.2', '', '1.4', '1.5', '1.6'],
            'salinity': ['400'] * 6,
            'temperature': ['10.0', '', '', '11.0', '11.5', '12.0'],
        })
        frame.loc[3, 'timestamp'] = '00:0002/01/1940'
        return frame

    def test_pipeline_returns_expected_keys(self, raw_data):
        """Test that pipeline returns all expected keys."""
        result = prepare_pipeline(raw_data, origin="test-station")

        expected_keys = [
            'observations', 'rejected', 'n_input', 'n_output',
            'n_rejected', 'missing_counts', 'date_range', 'preparer'
        ]

        for key in expected_keys:
            assert key in result, f"Missing key: {key}"

    def test_pipeline_counts(self, raw_data):
        """Test row accounting and missing value counts."""
        result = prepare_pipeline(raw_data, origin="test-station")

        assert result['n_input'] == 6
        assert result['n_output'] == 5
        assert result['n_rejected'] == 1
        assert result['missing_counts'] == {'level': 1, 'salinity': 0, 'temperature': 2}
        assert result['date_range'] == (pd.Timestamp('1939-12-30'), pd.Timestamp('1940-01-04'))

    def test_pipeline_buckets_cross_boundary(self, raw_data):
        """Test rows on both sides of 1940-01-01 land in different buckets."""
        observations = prepare_pipeline(raw_data, origin="test-station")['observations']
        buckets = observations['interval_bucket'].astype(str)

        assert list(buckets) == ['1900-1940', '1900-1940', '1940-1980', '1940-1980', '1940-1980']

    def test_pipeline_does_not_modify_input(self, raw_data):
        """Test that the raw frame is left untouched."""
        before = raw_data.copy()
        prepare_pipeline(raw_data, origin="test-station")

        pd.testing.assert_frame_equal(raw_data, before)

    def test_empty_input(self):
        """Test an empty export gives an empty table."""
        result = prepare_pipeline([], origin="test-station")

        assert result['n_output'] == 0
        assert result['date_range'] is None


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
