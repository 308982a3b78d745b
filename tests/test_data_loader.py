"""
Test Suite for Data Loader Module
===================================

Tests for configuration loading, raw CSV reading and validation.
"""

import pytest
import numpy as np
import pandas as pd

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

from station_eda.data_loader import (
    load_config,
    load_raw_data,
    iter_raw_chunks,
    validate_data,
    get_data_summary,
)
from station_eda.preprocessing import ObservationPreparer, prepare_pipeline

RAW_EXPORT = """Station: Test Harbour
Latitude: 51.0, Longitude: 4.0
Units: m, uS/cm, degC
Datetime,Level,Salinity,Temperature
00:00 01/01/1885,1.20,,14.1
00:00 02/01/1885,1.21,410,14.0
not-a-time, 1.2, 3.4, 5.6
00:00 03/01/1885,,412,
00:00 04/01/1885,1.25,415,13.7
"""


@pytest.fixture
def raw_file(tmp_path):
    """Write a raw export with four metadata lines."""
    path = tmp_path / "station.csv"
    path.write_text(RAW_EXPORT, encoding="utf-8")
    return path


class TestLoadConfig:
    """Tests for YAML configuration loading."""

    def test_load_config(self, tmp_path):
        """Test a config file is parsed into a dict."""
        path = tmp_path / "config.yaml"
        path.write_text("data:\n  origin: harbour\nanalysis:\n  lag: 30\n")

        config = load_config(str(path))

        assert config['data']['origin'] == 'harbour'
        assert config['analysis']['lag'] == 30

    def test_empty_config(self, tmp_path):
        """Test an empty file yields an empty dict."""
        path = tmp_path / "config.yaml"
        path.write_text("")
        assert load_config(str(path)) == {}

    def test_missing_config(self, tmp_path):
        """Test that a missing config file is fatal."""
        with pytest.raises(FileNotFoundError, match="Configuration file not found"):
            load_config(str(tmp_path / "absent.yaml"))

    def test_shipped_config(self):
        """Test the default configuration shipped with the project."""
        config = load_config(str(Path(__file__).parent.parent / "config" / "config.yaml"))

        assert config['data']['header_lines'] == 4
        assert config['preprocessing']['interval_boundaries'] == [1900, 1940, 1980]
        assert config['analysis']['lag'] == 30


class TestLoadRawData:
    """Tests for reading the raw export."""

    def test_header_lines_skipped(self, raw_file):
        """Test the metadata lines are not read as data."""
        raw = load_raw_data(str(raw_file))

        assert list(raw.columns) == ['timestamp', 'level', 'salinity', 'temperature']
        assert len(raw) == 5
        assert raw.loc[0, 'timestamp'] == '00:00 01/01/1885'

    def test_fields_kept_as_text(self, raw_file):
        """Test empty fields stay empty strings for the preparer to coerce."""
        raw = load_raw_data(str(raw_file))

        assert raw.loc[0, 'salinity'] == ''
        assert raw.loc[1, 'level'] == '1.21'
        assert raw.loc[2, 'level'] == '1.2'

    def test_missing_file(self, tmp_path):
        """Test that a missing data file is fatal."""
        with pytest.raises(FileNotFoundError, match="Data file not found"):
            load_raw_data(str(tmp_path / "absent.csv"))

    def test_chunks(self, raw_file):
        """Test lazy reading yields the same rows in chunks."""
        chunks = list(iter_raw_chunks(str(raw_file), chunksize=2))

        assert [len(chunk) for chunk in chunks] == [2, 2, 1]
        pd.testing.assert_frame_equal(
            pd.concat(chunks, ignore_index=True),
            load_raw_data(str(raw_file))
        )

    def test_chunks_restart_by_rereading(self, raw_file):
        """Test a new iterator reads the file from the start again."""
        first = next(iter_raw_chunks(str(raw_file), chunksize=2))
        again = next(iter_raw_chunks(str(raw_file), chunksize=2))

        pd.testing.assert_frame_equal(first, again)

    def test_end_to_end_preparation(self, raw_file):
        """Test file to observations, with the malformed row dropped."""
        result = prepare_pipeline(iter_raw_chunks(str(raw_file), chunksize=2), origin="harbour")
        observations = result['observations']

        assert result['n_input'] == 5
        assert result['n_output'] == 4
        assert list(result['rejected']['position']) == [2]
        assert np.isnan(observations['salinity'].iloc[0])
        assert np.isnan(observations['level'].iloc[2])
        assert (observations['interval_bucket'] == 'Before1900').all()


class TestValidateData:
    """Tests for validation of prepared observations."""

    @pytest.fixture
    def observations(self):
        """Observations with a duplicate date and missing values."""
        observations, _ = ObservationPreparer(origin="harbour").prepare([
            ("00:00 01/01/1990", "1.0", "", "10.0"),
            ("00:00 02/01/1990", "1.1", "400", "10.5"),
            ("12:00 02/01/1990", "1.2", "401", ""),
        ])
        return observations

    def test_issues_reported(self, observations):
        """Test duplicates and missing values are flagged."""
        is_valid, report = validate_data(observations)

        assert not is_valid
        assert report['missing_by_column'] == {'salinity': 1, 'temperature': 1}
        assert any("Duplicate dates" in issue for issue in report['issues'])

    def test_strict_raises(self, observations):
        """Test strict mode turns issues into an error."""
        with pytest.raises(ValueError, match="Data validation failed"):
            validate_data(observations, strict=True)

    def test_clean_data_valid(self):
        """Test complete, ordered, unique data passes."""
        observations, _ = ObservationPreparer(origin="harbour").prepare([
            ("00:00 01/01/1990", "1.0", "400", "10.0"),
            ("00:00 02/01/1990", "1.1", "401", "10.5"),
        ])

        is_valid, report = validate_data(observations)

        assert is_valid
        assert report['issues'] == []

    def test_summary(self, observations):
        """Test summary statistics and per-interval counts."""
        summary = get_data_summary(observations)

        assert summary['shape'] == (3, 6)
        assert summary['rows_per_interval']['1980-Today'] == 3
        assert summary['statistics']['level']['max'] == pytest.approx(1.2)
        assert summary['statistics']['salinity']['count'] == 2


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
