"""
Station EDA
===========

Exploratory analysis of a single monitoring station's historical
water level, salinity and temperature record.

Modules:
    - data_loader: Configuration, raw CSV ingestion and validation
    - preprocessing: Preparation of raw rows into dated observations
    - views: Read-only queries over the observations
    - eda: Figures and the EDA report
"""

__version__ = "1.0.0"
__author__ = "Station Analytics Team"
