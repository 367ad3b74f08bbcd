"""Scanning pipeline, report formats and graph storage for vetting package dependencies."""

__version__ = "0.1.0"