"""Metrics side-car: scrape endpoint and Prometheus Remote-Write push."""

__version__ = "0.1.0"
