"""Load GTFS feeds into a relational store and trim them to one agency."""

__version__ = "0.1.0"
