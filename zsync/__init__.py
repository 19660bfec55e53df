"""Publish archival snapshots of GitHub releases to Zenodo."""

__version__ = "0.3.0"
