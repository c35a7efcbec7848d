"""Crawl pulse tooling: parse crawl reports, diff snapshots, lay out the space graph."""

__version__ = "0.3.0"
