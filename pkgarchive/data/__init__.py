"""
Data access and in-memory indexing for the package archive.

This package is responsible for:
* Determining the data directory (via env var + sensible default).
* Loading and persisting archive configuration.
* Discovering package artifacts on disk and extracting their metadata.
* The highest-version-wins in-memory index.
"""
