"""Raster image conversion engine with result caching, folder batches and savings statistics."""

__all__ = ["__version__"]

__version__ = "1.0.0"
