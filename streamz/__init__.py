"""Streamz: video metadata API and range-request streaming relay."""

__version__ = "1.0.0"
