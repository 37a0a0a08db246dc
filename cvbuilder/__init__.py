"""Build-configuration resolution for a patched OpenCV."""

__version__ = "0.1.0"
