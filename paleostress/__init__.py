"""Paleostress - stress tensor inversion from striated fault planes."""

__version__ = "0.1.0"
