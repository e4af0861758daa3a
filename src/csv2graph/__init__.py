"""Render CSV columns as a scatter plot through a pluggable computation backend."""
__version__ = "0.3.0"
