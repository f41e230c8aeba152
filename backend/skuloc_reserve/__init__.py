"""SKULOC reserve allocation calculation."""

__version__ = "1.0.0"
