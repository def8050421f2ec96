"""Switch monitor inputs over DDC/CI."""

__version__ = "0.2.0"
