"""Football Edge: prediction and value engine for football fixtures."""

__version__ = "0.1.0"
