"""Repository packing with importance scoring and code entity extraction."""

__version__ = "0.1.0"
