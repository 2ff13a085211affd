"""Community-voted prediction approval service."""

__version__ = "0.1.0"
