"""Training-example curation for recorded shopping sessions."""

__version__ = "0.1.0"
