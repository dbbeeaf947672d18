"""metadatafy: turn a source tree into a searchable code index."""

__version__ = "1.0.1"
