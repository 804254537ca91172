"""AI-mentor conversation and lesson document ingestion core."""

__version__ = "0.1.0"
