"""Season ranking ingestion for Rocket League tracker profiles."""

__version__ = "0.3.0"
