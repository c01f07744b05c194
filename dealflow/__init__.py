"""Deal-status workflow automation service for a loan brokerage back office."""

__version__ = "0.1.0"
