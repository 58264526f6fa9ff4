"""LanShare: share files with every device on the local network."""

__version__ = "0.1.0"
