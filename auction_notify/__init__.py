"""Handshake auction indexer and real-time notification stream."""

__version__ = "0.1.0"
