"""
errorrelay: Deduplicating error relay from distributed peers to a remote sink.

Peers forward their log output to a single authority, which deduplicates,
counts and ships unique events to a Rollbar-style ingestion endpoint.
"""

__version__ = "0.1.0"
