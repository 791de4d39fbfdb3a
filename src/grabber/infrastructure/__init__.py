"""Infrastructure adapters for the mirror."""

from src.grabber.infrastructure.mw_client import MediaWikiClient, RetryPolicy
from src.grabber.infrastructure.raw_sink import RawApiJsonlSink
from src.grabber.infrastructure.store_sqlite import SQLiteMirrorStore

__all__ = ["MediaWikiClient", "RawApiJsonlSink", "RetryPolicy", "SQLiteMirrorStore"]
