"""notechat storage layer."""

from notechat.db.blob_store import BlobStore
from notechat.db.connection import Database, transaction
from notechat.db.migrations import MIGRATIONS, run_migrations
from notechat.db.record_store import RecordStore
from notechat.db.schema import initialize

__all__ = [
    "BlobStore",
    "Database",
    "RecordStore",
    "initialize",
    "run_migrations",
    "MIGRATIONS",
    "transaction",
]
