"""Durable record store adapters (jobs, chunks, cache rows, call audit)."""

from src.providers.records.sqlite_record_store import SQLiteRecordStore

__all__ = ["SQLiteRecordStore"]
