"""Persistence for cross-validation runs."""

from .result_store import ParquetResultStore

__all__ = ["ParquetResultStore"]
