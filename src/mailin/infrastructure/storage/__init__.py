"""Staging store adapters."""

from .local_staging_store import LocalStagingStore

__all__ = ["LocalStagingStore"]
