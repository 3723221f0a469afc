"""Bulk loading application layer: the batch loader and progress reporting."""

from bulk_loading.application.batch_loader import BatchLoader
from bulk_loading.application.progress import ProgressReporter

__all__ = ["BatchLoader", "ProgressReporter"]
