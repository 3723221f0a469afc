"""Batch planning for bulk loads.

Pure functions with no database access: a list of records is split into
contiguous, order-preserving batches that are staged and executed one at a
time.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Generic, Sequence, TypeVar

from bulk_loading.exceptions import ValidationError

T = TypeVar("T")


@dataclass(frozen=True)
class Batch(Generic[T]):
    """A contiguous slice of the input records.

    Attributes:
        index: 0-based position of the batch (used in staging keys)
        offset: Position of the first record in the original list
        records: The records of this batch, in input order
    """

    index: int
    offset: int
    records: tuple[T, ...]

    @property
    def number(self) -> int:
        """1-based batch number for progress reporting."""
        return self.index + 1

    @property
    def size(self) -> int:
        return len(self.records)


def _check_batch_size(batch_size: Any) -> int:
    if isinstance(batch_size, bool) or not isinstance(batch_size, int):
        raise ValidationError(
            f"Batch size must be an integer, got {type(batch_size).__name__}"
        )
    if batch_size <= 0:
        raise ValidationError(f"Batch size must be greater than 0, got {batch_size}")
    return batch_size


def estimate_total_batches(count: int, batch_size: int) -> int:
    """Number of batches needed for ``count`` records.

    Raises:
        ValidationError: If batch_size is not a positive integer
    """
    size = _check_batch_size(batch_size)
    if count <= 0:
        return 0
    return math.ceil(count / size)


class BatchPlanner:
    """Splits record lists into fixed-size batches."""

    def plan(self, records: Sequence[T], batch_size: int) -> list[Batch[T]]:
        """Split records into batches of at most ``batch_size``.

        Every batch except possibly the last holds exactly ``batch_size``
        records, and concatenating the batches yields the input list.

        Raises:
            ValidationError: If batch_size is not a positive integer
        """
        size = _check_batch_size(batch_size)
        return [
            Batch(index=index, offset=offset, records=tuple(records[offset : offset + size]))
            for index, offset in enumerate(range(0, len(records), size))
        ]

    def estimate_total_batches(self, count: int, batch_size: int) -> int:
        return estimate_total_batches(count, batch_size)
